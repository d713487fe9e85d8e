"""High-level orchestration for presentation translation."""

from __future__ import annotations

import logging
import pathlib
import re
import time
from typing import List, Optional, Sequence, Tuple

import httpx

from .configuration import SlidewarpConfig
from .documents import PresentationPackage, find_text_spans, rewrite_document
from .errors import OverwriteRefusedError, SlidewarpError, UnsupportedFileTypeError
from .providers import TranslationProvider, build_provider_chain
from .segmenter import BatchBuilder
from .structures import TranslationSummary

logger = logging.getLogger(__name__)

DEFAULT_BATCH_BUDGET = 600


class DocumentTranslator:
    """Coordinates extraction, translation, and reinsertion for one document."""

    def __init__(
        self,
        *,
        provider: TranslationProvider,
        source_language: str,
        target_language: str,
        batch_budget: int = DEFAULT_BATCH_BUDGET,
    ) -> None:
        self.provider = provider
        self.source_language = source_language
        self.target_language = target_language
        self.batch_builder = BatchBuilder(batch_budget)
        self.summary = TranslationSummary(
            source_language=source_language,
            target_language=target_language,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SlidewarpConfig,
        *,
        source_language: str | None = None,
        target_language: str | None = None,
        providers: Sequence[str] | None = None,
        batch_budget: int | None = None,
        client: httpx.Client | None = None,
        debug: bool = False,
    ) -> "DocumentTranslator":
        chain = build_provider_chain(
            providers or settings.SLIDEWARP_PROVIDERS,
            settings,
            client=client,
            debug=debug,
        )
        return cls(
            provider=chain,
            source_language=source_language or settings.SLIDEWARP_SOURCE_LANGUAGE,
            target_language=target_language or settings.SLIDEWARP_TARGET_LANGUAGE,
            batch_budget=batch_budget or settings.SLIDEWARP_BATCH_MAX_CHARS,
        )

    def __enter__(self) -> "DocumentTranslator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.provider.close()

    def translate_texts(self, texts: Sequence[str]) -> List[Optional[str]]:
        """Translate texts batch by batch, keeping results aligned by position.

        Each batch result is padded with ``None`` (or truncated) to the
        batch length so a short answer never shifts later batches.
        """

        results: List[Optional[str]] = []
        for batch in self.batch_builder.build(texts):
            logger.debug(
                "Batch %d: %d runs, %d chars",
                batch.batch_id,
                len(batch.items),
                self.batch_builder.accounted_size(batch),
            )
            translated = self.provider.translate(
                batch.items,
                source_language=self.source_language,
                target_language=self.target_language,
            )
            answered_by = (
                getattr(self.provider, "last_provider_name", None) or self.provider.name
            )
            usage = self.summary.provider_usage
            usage[answered_by] = usage.get(answered_by, 0) + 1
            self.summary.total_batches += 1

            expected = len(batch.items)
            if len(translated) != expected:
                logger.warning(
                    "Batch %d: %s returned %d segments for %d inputs.",
                    batch.batch_id,
                    answered_by,
                    len(translated),
                    expected,
                )
            aligned: List[Optional[str]] = list(translated[:expected])
            aligned.extend([None] * (expected - len(aligned)))
            results.extend(aligned)
        return results

    def translate_markup(self, xml: str) -> str:
        """Translate every non-blank text run of one XML part."""

        spans = list(find_text_spans(xml))
        self.summary.total_spans += len(spans)
        translatable = [span for span in spans if span.is_translatable]
        if not translatable:
            return xml

        translations = self.translate_texts([span.text for span in translatable])
        missing = sum(1 for value in translations if value is None)
        self.summary.translated_spans += len(translations) - missing
        self.summary.missing_translations += missing
        return rewrite_document(xml, zip(translatable, translations))

    def translate_package(self, data: bytes) -> Tuple[bytes, TranslationSummary]:
        """Translate slide and notes parts of a .pptx and return the new bytes."""

        start_time = time.time()
        with PresentationPackage.from_bytes(data) as package:
            for name in package.content_part_names():
                xml = package.read_text(name)
                translated = self.translate_markup(xml)
                if translated != xml:
                    package.write_text(name, translated)
                self.summary.parts.append(name)
                logger.debug("Processed %s", name)
            output = package.to_bytes()

        self.summary.elapsed_seconds = time.time() - start_time
        return output, self.summary


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .pptx file."
        )
    if not input_path.is_file():
        raise SlidewarpError("Input path must be a file.")
    if input_path.suffix.lower() != ".pptx":
        raise UnsupportedFileTypeError(
            "This file type isn't supported. Please use a .pptx presentation."
        )

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned.lower() or "translated"


def output_filename(target_language: str) -> str:
    return f"translated_{sanitise_language_for_filename(target_language)}.pptx"
