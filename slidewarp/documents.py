"""Presentation package access plus run extraction and reinsertion."""

from __future__ import annotations

import copy
import html
import io
import re
import zipfile
import zlib
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import ContainerError
from .structures import TextSpan

PRESENTATION_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.presentationml.presentation"
)

# Exact <a:t> runs only; <a:tab>, <a:tbl>, <a:tc> and the empty <a:t/> never match.
TEXT_TAG_PATTERN = re.compile(
    r"(?P<open><a:t(?:\s[^>]*)?(?<!/)>)(?P<content>.*?)</a:t>",
    re.DOTALL,
)
CLOSING_TAG = "</a:t>"

# (prefix, suffix) pairs selecting slide bodies and speaker notes.
CONTENT_PART_RULES: Tuple[Tuple[str, str], ...] = (
    ("ppt/slides/slide", ".xml"),
    ("ppt/notesSlides/notesSlide", ".xml"),
)


def find_text_spans(xml: str) -> Iterator[TextSpan]:
    """Yield every text run in document order."""

    for match in TEXT_TAG_PATTERN.finditer(xml):
        yield TextSpan(
            match_text=match.group(0),
            start=match.start(),
            end=match.end(),
            inner_text=match.group("content"),
            opening_tag=match.group("open"),
        )


def xml_escape(text: str) -> str:
    return html.escape(text, quote=True)


def rewrite_document(
    xml: str,
    replacements: Iterable[Tuple[TextSpan, Optional[str]]],
) -> str:
    """Replace each span with its translation, keeping all other bytes intact.

    ``replacements`` must be in ascending offset order. A ``None``
    translation empties the run instead of failing the document.
    """

    parts: List[str] = []
    cursor = 0
    for span, translated in replacements:
        parts.append(xml[cursor:span.start])
        parts.append(span.opening_tag)
        parts.append(xml_escape(translated or ""))
        parts.append(CLOSING_TAG)
        cursor = span.end
    parts.append(xml[cursor:])
    return "".join(parts)


def is_content_part(name: str) -> bool:
    return any(
        name.startswith(prefix) and name.endswith(suffix)
        for prefix, suffix in CONTENT_PART_RULES
    )


class PresentationPackage:
    """An opened .pptx archive whose parts can be read and replaced."""

    def __init__(self, archive: zipfile.ZipFile) -> None:
        self._archive = archive
        self._replacements: Dict[str, bytes] = {}

    @classmethod
    def from_bytes(cls, data: bytes) -> "PresentationPackage":
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise ContainerError(
                "The uploaded file is not a valid PPTX (zip) container."
            ) from exc
        return cls(archive)

    def __enter__(self) -> "PresentationPackage":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._archive.close()

    def names(self) -> List[str]:
        return self._archive.namelist()

    def content_part_names(self) -> List[str]:
        """Slide and notes parts, in archive order."""

        return [name for name in self.names() if is_content_part(name)]

    def read_text(self, name: str) -> str:
        data = self._replacements.get(name)
        if data is None:
            data = self._read_entry(name)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ContainerError(f"Part {name} is not UTF-8 encoded XML.") from exc

    def write_text(self, name: str, text: str) -> None:
        self._replacements[name] = text.encode("utf-8")

    def to_bytes(self) -> bytes:
        """Serialise the archive, substituting every replaced part."""

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as output:
            for info in self._archive.infolist():
                data = self._replacements.get(info.filename)
                if data is None:
                    data = self._read_entry(info.filename)
                output.writestr(copy.copy(info), data)
        return buffer.getvalue()

    def _read_entry(self, name: str) -> bytes:
        try:
            return self._archive.read(name)
        except KeyError as exc:
            raise ContainerError(f"Part {name} does not exist in the package.") from exc
        except (zipfile.BadZipFile, zlib.error) as exc:
            raise ContainerError(f"Part {name} is corrupted: {exc}") from exc
