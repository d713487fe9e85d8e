"""Command line interface for the Slidewarp translator."""

from __future__ import annotations

import argparse
import pathlib
import sys
from typing import Iterable, List, Optional

from .configuration import configure_logging, get_settings
from .errors import (
    SlidewarpError,
    TranslationProviderConfigurationError,
)
from .structures import TranslationSummary
from .translator import DocumentTranslator, sanitise_language_for_filename, validate_paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slidewarp",
        description="Translate PowerPoint (.pptx) presentations while preserving layout.",
    )
    parser.add_argument(
        "input_file",
        help="Path to the .pptx file to translate.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        help="Destination language code (default: SLIDEWARP_TARGET_LANGUAGE or RU).",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        help="Source language code (default: SLIDEWARP_SOURCE_LANGUAGE or EN).",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    parser.add_argument(
        "-p",
        "--providers",
        help="Comma-separated provider chain, tried in order (default: google,libretranslate).",
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        help="Maximum characters per translation request (default: 600).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def _split_providers(value: str | None) -> Optional[List[str]]:
    if not value:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def execute_translation(
    args: argparse.Namespace,
) -> tuple[int, TranslationSummary | None, pathlib.Path | None, str | None]:
    """Run one translation and return exit code, summary, output path and message."""

    try:
        settings = get_settings()
    except TranslationProviderConfigurationError as exc:
        return 1, None, None, str(exc)

    debug = args.debug_provider or settings.SLIDEWARP_PROVIDER_DEBUG
    configure_logging(
        "DEBUG" if args.verbose else settings.SLIDEWARP_LOG_LEVEL, debug=debug
    )

    target_language = args.target_language or settings.SLIDEWARP_TARGET_LANGUAGE
    input_path = pathlib.Path(args.input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(args.output).expanduser().resolve()
        if args.output
        else derive_output_path(input_path, target_language)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=args.force)
    except (FileNotFoundError, SlidewarpError) as exc:
        return 1, None, None, str(exc)

    try:
        with DocumentTranslator.from_settings(
            settings,
            source_language=args.source_language,
            target_language=target_language,
            providers=_split_providers(args.providers),
            batch_budget=args.batch_size,
            debug=args.debug_provider,
        ) as translator:
            output, summary = translator.translate_package(input_path.read_bytes())
    except SlidewarpError as exc:
        return 1, None, None, str(exc)
    except OSError as exc:
        return 1, None, None, f"Could not read {input_path}: {exc}"
    except KeyboardInterrupt:
        return 2, None, None, "Translation interrupted by user."

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(output)
    except OSError as exc:
        return 1, None, None, f"Could not write {output_path}: {exc}"
    return 0, summary, output_path, None


def print_summary(summary: TranslationSummary, output_path: pathlib.Path) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Output file:     {output_path}")
    print(f"  Parts:           {len(summary.parts)} slide and notes parts")
    print(
        "  Text runs:       "
        f"{summary.translated_spans} translated / {summary.total_spans} total"
    )
    print(f"  Batches:         {summary.total_batches}")
    if summary.provider_usage:
        usage = ", ".join(
            f"{name} ({count})" for name, count in summary.provider_usage.items()
        )
        print(f"  Providers:       {usage}")
    print(f"  Languages:       {summary.source_language} -> {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.missing_translations:
        print(
            f"  Notes:           {summary.missing_translations} runs came back "
            "empty from the provider."
        )


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    exit_code, summary, output_path, message = execute_translation(args)

    if message:
        print(message, file=sys.stderr)
    if summary and output_path:
        print_summary(summary, output_path)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
