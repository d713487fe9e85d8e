"""Error definitions for the Slidewarp translator."""

from __future__ import annotations

from typing import List, Tuple


class SlidewarpError(Exception):
    """Base exception for all custom errors."""


class ContainerError(SlidewarpError):
    """Raised when the input bytes cannot be opened as a presentation package."""


class BadRequestError(SlidewarpError):
    """Raised when an inbound request is malformed."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnsupportedFileTypeError(SlidewarpError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(SlidewarpError):
    """Raised when attempting to overwrite an output without consent."""


class TranslationProviderConfigurationError(SlidewarpError):
    """Raised when the translation provider is misconfigured."""


class ProviderError(SlidewarpError):
    """Raised when a single translation provider call fails."""


class AllProvidersFailedError(ProviderError):
    """Raised when every provider in the fallback chain has failed."""

    def __init__(self, message: str, errors: List[Tuple[str, ProviderError]]) -> None:
        super().__init__(message)
        self.errors = errors
