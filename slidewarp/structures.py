"""Core data structures for the Slidewarp translator."""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class TextSpan:
    """A single text run located inside a slide XML part."""

    match_text: str
    start: int
    end: int
    inner_text: str
    opening_tag: str

    @property
    def text(self) -> str:
        """Run content with XML entities decoded."""

        return html.unescape(self.inner_text)

    @property
    def is_translatable(self) -> bool:
        return bool(self.inner_text.strip())


@dataclass
class Batch:
    """A batch of run texts constrained by a character budget."""

    batch_id: int
    items: List[str]


@dataclass
class TranslationSummary:
    """Report returned after processing a presentation."""

    source_language: str
    target_language: str
    parts: List[str] = field(default_factory=list)
    total_spans: int = 0
    translated_spans: int = 0
    total_batches: int = 0
    missing_translations: int = 0
    provider_usage: Dict[str, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
