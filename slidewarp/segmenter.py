"""Batching utilities for translation requests."""

from __future__ import annotations

from typing import List, Sequence

from .structures import Batch

# Allowance for the separator each item costs once batches are joined.
ITEM_OVERHEAD = 11


def chunk_by_length(
    items: Sequence[str],
    max_chars: int,
    overhead: int = ITEM_OVERHEAD,
) -> List[List[str]]:
    """Greedily pack items into ordered chunks within a character budget.

    Each item is accounted as ``len(item) + overhead``. An item that alone
    exceeds the budget still gets a chunk of its own; items are never split.
    """

    chunks: List[List[str]] = []
    current: List[str] = []
    running_total = 0

    for item in items:
        size = len(item) + overhead
        if running_total + size > max_chars and current:
            chunks.append(current)
            current = [item]
            running_total = size
        else:
            current.append(item)
            running_total += size

    if current:
        chunks.append(current)

    return chunks


class BatchBuilder:
    """Aggregates run texts into numbered batches within a character budget."""

    def __init__(self, budget: int, *, overhead: int = ITEM_OVERHEAD) -> None:
        self.budget = max(1, budget)
        self.overhead = overhead

    def build(self, items: Sequence[str]) -> List[Batch]:
        return [
            Batch(batch_id=index, items=chunk)
            for index, chunk in enumerate(
                chunk_by_length(items, self.budget, self.overhead),
                start=1,
            )
        ]

    def accounted_size(self, batch: Batch) -> int:
        """Return the budgeted size of a batch, separators included."""

        return sum(len(item) + self.overhead for item in batch.items)
