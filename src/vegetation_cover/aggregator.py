"""
Aggregator — Category Tallies and Fractions
============================================
Reduces a :class:`~vegetation_cover.classifier.ClassifiedGrid` to a
land-cover breakdown.

Counts are exact integers.  Fractions are computed once, from the final
counts, as ``count / total_valid``; nothing is rounded here.  Partial
counts from separate row ranges (or workers) combine with ``+`` before
fractions are derived.

Classes:
    CategoryCounts      Mergeable integer tallies per category code.
    CategoryStat        One row of the breakdown.
    AggregateResult     Immutable breakdown with totals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

import numpy as np
import pandas as pd

from vegetation_cover.classifier import ClassificationScheme, ClassifiedGrid
from vegetation_cover.exceptions import ConfigurationError

logger = logging.getLogger("vegetation_cover.aggregator")


# ---------------------------------------------------------------------------
# Partial counts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryCounts:
    """Integer tallies for one scheme, indexed by category code.

    Attributes:
        scheme: Scheme the codes refer to.
        counts: ``counts[code]`` cells per category.
        nodata_count: Missing cells seen.
    """

    scheme: ClassificationScheme
    counts: tuple[int, ...]
    nodata_count: int = 0

    @property
    def total_valid(self) -> int:
        return sum(self.counts)

    def merge(self, other: CategoryCounts) -> CategoryCounts:
        """Sum two partial tallies over the same scheme.

        Raises:
            ConfigurationError: If the schemes differ.
        """
        if other.scheme != self.scheme:
            raise ConfigurationError("Cannot merge counts from different classification schemes.")
        return CategoryCounts(
            scheme=self.scheme,
            counts=tuple(a + b for a, b in zip(self.counts, other.counts)),
            nodata_count=self.nodata_count + other.nodata_count,
        )

    __add__ = merge

    def to_result(self) -> AggregateResult:
        """Derive fractions from the final counts."""
        total = self.total_valid
        if total == 0:
            logger.warning("No valid cells to aggregate; all fractions are 0.")
        stats = tuple(
            CategoryStat(
                label=label,
                count=count,
                fraction=count / total if total else 0.0,
            )
            for label, count in zip(self.scheme.category_labels, self.counts)
        )
        return AggregateResult(
            categories=stats,
            total_valid=total,
            nodata_count=self.nodata_count,
            nodata_label=self.scheme.nodata_label,
        )


def tally(classified: ClassifiedGrid, rows: slice | None = None) -> CategoryCounts:
    """Count cells per category, optionally over a row range only."""
    rows = rows or slice(None)
    codes = classified.codes.values[rows]
    valid = classified.codes.valid[rows]
    n_categories = len(classified.scheme.category_labels)
    counts = np.bincount(codes[valid].astype(np.int64), minlength=n_categories)
    return CategoryCounts(
        scheme=classified.scheme,
        counts=tuple(int(c) for c in counts[:n_categories]),
        nodata_count=int(valid.size - np.count_nonzero(valid)),
    )


# ---------------------------------------------------------------------------
# Final result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryStat:
    """Pixel count and fraction of valid pixels for one category."""

    label: str
    count: int
    fraction: float

    def __str__(self) -> str:
        return f"{self.label}: {self.count:,} px ({self.fraction:.2%})"


@dataclass(frozen=True)
class AggregateResult:
    """Land-cover breakdown for one classified grid.

    Attributes:
        categories: One :class:`CategoryStat` per category, scheme order.
        total_valid: Cells that received a density category.
        nodata_count: Missing cells, excluded from every fraction.
        nodata_label: Label the missing cells are reported under.
    """

    categories: tuple[CategoryStat, ...]
    total_valid: int
    nodata_count: int = 0
    nodata_label: str = "No data"

    def __getitem__(self, label: str) -> CategoryStat:
        for stat in self.categories:
            if stat.label == label:
                return stat
        raise KeyError(label)

    def __iter__(self) -> Iterator[CategoryStat]:
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

    @property
    def labels(self) -> list[str]:
        return [s.label for s in self.categories]

    @property
    def fraction_sum(self) -> float:
        return float(sum(s.fraction for s in self.categories))

    def as_mapping(self) -> dict[str, tuple[int, float]]:
        """``{label: (count, fraction)}`` in scheme order."""
        return {s.label: (s.count, s.fraction) for s in self.categories}

    def to_dict(self) -> dict[str, object]:
        """JSON-ready representation."""
        return {
            "total_valid": self.total_valid,
            "nodata_count": self.nodata_count,
            "nodata_label": self.nodata_label,
            "categories": [
                {"label": s.label, "count": s.count, "fraction": s.fraction}
                for s in self.categories
            ],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per category with ``label``, ``count`` and ``fraction`` columns."""
        return pd.DataFrame(
            [(s.label, s.count, s.fraction) for s in self.categories],
            columns=["label", "count", "fraction"],
        )

    def __str__(self) -> str:
        lines = [str(s) for s in self.categories]
        lines.append(f"valid={self.total_valid:,} {self.nodata_label}={self.nodata_count:,}")
        return "\n".join(lines)


def summarize(classified: ClassifiedGrid, *, row_batch: int | None = None) -> AggregateResult:
    """Aggregate a classified grid in one pass, or in row batches merged by addition."""
    if not row_batch:
        return tally(classified).to_result()
    height = classified.shape[0]
    total = CategoryCounts(
        classified.scheme, tuple(0 for _ in classified.scheme.category_labels)
    )
    for start in range(0, height, row_batch):
        total = total + tally(classified, slice(start, start + row_batch))
    return total.to_result()
