"""
Classifier — Threshold-Based Categories
========================================
Maps continuous index values to ordered, labelled categories.

Intervals are closed-lower / open-upper: with thresholds ``t1 < t2 < …``
a value ``v`` belongs to the interval starting at the largest ``ti <= v``,
or to the ``below_label`` category when ``v < t1``.  The last interval is
unbounded above.

Classes:
    ClassificationScheme    Validated thresholds + labels.
    ClassifiedGrid          Integer code grid paired with its scheme.

Usage::

    scheme = ClassificationScheme.from_mapping(
        {0.2: "Sparse", 0.45: "Moderate", 0.7: "Dense"},
        below_label="No vegetation",
    )
    classified = classify(ndvi_grid, scheme)
    classified.label_at(0, 0)   # "Dense"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from vegetation_cover.exceptions import ConfigurationError
from vegetation_cover.grid import Grid
from vegetation_cover.validators import Validators

logger = logging.getLogger("vegetation_cover.classifier")

#: Code stored in missing cells of a classified grid.
NODATA_CODE = -1


# ---------------------------------------------------------------------------
# Scheme
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassificationScheme:
    """Ordered cut points and one label per interval.

    Attributes:
        thresholds: Strictly increasing cut points.
        labels: ``labels[i]`` names the interval ``[thresholds[i], thresholds[i+1])``.
        below_label: Name of the interval below ``thresholds[0]``.
        nodata_label: Name reported for missing cells; never counted as a
                      density category.

    Raises:
        ConfigurationError: For empty, non-finite or non-increasing
            thresholds, a label count mismatch, or duplicate labels.
    """

    thresholds: tuple[float, ...]
    labels: tuple[str, ...]
    below_label: str
    nodata_label: str = "No data"
    _codes: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        thresholds = tuple(float(t) for t in self.thresholds)
        labels = tuple(str(label) for label in self.labels)
        object.__setattr__(self, "thresholds", thresholds)
        object.__setattr__(self, "labels", labels)

        Validators.assert_strictly_increasing(thresholds, "Classification thresholds")
        if len(labels) != len(thresholds):
            raise ConfigurationError(
                f"Expected one label per threshold: {len(thresholds)} threshold(s), "
                f"{len(labels)} label(s)."
            )
        names = self.category_labels
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Category labels must be unique: {list(names)}")
        if self.nodata_label in names:
            raise ConfigurationError(
                f"Nodata label {self.nodata_label!r} clashes with a category label."
            )
        object.__setattr__(self, "_codes", {name: code for code, name in enumerate(names)})

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_mapping(
        cls,
        thresholds: Mapping[float, str],
        below_label: str,
        nodata_label: str = "No data",
    ) -> ClassificationScheme:
        """Build from ``{threshold: label}`` in the caller's order (not sorted)."""
        return cls(
            thresholds=tuple(thresholds.keys()),
            labels=tuple(thresholds.values()),
            below_label=below_label,
            nodata_label=nodata_label,
        )

    @classmethod
    def parse(cls, text: str, below_label: str, nodata_label: str = "No data") -> ClassificationScheme:
        """Parse ``"0.2:Sparse,0.45:Moderate,0.7:Dense"``.

        Raises:
            ConfigurationError: If an entry is not ``<number>:<label>``.
        """
        pairs: list[tuple[float, str]] = []
        for token in (t.strip() for t in text.split(",")):
            if not token:
                continue
            value, sep, label = token.partition(":")
            if not sep or not label.strip():
                raise ConfigurationError(f"Threshold entry {token!r} is not '<value>:<label>'.")
            try:
                pairs.append((float(value), label.strip()))
            except ValueError:
                raise ConfigurationError(f"Threshold {value.strip()!r} is not a number.") from None
        return cls(
            thresholds=tuple(p[0] for p in pairs),
            labels=tuple(p[1] for p in pairs),
            below_label=below_label,
            nodata_label=nodata_label,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def category_labels(self) -> tuple[str, ...]:
        """All density categories in code order, ``below_label`` first."""
        return (self.below_label, *self.labels)

    def code_of(self, label: str) -> int:
        """Integer code of a category label (``NODATA_CODE`` for the nodata label).

        Raises:
            KeyError: For an unknown label.
        """
        if label == self.nodata_label:
            return NODATA_CODE
        return self._codes[label]

    def label_of(self, code: int) -> str:
        if code == NODATA_CODE:
            return self.nodata_label
        return self.category_labels[code]

    def codes_for(self, values: np.ndarray) -> np.ndarray:
        """Category codes for an array of finite values."""
        return np.searchsorted(np.asarray(self.thresholds), values, side="right")

    def __str__(self) -> str:
        parts = [f"< {self.thresholds[0]:g}: {self.below_label}"]
        parts += [f">= {t:g}: {label}" for t, label in zip(self.thresholds, self.labels)]
        return "; ".join(parts)


#: Vegetation density classes for NDVI.
DEFAULT_SCHEME = ClassificationScheme.from_mapping(
    {0.2: "Sparse", 0.45: "Moderate", 0.7: "Dense"},
    below_label="No vegetation",
)


# ---------------------------------------------------------------------------
# Classified grid
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassifiedGrid:
    """Category codes for every cell plus the scheme that produced them.

    Attributes:
        codes: int16 :class:`Grid`; missing cells hold ``NODATA_CODE``.
        scheme: The :class:`ClassificationScheme` used.
    """

    codes: Grid
    scheme: ClassificationScheme

    @property
    def shape(self) -> tuple[int, int]:
        return self.codes.shape

    def label_at(self, row: int, col: int) -> str:
        code = self.codes.sample(row, col)
        return self.scheme.nodata_label if code is None else self.scheme.label_of(code)

    def labels(self) -> np.ndarray:
        """Object array of labels, the nodata label in missing cells."""
        names = np.array([*self.scheme.category_labels, self.scheme.nodata_label], dtype=object)
        # NODATA_CODE (-1) indexes the trailing nodata label
        return names[np.where(self.codes.valid, self.codes.values, NODATA_CODE)]

    def code_of(self, label: str) -> int:
        return self.scheme.code_of(label)


def classify(grid: Grid, scheme: ClassificationScheme) -> ClassifiedGrid:
    """Bucket every present cell of *grid* into *scheme*'s categories.

    Missing cells stay missing and report ``scheme.nodata_label``.
    """
    codes = np.full(grid.shape, NODATA_CODE, dtype=np.int16)
    valid = grid.valid
    codes[valid] = scheme.codes_for(grid.values[valid])
    classified = ClassifiedGrid(grid.derive(codes, valid, nodata=NODATA_CODE), scheme)
    logger.debug("Classified %d valid cell(s) into %d categories.", grid.valid_count, len(scheme.category_labels))
    return classified
