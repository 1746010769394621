"""
Band Algebra — Cell-wise Arithmetic with Missing-Data Propagation
==================================================================
Elementwise operations over aligned :class:`~vegetation_cover.grid.Grid`
objects.

Propagation rule: an output cell is missing when *any* input cell at that
position is missing, or when the arithmetic produces a non-finite result
(``x / 0``, ``0 / 0``).  Finite results are passed through unmodified; in
particular index values outside ``[-1, 1]`` are never clamped.

Spectral indices are implemented as :class:`IndexStrategy` subclasses
following the Strategy design pattern.  Each declares the bands it needs
and computes its formula through :func:`combine`.

Supported indices:
    - NDVI   Normalized Difference Vegetation Index
    - NDWI   Normalized Difference Water Index
    - SAVI   Soil-Adjusted Vegetation Index
    - EVI    Enhanced Vegetation Index
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Callable, Mapping

import numpy as np
import numpy.typing as npt

from vegetation_cover.exceptions import InputValidationError, SpectralIndexError
from vegetation_cover.grid import Grid

logger = logging.getLogger("vegetation_cover.band_algebra")

ArrayFunc = Callable[..., npt.NDArray[np.float64]]


# ---------------------------------------------------------------------------
# Generic cell-wise operations
# ---------------------------------------------------------------------------


def combine(func: ArrayFunc, *grids: Grid, labels: tuple[str, ...] | None = None) -> Grid:
    """Apply *func* cell-wise to aligned grids.

    Args:
        func: Receives one float64 array per grid and returns an array of
              the same shape.
        *grids: One or more grids sharing shape and georeference.
        labels: Optional grid names used in alignment error messages.

    Returns:
        A new float64 grid on the first grid's georeference.

    Raises:
        InputValidationError: If no grid is given, or *labels* does not
            name every grid.
        MismatchedGeoreferenceError: If any grid differs from the first.
    """
    if not grids:
        raise InputValidationError("combine() needs at least one grid.")
    if labels is not None and len(labels) != len(grids):
        raise InputValidationError(
            f"Got {len(labels)} label(s) for {len(grids)} grid(s)."
        )
    names = labels or tuple(f"grid[{i}]" for i in range(len(grids)))
    first = grids[0]
    for name, grid in zip(names[1:], grids[1:]):
        first.check_aligned(grid, names[0], name)

    valid = np.logical_and.reduce([g.valid for g in grids])
    operands = [np.where(valid, g.values.astype(np.float64), 0.0) for g in grids]
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        result = np.asarray(func(*operands), dtype=np.float64)
    if result.shape != first.shape:
        raise InputValidationError(
            f"Cell-wise function returned shape {result.shape}, expected {first.shape}."
        )
    valid = valid & np.isfinite(result)
    result = np.where(valid, result, np.nan)
    # valid results are finite, so NaN is always a free sentinel
    return first.derive(result, valid, nodata=math.nan)


def unary(func: ArrayFunc, grid: Grid) -> Grid:
    """Apply a one-argument cell-wise function."""
    return combine(func, grid)


def add(a: Grid, b: Grid) -> Grid:
    return combine(np.add, a, b)


def subtract(a: Grid, b: Grid) -> Grid:
    return combine(np.subtract, a, b)


def multiply(a: Grid, b: Grid) -> Grid:
    return combine(np.multiply, a, b)


def divide(a: Grid, b: Grid) -> Grid:
    """``a / b``; cells where ``b == 0`` become missing."""
    return combine(np.divide, a, b)


def normalized_difference(a: Grid, b: Grid, labels: tuple[str, str] = ("a", "b")) -> Grid:
    """``(a - b) / (a + b)``; cells where ``a + b == 0`` become missing."""
    return combine(lambda x, y: (x - y) / (x + y), a, b, labels=labels)


def ndvi(nir: Grid, red: Grid) -> Grid:
    """NDVI = (NIR - Red) / (NIR + Red).

    Lies in ``[-1, 1]`` wherever both bands are non-negative and not both
    zero.  Other inputs can produce values outside that range; they are
    kept as computed.
    """
    index = normalized_difference(nir, red, labels=("nir", "red"))
    logger.debug("NDVI computed: %d valid cell(s) of %d.", index.valid_count, index.values.size)
    return index


# ---------------------------------------------------------------------------
# Index strategy ABC + concrete implementations
# ---------------------------------------------------------------------------


class IndexStrategy(ABC):
    """Abstract base for a single spectral index computation."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name of the index (e.g. ``"NDVI"``)."""

    @property
    @abstractmethod
    def required_bands(self) -> list[str]:
        """Band keys this index needs, e.g. ``["red", "nir"]``."""

    @abstractmethod
    def formula(self, **bands: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """The index formula on plain arrays, keyed by band name."""

    def compute(self, bands: Mapping[str, Grid]) -> Grid:
        """Compute the index from aligned band grids.

        Raises:
            SpectralIndexError: If a required band is not in *bands*.
            MismatchedGeoreferenceError: If the bands are not aligned.
        """
        missing = [b for b in self.required_bands if b not in bands]
        if missing:
            raise SpectralIndexError(
                self.name, f"Required band(s) not provided: {', '.join(missing)}"
            )
        keys = tuple(self.required_bands)
        return combine(
            lambda *arrays: self.formula(**dict(zip(keys, arrays))),
            *(bands[k] for k in keys),
            labels=keys,
        )


class NDVIStrategy(IndexStrategy):
    """NDVI — Normalized Difference Vegetation Index.

    Formula: ``NDVI = (NIR - Red) / (NIR + Red)``
    """

    @property
    def name(self) -> str:
        return "NDVI"

    @property
    def required_bands(self) -> list[str]:
        return ["nir", "red"]

    def formula(self, **bands: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        nir, red = bands["nir"], bands["red"]
        return (nir - red) / (nir + red)


class NDWIStrategy(IndexStrategy):
    """NDWI — Normalized Difference Water Index.

    Formula: ``NDWI = (Green - NIR) / (Green + NIR)``
    """

    @property
    def name(self) -> str:
        return "NDWI"

    @property
    def required_bands(self) -> list[str]:
        return ["green", "nir"]

    def formula(self, **bands: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        green, nir = bands["green"], bands["nir"]
        return (green - nir) / (green + nir)


class SAVIStrategy(IndexStrategy):
    """SAVI — Soil-Adjusted Vegetation Index.

    Formula: ``SAVI = ((NIR - Red) / (NIR + Red + L)) * (1 + L)``

    Args:
        soil_factor: The ``L`` correction factor; 0.5 suits intermediate cover.
    """

    def __init__(self, soil_factor: float = 0.5) -> None:
        self.soil_factor = soil_factor

    @property
    def name(self) -> str:
        return "SAVI"

    @property
    def required_bands(self) -> list[str]:
        return ["nir", "red"]

    def formula(self, **bands: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        nir, red = bands["nir"], bands["red"]
        L = self.soil_factor
        return ((nir - red) / (nir + red + L)) * (1.0 + L)


class EVIStrategy(IndexStrategy):
    """EVI — Enhanced Vegetation Index.

    Formula: ``EVI = 2.5 * (NIR - Red) / (NIR + 6*Red - 7.5*Blue + 1)``
    """

    @property
    def name(self) -> str:
        return "EVI"

    @property
    def required_bands(self) -> list[str]:
        return ["blue", "nir", "red"]

    def formula(self, **bands: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        blue, nir, red = bands["blue"], bands["nir"], bands["red"]
        return 2.5 * (nir - red) / (nir + 6.0 * red - 7.5 * blue + 1.0)


INDEX_STRATEGIES: dict[str, IndexStrategy] = {
    "NDVI": NDVIStrategy(),
    "NDWI": NDWIStrategy(),
    "SAVI": SAVIStrategy(),
    "EVI": EVIStrategy(),
}


def get_strategy(name: str) -> IndexStrategy:
    """Look up a registered strategy by (case-insensitive) name.

    Raises:
        SpectralIndexError: For an unknown index name.
    """
    try:
        return INDEX_STRATEGIES[name.upper()]
    except KeyError:
        raise SpectralIndexError(
            name, f"unknown index. Valid options: {', '.join(INDEX_STRATEGIES)}"
        ) from None
