"""
Grid — Georeferenced Raster Container
======================================
The raster data model every other module works on.

A :class:`Grid` is a 2-D numpy array of samples paired with an explicit
per-cell presence flag (``valid``) and a :class:`Georeference`.  Missing
cells are never inferred from the sample values after construction: the
presence array is the single source of truth, and the ``nodata`` sentinel
is only used when a grid is exported with :meth:`Grid.filled`.

Grids are immutable.  Both arrays are copied on construction and flagged
read-only, so every transform in the package has to build a new grid.

Classes:
    Georeference    Axis-aligned affine georeference + CRS identifier.
    Grid            Immutable raster with presence flags.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterator

import numpy as np
import numpy.typing as npt
from rasterio.transform import Affine

from vegetation_cover.exceptions import (
    InputValidationError,
    MismatchedGeoreferenceError,
)

logger = logging.getLogger("vegetation_cover.grid")


# ---------------------------------------------------------------------------
# Georeference
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Georeference:
    """Mapping from cell indices to map coordinates.

    Rotation terms are assumed to be zero.  ``pixel_height`` is negative
    for the usual north-up raster, so ``origin_y`` is the top edge.

    Attributes:
        origin_x: X coordinate of the upper-left corner of cell (0, 0).
        origin_y: Y coordinate of the upper-left corner of cell (0, 0).
        pixel_width: Cell size along x (map units, non-zero).
        pixel_height: Cell size along y (map units, non-zero, usually < 0).
        crs: Coordinate reference identifier, compared by string equality.
    """

    origin_x: float
    origin_y: float
    pixel_width: float
    pixel_height: float
    crs: str

    def __post_init__(self) -> None:
        for name in ("origin_x", "origin_y", "pixel_width", "pixel_height"):
            if not math.isfinite(getattr(self, name)):
                raise InputValidationError(f"Georeference {name} must be finite.")
        if self.pixel_width == 0 or self.pixel_height == 0:
            raise InputValidationError(
                f"Pixel size must be non-zero, got "
                f"({self.pixel_width}, {self.pixel_height})."
            )

    @classmethod
    def from_transform(cls, transform: Affine, crs: Any) -> Georeference:
        """Build a georeference from a rasterio/affine transform.

        Raises:
            InputValidationError: If the transform carries rotation/shear.
        """
        if transform.b != 0 or transform.d != 0:
            raise InputValidationError(
                f"Rotated transforms are not supported: {tuple(transform)[:6]}"
            )
        return cls(
            origin_x=float(transform.c),
            origin_y=float(transform.f),
            pixel_width=float(transform.a),
            pixel_height=float(transform.e),
            crs=str(crs),
        )

    @property
    def transform(self) -> Affine:
        """The equivalent :class:`affine.Affine` (for rasterio writes)."""
        return Affine(
            self.pixel_width, 0.0, self.origin_x,
            0.0, self.pixel_height, self.origin_y,
        )

    @property
    def pixel_size(self) -> tuple[float, float]:
        return (self.pixel_width, self.pixel_height)

    @property
    def origin(self) -> tuple[float, float]:
        return (self.origin_x, self.origin_y)

    def row_center(self, row: int) -> float:
        """Y coordinate of the centers of cells in *row*."""
        return self.origin_y + (row + 0.5) * self.pixel_height

    def column_centers(self, width: int) -> npt.NDArray[np.float64]:
        """X coordinates of the cell centers of one row, left to right."""
        return self.origin_x + (np.arange(width, dtype=np.float64) + 0.5) * self.pixel_width

    def pixel_center(self, row: int, col: int) -> tuple[float, float]:
        """Map coordinates of the center of cell (*row*, *col*)."""
        return (
            self.origin_x + (col + 0.5) * self.pixel_width,
            self.row_center(row),
        )

    def bounds(self, width: int, height: int) -> tuple[float, float, float, float]:
        """``(minx, miny, maxx, maxy)`` covered by a *width* × *height* grid."""
        x0, x1 = self.origin_x, self.origin_x + width * self.pixel_width
        y0, y1 = self.origin_y, self.origin_y + height * self.pixel_height
        return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------


def _frozen_copy(array: npt.ArrayLike, dtype: Any = None) -> np.ndarray:
    out = np.array(array, dtype=dtype, copy=True)
    out.flags.writeable = False
    return out


class Grid:
    """Immutable 2-D raster with explicit per-cell presence flags.

    Prefer the :meth:`from_array` and :meth:`from_mask` constructors; the
    initializer takes the sample and presence arrays as-is.

    Args:
        values: 2-D array of samples.  float64 for band data, bool for
                masks, integer for class codes.
        valid: Boolean array of the same shape; ``False`` marks missing.
        georef: The grid's :class:`Georeference`.
        nodata: Sentinel written into missing cells by :meth:`filled`.

    Raises:
        InputValidationError: If *values* is not 2-D or *valid* has a
            different shape.
    """

    __slots__ = ("_values", "_valid", "georef", "nodata")

    def __init__(
        self,
        values: npt.ArrayLike,
        valid: npt.ArrayLike,
        georef: Georeference,
        nodata: float | None = None,
    ) -> None:
        values_arr = _frozen_copy(values)
        valid_arr = _frozen_copy(valid, dtype=bool)
        if values_arr.ndim != 2:
            raise InputValidationError(
                f"Grid samples must be 2-D, got shape {values_arr.shape}."
            )
        if valid_arr.shape != values_arr.shape:
            raise InputValidationError(
                f"Presence flags shape {valid_arr.shape} does not match "
                f"samples shape {values_arr.shape}."
            )
        self._values: np.ndarray = values_arr
        self._valid: np.ndarray = valid_arr
        self.georef: Georeference = georef
        self.nodata: float | None = nodata

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_array(
        cls,
        samples: npt.ArrayLike,
        georef: Georeference,
        nodata: float | None = None,
    ) -> Grid:
        """Build a float64 grid, deriving presence from the sentinel.

        Cells equal to *nodata*, and NaN or infinite cells, are missing.

        Example::

            grid = Grid.from_array([[0.1, -9999.0]], georef, nodata=-9999.0)
            grid.is_missing(0, 1)   # True
        """
        values = np.asarray(samples, dtype=np.float64)
        valid = np.isfinite(values)
        if nodata is not None and not math.isnan(nodata):
            valid &= values != nodata
        return cls(values, valid, georef, nodata)

    @classmethod
    def from_mask(cls, mask: npt.ArrayLike, georef: Georeference) -> Grid:
        """Build a boolean mask grid; every cell is present."""
        values = np.asarray(mask, dtype=bool)
        return cls(values, np.ones(values.shape, dtype=bool), georef)

    def derive(
        self,
        values: npt.ArrayLike,
        valid: npt.ArrayLike,
        nodata: float | None = None,
    ) -> Grid:
        """New grid sharing this grid's georeference."""
        return Grid(values, valid, self.georef, self.nodata if nodata is None else nodata)

    # ------------------------------------------------------------------
    # Dimensions / metadata
    # ------------------------------------------------------------------

    @property
    def values(self) -> np.ndarray:
        """Read-only sample array.  Missing cells hold unspecified values."""
        return self._values

    @property
    def valid(self) -> np.ndarray:
        """Read-only presence array (``True`` = present)."""
        return self._valid

    @property
    def width(self) -> int:
        return int(self._values.shape[1])

    @property
    def height(self) -> int:
        return int(self._values.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        """``(height, width)``, numpy order."""
        return (self.height, self.width)

    @property
    def crs(self) -> str:
        return self.georef.crs

    @property
    def dtype(self) -> np.dtype:
        return self._values.dtype

    @property
    def is_boolean(self) -> bool:
        return self._values.dtype == np.bool_

    @property
    def valid_count(self) -> int:
        return int(np.count_nonzero(self._valid))

    @property
    def missing_count(self) -> int:
        return self._valid.size - self.valid_count

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def _check_index(self, row: int, col: int) -> None:
        if not (0 <= row < self.height and 0 <= col < self.width):
            raise IndexError(
                f"Cell ({row}, {col}) is outside a {self.height}x{self.width} grid."
            )

    def is_missing(self, row: int, col: int) -> bool:
        self._check_index(row, col)
        return not bool(self._valid[row, col])

    def sample(self, row: int, col: int) -> Any:
        """Value at (*row*, *col*), or ``None`` when the cell is missing."""
        if self.is_missing(row, col):
            return None
        return self._values[row, col].item()

    def valid_values(self) -> Iterator[Any]:
        """Iterate over present samples in row-major order."""
        for value in self._values[self._valid]:
            yield value.item()

    def filled(self, nodata: float | None = None) -> np.ndarray:
        """Writable copy of the samples with missing cells set to *nodata*.

        Falls back to the grid's own sentinel, then NaN.  Integer and
        boolean grids need an explicit sentinel if any cell is missing.
        """
        sentinel = self.nodata if nodata is None else nodata
        out = np.array(self._values, copy=True)
        if self.missing_count == 0:
            return out
        if sentinel is None:
            if not np.issubdtype(out.dtype, np.floating):
                raise InputValidationError(
                    f"A nodata sentinel is required to fill a {out.dtype} grid."
                )
            sentinel = np.nan
        out[~self._valid] = sentinel
        return out

    # ------------------------------------------------------------------
    # Alignment
    # ------------------------------------------------------------------

    def check_aligned(self, other: Grid, label_a: str = "grid", label_b: str = "other") -> None:
        """Require identical shape, origin, pixel size and CRS.

        Raises:
            MismatchedGeoreferenceError: Naming the first attribute that differs.
        """
        if self.shape != other.shape:
            raise MismatchedGeoreferenceError(label_a, label_b, "shape", self.shape, other.shape)
        a, b = self.georef, other.georef
        if a.origin != b.origin:
            raise MismatchedGeoreferenceError(label_a, label_b, "origin", a.origin, b.origin)
        if a.pixel_size != b.pixel_size:
            raise MismatchedGeoreferenceError(
                label_a, label_b, "pixel size", a.pixel_size, b.pixel_size
            )
        if a.crs != b.crs:
            raise MismatchedGeoreferenceError(label_a, label_b, "crs", a.crs, b.crs)

    # ------------------------------------------------------------------
    # Comparison / dunder helpers
    # ------------------------------------------------------------------

    def equals(self, other: Grid) -> bool:
        """Same georeference, same presence flags, same present samples."""
        if self.shape != other.shape or self.georef != other.georef:
            return False
        if not np.array_equal(self._valid, other._valid):
            return False
        return bool(np.array_equal(self._values[self._valid], other._values[other._valid]))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.equals(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Grid({self.height}x{self.width}, dtype={self.dtype}, "
            f"valid={self.valid_count}, crs={self.crs!r})"
        )
