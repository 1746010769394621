"""
Rasterizer — Polygon Scan Conversion
=====================================
Burns a :class:`~vegetation_cover.polygon.Polygon` into a boolean mask
:class:`~vegetation_cover.grid.Grid` that shares a reference grid's
georeference.

A cell is inside when its center lies inside the polygon.  For every
output row the horizontal line through the cell centers is intersected
with all polygon edges, then each center is tested against the sorted
crossings:

* **Edge y-range is half-open.**  An edge crosses the scanline when
  ``min(y0, y1) <= y < max(y0, y1)``, so a vertex lying exactly on the
  scanline is counted once, horizontal edges are skipped and zero-length
  edges never contribute.
* **Center x test is half-open.**  A crossing at ``x_c`` counts for every
  center with ``x >= x_c``; a center exactly on a left boundary is inside,
  one exactly on a right boundary is outside.
* **Fill rule.**  ``"even-odd"`` uses the parity of the crossings to the
  left.  ``"nonzero"`` orients the exterior counter-clockwise and holes
  clockwise and sums signed crossings, so holes always subtract.

Rows are independent: they are processed in batches, optionally on a
thread pool, and every batch writes a disjoint slice of the output.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Literal

import numpy as np
import numpy.typing as npt

from vegetation_cover.exceptions import ConfigurationError, MismatchedGeoreferenceError
from vegetation_cover.grid import Georeference, Grid
from vegetation_cover.polygon import Polygon

logger = logging.getLogger("vegetation_cover.rasterizer")

FillRule = Literal["even-odd", "nonzero"]
FILL_RULES: tuple[str, ...] = ("even-odd", "nonzero")

DEFAULT_ROW_BATCH = 64


class _EdgeTable:
    """Polygon edges as parallel float arrays, horizontal edges dropped."""

    def __init__(self, polygon: Polygon) -> None:
        starts, ends = [], []
        for start, end, _ in polygon.edges():
            if start[1] == end[1]:
                continue
            starts.append(start)
            ends.append(end)
        if starts:
            s = np.asarray(starts, dtype=np.float64)
            e = np.asarray(ends, dtype=np.float64)
        else:
            s = e = np.empty((0, 2), dtype=np.float64)
        self.x0, self.y0 = s[:, 0], s[:, 1]
        self.x1, self.y1 = e[:, 0], e[:, 1]
        # +1 for upward edges, -1 for downward (map coordinates)
        self.direction = np.where(self.y1 > self.y0, 1, -1).astype(np.int64)

    def crossings(self, y: float) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]:
        """Sorted crossing x-coordinates of the line *y* and their directions."""
        hit = ((self.y0 <= y) & (y < self.y1)) | ((self.y1 <= y) & (y < self.y0))
        if not hit.any():
            return np.empty(0, dtype=np.float64), np.empty(0, dtype=np.int64)
        x0, y0 = self.x0[hit], self.y0[hit]
        x1, y1 = self.x1[hit], self.y1[hit]
        xs = x0 + (y - y0) * (x1 - x0) / (y1 - y0)
        order = np.argsort(xs, kind="stable")
        return xs[order], self.direction[hit][order]


def _scan_row(
    edges: _EdgeTable,
    y: float,
    centers: npt.NDArray[np.float64],
    fill_rule: str,
) -> npt.NDArray[np.bool_]:
    xs, dirs = edges.crossings(y)
    if xs.size == 0:
        return np.zeros(centers.shape, dtype=bool)
    # number of crossings at or left of each center
    passed = np.searchsorted(xs, centers, side="right")
    if fill_rule == "even-odd":
        return (passed % 2) == 1
    winding = np.concatenate(([0], np.cumsum(dirs)))
    return winding[passed] != 0


def validate_fill_rule(fill_rule: str) -> None:
    if fill_rule not in FILL_RULES:
        raise ConfigurationError(
            f"Unknown fill rule {fill_rule!r}. Valid options: {', '.join(FILL_RULES)}"
        )


def rasterize_to(
    polygon: Polygon,
    georef: Georeference,
    width: int,
    height: int,
    *,
    fill_rule: FillRule = "even-odd",
    workers: int = 1,
    row_batch: int = DEFAULT_ROW_BATCH,
) -> Grid:
    """Burn *polygon* into a *width* × *height* boolean grid on *georef*.

    Args:
        polygon: Boundary to rasterize; its CRS must equal ``georef.crs``.
        georef: Target georeference.
        width: Number of columns.
        height: Number of rows.
        fill_rule: ``"even-odd"`` or ``"nonzero"``.
        workers: Thread count; ``1`` scans rows on the calling thread.
        row_batch: Rows handed to a worker at a time.

    Returns:
        A boolean :class:`Grid` with every cell present.

    Raises:
        MismatchedGeoreferenceError: If the CRS identifiers differ.
        ConfigurationError: For an unknown fill rule or non-positive
            ``workers`` / ``row_batch``.
    """
    validate_fill_rule(fill_rule)
    if workers < 1 or row_batch < 1:
        raise ConfigurationError(
            f"workers and row_batch must be >= 1, got {workers} and {row_batch}."
        )
    if polygon.crs != georef.crs:
        raise MismatchedGeoreferenceError("polygon", "reference grid", "crs", polygon.crs, georef.crs)

    source = polygon.oriented() if fill_rule == "nonzero" else polygon
    edges = _EdgeTable(source)
    centers = georef.column_centers(width)
    out = np.zeros((height, width), dtype=bool)

    def scan(start: int, stop: int) -> None:
        for row in range(start, stop):
            out[row] = _scan_row(edges, georef.row_center(row), centers, fill_rule)

    batches = [(start, min(start + row_batch, height)) for start in range(0, height, row_batch)]
    if workers == 1 or len(batches) <= 1:
        for start, stop in batches:
            scan(start, stop)
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for future in [pool.submit(scan, start, stop) for start, stop in batches]:
                future.result()

    mask = Grid.from_mask(out, georef)
    logger.debug(
        "Rasterized %r onto %dx%d grid (%s): %d cell(s) inside.",
        polygon, height, width, fill_rule, int(out.sum()),
    )
    return mask


def rasterize(
    polygon: Polygon,
    reference: Grid,
    *,
    fill_rule: FillRule = "even-odd",
    workers: int = 1,
    row_batch: int = DEFAULT_ROW_BATCH,
) -> Grid:
    """Mask grid for *polygon* aligned to *reference*.

    Example::

        mask = rasterize(boundary, nir_band)
        mask.shape == nir_band.shape   # True
    """
    return rasterize_to(
        polygon,
        reference.georef,
        reference.width,
        reference.height,
        fill_rule=fill_rule,
        workers=workers,
        row_batch=row_batch,
    )
