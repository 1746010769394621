"""Suppress band values outside an area of interest."""

from __future__ import annotations

import logging
from typing import Mapping

from vegetation_cover.exceptions import InputValidationError
from vegetation_cover.grid import Grid

logger = logging.getLogger("vegetation_cover.masker")


def apply_mask(grid: Grid, mask: Grid, label: str = "grid") -> Grid:
    """Copy of *grid* with every cell that is ``False`` in *mask* missing.

    Inside cells keep their value and presence.  Masking twice with the
    same mask gives the same grid, and an all-``True`` mask is a no-op.

    Raises:
        InputValidationError: If *mask* is not a boolean grid.
        MismatchedGeoreferenceError: If the grids are not aligned.
    """
    if not mask.is_boolean:
        raise InputValidationError(
            f"Mask must be a boolean grid, got dtype {mask.dtype}."
        )
    grid.check_aligned(mask, label, "mask")
    inside = mask.values & mask.valid
    masked = grid.derive(grid.values, grid.valid & inside)
    logger.debug(
        "Masked %s: %d → %d valid cell(s).", label, grid.valid_count, masked.valid_count
    )
    return masked


def mask_bands(bands: Mapping[str, Grid], mask: Grid) -> dict[str, Grid]:
    """Apply the same mask to several named bands."""
    return {name: apply_mask(band, mask, label=name) for name, band in bands.items()}
