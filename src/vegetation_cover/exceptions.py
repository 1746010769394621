"""
AOI Vegetation Cover — Exception Hierarchy
===========================================
Every module in :mod:`vegetation_cover` raises exceptions from this module
so callers can catch them at the right level of granularity.

Hierarchy::

    VegetationCoverError                 ← catch-all base
    ├── InputValidationError             ← bad files, non-boolean masks, etc.
    ├── CRSError                         ← invalid / unknown CRS string
    ├── RasterError                      ← rasterio / numpy raster issues
    │   ├── MismatchedGeoreferenceError  ← grids combined with different grids
    │   └── BandIndexError               ← requested band does not exist
    ├── InvalidGeometryError             ← degenerate polygon ring
    ├── ConfigurationError               ← bad classification thresholds
    ├── SpectralIndexError               ← unsupported index or bad bands
    └── OutputWriteError                 ← cannot write to output path

Usage::

    from vegetation_cover.exceptions import ConfigurationError

    raise ConfigurationError("Thresholds must be strictly increasing")
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class VegetationCoverError(Exception):
    """Base exception for the vegetation cover package.

    Args:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class InputValidationError(VegetationCoverError):
    """Raised when inputs fail pre-processing validation."""


# ---------------------------------------------------------------------------
# CRS
# ---------------------------------------------------------------------------


class CRSError(VegetationCoverError):
    """Raised when a coordinate reference system string cannot be parsed.

    Args:
        crs_string: The raw CRS string that caused the error
                    (e.g. ``"EPSG:99999"``).
    """

    def __init__(self, crs_string: str) -> None:
        super().__init__(
            f"Invalid or unrecognised CRS: '{crs_string}'. "
            "Use an EPSG code (e.g. 'EPSG:4326') or a valid WKT/PROJ string."
        )
        self.crs_string: str = crs_string


# ---------------------------------------------------------------------------
# Raster
# ---------------------------------------------------------------------------


class RasterError(VegetationCoverError):
    """Raised for general raster processing failures (rasterio / numpy)."""


class MismatchedGeoreferenceError(RasterError):
    """Raised when two grids that must line up cell-for-cell do not.

    Args:
        label_a: Name of the first grid (e.g. ``"nir"``).
        label_b: Name of the second grid (e.g. ``"red"``).
        attribute: Which property differs (``"shape"``, ``"origin"``,
                   ``"pixel size"`` or ``"crs"``).
        value_a: The first grid's value for *attribute*.
        value_b: The second grid's value for *attribute*.

    Example::

        raise MismatchedGeoreferenceError("nir", "red", "shape", (4, 4), (8, 8))
    """

    def __init__(
        self,
        label_a: str,
        label_b: str,
        attribute: str,
        value_a: object,
        value_b: object,
    ) -> None:
        super().__init__(
            f"Georeference mismatch between '{label_a}' and '{label_b}': "
            f"{attribute} {value_a!r} != {value_b!r}"
        )
        self.label_a: str = label_a
        self.label_b: str = label_b
        self.attribute: str = attribute
        self.value_a: object = value_a
        self.value_b: object = value_b


class BandIndexError(RasterError):
    """Raised when a requested raster band index does not exist.

    Args:
        band_index: The 1-based band number that was requested.
        total_bands: Total number of bands in the raster file.
    """

    def __init__(self, band_index: int, total_bands: int) -> None:
        super().__init__(
            f"Band {band_index} does not exist. "
            f"This raster has {total_bands} band(s) (1-indexed)."
        )
        self.band_index: int = band_index
        self.total_bands: int = total_bands


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class InvalidGeometryError(VegetationCoverError):
    """Raised when a polygon cannot be rasterized.

    Args:
        reason: Short explanation, e.g. which ring is degenerate.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid polygon geometry: {reason}")
        self.reason: str = reason


# ---------------------------------------------------------------------------
# Classification configuration
# ---------------------------------------------------------------------------


class ConfigurationError(VegetationCoverError):
    """Raised when a classification scheme or tool configuration is invalid.

    Always raised before any pixel processing begins.
    """


# ---------------------------------------------------------------------------
# Spectral index
# ---------------------------------------------------------------------------


class SpectralIndexError(VegetationCoverError):
    """Raised when a spectral index cannot be calculated.

    Args:
        index_name: The name of the index that failed (e.g. ``"NDVI"``).
        reason: Short explanation of why calculation failed.

    Example::

        raise SpectralIndexError("NDVI", "NIR band not provided")
    """

    def __init__(self, index_name: str, reason: str) -> None:
        super().__init__(f"Cannot calculate {index_name}: {reason}")
        self.index_name: str = index_name
        self.reason: str = reason


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class OutputWriteError(VegetationCoverError):
    """Raised when the tool cannot write its output to disk.

    Args:
        output_path: String representation of the path that failed.
        reason: Underlying OS or library error message.
    """

    def __init__(self, output_path: str, reason: str) -> None:
        super().__init__(
            f"Failed to write output to '{output_path}': {reason}"
        )
        self.output_path: str = output_path
        self.reason: str = reason
