"""
AOI Vegetation Cover — Input Validators
========================================
Static precondition checks shared by the pipeline, the file adapters and
the classification scheme.

All methods raise an appropriate exception from
:mod:`vegetation_cover.exceptions` rather than returning booleans, so
``validate_inputs`` implementations stay short::

    Validators.assert_file_exists(self.nir_path)
    Validators.assert_supported_extension(self.nir_path, [".tif"])
    Validators.assert_crs_valid("EPSG:32633")
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Sequence

# pyproj is imported lazily inside assert_crs_valid so the core grid
# modules do not pay its import cost.

from vegetation_cover.exceptions import (
    BandIndexError,
    ConfigurationError,
    CRSError,
    InputValidationError,
    OutputWriteError,
)


class Validators:
    """Collection of static precondition checks.

    All methods are ``@staticmethod``; this class is never instantiated.
    """

    # ------------------------------------------------------------------
    # File-system checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_file_exists(path: Path) -> None:
        """Assert that *path* points to an existing regular file.

        Args:
            path: Path object to check.

        Raises:
            InputValidationError: If *path* does not exist or is a
                directory rather than a file.
        """
        path = Path(path)
        if not path.exists():
            raise InputValidationError(
                f"Input file not found: '{path}'. "
                "Check that the path is correct and the file exists."
            )
        if path.is_dir():
            raise InputValidationError(
                f"Expected a file but got a directory: '{path}'."
            )

    @staticmethod
    def assert_output_dir_writable(output_dir: Path) -> None:
        """Create *output_dir* (and parents) if needed.

        Args:
            output_dir: Directory the tool will write into.

        Raises:
            OutputWriteError: If the directory cannot be created.
        """
        output_dir = Path(output_dir)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputWriteError(str(output_dir), str(exc)) from exc

    @staticmethod
    def assert_supported_extension(path: Path, extensions: Sequence[str]) -> None:
        """Assert that *path* has one of the allowed file extensions.

        Args:
            path: File path to check.
            extensions: Allowed extensions, each starting with a dot.

        Raises:
            InputValidationError: If the file extension is not in
                *extensions*.
        """
        path = Path(path)
        suffix = path.suffix.lower()
        allowed = [ext.lower() for ext in extensions]
        if suffix not in allowed:
            raise InputValidationError(
                f"Unsupported file extension '{suffix}' for '{path.name}'. "
                f"Accepted extensions: {', '.join(allowed)}"
            )

    # ------------------------------------------------------------------
    # CRS checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_crs_valid(crs_string: str) -> None:
        """Assert that *crs_string* can be parsed by :mod:`pyproj`.

        Args:
            crs_string: The CRS identifier to validate (e.g. ``"EPSG:4326"``).

        Raises:
            CRSError: If *crs_string* is not recognised by pyproj.
        """
        try:
            from pyproj import CRS  # noqa: PLC0415

            CRS.from_user_input(crs_string)
        except Exception as exc:
            raise CRSError(crs_string) from exc

    # ------------------------------------------------------------------
    # Raster checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_band_index_valid(band_index: int, total_bands: int) -> None:
        """Assert that *band_index* is within ``1..total_bands``.

        Raises:
            BandIndexError: If *band_index* is out of range.
        """
        if band_index < 1 or band_index > total_bands:
            raise BandIndexError(band_index, total_bands)

    # ------------------------------------------------------------------
    # Configuration checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_strictly_increasing(values: Sequence[float], label: str = "values") -> None:
        """Assert that *values* is non-empty, finite and strictly increasing.

        Args:
            values: Sequence of cut points.
            label: Name used in the error message.

        Raises:
            ConfigurationError: On an empty sequence, a NaN/inf entry, or
                any pair ``values[i] >= values[i + 1]``.

        Example::

            Validators.assert_strictly_increasing([0.2, 0.45, 0.7], "thresholds")
        """
        if len(values) == 0:
            raise ConfigurationError(f"{label} must not be empty.")
        for value in values:
            if not math.isfinite(value):
                raise ConfigurationError(f"{label} must be finite, got {value!r}.")
        for low, high in zip(values, values[1:]):
            if not low < high:
                raise ConfigurationError(
                    f"{label} must be strictly increasing: {low!r} is followed by {high!r}."
                )
