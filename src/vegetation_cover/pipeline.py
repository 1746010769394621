"""
AOI Vegetation Cover — Pipeline
================================
Ties the core modules together.

Processing order:

  1.  Alignment check      (NIR and Red must share georeference)
  2.  Rasterize boundary   (polygon → boolean mask on the band grid)
  3.  Mask bands           (cells outside the AOI become missing)
  4.  Vegetation index     (NDVI by default, missing data propagated)
  5.  Classify             (thresholds → density categories)
  6.  Aggregate            (counts + fractions of valid cells)

:func:`analyse_aoi` runs the steps on in-memory grids.
:class:`VegetationCoverAnalysis` wraps it as a file-driven
:class:`~vegetation_cover.base_tool.GeoTool`: band GeoTIFFs and a vector
boundary in; index/class GeoTIFFs and a JSON or CSV summary out.

Usage::

    from pathlib import Path
    from vegetation_cover.pipeline import VegetationCoverAnalysis

    tool = VegetationCoverAnalysis(
        nir_path=Path("data/B08.tif"),
        red_path=Path("data/B04.tif"),
        boundary_path=Path("data/aoi.geojson"),
        output_dir=Path("output"),
    )
    tool.run()
    print(tool.result.summary)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Mapping

import rasterio
from rasterio.errors import RasterioError

from vegetation_cover import io
from vegetation_cover.aggregator import AggregateResult, summarize
from vegetation_cover.band_algebra import get_strategy
from vegetation_cover.base_tool import GeoTool
from vegetation_cover.classifier import (
    DEFAULT_SCHEME,
    NODATA_CODE,
    ClassificationScheme,
    ClassifiedGrid,
    classify,
)
from vegetation_cover.exceptions import (
    ConfigurationError,
    OutputWriteError,
    RasterError,
    SpectralIndexError,
)
from vegetation_cover.grid import Grid
from vegetation_cover.masker import mask_bands
from vegetation_cover.polygon import Polygon
from vegetation_cover.rasterizer import FillRule, rasterize, validate_fill_rule
from vegetation_cover.validators import Validators

logger = logging.getLogger("vegetation_cover.pipeline")

OUTPUT_FORMATS = ("json", "csv")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class VegetationCoverConfig:
    """Configuration for :func:`analyse_aoi` and :class:`VegetationCoverAnalysis`.

    Attributes:
        scheme: Density classes applied to the index grid.
        fill_rule: ``"even-odd"`` or ``"nonzero"`` for the boundary mask.
        output_format: Summary file format, ``"json"`` or ``"csv"``.
        write_mask: Also write the rasterized boundary as ``mask.tif``.
        workers: Threads used to rasterize the boundary.
        nir_band: 1-based band index in the NIR file.
        red_band: 1-based band index in the Red file.
        reproject_boundary: Reproject the boundary into the band CRS
            instead of requiring an exact CRS match.
        index: Spectral index to classify (``NDVI``, ``NDWI``, ``SAVI``,
            ``EVI``).  NDWI needs a green band, EVI a blue band.
    """

    scheme: ClassificationScheme = DEFAULT_SCHEME
    index: str = "NDVI"
    fill_rule: FillRule = "even-odd"
    output_format: Literal["json", "csv"] = "json"
    write_mask: bool = False
    workers: int = 1
    nir_band: int = 1
    red_band: int = 1
    reproject_boundary: bool = False

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for any out-of-range setting.

        An unknown index name raises :class:`SpectralIndexError`.
        """
        validate_fill_rule(self.fill_rule)
        get_strategy(self.index)
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(
                f"Unknown output format {self.output_format!r}. "
                f"Valid options: {', '.join(OUTPUT_FORMATS)}"
            )
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}.")


@dataclass(frozen=True)
class AOIVegetationResult:
    """Every intermediate and final product of one pipeline run."""

    mask: Grid
    masked_nir: Grid
    masked_red: Grid
    index: Grid
    classified: ClassifiedGrid
    summary: AggregateResult = field(repr=False)
    index_name: str = "NDVI"

    def __str__(self) -> str:
        return str(self.summary)


# ---------------------------------------------------------------------------
# In-memory pipeline
# ---------------------------------------------------------------------------


def analyse_aoi(
    nir: Grid,
    red: Grid,
    boundary: Polygon,
    scheme: ClassificationScheme = DEFAULT_SCHEME,
    *,
    fill_rule: FillRule = "even-odd",
    workers: int = 1,
    index: str = "NDVI",
    extra_bands: Mapping[str, Grid] | None = None,
) -> AOIVegetationResult:
    """Vegetation density breakdown of the area inside *boundary*.

    Configuration and alignment are checked before any cell is processed.

    Args:
        nir: Near-infrared band.
        red: Red band.
        boundary: Area of interest, in the bands' CRS.
        scheme: Classes applied to the index grid.
        fill_rule: Polygon fill rule for the boundary mask.
        workers: Threads used to rasterize the boundary.
        index: Name of the spectral index to classify.
        extra_bands: Further bands keyed by name (``"green"``, ``"blue"``)
            for indices that need them.

    Raises:
        ConfigurationError: For an unknown fill rule or bad worker count.
        SpectralIndexError: For an unknown index or a band it needs that
            was not supplied.
        MismatchedGeoreferenceError: If the bands, or the boundary CRS, do
            not match.
        InvalidGeometryError: Propagated from polygon construction.
    """
    validate_fill_rule(fill_rule)
    strategy = get_strategy(index)
    bands = {"nir": nir, "red": red, **(extra_bands or {})}
    missing = [b for b in strategy.required_bands if b not in bands]
    if missing:
        raise SpectralIndexError(
            strategy.name, f"Required band(s) not provided: {', '.join(missing)}"
        )
    for name, band in bands.items():
        if name != "nir":
            nir.check_aligned(band, "nir", name)

    mask = rasterize(boundary, nir, fill_rule=fill_rule, workers=workers)
    masked = mask_bands(bands, mask)
    index_grid = strategy.compute(masked)
    classified = classify(index_grid, scheme)
    summary = summarize(classified)

    logger.info(
        "AOI covers %d cell(s); %d valid %s cell(s) classified.",
        mask.values.sum(), summary.total_valid, strategy.name,
    )
    return AOIVegetationResult(
        mask=mask,
        masked_nir=masked["nir"],
        masked_red=masked["red"],
        index=index_grid,
        classified=classified,
        summary=summary,
        index_name=strategy.name,
    )


# ---------------------------------------------------------------------------
# File-driven tool
# ---------------------------------------------------------------------------


class VegetationCoverAnalysis(GeoTool):
    """Run :func:`analyse_aoi` on files and write its products.

    Outputs in ``output_dir``:

    * ``<INDEX>.tif``  float32 index values (``NDVI.tif`` by default), nodata -9999
    * ``classes.tif``  int16 category codes, nodata -1
    * ``mask.tif``     uint8 boundary mask (``write_mask=True`` only)
    * ``summary.json`` or ``summary.csv``

    Args:
        nir_path: Near-infrared band raster.
        red_path: Red band raster.
        boundary_path: Vector file holding the area of interest.
        output_dir: Directory for the outputs; created if missing.
        config: A :class:`VegetationCoverConfig`.
        green_path: Green band raster, needed for NDWI.
        blue_path: Blue band raster, needed for EVI.
        verbose: Enable DEBUG-level logging.
    """

    RASTER_EXTENSIONS = io.RASTER_EXTENSIONS
    VECTOR_EXTENSIONS = io.VECTOR_EXTENSIONS

    def __init__(
        self,
        nir_path: Path,
        red_path: Path,
        boundary_path: Path,
        output_dir: Path,
        config: VegetationCoverConfig | None = None,
        *,
        green_path: Path | None = None,
        blue_path: Path | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(Path(nir_path), Path(output_dir), verbose=verbose)
        self.nir_path: Path = Path(nir_path)
        self.red_path: Path = Path(red_path)
        self.boundary_path: Path = Path(boundary_path)
        self.output_dir: Path = Path(output_dir)
        self.extra_paths: dict[str, Path] = {
            name: Path(p) for name, p in (("green", green_path), ("blue", blue_path)) if p is not None
        }
        self.config = config or VegetationCoverConfig()
        self._result: AOIVegetationResult | None = None
        self._written: list[Path] = []

    # ------------------------------------------------------------------
    # GeoTool abstract method implementations
    # ------------------------------------------------------------------

    def validate_inputs(self) -> None:
        """Check files, extensions, configuration, band indices and CRS.

        Raises:
            InputValidationError: Missing file or unsupported extension.
            ConfigurationError: Invalid configuration.
            SpectralIndexError: Unknown index, or a band it needs has no file.
            BandIndexError: Requested band does not exist.
            RasterError / CRSError: Unreadable raster or unusable CRS.
            OutputWriteError: Output directory cannot be created.
        """
        self.config.validate()
        strategy = get_strategy(self.config.index)
        missing = [b for b in strategy.required_bands if b not in ("nir", "red", *self.extra_paths)]
        if missing:
            raise SpectralIndexError(
                strategy.name, f"Required band file(s) not provided: {', '.join(missing)}"
            )
        for path in (self.nir_path, self.red_path, *self.extra_paths.values()):
            Validators.assert_file_exists(path)
            Validators.assert_supported_extension(path, self.RASTER_EXTENSIONS)
        Validators.assert_file_exists(self.boundary_path)
        Validators.assert_supported_extension(self.boundary_path, self.VECTOR_EXTENSIONS)
        Validators.assert_output_dir_writable(self.output_dir)

        band_files = [(self.nir_path, self.config.nir_band), (self.red_path, self.config.red_band)]
        band_files += [(path, 1) for path in self.extra_paths.values()]
        for path, band in band_files:
            try:
                with rasterio.open(path) as src:
                    Validators.assert_band_index_valid(band, src.count)
                    if src.crs is None:
                        raise RasterError(f"Raster '{path}' has no coordinate reference system.")
                    Validators.assert_crs_valid(src.crs.to_string())
            except RasterioError as exc:
                raise RasterError(f"Could not open raster '{path}': {exc}") from exc

        logger.debug("Inputs validated; scheme: %s", self.config.scheme)

    def process(self) -> None:
        """Read inputs, run the pipeline and write every output file."""
        nir = io.read_band(self.nir_path, self.config.nir_band)
        red = io.read_band(self.red_path, self.config.red_band)
        extra = {name: io.read_band(path) for name, path in self.extra_paths.items()}
        target_crs = nir.crs if self.config.reproject_boundary else None
        boundary = io.read_boundary(self.boundary_path, target_crs=target_crs)

        result = analyse_aoi(
            nir,
            red,
            boundary,
            self.config.scheme,
            fill_rule=self.config.fill_rule,
            workers=self.config.workers,
            index=self.config.index,
            extra_bands=extra,
        )
        self._result = result

        written = [
            io.write_grid(
                result.index, self.output_dir / f"{result.index_name}.tif",
                dtype="float32", nodata=-9999.0,
            ),
            io.write_grid(
                result.classified.codes, self.output_dir / "classes.tif",
                dtype="int16", nodata=NODATA_CODE,
            ),
        ]
        if self.config.write_mask:
            written.append(io.write_grid(result.mask, self.output_dir / "mask.tif", dtype="uint8"))

        try:
            if self.config.output_format == "csv":
                written.append(self._write_csv(result.summary))
            else:
                written.append(self._write_json(result.summary, nir))
        except OSError as exc:
            raise OutputWriteError(str(self.output_dir), str(exc)) from exc

        self._written = written
        for line in str(result.summary).splitlines():
            logger.info("  %s", line)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _write_json(self, summary: AggregateResult, reference: Grid) -> Path:
        path = self.output_dir / "summary.json"
        scheme = self.config.scheme
        output = {
            "nir": str(self.nir_path),
            "red": str(self.red_path),
            **{name: str(path) for name, path in self.extra_paths.items()},
            "boundary": str(self.boundary_path),
            "index": get_strategy(self.config.index).name,
            "crs": reference.crs,
            "width": reference.width,
            "height": reference.height,
            "scheme": {
                "thresholds": list(scheme.thresholds),
                "labels": list(scheme.labels),
                "below_label": scheme.below_label,
            },
            **summary.to_dict(),
        }
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(output, fh, indent=2)
        return path

    def _write_csv(self, summary: AggregateResult) -> Path:
        path = self.output_dir / "summary.csv"
        summary.to_dataframe().to_csv(path, index=False)
        return path

    @property
    def result(self) -> AOIVegetationResult | None:
        """Result of the last run, or ``None``."""
        return self._result

    @property
    def written_files(self) -> list[Path]:
        """Files written by the last run."""
        return list(self._written)
