"""
Raster / Vector Adapters
========================
Thin bridges between files on disk and the in-memory data model.

* :func:`read_band` / :func:`write_grid` use :mod:`rasterio`.
* :func:`read_boundary` uses :mod:`geopandas` and dissolves every feature
  into a single :class:`~vegetation_cover.polygon.Polygon`, reprojecting
  it first when a target CRS is given.

Library errors are re-raised as package exceptions so the CLI can report
them uniformly.
"""

from __future__ import annotations

import logging
from pathlib import Path

import geopandas as gpd
import numpy as np
import rasterio
from rasterio.errors import RasterioError
from shapely.ops import unary_union

from vegetation_cover.exceptions import (
    InputValidationError,
    OutputWriteError,
    RasterError,
)
from vegetation_cover.grid import Georeference, Grid
from vegetation_cover.polygon import Polygon
from vegetation_cover.validators import Validators

logger = logging.getLogger("vegetation_cover.io")

RASTER_EXTENSIONS = [".tif", ".tiff", ".img", ".vrt"]
VECTOR_EXTENSIONS = [".geojson", ".json", ".gpkg", ".shp", ".kml"]


def _crs_string(crs: object) -> str:
    to_string = getattr(crs, "to_string", None)
    return to_string() if callable(to_string) else str(crs)


def read_band(path: Path, band_index: int = 1) -> Grid:
    """Load one band as a float64 :class:`Grid`.

    The file's nodata value (if any) marks missing cells, as do NaNs.

    Raises:
        BandIndexError: If *band_index* is out of range.
        RasterError: If rasterio cannot read the file or it has no CRS.
    """
    path = Path(path)
    try:
        with rasterio.open(path) as src:
            Validators.assert_band_index_valid(band_index, src.count)
            if src.crs is None:
                raise RasterError(f"Raster '{path}' has no coordinate reference system.")
            data = src.read(band_index).astype(np.float64)
            georef = Georeference.from_transform(src.transform, _crs_string(src.crs))
            nodata = src.nodatavals[band_index - 1]
    except RasterioError as exc:
        raise RasterError(f"Could not open raster '{path}': {exc}") from exc

    grid = Grid.from_array(data, georef, nodata=nodata)
    logger.debug(
        "Read band %d of %s: %dx%d, %d missing cell(s).",
        band_index, path.name, grid.height, grid.width, grid.missing_count,
    )
    return grid


def write_grid(grid: Grid, path: Path, dtype: str = "float32", nodata: float | None = None) -> Path:
    """Write *grid* as a single-band LZW-compressed GeoTIFF.

    Args:
        grid: Grid to write.
        path: Destination file.
        dtype: Output raster dtype.
        nodata: Sentinel for missing cells; defaults to the grid's own,
                then ``-9999`` for float output.

    Raises:
        OutputWriteError: If the file cannot be written.
    """
    path = Path(path)
    sentinel = nodata if nodata is not None else grid.nodata
    if sentinel is None and np.dtype(dtype).kind == "f":
        sentinel = -9999.0
    array = grid.filled(sentinel).astype(dtype)
    profile = {
        "driver": "GTiff",
        "dtype": dtype,
        "count": 1,
        "height": grid.height,
        "width": grid.width,
        "crs": grid.crs,
        "transform": grid.georef.transform,
        "nodata": sentinel,
        "compress": "lzw",
    }
    try:
        with rasterio.open(path, "w", **profile) as dst:
            dst.write(array, 1)
    except (OSError, RasterioError) as exc:
        raise OutputWriteError(str(path), str(exc)) from exc
    logger.debug("Wrote %s (%s).", path.name, dtype)
    return path


def read_boundary(path: Path, target_crs: str | None = None, layer: str | None = None) -> Polygon:
    """Load a vector file and dissolve its features into one polygon.

    Args:
        path: Any format :func:`geopandas.read_file` supports.
        target_crs: Reproject into this CRS before building the polygon.
        layer: Layer name for multi-layer sources (GeoPackage, FileGDB).

    Raises:
        InputValidationError: If the file is empty, unreadable, or has no CRS.
        InvalidGeometryError: If the dissolved geometry is not one polygon.
    """
    path = Path(path)
    try:
        gdf = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)
    except Exception as exc:
        raise InputValidationError(f"Could not read boundary '{path}': {exc}") from exc

    if gdf.empty:
        raise InputValidationError(f"Boundary file '{path}' contains no features.")
    if gdf.crs is None:
        raise InputValidationError(f"Boundary file '{path}' has no CRS.")
    crs = _crs_string(gdf.crs)
    if target_crs is not None:
        if not gdf.crs.equals(target_crs):
            logger.info("Reprojecting boundary from %s to %s.", crs, target_crs)
            gdf = gdf.to_crs(target_crs)
        crs = target_crs

    dissolved = unary_union(list(gdf.geometry))
    polygon = Polygon.from_shapely(dissolved, crs)
    logger.debug("Read boundary from %s: %r", path.name, polygon)
    return polygon
