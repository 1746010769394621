"""
Tests for the AOI Vegetation Cover Pipeline
============================================
Band rasters are synthetic 4×4 GeoTIFFs (10 m pixels, UTM 33N) written with
rasterio, and the boundary is a GeoPackage written with geopandas, so no
real imagery is needed.

Test classes:
    TestAnalyseAOI                      In-memory pipeline.
    TestVegetationCoverAnalysisHappyPath End-to-end output files.
    TestVegetationCoverAnalysisValidation Error conditions.
"""

from __future__ import annotations

import json
from pathlib import Path

import geopandas as gpd
import numpy as np
import numpy.typing as npt
import pandas as pd
import pytest
import rasterio
from rasterio.crs import CRS
from rasterio.transform import from_origin
from shapely.geometry import box

from vegetation_cover.classifier import ClassificationScheme
from vegetation_cover.exceptions import (
    BandIndexError,
    ConfigurationError,
    InputValidationError,
    MismatchedGeoreferenceError,
    SpectralIndexError,
)
from vegetation_cover.grid import Georeference, Grid
from vegetation_cover.pipeline import (
    VegetationCoverAnalysis,
    VegetationCoverConfig,
    analyse_aoi,
)
from vegetation_cover.polygon import Polygon

ORIGIN_X, ORIGIN_Y, PIXEL = 500000.0, 4100000.0, 10.0
EPSG = "EPSG:32633"

# The top-left 2×2 block holds the four-cell example; everything else is
# outside the boundary.
NIR = [
    [0.8, 0.6, 0.3, 0.3],
    [0.5, 0.4, 0.3, 0.3],
    [0.3, 0.3, 0.3, 0.3],
    [0.3, 0.3, 0.3, 0.3],
]
RED = [
    [0.1, 0.2, 0.1, 0.1],
    [0.1, 0.1, 0.1, 0.1],
    [0.1, 0.1, 0.1, 0.1],
    [0.1, 0.1, 0.1, 0.1],
]
AOI = box(ORIGIN_X, ORIGIN_Y - 2 * PIXEL, ORIGIN_X + 2 * PIXEL, ORIGIN_Y)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_band(tmp_path: Path, name: str, values: npt.ArrayLike, nodata: float | None = None) -> Path:
    """Write a single-band float32 GeoTIFF on the shared 10 m grid."""
    arr = np.array(values, dtype="float32")
    fpath = tmp_path / f"{name}.tif"
    profile = {
        "driver": "GTiff",
        "dtype": "float32",
        "count": 1,
        "height": arr.shape[0],
        "width": arr.shape[1],
        "crs": CRS.from_epsg(32633),
        "transform": from_origin(ORIGIN_X, ORIGIN_Y, PIXEL, PIXEL),
        "nodata": nodata,
    }
    with rasterio.open(fpath, "w", **profile) as dst:
        dst.write(arr, 1)
    return fpath


def _make_boundary(tmp_path: Path, crs: str = EPSG) -> Path:
    """Write the 2×2 block boundary as a GeoPackage, optionally reprojected."""
    gdf = gpd.GeoDataFrame({"name": ["aoi"]}, geometry=[AOI], crs=EPSG)
    if crs != EPSG:
        gdf = gdf.to_crs(crs)
    fpath = tmp_path / "aoi.gpkg"
    gdf.to_file(fpath, driver="GPKG")
    return fpath


@pytest.fixture()
def inputs(tmp_path: Path) -> dict[str, Path]:
    return {
        "nir_path": _make_band(tmp_path, "B08", NIR),
        "red_path": _make_band(tmp_path, "B04", RED),
        "boundary_path": _make_boundary(tmp_path),
    }


def _grid(values: npt.ArrayLike) -> Grid:
    georef = Georeference(ORIGIN_X, ORIGIN_Y, PIXEL, -PIXEL, EPSG)
    return Grid.from_array(values, georef)


# ---------------------------------------------------------------------------
# In-memory pipeline
# ---------------------------------------------------------------------------

class TestAnalyseAOI:
    def test_breakdown_inside_boundary(self) -> None:
        result = analyse_aoi(_grid(NIR), _grid(RED), Polygon.from_shapely(AOI, EPSG))
        assert int(result.mask.values.sum()) == 4
        assert result.summary["Dense"].count == 1
        assert result.summary["Moderate"].count == 3
        assert result.summary.total_valid == 4
        assert result.summary.nodata_count == 12
        assert result.classified.label_at(3, 3) == "No data"

    def test_inputs_not_modified(self) -> None:
        nir, red = _grid(NIR), _grid(RED)
        analyse_aoi(nir, red, Polygon.from_shapely(AOI, EPSG))
        assert nir.valid_count == 16
        assert red.valid_count == 16

    def test_custom_scheme(self) -> None:
        scheme = ClassificationScheme.from_mapping({0.65: "Green"}, below_label="Other")
        result = analyse_aoi(_grid(NIR), _grid(RED), Polygon.from_shapely(AOI, EPSG), scheme)
        assert result.summary.as_mapping() == {"Other": (2, 0.5), "Green": (2, 0.5)}

    def test_band_mismatch_detected_first(self) -> None:
        red = Grid.from_array(RED, Georeference(ORIGIN_X, ORIGIN_Y, 20.0, -20.0, EPSG))
        with pytest.raises(MismatchedGeoreferenceError, match="pixel size"):
            analyse_aoi(_grid(NIR), red, Polygon.from_shapely(AOI, EPSG))

    def test_boundary_crs_mismatch(self) -> None:
        with pytest.raises(MismatchedGeoreferenceError, match="crs"):
            analyse_aoi(_grid(NIR), _grid(RED), Polygon.from_shapely(AOI, "EPSG:32634"))

    def test_unknown_fill_rule(self) -> None:
        with pytest.raises(ConfigurationError):
            analyse_aoi(_grid(NIR), _grid(RED), Polygon.from_shapely(AOI, EPSG), fill_rule="odd")  # type: ignore[arg-type]

    def test_other_index_selected_by_name(self) -> None:
        result = analyse_aoi(_grid(NIR), _grid(RED), Polygon.from_shapely(AOI, EPSG), index="savi")
        assert result.index_name == "SAVI"
        assert result.index.sample(0, 0) == pytest.approx(0.75)
        assert result.summary.total_valid == 4

    def test_index_with_extra_band(self) -> None:
        green = _grid(np.full((4, 4), 0.4))
        result = analyse_aoi(
            _grid(NIR), _grid(RED), Polygon.from_shapely(AOI, EPSG),
            index="NDWI", extra_bands={"green": green},
        )
        assert result.index.sample(0, 0) == pytest.approx(-1 / 3)
        assert result.summary["No vegetation"].count == 4

    def test_index_band_not_supplied(self) -> None:
        with pytest.raises(SpectralIndexError, match="green"):
            analyse_aoi(_grid(NIR), _grid(RED), Polygon.from_shapely(AOI, EPSG), index="NDWI")

    def test_extra_band_alignment_checked(self) -> None:
        blue = Grid.from_array(np.zeros((4, 4)), Georeference(0.0, 0.0, PIXEL, -PIXEL, EPSG))
        with pytest.raises(MismatchedGeoreferenceError, match="blue"):
            analyse_aoi(
                _grid(NIR), _grid(RED), Polygon.from_shapely(AOI, EPSG),
                index="EVI", extra_bands={"blue": blue},
            )


# ---------------------------------------------------------------------------
# File-driven tool
# ---------------------------------------------------------------------------

class TestVegetationCoverAnalysisHappyPath:
    def test_outputs_written(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        out = tmp_path / "out"
        tool = VegetationCoverAnalysis(output_dir=out, **inputs)
        tool.run()
        names = sorted(p.name for p in tool.written_files)
        assert names == ["NDVI.tif", "classes.tif", "summary.json"]
        assert all(p.exists() for p in tool.written_files)

    def test_summary_json(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        out = tmp_path / "out"
        VegetationCoverAnalysis(output_dir=out, **inputs).run()
        summary = json.loads((out / "summary.json").read_text(encoding="utf-8"))
        assert summary["crs"] == EPSG
        assert summary["total_valid"] == 4
        fractions = {c["label"]: c["fraction"] for c in summary["categories"]}
        assert fractions["Dense"] == pytest.approx(0.25)
        assert fractions["Moderate"] == pytest.approx(0.75)
        assert summary["scheme"]["thresholds"] == [0.2, 0.45, 0.7]

    def test_output_rasters(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        out = tmp_path / "out"
        VegetationCoverAnalysis(output_dir=out, **inputs).run()
        with rasterio.open(out / "NDVI.tif") as src:
            ndvi_arr = src.read(1)
            assert src.nodata == -9999.0
            assert src.crs.to_string() == EPSG
        assert ndvi_arr[0, 0] == pytest.approx(0.7778, abs=1e-4)
        assert ndvi_arr[3, 3] == -9999.0
        with rasterio.open(out / "classes.tif") as src:
            codes = src.read(1)
        assert codes.tolist()[0][:2] == [3, 2]
        assert codes[3, 3] == -1

    def test_csv_summary_and_mask(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        out = tmp_path / "out"
        config = VegetationCoverConfig(output_format="csv", write_mask=True)
        VegetationCoverAnalysis(output_dir=out, config=config, **inputs).run()
        df = pd.read_csv(out / "summary.csv")
        assert df["label"].tolist() == ["No vegetation", "Sparse", "Moderate", "Dense"]
        assert df["count"].tolist() == [0, 0, 3, 1]
        with rasterio.open(out / "mask.tif") as src:
            assert int(src.read(1).sum()) == 4

    def test_file_nodata_excluded(self, tmp_path: Path) -> None:
        nir = [row[:] for row in NIR]
        nir[0][0] = -9999.0
        tool = VegetationCoverAnalysis(
            nir_path=_make_band(tmp_path, "B08", nir, nodata=-9999.0),
            red_path=_make_band(tmp_path, "B04", RED),
            boundary_path=_make_boundary(tmp_path),
            output_dir=tmp_path / "out",
        )
        tool.run()
        assert tool.result is not None
        assert tool.result.summary.total_valid == 3
        assert tool.result.summary["Dense"].count == 0

    def test_index_from_config_names_output(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        out = tmp_path / "out"
        config = VegetationCoverConfig(index="NDWI")
        tool = VegetationCoverAnalysis(
            output_dir=out, config=config, green_path=_make_band(tmp_path, "B03", np.full((4, 4), 0.4)), **inputs
        )
        tool.run()
        assert (out / "NDWI.tif").exists()
        assert not (out / "NDVI.tif").exists()
        summary = json.loads((out / "summary.json").read_text(encoding="utf-8"))
        assert summary["index"] == "NDWI"
        assert "green" in summary

    def test_boundary_reprojected_on_request(self, tmp_path: Path) -> None:
        config = VegetationCoverConfig(reproject_boundary=True)
        tool = VegetationCoverAnalysis(
            nir_path=_make_band(tmp_path, "B08", NIR),
            red_path=_make_band(tmp_path, "B04", RED),
            boundary_path=_make_boundary(tmp_path, crs="EPSG:4326"),
            output_dir=tmp_path / "out",
            config=config,
        )
        tool.run()
        assert tool.result is not None
        assert int(tool.result.mask.values.sum()) == 4


class TestVegetationCoverAnalysisValidation:
    def test_missing_band_file(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        inputs["red_path"] = tmp_path / "missing.tif"
        with pytest.raises(InputValidationError, match="not found"):
            VegetationCoverAnalysis(output_dir=tmp_path / "out", **inputs).run()

    def test_unsupported_boundary_extension(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        bad = tmp_path / "aoi.txt"
        bad.write_text("not a boundary", encoding="utf-8")
        inputs["boundary_path"] = bad
        with pytest.raises(InputValidationError, match="Unsupported"):
            VegetationCoverAnalysis(output_dir=tmp_path / "out", **inputs).run()

    def test_band_index_out_of_range(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        config = VegetationCoverConfig(nir_band=2)
        with pytest.raises(BandIndexError):
            VegetationCoverAnalysis(output_dir=tmp_path / "out", config=config, **inputs).run()

    def test_invalid_config_fails_before_processing(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        config = VegetationCoverConfig(workers=0)
        tool = VegetationCoverAnalysis(output_dir=tmp_path / "out", config=config, **inputs)
        with pytest.raises(ConfigurationError):
            tool.run()
        assert tool.result is None

    def test_index_band_file_missing(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        config = VegetationCoverConfig(index="EVI")
        with pytest.raises(SpectralIndexError, match="blue"):
            VegetationCoverAnalysis(output_dir=tmp_path / "out", config=config, **inputs).run()

    def test_unknown_index(self, tmp_path: Path, inputs: dict[str, Path]) -> None:
        config = VegetationCoverConfig(index="XYZ")
        with pytest.raises(SpectralIndexError, match="unknown index"):
            VegetationCoverAnalysis(output_dir=tmp_path / "out", config=config, **inputs).run()

    def test_boundary_in_other_crs_without_reprojection(self, tmp_path: Path) -> None:
        tool = VegetationCoverAnalysis(
            nir_path=_make_band(tmp_path, "B08", NIR),
            red_path=_make_band(tmp_path, "B04", RED),
            boundary_path=_make_boundary(tmp_path, crs="EPSG:4326"),
            output_dir=tmp_path / "out",
        )
        with pytest.raises(MismatchedGeoreferenceError, match="crs"):
            tool.run()
