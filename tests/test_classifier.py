"""
Tests for the threshold classifier
===================================
Test classes:
    TestSchemeValidation    Configuration errors raised at construction.
    TestSchemeParsing       from_mapping / parse helpers.
    TestClassify            Interval boundaries and nodata handling.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from vegetation_cover.band_algebra import ndvi
from vegetation_cover.classifier import (
    DEFAULT_SCHEME,
    NODATA_CODE,
    ClassificationScheme,
    classify,
)
from vegetation_cover.exceptions import ConfigurationError
from vegetation_cover.grid import Georeference, Grid

GEOREF = Georeference(0.0, 2.0, 1.0, -1.0, "EPSG:32633")


class TestSchemeValidation:
    @pytest.mark.parametrize(
        "thresholds",
        [
            (0.2, 0.2, 0.7),
            (0.7, 0.45, 0.2),
            (0.2, math.nan, 0.7),
            (),
        ],
    )
    def test_bad_thresholds_rejected(self, thresholds: tuple[float, ...]) -> None:
        labels = tuple(f"c{i}" for i in range(len(thresholds)))
        with pytest.raises(ConfigurationError):
            ClassificationScheme(thresholds, labels, below_label="none")

    def test_label_count_mismatch(self) -> None:
        with pytest.raises(ConfigurationError, match="one label per threshold"):
            ClassificationScheme((0.2, 0.5), ("Sparse",), below_label="none")

    def test_duplicate_labels(self) -> None:
        with pytest.raises(ConfigurationError, match="unique"):
            ClassificationScheme((0.2, 0.5), ("Sparse", "Sparse"), below_label="none")

    def test_nodata_label_clash(self) -> None:
        with pytest.raises(ConfigurationError, match="clashes"):
            ClassificationScheme((0.2,), ("No data",), below_label="none")

    def test_mapping_order_is_not_corrected(self) -> None:
        with pytest.raises(ConfigurationError, match="strictly increasing"):
            ClassificationScheme.from_mapping({0.7: "Dense", 0.2: "Sparse"}, below_label="none")


class TestSchemeParsing:
    def test_default_scheme(self) -> None:
        assert DEFAULT_SCHEME.thresholds == (0.2, 0.45, 0.7)
        assert DEFAULT_SCHEME.category_labels == ("No vegetation", "Sparse", "Moderate", "Dense")

    def test_parse(self) -> None:
        scheme = ClassificationScheme.parse("0.2:Sparse, 0.45:Moderate,0.7:Dense", below_label="No vegetation")
        assert scheme == DEFAULT_SCHEME

    @pytest.mark.parametrize("text", ["0.2", "abc:Sparse", "0.2:", ""])
    def test_parse_errors(self, text: str) -> None:
        with pytest.raises(ConfigurationError):
            ClassificationScheme.parse(text, below_label="none")

    def test_code_and_label_lookup(self) -> None:
        assert DEFAULT_SCHEME.code_of("Moderate") == 2
        assert DEFAULT_SCHEME.code_of("No data") == NODATA_CODE
        assert DEFAULT_SCHEME.label_of(0) == "No vegetation"
        with pytest.raises(KeyError):
            DEFAULT_SCHEME.code_of("Jungle")


class TestClassify:
    def test_known_index_grid(self) -> None:
        nir = Grid.from_array([[0.8, 0.6], [0.5, 0.4]], GEOREF)
        red = Grid.from_array([[0.1, 0.2], [0.1, 0.1]], GEOREF)
        classified = classify(ndvi(nir, red), DEFAULT_SCHEME)
        # 0.7778, 0.5, 0.6667, 0.6 against cut points 0.2 / 0.45 / 0.7
        assert classified.labels().tolist() == [["Dense", "Moderate"], ["Moderate", "Moderate"]]

    def test_threshold_value_belongs_to_upper_interval(self) -> None:
        grid = Grid.from_array([[0.2, 0.45, 0.7, 0.19999]], GEOREF)
        classified = classify(grid, DEFAULT_SCHEME)
        assert [classified.label_at(0, c) for c in range(4)] == [
            "Sparse", "Moderate", "Dense", "No vegetation",
        ]

    def test_unbounded_ends(self) -> None:
        grid = Grid.from_array([[-5.0, 5.0]], GEOREF)
        classified = classify(grid, DEFAULT_SCHEME)
        assert classified.labels().tolist() == [["No vegetation", "Dense"]]

    def test_missing_cells_map_to_nodata_label(self) -> None:
        grid = Grid.from_array([[-9999.0, 0.5]], GEOREF, nodata=-9999.0)
        classified = classify(grid, DEFAULT_SCHEME)
        assert classified.label_at(0, 0) == "No data"
        assert classified.codes.is_missing(0, 0)
        assert classified.codes.filled()[0, 0] == NODATA_CODE

    def test_output_shares_georeference(self) -> None:
        grid = Grid.from_array(np.zeros((2, 3)), GEOREF)
        classified = classify(grid, DEFAULT_SCHEME)
        grid.check_aligned(classified.codes)

    def test_partition_of_valid_cells(self) -> None:
        rng = np.random.default_rng(3)
        values = rng.uniform(-1.0, 1.0, size=(30, 30))
        values[rng.uniform(size=values.shape) < 0.1] = np.nan
        grid = Grid.from_array(values, Georeference(0.0, 30.0, 1.0, -1.0, "EPSG:32633"))
        classified = classify(grid, DEFAULT_SCHEME)
        labels = classified.labels()
        counts = [int((labels == name).sum()) for name in DEFAULT_SCHEME.category_labels]
        assert sum(counts) == grid.valid_count
        assert int((labels == "No data").sum()) == grid.missing_count
