"""
AOI Vegetation Cover
====================
Clip multi-band imagery to a polygon area of interest, compute NDVI and
summarise it as a categorical land-cover breakdown.

Public API::

    from vegetation_cover import Grid, Georeference, Polygon, analyse_aoi
"""

from vegetation_cover.aggregator import AggregateResult, CategoryCounts, CategoryStat, summarize, tally
from vegetation_cover.band_algebra import (
    INDEX_STRATEGIES,
    EVIStrategy,
    IndexStrategy,
    NDVIStrategy,
    NDWIStrategy,
    SAVIStrategy,
    combine,
    ndvi,
    normalized_difference,
)
from vegetation_cover.classifier import DEFAULT_SCHEME, ClassificationScheme, ClassifiedGrid, classify
from vegetation_cover.grid import Georeference, Grid
from vegetation_cover.masker import apply_mask, mask_bands
from vegetation_cover.pipeline import (
    AOIVegetationResult,
    VegetationCoverAnalysis,
    VegetationCoverConfig,
    analyse_aoi,
)
from vegetation_cover.polygon import Polygon
from vegetation_cover.rasterizer import rasterize, rasterize_to

__all__ = [
    "Grid",
    "Georeference",
    "Polygon",
    "rasterize",
    "rasterize_to",
    "combine",
    "normalized_difference",
    "ndvi",
    "IndexStrategy",
    "NDVIStrategy",
    "NDWIStrategy",
    "SAVIStrategy",
    "EVIStrategy",
    "INDEX_STRATEGIES",
    "apply_mask",
    "mask_bands",
    "ClassificationScheme",
    "ClassifiedGrid",
    "DEFAULT_SCHEME",
    "classify",
    "CategoryCounts",
    "CategoryStat",
    "AggregateResult",
    "tally",
    "summarize",
    "analyse_aoi",
    "AOIVegetationResult",
    "VegetationCoverAnalysis",
    "VegetationCoverConfig",
]
__version__ = "1.0.0"
