"""
AOI Vegetation Cover — CLI Entry Point
=======================================
Installed as the ``geo-veg-cover`` command via ``pyproject.toml``.

Usage::

    geo-veg-cover \\
        --nir B08.tif --red B04.tif \\
        --boundary aoi.geojson \\
        --thresholds "0.2:Sparse,0.45:Moderate,0.7:Dense" \\
        --below-label "No vegetation" \\
        --output-dir output/aoi

Run ``geo-veg-cover --help`` for the full option list.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from vegetation_cover.band_algebra import INDEX_STRATEGIES
from vegetation_cover.classifier import DEFAULT_SCHEME, ClassificationScheme
from vegetation_cover.exceptions import VegetationCoverError
from vegetation_cover.pipeline import VegetationCoverAnalysis, VegetationCoverConfig
from vegetation_cover.rasterizer import FILL_RULES

_DEFAULT_THRESHOLDS = ",".join(
    f"{t:g}:{label}" for t, label in zip(DEFAULT_SCHEME.thresholds, DEFAULT_SCHEME.labels)
)


@click.command(
    name="geo-veg-cover",
    help="Classify a vegetation index inside an area of interest and report the land-cover breakdown.",
)
@click.option(
    "--nir",
    "nir_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Near-infrared band raster (Landsat 8/9: B5, Sentinel-2: B08).",
)
@click.option(
    "--red",
    "red_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Red band raster (Landsat 8/9: B4, Sentinel-2: B04).",
)
@click.option(
    "--green",
    "green_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Green band raster (needed for --index NDWI).",
)
@click.option(
    "--blue",
    "blue_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Blue band raster (needed for --index EVI).",
)
@click.option(
    "--boundary",
    "boundary_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Vector file with the area of interest (GeoJSON, GeoPackage, Shapefile).",
)
@click.option(
    "--output-dir",
    "output_dir",
    default="output",
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for output rasters and the summary file.",
)
@click.option(
    "--index",
    "index_name",
    type=click.Choice(list(INDEX_STRATEGIES), case_sensitive=False),
    default="NDVI",
    show_default=True,
    help="Spectral index to classify.",
)
@click.option(
    "--thresholds",
    default=_DEFAULT_THRESHOLDS,
    show_default=True,
    help="Comma-separated <value>:<label> pairs in increasing order.",
)
@click.option(
    "--below-label",
    default=DEFAULT_SCHEME.below_label,
    show_default=True,
    help="Label for index values below the first threshold.",
)
@click.option(
    "--fill-rule",
    type=click.Choice(FILL_RULES),
    default="even-odd",
    show_default=True,
    help="Polygon fill rule used to rasterize the boundary.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "csv"], case_sensitive=False),
    default="json",
    show_default=True,
    help="Summary file format.",
)
@click.option("--nir-band", default=1, show_default=True, type=int, help="1-based band index in the NIR file.")
@click.option("--red-band", default=1, show_default=True, type=int, help="1-based band index in the Red file.")
@click.option("--workers", default=1, show_default=True, type=int, help="Threads used for rasterization.")
@click.option("--write-mask", is_flag=True, default=False, help="Also write the boundary mask as mask.tif.")
@click.option(
    "--reproject-boundary",
    is_flag=True,
    default=False,
    help="Reproject the boundary into the band CRS instead of requiring a match.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def main(
    nir_path: Path,
    red_path: Path,
    green_path: Path | None,
    blue_path: Path | None,
    boundary_path: Path,
    output_dir: Path,
    index_name: str,
    thresholds: str,
    below_label: str,
    fill_rule: str,
    output_format: str,
    nir_band: int,
    red_band: int,
    workers: int,
    write_mask: bool,
    reproject_boundary: bool,
    verbose: bool,
) -> None:
    """CLI entry point — wires Click options into VegetationCoverAnalysis."""
    try:
        scheme = ClassificationScheme.parse(thresholds, below_label=below_label)
        config = VegetationCoverConfig(
            scheme=scheme,
            index=index_name.upper(),
            fill_rule=fill_rule,  # type: ignore[arg-type]
            output_format=output_format.lower(),  # type: ignore[arg-type]
            write_mask=write_mask,
            workers=workers,
            nir_band=nir_band,
            red_band=red_band,
            reproject_boundary=reproject_boundary,
        )
        tool = VegetationCoverAnalysis(
            nir_path, red_path, boundary_path, output_dir, config,
            green_path=green_path, blue_path=blue_path, verbose=verbose,
        )
        tool.run()
    except VegetationCoverError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)

    summary = tool.result.summary  # type: ignore[union-attr]
    click.echo(f"\nOutputs written to: {output_dir}")
    for stat in summary:
        click.echo(f"  {stat}")
    click.echo(f"  Valid pixels: {summary.total_valid:,}")


if __name__ == "__main__":
    main()
