"""
Polygon — Area-of-Interest Boundary
====================================
Read-only vector boundary used to build raster masks.

A :class:`Polygon` is an ordered tuple of rings.  ``rings[0]`` is the outer
boundary and any further rings are holes.  Rings are stored open (the
repeated closing vertex is dropped) and every ring keeps at least three
distinct vertices.

Shapely / GeoJSON inputs are accepted through :meth:`Polygon.from_shapely`
and :meth:`Polygon.from_geojson`; reprojection is the caller's job.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Sequence

from shapely.geometry import MultiPolygon, shape
from shapely.geometry import Polygon as ShapelyPolygon

from vegetation_cover.exceptions import InvalidGeometryError

logger = logging.getLogger("vegetation_cover.polygon")

Coordinate = tuple[float, float]
Ring = tuple[Coordinate, ...]


def _normalise_ring(coords: Sequence[Sequence[float]], index: int) -> Ring:
    """Drop the closing vertex and consecutive duplicates; check the result."""
    ring: list[Coordinate] = []
    try:
        points = list(coords)
    except TypeError:
        raise InvalidGeometryError(f"ring {index} is not a sequence of coordinates") from None
    for point in points:
        try:
            if len(point) < 2:
                raise InvalidGeometryError(f"ring {index} has a coordinate with fewer than 2 values")
            x, y = float(point[0]), float(point[1])
        except (TypeError, ValueError):
            raise InvalidGeometryError(f"ring {index} has a malformed coordinate {point!r}") from None
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidGeometryError(f"ring {index} has a non-finite coordinate ({x}, {y})")
        if ring and ring[-1] == (x, y):
            continue
        ring.append((x, y))
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    if len(ring) < 3:
        raise InvalidGeometryError(
            f"ring {index} has {len(ring)} distinct vertices; at least 3 are required"
        )
    if ring_signed_area(tuple(ring)) == 0.0:
        raise InvalidGeometryError(f"ring {index} has zero area")
    return tuple(ring)


def ring_signed_area(ring: Ring) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    total = 0.0
    for (x0, y0), (x1, y1) in zip(ring, ring[1:] + ring[:1]):
        total += x0 * y1 - x1 * y0
    return total / 2.0


@dataclass(frozen=True, init=False)
class Polygon:
    """Outer ring plus optional holes, in a single CRS.

    Attributes:
        rings: Normalised rings; ``rings[0]`` is the exterior.
        crs: Coordinate reference identifier; must equal the target grid's.

    Raises:
        InvalidGeometryError: If there are no rings or any ring has fewer
            than 3 distinct vertices.
    """

    rings: tuple[Ring, ...]
    crs: str

    def __init__(self, rings: Sequence[Sequence[Sequence[float]]], crs: str) -> None:
        if len(rings) == 0:
            raise InvalidGeometryError("polygon has no rings")
        normalised = tuple(_normalise_ring(ring, i) for i, ring in enumerate(rings))
        object.__setattr__(self, "rings", normalised)
        object.__setattr__(self, "crs", str(crs))

    # ------------------------------------------------------------------
    # Adapters
    # ------------------------------------------------------------------

    @classmethod
    def from_shapely(cls, geom: Any, crs: str) -> Polygon:
        """Build from a shapely Polygon (or single-part MultiPolygon).

        Raises:
            InvalidGeometryError: For empty geometries, other geometry types,
                or MultiPolygons with more than one part.
        """
        if geom is None or geom.is_empty:
            raise InvalidGeometryError("geometry is empty")
        if isinstance(geom, MultiPolygon):
            if len(geom.geoms) != 1:
                raise InvalidGeometryError(
                    f"expected a single polygon, got a MultiPolygon with {len(geom.geoms)} parts"
                )
            geom = geom.geoms[0]
        if not isinstance(geom, ShapelyPolygon):
            raise InvalidGeometryError(f"expected a Polygon, got {geom.geom_type}")
        rings = [list(geom.exterior.coords)] + [list(r.coords) for r in geom.interiors]
        return cls(rings, crs)

    @classmethod
    def from_geojson(cls, geometry: Mapping[str, Any], crs: str) -> Polygon:
        """Build from a GeoJSON-like geometry mapping."""
        try:
            geom = shape(geometry)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise InvalidGeometryError(f"cannot parse GeoJSON geometry: {exc}") from exc
        return cls.from_shapely(geom, crs)

    def to_shapely(self) -> ShapelyPolygon:
        return ShapelyPolygon(self.rings[0], list(self.rings[1:]))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def exterior(self) -> Ring:
        return self.rings[0]

    @property
    def holes(self) -> tuple[Ring, ...]:
        return self.rings[1:]

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """``(minx, miny, maxx, maxy)`` of the exterior ring."""
        xs = [x for x, _ in self.exterior]
        ys = [y for _, y in self.exterior]
        return (min(xs), min(ys), max(xs), max(ys))

    def edges(self) -> Iterator[tuple[Coordinate, Coordinate, int]]:
        """Yield ``(start, end, ring_index)`` for every edge, closing edges included."""
        for index, ring in enumerate(self.rings):
            for start, end in zip(ring, ring[1:] + ring[:1]):
                yield start, end, index

    def oriented(self) -> Polygon:
        """Copy with the exterior counter-clockwise and holes clockwise."""
        rings: list[Ring] = []
        for index, ring in enumerate(self.rings):
            ccw = ring_signed_area(ring) > 0
            want_ccw = index == 0
            rings.append(ring if ccw == want_ccw else tuple(reversed(ring)))
        return Polygon(rings, self.crs)

    def __repr__(self) -> str:
        return (
            f"Polygon(exterior={len(self.exterior)} vertices, "
            f"holes={len(self.holes)}, crs={self.crs!r})"
        )
