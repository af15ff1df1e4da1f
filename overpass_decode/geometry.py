"""Coordinates and the geometries a decoded element can have."""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

import shapely.geometry
from shapely.geometry.base import BaseGeometry


__docformat__ = "google"
__all__ = (
    "Coordinate",
    "Ring",
    "Geometry",
    "Point",
    "Polyline",
    "Polygon",
    "NestedPolygon",
    "MultiPolyline",
    "MultiPolygon",
    "is_closed",
    "finite_float",
)


@dataclass(frozen=True, slots=True, repr=False)
class Coordinate:
    """
    A position on the WGS 84 ellipsoid.

    Coordinates are compared by exact equality; there is no tolerance.

    Attributes:
        lat: latitude in degrees
        lon: longitude in degrees
    """

    lat: float
    lon: float

    @classmethod
    def from_dict(cls, obj: Any) -> "Coordinate":
        """
        Decode a ``{"lat": ..., "lon": ...}`` object.

        Raises:
            ValueError: if ``obj`` is not such an object
        """
        coord = cls.try_from_dict(obj)
        if coord is None:
            msg = f"not a coordinate: {obj!r}"
            raise ValueError(msg)
        return coord

    @classmethod
    def try_from_dict(cls, obj: Any) -> "Coordinate | None":
        """Same as ``from_dict()``, but returns ``None`` instead of raising."""
        if not isinstance(obj, Mapping):
            return None
        lat, lon = finite_float(obj.get("lat")), finite_float(obj.get("lon"))
        if lat is None or lon is None:
            return None
        return cls(lat=lat, lon=lon)

    def __repr__(self) -> str:
        return f"({self.lat}, {self.lon})"


Ring: TypeAlias = tuple[Coordinate, ...]
"""An ordered sequence of coordinates, "closed" if its first and last coordinate are equal."""


def is_closed(ring: Sequence[Coordinate]) -> bool:
    """``True`` if the ring has at least two coordinates and starts where it ends."""
    return len(ring) > 1 and ring[0] == ring[-1]


def finite_float(value: Any) -> float | None:
    """
    Converts a JSON number to a finite ``float``.

    Returns ``None`` for anything else, including booleans and numbers that
    overflow or are not finite. Python's JSON parser accepts ``1e400`` and ``NaN``.
    """
    if not isinstance(value, int | float) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _tuples(ring: Ring) -> list[tuple[float, float]]:
    return [(c.lat, c.lon) for c in ring]


@dataclass(frozen=True, slots=True)
class Point:
    """A single coordinate, f.e. a node, or the center of a way or relation."""

    coordinate: Coordinate

    @property
    def coordinates(self) -> Coordinate:
        return self.coordinate

    @property
    def shape(self) -> BaseGeometry:
        return shapely.geometry.Point(self.coordinate.lat, self.coordinate.lon)


@dataclass(frozen=True, slots=True)
class Polyline:
    """An open or closed line that is not an area."""

    ring: Ring

    def __post_init__(self) -> None:
        if len(self.ring) < 2:
            msg = "a polyline needs at least two coordinates"
            raise ValueError(msg)

    @property
    def coordinates(self) -> Ring:
        return self.ring

    @property
    def shape(self) -> BaseGeometry:
        return shapely.geometry.LineString(_tuples(self.ring))


@dataclass(frozen=True, slots=True)
class Polygon:
    """A closed way that represents an area."""

    ring: Ring

    def __post_init__(self) -> None:
        if not is_closed(self.ring):
            msg = "a polygon ring must be closed"
            raise ValueError(msg)

    @property
    def coordinates(self) -> Ring:
        return self.ring

    @property
    def shape(self) -> BaseGeometry:
        return shapely.geometry.Polygon(_tuples(self.ring))


@dataclass(frozen=True, slots=True)
class NestedPolygon:
    """
    A polygon with holes.

    Attributes:
        outer: the closed boundary
        inners: closed rings that lie within ``outer``
    """

    outer: Ring
    inners: tuple[Ring, ...] = ()

    def __post_init__(self) -> None:
        if not is_closed(self.outer) or not all(is_closed(inner) for inner in self.inners):
            msg = "outer and inner rings must be closed"
            raise ValueError(msg)

    @property
    def shape(self) -> shapely.geometry.Polygon:
        return shapely.geometry.Polygon(
            shell=_tuples(self.outer),
            holes=[_tuples(inner) for inner in self.inners],
        )


@dataclass(frozen=True, slots=True)
class MultiPolyline:
    """Lines made up of the merged member ways of a route-like relation."""

    lines: tuple[Ring, ...]

    def __post_init__(self) -> None:
        if any(len(line) < 2 for line in self.lines):
            msg = "a polyline needs at least two coordinates"
            raise ValueError(msg)

    @property
    def coordinates(self) -> tuple[Ring, ...]:
        return self.lines

    @property
    def shape(self) -> BaseGeometry:
        return shapely.geometry.MultiLineString([_tuples(line) for line in self.lines])


@dataclass(frozen=True, slots=True)
class MultiPolygon:
    """Polygons with holes, made up of the merged member ways of a multipolygon relation."""

    polygons: tuple[NestedPolygon, ...]

    @property
    def coordinates(self) -> tuple[tuple[Ring, ...], ...]:
        return tuple((poly.outer, *poly.inners) for poly in self.polygons)

    @property
    def shape(self) -> BaseGeometry:
        return shapely.geometry.MultiPolygon([poly.shape for poly in self.polygons])


Geometry: TypeAlias = Point | Polyline | Polygon | MultiPolyline | MultiPolygon
"""The resolved geometry of an element. Elements without geometry use ``None``."""
