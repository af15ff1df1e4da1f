"""Typed elements with resolved geometry."""

import math
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from overpass_decode.geometry import (
    Coordinate,
    Geometry,
    MultiPolygon,
    MultiPolyline,
    Point,
    Polygon,
    Polyline,
    Ring,
)
from overpass_decode.spatial import FeatureSource, GeoJsonDict

import shapely.geometry
import shapely.ops


__docformat__ = "google"
__all__ = (
    "ElementType",
    "Element",
    "Node",
    "Way",
    "Relation",
    "Member",
    "Metadata",
)


class ElementType(Enum):
    """The type of an element, with the name used in Overpass JSON as value."""

    NODE = "node"
    WAY = "way"
    RELATION = "relation"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


@dataclass(kw_only=True, slots=True)
class Metadata:
    """
    Metadata concerning the most recent edit of an OSM element.

    Only present in result sets that were requested with ``out meta``.

    Attributes:
        version: The version number of the element
        timestamp: Timestamp (ISO 8601) of the most recent change of this element
        changeset: The changeset in which the element was most recently changed
        user_name: Name of the user that made the most recent change to the element
        user_id: ID of the user that made the most recent change to the element
    """

    version: int
    timestamp: str
    changeset: int
    user_name: str
    user_id: int


@dataclass(kw_only=True, repr=False, eq=False)
class Element(FeatureSource):
    """
    Elements are the basic components of OpenStreetMap's data.

    Elements are immutable once decoded, with one exception: ``is_skippable`` may be switched
    on by later decoding steps, when it turns out that a relation already represents
    the element's shape. It can never be switched off again.

    Element geometries have coordinates in the EPSG:4326 coordinate reference system,
    meaning that the coordinates are (latitude, longitude) tuples on the WGS 84 reference ellipsoid.

    Attributes:
        id: A number that identifies the element within a decode run.
        tags: Key-value pairs that describe the element; empty if there are none.
        is_interesting: ``True`` if the tags describe something worth rendering on its own.
        is_skippable: ``True`` if the element's shape is already part of a relation's geometry,
                      and should not be rendered on its own.
        geometry: The resolved geometry, or ``None`` if there is none.
        meta: Metadata of this element, or ``None`` when not using ``out meta``.

    References:
        - https://wiki.openstreetmap.org/wiki/Elements
    """

    __slots__ = ("_is_skippable",)

    id: int
    tags: dict[str, str]
    is_interesting: bool
    geometry: Geometry | None
    meta: Metadata | None = None

    def __post_init__(self) -> None:
        self._is_skippable = False

    @property
    def is_skippable(self) -> bool:
        """``True`` if the element's shape is already part of a relation's geometry."""
        return self._is_skippable

    def mark_skippable(self) -> None:
        """Note that the element is represented by a relation. This cannot be undone."""
        self._is_skippable = True

    def tag(self, key: str, default: str | None = None) -> str | None:
        """
        Get the tag value for the given key.

        Returns ``default`` if there is no ``key`` tag.
        """
        return self.tags.get(key, default)

    @property
    def type(self) -> ElementType:
        """The element's type."""
        match self:
            case Node():
                return ElementType.NODE
            case Way():
                return ElementType.WAY
            case Relation():
                return ElementType.RELATION
            case _:
                raise AssertionError

    @property
    def link(self) -> str:
        """This element on openstreetmap.org."""
        return f"https://www.openstreetmap.org/{self.type.value}/{self.id}"

    @property
    def geojson(self) -> GeoJsonDict:
        """
        A mapping of this element as GeoJSON ``Feature``.

        ``properties`` contain the keys ``id``, ``type``, ``tags``, ``interesting``
        and ``skippable``, as well as ``nodes``/``members`` and metadata if present.
        """
        feature: GeoJsonDict = {
            "type": "Feature",
            "geometry": _geojson_geometry(self),
            "properties": _geojson_properties(self),
        }

        bbox = _geojson_bbox(self)
        if bbox:
            feature["bbox"] = bbox

        return feature

    def features(self) -> Iterator[GeoJsonDict]:
        yield self.geojson

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id})"


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class Node(Element):
    """
    A point in space, at a specific coordinate.

    Attributes:
        geometry: the node's position

    References:
        - https://wiki.openstreetmap.org/wiki/Node
    """

    geometry: Point


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class Way(Element):
    """
    A way is an ordered list of nodes.

    Attributes:
        node_ids: The IDs of the nodes that make up this way, in order.
        geometry: A ``Point`` if only the center of the way was part of the result set,
                  a ``Polygon`` if the way is closed and its tags indicate that it represents
                  an area, or a ``Polyline`` otherwise.

    References:
        - https://wiki.openstreetmap.org/wiki/Way
    """

    node_ids: tuple[int, ...]
    geometry: Point | Polyline | Polygon

    @property
    def coordinates(self) -> Ring:
        """The line or ring of this way, or an empty tuple if only its center is known."""
        match self.geometry:
            case Polyline(ring=ring) | Polygon(ring=ring):
                return ring
            case _:
                return ()


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class Relation(Element):
    """
    A relation is a group of elements that have a logical or geographic relationship.

    Attributes:
        member_ids: IDs of the member elements, in order.
        geometry: A ``Point`` if only the center of a (multi-)polygon relation was part of
                  the result set, a ``MultiPolygon`` for relations of a polygon type,
                  a ``MultiPolyline`` for other displayable relations, or ``None``.

    References:
        - https://wiki.openstreetmap.org/wiki/Relation
        - https://wiki.openstreetmap.org/wiki/Relation:multipolygon
    """

    member_ids: tuple[int, ...]
    geometry: Point | MultiPolygon | MultiPolyline | None


@dataclass(kw_only=True, slots=True, frozen=True)
class Member:
    """
    A member of a relation while the relation is being decoded.

    Attributes:
        type: the member's element type
        id: the member's ID
        role: describes the function of the member in the relation, possibly empty
        coordinates: the member's line or ring, if it was resolved
    """

    type: ElementType
    id: int
    role: str
    coordinates: Ring = ()


def _geojson_properties(elem: Element) -> GeoJsonDict:
    properties = {
        "id": elem.id,
        "type": elem.type.value,
        "tags": elem.tags,
        "interesting": elem.is_interesting,
        "skippable": elem.is_skippable,
        "timestamp": elem.meta.timestamp if elem.meta else None,
        "version": elem.meta.version if elem.meta else None,
        "changeset": elem.meta.changeset if elem.meta else None,
        "user": elem.meta.user_name if elem.meta else None,
        "uid": elem.meta.user_id if elem.meta else None,
    }

    if isinstance(elem, Way):
        properties["nodes"] = list(elem.node_ids)
    elif isinstance(elem, Relation):
        properties["members"] = list(elem.member_ids)

    if isinstance(elem.geometry, Point) and not isinstance(elem, Node):
        c: Coordinate = elem.geometry.coordinate
        properties["center"] = (c.lat, c.lon)

    return {k: v for k, v in properties.items() if v is not None}


def _geojson_geometry(elem: Element) -> GeoJsonDict | None:
    if elem.geometry is None:
        return None

    # Flip coordinates for GeoJSON compliance.
    geom = shapely.ops.transform(lambda lat, lon: (lon, lat), elem.geometry.shape)

    # GeoJSON-like mapping that implements __geo_interface__.
    return shapely.geometry.mapping(geom)


def _geojson_bbox(elem: Element) -> tuple[float, float, float, float] | None:
    if elem.geometry is None:
        return None

    bounds = elem.geometry.shape.bounds  # can be (nan, nan, nan, nan)
    if not any(math.isnan(c) for c in bounds):
        (minlat, minlon, maxlat, maxlon) = bounds
        return minlon, minlat, maxlon, maxlat

    return None
