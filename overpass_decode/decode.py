"""Decoding of single elements from the JSON objects in an Overpass result set."""

from collections.abc import Iterable
from typing import Any, TypeAlias

from overpass_decode.assemble import assemble_multipolygon, assemble_multipolyline
from overpass_decode.element import Element, ElementType, Member, Metadata, Node, Relation, Way
from overpass_decode.error import (
    ElementDecodeError,
    InvalidWayLengthError,
    MalformedFieldError,
    MissingFieldError,
)
from overpass_decode.geometry import (
    Coordinate,
    MultiPolygon,
    MultiPolyline,
    Point,
    Polygon,
    Polyline,
    Ring,
    finite_float,
    is_closed,
)
from overpass_decode.registry import ElementRegistry
from overpass_decode.tags import TagPolicy


__docformat__ = "google"
__all__ = (
    "OverpassDict",
    "decode_element",
    "decode_node",
    "decode_way",
    "decode_relation",
)


OverpassDict: TypeAlias = dict[str, Any]
"""A dictionary representing a JSON object returned by the Overpass API."""

_ROLE_OUTER = "outer"
_ROLE_INNER = "inner"


def decode_element(
    elem_dict: OverpassDict,
    registry: ElementRegistry,
    policy: TagPolicy,
) -> Element | ElementDecodeError:
    """
    Decode an element of any type.

    The ``type`` field decides which decoder is used. Ways can only be decoded once
    the registry contains every node, and relations once it contains every way.

    Returns:
        the decoded element, or the reason why it could not be decoded
    """
    try:
        match elem_dict.get("type"):
            case ElementType.NODE.value:
                return decode_node(elem_dict, policy)
            case ElementType.WAY.value:
                return decode_way(elem_dict, registry, policy)
            case ElementType.RELATION.value:
                return decode_relation(elem_dict, registry, policy)
            case other:
                raise MalformedFieldError(
                    element_id=_maybe_id(elem_dict),
                    field="type",
                    value=other,
                )
    except ElementDecodeError as err:
        return err


def decode_node(elem_dict: OverpassDict, policy: TagPolicy) -> Node:
    """
    Decode a node.

    Raises:
        ElementDecodeError: if ``id``, ``lat`` or ``lon`` are missing or malformed
    """
    node_id = _id(elem_dict)
    tags = _tags(elem_dict, node_id)

    coordinate = Coordinate(
        lat=_number(elem_dict, "lat", node_id),
        lon=_number(elem_dict, "lon", node_id),
    )

    return Node(
        id=node_id,
        tags=tags,
        is_interesting=policy.is_interesting(tags),
        geometry=Point(coordinate),
        meta=_meta(elem_dict, node_id),
    )


def decode_way(elem_dict: OverpassDict, registry: ElementRegistry, policy: TagPolicy) -> Way:
    """
    Decode a way.

    The geometry is, in order of preference,
     - the ``center`` of the way, if given (``out center``)
     - the embedded ``geometry``, if given (``out geom``)
     - the coordinates of the way's nodes, looked up in the registry

    Raises:
        InvalidWayLengthError: if there is not a coordinate for every node of the way,
                               or if there are less than two
        ElementDecodeError: if other fields are missing or malformed
    """
    way_id = _id(elem_dict)
    tags = _tags(elem_dict, way_id)
    center = _center(elem_dict, way_id)
    node_ids = _int_list(elem_dict, "nodes", way_id, required=center is None)

    geometry: Point | Polyline | Polygon

    if center is not None:
        geometry = Point(center)
    else:
        if "geometry" in elem_dict:
            coords = _coordinate_list(elem_dict, "geometry", way_id)
        else:
            # nodes are decoded before ways, so all nodes should be present
            coords = tuple(c for c in map(registry.point_of, node_ids) if c is not None)

        if len(coords) != len(node_ids) or len(coords) < 2:
            raise InvalidWayLengthError(element_id=way_id)

        if is_closed(coords) and policy.is_area(coords, tags):
            geometry = Polygon(coords)
        else:
            geometry = Polyline(coords)

    return Way(
        id=way_id,
        tags=tags,
        is_interesting=policy.is_interesting(tags),
        node_ids=node_ids,
        geometry=geometry,
        meta=_meta(elem_dict, way_id),
    )


def decode_relation(
    elem_dict: OverpassDict,
    registry: ElementRegistry,
    policy: TagPolicy,
) -> Relation:
    """
    Decode a relation, and mark members as skippable if the relation represents them.

    Only relations of a displayable ``type`` get a geometry:
     - with a ``center``, relations of a polygon type get that center as geometry,
       and all of their members are marked as skippable
     - without a ``center``, relations of a polygon type are assembled into polygons
       of their "outer" and "inner" ways, which are marked as skippable
     - without a ``center``, other displayable relations are assembled into lines of
       their ways, which are marked as skippable unless they are interesting on their own

    Raises:
        EmptyRelationError: if a relation should have geometry, but none could be assembled
        ElementDecodeError: if other fields are missing or malformed
    """
    rel_id = _id(elem_dict)
    tags = _tags(elem_dict, rel_id)
    center = _center(elem_dict, rel_id)

    relation_type = tags.get("type")
    is_displayable = policy.is_displayable(relation_type)
    is_polygon = policy.is_polygon_relation(relation_type)

    # resolving member geometry is only worth it if it is used
    members = _members(
        elem_dict,
        rel_id,
        registry=registry if is_displayable and center is None else None,
    )

    geometry: Point | MultiPolygon | MultiPolyline | None = None
    skippable_ids: list[int] = []

    if center is not None:
        if is_polygon:
            geometry = Point(center)
            skippable_ids = [mem.id for mem in members]

    elif is_polygon:
        outers = [mem for mem in _ways_with_coords(members) if mem.role == _ROLE_OUTER]
        inners = [mem for mem in _ways_with_coords(members) if mem.role == _ROLE_INNER]
        geometry = assemble_multipolygon(
            outer_chains=(mem.coordinates for mem in outers),
            inner_chains=(mem.coordinates for mem in inners),
            relation_id=rel_id,
        )
        skippable_ids = [mem.id for mem in (*outers, *inners)]

    elif is_displayable:
        ways = list(_ways_with_coords(members))
        geometry = assemble_multipolyline(
            chains=(mem.coordinates for mem in ways),
            relation_id=rel_id,
        )
        # interesting ways are still rendered on their own
        skippable_ids = [
            mem.id
            for mem in ways
            if (way := registry.get(mem.id)) is None or not way.is_interesting
        ]

    for member_id in skippable_ids:
        registry.mark_skippable(member_id)

    return Relation(
        id=rel_id,
        tags=tags,
        is_interesting=policy.is_interesting(tags),
        member_ids=tuple(mem.id for mem in members),
        geometry=geometry,
        meta=_meta(elem_dict, rel_id),
    )


def _members(
    elem_dict: OverpassDict,
    rel_id: int,
    registry: ElementRegistry | None,
) -> list[Member]:
    """
    Decode the members of a relation.

    Member coordinates are only resolved if a ``registry`` is given.
    """
    raw_members = elem_dict.get("members")

    if raw_members is None:
        if "center" in elem_dict:
            return []  # f.e. 'out tags center'
        raise MissingFieldError(element_id=rel_id, field="members")

    if not isinstance(raw_members, list):
        raise MalformedFieldError(element_id=rel_id, field="members", value=raw_members)

    members = []

    for mem_dict in raw_members:
        if not isinstance(mem_dict, dict):
            raise MalformedFieldError(element_id=rel_id, field="members", value=mem_dict)

        try:
            mem_type = ElementType(mem_dict.get("type"))
        except ValueError:
            raise MalformedFieldError(
                element_id=rel_id,
                field="members.type",
                value=mem_dict.get("type"),
            ) from None

        mem_id = mem_dict.get("ref")
        if not _is_int(mem_id):
            raise MalformedFieldError(element_id=rel_id, field="members.ref", value=mem_id)

        role = mem_dict.get("role")
        if role is None:
            raise MissingFieldError(element_id=rel_id, field="members.role")
        if not isinstance(role, str):
            raise MalformedFieldError(element_id=rel_id, field="members.role", value=role)

        coords: Ring = ()
        if registry is not None:
            coords = _member_coordinates(mem_dict, mem_type, mem_id, registry)

        members.append(Member(type=mem_type, id=mem_id, role=role, coordinates=coords))

    return members


def _member_coordinates(
    mem_dict: OverpassDict,
    mem_type: ElementType,
    mem_id: int,
    registry: ElementRegistry,
) -> Ring:
    """
    Resolve the line of a member way.

    This is the embedded ``geometry`` if given (``out geom``), or the geometry of the
    way that was decoded before. A member whose embedded geometry could not be decoded
    entirely has no coordinates, which means it is left out of the relation's geometry.
    """
    if "geometry" in mem_dict:
        raw_geometry = mem_dict["geometry"]
        if not isinstance(raw_geometry, list):
            return ()
        coords = tuple(c for c in map(Coordinate.try_from_dict, raw_geometry) if c is not None)
        return coords if len(coords) == len(raw_geometry) else ()

    if mem_type is ElementType.WAY:
        return registry.way_coordinates_of(mem_id)

    return ()


def _ways_with_coords(members: Iterable[Member]) -> Iterable[Member]:
    return (mem for mem in members if mem.type is ElementType.WAY and mem.coordinates)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _maybe_id(elem_dict: OverpassDict) -> int | None:
    elem_id = elem_dict.get("id")
    return elem_id if _is_int(elem_id) else None


def _id(elem_dict: OverpassDict) -> int:
    if "id" not in elem_dict:
        raise MissingFieldError(element_id=None, field="id")

    elem_id = elem_dict["id"]
    if not _is_int(elem_id):
        raise MalformedFieldError(element_id=None, field="id", value=elem_id)

    return elem_id


def _tags(elem_dict: OverpassDict, elem_id: int) -> dict[str, str]:
    tags = elem_dict.get("tags")
    if tags is None:
        return {}

    if not isinstance(tags, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in tags.items()
    ):
        raise MalformedFieldError(element_id=elem_id, field="tags", value=tags)

    return dict(tags)


def _number(elem_dict: OverpassDict, key: str, elem_id: int) -> float:
    if key not in elem_dict:
        raise MissingFieldError(element_id=elem_id, field=key)

    value = elem_dict[key]
    number = finite_float(value)
    if number is None:
        raise MalformedFieldError(element_id=elem_id, field=key, value=value)

    return number


def _center(elem_dict: OverpassDict, elem_id: int) -> Coordinate | None:
    if "center" not in elem_dict:
        return None

    try:
        return Coordinate.from_dict(elem_dict["center"])
    except ValueError:
        raise MalformedFieldError(
            element_id=elem_id,
            field="center",
            value=elem_dict["center"],
        ) from None


def _int_list(elem_dict: OverpassDict, key: str, elem_id: int, required: bool) -> tuple[int, ...]:
    if key not in elem_dict:
        if required:
            raise MissingFieldError(element_id=elem_id, field=key)
        return ()

    values = elem_dict[key]
    if not isinstance(values, list) or not all(_is_int(v) for v in values):
        raise MalformedFieldError(element_id=elem_id, field=key, value=values)

    return tuple(values)


def _coordinate_list(elem_dict: OverpassDict, key: str, elem_id: int) -> Ring:
    """Decode a list of coordinates, dropping entries that cannot be decoded."""
    values = elem_dict[key]
    if not isinstance(values, list):
        raise MalformedFieldError(element_id=elem_id, field=key, value=values)

    coords = tuple(c for c in map(Coordinate.try_from_dict, values) if c is not None)

    # a dropped entry means the list does not cover every node
    if len(coords) != len(values):
        raise InvalidWayLengthError(element_id=elem_id)

    return coords


def _meta(elem_dict: OverpassDict, elem_id: int) -> Metadata | None:
    if "timestamp" not in elem_dict:
        return None

    for key in ("version", "changeset", "user", "uid"):
        if key not in elem_dict:
            raise MissingFieldError(element_id=elem_id, field=key)

    return Metadata(
        timestamp=elem_dict["timestamp"],
        version=elem_dict["version"],
        changeset=elem_dict["changeset"],
        user_name=elem_dict["user"],
        user_id=elem_dict["uid"],
    )
