"""Geometries of relations, assembled from the lines of their member ways."""

from collections.abc import Iterable, Sequence

from overpass_decode.error import EmptyRelationError
from overpass_decode.geometry import (
    Coordinate,
    MultiPolygon,
    MultiPolyline,
    NestedPolygon,
    is_closed,
)
from overpass_decode.rings import merge_chains, point_in_ring


__docformat__ = "google"
__all__ = (
    "assemble_multipolygon",
    "assemble_multipolyline",
)


def assemble_multipolygon(
    outer_chains: Iterable[Sequence[Coordinate]],
    inner_chains: Iterable[Sequence[Coordinate]],
    relation_id: int | None = None,
) -> MultiPolygon:
    """
    Build polygons with holes out of the lines of "outer" and "inner" member ways.

    Both groups of lines are merged into rings separately. Rings that are not closed
    after merging are left out. Each inner ring is assigned to the first outer ring
    that contains its first coordinate; inner rings outside every outer ring are dropped.

    Args:
        outer_chains: lines of ways with the "outer" role
        inner_chains: lines of ways with the "inner" role
        relation_id: the ID of the relation, used in the error

    Returns:
        one polygon per outer ring, in the order the outer rings were merged

    Raises:
        EmptyRelationError: if there is not a single closed outer ring

    References:
        - https://wiki.openstreetmap.org/wiki/Relation:multipolygon/Algorithm
    """
    outer_rings = [ring for ring in merge_chains(outer_chains) if is_closed(ring)]
    inner_rings = [ring for ring in merge_chains(inner_chains) if is_closed(ring)]

    if not outer_rings:
        raise EmptyRelationError(element_id=relation_id)

    consumed: set[int] = set()
    polygons = []

    for outer in outer_rings:
        inners = []

        for idx, inner in enumerate(inner_rings):
            if idx in consumed:
                continue
            if point_in_ring(inner[0], outer):
                inners.append(inner)
                consumed.add(idx)

        polygons.append(NestedPolygon(outer=outer, inners=tuple(inners)))

    return MultiPolygon(polygons=tuple(polygons))


def assemble_multipolyline(
    chains: Iterable[Sequence[Coordinate]],
    relation_id: int | None = None,
) -> MultiPolyline:
    """
    Build lines out of the member ways of a relation, f.e. of a route or waterway.

    Lines are merged where they share an endpoint. Merged lines may be open or closed.

    Args:
        chains: lines of all member ways, regardless of their role
        relation_id: the ID of the relation, used in the error

    Raises:
        EmptyRelationError: if there is not a single line with at least two coordinates
    """
    # a single coordinate cannot make up a line
    lines = tuple(line for line in merge_chains(chains) if len(line) > 1)

    if not lines:
        raise EmptyRelationError(element_id=relation_id)

    return MultiPolyline(lines=lines)
