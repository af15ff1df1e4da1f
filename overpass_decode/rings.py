"""Merging lines into rings, and testing whether rings contain a coordinate."""

from collections.abc import Iterable, Sequence

from overpass_decode.geometry import Coordinate, Ring, is_closed


__docformat__ = "google"
__all__ = (
    "merge_chains",
    "point_in_ring",
)


def merge_chains(chains: Iterable[Sequence[Coordinate]]) -> list[Ring]:
    """
    Join lines that share an endpoint into longer lines or closed rings.

    Merging is greedy, and depends on the order of the input:
     - the first line that was not merged yet becomes the base of a new chain
     - other lines are scanned in order for one whose first or last coordinate equals
       the first or last coordinate of the base
     - the first match is joined onto the base, reversing it if needed, and the scan starts over
     - a chain is complete once it is closed, or once no other line matches any of its ends

    The joint coordinate is only kept once, so every join reduces the total number
    of coordinates by one. Endpoints must be exactly equal to be joined.

    Args:
        chains: lines as sequences of coordinates; empty ones are ignored

    Returns:
        the merged chains, in the order their bases appeared in the input
    """
    pool = [tuple(chain) for chain in chains if chain]
    merged: list[Ring] = []

    while pool:
        base = pool.pop(0)

        while pool and not is_closed(base):
            for idx, candidate in enumerate(pool):
                joined = _join(base, candidate)
                if joined is not None:
                    del pool[idx]
                    base = joined
                    break
            else:
                break  # nothing left to join

        merged.append(base)

    return merged


def _join(base: Ring, other: Ring) -> Ring | None:
    """Join ``other`` onto ``base`` if they share an endpoint, or return ``None``."""
    if base[-1] == other[0]:
        return base + other[1:]

    if base[-1] == other[-1]:
        return base + other[-2::-1]

    if base[0] == other[-1]:
        return other[:-1] + base

    if base[0] == other[0]:
        return other[:0:-1] + base

    return None


def point_in_ring(coordinate: Coordinate, ring: Sequence[Coordinate]) -> bool:
    """
    Even-odd test for whether a coordinate lies inside a closed ring.

    A ray is cast from the coordinate towards increasing longitudes, and every ring edge
    it crosses toggles the result. Latitude and longitude are treated as planar y/x axes.
    The edges are the pairs of consecutive coordinates; the ring is expected to repeat its
    first coordinate at the end, so there is no extra edge that wraps around.

    Coordinates on the boundary of the ring may be classified either way.

    References:
        - https://wrfranklin.org/Research/Short_Notes/pnpoly.html
    """
    inside = False

    for p1, p2 in zip(ring, ring[1:]):
        if (p1.lat > coordinate.lat) != (p2.lat > coordinate.lat):
            crossing_lon = p1.lon + (p2.lon - p1.lon) * (coordinate.lat - p1.lat) / (
                p2.lat - p1.lat
            )
            if coordinate.lon < crossing_lon:
                inside = not inside

    return inside
