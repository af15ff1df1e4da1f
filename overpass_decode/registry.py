"""Decoded elements of a single run, indexed by ID."""

from collections.abc import Iterator, ValuesView

from overpass_decode.element import Element, Way
from overpass_decode.geometry import Coordinate, Point, Ring


__docformat__ = "google"
__all__ = ("ElementRegistry",)


class ElementRegistry:
    """
    Mapping of element IDs to decoded elements.

    A registry is filled in three passes: nodes first, then ways, then relations.
    Later passes look up elements of earlier passes to resolve their references.
    Apart from adding elements, the only permitted mutation is marking an element
    as skippable.
    """

    __slots__ = ("_elements",)

    def __init__(self) -> None:
        self._elements: dict[int, Element] = {}

    def put(self, element: Element) -> Element | None:
        """
        Add an element, replacing any element with the same ID.

        Returns:
            the replaced element, or ``None``
        """
        replaced = self._elements.get(element.id)
        self._elements[element.id] = element
        return replaced

    def get(self, elem_id: int) -> Element | None:
        return self._elements.get(elem_id)

    def point_of(self, elem_id: int) -> Coordinate | None:
        """The coordinate of an element with point geometry, or ``None``."""
        elem = self._elements.get(elem_id)
        if elem is not None and isinstance(elem.geometry, Point):
            return elem.geometry.coordinate
        return None

    def way_coordinates_of(self, elem_id: int) -> Ring:
        """The line or ring of a way, or an empty tuple if there is no such way."""
        elem = self._elements.get(elem_id)
        if isinstance(elem, Way):
            return elem.coordinates
        return ()

    def mark_skippable(self, elem_id: int) -> bool:
        """
        Mark an element as skippable, if it is present.

        Returns:
            ``True`` if there is an element with this ID
        """
        elem = self._elements.get(elem_id)
        if elem is None:
            return False
        elem.mark_skippable()
        return True

    def values(self) -> ValuesView[Element]:
        return self._elements.values()

    def as_dict(self) -> dict[int, Element]:
        """A shallow copy of the underlying mapping."""
        return dict(self._elements)

    def __getitem__(self, elem_id: int) -> Element:
        return self._elements[elem_id]

    def __contains__(self, elem_id: object) -> bool:
        return elem_id in self._elements

    def __iter__(self) -> Iterator[int]:
        return iter(self._elements)

    def __len__(self) -> int:
        return len(self._elements)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self)} elements)"
