"""GeoJSON export of decoded elements."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, TypeAlias


__docformat__ = "google"
__all__ = (
    "GeoJsonDict",
    "GeoFeature",
    "FeatureSource",
)


GeoJsonDict: TypeAlias = dict[str, Any]
"""A dictionary representing a GeoJSON object."""


@dataclass(frozen=True, slots=True)
class GeoFeature:
    """
    One GeoJSON ``Feature``, wrapped to implement ``__geo_interface__``.

    GIS libraries accept any object with that property, so decoded elements can be passed
    on without depending on this package. Note that Shapely's ``shape()`` expects the
    ``geometry`` member of a feature, which is ``None`` for elements without geometry.

    Attributes:
        feature: a GeoJSON ``Feature`` mapping
    """

    feature: GeoJsonDict

    @property
    def __geo_interface__(self) -> GeoJsonDict:
        return self.feature

    @property
    def has_geometry(self) -> bool:
        """``True`` if the feature has a geometry."""
        return self.feature.get("geometry") is not None


class FeatureSource(ABC):
    """
    Base class for objects that are exported as GeoJSON features.

    A single element is one feature, while a decode run is the collection of the
    features of its renderable elements.
    """

    __slots__ = ()

    @abstractmethod
    def features(self) -> Iterator[GeoJsonDict]:
        """
        The GeoJSON ``Feature`` mappings of this object.

        Every GeoJSON coordinate is a tuple of longitude and latitude (in that order),
        while decoded coordinates and Shapely geometries of elements put the latitude first.

        References:
            - https://tools.ietf.org/html/rfc7946#section-3.2
        """
        raise NotImplementedError

    @property
    def geojson(self) -> GeoJsonDict:
        """A ``FeatureCollection`` of all ``features()``."""
        return {
            "type": "FeatureCollection",
            "features": list(self.features()),
        }

    @property
    def geo_interfaces(self) -> tuple[GeoFeature, ...]:
        """The ``features()`` of this object, as ``__geo_interface__`` implementations."""
        return tuple(GeoFeature(feature) for feature in self.features())
