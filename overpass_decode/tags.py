"""Tag policies that decide how elements are classified."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from overpass_decode.geometry import Coordinate, is_closed


__docformat__ = "google"
__all__ = (
    "TagPolicy",
    "DEFAULT_POLICY",
)


@dataclass(kw_only=True, slots=True, frozen=True, eq=False)
class TagPolicy:
    """
    Vocabulary used to classify elements by their tags.

    All decisions that depend on tag keys or values are made through a policy, so that
    decoding can be tested with synthetic vocabularies, or adjusted to a particular map style.
    Subclasses may override the classifying methods entirely.

    Attributes:
        interesting_keys: An element that has any of these keys is worth rendering
                          or labelling on its own.
        area_keys: A closed way with any of these keys is an area,
                   unless the tag value is ``"no"``.
        area_values_one_of: A closed way is an area if a tag value is among the listed
                            values for its key.
        area_values_none_of: A closed way is an area if it has one of these keys,
                             and the tag value is *not* among the listed values.
        linear_keys: A closed way with any of these keys is *not* an area, unless the tag
                     value is listed in ``area_values_one_of``. This takes precedence
                     over ``area_keys``.
        displayable_relation_types: Relations with one of these ``type`` tags get geometry.
        polygon_relation_types: Displayable relation types that make up (multi-)polygons.
                                Other displayable relations make up polylines.

    References:
        - https://wiki.openstreetmap.org/wiki/Overpass_turbo/Polygon_Features
        - https://wiki.openstreetmap.org/wiki/Relation:multipolygon
    """

    interesting_keys: frozenset[str] = frozenset()
    area_keys: frozenset[str] = frozenset()
    area_values_one_of: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    area_values_none_of: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    linear_keys: frozenset[str] = frozenset()
    displayable_relation_types: frozenset[str] = frozenset(
        {"multipolygon", "barrier", "route", "waterway"}
    )
    polygon_relation_types: frozenset[str] = frozenset({"multipolygon", "barrier"})

    def __post_init__(self) -> None:
        if not self.polygon_relation_types <= self.displayable_relation_types:
            msg = "'polygon_relation_types' must be a subset of 'displayable_relation_types'"
            raise ValueError(msg)

        if overlap := self.area_keys & self.linear_keys:
            msg = f"keys cannot be both area and linear keys: {sorted(overlap)}"
            raise ValueError(msg)

    def is_interesting(self, tags: Mapping[str, str]) -> bool:
        """``True`` if the tags describe something worth rendering on its own."""
        return any(key in tags for key in self.interesting_keys)

    def is_area(self, coordinates: Sequence[Coordinate], tags: Mapping[str, str]) -> bool:
        """
        Decide if a way likely represents an area, and should be viewed as a polygon.

        Returns:
            ``False`` if the coordinates do not form a closed ring.
            ``False``, unless there are tags which indicate that the way represents an area.
        """
        if not is_closed(coordinates):
            return False

        # Check if the way is explicitly tagged as area or not
        match tags.get("area"):
            case "no":
                return False
            case "yes":
                return True

        # Check if the way is tagged as something that is only ever a line
        for key in self.linear_keys:
            if key in tags and tags[key] not in self.area_values_one_of.get(key, ()):
                return False

        # Check if there is a tag where any value other than 'no' suggests area
        if any(tags.get(key, "no") != "no" for key in self.area_keys):
            return True

        # Check if there are tag values that suggest area
        return any(
            (
                v in self.area_values_one_of.get(k, ())
                or v not in self.area_values_none_of.get(k, (v,))
                for k, v in tags.items()
            )
        )

    def is_displayable(self, relation_type: str | None) -> bool:
        """``True`` if relations of this type get a geometry."""
        return relation_type in self.displayable_relation_types

    def is_polygon_relation(self, relation_type: str | None) -> bool:
        """``True`` if relations of this type make up (multi-)polygons."""
        return relation_type in self.polygon_relation_types


_INTERESTING_KEYS = frozenset(
    {
        "amenity",
        "building",
        "craft",
        "historic",
        "leisure",
        "man_made",
        "name",
        "office",
        "public_transport",
        "shop",
        "sport",
        "tourism",
    }
)

_AREA_KEYS = frozenset(
    {
        "area:highway",
        "amenity",
        "boundary",
        "building",
        "building:part",
        "craft",
        "golf",
        "historic",
        "indoor",
        "landuse",
        "leisure",
        "military",
        "office",
        "place",
        "public_transport",
        "ruins",
        "shop",
        "tourism",
    }
)

_AREA_VALUES_ONE_OF = MappingProxyType(
    {
        "barrier": frozenset({"city_wall", "ditch", "hedge", "retaining_wall", "wall", "spikes"}),
        "highway": frozenset({"services", "rest_area", "escape", "elevator", "pedestrian"}),
        "power": frozenset({"plant", "substation", "generator", "transformer"}),
        "railway": frozenset({"station", "turntable", "roundhouse", "platform"}),
        "waterway": frozenset({"riverbank", "dock", "boatyard", "dam"}),
    }
)

_AREA_VALUES_NONE_OF = MappingProxyType(
    {
        "aeroway": frozenset({"no", "taxiway"}),
        "man_made": frozenset({"no", "cutline", "embankment", "pipeline"}),
        "natural": frozenset({"no", "coastline", "cliff", "ridge", "arete", "tree_row"}),
    }
)

DEFAULT_POLICY = TagPolicy(
    interesting_keys=_INTERESTING_KEYS,
    area_keys=_AREA_KEYS,
    area_values_one_of=_AREA_VALUES_ONE_OF,
    area_values_none_of=_AREA_VALUES_NONE_OF,
    linear_keys=frozenset({"barrier", "highway"}),
)
"""
Policy for OpenStreetMap's tagging conventions.

References:
    - https://github.com/drolbr/Overpass-API/blob/master/src/rules/areas.osm3s
    - https://github.com/tyrasd/osm-polygon-features/blob/master/polygon-features.json
"""
