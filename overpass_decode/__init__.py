"""
Decoder for Overpass API responses, that resolves element geometry for rendering.

A response is decoded into nodes, ways and relations. Ways and relations get their
full geometry, which is resolved from their members where needed: lines of member ways
are merged into rings, and inner rings are nested into outer rings to make up
polygons with holes.
"""

import importlib.metadata


__version__: str = importlib.metadata.version("overpass-decode")

# we add this to all modules for pdoc;
# see https://pdoc.dev/docs/pdoc.html#use-numpydoc-or-google-docstrings
__docformat__ = "google"

# we also use __all__ in all modules for pdoc; this lets us control the order
__all__ = (
    "__version__",
    "DecodeRun",
    "Decoder",
    "DecodeError",
    "TagPolicy",
    "DEFAULT_POLICY",
    "assemble",
    "decode",
    "decoder",
    "element",
    "error",
    "geometry",
    "registry",
    "rings",
    "run",
    "spatial",
    "tags",
)

from .decoder import Decoder
from .error import DecodeError
from .run import DecodeRun
from .tags import DEFAULT_POLICY, TagPolicy
