"""
Geospatial feature engine for public works infrastructure maps.

Ingests GeoJSON datasets of roads, bridges and kilometer posts, keeps the features
within a radius of a moving reference point, and maps them to drawable primitives.
"""

import importlib.metadata
from pathlib import Path


__version__: str = importlib.metadata.version("infra-nearby")

# we add this to all modules for pdoc;
# see https://pdoc.dev/docs/pdoc.html#use-numpydoc-or-google-docstrings
__docformat__ = "google"

# we also use __all__ in all modules for pdoc; this lets us control the order
__all__ = (
    "__version__",
    "Coordinate",
    "EngineError",
    "Feature",
    "FeatureCollection",
    "FeatureStore",
    "filter_nearby",
    "to_primitives",
    "distance",
    "error",
    "feature",
    "geometry",
    "nearby",
    "normalize",
    "proximity",
    "render",
    "spatial",
    "store",
    "style",
    "summary",
)

from .error import EngineError
from .feature import Feature, FeatureCollection
from .geometry import Coordinate
from .proximity import filter_nearby
from .render import to_primitives
from .store import FeatureStore


# extend the module's docstring
__doc__ += "\n<br>\n"
__doc__ += (Path(__file__).parent / "doc" / "usage.md").read_text(encoding="utf-8")
