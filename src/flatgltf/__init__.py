"""flatgltf: glTF 2.0 reader/writer with scene flattening."""

from __future__ import annotations

__version__ = "0.1.0"

from .api import (  # noqa: E402
    LoadOptions,
    SaveOptions,
    flatten,
    load,
    load_options_file,
    save,
    summarize,
    unflatten,
)
from .errors import (  # noqa: E402
    FormatError,
    GltfError,
    GraphError,
    ResourceError,
    SchemaError,
)
from .flat import FlatModel  # noqa: E402
from .model import Asset  # noqa: E402

__all__ = [
    "__version__",
    "load",
    "save",
    "flatten",
    "unflatten",
    "summarize",
    "load_options_file",
    "LoadOptions",
    "SaveOptions",
    "Asset",
    "FlatModel",
    "GltfError",
    "FormatError",
    "SchemaError",
    "ResourceError",
    "GraphError",
]
