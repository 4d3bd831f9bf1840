"""Error definitions for flatgltf."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

E_MAGIC = "E_MAGIC"
E_VERSION = "E_VERSION"
E_LENGTH = "E_LENGTH"
E_CHUNK = "E_CHUNK"
E_BASE64 = "E_BASE64"
E_JSON = "E_JSON"
E_FIELD = "E_FIELD"
E_REF = "E_REF"
E_TYPE = "E_TYPE"
E_RANGE = "E_RANGE"
E_SIZE = "E_SIZE"
E_MISSING = "E_MISSING"
E_IO = "E_IO"
E_IMAGE = "E_IMAGE"
E_CYCLE = "E_CYCLE"


@dataclass
class GltfError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" + (
            f" | ctx={self.context}" if self.context else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


class FormatError(GltfError):
    """Malformed container framing or embedded payload."""


class SchemaError(GltfError):
    """Missing required field, bad reference or inconsistent typing."""


class ResourceError(GltfError):
    """External buffer or image could not be resolved."""


class GraphError(GltfError):
    """Malformed node hierarchy."""


__all__ = [
    "GltfError",
    "FormatError",
    "SchemaError",
    "ResourceError",
    "GraphError",
    "E_MAGIC",
    "E_VERSION",
    "E_LENGTH",
    "E_CHUNK",
    "E_BASE64",
    "E_JSON",
    "E_FIELD",
    "E_REF",
    "E_TYPE",
    "E_RANGE",
    "E_SIZE",
    "E_MISSING",
    "E_IO",
    "E_IMAGE",
    "E_CYCLE",
]
