"""glTF 2.0 enumerations and binary container constants."""

from __future__ import annotations

# Binary container (GLB)
GLB_MAGIC = b"glTF"
GLB_VERSION = 2
GLB_HEADER_SIZE = 12
GLB_CHUNK_HEADER_SIZE = 8
CHUNK_TYPE_JSON = 0x4E4F534A  # 'JSON'
CHUNK_TYPE_BIN = 0x004E4942  # 'BIN\0'

# Accessor component types
BYTE = 5120
UNSIGNED_BYTE = 5121
SHORT = 5122
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

# struct format char, byte size, normalization divisor (None for float)
COMPONENT_TYPES: dict[int, tuple[str, int, float | None]] = {
    BYTE: ("b", 1, 127.0),
    UNSIGNED_BYTE: ("B", 1, 255.0),
    SHORT: ("h", 2, 32767.0),
    UNSIGNED_SHORT: ("H", 2, 65535.0),
    UNSIGNED_INT: ("I", 4, 4294967295.0),
    FLOAT: ("f", 4, None),
}

SIGNED_COMPONENT_TYPES = frozenset({BYTE, SHORT})
INDEX_COMPONENT_TYPES = frozenset({UNSIGNED_BYTE, UNSIGNED_SHORT, UNSIGNED_INT})

# Accessor shapes -> component count
ACCESSOR_TYPES: dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

# Buffer view targets
ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

# Primitive modes
POINTS = 0
LINES = 1
LINE_LOOP = 2
LINE_STRIP = 3
TRIANGLES = 4
TRIANGLE_STRIP = 5
TRIANGLE_FAN = 6
PRIMITIVE_MODES = frozenset(range(7))

# Sampler filters / wraps
NEAREST = 9728
LINEAR = 9729
NEAREST_MIPMAP_NEAREST = 9984
LINEAR_MIPMAP_NEAREST = 9985
NEAREST_MIPMAP_LINEAR = 9986
LINEAR_MIPMAP_LINEAR = 9987
MAG_FILTERS = frozenset({NEAREST, LINEAR})
MIN_FILTERS = frozenset(
    {
        NEAREST,
        LINEAR,
        NEAREST_MIPMAP_NEAREST,
        LINEAR_MIPMAP_NEAREST,
        NEAREST_MIPMAP_LINEAR,
        LINEAR_MIPMAP_LINEAR,
    }
)
CLAMP_TO_EDGE = 33071
MIRRORED_REPEAT = 33648
REPEAT = 10497
WRAP_MODES = frozenset({CLAMP_TO_EDGE, MIRRORED_REPEAT, REPEAT})

# Animation
INTERPOLATIONS = frozenset({"LINEAR", "STEP", "CUBICSPLINE"})
ANIMATION_PATHS = frozenset({"translation", "rotation", "scale", "weights"})

CAMERA_PERSPECTIVE = "perspective"
CAMERA_ORTHOGRAPHIC = "orthographic"

ALPHA_MODES = frozenset({"OPAQUE", "MASK", "BLEND"})
KHR_SPECULAR_GLOSSINESS = "KHR_materials_pbrSpecularGlossiness"

OCTET_STREAM_MIME = "application/octet-stream"
DATA_URI_PREFIX = "data:"

IDENTITY_MATRIX: tuple[float, ...] = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)  # fmt: skip

# Upper bound on external resource reads (bytes)
MAX_RESOURCE_SIZE = 1024 * 1024 * 1024

