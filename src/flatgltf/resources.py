"""Buffer and image resolution.

Resolution order for a buffer or image reference:

1. ``data:`` URI -> payload decoded in place
2. image ``bufferView`` -> slice of the already loaded owning buffer
3. otherwise the (percent-decoded) URI is a path relative to the asset
   directory

With ``skip_missing`` a missing external file becomes an empty placeholder
and a warning instead of a :class:`ResourceError`.
"""

from __future__ import annotations

import base64
import binascii
import io
from pathlib import Path
from typing import Container, Optional, Tuple
from urllib.parse import unquote, unquote_to_bytes

import numpy as np
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from .constants import DATA_URI_PREFIX, MAX_RESOURCE_SIZE, OCTET_STREAM_MIME
from .errors import (
    E_BASE64,
    E_IMAGE,
    E_IO,
    E_MISSING,
    E_REF,
    E_SIZE,
    FormatError,
    ResourceError,
    SchemaError,
)
from .logging import get_logger
from .model import Asset, Buffer, Image, ImageData

__all__ = [
    "is_data_uri",
    "decode_data_uri",
    "encode_data_uri",
    "uri_to_path",
    "read_external",
    "load_buffers",
    "load_images",
    "decode_image",
    "peek_image",
    "encode_image",
    "save_buffers",
    "save_images",
]

_MODE_COMPONENTS = {"L": 1, "LA": 2, "RGB": 3, "RGBA": 4}
_COMPONENT_MODES = {v: k for k, v in _MODE_COMPONENTS.items()}
_MIME_FORMATS = {"image/png": "PNG", "image/jpeg": "JPEG"}
# single-channel modes above 8 bits -> divisor to [0, 1] (None: already float)
_WIDE_MODES = {
    "I;16": 65535.0,
    "I;16B": 65535.0,
    "I;16L": 65535.0,
    "I": 65535.0,
    "F": None,
}


def is_data_uri(uri: Optional[str]) -> bool:
    return bool(uri) and uri.startswith(DATA_URI_PREFIX)


def decode_data_uri(uri: str) -> Tuple[str, bytes]:
    """Return ``(mime_type, payload)`` for a ``data:`` URI."""
    header, sep, payload = uri[len(DATA_URI_PREFIX) :].partition(",")
    if not sep:
        raise FormatError(E_BASE64, "Data URI has no ',' separator")
    params = header.split(";")
    mime = params[0] or OCTET_STREAM_MIME
    if "base64" in params[1:]:
        try:
            return mime, base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise FormatError(
                E_BASE64, f"Malformed base64 payload in data URI: {exc}"
            ) from exc
    return mime, unquote_to_bytes(payload)


def encode_data_uri(data: bytes, mime: str = OCTET_STREAM_MIME) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def uri_to_path(base_dir: Path, uri: str) -> Path:
    return Path(base_dir) / unquote(uri)


def read_external(path: Path, max_size: int = MAX_RESOURCE_SIZE) -> bytes:
    if not path.is_file():
        raise ResourceError(
            E_MISSING, f"File not found: {path}", {"path": str(path)}
        )
    size = path.stat().st_size
    if size > max_size:
        raise ResourceError(
            E_SIZE, f"File too large: {size}>{max_size}", {"path": str(path)}
        )
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ResourceError(
            E_IO, f"Cannot read {path}: {exc}", {"path": str(path)}
        ) from exc


def _resolve_buffer(
    buffer: Buffer,
    index: int,
    base_dir: Path,
    glb_bin: Optional[bytes],
) -> bytes:
    if buffer.uri is None:
        if index == 0 and glb_bin is not None:
            return glb_bin[: buffer.byte_length]
        raise ResourceError(
            E_MISSING,
            f"Buffer {index} has no uri and no binary chunk is available",
            {"buffer": index},
        )
    if is_data_uri(buffer.uri):
        return decode_data_uri(buffer.uri)[1]
    return read_external(uri_to_path(base_dir, buffer.uri))


def load_buffers(
    asset: Asset,
    base_dir: Path,
    *,
    skip_missing: bool = False,
    glb_bin: Optional[bytes] = None,
) -> None:
    """Populate ``Buffer.data`` for every buffer of ``asset``."""
    logger = get_logger("resources")
    for i, buffer in enumerate(asset.buffers):
        try:
            data = _resolve_buffer(buffer, i, base_dir, glb_bin)
        except ResourceError as exc:
            if not skip_missing:
                raise
            logger.warning("Skipping buffer %d: %s", i, exc.message)
            buffer.data = b""
            continue
        if len(data) < buffer.byte_length:
            raise SchemaError(
                E_SIZE,
                f"Buffer {i} holds {len(data)} bytes, "
                f"byteLength declares {buffer.byte_length}",
                {"buffer": i},
            )
        buffer.data = data[: buffer.byte_length]
        logger.debug("Loaded buffer %d (%d bytes)", i, len(buffer.data))


def _decode_wide(img: PILImage.Image) -> ImageData:
    values = np.asarray(img).astype(np.float32)
    divisor = _WIDE_MODES[img.mode]
    if divisor is not None:
        values /= divisor
    values = values.reshape(img.height, img.width, 1)
    preview = np.rint(np.clip(values, 0.0, 1.0) * 255.0).astype(np.uint8)
    return ImageData(img.width, img.height, 1, preview, values)


def decode_image(raw: bytes) -> ImageData:
    """Decode encoded image bytes with Pillow.

    16-bit and float grayscale images keep full precision in
    ``ImageData.pixels_f``; other modes are converted to 8-bit L/LA/RGB/RGBA.
    """
    try:
        with PILImage.open(io.BytesIO(raw)) as img:
            if img.mode in _WIDE_MODES:
                img.load()
                return _decode_wide(img)
            if img.mode not in _MODE_COMPONENTS:
                has_alpha = "A" in img.getbands() or "transparency" in img.info
                img = img.convert("RGBA" if has_alpha else "RGB")
            else:
                img.load()
            ncomp = _MODE_COMPONENTS[img.mode]
            pixels = np.asarray(img, dtype=np.uint8).reshape(
                img.height, img.width, ncomp
            )
            return ImageData(img.width, img.height, ncomp, pixels.copy())
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ResourceError(E_IMAGE, f"Cannot decode image: {exc}") from exc


def peek_image(raw: bytes) -> Optional[Tuple[int, int, int]]:
    """Return ``(width, height, ncomp)`` from the image header, or None."""
    if not raw:
        return None
    try:
        with PILImage.open(io.BytesIO(raw)) as img:
            ncomp = _MODE_COMPONENTS.get(img.mode)
            if img.mode in _WIDE_MODES:
                ncomp = 1
            elif ncomp is None:
                ncomp = 4 if "A" in img.getbands() else 3
            return img.width, img.height, ncomp
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def encode_image(data: ImageData, fmt: str = "PNG") -> bytes:
    mode = _COMPONENT_MODES.get(data.ncomp)
    if mode is None:
        raise ResourceError(
            E_IMAGE, f"Unsupported channel count {data.ncomp} for encoding"
        )
    if data.is_float and data.ncomp == 1 and fmt == "PNG":
        # 16-bit grayscale PNG
        values = np.asarray(data.pixels_f, dtype=np.float32).reshape(
            data.height, data.width
        )
        pixels = np.rint(np.clip(values, 0.0, 1.0) * 65535.0).astype(np.uint16)
    else:
        pixels = np.asarray(data.pixels, dtype=np.uint8).reshape(
            data.height, data.width, data.ncomp
        )
        if data.ncomp == 1:
            pixels = pixels[:, :, 0]
    out = io.BytesIO()
    try:
        PILImage.fromarray(pixels).save(out, format=fmt)
    except (OSError, ValueError, KeyError) as exc:
        raise ResourceError(E_IMAGE, f"Cannot encode image: {exc}") from exc
    return out.getvalue()


def _image_bytes(asset: Asset, image: Image, index: int, base_dir: Path) -> bytes:
    if image.uri is not None:
        if is_data_uri(image.uri):
            return decode_data_uri(image.uri)[1]
        return read_external(uri_to_path(base_dir, image.uri))
    if image.buffer_view is not None:
        if not 0 <= image.buffer_view < len(asset.buffer_views):
            raise SchemaError(
                E_REF,
                f"Image {index} references missing bufferView "
                f"{image.buffer_view}",
                {"image": index},
            )
        view = asset.buffer_views[image.buffer_view]
        data = asset.buffers[view.buffer].data
        if not data:
            raise ResourceError(
                E_MISSING,
                f"Image {index} source buffer {view.buffer} is not loaded",
                {"image": index},
            )
        return data[view.byte_offset : view.byte_offset + view.byte_length]
    raise SchemaError(
        E_REF, f"Image {index} has neither uri nor bufferView", {"image": index}
    )


def load_images(
    asset: Asset, base_dir: Path, *, skip_missing: bool = False
) -> None:
    """Populate ``Image.raw`` and decoded ``Image.data`` for every image."""
    logger = get_logger("resources")
    for i, image in enumerate(asset.images):
        try:
            image.raw = _image_bytes(asset, image, i, base_dir)
            image.data = decode_image(image.raw)
        except ResourceError as exc:
            if not skip_missing:
                raise
            logger.warning("Skipping image %d: %s", i, exc.message)
            image.data = None
            continue
        logger.debug(
            "Loaded image %d (%dx%dx%d)",
            i,
            image.data.width,
            image.data.height,
            image.data.ncomp,
        )


def _write(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise ResourceError(
            E_IO, f"Cannot write {path}: {exc}", {"path": str(path)}
        ) from exc


def save_buffers(
    asset: Asset, base_dir: Path, *, skip: Container[int] = ()
) -> None:
    """Write every externally referenced buffer next to the asset."""
    for i, buffer in enumerate(asset.buffers):
        if i in skip or buffer.uri is None or is_data_uri(buffer.uri):
            continue
        _write(uri_to_path(base_dir, buffer.uri), buffer.data)


def save_images(asset: Asset, base_dir: Path) -> None:
    """Write every externally referenced image, re-encoding decoded pixels."""
    logger = get_logger("resources")
    for i, image in enumerate(asset.images):
        if image.uri is None or is_data_uri(image.uri):
            continue
        path = uri_to_path(base_dir, image.uri)
        if image.raw:
            _write(path, image.raw)
        elif image.data is not None:
            fmt = _MIME_FORMATS.get(image.mime_type or "")
            if fmt is None:
                fmt = "JPEG" if path.suffix.lower() in (".jpg", ".jpeg") else "PNG"
            _write(path, encode_image(image.data, fmt))
        else:
            logger.warning("Image %d has no data to save", i)
