from __future__ import annotations

import base64
import binascii
import io
import re
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import ProviderError

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})

_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}

DATA_URI_PATTERN = re.compile(r"^data:(image/(png|jpeg|jpg|webp));base64,([A-Za-z0-9+/=]+)$")
_DATA_URI_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


def is_remote_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def mime_type_for(path: str | Path) -> str:
    ext = Path(path).suffix.lstrip(".").lower()
    try:
        return _MIME_TYPES[ext]
    except KeyError as exc:
        supported = ", ".join(sorted(_MIME_TYPES))
        raise ValueError(f"Unsupported image format: {ext or '<none>'}. Supported formats: {supported}") from exc


def image_to_data_url(path: str | Path) -> str:
    """Encode a local image file as a ``data:`` URI."""
    file_path = Path(path)
    mime_type = mime_type_for(file_path)
    encoded = base64.b64encode(file_path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def resolve_image_source(value: str) -> str:
    """Return URLs and data URIs untouched; turn local paths into data URIs."""
    if is_remote_url(value) or value.startswith("data:"):
        return value
    path = Path(value).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")
    return image_to_data_url(path)


def decode_base64_image(payload: str) -> bytes:
    """Decode an inline base64 payload, stripping any ``data:image/...`` prefix."""
    stripped = _DATA_URI_PREFIX.sub("", payload.strip())
    try:
        return base64.b64decode(stripped, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise ProviderError("Image payload is not valid base64 data") from exc


def describe_data_uri(value: str) -> tuple[str, str, int]:
    """
    Validate a ``data:image/...;base64,`` URI.

    Returns the media type, the format suffix and the decoded size in bytes.
    """
    match = DATA_URI_PATTERN.match(value)
    if not match:
        raise ProviderError("Reference image must be in format: data:<mediaType>;base64,<encodedData>")
    media_type, image_format, encoded = match.groups()
    try:
        size = len(base64.b64decode(encoded, validate=True))
    except (ValueError, binascii.Error) as exc:
        raise ProviderError("Reference image contains invalid base64 data") from exc
    return media_type, image_format, size


def image_dimensions(data: bytes) -> str | None:
    """Return ``WIDTHxHEIGHT`` for decodable image bytes, ``None`` otherwise."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError):
        return None
    return f"{width}x{height}"
