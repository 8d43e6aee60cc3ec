"""Crop, resize and re-encode images for download.

The pipeline is all-or-nothing: the source is decoded, the optional crop
rectangle is clamped to the decoded image and extracted, the result is
fitted to the target size, and the buffer is re-encoded.  Any failure along
the way raises :class:`TransformError`; no partial output is produced.

Sources
-------
- ``data:[<mime>][;base64],<payload>`` -- inline base64 image data.
- ``http://...`` / ``https://...`` -- fetched with the shared HTTP client.

Anything else raises :class:`UnsupportedSourceError`, which the API reports
as a client error rather than a processing failure.

Fit modes
---------
``cover``
    Scale and centre-crop so the output fills the target exactly.
``contain``
    Scale to fit inside the target and letterbox the rest in opaque black.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Literal

import httpx
from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

FitMode = Literal["cover", "contain"]
OutputFormat = Literal["jpeg", "png"]

# Encoder quality for lossy output.
OUTPUT_QUALITY = 90

CONTENT_TYPES: dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
}

FILE_EXTENSIONS: dict[str, str] = {
    "jpeg": "jpg",
    "png": "png",
}

_PAD_COLOR_RGB = (0, 0, 0)
_PAD_COLOR_RGBA = (0, 0, 0, 255)


class TransformError(Exception):
    """Raised when any stage of the transform pipeline fails."""


class UnsupportedSourceError(TransformError):
    """Raised when the image source is neither a data URI nor an http(s) URL."""


@dataclass(frozen=True)
class CropBox:
    """A crop rectangle in whole source pixels."""

    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def as_pil_box(self) -> tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)


def is_data_uri(source: str) -> bool:
    return source.startswith("data:")


def is_remote_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def decode_data_uri(source: str) -> bytes:
    """Decode the payload of a ``data:`` URI.

    Raises:
        TransformError: If the URI has no payload separator or the payload is
            not valid base64.
    """
    _, sep, payload = source.partition(",")
    if not sep:
        raise TransformError("data URI has no payload")
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise TransformError(f"invalid base64 payload: {exc}") from exc


async def fetch_remote_image(url: str, http: httpx.AsyncClient) -> bytes:
    """Download image bytes from ``url``.

    Raises:
        TransformError: On transport failure or a non-2xx response.
    """
    try:
        response = await http.get(url, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise TransformError(f"failed to download image: {exc}") from exc
    if response.is_error:
        raise TransformError(f"failed to download image: HTTP {response.status_code}")
    return response.content


async def load_source(source: str, http: httpx.AsyncClient) -> bytes:
    """Resolve an image source string to raw image bytes.

    Raises:
        UnsupportedSourceError: If the source form is not recognised.
        TransformError: If decoding or fetching fails.
    """
    if is_data_uri(source):
        return decode_data_uri(source)
    if is_remote_url(source):
        return await fetch_remote_image(source, http)
    raise UnsupportedSourceError("Unsupported image source")


def clamp_crop(
    x: float,
    y: float,
    width: float,
    height: float,
    image_width: int,
    image_height: int,
) -> CropBox:
    """Clamp a crop rectangle to the bounds of a ``image_width x image_height`` image.

    The origin is rounded to whole pixels and bounded to ``[0, dim - 1]``.
    The extent is rounded and bounded to what remains of the image from the
    clamped origin, so ``right <= image_width`` and ``bottom <= image_height``
    always hold.

    Raises:
        TransformError: If the clamped rectangle is empty.
    """
    left = max(0, min(round(x), image_width - 1))
    top = max(0, min(round(y), image_height - 1))
    box_width = min(round(width), image_width - left)
    box_height = min(round(height), image_height - top)
    if box_width <= 0 or box_height <= 0:
        raise TransformError(f"crop rectangle is empty after clamping ({box_width}x{box_height})")
    return CropBox(left=left, top=top, width=box_width, height=box_height)


def _normalise_mode(img: Image.Image) -> Image.Image:
    """Convert to RGB or RGBA so resizing and padding behave uniformly."""
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    return img.convert("RGBA" if has_alpha else "RGB")


def _flatten(img: Image.Image) -> Image.Image:
    """Composite an RGBA image onto black for formats without alpha."""
    if img.mode != "RGBA":
        return img
    background = Image.new("RGB", img.size, _PAD_COLOR_RGB)
    background.paste(img, mask=img.getchannel("A"))
    return background


def fit_image(img: Image.Image, width: int, height: int, fit: FitMode) -> Image.Image:
    """Resize ``img`` to exactly ``width x height`` using ``fit``."""
    if fit == "contain":
        color = _PAD_COLOR_RGBA if img.mode == "RGBA" else _PAD_COLOR_RGB
        return ImageOps.pad(img, (width, height), method=Image.Resampling.LANCZOS, color=color)
    return ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS)


def encode_image(img: Image.Image, output_format: OutputFormat) -> bytes:
    buffer = io.BytesIO()
    if output_format == "png":
        img.save(buffer, format="PNG")
    else:
        _flatten(img).save(buffer, format="JPEG", quality=OUTPUT_QUALITY)
    return buffer.getvalue()


def transform_image(
    data: bytes,
    *,
    width: int,
    height: int,
    crop: tuple[float, float, float, float] | None = None,
    fit: FitMode = "cover",
    output_format: OutputFormat = "jpeg",
) -> bytes:
    """Crop, fit and re-encode raw image bytes.

    Args:
        data: Encoded source image.
        width: Target width in pixels (positive).
        height: Target height in pixels (positive).
        crop: Optional ``(x, y, width, height)`` rectangle in source pixels.
            Clamped to the decoded image before extraction.
        fit: ``"cover"`` or ``"contain"``.
        output_format: ``"jpeg"`` or ``"png"``.

    Returns:
        The encoded output image.

    Raises:
        TransformError: If the image cannot be decoded, the geometry is
            invalid, or encoding fails.
    """
    if width <= 0 or height <= 0:
        raise TransformError(f"target size must be positive, got {width}x{height}")

    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            img = _normalise_mode(source)

            if crop is not None:
                box = clamp_crop(*crop, image_width=img.width, image_height=img.height)
                img = img.crop(box.as_pil_box())

            img = fit_image(img, width, height, fit)
            return encode_image(img, output_format)
    except TransformError:
        raise
    except (OSError, ValueError, ArithmeticError, MemoryError, Image.DecompressionBombError) as exc:
        raise TransformError(f"image processing failed: {exc}") from exc
