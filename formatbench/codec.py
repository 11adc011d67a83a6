"""
Raster codec adapter.

The conversion engine only talks to the ``Codec`` protocol, so tests can swap in
a fake codec. ``PillowCodec`` is the production implementation.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from PIL import Image, UnidentifiedImageError

from formatbench.errors import CodecError, ImageDecodeError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# Pillow formats that take a 0-100 ``quality`` save option
_QUALITY_FORMATS = {"JPEG", "WEBP", "AVIF"}

# Formats that cannot store an alpha channel
_OPAQUE_FORMATS = {"JPEG"}


@dataclass(frozen=True)
class RasterImage:
    """Decoded pixel surface. ``pixels`` is owned by the codec that produced it."""

    width: int
    height: int
    mode: str
    pixels: Any


class Codec(Protocol):
    def decode(self, data: bytes) -> RasterImage: ...

    def encode(self, image: RasterImage, media_type: str, quality: float | None = None) -> bytes: ...


def pillow_format_for(media_type: str) -> str:
    """Map a media type to a Pillow format name that has a registered writer."""
    Image.init()
    candidates = [
        fmt for fmt, mime in Image.MIME.items()
        if mime == media_type and fmt in Image.SAVE
    ]
    if not candidates:
        raise UnsupportedFormatError(media_type)

    # image/bmp is registered by both BMP and DIB; prefer the one named after the subtype
    subtype = media_type.split("/", 1)[-1].upper()
    return subtype if subtype in candidates else candidates[0]


class PillowCodec:
    """Decode and encode images with Pillow."""

    def decode(self, data: bytes) -> RasterImage:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
                surface = img.convert("RGBA" if has_alpha else "RGB")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Cannot decode image: {e}") from e

        logger.debug(f"Decoded {surface.width}x{surface.height} {surface.mode} image")
        return RasterImage(
            width=surface.width,
            height=surface.height,
            mode=surface.mode,
            pixels=surface,
        )

    def encode(self, image: RasterImage, media_type: str, quality: float | None = None) -> bytes:
        fmt = pillow_format_for(media_type)

        surface: Image.Image = image.pixels
        if fmt in _OPAQUE_FORMATS and surface.mode != "RGB":
            surface = surface.convert("RGB")

        save_kw: dict[str, Any] = {"format": fmt}
        if quality is not None and fmt in _QUALITY_FORMATS:
            save_kw["quality"] = round(quality * 100)

        buf = io.BytesIO()
        try:
            surface.save(buf, **save_kw)
        except (OSError, ValueError, KeyError) as e:
            raise CodecError(f"{fmt} encoder failed: {e}") from e
        return buf.getvalue()
