"""
Format conversion engine: one decode, N best-effort encodes.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from formatbench.codec import Codec, PillowCodec
from formatbench.formats import DEFAULT_CATALOG, FormatDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceImage:
    """The image submitted by the user, exactly as received."""

    payload: bytes
    media_type: str
    name: str

    @property
    def size_bytes(self) -> int:
        return len(self.payload)

    @classmethod
    def from_path(cls, path: Path) -> SourceImage:
        """Read an image file, guessing its media type from the extension."""
        path = Path(path)
        media_type, _ = mimetypes.guess_type(path.name)
        return cls(
            payload=path.read_bytes(),
            media_type=media_type or "application/octet-stream",
            name=path.name,
        )


@dataclass(frozen=True)
class EncodedVariant:
    """Source image re-encoded under one format descriptor."""

    format_id: str
    payload: bytes
    media_type: str

    @property
    def size_bytes(self) -> int:
        """Exact encoded size; this is what the upload will carry."""
        return len(self.payload)


class ConversionEngine:
    """Converts a source image into every format of a catalog.

    Encoding is best-effort: a format whose encoder fails is logged and left
    out of the result, the others are still produced.
    """

    def __init__(
        self,
        codec: Codec | None = None,
        catalog: Iterable[FormatDescriptor] = DEFAULT_CATALOG,
    ):
        self.codec = codec or PillowCodec()
        self.catalog = tuple(catalog)

    def convert(self, source: SourceImage) -> dict[str, EncodedVariant]:
        """Encode ``source`` into each catalog format, in catalog order.

        Raises:
            ImageDecodeError: If the source is not a decodable raster image.
        """
        raster = self.codec.decode(source.payload)
        logger.info(
            f"Converting {source.name} ({raster.width}x{raster.height}) "
            f"into {len(self.catalog)} formats"
        )

        variants: dict[str, EncodedVariant] = {}
        for descriptor in self.catalog:
            try:
                payload = self.codec.encode(raster, descriptor.media_type, descriptor.quality)
            except Exception as e:
                logger.warning(f"Failed to convert {source.name} to {descriptor.id}: {e}")
                continue

            variants[descriptor.id] = EncodedVariant(
                format_id=descriptor.id,
                payload=payload,
                media_type=descriptor.media_type,
            )
            logger.debug(f"Encoded {descriptor.id}: {len(payload)} bytes")

        logger.info(f"Produced {len(variants)}/{len(self.catalog)} variants for {source.name}")
        return variants
