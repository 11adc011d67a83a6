"""
Static catalog of target encodings.
"""

from __future__ import annotations

from dataclasses import dataclass

ORIGINAL_ID = "original"


@dataclass(frozen=True)
class FormatDescriptor:
    """One target encoding: identifier, media type and optional quality in [0, 1]."""

    id: str
    media_type: str
    quality: float | None = None

    def __post_init__(self) -> None:
        if self.id == ORIGINAL_ID:
            raise ValueError(f"'{ORIGINAL_ID}' is reserved for the source image")
        if self.quality is not None and not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be in [0, 1], got {self.quality}")

    @property
    def extension(self) -> str:
        """File suffix used for synthetic upload filenames."""
        return self.id


DEFAULT_CATALOG: tuple[FormatDescriptor, ...] = (
    FormatDescriptor("jpeg", "image/jpeg", 0.9),
    FormatDescriptor("png", "image/png"),
    FormatDescriptor("webp", "image/webp", 0.9),
    FormatDescriptor("bmp", "image/bmp"),
    FormatDescriptor("avif", "image/avif"),
)
