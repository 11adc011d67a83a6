"""
Exception hierarchy for the transcoding and benchmark pipeline.
"""

from __future__ import annotations


class FormatBenchError(Exception):
    """Base class for all pipeline errors."""


class CodecError(FormatBenchError):
    """Raised by a codec when decoding or encoding fails."""


class ImageDecodeError(CodecError):
    """The source bytes are not a decodable raster image."""


class UnsupportedFormatError(CodecError):
    """The codec has no encoder for the requested media type."""

    def __init__(self, media_type: str):
        super().__init__(f"No encoder available for {media_type}")
        self.media_type = media_type


class TransportError(FormatBenchError):
    """Base class for network transport failures."""


class UploadError(TransportError):
    """Upload failed (network error or non-2xx status)."""


class UnexpectedResponseError(UploadError):
    """Upload returned 2xx but the body did not contain a file URL."""


class DownloadError(TransportError):
    """Download of an uploaded file failed."""
