import io
import random
import threading

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import main
from formatbench.codec import RasterImage
from formatbench.conversion import SourceImage
from formatbench.errors import DownloadError, UnsupportedFormatError, UploadError
from formatbench.transport import UploadResult


def make_png(width: int = 60, height: int = 60, seed: int = 0, mode: str = "RGB") -> bytes:
    """Noise PNG; 60x60 RGB noise compresses to roughly 10 KB."""
    channels = len(mode)
    data = random.Random(seed).randbytes(width * height * channels)
    img = Image.frombytes(mode, (width, height), data)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class FakeCodec:
    """Codec that never touches pixels. Media types in ``unsupported`` fail to encode."""

    def __init__(self, unsupported: set[str] | None = None):
        self.unsupported = unsupported or set()
        self.decode_calls = 0
        self.encoded: list[tuple[str, float | None]] = []

    def decode(self, data: bytes) -> RasterImage:
        self.decode_calls += 1
        return RasterImage(width=4, height=3, mode="RGB", pixels=data)

    def encode(self, image: RasterImage, media_type: str, quality: float | None = None) -> bytes:
        if media_type in self.unsupported:
            raise UnsupportedFormatError(media_type)
        self.encoded.append((media_type, quality))
        return f"{media_type};q={quality};".encode() + image.pixels


class FakeTransport:
    """In-memory transport that records every call in order.

    ``fail_uploads`` / ``fail_downloads`` hold filename suffixes (e.g. "bmp")
    whose transfers should fail. ``on_upload`` is called with the filename
    before each upload, to observe or interfere with a run mid-flight.
    """

    def __init__(self, fail_uploads=(), fail_downloads=(), on_upload=None):
        self.fail_uploads = set(fail_uploads)
        self.fail_downloads = set(fail_downloads)
        self.on_upload = on_upload
        self.calls: list[tuple[str, str]] = []
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _suffix(name: str) -> str:
        return name.rsplit(".", 1)[-1]

    def upload(self, payload: bytes, filename: str, media_type: str = "application/octet-stream") -> UploadResult:
        if self.on_upload:
            self.on_upload(filename)
        with self._lock:
            self.calls.append(("upload", filename))
            if self._suffix(filename) in self.fail_uploads:
                raise UploadError(f"Upload failed: 500 Internal Server Error ({filename})")
            url = f"mem://{len(self._blobs)}/{filename}"
            self._blobs[url] = payload
        return UploadResult(url=url, filename=filename, size=len(payload))

    def download(self, url: str) -> bytes:
        with self._lock:
            self.calls.append(("download", url))
            if self._suffix(url) in self.fail_downloads:
                raise DownloadError("Download failed: 404 Not Found")
            return self._blobs[url]

    @property
    def uploaded_filenames(self) -> list[str]:
        return [name for kind, name in self.calls if kind == "upload"]


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def source(png_bytes) -> SourceImage:
    return SourceImage(payload=png_bytes, media_type="image/png", name="photo.png")


@pytest.fixture
def fake_codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def make_codec():
    """Factory for FakeCodec with a set of unsupported media types."""
    return FakeCodec


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_transport():
    """Factory for FakeTransport with failure / hook options."""
    return FakeTransport


@pytest.fixture
def api_client():
    """In-process client for the reference upload server."""
    main.file_store.clear()
    with TestClient(main.app) as client:
        yield client
    main.file_store.clear()
