"""
HTTP transport to the upload/download endpoint.

This is the seam whose latency the orchestrator measures, so nothing here
caches or short-circuits a request.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from formatbench.errors import DownloadError, UnexpectedResponseError, UploadError

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "files[]"
NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


@dataclass(frozen=True)
class UploadResult:
    """First entry of the upload endpoint's ``files`` list."""

    url: str
    filename: str | None = None
    size: int | None = None


class Transport(Protocol):
    def upload(
        self, payload: bytes, filename: str, media_type: str = "application/octet-stream"
    ) -> UploadResult: ...

    def download(self, url: str) -> bytes: ...


def parse_upload_response(data: object) -> UploadResult:
    """Extract the file URL from ``{"files": [{"url", "filename", "size"}]}``."""
    if not isinstance(data, dict):
        raise UnexpectedResponseError("Upload failed: response is not a JSON object")
    files = data.get("files")
    if not isinstance(files, list) or not files:
        raise UnexpectedResponseError("Upload failed: No file URL returned")
    entry = files[0]
    if not isinstance(entry, dict) or not entry.get("url"):
        raise UnexpectedResponseError("Upload failed: No file URL returned")
    return UploadResult(url=str(entry["url"]), filename=entry.get("filename"), size=entry.get("size"))


class HttpTransport:
    """httpx-based transport for ``POST /upload`` and ``GET <url>``.

    Use as a context manager, or pass an already-configured ``httpx.Client``
    (the caller then owns its lifetime).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def __enter__(self) -> HttpTransport:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
            )
            self._owns_client = True
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        if self._client and self._owns_client:
            self._client.close()
            self._client = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'with' context manager.")
        return self._client

    def health_check(self) -> bool:
        """Check if the server is responding."""
        try:
            response = self.client.get("/health", headers=NO_CACHE_HEADERS)
            return response.status_code in (200, 404, 405)
        except httpx.RequestError as e:
            logger.debug(f"Health check failed: {e}")
            return False

    def upload(
        self, payload: bytes, filename: str, media_type: str = "application/octet-stream"
    ) -> UploadResult:
        files = {UPLOAD_FIELD: (filename, payload, media_type)}
        try:
            response = self.client.post("/upload", files=files, headers=NO_CACHE_HEADERS)
        except httpx.HTTPError as e:
            raise UploadError(f"Upload failed: {e}") from e

        if response.is_error:
            raise UploadError(f"Upload failed: {response.status_code} {response.reason_phrase}")

        try:
            data = response.json()
        except ValueError as e:
            raise UnexpectedResponseError(f"Upload failed: invalid JSON response ({e})") from e

        result = parse_upload_response(data)
        logger.debug(f"Uploaded {filename} ({len(payload)} bytes) -> {result.url}")
        return result

    def download(self, url: str) -> bytes:
        try:
            response = self.client.get(url, headers=NO_CACHE_HEADERS)
        except httpx.HTTPError as e:
            raise DownloadError(f"Download failed: {e}") from e

        if response.is_error:
            raise DownloadError(f"Download failed: {response.status_code} {response.reason_phrase}")

        logger.debug(f"Downloaded {url} ({len(response.content)} bytes)")
        return response.content


def wait_for_server(base_url: str, timeout: float = 60.0, poll_interval: float = 0.5) -> bool:
    """Wait for the server to become available.

    Args:
        base_url: Server URL to check
        timeout: Maximum time to wait in seconds
        poll_interval: Time between checks in seconds

    Returns:
        True if server is available, False if timeout reached
    """
    start = time.monotonic()
    with httpx.Client(base_url=base_url, timeout=5.0) as client:
        while time.monotonic() - start < timeout:
            try:
                response = client.get("/health")
                if response.status_code in (200, 404, 405):
                    return True
            except httpx.RequestError:
                pass
            time.sleep(poll_interval)

    return False
