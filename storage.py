import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePath


@dataclass(frozen=True)
class StoredFile:
    """An uploaded file held in memory."""
    file_id: str
    filename: str
    original_name: str
    media_type: str
    data: bytes
    uploaded_at: str

    @property
    def size(self) -> int:
        return len(self.data)


class FileStore:
    """In-memory upload storage. Contents are lost when the process exits.

    With ``max_files`` set, the oldest uploads are evicted once the store is
    full, so a long-running server keeps bounded memory.
    """

    def __init__(self, max_files: int | None = None) -> None:
        self._lock = threading.Lock()
        self._files: dict[str, StoredFile] = {}
        self._counter = 0
        self.max_files = max_files

    def put(self, data: bytes, original_name: str, media_type: str) -> StoredFile:
        """Store an upload under a new unique id."""
        with self._lock:
            self._counter += 1
            file_id = f"file_{self._counter}_{time.time_ns() // 1_000_000}"
            extension = PurePath(original_name).suffix.lstrip(".") or "bin"
            stored = StoredFile(
                file_id=file_id,
                filename=f"{file_id}.{extension}",
                original_name=original_name,
                media_type=media_type,
                data=data,
                uploaded_at=datetime.now(timezone.utc).isoformat(),
            )
            self._files[file_id] = stored
            if self.max_files is not None:
                while len(self._files) > self.max_files:
                    del self._files[next(iter(self._files))]
            return stored

    def get(self, file_id: str) -> StoredFile | None:
        with self._lock:
            return self._files.get(file_id)

    def list_files(self) -> list[StoredFile]:
        with self._lock:
            return list(self._files.values())

    def clear(self) -> None:
        with self._lock:
            self._files.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)
