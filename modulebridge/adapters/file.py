"""JSON file storage medium."""
from pathlib import Path
import os
import orjson
import structlog
from .base import StorageMedium, StorageError, QuotaExceededError
from .memory import entry_size

log = structlog.get_logger()


class FileMedium(StorageMedium):
    """
    Medium persisted as one JSON object on disk.

    The document is read once on construction and rewritten after every
    mutation through a temp file and an atomic replace, so a crash never
    leaves a half-written document behind.
    """

    def __init__(self, path: str | Path, quota_bytes: int | None = None):
        """
        Initialize the file medium.

        Args:
            path: Location of the JSON document (created on first write)
            quota_bytes: Optional cap on the total UTF-8 size of keys and values
        """
        self._path = Path(path)
        self._temp_path = self._path.with_name(self._path.name + ".tmp")
        self._quota = quota_bytes or None
        self._items = self._load()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = orjson.loads(self._path.read_bytes())
        except (orjson.JSONDecodeError, OSError) as e:
            log.warning("medium.load_failed", path=str(self._path), error=str(e), medium="file")
            return {}
        if not isinstance(data, dict):
            log.warning("medium.load_failed", path=str(self._path), error="document is not an object", medium="file")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, items: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._temp_path.write_bytes(orjson.dumps(items))
            self._temp_path.replace(self._path)
        except OSError as e:
            log.error("medium.save_failed", path=str(self._path), error=str(e), medium="file")
            raise StorageError(f"cannot write {self._path}: {e}") from e

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        items = dict(self._items)
        items[key] = value
        if self._quota is not None:
            used = sum(entry_size(k, v) for k, v in items.items())
            if used > self._quota:
                log.warning("medium.quota_exceeded", key=key, quota=self._quota, requested=used, medium="file")
                raise QuotaExceededError(f"writing {key!r} needs {used} bytes, quota is {self._quota}")
        self._save(items)
        self._items = items

    def remove_item(self, key: str) -> None:
        if key not in self._items:
            return
        items = dict(self._items)
        del items[key]
        self._save(items)
        self._items = items

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._items if key.startswith(prefix)]

    def health_check(self) -> bool:
        """Healthy when the document directory is writable, or not created yet."""
        parent = self._path.parent
        if not parent.exists():
            return True
        return os.access(parent, os.W_OK)
