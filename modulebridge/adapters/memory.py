"""In-memory storage medium."""
import structlog
from .base import StorageMedium, QuotaExceededError

log = structlog.get_logger()


def entry_size(key: str, value: str) -> int:
    """Bytes an entry counts against a quota."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class InMemoryMedium(StorageMedium):
    """
    Dict-backed medium with insertion-ordered keys.

    An optional quota bounds the total UTF-8 size of keys and values; a write
    that would exceed it raises ``QuotaExceededError`` and leaves the previous
    value in place.
    """

    def __init__(self, quota_bytes: int | None = None):
        self._items: dict[str, str] = {}
        self._quota = quota_bytes or None
        self._used = 0

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        previous = self._items.get(key)
        freed = entry_size(key, previous) if previous is not None else 0
        used = self._used - freed + entry_size(key, value)
        if self._quota is not None and used > self._quota:
            log.warning("medium.quota_exceeded", key=key, quota=self._quota, requested=used, medium="memory")
            raise QuotaExceededError(f"writing {key!r} needs {used} bytes, quota is {self._quota}")
        self._items[key] = value
        self._used = used

    def remove_item(self, key: str) -> None:
        previous = self._items.pop(key, None)
        if previous is not None:
            self._used -= entry_size(key, previous)

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._items if key.startswith(prefix)]

    @property
    def used_bytes(self) -> int:
        return self._used
