"""Namespaced key-value store over a shared durable medium."""
from typing import Any, Callable, Mapping
from pydantic import BaseModel, ConfigDict
import math
import orjson
import structlog
from ..adapters.base import StorageMedium, StorageError
from ..event_models import StorageChanged, StorageRemoved, StorageCleared
from ..metrics import Metrics
from .event_channel import EventChannel

log = structlog.get_logger()

Serializer = Callable[[Any], str]
Deserializer = Callable[[str], Any]

DEFAULT_PREFIX = "microfrontend:"


def json_serialize(value: Any) -> str:
    """
    Encode ``value`` as JSON text.

    Raises:
        ValueError: If ``value`` holds NaN or an infinity, which JSON cannot
            represent and orjson would otherwise write as ``null``
    """
    _check_finite(value)
    return orjson.dumps(value).decode("utf-8")


def _check_finite(value: Any) -> None:
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"cannot store non-finite float {value!r}")
    elif isinstance(value, dict):
        for item in value.values():
            _check_finite(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_finite(item)


def json_deserialize(text: str) -> Any:
    return orjson.loads(text)


class StoreResult(BaseModel):
    """Outcome of a store mutation. Truthy on success."""
    model_config = ConfigDict(frozen=True)

    ok: bool
    key: str | None = None
    error: str | None = None

    def __bool__(self) -> bool:
        return self.ok


class PersistentStore:
    """
    Key-value facade over the slice of a medium that starts with ``prefix``.

    Values are serialized to strings on the way in and deserialized on the
    way out. Every successful mutation is announced on the channel as
    ``storage:changed``, ``storage:removed`` or ``storage:cleared`` carrying
    the unprefixed key. Medium and serializer faults never raise out of the
    store: reads fall back to a default, writes return a failed
    ``StoreResult`` and publish nothing.

    Stores sharing a prefix share their data.
    """

    def __init__(
        self,
        channel: EventChannel,
        medium: StorageMedium,
        prefix: str = DEFAULT_PREFIX,
        serialize: Serializer = json_serialize,
        deserialize: Deserializer = json_deserialize,
        source: str = "persistent-store",
        metrics: Metrics | None = None,
    ):
        """
        Initialize the store.

        Args:
            channel: Channel receiving mutation events
            medium: Durable medium shared with other stores
            prefix: Namespace prepended to every logical key
            serialize: Value -> string encoder
            deserialize: String -> value decoder, inverse of ``serialize``
            source: Source tag stamped on published events
            metrics: Optional metrics sink
        """
        if not isinstance(prefix, str):
            raise TypeError(f"prefix must be a string, got {type(prefix).__name__}")
        if not callable(serialize) or not callable(deserialize):
            raise TypeError("serialize and deserialize must be callable")
        self._channel = channel
        self._medium = medium
        self._prefix = prefix
        self._serialize = serialize
        self._deserialize = deserialize
        self._source = source
        self._metrics = metrics

    @property
    def prefix(self) -> str:
        return self._prefix

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read and deserialize ``key``.

        Returns:
            The stored value, or ``default`` when the key is unset or unreadable
        """
        full_key = self._full_key(key)
        try:
            raw = self._medium.get_item(full_key)
        except StorageError as e:
            log.error("store.read_failed", key=key, prefix=self._prefix, error=str(e))
            self._record("get", ok=False)
            return default
        if raw is None:
            return default
        try:
            return self._deserialize(raw)
        except Exception as e:
            log.error("store.deserialize_failed", key=key, prefix=self._prefix, error=str(e))
            self._record("get", ok=False)
            return default

    def set(self, key: str, value: Any) -> StoreResult:
        """
        Serialize ``value`` under ``key`` and announce ``storage:changed``.

        Nothing is published when serialization or the write fails.
        """
        full_key = self._full_key(key)
        try:
            raw = self._serialize(value)
            event = StorageChanged(source=self._source, payload={"key": key, "value": value})
        except Exception as e:
            log.error("store.serialize_failed", key=key, prefix=self._prefix, error=str(e))
            self._record("set", ok=False)
            return StoreResult(ok=False, key=key, error=str(e))
        try:
            self._medium.set_item(full_key, raw)
        except StorageError as e:
            log.error("store.write_failed", key=key, prefix=self._prefix, error=str(e), error_type=type(e).__name__)
            self._record("set", ok=False)
            return StoreResult(ok=False, key=key, error=str(e))

        self._record("set")
        self._channel.publish(event)
        return StoreResult(ok=True, key=key)

    def remove(self, key: str) -> StoreResult:
        """
        Delete ``key`` and announce ``storage:removed``.

        Removing an unset key succeeds and is announced as well.
        """
        full_key = self._full_key(key)
        try:
            self._medium.remove_item(full_key)
        except StorageError as e:
            log.error("store.remove_failed", key=key, prefix=self._prefix, error=str(e))
            self._record("remove", ok=False)
            return StoreResult(ok=False, key=key, error=str(e))

        self._record("remove")
        self._channel.publish(StorageRemoved(source=self._source, payload={"key": key}))
        return StoreResult(ok=True, key=key)

    def clear(self) -> int:
        """
        Delete every key under the prefix and announce ``storage:cleared``.

        Keys outside the prefix are never touched.

        Returns:
            Number of keys deleted
        """
        try:
            keys = self._medium.keys(self._prefix)
        except StorageError as e:
            log.error("store.clear_failed", prefix=self._prefix, error=str(e))
            self._record("clear", ok=False)
            return 0

        cleared = 0
        for full_key in keys:
            if not full_key.startswith(self._prefix):
                continue
            try:
                self._medium.remove_item(full_key)
            except StorageError as e:
                log.error("store.remove_failed", key=full_key, prefix=self._prefix, error=str(e))
                continue
            cleared += 1

        self._record("clear")
        log.info("store.cleared", prefix=self._prefix, cleared_keys=cleared)
        self._channel.publish(StorageCleared(source=self._source, payload={"clearedKeys": cleared}))
        return cleared

    def exists(self, key: str) -> bool:
        full_key = self._full_key(key)
        try:
            return self._medium.get_item(full_key) is not None
        except StorageError as e:
            log.error("store.read_failed", key=key, prefix=self._prefix, error=str(e))
            return False

    def list_keys(self) -> list[str]:
        """Fully-namespaced keys under the prefix, in medium order."""
        try:
            keys = self._medium.keys(self._prefix)
        except StorageError as e:
            log.error("store.list_failed", prefix=self._prefix, error=str(e))
            return []
        return [k for k in keys if k.startswith(self._prefix)]

    def size(self) -> int:
        return len(self.list_keys())

    def export_all(self) -> dict[str, Any]:
        """
        Snapshot every readable entry under the prefix.

        Returns:
            Mapping of unprefixed key to deserialized value. Entries that
            cannot be read are logged and left out.
        """
        exported: dict[str, Any] = {}
        for full_key in self.list_keys():
            key = full_key[len(self._prefix):]
            try:
                raw = self._medium.get_item(full_key)
                if raw is None:
                    continue
                exported[key] = self._deserialize(raw)
            except Exception as e:
                log.warning("store.export_skipped", key=key, prefix=self._prefix, error=str(e))
        return exported

    def import_all(self, entries: Mapping[str, Any]) -> list[StoreResult]:
        """
        ``set`` every entry in iteration order.

        A failed entry is reported in its result and does not stop the rest.
        """
        if not isinstance(entries, Mapping):
            raise TypeError(f"import_all expects a mapping, got {type(entries).__name__}")
        results = [self.set(key, value) for key, value in entries.items()]
        failed = [r.key for r in results if not r.ok]
        if failed:
            log.warning("store.import_partial", prefix=self._prefix, failed=failed, total=len(results))
        return results

    def _full_key(self, key: str) -> str:
        if not isinstance(key, str):
            raise TypeError(f"key must be a string, got {type(key).__name__}")
        return self._prefix + key

    def _record(self, operation: str, ok: bool = True) -> None:
        if self._metrics is not None:
            self._metrics.record_store_operation(operation, ok)
