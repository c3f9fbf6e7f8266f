"""Tests for the persistent store."""
import pickle
import threading
import pytest
from unittest.mock import Mock
from modulebridge.adapters.base import StorageMedium, StorageError
from modulebridge.adapters.memory import InMemoryMedium
from modulebridge.event_models import StorageChanged, StorageCleared, StorageRemoved
from modulebridge.metrics import Metrics
from modulebridge.services.event_channel import EventChannel
from modulebridge.services.persistent_store import PersistentStore


def make_store(prefix="test:", medium=None, **kwargs):
    channel = EventChannel()
    medium = medium if medium is not None else InMemoryMedium()
    store = PersistentStore(channel, medium, prefix=prefix, **kwargs)
    events = []
    for event_type in ("storage:changed", "storage:removed", "storage:cleared"):
        channel.subscribe(event_type, events.append)
    return store, medium, events


@pytest.mark.asyncio
async def test_set_theme_emits_changed_and_reads_back():
    """set() announces the change once and get() returns the value."""
    store, _, events = make_store()

    result = store.set("theme", "dark")

    assert result.ok
    assert len(events) == 1
    assert isinstance(events[0], StorageChanged)
    assert events[0].payload.key == "theme"
    assert events[0].payload.value == "dark"
    assert events[0].source == "persistent-store"
    assert store.get("theme") == "dark"


@pytest.mark.asyncio
async def test_remove_missing_key_still_announced():
    """Removing an unset key succeeds and emits storage:removed."""
    store, _, events = make_store()

    result = store.remove("missing-key")

    assert result.ok
    assert len(events) == 1
    assert isinstance(events[0], StorageRemoved)
    assert events[0].payload.key == "missing-key"


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [
    "dark",
    42,
    3.5,
    True,
    None,
    [1, "two", {"three": 3}],
    {"id": "1", "title": "Buy milk", "completed": False, "tags": ["home"]},
])
async def test_set_get_round_trip(value):
    """Values come back deep-equal to what was stored."""
    store, _, _ = make_store()
    store.set("value", value)
    assert store.get("value") == value


@pytest.mark.asyncio
async def test_get_missing_returns_default():
    """Unset keys read as the default."""
    store, _, _ = make_store()
    assert store.get("nothing") is None
    assert store.get("nothing", "fallback") == "fallback"


@pytest.mark.asyncio
async def test_corrupt_value_reads_as_default():
    """Undecodable entries degrade to the default instead of raising."""
    store, medium, _ = make_store()
    medium.set_item("test:broken", "{not json")

    assert store.get("broken") is None
    assert store.get("broken", {}) == {}
    assert store.exists("broken")


@pytest.mark.asyncio
async def test_quota_exceeded_write_is_noop():
    """A rejected write returns a failed result and publishes nothing."""
    store, medium, events = make_store(medium=InMemoryMedium(quota_bytes=64))
    store.set("small", "ok")
    events.clear()

    result = store.set("big", "x" * 200)

    assert not result
    assert result.key == "big"
    assert "quota" in result.error
    assert events == []
    assert not store.exists("big")
    assert store.get("small") == "ok"


@pytest.mark.asyncio
async def test_unserializable_value_is_noop():
    """Serializer failures are contained like medium failures."""
    store, _, events = make_store()

    result = store.set("thing", object())

    assert not result.ok
    assert events == []
    assert not store.exists("thing")


@pytest.mark.asyncio
async def test_medium_faults_are_contained():
    """Read, write and delete failures never escape the store."""
    medium = Mock(spec=StorageMedium)
    medium.get_item.side_effect = StorageError("read failed")
    medium.set_item.side_effect = StorageError("write failed")
    medium.remove_item.side_effect = StorageError("delete failed")
    medium.keys.side_effect = StorageError("scan failed")
    store, _, events = make_store(medium=medium)

    assert store.get("theme", "light") == "light"
    assert not store.exists("theme")
    assert not store.set("theme", "dark")
    assert not store.remove("theme")
    assert store.list_keys() == []
    assert store.export_all() == {}
    assert events == []


@pytest.mark.asyncio
async def test_disjoint_prefixes_are_isolated():
    """Stores on different prefixes never see each other's keys."""
    channel = EventChannel()
    medium = InMemoryMedium()
    store_a = PersistentStore(channel, medium, prefix="a:")
    store_b = PersistentStore(channel, medium, prefix="b:")

    store_a.set("x", 1)

    assert store_b.exists("x") is False
    assert store_b.get("x") is None
    assert store_b.list_keys() == []
    store_b.clear()
    assert store_a.get("x") == 1


@pytest.mark.asyncio
async def test_same_prefix_aliases_data():
    """Stores sharing a prefix share their entries."""
    channel = EventChannel()
    medium = InMemoryMedium()
    first = PersistentStore(channel, medium, prefix="shared:")
    second = PersistentStore(channel, medium, prefix="shared:")

    first.set("theme", "dark")
    assert second.get("theme") == "dark"


@pytest.mark.asyncio
async def test_clear_only_touches_own_prefix():
    """clear() deletes every key under the prefix and reports the count."""
    store, medium, events = make_store()
    store.set("a", 1)
    store.set("b", 2)
    medium.set_item("other:a", "1")
    medium.set_item("unprefixed", "2")
    events.clear()

    cleared = store.clear()

    assert cleared == 2
    assert store.size() == 0
    assert medium.keys() == ["other:a", "unprefixed"]
    assert len(events) == 1
    assert isinstance(events[0], StorageCleared)
    assert events[0].payload.cleared_keys == 2


@pytest.mark.asyncio
async def test_list_keys_and_size():
    """Keys are listed fully namespaced, in write order."""
    store, medium, _ = make_store()
    store.set("tasks", [])
    store.set("theme", "dark")
    medium.set_item("elsewhere:theme", '"light"')

    assert store.list_keys() == ["test:tasks", "test:theme"]
    assert store.size() == 2


@pytest.mark.asyncio
async def test_export_clear_import_round_trip():
    """Exported state survives clear() followed by import_all()."""
    store, _, _ = make_store()
    store.set("theme", "dark")
    store.set("tasks", [{"id": "1", "title": "Buy milk", "completed": False}])
    store.set("categories", ["home", "work"])

    exported = store.export_all()
    store.clear()
    assert store.export_all() == {}

    results = store.import_all(exported)

    assert all(results)
    assert store.export_all() == exported
    assert list(exported) == ["theme", "tasks", "categories"]


@pytest.mark.asyncio
async def test_export_skips_unreadable_entries():
    """Corrupt entries are left out of exports."""
    store, medium, _ = make_store()
    store.set("good", {"ok": True})
    medium.set_item("test:bad", "{broken")

    assert store.export_all() == {"good": {"ok": True}}


@pytest.mark.asyncio
async def test_import_all_continues_after_failure():
    """One failing entry does not stop the remaining ones."""
    store, _, events = make_store()

    results = store.import_all({"a": 1, "b": object(), "c": 3})

    assert [r.ok for r in results] == [True, False, True]
    assert [r.key for r in results] == ["a", "b", "c"]
    assert store.get("a") == 1
    assert store.get("c") == 3
    assert [e.payload.key for e in events] == ["a", "c"]


@pytest.mark.asyncio
async def test_import_all_rejects_non_mapping():
    """import_all needs a mapping."""
    store, _, _ = make_store()
    with pytest.raises(TypeError):
        store.import_all([("a", 1)])


@pytest.mark.asyncio
async def test_keys_must_be_strings():
    """Non-string keys are argument faults."""
    store, _, _ = make_store()
    with pytest.raises(TypeError):
        store.get(1)
    with pytest.raises(TypeError):
        store.set(None, "x")


@pytest.mark.asyncio
async def test_event_value_is_snapshot():
    """Mutating a value after set() does not change the announced payload."""
    store, _, events = make_store()
    value = {"items": [1]}

    store.set("list", value)
    value["items"].append(2)

    assert events[0].payload.value == {"items": [1]}
    assert store.get("list") == {"items": [1]}


@pytest.mark.asyncio
async def test_custom_serializer():
    """A configured serializer pair replaces JSON."""
    store, medium, _ = make_store(serialize=str, deserialize=int, source="counter")

    store.set("count", 12)

    assert medium.get_item("test:count") == "12"
    assert store.get("count") == 12


@pytest.mark.asyncio
async def test_handler_reacting_to_store_event_can_write():
    """Subscribers may mutate the store while a store event is delivered."""
    channel = EventChannel()
    store = PersistentStore(channel, InMemoryMedium(), prefix="app:")

    def mirror(event):
        if event.payload.key == "theme":
            store.set("theme-mirror", event.payload.value)

    channel.subscribe("storage:changed", mirror)
    store.set("theme", "dark")

    assert store.get("theme-mirror") == "dark"


@pytest.mark.asyncio
async def test_store_operations_are_counted():
    """Store outcomes land in metrics."""
    metrics = Metrics()
    store, _, _ = make_store(medium=InMemoryMedium(quota_bytes=32), metrics=metrics)

    store.set("a", 1)
    store.set("b", "x" * 100)

    assert metrics.registry.get_sample_value(
        "modulebridge_store_operations_total", {"operation": "set", "outcome": "ok"}
    ) == 1.0
    assert metrics.registry.get_sample_value(
        "modulebridge_store_operations_total", {"operation": "set", "outcome": "error"}
    ) == 1.0


@pytest.mark.asyncio
async def test_constructor_validates_configuration():
    """Prefix and serializers are checked at construction."""
    with pytest.raises(TypeError):
        PersistentStore(EventChannel(), InMemoryMedium(), prefix=None)
    with pytest.raises(TypeError):
        PersistentStore(EventChannel(), InMemoryMedium(), serialize="json")


def unpickle_hex(text):
    return pickle.loads(bytes.fromhex(text))


@pytest.mark.asyncio
async def test_custom_decoder_errors_read_as_default():
    """Any decoder exception degrades to the default, not just ValueError."""
    store, medium, _ = make_store(serialize=lambda v: pickle.dumps(v).hex(), deserialize=unpickle_hex)
    medium.set_item("test:broken", "00ff")
    store.set("good", {"n": 1})

    assert store.get("broken", "fallback") == "fallback"
    assert store.get("good") == {"n": 1}
    assert store.export_all() == {"good": {"n": 1}}


@pytest.mark.asyncio
async def test_custom_encoder_errors_are_failed_results():
    """Any encoder exception becomes a failed result with nothing written."""
    def encode(value):
        raise KeyError("schema")

    store, medium, events = make_store(serialize=encode)

    result = store.set("k", 1)

    assert not result.ok
    assert medium.keys() == []
    assert events == []


@pytest.mark.asyncio
async def test_value_that_cannot_be_snapshotted_is_not_written():
    """A value the event cannot copy fails before the medium is touched."""
    store, medium, events = make_store(serialize=repr, deserialize=str)

    result = store.set("lock", threading.Lock())

    assert not result.ok
    assert medium.get_item("test:lock") is None
    assert events == []


@pytest.mark.asyncio
async def test_clear_with_unlistable_medium_publishes_nothing():
    """clear() reports nothing cleared and announces nothing when keys cannot be listed."""
    medium = Mock(spec=StorageMedium)
    medium.keys.side_effect = StorageError("scan failed")
    store, _, events = make_store(medium=medium)

    assert store.clear() == 0
    assert events == []
    medium.remove_item.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [float("nan"), float("inf"), {"nested": [1.0, float("-inf")]}])
async def test_non_finite_floats_rejected_by_default_serializer(value):
    """NaN and infinities would come back as null, so the write is refused."""
    store, _, events = make_store()

    result = store.set("k", value)

    assert not result.ok
    assert "non-finite" in result.error
    assert not store.exists("k")
    assert events == []
