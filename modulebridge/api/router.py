"""Devtools routes onto the in-process channel and stores."""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from typing import Any, Dict
from .schemas import (
    PublishRequest,
    PublishResponse,
    ChannelResponse,
    StoreValue,
    StoreEntry,
    StoreExportResponse,
    StoreWriteResponse,
    StoreImportResponse,
    StoreClearResponse,
)
from ..runtime import Runtime
from ..services.persistent_store import PersistentStore

router = APIRouter(prefix="/v1")

_MISSING = object()


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_store(prefix: str | None = None, runtime: Runtime = Depends(get_runtime)) -> PersistentStore:
    """Default store, or a store on another namespace when ``?prefix=`` is given."""
    if prefix is None:
        return runtime.default_store
    return runtime.store(prefix=prefix, source="devtools")


@router.get("/channel", response_model=ChannelResponse)
async def describe_channel(runtime: Runtime = Depends(get_runtime)):
    channel = runtime.channel
    counts = {t: channel.listener_count(t) for t in sorted(channel.active_event_types())}
    return ChannelResponse(total_listeners=sum(counts.values()), event_types=counts)


@router.post("/events", response_model=PublishResponse)
async def publish_event(req: PublishRequest, runtime: Runtime = Depends(get_runtime)):
    try:
        event = req.to_event()
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False))
    delivered = runtime.channel.publish(event)
    return PublishResponse(type=event.type, status="delivered", listeners=delivered, timestamp=event.timestamp)


@router.get("/store", response_model=StoreExportResponse)
async def export_store(store: PersistentStore = Depends(get_store)):
    entries = store.export_all()
    return StoreExportResponse(prefix=store.prefix, size=len(entries), entries=entries)


@router.put("/store", response_model=StoreImportResponse)
async def import_store(entries: Dict[str, Any], store: PersistentStore = Depends(get_store)):
    results = store.import_all(entries)
    failed = [r.key for r in results if not r.ok]
    return StoreImportResponse(total=len(results), imported=len(results) - len(failed), failed=failed)


@router.delete("/store", response_model=StoreClearResponse)
async def clear_store(store: PersistentStore = Depends(get_store)):
    cleared = store.clear()
    return StoreClearResponse(prefix=store.prefix, cleared_keys=cleared)


@router.get("/store/{key:path}", response_model=StoreEntry)
async def read_entry(key: str, store: PersistentStore = Depends(get_store)):
    value = store.get(key, _MISSING)
    if value is _MISSING:
        raise HTTPException(404, detail=f"Key {key} not found")
    return StoreEntry(key=key, value=value)


@router.put("/store/{key:path}", response_model=StoreWriteResponse)
async def write_entry(key: str, body: StoreValue, store: PersistentStore = Depends(get_store)):
    result = store.set(key, body.value)
    if not result:
        raise HTTPException(507, detail=f"Could not store {key}: {result.error}")
    return StoreWriteResponse(key=key, ok=True)


@router.delete("/store/{key:path}", response_model=StoreWriteResponse)
async def delete_entry(key: str, store: PersistentStore = Depends(get_store)):
    result = store.remove(key)
    if not result:
        raise HTTPException(507, detail=f"Could not remove {key}: {result.error}")
    return StoreWriteResponse(key=key, ok=True)
