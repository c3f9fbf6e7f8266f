"""Startup wiring: one channel, one medium, one default store per application."""
from .adapters.base import StorageMedium
from .adapters.memory import InMemoryMedium
from .adapters.file import FileMedium
from .adapters.redis_kv import RedisMedium
from .config import Settings, get_settings
from .metrics import Metrics
from .services.event_channel import EventChannel
from .services.persistent_store import PersistentStore, Serializer, Deserializer, json_serialize, json_deserialize
import structlog

log = structlog.get_logger()


class Runtime:
    """
    Everything the modules of one running application share.

    Build it once at startup and pass it (or its ``channel`` and ``store``)
    to each module.
    """

    def __init__(self, channel: EventChannel, medium: StorageMedium, settings: Settings, metrics: Metrics):
        self.channel = channel
        self.medium = medium
        self.settings = settings
        self.metrics = metrics
        self.default_store = self.store()

    def store(
        self,
        prefix: str | None = None,
        serialize: Serializer = json_serialize,
        deserialize: Deserializer = json_deserialize,
        source: str = "persistent-store",
    ) -> PersistentStore:
        """
        Create a store on the shared medium and channel.

        Args:
            prefix: Namespace for the store (defaults to STORAGE_PREFIX)
        """
        return PersistentStore(
            self.channel,
            self.medium,
            prefix=self.settings.STORAGE_PREFIX if prefix is None else prefix,
            serialize=serialize,
            deserialize=deserialize,
            source=source,
            metrics=self.metrics,
        )

    def shutdown(self) -> None:
        """Drop every subscription and close the medium if it holds a connection."""
        self.channel.clear()
        close = getattr(self.medium, "close", None)
        if callable(close):
            close()
        self.metrics.app_up.labels(service=self.metrics.service_name, version=self.metrics.version).set(0)
        log.info("runtime.stopped")


def build_runtime(
    settings: Settings | None = None,
    medium: StorageMedium | None = None,
    metrics: Metrics | None = None,
) -> Runtime:
    """
    Construct the application's runtime.

    Args:
        settings: Configuration (defaults to environment settings)
        medium: Durable medium (defaults to the configured backend)
        metrics: Metrics sink (defaults to a fresh registry)
    """
    settings = settings or get_settings()
    metrics = metrics or Metrics()
    if medium is None:
        medium = create_default_medium(settings)
    channel = EventChannel(metrics=metrics)
    runtime = Runtime(channel, medium, settings, metrics)
    log.info(
        "runtime.started",
        medium=type(medium).__name__,
        prefix=settings.STORAGE_PREFIX,
        env=settings.ENV,
    )
    return runtime


def create_default_medium(settings: Settings) -> StorageMedium:
    """
    Create the medium selected by STORAGE_BACKEND.

    Returns:
        StorageMedium instance; redis without REDIS_URL falls back to memory
    """
    quota = settings.STORAGE_QUOTA_BYTES or None
    if settings.STORAGE_BACKEND == "redis":
        if not settings.REDIS_URL:
            log.warning(
                "medium.fallback",
                requested="redis",
                actual="memory",
                reason="REDIS_URL not configured"
            )
            return InMemoryMedium(quota_bytes=quota)

        log.info("medium.selected", type="redis", url=str(settings.REDIS_URL))
        return RedisMedium(str(settings.REDIS_URL))
    elif settings.STORAGE_BACKEND == "file":
        log.info("medium.selected", type="file", path=settings.STORAGE_FILE)
        return FileMedium(settings.STORAGE_FILE, quota_bytes=quota)
    else:
        log.info("medium.selected", type="memory")
        return InMemoryMedium(quota_bytes=quota)
