"""Redis storage medium."""
import re
import structlog
from redis import Redis
from redis.exceptions import RedisError
from .base import StorageMedium, StorageError
from ..config import get_settings

log = structlog.get_logger()

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisMedium(StorageMedium):
    """Redis implementation of the storage medium.

    Every entry is a plain Redis string. Enumeration scans for the requested
    prefix and returns keys sorted, since Redis has no insertion order.
    """

    def __init__(self, redis_url: str | None = None):
        """
        Initialize Redis medium.

        Args:
            redis_url: Redis connection URL (defaults to settings.REDIS_URL)
        """
        self.redis_url = redis_url or str(get_settings().REDIS_URL)
        self._client: Redis | None = None

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5
            )
        return self._client

    def get_item(self, key: str) -> str | None:
        try:
            return self._get_client().get(key)
        except RedisError as e:
            log.error("redis.get_failed", key=key, error=str(e))
            raise StorageError(f"cannot read {key!r}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        try:
            self._get_client().set(key, value)
        except RedisError as e:
            log.error("redis.set_failed", key=key, error=str(e))
            raise StorageError(f"cannot write {key!r}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._get_client().delete(key)
        except RedisError as e:
            log.error("redis.delete_failed", key=key, error=str(e))
            raise StorageError(f"cannot delete {key!r}: {e}") from e

    def keys(self, prefix: str = "") -> list[str]:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", prefix) + "*"
        try:
            return sorted(self._get_client().scan_iter(match=pattern))
        except RedisError as e:
            log.error("redis.scan_failed", prefix=prefix, error=str(e))
            raise StorageError(f"cannot enumerate keys under {prefix!r}: {e}") from e

    def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            return bool(self._get_client().ping())
        except RedisError as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    def close(self):
        """Close Redis connection."""
        if self._client:
            self._client.close()
            self._client = None
