"""
Health checks for liveness and readiness.
"""
from datetime import datetime, timezone
from typing import Dict, Any
import time
from .runtime import Runtime
from .logging import get_logger

logger = get_logger()


class HealthChecker:
    """
    Health checker for a ModuleBridge runtime.

    Provides:
    - Liveness checks (is the service running?)
    - Readiness checks (is the durable medium usable?)
    """

    def __init__(self, runtime: Runtime, service_name: str = "modulebridge", version: str = "0.1.0"):
        self.runtime = runtime
        self.service_name = service_name
        self.version = version

    def liveness(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "service": self.service_name,
            "version": self.version,
            "timestamp": _utc_now(),
        }

    def readiness(self) -> Dict[str, Any]:
        """
        Readiness check.

        Checks:
        - Durable medium health
        - Channel introspection (reported, never failing)
        """
        checks = {
            "medium": self._check_medium(),
            "channel": {
                "status": "ok",
                "active_event_types": len(self.runtime.channel.active_event_types()),
            },
        }
        overall_status = "ready" if checks["medium"]["status"] == "ok" else "not_ready"

        return {
            "status": overall_status,
            "service": self.service_name,
            "version": self.version,
            "timestamp": _utc_now(),
            "checks": checks,
        }

    def _check_medium(self) -> Dict[str, Any]:
        medium = self.runtime.medium
        start = time.time()
        try:
            healthy = medium.health_check()
        except Exception as e:
            logger.warning("medium_health_check_failed", medium=type(medium).__name__, error=str(e))
            return {"status": "error", "medium": type(medium).__name__, "error": str(e)}

        return {
            "status": "ok" if healthy else "error",
            "medium": type(medium).__name__,
            "latency_ms": round((time.time() - start) * 1000, 2),
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
