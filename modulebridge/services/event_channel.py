"""Synchronous publish/subscribe channel shared by every module in the runtime."""
from typing import Callable
from ..event_models import Event
from ..metrics import Metrics
import structlog

log = structlog.get_logger()

Handler = Callable[[Event], object]


class _Subscription:
    """One (event type, handler) registration; identity is what release removes."""

    __slots__ = ("event_type", "handler")

    def __init__(self, event_type: str, handler: Handler):
        self.event_type = event_type
        self.handler = handler


class EventChannel:
    """
    Registry of event type -> ordered handlers with synchronous delivery.

    Construct one per running application and hand it to every module that
    needs it. Delivery runs on the caller's turn: ``publish`` returns after
    every handler registered for the event's type has been called, in
    registration order. A handler that raises is logged and skipped; the
    remaining handlers still receive the event and the publisher never sees
    the exception.
    """

    def __init__(self, metrics: Metrics | None = None):
        """
        Initialize an empty channel.

        Args:
            metrics: Optional metrics sink for publish and failure counts
        """
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._metrics = metrics

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """
        Register ``handler`` for ``event_type``.

        The same handler registered twice is delivered to twice.

        Returns:
            Zero-argument release function removing exactly this registration.
            Calling it again is a no-op.

        Raises:
            TypeError: If ``event_type`` is not a string or ``handler`` is not callable
            ValueError: If ``event_type`` is empty
        """
        _check_event_type(event_type)
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")

        subscription = _Subscription(event_type, handler)
        self._subscriptions.setdefault(event_type, []).append(subscription)
        self._update_gauge()
        log.debug("channel.subscribed", event_type=event_type, listeners=self.listener_count(event_type))

        def release() -> None:
            self._release(subscription)

        return release

    def once(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for the next ``event_type`` delivery only."""
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")

        def deliver_once(event: Event) -> None:
            release()
            handler(event)

        release = self.subscribe(event_type, deliver_once)
        return release

    def publish(self, event: Event) -> int:
        """
        Deliver ``event`` to the handlers registered for ``event.type``.

        Handlers subscribed or released while delivery is in progress do not
        change the current pass. No handlers is not an error.

        Returns:
            Number of handlers invoked (including those that raised)

        Raises:
            TypeError: If ``event`` is not an ``Event``
            ValueError: If ``event.type`` is empty
        """
        if not isinstance(event, Event):
            raise TypeError(f"publish expects an Event, got {type(event).__name__}")
        _check_event_type(event.type)

        if self._metrics is not None:
            self._metrics.record_event_published(event.type)

        snapshot = list(self._subscriptions.get(event.type, ()))
        for subscription in snapshot:
            try:
                subscription.handler(event)
            except Exception as exc:
                log.error(
                    "channel.handler_failed",
                    event_type=event.type,
                    source=event.source,
                    handler=_handler_name(subscription.handler),
                    error=str(exc),
                    error_type=type(exc).__name__,
                    exc_info=True,
                )
                if self._metrics is not None:
                    self._metrics.record_handler_failure(event.type)

        return len(snapshot)

    def unsubscribe_all(self, event_type: str) -> None:
        """Remove every handler registered for ``event_type``."""
        removed = self._subscriptions.pop(event_type, [])
        if removed:
            self._update_gauge()
            log.debug("channel.unsubscribed_all", event_type=event_type, removed=len(removed))

    def clear(self) -> None:
        """Remove every handler for every event type."""
        self._subscriptions.clear()
        self._update_gauge()
        log.debug("channel.cleared")

    def active_event_types(self) -> set[str]:
        """Event types that currently have at least one handler."""
        return {event_type for event_type, subs in self._subscriptions.items() if subs}

    def listener_count(self, event_type: str) -> int:
        """Number of active registrations for ``event_type``."""
        return len(self._subscriptions.get(event_type, ()))

    def _release(self, subscription: _Subscription) -> None:
        subs = self._subscriptions.get(subscription.event_type)
        if not subs:
            return
        for index, candidate in enumerate(subs):
            if candidate is subscription:
                del subs[index]
                break
        else:
            return
        if not subs:
            del self._subscriptions[subscription.event_type]
        self._update_gauge()
        log.debug("channel.released", event_type=subscription.event_type)

    def _update_gauge(self) -> None:
        if self._metrics is not None:
            self._metrics.set_active_subscriptions(
                sum(len(subs) for subs in self._subscriptions.values())
            )


def _check_event_type(event_type: object) -> None:
    if not isinstance(event_type, str):
        raise TypeError(f"event type must be a string, got {type(event_type).__name__}")
    if not event_type:
        raise ValueError("event type must be non-empty")


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
