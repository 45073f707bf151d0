"""Typed event channel between the locator and its consumers.

Producers publish frozen dataclass events; consumers subscribe to an event
class and receive that class and its subclasses.  Delivery is synchronous
and follows subscription order.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, TypeVar

from utils.geometry import RectBounds, RegionKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnnotationEvent:
    """Base class of everything sent over an :class:`AnnotationChannel`."""


@dataclass(frozen=True)
class LocateRequested(AnnotationEvent):
    label: str
    kind: RegionKind = RegionKind.TABLE
    page_range: tuple[int, int] | None = None


@dataclass(frozen=True)
class RegionLocated(AnnotationEvent):
    label: str
    page_index: int
    bounds: RectBounds
    strategy: str


@dataclass(frozen=True)
class RegionNotFound(AnnotationEvent):
    label: str
    kind: RegionKind


@dataclass(frozen=True)
class AnnotationsCleared(AnnotationEvent):
    pass


E = TypeVar("E", bound=AnnotationEvent)


class AnnotationChannel:
    """In-process publish/subscribe keyed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[AnnotationEvent], None]]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: AnnotationEvent) -> int:
        """Deliver *event* and return how many handlers received it."""
        delivered = 0
        for event_type in type(event).__mro__:
            for handler in list(self._handlers.get(event_type, [])):
                handler(event)
                delivered += 1
        logger.debug("Published %s to %d handler(s).", type(event).__name__, delivered)
        return delivered
