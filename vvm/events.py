"""Change notifications published by the machine.

Every state change the presentation layer may want to animate is published
as one of the frozen dataclasses below. Publication does not depend on who
(if anyone) is subscribed, and a failing subscriber never reaches the
cycle loop.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    READY = "ready"
    RUNNING = "running"
    HALTED = "halted"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.HALTED, RunState.ERRORED)


@dataclass(frozen=True)
class RegisterChanged:
    name: str
    value: int


@dataclass(frozen=True)
class MemoryRead:
    address: int


@dataclass(frozen=True)
class MemoryWritten:
    address: int
    value: int


@dataclass(frozen=True)
class FlagsChanged:
    z: bool
    n: bool


@dataclass(frozen=True)
class CycleAdvanced:
    count: int


@dataclass(frozen=True)
class RunStateChanged:
    state: RunState


@dataclass(frozen=True)
class LineExecuted:
    source_line_no: int
    address: int


@dataclass(frozen=True)
class OutputProduced:
    value: int


@dataclass(frozen=True)
class Message:
    """Human-readable narration of a cycle ('info', 'success', 'warning', 'error')."""
    level: str
    text: str
    cycle: int = 0


Event = Union[
    RegisterChanged,
    MemoryRead,
    MemoryWritten,
    FlagsChanged,
    CycleAdvanced,
    RunStateChanged,
    LineExecuted,
    OutputProduced,
    Message,
]

Subscriber = Callable[[Event], None]


def event_to_dict(event: Event) -> dict:
    """Flatten an event into a JSON-friendly dict tagged with its type."""
    result: dict = {"event": type(event).__name__}
    for key, value in vars(event).items():
        result[key] = value.value if isinstance(value, Enum) else value
    return result


class EventBus:
    """Synchronous publish/subscribe channel.

    Subscribers may listen to every event or only to given event types.
    """

    def __init__(self):
        self._subscribers: list[tuple[Subscriber, Optional[tuple[type, ...]]]] = []

    def subscribe(self, callback: Subscriber, *event_types: type) -> Callable[[], None]:
        """Register callback and return a function that unsubscribes it."""
        entry = (callback, event_types or None)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: Event) -> None:
        for callback, event_types in list(self._subscribers):
            if event_types is not None and not isinstance(event, event_types):
                continue
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on %r", callback, event)


class EventRecorder:
    """Subscriber that keeps every event it receives, in order."""

    def __init__(self):
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, *event_types: type) -> list[Event]:
        return [e for e in self.events if isinstance(e, event_types)]

    def clear(self) -> None:
        self.events.clear()
