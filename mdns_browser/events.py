"""Messages carried on the event bus.

Every producer converts what it observes into one of these immutable
messages before handing it to the bus; nothing else crosses a thread
boundary.

    DiscoveryEvent  — Upsert / Remove for one service instance
    KeyEvent        — a logical key action (already mapped from the raw key)
    ResizeEvent     — terminal size changed
    TickEvent       — periodic prune + redraw heartbeat
    ProducerClosed  — internal marker: a producer has gone away
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from mdns_browser.registry import ServiceDelta


@dataclass(frozen=True, order=True)
class ServiceIdentity:
    """Unique key of a discovered service: full instance name + service type."""

    name: str
    service_type: str

    @property
    def instance(self) -> str:
        """Instance label with the ``.<type>`` suffix stripped."""
        suffix = f".{self.service_type}"
        if self.name.endswith(suffix):
            return self.name[: -len(suffix)]
        return self.name

    def __str__(self) -> str:
        return f"{self.instance} ({self.service_type})"


class DiscoveryKind(enum.Enum):
    UPSERT = "upsert"
    REMOVE = "remove"


@dataclass(frozen=True)
class DiscoveryEvent:
    kind: DiscoveryKind
    identity: ServiceIdentity
    timestamp: float
    delta: ServiceDelta | None = None


class Action(enum.Enum):
    """Logical key actions the controller understands."""

    UP = "up"
    DOWN = "down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    HOME = "home"
    END = "end"
    ENTER = "enter"
    ESCAPE = "escape"
    BACKSPACE = "backspace"
    FILTER = "filter"
    QUIT = "quit"
    CHAR = "char"


@dataclass(frozen=True)
class KeyEvent:
    """A key press.

    ``text`` is the printable character the key produced, if any. In
    filter-edit mode printable text is inserted into the pattern instead of
    being interpreted as ``action`` (so ``q`` types a ``q``).
    """

    action: Action
    text: str | None = None


@dataclass(frozen=True)
class ResizeEvent:
    width: int
    height: int


@dataclass(frozen=True)
class TickEvent:
    timestamp: float


@dataclass(frozen=True)
class ProducerClosed:
    source: str


Event = Union[DiscoveryEvent, KeyEvent, ResizeEvent, TickEvent, ProducerClosed]
