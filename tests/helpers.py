"""Event builders and a fake terminal surface shared by the tests."""

from __future__ import annotations

from mdns_browser.events import (
    Action,
    DiscoveryEvent,
    DiscoveryKind,
    KeyEvent,
    ServiceIdentity,
)
from mdns_browser.registry import ServiceDelta
from mdns_browser.render import RenderFailure

HTTP = "_http._tcp.local."


def ident(label: str, service_type: str = HTTP) -> ServiceIdentity:
    return ServiceIdentity(name=f"{label}.{service_type}", service_type=service_type)


def upsert(label: str, ts: float = 1.0, service_type: str = HTTP, **fields) -> DiscoveryEvent:
    delta = ServiceDelta(resolved=True, **fields) if fields else ServiceDelta(resolved=True)
    return DiscoveryEvent(DiscoveryKind.UPSERT, ident(label, service_type), ts, delta)


def remove(label: str, ts: float = 2.0, service_type: str = HTTP) -> DiscoveryEvent:
    return DiscoveryEvent(DiscoveryKind.REMOVE, ident(label, service_type), ts)


def key(action: Action, text: str | None = None) -> KeyEvent:
    return KeyEvent(action, text)


def typed(text: str) -> list[KeyEvent]:
    """Key events for typing *text* character by character."""
    specials = {"/": Action.FILTER, "q": Action.QUIT, "j": Action.DOWN, "k": Action.UP}
    return [KeyEvent(specials.get(ch, Action.CHAR), ch) for ch in text]


class FakeSurface:
    """Records frames instead of writing to a terminal."""

    def __init__(self, width: int = 80, height: int = 15) -> None:
        self.width = width
        self.height = height
        self.frames = []
        self.fail = False

    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def draw(self, frame) -> None:
        if self.fail:
            raise RenderFailure("surface gone")
        self.frames.append(frame)

    @property
    def last_text(self) -> str:
        return "\n".join(row.text for row in self.frames[-1].rows)
