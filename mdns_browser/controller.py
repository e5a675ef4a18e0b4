"""Controller — the single-threaded event loop.

One iteration per bus event:

  1. drain one event (blocks while the bus is empty)
  2. dispatch it
       DiscoveryEvent → registry → filter re-apply → navigation repair
       KeyEvent       → navigation / filter transition
       ResizeEvent    → viewport height
       TickEvent      → prune removed records, force a redraw
  3. redraw if anything visible changed

Redraws are coalesced: while more events are queued, a dirty frame is only
drawn once ``min_redraw_interval`` has passed since the previous one.
All registry, filter and navigation state is owned by this loop; producers
only reach it through the bus.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Protocol

from mdns_browser.bus import ChannelClosed, EventBus
from mdns_browser.events import (
    Action,
    DiscoveryEvent,
    DiscoveryKind,
    Event,
    KeyEvent,
    ResizeEvent,
    ServiceIdentity,
    TickEvent,
)
from mdns_browser.filtering import FilterState, InvalidPattern
from mdns_browser.navigation import Mode, NavigationState
from mdns_browser.registry import ServiceRegistry, UpsertResult
from mdns_browser.render import Frame, RegistryView, RenderFailure, render, viewport_height

logger = logging.getLogger(__name__)

_EDIT_ACTIONS = frozenset({Action.ENTER, Action.ESCAPE, Action.BACKSPACE})


class ExitReason(enum.Enum):
    QUIT = "quit"
    CHANNEL_CLOSED = "channel_closed"


class Surface(Protocol):
    def size(self) -> tuple[int, int]: ...

    def draw(self, frame: Frame) -> None: ...


class Controller:
    def __init__(
        self,
        bus: EventBus,
        surface: Surface,
        registry: ServiceRegistry | None = None,
        filter_state: FilterState | None = None,
        nav: NavigationState | None = None,
        query: str = "",
        removed_ttl: float = 5.0,
        min_redraw_interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bus = bus
        self.surface = surface
        self.registry = registry or ServiceRegistry()
        self.filter = filter_state or FilterState()
        self.nav = nav or NavigationState()
        self.query = query
        self.removed_ttl = removed_ttl
        self.min_redraw_interval = min_redraw_interval
        self.clock = clock

        self.visible: tuple[ServiceIdentity, ...] = ()
        self.detail_identity: ServiceIdentity | None = None
        self.notice: str | None = None
        self.dirty = True
        self.frames_drawn = 0
        self._last_render = float("-inf")

        self.width, self.height = surface.size()
        self.nav.set_viewport(viewport_height(self.height))
        self._refresh_visible()

    # ── Loop ───────────────────────────────────────────────────────

    def run(self) -> ExitReason:
        """Process events until a quit key or a producer closes."""
        logger.info("controller started (%dx%d)", self.width, self.height)
        self.redraw()
        while True:
            try:
                event = self.bus.get()
            except ChannelClosed as exc:
                logger.error("%s — shutting down", exc)
                self.flush()
                return ExitReason.CHANNEL_CLOSED

            if not self.handle(event):
                logger.info("quit requested")
                return ExitReason.QUIT

            if self.dirty and (
                self.bus.empty()
                or self.clock() - self._last_render >= self.min_redraw_interval
            ):
                self.redraw()

    def handle(self, event: Event) -> bool:
        """Apply one event. Returns ``False`` when the loop should stop."""
        if isinstance(event, DiscoveryEvent):
            self._on_discovery(event)
        elif isinstance(event, KeyEvent):
            return self._on_key(event)
        elif isinstance(event, ResizeEvent):
            self._on_resize(event)
        elif isinstance(event, TickEvent):
            self._on_tick(event)
        else:
            logger.warning("ignoring unknown event %r", event)
        return True

    def redraw(self) -> None:
        view = RegistryView(
            records=self.registry.snapshot(),
            visible=self.visible,
            query=self.query,
            detail=self.detail_identity,
        )
        try:
            frame = render(view, self.filter, self.nav, self.width, self.height, self.notice)
            self.surface.draw(frame)
        except RenderFailure as exc:
            # Stay dirty; the next event retries.
            logger.warning("skipping redraw: %s", exc)
            return
        self.dirty = False
        self.frames_drawn += 1
        self._last_render = self.clock()

    def flush(self) -> None:
        """Draw any pending change before the loop exits."""
        if self.dirty:
            self.redraw()

    # ── Discovery ──────────────────────────────────────────────────

    def _on_discovery(self, event: DiscoveryEvent) -> None:
        identity = event.identity
        if event.kind is DiscoveryKind.UPSERT:
            result = self.registry.upsert(identity, event.delta, event.timestamp)
            changed = result is not UpsertResult.UNCHANGED
            if result is UpsertResult.CREATED:
                logger.info("service found: %s (%d known)", identity, len(self.registry))
        else:
            changed = self.registry.mark_removed(identity, event.timestamp)
            if changed:
                logger.info("service removed: %s", identity)
                self.notice = f"removed: {identity}"
        if changed:
            self._refresh_visible()
            self.dirty = True

    def _refresh_visible(self) -> None:
        self.visible = self.filter.apply(self.registry.snapshot())
        self.nav.repair(len(self.visible))

    # ── Input ──────────────────────────────────────────────────────

    def _on_key(self, event: KeyEvent) -> bool:
        if self.nav.mode is Mode.FILTER_EDIT:
            if event.action is Action.QUIT and not event.text:
                return False
            self._on_filter_key(event)
            return True

        if event.action is Action.QUIT:
            return False

        nav = self.nav
        changed = self.notice is not None
        self.notice = None
        if event.action is Action.UP:
            changed |= nav.step(-1)
        elif event.action is Action.DOWN:
            changed |= nav.step(1)
        elif event.action is Action.PAGE_UP:
            changed |= nav.page(-1)
        elif event.action is Action.PAGE_DOWN:
            changed |= nav.page(1)
        elif event.action is Action.HOME:
            changed |= nav.home()
        elif event.action is Action.END:
            changed |= nav.end()
        elif event.action is Action.ENTER:
            changed |= nav.open_detail()
        elif event.action in (Action.ESCAPE, Action.BACKSPACE):
            changed |= nav.close_detail()
        elif event.action is Action.FILTER:
            self.filter.begin_edit()
            changed |= nav.begin_filter_edit()

        if nav.mode is Mode.DETAIL and self.visible:
            self.detail_identity = self._selected_identity()
        if changed:
            self.dirty = True
        return True

    def _on_filter_key(self, event: KeyEvent) -> None:
        self.dirty = True
        if event.text and event.action not in _EDIT_ACTIONS:
            if self.filter.edit(self.filter.draft + event.text):
                self._refresh_visible()
        elif event.action is Action.BACKSPACE:
            if self.filter.edit(self.filter.draft[:-1]):
                self._refresh_visible()
        elif event.action is Action.ENTER:
            try:
                self.filter.confirm()
            except InvalidPattern as exc:
                logger.info("rejected filter: %s", exc)
                return
            self.nav.confirm_filter_edit()
            self._refresh_visible()
        elif event.action is Action.ESCAPE:
            if self.filter.cancel():
                self._refresh_visible()
            self.nav.cancel_filter_edit()

    def _selected_identity(self) -> ServiceIdentity | None:
        if not self.visible:
            return None
        return self.visible[self.nav.selected_index]

    # ── Housekeeping ───────────────────────────────────────────────

    def _on_resize(self, event: ResizeEvent) -> None:
        self.width, self.height = event.width, event.height
        self.nav.set_viewport(viewport_height(event.height))
        self.dirty = True

    def _on_tick(self, event: TickEvent) -> None:
        pruned = self.registry.prune(event.timestamp - self.removed_ttl)
        if pruned:
            self._refresh_visible()
        self.dirty = True
