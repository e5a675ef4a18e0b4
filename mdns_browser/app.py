"""Application wiring — the single ``run`` entry point.

Builds the bus, the three producers (discovery, keyboard, ticker) and the
controller, acquires the terminal for the lifetime of the loop and tears
everything down on every exit path.
"""

from __future__ import annotations

import logging

from mdns_browser.bus import EventBus, Ticker
from mdns_browser.config import BrowserConfig
from mdns_browser.controller import Controller, ExitReason
from mdns_browser.discovery import DiscoverySource
from mdns_browser.filtering import FilterState
from mdns_browser.navigation import NavigationState
from mdns_browser.terminal import InputSource, TerminalSurface

logger = logging.getLogger(__name__)


def run(config: BrowserConfig, surface: TerminalSurface | None = None) -> ExitReason:
    """Browse until the user quits or a producer fails."""
    config.validate()
    surface = surface or TerminalSurface()
    bus = EventBus(config.bus_capacity)
    discovery = DiscoverySource(
        bus,
        query=config.query,
        interface=config.interface,
        resolve_timeout_ms=config.resolve_timeout_ms,
    )
    keyboard = InputSource(surface.term, bus)
    ticker = Ticker(bus, config.tick_interval)

    with surface.session():
        controller = Controller(
            bus,
            surface,
            filter_state=FilterState(ignore_case=config.ignore_case),
            nav=NavigationState(wrap=config.wrap_selection),
            query=discovery.query,
            removed_ttl=config.removed_ttl,
            min_redraw_interval=config.min_redraw_interval,
        )
        keyboard.start()
        ticker.start()
        discovery.start()
        try:
            return controller.run()
        finally:
            # Unblock producers stuck on a full bus before joining them.
            bus.shutdown()
            discovery.stop()
            ticker.stop()
            keyboard.stop()
            logger.info("browser stopped")
