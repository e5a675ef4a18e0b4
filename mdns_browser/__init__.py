"""mdns_browser — interactive terminal browser for mDNS / DNS-SD services.

Exports:
    BrowserConfig    — configuration dataclass
    EventBus         — bounded MPSC channel between producers and controller
    ServiceRegistry  — in-memory registry of discovered services

The application itself starts from :func:`mdns_browser.app.run`.
"""

from __future__ import annotations

__version__ = "0.1.1"
APP_DESCRIPTION = "mDNS-SD TUI browser"

from mdns_browser.bus import EventBus  # noqa: E402
from mdns_browser.config import BrowserConfig  # noqa: E402
from mdns_browser.registry import ServiceRegistry  # noqa: E402

__all__ = [
    "APP_DESCRIPTION",
    "BrowserConfig",
    "EventBus",
    "ServiceRegistry",
    "__version__",
]
