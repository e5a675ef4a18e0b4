"""Configuration for the mDNS browser."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MDNS_BROWSER_CONFIG"


@dataclass
class BrowserConfig:
    """Browser configuration — loaded from config.json, overridden by CLI flags."""

    # Discovery
    query: str = "_services._dns-sd._udp.local."
    interface: str = "all"  # all | default | ipv4 | ipv6 | addr[,addr...]
    resolve_timeout_ms: int = 3000

    # Event loop
    bus_capacity: int = 256
    tick_interval: float = 1.0
    min_redraw_interval: float = 0.05
    removed_ttl: float = 5.0  # seconds a removed service lingers before pruning

    # UI
    wrap_selection: bool = True
    ignore_case: bool = False

    # Logging
    log_to: str = ""
    debug: bool = False

    @classmethod
    def load(cls, path: str | Path) -> BrowserConfig:
        path = Path(path)
        if path.exists():
            with open(path) as f:
                data = json.load(f)
            known = {k for k in cls.__dataclass_fields__}
            filtered = {k: v for k, v in data.items() if k in known}
            return cls(**filtered)
        logger.warning("Config not found at %s, using defaults", path)
        return cls()

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)

    def validate(self) -> None:
        """Raise :class:`ValueError` for settings the event loop cannot run with."""
        if self.bus_capacity < 1:
            raise ValueError("bus_capacity must be at least 1")
        if self.tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        if self.removed_ttl < 0:
            raise ValueError("removed_ttl must not be negative")
        if self.resolve_timeout_ms <= 0:
            raise ValueError("resolve_timeout_ms must be positive")


def default_config_path() -> Path | None:
    """First existing config file: ``$MDNS_BROWSER_CONFIG``, then the user config dir."""
    candidates = []
    if os.environ.get(CONFIG_ENV_VAR):
        candidates.append(Path(os.environ[CONFIG_ENV_VAR]))
    candidates.append(Path.home() / ".config" / "mdns-browser" / "config.json")
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None
