"""mDNS / DNS-SD discovery producer.

Browses the configured query with zeroconf and turns every state change
into an immutable :class:`~mdns_browser.events.DiscoveryEvent` on the bus.

With the default query (the DNS-SD service-type enumeration) every type
announced on the network gets its own browser, so the registry ends up
with the instances of all advertised types:

  _services._dns-sd._udp.local.  →  _http._tcp.local.  →  printer._http._tcp.local.

Zeroconf calls the handlers on its own browser threads. Handlers resolve
synchronously there and block on the bus when it is full; they never touch
controller state.
"""

from __future__ import annotations

import logging
import threading
import time

from zeroconf import (
    InterfaceChoice,
    IPVersion,
    ServiceBrowser,
    ServiceInfo,
    ServiceStateChange,
    Zeroconf,
)

from mdns_browser.bus import EventBus
from mdns_browser.events import DiscoveryEvent, DiscoveryKind, ServiceIdentity
from mdns_browser.registry import ServiceDelta

logger = logging.getLogger(__name__)

SERVICE_TYPE_ENUMERATION = "_services._dns-sd._udp.local."
SOURCE_NAME = "discovery"


def normalize_query(query: str) -> str:
    """Make *query* a fully-qualified ``.local.`` service type."""
    query = query.strip()
    if not query:
        return SERVICE_TYPE_ENUMERATION
    if not query.endswith("."):
        query += "."
    if not query.endswith(".local."):
        query += "local."
    return query


def zeroconf_options(interface: str) -> dict:
    """Translate the ``interface`` setting into :class:`Zeroconf` kwargs.

    ``all`` / ``default`` pick the zeroconf interface choice, ``ipv4`` /
    ``ipv6`` restrict all interfaces to one IP version, anything else is a
    comma-separated list of local addresses.
    """
    choice = interface.strip().lower()
    if choice in ("", "all"):
        return {"interfaces": InterfaceChoice.All}
    if choice == "default":
        return {"interfaces": InterfaceChoice.Default}
    if choice == "ipv4":
        return {"interfaces": InterfaceChoice.All, "ip_version": IPVersion.V4Only}
    if choice == "ipv6":
        return {"interfaces": InterfaceChoice.All, "ip_version": IPVersion.V6Only}
    addresses = [part.strip() for part in interface.split(",") if part.strip()]
    return {"interfaces": addresses}


def _decode(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def delta_from_info(info: ServiceInfo) -> ServiceDelta:
    """Build a resolved :class:`ServiceDelta` from a zeroconf answer."""
    properties = {
        _decode(k): _decode(v)
        for k, v in (info.properties or {}).items()
    }
    return ServiceDelta(
        resolved=True,
        addresses=tuple(info.parsed_scoped_addresses()),
        attributes=properties,
        server=info.server,
        port=info.port,
        host_ttl=info.host_ttl,
        other_ttl=info.other_ttl,
        priority=info.priority,
        weight=info.weight,
    )


class DiscoverySource:
    """Runs zeroconf browsers and publishes what they see on the bus."""

    def __init__(
        self,
        bus: EventBus,
        query: str = SERVICE_TYPE_ENUMERATION,
        interface: str = "all",
        resolve_timeout_ms: int = 3000,
    ) -> None:
        self.bus = bus
        self.query = normalize_query(query)
        self.interface = interface
        self.resolve_timeout_ms = resolve_timeout_ms
        self._zeroconf: Zeroconf | None = None
        self._browsers: dict[str, ServiceBrowser] = {}
        self._lock = threading.Lock()
        self._running = False
        self._closed = False

    # ── Lifecycle ──────────────────────────────────────────────────

    def start(self) -> None:
        """Open zeroconf and start browsing.

        A failure is fatal for the pipeline: it is logged and reported to
        the controller as a closed discovery channel.
        """
        if self._running:
            return
        try:
            self._zeroconf = Zeroconf(**zeroconf_options(self.interface))
            self._running = True
            self._browse(self.query)
            logger.info("mDNS browsing for %s on %s", self.query, self.interface)
        except Exception:
            logger.exception("Failed to start mDNS browsing")
            self._running = False
            self._close_channel()

    def stop(self) -> None:
        """Cancel every browser and close zeroconf."""
        self._running = False
        with self._lock:
            browsers = list(self._browsers.values())
            self._browsers.clear()
        for browser in browsers:
            browser.cancel()
        if self._zeroconf:
            self._zeroconf.close()
            self._zeroconf = None
        logger.info("mDNS browsing stopped")

    @property
    def browsing(self) -> list[str]:
        with self._lock:
            return list(self._browsers)

    # ── Internal ───────────────────────────────────────────────────

    def _browse(self, service_type: str) -> None:
        with self._lock:
            if service_type in self._browsers or self._zeroconf is None:
                return
            self._browsers[service_type] = ServiceBrowser(
                self._zeroconf,
                service_type,
                handlers=[self._on_state_change],
            )
        logger.debug("browser started for %s", service_type)

    def _close_channel(self) -> None:
        if not self._closed:
            self._closed = True
            self.bus.close(SOURCE_NAME)

    def _on_state_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if not self._running:
            return
        try:
            if service_type == SERVICE_TYPE_ENUMERATION and self.query == SERVICE_TYPE_ENUMERATION:
                self._on_type_change(name, state_change)
            else:
                self._on_instance_change(zeroconf, service_type, name, state_change)
        except Exception:
            # One bad answer only costs that service; zeroconf keeps browsing.
            logger.exception("mDNS handler failed for %s, skipping", name)

    def _on_type_change(self, service_type: str, state_change: ServiceStateChange) -> None:
        if state_change is ServiceStateChange.Added:
            logger.info("Service type found: %s", service_type)
            self._browse(service_type)
        elif state_change is ServiceStateChange.Removed:
            # Instances announce their own removal; keep browsing in case
            # the type comes back.
            logger.info("Service type removed: %s", service_type)

    def _on_instance_change(
        self,
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        identity = ServiceIdentity(name=name, service_type=service_type)

        if state_change is ServiceStateChange.Removed:
            logger.info("Service removed: %s", name)
            self.bus.put(DiscoveryEvent(DiscoveryKind.REMOVE, identity, time.monotonic()))
            return

        if state_change is ServiceStateChange.Added:
            logger.info("Service found: %s", name)
            self.bus.put(
                DiscoveryEvent(DiscoveryKind.UPSERT, identity, time.monotonic(), ServiceDelta())
            )

        info = ServiceInfo(service_type, name)
        if not info.request(zeroconf, self.resolve_timeout_ms):
            logger.debug("Resolve timed out for %s", name)
            return
        logger.debug(
            "Service resolved: %s at %s:%s", name, info.parsed_scoped_addresses(), info.port
        )
        self.bus.put(
            DiscoveryEvent(
                DiscoveryKind.UPSERT, identity, time.monotonic(), delta_from_info(info)
            )
        )
