"""Tests for the zeroconf discovery producer (zeroconf is mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from zeroconf import InterfaceChoice, IPVersion, ServiceStateChange

from mdns_browser.bus import ChannelClosed
from mdns_browser.discovery import (
    SERVICE_TYPE_ENUMERATION,
    DiscoverySource,
    delta_from_info,
    normalize_query,
    zeroconf_options,
)
from mdns_browser.events import DiscoveryKind, ServiceIdentity

HTTP = "_http._tcp.local."
PRINTER = f"printer.{HTTP}"


def _info(resolved: bool = True) -> MagicMock:
    info = MagicMock()
    info.request.return_value = resolved
    info.parsed_scoped_addresses.return_value = ["192.168.1.20", "fe80::1%eth0"]
    info.properties = {b"path": b"/ipp", b"flag": None}
    info.server = "printer.local."
    info.port = 631
    info.host_ttl = 120
    info.other_ttl = 4500
    info.priority = 0
    info.weight = 0
    return info


@pytest.fixture
def zc():
    with patch("mdns_browser.discovery.Zeroconf") as zeroconf_cls, \
         patch("mdns_browser.discovery.ServiceBrowser") as browser_cls, \
         patch("mdns_browser.discovery.ServiceInfo") as info_cls:
        info_cls.return_value = _info()
        yield zeroconf_cls, browser_cls, info_cls


def _drain(bus):
    events = []
    while not bus.empty():
        events.append(bus.get(timeout=1))
    return events


class TestQueryNormalization:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("", SERVICE_TYPE_ENUMERATION),
            ("  ", SERVICE_TYPE_ENUMERATION),
            ("_http._tcp", HTTP),
            ("_http._tcp.", HTTP),
            ("_http._tcp.local", HTTP),
            (HTTP, HTTP),
        ],
    )
    def test_normalize(self, query, expected):
        assert normalize_query(query) == expected


class TestZeroconfOptions:
    def test_all(self):
        assert zeroconf_options("all") == {"interfaces": InterfaceChoice.All}

    def test_default(self):
        assert zeroconf_options("Default") == {"interfaces": InterfaceChoice.Default}

    def test_ip_version(self):
        opts = zeroconf_options("ipv6")
        assert opts["ip_version"] is IPVersion.V6Only

    def test_address_list(self):
        assert zeroconf_options("192.168.1.5, 10.0.0.2") == {
            "interfaces": ["192.168.1.5", "10.0.0.2"]
        }


class TestDeltaFromInfo:
    def test_fields_and_decoded_properties(self):
        delta = delta_from_info(_info())
        assert delta.resolved is True
        assert delta.addresses == ("192.168.1.20", "fe80::1%eth0")
        assert dict(delta.attributes) == {"path": "/ipp", "flag": ""}
        assert delta.server == "printer.local."
        assert delta.port == 631
        assert delta.host_ttl == 120
        assert delta.other_ttl == 4500


class TestDiscoverySource:
    def test_start_browses_query(self, bus, zc):
        zeroconf_cls, browser_cls, _ = zc
        source = DiscoverySource(bus, query="_http._tcp", interface="default")
        source.start()
        zeroconf_cls.assert_called_once_with(interfaces=InterfaceChoice.Default)
        assert browser_cls.call_args.args[1] == HTTP
        assert source.browsing == [HTTP]

    def test_added_emits_resolving_then_resolved(self, bus, zc):
        zeroconf_cls, _, info_cls = zc
        source = DiscoverySource(bus, query=HTTP, resolve_timeout_ms=500)
        source.start()
        source._on_state_change(
            zeroconf=zeroconf_cls.return_value,
            service_type=HTTP,
            name=PRINTER,
            state_change=ServiceStateChange.Added,
        )
        first, second = _drain(bus)
        identity = ServiceIdentity(PRINTER, HTTP)
        assert first.kind is DiscoveryKind.UPSERT
        assert first.identity == identity
        assert first.delta.resolved is False
        assert second.delta.resolved is True
        assert second.delta.port == 631
        info_cls.assert_called_with(HTTP, PRINTER)
        info_cls.return_value.request.assert_called_with(zeroconf_cls.return_value, 500)

    def test_resolve_timeout_leaves_service_resolving(self, bus, zc):
        zeroconf_cls, _, info_cls = zc
        info_cls.return_value = _info(resolved=False)
        source = DiscoverySource(bus, query=HTTP)
        source.start()
        source._on_state_change(
            zeroconf=zeroconf_cls.return_value,
            service_type=HTTP,
            name=PRINTER,
            state_change=ServiceStateChange.Added,
        )
        events = _drain(bus)
        assert len(events) == 1
        assert events[0].delta.resolved is False

    def test_updated_only_resends_resolved(self, bus, zc):
        zeroconf_cls, _, _ = zc
        source = DiscoverySource(bus, query=HTTP)
        source.start()
        source._on_state_change(
            zeroconf=zeroconf_cls.return_value,
            service_type=HTTP,
            name=PRINTER,
            state_change=ServiceStateChange.Updated,
        )
        events = _drain(bus)
        assert len(events) == 1
        assert events[0].delta.resolved is True

    def test_removed_emits_remove(self, bus, zc):
        zeroconf_cls, _, info_cls = zc
        source = DiscoverySource(bus, query=HTTP)
        source.start()
        source._on_state_change(
            zeroconf=zeroconf_cls.return_value,
            service_type=HTTP,
            name=PRINTER,
            state_change=ServiceStateChange.Removed,
        )
        (event,) = _drain(bus)
        assert event.kind is DiscoveryKind.REMOVE
        assert event.delta is None
        info_cls.assert_not_called()

    def test_enumeration_starts_browser_per_type(self, bus, zc):
        zeroconf_cls, browser_cls, _ = zc
        source = DiscoverySource(bus, query="")
        source.start()
        for _ in range(2):
            source._on_state_change(
                zeroconf=zeroconf_cls.return_value,
                service_type=SERVICE_TYPE_ENUMERATION,
                name=HTTP,
                state_change=ServiceStateChange.Added,
            )
        assert source.browsing == [SERVICE_TYPE_ENUMERATION, HTTP]
        assert browser_cls.call_count == 2
        assert bus.empty()

    def test_start_failure_closes_channel(self, bus, zc):
        zeroconf_cls, _, _ = zc
        zeroconf_cls.side_effect = OSError("no multicast")
        DiscoverySource(bus).start()
        with pytest.raises(ChannelClosed) as excinfo:
            bus.get(timeout=1)
        assert excinfo.value.source == "discovery"

    def test_handler_failure_skips_only_that_service(self, bus, zc):
        zeroconf_cls, _, info_cls = zc
        info_cls.side_effect = [RuntimeError("malformed answer"), _info()]
        source = DiscoverySource(bus, query=HTTP)
        source.start()
        for name in (f"broken.{HTTP}", PRINTER):
            source._on_state_change(
                zeroconf=zeroconf_cls.return_value,
                service_type=HTTP,
                name=name,
                state_change=ServiceStateChange.Updated,
            )
        (event,) = _drain(bus)
        assert event.identity == ServiceIdentity(PRINTER, HTTP)
        assert event.delta.resolved is True

    def test_stop_cancels_browsers(self, bus, zc):
        zeroconf_cls, browser_cls, _ = zc
        source = DiscoverySource(bus, query=HTTP)
        source.start()
        source.stop()
        browser_cls.return_value.cancel.assert_called_once()
        zeroconf_cls.return_value.close.assert_called_once()
        assert source.browsing == []

    def test_events_after_stop_are_ignored(self, bus, zc):
        zeroconf_cls, _, _ = zc
        source = DiscoverySource(bus, query=HTTP)
        source.start()
        source.stop()
        source._on_state_change(
            zeroconf=zeroconf_cls.return_value,
            service_type=HTTP,
            name=PRINTER,
            state_change=ServiceStateChange.Removed,
        )
        assert bus.empty()
