"""Service registry — the authoritative in-memory set of discovered services.

Records are immutable; every mutation swaps in a new :class:`ServiceRecord`
so a snapshot handed to the filter or renderer can never observe a record
half-updated. Only the controller thread calls into the registry.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from mdns_browser.events import ServiceIdentity

logger = logging.getLogger(__name__)

_EMPTY_ATTRIBUTES: Mapping[str, str] = MappingProxyType({})


class ServiceState(enum.Enum):
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    REMOVED = "removed"


class UpsertResult(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ServiceDelta:
    """Changes carried by one Upsert event.

    ``None`` means "not reported, keep what the record has"; any other value
    replaces the record's field. A resolve answer carries the full address
    set and TXT record, so replacement (not union) is the merge rule.
    """

    resolved: bool = False
    addresses: tuple[str, ...] | None = None
    attributes: Mapping[str, str] | None = None
    server: str | None = None
    port: int | None = None
    host_ttl: int | None = None
    other_ttl: int | None = None
    priority: int | None = None
    weight: int | None = None


@dataclass(frozen=True)
class ServiceRecord:
    identity: ServiceIdentity
    last_seen: float
    state: ServiceState = ServiceState.RESOLVING
    addresses: tuple[str, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=lambda: _EMPTY_ATTRIBUTES)
    server: str | None = None
    port: int | None = None
    host_ttl: int | None = None
    other_ttl: int | None = None
    priority: int | None = None
    weight: int | None = None

    @property
    def is_removed(self) -> bool:
        return self.state is ServiceState.REMOVED


def _merge(record: ServiceRecord, delta: ServiceDelta, timestamp: float) -> ServiceRecord:
    changes: dict = {"last_seen": max(record.last_seen, timestamp)}
    if delta.resolved:
        changes["state"] = ServiceState.RESOLVED
    elif record.state is ServiceState.REMOVED:
        # Announced again before it was pruned.
        changes["state"] = ServiceState.RESOLVING
    if delta.addresses is not None:
        changes["addresses"] = tuple(sorted(set(delta.addresses)))
    if delta.attributes is not None:
        changes["attributes"] = MappingProxyType(dict(delta.attributes))
    for name in ("server", "port", "host_ttl", "other_ttl", "priority", "weight"):
        value = getattr(delta, name)
        if value is not None:
            changes[name] = value
    return dataclasses.replace(record, **changes)


def _visible_fields(record: ServiceRecord) -> tuple:
    # Everything except last_seen, which the UI never shows.
    return (
        record.state,
        record.addresses,
        dict(record.attributes),
        record.server,
        record.port,
        record.host_ttl,
        record.other_ttl,
        record.priority,
        record.weight,
    )


class ServiceRegistry:
    """Insertion-ordered mapping of :class:`ServiceIdentity` → :class:`ServiceRecord`."""

    def __init__(self) -> None:
        self._records: dict[ServiceIdentity, ServiceRecord] = {}

    # ── Mutation ───────────────────────────────────────────────────

    def upsert(
        self,
        identity: ServiceIdentity,
        delta: ServiceDelta | None,
        timestamp: float,
    ) -> UpsertResult:
        """Insert a new record or merge *delta* into the existing one.

        Returns whether the record was created, visibly updated, or left
        unchanged (only ``last_seen`` moved), which tells the caller whether
        a redraw is needed.
        """
        if delta is None:
            delta = ServiceDelta()
        existing = self._records.get(identity)
        if existing is None:
            base = ServiceRecord(identity=identity, last_seen=timestamp)
            self._records[identity] = _merge(base, delta, timestamp)
            logger.debug("registry: created %s", identity)
            return UpsertResult.CREATED

        merged = _merge(existing, delta, timestamp)
        self._records[identity] = merged
        if _visible_fields(merged) == _visible_fields(existing):
            return UpsertResult.UNCHANGED
        logger.debug("registry: updated %s", identity)
        return UpsertResult.UPDATED

    def mark_removed(self, identity: ServiceIdentity, timestamp: float) -> bool:
        """Flag *identity* as removed, keeping its last-known data.

        The removal time becomes ``last_seen`` so :meth:`prune` evicts the
        record once it has been gone for the configured grace period.
        Unknown or already-removed identities are a no-op (returns ``False``).
        """
        existing = self._records.get(identity)
        if existing is None or existing.is_removed:
            return False
        self._records[identity] = dataclasses.replace(
            existing,
            state=ServiceState.REMOVED,
            last_seen=max(existing.last_seen, timestamp),
        )
        logger.debug("registry: marked removed %s", identity)
        return True

    def prune(self, older_than: float) -> list[ServiceIdentity]:
        """Delete removed records whose ``last_seen`` predates *older_than*."""
        stale = [
            identity
            for identity, record in self._records.items()
            if record.is_removed and record.last_seen < older_than
        ]
        for identity in stale:
            del self._records[identity]
        if stale:
            logger.debug("registry: pruned %d removed record(s)", len(stale))
        return stale

    # ── Read access ────────────────────────────────────────────────

    def snapshot(self) -> tuple[ServiceRecord, ...]:
        """Return every record, in insertion order, as of this instant."""
        return tuple(self._records.values())

    def get(self, identity: ServiceIdentity) -> ServiceRecord | None:
        return self._records.get(identity)

    def __contains__(self, identity: object) -> bool:
        return identity in self._records

    def __len__(self) -> int:
        return len(self._records)
