"""Event bus — bounded multi-producer / single-consumer channel.

Producers (discovery, keyboard, ticker) run on their own threads and only
ever talk to the controller through this bus. Two enqueue policies:

  put()    blocks while the bus is full (backpressure); used for discovery
           and key events, which must never be lost
  offer()  drops the event if the bus is full; used for ticks, which only
           pace redraws

Draining is FIFO over the combined arrival order of all producers.
"""

from __future__ import annotations

import logging
import queue
import threading
import time

from mdns_browser.events import Event, ProducerClosed, TickEvent

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 256

# How often a blocked put() re-checks whether the bus was shut down.
_PUT_POLL_INTERVAL = 0.1


class ChannelClosed(RuntimeError):
    """A producer went away; the event pipeline can no longer make progress."""

    def __init__(self, source: str) -> None:
        super().__init__(f"event producer '{source}' closed")
        self.source = source


class EventBus:
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("bus capacity must be at least 1")
        self.capacity = capacity
        self._queue: queue.Queue[Event] = queue.Queue(maxsize=capacity)
        self._shutdown = threading.Event()
        self.dropped = 0

    # ── Producer side ──────────────────────────────────────────────

    def put(self, event: Event) -> bool:
        """Enqueue *event*, blocking while the bus is full.

        Returns ``False`` only if the bus was shut down while waiting, in
        which case nobody is left to consume the event.
        """
        while not self._shutdown.is_set():
            try:
                self._queue.put(event, timeout=_PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        logger.debug("bus shut down, discarding %r", event)
        return False

    def offer(self, event: Event) -> bool:
        """Enqueue *event* only if there is room right now."""
        if self._shutdown.is_set():
            return False
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            self.dropped += 1
            return False

    def close(self, source: str) -> None:
        """Signal that producer *source* will send nothing more."""
        logger.info("event producer '%s' closed", source)
        self.put(ProducerClosed(source))

    # ── Consumer side ──────────────────────────────────────────────

    def get(self, timeout: float | None = None) -> Event:
        """Remove and return the oldest event, blocking while the bus is empty.

        Raises:
            ChannelClosed: the next event was a producer-closed marker.
            queue.Empty:   *timeout* elapsed with nothing to drain.
        """
        event = self._queue.get(timeout=timeout)
        if isinstance(event, ProducerClosed):
            raise ChannelClosed(event.source)
        return event

    def empty(self) -> bool:
        return self._queue.empty()

    def shutdown(self) -> None:
        """Release blocked producers; further events are discarded."""
        self._shutdown.set()


class Ticker:
    """Background thread that offers a :class:`TickEvent` every *interval* seconds."""

    def __init__(self, bus: EventBus, interval: float = 1.0) -> None:
        self.bus = bus
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="mdns-browser-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            if not self.bus.offer(TickEvent(time.monotonic())):
                logger.debug("tick dropped, bus full")
