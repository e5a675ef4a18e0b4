"""Terminal collaborator built on blessed.

TerminalSurface  scoped fullscreen/raw-mode acquisition, writes frames
InputSource      keyboard + resize producer thread feeding the bus
map_key()        raw blessed keystroke → logical KeyEvent
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Iterator

from blessed import Terminal
from blessed.keyboard import Keystroke

from mdns_browser.bus import EventBus
from mdns_browser.events import Action, KeyEvent, ResizeEvent
from mdns_browser.render import Frame, RenderFailure, Row, Style

logger = logging.getLogger(__name__)

SOURCE_NAME = "input"

CTRL_C = "\x03"
CTRL_Q = "\x11"

_NAMED_KEYS = {
    "KEY_UP": Action.UP,
    "KEY_DOWN": Action.DOWN,
    "KEY_PGUP": Action.PAGE_UP,
    "KEY_PGDOWN": Action.PAGE_DOWN,
    "KEY_HOME": Action.HOME,
    "KEY_END": Action.END,
    "KEY_ENTER": Action.ENTER,
    "KEY_ESCAPE": Action.ESCAPE,
    "KEY_BACKSPACE": Action.BACKSPACE,
    "KEY_DELETE": Action.BACKSPACE,
}

_CONTROL_CHARS = {
    CTRL_C: Action.QUIT,
    CTRL_Q: Action.QUIT,
    "\r": Action.ENTER,
    "\n": Action.ENTER,
    "\x1b": Action.ESCAPE,
    "\x7f": Action.BACKSPACE,
    "\x08": Action.BACKSPACE,
}

# Printable keys with a meaning outside filter editing.
_CHAR_KEYS = {
    "k": Action.UP,
    "j": Action.DOWN,
    "g": Action.HOME,
    "G": Action.END,
    "/": Action.FILTER,
    "q": Action.QUIT,
}

# Style → blessed formatter name; None writes the text as-is.
_FORMATTERS = {
    Style.TITLE: "bold",
    Style.BAR: "bold_white_on_blue",
    Style.NORMAL: None,
    Style.ALT: None,
    Style.SELECTED: "bold_black_on_cyan",
    Style.DIM: "bright_black",
    Style.REMOVED: "red",
    Style.RULE: "bright_black",
    Style.PROMPT: "bold_cyan",
    Style.ERROR: "bold_red",
    Style.NOTICE: "yellow",
    Style.HELP: "bright_black",
}

# Rows whose background colour must span the full width.
_FILLED = frozenset({Style.BAR, Style.SELECTED})


def map_key(key: Keystroke) -> KeyEvent | None:
    """Translate one keystroke into a :class:`KeyEvent` (``None`` if unbound)."""
    if key.is_sequence:
        action = _NAMED_KEYS.get(key.name)
        return KeyEvent(action) if action else None
    text = str(key)
    if not text:
        return None
    if text in _CONTROL_CHARS:
        return KeyEvent(_CONTROL_CHARS[text])
    if text.isprintable():
        return KeyEvent(_CHAR_KEYS.get(text, Action.CHAR), text=text)
    return None


class TerminalSurface:
    """Writes :class:`Frame` objects to a blessed terminal."""

    def __init__(self, term: Terminal | None = None) -> None:
        self.term = term or Terminal()

    @contextlib.contextmanager
    def session(self) -> Iterator[TerminalSurface]:
        """Alternate screen + raw mode + hidden cursor, restored on every exit path.

        Raw mode (not cbreak) so Ctrl-Q and Ctrl-C reach the key map.
        """
        with self.term.fullscreen(), self.term.raw(), self.term.hidden_cursor():
            yield self

    def size(self) -> tuple[int, int]:
        return self.term.width, self.term.height

    def _styled(self, row: Row) -> str:
        name = _FORMATTERS[row.style]
        if row.style in _FILLED:
            text = row.text
        else:
            text = row.text.rstrip()
        if name is not None and text:
            text = getattr(self.term, name)(text)
        return text + self.term.clear_eol

    def draw(self, frame: Frame) -> None:
        if frame.width <= 0 or frame.height <= 0:
            raise RenderFailure(f"surface unavailable ({frame.width}x{frame.height})")
        t = self.term
        out = []
        for y, row in enumerate(frame.rows):
            out.append(t.move_yx(y, 0) + self._styled(row))
        if frame.cursor is not None:
            y, x = frame.cursor
            under = frame.rows[y].text[x : x + 1] or " "
            out.append(t.move_yx(y, x) + t.reverse(under))
        try:
            t.stream.write("".join(out))
            t.stream.flush()
        except OSError as exc:
            raise RenderFailure(f"terminal write failed: {exc}") from exc


class InputSource:
    """Background thread reading keys and polling the terminal size."""

    def __init__(self, term: Terminal, bus: EventBus, poll_interval: float = 0.1) -> None:
        self.term = term
        self.bus = bus
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="mdns-browser-input", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.poll_interval + 1)
            self._thread = None

    def _run(self) -> None:
        size = (self.term.width, self.term.height)
        try:
            while not self._stop.is_set():
                key = self.term.inkey(timeout=self.poll_interval)
                if key:
                    event = map_key(key)
                    if event is not None:
                        self.bus.put(event)
                current = (self.term.width, self.term.height)
                if current != size:
                    size = current
                    self.bus.put(ResizeEvent(*current))
        except Exception:
            logger.exception("keyboard input failed")
        if not self._stop.is_set():
            self.bus.close(SOURCE_NAME)
