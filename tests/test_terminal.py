"""Tests for key mapping and the blessed terminal surface."""

from __future__ import annotations

import io
import time
from unittest.mock import MagicMock

import pytest
from blessed import Terminal
from blessed.keyboard import Keystroke

from mdns_browser.bus import ChannelClosed
from mdns_browser.events import Action, KeyEvent, ResizeEvent
from mdns_browser.render import Frame, RenderFailure, Row, Style
from mdns_browser.terminal import CTRL_C, CTRL_Q, InputSource, TerminalSurface, map_key


def _seq(name: str, code: int) -> Keystroke:
    return Keystroke(ucs="\x1b[x", code=code, name=name)


class _BrokenStream(io.StringIO):
    def write(self, text):
        raise OSError("EIO")


class TestMapKey:
    @pytest.mark.parametrize(
        "name, action",
        [
            ("KEY_UP", Action.UP),
            ("KEY_DOWN", Action.DOWN),
            ("KEY_PGUP", Action.PAGE_UP),
            ("KEY_PGDOWN", Action.PAGE_DOWN),
            ("KEY_HOME", Action.HOME),
            ("KEY_END", Action.END),
            ("KEY_ENTER", Action.ENTER),
            ("KEY_ESCAPE", Action.ESCAPE),
            ("KEY_BACKSPACE", Action.BACKSPACE),
        ],
    )
    def test_named_sequences(self, name, action):
        assert map_key(_seq(name, 300)) == KeyEvent(action)

    def test_unbound_sequence(self):
        assert map_key(_seq("KEY_F5", 269)) is None

    def test_control_characters(self):
        assert map_key(Keystroke(CTRL_Q)) == KeyEvent(Action.QUIT)
        assert map_key(Keystroke(CTRL_C)) == KeyEvent(Action.QUIT)
        assert map_key(Keystroke("\r")) == KeyEvent(Action.ENTER)
        assert map_key(Keystroke("\x7f")) == KeyEvent(Action.BACKSPACE)

    def test_bound_letters_keep_their_text(self):
        assert map_key(Keystroke("q")) == KeyEvent(Action.QUIT, "q")
        assert map_key(Keystroke("/")) == KeyEvent(Action.FILTER, "/")
        assert map_key(Keystroke("j")) == KeyEvent(Action.DOWN, "j")

    def test_plain_character(self):
        assert map_key(Keystroke("x")) == KeyEvent(Action.CHAR, "x")

    def test_empty_and_unprintable(self):
        assert map_key(Keystroke("")) is None
        assert map_key(Keystroke("\x01")) is None


class TestTerminalSurface:
    def _surface(self):
        stream = io.StringIO()
        return TerminalSurface(Terminal(stream=stream, force_styling=None)), stream

    def test_draw_writes_rows(self):
        surface, stream = self._surface()
        frame = Frame(
            width=20,
            height=2,
            rows=(Row("hello".ljust(20), Style.TITLE), Row("> world".ljust(20), Style.SELECTED)),
        )
        surface.draw(frame)
        out = stream.getvalue()
        assert "hello" in out
        assert "> world" in out

    def test_cursor_cell_is_written(self):
        surface, stream = self._surface()
        frame = Frame(width=20, height=1, rows=(Row("/ab".ljust(20), Style.PROMPT),), cursor=(0, 3))
        surface.draw(frame)
        assert stream.getvalue().count("/ab") == 1

    def test_session_uses_raw_mode(self):
        term = MagicMock()
        with TerminalSurface(term).session():
            pass
        term.raw.assert_called_once()
        term.cbreak.assert_not_called()
        term.fullscreen.assert_called_once()
        term.hidden_cursor.assert_called_once()

    def test_zero_size_frame_fails(self):
        surface, _ = self._surface()
        with pytest.raises(RenderFailure):
            surface.draw(Frame(width=0, height=0, rows=()))

    def test_write_error_becomes_render_failure(self):
        surface = TerminalSurface(Terminal(stream=_BrokenStream(), force_styling=None))
        with pytest.raises(RenderFailure):
            surface.draw(Frame(width=20, height=1, rows=(Row("x".ljust(20)),)))


class TestInputSource:
    def test_keys_and_resize_reach_bus(self, bus):
        term = MagicMock()
        term.width, term.height = 80, 24
        keys = iter([Keystroke("j"), Keystroke("")])

        def inkey(timeout):
            key = next(keys, Keystroke(""))
            if key == "":
                term.width = 100
                time.sleep(timeout)
            return key

        term.inkey.side_effect = inkey
        source = InputSource(term, bus, poll_interval=0.01)
        source.start()
        try:
            first = bus.get(timeout=2)
            second = bus.get(timeout=2)
        finally:
            source.stop()
        assert first == KeyEvent(Action.DOWN, "j")
        assert second == ResizeEvent(100, 24)

    def test_read_failure_closes_channel(self, bus):
        term = MagicMock()
        term.width, term.height = 80, 24
        term.inkey.side_effect = OSError("tty gone")
        source = InputSource(term, bus, poll_interval=0.01)
        source.start()
        try:
            with pytest.raises(ChannelClosed) as excinfo:
                bus.get(timeout=2)
        finally:
            source.stop()
        assert excinfo.value.source == "input"
