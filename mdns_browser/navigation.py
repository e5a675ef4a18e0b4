"""Navigation state — mode, selection and scroll over the visible set.

States: LIST → DETAIL (enter) → LIST (escape)
        LIST / DETAIL → FILTER_EDIT (filter key)
        FILTER_EDIT → LIST (confirm) | previous mode (cancel)

``selected_index`` and ``scroll_offset`` are positions into the filtered
view, never registry identities. Whenever the size of that view changes
the controller calls :meth:`NavigationState.repair`, which restores

    0 <= selected_index < visible_count       (0 when the view is empty)
    scroll_offset <= selected_index < scroll_offset + viewport_height

Single steps wrap around the ends (unless ``wrap`` is off); page steps
always clamp.
"""

from __future__ import annotations

import enum
import logging

logger = logging.getLogger(__name__)


class Mode(enum.Enum):
    LIST = "list"
    DETAIL = "detail"
    FILTER_EDIT = "filter_edit"


class NavigationState:
    def __init__(self, viewport_height: int = 1, wrap: bool = True) -> None:
        self.mode = Mode.LIST
        self.previous_mode = Mode.LIST
        self.selected_index = 0
        self.scroll_offset = 0
        self.visible_count = 0
        self.viewport_height = max(1, viewport_height)
        self.wrap = wrap

    # ── Invariant repair ───────────────────────────────────────────

    def repair(self, visible_count: int) -> bool:
        """Clamp selection and scroll to a view of *visible_count* rows.

        Returns ``True`` if the selection or scroll moved.
        """
        before = (self.selected_index, self.scroll_offset)
        self.visible_count = max(0, visible_count)
        if self.visible_count == 0:
            self.selected_index = 0
            self.scroll_offset = 0
        else:
            self.selected_index = min(max(self.selected_index, 0), self.visible_count - 1)
            self._scroll_to_selection()
        return (self.selected_index, self.scroll_offset) != before

    def set_viewport(self, height: int) -> bool:
        height = max(1, height)
        if height == self.viewport_height:
            return False
        self.viewport_height = height
        self.repair(self.visible_count)
        return True

    def _scroll_to_selection(self) -> None:
        if self.selected_index < self.scroll_offset:
            self.scroll_offset = self.selected_index
        elif self.selected_index >= self.scroll_offset + self.viewport_height:
            self.scroll_offset = self.selected_index - self.viewport_height + 1
        # Don't leave blank rows at the bottom when the view could be fuller.
        max_offset = max(0, self.visible_count - self.viewport_height)
        self.scroll_offset = min(self.scroll_offset, max_offset)

    def _select(self, index: int) -> bool:
        if self.visible_count == 0:
            return False
        before = (self.selected_index, self.scroll_offset)
        self.selected_index = index
        self._scroll_to_selection()
        return (self.selected_index, self.scroll_offset) != before

    # ── Movement ───────────────────────────────────────────────────

    def step(self, delta: int) -> bool:
        """Move the selection by *delta* rows (wrapping or clamping at the ends)."""
        if self.visible_count == 0:
            return False
        target = self.selected_index + delta
        if self.wrap:
            target %= self.visible_count
        else:
            target = min(max(target, 0), self.visible_count - 1)
        return self._select(target)

    def page(self, direction: int) -> bool:
        """Move one viewport up (``-1``) or down (``+1``), clamped."""
        if self.visible_count == 0:
            return False
        target = self.selected_index + direction * self.viewport_height
        return self._select(min(max(target, 0), self.visible_count - 1))

    def home(self) -> bool:
        return self._select(0)

    def end(self) -> bool:
        return self._select(self.visible_count - 1)

    # ── Mode transitions ───────────────────────────────────────────

    def _enter(self, mode: Mode) -> bool:
        if mode is self.mode:
            return False
        logger.debug("navigation: %s → %s", self.mode.value, mode.value)
        self.mode = mode
        return True

    def open_detail(self) -> bool:
        if self.mode is not Mode.LIST or self.visible_count == 0:
            return False
        return self._enter(Mode.DETAIL)

    def close_detail(self) -> bool:
        if self.mode is not Mode.DETAIL:
            return False
        return self._enter(Mode.LIST)

    def begin_filter_edit(self) -> bool:
        if self.mode is Mode.FILTER_EDIT:
            return False
        self.previous_mode = self.mode
        return self._enter(Mode.FILTER_EDIT)

    def confirm_filter_edit(self) -> bool:
        if self.mode is not Mode.FILTER_EDIT:
            return False
        return self._enter(Mode.LIST)

    def cancel_filter_edit(self) -> bool:
        if self.mode is not Mode.FILTER_EDIT:
            return False
        return self._enter(self.previous_mode)

    # ── Views ──────────────────────────────────────────────────────

    def visible_window(self) -> range:
        """Indices of the rows currently on screen."""
        stop = min(self.visible_count, self.scroll_offset + self.viewport_height)
        return range(self.scroll_offset, stop)
