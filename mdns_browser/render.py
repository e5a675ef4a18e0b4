"""Renderer — a pure function from application state to a terminal frame.

Layout, top to bottom::

    title                       (1 row)
    list / detail title bar     (1 row)
    body                        (height - 5 rows, the navigation viewport)
    rule                        (1 row)
    prompt / notice             (1 row)
    key help                    (1 row)

The renderer only reads its inputs. Identical inputs give an identical
:class:`Frame`, so it can be tested without a terminal; writing the frame
out is the terminal surface's job.
"""

from __future__ import annotations

import enum
import textwrap
from dataclasses import dataclass

from wcwidth import wcswidth, wcwidth

from mdns_browser import APP_DESCRIPTION, __version__
from mdns_browser.events import ServiceIdentity
from mdns_browser.filtering import FilterState
from mdns_browser.navigation import Mode, NavigationState
from mdns_browser.registry import ServiceRecord, ServiceState

HEADER_ROWS = 2
FOOTER_ROWS = 3
MIN_WIDTH = 20
MIN_HEIGHT = HEADER_ROWS + FOOTER_ROWS + 1

_LABEL_WIDTH = 11

_HELP = {
    Mode.LIST: "↑↓ select  PgUp/PgDn page  ↵ details  / filter  q quit",
    Mode.DETAIL: "↑↓ select  Esc back  / filter  q quit",
    Mode.FILTER_EDIT: "↵ apply  Esc cancel  ⌫ delete  C-q quit",
}

_STATE_TAGS = {
    ServiceState.RESOLVING: "resolving…",
    ServiceState.RESOLVED: "",
    ServiceState.REMOVED: "removed",
}


class RenderFailure(RuntimeError):
    """The terminal surface cannot hold a frame (e.g. resized to nothing)."""


class Style(enum.Enum):
    TITLE = "title"
    BAR = "bar"
    NORMAL = "normal"
    ALT = "alt"
    SELECTED = "selected"
    DIM = "dim"
    REMOVED = "removed"
    RULE = "rule"
    PROMPT = "prompt"
    ERROR = "error"
    NOTICE = "notice"
    HELP = "help"


@dataclass(frozen=True)
class Row:
    text: str
    style: Style = Style.NORMAL


@dataclass(frozen=True)
class Frame:
    width: int
    height: int
    rows: tuple[Row, ...]
    cursor: tuple[int, int] | None = None
    highlight: int | None = None


@dataclass(frozen=True)
class RegistryView:
    """Read-only slice of controller state the renderer needs."""

    records: tuple[ServiceRecord, ...]
    visible: tuple[ServiceIdentity, ...]
    query: str = ""
    detail: ServiceIdentity | None = None


def viewport_height(height: int) -> int:
    """Body rows available on a terminal *height* rows tall."""
    return max(0, height - HEADER_ROWS - FOOTER_ROWS)


def _width(text: str) -> int:
    """Terminal cells *text* occupies (wide CJK/emoji count as two)."""
    cells = wcswidth(text)
    return cells if cells >= 0 else len(text)


def _fit(text: str, width: int) -> str:
    used = _width(text)
    if used <= width:
        return text + " " * (width - used)
    out = []
    used = 0
    for ch in text:
        cells = max(wcwidth(ch), 0)
        if used + cells > width - 1:
            break
        out.append(ch)
        used += cells
    return "".join(out) + "…" + " " * (width - 1 - used)


def _list_title(view: RegistryView, filter_state: FilterState) -> str:
    title = f"Services ({len(view.visible)})"
    if filter_state.pattern:
        title += f"(/{filter_state.pattern}/)"
    return title


def _list_rows(
    view: RegistryView,
    by_identity: dict[ServiceIdentity, ServiceRecord],
    filter_state: FilterState,
    nav: NavigationState,
    width: int,
    body_height: int,
) -> tuple[list[Row], int | None]:
    if not view.visible:
        if filter_state.pattern:
            return [Row(f"  (no services match /{filter_state.pattern}/)", Style.DIM)], None
        return [Row("  (waiting for services…)", Style.DIM)], None

    window = [i for i in nav.visible_window() if i < len(view.visible)][:body_height]
    names = [view.visible[i].instance for i in window]
    name_width = min(max((_width(n) for n in names), default=8), max(8, width // 2))

    rows: list[Row] = []
    highlight = None
    for offset, index in enumerate(window):
        identity = view.visible[index]
        record = by_identity[identity]
        selected = index == nav.selected_index
        marker = ">" if selected else " "
        tag = _STATE_TAGS[record.state]
        text = f"{marker} {_fit(identity.instance, name_width)}  {identity.service_type}"
        if tag:
            text += f"  [{tag}]"
        if selected:
            style = Style.SELECTED
            highlight = offset
        else:
            style = Style.NORMAL if offset % 2 == 0 else Style.ALT
        rows.append(Row(text, style))
    return rows, highlight


def _detail_rows(record: ServiceRecord | None, width: int) -> list[Row]:
    if record is None:
        return [Row("  (service no longer available)", Style.DIM)]

    def field_row(label: str, value: object) -> Row:
        shown = "" if value is None else str(value)
        return Row(f" {label:<{_LABEL_WIDTH}} {shown}", Style.NORMAL)

    state_style = Style.REMOVED if record.is_removed else Style.NORMAL
    rows = [
        field_row("Name", record.identity.instance),
        field_row("Type", record.identity.service_type),
        Row(f" {'State':<{_LABEL_WIDTH}} {record.state.value}", state_style),
        field_row("Hostname", record.server),
        field_row("Addresses", " ".join(record.addresses)),
        field_row("Port", record.port),
        field_row("Host TTL", record.host_ttl),
        field_row("Other TTL", record.other_ttl),
        field_row("Priority", record.priority),
        field_row("Weight", record.weight),
    ]

    wrap_width = max(10, width - _LABEL_WIDTH - 2)
    indent = " " * (_LABEL_WIDTH + 2)
    label = f" {'Properties':<{_LABEL_WIDTH}} "
    if not record.attributes:
        rows.append(Row(label, Style.NORMAL))
    for key, value in sorted(record.attributes.items()):
        for line in textwrap.wrap(f"{key}={value}", wrap_width) or [""]:
            rows.append(Row(label + line, Style.NORMAL))
            label = indent
    return rows


def _footer_line(filter_state: FilterState, nav: NavigationState, notice: str | None) -> Row:
    if nav.mode is Mode.FILTER_EDIT:
        prompt = f"/{filter_state.draft}"
        if filter_state.error:
            return Row(f"{prompt}    ✗ {filter_state.error}", Style.ERROR)
        return Row(prompt, Style.PROMPT)
    if notice:
        return Row(notice, Style.NOTICE)
    return Row("", Style.NORMAL)


def render(
    view: RegistryView,
    filter_state: FilterState,
    nav: NavigationState,
    width: int,
    height: int,
    notice: str | None = None,
) -> Frame:
    """Build the frame for a *width* × *height* terminal.

    Raises:
        RenderFailure: the terminal is too small to hold the layout.
    """
    if width < MIN_WIDTH or height < MIN_HEIGHT:
        raise RenderFailure(f"terminal too small ({width}x{height})")

    by_identity = {record.identity: record for record in view.records}
    body_height = viewport_height(height)

    title = f"{APP_DESCRIPTION}, v{__version__}"
    if view.query:
        title += f"  ·  {view.query}"

    highlight = None
    if nav.mode is Mode.DETAIL:
        detail = by_identity.get(view.detail) if view.detail is not None else None
        bar = f"Detailed info: {view.detail}" if view.detail is not None else "Detailed info"
        body = _detail_rows(detail, width)
        if len(body) > body_height:
            hidden = len(body) - body_height + 1
            body = body[: body_height - 1] + [Row(f"  … {hidden} more line(s)", Style.DIM)]
    else:
        bar = _list_title(view, filter_state)
        body, highlight = _list_rows(view, by_identity, filter_state, nav, width, body_height)

    body = body[:body_height]
    body.extend(Row("") for _ in range(body_height - len(body)))

    rows = [Row(title.center(width), Style.TITLE), Row(bar.center(width), Style.BAR)]
    rows.extend(body)
    rows.append(Row("─" * width, Style.RULE))
    footer = _footer_line(filter_state, nav, notice)
    rows.append(footer)
    rows.append(Row(_HELP[nav.mode].center(width), Style.HELP))

    fitted = tuple(Row(_fit(row.text, width), row.style) for row in rows)

    cursor = None
    if nav.mode is Mode.FILTER_EDIT:
        cursor = (height - 2, min(_width(filter_state.draft) + 1, width - 1))
    if highlight is not None:
        highlight += HEADER_ROWS

    return Frame(width=width, height=height, rows=fitted, cursor=cursor, highlight=highlight)

