"""Filter engine — regex filtering of the registry into the visible set.

Two stages:
  compile_pattern()  pattern text → matcher, memoized on the text
  apply()            matcher × registry snapshot → visible identities

An empty pattern is the match-everything fast path and never touches the
regex machinery.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from mdns_browser.events import ServiceIdentity
from mdns_browser.registry import ServiceRecord

logger = logging.getLogger(__name__)

Matcher = Optional[re.Pattern]

# Sentinel meaning "no filter"; apply() short-circuits on it.
MATCH_ALL: Matcher = None

FIELD_SEPARATOR = " "


class InvalidPattern(ValueError):
    """Filter text that does not compile as a regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"invalid pattern /{pattern}/: {reason}")
        self.pattern = pattern
        self.reason = reason


def compile_pattern(pattern: str, ignore_case: bool = False) -> Matcher:
    """Compile *pattern* into a matcher.

    Raises:
        InvalidPattern: the text is not a valid regular expression.
    """
    if not pattern:
        return MATCH_ALL
    flags = re.IGNORECASE if ignore_case else 0
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise InvalidPattern(pattern, str(exc)) from exc


def display_string(record: ServiceRecord) -> str:
    """Text a filter pattern is matched against: name, type, then attributes."""
    parts = [record.identity.instance, record.identity.service_type]
    parts.extend(f"{key}={value}" for key, value in sorted(record.attributes.items()))
    return FIELD_SEPARATOR.join(parts)


def apply(matcher: Matcher, records: Iterable[ServiceRecord]) -> tuple[ServiceIdentity, ...]:
    """Return the identities of live records matching *matcher*, in registry order."""
    if matcher is MATCH_ALL:
        return tuple(r.identity for r in records if not r.is_removed)
    return tuple(
        r.identity
        for r in records
        if not r.is_removed and matcher.search(display_string(r))
    )


class FilterState:
    """Active pattern plus the in-progress edit of it.

    The active ``pattern``/``matcher`` pair only changes to a pattern that
    compiled. While editing, each keystroke updates ``draft``; a draft that
    compiles is applied live, one that does not is flagged via ``error``
    and the previous matcher stays in force.
    """

    def __init__(self, ignore_case: bool = False) -> None:
        self.ignore_case = ignore_case
        self.pattern = ""
        self.matcher: Matcher = MATCH_ALL
        self.draft = ""
        self.error: str | None = None
        self._saved: tuple[str, Matcher] | None = None
        self._cache: tuple[str, Matcher] = ("", MATCH_ALL)

    @property
    def editing(self) -> bool:
        return self._saved is not None

    def _compile(self, text: str) -> Matcher:
        cached_text, cached_matcher = self._cache
        if text == cached_text:
            return cached_matcher
        matcher = compile_pattern(text, self.ignore_case)
        self._cache = (text, matcher)
        return matcher

    def set_pattern(self, text: str) -> bool:
        """Make *text* the active pattern.

        Returns ``True`` if the active matcher changed. On
        :class:`InvalidPattern` the previous pattern and matcher are kept
        and ``error`` describes the failure.
        """
        if text == self.pattern:
            self.error = None
            return False
        try:
            matcher = self._compile(text)
        except InvalidPattern as exc:
            self.error = exc.reason
            raise
        self.pattern = text
        self.matcher = matcher
        self.error = None
        logger.debug("filter pattern set to %r", text)
        return True

    # ── Edit session ───────────────────────────────────────────────

    def begin_edit(self) -> None:
        self._saved = (self.pattern, self.matcher)
        self.draft = self.pattern
        self.error = None

    def edit(self, text: str) -> bool:
        """Replace the draft with *text*; returns ``True`` if the visible set may change."""
        self.draft = text
        try:
            return self.set_pattern(text)
        except InvalidPattern:
            return False

    def confirm(self) -> None:
        """Keep the draft as the active pattern.

        Raises:
            InvalidPattern: the draft does not compile; the edit stays open.
        """
        self.set_pattern(self.draft)
        self._saved = None

    def cancel(self) -> bool:
        """Restore the pattern active before the edit began."""
        changed = False
        if self._saved is not None:
            pattern, matcher = self._saved
            changed = pattern != self.pattern
            self.pattern, self.matcher = pattern, matcher
        self._saved = None
        self.draft = self.pattern
        self.error = None
        return changed

    def apply(self, records: Iterable[ServiceRecord]) -> tuple[ServiceIdentity, ...]:
        return apply(self.matcher, records)
