"""Find matches of a literal or regex pattern in a text buffer."""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from mdpad.errors import NotFoundError, PatternError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOptions:
    """Flags controlling how a pattern is interpreted."""

    case_sensitive: bool = False
    whole_word: bool = False
    regex: bool = False


@dataclass(frozen=True)
class Match:
    """A located occurrence of a pattern in a buffer."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def text(self, buffer: str) -> str:
        return buffer[self.offset : self.end]


def compile_pattern(pattern: str, options: SearchOptions) -> "re.Pattern[str]":
    """Build the regular expression used for matching.

    Literal patterns are escaped first; whole-word search wraps the result in
    word-boundary assertions. Matching is case-insensitive unless
    ``options.case_sensitive`` is set.
    """
    source = pattern if options.regex else re.escape(pattern)
    if options.whole_word:
        source = rf"\b(?:{source})\b"

    flags = 0 if options.case_sensitive else re.IGNORECASE
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise PatternError(f"Invalid search pattern {pattern!r}: {e}") from e


def find(buffer: str, pattern: str, options: Optional[SearchOptions] = None) -> List[Match]:
    """Return every non-overlapping match of ``pattern`` in ``buffer``, left to right."""
    options = options or SearchOptions()
    if not pattern:
        return []

    regex = compile_pattern(pattern, options)
    matches: List[Match] = []
    pos = 0
    while pos <= len(buffer):
        m = regex.search(buffer, pos)
        if m is None:
            break
        matches.append(Match(offset=m.start(), length=m.end() - m.start()))
        # A zero-length match would otherwise be found again at the same spot
        pos = m.end() + 1 if m.end() == m.start() else m.end()

    log.debug(f"Pattern {pattern!r} matched {len(matches)} times")
    return matches


@dataclass
class SearchState:
    """Search results for the active buffer plus the current-match cursor."""

    pattern: str = ""
    options: SearchOptions = field(default_factory=SearchOptions)
    matches: List[Match] = field(default_factory=list)
    cursor_index: int = -1

    @property
    def current(self) -> Optional[Match]:
        if 0 <= self.cursor_index < len(self.matches):
            return self.matches[self.cursor_index]
        return None

    def configure(self, pattern: str, options: Optional[SearchOptions] = None) -> None:
        """Set a new pattern; held matches are dropped if anything changed."""
        options = options or SearchOptions()
        if pattern != self.pattern or options != self.options:
            self.pattern = pattern
            self.options = options
            self.invalidate()

    def search(self, buffer: str) -> List[Match]:
        """Recompute matches for the current pattern and reset the cursor."""
        self.matches = find(buffer, self.pattern, self.options)
        self.cursor_index = -1
        return self.matches

    def invalidate(self) -> None:
        """Forget matches after the buffer changed underneath them."""
        self.matches = []
        self.cursor_index = -1

    def _ensure_matches(self, buffer: str) -> None:
        if not self.matches:
            self.search(buffer)
        if not self.matches:
            raise NotFoundError(f"No match for {self.pattern!r}")

    def find_next(self, buffer: str) -> Match:
        """Advance to the next match, wrapping after the last one."""
        self._ensure_matches(buffer)
        self.cursor_index = (self.cursor_index + 1) % len(self.matches)
        return self.matches[self.cursor_index]

    def find_previous(self, buffer: str) -> Match:
        """Step back to the previous match, wrapping before the first one."""
        self._ensure_matches(buffer)
        if self.cursor_index <= 0:
            self.cursor_index = len(self.matches) - 1
        else:
            self.cursor_index -= 1
        return self.matches[self.cursor_index]
