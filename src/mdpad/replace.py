"""Replace the current match or every match of a pattern in a buffer."""

import logging
from dataclasses import dataclass
from typing import Optional

from mdpad.errors import NotFoundError
from mdpad.models.tab import Selection
from mdpad.search import Match, SearchOptions, SearchState, find

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplaceResult:
    new_buffer: str
    replaced: bool
    selection: Optional[Selection] = None


@dataclass(frozen=True)
class ReplaceAllResult:
    new_buffer: str
    count: int


def _splice(buffer: str, match: Match, replacement: str) -> str:
    return buffer[: match.offset] + replacement + buffer[match.end :]


def _selection_matches(
    buffer: str, selection: Optional[Selection], match: Match, case_sensitive: bool
) -> bool:
    if selection is None or selection.is_empty:
        return False
    selected = selection.text(buffer)
    expected = match.text(buffer)
    if case_sensitive:
        return selected == expected
    return selected.casefold() == expected.casefold()


def replace_one(
    buffer: str,
    state: SearchState,
    replacement: str,
    selection: Optional[Selection] = None,
) -> ReplaceResult:
    """Replace the selected match, or advance to the next match and replace that.

    When no match is current yet the first match becomes current and counts as
    selected. After a replacement the state's matches are stale and get
    invalidated; the returned selection is a caret after the inserted text.
    """
    if not state.matches:
        state.search(buffer)
        if not state.matches:
            return ReplaceResult(buffer, False)

    if state.cursor_index == -1:
        state.cursor_index = 0
        first = state.matches[0]
        selection = Selection(first.offset, first.end)

    target = state.current
    if target is None or not _selection_matches(
        buffer, selection, target, state.options.case_sensitive
    ):
        try:
            target = state.find_next(buffer)
        except NotFoundError:
            return ReplaceResult(buffer, False)

    new_buffer = _splice(buffer, target, replacement)
    state.invalidate()
    log.debug(f"Replaced match at {target.offset} (length {target.length})")
    return ReplaceResult(
        new_buffer, True, Selection.caret(target.offset + len(replacement))
    )


def replace_all(
    buffer: str,
    pattern: str,
    replacement: str,
    options: Optional[SearchOptions] = None,
) -> ReplaceAllResult:
    """Replace every match in a single pass and report how many were replaced."""
    matches = find(buffer, pattern, options)
    if not matches:
        return ReplaceAllResult(buffer, 0)

    pieces = []
    pos = 0
    for match in matches:
        pieces.append(buffer[pos : match.offset])
        pieces.append(replacement)
        pos = match.end
    pieces.append(buffer[pos:])

    log.info(f"Replaced {len(matches)} occurrences of {pattern!r}")
    return ReplaceAllResult("".join(pieces), len(matches))
