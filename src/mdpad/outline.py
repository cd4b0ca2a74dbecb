"""Heading outline extraction for Markdown buffers."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from mdpad.debounce import Debouncer, TimerFactory

log = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")
DEFAULT_DEBOUNCE_MS = 300


@dataclass
class Heading:
    """A heading and the headings nested under it."""

    level: int
    text: str
    line_number: int  # 1-based
    anchor: str = ""
    children: List["Heading"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "text": self.text,
            "line_number": self.line_number,
            "anchor": self.anchor,
            "children": [child.to_dict() for child in self.children],
        }


def make_anchor(text: str) -> str:
    """Slug for a heading: lowercase, punctuation dropped, whitespace to hyphens."""
    slug = text.lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def extract_headings(buffer: str) -> List[Heading]:
    """Flat list of headings in document order."""
    headings = []
    for index, line in enumerate(buffer.split("\n")):
        match = HEADING_PATTERN.match(line.rstrip("\r"))
        if not match:
            continue
        text = match.group(2).strip()
        if not text:
            continue
        headings.append(
            Heading(
                level=len(match.group(1)),
                text=text,
                line_number=index + 1,
                anchor=make_anchor(text),
            )
        )
    return headings


def build_tree(headings: List[Heading]) -> List[Heading]:
    """Nest headings under the nearest preceding heading of a smaller level."""
    roots: List[Heading] = []
    stack: List[Heading] = []
    for heading in headings:
        while stack and stack[-1].level >= heading.level:
            stack.pop()
        if stack:
            stack[-1].children.append(heading)
        else:
            roots.append(heading)
        stack.append(heading)
    return roots


def extract(buffer: str) -> List[Heading]:
    """Heading tree for a Markdown buffer."""
    return build_tree(extract_headings(buffer))


def line_offset(buffer: str, line_number: int) -> Optional[int]:
    """Offset of the first character of a 1-based line, or None if out of range."""
    lines = buffer.split("\n")
    if not 1 <= line_number <= len(lines):
        return None
    return sum(len(line) + 1 for line in lines[: line_number - 1])


class OutlineTracker:
    """Recomputes the outline after edits settle and hands it to a callback."""

    def __init__(
        self,
        on_outline: Callable[[List[Heading]], None],
        delay_ms: int = DEFAULT_DEBOUNCE_MS,
        timer_factory: Optional[TimerFactory] = None,
    ):
        self.on_outline = on_outline
        self.headings: List[Heading] = []
        self._debouncer = Debouncer(delay_ms, self._update, timer_factory)

    def content_changed(self, buffer: str) -> None:
        self._debouncer.trigger(buffer)

    def refresh_now(self, buffer: str) -> List[Heading]:
        """Extract immediately, dropping any pending update."""
        self._debouncer.cancel()
        self._update(buffer)
        return self.headings

    def flush(self) -> None:
        self._debouncer.flush()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def _update(self, buffer: str) -> None:
        self.headings = extract(buffer)
        log.debug(f"Outline updated: {len(self.headings)} top-level headings")
        self.on_outline(self.headings)
