"""Tab data model for the editor session."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .image_data import ImageData


class TabKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    WORD_IMPORTED = "word_imported"


class TabState(str, Enum):
    UNSAVED = "unsaved"
    SAVED = "saved"
    MODIFIED = "modified"


@dataclass
class CursorPosition:
    """Zero-based caret location."""

    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Selection:
    """A selected range of the buffer as ``[start, end)`` offsets."""

    start: int
    end: int

    @classmethod
    def caret(cls, offset: int) -> "Selection":
        return cls(offset, offset)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def text(self, buffer: str) -> str:
        return buffer[self.start : self.end]


@dataclass
class EditorSnapshot:
    """What the editor pane currently shows for the active tab."""

    content: str = ""
    cursor_position: CursorPosition = field(default_factory=CursorPosition)
    scroll_position: float = 0.0


@dataclass
class DocumentTab:
    """Encapsulates all state for a single open document (data only, no UI elements)"""

    id: str
    name: str
    content: str = ""
    file_path: Optional[str] = None
    is_modified: bool = False
    kind: TabKind = TabKind.TEXT
    image_data: Optional[ImageData] = None
    original_format: Optional[str] = None

    # UI state (not elements - just positions to restore)
    cursor_position: CursorPosition = field(default_factory=CursorPosition)
    scroll_position: float = 0.0

    @property
    def state(self) -> TabState:
        if self.file_path is None:
            return TabState.UNSAVED
        return TabState.MODIFIED if self.is_modified else TabState.SAVED

    def is_image(self) -> bool:
        """Check if tab shows an image rather than text"""
        return self.kind == TabKind.IMAGE

    def snapshot(self) -> EditorSnapshot:
        return EditorSnapshot(
            content=self.content,
            cursor_position=CursorPosition(
                self.cursor_position.line, self.cursor_position.column
            ),
            scroll_position=self.scroll_position,
        )

    def restore(self, snapshot: EditorSnapshot) -> None:
        """Copy the editor pane state back into this tab."""
        self.content = snapshot.content
        self.cursor_position = CursorPosition(
            snapshot.cursor_position.line, snapshot.cursor_position.column
        )
        self.scroll_position = snapshot.scroll_position
