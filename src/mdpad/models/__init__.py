"""Data models shared by the editor core and the host API."""

from .callbacks import SessionCallbacks
from .image_data import ImageData
from .messages import (
    BridgeFailure,
    Canceled,
    ContentEdited,
    ConvertedDocument,
    DirectoryEntry,
    Exported,
    FileChanged,
    FileOpened,
    FolderOpened,
    HostEvent,
    MenuCommand,
    OcrResult,
    SaveSucceeded,
    TabRequested,
    ViewModeRequested,
    parse_event,
)
from .tab import (
    CursorPosition,
    DocumentTab,
    EditorSnapshot,
    Selection,
    TabKind,
    TabState,
)

__all__ = [
    "BridgeFailure",
    "Canceled",
    "ContentEdited",
    "ConvertedDocument",
    "CursorPosition",
    "DirectoryEntry",
    "DocumentTab",
    "EditorSnapshot",
    "Exported",
    "FileChanged",
    "FileOpened",
    "FolderOpened",
    "HostEvent",
    "ImageData",
    "MenuCommand",
    "OcrResult",
    "SaveSucceeded",
    "Selection",
    "SessionCallbacks",
    "TabKind",
    "TabRequested",
    "TabState",
    "ViewModeRequested",
    "parse_event",
]
