"""Tab/session store: the set of open documents and which one is active."""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from mdpad.errors import DocumentIOError, StateError
from mdpad.models.callbacks import SessionCallbacks
from mdpad.models.image_data import ImageData
from mdpad.models.tab import (
    CursorPosition,
    DocumentTab,
    EditorSnapshot,
    TabKind,
)

log = logging.getLogger(__name__)

DEFAULT_UNTITLED_NAME = "Untitled"


def name_from_path(file_path: Optional[str], fallback: str = DEFAULT_UNTITLED_NAME) -> str:
    """Display name for a path (its basename), or ``fallback`` when unset."""
    if not file_path:
        return fallback
    return Path(file_path.replace("\\", "/")).name or fallback


class TabStore:
    """Owns every open tab, the active tab id and the live editor snapshot.

    The store always holds at least one tab. ``live`` mirrors the editor pane
    for the active tab and is written back into the tab record on switch.
    """

    def __init__(
        self,
        callbacks: Optional[SessionCallbacks] = None,
        untitled_name: str = DEFAULT_UNTITLED_NAME,
    ) -> None:
        self.callbacks = callbacks or SessionCallbacks()
        self.untitled_name = untitled_name
        self._tabs: Dict[str, DocumentTab] = {}
        self._counter = 0
        self.active_tab_id: Optional[str] = None
        self.live = EditorSnapshot()

        self.switch_to(self.create_tab())

    # -- lookup -----------------------------------------------------------

    @property
    def tabs(self) -> List[DocumentTab]:
        return list(self._tabs.values())

    @property
    def active_tab(self) -> Optional[DocumentTab]:
        if self.active_tab_id is None:
            return None
        return self._tabs.get(self.active_tab_id)

    def __len__(self) -> int:
        return len(self._tabs)

    def __contains__(self, tab_id: str) -> bool:
        return tab_id in self._tabs

    def get(self, tab_id: str) -> Optional[DocumentTab]:
        return self._tabs.get(tab_id)

    def require(self, tab_id: str) -> DocumentTab:
        """Return the tab or raise StateError."""
        try:
            return self._tabs[tab_id]
        except KeyError:
            raise StateError(f"No tab with id {tab_id!r}") from None

    def find_by_path(self, file_path: str) -> Optional[DocumentTab]:
        for tab in self._tabs.values():
            if tab.file_path == file_path:
                return tab
        return None

    def has_unsaved_changes(self) -> bool:
        self.commit_live()
        return any(tab.is_modified for tab in self._tabs.values())

    # -- lifecycle --------------------------------------------------------

    def create_tab(
        self,
        name: Optional[str] = None,
        content: str = "",
        file_path: Optional[str] = None,
        kind: TabKind = TabKind.TEXT,
        image_data: Optional[ImageData] = None,
        original_format: Optional[str] = None,
    ) -> str:
        """Append a new tab and return its id. Focus does not move to it."""
        self._counter += 1
        tab_id = f"tab-{self._counter}"
        tab = DocumentTab(
            id=tab_id,
            name=name or name_from_path(file_path, self.untitled_name),
            content=content,
            file_path=file_path,
            kind=kind,
            image_data=image_data,
            original_format=original_format,
        )
        self._tabs[tab_id] = tab
        log.debug(f"Created {tab_id} ({tab.name}, {kind.value})")
        self._notify(self.callbacks.on_tab_created, tab_id)
        return tab_id

    def switch_to(self, tab_id: str) -> None:
        """Make ``tab_id`` active, saving the outgoing tab's editor state first."""
        if tab_id not in self._tabs:
            log.debug(f"Ignoring switch to unknown tab {tab_id}")
            return

        self.commit_live()
        self.active_tab_id = tab_id
        self.live = self._tabs[tab_id].snapshot()
        log.debug(f"Activated {tab_id}")
        self._notify(self.callbacks.on_tab_activated, tab_id)

    def switch_to_index(self, index: int) -> None:
        tab_ids = list(self._tabs)
        if 0 <= index < len(tab_ids):
            self.switch_to(tab_ids[index])

    def close_tab(self, tab_id: str) -> None:
        """Remove a tab; closing the active tab activates the newest remaining one."""
        if tab_id not in self._tabs:
            return

        del self._tabs[tab_id]
        log.debug(f"Closed {tab_id}")
        self._notify(self.callbacks.on_tab_closed, tab_id)

        if self.active_tab_id != tab_id:
            return

        # The closed tab's live state has nowhere to go
        self.active_tab_id = None
        if self._tabs:
            self.switch_to(next(reversed(self._tabs)))
        else:
            self.switch_to(self.create_tab())

    def open_document(
        self,
        file_path: str,
        content: str,
        kind: TabKind = TabKind.TEXT,
        image_data: Optional[ImageData] = None,
        original_format: Optional[str] = None,
    ) -> str:
        """Open a document, reusing the tab that already shows ``file_path``."""
        existing = self.find_by_path(file_path)
        if existing is not None:
            log.info(f"{file_path} already open in {existing.id}, switching")
            self.switch_to(existing.id)
            return existing.id

        tab_id = self.create_tab(
            content=content,
            file_path=file_path,
            kind=kind,
            image_data=image_data,
            original_format=original_format,
        )
        self.switch_to(tab_id)
        return tab_id

    # -- editing ----------------------------------------------------------

    def update_live(
        self,
        content: Optional[str] = None,
        cursor_position: Optional[CursorPosition] = None,
        scroll_position: Optional[float] = None,
    ) -> None:
        """Record what the editor pane shows for the active tab."""
        if content is not None and content != self.live.content:
            self.live.content = content
            if self.active_tab_id is not None:
                self.mark_modified(self.active_tab_id)
        if cursor_position is not None:
            self.live.cursor_position = cursor_position
        if scroll_position is not None:
            self.live.scroll_position = scroll_position

    def set_content(self, tab_id: str, content: str) -> None:
        """Replace a tab's buffer programmatically (replace-all, imports)."""
        tab = self._tabs.get(tab_id)
        if tab is None:
            return
        if tab_id == self.active_tab_id:
            self.update_live(content=content)
        elif content != tab.content:
            tab.content = content
            self.mark_modified(tab_id)

    def content_of(self, tab_id: str) -> str:
        """Current buffer of a tab, reading the live snapshot for the active one."""
        if tab_id == self.active_tab_id:
            return self.live.content
        return self.require(tab_id).content

    def mark_modified(self, tab_id: str) -> None:
        tab = self._tabs.get(tab_id)
        if tab is None or tab.is_modified:
            return
        tab.is_modified = True
        self._notify(self.callbacks.on_tab_updated, tab_id)

    # -- persistence ------------------------------------------------------

    def save_tab(
        self,
        tab_id: str,
        writer: Callable[[str, str], str],
        file_path: Optional[str] = None,
    ) -> str:
        """Write a tab's buffer through ``writer(path, content)`` and mark it saved.

        ``file_path`` overrides the tab's stored path (save-as). A tab with no
        stored path needs one supplied; no path is ever invented.
        """
        tab = self.require(tab_id)
        target = file_path or tab.file_path
        if not target:
            raise DocumentIOError(f"Tab {tab.name!r} has no file path; choose one to save")

        content = self.content_of(tab_id)
        saved_path = writer(target, content)
        self.mark_saved(tab_id, saved_path, rename=file_path is not None)
        return saved_path

    def mark_saved(self, tab_id: str, file_path: str, rename: bool = False) -> None:
        tab = self.require(tab_id)
        was_untitled = tab.file_path is None
        tab.file_path = file_path
        tab.is_modified = False
        tab.content = self.content_of(tab_id)
        if rename or was_untitled:
            tab.name = name_from_path(file_path, self.untitled_name)
        log.info(f"Saved {tab_id} to {file_path}")
        self._notify(self.callbacks.on_tab_updated, tab_id)

    def reload_tab(self, tab_id: str, content: str) -> None:
        """Load fresh content from disk, discarding unsaved edits."""
        tab = self._tabs.get(tab_id)
        if tab is None:
            return
        tab.content = content
        tab.is_modified = False
        if tab_id == self.active_tab_id:
            self.live.content = content
        log.info(f"Reloaded {tab_id} from {tab.file_path}")
        self._notify(self.callbacks.on_tab_updated, tab_id)

    # -- internals --------------------------------------------------------

    def commit_live(self) -> None:
        """Write the live editor snapshot back into the active tab record."""
        tab = self.active_tab
        if tab is not None:
            tab.restore(self.live)

    def _notify(self, callback: Optional[Callable[[str], None]], tab_id: str) -> None:
        if callback:
            callback(tab_id)
