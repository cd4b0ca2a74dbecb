"""Application state: owns the tab store, search, view mode, outline and bridges."""

import asyncio
import logging
import re
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from mdpad.bridges.conversion import WordConverter
from mdpad.bridges.files import WORD_EXTENSIONS, FileBridge, detect_kind
from mdpad.bridges.images import process_image_file
from mdpad.bridges.ocr import HttpOcrClient, OcrClient, VisionOcrClient
from mdpad.browser import FolderBrowser
from mdpad.config import Config
from mdpad.debounce import TimerFactory
from mdpad.errors import DocumentIOError, OcrError
from mdpad.models.callbacks import SessionCallbacks
from mdpad.models.messages import (
    ContentEdited,
    FileChanged,
    FileOpened,
    FolderOpened,
    HostEvent,
    MenuCommand,
    OcrResult,
    TabRequested,
    ViewModeRequested,
)
from mdpad.models.tab import CursorPosition, Selection, TabKind
from mdpad.outline import Heading, OutlineTracker, line_offset
from mdpad.preview import MarkdownRenderer
from mdpad.replace import ReplaceAllResult, ReplaceResult, replace_all, replace_one
from mdpad.search import Match, SearchOptions, SearchState
from mdpad.session import TabStore
from mdpad.view_mode import ViewMode, ViewModeController
from mdpad.watcher import PathWatcher

log = logging.getLogger(__name__)


def build_ocr_client(config: Config) -> OcrClient:
    """OCR backend selected by ``config.OCR_BACKEND``."""
    if config.OCR_BACKEND == "vision":
        return VisionOcrClient(
            config.client,
            config.MODEL_NAME,
            max_tokens=config.MAX_TOKENS,
            temperature=config.TEMPERATURE,
        )
    return HttpOcrClient(config.OCR_URL, timeout=config.OCR_TIMEOUT)


def markdown_path_for(path: str) -> str:
    """Sibling ``.md`` path for an imported Word document."""
    return re.sub(r"\.(doc|docx)$", ".md", path, flags=re.IGNORECASE)


class EditorApp:
    """The whole editor session for one window.

    Every operation the front end can trigger is a method here. Components are
    created from the config unless passed in, and ``on_state_changed`` is
    called whenever the state returned by ``snapshot()`` may have changed.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        files: Optional[FileBridge] = None,
        converter: Optional[WordConverter] = None,
        renderer: Optional[MarkdownRenderer] = None,
        ocr_client: Optional[OcrClient] = None,
        timer_factory: Optional[TimerFactory] = None,
        on_state_changed: Optional[Callable[[], None]] = None,
        on_file_changed: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Initialize the application state.

        Args:
            config: Settings; a fresh Config is created when omitted
            files: File bridge for reads, writes and listings
            converter: Word document converter
            renderer: Markdown preview renderer
            ocr_client: OCR backend; built from the config on first use when omitted
            timer_factory: Timer used by the debounced outline and the watcher
            on_state_changed: Called after any change visible in snapshot()
            on_file_changed: Called with (tab_id, path) when an open file changed on disk
        """
        self.config = config or Config()
        self.files = files or FileBridge()
        self.converter = converter or WordConverter(self.config.ANTIWORD_PATH)
        self.renderer = renderer or MarkdownRenderer(sanitize=self.config.SANITIZE_PREVIEW)
        self._ocr_client = ocr_client
        self._timer_factory = timer_factory
        self.on_state_changed = on_state_changed
        self.on_file_changed = on_file_changed

        self.preview_html = ""
        self.outline: List[Heading] = []
        self.sidebar_visible: bool = self.config.SIDEBAR_VISIBLE
        self.loading: Set[str] = set()
        self.pending_reloads: Set[str] = set()
        self.last_ocr: Optional[OcrResult] = None
        self.watcher: Optional[PathWatcher] = None
        # Held by host API calls and by callbacks arriving on timer threads
        self.lock = threading.RLock()

        self.search = SearchState()
        self.view_mode = ViewModeController(
            self.config.DEFAULT_VIEW_MODE,
            on_render_preview=self._render_preview,
            on_render_image=self._render_image,
        )
        self.outline_tracker = OutlineTracker(
            self._on_outline, self.config.OUTLINE_DEBOUNCE_MS, timer_factory
        )
        self.browser = FolderBrowser(
            self.files,
            extensions=self.config.FILE_EXTENSIONS,
            excluded_dirs=self.config.EXCLUDED_DIRS,
            show_hidden=self.config.SHOW_HIDDEN_FILES,
            show_images=self.config.SHOW_IMAGES_IN_TREE,
            on_directory_change=self._on_directory_change,
        )

        self.session = TabStore(untitled_name=self.config.UNTITLED_NAME)
        self.session.callbacks = SessionCallbacks(on_tab_activated=self._on_tab_activated)
        self._on_tab_activated(self.session.active_tab_id)

    # -- tabs -------------------------------------------------------------

    @property
    def active_tab_id(self) -> Optional[str]:
        return self.session.active_tab_id

    def new_tab(self) -> str:
        tab_id = self.session.create_tab()
        self.session.switch_to(tab_id)
        self._changed()
        return tab_id

    def switch_tab(self, tab_id: str) -> None:
        self.session.switch_to(tab_id)
        self._changed()

    def switch_tab_index(self, index: int) -> None:
        self.session.switch_to_index(index)
        self._changed()

    def close_tab(self, tab_id: Optional[str] = None) -> None:
        """Close a tab (the active one by default)."""
        tab_id = tab_id or self.active_tab_id
        if tab_id is None:
            return
        self.pending_reloads.discard(tab_id)
        self.session.close_tab(tab_id)
        self._changed()

    def open_path(self, path: str) -> Optional[str]:
        """Open a file in a tab, choosing the loader by file type.

        Returns the tab id, or None when the same path is already loading.
        """
        existing = self.session.find_by_path(path)
        if existing is not None:
            self.session.switch_to(existing.id)
            self._changed()
            return existing.id
        if path in self.loading:
            log.debug(f"{path} is already loading")
            return None

        self.loading.add(path)
        try:
            kind = detect_kind(path)
            if kind == "word":
                content = self.converter.import_document(path)
                tab_id = self.session.open_document(
                    path,
                    content,
                    kind=TabKind.WORD_IMPORTED,
                    original_format=Path(path).suffix.lower(),
                )
            elif kind == "image":
                image = process_image_file(path)
                tab_id = self.session.open_document(
                    path, "", kind=TabKind.IMAGE, image_data=image
                )
            else:
                content = self.files.read_file(path)
                tab_id = self.session.open_document(path, content)
                if self.watcher:
                    self.watcher.watch_file(path)
        finally:
            self.loading.discard(path)

        log.info(f"Opened {path} as {kind} in {tab_id}")
        self._changed()
        return tab_id

    def save(self, tab_id: Optional[str] = None, file_path: Optional[str] = None) -> str:
        """Save a tab, to ``file_path`` if given (save-as), else to its own path.

        Imported Word documents are written next to the original as ``.md``.
        Raises DocumentIOError when there is nowhere to save.
        """
        tab = self.session.require(tab_id or self.active_tab_id)
        if tab.is_image():
            raise DocumentIOError("Image tabs cannot be saved")

        target = file_path
        if target is None and tab.file_path and Path(tab.file_path).suffix.lower() in WORD_EXTENSIONS:
            target = markdown_path_for(tab.file_path)

        saved_path = self.session.save_tab(tab.id, self.files.save_file, target)
        if self.watcher and tab.id == self.active_tab_id:
            self.watcher.watch_file(saved_path)
            self.watcher.mark_synced(saved_path)
        self.pending_reloads.discard(tab.id)
        self._changed()
        return saved_path

    def export_html(self, file_path: str, tab_id: Optional[str] = None) -> str:
        """Write the tab rendered as a standalone HTML page to ``file_path``."""
        tab = self.session.require(tab_id or self.active_tab_id)
        if tab.is_image():
            raise DocumentIOError("Image tabs cannot be exported")
        self.session.commit_live()
        title = Path(tab.name).stem or tab.name
        document = self.renderer.render_document(tab.content, title)
        written = self.files.save_file(file_path, document)
        log.info(f"Exported {tab.id} to {written}")
        return written

    def needs_save_path(self, tab_id: Optional[str] = None) -> bool:
        """True if saving this tab needs the user to pick a path first."""
        tab = self.session.get(tab_id or self.active_tab_id or "")
        return tab is not None and tab.file_path is None

    # -- editing ----------------------------------------------------------

    def edit(
        self,
        content: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        scroll_position: Optional[float] = None,
    ) -> None:
        """Record the editor pane's buffer, caret and scroll for the active tab."""
        active = self.session.active_tab
        if content is not None and active is not None and active.is_image():
            # Image tabs have no text buffer
            content = None
        cursor = None
        if line is not None or column is not None:
            current = self.session.live.cursor_position
            cursor = CursorPosition(
                current.line if line is None else line,
                current.column if column is None else column,
            )
        changed = content is not None and content != self.session.live.content
        self.session.update_live(content, cursor, scroll_position)
        if changed:
            self.search.invalidate()
            self._content_changed()
        self._changed()

    def set_view_mode(self, mode: str) -> ViewMode:
        self.session.commit_live()
        result = self.view_mode.set_mode(mode, self.session.active_tab)
        self._changed()
        return result

    def toggle_sidebar(self) -> bool:
        self.sidebar_visible = not self.sidebar_visible
        self._changed()
        return self.sidebar_visible

    # -- find / replace ---------------------------------------------------

    def find(
        self,
        pattern: str,
        case_sensitive: bool = False,
        whole_word: bool = False,
        regex: bool = False,
    ) -> List[Match]:
        """Search the active buffer; raises PatternError for a bad regex."""
        options = SearchOptions(case_sensitive, whole_word, regex)
        self.search.configure(pattern, options)
        matches = self.search.search(self.session.live.content)
        self._changed()
        return matches

    def find_next(self) -> Match:
        match = self.search.find_next(self.session.live.content)
        self._changed()
        return match

    def find_previous(self) -> Match:
        match = self.search.find_previous(self.session.live.content)
        self._changed()
        return match

    def replace(self, replacement: str, selection: Optional[Tuple[int, int]] = None) -> ReplaceResult:
        """Replace the current match in the active buffer."""
        selected = Selection(*selection) if selection is not None else None
        result = replace_one(self.session.live.content, self.search, replacement, selected)
        if result.replaced:
            self._apply_buffer(result.new_buffer)
        return result

    def replace_all(self, replacement: str, pattern: Optional[str] = None) -> ReplaceAllResult:
        """Replace every match of ``pattern`` (default: the last searched one)."""
        result = replace_all(
            self.session.live.content,
            self.search.pattern if pattern is None else pattern,
            replacement,
            self.search.options,
        )
        if result.count:
            self._apply_buffer(result.new_buffer)
        return result

    # -- outline ----------------------------------------------------------

    def refresh_outline(self) -> List[Heading]:
        headings = self.outline_tracker.refresh_now(self.session.live.content)
        return headings

    def jump_to_line(self, line_number: int) -> Optional[int]:
        """Move the caret to the start of a 1-based line; returns its offset."""
        offset = line_offset(self.session.live.content, line_number)
        if offset is None:
            return None
        self.session.update_live(cursor_position=CursorPosition(line_number - 1, 0))
        self._changed()
        return offset

    # -- folders ----------------------------------------------------------

    def open_folder(self, path: str) -> None:
        self.browser.open_folder(path)
        self._changed()

    def _on_directory_change(self, path: Path) -> None:
        if self.watcher:
            self.watcher.watch_folder(path)

    def toggle_folder(self, path: str) -> bool:
        expanded = self.browser.toggle_folder(path)
        self._changed()
        return expanded

    def toggle_hidden_files(self) -> None:
        self.browser.toggle_hidden()
        self._changed()

    def navigate(self, direction: str) -> None:
        """Folder history navigation: ``back``, ``forward`` or ``up``."""
        moves = {
            "back": self.browser.go_back,
            "forward": self.browser.go_forward,
            "up": self.browser.go_up,
        }
        if direction not in moves:
            raise ValueError(f"Unknown navigation {direction!r}")
        moves[direction]()
        self._changed()

    # -- external changes -------------------------------------------------

    def enable_watching(self) -> PathWatcher:
        """Start reporting changes made to open files outside the editor."""
        if self.watcher is None:
            self.watcher = PathWatcher(
                self._on_external_change,
                on_folder_changed=self._on_folder_changed,
                timer_factory=self._timer_factory,
            )
            if self.browser.current_path:
                self.watcher.watch_folder(self.browser.current_path)
        return self.watcher

    def handle_file_changed(self, path: str) -> Optional[str]:
        """Flag the tab showing ``path`` for reload and ask the host about it."""
        tab = self.session.find_by_path(path)
        if tab is None:
            # Watcher paths are normalized; fall back to a resolved comparison
            resolved = Path(path).resolve()
            tab = next(
                (t for t in self.session.tabs if t.file_path and Path(t.file_path).resolve() == resolved),
                None,
            )
        if tab is None:
            return None

        self.pending_reloads.add(tab.id)
        if self.on_file_changed:
            self.on_file_changed(tab.id, tab.file_path)
        self._changed()
        return tab.id

    def reload_tab(self, tab_id: str) -> None:
        """Replace a tab's buffer with the file on disk."""
        tab = self.session.get(tab_id)
        if tab is None or not tab.file_path:
            return
        content = self.files.read_file(tab.file_path)
        self.session.reload_tab(tab_id, content)
        self.pending_reloads.discard(tab_id)
        if self.watcher:
            self.watcher.mark_synced(tab.file_path)
        if tab_id == self.active_tab_id:
            self.search.invalidate()
            self._content_changed()
        self._changed()

    def dismiss_reload(self, tab_id: str) -> None:
        self.pending_reloads.discard(tab_id)
        self._changed()

    # -- OCR --------------------------------------------------------------

    @property
    def ocr_client(self) -> OcrClient:
        if self._ocr_client is None:
            self._ocr_client = build_ocr_client(self.config)
        return self._ocr_client

    def perform_ocr(self, path: Optional[str] = None, open_tab: bool = False) -> OcrResult:
        """Recognize text in an image (the active image tab by default).

        The request itself runs without holding ``lock``. With ``open_tab``
        the text is opened in a new untitled tab.
        """
        with self.lock:
            if path is None:
                tab = self.session.active_tab
                if tab is None or not tab.is_image() or not tab.file_path:
                    raise OcrError("Open an image to run OCR on it")
                path = tab.file_path
            client = self.ocr_client

        log.info(f"Running OCR on {path}")
        result = asyncio.run(client.recognize(path))

        with self.lock:
            self.last_ocr = result
            if open_tab:
                tab_id = self.session.create_tab(
                    name=f"{Path(path).stem} (OCR)", content=result.full_text
                )
                self.session.mark_modified(tab_id)
                self.session.switch_to(tab_id)
            self._changed()
        return result

    # -- host events ------------------------------------------------------

    def dispatch(self, event: HostEvent) -> Any:
        """Route a parsed host event to the matching operation."""
        if isinstance(event, FileOpened):
            return self.open_path(event.path)
        if isinstance(event, FolderOpened):
            return self.open_folder(event.path)
        if isinstance(event, FileChanged):
            return self.handle_file_changed(event.path)
        if isinstance(event, ContentEdited):
            return self.edit(event.content, event.line, event.column, event.scroll_position)
        if isinstance(event, ViewModeRequested):
            return self.set_view_mode(event.mode)
        if isinstance(event, TabRequested):
            if event.action == "switch" and event.tab_id:
                return self.switch_tab(event.tab_id)
            if event.action == "close":
                return self.close_tab(event.tab_id)
            if event.action == "switch_index" and event.index is not None:
                return self.switch_tab_index(event.index)
            return None
        if isinstance(event, MenuCommand):
            return self._run_command(event.command)
        raise TypeError(f"Unhandled event {type(event).__name__}")

    def _run_command(self, command: str) -> Any:
        if command == "new_file":
            return self.new_tab()
        if command == "save":
            return self.save()
        if command == "close_tab":
            return self.close_tab()
        if command == "toggle_sidebar":
            return self.toggle_sidebar()
        if command == "find_next":
            return self.find_next()
        if command == "find_previous":
            return self.find_previous()
        if command == "ocr":
            return self.perform_ocr()
        # save_as, find, import_word and export_html need host dialogs
        log.debug(f"Command {command} is handled by the host")
        return None

    # -- state ------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the session for the front end."""
        active = self.session.active_tab
        live = self.session.live
        current = self.search.current
        folder = self.browser.current_path
        return {
            "tabs": [
                {
                    "id": tab.id,
                    "name": tab.name,
                    "file_path": tab.file_path,
                    "is_modified": tab.is_modified,
                    "kind": tab.kind.value,
                    "state": tab.state.value,
                    "original_format": tab.original_format,
                }
                for tab in self.session.tabs
            ],
            "active_tab_id": self.active_tab_id,
            "editor": {
                "content": live.content,
                "cursor_position": asdict(live.cursor_position),
                "scroll_position": live.scroll_position,
            },
            "image": (
                active.image_data.model_dump(mode="json")
                if active is not None and active.image_data is not None
                else None
            ),
            "view_mode": self.view_mode.mode.value,
            "layout": asdict(self.view_mode.layout(active)),
            "preview_html": self.preview_html,
            "outline": [heading.to_dict() for heading in self.outline],
            "sidebar_visible": self.sidebar_visible,
            "folder": {
                "path": str(folder) if folder else None,
                "tree": self.browser.tree(),
                "can_go_back": self.browser.can_go_back,
                "can_go_forward": self.browser.can_go_forward,
                "show_hidden": self.browser.show_hidden,
            },
            "search": {
                "pattern": self.search.pattern,
                "options": asdict(self.search.options),
                "match_count": len(self.search.matches),
                "current_index": self.search.cursor_index,
                "current": asdict(current) if current else None,
            },
            "loading": sorted(self.loading),
            "pending_reloads": sorted(self.pending_reloads),
            "last_ocr": self.last_ocr.model_dump() if self.last_ocr else None,
        }

    def shutdown(self) -> None:
        self.outline_tracker.cancel()
        if self.watcher:
            self.watcher.stop()

    # -- internals --------------------------------------------------------

    def _apply_buffer(self, content: str) -> None:
        self.session.update_live(content=content)
        self.search.invalidate()
        self._content_changed()
        self._changed()

    def _content_changed(self) -> None:
        tab = self.session.active_tab
        if tab is None or tab.is_image():
            return
        self.outline_tracker.content_changed(self.session.live.content)
        self.view_mode.refresh(tab, self.session.live.content)

    def _on_tab_activated(self, tab_id: Optional[str]) -> None:
        tab = self.session.get(tab_id) if tab_id else None
        if tab is None:
            return
        self.search.invalidate()
        self.view_mode.on_tab_activated(tab)
        if tab.is_image():
            self.outline_tracker.cancel()
            self.outline = []
        else:
            self.outline_tracker.refresh_now(tab.content)

    def _on_outline(self, headings: List[Heading]) -> None:
        with self.lock:
            self.outline = headings
            self._changed()

    def _on_external_change(self, path: str) -> None:
        with self.lock:
            self.handle_file_changed(path)

    def _on_folder_changed(self, path: str) -> None:
        with self.lock:
            self._changed()

    def _render_preview(self, content: str) -> None:
        self.preview_html = self.renderer.render(content)

    def _render_image(self, image) -> None:
        self.preview_html = self.renderer.render_image(image)

    def _changed(self) -> None:
        if self.on_state_changed:
            self.on_state_changed()
