"""
pywebview host for the mdpad editor
"""

import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import webview
from pydantic import BaseModel, ValidationError

from mdpad.app import EditorApp
from mdpad.config import Config
from mdpad.errors import MdpadError
from mdpad.models.messages import (
    BridgeFailure,
    Canceled,
    Exported,
    MenuCommand,
    SaveSucceeded,
    TabRequested,
    parse_event,
)

log = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

OPEN_FILE_TYPES = (
    "Markdown Files (*.md;*.markdown;*.mdown;*.mkd;*.mdx)",
    "Text Files (*.txt)",
    "Word Documents (*.doc;*.docx)",
    "Images (*.jpg;*.jpeg;*.png;*.gif;*.bmp;*.webp;*.svg;*.ico;*.tiff;*.tif)",
    "All Files (*.*)",
)
SAVE_FILE_TYPES = ("Markdown Files (*.md)", "Text Files (*.txt)", "All Files (*.*)")
WORD_FILE_TYPES = ("Word Documents (*.doc;*.docx)",)
HTML_FILE_TYPES = ("HTML Files (*.html;*.htm)", "All Files (*.*)")


def debug_enabled() -> bool:
    return os.environ.get("MDPAD_DEBUG", "").lower() == "true"


def setup_logging() -> None:
    """Configure logging from MDPAD_DEBUG and MDPAD_LOG_FILE"""
    log_level = logging.DEBUG if debug_enabled() else logging.INFO
    log_file = os.environ.get("MDPAD_LOG_FILE")
    if log_file:
        logging.basicConfig(
            level=log_level,
            filename=log_file,
            filemode="w",
            format=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
        )
    else:
        logging.basicConfig(level=log_level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def _first_path(result) -> Optional[str]:
    """Normalize a pywebview dialog result to one path."""
    if not result:
        return None
    if isinstance(result, str):
        return result
    return result[0]


class EditorApi:
    """Methods the front end calls through ``window.pywebview.api``.

    Every call runs under the app lock. Editor errors come back as a
    ``{"kind": "error"}`` payload instead of raising into JavaScript.
    """

    def __init__(self, app: EditorApp):
        self._app = app
        self._window = None
        app.on_state_changed = self._update_backend_state
        app.on_file_changed = self._notify_file_changed
        log.info("EditorApi initialized")

    def set_window(self, window):
        log.debug("Setting window reference")
        self._window = window

    def _update_backend_state(self):
        """Push the current session snapshot to the front end"""
        if self._window and hasattr(self._window, "state"):
            self._window.state.backendState = self._app.snapshot()
            log.debug(f"Backend state updated: {len(self._app.session)} tabs")
        else:
            log.debug("Cannot update backend state - window not available")

    def _notify_file_changed(self, tab_id: str, path: str):
        if not self._window:
            return
        self._window.evaluate_js(
            "window.onExternalFileChange && "
            f"window.onExternalFileChange({json.dumps(tab_id)}, {json.dumps(path)})"
        )

    def _confirm(self, title: str, message: str) -> bool:
        """Ask a yes/no question; without a window there is nobody to ask."""
        if not self._window:
            return True
        return bool(self._window.create_confirmation_dialog(title, message))

    def _on_closing(self) -> bool:
        """Window closing handler; returning False keeps the window open."""
        with self._app.lock:
            unsaved = self._app.session.has_unsaved_changes()
        if not unsaved:
            return True
        return self._confirm("Unsaved changes", "Some documents have unsaved changes. Quit anyway?")

    def _call(self, operation: Callable[..., Any], *args, locked: bool = True, **kwargs) -> Any:
        try:
            if not locked:
                return operation(*args, **kwargs)
            with self._app.lock:
                return operation(*args, **kwargs)
        except (MdpadError, ValidationError, ValueError) as e:
            log.error(f"{operation.__name__} failed: {e}")
            return BridgeFailure(error_type=type(e).__name__, message=str(e)).model_dump()

    # -- state and events -------------------------------------------------

    def get_state(self) -> Dict[str, Any]:
        return self._call(self._app.snapshot)

    def dispatch_event(self, payload: Dict[str, Any]) -> Any:
        """Handle a tagged event payload from the front end"""
        event = self._call(parse_event, payload, locked=False)
        if not isinstance(event, BaseModel):
            return event

        # These open native dialogs, so they run outside the app lock
        if isinstance(event, TabRequested) and event.action == "close":
            return self.close_tab(event.tab_id)
        if isinstance(event, MenuCommand) and event.command == "close_tab":
            return self.close_tab()
        if isinstance(event, MenuCommand) and event.command == "export_html":
            return self.export_html()

        def run():
            result = self._app.dispatch(event)
            if isinstance(result, BaseModel):
                return result.model_dump()
            return asdict(result) if hasattr(result, "__dataclass_fields__") else result

        return self._call(run)

    # -- tabs and files ---------------------------------------------------

    def new_tab(self) -> str:
        return self._call(self._app.new_tab)

    def switch_tab(self, tab_id: str) -> None:
        return self._call(self._app.switch_tab, tab_id)

    def switch_tab_index(self, index: int) -> None:
        return self._call(self._app.switch_tab_index, index)

    def close_tab(self, tab_id: Optional[str] = None, force: bool = False) -> Any:
        """Close a tab, asking first when it has unsaved edits"""
        tab = self._app.session.get(tab_id or self._app.active_tab_id or "")
        if tab is not None and tab.is_modified and not force:
            if not self._confirm("Unsaved changes", f"Close {tab.name} without saving?"):
                log.info(f"Kept {tab.id} open")
                return Canceled().model_dump()
        return self._call(self._app.close_tab, tab_id)

    def open_file(self, path: Optional[str] = None) -> Optional[str]:
        """Open ``path``, or ask for one with the native open dialog"""
        if path is None:
            path = _first_path(
                self._window.create_file_dialog(
                    webview.FileDialog.OPEN, allow_multiple=False, file_types=OPEN_FILE_TYPES
                )
            )
            if path is None:
                log.info("No file selected")
                return None
        return self._call(self._app.open_path, path)

    def import_word(self) -> Optional[str]:
        path = _first_path(
            self._window.create_file_dialog(
                webview.FileDialog.OPEN, allow_multiple=False, file_types=WORD_FILE_TYPES
            )
        )
        if path is None:
            return None
        return self._call(self._app.open_path, path)

    def open_folder(self, path: Optional[str] = None) -> Any:
        if path is None:
            path = _first_path(self._window.create_file_dialog(webview.FileDialog.FOLDER))
            if path is None:
                return None
        return self._call(self._app.open_folder, path)

    def save_file(self, tab_id: Optional[str] = None) -> Dict[str, Any]:
        """Save a tab; untitled tabs go through the save dialog first"""
        if self._app.needs_save_path(tab_id):
            return self.save_file_as(tab_id)
        return self._call(self._save, tab_id, None)

    def save_file_as(self, tab_id: Optional[str] = None) -> Dict[str, Any]:
        tab = self._app.session.get(tab_id or self._app.active_tab_id or "")
        suggested = tab.name if tab and tab.name.endswith((".md", ".txt")) else "untitled.md"
        path = _first_path(
            self._window.create_file_dialog(
                webview.FileDialog.SAVE, save_filename=suggested, file_types=SAVE_FILE_TYPES
            )
        )
        if path is None:
            log.info("Save canceled")
            return Canceled().model_dump()
        return self._call(self._save, tab_id, path)

    def export_html(self, tab_id: Optional[str] = None) -> Dict[str, Any]:
        """Export a tab as a standalone HTML page chosen with the save dialog"""
        tab = self._app.session.get(tab_id or self._app.active_tab_id or "")
        stem = Path(tab.name).stem if tab else ""
        path = _first_path(
            self._window.create_file_dialog(
                webview.FileDialog.SAVE,
                save_filename=f"{stem or 'untitled'}.html",
                file_types=HTML_FILE_TYPES,
            )
        )
        if path is None:
            log.info("Export canceled")
            return Canceled().model_dump()

        def run():
            return Exported(file_path=self._app.export_html(path, tab_id)).model_dump()

        return self._call(run)

    def _save(self, tab_id: Optional[str], path: Optional[str]) -> Dict[str, Any]:
        tab_id = tab_id or self._app.active_tab_id
        saved_path = self._app.save(tab_id, path)
        return SaveSucceeded(file_path=saved_path, tab_id=tab_id).model_dump()

    def read_directory(self, path: str) -> List[Dict[str, Any]]:
        def run():
            return [entry.model_dump(mode="json") for entry in self._app.browser.list_children(path)]

        return self._call(run)

    def toggle_folder(self, path: str) -> bool:
        return self._call(self._app.toggle_folder, path)

    def toggle_hidden_files(self) -> None:
        return self._call(self._app.toggle_hidden_files)

    def navigate(self, direction: str) -> None:
        return self._call(self._app.navigate, direction)

    def reload_tab(self, tab_id: str) -> None:
        return self._call(self._app.reload_tab, tab_id)

    def dismiss_reload(self, tab_id: str) -> None:
        return self._call(self._app.dismiss_reload, tab_id)

    # -- editing ----------------------------------------------------------

    def edit(
        self,
        content: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        scroll_position: Optional[float] = None,
    ) -> None:
        return self._call(self._app.edit, content, line, column, scroll_position)

    def set_view_mode(self, mode: str) -> str:
        def run():
            return self._app.set_view_mode(mode).value

        return self._call(run)

    def toggle_sidebar(self) -> bool:
        return self._call(self._app.toggle_sidebar)

    def find(
        self,
        pattern: str,
        case_sensitive: bool = False,
        whole_word: bool = False,
        regex: bool = False,
    ) -> Any:
        def run():
            matches = self._app.find(pattern, case_sensitive, whole_word, regex)
            return [asdict(match) for match in matches]

        return self._call(run)

    def find_next(self) -> Any:
        return self._call(lambda: asdict(self._app.find_next()))

    def find_previous(self) -> Any:
        return self._call(lambda: asdict(self._app.find_previous()))

    def replace(self, replacement: str, start: Optional[int] = None, end: Optional[int] = None) -> Any:
        def run():
            selection = (start, end) if start is not None and end is not None else None
            result = self._app.replace(replacement, selection)
            return {
                "replaced": result.replaced,
                "selection": asdict(result.selection) if result.selection else None,
            }

        return self._call(run)

    def replace_all(self, replacement: str, pattern: Optional[str] = None) -> Any:
        def run():
            return {"count": self._app.replace_all(replacement, pattern).count}

        return self._call(run)

    def refresh_outline(self) -> Any:
        return self._call(lambda: [h.to_dict() for h in self._app.refresh_outline()])

    def jump_to_line(self, line_number: int) -> Optional[int]:
        return self._call(self._app.jump_to_line, line_number)

    # -- OCR --------------------------------------------------------------

    def perform_ocr(self, path: Optional[str] = None, open_tab: bool = False) -> Dict[str, Any]:
        def run():
            return self._app.perform_ocr(path, open_tab).model_dump()

        # EditorApp.perform_ocr takes the lock itself around state changes
        return self._call(run, locked=False)


def frontend_url(config: Config) -> str:
    if debug_enabled():
        url = config.DEV_SERVER_URL or "http://localhost:5173/"
        log.info(f"Using development server URL: {url}")
        return url
    log.info("Using production build: frontend/dist/index.html")
    return "frontend/dist/index.html"


def main(argv: Optional[List[str]] = None) -> None:
    setup_logging()
    argv = sys.argv[1:] if argv is None else argv

    config = Config()
    config.load()

    app = EditorApp(config)
    app.enable_watching()
    api = EditorApi(app)

    for arg in argv:
        target = Path(arg)
        if target.is_dir():
            api.open_folder(str(target))
        else:
            api.open_file(str(target))

    log.info(f"Starting mdpad in {'debug' if debug_enabled() else 'production'} mode")
    window = webview.create_window(
        config.WINDOW_TITLE,
        frontend_url(config),
        js_api=api,
        width=config.WINDOW_WIDTH,
        height=config.WINDOW_HEIGHT,
        min_size=(config.WINDOW_MIN_WIDTH, config.WINDOW_MIN_HEIGHT),
    )
    api.set_window(window)
    window.events.loaded += api._update_backend_state
    window.events.closing += api._on_closing

    log.info("Starting webview main loop")
    try:
        webview.start(debug=debug_enabled())
    finally:
        app.shutdown()


if __name__ == "__main__":
    main()
