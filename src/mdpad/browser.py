"""Sidebar folder browser: filtered tree, expansion state and navigation history."""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from mdpad.bridges.files import IMAGE_EXTENSIONS, FileBridge
from mdpad.errors import DocumentIOError
from mdpad.models.messages import DirectoryEntry

log = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md", ".txt", ".markdown", ".mdown", ".mkd", ".mdx", ".doc", ".docx")
DEFAULT_EXCLUDED_DIRS = ("node_modules", ".git", ".vscode", "dist", "build")


class FolderBrowser:
    """State behind the folder tree in the sidebar."""

    def __init__(
        self,
        files: Optional[FileBridge] = None,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
        show_hidden: bool = False,
        show_images: bool = True,
        on_directory_change: Optional[Callable[[Path], None]] = None,
    ):
        """
        Initialize the folder browser.

        Args:
            files: File bridge used for listings
            extensions: File extensions shown in the tree
            excluded_dirs: Folder names never shown
            show_hidden: Show dotfiles and dot-folders
            show_images: Also show image files
            on_directory_change: Callback when the root folder changes
        """
        self.files = files or FileBridge()
        self.extensions = {ext.lower() for ext in extensions}
        self.excluded_dirs = set(excluded_dirs)
        self.show_hidden = show_hidden
        self.show_images = show_images
        self.on_directory_change = on_directory_change

        self.current_path: Optional[Path] = None
        self.history: List[Path] = []
        self.history_index: int = -1
        self.expanded: Set[Path] = set()

    def file_filter(self, entry: DirectoryEntry) -> bool:
        """Return True if the entry belongs in the tree."""
        if entry.name.startswith(".") and not self.show_hidden:
            return False
        if entry.is_directory:
            return entry.name not in self.excluded_dirs
        suffix = Path(entry.name).suffix.lower()
        if suffix in self.extensions:
            return True
        return self.show_images and suffix in IMAGE_EXTENSIONS

    def list_children(self, path: Union[str, Path]) -> List[DirectoryEntry]:
        """Filtered listing of one folder, folders first."""
        return [entry for entry in self.files.read_directory(path) if self.file_filter(entry)]

    def open_folder(self, path: Union[str, Path]) -> List[DirectoryEntry]:
        """Make ``path`` the tree root and return its listing."""
        folder = Path(path)
        if not folder.is_dir():
            raise DocumentIOError(f"Not a folder: {path}")
        self.navigate_to(folder)
        return self.list_children(folder)

    def navigate_to(self, path: Path) -> None:
        """Navigate to a path and update history."""
        if not path.is_dir() or self.current_path == path:
            return

        # Not at the end of history: drop the forward entries
        if self.history_index < len(self.history) - 1:
            self.history = self.history[: self.history_index + 1]

        self.history.append(path)
        self.history_index += 1
        self._set_root(path)

    def go_up(self) -> None:
        """Go up one directory level."""
        if self.current_path and self.current_path.parent != self.current_path:
            self.navigate_to(self.current_path.parent)

    def go_back(self) -> None:
        if self.can_go_back:
            self.history_index -= 1
            self._set_root(self.history[self.history_index])

    def go_forward(self) -> None:
        if self.can_go_forward:
            self.history_index += 1
            self._set_root(self.history[self.history_index])

    @property
    def can_go_back(self) -> bool:
        return self.history_index > 0

    @property
    def can_go_forward(self) -> bool:
        return self.history_index < len(self.history) - 1

    def toggle_hidden(self) -> None:
        self.show_hidden = not self.show_hidden

    def toggle_folder(self, path: Union[str, Path]) -> bool:
        """Expand or collapse a folder in the tree; returns the new expanded state."""
        folder = Path(path)
        if folder in self.expanded:
            self.expanded.discard(folder)
            return False
        self.expanded.add(folder)
        return True

    def tree(self) -> List[Dict[str, Any]]:
        """Nested listing of the root, descending only into expanded folders."""
        if self.current_path is None:
            return []
        return self._build_tree(self.current_path)

    def _build_tree(self, path: Path) -> List[Dict[str, Any]]:
        try:
            entries = self.list_children(path)
        except DocumentIOError as e:
            # Unreadable subfolders show up empty
            log.warning(f"Skipping {path}: {e}")
            return []

        nodes = []
        for entry in entries:
            node = entry.model_dump(mode="json")
            if entry.is_directory:
                is_open = Path(entry.path) in self.expanded
                node["expanded"] = is_open
                node["children"] = self._build_tree(Path(entry.path)) if is_open else []
            nodes.append(node)
        return nodes

    def _set_root(self, path: Path) -> None:
        self.current_path = path
        self.expanded.clear()
        log.info(f"Folder tree root: {path}")
        if self.on_directory_change:
            self.on_directory_change(path)
