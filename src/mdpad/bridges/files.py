"""File bridge: reading, writing and listing files for the editor."""

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import List, Union

from mdpad.errors import DocumentIOError
from mdpad.models.messages import DirectoryEntry

log = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = (".md", ".markdown", ".mdown", ".mkd", ".mdx")
TEXT_EXTENSIONS = (".txt",)
WORD_EXTENSIONS = (".doc", ".docx")

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
}
IMAGE_EXTENSIONS = tuple(MIME_TYPES)

PathLike = Union[str, Path]


def get_mime_type(path: PathLike) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")


def detect_kind(path: PathLike) -> str:
    """Classify a path as ``"word"``, ``"image"`` or ``"text"`` by extension."""
    suffix = Path(path).suffix.lower()
    if suffix in WORD_EXTENSIONS:
        return "word"
    if suffix in IMAGE_EXTENSIONS:
        return "image"
    return "text"


def natural_key(name: str):
    """Sort key that orders embedded numbers numerically (file2 < file10)."""
    return [
        (0, int(part), "") if part.isdigit() else (1, 0, part.casefold())
        for part in re.split(r"(\d+)", name)
        if part
    ]


class FileBridge:
    """Blocking file operations with errors mapped to DocumentIOError."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def read_file(self, path: PathLike) -> str:
        try:
            with open(path, "r", encoding=self.encoding) as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            log.error(f"Failed to read {path}: {e}")
            raise DocumentIOError(f"Cannot open {path}: {e}") from e
        log.debug(f"Read {len(content)} chars from {path}")
        return content

    def save_file(self, path: PathLike, content: str) -> str:
        """Write ``content`` to ``path`` and return the path written."""
        if not path:
            raise DocumentIOError("A file path is required to save")
        try:
            with open(path, "w", encoding=self.encoding) as f:
                f.write(content)
        except OSError as e:
            log.error(f"Failed to write {path}: {e}")
            raise DocumentIOError(f"Cannot save {path}: {e}") from e
        log.info(f"Saved {len(content)} chars to {path}")
        return str(path)

    def read_directory(self, path: PathLike) -> List[DirectoryEntry]:
        """List a directory, folders first, then by natural name order."""
        entries = []
        try:
            with os.scandir(path) as it:
                for item in it:
                    try:
                        stats = item.stat()
                    except OSError:
                        # Broken symlinks and the like
                        log.debug(f"Skipping unreadable entry {item.path}")
                        continue
                    entries.append(
                        DirectoryEntry(
                            name=item.name,
                            path=item.path,
                            is_directory=item.is_dir(),
                            size=stats.st_size,
                            modified=datetime.fromtimestamp(stats.st_mtime),
                        )
                    )
        except OSError as e:
            log.error(f"Failed to list {path}: {e}")
            raise DocumentIOError(f"Cannot read folder {path}: {e}") from e

        entries.sort(key=lambda e: (not e.is_directory, natural_key(e.name)))
        return entries
