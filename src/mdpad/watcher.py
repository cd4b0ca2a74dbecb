"""Watch the open file and folder for changes made outside the editor."""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from mdpad.debounce import Debouncer, TimerFactory

log = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 100


def _normalize(path: Union[str, Path]) -> str:
    return os.path.normcase(os.path.abspath(str(path)))


def _mtime(path: str) -> Optional[float]:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


class FileChangeHandler(FileSystemEventHandler):
    """Forwards events that touch one particular file."""

    def __init__(self, path: str, callback: Callable[[str], None]):
        """
        Initialize the handler.

        Args:
            path: Normalized path of the watched file
            callback: Function to call with the path when it changes
        """
        self.path = path
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed_no_write"):
            return
        touched = {_normalize(event.src_path)}
        dest = getattr(event, "dest_path", "")
        if dest:
            touched.add(_normalize(dest))
        if self.path in touched:
            self.callback(self.path)


class DirectoryChangeHandler(FileSystemEventHandler):
    """Handles file system events for a directory."""

    def __init__(self, callback: Callable[[], None]):
        self.callback = callback
        self._pending_refresh = False

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        if not self._pending_refresh:
            self._pending_refresh = True
            self.callback()

    def reset(self) -> None:
        """Reset the pending refresh flag."""
        self._pending_refresh = False


class PathWatcher:
    """Manages one watchdog observer for the open file and the open folder.

    watchdog keeps a single watch per directory, so the file handler and the
    folder handler share it when the open file lives in the open folder.
    Handlers are attached and detached individually and a watch is only
    unscheduled once its last handler is gone.

    Bursts of events are coalesced with a debouncer before the callbacks run.
    Changes the editor made itself are recognized by their modification time
    (see ``mark_synced``) and not reported.
    """

    def __init__(
        self,
        on_file_changed: Callable[[str], None],
        on_folder_changed: Optional[Callable[[str], None]] = None,
        delay_ms: int = DEFAULT_DELAY_MS,
        timer_factory: Optional[TimerFactory] = None,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.on_file_changed = on_file_changed
        self.on_folder_changed = on_folder_changed
        self.file_path: Optional[str] = None
        self.folder_path: Optional[str] = None

        self._observer_factory = observer_factory
        self._observer: Optional[Any] = None
        # directory -> (watch, handlers attached to it)
        self._watches: Dict[str, Tuple[Any, List[FileSystemEventHandler]]] = {}
        self._file_handler: Optional[FileChangeHandler] = None
        self._folder_handler: Optional[DirectoryChangeHandler] = None
        self._synced_mtimes: Dict[str, Optional[float]] = {}
        self._file_debouncer = Debouncer(delay_ms, self._fire_file, timer_factory)
        self._folder_debouncer = Debouncer(delay_ms, self._fire_folder, timer_factory)

    def watch_file(self, path: Union[str, Path]) -> None:
        """Watch ``path``, replacing the previously watched file."""
        target = _normalize(path)
        if target == self.file_path:
            return
        self._detach(self._file_handler)
        self._file_handler = None
        self._file_debouncer.cancel()

        self.file_path = target
        self.mark_synced(target)
        parent = os.path.dirname(target)
        if not os.path.isdir(parent):
            log.warning(f"Cannot watch {target}: parent folder missing")
            return
        self._file_handler = FileChangeHandler(target, self._file_debouncer.trigger)
        self._attach(self._file_handler, parent)
        log.debug(f"Watching file {target}")

    def watch_folder(self, path: Union[str, Path]) -> None:
        """Watch the folder shown in the sidebar tree, replacing the previous one."""
        target = _normalize(path)
        if target == self.folder_path:
            return
        self._detach(self._folder_handler)
        self._folder_handler = None
        self._folder_debouncer.cancel()

        self.folder_path = target
        if not os.path.isdir(target):
            return
        self._folder_handler = DirectoryChangeHandler(self._folder_debouncer.trigger)
        self._attach(self._folder_handler, target)
        log.debug(f"Watching folder {target}")

    @property
    def watched_directories(self) -> List[str]:
        return sorted(self._watches)

    def mark_synced(self, path: Union[str, Path]) -> None:
        """Record the file's current mtime as matching the editor's buffer."""
        target = _normalize(path)
        self._synced_mtimes[target] = _mtime(target)

    def stop(self) -> None:
        """Stop watching and clean up resources."""
        self._file_debouncer.cancel()
        self._folder_debouncer.cancel()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self._watches.clear()
        self._file_handler = None
        self._folder_handler = None
        self.file_path = None
        self.folder_path = None

    def _ensure_observer(self):
        if self._observer is None:
            self._observer = self._observer_factory()
            self._observer.start()
        return self._observer

    def _attach(self, handler: FileSystemEventHandler, directory: str) -> None:
        observer = self._ensure_observer()
        if directory in self._watches:
            watch, handlers = self._watches[directory]
            observer.add_handler_for_watch(handler, watch)
            handlers.append(handler)
            return
        watch = observer.schedule(handler, directory, recursive=False)
        self._watches[directory] = (watch, [handler])

    def _detach(self, handler: Optional[FileSystemEventHandler]) -> None:
        if handler is None or self._observer is None:
            return
        for directory, (watch, handlers) in list(self._watches.items()):
            if handler not in handlers:
                continue
            handlers.remove(handler)
            try:
                if handlers:
                    self._observer.remove_handler_for_watch(handler, watch)
                else:
                    del self._watches[directory]
                    self._observer.unschedule(watch)
            except KeyError:
                # Already gone, e.g. the folder was deleted
                pass
            return

    def _fire_file(self, path: str) -> None:
        if path != self.file_path:
            return
        current = _mtime(path)
        if current is not None and current == self._synced_mtimes.get(path):
            log.debug(f"Ignoring change to {path}: matches last sync")
            return
        self._synced_mtimes[path] = current
        log.info(f"File changed on disk: {path}")
        self.on_file_changed(path)

    def _fire_folder(self) -> None:
        if self._folder_handler:
            self._folder_handler.reset()
        if self.folder_path and self.on_folder_changed:
            self.on_folder_changed(self.folder_path)
