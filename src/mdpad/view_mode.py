"""View mode state machine: which of the editor and preview panes are shown."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from mdpad.models.image_data import ImageData
from mdpad.models.tab import DocumentTab

log = logging.getLogger(__name__)


class ViewMode(str, Enum):
    EDITOR = "editor"
    SPLIT = "split"
    PREVIEW = "preview"

    @classmethod
    def parse(cls, value: Union["ViewMode", str]) -> "ViewMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown view mode {value!r}; expected editor, split or preview"
            ) from None


@dataclass(frozen=True)
class PaneLayout:
    editor_visible: bool
    preview_visible: bool
    image_preview: bool = False


class ViewModeController:
    """Tracks the window-wide view mode and refreshes the preview pane."""

    def __init__(
        self,
        mode: Union[ViewMode, str] = ViewMode.EDITOR,
        on_render_preview: Optional[Callable[[str], None]] = None,
        on_render_image: Optional[Callable[[ImageData], None]] = None,
        on_mode_changed: Optional[Callable[[ViewMode], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            mode: Initial view mode
            on_render_preview: Called with the tab buffer when the Markdown preview must be recomputed
            on_render_image: Called with the image payload when an image tab is previewed
            on_mode_changed: Called after every mode transition
        """
        self.mode = ViewMode.parse(mode)
        self.on_render_preview = on_render_preview
        self.on_render_image = on_render_image
        self.on_mode_changed = on_mode_changed

    @property
    def shows_preview(self) -> bool:
        return self.mode in (ViewMode.SPLIT, ViewMode.PREVIEW)

    def set_mode(
        self, mode: Union[ViewMode, str], tab: Optional[DocumentTab] = None
    ) -> ViewMode:
        """Explicit transition requested by the user."""
        self._transition(ViewMode.parse(mode))
        if tab is not None:
            self.refresh(tab)
        return self.mode

    def on_tab_activated(self, tab: DocumentTab) -> ViewMode:
        """Apply the image-tab rule and refresh the preview for a newly active tab."""
        if tab.is_image() and self.mode == ViewMode.EDITOR:
            log.debug(f"Image tab {tab.id} forces split view")
            self._transition(ViewMode.SPLIT)
        self.refresh(tab)
        return self.mode

    def refresh(self, tab: DocumentTab, content: Optional[str] = None) -> None:
        """Recompute whichever preview the tab needs, if a preview pane is visible."""
        if tab.is_image():
            if tab.image_data is not None and self.on_render_image:
                self.on_render_image(tab.image_data)
            return
        if self.shows_preview and self.on_render_preview:
            self.on_render_preview(tab.content if content is None else content)

    def layout(self, tab: Optional[DocumentTab] = None) -> PaneLayout:
        """Pane visibility for the current mode and active tab."""
        if tab is not None and tab.is_image():
            return PaneLayout(
                editor_visible=self.mode != ViewMode.PREVIEW,
                preview_visible=True,
                image_preview=True,
            )
        return PaneLayout(
            editor_visible=self.mode != ViewMode.PREVIEW,
            preview_visible=self.shows_preview,
        )

    def _transition(self, mode: ViewMode) -> None:
        previous = self.mode
        self.mode = mode
        if previous != mode:
            log.info(f"View mode {previous.value} -> {mode.value}")
        if self.on_mode_changed:
            self.on_mode_changed(mode)
