"""Tagged messages exchanged with the front end.

Events coming from the host carry a ``kind`` field that selects the payload
model. Results going back are plain pydantic models serialized with
``model_dump()``.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

# -- host events ------------------------------------------------------------


class FileOpened(BaseModel):
    """A file was chosen in the open dialog, the tree, or the command line"""

    kind: Literal["file_opened"] = "file_opened"
    path: str = Field(description="Absolute path of the file to open")


class FolderOpened(BaseModel):
    kind: Literal["folder_opened"] = "folder_opened"
    path: str = Field(description="Folder shown in the sidebar tree")


class FileChanged(BaseModel):
    """The watcher saw an open file change on disk"""

    kind: Literal["file_changed"] = "file_changed"
    path: str


class ContentEdited(BaseModel):
    kind: Literal["content_edited"] = "content_edited"
    content: str
    line: Optional[int] = Field(default=None, ge=0)
    column: Optional[int] = Field(default=None, ge=0)
    scroll_position: Optional[float] = None


class ViewModeRequested(BaseModel):
    kind: Literal["view_mode"] = "view_mode"
    mode: Literal["editor", "split", "preview"]


class TabRequested(BaseModel):
    """Tab strip interaction: activate or close a tab"""

    kind: Literal["tab"] = "tab"
    action: Literal["switch", "close", "switch_index"]
    tab_id: Optional[str] = None
    index: Optional[int] = None


class MenuCommand(BaseModel):
    """A native menu item or keyboard shortcut without its own payload"""

    kind: Literal["menu"] = "menu"
    command: Literal[
        "new_file",
        "save",
        "save_as",
        "close_tab",
        "toggle_sidebar",
        "find",
        "find_next",
        "find_previous",
        "import_word",
        "export_html",
        "ocr",
    ]


HostEvent = Annotated[
    Union[
        FileOpened,
        FolderOpened,
        FileChanged,
        ContentEdited,
        ViewModeRequested,
        TabRequested,
        MenuCommand,
    ],
    Field(discriminator="kind"),
]

_host_event_adapter = TypeAdapter(HostEvent)


def parse_event(payload: Dict[str, Any]) -> HostEvent:
    """Validate a raw front-end payload into its tagged event model."""
    return _host_event_adapter.validate_python(payload)


# -- bridge results ----------------------------------------------------------


class DirectoryEntry(BaseModel):
    """One item of a directory listing"""

    name: str
    path: str
    is_directory: bool
    size: int = 0
    modified: datetime


class SaveSucceeded(BaseModel):
    kind: Literal["saved"] = "saved"
    file_path: str
    tab_id: str


class Canceled(BaseModel):
    """The user dismissed a save, export or close confirmation dialog"""

    kind: Literal["canceled"] = "canceled"


class Exported(BaseModel):
    kind: Literal["exported"] = "exported"
    file_path: str


class BridgeFailure(BaseModel):
    """An operation failed; ``message`` is shown to the user"""

    kind: Literal["error"] = "error"
    error_type: str = Field(description="Exception class name, e.g. DocumentIOError")
    message: str


class OcrResult(BaseModel):
    kind: Literal["ocr"] = "ocr"
    full_text: str = Field(description="Recognized text of the whole image")
    elapsed_ms: float = Field(ge=0, description="Wall time of the OCR request")


class ConvertedDocument(BaseModel):
    """Output of a Word conversion. Exactly one of html/text is usually set."""

    html: Optional[str] = None
    text: Optional[str] = None
    messages: List[str] = Field(
        default_factory=list, description="Warnings reported by the converter"
    )
