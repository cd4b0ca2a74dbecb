"""Image payload attached to image tabs."""

from typing import Optional
from pydantic import BaseModel, Field, computed_field


class ImageData(BaseModel):
    """Image file contents prepared for display in the preview pane"""

    file_name: str = Field(description="Base name of the image file")
    file_path: str = Field(description="Absolute path the image was read from")
    file_size: int = Field(description="Size of the file in bytes")
    mime_type: str = Field(description="MIME type derived from the extension, e.g. image/png")
    base64: str = Field(description="Base64-encoded file contents")
    width: Optional[int] = Field(
        default=None, description="Pixel width; None for formats Pillow cannot open (SVG)"
    )
    height: Optional[int] = Field(
        default=None, description="Pixel height; None for formats Pillow cannot open (SVG)"
    )

    @computed_field
    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"
