"""Image bridge: load an image file as a base64 payload for the preview pane."""

import base64
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from mdpad.bridges.files import IMAGE_EXTENSIONS, get_mime_type
from mdpad.errors import DocumentIOError
from mdpad.models.image_data import ImageData

log = logging.getLogger(__name__)


def is_image_file(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def image_dimensions(image_bytes: bytes) -> Optional[Tuple[int, int]]:
    """Pixel size of a raster image, or None if Pillow cannot read it."""
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        log.debug(f"Could not read image dimensions: {e}")
        return None


def process_image_file(path: Union[str, Path]) -> ImageData:
    """Read an image file into an ImageData payload.

    Raises DocumentIOError when the file is missing, unreadable, or not one
    of the supported image formats.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise DocumentIOError(f"Image not found: {path}")
    if not is_image_file(file_path):
        raise DocumentIOError(f"Unsupported image format: {file_path.suffix or file_path.name}")

    try:
        image_bytes = file_path.read_bytes()
    except OSError as e:
        log.error(f"Failed to read image {path}: {e}")
        raise DocumentIOError(f"Cannot open {path}: {e}") from e

    mime_type = get_mime_type(file_path)
    size = None if mime_type == "image/svg+xml" else image_dimensions(image_bytes)
    width, height = size if size else (None, None)

    log.info(f"Loaded image {file_path.name} ({len(image_bytes)} bytes, {width}x{height})")
    return ImageData(
        file_name=file_path.name,
        file_path=str(file_path),
        file_size=len(image_bytes),
        mime_type=mime_type,
        base64=base64.b64encode(image_bytes).decode("utf-8"),
        width=width,
        height=height,
    )
