"""Word document import: DOCX/DOC to HTML, then HTML to Markdown."""

import html as html_lib
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

import mammoth
from bs4 import BeautifulSoup
from markdownify import ATX, MarkdownConverter

from mdpad.errors import ConversionError
from mdpad.models.messages import ConvertedDocument

log = logging.getLogger(__name__)

DOCX_STYLE_MAP = """
p[style-name='Heading 1'] => h1:fresh
p[style-name='Heading 2'] => h2:fresh
p[style-name='Heading 3'] => h3:fresh
p[style-name='Title'] => h1:fresh
p[style-name='Subtitle'] => h2:fresh
r[style-name='Strong'] => strong
r[style-name='Emphasis'] => em
"""

SUPPORTED_FORMATS = ("doc", "docx")

# Inline style properties that survive the trip into Markdown
PARAGRAPH_STYLES = ("text-align", "font-size", "font-weight", "font-style")
SPAN_STYLES = (
    "font-size",
    "font-weight",
    "font-style",
    "color",
    "text-decoration",
)
ALIGN_CLASSES = ("center", "right", "justify")


def _parse_style(value: Optional[str]) -> Dict[str, str]:
    styles = {}
    for declaration in (value or "").split(";"):
        name, sep, prop = declaration.partition(":")
        if sep and name.strip() and prop.strip():
            styles[name.strip().lower()] = prop.strip()
    return styles


def _kept_styles(el, allowed) -> List[str]:
    styles = _parse_style(el.get("style"))
    kept = [f"{name}: {styles[name]}" for name in allowed if name in styles]

    if "text-align" in allowed and "text-align" not in styles:
        classes = " ".join(el.get("class") or [])
        for align in ALIGN_CLASSES:
            if align in classes:
                kept.append(f"text-align: {align}")
                break
    return kept


class StyledMarkdownConverter(MarkdownConverter):
    """markdownify converter that keeps styled paragraphs and spans as inline HTML."""

    def __init__(self, **options):
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        options.setdefault("strong_em_symbol", "*")
        options.setdefault("code_language", "")
        super().__init__(**options)

    def convert_p(self, el, text, *args, **kwargs):
        styles = _kept_styles(el, PARAGRAPH_STYLES)
        if not styles:
            return super().convert_p(el, text, *args, **kwargs)
        style = html_lib.escape("; ".join(styles), quote=True)
        return f'\n\n<p style="{style}">{text.strip()}</p>\n\n'

    def convert_span(self, el, text, *args, **kwargs):
        styles = _kept_styles(el, SPAN_STYLES)
        if not styles:
            return text
        style = html_lib.escape("; ".join(styles), quote=True)
        return f'<span style="{style}">{text}</span>'

    def convert_br(self, el, text, *args, **kwargs):
        return "\n"


def html_to_markdown(html: str) -> str:
    """Normalize converter HTML into Markdown, keeping styled blocks as HTML."""
    soup = BeautifulSoup(html, "html.parser")
    markdown = StyledMarkdownConverter().convert_soup(soup)
    # markdownify pads blocks generously
    lines = [line.rstrip() for line in markdown.strip().split("\n")]
    collapsed: List[str] = []
    for line in lines:
        if not line and collapsed and not collapsed[-1]:
            continue
        collapsed.append(line)
    return "\n".join(collapsed) + "\n"


def text_to_paragraphs(text: str) -> str:
    """Group plain text into ``<p>`` elements, one per blank-line separated block."""
    paragraphs = []
    current: List[str] = []
    for raw in text.split("\n"):
        line = raw.strip()
        if line:
            current.append(line)
        elif current:
            paragraphs.append(" ".join(current))
            current = []
    if current:
        paragraphs.append(" ".join(current))
    return "".join(f"<p>{html_lib.escape(p)}</p>" for p in paragraphs)


class WordConverter:
    """Converts .docx through mammoth and legacy .doc through antiword."""

    def __init__(self, antiword_path: Optional[str] = None, timeout: float = 60.0):
        """
        Initialize the converter.

        Args:
            antiword_path: Path to the antiword binary; looked up on PATH when omitted
            timeout: Seconds to wait for antiword before giving up
        """
        self.antiword_path = antiword_path
        self.timeout = timeout

    def convert(self, path: Union[str, Path], fmt: str) -> ConvertedDocument:
        fmt = fmt.lower().lstrip(".")
        if fmt not in SUPPORTED_FORMATS:
            raise ConversionError(f"Unsupported document format: {fmt!r}")
        if not Path(path).is_file():
            raise ConversionError(f"Document not found: {path}")

        log.info(f"Converting {fmt} document: {path}")
        if fmt == "docx":
            return self._convert_docx(path)
        return self._convert_doc(path)

    def _convert_docx(self, path) -> ConvertedDocument:
        try:
            with open(path, "rb") as docx_file:
                result = mammoth.convert_to_html(
                    docx_file,
                    style_map=DOCX_STYLE_MAP,
                    convert_image=mammoth.images.data_uri,
                )
        except Exception as e:
            log.error(f"mammoth failed on {path}: {e}", exc_info=True)
            raise ConversionError(f"Cannot convert {path}: {e}") from e

        messages = [str(m.message) for m in result.messages]
        for msg in messages:
            log.warning(f"Mammoth conversion message: {msg}")
        log.info(f"Converted {path}, {len(result.value)} chars of HTML")
        return ConvertedDocument(html=result.value, messages=messages)

    def _convert_doc(self, path) -> ConvertedDocument:
        binary = self.antiword_path or shutil.which("antiword")
        if not binary:
            raise ConversionError("antiword is not installed; cannot read .doc files")

        try:
            proc = subprocess.run(
                [binary, "-w", "0", str(path)],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            log.error(f"antiword failed on {path}: {e}")
            raise ConversionError(f"Cannot convert {path}: {e}") from e

        if proc.returncode != 0:
            detail = proc.stderr.strip() or f"exit status {proc.returncode}"
            log.error(f"antiword failed on {path}: {detail}")
            raise ConversionError(f"Cannot convert {path}: {detail}")

        text = proc.stdout
        return ConvertedDocument(html=text_to_paragraphs(text), text=text)

    def import_document(self, path: Union[str, Path]) -> str:
        """Convert a Word file all the way to Markdown.

        If the HTML to Markdown step fails the raw HTML is returned so the
        document is still readable.
        """
        converted = self.convert(path, Path(path).suffix)
        html = converted.html or text_to_paragraphs(converted.text or "")
        try:
            return html_to_markdown(html)
        except Exception as e:
            log.warning(f"Markdown normalization failed for {path}, keeping HTML: {e}")
            return html
