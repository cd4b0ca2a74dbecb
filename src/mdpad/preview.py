"""Markdown to HTML rendering for the preview pane."""

import html as html_lib
import logging

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from mdit_py_plugins import anchors, deflist, footnote, tasklists, texmath

from mdpad.models.image_data import ImageData
from mdpad.outline import make_anchor

log = logging.getLogger(__name__)

EMPTY_PLACEHOLDER = '<div class="empty-content">Start typing Markdown...</div>'

ALLOWED_TAGS = {
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "strong", "em", "u", "s", "del",
    "a", "img", "code", "pre",
    "ul", "ol", "li",
    "blockquote", "hr",
    "table", "thead", "tbody", "tr", "th", "td",
    "div", "span",
    # plugin output: footnotes, task lists, definition lists, math
    "section", "sup", "sub", "input", "dl", "dt", "dd", "eq", "eqn",
}

ALLOWED_ATTRS = {
    "href", "title", "alt", "src", "class", "id",
    "target", "rel", "type", "checked", "disabled",
    "loading", "style",
}

# Removed together with their contents
DROPPED_TAGS = {"script", "style", "iframe", "object", "embed", "noscript", "template"}

EXPORT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>
body {{ max-width: 50em; margin: 2em auto; padding: 0 1em; font-family: sans-serif; line-height: 1.5; }}
pre, code {{ background: #f5f5f5; }}
pre {{ padding: 0.75em; overflow-x: auto; }}
table {{ border-collapse: collapse; }}
th, td {{ border: 1px solid #ccc; padding: 0.25em 0.5em; }}
blockquote {{ margin-left: 0; padding-left: 1em; border-left: 3px solid #ccc; color: #555; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""

URL_ATTRS = ("href", "src")
SAFE_URL_PREFIXES = ("http:", "https:", "mailto:", "#", "data:image/", "file:")


def _is_safe_url(url: str) -> bool:
    value = url.strip().lower()
    if ":" not in value.split("/", 1)[0]:
        # Relative links
        return True
    return value.startswith(SAFE_URL_PREFIXES)


def sanitize_html(html: str) -> str:
    """Strip everything outside the tag/attribute allowlist."""
    soup = BeautifulSoup(html, "html.parser")

    dropped = soup.find(list(DROPPED_TAGS))
    while dropped is not None:
        dropped.decompose()
        dropped = soup.find(list(DROPPED_TAGS))

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        for attr in list(tag.attrs):
            if attr not in ALLOWED_ATTRS:
                del tag.attrs[attr]
            elif attr in URL_ATTRS and not _is_safe_url(str(tag.attrs[attr])):
                log.debug(f"Dropping unsafe {attr} on <{tag.name}>")
                del tag.attrs[attr]

    return str(soup)


def format_file_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


class MarkdownRenderer:
    """markdown-it renderer with the preview plugins and optional sanitizing."""

    def __init__(self, sanitize: bool = True):
        self.sanitize = sanitize
        self._md = MarkdownIt("gfm-like", {"html": True, "breaks": True, "linkify": True})
        self._md.enable("table")
        self._md.use(deflist.deflist_plugin)
        self._md.use(anchors.anchors_plugin, max_level=6, slug_func=make_anchor)
        self._md.use(footnote.footnote_plugin)
        self._md.use(tasklists.tasklists_plugin)
        self._md.use(texmath.texmath_plugin)

    def render(self, markdown: str) -> str:
        """Render a Markdown buffer to preview HTML."""
        if not markdown.strip():
            return EMPTY_PLACEHOLDER

        html = self._md.render(markdown)
        if self.sanitize:
            html = sanitize_html(html)
        log.debug(f"Rendered {len(markdown)} chars of Markdown to {len(html)} chars of HTML")
        return html

    def render_document(self, markdown: str, title: str) -> str:
        """Standalone HTML page for exporting a buffer."""
        body = self.render(markdown) if markdown.strip() else ""
        return EXPORT_TEMPLATE.format(title=html_lib.escape(title), body=body)

    def render_image(self, image: ImageData) -> str:
        """Preview markup for an image tab."""
        name = html_lib.escape(image.file_name)
        details = [image.mime_type, format_file_size(image.file_size)]
        if image.width and image.height:
            details.append(f"{image.width} × {image.height}")

        return (
            '<div class="image-preview">'
            f'<img src="{image.data_url}" alt="{name}" title="{name}">'
            '<div class="image-info">'
            f'<span class="image-name">{name}</span>'
            f'<span class="image-details">{html_lib.escape(" · ".join(details))}</span>'
            "</div></div>"
        )
