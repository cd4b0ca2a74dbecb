"""Tests for the preview renderer and sanitizer."""

from mdpad.models.image_data import ImageData
from mdpad.preview import (
    EMPTY_PLACEHOLDER,
    MarkdownRenderer,
    format_file_size,
    sanitize_html,
)


def test_headings_get_anchor_ids():
    html = MarkdownRenderer().render("# Getting Started\n\ntext")
    assert '<h1 id="getting-started">Getting Started</h1>' in html


def test_empty_buffer_shows_placeholder():
    renderer = MarkdownRenderer()
    assert renderer.render("") == EMPTY_PLACEHOLDER
    assert renderer.render("  \n\t") == EMPTY_PLACEHOLDER


def test_gfm_table_and_strikethrough():
    html = MarkdownRenderer().render("| a | b |\n|---|---|\n| 1 | 2 |\n\n~~gone~~")
    assert "<table>" in html
    assert "<td>1</td>" in html
    assert "<s>gone</s>" in html


def test_task_list_checkbox_survives():
    html = MarkdownRenderer().render("- [x] done\n- [ ] todo")
    assert 'type="checkbox"' in html
    assert "checked" in html


def test_script_is_removed_with_contents():
    html = MarkdownRenderer().render("hello\n\n<script>alert('x')</script>\n")
    assert "<script" not in html
    assert "alert" not in html
    assert "hello" in html


def test_event_handlers_and_javascript_urls_removed():
    html = MarkdownRenderer().render(
        'click <a href="javascript:alert(1)" onclick="steal()">here</a>'
    )
    assert "javascript:" not in html
    assert "onclick" not in html
    assert ">here</a>" in html


def test_unknown_tags_are_unwrapped():
    assert sanitize_html("<custom>kept text</custom>") == "kept text"


def test_safe_links_and_styles_kept():
    html = sanitize_html(
        '<p style="text-align: center"><a href="https://example.com">x</a>'
        '<a href="docs/other.md">y</a><img src="data:image/png;base64,AA"></p>'
    )
    assert 'style="text-align: center"' in html
    assert 'href="https://example.com"' in html
    assert 'href="docs/other.md"' in html
    assert 'src="data:image/png;base64,AA"' in html


def test_sanitizing_can_be_disabled():
    html = MarkdownRenderer(sanitize=False).render('<div onclick="x()">raw</div>')
    assert 'onclick="x()"' in html


def test_footnotes_render():
    html = MarkdownRenderer().render("Text[^1]\n\n[^1]: Note.")
    assert "footnote" in html
    assert "Note." in html


def test_render_image():
    image = ImageData(
        file_name="a<b>.png",
        file_path="/tmp/a<b>.png",
        file_size=2048,
        mime_type="image/png",
        base64="AAAA",
        width=10,
        height=20,
    )
    html = MarkdownRenderer().render_image(image)
    assert html.startswith('<div class="image-preview">')
    assert 'src="data:image/png;base64,AAAA"' in html
    assert "a&lt;b&gt;.png" in html
    assert "2.0 KB" in html
    assert "10 × 20" in html


def test_format_file_size():
    assert format_file_size(512) == "512 B"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(5 * 1024 * 1024) == "5.0 MB"


def test_document_wraps_rendered_body():
    page = MarkdownRenderer().render_document("# Hi\n\n<script>x()</script>\n", "a & b")
    assert page.startswith("<!DOCTYPE html>")
    assert "<title>a &amp; b</title>" in page
    assert '<h1 id="hi">Hi</h1>' in page
    assert "<script>" not in page


def test_empty_document_has_no_placeholder():
    page = MarkdownRenderer().render_document("", "empty")
    assert EMPTY_PLACEHOLDER not in page
    assert "<body>\n\n</body>" in page
