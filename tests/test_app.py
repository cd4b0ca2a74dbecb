"""End-to-end tests of EditorApp without a window."""

import json

import pytest
from PIL import Image

from mdpad.app import EditorApp, markdown_path_for
from mdpad.errors import DocumentIOError, NotFoundError, OcrError
from mdpad.models import OcrResult, TabKind, parse_event
from mdpad.view_mode import ViewMode


@pytest.fixture
def notes(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("# Title\n\nbody\n## Sub\n")
    return path


@pytest.fixture
def png(tmp_path):
    path = tmp_path / "scan.png"
    Image.new("RGB", (8, 4), "white").save(path)
    return path


class FakeOcr:
    def __init__(self, text="scanned text"):
        self.text = text
        self.paths = []

    async def recognize(self, path):
        self.paths.append(path)
        return OcrResult(full_text=self.text, elapsed_ms=5)


def test_starts_with_one_untitled_tab(app):
    state = app.snapshot()
    assert len(state["tabs"]) == 1
    assert state["tabs"][0]["name"] == "Untitled"
    assert state["tabs"][0]["state"] == "unsaved"
    assert state["view_mode"] == "editor"
    assert state["outline"] == []


def test_open_markdown_file(app, notes):
    tab_id = app.open_path(str(notes))

    assert app.active_tab_id == tab_id
    state = app.snapshot()
    assert state["editor"]["content"] == "# Title\n\nbody\n## Sub\n"
    assert state["tabs"][1]["name"] == "notes.md"
    assert state["tabs"][1]["state"] == "saved"
    assert [h.text for h in app.outline] == ["Title"]
    assert app.outline[0].children[0].text == "Sub"


def test_opening_same_file_reuses_tab(app, notes):
    first = app.open_path(str(notes))
    app.new_tab()
    assert app.open_path(str(notes)) == first
    assert app.active_tab_id == first
    assert len(app.session) == 3


def test_open_missing_file_raises(app, tmp_path):
    with pytest.raises(DocumentIOError):
        app.open_path(str(tmp_path / "missing.md"))
    assert app.loading == set()


def test_image_tab_forces_split_and_cannot_be_saved(app, png):
    tab_id = app.open_path(str(png))

    tab = app.session.get(tab_id)
    assert tab.kind == TabKind.IMAGE
    assert app.view_mode.mode == ViewMode.SPLIT
    assert '<div class="image-preview">' in app.preview_html
    state = app.snapshot()
    assert state["layout"]["image_preview"] is True
    assert state["image"]["width"] == 8
    with pytest.raises(DocumentIOError):
        app.save()


def test_word_import_and_save_as_markdown(app, docx_file):
    tab_id = app.open_path(str(docx_file))

    tab = app.session.get(tab_id)
    assert tab.kind == TabKind.WORD_IMPORTED
    assert tab.original_format == ".docx"
    assert app.session.live.content.startswith("# Annual Report")

    saved = app.save()

    assert saved == str(docx_file.with_suffix(".md"))
    assert docx_file.with_suffix(".md").read_text().startswith("# Annual Report")
    assert app.session.get(tab_id).name == "report.md"
    assert app.session.get(tab_id).file_path == saved


def test_markdown_path_for():
    assert markdown_path_for("/a/Report.DOCX") == "/a/Report.md"
    assert markdown_path_for("/a/old.doc") == "/a/old.md"
    assert markdown_path_for("/a/doc.txt") == "/a/doc.txt"


def test_edit_marks_modified_and_debounces_outline(app, clock):
    app.edit("# One\n# Two")

    assert app.snapshot()["tabs"][0]["is_modified"] is True
    assert app.outline == []
    clock.run_pending()
    assert [h.text for h in app.outline] == ["One", "Two"]


def test_edit_tracks_cursor_and_scroll(app):
    app.edit(line=2)
    app.edit(column=4, scroll_position=120.0)
    editor = app.snapshot()["editor"]
    assert editor["cursor_position"] == {"line": 2, "column": 4}
    assert editor["scroll_position"] == 120.0
    assert app.snapshot()["tabs"][0]["is_modified"] is False


def test_split_view_renders_preview(app):
    app.edit("# Hello")
    app.set_view_mode("split")
    assert '<h1 id="hello">Hello</h1>' in app.preview_html

    app.edit("# Bye")
    assert '<h1 id="bye">Bye</h1>' in app.preview_html


def test_editor_mode_skips_preview(app):
    app.edit("# Hidden")
    assert app.preview_html == ""


def test_unknown_view_mode_raises(app):
    with pytest.raises(ValueError):
        app.set_view_mode("fullscreen")


def test_cursor_restored_when_switching_back(app, notes):
    first = app.active_tab_id
    app.edit("draft", line=3, column=1)
    app.open_path(str(notes))
    app.switch_tab(first)
    state = app.snapshot()
    assert state["editor"]["content"] == "draft"
    assert state["editor"]["cursor_position"] == {"line": 3, "column": 1}


def test_find_and_navigate(app):
    app.edit("cat hat cat")
    assert len(app.find("cat")) == 2
    assert app.find_next().offset == 0
    assert app.find_next().offset == 8
    assert app.find_next().offset == 0
    assert app.find_previous().offset == 8


def test_find_without_matches_raises_on_next(app):
    app.edit("abc")
    assert app.find("zzz") == []
    with pytest.raises(NotFoundError):
        app.find_next()


def test_replace_first_match(app):
    app.edit("cat hat cat")
    app.find("cat")
    result = app.replace("dog")
    assert result.replaced
    assert app.session.live.content == "dog hat cat"
    assert app.search.matches == []


def test_replace_selected_match(app):
    app.edit("cat hat cat")
    app.find("cat")
    app.find_next()
    app.find_next()
    app.replace("dog", (8, 11))
    assert app.session.live.content == "cat hat dog"


def test_replace_all(app):
    app.edit("a cat and a cat")
    result = app.replace_all("dog", "cat")
    assert result.count == 2
    assert app.snapshot()["editor"]["content"] == "a dog and a dog"


def test_replace_all_without_match_keeps_buffer(app):
    app.edit("nothing here")
    assert app.replace_all("x", "zzz").count == 0
    assert app.session.live.content == "nothing here"


def test_jump_to_line(app):
    app.edit("one\ntwo\nthree")
    assert app.jump_to_line(3) == 8
    assert app.snapshot()["editor"]["cursor_position"] == {"line": 2, "column": 0}
    assert app.jump_to_line(10) is None


def test_refresh_outline_is_immediate(app):
    app.edit("# Now")
    assert [h.text for h in app.refresh_outline()] == ["Now"]
    assert [h["text"] for h in app.snapshot()["outline"]] == ["Now"]


def test_close_last_tab_leaves_untitled(app):
    app.close_tab()
    assert len(app.session) == 1
    assert app.snapshot()["tabs"][0]["name"] == "Untitled"


def test_external_change_and_reload(app, notes):
    notified = []
    app.on_file_changed = lambda tab_id, path: notified.append((tab_id, path))
    tab_id = app.open_path(str(notes))
    app.edit("local edits")

    assert app.handle_file_changed(str(notes)) == tab_id
    assert notified == [(tab_id, str(notes))]
    assert app.snapshot()["pending_reloads"] == [tab_id]

    notes.write_text("# From disk\n")
    app.reload_tab(tab_id)

    assert app.session.live.content == "# From disk\n"
    assert app.session.get(tab_id).is_modified is False
    assert app.pending_reloads == set()


def test_change_to_unopened_file_is_ignored(app, tmp_path):
    assert app.handle_file_changed(str(tmp_path / "other.md")) is None


def test_dismiss_reload(app, notes):
    tab_id = app.open_path(str(notes))
    app.handle_file_changed(str(notes))
    app.dismiss_reload(tab_id)
    assert app.pending_reloads == set()


def test_ocr_on_active_image_opens_tab(config, clock, png):
    ocr = FakeOcr()
    app = EditorApp(config, ocr_client=ocr, timer_factory=clock)
    app.open_path(str(png))

    result = app.perform_ocr(open_tab=True)

    assert result.full_text == "scanned text"
    assert ocr.paths == [str(png)]
    tab = app.session.active_tab
    assert tab.name == "scan (OCR)"
    assert app.session.live.content == "scanned text"
    assert tab.is_modified
    assert app.snapshot()["last_ocr"]["full_text"] == "scanned text"


def test_ocr_needs_an_image(config, clock):
    app = EditorApp(config, ocr_client=FakeOcr(), timer_factory=clock)
    with pytest.raises(OcrError):
        app.perform_ocr()


def test_ocr_client_from_config(app):
    assert app.ocr_client.url == "http://127.0.0.1:5000/ocr"


def test_folder_browsing(app, tmp_path, notes):
    (tmp_path / "sub").mkdir()
    app.open_folder(str(tmp_path))

    folder = app.snapshot()["folder"]
    assert folder["path"] == str(tmp_path)
    assert [node["name"] for node in folder["tree"]] == ["sub", "notes.md"]

    app.navigate("up")
    assert app.snapshot()["folder"]["can_go_back"] is True
    app.navigate("back")
    assert app.browser.current_path == tmp_path
    with pytest.raises(ValueError):
        app.navigate("sideways")


def test_dispatch_routes_events(app, notes):
    new_id = app.dispatch(parse_event({"kind": "menu", "command": "new_file"}))
    assert app.active_tab_id == new_id

    app.dispatch(parse_event({"kind": "tab", "action": "switch_index", "index": 0}))
    assert app.active_tab_id == "tab-1"

    app.dispatch(parse_event({"kind": "content_edited", "content": "# x", "line": 0}))
    assert app.session.live.content == "# x"

    mode = app.dispatch(parse_event({"kind": "view_mode", "mode": "preview"}))
    assert mode == ViewMode.PREVIEW

    opened = app.dispatch(parse_event({"kind": "file_opened", "path": str(notes)}))
    assert app.active_tab_id == opened

    app.dispatch(parse_event({"kind": "tab", "action": "close", "tab_id": opened}))
    assert opened not in app.session


def test_state_change_callback(app):
    calls = []
    app.on_state_changed = lambda: calls.append(1)
    app.new_tab()
    assert calls

    calls.clear()
    app.toggle_sidebar()
    assert calls == [1]
    assert app.sidebar_visible is False


def test_snapshot_is_json_ready(app, notes, png, tmp_path):
    app.open_folder(str(tmp_path))
    app.open_path(str(notes))
    app.find("Title")
    app.find_next()
    json.dumps(app.snapshot())
    app.open_path(str(png))
    json.dumps(app.snapshot())


def test_content_edits_on_image_tab_are_ignored(app, png):
    tab_id = app.open_path(str(png))

    app.edit("stray text", line=1, scroll_position=10.0)

    assert app.session.get(tab_id).is_modified is False
    assert app.session.has_unsaved_changes() is False
    assert app.snapshot()["editor"]["scroll_position"] == 10.0


def test_watcher_follows_folder_navigation(app, tmp_path):
    (tmp_path / "sub").mkdir()
    app.open_folder(str(tmp_path / "sub"))
    watcher = app.enable_watching()
    try:
        assert watcher.folder_path == str(tmp_path / "sub")

        app.navigate("up")
        assert watcher.folder_path == str(tmp_path)
        app.navigate("back")
        assert watcher.folder_path == str(tmp_path / "sub")
    finally:
        app.shutdown()
