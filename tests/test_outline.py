"""Tests for heading extraction and the debounced outline tracker."""

from mdpad.debounce import Debouncer
from mdpad.outline import OutlineTracker, extract, extract_headings, line_offset, make_anchor


def shape(headings):
    return [
        {"level": h.level, "text": h.text, "children": shape(h.children)}
        for h in headings
    ]


def test_basic_tree():
    assert shape(extract("# A\n## B\n# C\n")) == [
        {"level": 1, "text": "A", "children": [{"level": 2, "text": "B", "children": []}]},
        {"level": 1, "text": "C", "children": []},
    ]


def test_shallower_heading_closes_deeper_ones():
    tree = extract("# A\n## B\n### C\n## D\n")
    assert shape(tree) == [
        {
            "level": 1,
            "text": "A",
            "children": [
                {
                    "level": 2,
                    "text": "B",
                    "children": [{"level": 3, "text": "C", "children": []}],
                },
                {"level": 2, "text": "D", "children": []},
            ],
        }
    ]


def test_headings_without_parent_are_roots():
    assert [h.level for h in extract("### deep\n# top\n")] == [3, 1]


def test_line_numbers_are_one_based():
    headings = extract_headings("intro\n\n# First\ntext\n## Second")
    assert [(h.text, h.line_number) for h in headings] == [("First", 3), ("Second", 5)]


def test_non_headings_are_ignored():
    buffer = "#nospace\n####### seven\n#   \n  # indented\ntext # not\n"
    assert extract(buffer) == []


def test_crlf_and_trailing_whitespace():
    headings = extract_headings("# Title  \r\nbody\r\n")
    assert [h.text for h in headings] == ["Title"]


def test_anchor_slugs():
    assert make_anchor("Hello, World!") == "hello-world"
    assert make_anchor("  Spaces   everywhere ") == "spaces-everywhere"
    assert make_anchor("中文 标题") == "中文-标题"
    assert extract("# Getting Started")[0].anchor == "getting-started"


def test_to_dict_nests():
    data = extract("# A\n## B")[0].to_dict()
    assert data["line_number"] == 1
    assert data["children"][0]["text"] == "B"
    assert data["children"][0]["line_number"] == 2


def test_line_offset():
    buffer = "one\ntwo\nthree"
    assert line_offset(buffer, 1) == 0
    assert line_offset(buffer, 2) == 4
    assert line_offset(buffer, 3) == 8
    assert line_offset(buffer, 0) is None
    assert line_offset(buffer, 4) is None


def test_tracker_coalesces_bursts(clock):
    delivered = []
    tracker = OutlineTracker(delivered.append, delay_ms=300, timer_factory=clock)

    tracker.content_changed("# A")
    tracker.content_changed("# A\n# B")
    tracker.content_changed("# A\n# B\n# C")
    assert delivered == []
    assert len(clock.live) == 1
    assert clock.live[0].delay == 0.3

    clock.run_pending()
    assert len(delivered) == 1
    assert [h.text for h in delivered[0]] == ["A", "B", "C"]


def test_tracker_refresh_now_drops_pending(clock):
    delivered = []
    tracker = OutlineTracker(delivered.append, timer_factory=clock)
    tracker.content_changed("# stale")
    headings = tracker.refresh_now("# fresh")
    assert [h.text for h in headings] == ["fresh"]
    assert clock.run_pending() == 0
    assert len(delivered) == 1


def test_debouncer_flush_and_cancel(clock):
    calls = []
    debouncer = Debouncer(50, calls.append, timer_factory=clock)

    debouncer.trigger(1)
    debouncer.trigger(2)
    assert debouncer.pending
    debouncer.flush()
    assert calls == [2]
    assert not debouncer.pending

    debouncer.trigger(3)
    debouncer.cancel()
    clock.run_pending()
    assert calls == [2]


def test_debouncer_survives_callback_errors(clock):
    def boom(value):
        raise RuntimeError(value)

    debouncer = Debouncer(10, boom, timer_factory=clock)
    debouncer.trigger("x")
    clock.run_pending()
    assert not debouncer.pending


def test_debouncer_ignores_superseded_timer(clock):
    calls = []
    debouncer = Debouncer(50, calls.append, timer_factory=clock)

    debouncer.trigger("old")
    stale = clock.timers[0]
    debouncer.trigger("new")

    # The first timer was already running when the second trigger came in
    stale.fire()
    assert calls == []
    assert debouncer.pending

    assert clock.run_pending() == 1
    assert calls == ["new"]
