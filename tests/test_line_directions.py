"""Tests for the per-line direction decoration cache."""
from __future__ import annotations

import pytest

from autodir.app.direction import Direction
from autodir.app.ui.line_directions import (
    ChangeSpan,
    DecorationEntry,
    EditDelta,
    LineDirectionCache,
    StringBuffer,
    TextRange,
)

L = Direction.LTR
R = Direction.RTL


def _active_cache(text: str) -> tuple[StringBuffer, LineDirectionCache]:
    buf = StringBuffer(text)
    cache = LineDirectionCache(buf)
    cache.activate(True, TextRange(0, len(buf)))
    return buf, cache


def _line_starts(text: str) -> list[int]:
    return [0] + [idx + 1 for idx, ch in enumerate(text) if ch == "\n"]


class TestStringBuffer:
    def test_line_at(self):
        buf = StringBuffer("ab\ncd")
        first = buf.line_at(0)
        assert (first.start, first.end, first.text) == (0, 2, "ab")
        # The newline belongs to the line it ends.
        assert buf.line_at(2).start == 0
        second = buf.line_at(5)
        assert (second.start, second.end, second.text) == (3, 5, "cd")

    def test_line_at_out_of_bounds(self):
        buf = StringBuffer("ab")
        with pytest.raises(IndexError):
            buf.line_at(3)
        with pytest.raises(IndexError):
            buf.line_at(-1)

    def test_empty_document_has_one_line(self):
        line = StringBuffer("").line_at(0)
        assert (line.start, line.end, line.text) == (0, 0, "")

    def test_replace_reports_change(self):
        buf = StringBuffer("hello world")
        change = buf.replace(6, 11, "there!")
        assert buf.text == "hello there!"
        assert change == ChangeSpan(6, 11, 6, 12)
        assert buf.slice(0, 5) == "hello"


class TestEditDelta:
    def test_insertion_pivots_on_insertion_point(self):
        assert EditDelta.from_change(ChangeSpan(5, 5, 5, 8)) == EditDelta(5, 3)

    def test_deletion_pivots_on_collapsed_end(self):
        assert EditDelta.from_change(ChangeSpan(5, 9, 5, 5)) == EditDelta(5, -4)

    def test_growing_replacement_pivots_on_old_end(self):
        assert EditDelta.from_change(ChangeSpan(2, 4, 2, 7)) == EditDelta(4, 3)


def test_activation_fills_lines_with_inherited_direction():
    _, cache = _active_cache("abc\nשלום\n123")
    assert cache.decorations() == [(0, L), (4, R), (9, R)]


def test_fallback_used_before_any_direction():
    buf = StringBuffer("123\nabc")
    cache = LineDirectionCache(buf, fallback=R)
    cache.activate(True, TextRange(0, len(buf)))
    assert cache.decorations() == [(0, R), (4, L)]


def test_activate_reports_state_change():
    buf = StringBuffer("שלום")
    cache = LineDirectionCache(buf)
    assert cache.activate(True, TextRange(0, 4)) is True
    assert cache.activate(True, TextRange(0, 4)) is False
    assert cache.activate(False, TextRange(0, 4)) is True
    assert cache.decorations() == [(0, None)]


def test_inactive_cache_gives_neutral_decorations():
    buf = StringBuffer("שלום\nabc")
    cache = LineDirectionCache(buf)
    cache.on_viewport_change(TextRange(0, len(buf)))
    assert cache.decorations() == [(0, None), (5, None)]


def test_viewport_fill_is_lazy_and_never_evicts():
    buf = StringBuffer("abc\nשלום\n123")
    cache = LineDirectionCache(buf)
    cache.activate(True, TextRange(0, 0))
    assert cache.decorations() == [(0, L)]
    cache.on_viewport_change(TextRange(9, 12))
    # Line 4 was never seen, so line 9 inherits from line 0.
    assert cache.decorations() == [(0, L), (9, L)]
    cache.on_viewport_change(TextRange(0, 0))
    assert len(cache) == 2


def test_insertion_shifts_following_lines():
    buf, cache = _active_cache("abc\nשלום\nxyz")
    cache.apply_changes([buf.replace(0, 0, "Hi ")])
    assert buf.text == "Hi abc\nשלום\nxyz"
    assert cache.decorations() == [(0, L), (7, R), (12, L)]


def test_insertion_of_new_line_keeps_entries_on_line_starts():
    buf, cache = _active_cache("abc\nשלום")
    cache.apply_changes([buf.replace(4, 4, "new\n")])
    assert [start for start, _ in cache.decorations()] == _line_starts(buf.text)
    assert cache.decorations() == [(0, L), (4, L), (8, R)]


def test_deleting_newline_merges_lines():
    buf, cache = _active_cache("abc\nשלום\nxyz")
    cache.apply_changes([buf.replace(3, 4, "")])
    assert buf.text == "abcשלום\nxyz"
    assert cache.decorations() == [(0, L), (8, L)]


def test_deleting_several_lines_evicts_their_entries():
    buf, cache = _active_cache("abc\ndef\nghi\njkl")
    cache.apply_changes([buf.replace(2, 10, "")])
    assert buf.text == "abi\njkl"
    assert cache.decorations() == [(0, L), (4, L)]


def test_edit_refreshes_lines_that_inherit_direction():
    buf, cache = _active_cache("abc\n123\n456\nxyz\n789")
    assert cache.decorations() == [(0, L), (4, L), (8, L), (12, L), (16, L)]
    cache.apply_changes([buf.replace(0, 3, "سلام")])
    # Carry-forward stops at "xyz", which has a direction of its own.
    assert cache.decorations() == [(0, R), (5, R), (9, R), (13, L), (17, L)]


def test_multiple_changes_in_one_notification():
    buf, cache = _active_cache("abc\ndef\nghi\njkl")
    buf.set_text("abc\nXdef\nghi\nYjkl")
    cache.apply_changes([ChangeSpan(4, 4, 4, 5), ChangeSpan(12, 12, 13, 14)])
    assert [start for start, _ in cache.decorations()] == _line_starts(buf.text)
    assert cache.decorations() == _active_cache(buf.text)[1].decorations()


def test_every_span_of_a_notification_carries_forward():
    buf, cache = _active_cache(" bxb\nسس\n\n1ab1לسb1\n")
    assert cache.decoration_for(8).direction is R
    # "سس" becomes two spaces and "1ab" is deleted in one notification.
    buf.set_text(" bxb\n  \n\n1לسb1\n")
    cache.apply_changes([ChangeSpan(5, 7, 5, 7), ChangeSpan(9, 12, 9, 9)])
    assert cache.decorations() == [(0, L), (5, L), (8, L), (9, R), (15, R)]
    assert cache.decorations() == _active_cache(buf.text)[1].decorations()


def test_on_edit_with_explicit_deltas():
    buf, cache = _active_cache("abc\nשלום")
    buf.replace(1, 1, "xy")
    cache.on_edit([EditDelta(1, 2)], [TextRange(1, 3)])
    assert cache.decorations() == [(0, L), (6, R)]


def test_shift_evicts_collapsed_entries():
    buf = StringBuffer("")
    cache = LineDirectionCache(buf)
    for start in (0, 4, 8):
        cache.upsert(DecorationEntry(TextRange(start, start + 3), L))
    cache.shift(4, 0)
    assert len(cache) == 3
    cache.shift(4, -2)
    assert [start for start, _ in cache.decorations()] == [0, 6]


def test_upsert_keeps_order_and_replaces_same_start():
    cache = LineDirectionCache(StringBuffer(""))
    cache.upsert(DecorationEntry(TextRange(10, 12), R))
    cache.upsert(DecorationEntry(TextRange(0, 3), L))
    cache.upsert(DecorationEntry(TextRange(5, 8), None))
    cache.upsert(DecorationEntry(TextRange(5, 9), R))
    assert cache.decorations() == [(0, L), (5, R), (10, R)]
    assert cache.entries[1].range == TextRange(5, 9)


def test_upsert_rejects_malformed_range():
    cache = LineDirectionCache(StringBuffer(""))
    with pytest.raises(AssertionError):
        cache.upsert(DecorationEntry(TextRange(5, 2), L))


def test_decoration_for_computes_missing_line():
    buf = StringBuffer("abc\nשלום")
    cache = LineDirectionCache(buf)
    cache.activate(True)
    entry = cache.decoration_for(6)
    assert entry == DecorationEntry(TextRange(4, 8), R)
    assert cache.decoration_for(6) is cache.entries[0]


def test_decoration_for_out_of_bounds_is_none():
    _, cache = _active_cache("abc")
    assert cache.decoration_for(100) is None
    assert cache.decoration_for(-1) is None


def test_nearest_preceding():
    _, cache = _active_cache("abc\nשלום\nxyz")
    assert cache.nearest_preceding(0) is None
    assert cache.nearest_preceding(9).direction is R
    assert cache.nearest_preceding(4).direction is L


def test_on_edit_shifts_every_entry_at_or_after_insertion():
    buf, cache = _active_cache("abc\ndef\nghi")
    before = cache.entries
    buf.replace(4, 4, "xx")
    cache.on_edit([EditDelta(4, 2)], [])
    assert cache.entries[0] == before[0]
    assert [e.range for e in cache.entries[1:]] == [e.range.shifted(2) for e in before[1:]]
