from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Protocol

from autodir.app.direction import Direction, detect_direction


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextRange:
    """Half-open offsets of one logical line (newline excluded)."""

    start: int
    end: int

    @property
    def is_valid(self) -> bool:
        return 0 <= self.start <= self.end

    def contains(self, position: int) -> bool:
        return self.start <= position <= self.end

    def shifted(self, amount: int) -> "TextRange":
        return TextRange(self.start + amount, self.end + amount)


@dataclass(frozen=True)
class Line:
    start: int
    end: int
    text: str

    @property
    def range(self) -> TextRange:
        return TextRange(self.start, self.end)


@dataclass(frozen=True)
class DecorationEntry:
    range: TextRange
    # None is the neutral "no explicit direction" decoration.
    direction: Optional[Direction]


@dataclass(frozen=True)
class ChangeSpan:
    """One host change notification: old span replaced by new span."""

    from_old: int
    to_old: int
    from_new: int
    to_new: int

    @property
    def removed(self) -> int:
        return self.to_old - self.from_old

    @property
    def inserted(self) -> int:
        return self.to_new - self.from_new


@dataclass(frozen=True)
class EditDelta:
    anchor: int
    amount: int

    @classmethod
    def from_change(cls, change: ChangeSpan) -> "EditDelta":
        amount = change.inserted - change.removed
        if amount < 0:
            anchor = change.to_new
        else:
            # Old end of the replaced span, in the coordinates the cache holds
            # once earlier changes of the same notification are applied.
            anchor = change.from_new + change.removed
        return cls(anchor, amount)


class TextBuffer(Protocol):
    def __len__(self) -> int: ...

    def line_at(self, offset: int) -> Line: ...

    def slice(self, start: int, end: int) -> str: ...


class StringBuffer:
    """TextBuffer over a plain string, for headless hosts."""

    def __init__(self, text: str = "") -> None:
        self._text = ""
        self._line_starts: list[int] = [0]
        self.set_text(text)

    @property
    def text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        self._text = text
        self._line_starts = [0]
        self._line_starts.extend(idx + 1 for idx, ch in enumerate(text) if ch == "\n")

    def __len__(self) -> int:
        return len(self._text)

    def line_at(self, offset: int) -> Line:
        if offset < 0 or offset > len(self._text):
            raise IndexError(f"Offset {offset} outside document of length {len(self._text)}")
        idx = bisect_right(self._line_starts, offset) - 1
        start = self._line_starts[idx]
        if idx + 1 < len(self._line_starts):
            end = self._line_starts[idx + 1] - 1
        else:
            end = len(self._text)
        return Line(start, end, self._text[start:end])

    def slice(self, start: int, end: int) -> str:
        return self._text[start:end]

    def replace(self, start: int, end: int, insert: str) -> ChangeSpan:
        """Replace text[start:end] and return the matching change notification."""
        if not 0 <= start <= end <= len(self._text):
            raise IndexError(f"Invalid replacement span {start}..{end}")
        self.set_text(self._text[:start] + insert + self._text[end:])
        return ChangeSpan(start, end, start, start + len(insert))


def _entry_start(entry: DecorationEntry) -> int:
    return entry.range.start


class LineDirectionCache:
    """Per-editor cache of line direction decorations.

    Entries are kept sorted by line start with at most one entry per start.
    Edits shift the cached entries instead of recomputing them; only the
    lines an edit lands on are detected again. Lines scrolled into view are
    filled lazily and kept when they scroll out.
    """

    def __init__(
        self,
        buffer: TextBuffer,
        *,
        detector: Optional[Callable[[str], Optional[Direction]]] = None,
        fallback: Direction = Direction.LTR,
    ) -> None:
        self.buffer = buffer
        self._detect = detector or detect_direction
        self.fallback = fallback
        self.active = False
        self._entries: list[DecorationEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DecorationEntry]:
        return iter(list(self._entries))

    @property
    def entries(self) -> tuple[DecorationEntry, ...]:
        return tuple(self._entries)

    def decorations(self) -> list[tuple[int, Optional[Direction]]]:
        """Ordered (line start, direction) marks, one per cached line."""
        return [(entry.range.start, entry.direction) for entry in self._entries]

    def clear(self) -> None:
        self._entries.clear()

    # -- activation ---------------------------------------------------------

    def activate(self, is_active: bool, visible: Optional[TextRange] = None) -> bool:
        """Switch auto detection on or off; returns True when the state changed."""
        is_active = bool(is_active)
        if is_active == self.active:
            return False
        self.active = is_active
        self._entries.clear()
        logger.debug("Line direction detection %s", "enabled" if is_active else "disabled")
        if visible is not None:
            for line in self._iter_lines(visible):
                self.upsert(self._compute(line))
        return True

    # -- host notifications -------------------------------------------------

    def apply_changes(self, changes: Iterable[ChangeSpan]) -> None:
        """Fold a host change notification (ascending, non-overlapping spans) into the cache."""
        touched: list[TextRange] = []
        for change in changes:
            self._evict_between(change.from_new, change.from_new + change.removed)
            delta = EditDelta.from_change(change)
            self.shift(delta.anchor, delta.amount)
            # Lines of the new span are recomputed below; a shifted entry in
            # there may no longer sit on a line start.
            self._evict_between(change.from_new, change.to_new + 1)
            touched.append(TextRange(change.from_new, change.to_new))
        self._refresh(touched)

    def on_edit(self, deltas: Iterable[EditDelta], changed_ranges: Iterable[TextRange]) -> None:
        for delta in deltas:
            self.shift(delta.anchor, delta.amount)
        self._refresh(list(changed_ranges))

    def on_viewport_change(self, visible: TextRange) -> None:
        """Make sure every visible line has an entry; nothing is evicted."""
        for line in self._iter_lines(visible):
            if self._index_of(line.start) is None:
                self.upsert(self._compute(line))

    def decoration_for(self, position: int) -> Optional[DecorationEntry]:
        """Return the entry covering position, computing it when missing."""
        idx = bisect_right(self._entries, position, key=_entry_start) - 1
        if idx >= 0 and self._entries[idx].range.contains(position):
            return self._entries[idx]
        try:
            line = self.buffer.line_at(position)
        except (IndexError, ValueError) as exc:
            logger.debug("No decoration at %s: %s", position, exc)
            return None
        entry = self._compute(line)
        self.upsert(entry)
        return entry

    # -- ordered set --------------------------------------------------------

    def upsert(self, entry: DecorationEntry) -> None:
        assert entry.range.is_valid, f"Malformed line range {entry.range}"
        if not entry.range.is_valid:
            logger.warning("Skipping decoration with malformed range %s", entry.range)
            return
        start = entry.range.start
        idx = bisect_left(self._entries, start, key=_entry_start)
        if idx < len(self._entries) and self._entries[idx].range.start == start:
            self._entries[idx] = entry
        else:
            self._entries.insert(idx, entry)

    def shift(self, pivot: int, amount: int) -> None:
        """Translate entries starting at or after pivot by amount.

        Entries that land at or before pivot belonged to text the edit
        destroyed or merged and are dropped.
        """
        if amount == 0:
            return
        kept: list[DecorationEntry] = []
        evicted = 0
        for entry in self._entries:
            if entry.range.start < pivot:
                kept.append(entry)
                continue
            moved = entry.range.shifted(amount)
            if moved.start <= pivot:
                evicted += 1
                continue
            kept.append(DecorationEntry(moved, entry.direction))
        self._entries = kept
        if evicted:
            logger.debug("Evicted %d line decoration(s) at %d", evicted, pivot)

    def nearest_preceding(self, start: int) -> Optional[DecorationEntry]:
        """Entry with the greatest start strictly before start."""
        idx = bisect_left(self._entries, start, key=_entry_start) - 1
        return self._entries[idx] if idx >= 0 else None

    # -- internals ----------------------------------------------------------

    def _index_of(self, start: int) -> Optional[int]:
        idx = bisect_left(self._entries, start, key=_entry_start)
        if idx < len(self._entries) and self._entries[idx].range.start == start:
            return idx
        return None

    def _evict_between(self, low: int, high: int) -> None:
        """Drop entries whose start lies strictly inside (low, high)."""
        if high - low < 2:
            return
        self._entries = [e for e in self._entries if not low < e.range.start < high]

    def _compute(self, line: Line) -> DecorationEntry:
        if not self.active:
            return DecorationEntry(line.range, None)
        direction = self._detect(line.text)
        if direction is None:
            direction = self._inherited(line.start)
        return DecorationEntry(line.range, direction)

    def _inherited(self, start: int) -> Direction:
        preceding = self.nearest_preceding(start)
        if preceding is not None and preceding.direction is not None:
            return preceding.direction
        return self.fallback

    def _iter_lines(self, span: TextRange) -> Iterator[Line]:
        end = min(span.end, len(self.buffer))
        pos = max(0, span.start)
        while pos <= end:
            try:
                line = self.buffer.line_at(pos)
            except (IndexError, ValueError) as exc:
                logger.debug("Line query failed at %s: %s", pos, exc)
                return
            yield line
            pos = line.end + 1

    def _refresh(self, ranges: list[TextRange]) -> None:
        tails: list[Line] = []
        for span in ranges:
            last: Optional[Line] = None
            for line in self._iter_lines(span):
                self.upsert(self._compute(line))
                last = line
            if last is not None:
                tails.append(last)
        if not self.active:
            return
        # Each span can change what the lines after it inherit.
        for line in sorted(tails, key=lambda tail: tail.start):
            self._carry_forward_after(line)

    def _carry_forward_after(self, line: Line) -> None:
        """Refresh following cached lines that inherit their direction."""
        pos = line.end + 1
        while pos <= len(self.buffer):
            if self._index_of(pos) is None:
                return
            try:
                following = self.buffer.line_at(pos)
            except (IndexError, ValueError):
                return
            if self._detect(following.text) is not None:
                return
            self.upsert(DecorationEntry(following.range, self._inherited(following.start)))
            pos = following.end + 1
