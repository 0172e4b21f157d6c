from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QPoint, Qt, Signal
from PySide6.QtGui import QTextBlockFormat, QTextCursor, QTextDocument
from PySide6.QtWidgets import QTextEdit
from shiboken6 import Shiboken

from autodir.app.direction import Direction
from autodir.app.ui.line_directions import ChangeSpan, Line, LineDirectionCache, TextRange


logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\u2029"

_LAYOUT_DIRECTIONS = {
    Direction.RTL: Qt.RightToLeft,
    Direction.LTR: Qt.LeftToRight,
    None: Qt.LayoutDirectionAuto,
}


class QtDocumentBuffer:
    """Line-indexed view of a QTextDocument; each block is one line."""

    def __init__(self, document: QTextDocument) -> None:
        self.document = document

    def __len__(self) -> int:
        # characterCount() includes the trailing paragraph separator.
        return max(0, self.document.characterCount() - 1)

    def line_at(self, offset: int) -> Line:
        if offset < 0 or offset > len(self):
            raise IndexError(f"Offset {offset} outside document of length {len(self)}")
        block = self.document.findBlock(offset)
        if not block.isValid():
            raise IndexError(f"No block at offset {offset}")
        start = block.position()
        return Line(start, start + block.length() - 1, block.text())

    def slice(self, start: int, end: int) -> str:
        length = len(self)
        start = max(0, min(start, length))
        end = max(start, min(end, length))
        cursor = QTextCursor(self.document)
        cursor.setPosition(start)
        cursor.setPosition(end, QTextCursor.KeepAnchor)
        return cursor.selectedText().replace(PARAGRAPH_SEPARATOR, "\n")


class MarkdownEditor(QTextEdit):
    """Plain markdown editor that lays out every line in its own direction.

    In ``auto`` mode each block gets the direction of its first strong
    character (or inherits the previous line's); ``ltr``/``rtl`` fix the
    direction of the whole document.
    """

    documentDirectionChanged = Signal(str)

    def __init__(
        self,
        parent=None,
        *,
        direction: Direction = Direction.AUTO,
        detector: Optional[Callable[[str], Optional[Direction]]] = None,
        fallback: Direction = Direction.LTR,
    ) -> None:
        super().__init__(parent)
        self.setAcceptRichText(False)
        self._buffer = QtDocumentBuffer(self.document())
        self.line_directions = LineDirectionCache(self._buffer, detector=detector, fallback=fallback)
        self._document_direction: Optional[Direction] = None
        self._applying = False
        self._dirty = False
        self.document().contentsChange.connect(self._on_contents_change)
        self.textChanged.connect(self._on_text_changed)
        self.verticalScrollBar().valueChanged.connect(lambda _value: self._refresh_viewport())
        self.set_document_direction(direction)

    # -- content ------------------------------------------------------------

    def set_markdown(self, text: str) -> None:
        self.setPlainText(text or "")
        self.line_directions.clear()
        if self.line_directions.active:
            self.line_directions.on_viewport_change(self.visible_range())
        self._apply_decorations(all_blocks=True)

    def to_markdown(self) -> str:
        return self.toPlainText()

    # -- direction mode -----------------------------------------------------

    def document_direction(self) -> Direction:
        return self._document_direction or Direction.AUTO

    def set_document_direction(self, direction: Direction | str) -> Direction:
        value = Direction.parse(direction)
        if value is None:
            raise ValueError(f"Unknown direction: {direction!r}")
        if value is self._document_direction:
            return value
        self._document_direction = value
        self.line_directions.activate(value is Direction.AUTO, self.visible_range())
        option = self.document().defaultTextOption()
        option.setTextDirection(_LAYOUT_DIRECTIONS.get(value, Qt.LayoutDirectionAuto))
        self.document().setDefaultTextOption(option)
        self._apply_decorations(all_blocks=True)
        logger.debug("Document direction set to %s", value.value)
        self.documentDirectionChanged.emit(value.value)
        return value

    def switch_document_direction(self) -> Direction:
        """Toggle between rtl and ltr; auto switches to rtl."""
        if self.document_direction() is Direction.RTL:
            return self.set_document_direction(Direction.LTR)
        return self.set_document_direction(Direction.RTL)

    def direction_at(self, position: int) -> Optional[Direction]:
        """Direction the line at position is laid out in, None when unknown."""
        if self.document_direction() is not Direction.AUTO:
            return self.document_direction()
        entry = self.line_directions.decoration_for(position)
        return entry.direction if entry is not None else None

    # -- viewport -----------------------------------------------------------

    def visible_range(self) -> TextRange:
        """Document span currently on screen (whole document while hidden)."""
        length = len(self._buffer)
        viewport = self.viewport()
        if not self.isVisible() or not self._is_alive(viewport):
            return TextRange(0, length)
        top = self.cursorForPosition(QPoint(0, 0)).position()
        bottom = self.cursorForPosition(QPoint(viewport.width() - 1, viewport.height() - 1)).position()
        return TextRange(min(top, length), min(max(top, bottom), length))

    def resizeEvent(self, event):  # type: ignore[override]
        super().resizeEvent(event)
        self._refresh_viewport()

    def showEvent(self, event):  # type: ignore[override]
        super().showEvent(event)
        self._refresh_viewport()

    def _refresh_viewport(self) -> None:
        if not self.line_directions.active or self._applying:
            return
        before = len(self.line_directions)
        self.line_directions.on_viewport_change(self.visible_range())
        if len(self.line_directions) != before:
            self._apply_decorations()

    # -- change tracking ----------------------------------------------------

    def _on_contents_change(self, position: int, removed: int, added: int) -> None:
        if self._applying:
            return
        self.line_directions.apply_changes([ChangeSpan(position, position + removed, position, position + added)])
        self._dirty = True

    def _on_text_changed(self) -> None:
        if self._applying or not self._dirty:
            return
        self._dirty = False
        if self.line_directions.active:
            self.line_directions.on_viewport_change(self.visible_range())
        self._apply_decorations()

    def _is_alive(self, obj) -> bool:
        return bool(obj) and Shiboken.isValid(obj)

    def _apply_decorations(self, all_blocks: bool = False) -> None:
        """Paint cached decorations as block layout directions.

        With all_blocks, blocks without a cached entry are reset to the
        neutral direction as well.
        """
        if self._applying:
            return
        document = self.document()
        if not self._is_alive(self) or not self._is_alive(document):
            logger.warning("Editor or document gone; skipping direction paint")
            return
        marks = dict(self.line_directions.decorations())
        if all_blocks:
            targets = []
            block = document.firstBlock()
            while block.isValid():
                targets.append((block, marks.get(block.position())))
                block = block.next()
        else:
            targets = []
            for start, direction in marks.items():
                block = document.findBlock(start)
                if block.isValid() and block.position() == start:
                    targets.append((block, direction))
        self._applying = True
        cursor: Optional[QTextCursor] = None
        try:
            for block, direction in targets:
                wanted = _LAYOUT_DIRECTIONS[direction]
                if block.blockFormat().layoutDirection() == wanted:
                    continue
                if cursor is None:
                    cursor = QTextCursor(document)
                    cursor.joinPreviousEditBlock()
                fmt = QTextBlockFormat()
                fmt.setLayoutDirection(wanted)
                cursor.setPosition(block.position())
                cursor.mergeBlockFormat(fmt)
        finally:
            if cursor is not None:
                cursor.endEditBlock()
            self._applying = False
