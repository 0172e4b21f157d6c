from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QTimer, Qt
from PySide6.QtGui import QAction, QActionGroup, QKeySequence
from PySide6.QtWidgets import QFileDialog, QLabel, QMainWindow, QMessageBox, QSplitter, QTextBrowser, QToolBar

from autodir.app import config
from autodir.app.direction import Direction
from autodir.app.markdown_renderer import render_markdown
from .markdown_editor import MarkdownEditor


logger = logging.getLogger(__name__)

PREVIEW_DELAY_MS = 250


class PageEditorWindow(QMainWindow):
    """Single-note editor window with a live rendered preview."""

    def __init__(self, file_path: Optional[str] = None, direction: Optional[Direction] = None, parent=None) -> None:
        super().__init__(parent)
        self.file_path: Optional[Path] = None
        self._restoring_direction = False
        self._detector = config.load_direction_detector()
        self._fallback = config.load_fallback_direction()
        self._dir_attribute = config.load_preview_dir_attribute()
        self._badge_base_style = "border: 1px solid #666; padding: 2px 6px; border-radius: 3px;"

        self.editor = MarkdownEditor(
            direction=direction or config.load_default_direction(),
            detector=self._detector,
            fallback=self._fallback,
        )
        self.preview = QTextBrowser()
        self.preview.setOpenExternalLinks(True)
        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(self.editor)
        splitter.addWidget(self.preview)
        splitter.setSizes([1, 1])
        self.setCentralWidget(splitter)

        self._last_saved_content: Optional[str] = None
        self._preview_timer = QTimer(self)
        self._preview_timer.setInterval(PREVIEW_DELAY_MS)
        self._preview_timer.setSingleShot(True)
        self._preview_timer.timeout.connect(self.refresh_preview)
        self.editor.textChanged.connect(lambda: self._preview_timer.start())
        self.editor.documentDirectionChanged.connect(self._on_direction_changed)

        self._direction_label = QLabel("")
        self._direction_label.setStyleSheet(self._badge_base_style)
        self._direction_label.setToolTip("Document text direction")
        self.statusBar().addPermanentWidget(self._direction_label, 0)

        self._build_toolbar()
        if file_path:
            self.open_file(file_path)
        if direction is not None:
            self.editor.set_document_direction(direction)
        self._sync_direction_ui(self.editor.document_direction())
        self._update_title()
        self.resize(1100, 700)

    def _build_toolbar(self) -> None:
        toolbar = QToolBar("Page")
        toolbar.setMovable(False)
        open_action = QAction("Open", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(self._prompt_open)
        toolbar.addAction(open_action)
        save_action = QAction("Save", self)
        save_action.setShortcut(QKeySequence("Ctrl+S"))
        save_action.setShortcutContext(Qt.WidgetWithChildrenShortcut)
        save_action.triggered.connect(self.save_file)
        toolbar.addAction(save_action)
        toolbar.addSeparator()

        self._direction_actions: dict[Direction, QAction] = {}
        group = QActionGroup(self)
        group.setExclusive(True)
        for direction, label in ((Direction.LTR, "LTR"), (Direction.RTL, "RTL"), (Direction.AUTO, "Auto")):
            action = QAction(label, self)
            action.setCheckable(True)
            action.setToolTip(f"Set document direction to {label}")
            action.triggered.connect(lambda _checked=False, d=direction: self.editor.set_document_direction(d))
            group.addAction(action)
            toolbar.addAction(action)
            self._direction_actions[direction] = action

        switch_action = QAction("Switch Text Direction (LTR<>RTL)", self)
        switch_action.setShortcut(QKeySequence("Ctrl+Shift+D"))
        switch_action.triggered.connect(self.editor.switch_document_direction)
        self.addAction(switch_action)
        toolbar.addAction(switch_action)

        self.addToolBar(Qt.TopToolBarArea, toolbar)

    # -- preview ------------------------------------------------------------

    def preview_html(self) -> str:
        direction = self.editor.document_direction()
        body = render_markdown(
            self.editor.to_markdown(),
            direction=direction,
            fallback=self._fallback,
            dir_attribute=self._dir_attribute,
            detector=self._detector,
        )
        if direction is Direction.AUTO:
            return f'<div class="markdown-preview-view">{body}</div>'
        return f'<div class="markdown-preview-view" dir="{direction.value}">{body}</div>'

    def refresh_preview(self) -> None:
        self.preview.setHtml(self.preview_html())

    def _on_direction_changed(self, value: str) -> None:
        direction = Direction.parse(value, Direction.AUTO)
        self._sync_direction_ui(direction)
        if not self._restoring_direction:
            self._remember_direction(direction)

    def _sync_direction_ui(self, direction: Direction) -> None:
        action = self._direction_actions.get(direction)
        if action is not None and not action.isChecked():
            action.setChecked(True)
        self._direction_label.setText(direction.value.upper())
        self.refresh_preview()

    def _remember_direction(self, direction: Direction) -> None:
        if self.file_path is None or not config.load_remember_per_file():
            return
        config.save_file_direction(str(self.file_path), direction)

    # -- files --------------------------------------------------------------

    def _prompt_open(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open Note", "", "Markdown (*.md *.txt);;All files (*)")
        if path:
            self.open_file(path)

    def open_file(self, path: str) -> bool:
        target = Path(path)
        try:
            content = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            content = ""
        except OSError as exc:
            QMessageBox.critical(self, "Error", f"Failed to open {target}: {exc}")
            return False
        self.file_path = target
        self.editor.set_markdown(content)
        self._restore_direction(target)
        self.editor.document().setModified(False)
        self._last_saved_content = content
        config.save_last_file(str(target))
        self.refresh_preview()
        self._update_title()
        self.statusBar().showMessage("Ready", 2000)
        return True

    def _restore_direction(self, target: Path) -> None:
        stored = None
        if config.load_remember_per_file():
            stored = config.load_file_direction(str(target))
        self._restoring_direction = True
        try:
            self.editor.set_document_direction(stored or config.load_default_direction())
        finally:
            self._restoring_direction = False

    def save_file(self) -> bool:
        if self.file_path is None:
            path, _ = QFileDialog.getSaveFileName(self, "Save Note", "", "Markdown (*.md)")
            if not path:
                return False
            self.file_path = Path(path)
            self._remember_direction(self.editor.document_direction())
        content = self.editor.to_markdown()
        try:
            self.file_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to save %s: %s", self.file_path, exc)
            QMessageBox.critical(self, "Save Failed", f"Failed to save: {exc}")
            return False
        self._last_saved_content = content
        self.editor.document().setModified(False)
        self.statusBar().showMessage("Saved", 2000)
        self._update_title()
        return True

    def _update_title(self) -> None:
        label = self.file_path.name if self.file_path else "Untitled"
        self.setWindowTitle(f"{label} | AutoDir")
