"""PySide6 widgets: the press-and-hold voice button and the journal window."""

from __future__ import annotations

from typing import Optional

from journal_page import JournalPage
from models import ControlState, InputDevice
from voice_input import VoiceInputControl

try:
    from PySide6.QtCore import QEvent, Qt
    from PySide6.QtWidgets import (
        QHBoxLayout,
        QLabel,
        QListWidget,
        QListWidgetItem,
        QPlainTextEdit,
        QPushButton,
        QVBoxLayout,
        QWidget,
    )
except Exception:  # pragma: no cover
    QEvent = None  # type: ignore
    Qt = None  # type: ignore
    QHBoxLayout = object  # type: ignore
    QLabel = object  # type: ignore
    QListWidget = object  # type: ignore
    QListWidgetItem = object  # type: ignore
    QPlainTextEdit = object  # type: ignore
    QPushButton = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore


_BUTTON_STYLES = {
    ControlState.DISABLED: ("Voice input unavailable", "background: #9CA3AF; color: white;"),
    ControlState.IDLE: ("Hold to speak", "background: #3B82F6; color: white;"),
    ControlState.RECORDING: ("Listening... release to stop", "background: #EF4444; color: white;"),
}


class VoiceButton(QPushButton):
    """Forwards mouse, touch and leave events to a VoiceInputControl."""

    def __init__(self, control: VoiceInputControl, parent: Optional[QWidget] = None) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__(parent)
        self._control = control
        self.setAttribute(Qt.WA_AcceptTouchEvents, True)
        self.setMinimumHeight(40)
        self.refresh()

    def refresh(self) -> None:
        state = self._control.visual_state
        label, style = _BUTTON_STYLES[state]
        self.setText(label)
        self.setToolTip(label)
        self.setStyleSheet(f"{style} border-radius: 18px; padding: 8px 16px;")
        self.setEnabled(state != ControlState.DISABLED)

    def mousePressEvent(self, event) -> None:  # noqa: ANN001, N802
        self._control.press(InputDevice.MOUSE)
        event.accept()

    def mouseReleaseEvent(self, event) -> None:  # noqa: ANN001, N802
        self._control.release(InputDevice.MOUSE)
        event.accept()

    def leaveEvent(self, event) -> None:  # noqa: ANN001, N802
        self._control.leave()
        super().leaveEvent(event)

    def event(self, event) -> bool:  # noqa: ANN001
        kind = event.type()
        if kind == QEvent.TouchBegin:
            self._control.press(InputDevice.TOUCH)
            return True
        if kind == QEvent.TouchEnd:
            self._control.release(InputDevice.TOUCH)
            return True
        if kind == QEvent.TouchCancel:
            self._control.cancel()
            return True
        return super().event(event)


class JournalWindow(QWidget):
    def __init__(self, page: JournalPage, control: VoiceInputControl) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self._page = page
        self._control = control
        self.setWindowTitle("My Journal")
        self.resize(640, 720)

        self._error = QLabel("")
        self._error.setWordWrap(True)
        self._error.setStyleSheet("color: #B91C1C; background: #FEE2E2; padding: 8px;")
        self._error.hide()

        self._editor = QPlainTextEdit()
        self._editor.setPlaceholderText("Start writing or hold the button to dictate...")
        self._editor.textChanged.connect(self._on_text_changed)

        self.voice_button = VoiceButton(control)
        save_button = QPushButton("Save Entry")
        save_button.clicked.connect(self._submit)

        controls = QHBoxLayout()
        controls.addWidget(self.voice_button)
        controls.addStretch(1)
        controls.addWidget(save_button)

        self._entries = QListWidget()
        self._entries.itemDoubleClicked.connect(self._begin_edit)

        self._draft = QPlainTextEdit()
        self._draft_save = QPushButton("Save")
        self._draft_save.clicked.connect(self._save_edit)
        self._draft_cancel = QPushButton("Cancel")
        self._draft_cancel.clicked.connect(self._cancel_edit)
        edit_row = QHBoxLayout()
        edit_row.addStretch(1)
        edit_row.addWidget(self._draft_cancel)
        edit_row.addWidget(self._draft_save)
        self._edit_panel = QWidget()
        edit_layout = QVBoxLayout(self._edit_panel)
        edit_layout.setContentsMargins(0, 0, 0, 0)
        edit_layout.addWidget(self._draft)
        edit_layout.addLayout(edit_row)
        self._edit_panel.hide()

        self._debug = QPlainTextEdit()
        self._debug.setReadOnly(True)
        self._debug.setMaximumHeight(110)

        layout = QVBoxLayout(self)
        layout.addWidget(self._error)
        layout.addWidget(QLabel("What's on your mind?"))
        layout.addWidget(self._editor)
        layout.addLayout(controls)
        layout.addWidget(QLabel("Entries (double-click to edit)"))
        layout.addWidget(self._entries)
        layout.addWidget(self._edit_panel)
        layout.addWidget(QLabel("Voice debug"))
        layout.addWidget(self._debug)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        error = self._page.error or self._control.error_text
        self._error.setText(error)
        self._error.setVisible(bool(error))
        if self._editor.toPlainText() != self._page.content:
            self._editor.blockSignals(True)
            self._editor.setPlainText(self._page.content)
            self._editor.blockSignals(False)
        self.voice_button.refresh()
        self._debug.setPlainText("\n".join(self._control.debug_log.lines()))
        self._render_entries()

    def _render_entries(self) -> None:
        self._entries.clear()
        for entry in self._page.items:
            item = QListWidgetItem(f"{entry.created_at[:16].replace('T', ' ')}  {entry.content}")
            item.setData(Qt.UserRole, entry.id)
            self._entries.addItem(item)
        self._edit_panel.setVisible(self._page.editing_id is not None)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def append_transcript(self, text: str) -> None:
        self._page.append_transcript(text)
        self.refresh()

    def _on_text_changed(self) -> None:
        self._page.content = self._editor.toPlainText()

    def _submit(self) -> None:
        self._page.submit()
        self.refresh()

    def _begin_edit(self, item: QListWidgetItem) -> None:
        self._page.begin_edit(str(item.data(Qt.UserRole)))
        self._draft.setPlainText(self._page.draft)
        self.refresh()

    def _save_edit(self) -> None:
        self._page.draft = self._draft.toPlainText()
        self._page.save_edit()
        self.refresh()

    def _cancel_edit(self) -> None:
        self._page.cancel_edit()
        self.refresh()
