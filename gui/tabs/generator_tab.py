"""Character generator tab: generate a concept, keep favourites."""

from __future__ import annotations

from typing import Any, Callable

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from gui.messages import PageId, PageMessage
from gui.pages.base import LoadStatus
from gui.pages.generator import DeleteArtifact, Generate, GeneratorView, SaveCurrent


class GeneratorTab(QWidget):
    """
    Generator page widget.

    Parameters
    ----------
    send:
        Callback applying a top-level message (RuntimeAdapter.dispatch).
    """

    def __init__(self, send: Callable[[Any], None]) -> None:
        super().__init__()
        self._send = send

        root = QVBoxLayout(self)
        root.setContentsMargins(12, 12, 12, 12)

        self.concept_label = QLabel("Press Generate for a new character.")
        self.concept_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.concept_label.setWordWrap(True)
        f = self.concept_label.font()
        f.setPointSize(14)
        self.concept_label.setFont(f)
        root.addWidget(self.concept_label, 1)

        buttons = QHBoxLayout()
        self.btn_generate = QPushButton("Generate")
        self.btn_generate.clicked.connect(lambda: self._page(Generate()))
        self.btn_save = QPushButton("Save")
        self.btn_save.clicked.connect(lambda: self._page(SaveCurrent()))
        buttons.addStretch(1)
        buttons.addWidget(self.btn_generate)
        buttons.addWidget(self.btn_save)
        buttons.addStretch(1)
        root.addLayout(buttons)

        box = QGroupBox("Favourites")
        box_layout = QVBoxLayout(box)
        self.saved_list = QListWidget()
        self.saved_list.itemSelectionChanged.connect(self._sync_buttons)
        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #999;")
        self.btn_delete = QPushButton("Delete")
        self.btn_delete.clicked.connect(self._delete_selected)
        row = QHBoxLayout()
        row.addWidget(self.status_label, 1)
        row.addWidget(self.btn_delete)
        box_layout.addWidget(self.saved_list, 1)
        box_layout.addLayout(row)
        root.addWidget(box, 3)

    def render(self, view: GeneratorView) -> None:
        if view.current_text is not None:
            self.concept_label.setText(view.current_text)
        self.btn_save.setEnabled(view.can_save)

        self.saved_list.blockSignals(True)
        try:
            self.saved_list.clear()
            for index, artifact in enumerate(view.artifacts):
                item = QListWidgetItem(artifact.text)
                item.setData(Qt.ItemDataRole.UserRole, index)
                self.saved_list.addItem(item)
        finally:
            self.saved_list.blockSignals(False)

        if view.status is LoadStatus.FAILED and view.error is not None:
            self.status_label.setText(f"Could not load favourites: {view.error.message}")
        elif view.saving:
            self.status_label.setText("Saving…")
        else:
            self.status_label.setText(f"{len(view.artifacts)} saved")
        self._sync_buttons()

    def _sync_buttons(self) -> None:
        self.btn_delete.setEnabled(bool(self.saved_list.selectedItems()))

    def _delete_selected(self) -> None:
        items = self.saved_list.selectedItems()
        if items:
            self._page(DeleteArtifact(int(items[0].data(Qt.ItemDataRole.UserRole))))

    def _page(self, message: Any) -> None:
        self._send(PageMessage(PageId.GENERATOR, message))
