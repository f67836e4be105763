"""
Project manager tab.

Renders gui.pages.project_manager.ProjectManagerView and turns user actions
into page messages. The widget holds no state of its own beyond the current
selection; everything else comes from the view on each render.

Notes
-----
- Feature rows carry a checkbox; toggling it sends SetFeatureCompleted.
- Rendering blocks item signals so rebuilding the tree never echoes messages.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QGroupBox,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from gui.messages import PageId, PageMessage
from gui.pages.base import LoadData, LoadStatus
from gui.pages.project_manager import (
    AddFeature,
    AttachTag,
    CancelNewProject,
    CreateTag,
    DeleteProject,
    DetachTag,
    ProjectManagerView,
    RemoveFeature,
    SetFeatureCompleted,
    SubmitNewProject,
    ToggleNewProjectForm,
    UpdateDescription,
    UpdateName,
)

_ROLE_KIND = Qt.ItemDataRole.UserRole
_ROLE_ID = Qt.ItemDataRole.UserRole + 1


def _format_time(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds).strftime("%Y-%m-%d %H:%M")


class ProjectManagerTab(QWidget):
    """
    Projects with their tags and features.

    Parameters
    ----------
    send:
        Callback applying a top-level message (RuntimeAdapter.dispatch).
    """

    def __init__(self, send: Callable[[Any], None]) -> None:
        super().__init__()
        self._send = send
        self._view: ProjectManagerView | None = None

        root = QVBoxLayout(self)
        root.setContentsMargins(12, 12, 12, 12)

        # Toolbar
        top = QHBoxLayout()
        self.btn_new = QPushButton("New project…")
        self.btn_new.clicked.connect(lambda: self._page(ToggleNewProjectForm()))
        self.btn_reload = QPushButton("Reload")
        self.btn_reload.clicked.connect(lambda: self._page(LoadData()))
        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #999; padding-left: 6px;")
        top.addWidget(self.btn_new)
        top.addWidget(self.btn_reload)
        top.addWidget(self.status_label, 1)
        root.addLayout(top)

        # New-project form
        self.form_box = QGroupBox("New project")
        form_layout = QVBoxLayout(self.form_box)
        self.name_edit = QLineEdit()
        self.name_edit.setPlaceholderText("Name (required)")
        self.name_edit.textEdited.connect(lambda text: self._page(UpdateName(text)))
        self.name_edit.returnPressed.connect(lambda: self._page(SubmitNewProject()))
        self.description_edit = QLineEdit()
        self.description_edit.setPlaceholderText("Description (optional)")
        self.description_edit.textEdited.connect(
            lambda text: self._page(UpdateDescription(text))
        )
        self.form_error = QLabel("")
        self.form_error.setStyleSheet("color: #c0392b;")
        form_buttons = QHBoxLayout()
        self.btn_create = QPushButton("Create")
        self.btn_create.clicked.connect(lambda: self._page(SubmitNewProject()))
        btn_cancel = QPushButton("Cancel")
        btn_cancel.clicked.connect(lambda: self._page(CancelNewProject()))
        form_buttons.addStretch(1)
        form_buttons.addWidget(btn_cancel)
        form_buttons.addWidget(self.btn_create)
        form_layout.addWidget(self.name_edit)
        form_layout.addWidget(self.description_edit)
        form_layout.addWidget(self.form_error)
        form_layout.addLayout(form_buttons)
        root.addWidget(self.form_box)

        body = QHBoxLayout()
        root.addLayout(body, 1)

        # Projects tree: project rows with feature children.
        left = QVBoxLayout()
        self.tree = QTreeWidget()
        self.tree.setHeaderLabels(["Project", "Description", "Tags", "Features", "Created"])
        self.tree.setSelectionMode(QTreeWidget.SelectionMode.SingleSelection)
        self.tree.itemChanged.connect(self._on_item_changed)
        self.tree.itemSelectionChanged.connect(self._sync_buttons)
        self.empty_label = QLabel("No projects yet. Create one to get started.")
        self.empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.empty_label.setStyleSheet("color: #999;")
        left.addWidget(self.tree, 1)
        left.addWidget(self.empty_label)

        feature_row = QHBoxLayout()
        self.feature_edit = QLineEdit()
        self.feature_edit.setPlaceholderText("New feature for the selected project")
        self.feature_edit.returnPressed.connect(self._add_feature)
        self.btn_add_feature = QPushButton("Add feature")
        self.btn_add_feature.clicked.connect(self._add_feature)
        self.btn_remove = QPushButton("Remove…")
        self.btn_remove.setToolTip("Delete the selected project or feature.")
        self.btn_remove.clicked.connect(self._remove_selected)
        feature_row.addWidget(self.feature_edit, 1)
        feature_row.addWidget(self.btn_add_feature)
        feature_row.addWidget(self.btn_remove)
        left.addLayout(feature_row)
        body.addLayout(left, 3)

        # Tag catalogue
        tag_box = QGroupBox("Tags")
        tag_layout = QVBoxLayout(tag_box)
        self.tag_list = QListWidget()
        self.tag_list.itemSelectionChanged.connect(self._sync_buttons)
        self.btn_new_tag = QPushButton("New tag…")
        self.btn_new_tag.clicked.connect(self._create_tag)
        self.btn_attach = QPushButton("Attach to project")
        self.btn_attach.clicked.connect(lambda: self._link_selected(attach=True))
        self.btn_detach = QPushButton("Detach from project")
        self.btn_detach.clicked.connect(lambda: self._link_selected(attach=False))
        tag_layout.addWidget(self.tag_list, 1)
        tag_layout.addWidget(self.btn_new_tag)
        tag_layout.addWidget(self.btn_attach)
        tag_layout.addWidget(self.btn_detach)
        body.addWidget(tag_box, 1)

    # --- Rendering -------------------------------------------------------------

    def render(self, view: ProjectManagerView) -> None:
        """Bring the widgets in line with view."""
        self._view = view

        if view.status is LoadStatus.FAILED and view.error is not None:
            hint = " Use Reload to try again." if view.error.retryable else ""
            self.status_label.setText(f"Could not load projects: {view.error.message}.{hint}")
        elif view.busy:
            self.status_label.setText("Working…")
        else:
            self.status_label.setText(f"{len(view.projects)} project(s)")

        form = view.form
        self.form_box.setVisible(form.visible)
        if self.name_edit.text() != form.name:
            self.name_edit.setText(form.name)
        if self.description_edit.text() != form.description:
            self.description_edit.setText(form.description)
        self.form_error.setText(form.error or "")
        self.btn_create.setEnabled(form.can_submit)

        self._render_tree(view)
        self._render_tags(view)
        self.empty_label.setVisible(view.is_empty)
        self._sync_buttons()

    def _render_tree(self, view: ProjectManagerView) -> None:
        selected = self._selected_item_key()
        self.tree.blockSignals(True)
        try:
            self.tree.clear()
            for row in view.projects:
                project = row.project
                item = QTreeWidgetItem(
                    [
                        project.name,
                        project.description or "",
                        ", ".join(t.name for t in row.tags),
                        f"{row.completed_count}/{len(row.features)}",
                        _format_time(project.created_at),
                    ]
                )
                item.setData(0, _ROLE_KIND, "project")
                item.setData(0, _ROLE_ID, project.id)
                for feature in row.features:
                    child = QTreeWidgetItem([feature.description])
                    child.setData(0, _ROLE_KIND, "feature")
                    child.setData(0, _ROLE_ID, feature.id)
                    child.setFlags(child.flags() | Qt.ItemFlag.ItemIsUserCheckable)
                    child.setCheckState(
                        0, Qt.CheckState.Checked if feature.completed else Qt.CheckState.Unchecked
                    )
                    item.addChild(child)
                self.tree.addTopLevelItem(item)
                item.setExpanded(True)
                if selected == ("project", project.id):
                    item.setSelected(True)
        finally:
            self.tree.blockSignals(False)

    def _render_tags(self, view: ProjectManagerView) -> None:
        selected_tag = self._selected_tag_id()
        self.tag_list.blockSignals(True)
        try:
            self.tag_list.clear()
            for tag in view.tags:
                item = QListWidgetItem(tag.name)
                item.setData(_ROLE_ID, tag.id)
                if tag.color:
                    item.setToolTip(tag.color)
                self.tag_list.addItem(item)
                if tag.id == selected_tag:
                    item.setSelected(True)
        finally:
            self.tag_list.blockSignals(False)

    def _sync_buttons(self) -> None:
        project_id = self._selected_project_id()
        has_project = project_id is not None
        has_tag = self._selected_tag_id() is not None
        self.btn_add_feature.setEnabled(has_project)
        self.btn_remove.setEnabled(self._selected_item_key() is not None)
        self.btn_attach.setEnabled(has_project and has_tag)
        self.btn_detach.setEnabled(has_project and has_tag)

    # --- Selection helpers -----------------------------------------------------

    def _selected_item_key(self) -> tuple[str, int] | None:
        items = self.tree.selectedItems()
        if not items:
            return None
        item = items[0]
        return str(item.data(0, _ROLE_KIND)), int(item.data(0, _ROLE_ID))

    def _selected_project_id(self) -> int | None:
        items = self.tree.selectedItems()
        if not items:
            return None
        item = items[0]
        if item.data(0, _ROLE_KIND) == "feature":
            item = item.parent()
        return int(item.data(0, _ROLE_ID)) if item is not None else None

    def _selected_tag_id(self) -> int | None:
        items = self.tag_list.selectedItems()
        return int(items[0].data(_ROLE_ID)) if items else None

    # --- Actions ---------------------------------------------------------------

    def _page(self, message: Any) -> None:
        self._send(PageMessage(PageId.PROJECT_MANAGER, message))

    def _on_item_changed(self, item: QTreeWidgetItem, column: int) -> None:
        if column != 0 or item.data(0, _ROLE_KIND) != "feature":
            return
        completed = item.checkState(0) == Qt.CheckState.Checked
        self._page(SetFeatureCompleted(int(item.data(0, _ROLE_ID)), completed))

    def _add_feature(self) -> None:
        project_id = self._selected_project_id()
        text = self.feature_edit.text().strip()
        if project_id is None or not text:
            return
        self.feature_edit.clear()
        self._page(AddFeature(project_id, text))

    def _remove_selected(self) -> None:
        key = self._selected_item_key()
        if key is None:
            return
        kind, entity_id = key
        if kind == "feature":
            self._page(RemoveFeature(entity_id))
            return
        answer = QMessageBox.question(
            self,
            "Delete project",
            "Delete this project with all its features and tag links?",
        )
        if answer == QMessageBox.StandardButton.Yes:
            self._page(DeleteProject(entity_id))

    def _create_tag(self) -> None:
        name, ok = QInputDialog.getText(self, "New tag", "Tag name:")
        if ok and name.strip():
            self._page(CreateTag(name.strip()))

    def _link_selected(self, *, attach: bool) -> None:
        project_id = self._selected_project_id()
        tag_id = self._selected_tag_id()
        if project_id is None or tag_id is None:
            return
        if attach:
            self._page(AttachTag(project_id, tag_id))
        else:
            self._page(DetachTag(project_id, tag_id))
