"""
Cosmikit GUI app.

Navigation-plus-pages shell driven by the dispatch loop (gui.model.AppModel)
through gui.adapters.runtime_adapter.RuntimeAdapter.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import replace
from pathlib import Path

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from cosmikit.logging_config import setup_logging
from gui.adapters.runtime_adapter import RuntimeAdapter
from gui.messages import DismissNotification, PageId, SettingsLoaded, SwitchPage
from gui.model import AppModel, AppView, StorageStatus
from gui.notifications import Notification, NotificationLevel
from gui.settings_store import (
    ConfigStore,
    GuiSettings,
    SettingsStoreError,
    load_gui_settings,
    save_gui_settings,
)
from gui.tabs.generator_tab import GeneratorTab
from gui.tabs.project_manager_tab import ProjectManagerTab
from gui.tasks import TaskResult
from kit_engine.paths import resolve_config_root, resolve_data_paths
from kit_engine.store.sqlite_store import open_database

log = logging.getLogger(__name__)

NOTIFICATION_TIMEOUT_MS = 4000

_LEVEL_STYLES = {
    NotificationLevel.INFO: "background:#2b2b2b; color:#ddd;",
    NotificationLevel.SUCCESS: "background:#1e4620; color:#dfd;",
    NotificationLevel.ERROR: "background:#5c1f1f; color:#fdd;",
}

_STORAGE_TEXT = {
    StorageStatus.CONNECTING: "Opening storage…",
    StorageStatus.READY: "Storage ready",
    StorageStatus.UNAVAILABLE: "Storage unavailable",
}


class AppWindow(QWidget):
    """
    Main window for the Cosmikit GUI.

    Responsibilities
    ----------------
    - Host the navigation list and one widget per page.
    - Re-render from AppView whenever the adapter publishes one.
    - Show notifications and dismiss them after a timeout.
    - Persist the last active page and shut the adapter down on close.
    """

    def __init__(
        self, adapter: RuntimeAdapter, config_store: ConfigStore, settings: GuiSettings
    ) -> None:
        super().__init__()
        self.setWindowTitle("Cosmikit")
        self.resize(1180, 720)

        self._adapter = adapter
        self._config_store = config_store
        self._settings = settings
        self._toasts: dict[int, QLabel] = {}
        self._nav_pages: list[PageId] = []

        root = QVBoxLayout(self)
        root.setContentsMargins(8, 8, 8, 8)

        header = QWidget()
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(8, 8, 8, 8)

        title = QLabel("Cosmikit")
        f = title.font()
        f.setPointSize(16)
        f.setBold(True)
        title.setFont(f)

        self.storage_label = QLabel("")
        self.storage_label.setStyleSheet("color: #666;")

        header_layout.addWidget(title)
        header_layout.addSpacing(10)
        header_layout.addWidget(self.storage_label)
        header_layout.addStretch(1)
        root.addWidget(header)

        body = QHBoxLayout()
        self.nav = QListWidget()
        self.nav.setFixedWidth(200)
        self.nav.currentRowChanged.connect(self._on_nav_changed)
        body.addWidget(self.nav)

        self.stack = QStackedWidget()
        self.project_manager_tab = ProjectManagerTab(adapter.dispatch)
        self.generator_tab = GeneratorTab(adapter.dispatch)
        self.placeholder_label = QLabel("")
        self.placeholder_label.setStyleSheet("color: #999; font-size: 14px;")
        self._page_widgets: dict[PageId, QWidget] = {
            PageId.PROJECT_MANAGER: self.project_manager_tab,
            PageId.GENERATOR: self.generator_tab,
            PageId.DICE_ROLLER: self.placeholder_label,
        }
        for widget in self._page_widgets.values():
            self.stack.addWidget(widget)
        body.addWidget(self.stack, 1)
        root.addLayout(body, 1)

        self.toast_area = QVBoxLayout()
        root.addLayout(self.toast_area)

        adapter.view_changed.connect(self.render)

    def render(self, view: AppView) -> None:
        self.storage_label.setText(_STORAGE_TEXT[view.storage_status])

        if not self._nav_pages:
            self.nav.blockSignals(True)
            for entry in view.navigation:
                self.nav.addItem(entry.title)
                self._nav_pages.append(entry.page)
            self.nav.blockSignals(False)
        row = self._nav_pages.index(view.active_page)
        if self.nav.currentRow() != row:
            self.nav.blockSignals(True)
            self.nav.setCurrentRow(row)
            self.nav.blockSignals(False)

        self.stack.setCurrentWidget(self._page_widgets[view.active_page])
        if view.active_page is PageId.PROJECT_MANAGER:
            self.project_manager_tab.render(view.page)
        elif view.active_page is PageId.GENERATOR:
            self.generator_tab.render(view.page)
        else:
            self.placeholder_label.setText(f"{view.page.title}\n\n{view.page.body}")

        self._render_notifications(view.notifications)

    def _render_notifications(self, notifications: tuple[Notification, ...]) -> None:
        live = {n.id for n in notifications}
        for notification_id in list(self._toasts):
            if notification_id not in live:
                self._toasts.pop(notification_id).deleteLater()

        for notification in notifications:
            if notification.id in self._toasts:
                continue
            label = QLabel(notification.text)
            label.setStyleSheet(
                _LEVEL_STYLES[notification.level] + " padding:6px; border:1px solid #555;"
            )
            self.toast_area.addWidget(label)
            self._toasts[notification.id] = label
            QTimer.singleShot(
                NOTIFICATION_TIMEOUT_MS,
                lambda nid=notification.id: self._adapter.dispatch(DismissNotification(nid)),
            )

    def _on_nav_changed(self, row: int) -> None:
        if 0 <= row < len(self._nav_pages):
            self._adapter.dispatch(SwitchPage(self._nav_pages[row]))

    def closeEvent(self, event) -> None:  # type: ignore[override]
        """
        Handle window close: remember the active page and stop background work.

        Parameters
        ----------
        event:
            Qt close event.
        """
        try:
            settings = replace(self._settings, start_page=self._adapter.model.active_page.value)
            try:
                save_gui_settings(self._config_store, settings)
            except SettingsStoreError as exc:
                log.warning("Could not save settings: %s", exc)
            self._adapter.shutdown()
        finally:
            super().closeEvent(event)


def main(data_root: Path | None = None) -> int:
    """
    Run the Cosmikit GUI application.

    Parameters
    ----------
    data_root:
        Optional data directory override (database, logs and settings).

    Returns
    -------
    int
        Qt application exit code.
    """
    config_store = ConfigStore(resolve_config_root(data_root))
    settings = load_gui_settings(config_store, known_pages=tuple(p.value for p in PageId))
    paths = resolve_data_paths(data_root)
    setup_logging(paths.logs_root, console_level=settings.log_level)

    app = QApplication(sys.argv)
    model = AppModel(
        open_storage=lambda: open_database(data_root),
        config_store=config_store,
    )
    adapter = RuntimeAdapter(model)
    w = AppWindow(adapter, config_store, settings)

    # Applied before startup completes, so it only picks the first page.
    adapter.dispatch(SettingsLoaded(TaskResult.success(settings)))
    adapter.start()
    w.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
