"""
Application model: the message/task dispatch loop.

Responsibilities
----------------
- Own the pages, the AppData service and the notification collection.
- Apply one message at a time (update never awaits and never does I/O).
- Turn page requests into Tasks and wrap each result in a PageMessage naming
  the page that asked, so late results never land on the wrong page.
- Sequence startup: storage is opened by the single init task; no page load
  is issued until that result has been applied.

Load policy
-----------
A page load is scheduled when:
- startup has completed, and the page declares a load (requires_data);
- the page is not already LOADING (a forced reload requested meanwhile is
  deferred until the in-flight load finishes);
- for a plain page switch, the page is not LOADED yet or reloads on activate.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from gui.messages import (
    DatabaseInitialized,
    DismissNotification,
    PageId,
    PageMessage,
    SettingsLoaded,
    SwitchPage,
)
from gui.notifications import Notification, NotificationLevel, Notifications
from gui.pages import generator as gen
from gui.pages import project_manager as pm
from gui.pages.base import DataChanged, LoadData, LoadStatus, Notify, Page
from gui.pages.placeholder import PlaceholderPage
from gui.settings_store import (
    ConfigStore,
    SavedArtifact,
    load_saved_artifacts,
    save_saved_artifacts,
)
from gui.tasks import Task, TaskResult
from kit_engine.clock import Clock
from kit_engine.data_service import AppData
from kit_engine.store.api import ProjectDatabase

log = logging.getLogger(__name__)

OpenStorage = Callable[[], Awaitable[ProjectDatabase]]


class StorageStatus(str, Enum):
    CONNECTING = "connecting"
    READY = "ready"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class NavEntry:
    page: PageId
    title: str


NAVIGATION = (
    NavEntry(PageId.PROJECT_MANAGER, "Project Manager"),
    NavEntry(PageId.GENERATOR, "Character Generator"),
    NavEntry(PageId.DICE_ROLLER, "Dice Roller"),
)


@dataclass(frozen=True, slots=True)
class AppView:
    active_page: PageId
    navigation: tuple[NavEntry, ...]
    storage_status: StorageStatus
    notifications: tuple[Notification, ...]
    page: Any


class AppModel:
    """
    Dispatch loop state.

    Parameters
    ----------
    open_storage:
        Zero-argument coroutine factory opening the storage engine. Run once,
        by the task returned from init().
    config_store:
        Key-value store holding the generator's saved artifacts.
    data:
        Data-access service. A fresh, uninitialized AppData by default.
    clock, rng:
        Injected into the generator page.
    active_page:
        Page shown first.
    """

    def __init__(
        self,
        *,
        open_storage: OpenStorage,
        config_store: ConfigStore,
        data: AppData | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        active_page: PageId = PageId.PROJECT_MANAGER,
    ) -> None:
        self.data = data if data is not None else AppData()
        self._open_storage = open_storage
        self._config_store = config_store
        self.pages: dict[PageId, Page] = {
            PageId.PROJECT_MANAGER: pm.ProjectManagerPage(),
            PageId.GENERATOR: gen.GeneratorPage(clock=clock, rng=rng),
            PageId.DICE_ROLLER: PlaceholderPage(PageId.DICE_ROLLER, "Dice Roller"),
        }
        self.active_page = active_page
        self.notifications = Notifications()
        self.storage_status = StorageStatus.CONNECTING
        self.startup_complete = False
        self._reload_pending: set[PageId] = set()
        # Orders artifact reads and whole-list rewrites as they were issued.
        self._artifact_lock = asyncio.Lock()

    # --- Loop entry points -----------------------------------------------------

    def init(self) -> list[Task]:
        """Return the startup tasks: exactly one, opening storage."""
        log.info("Opening storage")
        return [Task.perform("open_storage", self._open_storage, DatabaseInitialized)]

    def update(self, message: Any) -> list[Task]:
        """Apply one message and return the tasks it schedules."""
        if isinstance(message, PageMessage):
            tasks = self._route(message.page, message.message)
        elif isinstance(message, DatabaseInitialized):
            tasks = self._on_database_initialized(message.result)
        elif isinstance(message, SwitchPage):
            tasks = self._switch_page(message.page)
        elif isinstance(message, DismissNotification):
            self.notifications.dismiss(message.notification_id)
            tasks = []
        elif isinstance(message, SettingsLoaded):
            tasks = self._on_settings_loaded(message.result)
        else:
            log.warning("Ignoring unknown message: %r", message)
            tasks = []

        for task in tasks:
            log.debug("Scheduled task %s", task.label)
        return tasks

    def view(self) -> AppView:
        return AppView(
            active_page=self.active_page,
            navigation=NAVIGATION,
            storage_status=self.storage_status,
            notifications=self.notifications.snapshot(),
            page=self.pages[self.active_page].view(),
        )

    async def shutdown(self) -> None:
        """Release the storage handle, if one was installed."""
        await self.data.close()

    # --- Top-level messages ----------------------------------------------------

    def _on_database_initialized(self, result: TaskResult[ProjectDatabase]) -> list[Task]:
        if self.startup_complete:
            log.warning("Ignoring repeated storage initialization result")
            return []
        self.startup_complete = True

        if result.ok and result.value is not None:
            self.data.set_database(result.value)
            self.storage_status = StorageStatus.READY
            log.info("Storage ready")
        else:
            detail = result.failure.message if result.failure else "unknown error"
            self.storage_status = StorageStatus.UNAVAILABLE
            log.error("Storage initialization failed: %s", detail)
            self.notifications.push(f"Storage unavailable: {detail}", NotificationLevel.ERROR)

        return self._load_page(self.active_page, force=False)

    def _switch_page(self, page_id: PageId) -> list[Task]:
        self.active_page = page_id
        return self._load_page(page_id, force=False)

    def _on_settings_loaded(self, result: TaskResult[Any]) -> list[Task]:
        if not result.ok or result.value is None:
            log.warning("Settings unavailable; keeping defaults")
            return []
        try:
            start_page = PageId(result.value.start_page)
        except ValueError:
            log.warning("Unknown start page %r", result.value.start_page)
            return []
        if start_page is self.active_page:
            return []
        return self._switch_page(start_page)

    # --- Page routing ----------------------------------------------------------

    def _route(self, page_id: PageId, message: Any) -> list[Task]:
        if isinstance(message, LoadData):
            return self._load_page(page_id, force=True)

        page = self.pages[page_id]
        was_loading = page.load_status is LoadStatus.LOADING

        tasks = self._request_tasks(page_id, message)
        for follow_up in page.update(message):
            tasks.extend(self._follow_up(page_id, follow_up))

        if (
            was_loading
            and page.load_status is not LoadStatus.LOADING
            and page_id in self._reload_pending
        ):
            tasks.extend(self._load_page(page_id, force=True))
        return tasks

    def _follow_up(self, page_id: PageId, follow_up: Any) -> list[Task]:
        if isinstance(follow_up, DataChanged):
            return self._load_page(page_id, force=True)
        if isinstance(follow_up, Notify):
            self.notifications.push(follow_up.text, follow_up.level)
            return []
        return [Task.done(PageMessage(page_id, follow_up))]

    def _load_page(self, page_id: PageId, *, force: bool) -> list[Task]:
        page = self.pages[page_id]
        if not page.requires_data or not self.startup_complete:
            return []
        if page.load_status is LoadStatus.LOADING:
            if force:
                self._reload_pending.add(page_id)
            return []
        if page.load_status is LoadStatus.LOADED and not force and not page.reload_on_activate:
            return []

        self._reload_pending.discard(page_id)
        page.update(LoadData())
        return [self._load_task(page_id)]

    def _load_task(self, page_id: PageId) -> Task:
        if page_id is PageId.PROJECT_MANAGER:
            return _perform(page_id, "load_projects", self.data.load_projects, pm.ProjectsLoaded)
        if page_id is PageId.GENERATOR:
            return _perform(page_id, "load_artifacts", self._load_artifacts, gen.ArtifactsLoaded)
        raise ValueError(f"Page {page_id.value} has no data to load.")

    def _request_tasks(self, page_id: PageId, message: Any) -> list[Task]:
        if page_id is PageId.PROJECT_MANAGER:
            return self._project_manager_requests(message)
        if page_id is PageId.GENERATOR and isinstance(message, gen.PersistArtifacts):
            artifacts = message.artifacts
            return [
                _perform(
                    page_id,
                    "save_artifacts",
                    lambda: self._save_artifacts(artifacts),
                    gen.ArtifactsSaved,
                )
            ]
        return []

    def _project_manager_requests(self, message: Any) -> list[Task]:
        page_id = PageId.PROJECT_MANAGER
        data = self.data

        if isinstance(message, pm.LoadTags):
            task = _perform(page_id, "list_tags", data.list_tags, pm.TagsLoaded)
        elif isinstance(message, pm.CreateProject):
            task = _perform(
                page_id,
                "create_project",
                lambda: data.create_project(message.name, message.description),
                pm.ProjectCreated,
            )
        elif isinstance(message, pm.DeleteProject):
            task = _perform(
                page_id,
                "delete_project",
                lambda: data.delete_project(message.project_id),
                lambda r: pm.ProjectDeleted(message.project_id, r),
            )
        elif isinstance(message, pm.CreateTag):
            task = _perform(
                page_id,
                "create_tag",
                lambda: data.create_tag(message.name, message.color),
                pm.TagCreated,
            )
        elif isinstance(message, pm.AttachTag):
            task = _perform(
                page_id,
                "attach_tag",
                lambda: data.attach_tag(message.project_id, message.tag_id),
                lambda r: pm.TagAttached(message.project_id, message.tag_id, r),
            )
        elif isinstance(message, pm.DetachTag):
            task = _perform(
                page_id,
                "detach_tag",
                lambda: data.detach_tag(message.project_id, message.tag_id),
                lambda r: pm.TagDetached(message.project_id, message.tag_id, r),
            )
        elif isinstance(message, pm.AddFeature):
            task = _perform(
                page_id,
                "add_feature",
                lambda: data.add_feature(message.project_id, message.description),
                pm.FeatureAdded,
            )
        elif isinstance(message, pm.RemoveFeature):
            task = _perform(
                page_id,
                "remove_feature",
                lambda: data.remove_feature(message.feature_id),
                lambda r: pm.FeatureRemoved(message.feature_id, r),
            )
        elif isinstance(message, pm.SetFeatureCompleted):
            task = _perform(
                page_id,
                "set_feature_completed",
                lambda: data.set_feature_completed(message.feature_id, message.completed),
                pm.FeatureUpdated,
            )
        else:
            return []
        return [task]

    # --- Artifact I/O ----------------------------------------------------------

    async def _load_artifacts(self) -> list[SavedArtifact]:
        # Ordered after every save issued before this load.
        async with self._artifact_lock:
            return await asyncio.to_thread(load_saved_artifacts, self._config_store)

    async def _save_artifacts(self, artifacts: tuple[SavedArtifact, ...]) -> None:
        async with self._artifact_lock:
            await asyncio.to_thread(save_saved_artifacts, self._config_store, list(artifacts))


def _perform(
    page_id: PageId,
    label: str,
    work: Callable[[], Awaitable[Any]],
    to_message: Callable[[TaskResult[Any]], Any],
) -> Task:
    """Build a task whose result message is routed back to page_id."""
    return Task.perform(label, work, lambda result: PageMessage(page_id, to_message(result)))
