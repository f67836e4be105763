"""
Dispatch loop ordering tests.

The loop is driven headless through gui.runtime.Runtime over the in-memory
fake store. Runtime.dispatch is synchronous, so messages dispatched back to
back are all applied before any scheduled task runs.
"""

from __future__ import annotations

import asyncio
import random
import time
from pathlib import Path

import pytest

from gui.messages import (
    DatabaseInitialized,
    DismissNotification,
    PageId,
    PageMessage,
    SettingsLoaded,
    SwitchPage,
)
from gui.model import AppModel, StorageStatus
from gui.notifications import NotificationLevel
from gui.pages import generator as gen
from gui.pages import project_manager as pm
from gui.pages.base import LoadData, LoadStatus
from gui.runtime import Runtime
from gui.settings_store import (
    ConfigStore,
    GuiSettings,
    SavedArtifact,
    SettingsStoreError,
    load_saved_artifacts,
    save_saved_artifacts,
)
from gui.tasks import TaskResult
from kit_engine.clock import FixedClock
from kit_engine.errors import ErrorKind, StorageIOError
from tests.fakes import InMemoryDatabase

pytestmark = pytest.mark.asyncio

LIST_PROJECTS = "list_projects_with_relations"


def _make_model(
    tmp_path: Path,
    db: InMemoryDatabase | None = None,
    *,
    gate: asyncio.Event | None = None,
    open_error: Exception | None = None,
    config_store: ConfigStore | None = None,
) -> AppModel:
    async def open_storage() -> InMemoryDatabase:
        if gate is not None:
            await gate.wait()
        if open_error is not None:
            raise open_error
        assert db is not None
        return db

    return AppModel(
        open_storage=open_storage,
        config_store=config_store or ConfigStore(tmp_path / "config"),
        clock=FixedClock(1_700_000_000),
        rng=random.Random(0),
    )


async def _started(tmp_path: Path, db: InMemoryDatabase) -> Runtime:
    runtime = Runtime(_make_model(tmp_path, db))
    runtime.start()
    await runtime.run_until_idle()
    return runtime


def _pm(message: object) -> PageMessage:
    return PageMessage(PageId.PROJECT_MANAGER, message)


def _gen(message: object) -> PageMessage:
    return PageMessage(PageId.GENERATOR, message)


async def test_init_returns_single_storage_task(tmp_path: Path) -> None:
    model = _make_model(tmp_path, InMemoryDatabase())

    tasks = model.init()

    assert [t.label for t in tasks] == ["open_storage"]
    assert model.storage_status is StorageStatus.CONNECTING


async def test_no_page_load_before_storage_is_installed(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    gate = asyncio.Event()
    runtime = Runtime(_make_model(tmp_path, db, gate=gate))
    runtime.start()

    # Navigation before init completes schedules nothing.
    assert runtime.dispatch(SwitchPage(PageId.GENERATOR)) == []
    assert runtime.dispatch(SwitchPage(PageId.PROJECT_MANAGER)) == []
    assert runtime.dispatch(_pm(LoadData())) == []

    gate.set()
    await runtime.run_until_idle()

    model = runtime.model
    assert model.storage_status is StorageStatus.READY
    assert db.calls == [LIST_PROJECTS, "list_tags"]
    assert model.pages[PageId.PROJECT_MANAGER].load_status is LoadStatus.LOADED
    # The generator was never active after startup, so it was never loaded.
    assert model.pages[PageId.GENERATOR].load_status is LoadStatus.NOT_LOADED


async def test_init_result_is_applied_once(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    runtime = await _started(tmp_path, db)

    tasks = runtime.dispatch(DatabaseInitialized(TaskResult.success(InMemoryDatabase())))

    assert tasks == []
    assert runtime.model.data.has_database


async def test_page_switch_schedules_exactly_one_load(tmp_path: Path) -> None:
    runtime = await _started(tmp_path, InMemoryDatabase())

    tasks = runtime.dispatch(SwitchPage(PageId.GENERATOR))
    assert [t.label for t in tasks] == ["load_artifacts"]
    await runtime.run_until_idle()

    assert runtime.dispatch(SwitchPage(PageId.DICE_ROLLER)) == []
    # Generator keeps its loaded list; the project manager refreshes on activate.
    assert runtime.dispatch(SwitchPage(PageId.GENERATOR)) == []
    tasks = runtime.dispatch(SwitchPage(PageId.PROJECT_MANAGER))
    assert [t.label for t in tasks] == ["load_projects"]
    await runtime.run_until_idle()


async def test_no_second_load_while_one_is_in_flight(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    runtime = await _started(tmp_path, db)
    db.calls.clear()

    runtime.dispatch(SwitchPage(PageId.DICE_ROLLER))
    first = runtime.dispatch(SwitchPage(PageId.PROJECT_MANAGER))
    runtime.dispatch(SwitchPage(PageId.DICE_ROLLER))
    second = runtime.dispatch(SwitchPage(PageId.PROJECT_MANAGER))
    await runtime.run_until_idle()

    assert len(first) == 1
    assert second == []
    assert db.calls.count(LIST_PROJECTS) == 1


async def test_rapid_switching_routes_results_to_their_own_pages(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    await db.create_project("Comic")
    save_saved_artifacts(ConfigStore(tmp_path / "config"), [SavedArtifact("A shy fox", 5)])
    runtime = await _started(tmp_path, db)
    model = runtime.model

    # Both loads are scheduled before either completes; the user ends up elsewhere.
    runtime.dispatch(SwitchPage(PageId.GENERATOR))
    runtime.dispatch(SwitchPage(PageId.PROJECT_MANAGER))
    runtime.dispatch(SwitchPage(PageId.DICE_ROLLER))
    await runtime.run_until_idle()

    assert model.active_page is PageId.DICE_ROLLER
    generator = model.pages[PageId.GENERATOR]
    assert generator.load_status is LoadStatus.LOADED
    assert [a.text for a in generator.artifacts] == ["A shy fox"]
    manager = model.pages[PageId.PROJECT_MANAGER]
    assert manager.load_status is LoadStatus.LOADED
    assert [p.name for p, _, _ in manager.projects.values()] == ["Comic"]


async def test_successful_write_triggers_reload(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    runtime = await _started(tmp_path, db)
    db.calls.clear()

    tasks = runtime.dispatch(_pm(pm.CreateProject("New", "desc")))
    assert [t.label for t in tasks] == ["create_project"]
    await runtime.run_until_idle()

    assert db.calls == ["create_project", LIST_PROJECTS, "list_tags"]
    view = runtime.model.view().page
    assert [row.project.name for row in view.projects] == ["New"]
    assert not view.busy
    levels = [n.level for n in runtime.model.notifications]
    assert levels == [NotificationLevel.SUCCESS]


async def test_failed_write_notifies_without_reload(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    await db.create_tag("wip")
    runtime = await _started(tmp_path, db)
    db.calls.clear()

    runtime.dispatch(_pm(pm.CreateTag("wip")))
    await runtime.run_until_idle()

    assert db.calls == ["create_tag"]
    (notification,) = runtime.model.notifications
    assert notification.level is NotificationLevel.ERROR
    assert "already exists" in notification.text


async def test_reload_during_inflight_load_is_deferred(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    runtime = await _started(tmp_path, db)
    db.calls.clear()
    gate = asyncio.Event()
    db.gates[LIST_PROJECTS] = gate
    released_at: list[int] = []

    runtime.dispatch(_pm(LoadData()))
    runtime.dispatch(_pm(pm.CreateProject("x")))

    async def release_after_write() -> None:
        while not any(
            isinstance(m, PageMessage) and isinstance(m.message, pm.ProjectCreated)
            for m in runtime.applied
        ):
            await asyncio.sleep(0)
        released_at.append(len(db.calls))
        gate.set()

    await asyncio.gather(runtime.run_until_idle(), release_after_write())

    list_calls = [i for i, name in enumerate(db.calls) if name == LIST_PROJECTS]
    assert len(list_calls) == 2
    # The reload requested by the write ran only after the first load finished.
    assert list_calls[1] >= released_at[0]
    manager = runtime.model.pages[PageId.PROJECT_MANAGER]
    assert manager.load_status is LoadStatus.LOADED
    assert [p.name for p, _, _ in manager.projects.values()] == ["x"]


async def test_init_failure_degrades_storage_pages_only(tmp_path: Path) -> None:
    runtime = Runtime(_make_model(tmp_path, open_error=StorageIOError("disk full")))
    runtime.start()
    await runtime.run_until_idle()
    model = runtime.model

    assert model.storage_status is StorageStatus.UNAVAILABLE
    assert not model.data.has_database
    assert any("disk full" in n.text for n in model.notifications)
    manager_view = model.view().page
    assert manager_view.status is LoadStatus.FAILED
    assert manager_view.error.kind is ErrorKind.NOT_INITIALIZED
    assert manager_view.error.retryable

    # Writes fail fast with a not-initialized error instead of hanging.
    runtime.dispatch(_pm(pm.CreateProject("later")))
    await runtime.run_until_idle()
    assert "Database not initialized" in model.notifications.snapshot()[-1].text

    # The generator does not depend on the relational store.
    runtime.dispatch(SwitchPage(PageId.GENERATOR))
    await runtime.run_until_idle()
    runtime.dispatch(_gen(gen.Generate()))
    runtime.dispatch(_gen(gen.SaveCurrent()))
    await runtime.run_until_idle()
    generator = model.pages[PageId.GENERATOR]
    assert generator.load_status is LoadStatus.LOADED
    assert len(generator.artifacts) == 1


async def test_saved_artifacts_survive_restart(tmp_path: Path) -> None:
    runtime = await _started(tmp_path, InMemoryDatabase())
    runtime.dispatch(SwitchPage(PageId.GENERATOR))
    await runtime.run_until_idle()
    for _ in range(3):
        runtime.dispatch(_gen(gen.Generate()))
        runtime.dispatch(_gen(gen.SaveCurrent()))
    runtime.dispatch(_gen(gen.DeleteArtifact(0)))
    await runtime.run_until_idle()
    expected = list(runtime.model.pages[PageId.GENERATOR].artifacts)
    assert len(expected) == 2

    restarted = await _started(tmp_path, InMemoryDatabase())
    restarted.dispatch(SwitchPage(PageId.GENERATOR))
    await restarted.run_until_idle()

    assert restarted.model.pages[PageId.GENERATOR].artifacts == expected
    assert all(a.created_at == 1_700_000_000 for a in expected)


class _FlakyConfigStore(ConfigStore):
    """Fails the first write and makes the second one slow."""

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        self.writes = 0

    def set(self, key: str, value: object) -> None:
        self.writes += 1
        if self.writes == 1:
            raise SettingsStoreError("disk full")
        if self.writes == 2:
            time.sleep(0.05)
        super().set(key, value)


async def test_resync_after_failed_save_waits_for_queued_save(tmp_path: Path) -> None:
    store = _FlakyConfigStore(tmp_path / "config")
    runtime = Runtime(_make_model(tmp_path, InMemoryDatabase(), config_store=store))
    runtime.start()
    await runtime.run_until_idle()
    runtime.dispatch(SwitchPage(PageId.GENERATOR))
    await runtime.run_until_idle()

    runtime.dispatch(_gen(gen.Generate()))
    runtime.dispatch(_gen(gen.SaveCurrent()))
    runtime.dispatch(_gen(gen.Generate()))
    runtime.dispatch(_gen(gen.SaveCurrent()))
    await runtime.run_until_idle()

    on_disk = load_saved_artifacts(store)
    generator = runtime.model.pages[PageId.GENERATOR]
    assert len(on_disk) == 2
    assert generator.artifacts == on_disk
    assert generator.load_status is LoadStatus.LOADED
    assert not generator.view().saving

    # The next edit persists the list that is actually on disk.
    runtime.dispatch(_gen(gen.DeleteArtifact(0)))
    await runtime.run_until_idle()
    assert load_saved_artifacts(store) == on_disk[1:]


async def test_notifications_are_dismissed_one_at_a_time(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    runtime = await _started(tmp_path, db)
    runtime.dispatch(_pm(pm.CreateProject("one")))
    runtime.dispatch(_pm(pm.CreateProject("two")))
    await runtime.run_until_idle()
    model = runtime.model
    first, second = model.notifications.snapshot()
    assert first.id < second.id

    runtime.dispatch(DismissNotification(first.id))
    assert model.notifications.snapshot() == (second,)

    runtime.dispatch(DismissNotification(first.id))
    assert model.notifications.snapshot() == (second,)

    runtime.dispatch(DismissNotification(second.id))
    assert len(model.notifications) == 0


async def test_settings_pick_start_page_before_startup(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    runtime = Runtime(_make_model(tmp_path, db))

    tasks = runtime.dispatch(
        SettingsLoaded(TaskResult.success(GuiSettings(start_page="generator", log_level="INFO")))
    )
    assert tasks == []
    runtime.start()
    await runtime.run_until_idle()

    assert runtime.model.active_page is PageId.GENERATOR
    assert runtime.model.pages[PageId.GENERATOR].load_status is LoadStatus.LOADED
    assert LIST_PROJECTS not in db.calls


async def test_shutdown_closes_storage(tmp_path: Path) -> None:
    db = InMemoryDatabase()
    runtime = await _started(tmp_path, db)

    await runtime.shutdown()

    assert db.closed
