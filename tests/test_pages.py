from __future__ import annotations

import random

from gui.messages import PageId
from gui.notifications import NotificationLevel
from gui.pages.base import DataChanged, LoadData, LoadStatus, Notify
from gui.pages.generator import (
    ArtifactsLoaded,
    ArtifactsSaved,
    DeleteArtifact,
    Generate,
    GeneratorPage,
    PersistArtifacts,
    SaveCurrent,
    generate_concept,
)
from gui.pages.placeholder import PlaceholderPage
from gui.pages.project_manager import (
    AttachTag,
    CreateProject,
    FeatureAdded,
    FeatureUpdated,
    LoadTags,
    ProjectCreated,
    ProjectDeleted,
    ProjectManagerPage,
    ProjectsLoaded,
    SubmitNewProject,
    TagAttached,
    TagCreated,
    TagsLoaded,
    ToggleNewProjectForm,
    UpdateDescription,
    UpdateName,
)
from gui.settings_store import SavedArtifact
from gui.tasks import TaskResult
from kit_engine.clock import FixedClock
from kit_engine.errors import ConflictError, StorageIOError
from kit_engine.store.api import Feature, Project, Tag


def _project(pid: int, name: str = "p") -> Project:
    return Project(id=pid, name=name, description=None, created_at=100 + pid)


def _loaded_page(*projects: Project) -> ProjectManagerPage:
    page = ProjectManagerPage()
    page.update(LoadData())
    page.update(ProjectsLoaded(TaskResult.success({p.id: (p, (), ()) for p in projects})))
    return page


# --- Project manager ----------------------------------------------------------


def test_projects_loaded_sets_status_and_requests_tags() -> None:
    page = ProjectManagerPage()
    page.update(LoadData())
    assert page.load_status is LoadStatus.LOADING
    assert page.busy

    follow_ups = page.update(ProjectsLoaded(TaskResult.success({1: (_project(1), (), ())})))

    assert follow_ups == [LoadTags()]
    assert page.load_status is LoadStatus.LOADED
    assert not page.busy
    assert [row.project.id for row in page.view().projects] == [1]


def test_failed_load_shows_error_state() -> None:
    page = ProjectManagerPage()
    page.update(LoadData())

    follow_ups = page.update(ProjectsLoaded(TaskResult.failed(StorageIOError("disk gone"))))

    view = page.view()
    assert follow_ups == []
    assert view.status is LoadStatus.FAILED
    assert view.error is not None and "disk gone" in view.error.message
    assert view.error.retryable
    assert not view.is_empty


def test_empty_list_is_distinct_from_failure() -> None:
    page = _loaded_page()
    assert page.view().is_empty


def test_blank_name_is_rejected_locally() -> None:
    page = ProjectManagerPage()
    page.update(ToggleNewProjectForm())
    page.update(UpdateName("   "))

    follow_ups = page.update(SubmitNewProject())

    assert follow_ups == []
    assert page.form.visible
    assert page.form.error == "Project name is required."
    assert not page.view().form.can_submit


def test_submit_issues_trimmed_create_request() -> None:
    page = ProjectManagerPage()
    page.update(ToggleNewProjectForm())
    page.update(UpdateName("  Comic "))
    page.update(UpdateDescription("  "))

    assert page.update(SubmitNewProject()) == [CreateProject(name="Comic", description=None)]


def test_project_created_applies_record_then_asks_for_reload() -> None:
    page = _loaded_page(_project(1, "old"))
    page.update(ToggleNewProjectForm())
    page.update(UpdateName("new"))
    page.update(CreateProject("new"))
    assert page.busy

    created = _project(2, "new")
    follow_ups = page.update(ProjectCreated(TaskResult.success(created)))

    assert follow_ups[-1] == DataChanged()
    assert isinstance(follow_ups[0], Notify)
    assert follow_ups[0].level is NotificationLevel.SUCCESS
    assert [row.project.id for row in page.view().projects] == [2, 1]
    assert not page.form.visible and page.form.name == ""
    assert not page.busy


def test_failed_write_notifies_and_keeps_state() -> None:
    page = _loaded_page(_project(1))
    page.update(CreateProject("dup"))

    follow_ups = page.update(
        TagCreated(TaskResult.failed(ConflictError("Tag already exists: 'dup'")))
    )

    assert len(follow_ups) == 1
    assert follow_ups[0].level is NotificationLevel.ERROR
    assert "Create tag failed" in follow_ups[0].text
    assert [row.project.id for row in page.view().projects] == [1]


def test_project_deleted_removes_row() -> None:
    page = _loaded_page(_project(1), _project(2))

    follow_ups = page.update(ProjectDeleted(1, TaskResult.success(None)))

    assert DataChanged() in follow_ups
    assert [row.project.id for row in page.view().projects] == [2]


def test_tag_attach_and_feature_updates_patch_the_read_model() -> None:
    page = _loaded_page(_project(1))
    tag = Tag(id=5, name="ink")
    page.update(TagsLoaded(TaskResult.success([tag])))
    page.update(AttachTag(1, 5))

    page.update(TagAttached(1, 5, TaskResult.success(None)))
    feature = Feature(id=9, project_id=1, description="cover", completed=False, created_at=1)
    page.update(FeatureAdded(TaskResult.success(feature)))
    page.update(FeatureUpdated(TaskResult.success(Feature(9, 1, "cover", True, 1))))

    row = page.view().projects[0]
    assert row.tags == (tag,)
    assert [f.completed for f in row.features] == [True]
    assert row.completed_count == 1


def test_tags_loaded_failure_raises_notification() -> None:
    page = _loaded_page(_project(1))

    follow_ups = page.update(TagsLoaded(TaskResult.failed(StorageIOError("locked"))))

    assert follow_ups[0].level is NotificationLevel.ERROR
    assert page.load_status is LoadStatus.LOADED


# --- Generator ------------------------------------------------------------------


def test_generate_concept_uses_injected_rng() -> None:
    a = generate_concept(random.Random(3))
    b = generate_concept(random.Random(3))

    assert a == b
    assert a.startswith("A ")


def test_save_appends_and_requests_persist() -> None:
    page = GeneratorPage(clock=FixedClock(500), rng=random.Random(1))
    page.update(ArtifactsLoaded(TaskResult.success([SavedArtifact("old", 1)])))

    assert page.update(SaveCurrent()) == []  # nothing generated yet
    page.update(Generate())
    follow_ups = page.update(SaveCurrent())

    assert len(follow_ups) == 1
    persist = follow_ups[0]
    assert isinstance(persist, PersistArtifacts)
    assert persist.artifacts[0] == SavedArtifact("old", 1)
    assert persist.artifacts[1] == SavedArtifact(page.current_text, 500)


def test_delete_removes_by_index_and_persists() -> None:
    page = GeneratorPage(clock=FixedClock(1))
    items = [SavedArtifact("a", 1), SavedArtifact("b", 2), SavedArtifact("c", 3)]
    page.update(ArtifactsLoaded(TaskResult.success(items)))

    follow_ups = page.update(DeleteArtifact(1))

    assert follow_ups == [PersistArtifacts((items[0], items[2]))]


def test_delete_out_of_range_is_rejected() -> None:
    page = GeneratorPage(clock=FixedClock(1))
    page.update(ArtifactsLoaded(TaskResult.success([SavedArtifact("a", 1)])))

    follow_ups = page.update(DeleteArtifact(5))

    assert follow_ups[0].level is NotificationLevel.ERROR
    assert len(page.artifacts) == 1


def test_failed_save_requests_resync() -> None:
    page = GeneratorPage(clock=FixedClock(1), rng=random.Random(2))
    page.update(ArtifactsLoaded(TaskResult.success([])))
    page.update(Generate())
    page.update(SaveCurrent())
    assert page.view().saving

    follow_ups = page.update(ArtifactsSaved(TaskResult.failed(OSError("read-only"))))

    assert follow_ups[-1] == DataChanged()
    assert not page.view().saving


def test_load_during_pending_save_keeps_memory_list() -> None:
    page = GeneratorPage(clock=FixedClock(7), rng=random.Random(4))
    page.update(ArtifactsLoaded(TaskResult.success([SavedArtifact("a", 1)])))
    page.update(Generate())
    page.update(SaveCurrent())
    expected = list(page.artifacts)

    page.update(LoadData())
    page.update(ArtifactsLoaded(TaskResult.success([SavedArtifact("a", 1)])))

    assert page.artifacts == expected
    assert page.load_status is LoadStatus.LOADED

    page.update(ArtifactsSaved(TaskResult.success(None)))
    page.update(LoadData())
    page.update(ArtifactsLoaded(TaskResult.success([])))
    assert page.artifacts == []


def test_generator_does_not_reload_on_activate() -> None:
    assert GeneratorPage.reload_on_activate is False
    assert ProjectManagerPage.reload_on_activate is True


# --- Placeholder ----------------------------------------------------------------


def test_placeholder_has_no_data() -> None:
    page = PlaceholderPage(PageId.DICE_ROLLER, "Dice Roller")

    assert not page.requires_data
    assert page.update(LoadData()) == []
    assert page.view().title == "Dice Roller"
