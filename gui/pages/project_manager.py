"""
Project manager page.

Holds the project read-model (projects with their tags and features), the tag
catalogue and the new-project form. Request messages (CreateProject,
AttachTag, ...) are intercepted by the dispatch loop, which runs the storage
call and answers with the matching result message. The page only tracks busy
state and applies results.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Union

from gui.messages import PageId
from gui.notifications import NotificationLevel
from gui.pages.base import DataChanged, LoadData, LoadStatus, Notify
from gui.tasks import TaskFailure, TaskResult
from kit_engine.store.api import (
    Feature,
    FeatureId,
    Project,
    ProjectId,
    ProjectJoin,
    Tag,
    TagId,
)

# --- Messages -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProjectsLoaded:
    result: TaskResult[ProjectJoin]


@dataclass(frozen=True, slots=True)
class LoadTags:
    pass


@dataclass(frozen=True, slots=True)
class TagsLoaded:
    result: TaskResult[list[Tag]]


@dataclass(frozen=True, slots=True)
class ToggleNewProjectForm:
    pass


@dataclass(frozen=True, slots=True)
class UpdateName:
    value: str


@dataclass(frozen=True, slots=True)
class UpdateDescription:
    value: str


@dataclass(frozen=True, slots=True)
class CancelNewProject:
    pass


@dataclass(frozen=True, slots=True)
class SubmitNewProject:
    """Form submit. Validated locally before any CreateProject is issued."""


@dataclass(frozen=True, slots=True)
class CreateProject:
    name: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ProjectCreated:
    result: TaskResult[Project]


@dataclass(frozen=True, slots=True)
class DeleteProject:
    project_id: ProjectId


@dataclass(frozen=True, slots=True)
class ProjectDeleted:
    project_id: ProjectId
    result: TaskResult[None]


@dataclass(frozen=True, slots=True)
class CreateTag:
    name: str
    color: str | None = None


@dataclass(frozen=True, slots=True)
class TagCreated:
    result: TaskResult[Tag]


@dataclass(frozen=True, slots=True)
class AttachTag:
    project_id: ProjectId
    tag_id: TagId


@dataclass(frozen=True, slots=True)
class TagAttached:
    project_id: ProjectId
    tag_id: TagId
    result: TaskResult[None]


@dataclass(frozen=True, slots=True)
class DetachTag:
    project_id: ProjectId
    tag_id: TagId


@dataclass(frozen=True, slots=True)
class TagDetached:
    project_id: ProjectId
    tag_id: TagId
    result: TaskResult[None]


@dataclass(frozen=True, slots=True)
class AddFeature:
    project_id: ProjectId
    description: str


@dataclass(frozen=True, slots=True)
class FeatureAdded:
    result: TaskResult[Feature]


@dataclass(frozen=True, slots=True)
class RemoveFeature:
    feature_id: FeatureId


@dataclass(frozen=True, slots=True)
class FeatureRemoved:
    feature_id: FeatureId
    result: TaskResult[None]


@dataclass(frozen=True, slots=True)
class SetFeatureCompleted:
    feature_id: FeatureId
    completed: bool


@dataclass(frozen=True, slots=True)
class FeatureUpdated:
    result: TaskResult[Feature]


ProjectManagerMessage = Union[
    LoadData,
    ProjectsLoaded,
    LoadTags,
    TagsLoaded,
    ToggleNewProjectForm,
    UpdateName,
    UpdateDescription,
    CancelNewProject,
    SubmitNewProject,
    CreateProject,
    ProjectCreated,
    DeleteProject,
    ProjectDeleted,
    CreateTag,
    TagCreated,
    AttachTag,
    TagAttached,
    DetachTag,
    TagDetached,
    AddFeature,
    FeatureAdded,
    RemoveFeature,
    FeatureRemoved,
    SetFeatureCompleted,
    FeatureUpdated,
]

# Requests that start a storage write; each is answered by exactly one result.
_WRITE_REQUESTS = (
    CreateProject,
    DeleteProject,
    CreateTag,
    AttachTag,
    DetachTag,
    AddFeature,
    RemoveFeature,
    SetFeatureCompleted,
)


# --- View models --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NewProjectForm:
    visible: bool = False
    name: str = ""
    description: str = ""
    error: str | None = None

    @property
    def can_submit(self) -> bool:
        return bool(self.name.strip())


@dataclass(frozen=True, slots=True)
class ProjectRow:
    project: Project
    tags: tuple[Tag, ...]
    features: tuple[Feature, ...]

    @property
    def completed_count(self) -> int:
        return sum(1 for f in self.features if f.completed)


@dataclass(frozen=True, slots=True)
class ProjectManagerView:
    status: LoadStatus
    busy: bool
    error: TaskFailure | None
    projects: tuple[ProjectRow, ...]
    tags: tuple[Tag, ...]
    form: NewProjectForm

    @property
    def is_empty(self) -> bool:
        return self.status is LoadStatus.LOADED and not self.projects


# --- Page ---------------------------------------------------------------------


class ProjectManagerPage:
    """State container for the project manager page."""

    page_id = PageId.PROJECT_MANAGER
    requires_data = True
    reload_on_activate = True

    def __init__(self) -> None:
        self.projects: ProjectJoin = {}
        self.tags: list[Tag] = []
        self.form = NewProjectForm()
        self.load_status = LoadStatus.NOT_LOADED
        self.error: TaskFailure | None = None
        self.pending_writes = 0

    @property
    def busy(self) -> bool:
        return self.load_status is LoadStatus.LOADING or self.pending_writes > 0

    def view(self) -> ProjectManagerView:
        return ProjectManagerView(
            status=self.load_status,
            busy=self.busy,
            error=self.error,
            projects=tuple(
                ProjectRow(project, tags, features)
                for project, tags, features in self.projects.values()
            ),
            tags=tuple(self.tags),
            form=self.form,
        )

    def update(self, message: Any) -> list[Any]:
        if isinstance(message, LoadData):
            self.load_status = LoadStatus.LOADING
            return []

        if isinstance(message, ProjectsLoaded):
            if not message.result.ok:
                self.load_status = LoadStatus.FAILED
                self.error = message.result.failure
                return []
            self.projects = dict(message.result.value or {})
            self.load_status = LoadStatus.LOADED
            self.error = None
            return [LoadTags()]

        if isinstance(message, LoadTags):
            return []

        if isinstance(message, TagsLoaded):
            if not message.result.ok:
                return [_failure_notice("Loading tags", message.result.failure)]
            self.tags = list(message.result.value or [])
            return []

        if isinstance(message, ToggleNewProjectForm):
            self.form = replace(self.form, visible=not self.form.visible, error=None)
            return []

        if isinstance(message, UpdateName):
            self.form = replace(self.form, name=message.value, error=None)
            return []

        if isinstance(message, UpdateDescription):
            self.form = replace(self.form, description=message.value)
            return []

        if isinstance(message, CancelNewProject):
            self.form = NewProjectForm()
            return []

        if isinstance(message, SubmitNewProject):
            name = self.form.name.strip()
            if not name:
                self.form = replace(self.form, error="Project name is required.")
                return []
            description = self.form.description.strip() or None
            return [CreateProject(name=name, description=description)]

        if isinstance(message, _WRITE_REQUESTS):
            self.pending_writes += 1
            return []

        if isinstance(message, ProjectCreated):
            return self._finish_write(
                message.result, "Create project", self._apply_created_project
            )

        if isinstance(message, ProjectDeleted):
            project_id = message.project_id
            return self._finish_write(
                message.result,
                "Delete project",
                lambda _: self.projects.pop(project_id, None),
            )

        if isinstance(message, TagCreated):
            return self._finish_write(message.result, "Create tag", self._apply_created_tag)

        if isinstance(message, TagAttached):
            return self._finish_write(
                message.result,
                "Attach tag",
                lambda _: self._apply_tag_link(message.project_id, message.tag_id, True),
            )

        if isinstance(message, TagDetached):
            return self._finish_write(
                message.result,
                "Detach tag",
                lambda _: self._apply_tag_link(message.project_id, message.tag_id, False),
            )

        if isinstance(message, FeatureAdded):
            return self._finish_write(message.result, "Add feature", self._apply_feature)

        if isinstance(message, FeatureRemoved):
            feature_id = message.feature_id
            return self._finish_write(
                message.result,
                "Remove feature",
                lambda _: self._drop_feature(feature_id),
            )

        if isinstance(message, FeatureUpdated):
            return self._finish_write(message.result, "Update feature", self._apply_feature)

        return []

    # --- Result application ----------------------------------------------------

    def _finish_write(
        self,
        result: TaskResult[Any],
        action: str,
        apply: Callable[[Any], Any],
    ) -> list[Any]:
        self.pending_writes = max(0, self.pending_writes - 1)
        if not result.ok:
            return [_failure_notice(action, result.failure)]
        apply(result.value)
        return [Notify(f"{action}: done.", NotificationLevel.SUCCESS), DataChanged()]

    def _apply_created_project(self, project: Project) -> None:
        # Newest first; the follow-up reload replaces this with the stored order.
        self.projects = {project.id: (project, (), ()), **self.projects}
        self.form = NewProjectForm()

    def _apply_created_tag(self, tag: Tag) -> None:
        self.tags = sorted([*self.tags, tag], key=lambda t: t.name)

    def _apply_tag_link(self, project_id: ProjectId, tag_id: TagId, attached: bool) -> None:
        entry = self.projects.get(project_id)
        if entry is None:
            return
        project, tags, features = entry
        remaining = tuple(t for t in tags if t.id != tag_id)
        if attached:
            tag = next((t for t in self.tags if t.id == tag_id), None)
            if tag is not None:
                remaining = tuple(sorted((*remaining, tag), key=lambda t: t.name))
        self.projects[project_id] = (project, remaining, features)

    def _apply_feature(self, feature: Feature) -> None:
        entry = self.projects.get(feature.project_id)
        if entry is None:
            return
        project, tags, features = entry
        if any(f.id == feature.id for f in features):
            features = tuple(feature if f.id == feature.id else f for f in features)
        else:
            features = (feature, *features)
        self.projects[feature.project_id] = (project, tags, features)

    def _drop_feature(self, feature_id: FeatureId) -> None:
        for project_id, (project, tags, features) in list(self.projects.items()):
            kept = tuple(f for f in features if f.id != feature_id)
            if len(kept) != len(features):
                self.projects[project_id] = (project, tags, kept)


def _failure_notice(action: str, failure: TaskFailure | None) -> Notify:
    detail = failure.message if failure is not None else "unknown error"
    return Notify(f"{action} failed: {detail}", NotificationLevel.ERROR)
