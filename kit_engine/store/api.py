"""
ProjectDatabase public API.

This module defines the engine-owned persistence surface that the data-access
service is allowed to call. Callers speak only in typed domain objects; no
SQLite details leak through this contract, so a different backend (for
example a remote one) can be swapped in at construction time.

Notes
-----
- Every operation is a coroutine and must not block the caller's event loop.
- Identifiers and creation timestamps are assigned by the store, never by
  callers.
- Project deletion cascades to features and tag associations.
- Duplicate tag names are rejected with ConflictError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

ProjectId = int
TagId = int
FeatureId = int


@dataclass(frozen=True, slots=True)
class Project:
    """
    A stored project.

    Attributes
    ----------
    id:
        Store-assigned identifier.
    name:
        Non-empty display name.
    description:
        Optional free text.
    created_at:
        Store-assigned creation time, seconds since the Unix epoch.
    """

    id: ProjectId
    name: str
    description: str | None
    created_at: int


@dataclass(frozen=True, slots=True)
class Tag:
    """A label that can be attached to many projects."""

    id: TagId
    name: str
    color: str | None = None


@dataclass(frozen=True, slots=True)
class ProjectTag:
    """Join row between a project and a tag."""

    project_id: ProjectId
    tag_id: TagId


@dataclass(frozen=True, slots=True)
class Feature:
    """A task belonging to exactly one project."""

    id: FeatureId
    project_id: ProjectId
    description: str
    completed: bool
    created_at: int


ProjectRelations = tuple[Project, tuple[Tag, ...], tuple[Feature, ...]]

# Read-model keyed by project id. Insertion order is the listing order
# (newest first). Derived for display only; never persisted.
ProjectJoin = dict[ProjectId, ProjectRelations]


def build_project_join(rows: Iterable[ProjectRelations]) -> ProjectJoin:
    """
    Build a ProjectJoin from listing rows, preserving their order.

    Parameters
    ----------
    rows:
        (Project, tags, features) triples as returned by
        ProjectDatabase.list_projects_with_relations.

    Returns
    -------
    ProjectJoin
        Mapping from project id to its triple.
    """
    join: ProjectJoin = {}
    for project, tags, features in rows:
        join[project.id] = (project, tuple(tags), tuple(features))
    return join


class ProjectDatabase(Protocol):
    """
    Persistence API for projects, tags and features.

    Implementations are engine-owned. Failures are raised as
    kit_engine.errors.StorageError subclasses.
    """

    async def create_project(self, name: str, description: str | None = None) -> Project:
        """
        Create a project and return the stored record.

        Raises
        ------
        InvalidInputError
            If name is blank.
        """
        raise NotImplementedError

    async def list_projects_with_relations(self) -> list[ProjectRelations]:
        """
        Return every project with its tags and features, newest first.

        Returns
        -------
        list[ProjectRelations]
            Empty when the store holds no projects.
        """
        raise NotImplementedError

    async def delete_project(self, project_id: ProjectId) -> None:
        """
        Delete a project together with its features and tag associations.

        Raises
        ------
        NotFoundError
            If project_id does not exist.
        """
        raise NotImplementedError

    async def create_tag(self, name: str, color: str | None = None) -> Tag:
        """
        Create a tag.

        Raises
        ------
        ConflictError
            If a tag with the same name already exists.
        InvalidInputError
            If name is blank.
        """
        raise NotImplementedError

    async def list_tags(self) -> list[Tag]:
        """Return all tags ordered by name."""
        raise NotImplementedError

    async def list_project_tags(self, project_id: ProjectId) -> list[Tag]:
        """Return the tags attached to a project ordered by name."""
        raise NotImplementedError

    async def attach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        """
        Attach a tag to a project. Attaching twice is a no-op.

        Raises
        ------
        NotFoundError
            If either id does not exist.
        """
        raise NotImplementedError

    async def detach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        """
        Detach a tag from a project. Detaching an unattached tag is a no-op.

        Raises
        ------
        NotFoundError
            If either id does not exist.
        """
        raise NotImplementedError

    async def add_feature(self, project_id: ProjectId, description: str) -> Feature:
        """
        Add a feature to a project and return the stored record.

        Raises
        ------
        NotFoundError
            If project_id does not exist.
        """
        raise NotImplementedError

    async def list_features(self, project_id: ProjectId) -> list[Feature]:
        """Return the features of a project, newest first."""
        raise NotImplementedError

    async def remove_feature(self, feature_id: FeatureId) -> None:
        """
        Remove a feature.

        Raises
        ------
        NotFoundError
            If feature_id does not exist.
        """
        raise NotImplementedError

    async def set_feature_completed(self, feature_id: FeatureId, completed: bool) -> Feature:
        """Set the completion flag of a feature and return the updated record."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources held by the backend."""
        raise NotImplementedError


def newest_first(rows: Sequence[Project]) -> list[Project]:
    """Sort projects by creation time descending, breaking ties by id."""
    return sorted(rows, key=lambda p: (p.created_at, p.id), reverse=True)
