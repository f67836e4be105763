"""
Data-access service.

AppData is the single point through which higher-level code reaches storage.
The dispatch loop owns one instance; pages never see it.

Lifecycle
---------
- Constructed empty: no storage handle.
- The handle is installed exactly once, after asynchronous initialization.
- Until then every operation fails immediately with NotInitializedError.
  Nothing blocks or queues; callers retry once initialization completes.

Extension point
---------------
Operations currently delegate straight to the backend. Caching, validation, or
view-model shaping for a remote backend belong here, not in pages or in the
storage engine.
"""

from __future__ import annotations

from .errors import NotInitializedError
from .store.api import (
    Feature,
    FeatureId,
    Project,
    ProjectDatabase,
    ProjectId,
    ProjectJoin,
    Tag,
    TagId,
    build_project_join,
)


class AppData:
    """Data-access service over an optional ProjectDatabase handle."""

    def __init__(self, db: ProjectDatabase | None = None) -> None:
        self._db = db

    @property
    def has_database(self) -> bool:
        """Return True once a storage handle is installed."""
        return self._db is not None

    def set_database(self, db: ProjectDatabase) -> None:
        """
        Install the storage handle.

        Raises
        ------
        RuntimeError
            If a handle is already installed.
        """
        if self._db is not None:
            raise RuntimeError("A database handle is already installed.")
        self._db = db

    def _require(self, operation: str) -> ProjectDatabase:
        if self._db is None:
            raise NotInitializedError("Database not initialized.", operation=operation)
        return self._db

    async def load_projects(self) -> ProjectJoin:
        """Load all projects with their tags and features as a fresh read-model."""
        db = self._require("load_projects")
        return build_project_join(await db.list_projects_with_relations())

    async def create_project(self, name: str, description: str | None = None) -> Project:
        return await self._require("create_project").create_project(name, description)

    async def delete_project(self, project_id: ProjectId) -> None:
        await self._require("delete_project").delete_project(project_id)

    async def create_tag(self, name: str, color: str | None = None) -> Tag:
        return await self._require("create_tag").create_tag(name, color)

    async def list_tags(self) -> list[Tag]:
        return await self._require("list_tags").list_tags()

    async def list_project_tags(self, project_id: ProjectId) -> list[Tag]:
        return await self._require("list_project_tags").list_project_tags(project_id)

    async def attach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        await self._require("attach_tag").attach_tag(project_id, tag_id)

    async def detach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        await self._require("detach_tag").detach_tag(project_id, tag_id)

    async def add_feature(self, project_id: ProjectId, description: str) -> Feature:
        return await self._require("add_feature").add_feature(project_id, description)

    async def list_features(self, project_id: ProjectId) -> list[Feature]:
        return await self._require("list_features").list_features(project_id)

    async def remove_feature(self, feature_id: FeatureId) -> None:
        await self._require("remove_feature").remove_feature(feature_id)

    async def set_feature_completed(self, feature_id: FeatureId, completed: bool) -> Feature:
        return await self._require("set_feature_completed").set_feature_completed(
            feature_id, completed
        )

    async def close(self) -> None:
        """Close the installed backend, if any."""
        if self._db is not None:
            await self._db.close()
