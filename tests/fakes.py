"""In-memory ProjectDatabase for dispatch-loop and service tests."""

from __future__ import annotations

import asyncio
import itertools

from kit_engine.clock import Clock, FixedClock
from kit_engine.errors import ConflictError, InvalidInputError, NotFoundError
from kit_engine.store.api import (
    Feature,
    FeatureId,
    Project,
    ProjectId,
    ProjectRelations,
    Tag,
    TagId,
    newest_first,
)


class InMemoryDatabase:
    """
    Dict-backed store with the same policies as SqliteDatabase.

    Attributes
    ----------
    calls:
        Operation names in call order.
    failures:
        Operation name -> exception raised (once) by the next call.
    gates:
        Operation name -> event the next call waits on before completing.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock if clock is not None else FixedClock(1_700_000_000)
        self._ids = itertools.count(1)
        self.projects: dict[ProjectId, Project] = {}
        self.tags: dict[TagId, Tag] = {}
        self.links: set[tuple[ProjectId, TagId]] = set()
        self.features: dict[FeatureId, Feature] = {}
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.closed = False

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        gate = self.gates.pop(operation, None)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        exc = self.failures.pop(operation, None)
        if exc is not None:
            raise exc

    def _require_project(self, project_id: ProjectId, operation: str) -> None:
        if project_id not in self.projects:
            raise NotFoundError(
                f"Project {project_id} not found.", operation=operation, entity_id=project_id
            )

    def _require_tag(self, tag_id: TagId, operation: str) -> None:
        if tag_id not in self.tags:
            raise NotFoundError(f"Tag {tag_id} not found.", operation=operation, entity_id=tag_id)

    def _features_of(self, project_id: ProjectId) -> list[Feature]:
        rows = [f for f in self.features.values() if f.project_id == project_id]
        return sorted(rows, key=lambda f: (f.created_at, f.id), reverse=True)

    def _tags_of(self, project_id: ProjectId) -> list[Tag]:
        rows = [self.tags[t] for p, t in self.links if p == project_id]
        return sorted(rows, key=lambda t: t.name)

    async def create_project(self, name: str, description: str | None = None) -> Project:
        await self._enter("create_project")
        if not name.strip():
            raise InvalidInputError("Project name must not be empty.", operation="create_project")
        project = Project(
            id=next(self._ids),
            name=name.strip(),
            description=(description or "").strip() or None,
            created_at=self._clock.now(),
        )
        self.projects[project.id] = project
        return project

    async def list_projects_with_relations(self) -> list[ProjectRelations]:
        await self._enter("list_projects_with_relations")
        return [
            (p, tuple(self._tags_of(p.id)), tuple(self._features_of(p.id)))
            for p in newest_first(list(self.projects.values()))
        ]

    async def delete_project(self, project_id: ProjectId) -> None:
        await self._enter("delete_project")
        self._require_project(project_id, "delete_project")
        del self.projects[project_id]
        self.links = {(p, t) for p, t in self.links if p != project_id}
        self.features = {k: f for k, f in self.features.items() if f.project_id != project_id}

    async def create_tag(self, name: str, color: str | None = None) -> Tag:
        await self._enter("create_tag")
        name = name.strip()
        if not name:
            raise InvalidInputError("Tag name must not be empty.", operation="create_tag")
        if any(t.name == name for t in self.tags.values()):
            raise ConflictError(f"Tag {name!r} already exists.", operation="create_tag")
        tag = Tag(id=next(self._ids), name=name, color=color)
        self.tags[tag.id] = tag
        return tag

    async def list_tags(self) -> list[Tag]:
        await self._enter("list_tags")
        return sorted(self.tags.values(), key=lambda t: t.name)

    async def list_project_tags(self, project_id: ProjectId) -> list[Tag]:
        await self._enter("list_project_tags")
        self._require_project(project_id, "list_project_tags")
        return self._tags_of(project_id)

    async def attach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        await self._enter("attach_tag")
        self._require_project(project_id, "attach_tag")
        self._require_tag(tag_id, "attach_tag")
        self.links.add((project_id, tag_id))

    async def detach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        await self._enter("detach_tag")
        self._require_project(project_id, "detach_tag")
        self._require_tag(tag_id, "detach_tag")
        self.links.discard((project_id, tag_id))

    async def add_feature(self, project_id: ProjectId, description: str) -> Feature:
        await self._enter("add_feature")
        if not description.strip():
            raise InvalidInputError("Feature description must not be empty.", operation="add_feature")
        self._require_project(project_id, "add_feature")
        feature = Feature(
            id=next(self._ids),
            project_id=project_id,
            description=description.strip(),
            completed=False,
            created_at=self._clock.now(),
        )
        self.features[feature.id] = feature
        return feature

    async def list_features(self, project_id: ProjectId) -> list[Feature]:
        await self._enter("list_features")
        self._require_project(project_id, "list_features")
        return self._features_of(project_id)

    async def remove_feature(self, feature_id: FeatureId) -> None:
        await self._enter("remove_feature")
        if self.features.pop(feature_id, None) is None:
            raise NotFoundError(
                f"Feature {feature_id} not found.", operation="remove_feature", entity_id=feature_id
            )

    async def set_feature_completed(self, feature_id: FeatureId, completed: bool) -> Feature:
        await self._enter("set_feature_completed")
        current = self.features.get(feature_id)
        if current is None:
            raise NotFoundError(
                f"Feature {feature_id} not found.",
                operation="set_feature_completed",
                entity_id=feature_id,
            )
        updated = Feature(
            id=current.id,
            project_id=current.project_id,
            description=current.description,
            completed=completed,
            created_at=current.created_at,
        )
        self.features[feature_id] = updated
        return updated

    async def close(self) -> None:
        self.closed = True
