"""
SQLite implementation of ProjectDatabase.

This module owns the on-disk persistence format for projects, tags and
features.

Threading
---------
A SqliteDatabase is a thin handle over a shared SqliteConnectionPool. The pool
owns a single sqlite3 connection opened with check_same_thread=False and
serializes every use of it behind a lock, so handles may be copied freely and
used from worker threads (asyncio.to_thread) without external locking.
Copying a handle never opens another connection.

Scaling note
------------
list_projects_with_relations issues one tags query and one features query per
project instead of a single denormalized join. That is fine for a personal
project list and is a known limitation, not a correctness issue.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from ..errors import (
    ConflictError,
    InvalidInputError,
    MigrationError,
    NotFoundError,
    StorageError,
    StorageIOError,
)
from ..paths import ensure_data_directories, resolve_data_paths
from .api import (
    Feature,
    FeatureId,
    Project,
    ProjectDatabase,
    ProjectId,
    ProjectRelations,
    Tag,
    TagId,
)
from .schema import apply_migrations

log = logging.getLogger(__name__)

_PROJECT_COLUMNS = "id, name, description, created_at"
_FEATURE_COLUMNS = "id, project_id, description, completed, created_at"


def _open_connection(db_path: Path) -> sqlite3.Connection:
    # isolation_level=None: transactions are managed explicitly by the pool.
    conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SqliteConnectionPool:
    """
    Shared, lock-serialized access to one SQLite database file.

    Parameters
    ----------
    db_path:
        Path to the SQLite database. The file is created if absent.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn: sqlite3.Connection | None = _open_connection(db_path)
        except sqlite3.Error as exc:
            raise StorageIOError(
                f"Cannot open database {db_path}: {exc}", operation="open_database"
            ) from exc

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _require(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageIOError("Database connection is closed.", operation="connection")
        return self._conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield the connection in autocommit mode while holding the pool lock."""
        with self._lock:
            yield self._require()

    @contextmanager
    def transaction(self, *, write: bool = True) -> Iterator[sqlite3.Connection]:
        """
        Yield the connection inside a transaction.

        Commits when the block finishes and rolls back if it raises. Write
        transactions take the write lock up front (BEGIN IMMEDIATE) so their
        existence checks and inserts are atomic.
        """
        with self._lock:
            conn = self._require()
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def close(self) -> None:
        """Close the underlying connection. Later use raises StorageIOError."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


@contextmanager
def _translate_errors(operation: str, entity_id: int | None = None) -> Iterator[None]:
    """Map sqlite3 and OS failures onto the StorageError taxonomy."""
    try:
        yield
    except StorageError:
        raise
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" in str(exc).upper():
            raise ConflictError(str(exc), operation=operation, entity_id=entity_id) from exc
        raise StorageIOError(str(exc), operation=operation, entity_id=entity_id) from exc
    except (sqlite3.Error, OSError) as exc:
        raise StorageIOError(str(exc), operation=operation, entity_id=entity_id) from exc


def _require_text(value: str, what: str, *, operation: str) -> str:
    cleaned = str(value).strip()
    if not cleaned:
        raise InvalidInputError(f"{what} must not be empty.", operation=operation)
    return cleaned


def _project_from_row(row: sqlite3.Row) -> Project:
    return Project(
        id=int(row["id"]),
        name=str(row["name"]),
        description=str(row["description"]) if row["description"] is not None else None,
        created_at=int(row["created_at"]),
    )


def _tag_from_row(row: sqlite3.Row) -> Tag:
    return Tag(
        id=int(row["id"]),
        name=str(row["name"]),
        color=str(row["color"]) if row["color"] is not None else None,
    )


def _feature_from_row(row: sqlite3.Row) -> Feature:
    return Feature(
        id=int(row["id"]),
        project_id=int(row["project_id"]),
        description=str(row["description"]),
        completed=bool(row["completed"]),
        created_at=int(row["created_at"]),
    )


def _assert_project(conn: sqlite3.Connection, project_id: ProjectId, operation: str) -> None:
    if conn.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,)).fetchone() is None:
        raise NotFoundError(
            f"Unknown project id: {project_id}", operation=operation, entity_id=project_id
        )


def _assert_tag(conn: sqlite3.Connection, tag_id: TagId, operation: str) -> None:
    if conn.execute("SELECT 1 FROM tags WHERE id = ?", (tag_id,)).fetchone() is None:
        raise NotFoundError(f"Unknown tag id: {tag_id}", operation=operation, entity_id=tag_id)


def _project_tags(conn: sqlite3.Connection, project_id: ProjectId) -> list[Tag]:
    rows = conn.execute(
        "SELECT t.id, t.name, t.color FROM tags t "
        "INNER JOIN project_tags pt ON t.id = pt.tag_id "
        "WHERE pt.project_id = ? ORDER BY t.name ASC",
        (project_id,),
    ).fetchall()
    return [_tag_from_row(r) for r in rows]


def _project_features(conn: sqlite3.Connection, project_id: ProjectId) -> list[Feature]:
    rows = conn.execute(
        f"SELECT {_FEATURE_COLUMNS} FROM features WHERE project_id = ? "
        "ORDER BY created_at DESC, id DESC",
        (project_id,),
    ).fetchall()
    return [_feature_from_row(r) for r in rows]


@dataclass(frozen=True, slots=True)
class SqliteDatabase(ProjectDatabase):
    """
    SQLite-backed ProjectDatabase.

    Parameters
    ----------
    pool:
        Shared connection pool. All copies of a handle share it.

    Notes
    -----
    Construct through open_database() so the schema is migrated first.
    """

    pool: SqliteConnectionPool

    def clone(self) -> "SqliteDatabase":
        """Return another handle over the same pool."""
        return SqliteDatabase(pool=self.pool)

    def __copy__(self) -> "SqliteDatabase":
        return self.clone()

    # ---------- projects ----------
    async def create_project(self, name: str, description: str | None = None) -> Project:
        """See ProjectDatabase.create_project."""
        return await asyncio.to_thread(self._create_project, name, description)

    def _create_project(self, name: str, description: str | None) -> Project:
        cleaned = _require_text(name, "Project name", operation="create_project")
        desc = description.strip() if description is not None else None
        with _translate_errors("create_project"), self.pool.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO projects(name, description) VALUES(?, ?)",
                (cleaned, desc or None),
            )
            row = conn.execute(
                f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
        return _project_from_row(row)

    async def list_projects_with_relations(self) -> list[ProjectRelations]:
        """See ProjectDatabase.list_projects_with_relations."""
        return await asyncio.to_thread(self._list_projects_with_relations)

    def _list_projects_with_relations(self) -> list[ProjectRelations]:
        with _translate_errors("list_projects_with_relations"), self.pool.transaction(
            write=False
        ) as conn:
            projects = [
                _project_from_row(r)
                for r in conn.execute(
                    f"SELECT {_PROJECT_COLUMNS} FROM projects ORDER BY created_at DESC, id DESC"
                ).fetchall()
            ]
            result: list[ProjectRelations] = []
            for project in projects:
                tags = tuple(_project_tags(conn, project.id))
                features = tuple(_project_features(conn, project.id))
                result.append((project, tags, features))
        return result

    async def delete_project(self, project_id: ProjectId) -> None:
        """See ProjectDatabase.delete_project. Features and tag links cascade."""
        await asyncio.to_thread(self._delete_project, project_id)

    def _delete_project(self, project_id: ProjectId) -> None:
        with _translate_errors("delete_project", project_id), self.pool.transaction() as conn:
            cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            if cur.rowcount == 0:
                raise NotFoundError(
                    f"Unknown project id: {project_id}",
                    operation="delete_project",
                    entity_id=project_id,
                )

    # ---------- tags ----------
    async def create_tag(self, name: str, color: str | None = None) -> Tag:
        """See ProjectDatabase.create_tag. Duplicate names raise ConflictError."""
        return await asyncio.to_thread(self._create_tag, name, color)

    def _create_tag(self, name: str, color: str | None) -> Tag:
        cleaned = _require_text(name, "Tag name", operation="create_tag")
        with _translate_errors("create_tag"), self.pool.transaction() as conn:
            existing = conn.execute("SELECT 1 FROM tags WHERE name = ?", (cleaned,)).fetchone()
            if existing is not None:
                raise ConflictError(f"Tag already exists: {cleaned!r}", operation="create_tag")
            cur = conn.execute("INSERT INTO tags(name, color) VALUES(?, ?)", (cleaned, color))
            row = conn.execute(
                "SELECT id, name, color FROM tags WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
        return _tag_from_row(row)

    async def list_tags(self) -> list[Tag]:
        """See ProjectDatabase.list_tags."""
        return await asyncio.to_thread(self._list_tags)

    def _list_tags(self) -> list[Tag]:
        with _translate_errors("list_tags"), self.pool.connection() as conn:
            rows = conn.execute("SELECT id, name, color FROM tags ORDER BY name ASC").fetchall()
        return [_tag_from_row(r) for r in rows]

    async def list_project_tags(self, project_id: ProjectId) -> list[Tag]:
        """See ProjectDatabase.list_project_tags."""
        return await asyncio.to_thread(self._list_project_tags, project_id)

    def _list_project_tags(self, project_id: ProjectId) -> list[Tag]:
        with _translate_errors("list_project_tags", project_id), self.pool.transaction(
            write=False
        ) as conn:
            _assert_project(conn, project_id, "list_project_tags")
            return _project_tags(conn, project_id)

    async def attach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        """See ProjectDatabase.attach_tag."""
        await asyncio.to_thread(self._attach_tag, project_id, tag_id)

    def _attach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        with _translate_errors("attach_tag", project_id), self.pool.transaction() as conn:
            _assert_project(conn, project_id, "attach_tag")
            _assert_tag(conn, tag_id, "attach_tag")
            conn.execute(
                "INSERT OR IGNORE INTO project_tags(project_id, tag_id) VALUES(?, ?)",
                (project_id, tag_id),
            )

    async def detach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        """See ProjectDatabase.detach_tag."""
        await asyncio.to_thread(self._detach_tag, project_id, tag_id)

    def _detach_tag(self, project_id: ProjectId, tag_id: TagId) -> None:
        with _translate_errors("detach_tag", project_id), self.pool.transaction() as conn:
            _assert_project(conn, project_id, "detach_tag")
            _assert_tag(conn, tag_id, "detach_tag")
            conn.execute(
                "DELETE FROM project_tags WHERE project_id = ? AND tag_id = ?",
                (project_id, tag_id),
            )

    # ---------- features ----------
    async def add_feature(self, project_id: ProjectId, description: str) -> Feature:
        """See ProjectDatabase.add_feature."""
        return await asyncio.to_thread(self._add_feature, project_id, description)

    def _add_feature(self, project_id: ProjectId, description: str) -> Feature:
        cleaned = _require_text(description, "Feature description", operation="add_feature")
        with _translate_errors("add_feature", project_id), self.pool.transaction() as conn:
            _assert_project(conn, project_id, "add_feature")
            cur = conn.execute(
                "INSERT INTO features(project_id, description) VALUES(?, ?)",
                (project_id, cleaned),
            )
            row = conn.execute(
                f"SELECT {_FEATURE_COLUMNS} FROM features WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
        return _feature_from_row(row)

    async def list_features(self, project_id: ProjectId) -> list[Feature]:
        """See ProjectDatabase.list_features."""
        return await asyncio.to_thread(self._list_features, project_id)

    def _list_features(self, project_id: ProjectId) -> list[Feature]:
        with _translate_errors("list_features", project_id), self.pool.transaction(
            write=False
        ) as conn:
            _assert_project(conn, project_id, "list_features")
            return _project_features(conn, project_id)

    async def remove_feature(self, feature_id: FeatureId) -> None:
        """See ProjectDatabase.remove_feature."""
        await asyncio.to_thread(self._remove_feature, feature_id)

    def _remove_feature(self, feature_id: FeatureId) -> None:
        with _translate_errors("remove_feature", feature_id), self.pool.transaction() as conn:
            cur = conn.execute("DELETE FROM features WHERE id = ?", (feature_id,))
            if cur.rowcount == 0:
                raise NotFoundError(
                    f"Unknown feature id: {feature_id}",
                    operation="remove_feature",
                    entity_id=feature_id,
                )

    async def set_feature_completed(self, feature_id: FeatureId, completed: bool) -> Feature:
        """See ProjectDatabase.set_feature_completed."""
        return await asyncio.to_thread(self._set_feature_completed, feature_id, completed)

    def _set_feature_completed(self, feature_id: FeatureId, completed: bool) -> Feature:
        operation = "set_feature_completed"
        with _translate_errors(operation, feature_id), self.pool.transaction() as conn:
            cur = conn.execute(
                "UPDATE features SET completed = ? WHERE id = ?",
                (1 if completed else 0, feature_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(
                    f"Unknown feature id: {feature_id}", operation=operation, entity_id=feature_id
                )
            row = conn.execute(
                f"SELECT {_FEATURE_COLUMNS} FROM features WHERE id = ?", (feature_id,)
            ).fetchone()
        return _feature_from_row(row)

    async def close(self) -> None:
        """Close the shared pool. Affects every copy of this handle."""
        await asyncio.to_thread(self.pool.close)


def open_database_sync(db_path: Path) -> SqliteDatabase:
    """
    Open (creating if needed) and migrate the database at db_path.

    Raises
    ------
    StorageIOError
        If the file cannot be created or opened.
    MigrationError
        If a migration step fails.
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageIOError(
            f"Cannot create data directory {db_path.parent}: {exc}", operation="open_database"
        ) from exc

    if not db_path.exists():
        log.info("Creating database at %s", db_path)

    pool = SqliteConnectionPool(db_path)
    try:
        with _translate_errors("apply_migrations"), pool.connection() as conn:
            apply_migrations(conn)
    except (MigrationError, StorageIOError):
        pool.close()
        raise
    log.info("Database ready at %s", db_path)
    return SqliteDatabase(pool=pool)


async def open_database(data_root: Path | None = None) -> SqliteDatabase:
    """
    Resolve the platform data directory, ensure it exists, and open the store.

    Parameters
    ----------
    data_root:
        Optional override for the data root.

    Returns
    -------
    SqliteDatabase
        Ready-to-use handle with migrations applied.
    """
    paths = resolve_data_paths(data_root)
    try:
        await asyncio.to_thread(ensure_data_directories, paths)
    except OSError as exc:
        raise StorageIOError(
            f"Cannot create data directory {paths.data_root}: {exc}", operation="open_database"
        ) from exc
    return await asyncio.to_thread(open_database_sync, paths.database_path)
