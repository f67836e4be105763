"""SQLite schema and forward-only migrations for the project store.

Notes
-----
Migrations are applied in version order at startup. Each applied version is
recorded in `schema_migrations`, so re-running startup is a no-op. There are
no down-migrations; an incompatible change bumps paths.DB_VERSION instead.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from ..errors import MigrationError

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Migration:
    """One forward-only schema step."""

    version: int
    description: str
    sql: str


MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version     INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at  INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
);
"""

SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS projects (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    description TEXT,
    created_at  INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
);

CREATE TABLE IF NOT EXISTS tags (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    name  TEXT NOT NULL UNIQUE,
    color TEXT
);

CREATE TABLE IF NOT EXISTS project_tags (
    project_id INTEGER NOT NULL,
    tag_id     INTEGER NOT NULL,
    PRIMARY KEY (project_id, tag_id),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE,
    FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS features (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  INTEGER NOT NULL,
    description TEXT NOT NULL,
    completed   INTEGER NOT NULL DEFAULT 0,
    created_at  INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_project_tags_project ON project_tags(project_id);
CREATE INDEX IF NOT EXISTS idx_project_tags_tag ON project_tags(tag_id);
CREATE INDEX IF NOT EXISTS idx_features_project ON features(project_id);
CREATE INDEX IF NOT EXISTS idx_features_completed ON features(completed);
"""

SCHEMA_V2 = """
CREATE INDEX IF NOT EXISTS idx_projects_created_at ON projects(created_at);
"""

MIGRATIONS: tuple[Migration, ...] = (
    Migration(version=1, description="initial schema", sql=SCHEMA_V1),
    Migration(version=2, description="index projects by creation time", sql=SCHEMA_V2),
)


def applied_versions(conn: sqlite3.Connection) -> set[int]:
    """Return the set of migration versions already recorded."""
    conn.executescript(MIGRATIONS_TABLE)
    rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
    return {int(r[0]) for r in rows}


def apply_migrations(
    conn: sqlite3.Connection, migrations: tuple[Migration, ...] = MIGRATIONS
) -> list[int]:
    """
    Apply every migration that has not been recorded yet.

    Parameters
    ----------
    conn:
        Open connection in autocommit mode (isolation_level=None).
    migrations:
        Ordered migration steps.

    Returns
    -------
    list[int]
        Versions applied by this call; empty when the schema was current.

    Raises
    ------
    MigrationError
        If any step fails. The failing step is rolled back; earlier steps stay.
    """
    done = applied_versions(conn)
    applied: list[int] = []
    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version in done:
            continue
        try:
            conn.execute("BEGIN")
            for statement in _split_statements(migration.sql):
                conn.execute(statement)
            conn.execute(
                "INSERT INTO schema_migrations(version, description) VALUES(?, ?)",
                (migration.version, migration.description),
            )
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            conn.execute("ROLLBACK")
            raise MigrationError(
                f"Migration {migration.version} ({migration.description}) failed: {exc}",
                operation="apply_migrations",
            ) from exc
        log.info("Applied migration %s: %s", migration.version, migration.description)
        applied.append(migration.version)
    return applied


def _split_statements(sql: str) -> list[str]:
    # executescript() would commit implicitly; run statements one by one so the
    # whole step stays inside a single transaction.
    statements: list[str] = []
    buffer = ""
    for line in sql.splitlines():
        buffer += line + "\n"
        if sqlite3.complete_statement(buffer):
            if buffer.strip():
                statements.append(buffer.strip())
            buffer = ""
    if buffer.strip():
        statements.append(buffer.strip())
    return statements
