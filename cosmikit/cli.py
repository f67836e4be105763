"""
Command-line interface for Cosmikit.

Notes
-----
The CLI is intentionally thin. It parses arguments, opens storage through the
same AppData service the GUI uses, and prints plain tab-separated lines.

Exit codes
----------
- 0: success.
- 2: any CosmikitError (not found, conflict, invalid input, storage failure).
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime
from pathlib import Path

from kit_engine.data_service import AppData
from kit_engine.errors import CosmikitError
from kit_engine.init_storage import init_storage
from kit_engine.paths import data_paths_as_text
from kit_engine.store.sqlite_store import open_database


def _add_data_root(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--data-root",
        default=None,
        help="Override the Cosmikit data root (primarily for testing). If omitted, defaults are used.",
    )


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="cosmikit",
        description="Creative toolkit: project manager and character generator",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gui_p = sub.add_parser("gui", help="Launch the desktop application")
    _add_data_root(gui_p)

    init_p = sub.add_parser("init", help="Create the data directory and database")
    _add_data_root(init_p)
    init_p.add_argument(
        "--print-path",
        action="store_true",
        help="Print resolved paths after initialization",
    )

    projects_p = sub.add_parser("projects", help="List, add or delete projects")
    projects_sub = projects_p.add_subparsers(dest="action", required=True)
    p = projects_sub.add_parser("list", help="List projects, newest first")
    _add_data_root(p)
    p = projects_sub.add_parser("add", help="Create a project")
    p.add_argument("name", help="Project name (must not be blank)")
    p.add_argument("--description", default=None, help="Optional description")
    _add_data_root(p)
    p = projects_sub.add_parser("delete", help="Delete a project with its features and tag links")
    p.add_argument("project_id", type=int)
    _add_data_root(p)

    tags_p = sub.add_parser("tags", help="List, add, attach or detach tags")
    tags_sub = tags_p.add_subparsers(dest="action", required=True)
    p = tags_sub.add_parser("list", help="List tags by name")
    _add_data_root(p)
    p = tags_sub.add_parser("add", help="Create a tag (names are unique)")
    p.add_argument("name")
    p.add_argument("--color", default=None, help="Optional display color, e.g. #ff8800")
    _add_data_root(p)
    for action, help_text in (("attach", "Attach a tag to a project"), ("detach", "Detach a tag")):
        p = tags_sub.add_parser(action, help=help_text)
        p.add_argument("project_id", type=int)
        p.add_argument("tag_id", type=int)
        _add_data_root(p)

    features_p = sub.add_parser("features", help="List, add, remove or complete features")
    features_sub = features_p.add_subparsers(dest="action", required=True)
    p = features_sub.add_parser("list", help="List a project's features, newest first")
    p.add_argument("project_id", type=int)
    _add_data_root(p)
    p = features_sub.add_parser("add", help="Add a feature to a project")
    p.add_argument("project_id", type=int)
    p.add_argument("description")
    _add_data_root(p)
    p = features_sub.add_parser("remove", help="Remove a feature")
    p.add_argument("feature_id", type=int)
    _add_data_root(p)
    p = features_sub.add_parser("done", help="Mark a feature completed")
    p.add_argument("feature_id", type=int)
    p.add_argument("--undo", action="store_true", help="Mark it not completed instead")
    _add_data_root(p)

    return parser


def _format_time(epoch_seconds: int) -> str:
    return datetime.fromtimestamp(epoch_seconds).strftime("%Y-%m-%d %H:%M")


async def _execute(data: AppData, args: argparse.Namespace) -> list[str]:
    command, action = args.command, args.action

    if command == "projects":
        if action == "list":
            lines = []
            for project, tags, features in (await data.load_projects()).values():
                done = sum(1 for f in features if f.completed)
                lines.append(
                    "\t".join(
                        (
                            str(project.id),
                            project.name,
                            project.description or "",
                            ",".join(t.name for t in tags),
                            f"{done}/{len(features)}",
                            _format_time(project.created_at),
                        )
                    )
                )
            return lines
        if action == "add":
            project = await data.create_project(args.name, args.description)
            return [f"Created project {project.id}: {project.name}"]
        if action == "delete":
            await data.delete_project(args.project_id)
            return [f"Deleted project {args.project_id}"]

    if command == "tags":
        if action == "list":
            return [f"{t.id}\t{t.name}\t{t.color or ''}" for t in await data.list_tags()]
        if action == "add":
            tag = await data.create_tag(args.name, args.color)
            return [f"Created tag {tag.id}: {tag.name}"]
        if action == "attach":
            await data.attach_tag(args.project_id, args.tag_id)
            return [f"Attached tag {args.tag_id} to project {args.project_id}"]
        if action == "detach":
            await data.detach_tag(args.project_id, args.tag_id)
            return [f"Detached tag {args.tag_id} from project {args.project_id}"]

    if command == "features":
        if action == "list":
            return [
                f"{f.id}\t[{'x' if f.completed else ' '}]\t{f.description}"
                for f in await data.list_features(args.project_id)
            ]
        if action == "add":
            feature = await data.add_feature(args.project_id, args.description)
            return [f"Added feature {feature.id} to project {feature.project_id}"]
        if action == "remove":
            await data.remove_feature(args.feature_id)
            return [f"Removed feature {args.feature_id}"]
        if action == "done":
            feature = await data.set_feature_completed(args.feature_id, not args.undo)
            state = "done" if feature.completed else "not done"
            return [f"Feature {feature.id} marked {state}"]

    raise ValueError(f"Unhandled command: {command} {action}")


async def run_store_command(args: argparse.Namespace, data_root: Path | None) -> list[str]:
    """
    Open storage, run one projects/tags/features command and close storage.

    Returns
    -------
    list[str]
        Output lines.

    Raises
    ------
    CosmikitError
        On any storage failure or rejected operation.
    """
    data = AppData()
    data.set_database(await open_database(data_root))
    try:
        return await _execute(data, args)
    finally:
        await data.close()


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    data_root = Path(args.data_root) if args.data_root else None

    if args.command == "gui":
        # Qt is imported only when the GUI is actually requested.
        from gui.app import main as gui_main

        return gui_main(data_root=data_root)

    if args.command == "init":
        try:
            paths = init_storage(data_root=data_root)
        except CosmikitError as exc:
            print(f"ERROR: {exc}")
            return 2
        if args.print_path:
            print(data_paths_as_text(paths))
        return 0

    try:
        lines = asyncio.run(run_store_command(args, data_root))
    except CosmikitError as exc:
        print(f"ERROR: {exc}")
        return 2
    for line in lines:
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
