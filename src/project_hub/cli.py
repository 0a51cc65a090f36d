from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from .board.graph import DependencyCycleError, DependencyError
from .board.model import ReminderOffset, TaskPriority, TaskStatus
from .hub.container import HubContainer
from .hub.models import Project, ProjectStatus

DEFAULT_LOG_LEVEL = "WARNING"


def _configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure loguru logger (and stdlib logging) with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s | %(levelname)-8s | %(name)s\n%(message)s",
        force=True,
    )


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _hub(args: argparse.Namespace) -> HubContainer:
    return HubContainer(_resolve_project_dir(args.project_dir))


def _emit(payload: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')


def _fail(message: str) -> int:
    sys.stderr.write(message + '\n')
    return 1


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

def _project_create(args: argparse.Namespace) -> int:
    hub = _hub(args)
    project = Project.from_dict({
        'name': args.name,
        'description': args.description or '',
        'start_date': args.start_date,
        'end_date': args.end_date,
        'status': args.status,
        'team': args.member or [],
    })
    hub.projects.upsert(project)
    _emit({'project': hub.project_view(project)})
    return 0


def _project_list(args: argparse.Namespace) -> int:
    hub = _hub(args)
    _emit({'projects': [hub.project_view(p) for p in hub.projects.list()]})
    return 0


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def _task_create(args: argparse.Namespace) -> int:
    hub = _hub(args)
    if hub.projects.get(args.project) is None:
        return _fail(f"Project {args.project} not found")
    task = hub.tasks.create_task(
        args.title,
        args.project,
        assignee_id=args.assignee or '',
        description=args.description or '',
        due_date=args.due or '',
        priority=args.priority,
        reminder=args.reminder,
    )
    _emit({'task': task.to_dict()})
    return 0


def _task_list(args: argparse.Namespace) -> int:
    hub = _hub(args)
    tasks = hub.tasks.list_tasks(
        project_id=args.project,
        status=args.status,
        assignee_id=args.assignee,
        search=args.search,
    )
    _emit({'tasks': [task.to_dict() for task in tasks]})
    return 0


def _task_move(args: argparse.Namespace) -> int:
    hub = _hub(args)
    task = hub.tasks.move_task(args.task_id, args.before, args.status)
    if task is None:
        return _fail(f"Task {args.task_id} not found")
    _emit({'task': task.to_dict()})
    return 0


def _task_delete(args: argparse.Namespace) -> int:
    hub = _hub(args)
    if not hub.delete_task(args.task_id):
        return _fail(f"Task {args.task_id} not found")
    _emit({'deleted': args.task_id})
    return 0


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def _dep_add(args: argparse.Namespace) -> int:
    hub = _hub(args)
    try:
        task = hub.tasks.add_dependency(args.task_id, args.depends_on)
    except DependencyCycleError as exc:
        return _fail(f"Rejected: {exc}")
    except DependencyError as exc:
        return _fail(str(exc))
    _emit({'task': task.to_dict()})
    return 0


def _dep_remove(args: argparse.Namespace) -> int:
    hub = _hub(args)
    task = hub.tasks.remove_dependency(args.task_id, args.depends_on)
    if task is None:
        return _fail(f"Task {args.task_id} not found")
    _emit({'task': task.to_dict()})
    return 0


# ---------------------------------------------------------------------------
# Board
# ---------------------------------------------------------------------------

def _card_label(card: dict[str, Any]) -> str:
    label = f"{card['title']} [dim]({card['id']})[/dim]"
    if card['isBlocked']:
        label += " [red]blocked[/red]"
    elif card['blockingCount']:
        label += f" [yellow]blocks {card['blockingCount']}[/yellow]"
    if card['isOverdue']:
        label += " [bold red]overdue[/bold red]"
    elif card['isDueSoon']:
        label += " [magenta]due soon[/magenta]"
    return label


def _board(args: argparse.Namespace) -> int:
    hub = _hub(args)
    project = hub.projects.get(args.project_id)
    if project is None:
        return _fail(f"Project {args.project_id} not found")
    columns = hub.board(args.project_id)
    if args.json:
        _emit({'project_id': args.project_id, 'columns': columns})
        return 0

    table = Table(title=f"{project.name} ({project.status.value})")
    for status in TaskStatus:
        table.add_column(f"{status.value} ({len(columns[status.value])})")
    depth = max((len(cards) for cards in columns.values()), default=0)
    for row in range(depth):
        table.add_row(*[
            _card_label(columns[status.value][row]) if row < len(columns[status.value]) else ""
            for status in TaskStatus
        ])
    Console(file=sys.stdout).print(table)
    return 0


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'project-hub[server]'\n")
        return 1

    from .server.api import create_app

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Project Hub CLI (boards, tasks and dependencies)')
    parser.add_argument('--project-dir', default=None, help='Hub directory (default: current working directory)')
    parser.add_argument(
        '--log-level',
        default=os.getenv('PROJECT_HUB_LOG_LEVEL', DEFAULT_LOG_LEVEL),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        type=str.upper,
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the web server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.add_argument('--reload', action='store_true')
    server.set_defaults(func=_server)

    project = subparsers.add_parser('project', help='Manage projects')
    project_sub = project.add_subparsers(dest='project_cmd', required=True)
    pcreate = project_sub.add_parser('create', help='Create a project')
    pcreate.add_argument('name')
    pcreate.add_argument('--description', default='')
    pcreate.add_argument('--start-date', default='')
    pcreate.add_argument('--end-date', default='')
    pcreate.add_argument('--status', default=ProjectStatus.ON_TRACK.value, choices=[s.value for s in ProjectStatus])
    pcreate.add_argument('--member', action='append', help='Team member user id (repeatable)')
    pcreate.set_defaults(func=_project_create)
    plist = project_sub.add_parser('list', help='List projects')
    plist.set_defaults(func=_project_list)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task at the end of the ToDo column')
    tcreate.add_argument('title')
    tcreate.add_argument('--project', required=True)
    tcreate.add_argument('--description', default='')
    tcreate.add_argument('--assignee', default='')
    tcreate.add_argument('--due', default='', help='Due date (YYYY-MM-DD)')
    tcreate.add_argument('--priority', default=TaskPriority.MEDIUM.value, choices=[p.value for p in TaskPriority])
    tcreate.add_argument('--reminder', default=None, choices=[r.value for r in ReminderOffset])
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List tasks')
    tlist.add_argument('--project', default=None)
    tlist.add_argument('--status', default=None, choices=[s.value for s in TaskStatus])
    tlist.add_argument('--assignee', default=None)
    tlist.add_argument('--search', default=None)
    tlist.set_defaults(func=_task_list)
    tmove = task_sub.add_parser('move', help='Move a task to a column, before another task or at the end')
    tmove.add_argument('task_id')
    tmove.add_argument('--status', required=True, choices=[s.value for s in TaskStatus])
    tmove.add_argument('--before', default=None, help='Drop before this task id (default: append)')
    tmove.set_defaults(func=_task_move)
    tdelete = task_sub.add_parser('delete', help='Delete a task')
    tdelete.add_argument('task_id')
    tdelete.set_defaults(func=_task_delete)

    dep = subparsers.add_parser('dep', help='Manage task dependencies')
    dep_sub = dep.add_subparsers(dest='dep_cmd', required=True)
    dadd = dep_sub.add_parser('add', help='Make TASK_ID wait on DEPENDS_ON')
    dadd.add_argument('task_id')
    dadd.add_argument('depends_on')
    dadd.set_defaults(func=_dep_add)
    dremove = dep_sub.add_parser('remove', help='Remove a dependency edge')
    dremove.add_argument('task_id')
    dremove.add_argument('depends_on')
    dremove.set_defaults(func=_dep_remove)

    board = subparsers.add_parser('board', help='Show a project board')
    board.add_argument('project_id')
    board.add_argument('--json', action='store_true', help='Print the columns as JSON')
    board.set_defaults(func=_board)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == '__main__':
    raise SystemExit(main())
