from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Awaitable, Optional

from .cache import FileCache
from .config import get_cache_settings, load_config
from .constants import MAX_PAGE_SIZE, STATE_DIR_NAME
from .errors import DependencyRejectedError, EntityNotFoundError
from .logging_utils import configure_logging
from .server import create_app
from .storage import FileStore
from .task_engine.engine import TaskEngine


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _engine(args: argparse.Namespace) -> TaskEngine:
    project_dir = _resolve_project_dir(args.project_dir)
    config, err = load_config(project_dir)
    if err:
        sys.stderr.write(f"Ignoring invalid config: {err}\n")
    state_dir = project_dir / STATE_DIR_NAME
    return TaskEngine(FileStore(state_dir), FileCache(state_dir), get_cache_settings(config))


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f'invalid int value: {raw!r}')
    if value < 1:
        raise argparse.ArgumentTypeError(f'must be >= 1, got {value}')
    return value


def _page_size(raw: str) -> int:
    value = _positive_int(raw)
    if value > MAX_PAGE_SIZE:
        raise argparse.ArgumentTypeError(f'must be <= {MAX_PAGE_SIZE}, got {value}')
    return value


def _emit(payload: dict[str, Any]) -> int:
    sys.stdout.write(json.dumps(payload, indent=2) + '\n')
    return 0


def _run(call: Awaitable[Any]) -> tuple[Any, Optional[str]]:
    try:
        return asyncio.run(call), None
    except (EntityNotFoundError, DependencyRejectedError) as exc:
        return None, str(exc)


def _task_create(args: argparse.Namespace) -> int:
    task, err = _run(_engine(args).create_task(
        args.title,
        description=args.description,
        priority=args.priority,
        status=args.status,
        due_date=args.due_date,
    ))
    if err:
        sys.stderr.write(err + '\n')
        return 1
    return _emit({'task': task.to_dict()})


def _task_list(args: argparse.Namespace) -> int:
    tasks, _ = _run(_engine(args).list_tasks(args.page, args.page_size))
    return _emit({'tasks': [t.to_dict() for t in tasks]})


def _task_get(args: argparse.Namespace) -> int:
    task, err = _run(_engine(args).get_task(args.task_id))
    if err:
        sys.stderr.write(err + '\n')
        return 1
    return _emit({'task': task.to_dict()})


def _task_delete(args: argparse.Namespace) -> int:
    task, err = _run(_engine(args).delete_task(args.task_id))
    if err:
        sys.stderr.write(err + '\n')
        return 1
    return _emit({'deleted': task.id})


def _dep_add(args: argparse.Namespace) -> int:
    dep, err = _run(_engine(args).create_dependency(args.task_id, args.depends_on))
    if err:
        sys.stderr.write(err + '\n')
        return 1
    return _emit({'dependency': dep.to_dict()})


def _dep_list(args: argparse.Namespace) -> int:
    deps, _ = _run(_engine(args).list_dependencies(args.page, args.page_size))
    return _emit({'dependencies': [d.to_dict() for d in deps]})


def _dep_delete(args: argparse.Namespace) -> int:
    dep, err = _run(_engine(args).delete_dependency(args.dependency_id))
    if err:
        sys.stderr.write(err + '\n')
        return 1
    return _emit({'deleted': dep.id})


def _server(args: argparse.Namespace) -> int:
    import uvicorn

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Todo dependency API CLI')
    parser.add_argument('--project-dir', default=None, help='Target project directory (default: current working directory)')
    parser.add_argument('--log-level', default='WARNING', help='Log level (default: WARNING)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the web server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.add_argument('--reload', action='store_true')
    server.set_defaults(func=_server)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('title')
    tcreate.add_argument('--description', default='')
    tcreate.add_argument('--priority', default='P2')
    tcreate.add_argument('--status', default='todo')
    tcreate.add_argument('--due-date', default=None, help='ISO-8601 due date')
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List one page of tasks, newest first')
    tlist.add_argument('--page', default=1, type=_positive_int)
    tlist.add_argument('--page-size', default=None, type=_page_size)
    tlist.set_defaults(func=_task_list)
    tget = task_sub.add_parser('get', help='Show a task')
    tget.add_argument('task_id', type=int)
    tget.set_defaults(func=_task_get)
    tdelete = task_sub.add_parser('delete', help='Delete a task and its dependencies')
    tdelete.add_argument('task_id', type=int)
    tdelete.set_defaults(func=_task_delete)

    dep = subparsers.add_parser('dep', help='Manage task dependencies')
    dep_sub = dep.add_subparsers(dest='dep_cmd', required=True)
    dadd = dep_sub.add_parser('add', help='Make TASK_ID depend on DEPENDS_ON')
    dadd.add_argument('task_id', type=int)
    dadd.add_argument('depends_on', type=int)
    dadd.set_defaults(func=_dep_add)
    dlist = dep_sub.add_parser('list', help='List one page of dependencies')
    dlist.add_argument('--page', default=1, type=_positive_int)
    dlist.add_argument('--page-size', default=None, type=_page_size)
    dlist.set_defaults(func=_dep_list)
    ddelete = dep_sub.add_parser('delete', help='Delete a dependency')
    ddelete.add_argument('dependency_id', type=int)
    ddelete.set_defaults(func=_dep_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == '__main__':
    raise SystemExit(main())
