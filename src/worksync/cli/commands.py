# src/worksync/cli/commands.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from ..core.models import Task, TaskPhase, TaskPriority, TaskStatus, User, UserRole
from .bootstrap import AppState

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)

SHORT_ID = 8


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}
        self._admin_only: set[str] = set()

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
        admin_only: bool = False,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler
        if admin_only:
            self._admin_only.add(key)
            self._admin_only.update(a.lower() for a in aliases)

    async def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        if name in self._admin_only and not state.session.is_admin:
            return f"/{name} is only available to administrators."

        return await handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            suffix = " (admin)" if name in self._admin_only else ""
            lines.append(f"  /{name} - {help_text}{suffix}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting / lookup helpers ----


def _short(entity_id: str) -> str:
    return entity_id[:SHORT_ID]


def _fmt_ts(ts: int | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts / 1000).astimezone().strftime("%Y-%m-%d %H:%M")


def _fmt_task_line(task: Task) -> str:
    overdue = " OVERDUE" if task.is_overdue() else ""
    assignee = task.assigned_to_name or _short(task.assigned_to)
    return (
        f"[{_short(task.id)}] {task.title} - {task.status.value} {task.completion_percentage}% "
        f"({task.priority.value}) -> {assignee}{overdue}"
    )


def _fmt_phase_line(phase: TaskPhase) -> str:
    mark = "x" if phase.is_completed else " "
    custom = " (custom)" if phase.is_custom else ""
    return f"  [{mark}] {phase.order}. {phase.title}{custom} [{_short(phase.id)}]"


def _visible_tasks(state: AppState) -> list[Task]:
    user = state.session.user
    if user is None:
        return []
    if user.is_admin:
        return state.task_repository.get_all_tasks().snapshot()
    return state.task_repository.get_tasks_assigned_to_user(user.id).snapshot()


def _resolve_task(state: AppState, token: str) -> Task | None:
    """Exact id, else a unique id prefix; only among the tasks the user can see."""
    visible = _visible_tasks(state)
    for task in visible:
        if task.id == token:
            return task
    matches = [t for t in visible if t.id.startswith(token)]
    return matches[0] if len(matches) == 1 else None


def _resolve_phase(state: AppState, token: str) -> TaskPhase | None:
    matches = [p for t in _visible_tasks(state) for p in t.phases if p.id == token or p.id.startswith(token)]
    exact = [p for p in matches if p.id == token]
    if exact:
        return exact[0]
    return matches[0] if len(matches) == 1 else None


def _parse_status(raw: str) -> TaskStatus | None:
    """Status by value or name ("review", "IN_PROGRESS"); None for anything unknown."""
    status = TaskStatus.parse(raw)
    if status.value != raw.lower() and status.name != raw.upper():
        return None
    return status


def _unknown_status(raw: str) -> str:
    return f"Unknown status: {raw}. Use one of: {', '.join(s.value for s in TaskStatus)}"


def _take_message(state: AppState, vm_name: str) -> str:
    """Read (and clear) the last error/success message of the auth or task view model."""
    vm = getattr(state, vm_name)
    s = vm.state.value
    msg = s.error_message or s.success_message or "Done."
    vm.clear_messages()
    return msg


def _parse_deadline(raw: str) -> int | None:
    """'3d' (days from now) or an ISO date 'YYYY-MM-DD'."""
    s = raw.strip().lower()
    if s.endswith("d") and s[:-1].isdigit():
        return int((datetime.now() + timedelta(days=int(s[:-1]))).timestamp() * 1000)
    try:
        return int(datetime.fromisoformat(s).timestamp() * 1000)
    except ValueError:
        return None


# ---- commands ----


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    user = state.session.user
    who = f"{user.name} <{user.email}> ({user.role.value})" if user else "not logged in"
    interval = float(getattr(state.settings, "sync_interval_seconds", 0) or 0)
    sync = f"every {interval:g}s" if interval > 0 else "manual"
    return (
        "Status:\n"
        f"  User: {who}\n"
        f"  Remote: {type(state.remote).__name__}\n"
        f"  Identity: {type(state.identity).__name__}\n"
        f"  Cached tasks: {state.cache.count_tasks()}\n"
        f"  Sync: {sync}"
    )


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    await state.auth_vm.login(args[0], args[1])
    return _take_message(state, "auth_vm")


async def cmd_register(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /register <email> <password> <confirm> <admin|employee> <name...>
    """
    if len(args) < 5:
        return "Usage: /register <email> <password> <confirm> <admin|employee> <name...>"
    email, password, confirm, role_raw = args[:4]
    role = UserRole.parse(role_raw)
    await state.auth_vm.register(email, password, confirm, " ".join(args[4:]), role)
    return _take_message(state, "auth_vm")


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.session.is_authenticated:
        return "You are not logged in."
    await state.auth_vm.logout()
    return _take_message(state, "auth_vm")


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tasks             -> tasks you can see (admins: all)
    /tasks <status>    -> only that status
    /tasks overdue     -> overdue tasks
    """
    if not state.session.is_authenticated:
        return "You are not logged in."

    if args and args[0].lower() == "overdue":
        tasks = [t for t in _visible_tasks(state) if t.is_overdue()]
    else:
        tasks = _visible_tasks(state)
        if args:
            status = _parse_status(args[0])
            if status is None:
                return _unknown_status(args[0])
            tasks = [t for t in tasks if t.status == status]

    if not tasks:
        return "No tasks."
    return "\n".join(_fmt_task_line(t) for t in tasks)


async def cmd_task(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.session.is_authenticated:
        return "You are not logged in."
    if not args:
        return "Usage: /task <task_id>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"Task not found: {args[0]}"

    lines = [
        f"{task.title} [{task.id}]",
        f"  {task.description}",
        f"  Status: {task.status.value}  Progress: {task.completion_percentage}%  Priority: {task.priority.value}",
        f"  Assigned to: {task.assigned_to_name or task.assigned_to}  by: {task.assigned_by_name or task.assigned_by}",
        f"  Deadline: {_fmt_ts(task.deadline)}  Updated: {_fmt_ts(task.updated_at)}",
    ]
    if task.tags:
        lines.append(f"  Tags: {', '.join(task.tags)}")
    lines.append("  Phases:")
    lines.extend(_fmt_phase_line(p) for p in task.phases)
    return "\n".join(lines)


async def _find_assignee(state: AppState, token: str) -> User | None:
    user = state.user_repository.get_user_by_email(token) or state.user_repository.get_user_by_id(token)
    if user is not None:
        return user
    for u in await state.user_vm.load_employees():
        if u.email == token or u.id == token or u.id.startswith(token):
            return u
    return None


async def cmd_new(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /new <assignee> <priority> [deadline] <title> | <description>
    """
    usage = "Usage: /new <assignee email|id> <low|medium|high|urgent> [3d|YYYY-MM-DD] <title> | <description>"
    if len(args) < 3:
        return usage

    assignee = await _find_assignee(state, args[0])
    if assignee is None:
        return f"No active employee matches {args[0]}."

    priority = TaskPriority.parse(args[1])
    rest = args[2:]
    deadline = _parse_deadline(rest[0]) if rest else None
    if deadline is not None:
        rest = rest[1:]

    text = " ".join(rest)
    title, _, description = text.partition("|")

    created = await state.task_vm.create_task(
        title=title.strip(),
        description=description.strip(),
        assigned_to=assignee.id,
        assigned_to_name=assignee.name,
        priority=priority,
        deadline=deadline,
    )
    msg = _take_message(state, "task_vm")
    return f"{msg} [{_short(created.id)}]" if created else msg


async def cmd_phase(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /phase <task_id> <title> [| description]"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"Task not found: {args[0]}"
    title, _, description = " ".join(args[1:]).partition("|")
    await state.task_vm.add_phase_to_task(task.id, title.strip(), description.strip())
    return _take_message(state, "task_vm")


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /done <phase_id>"
    phase = _resolve_phase(state, args[0])
    if phase is None:
        return f"Phase not found: {args[0]}"
    await state.task_vm.mark_phase_completed(phase.id)
    return _take_message(state, "task_vm")


async def cmd_progress(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return "Usage: /progress <task_id> <0-100>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"Task not found: {args[0]}"
    try:
        pct = int(args[1].rstrip("%"))
    except ValueError:
        return "Progress must be a whole number between 0 and 100."
    await state.task_vm.update_task_progress(task.id, pct)
    return _take_message(state, "task_vm")


async def cmd_setstatus(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return f"Usage: /setstatus <task_id> <{'|'.join(s.value for s in TaskStatus)}>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"Task not found: {args[0]}"
    status = _parse_status(args[1])
    if status is None:
        return _unknown_status(args[1])
    await state.task_vm.update_task_status(task.id, status, refresh_selected=True)
    return _take_message(state, "task_vm")


async def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /delete <task_id>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"Task not found: {args[0]}"
    await state.task_vm.delete_task(task.id)
    return _take_message(state, "task_vm")


async def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.session.is_authenticated:
        return "You are not logged in."
    if emit:
        with contextlib.suppress(Exception):
            emit("[SYNC] Pulling tasks from the remote store...")
    res = await state.task_vm.sync_tasks()
    if not res.ok:
        return _take_message(state, "task_vm")
    ures = await state.user_repository.sync_users()
    users = f", {ures.value} users" if ures.ok else f" (users: {ures.error})"
    return f"Synced {res.value} tasks{users}."


async def cmd_users(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /users            -> all active users
    /users employees  -> active employees only
    """
    if args and args[0].lower().startswith("emp"):
        users = await state.user_vm.load_employees()
    else:
        users = await state.user_vm.load_all_users()
    err = state.user_vm.state.value.error_message
    if not users:
        return err or "No users found"
    return "\n".join(f"[{_short(u.id)}] {u.name} <{u.email}> ({u.role.value})" for u in users)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session and backend status.")
registry.register("login", cmd_login, help_text="Log in: /login <email> <password>.")
registry.register(
    "register",
    cmd_register,
    help_text="Create an account: /register <email> <password> <confirm> <admin|employee> <name...>.",
)
registry.register("logout", cmd_logout, help_text="Log out and clear cached users.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [status|overdue].", aliases=["ls"])
registry.register("task", cmd_task, help_text="Show one task with its phases: /task <id>.")
registry.register(
    "new",
    cmd_new,
    help_text="Create a task: /new <assignee> <priority> [deadline] <title> | <description>.",
    admin_only=True,
)
registry.register(
    "phase", cmd_phase, help_text="Add a custom phase: /phase <task_id> <title> [| description].", admin_only=True
)
registry.register("done", cmd_done, help_text="Mark a phase completed: /done <phase_id>.")
registry.register(
    "progress", cmd_progress, help_text="Set progress: /progress <task_id> <0-100>.", admin_only=True
)
registry.register(
    "setstatus", cmd_setstatus, help_text="Set status: /setstatus <task_id> <status>.", admin_only=True
)
registry.register("delete", cmd_delete, help_text="Delete a task and its phases: /delete <task_id>.", admin_only=True)
registry.register("sync", cmd_sync, help_text="Pull tasks and users from the remote store.")
registry.register("users", cmd_users, help_text="List active users: /users [employees].", admin_only=True)
