"""Task parsing, formatting and storage (Obsidian Tasks compatible)."""

from __future__ import annotations

from datetime import date
import logging
import re
from typing import Callable, Dict, List, Optional

from ..models.task import ParsedTask, Priority, TaskData, TaskQuery
from .config import AppConfig, get_config
from .errors import TaskError
from .vault import VaultService

logger = logging.getLogger(__name__)

PRIORITY_EMOJI: Dict[str, str] = {
    "highest": "🔺",
    "high": "⏫",
    "medium": "🔼",
    "low": "🔽",
    "lowest": "⏬",
}
EMOJI_TO_PRIORITY: Dict[str, Priority] = {emoji: name for name, emoji in PRIORITY_EMOJI.items()}  # type: ignore[misc]

TASK_LINE = re.compile(r"^(\s*)-\s*\[([ xX])\]\s*(.+)$")

DATE_PATTERNS = {
    "due": re.compile(r"(?:📅|due::?)\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    "scheduled": re.compile(r"(?:⏳|scheduled::?)\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    "start": re.compile(r"(?:🛫|start::?)\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    "done": re.compile(r"(?:✅|done::?)\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    "created": re.compile(r"(?:➕|created::?)\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
}
RECURRENCE_PATTERN = re.compile(r"(?:🔁|recurrence::?)\s*([^📅⏳🛫✅➕🔺⏫🔼🔽⏬\[\]]+)", re.IGNORECASE)
INLINE_PRIORITY = re.compile(r"priority::?\s*(highest|high|medium|low|lowest)", re.IGNORECASE)
INLINE_PRIORITY_FIELD = re.compile(r"\[priority::\s*\w+\]", re.IGNORECASE)
EMPTY_FIELD = re.compile(r"\[\s*\]")
TAG_PATTERN = re.compile(r"#[\w\-/]+")
WHITESPACE = re.compile(r"\s{2,}")


def parse_task_id(task_id: str) -> tuple[str, int]:
    """Split ``"<note path>:<line number>"`` on the last colon."""
    file_path, sep, line_part = task_id.rpartition(":")
    if not sep or not file_path or not line_part.isdigit():
        raise TaskError(f"Invalid task id: {task_id!r} (expected '<note path>:<line number>')")
    return file_path, int(line_part)


def parse_task(line: str, file_path: str, line_number: int) -> Optional[ParsedTask]:
    """Parse one line; returns None when it is not a task."""
    match = TASK_LINE.match(line.rstrip("\r"))
    if not match:
        return None
    _, checkbox, content = match.groups()

    dates = {name: pattern.search(content) for name, pattern in DATE_PATTERNS.items()}

    priority: Optional[Priority] = None
    for emoji, name in EMOJI_TO_PRIORITY.items():
        if emoji in content:
            priority = name
            break
    inline_priority = INLINE_PRIORITY.search(content)
    if inline_priority:
        priority = inline_priority.group(1).lower()  # type: ignore[assignment]

    recurrence = RECURRENCE_PATTERN.search(content)

    description = content
    for pattern in DATE_PATTERNS.values():
        description = pattern.sub("", description, count=1)
    description = RECURRENCE_PATTERN.sub("", description, count=1)
    description = INLINE_PRIORITY_FIELD.sub("", description)
    for emoji in EMOJI_TO_PRIORITY:
        description = description.replace(emoji, "", 1)
    description = EMPTY_FIELD.sub("", description)
    description = WHITESPACE.sub(" ", description).strip()

    return ParsedTask(
        id=f"{file_path}:{line_number}",
        description=description,
        completed=checkbox.lower() == "x",
        due_date=dates["due"].group(1) if dates["due"] else None,
        scheduled_date=dates["scheduled"].group(1) if dates["scheduled"] else None,
        start_date=dates["start"].group(1) if dates["start"] else None,
        done_date=dates["done"].group(1) if dates["done"] else None,
        priority=priority,
        recurrence=recurrence.group(1).strip() if recurrence else None,
        tags=[tag[1:] for tag in TAG_PATTERN.findall(content)],
        file_path=file_path,
        line_number=line_number,
        raw_line=line,
    )


def format_task(task: TaskData, completed: bool = False, task_format: str = "obsidian-tasks") -> str:
    """Render a task line in the configured format."""
    parts: List[str] = ["- [x]" if completed else "- [ ]", task.description.strip()]
    if task.tags:
        parts.append(" ".join(f"#{tag.lstrip('#')}" for tag in task.tags))

    if task_format == "basic":
        return " ".join(parts)

    if task_format == "dataview":
        for field, value in (
            ("priority", task.priority),
            ("due", task.due_date),
            ("scheduled", task.scheduled_date),
            ("start", task.start_date),
            ("recurrence", task.recurrence),
        ):
            if value:
                parts.append(f"[{field}:: {value}]")
        return " ".join(parts)

    if task.priority:
        parts.append(PRIORITY_EMOJI[task.priority])
    if task.due_date:
        parts.append(f"📅 {task.due_date}")
    if task.scheduled_date:
        parts.append(f"⏳ {task.scheduled_date}")
    if task.start_date:
        parts.append(f"🛫 {task.start_date}")
    if task.recurrence:
        parts.append(f"🔁 {task.recurrence}")
    return " ".join(parts)


def _matches(task: ParsedTask, query: TaskQuery, today: str) -> bool:
    if query.status == "incomplete" and task.completed:
        return False
    if query.status == "complete" and not task.completed:
        return False
    if query.overdue and (not task.due_date or task.due_date >= today or task.completed):
        return False
    if query.due_before and task.due_date and task.due_date > query.due_before:
        return False
    if query.due_after and task.due_date and task.due_date < query.due_after:
        return False
    if query.priority and task.priority != query.priority:
        return False
    if query.tags:
        wanted = {tag.lstrip("#") for tag in query.tags}
        if not wanted.intersection(task.tags):
            return False
    return True


def _sort_key(task: ParsedTask) -> tuple:
    # Incomplete first, then by due date with undated tasks last.
    return (task.completed, task.due_date is None, task.due_date or "")


class TaskStore:
    """Reads and mutates task lines inside vault notes."""

    def __init__(
        self,
        vault: VaultService,
        config: AppConfig | None = None,
        *,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.vault = vault
        self.config = config or get_config()
        self._today = today or date.today

    def today(self) -> str:
        return self._today().isoformat()

    def query(self, query: TaskQuery | None = None) -> List[ParsedTask]:
        query = query or TaskQuery()
        today = self.today()
        tasks: List[ParsedTask] = []

        for note_path in self.vault.list_markdown_files():
            if query.in_note and note_path != query.in_note:
                continue
            try:
                content = self.vault.read(note_path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable note", extra={"path": note_path, "error": str(exc)})
                continue
            for index, line in enumerate(content.split("\n"), start=1):
                task = parse_task(line, note_path, index)
                if task is not None and _matches(task, query, today):
                    tasks.append(task)

        tasks.sort(key=_sort_key)
        if query.limit and query.limit > 0:
            return tasks[: query.limit]
        return tasks

    def add(self, task: TaskData, note_path: str) -> ParsedTask:
        """Append a task line to an existing note."""
        content = self.vault.read(note_path)
        task_line = format_task(task, task_format=self.config.task_format)
        parsed = parse_task(task_line, note_path, 1)
        # A rejected task never touches the note.
        if parsed is None or "\n" in task_line or "\r" in task_line:
            raise TaskError(f"Could not format task as a single line: {task.description!r}")

        separator = "" if not content or content.endswith("\n") else "\n"
        new_content = f"{content}{separator}{task_line}"
        self.vault.write(note_path, new_content)

        line_number = new_content.count("\n") + 1
        logger.info("Task added", extra={"path": note_path, "line": line_number})
        return parsed.model_copy(update={"id": f"{note_path}:{line_number}", "line_number": line_number})

    def complete(self, task_id: str) -> ParsedTask:
        """Tick the checkbox at ``task_id`` and stamp the completion date."""
        file_path, line_number = parse_task_id(task_id)
        lines = self.vault.read(file_path).split("\n")

        index = line_number - 1
        if index < 0 or index >= len(lines):
            raise TaskError(f"Invalid line number: {line_number}")

        line = lines[index]
        if parse_task(line, file_path, line_number) is None:
            raise TaskError(f"No task found at line {line_number}")

        ending = "\r" if line.endswith("\r") else ""
        updated = line[: len(line) - len(ending)].replace("- [ ]", "- [x]", 1)
        if "✅" not in updated:
            updated = f"{updated} ✅ {self.today()}"
        lines[index] = updated + ending

        self.vault.write(file_path, "\n".join(lines))
        completed = parse_task(lines[index], file_path, line_number)
        if completed is None:
            raise TaskError(f"No task found at line {line_number}")
        logger.info("Task completed", extra={"task_id": task_id})
        return completed

    def update_settings(self, config: AppConfig) -> None:
        self.config = config


__all__ = [
    "TaskStore",
    "parse_task",
    "parse_task_id",
    "format_task",
    "PRIORITY_EMOJI",
]
