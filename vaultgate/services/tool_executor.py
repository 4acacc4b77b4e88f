"""Tool Executor - dispatches parsed tool calls to the vault collaborators.

Every call is resolved into a typed variant first, path arguments are
validated before any collaborator is touched, mutating tools run behind the
OperationGuard, and each call leaves exactly one ``tool_call`` audit entry.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..models.note import NoteMetadata, NoteSummary
from ..models.operation import MCPOperation
from ..models.task import TaskData, TaskQuery
from ..models.tools import (
    TOOL_CALL_ADAPTER,
    TOOL_NAMES,
    AddTaskCall,
    CompleteTaskCall,
    ListNotesCall,
    ListTasksCall,
    ReadNoteCall,
    SearchVaultCall,
    ToolResponse,
    WriteNoteCall,
)
from .audit import AuditLogger
from .config import AppConfig, get_config
from .errors import (
    PathValidationError,
    SearchUnavailableError,
    ToolArgumentError,
    ToolError,
    UnknownToolError,
)
from .operation_guard import OperationGuard
from .path_validator import PathValidator
from .search import SearchClient
from .tasks import TaskStore, parse_task_id
from .vault import VaultService

logger = logging.getLogger(__name__)

Result = Dict[str, Any]

COLLABORATOR_ERRORS = {
    FileNotFoundError: "not_found",
    FileExistsError: "already_exists",
}

# Failures from the stores that are reported without a traceback.
EXPECTED_ERRORS = (OSError, ValueError)

RAW_TARGET_KEYS = ("path", "notePath", "taskId", "folder")


def _raw_target(arguments: Any) -> Optional[str]:
    if not isinstance(arguments, dict):
        return None
    for key in RAW_TARGET_KEYS:
        value = arguments.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _collaborator_code(exc: Exception) -> str:
    for exc_type, code in COLLABORATOR_ERRORS.items():
        if isinstance(exc, exc_type):
            return code
    return "tool_error"


def _describe_validation_error(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "arguments")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return messages


class ToolExecutor:
    """
    Executes tool calls against the note store, task store and search client.

    Every failure raised while a tool runs becomes an audited ``isError``
    result; only failures outside dispatch reach the API layer as a 500.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        validator: Optional[PathValidator] = None,
        audit: Optional[AuditLogger] = None,
        guard: Optional[OperationGuard] = None,
        vault: Optional[VaultService] = None,
        search: Optional[SearchClient] = None,
        tasks: Optional[TaskStore] = None,
    ) -> None:
        self.config = config or get_config()
        self.validator = validator or PathValidator(self.config.vault_root)
        self.audit = audit or AuditLogger(self.config)
        self.guard = guard or OperationGuard(self.config, audit=self.audit)
        self.vault = vault or VaultService(self.config)
        self.search = search or SearchClient(self.config)
        self.tasks = tasks or TaskStore(self.vault, self.config)

        # Tool registry mapping tool names to handler methods
        self._handlers: Dict[str, Callable[[Any, Optional[str]], Awaitable[Result]]] = {
            "read_note": self._read_note,
            "write_note": self._write_note,
            "search_vault": self._search_vault,
            "list_notes": self._list_notes,
            "list_tasks": self._list_tasks,
            "add_task": self._add_task,
            "complete_task": self._complete_task,
        }

    def parse(self, tool: str, arguments: Any) -> Any:
        """Resolve a raw ``{tool, arguments}`` pair into its typed call variant."""
        if tool not in TOOL_NAMES:
            raise UnknownToolError(f"Unknown tool: {tool}")
        try:
            return TOOL_CALL_ADAPTER.validate_python(
                {"tool": tool, "arguments": {} if arguments is None else arguments}
            )
        except ValidationError as exc:
            problems = _describe_validation_error(exc)
            raise ToolArgumentError(
                f"Invalid arguments for {tool}: {'; '.join(problems)}",
                details={"problems": problems},
            ) from exc

    async def execute(self, tool: str, arguments: Any, client_id: Optional[str] = None) -> ToolResponse:
        """Execute one tool call and return its MCP-style result."""
        target = _raw_target(arguments)
        logger.info("Executing tool: %s", tool, extra={"tool": tool, "client_id": client_id})

        try:
            call = self.parse(tool, arguments)
            target = call.target() or target
            result = await self._handlers[call.tool](call, client_id)
        except ToolError as exc:
            logger.warning("Tool %s failed: %s", tool, exc.message, extra={"tool": tool, "path": target})
            self.audit.log_tool_call(tool, target, False, error=exc.message, client_id=client_id)
            return ToolResponse.json_text(exc.as_payload(), is_error=True)
        except Exception as exc:
            if isinstance(exc, EXPECTED_ERRORS):
                logger.warning("Tool %s failed: %s", tool, exc, extra={"tool": tool, "path": target})
            else:
                logger.exception("Tool %s execution failed", tool, extra={"tool": tool, "path": target})
            message = str(exc) or type(exc).__name__
            self.audit.log_tool_call(tool, target, False, error=message, client_id=client_id)
            return ToolResponse.json_text({"error": message, "code": _collaborator_code(exc)}, is_error=True)

        self.audit.log_tool_call(tool, target, True, client_id=client_id)
        return ToolResponse.json_text(result)

    def update_settings(self, config: AppConfig) -> None:
        self.config = config
        self.tasks.update_settings(config)

    def _validated_note(self, raw_path: str) -> str:
        result = self.validator.validate_with_extension(raw_path)
        if not result.valid or not result.sanitized_path:
            raise PathValidationError(result.error or "Invalid path")
        return result.sanitized_path

    def _validated_folder(self, raw_folder: Optional[str]) -> str:
        result = self.validator.validate_folder(raw_folder)
        if not result.valid or result.sanitized_path is None:
            raise PathValidationError(result.error or "Invalid folder")
        return result.sanitized_path

    def _note_uri(self, note_path: str) -> str:
        name = note_path[: -len(".md")] if note_path.endswith(".md") else note_path
        vault = quote(self.config.vault_name, safe="!~*'()")
        return f"obsidian://open?vault={vault}&file={quote(name, safe='!~*()')}"

    async def _guarded(
        self, call: Any, path: Optional[str], client_id: Optional[str], action: Callable[[], Result]
    ) -> Result:
        operation = MCPOperation(tool=call.tool, path=path, action=call.action(), client_id=client_id)
        return await self.guard.execute_with_approval(operation, action)

    def _ensure_parent_folders(self, note_path: str) -> None:
        parent = PurePosixPath(note_path).parent
        if str(parent) in ("", "."):
            return
        current = ""
        for part in parent.parts:
            current = f"{current}/{part}" if current else part
            folder = self._validated_folder(current)
            if not self.vault.exists(folder):
                self.vault.create_folder(folder)

    async def _read_note(self, call: ReadNoteCall, client_id: Optional[str]) -> Result:
        note_path = self._validated_note(call.arguments.path)
        content = self.vault.read(note_path)
        self.audit.log_resource_read(note_path, True, client_id=client_id)

        result: Result = {"content": content}
        if call.arguments.include_metadata:
            stat = self.vault.stat(note_path)
            metadata = self.vault.read_metadata(note_path)
            result["metadata"] = NoteMetadata(
                path=note_path,
                name=PurePosixPath(note_path).name,
                size=stat.size,
                created=stat.created,
                modified=stat.modified,
                frontmatter=metadata["frontmatter"],
                tags=metadata["tags"],
            ).model_dump()
        return result

    async def _write_note(self, call: WriteNoteCall, client_id: Optional[str]) -> Result:
        args = call.arguments
        note_path = self._validated_note(args.path)

        def write() -> Result:
            exists = self.vault.exists(note_path)
            content = args.content
            if args.mode == "create" and exists:
                raise FileExistsError(f"Note already exists: {args.path}")
            if args.mode == "append":
                if not exists:
                    raise FileNotFoundError(f"Note not found for append: {args.path}")
                content = self.vault.read(note_path) + "\n" + content

            self._ensure_parent_folders(note_path)
            self.vault.write(note_path, content)
            return {"success": True, "path": note_path, "mode": args.mode, "uri": self._note_uri(note_path)}

        return await self._guarded(call, note_path, client_id, write)

    async def _search_vault(self, call: SearchVaultCall, client_id: Optional[str]) -> Result:
        args = call.arguments
        if not self.search.config.search_enabled or not await self.search.is_available():
            raise SearchUnavailableError("QMD is not available", self.search.install_instructions())
        results = await self.search.search(args.query, mode=args.mode, limit=args.limit)
        return {"results": [item.model_dump() for item in results]}

    async def _list_notes(self, call: ListNotesCall, client_id: Optional[str]) -> Result:
        args = call.arguments
        folder = self._validated_folder(args.folder)
        prefix = f"{folder}/" if folder else ""

        notes: List[Dict[str, Any]] = []
        for note_path in self.vault.list_markdown_files():
            if not note_path.startswith(prefix):
                continue
            if not args.recursive and "/" in note_path[len(prefix):]:
                continue
            summary = NoteSummary(path=note_path, name=PurePosixPath(note_path).stem)
            if args.include_metadata:
                stat = self.vault.stat(note_path)
                summary = summary.model_copy(
                    update={"size": stat.size, "created": stat.created, "modified": stat.modified}
                )
            notes.append(summary.model_dump(exclude_none=True))
        return {"notes": notes}

    async def _list_tasks(self, call: ListTasksCall, client_id: Optional[str]) -> Result:
        args = call.arguments
        today = self.tasks.today()
        query = TaskQuery(
            status=args.status,
            overdue=args.overdue,
            due_before=today if args.due_today else None,
            due_after=today if args.due_today else None,
            limit=args.limit,
        )
        tasks = self.tasks.query(query)
        return {"tasks": [task.model_dump(by_alias=True, exclude_none=True) for task in tasks]}

    async def _add_task(self, call: AddTaskCall, client_id: Optional[str]) -> Result:
        args = call.arguments
        note_path = self._validated_note(args.note_path)
        data = TaskData(description=args.description, due_date=args.due_date, priority=args.priority, tags=args.tags)

        def add() -> Result:
            task = self.tasks.add(data, note_path)
            return {
                "success": True,
                "task": task.model_dump(by_alias=True, exclude_none=True),
                "uri": self._note_uri(note_path),
            }

        return await self._guarded(call, note_path, client_id, add)

    async def _complete_task(self, call: CompleteTaskCall, client_id: Optional[str]) -> Result:
        raw_path, line_number = parse_task_id(call.arguments.task_id)
        note_path = self._validated_note(raw_path)
        task_id = f"{note_path}:{line_number}"

        def complete() -> Result:
            task = self.tasks.complete(task_id)
            return {"success": True, "task": task.model_dump(by_alias=True, exclude_none=True)}

        return await self._guarded(call, task_id, client_id, complete)


__all__ = ["ToolExecutor"]
