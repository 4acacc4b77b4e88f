"""Static tool definitions advertised on ``GET /mcp/tools``."""

from __future__ import annotations

from typing import Any, Dict, List

from mcp.types import Tool

PRIORITIES = ["highest", "high", "medium", "low", "lowest"]

TOOL_DEFINITIONS: List[Tool] = [
    Tool(
        name="read_note",
        description="Read the content of a note from the Obsidian vault",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": 'Path to the note relative to vault root (e.g., "folder/note.md")',
                },
                "includeMetadata": {
                    "type": "boolean",
                    "description": "Include frontmatter metadata in response",
                    "default": False,
                },
            },
            "required": ["path"],
        },
    ),
    Tool(
        name="write_note",
        description="Create or update a note in the vault (requires user approval)",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path for the note relative to vault root"},
                "content": {"type": "string", "description": "Full markdown content to write"},
                "mode": {
                    "type": "string",
                    "enum": ["create", "replace", "append"],
                    "description": "Write mode: create (new only), replace (overwrite), append",
                    "default": "replace",
                },
            },
            "required": ["path", "content"],
        },
    ),
    Tool(
        name="search_vault",
        description="Search the vault using QMD semantic search",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Natural language search query"},
                "mode": {
                    "type": "string",
                    "enum": ["hybrid", "semantic", "keyword"],
                    "description": "Search mode",
                    "default": "hybrid",
                },
                "limit": {"type": "number", "description": "Maximum number of results", "default": 10},
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="list_notes",
        description="List notes in the vault or a specific folder",
        inputSchema={
            "type": "object",
            "properties": {
                "folder": {"type": "string", "description": "Folder path to list (empty for root)", "default": ""},
                "recursive": {"type": "boolean", "description": "Include notes in subfolders", "default": False},
                "includeMetadata": {"type": "boolean", "description": "Include basic metadata", "default": False},
            },
        },
    ),
    Tool(
        name="list_tasks",
        description="List tasks from the vault with optional filters",
        inputSchema={
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "enum": ["incomplete", "complete", "all"],
                    "description": "Filter by task status",
                    "default": "incomplete",
                },
                "overdue": {"type": "boolean", "description": "Only show overdue tasks", "default": False},
                "dueToday": {"type": "boolean", "description": "Only show tasks due today", "default": False},
                "limit": {"type": "number", "description": "Maximum number of results", "default": 50},
            },
        },
    ),
    Tool(
        name="add_task",
        description="Add a new task to a note (requires user approval)",
        inputSchema={
            "type": "object",
            "properties": {
                "description": {"type": "string", "description": "Task description"},
                "dueDate": {"type": "string", "description": "Due date in YYYY-MM-DD format"},
                "priority": {"type": "string", "enum": PRIORITIES, "description": "Task priority"},
                "tags": {"type": "array", "items": {"type": "string"}, "description": "Tags without '#'"},
                "notePath": {"type": "string", "description": "Note to add task to"},
            },
            "required": ["description", "notePath"],
        },
    ),
    Tool(
        name="complete_task",
        description="Mark a task as complete (requires user approval)",
        inputSchema={
            "type": "object",
            "properties": {
                "taskId": {"type": "string", "description": "Task identifier (filePath:lineNumber)"},
            },
            "required": ["taskId"],
        },
    ),
]


def list_tool_definitions() -> List[Dict[str, Any]]:
    """Serialize the catalogue as ``[{name, description, inputSchema}]``."""
    return [
        {"name": tool.name, "description": tool.description, "inputSchema": tool.inputSchema}
        for tool in TOOL_DEFINITIONS
    ]


__all__ = ["TOOL_DEFINITIONS", "list_tool_definitions"]
