"""MCP tool catalogue exposed over the control plane."""

from .tools import TOOL_DEFINITIONS, list_tool_definitions

__all__ = ["TOOL_DEFINITIONS", "list_tool_definitions"]
