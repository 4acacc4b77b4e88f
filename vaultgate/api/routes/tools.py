"""Authenticated MCP tool routes."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ...mcp.tools import list_tool_definitions
from ...services.tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

router = APIRouter()


def _too_large(limit: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail={"message": f"Request body exceeds {limit} bytes"},
        headers={"Connection": "close"},
    )


async def read_body_capped(request: Request, limit: int) -> bytes:
    """Read the request body, refusing anything larger than ``limit`` bytes."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise _too_large(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise _too_large(limit)
    return bytes(body)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": message})


@router.get("/mcp/tools")
async def list_tools() -> Dict[str, Any]:
    return {"tools": list_tool_definitions()}


@router.post("/mcp/call")
async def call_tool(request: Request) -> JSONResponse:
    """Parse ``{tool, arguments}`` and execute it."""
    config = request.app.state.config
    raw = await read_body_capped(request, config.max_body_bytes)

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise _bad_request("Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise _bad_request("Request body must be a JSON object")

    tool = payload.get("tool")
    if not isinstance(tool, str) or not tool:
        raise _bad_request("Missing or invalid 'tool'")

    executor: ToolExecutor = request.app.state.executor
    client_id = request.client.host if request.client else None
    result = await executor.execute(tool, payload.get("arguments"), client_id=client_id)
    return JSONResponse(result.to_dict())
