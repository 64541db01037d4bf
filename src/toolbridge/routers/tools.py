"""Tool catalog endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from toolbridge.dependencies import get_compiled_api
from toolbridge.models.tools import ToolListResponse, ToolResponse
from toolbridge.schema import CompiledApi, ToolDeclaration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def _to_response(declaration: ToolDeclaration, compiled: CompiledApi) -> ToolResponse:
    function = declaration.to_ollama_tool()["function"]
    operation = compiled.registry.get(declaration.name)
    return ToolResponse(
        name=declaration.name,
        description=function["description"],
        parameters=function["parameters"],
        method=operation.method.upper() if operation is not None else None,
        path=operation.path if operation is not None else None,
    )


@router.get("", response_model=ToolListResponse)
async def list_tools(
    request: Request,
    compiled: CompiledApi = Depends(get_compiled_api),
) -> ToolListResponse:
    """List every tool exposed to the model, in catalog order."""
    catalog: list[ToolDeclaration] = request.app.state.tool_catalog
    tools = [_to_response(declaration, compiled) for declaration in catalog]
    return ToolListResponse(tools=tools, count=len(tools))


@router.get("/{tool_name}", response_model=ToolResponse)
async def get_tool(
    tool_name: str,
    request: Request,
    compiled: CompiledApi = Depends(get_compiled_api),
) -> ToolResponse:
    """Get a single tool declaration.

    Raises:
        HTTPException: 404 if no tool has this name
    """
    for declaration in request.app.state.tool_catalog:
        if declaration.name == tool_name:
            return _to_response(declaration, compiled)

    raise HTTPException(
        status_code=404,
        detail={
            "error": {
                "code": "tool_not_found",
                "message": f"Tool {tool_name} not found",
                "details": {"tool_name": tool_name},
            }
        },
    )
