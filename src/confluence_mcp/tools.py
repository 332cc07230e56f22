"""MCP tool declarations.

This is the authoritative list of tools: a name is only callable when it is
registered here. Mutating tools are flagged so they can be hidden from the
advertised list in read-only mode.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .content import to_storage
from .service import ConfluenceService
from .task_content import ProgressUpdate, TaskPageData
from .tool_requests import (
    CreatePageRequest,
    CreateTaskPageRequest,
    FindOrCreateParentPageRequest,
    GetPageRequest,
    GetSpaceRequest,
    ListPagesRequest,
    SearchRequest,
    SearchSpaceRequest,
    ToolRequest,
    UpdatePageRequest,
    UpdateTaskProgressRequest,
)

ToolHandler = Callable[[ConfluenceService, Any], Awaitable[dict[str, Any]]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    name: str
    description: str
    request_model: type[ToolRequest]
    handler: ToolHandler
    mutating: bool = False


# ---------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------


async def _search(service: ConfluenceService, request: SearchRequest) -> dict[str, Any]:
    results = await service.search(request.query, request.limit)
    return results.model_dump()


async def _search_space(service: ConfluenceService, request: SearchSpaceRequest) -> dict[str, Any]:
    results = await service.search_by_space(request.space_key, request.query, request.limit)
    return results.model_dump()


async def _get_page(service: ConfluenceService, request: GetPageRequest) -> dict[str, Any]:
    page = await service.get_page(request.page_id)
    return page.model_dump()


async def _get_space(service: ConfluenceService, request: GetSpaceRequest) -> dict[str, Any]:
    space = await service.get_space(request.space_key)
    return space.model_dump()


async def _list_pages(service: ConfluenceService, request: ListPagesRequest) -> dict[str, Any]:
    listing = await service.list_pages(request.space_key, request.limit)
    return listing.model_dump()


async def _create_page(service: ConfluenceService, request: CreatePageRequest) -> dict[str, Any]:
    result = await service.create_page(
        request.space_key,
        request.title,
        to_storage(request.content, request.content_format),
        request.parent_page_id,
    )
    return result.model_dump()


async def _update_page(service: ConfluenceService, request: UpdatePageRequest) -> dict[str, Any]:
    result = await service.update_page(
        request.page_id,
        request.title,
        to_storage(request.content, request.content_format),
        request.version,
    )
    return result.model_dump()


async def _find_or_create_parent_page(
    service: ConfluenceService, request: FindOrCreateParentPageRequest
) -> dict[str, Any]:
    result = await service.find_or_create_parent_page(
        request.space_key, request.title, request.content
    )
    return result.model_dump()


async def _create_task_page(
    service: ConfluenceService, request: CreateTaskPageRequest
) -> dict[str, Any]:
    data = TaskPageData(
        task_description=request.task_description,
        objectives=list(request.objectives),
        progress=request.progress,
    )
    result = await service.create_task_page(
        request.space_key, request.title, data, request.parent_page_id
    )
    return result.model_dump()


async def _update_task_progress(
    service: ConfluenceService, request: UpdateTaskProgressRequest
) -> dict[str, Any]:
    update = ProgressUpdate(
        progress=request.progress,
        new_findings=list(request.new_findings),
        next_steps=list(request.next_steps),
    )
    result = await service.update_task_progress(request.page_id, update, strict=request.strict)
    return result.model_dump()


# ---------------------------------------------------------------------
# Registry (AUTHORITATIVE)
# ---------------------------------------------------------------------

STORAGE_FORMAT_HINT = (
    "Content is Confluence storage format (XHTML such as <h2>, <ul><li>, <strong>) unless "
    "content_format is 'markdown'."
)

TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="confluence_search",
        description=(
            "Search Confluence content. Results are limited to the allowed spaces and "
            "page subtrees."
        ),
        request_model=SearchRequest,
        handler=_search,
    ),
    ToolSpec(
        name="confluence_search_space",
        description="Search for content inside a single Confluence space.",
        request_model=SearchSpaceRequest,
        handler=_search_space,
    ),
    ToolSpec(
        name="confluence_get_page",
        description="Get a Confluence page (title, space, ancestors, body, version) by id.",
        request_model=GetPageRequest,
        handler=_get_page,
    ),
    ToolSpec(
        name="confluence_get_space",
        description="Get information about a Confluence space, including its homepage id.",
        request_model=GetSpaceRequest,
        handler=_get_space,
    ),
    ToolSpec(
        name="confluence_list_pages",
        description="List pages in a Confluence space.",
        request_model=ListPagesRequest,
        handler=_list_pages,
    ),
    ToolSpec(
        name="confluence_create_page",
        description=(
            "Create a Confluence page. Without parent_page_id the space homepage becomes "
            "the parent. " + STORAGE_FORMAT_HINT
        ),
        request_model=CreatePageRequest,
        handler=_create_page,
        mutating=True,
    ),
    ToolSpec(
        name="confluence_update_page",
        description=(
            "Replace the title and body of an existing page. The version defaults to the "
            "current version + 1. " + STORAGE_FORMAT_HINT
        ),
        request_model=UpdatePageRequest,
        handler=_update_page,
        mutating=True,
    ),
    ToolSpec(
        name="confluence_find_or_create_parent_page",
        description="Return the page with the given title in a space, creating it if missing.",
        request_model=FindOrCreateParentPageRequest,
        handler=_find_or_create_parent_page,
        mutating=True,
    ),
    ToolSpec(
        name="confluence_create_task_page",
        description=(
            "Create a task tracking page with status, objectives, findings, next actions "
            "and a decision log."
        ),
        request_model=CreateTaskPageRequest,
        handler=_create_task_page,
        mutating=True,
    ),
    ToolSpec(
        name="confluence_update_task_progress",
        description=(
            "Update a task tracking page: set the status, prepend findings, replace next "
            "actions and append a decision-log row."
        ),
        request_model=UpdateTaskProgressRequest,
        handler=_update_task_progress,
        mutating=True,
    ),
)

TOOLS_BY_NAME: dict[str, ToolSpec] = {spec.name: spec for spec in TOOL_SPECS}

MUTATING_TOOL_NAMES: frozenset[str] = frozenset(spec.name for spec in TOOL_SPECS if spec.mutating)


def advertised_tools(read_only: bool) -> list[ToolSpec]:
    """Tools to announce to clients; mutating ones are dropped in read-only mode."""
    return [spec for spec in TOOL_SPECS if not (read_only and spec.mutating)]
