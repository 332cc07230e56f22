"""Tests for tool request parsing, the registry and the dispatcher."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import ValidationError
from support import FakeConfluenceAPI

from confluence_mcp.config import AccessConfig
from confluence_mcp.dispatcher import ToolDispatcher
from confluence_mcp.errors import ToolCallError
from confluence_mcp.service import ConfluenceService
from confluence_mcp.tool_requests import CreatePageRequest, GetPageRequest, UpdatePageRequest
from confluence_mcp.tools import MUTATING_TOOL_NAMES, TOOL_SPECS, advertised_tools

READ_TOOLS = {
    "confluence_search",
    "confluence_search_space",
    "confluence_get_page",
    "confluence_get_space",
    "confluence_list_pages",
}


def _dispatcher(api: FakeConfluenceAPI, **access: Any) -> ToolDispatcher:
    service = ConfluenceService.create(api, AccessConfig(**access), site_root="https://x.test")
    return ToolDispatcher(service)


def test_requests_accept_camel_and_snake_case() -> None:
    camel = CreatePageRequest.model_validate(
        {"spaceKey": "TEAM", "title": "T", "content": "c", "parentPageId": 12}
    )
    snake = CreatePageRequest.model_validate(
        {"space_key": "TEAM", "title": "T", "content": "c", "parent_page_id": "12"}
    )

    assert camel == snake
    assert camel.parent_page_id == "12"
    assert camel.content_format == "storage"


def test_request_rejects_missing_and_invalid_fields() -> None:
    with pytest.raises(ValidationError):
        GetPageRequest.model_validate({})
    with pytest.raises(ValidationError):
        UpdatePageRequest.model_validate(
            {"pageId": "1", "title": "T", "content": "c", "version": 0}
        )
    with pytest.raises(ValidationError):
        CreatePageRequest.model_validate(
            {"spaceKey": "TEAM", "title": "T", "content": "c", "contentFormat": "wiki"}
        )


def test_registry_flags_mutating_tools() -> None:
    names = {spec.name for spec in TOOL_SPECS}

    assert READ_TOOLS <= names
    assert MUTATING_TOOL_NAMES == names - READ_TOOLS
    assert "confluence_create_page" in MUTATING_TOOL_NAMES
    assert "confluence_update_page" in MUTATING_TOOL_NAMES


def test_read_only_advertises_only_read_tools() -> None:
    assert {spec.name for spec in advertised_tools(True)} == READ_TOOLS
    assert len(advertised_tools(False)) == len(TOOL_SPECS)


def test_dispatcher_lists_tools_for_its_mode() -> None:
    read_only = _dispatcher(FakeConfluenceAPI(), read_only=True)
    read_write = _dispatcher(FakeConfluenceAPI())

    assert {spec.name for spec in read_only.list_tools()} == READ_TOOLS
    assert [spec.name for spec in read_write.list_tools()] == [spec.name for spec in TOOL_SPECS]


def test_dispatch_routes_to_service() -> None:
    api = FakeConfluenceAPI()
    api.add_page("42", title="Hello")
    dispatcher = _dispatcher(api)

    result = asyncio.run(dispatcher.dispatch("confluence_get_page", {"pageId": 42}))

    assert result["id"] == "42"
    assert result["title"] == "Hello"


def test_dispatch_converts_markdown_before_create() -> None:
    api = FakeConfluenceAPI()
    api.add_space("TEAM", homepage_id=None)
    dispatcher = _dispatcher(api)

    asyncio.run(
        dispatcher.dispatch(
            "confluence_create_page",
            {"spaceKey": "TEAM", "title": "T", "content": "# Hi", "contentFormat": "markdown"},
        )
    )

    name, args = api.calls[-1]
    assert name == "create_page"
    assert args[2] == "<h1>Hi</h1>"


def test_dispatch_unknown_tool() -> None:
    dispatcher = _dispatcher(FakeConfluenceAPI())

    with pytest.raises(ToolCallError, match="Error executing confluence_nope: Unknown tool"):
        asyncio.run(dispatcher.dispatch("confluence_nope", {}))


def test_dispatch_invalid_arguments_never_reach_confluence() -> None:
    api = FakeConfluenceAPI()
    dispatcher = _dispatcher(api)

    with pytest.raises(ToolCallError) as excinfo:
        asyncio.run(dispatcher.dispatch("confluence_search", {"limit": 5}))

    assert excinfo.value.message.startswith("Error executing confluence_search: Invalid arguments")
    assert excinfo.value.payload["code"] == "confluence:invalid_arguments"
    assert api.calls == []


def test_dispatch_wraps_access_denied() -> None:
    dispatcher = _dispatcher(FakeConfluenceAPI(), allowed_spaces=frozenset({"TEAM"}))

    with pytest.raises(ToolCallError) as excinfo:
        asyncio.run(dispatcher.dispatch("confluence_get_space", {"spaceKey": "OTHER"}))

    error = excinfo.value
    assert error.tool_name == "confluence_get_space"
    assert "Allowed spaces: TEAM" in error.message
    assert error.payload["code"] == "confluence:access_denied"
    assert error.payload["allowed"] == ["TEAM"]


def test_mutating_tool_in_read_only_mode_reports_violation() -> None:
    """Mutating tools are hidden in read-only mode, and calling one directly
    still fails with the read-only error."""

    dispatcher = _dispatcher(FakeConfluenceAPI(), read_only=True)

    with pytest.raises(ToolCallError) as excinfo:
        asyncio.run(
            dispatcher.dispatch(
                "confluence_update_page", {"pageId": "1", "title": "T", "content": "c"}
            )
        )

    assert excinfo.value.payload["code"] == "confluence:read_only"
    assert "Read-only mode" in excinfo.value.message
