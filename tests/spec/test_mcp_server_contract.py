from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import replace
from typing import Any, cast, get_args, get_type_hints

import pytest
from support import FakeConfluenceAPI

from confluence_mcp import mcp_server
from confluence_mcp.config import AccessConfig, Settings
from confluence_mcp.content import ContentFormat
from confluence_mcp.dispatcher import ToolDispatcher
from confluence_mcp.service import ConfluenceService
from confluence_mcp.tools import MUTATING_TOOL_NAMES, TOOL_SPECS


class DummyFastMCP:
    def __init__(self, *, name: str, version: str, instructions: str) -> None:
        self.init_kwargs = {"name": name, "version": version, "instructions": instructions}
        self.tool_callbacks: dict[str, Callable[..., Any]] = {}
        self.descriptions: dict[str, str] = {}
        self.run_invoked = False

    def tool(
        self, *, name: str, description: str
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.tool_callbacks[name] = func
            self.descriptions[name] = description
            return func

        return decorator

    async def run_async(self) -> None:
        self.run_invoked = True


def _dispatcher(api: FakeConfluenceAPI, **access: Any) -> ToolDispatcher:
    return ToolDispatcher(ConfluenceService.create(api, AccessConfig(**access)))


def test_register_tools_exposes_every_tool_in_read_write_mode() -> None:
    server = DummyFastMCP(name="n", version="v", instructions="i")

    registered = mcp_server.register_tools(server, _dispatcher(FakeConfluenceAPI()))

    assert set(registered) == {spec.name for spec in TOOL_SPECS}
    assert set(server.tool_callbacks) == set(registered)


def test_register_tools_hides_write_tools_in_read_only_mode() -> None:
    """Given read-only mode, when tools are registered, then no mutating tool
    is visible to clients."""

    server = DummyFastMCP(name="n", version="v", instructions="i")

    registered = mcp_server.register_tools(
        server, _dispatcher(FakeConfluenceAPI(), read_only=True)
    )

    assert registered
    assert not set(registered) & MUTATING_TOOL_NAMES
    assert not set(server.tool_callbacks) & MUTATING_TOOL_NAMES


def test_registered_callbacks_go_through_dispatcher() -> None:
    """Given a space allow-list, when a callback is denied, then the tool result
    carries the translated error payload instead of page data."""

    api = FakeConfluenceAPI()
    api.add_space("TEAM", homepage_id="55")
    server = DummyFastMCP(name="n", version="v", instructions="i")
    mcp_server.register_tools(server, _dispatcher(api, allowed_spaces=frozenset({"TEAM"})))

    space = asyncio.run(server.tool_callbacks["confluence_get_space"](space_key="TEAM"))
    assert space["homepage_id"] == "55"

    denied = asyncio.run(server.tool_callbacks["confluence_get_space"](space_key="OTHER"))
    assert denied["tool"] == "confluence_get_space"
    assert denied["error"]["code"] == "confluence:access_denied"
    assert denied["error"]["allowed"] == ["TEAM"]
    assert denied["error"]["message"].startswith("Error executing confluence_get_space")


def test_read_only_callback_reports_violation_payload() -> None:
    server = DummyFastMCP(name="n", version="v", instructions="i")
    dispatcher = _dispatcher(FakeConfluenceAPI(), read_only=True)
    functions = mcp_server.tool_functions(dispatcher)

    result = asyncio.run(
        functions["confluence_update_page"](page_id="1", title="T", content="c")
    )

    assert result["error"]["code"] == "confluence:read_only"
    assert "confluence_update_page" not in mcp_server.register_tools(server, dispatcher)


def test_tool_functions_cover_registry_with_matching_parameters() -> None:
    """Every registered tool has an entry point whose parameters are exactly
    the fields of its request model."""

    functions = mcp_server.tool_functions(_dispatcher(FakeConfluenceAPI()))

    assert set(functions) == {spec.name for spec in TOOL_SPECS}
    for spec in TOOL_SPECS:
        parameters = list(inspect.signature(functions[spec.name]).parameters)
        assert parameters == list(spec.request_model.model_fields), spec.name


def test_content_format_is_advertised_as_literal() -> None:
    functions = mcp_server.tool_functions(_dispatcher(FakeConfluenceAPI()))

    for name in ("confluence_create_page", "confluence_update_page"):
        hints = get_type_hints(functions[name])
        assert hints["content_format"] == ContentFormat
        assert get_args(hints["content_format"]) == ("storage", "markdown")


def test_registration_follows_dispatcher_tool_list(monkeypatch: pytest.MonkeyPatch) -> None:
    dispatcher = _dispatcher(FakeConfluenceAPI())
    subset = [spec for spec in TOOL_SPECS if spec.name == "confluence_create_page"]
    monkeypatch.setattr(dispatcher, "list_tools", lambda: subset)
    server = DummyFastMCP(name="n", version="v", instructions="i")

    assert mcp_server.register_tools(server, dispatcher) == ["confluence_create_page"]
    assert server.descriptions["confluence_create_page"] == subset[0].description


def test_registry_entry_without_entry_point_fails_registration(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    dispatcher = _dispatcher(FakeConfluenceAPI())
    unknown = replace(TOOL_SPECS[0], name="confluence_archive_page", mutating=True)
    monkeypatch.setattr(dispatcher, "list_tools", lambda: [*TOOL_SPECS, unknown])

    with pytest.raises(RuntimeError, match="confluence_archive_page"):
        mcp_server.register_tools(DummyFastMCP(name="n", version="v", instructions="i"), dispatcher)


def test_run_server_contract(monkeypatch: pytest.MonkeyPatch) -> None:
    """`run_server` should wire FastMCP with the HTTP client and registered tools."""

    mcp_module = cast(Any, mcp_server)
    captured: dict[str, Any] = {}

    class DummyAsyncClient:
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            captured["httpx_kwargs"] = kwargs

        async def __aenter__(self) -> DummyAsyncClient:
            captured["httpx_enter"] = True
            return self

        async def __aexit__(self, *exc_info: Any) -> None:
            captured["httpx_exit"] = True

    monkeypatch.setattr(mcp_module.httpx, "AsyncClient", DummyAsyncClient)

    class RecordingFastMCP(DummyFastMCP):
        def __init__(self, *, name: str, version: str, instructions: str) -> None:
            super().__init__(name=name, version=version, instructions=instructions)
            captured["server"] = self

    monkeypatch.setattr(mcp_module, "FastMCP", RecordingFastMCP)

    settings = Settings.load(
        {
            "CONFLUENCE_BASE_URL": "https://example.atlassian.net",
            "CONFLUENCE_EMAIL": "user@example.com",
            "CONFLUENCE_API_TOKEN": "token-123",
            "CONFLUENCE_READ_ONLY": "true",
        }
    )

    asyncio.run(mcp_server.run_server(settings))

    server = captured["server"]
    assert server.init_kwargs == {
        "name": mcp_server.SERVER_NAME,
        "version": mcp_server.__version__,
        "instructions": server.init_kwargs["instructions"],
    }
    assert server.run_invoked, "run_server should await FastMCP.run_async()"
    assert not set(server.tool_callbacks) & MUTATING_TOOL_NAMES
    assert captured["httpx_kwargs"]["base_url"] == "https://example.atlassian.net"
    assert captured["httpx_kwargs"]["timeout"] == 30.0
    assert captured["httpx_enter"] and captured["httpx_exit"]


def test_instantiate_fastmcp_maps_server_id_to_id() -> None:
    class WithId:
        def __init__(self, id: str, name: str) -> None:  # noqa: A002
            self.id = id
            self.name = name

    instance = mcp_server._instantiate_fastmcp(WithId, server_id="sid", name="n", version="1")

    assert instance.id == "sid"
    assert instance.name == "n"
