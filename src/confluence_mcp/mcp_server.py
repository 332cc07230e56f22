"""MCP server entry point for the Confluence adapter."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Coroutine
from importlib import metadata
from typing import Any, cast

import httpx
from loguru import logger

from .api_client import ConfluenceAPIClient, build_http_client
from .config import Settings
from .content import ContentFormat
from .dispatcher import ToolDispatcher
from .errors import ToolCallError
from .service import ConfluenceService

ToolFunction = Callable[..., Coroutine[Any, Any, dict[str, Any]]]
ToolDecorator = Callable[[ToolFunction], ToolFunction]

FastMCP: type[Any] | None = None

SERVER_ID = "confluence-mcp-server"
SERVER_NAME = "Confluence MCP Server"

__all__ = [
    "run_server",
    "run",
    "register_tools",
    "tool_functions",
    "__version__",
    "FastMCP",
    "httpx",
]


def _resolve_version() -> str:
    """Return the installed distribution version or fall back to the project default."""

    try:
        return metadata.version("confluence-mcp")
    except metadata.PackageNotFoundError:
        return "1.0.0"


__version__ = _resolve_version()


def _import_fastmcp() -> type[Any]:
    """Import FastMCP lazily so tests can stub the implementation."""

    global FastMCP
    if FastMCP is not None:
        return FastMCP

    try:
        import fastmcp
        from fastmcp import FastMCP as FastMCPClass

        # Disable banner for stdio transport compatibility
        fastmcp.settings.show_cli_banner = False
    except ModuleNotFoundError as exc:  # pragma: no cover - exercised in tests
        raise ImportError(
            "FastMCP is required to run the Confluence MCP server. Install `fastmcp` to proceed."
        ) from exc

    FastMCP = cast(type[Any], FastMCPClass)
    return FastMCP


async def _call_tool(
    dispatcher: ToolDispatcher, tool_name: str, arguments: dict[str, Any]
) -> dict[str, Any]:
    try:
        return await dispatcher.dispatch(tool_name, arguments)
    except ToolCallError as error:
        return {"tool": tool_name, "error": {**error.payload, "message": error.message}}


def tool_functions(dispatcher: ToolDispatcher) -> dict[str, ToolFunction]:
    """Build the FastMCP entry point for every tool in the registry.

    Parameter names mirror the fields of each tool's request model.
    """

    async def search(query: str, limit: int = 10) -> dict[str, Any]:
        return await _call_tool(dispatcher, "confluence_search", {"query": query, "limit": limit})

    async def search_space(space_key: str, query: str, limit: int = 10) -> dict[str, Any]:
        return await _call_tool(
            dispatcher,
            "confluence_search_space",
            {"space_key": space_key, "query": query, "limit": limit},
        )

    async def get_page(page_id: str) -> dict[str, Any]:
        return await _call_tool(dispatcher, "confluence_get_page", {"page_id": page_id})

    async def get_space(space_key: str) -> dict[str, Any]:
        return await _call_tool(dispatcher, "confluence_get_space", {"space_key": space_key})

    async def list_pages(space_key: str, limit: int = 25) -> dict[str, Any]:
        return await _call_tool(
            dispatcher, "confluence_list_pages", {"space_key": space_key, "limit": limit}
        )

    async def create_page(
        space_key: str,
        title: str,
        content: str,
        parent_page_id: str | None = None,
        content_format: ContentFormat = "storage",
    ) -> dict[str, Any]:
        return await _call_tool(
            dispatcher,
            "confluence_create_page",
            {
                "space_key": space_key,
                "title": title,
                "content": content,
                "parent_page_id": parent_page_id,
                "content_format": content_format,
            },
        )

    async def update_page(
        page_id: str,
        title: str,
        content: str,
        version: int | None = None,
        content_format: ContentFormat = "storage",
    ) -> dict[str, Any]:
        return await _call_tool(
            dispatcher,
            "confluence_update_page",
            {
                "page_id": page_id,
                "title": title,
                "content": content,
                "version": version,
                "content_format": content_format,
            },
        )

    async def find_or_create_parent_page(
        space_key: str, title: str, content: str | None = None
    ) -> dict[str, Any]:
        return await _call_tool(
            dispatcher,
            "confluence_find_or_create_parent_page",
            {"space_key": space_key, "title": title, "content": content},
        )

    async def create_task_page(
        space_key: str,
        title: str,
        task_description: str,
        objectives: list[str] | None = None,
        progress: str = "In progress",
        parent_page_id: str | None = None,
    ) -> dict[str, Any]:
        return await _call_tool(
            dispatcher,
            "confluence_create_task_page",
            {
                "space_key": space_key,
                "title": title,
                "task_description": task_description,
                "objectives": objectives or [],
                "progress": progress,
                "parent_page_id": parent_page_id,
            },
        )

    async def update_task_progress(
        page_id: str,
        progress: str,
        new_findings: list[str] | None = None,
        next_steps: list[str] | None = None,
        strict: bool = True,
    ) -> dict[str, Any]:
        return await _call_tool(
            dispatcher,
            "confluence_update_task_progress",
            {
                "page_id": page_id,
                "progress": progress,
                "new_findings": new_findings or [],
                "next_steps": next_steps or [],
                "strict": strict,
            },
        )

    return {
        "confluence_search": search,
        "confluence_search_space": search_space,
        "confluence_get_page": get_page,
        "confluence_get_space": get_space,
        "confluence_list_pages": list_pages,
        "confluence_create_page": create_page,
        "confluence_update_page": update_page,
        "confluence_find_or_create_parent_page": find_or_create_parent_page,
        "confluence_create_task_page": create_task_page,
        "confluence_update_task_progress": update_task_progress,
    }


def register_tools(server: Any, dispatcher: ToolDispatcher) -> list[str]:
    """Register the advertised tools on ``server`` and return their names.

    Mutating tools are not registered at all in read-only mode.
    """

    functions = tool_functions(dispatcher)
    registered: list[str] = []
    for spec in dispatcher.list_tools():
        function = functions.get(spec.name)
        if function is None:
            raise RuntimeError(f"No MCP entry point is defined for tool {spec.name}")
        decorator = cast(ToolDecorator, server.tool(name=spec.name, description=spec.description))
        decorator(function)
        registered.append(spec.name)

    if dispatcher.read_only:
        logger.info("Read-only mode: write tools are not registered (CONFLUENCE_READ_ONLY)")
    return registered




async def run_server(settings: Settings | None = None) -> None:
    """Run the MCP server event loop."""

    settings = settings or Settings.load()
    fastmcp_class = _import_fastmcp()

    for line in settings.redacted_summary():
        logger.info(line)

    async with build_http_client(settings) as http_client:
        api = ConfluenceAPIClient(http_client)
        service = ConfluenceService.create(api, settings.access, site_root=settings.site_root)
        dispatcher = ToolDispatcher(service)

        server = _instantiate_fastmcp(
            fastmcp_class,
            server_id=SERVER_ID,
            name=SERVER_NAME,
            version=__version__,
            instructions=(
                "Search, read, create and update Confluence pages within the configured "
                "space and page-subtree allow-lists."
            ),
        )

        tool_names = register_tools(server, dispatcher)
        logger.info(f"Registered {len(tool_names)} tools: {', '.join(tool_names)}")

        await server.run_async()


def run(main: Callable[[], Coroutine[Any, Any, None]] | None = None) -> None:
    """Synchronous helper for CLI entry points."""
    entry = main or run_server
    try:
        asyncio.run(entry())
    except KeyboardInterrupt:
        logger.warning("MCP server interrupted by user.")
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled MCP server failure: {}", exc)
        raise


def _instantiate_fastmcp(class_: type[Any], **metadata: Any) -> Any:
    signature = inspect.signature(class_.__init__)
    parameters = signature.parameters

    filtered: dict[str, Any] = {key: value for key, value in metadata.items() if key in parameters}

    if "server_id" in metadata and "server_id" not in filtered and "id" in parameters:
        filtered["id"] = metadata["server_id"]

    if not filtered and any(
        param.kind == inspect.Parameter.VAR_KEYWORD for param in parameters.values()
    ):
        filtered = metadata

    return class_(**filtered)
