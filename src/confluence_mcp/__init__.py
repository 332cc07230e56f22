"""Confluence MCP server with space and page-subtree access control."""

from .access import AccessDecision, AccessPolicy
from .ancestors import AncestorCache, AncestorResolver
from .api_client import ConfluenceAPIClient
from .config import AccessConfig, Settings
from .dispatcher import ToolDispatcher
from .mcp_server import run_server
from .service import ConfluenceService

__all__ = [
    "AccessConfig",
    "AccessDecision",
    "AccessPolicy",
    "AncestorCache",
    "AncestorResolver",
    "ConfluenceAPIClient",
    "ConfluenceService",
    "Settings",
    "ToolDispatcher",
    "run_server",
]
