"""Error taxonomy for the Confluence MCP server and its MCP translation."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class ConfluenceMCPError(Exception):
    """Base class for every failure raised by the adapter."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ConfluenceMCPError):
    """Required startup settings are missing or invalid."""

    code = "configuration_error"

    def __init__(self, message: str, missing: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing = tuple(missing)


class AccessDenied(ConfluenceMCPError):
    """A space, page or subtree is outside the configured allow-lists."""

    code = "access_denied"

    def __init__(self, message: str, *, subject: str, allowed: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.subject = subject
        self.allowed = tuple(sorted(allowed))


class ReadOnlyViolation(ConfluenceMCPError):
    """A mutating operation was attempted while read-only mode is active."""

    code = "read_only"

    def __init__(self, message: str = "Read-only mode is enabled; write operations are disabled.") -> None:
        super().__init__(message)


class RemoteCallFailure(ConfluenceMCPError):
    """The Confluence API answered with a non-success status or was unreachable."""

    code = "remote_call_failure"

    def __init__(
        self,
        message: str,
        *,
        method: str,
        url: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class InvalidToolArguments(ConfluenceMCPError):
    """Tool arguments failed validation before dispatch."""

    code = "invalid_arguments"

    def __init__(self, tool_name: str, errors: list[dict[str, Any]]) -> None:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ())) or 'arguments'}: {error.get('msg')}"
            for error in errors
        )
        super().__init__(f"Invalid arguments for {tool_name}: {details}")
        self.tool_name = tool_name
        self.errors = errors


class TemplateAnchorError(ConfluenceMCPError):
    """A task page no longer contains the markup an update needs to locate."""

    code = "template_anchor_missing"

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(
            "Task page content is missing expected sections: " + ", ".join(self.missing)
        )


class ToolCallError(ConfluenceMCPError):
    """A tool invocation failed; ``payload`` describes the underlying error."""

    code = "tool_call_failed"

    def __init__(self, tool_name: str, cause: Exception) -> None:
        detail = cause.message if isinstance(cause, ConfluenceMCPError) else str(cause)
        super().__init__(f"Error executing {tool_name}: {detail}")
        self.tool_name = tool_name
        self.payload = translate_error(cause)


def translate_error(error: Exception) -> dict[str, Any]:
    """Convert an adapter error into an MCP error payload."""

    if isinstance(error, ConfluenceMCPError):
        payload: dict[str, Any] = {
            "code": f"confluence:{error.code}",
            "message": error.message,
            "retryable": False,
            "domain": "confluence",
        }
        if isinstance(error, AccessDenied):
            payload["subject"] = error.subject
            payload["allowed"] = list(error.allowed)
        elif isinstance(error, RemoteCallFailure):
            payload["retryable"] = error.retryable
            payload["status_code"] = error.status_code
        elif isinstance(error, TemplateAnchorError):
            payload["missing"] = list(error.missing)
        return payload

    return {
        "code": "confluence:internal_error",
        "message": str(error) or type(error).__name__,
        "retryable": False,
        "domain": "confluence",
    }
