"""Command line entry point: ``confluence-mcp [serve|check-config|diagnose]``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from dataclasses import dataclass

import httpx
from loguru import logger

from . import mcp_server
from .api_client import ConfluenceAPIClient, build_http_client
from .config import Settings, configuration_help
from .errors import ConfigurationError

DIAGNOSTIC_PROBES: tuple[tuple[str, str], ...] = (
    ("Current user (v1)", "/wiki/rest/api/user/current"),
    ("Space listing (v1)", "/wiki/rest/api/space?limit=1"),
    ("Space listing (v2)", "/wiki/api/v2/spaces?limit=1"),
)

STATUS_HINTS = {
    401: "credentials rejected: check CONFLUENCE_EMAIL and CONFLUENCE_API_TOKEN",
    403: "authenticated but not permitted: check the account's Confluence permissions",
    404: "endpoint not found: check that CONFLUENCE_BASE_URL is the site root",
}


@dataclass(slots=True)
class ProbeResult:
    label: str
    path: str
    status_code: int | None
    detail: str

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


def configure_logging(level: str = "INFO") -> None:
    """Send logs to stderr; stdout carries the MCP stdio transport."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="<level>{level: <8}</level> {message}")


async def run_diagnostics(api: ConfluenceAPIClient) -> list[ProbeResult]:
    results: list[ProbeResult] = []
    for label, path in DIAGNOSTIC_PROBES:
        try:
            response = await api.probe(path)
        except httpx.HTTPError as exc:
            results.append(ProbeResult(label, path, None, f"connection error: {exc}"))
            continue
        if response.is_success:
            detail = "ok"
        else:
            detail = STATUS_HINTS.get(response.status_code, response.text[:200])
        results.append(ProbeResult(label, path, response.status_code, detail))
    return results


async def _diagnose(settings: Settings) -> list[ProbeResult]:
    async with build_http_client(settings) as http_client:
        return await run_diagnostics(ConfluenceAPIClient(http_client))


def _load_settings() -> Settings | None:
    try:
        return Settings.load()
    except ConfigurationError as exc:
        logger.error(exc.message)
        print(configuration_help(), file=sys.stderr)
        return None


def _cmd_check_config(_args: argparse.Namespace) -> int:
    settings = _load_settings()
    if settings is None:
        return 1
    for line in settings.redacted_summary():
        print(line)
    return 0


def _cmd_diagnose(_args: argparse.Namespace) -> int:
    settings = _load_settings()
    if settings is None:
        return 1
    results = asyncio.run(_diagnose(settings))
    for result in results:
        status = result.status_code if result.status_code is not None else "---"
        marker = "OK  " if result.ok else "FAIL"
        print(f"[{marker}] {result.label}: {status} {result.path} ({result.detail})")
    return 0 if all(result.ok for result in results) else 1


def _cmd_serve(_args: argparse.Namespace) -> int:
    settings = _load_settings()
    if settings is None:
        return 1

    async def _main() -> None:
        await mcp_server.run_server(settings)

    mcp_server.run(_main)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="confluence-mcp",
        description="Expose Confluence pages and spaces as MCP tools.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"],
        help="Minimum log level written to stderr (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the MCP server over stdio (default)")
    serve.set_defaults(handler=_cmd_serve)

    check = subparsers.add_parser("check-config", help="Validate and print the configuration")
    check.set_defaults(handler=_cmd_check_config)

    diagnose = subparsers.add_parser(
        "diagnose", help="Probe the Confluence API with the configured credentials"
    )
    diagnose.set_defaults(handler=_cmd_diagnose)

    parser.set_defaults(handler=_cmd_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return int(args.handler(args))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
