"""Startup configuration for the Confluence MCP server."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, cast

from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError

from .errors import ConfigurationError

CONFIG_PATH_ENV = "CONFLUENCE_CONFIG_PATH"

REQUIRED_KEYS = ("CONFLUENCE_BASE_URL", "CONFLUENCE_EMAIL", "CONFLUENCE_API_TOKEN")
OPTIONAL_KEYS = (
    "CONFLUENCE_ALLOWED_SPACES",
    "CONFLUENCE_ALLOWED_READ_PARENT_PAGES",
    "CONFLUENCE_ALLOWED_WRITE_PARENT_PAGES",
    "CONFLUENCE_READ_ONLY",
    "CONFLUENCE_TIMEOUT_SECONDS",
)

DEFAULT_TIMEOUT_SECONDS = 30.0


def parse_id_list(raw: Any) -> frozenset[str] | None:
    """Normalise a comma separated string or a YAML list into an allow-list.

    ``None`` and empty values mean "unrestricted".
    """
    if raw is None:
        return None
    items: Iterable[Any]
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (int, float)):
        items = [raw]
    else:
        items = raw
    cleaned = frozenset(str(item).strip() for item in items if str(item).strip())
    return cleaned or None


def parse_flag(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return False
    return str(raw).strip().lower() == "true"


class AccessConfig(BaseModel):
    """Immutable permission settings evaluated by :class:`~confluence_mcp.access.AccessPolicy`.

    ``None`` for any allow-list means that dimension is unrestricted.
    """

    model_config = ConfigDict(frozen=True)

    allowed_spaces: frozenset[str] | None = Field(
        default=None,
        description="Space keys that may be touched (case-sensitive)",
        examples=[frozenset({"TEAM", "PROJECT"})],
    )
    allowed_read_parent_pages: frozenset[str] | None = Field(
        default=None,
        description="Page ids whose subtrees (including the pages themselves) may be read",
    )
    allowed_write_parent_pages: frozenset[str] | None = Field(
        default=None,
        description="Page ids whose subtrees (including the pages themselves) may be written",
    )
    read_only: bool = Field(default=False, description="Disable every mutating operation")


class Settings(BaseModel):
    """Validated connection and permission settings.

    Values come from ``CONFLUENCE_*`` environment variables, optionally layered
    over a YAML file named by ``CONFLUENCE_CONFIG_PATH``.
    """

    model_config = ConfigDict(frozen=True)

    base_url: HttpUrl = Field(
        description="Confluence site URL",
        examples=["https://your-domain.atlassian.net"],
    )
    email: str = Field(description="Account e-mail used for basic auth")
    api_token: str = Field(description="Atlassian API token", repr=False)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    access: AccessConfig = Field(default_factory=AccessConfig)

    @property
    def site_root(self) -> str:
        return str(self.base_url).rstrip("/")

    @classmethod
    def load(
        cls,
        environ: Mapping[str, str] | None = None,
        path: Path | str | None = None,
    ) -> Settings:
        """Build settings from the environment and an optional YAML file.

        An explicit ``path`` takes precedence over ``CONFLUENCE_CONFIG_PATH``.
        Environment variables win over file values.
        """
        env = os.environ if environ is None else environ

        values: dict[str, Any] = {}
        file_spec = path or env.get(CONFIG_PATH_ENV)
        if file_spec:
            values.update(_load_config_file(Path(file_spec).expanduser()))

        for key in (*REQUIRED_KEYS, *OPTIONAL_KEYS):
            if env.get(key):
                values[key] = env[key]

        missing = [key for key in REQUIRED_KEYS if not values.get(key)]
        if missing:
            raise ConfigurationError(
                "Missing required Confluence settings: " + ", ".join(missing),
                missing=missing,
            )

        access = AccessConfig(
            allowed_spaces=parse_id_list(values.get("CONFLUENCE_ALLOWED_SPACES")),
            allowed_read_parent_pages=parse_id_list(
                values.get("CONFLUENCE_ALLOWED_READ_PARENT_PAGES")
            ),
            allowed_write_parent_pages=parse_id_list(
                values.get("CONFLUENCE_ALLOWED_WRITE_PARENT_PAGES")
            ),
            read_only=parse_flag(values.get("CONFLUENCE_READ_ONLY")),
        )

        try:
            return cls(
                base_url=cast(HttpUrl, str(values["CONFLUENCE_BASE_URL"])),
                email=str(values["CONFLUENCE_EMAIL"]),
                api_token=str(values["CONFLUENCE_API_TOKEN"]),
                timeout_seconds=values.get("CONFLUENCE_TIMEOUT_SECONDS") or DEFAULT_TIMEOUT_SECONDS,
                access=access,
            )
        except ValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in error["loc"]) for error in exc.errors()
            )
            raise ConfigurationError(f"Invalid Confluence settings: {fields}") from exc

    def redacted_summary(self) -> list[str]:
        """Human-readable configuration lines with the token masked."""
        access = self.access
        lines = [
            f"Base URL: {self.site_root}",
            f"Email: {self.email}",
            f"API token: {self.api_token[:8]}... ({len(self.api_token)} chars)",
            f"Timeout: {self.timeout_seconds:g}s",
        ]
        lines.append(_describe_list("Allowed spaces", access.allowed_spaces))
        lines.append(_describe_list("Readable subtrees", access.allowed_read_parent_pages))
        lines.append(_describe_list("Writable subtrees", access.allowed_write_parent_pages))
        lines.append("Mode: read-only" if access.read_only else "Mode: read-write")
        return lines


def _describe_list(label: str, values: frozenset[str] | None) -> str:
    if not values:
        return f"{label}: unrestricted"
    return f"{label}: {', '.join(sorted(values))}"


def _load_config_file(location: Path) -> dict[str, Any]:
    if not location.exists():
        raise ConfigurationError(f"Configuration file not found: {location}")
    try:
        raw_config = OmegaConf.load(location)
        config = OmegaConf.to_container(raw_config, resolve=True)
    except (OmegaConfBaseException, OSError, ValueError) as exc:
        raise ConfigurationError(f"Unreadable configuration file {location}: {exc}") from exc
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration file must contain a mapping of settings.")
    return {str(key).upper(): value for key, value in config.items()}


def configuration_help() -> str:
    """Text shown on stderr when startup configuration is incomplete."""
    return "\n".join(
        [
            "Required environment variables:",
            "  CONFLUENCE_BASE_URL     Confluence site URL",
            "  CONFLUENCE_EMAIL        Account e-mail",
            "  CONFLUENCE_API_TOKEN    Atlassian API token",
            "",
            "Optional:",
            "  CONFLUENCE_ALLOWED_SPACES              Comma separated space keys",
            "  CONFLUENCE_ALLOWED_READ_PARENT_PAGES   Comma separated page ids (readable subtrees)",
            "  CONFLUENCE_ALLOWED_WRITE_PARENT_PAGES  Comma separated page ids (writable subtrees)",
            "  CONFLUENCE_READ_ONLY                   'true' disables write operations",
            "  CONFLUENCE_TIMEOUT_SECONDS             HTTP timeout (default 30)",
            f"  {CONFIG_PATH_ENV}                 YAML file holding the same keys",
            "",
            "Example:",
            '  export CONFLUENCE_BASE_URL="https://your-domain.atlassian.net"',
            '  export CONFLUENCE_EMAIL="you@example.com"',
            '  export CONFLUENCE_API_TOKEN="your-api-token"',
            '  export CONFLUENCE_ALLOWED_SPACES="TEAM,PROJECT"',
            '  export CONFLUENCE_READ_ONLY="false"',
        ]
    )
