"""Normalised Confluence records returned to MCP clients.

Only the fields the adapter needs are modelled; raw API payloads are parsed
through the ``from_api`` constructors.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class PageRecord(BaseModel):
    """A page as returned by the content API with ancestors and body expanded."""

    id: str = Field(description="Confluence page id", examples=["123456"])
    title: str = Field(description="Page title")
    space_key: str | None = Field(default=None, description="Key of the owning space")
    ancestor_ids: list[str] = Field(
        default_factory=list, description="Ancestor page ids, root first"
    )
    body: str = Field(default="", description="Body in Confluence storage format")
    version: int | None = Field(default=None, description="Current version number")
    web_url: str | None = Field(default=None, description="Browser link")

    @classmethod
    def from_api(cls, payload: dict[str, Any], site_root: str = "") -> PageRecord:
        space = payload.get("space") or {}
        version = payload.get("version") or {}
        body = ((payload.get("body") or {}).get("storage") or {}).get("value") or ""
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title", "")),
            space_key=space.get("key"),
            ancestor_ids=ancestor_ids_from_api(payload),
            body=body,
            version=version.get("number"),
            web_url=web_url_from_api(payload, site_root),
        )


class PageSummary(BaseModel):
    """Lightweight listing entry."""

    id: str
    title: str
    status: str | None = None
    version: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> PageSummary:
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title", "")),
            status=payload.get("status"),
            version=(payload.get("version") or {}).get("number"),
        )


class PageListing(BaseModel):
    space_key: str
    results: list[PageSummary] = Field(default_factory=list)
    size: int = 0
    limit: int = 0


class SpaceRecord(BaseModel):
    """Space metadata; ``homepage_id`` is used as the implicit create parent."""

    id: str | None = None
    key: str
    name: str = ""
    type: str | None = None
    status: str | None = None
    homepage_id: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> SpaceRecord:
        homepage_id = payload.get("homepageId") or (payload.get("homepage") or {}).get("id")
        return cls(
            id=str(payload["id"]) if payload.get("id") is not None else None,
            key=str(payload["key"]),
            name=str(payload.get("name", "")),
            type=payload.get("type"),
            status=payload.get("status"),
            homepage_id=str(homepage_id) if homepage_id else None,
        )


class SearchHit(BaseModel):
    id: str
    title: str
    space_key: str | None = None
    excerpt: str = ""
    url: str | None = None
    last_modified: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> SearchHit:
        content = payload.get("content") or {}
        space = payload.get("space") or content.get("space") or {}
        return cls(
            id=str(payload.get("id") or content.get("id")),
            title=str(payload.get("title") or content.get("title") or ""),
            space_key=space.get("key"),
            excerpt=str(payload.get("excerpt") or ""),
            url=payload.get("url") or (payload.get("_links") or {}).get("webui"),
            last_modified=payload.get("lastModified"),
        )


class SearchResults(BaseModel):
    cql: str = Field(description="CQL actually sent, including policy constraints")
    results: list[SearchHit] = Field(default_factory=list)
    size: int = 0
    total_size: int | None = None


class CreatePageResult(BaseModel):
    success: bool = True
    page_id: str
    title: str
    space_key: str
    parent_page_id: str | None = None
    url: str | None = None


class UpdatePageResult(BaseModel):
    success: bool = True
    page_id: str
    title: str
    version: int | None = None


class TaskProgressResult(UpdatePageResult):
    missing_anchors: list[str] = Field(
        default_factory=list, description="Task page sections that could not be located"
    )


class FindOrCreateResult(BaseModel):
    page_id: str
    title: str
    is_new: bool


def ancestor_ids_from_api(payload: dict[str, Any]) -> list[str]:
    return [str(item["id"]) for item in payload.get("ancestors") or [] if item.get("id")]


def web_url_from_api(payload: dict[str, Any], site_root: str = "") -> str | None:
    links = payload.get("_links") or {}
    webui = links.get("webui")
    if not webui:
        return None
    base = links.get("base") or (f"{site_root}/wiki" if site_root else "")
    return f"{base}{webui}" if base and webui.startswith("/") else webui
