"""Typed argument models, one per MCP tool.

Arguments arrive as loose JSON objects; they are validated into these models
before any policy check or remote call. Both ``snake_case`` and ``camelCase``
keys are accepted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .content import ContentFormat


class ToolRequest(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
        extra="ignore",
        frozen=True,
    )


class SearchRequest(ToolRequest):
    query: str = Field(min_length=1, description="Text to search for")
    limit: int = Field(default=10, ge=1, le=100, description="Maximum number of results")


class SearchSpaceRequest(ToolRequest):
    space_key: str = Field(min_length=1, description="Space to search in")
    query: str = Field(min_length=1, description="Text to search for")
    limit: int = Field(default=10, ge=1, le=100, description="Maximum number of results")


class GetPageRequest(ToolRequest):
    page_id: str = Field(min_length=1, description="Confluence page id")


class GetSpaceRequest(ToolRequest):
    space_key: str = Field(min_length=1, description="Confluence space key")


class ListPagesRequest(ToolRequest):
    space_key: str = Field(min_length=1, description="Confluence space key")
    limit: int = Field(default=25, ge=1, le=250, description="Maximum number of pages")


class CreatePageRequest(ToolRequest):
    space_key: str = Field(min_length=1, description="Space to create the page in")
    title: str = Field(min_length=1, description="Page title")
    content: str = Field(description="Page body")
    parent_page_id: str | None = Field(
        default=None,
        description="Parent page id; defaults to the space homepage",
    )
    content_format: ContentFormat = Field(
        default="storage", description="'storage' (XHTML) or 'markdown'"
    )


class UpdatePageRequest(ToolRequest):
    page_id: str = Field(min_length=1, description="Page to update")
    title: str = Field(min_length=1, description="Updated title")
    content: str = Field(description="Updated body")
    version: int | None = Field(
        default=None, ge=1, description="Version number to write; defaults to current + 1"
    )
    content_format: ContentFormat = Field(default="storage")


class FindOrCreateParentPageRequest(ToolRequest):
    space_key: str = Field(min_length=1)
    title: str = Field(min_length=1, description="Exact title to look for (case-insensitive)")
    content: str | None = Field(default=None, description="Body used when the page is created")


class CreateTaskPageRequest(ToolRequest):
    space_key: str = Field(min_length=1)
    title: str = Field(min_length=1)
    task_description: str = Field(description="Short description of the task")
    objectives: list[str] = Field(default_factory=list)
    progress: str = Field(default="In progress", description="Initial status line")
    parent_page_id: str | None = None


class UpdateTaskProgressRequest(ToolRequest):
    page_id: str = Field(min_length=1)
    progress: str = Field(min_length=1, description="New status line")
    new_findings: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    strict: bool = Field(
        default=True,
        description="Fail when a task page section cannot be found instead of skipping it",
    )
