"""Conversion of caller-supplied page content into storage format."""

from __future__ import annotations

from typing import Literal

import markdown as _md

ContentFormat = Literal["storage", "markdown"]

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists", "attr_list"]


def markdown_to_storage(markdown_text: str) -> str:
    """Convert Markdown to the XHTML subset accepted as storage format."""
    text = markdown_text.replace("\r\n", "\n").replace("\r", "\n")
    return str(_md.markdown(text, extensions=MARKDOWN_EXTENSIONS, output_format="xhtml"))


def to_storage(content: str, content_format: ContentFormat = "storage") -> str:
    if content_format == "markdown":
        return markdown_to_storage(content)
    return content
