"""Tests for CQL composition and markdown conversion."""

from __future__ import annotations

from confluence_mcp import cql
from confluence_mcp.content import markdown_to_storage, to_storage


def test_quote_escapes_backslashes_and_quotes() -> None:
    assert cql.quote('a"b\\c') == '"a\\"b\\\\c"'


def test_space_clause_is_sorted() -> None:
    assert cql.space_clause({"ZED", "ABC"}) == 'space in ("ABC", "ZED")'


def test_subtree_clause_includes_listed_pages() -> None:
    assert cql.subtree_clause(["2", "1"]) == 'ancestor in ("1", "2") OR id in ("1", "2")'


def test_conjunction_skips_empty_clauses() -> None:
    assert cql.conjunction(None, 'text ~ "x"') == 'text ~ "x"'
    assert cql.conjunction("a = 1", None, "b = 2") == "(a = 1) AND (b = 2)"


def test_storage_content_passes_through() -> None:
    assert to_storage("<p>raw</p>") == "<p>raw</p>"


def test_markdown_is_converted_to_xhtml() -> None:
    rendered = to_storage("## Title\n\n- one\n- two\n\nline<br>", "markdown")

    assert "<h2>Title</h2>" in rendered
    assert "<li>one</li>" in rendered
    assert "<ul>" in rendered


def test_markdown_fenced_code_and_tables() -> None:
    rendered = markdown_to_storage(
        "```\nprint(1)\n```\n\n| a | b |\n|---|---|\n| 1 | 2 |\n"
    )

    assert "<pre><code>print(1)" in rendered
    assert "<table>" in rendered
    assert "<td>1</td>" in rendered
