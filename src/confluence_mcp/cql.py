"""Helpers for composing Confluence Query Language (CQL) strings."""

from __future__ import annotations

from collections.abc import Iterable


def quote(value: str) -> str:
    """Return ``value`` as a double-quoted CQL string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _value_list(values: Iterable[str]) -> str:
    return ", ".join(quote(value) for value in sorted(values))


def text_clause(query: str) -> str:
    return f"text ~ {quote(query)}"


def space_clause(space_keys: Iterable[str]) -> str:
    return f"space in ({_value_list(space_keys)})"


def subtree_clause(page_ids: Iterable[str]) -> str:
    """Match the listed pages and everything beneath them."""
    ids = _value_list(page_ids)
    return f"ancestor in ({ids}) OR id in ({ids})"


def conjunction(*clauses: str | None) -> str:
    """AND together the non-empty clauses, parenthesising each one."""
    present = [clause for clause in clauses if clause]
    if len(present) == 1:
        return present[0]
    return " AND ".join(f"({clause})" for clause in present)
