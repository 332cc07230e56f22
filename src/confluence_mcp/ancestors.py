"""Ancestor chain resolution with an explicitly invalidated cache."""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from .errors import RemoteCallFailure


class AncestorSource(Protocol):
    async def get_ancestor_ids(self, page_id: str) -> list[str]: ...


class AncestorCache:
    """Page id -> ancestor ids.

    Entries never expire. Writers must call :meth:`invalidate` or
    :meth:`invalidate_all` whenever page parentage may have changed.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, ...]] = {}

    def get(self, page_id: str) -> list[str] | None:
        entry = self._entries.get(page_id)
        return list(entry) if entry is not None else None

    def store(self, page_id: str, ancestor_ids: list[str]) -> None:
        self._entries[page_id] = tuple(ancestor_ids)

    def invalidate(self, page_id: str) -> None:
        self._entries.pop(page_id, None)

    def invalidate_all(self) -> None:
        self._entries.clear()

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class AncestorResolver:
    """Resolve and memoise the ancestor chain of pages."""

    def __init__(self, source: AncestorSource, cache: AncestorCache | None = None) -> None:
        self._source = source
        self.cache = cache if cache is not None else AncestorCache()

    async def resolve_ancestors(self, page_id: str) -> list[str]:
        """Return the ancestor ids of ``page_id``.

        A failed fetch is not cached and yields an empty chain, so subtree
        checks for the page deny access.
        """
        cached = self.cache.get(page_id)
        if cached is not None:
            return cached

        try:
            ancestor_ids = await self._source.get_ancestor_ids(page_id)
        except RemoteCallFailure as exc:
            logger.warning(f"Could not resolve ancestors of page {page_id}: {exc}")
            return []

        self.cache.store(page_id, ancestor_ids)
        logger.debug(f"Cached {len(ancestor_ids)} ancestors for page {page_id}")
        return list(ancestor_ids)

    def invalidate(self, page_id: str) -> None:
        self.cache.invalidate(page_id)

    def invalidate_all(self) -> None:
        self.cache.invalidate_all()
