"""Policy-checked Confluence operations.

Each public coroutine sequences the access checks and remote calls for one
operation; tool handlers never call :class:`ConfluenceAPIClient` directly.
"""

from __future__ import annotations

import html as _html
from collections.abc import Collection
from datetime import date, datetime
from typing import Any, Protocol

from loguru import logger

from . import cql
from .access import AccessPolicy
from .ancestors import AncestorCache, AncestorResolver
from .config import AccessConfig
from .errors import AccessDenied, ConfluenceMCPError, RemoteCallFailure
from .models import (
    CreatePageResult,
    FindOrCreateResult,
    PageListing,
    PageRecord,
    PageSummary,
    SearchHit,
    SearchResults,
    SpaceRecord,
    TaskProgressResult,
    UpdatePageResult,
    ancestor_ids_from_api,
    web_url_from_api,
)
from .task_content import (
    ProgressUpdate,
    TaskPageData,
    generate_task_page_content,
    update_task_page_content,
)


class ConfluenceAPI(Protocol):
    async def get_page(self, page_id: str) -> dict[str, Any]: ...

    async def get_ancestor_ids(self, page_id: str) -> list[str]: ...

    async def get_space(self, space_key: str) -> dict[str, Any] | None: ...

    async def list_pages(self, space_key: str, limit: int = 25) -> dict[str, Any]: ...

    async def search(self, cql: str, limit: int = 10) -> dict[str, Any]: ...

    async def create_page(
        self, space_key: str, title: str, body: str, parent_page_id: str | None = None
    ) -> dict[str, Any]: ...

    async def update_page(
        self, page_id: str, title: str, body: str, version: int
    ) -> dict[str, Any]: ...


def _chain_allowed(page_id: str, ancestor_ids: list[str], allow_list: Collection[str]) -> bool:
    return page_id in allow_list or any(ancestor in allow_list for ancestor in ancestor_ids)


class ConfluenceService:
    """Confluence operations guarded by an :class:`AccessPolicy`."""

    def __init__(self, api: ConfluenceAPI, policy: AccessPolicy, *, site_root: str = "") -> None:
        self.api = api
        self.policy = policy
        self.site_root = site_root

    @classmethod
    def create(
        cls,
        api: ConfluenceAPI,
        access: AccessConfig,
        *,
        site_root: str = "",
        cache: AncestorCache | None = None,
    ) -> ConfluenceService:
        """Wire a service with its own resolver and ancestor cache."""
        resolver = AncestorResolver(api, cache)
        return cls(api, AccessPolicy(access, resolver), site_root=site_root)

    @property
    def resolver(self) -> AncestorResolver:
        return self.policy.resolver

    @property
    def access(self) -> AccessConfig:
        return self.policy.config

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def build_search_cql(self, query: str, space_key: str | None = None) -> str:
        """Combine the caller's terms with the configured allow-list constraints."""
        if space_key is not None:
            space_filter = cql.space_clause([space_key])
        elif self.access.allowed_spaces:
            space_filter = cql.space_clause(self.access.allowed_spaces)
        else:
            space_filter = None

        read_parents = self.access.allowed_read_parent_pages
        subtree_filter = cql.subtree_clause(read_parents) if read_parents else None
        return cql.conjunction(space_filter, subtree_filter, cql.text_clause(query))

    async def search(self, query: str, limit: int = 10) -> SearchResults:
        return await self._run_search(self.build_search_cql(query), limit)

    async def search_by_space(self, space_key: str, query: str, limit: int = 10) -> SearchResults:
        self.policy.validate_space_access(space_key)
        return await self._run_search(self.build_search_cql(query, space_key=space_key), limit)

    async def _run_search(self, query: str, limit: int) -> SearchResults:
        logger.info(f"Searching Confluence: cql={query!r} limit={limit}")
        payload = await self.api.search(query, limit)
        hits = [SearchHit.from_api(item) for item in payload.get("results") or []]
        return SearchResults(
            cql=query,
            results=hits,
            size=payload.get("size", len(hits)),
            total_size=payload.get("totalSize"),
        )

    async def get_page(self, page_id: str) -> PageRecord:
        await self.policy.validate_page_read_access(page_id)

        page = PageRecord.from_api(await self.api.get_page(page_id), self.site_root)

        # The owning space is only known after the fetch.
        if page.space_key is None:
            if self.access.allowed_spaces:
                raise AccessDenied(
                    f"Page '{page_id}' does not declare a space; "
                    f"allowed spaces: {', '.join(sorted(self.access.allowed_spaces))}",
                    subject=page_id,
                    allowed=self.access.allowed_spaces,
                )
        else:
            self.policy.validate_space_access(page.space_key)
        return page

    async def get_page_content(self, page_id: str) -> str:
        page = await self.get_page(page_id)
        return page.body

    async def get_space(self, space_key: str) -> SpaceRecord:
        self.policy.validate_space_access(space_key)
        payload = await self.api.get_space(space_key)
        if payload is None:
            raise RemoteCallFailure(
                f"Space with key {space_key} not found",
                method="GET",
                url=f"spaces?keys={space_key}",
                status_code=404,
            )
        return SpaceRecord.from_api(payload)

    async def list_pages(self, space_key: str, limit: int = 25) -> PageListing:
        self.policy.validate_space_access(space_key)
        payload = await self.api.list_pages(space_key, limit)
        items = payload.get("results") or []

        read_parents = self.access.allowed_read_parent_pages
        if read_parents:
            items = [
                item
                for item in items
                if _chain_allowed(str(item["id"]), ancestor_ids_from_api(item), read_parents)
            ]

        results = [PageSummary.from_api(item) for item in items]
        return PageListing(space_key=space_key, results=results, size=len(results), limit=limit)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _space_homepage_id(self, space_key: str) -> str | None:
        try:
            space = await self.get_space(space_key)
        except ConfluenceMCPError as exc:
            logger.warning(
                f"Could not resolve homepage of space {space_key}: {exc}. "
                "Creating the page at the space root."
            )
            return None
        if space.homepage_id:
            logger.info(
                f"No parent page given; using homepage {space.homepage_id} of space {space_key}"
            )
        return space.homepage_id

    async def create_page(
        self,
        space_key: str,
        title: str,
        content: str,
        parent_page_id: str | None = None,
    ) -> CreatePageResult:
        self.policy.validate_write_operation()
        self.policy.validate_space_access(space_key)

        parent_id = parent_page_id or await self._space_homepage_id(space_key)
        if parent_id:
            await self.policy.validate_page_write_access(parent_id)

        payload = await self.api.create_page(space_key, title, content, parent_id)
        self.resolver.invalidate_all()

        result = CreatePageResult(
            page_id=str(payload["id"]),
            title=str(payload.get("title", title)),
            space_key=space_key,
            parent_page_id=parent_id,
            url=web_url_from_api(payload, self.site_root),
        )
        logger.success(f"Created page {result.page_id} ({title!r}) in space {space_key}")
        return result

    async def update_page(
        self,
        page_id: str,
        title: str,
        content: str,
        version: int | None = None,
    ) -> UpdatePageResult:
        self.policy.validate_write_operation()

        existing = await self.get_page(page_id)
        await self.policy.validate_page_write_access(page_id)

        next_version = version or (existing.version or 0) + 1
        payload = await self.api.update_page(page_id, title, content, next_version)
        self.resolver.invalidate(page_id)

        new_version = (payload.get("version") or {}).get("number", next_version)
        logger.success(f"Updated page {page_id} to version {new_version}")
        return UpdatePageResult(
            page_id=str(payload.get("id", page_id)),
            title=str(payload.get("title", title)),
            version=new_version,
        )

    # ------------------------------------------------------------------
    # Higher-level helpers
    # ------------------------------------------------------------------

    async def _find_exact_title(
        self, space_key: str, title: str, *, case_sensitive: bool
    ) -> SearchHit | None:
        results = await self.search_by_space(space_key, title, limit=10)

        def _same(candidate: str) -> bool:
            if case_sensitive:
                return candidate == title
            return candidate.casefold() == title.casefold()

        for hit in results.results:
            if _same(hit.title) and hit.space_key in (None, space_key):
                return hit
        return None

    async def find_or_create_parent_page(
        self,
        space_key: str,
        title: str,
        content: str | None = None,
    ) -> FindOrCreateResult:
        self.policy.validate_write_operation()
        self.policy.validate_space_access(space_key)

        match = await self._find_exact_title(space_key, title, case_sensitive=False)
        if match is not None:
            logger.info(f"Found existing parent page {title!r} ({match.id})")
            return FindOrCreateResult(page_id=match.id, title=match.title, is_new=False)

        body = content or (
            f"<h1>{_html.escape(title)}</h1><p>This parent page was generated automatically.</p>"
        )
        created = await self.create_page(space_key, title, body)
        return FindOrCreateResult(page_id=created.page_id, title=created.title, is_new=True)

    async def find_or_create_progress_page(
        self,
        space_key: str,
        parent_page_id: str,
        title_prefix: str = "Progress",
        today: date | None = None,
    ) -> FindOrCreateResult:
        self.policy.validate_write_operation()
        self.policy.validate_space_access(space_key)

        day = today or date.today()
        title = f"{title_prefix} - {day.isoformat()}"

        match = await self._find_exact_title(space_key, title, case_sensitive=True)
        if match is not None:
            logger.info(f"Found today's progress page {title!r} ({match.id})")
            return FindOrCreateResult(page_id=match.id, title=match.title, is_new=False)

        body = generate_task_page_content(
            TaskPageData(
                task_description=f"{title_prefix}: daily progress log",
                objectives=["Complete the planned tasks", "Record findings and decisions"],
                progress="In progress",
            )
        )
        created = await self.create_page(space_key, title, body, parent_page_id)
        return FindOrCreateResult(page_id=created.page_id, title=created.title, is_new=True)

    async def create_task_page(
        self,
        space_key: str,
        title: str,
        data: TaskPageData,
        parent_page_id: str | None = None,
        now: datetime | None = None,
    ) -> CreatePageResult:
        body = generate_task_page_content(data, now)
        return await self.create_page(space_key, title, body, parent_page_id)

    async def update_task_progress(
        self,
        page_id: str,
        update: ProgressUpdate,
        *,
        strict: bool = True,
        now: datetime | None = None,
    ) -> TaskProgressResult:
        self.policy.validate_write_operation()

        existing = await self.get_page(page_id)
        rendered = update_task_page_content(existing.body, update, now, strict=strict)
        if rendered.missing_anchors:
            logger.warning(
                f"Task page {page_id} is missing sections: {', '.join(rendered.missing_anchors)}"
            )

        result = await self.update_page(
            page_id, existing.title, rendered.content, (existing.version or 0) + 1
        )
        return TaskProgressResult(**result.model_dump(), missing_anchors=rendered.missing_anchors)
