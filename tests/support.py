"""In-memory stand-in for :class:`confluence_mcp.api_client.ConfluenceAPIClient`."""

from __future__ import annotations

from collections import Counter
from typing import Any

from confluence_mcp.errors import RemoteCallFailure


def page_payload(
    page_id: str,
    *,
    title: str | None = None,
    space_key: str | None = "TEAM",
    ancestors: list[str] | None = None,
    body: str = "<p>body</p>",
    version: int = 1,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": page_id,
        "type": "page",
        "status": "current",
        "title": title or f"Page {page_id}",
        "ancestors": [{"id": ancestor} for ancestor in ancestors or []],
        "body": {"storage": {"value": body, "representation": "storage"}},
        "version": {"number": version},
        "_links": {"webui": f"/spaces/{space_key}/pages/{page_id}"},
    }
    if space_key is not None:
        payload["space"] = {"key": space_key, "name": space_key}
    return payload


class FakeConfluenceAPI:
    """Records calls and serves pages/spaces from dictionaries."""

    def __init__(self) -> None:
        self.pages: dict[str, dict[str, Any]] = {}
        self.spaces: dict[str, dict[str, Any]] = {}
        self.failing_ancestor_ids: set[str] = set()
        self.failing_spaces: set[str] = set()
        self.search_results: list[dict[str, Any]] = []
        self.ancestor_fetches: Counter[str] = Counter()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._next_id = 1000

    # -- fixtures --------------------------------------------------------

    def add_page(self, page_id: str, **kwargs: Any) -> dict[str, Any]:
        payload = page_payload(page_id, **kwargs)
        self.pages[page_id] = payload
        return payload

    def add_space(self, key: str, homepage_id: str | None = None) -> None:
        self.spaces[key] = {
            "id": str(len(self.spaces) + 1),
            "key": key,
            "name": f"{key} space",
            "type": "global",
            "status": "current",
            "homepageId": homepage_id,
        }

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _missing(self, method: str, url: str) -> RemoteCallFailure:
        return RemoteCallFailure("Confluence API error (404): not found", method=method, url=url, status_code=404)

    # -- API surface -----------------------------------------------------

    async def get_page(self, page_id: str) -> dict[str, Any]:
        self.calls.append(("get_page", (page_id,)))
        if page_id not in self.pages:
            raise self._missing("GET", f"content/{page_id}")
        return self.pages[page_id]

    async def get_ancestor_ids(self, page_id: str) -> list[str]:
        self.calls.append(("get_ancestor_ids", (page_id,)))
        self.ancestor_fetches[page_id] += 1
        if page_id in self.failing_ancestor_ids:
            raise RemoteCallFailure(
                "Confluence API error (500): boom",
                method="GET",
                url=f"content/{page_id}",
                status_code=500,
            )
        if page_id not in self.pages:
            raise self._missing("GET", f"content/{page_id}")
        return [item["id"] for item in self.pages[page_id]["ancestors"]]

    async def get_space(self, space_key: str) -> dict[str, Any] | None:
        self.calls.append(("get_space", (space_key,)))
        if space_key in self.failing_spaces:
            raise RemoteCallFailure(
                "Confluence API unreachable", method="GET", url="spaces", status_code=None
            )
        return self.spaces.get(space_key)

    async def list_pages(self, space_key: str, limit: int = 25) -> dict[str, Any]:
        self.calls.append(("list_pages", (space_key, limit)))
        results = [
            page for page in self.pages.values() if (page.get("space") or {}).get("key") == space_key
        ][:limit]
        return {"results": results, "size": len(results), "start": 0, "limit": limit}

    async def search(self, cql: str, limit: int = 10) -> dict[str, Any]:
        self.calls.append(("search", (cql, limit)))
        results = self.search_results[:limit]
        return {"results": results, "size": len(results), "totalSize": len(self.search_results)}

    async def create_page(
        self,
        space_key: str,
        title: str,
        body: str,
        parent_page_id: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(("create_page", (space_key, title, body, parent_page_id)))
        self._next_id += 1
        page_id = str(self._next_id)
        ancestors: list[str] = []
        if parent_page_id is not None and parent_page_id in self.pages:
            parent = self.pages[parent_page_id]
            ancestors = [item["id"] for item in parent["ancestors"]] + [parent_page_id]
        return self.add_page(
            page_id, title=title, space_key=space_key, ancestors=ancestors, body=body
        )

    async def update_page(
        self, page_id: str, title: str, body: str, version: int
    ) -> dict[str, Any]:
        self.calls.append(("update_page", (page_id, title, body, version)))
        page = self.pages[page_id]
        page["title"] = title
        page["body"]["storage"]["value"] = body
        page["version"] = {"number": version}
        return page
