"""Thin async client for the Confluence Cloud REST API."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from .config import Settings
from .errors import RemoteCallFailure
from .models import ancestor_ids_from_api

V1_PREFIX = "/wiki/rest/api"
V2_PREFIX = "/wiki/api/v2"

PAGE_EXPAND = "space,ancestors,version,body.storage"


def build_http_client(settings: Settings, **kwargs: Any) -> httpx.AsyncClient:
    """Create the shared ``httpx.AsyncClient`` for a configured site."""
    return httpx.AsyncClient(
        base_url=settings.site_root,
        auth=httpx.BasicAuth(settings.email, settings.api_token),
        headers={"Accept": "application/json"},
        timeout=settings.timeout_seconds,
        **kwargs,
    )


class ConfluenceAPIClient:
    """Wrap the handful of content API calls the adapter relies on.

    No access policy is applied here; see :class:`~confluence_mcp.service.ConfluenceService`.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger.debug(f"Confluence request: {method} {path} params={params}")
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.error(f"Confluence request failed: {method} {path}: {exc}")
            raise RemoteCallFailure(
                f"Confluence API unreachable ({method} {path}): {exc}",
                method=method,
                url=path,
            ) from exc

        if response.is_error:
            body = response.text
            logger.error(f"Confluence API error {response.status_code} for {method} {path}")
            raise RemoteCallFailure(
                f"Confluence API error ({response.status_code}): {body[:500]}",
                method=method,
                url=path,
                status_code=response.status_code,
                body=body,
            )

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteCallFailure(
                f"Confluence API returned invalid JSON for {method} {path}",
                method=method,
                url=path,
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(payload, dict):
            raise RemoteCallFailure(
                f"Unexpected Confluence payload for {method} {path}",
                method=method,
                url=path,
                status_code=response.status_code,
                body=response.text,
            )
        return payload

    async def get_page(self, page_id: str) -> dict[str, Any]:
        """Fetch a page with space, ancestors, version and storage body."""
        return await self._request(
            "GET", f"{V1_PREFIX}/content/{page_id}", params={"expand": PAGE_EXPAND}
        )

    async def get_ancestor_ids(self, page_id: str) -> list[str]:
        payload = await self._request(
            "GET", f"{V1_PREFIX}/content/{page_id}", params={"expand": "ancestors"}
        )
        return ancestor_ids_from_api(payload)

    async def get_space(self, space_key: str) -> dict[str, Any] | None:
        """Return the v2 space payload for ``space_key`` or ``None`` when unknown."""
        payload = await self._request("GET", f"{V2_PREFIX}/spaces", params={"keys": space_key})
        results = payload.get("results") or []
        return results[0] if results else None

    async def list_pages(self, space_key: str, limit: int = 25) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"{V1_PREFIX}/content",
            params={
                "spaceKey": space_key,
                "type": "page",
                "limit": limit,
                "expand": "version,ancestors",
            },
        )

    async def search(self, cql: str, limit: int = 10) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"{V1_PREFIX}/content/search",
            params={"cql": cql, "limit": limit, "expand": "space"},
        )

    async def create_page(
        self,
        space_key: str,
        title: str,
        body: str,
        parent_page_id: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "page",
            "title": title,
            "space": {"key": space_key},
            "body": {"storage": {"value": body, "representation": "storage"}},
        }
        if parent_page_id:
            payload["ancestors"] = [{"id": parent_page_id}]
        return await self._request("POST", f"{V1_PREFIX}/content", json=payload)

    async def update_page(
        self,
        page_id: str,
        title: str,
        body: str,
        version: int,
    ) -> dict[str, Any]:
        payload = {
            "type": "page",
            "title": title,
            "body": {"storage": {"value": body, "representation": "storage"}},
            "version": {"number": version},
        }
        return await self._request("PUT", f"{V1_PREFIX}/content/{page_id}", json=payload)

    async def probe(self, path: str) -> httpx.Response:
        """Issue a raw GET for diagnostics; transport errors propagate."""
        return await self._client.get(path)
