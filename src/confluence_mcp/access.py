"""Access policy evaluation for spaces, page subtrees and read-only mode.

Three independent dimensions are checked:

* the space allow-list (exact, case-sensitive key match),
* the read and write page allow-lists, each naming page ids whose subtrees
  are reachable (a listed page is reachable itself),
* the process-wide read-only flag.

An unset or empty allow-list leaves its dimension unrestricted. When several
dimensions are configured they all have to pass.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from loguru import logger

from .ancestors import AncestorResolver
from .config import AccessConfig
from .errors import AccessDenied, ReadOnlyViolation


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def _joined(values: Collection[str] | None) -> str:
    return ", ".join(sorted(values or ()))


class AccessPolicy:
    """Decide whether an operation on a space or page is permitted."""

    def __init__(self, config: AccessConfig, resolver: AncestorResolver) -> None:
        self.config = config
        self.resolver = resolver

    @property
    def read_only(self) -> bool:
        return self.config.read_only

    def is_space_allowed(self, space_key: str) -> bool:
        allowed = self.config.allowed_spaces
        if not allowed:
            return True
        return space_key in allowed

    def validate_space_access(self, space_key: str) -> None:
        if self.is_space_allowed(space_key):
            return
        allowed = self.config.allowed_spaces or frozenset()
        logger.warning(f"Denied access to space {space_key!r}")
        raise AccessDenied(
            f"Access to space '{space_key}' is not allowed. Allowed spaces: {_joined(allowed)}",
            subject=space_key,
            allowed=allowed,
        )

    def validate_write_operation(self) -> None:
        if self.config.read_only:
            logger.warning("Rejected write operation in read-only mode")
            raise ReadOnlyViolation()

    async def check_page_access(
        self,
        page_id: str,
        allow_list: Collection[str] | None,
        *,
        list_name: str = "page",
    ) -> AccessDecision:
        if not allow_list:
            return AccessDecision(True, f"no {list_name} allow-list configured")
        if page_id in allow_list:
            return AccessDecision(True, f"page {page_id} is listed in the {list_name} allow-list")

        ancestor_ids = await self.resolver.resolve_ancestors(page_id)
        for ancestor_id in ancestor_ids:
            if ancestor_id in allow_list:
                return AccessDecision(
                    True,
                    f"page {page_id} is under {ancestor_id} from the {list_name} allow-list",
                )
        return AccessDecision(
            False,
            f"page {page_id} is not within the {list_name} allow-list ({_joined(allow_list)})",
        )

    async def is_page_access_allowed(
        self, page_id: str, allow_list: Collection[str] | None
    ) -> bool:
        decision = await self.check_page_access(page_id, allow_list)
        return decision.allowed

    async def validate_page_read_access(self, page_id: str) -> None:
        await self._validate_page_access(page_id, self.config.allowed_read_parent_pages, "read")

    async def validate_page_write_access(self, page_id: str) -> None:
        await self._validate_page_access(page_id, self.config.allowed_write_parent_pages, "write")

    async def _validate_page_access(
        self,
        page_id: str,
        allow_list: frozenset[str] | None,
        list_name: str,
    ) -> None:
        decision = await self.check_page_access(page_id, allow_list, list_name=list_name)
        if decision:
            return
        logger.warning(f"Denied {list_name} access: {decision.reason}")
        raise AccessDenied(
            f"{list_name.capitalize()} access to page '{page_id}' is not allowed: "
            f"it is outside the {list_name} allow-list. "
            f"Allowed {list_name} parent pages: {_joined(allow_list)}",
            subject=page_id,
            allowed=allow_list or (),
        )
