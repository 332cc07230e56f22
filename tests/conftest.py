"""Pytest configuration for test discovery and environment isolation.

This file ensures that:
- `src/` is importable
- `tests/support.py` is importable as `support`
- `CONFLUENCE_*` variables from the developer's shell do not leak into tests
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure src directory is in path for imports
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
tests_path = Path(__file__).parent
for path in (src_path, tests_path):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

CONFLUENCE_ENV_KEYS = (
    "CONFLUENCE_BASE_URL",
    "CONFLUENCE_EMAIL",
    "CONFLUENCE_API_TOKEN",
    "CONFLUENCE_ALLOWED_SPACES",
    "CONFLUENCE_ALLOWED_READ_PARENT_PAGES",
    "CONFLUENCE_ALLOWED_WRITE_PARENT_PAGES",
    "CONFLUENCE_READ_ONLY",
    "CONFLUENCE_TIMEOUT_SECONDS",
    "CONFLUENCE_CONFIG_PATH",
)


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _clean_confluence_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in CONFLUENCE_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
