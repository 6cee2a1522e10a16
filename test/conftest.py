from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from toolgate.schemas.domain import ConfirmationRequest, ConfirmationToken


class _FakeConfirmer:
    """Answers every confirmation with a fixed token and records the requests."""

    def __init__(self, token: Optional[str]) -> None:
        self.token = token
        self.requests: List[ConfirmationRequest] = []

    async def confirm(self, request: ConfirmationRequest) -> Optional[str]:
        self.requests.append(request)
        return self.token


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def make_confirmer() -> Callable[[Optional[str]], _FakeConfirmer]:
    return _FakeConfirmer


@pytest.fixture
def approving_confirmer() -> _FakeConfirmer:
    return _FakeConfirmer(ConfirmationToken.approve.value)


@pytest.fixture
def rejecting_confirmer() -> _FakeConfirmer:
    return _FakeConfirmer(ConfirmationToken.reject.value)


@pytest.fixture
def write_manifest(workspace: Path) -> Callable[[Dict[str, Any]], Path]:
    """Write ``{"mcpServers": servers}`` to the default manifest location."""

    def _write(servers: Dict[str, Any]) -> Path:
        path = workspace / ".toolgate" / "mcp_config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"mcpServers": servers}), encoding="utf-8")
        return path

    return _write
