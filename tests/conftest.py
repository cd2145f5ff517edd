"""
Shared pytest fixtures for adapter-bridge tests.

This module provides:
- A recording fake HTTP client for fetch and deploy tests
- Small registries and adapter configurations
"""

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure adapter_bridge package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from adapter_bridge.adapters import zendesk
from adapter_bridge.client.base_client import Response
from adapter_bridge.config import AdapterConfig
from adapter_bridge.resources import load_registry


class RecordingClient:
    """Stands in for BaseAPIClient; records every request it receives.

    Args:
        pages: Listing endpoint -> pages yielded by ``paginate``
        responses: ``(METHOD, endpoint)`` -> response body, or an exception
            to raise
    """

    def __init__(
        self,
        pages: dict[str, list[Any]] | None = None,
        responses: dict[tuple[str, str], Any] | None = None,
    ):
        self.pages = pages or {}
        self.responses = responses or {}
        self.requests: list[tuple[str, str, Any]] = []
        self.params: list[dict[str, Any] | None] = []

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
        **kwargs: Any,
    ) -> Response:
        self.requests.append((method, endpoint, json_data))
        self.params.append(params)
        outcome = self.responses.get((method, endpoint), {})
        if isinstance(outcome, Exception):
            raise outcome
        return Response(status=200, data=outcome)

    async def get_single_page(self, endpoint: str, params: dict[str, Any] | None = None) -> Response:
        return await self.request("GET", endpoint, params=params)

    async def paginate(
        self,
        endpoint: str,
        paginate_field: str | None = None,
        params: dict[str, Any] | None = None,
    ):
        self.requests.append(("GET", endpoint, None))
        for page in self.pages.get(endpoint, []):
            if isinstance(page, Exception):
                raise page
            yield page


@pytest.fixture
def client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def zendesk_registry():
    return load_registry(zendesk.RESOURCES)


def make_config(adapter: str = "zendesk", **overrides: Any) -> AdapterConfig:
    data: dict[str, Any] = {
        "adapter": adapter,
        "service": {"url": f"https://{adapter}.example.com", "token": "secret-token"},
    }
    data.update(overrides)
    return AdapterConfig(**data)


@pytest.fixture
def zendesk_config() -> AdapterConfig:
    return make_config("zendesk")
