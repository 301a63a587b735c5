from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Callable
from typing import Any, Optional
from unittest.mock import MagicMock

import httpx
import pytest

from cdc_indexer.config import Settings
from cdc_indexer.credentials import CACHE_GET_PATH

SECRET_ID = "opensearch-master-credentials"
USERNAME = "admin"
PASSWORD = "s3cret-Passw0rd"
SECRET_STRING = json.dumps({"username": USERNAME, "password": PASSWORD})


def encode_envelope(envelope: Any) -> str:
    return base64.b64encode(json.dumps(envelope).encode("utf-8")).decode("ascii")


def make_envelope(
    operation: str = "insert",
    table: str = "projects",
    data: Optional[dict] = None,
    record_type: str = "data",
) -> dict:
    return {
        "data": data if data is not None else {"id": 1, "name": "Fold"},
        "metadata": {
            "operation": operation,
            "partition-key-type": "schema-table",
            "record-type": record_type,
            "schema-name": "public",
            "table-name": table,
            "timestamp": "2023-05-04T10:11:12.000000Z",
            "transaction-id": 4242,
        },
    }


def run(coro):
    return asyncio.run(coro)


class FakeSearchEngine:
    """
    MockTransport handler standing in for the search engine and the secrets sidecar.

    Unless configured otherwise every index request answers 200.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], tuple[int, Any]] = {}
        self.broken: set[tuple[str, str]] = set()
        self.raw_responses: dict[tuple[str, str], tuple[int, str]] = {}
        self.secret_status = 200
        self.secret_body: Any = {"SecretString": SECRET_STRING}

    def respond(self, method: str, path: str, status: int, body: Any = None) -> None:
        self.responses[(method, path)] = (status, body)

    def respond_text(self, method: str, path: str, status: int, text: str) -> None:
        self.raw_responses[(method, path)] = (status, text)

    def break_path(self, method: str, path: str) -> None:
        self.broken.add((method, path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == CACHE_GET_PATH:
            return httpx.Response(self.secret_status, json=self.secret_body)
        key = (request.method, request.url.path)
        if key in self.broken:
            raise httpx.ConnectError("connection refused", request=request)
        if key in self.raw_responses:
            status, text = self.raw_responses[key]
            return httpx.Response(status, text=text)
        status, body = self.responses.get(key, (200, {"result": "ok"}))
        return httpx.Response(status, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def secret_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == CACHE_GET_PATH]

    @property
    def index_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != CACHE_GET_PATH]


@pytest.fixture
def search_engine() -> FakeSearchEngine:
    return FakeSearchEngine()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """
    Factory building Settings without touching the process environment.

    Usage:
        settings = settings_factory(aws_session_token="tok", parameters_secrets_extension_http_port="2773")
    """

    def _create(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "opensearch_domain_endpoint": "search.test",
            "opensearch_master_credentials_secret_id": SECRET_ID,
            "aws_session_token": None,
            "parameters_secrets_extension_http_port": None,
            "aws_region": "eu-west-1",
            "opensearch_max_concurrency": None,
        }
        values.update(overrides)
        return Settings(**values)

    return _create


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Settings using the direct secret-store path."""
    return settings_factory()


@pytest.fixture
def cached_settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Settings with the secrets cache sidecar enabled."""
    return settings_factory(
        aws_session_token="session-token",
        parameters_secrets_extension_http_port="2773",
    )


@pytest.fixture
def secrets_client() -> MagicMock:
    """Stand-in for the secret store API client."""
    client = MagicMock()
    client.get_secret_value.return_value = {"SecretString": SECRET_STRING}
    return client
