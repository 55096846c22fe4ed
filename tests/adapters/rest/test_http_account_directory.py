from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from hedgeterminal.adapters.rest.account_directory import DirectoryConfig, HttpAccountDirectory
from hedgeterminal.core.accounts.models import AccountConfig, AccountRef
from hedgeterminal.core.errors import TransportError

_CONFIG = DirectoryConfig(base_url="http://api.test", timeout=2.0)


def _directory(handler) -> HttpAccountDirectory:
    return HttpAccountDirectory(_CONFIG, "secret", transport=httpx.MockTransport(handler))


def test_list_accounts_sends_auth_headers_and_skips_bad_entries() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {"_id": "p1", "accountId": "T1", "brokerName": "Acme"},
                {"_id": "p2"},
            ],
        )

    accounts = asyncio.run(_directory(_handler).list_accounts())

    assert accounts == [AccountRef(persistent_id="p1", transport_id="T1", broker_name="Acme")]
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/account-details/accounts"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["X-Request-Timestamp"]


def test_get_account_config_uses_persistent_id() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/account-details/account/p1"
        return httpx.Response(200, json={"autoLotSizeSet": True, "splittingTarget": 2})

    config = asyncio.run(_directory(_handler).get_account_config("p1"))

    assert config == AccountConfig(auto_lot_size_set=True, splitting_target=2)


def test_server_error_becomes_transport_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    with pytest.raises(TransportError, match="returned 500"):
        asyncio.run(_directory(_handler).list_accounts())


def test_connection_failure_becomes_transport_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError, match="failed"):
        asyncio.run(_directory(_handler).get_account_config("p1"))


def test_non_list_account_response_is_rejected() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"accounts": []})

    with pytest.raises(TransportError, match="not a list"):
        asyncio.run(_directory(_handler).list_accounts())


def test_add_account_posts_payload_with_timestamp() -> None:
    bodies: list[dict] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/accounts/add"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"accountInfo": {"name": "Jo"}})

    response = asyncio.run(_directory(_handler).add_account({"accountId": "12345"}))

    assert response == {"accountInfo": {"name": "Jo"}}
    assert bodies[0]["accountId"] == "12345"
    assert "timestamp" in bodies[0]


def test_rejected_registration_returns_error_body() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/accounts/confirm"
        return httpx.Response(400, json={"error": "Invalid API key or account ID"})

    response = asyncio.run(_directory(_handler).confirm_account({"accountId": "12345"}))

    assert response == {"error": "Invalid API key or account ID"}


def test_directory_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("HT_API_URL", "http://example.test/")
    monkeypatch.setenv("HT_REST_TIMEOUT", "3.5")

    config = DirectoryConfig.from_env()

    assert config.base_url == "http://example.test"
    assert config.timeout == 3.5
