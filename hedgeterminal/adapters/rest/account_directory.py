from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from loguru import logger

from hedgeterminal.core.accounts.models import AccountConfig, AccountRef
from hedgeterminal.core.errors import TransportError


@dataclass(frozen=True)
class DirectoryConfig:
    base_url: str
    timeout: float = 15.0

    @classmethod
    def from_env(cls) -> "DirectoryConfig":
        return cls(
            base_url=os.getenv("HT_API_URL", "http://127.0.0.1:3000").rstrip("/"),
            timeout=float(os.getenv("HT_REST_TIMEOUT", "15")),
        )


class HttpAccountDirectory:
    """Async REST client for the account directory and account registration."""

    def __init__(
        self,
        config: DirectoryConfig,
        credential: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._credential = credential
        self._transport = transport

    async def list_accounts(self) -> list[AccountRef]:
        data = await self._request("get", "/account-details/accounts")
        if not isinstance(data, list):
            raise TransportError("account list response is not a list")
        accounts: list[AccountRef] = []
        for item in data:
            try:
                accounts.append(AccountRef.from_payload(item))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed account entry: {}", exc)
        return accounts

    async def get_account_config(self, persistent_id: str) -> AccountConfig:
        data = await self._request("get", f"/account-details/account/{persistent_id}")
        if not isinstance(data, dict):
            raise TransportError("account details response is not an object")
        return AccountConfig.from_payload(data)

    async def add_account(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post_setup("/accounts/add", payload)

    async def confirm_account(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post_setup("/accounts/confirm", payload)

    async def _post_setup(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = {**payload, "timestamp": _timestamp()}
        try:
            data = await self._request("post", path, json=body)
        except _RejectedRequest as exc:
            # registration rejections come back as 4xx with an error body
            return exc.body
        return data if isinstance(data, dict) else {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._config.base_url}{path}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._config.timeout) as client:
                resp = await client.request(method.upper(), url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("{} {} transport error: {}", method.upper(), path, exc)
            raise TransportError(f"{method.upper()} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            body = _json_or_empty(resp)
            if 400 <= resp.status_code < 500 and isinstance(body, dict) and body.get("error"):
                raise _RejectedRequest(resp.status_code, body)
            raise TransportError(f"{method.upper()} {path} returned {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(f"{method.upper()} {path} returned invalid JSON") from exc

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Request-Timestamp": _timestamp(),
        }
        if self._credential:
            headers["Authorization"] = f"Bearer {self._credential}"
        return headers


class _RejectedRequest(TransportError):
    def __init__(self, status_code: int, body: dict[str, Any]) -> None:
        super().__init__(f"request rejected with {status_code}: {body.get('error')}")
        self.status_code = status_code
        self.body = body


def _json_or_empty(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
