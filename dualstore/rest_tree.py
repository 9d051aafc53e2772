"""
Realtime Database REST backend for the tree executor.

Every node is addressable as {base_url}/{path}.json. Reads accept the
orderBy / limitToFirst / limitToLast query parameters; writes map to
PUT (set), PATCH (update) and DELETE (remove).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from dualstore.errors import TreeStoreError
from dualstore.tree import TreeStore

logger = logging.getLogger(__name__)


class RestTreeStore(TreeStore):
    """
    TreeStore over the Firebase Realtime Database REST API.

    Opens a short-lived httpx.AsyncClient per call unless a shared client
    is supplied (the caller then owns its lifecycle).
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = timeout
        self._client = client

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.strip('/')}.json"

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: Any = None,
    ) -> Any:
        params = dict(params or {})
        if self._auth_token:
            params["auth"] = self._auth_token
        kwargs: dict[str, Any] = {"params": params}
        if payload is not None:
            kwargs["json"] = payload

        try:
            if self._client is not None:
                response = await self._client.request(method, self._url(path), **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as e:
            logger.warning("rest_tree: %s %s failed: %s", method, path, e)
            raise TreeStoreError(f"Firebase REST API unreachable: {e}") from e

        if response.is_error:
            raise TreeStoreError(
                f"Firebase REST API error: {response.status_code} {response.reason_phrase}",
                code=response.status_code,
            )
        if not response.content:
            return None
        return response.json()

    async def get(self, path, order_by=None, limit_to_first=None, limit_to_last=None):
        params: dict[str, Any] = {}
        if order_by is not None:
            # The REST API expects the child key as a JSON string
            params["orderBy"] = json.dumps(order_by)
        if limit_to_first is not None:
            params["limitToFirst"] = limit_to_first
        if limit_to_last is not None:
            params["limitToLast"] = limit_to_last
        return await self._request("GET", path, params=params)

    async def set(self, path, data):
        await self._request("PUT", path, payload=data)

    async def update(self, path, data):
        await self._request("PATCH", path, payload=data)

    async def remove(self, path):
        await self._request("DELETE", path)
