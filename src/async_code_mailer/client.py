# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Python client for a running code mailer.

Example:
    Submitting a code::

        async with CodeMailerClient("http://localhost:3000") as client:
            status_code, body = await client.send_code("user@example.com", "Ann", "123456")
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import aiohttp


class CodeMailerClient:
    """Thin aiohttp wrapper around the code mailer REST API."""

    def __init__(self, base_url: str = "http://localhost:3000", timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "CodeMailerClient":
        self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("CodeMailerClient must be used as an async context manager")
        return self._session

    async def send_code(self, email: str, username: str, code: str) -> Tuple[int, Dict[str, Any]]:
        """Submit a delivery request.

        The outcome is encoded in the status code (200, 202, 400 or 429), so
        no status raises here.
        """
        session = self._require_session()
        payload = {"email": email, "username": username, "code": code}
        async with session.post(self._url("send-code"), json=payload) as resp:
            return resp.status, await resp.json()

    async def _get(self, path: str) -> Dict[str, Any]:
        async with self._require_session().get(self._url(path)) as resp:
            resp.raise_for_status()
            return await resp.json()

    async def _post(self, path: str) -> Dict[str, Any]:
        async with self._require_session().post(self._url(path)) as resp:
            resp.raise_for_status()
            return await resp.json()

    async def status(self) -> Dict[str, Any]:
        return await self._get("status")

    async def queue(self) -> Dict[str, Any]:
        return await self._get("queue")

    async def run_now(self) -> Dict[str, Any]:
        return await self._post("commands/run-now")
