"""
HTTP transport for the Loki push API using an ``httpx.AsyncClient``.

One request per payload, no retries: if the push fails the batch is
reported and dropped. Connection pooling, TLS and timeouts are delegated
to httpx.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from .base import DeliveryOutcome, count_entries

if TYPE_CHECKING:
    from ..core.config import LokiConfig

__all__ = ["LokiHttpTransport"]

_BODY_SNIPPET_CHARS = 256


class LokiHttpTransport:
    """POSTs ``{"streams": [...]}`` payloads to a Loki endpoint."""

    name = "loki-http"

    def __init__(
        self,
        config: LokiConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if config.url is None:
            raise ValueError("LokiHttpTransport requires a url")
        self._config = config
        self._url = config.url
        self._client = client
        self._owns_client = client is None
        self._headers = self._build_headers(config)
        self._auth: httpx.BasicAuth | None = None
        if config.auth_mode == "basic":
            self._auth = httpx.BasicAuth(
                config.username or "", config.password or ""
            )

    @staticmethod
    def _build_headers(config: LokiConfig) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.auth_mode == "bearer":
            headers["Authorization"] = f"Bearer {config.token}"
        if config.tenant_id:
            headers["X-Scope-OrgID"] = config.tenant_id
        headers.update(config.headers)
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.request_timeout_seconds,
                auth=self._auth,
            )
        return self._client

    async def send(self, payload: dict[str, Any]) -> DeliveryOutcome:
        entries = count_entries(payload)
        client = self._get_client()
        kwargs: dict[str, Any] = {"json": payload, "headers": self._headers}
        if self._auth is not None and not self._owns_client:
            # Caller-supplied clients do not carry our credentials
            kwargs["auth"] = self._auth
        try:
            resp = await client.post(self._url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return DeliveryOutcome(
                ok=False,
                entries=entries,
                error=f"{type(exc).__name__}: {exc}",
            )
        if 200 <= resp.status_code < 300:
            return DeliveryOutcome(ok=True, entries=entries, status_code=resp.status_code)
        snippet: str | None
        try:
            snippet = resp.text[:_BODY_SNIPPET_CHARS]
        except Exception:
            snippet = None
        return DeliveryOutcome(
            ok=False,
            entries=entries,
            status_code=resp.status_code,
            error=snippet,
        )

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            client = self._client
            self._client = None
            await client.aclose()
