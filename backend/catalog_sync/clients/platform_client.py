import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx

from catalog_sync.core.config import Settings
from catalog_sync.core.exceptions import (
    ExternalAPIError,
    NotFoundError,
    RateLimitError,
    RemoteRequestError,
)
from catalog_sync.services.rate_limit_coordinator import RateLimitCoordinator
from catalog_sync.utils.rate_limit_headers import calculate_delay, extract_rate_limit_info

logger = logging.getLogger("platform_client")

SERVICE_NAME = "platform"

TokenProvider = Callable[[str], Optional[str]]


@dataclass
class PlatformResponse:
    data: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    status: int = 200


class PlatformClient:
    """
    HTTP transport to the inventory platform, one call per tenant account.

    Every response (success or not) feeds the rate-limit coordinator before
    status handling, so a 429 also updates the tenant's budget.

    Status mapping:
        429          -> RateLimitError (deferred, not an attempt)
        404          -> NotFoundError
        5xx/network  -> ExternalAPIError (retryable)
        other 4xx    -> RemoteRequestError (permanent)
    """

    def __init__(
        self,
        settings: Settings,
        token_provider: TokenProvider,
        rate_limits: Optional[RateLimitCoordinator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_url = settings.platform_api_url.rstrip("/")
        self._timeout = settings.platform_timeout_seconds
        self._token_provider = token_provider
        self._rate_limits = rate_limits
        self._transport = transport

    @property
    def api_url(self) -> str:
        return self._api_url

    async def get(
        self, tenant_id: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> PlatformResponse:
        return await self._request(tenant_id, "GET", path, params=params)

    async def post(self, tenant_id: str, path: str, body: Dict[str, Any]) -> PlatformResponse:
        return await self._request(tenant_id, "POST", path, json=body)

    async def put(self, tenant_id: str, path: str, body: Dict[str, Any]) -> PlatformResponse:
        return await self._request(tenant_id, "PUT", path, json=body)

    async def _request(
        self,
        tenant_id: str,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> PlatformResponse:
        url = f"{self._api_url}/{path.lstrip('/')}"
        logger.info("platform request tenant=%s method=%s path=%s params=%s", tenant_id, method, path, params)

        token = self._token_provider(tenant_id)
        if not token:
            raise RemoteRequestError(SERVICE_NAME, f"no access token for tenant {tenant_id}", 401)

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept-Encoding": "gzip",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method=method, url=url, headers=headers, json=json, params=params)
        except httpx.TimeoutException as e:
            raise ExternalAPIError(SERVICE_NAME, f"timeout {method} {path}: {e}") from e
        except httpx.TransportError as e:
            raise ExternalAPIError(SERVICE_NAME, f"connection failed {method} {path}: {e}") from e

        info = extract_rate_limit_info(resp.headers)
        if self._rate_limits is not None:
            self._rate_limits.record_response(tenant_id, info)

        logger.info("platform response tenant=%s status=%s path=%s remaining=%s",
                    tenant_id, resp.status_code, path, info.remaining)

        if resp.status_code == 429:
            raise RateLimitError(SERVICE_NAME, calculate_delay(info), info.model_dump(), tenant_id)
        if resp.status_code == 404:
            raise NotFoundError("resource", path, tenant_id)
        if resp.status_code >= 500:
            raise ExternalAPIError(SERVICE_NAME, f"[HTTP {resp.status_code}] {resp.text}", resp.status_code)
        if resp.status_code >= 400:
            raise RemoteRequestError(SERVICE_NAME, resp.text, resp.status_code)

        data = resp.json() if resp.text else {}
        return PlatformResponse(data=data, headers=dict(resp.headers), status=resp.status_code)
