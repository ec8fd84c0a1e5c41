"""
HTTP implementation of the shield backend using httpx.

Endpoints:
  POST /api/cleanup/resolve
  PUT  /api/cleanup/vendors/{vendor_id}/rules
  PUT  /api/cleanup/templates/{template_id}/rules
  POST /api/review/{case_id}/cleanup-snapshot
  POST /api/review/{case_id}/reextract
"""

from typing import Any, Optional

import httpx
import structlog

from shield_review.clients.base import ShieldBackend, ShieldBackendError
from shield_review.config import settings
from shield_review.schemas.resolver import (
    ResolveRequest,
    ResolveResponse,
    SaveSnapshotRequest,
    SaveTemplateRulesRequest,
    SaveVendorRulesRequest,
)
from shield_review.schemas.shields import CleanupShield

logger = structlog.get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Server-provided message if there is one, else the status code."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"HTTP {response.status_code}"


class HttpShieldBackend(ShieldBackend):

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Accept": "application/json"}
        api_key = api_key or settings.RESOLVER_API_KEY
        if api_key:
            headers["X-API-Key"] = api_key
        if client is not None:
            client.headers.update(headers)
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.RESOLVER_BASE_URL,
            timeout=timeout_seconds or settings.RESOLVER_TIMEOUT_SECONDS,
            headers=headers,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Optional[dict] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            logger.warning("backend_request_failed", operation=operation, path=path, error=str(e))
            raise ShieldBackendError(operation, f"Request failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "backend_request_rejected",
                operation=operation,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise ShieldBackendError(operation, message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def resolve(self, request: ResolveRequest) -> ResolveResponse:
        body = await self._request(
            "resolve", "POST", "/api/cleanup/resolve", request.model_dump(mode="json"),
        )
        if not isinstance(body, dict):
            raise ShieldBackendError("resolve", "Resolver returned an empty response")
        try:
            return ResolveResponse.model_validate(body)
        except ValueError as e:
            raise ShieldBackendError("resolve", f"Malformed resolver response: {e}") from e

    async def save_vendor_rules(self, vendor_id: str, shields: list[CleanupShield]) -> None:
        payload = SaveVendorRulesRequest(rules=shields).model_dump(mode="json")
        await self._request(
            "save_vendor_rules", "PUT", f"/api/cleanup/vendors/{vendor_id}/rules", payload,
        )

    async def save_template_rules(
        self,
        template_id: str,
        shields: list[CleanupShield],
        vendor_id: Optional[str] = None,
    ) -> None:
        payload = SaveTemplateRulesRequest(rules=shields, vendor_id=vendor_id).model_dump(mode="json")
        await self._request(
            "save_template_rules", "PUT", f"/api/cleanup/templates/{template_id}/rules", payload,
        )

    async def save_snapshot(self, case_id: str, shields: list[CleanupShield]) -> None:
        payload = SaveSnapshotRequest(resolved_shields=shields).model_dump(mode="json")
        await self._request(
            "save_snapshot", "POST", f"/api/review/{case_id}/cleanup-snapshot", payload,
        )

    async def trigger_extraction(self, case_id: str) -> None:
        await self._request("trigger_extraction", "POST", f"/api/review/{case_id}/reextract")

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False
