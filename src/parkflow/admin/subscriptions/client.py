"""
Backend client for subscription management.

Provides an async client for the parking-platform REST API endpoints the
operator console depends on: plan catalog, tenant subscriptions and history.
"""

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from parkflow.admin.settings import get_settings
from parkflow.admin.subscriptions.exceptions import (
    BackendAuthenticationError,
    BackendNotFoundError,
    BackendRequestError,
)
from parkflow.admin.subscriptions.models import HistoryEntry, Plan, TenantSubscriptionRecord

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_message(payload: Any, fallback: str) -> str:
    """Extract the server message; list messages are joined with '. '."""
    if not isinstance(payload, dict):
        return fallback
    message = payload.get("message")
    if isinstance(message, list):
        return ". ".join(str(m) for m in message if m) or fallback
    if isinstance(message, str) and message:
        return message
    detail = payload.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    return fallback


def _parse(model: type[ModelT], item: Any, path: str) -> ModelT:
    """Validate one payload item; malformed data surfaces as a request error."""
    try:
        return model.model_validate(item)
    except ValidationError as e:
        logger.error(
            "Malformed backend payload",
            path=path,
            model=model.__name__,
            errors=e.error_count(),
        )
        raise BackendRequestError(
            f"Failed to parse response: invalid {model.__name__} data",
            path=path,
            error="Parse Error",
        ) from e


def _parse_list(model: type[ModelT], data: Any, path: str) -> list[ModelT]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise BackendRequestError(
            f"Failed to parse response: expected a list of {model.__name__}",
            path=path,
            error="Parse Error",
        )
    return [_parse(model, item, path) for item in data]


class SubscriptionBackendClient:
    """REST client for the subscription endpoints of the platform backend."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        verify_ssl: bool = True,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the backend client.

        Args:
            base_url: API base URL (e.g., https://host/apitest)
            token: Operator bearer token
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/") if base_url else None
        self.token = token
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self._transport = transport

        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, **overrides: Any) -> "SubscriptionBackendClient":
        api = get_settings().api
        options: dict[str, Any] = {
            "base_url": api.base_url,
            "token": api.token,
            "verify_ssl": api.verify_ssl,
            "timeout": api.timeout_seconds,
        }
        options.update(overrides)
        return cls(**options)

    @property
    def is_configured(self) -> bool:
        return self.base_url is not None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url or "",
                headers=headers,
                verify=self.verify_ssl,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )

        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SubscriptionBackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an HTTP request and unwrap the response envelope.

        The backend answers ``{success, statusCode, message, data}``; bare JSON
        bodies are returned as-is.

        Raises:
            BackendRequestError: On any request failure
        """
        client = await self._get_client()

        try:
            response = await client.request(method=method, url=path, json=data, params=params)
        except httpx.TimeoutException as e:
            logger.error("Backend request timeout", path=path, error=str(e))
            raise BackendRequestError(f"Request timeout: {path}", path=path) from e
        except httpx.RequestError as e:
            logger.error("Backend request error", path=path, error=str(e))
            raise BackendRequestError(str(e) or "Network error", path=path) from e

        if response.status_code == 204 or not response.content:
            if response.is_success:
                return None

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code == 401:
            raise BackendAuthenticationError(
                _error_message(payload, "Authentication failed"), path=path
            )

        if response.status_code == 404:
            raise BackendNotFoundError(
                _error_message(payload, f"Resource not found: {path}"), path=path
            )

        if response.status_code >= 400:
            raise BackendRequestError(
                _error_message(payload, response.reason_phrase or "Request failed"),
                status_code=response.status_code,
                path=path,
                error=payload.get("error") if isinstance(payload, dict) else None,
            )

        if payload is None:
            raise BackendRequestError(
                f"Failed to parse response: {response.reason_phrase}",
                status_code=response.status_code,
                path=path,
                error="Parse Error",
            )

        if isinstance(payload, dict) and "success" in payload:
            if payload.get("success") is False:
                raise BackendRequestError(
                    _error_message(payload, "Request failed"),
                    status_code=payload.get("statusCode") or response.status_code,
                    path=path,
                )
            return payload.get("data")

        return payload

    async def health_check(self) -> bool:
        """Check that the backend answers the plan catalog endpoint."""
        if not self.is_configured:
            logger.debug("Backend client not configured")
            return False

        try:
            await self._request("GET", "/subscriptions/plans")
            return True
        except BackendRequestError as e:
            logger.warning("Backend health check failed", error=e.message)
            return False

    # ------------------------------------------------------------------
    # Plan catalog
    # ------------------------------------------------------------------

    async def list_plans(self) -> list[Plan]:
        data = await self._request("GET", "/subscriptions/plans")
        return _parse_list(Plan, data, "/subscriptions/plans")

    async def create_plan(self, fields: dict[str, Any]) -> Plan | None:
        data = await self._request("POST", "/subscriptions/plans", data=fields)
        return _parse(Plan, data, "/subscriptions/plans") if isinstance(data, dict) else None

    async def update_plan(self, plan_id: str, fields: dict[str, Any]) -> Plan | None:
        path = f"/subscriptions/plans/update/{plan_id}"
        data = await self._request("POST", path, data=fields)
        return _parse(Plan, data, path) if isinstance(data, dict) else None

    async def delete_plan(self, plan_id: str) -> None:
        await self._request("GET", f"/subscriptions/plans/delete/{plan_id}")

    # ------------------------------------------------------------------
    # Tenant subscriptions
    # ------------------------------------------------------------------

    async def list_tenant_subscriptions(self) -> list[TenantSubscriptionRecord]:
        data = await self._request("GET", "/contractors")
        return _parse_list(TenantSubscriptionRecord, data, "/contractors")

    async def assign_subscription(
        self, tenant_id: str, plan_id: str, days: int
    ) -> TenantSubscriptionRecord | None:
        """Assign ``plan_id`` to the tenant for ``days`` days.

        Returns the updated record when the backend includes one in the response.
        """
        data = await self._request(
            "POST",
            "/subscriptions/assign",
            data={"contractorId": tenant_id, "planId": plan_id, "durationDays": days},
        )
        return self._maybe_record(data, "/subscriptions/assign")

    async def extend_subscription(
        self, tenant_id: str, days: int
    ) -> TenantSubscriptionRecord | None:
        data = await self._request(
            "POST", f"/subscriptions/extend/{tenant_id}", data={"additionalDays": days}
        )
        return self._maybe_record(data, f"/subscriptions/extend/{tenant_id}")

    async def unassign_subscription(self, tenant_id: str) -> None:
        await self._request("GET", f"/subscriptions/unassign/{tenant_id}")

    async def get_tenant_subscription_history(self, tenant_id: str) -> list[HistoryEntry]:
        """Full history for a tenant, newest first."""
        path = f"/subscription-dashboard/contractor/{tenant_id}/history"
        data = await self._request("GET", path)
        return _parse_list(HistoryEntry, data, path)

    @staticmethod
    def _maybe_record(data: Any, path: str) -> TenantSubscriptionRecord | None:
        # Mutation endpoints usually answer with a bare acknowledgement
        if not isinstance(data, dict):
            return None
        if not ({"user_id", "tenant_id"} & data.keys()) or not (
            {"profiles", "plan_id", "end_date"} & data.keys()
        ):
            return None
        return _parse(TenantSubscriptionRecord, data, path)
