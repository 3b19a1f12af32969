"""
Subscription console exceptions.

Custom exceptions for subscription operations with clear error messages.
Every error carries a machine-readable code, a status code, context data and
a recovery hint so the presentation layer can surface it without guessing.
"""

from typing import Any


class SubscriptionConsoleError(Exception):
    """
    Base subscription console error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        status_code: HTTP-style status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "SUBSCRIPTION_CONSOLE_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for display or API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


class SubscriptionValidationError(SubscriptionConsoleError):
    """Input rejected locally, before any backend call."""

    def __init__(self, message: str, field: str | None = None) -> None:
        context = {}
        if field:
            context["field"] = field

        super().__init__(
            message,
            "VALIDATION_ERROR",
            status_code=422,
            context=context,
            recovery_hint="Correct the highlighted input and submit again",
        )


class BackendRequestError(SubscriptionConsoleError):
    """
    Backend call failed.

    ``message`` is the server-supplied message, verbatim. ``status_code`` is
    the HTTP status, or 0 when the request never got a response or its
    payload did not match the expected shape.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        path: str | None = None,
        error: str | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if path:
            context["path"] = path
        if error:
            context["error"] = error

        super().__init__(
            message,
            "TRANSPORT_ERROR",
            status_code=status_code,
            context=context,
            recovery_hint="Retry the action; nothing was changed locally",
        )


class BackendAuthenticationError(BackendRequestError):
    """Backend rejected the operator token."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, status_code=401, path=path)
        self.error_code = "BACKEND_UNAUTHORIZED"
        self.recovery_hint = "Sign in again to refresh the operator token"


class BackendNotFoundError(BackendRequestError):
    """Backend resource not found."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, status_code=404, path=path)
        self.error_code = "BACKEND_NOT_FOUND"
        self.recovery_hint = "Reload the dashboard; the resource may have been removed"


class PlanNotFoundError(SubscriptionConsoleError):
    """Subscription plan not present in the local catalog."""

    def __init__(self, message: str, plan_id: str | None = None) -> None:
        context = {}
        if plan_id:
            context["plan_id"] = plan_id

        super().__init__(
            message,
            "PLAN_NOT_FOUND",
            status_code=404,
            context=context,
            recovery_hint="Refresh the plan catalog or pass an explicit duration",
        )


class TenantNotFoundError(SubscriptionConsoleError):
    """Tenant not present in the local subscription registry."""

    def __init__(self, message: str, tenant_id: str | None = None) -> None:
        context = {}
        if tenant_id:
            context["tenant_id"] = tenant_id

        super().__init__(
            message,
            "TENANT_NOT_FOUND",
            status_code=404,
            context=context,
            recovery_hint="Reload the subscription list and select the tenant again",
        )
