"""
Structured logging for the operator console.

Modules log through ``structlog.get_logger(__name__)`` on top of stdlib
logging. Successful mutations also emit one line on the audit logger, tagged
with the category of the resource they touched.
"""

import logging
import sys

import structlog

from parkflow.admin.settings import Settings, get_settings

AUDIT_LOGGER_NAME = "parkflow.audit"


def _build_processors(observability: Settings.ObservabilitySettings) -> list:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if observability.enable_correlation_ids:
        processors.insert(
            0,
            structlog.processors.CallsiteParameterAdder(
                parameters=[structlog.processors.CallsiteParameter.THREAD_NAME]
            ),
        )

    if observability.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog through stdlib logging on stderr, as ``settings`` asks."""
    observability = (settings or get_settings()).observability
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=observability.log_level.value,
    )

    structlog.configure(
        processors=_build_processors(observability),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_audit_logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(AUDIT_LOGGER_NAME)


def log_audit_event(
    action: str,
    *,
    category: str,
    resource_type: str,
    resource_id: str | None = None,
    tenant_id: str | None = None,
    **details,
) -> None:
    """
    Record a successful console mutation.

    Args:
        action: Event name, e.g. ``subscription.extend`` or ``plan.deleted``
        category: Resource family, ``subscription`` or ``plan``
        resource_type: Kind of the changed resource
        resource_id: Identifier of the changed resource, when known
        tenant_id: Tenant the change applies to, if any
        **details: Extra key/values for the audit line
    """
    get_audit_logger().info(
        action,
        audit_category=category,
        audit_resource_type=resource_type,
        audit_resource_id=resource_id,
        audit_tenant_id=tenant_id,
        **details,
    )


configure_logging()
