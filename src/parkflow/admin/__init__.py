"""
Parkflow Admin - operator console core for the parking-management platform.

This package provides the subscription lifecycle engine behind the operator
dashboard:
- Plan catalog management (create, update, delete, refetch)
- Tenant subscription registry with search, sort and client-side pagination
- Assignment, extension, plan change and unassignment with optimistic updates
- Per-tenant subscription history and dashboard metrics

Rendering is left to the presentation layer; everything here produces plain
view-models from the backend REST API.
"""

from typing import Any

__version__ = "1.0.0"
__author__ = "Parkflow Team"


def get_version() -> str:
    """Get package version."""
    return __version__


# Quick access functions
def create_subscription_console(**kwargs: Any):
    """Quick create a subscription console wired from settings.

    Keyword arguments are forwarded to ``SubscriptionConsole.from_settings``.
    """
    from parkflow.admin.subscriptions.console import SubscriptionConsole

    return SubscriptionConsole.from_settings(**kwargs)


__all__ = [
    "__version__",
    "create_subscription_console",
    "get_version",
]
