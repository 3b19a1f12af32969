#!/usr/bin/env python
"""
CLI commands for the Parkflow operator console.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

import click

from parkflow.admin.subscriptions.console import SubscriptionConsole
from parkflow.admin.subscriptions.exceptions import SubscriptionConsoleError
from parkflow.admin.subscriptions.forms import AssignDraft
from parkflow.admin.subscriptions.models import MutationOutcome, SortField
from parkflow.admin.subscriptions.registry import utcnow
from parkflow.admin.subscriptions.status import classify_record, describe_days_remaining

T = TypeVar("T")

ALL_COMPONENTS = ("plans", "subscriptions")


@dataclass
class CLIDependencies:
    """Bundle of injectable dependencies used by CLI commands."""

    console_factory: Callable[[], SubscriptionConsole]
    clock: Callable[[], datetime]


def _get_cli_dependencies() -> CLIDependencies:
    """Return the default dependency bundle for CLI commands."""
    return CLIDependencies(
        console_factory=SubscriptionConsole.from_settings,
        clock=utcnow,
    )


def _execute(
    action: Callable[[SubscriptionConsole, CLIDependencies], Awaitable[T]],
    needs: Iterable[str] = ALL_COMPONENTS,
) -> T:
    """Run ``action`` against a freshly loaded console; errors exit with status 1."""
    deps = _get_cli_dependencies()
    needs = tuple(needs)

    async def _run() -> T:
        console = deps.console_factory()
        try:
            if needs:
                errors = await console.load()
                for name in needs:
                    if name in errors:
                        raise errors[name]
                for name, error in errors.items():
                    click.echo(f"Warning: could not load {name}: {error}", err=True)
            return await action(console, deps)
        finally:
            await console.aclose()

    try:
        return asyncio.run(_run())
    except SubscriptionConsoleError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)


def _fmt_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _echo_outcome(outcome: MutationOutcome, done: str, show_end: bool = True) -> None:
    if not outcome.applied:
        click.echo("Another request is still pending; nothing was done.")
        return
    click.echo(done)
    if show_end and outcome.record is not None and outcome.record.end_date is not None:
        click.echo(f"  Ends: {_fmt_date(outcome.record.end_date)}")


@click.group()
def cli() -> None:
    """Parkflow operator console."""
    pass


@cli.command()
def plans() -> None:
    """List subscription plans."""

    async def _plans(console: SubscriptionConsole, deps: CLIDependencies) -> None:
        if not console.catalog.plans:
            click.echo("No plans found.")
            return
        for plan in console.catalog.plans:
            click.echo(f"{plan.id}\t{plan.name}\t{plan.price}\t{plan.duration_days} days")

    _execute(_plans, needs=("plans",))


@cli.command()
@click.option("--search", default="", help="Filter by company, contact or email")
@click.option("--page", default=1, show_default=True, help="Page number")
@click.option("--page-size", type=int, default=None, help="Rows per page")
@click.option(
    "--sort-by",
    type=click.Choice([field.value for field in SortField]),
    default=None,
    help="Sort column",
)
@click.option("--desc", is_flag=True, help="Sort descending")
def subscriptions(
    search: str, page: int, page_size: int | None, sort_by: str | None, desc: bool
) -> None:
    """List tenants with an assigned plan."""

    async def _subscriptions(console: SubscriptionConsole, deps: CLIDependencies) -> None:
        registry = console.registry
        registry.set_search(search)
        if page_size is not None:
            registry.set_page_size(page_size)
        registry.set_sort(SortField(sort_by) if sort_by else None, descending=desc)
        view = registry.set_page(page)

        now = deps.clock()
        plans = console.catalog.price_index()
        for record in view.items:
            plan = plans.get(record.plan_id or "")
            click.echo(
                "\t".join(
                    [
                        record.tenant_id,
                        record.company_name or "-",
                        record.contact_name or "-",
                        plan.name if plan else "Unknown plan",
                        _fmt_date(record.end_date),
                        describe_days_remaining(record.end_date, now),
                        classify_record(record, now).value,
                    ]
                )
            )
        click.echo(f"Page {view.page} of {view.page_count} ({view.total} subscriptions)")

    _execute(_subscriptions)


@cli.command()
def dashboard() -> None:
    """Show subscription metrics."""

    async def _dashboard(console: SubscriptionConsole, deps: CLIDependencies) -> None:
        summary = console.dashboard(deps.clock())
        click.echo(f"Subscribed tenants: {summary.subscribed_tenants}")
        for category, count in summary.status_counts.items():
            click.echo(f"  {category.value}: {count}")

        financials = summary.financials
        click.echo(f"Total plan amount: {financials.total_plan_amount}")
        click.echo(f"Assignments today: {financials.today_assignments}")
        click.echo(f"Revenue today: {financials.today_revenue}")
        click.echo(f"Revenue last 7 days: {financials.last_7_days_revenue}")
        click.echo(f"Revenue last 30 days: {financials.last_30_days_revenue}")

    _execute(_dashboard)


@cli.command()
@click.argument("tenant")
@click.option("--page", default=1, show_default=True, help="Page number")
@click.option("--page-size", type=int, default=None, help="Entries per page")
def history(tenant: str, page: int, page_size: int | None) -> None:
    """Show a tenant's subscription history."""

    async def _history(console: SubscriptionConsole, deps: CLIDependencies) -> None:
        result = await console.history_page(tenant, page=page, page_size=page_size)
        if not result.entries:
            click.echo("No subscription history found.")
            return
        for entry in result.entries:
            action = getattr(entry.action, "value", entry.action)
            click.echo(
                f"{_fmt_date(entry.created_at)}\t{action}\t{entry.plan_name}\t"
                f"{entry.plan_price if entry.plan_price is not None else '-'}\t"
                f"{_fmt_date(entry.start_date)} -> {_fmt_date(entry.end_date)}"
            )
        click.echo(f"Page {result.page} of {result.total_pages} ({result.total_items} entries)")

    _execute(_history, needs=())


@cli.command()
@click.argument("tenant")
@click.argument("plan")
@click.option("--days", type=int, default=None, help="Duration (defaults to the plan's)")
def assign(tenant: str, plan: str, days: int | None) -> None:
    """Assign a plan to a tenant."""

    async def _assign(console: SubscriptionConsole, deps: CLIDependencies) -> MutationOutcome:
        draft = AssignDraft(tenant_id=tenant, plan_id=plan)
        selected = console.catalog.get(plan)
        if selected is not None:
            draft = draft.select_plan(selected)
        if days is not None:
            draft.duration_days = days
        outcome = await console.coordinator.submit(draft)
        _echo_outcome(outcome, f"Subscription assigned to {tenant}.")
        return outcome

    _execute(_assign)


@cli.command()
@click.argument("tenant")
@click.argument("days", type=int)
def extend(tenant: str, days: int) -> None:
    """Extend a tenant's subscription by DAYS from now."""

    async def _extend(console: SubscriptionConsole, deps: CLIDependencies) -> MutationOutcome:
        outcome = await console.coordinator.extend_plan(tenant, days)
        _echo_outcome(outcome, f"Subscription of {tenant} extended by {days} days.")
        return outcome

    _execute(_extend)


@cli.command("change-plan")
@click.argument("tenant")
@click.argument("plan")
@click.option("--days", type=int, default=None, help="Duration (defaults to the plan's)")
def change_plan(tenant: str, plan: str, days: int | None) -> None:
    """Move a tenant to another plan."""

    async def _change(console: SubscriptionConsole, deps: CLIDependencies) -> MutationOutcome:
        outcome = await console.coordinator.change_plan(tenant, plan, days)
        _echo_outcome(outcome, f"Plan of {tenant} changed to {plan}.")
        return outcome

    _execute(_change)


@cli.command()
@click.argument("tenant")
def unassign(tenant: str) -> None:
    """Remove a tenant's plan."""

    async def _unassign(console: SubscriptionConsole, deps: CLIDependencies) -> MutationOutcome:
        console.record(tenant)
        outcome = await console.coordinator.unassign(tenant)
        _echo_outcome(outcome, f"Subscription removed from {tenant}.", show_end=False)
        return outcome

    _execute(_unassign, needs=("subscriptions",))


if __name__ == "__main__":
    cli()
