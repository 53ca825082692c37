"""lingoflow CLI: usage events, reviews, card generation and nightly jobs."""

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from lingoflow.application.config import resolve_config
from lingoflow.application.factory import Services, build_services
from lingoflow.application.ids import generate_id
from lingoflow.domain.models import (
    Account,
    Card,
    Membership,
    MembershipRole,
    Organization,
    Source,
    SourceType,
    Tier,
    UsageEvent,
    UsageEventType,
    utc_now,
)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="lingoflow: usage-billed flashcards from the things you read and watch.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

account_app = typer.Typer(help="Manage accounts.", no_args_is_help=True)
app.add_typer(account_app, name="account")

org_app = typer.Typer(help="Manage organizations and memberships.", no_args_is_help=True)
app.add_typer(org_app, name="org")

nightly_app = typer.Typer(help="Nightly maintenance jobs.", no_args_is_help=True)
app.add_typer(nightly_app, name="nightly")

metering_app = typer.Typer(help="Organization seat metering.", no_args_is_help=True)
app.add_typer(metering_app, name="metering")

config_app = typer.Typer(help="Inspect lingoflow configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _verbosity_to_level(verbose: int) -> int:
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def _services(ctx: typer.Context) -> Services:
    obj = ctx.ensure_object(dict)
    if "services" not in obj:
        config = resolve_config(
            {
                "store": obj.get("store"),
                "db_path": obj.get("db_path"),
                "verbose": obj.get("verbose"),
            }
        )
        services = build_services(config)
        ctx.call_on_close(services.close)
        obj["services"] = services
    return obj["services"]


def _run(services: Services, coro: Coroutine[Any, Any, T]) -> T:
    """Run `coro`, then close network clients on the same event loop."""

    async def runner() -> T:
        try:
            return await coro
        finally:
            await services.aclose()

    return asyncio.run(runner())


def _parse_moment(value: str | None) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC. None means now."""
    if not value:
        return utc_now()
    try:
        moment = datetime.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"Not an ISO timestamp: {value}") from e
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _require_account(services: Services, account_id: str) -> Account:
    account = services.store.get(Account, account_id)
    if account is None:
        typer.secho(f"Unknown account: {account_id}", fg="red", err=True)
        raise typer.Exit(1)
    return account


def _card_line(card: Card) -> str:
    due = card.next_due_at.isoformat() if card.next_due_at else "new"
    return f"{card.id}\t{card.term}\t{card.gloss}\t{due}"


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    store: Annotated[str | None, typer.Option(help="Storage backend: memory, sqlite.")] = None,
    db_path: Annotated[Path | None, typer.Option(help="SQLite database file.")] = None,
):
    """Global settings for lingoflow."""
    ctx.ensure_object(dict)
    ctx.obj.update({"verbose": verbose, "store": store, "db_path": db_path})
    logging.getLogger().setLevel(_verbosity_to_level(verbose))


# ---------------------------------------------------------------------------
# Accounts and organizations
# ---------------------------------------------------------------------------


@account_app.command("add")
def account_add(
    ctx: typer.Context,
    account_id: Annotated[str, typer.Argument(help="Account id.")],
    email: Annotated[str, typer.Option(help="Contact email.")] = "",
    tier: Annotated[Tier, typer.Option(help="Initial tier.")] = Tier.STORAGE,
    target_language: Annotated[
        str | None, typer.Option(help="Language being learned (e.g. 'es').")
    ] = None,
    daily_goal: Annotated[int, typer.Option(help="Daily review goal.")] = 20,
    auto_reactivate: Annotated[
        bool, typer.Option("--auto-reactivate/--no-auto-reactivate")
    ] = True,
):
    """Create or replace an account."""
    services = _services(ctx)
    account = Account(
        id=account_id,
        email=email,
        tier=tier,
        target_language=target_language,
        daily_new_goal=daily_goal,
        auto_reactivate=auto_reactivate,
    )
    services.store.save(account)
    typer.secho(f"Saved account {account_id} ({tier.value}).", fg="green")


@account_app.command("show")
def account_show(
    ctx: typer.Context,
    account_id: Annotated[str, typer.Argument(help="Account id.")],
):
    """Print an account as JSON."""
    account = _require_account(_services(ctx), account_id)
    typer.echo(
        json.dumps(
            {
                "id": account.id,
                "tier": account.tier.value,
                "last_usage_at": account.last_usage_at.isoformat() if account.last_usage_at else None,
                "next_bill_date": account.next_bill_date.isoformat()
                if account.next_bill_date
                else None,
                "auto_reactivate": account.auto_reactivate,
                "daily_new_goal": account.daily_new_goal,
            },
            indent=2,
        )
    )


@org_app.command("add")
def org_add(
    ctx: typer.Context,
    org_id: Annotated[str, typer.Argument(help="Organization id.")],
    name: Annotated[str, typer.Option(help="Display name.")] = "",
    billing_email: Annotated[str, typer.Option(help="Billing contact.")] = "",
):
    """Create or replace an organization."""
    services = _services(ctx)
    services.store.save(Organization(id=org_id, name=name or org_id, billing_email=billing_email))
    typer.secho(f"Saved organization {org_id}.", fg="green")


@org_app.command("join")
def org_join(
    ctx: typer.Context,
    org_id: Annotated[str, typer.Argument(help="Organization id.")],
    account_id: Annotated[str, typer.Argument(help="Account id.")],
    role: Annotated[MembershipRole, typer.Option(help="Membership role.")] = MembershipRole.MEMBER,
):
    """Add an account to an organization."""
    services = _services(ctx)
    if services.store.get(Organization, org_id) is None:
        typer.secho(f"Unknown organization: {org_id}", fg="red", err=True)
        raise typer.Exit(1)
    _require_account(services, account_id)
    services.store.save(Membership(org_id=org_id, account_id=account_id, role=role))
    typer.secho(f"{account_id} joined {org_id} as {role.value}.", fg="green")


# ---------------------------------------------------------------------------
# Usage and reviews
# ---------------------------------------------------------------------------


@app.command("event")
def event(
    ctx: typer.Context,
    account_id: Annotated[str, typer.Argument(help="Account the event belongs to.")],
    event_type: Annotated[UsageEventType, typer.Argument(help="Event type.")],
    payload: Annotated[str, typer.Option(help="JSON payload.")] = "{}",
    org_id: Annotated[str | None, typer.Option(help="Organization to attribute.")] = None,
    at: Annotated[str | None, typer.Option(help="ISO timestamp (default: now).")] = None,
):
    """Record a usage event and apply it to the account's subscription."""
    services = _services(ctx)
    try:
        json.loads(payload)
    except ValueError as e:
        raise typer.BadParameter(f"Payload is not valid JSON: {e}") from e

    usage = UsageEvent(
        id=generate_id("evt"),
        account_id=account_id,
        org_id=org_id,
        type=event_type,
        created_at=_parse_moment(at),
        payload=payload,
    )
    _run(services, services.recorder.record(usage))

    account = services.store.get(Account, account_id)
    if account is None:
        typer.secho(f"Recorded {usage.id} (unknown account, no state change).", fg="yellow")
        return
    typer.echo(f"Recorded {usage.id}: {account_id} is {account.tier.value}")


@app.command("queue")
def queue(
    ctx: typer.Context,
    account_id: Annotated[str, typer.Argument(help="Account id.")],
    on: Annotated[str | None, typer.Option(help="ISO timestamp (default: now).")] = None,
):
    """List today's review queue: due cards first, then new cards."""
    services = _services(ctx)
    account = _require_account(services, account_id)
    cards = services.scheduler.daily_queue(account, _parse_moment(on))
    if not cards:
        typer.secho("Nothing to review.", fg="yellow")
        return
    for card in cards:
        typer.echo(_card_line(card))
    typer.echo(f"Queue: {len(cards)} cards")


@app.command("grade")
def grade(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    score: Annotated[int, typer.Argument(help="Recall grade 0-5.", min=0, max=5)],
    device: Annotated[str, typer.Option(help="Device label.")] = "cli",
    at: Annotated[str | None, typer.Option(help="ISO timestamp (default: now).")] = None,
):
    """Grade a recall and reschedule the card."""
    services = _services(ctx)
    card = services.store.get(Card, card_id)
    if card is None:
        typer.secho(f"Unknown card: {card_id}", fg="red", err=True)
        raise typer.Exit(1)
    account = _require_account(services, card.owner_id)

    updated = _run(
        services,
        services.scheduler.grade(card, score, account, device, now=_parse_moment(at)),
    )
    typer.echo(
        f"{updated.term}: strength={updated.strength} ease={updated.ease:.2f} "
        f"next due {updated.next_due_at.isoformat() if updated.next_due_at else '-'}"
    )


@app.command("generate")
def generate(
    ctx: typer.Context,
    account_id: Annotated[str, typer.Argument(help="Owner of the new cards.")],
    corpus_file: Annotated[
        Path, typer.Argument(help="Text file, one sentence per line.", exists=True, dir_okay=False)
    ],
    source_type: Annotated[SourceType, typer.Option(help="Kind of source.")] = SourceType.TRANSCRIPT,
    language: Annotated[str | None, typer.Option(help="Source language (e.g. 'es').")] = None,
    starred_file: Annotated[
        Path | None,
        typer.Option(help="Text file of starred sentences.", exists=True, dir_okay=False),
    ] = None,
    org_id: Annotated[str | None, typer.Option(help="Organization to attribute.")] = None,
    limit: Annotated[int | None, typer.Option(help="Maximum number of cards.")] = None,
):
    """Generate flashcards from a corpus."""
    services = _services(ctx)
    account = _require_account(services, account_id)

    corpus = corpus_file.read_text(encoding="utf-8").splitlines()
    starred = starred_file.read_text(encoding="utf-8").splitlines() if starred_file else []
    source = Source(
        id=generate_id("src"),
        account_id=account.id,
        type=source_type,
        uri=str(corpus_file),
        language=language,
        org_id=org_id,
    )
    services.store.save(source)

    cards = _run(
        services,
        services.generator.generate_cards(
            account,
            source,
            corpus,
            starred=starred,
            limit=limit if limit is not None else services.config.extraction_limit,
        ),
    )
    for card in cards:
        typer.echo(f"{card.id}\t{card.term}\t{card.gloss}\t{card.cefr}\t{','.join(card.tags)}")
    typer.secho(f"Generated {len(cards)} cards.", fg="green")


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@nightly_app.command("downgrade")
def nightly_downgrade(
    ctx: typer.Context,
    now: Annotated[str | None, typer.Option(help="ISO timestamp (default: now).")] = None,
):
    """Demote accounts past their billing date with no recent usage."""
    services = _services(ctx)
    demoted = services.state_machine.nightly_downgrade(_parse_moment(now))
    for account_id in demoted:
        typer.echo(account_id)
    typer.echo(f"Downgraded {len(demoted)} accounts.")


@nightly_app.command("rollup")
def nightly_rollup(
    ctx: typer.Context,
    now: Annotated[str | None, typer.Option(help="ISO timestamp (default: now).")] = None,
):
    """Aggregate this week's usage per account and organization."""
    services = _services(ctx)
    rows = services.analytics.nightly_rollup(_parse_moment(now))
    typer.echo(f"Wrote {len(rows)} weekly usage rows.")


@metering_app.command("snapshot")
def metering_snapshot(
    ctx: typer.Context,
    period_start: Annotated[
        str, typer.Option(help="ISO timestamp of the billing period start.")
    ],
):
    """Report active seats per organization to the billing provider."""
    services = _services(ctx)
    reported = _run(
        services, services.state_machine.send_metering_snapshot(_parse_moment(period_start))
    )
    for org_id, count in reported.items():
        typer.echo(f"{org_id}\t{count}")
    typer.echo(f"Reported {len(reported)} organizations.")


@app.command("export")
def export(
    ctx: typer.Context,
    kind: Annotated[
        str,
        typer.Argument(
            help="What to export: cards, reviews, sources, user_profile, b2b_usage, "
            "b2b_org_metrics."
        ),
    ],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to a file instead of stdout.")
    ] = None,
):
    """Export cards, reviews, sources, profiles or org usage as TSV."""
    services = _services(ctx)
    try:
        tsv = services.analytics.export_tsv(kind)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    if output:
        output.write_text(tsv + "\n", encoding="utf-8")
        typer.secho(f"Wrote {output}", fg="green")
    else:
        typer.echo(tsv)


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8777,
    reload: Annotated[bool, typer.Option("--reload", help="Auto-reload on code changes.")] = False,
):
    """Run the HTTP server."""
    import uvicorn

    typer.secho(f"Starting lingoflow server on {host}:{port}", fg="green")
    uvicorn.run("lingoflow.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    # Secrets are never echoed
    for key in ("openai_api_key", "billing_api_key"):
        if d.get(key):
            d[key] = "***"
    typer.echo(json.dumps(d, indent=2))


if __name__ == "__main__":
    app()
