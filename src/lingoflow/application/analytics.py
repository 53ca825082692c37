"""
Weekly usage rollups and TSV exports.

The rollup reads the usage-event log and the review outcomes; it never
mutates accounts or cards.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Literal

from lingoflow.application.recording import save_quietly
from lingoflow.domain.constants import MINUTES_PER_EVENT
from lingoflow.domain.models import (
    Account,
    Card,
    Membership,
    Organization,
    ReviewOutcome,
    Source,
    Tier,
    UsageEvent,
    UsageEventType,
    WeeklyUsage,
    update,
)
from lingoflow.domain.ports import Store
from lingoflow.domain.query import Order, eq, ge

logger = logging.getLogger(__name__)

ExportKind = Literal[
    "cards", "reviews", "sources", "user_profile", "b2b_usage", "b2b_org_metrics"
]

PAYING_TIERS = (Tier.ACTIVE, Tier.TEAM)


def week_start(moment: datetime) -> datetime:
    """Midnight on the Monday of `moment`'s ISO week, same timezone."""
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=midnight.weekday())


def _fmt(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def _ratio(numerator: int, denominator: int) -> str:
    return f"{numerator / denominator:.2f}" if denominator else "0.00"


class AnalyticsService:
    def __init__(self, store: Store):
        self._store = store

    def nightly_rollup(self, now: datetime) -> list[WeeklyUsage]:
        """
        Aggregate this week's usage per account, plus one row per org membership.
        """
        start = week_start(now)
        rows: list[WeeklyUsage] = []
        for account in self._store.query(Account):
            try:
                rows.extend(self._rollup_account(account.id, start))
            except Exception as e:
                logger.error(f"Weekly rollup failed for {account.id}: {e}")
        logger.info(f"Weekly rollup wrote {len(rows)} rows for week of {start.date()}")
        return rows

    def _rollup_account(self, account_id: str, start: datetime) -> list[WeeklyUsage]:
        events = self._store.query(
            UsageEvent, where=[eq("account_id", account_id), ge("created_at", start)]
        )
        reviews = self._store.query(
            ReviewOutcome, where=[eq("account_id", account_id), ge("shown_at", start)]
        )

        last_activity = max((e.created_at for e in events), default=None)
        if last_activity is None:
            last_activity = max((r.shown_at for r in reviews), default=None)

        base = WeeklyUsage(
            account_id=account_id,
            week_start=start,
            transcripts=sum(1 for e in events if e.type == UsageEventType.TRANSCRIBE),
            cards_reviewed=len(reviews),
            new_cards=sum(1 for e in events if e.type == UsageEventType.AI_GENERATE),
            active_minutes=len(events) * MINUTES_PER_EVENT,
            last_activity_at=last_activity,
        )
        rows = [base]
        for membership in self._store.query(Membership, where=[eq("account_id", account_id)]):
            rows.append(update(base, org_id=membership.org_id))
        for row in rows:
            save_quietly(self._store, row)
        return rows

    # ---------- Exports ----------

    def export_tsv(self, kind: ExportKind) -> str:
        exporters = {
            "cards": self._export_cards,
            "reviews": self._export_reviews,
            "sources": self._export_sources,
            "user_profile": self._export_user_profiles,
            "b2b_usage": self._export_b2b_usage,
            "b2b_org_metrics": self._export_org_metrics,
        }
        if kind not in exporters:
            raise ValueError(f"Unknown export type: {kind}")
        return exporters[kind]()

    def _export_cards(self) -> str:
        rows = ["card_id\towner_id\tsource_type\tsource_id\tterm\tgloss\tpos\tcefr\texample\ttags\tcreated_at"]
        for card in self._store.query(Card, order_by=[Order("created_at")]):
            rows.append(
                "\t".join(
                    [
                        card.id,
                        card.owner_id,
                        card.source_type.value if card.source_type else "",
                        card.source_id or "",
                        card.term,
                        card.gloss,
                        card.pos,
                        card.cefr,
                        card.example,
                        ",".join(card.tags),
                        _fmt(card.created_at),
                    ]
                )
            )
        return "\n".join(rows)

    def _export_reviews(self) -> str:
        rows = ["review_id\tcard_id\taccount_id\tdue_at\tshown_at\tgrade\tease\tinterval_s\tnext_due_at\tdevice"]
        for review in self._store.query(ReviewOutcome, order_by=[Order("shown_at")]):
            rows.append(
                "\t".join(
                    [
                        review.id,
                        review.card_id,
                        review.account_id,
                        _fmt(review.due_at),
                        _fmt(review.shown_at),
                        str(review.grade),
                        f"{review.ease:.2f}",
                        f"{review.interval_days * 86400:.0f}",
                        _fmt(review.next_due_at),
                        review.device,
                    ]
                )
            )
        return "\n".join(rows)

    def _export_b2b_usage(self) -> str:
        rows = [
            "org_id\taccount_id\tweek_start\ttranscripts\tcards_reviewed\t"
            "active_minutes\tnew_cards\tlast_activity_at"
        ]
        usages = self._store.query(WeeklyUsage, order_by=[Order("week_start")])
        for usage in usages:
            rows.append(
                "\t".join(
                    [
                        usage.org_id or "",
                        usage.account_id,
                        _fmt(usage.week_start),
                        str(usage.transcripts),
                        str(usage.cards_reviewed),
                        str(usage.active_minutes),
                        str(usage.new_cards),
                        _fmt(usage.last_activity_at),
                    ]
                )
            )
        return "\n".join(rows)

    def _export_sources(self) -> str:
        rows = ["source_id\taccount_id\ttype\turi\tlanguage\torg_id\tcreated_at"]
        for source in self._store.query(Source, order_by=[Order("created_at")]):
            rows.append(
                "\t".join(
                    [
                        source.id,
                        source.account_id,
                        source.type.value,
                        source.uri,
                        source.language or "",
                        source.org_id or "",
                        _fmt(source.created_at),
                    ]
                )
            )
        return "\n".join(rows)

    def _export_user_profiles(self) -> str:
        rows = [
            "account_id\temail\tnative_language\ttarget_language\ttier\t"
            "daily_new_goal\tauto_reactivate"
        ]
        for account in self._store.query(Account):
            rows.append(
                "\t".join(
                    [
                        account.id,
                        account.email,
                        account.native_language,
                        account.target_language or "",
                        account.tier.value,
                        str(account.daily_new_goal),
                        "true" if account.auto_reactivate else "false",
                    ]
                )
            )
        return "\n".join(rows)

    def _export_org_metrics(self) -> str:
        """
        One row per organization and rolled-up week.

        Every member with a rollup row for the week counts as an active user;
        retention is the share of them with non-zero active minutes. Paying
        users are members currently on a paid tier.
        """
        rows = [
            "org_id\torg_name\tweek_start\tactive_users\ttotal_transcripts\ttotal_cards\t"
            "reviews_per_user_avg\ttranscripts_per_user_avg\tretention_rate\tpaying_users"
        ]
        for org in self._store.query(Organization):
            members = {
                m.account_id for m in self._store.query(Membership, where=[eq("org_id", org.id)])
            }
            by_week: dict[datetime, list[WeeklyUsage]] = defaultdict(list)
            for usage in self._store.query(
                WeeklyUsage, where=[eq("org_id", org.id)], order_by=[Order("week_start")]
            ):
                if usage.account_id in members:
                    by_week[usage.week_start].append(usage)

            for start, entries in by_week.items():
                users = {e.account_id for e in entries}
                transcripts = sum(e.transcripts for e in entries)
                reviews = sum(e.cards_reviewed for e in entries)
                retained = sum(1 for e in entries if e.active_minutes > 0)
                paying = sum(1 for account_id in users if self._is_paying(account_id))
                rows.append(
                    "\t".join(
                        [
                            org.id,
                            org.name,
                            _fmt(start),
                            str(len(users)),
                            str(transcripts),
                            str(sum(e.new_cards for e in entries)),
                            _ratio(reviews, len(users)),
                            _ratio(transcripts, len(users)),
                            _ratio(retained, len(users)),
                            str(paying),
                        ]
                    )
                )
        return "\n".join(rows)

    def _is_paying(self, account_id: str) -> bool:
        account = self._store.get(Account, account_id)
        return account is not None and account.tier in PAYING_TIERS
