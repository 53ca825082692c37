"""
Usage-driven subscription state machine.

Promotes dormant accounts on billable usage, pushes the billing date forward,
and demotes accounts that have gone quiet past their billing date. Tier
changes happen nowhere else.
"""

import logging
from datetime import datetime

from lingoflow.application.recording import UsageEventProcessor, save_quietly
from lingoflow.domain.constants import BILLING_PERIOD, INACTIVITY_WINDOW
from lingoflow.domain.models import (
    Account,
    Membership,
    Organization,
    Tier,
    UsageEvent,
    UsageEventType,
    update,
)
from lingoflow.domain.ports import BillingClient, Store
from lingoflow.domain.query import eq, ge

from .dispatch import fire_and_forget

logger = logging.getLogger(__name__)


class SubscriptionStateMachine(UsageEventProcessor):
    """
    Applies usage events to account subscription state.

    Business-rule violations (unknown account, dormant account without
    auto-reactivation) are silent no-ops; they show up only in the log.
    """

    def __init__(self, store: Store, billing: BillingClient):
        self._store = store
        self._billing = billing

    async def process(self, event: UsageEvent) -> Account | None:
        """
        Apply one usage event.

        Returns the updated account, or None when the event changed nothing.
        """
        account = self._load_account(event.account_id)
        if account is None:
            logger.info(f"Ignoring {event.type.value} event {event.id}: unknown account")
            return None

        if event.type.is_billable:
            return await self._apply_billable_usage(account, event)

        if event.type == UsageEventType.REVIEW and account.tier == Tier.STORAGE:
            account = update(account, last_usage_at=event.created_at)
            save_quietly(self._store, account)
            return account

        return None

    async def _apply_billable_usage(self, account: Account, event: UsageEvent) -> Account | None:
        if account.tier == Tier.STORAGE and not account.auto_reactivate:
            logger.info(
                f"Ignoring {event.type.value} for {account.id}: storage tier, auto-reactivate off"
            )
            return None

        changes: dict = {"last_usage_at": event.created_at}
        if account.tier == Tier.STORAGE:
            changes["tier"] = Tier.ACTIVE
            changes["last_state_change_at"] = event.created_at
            logger.info(f"Reactivating {account.id}: storage -> active")

        candidate = event.created_at + BILLING_PERIOD
        existing = account.next_bill_date
        changes["next_bill_date"] = max(existing, candidate) if existing else candidate

        account = update(account, **changes)
        save_quietly(self._store, account)
        await fire_and_forget(
            self._billing.ensure_active_subscription(account),
            f"ensure_active_subscription({account.id})",
        )
        return account

    def nightly_downgrade(self, now: datetime) -> list[str]:
        """
        Demote accounts whose billing date has passed without recent usage.

        Applies to every tier, `team` included. Returns the demoted ids.
        """
        demoted: list[str] = []
        try:
            accounts = self._store.query(Account)
        except Exception as e:
            logger.error(f"Nightly downgrade could not list accounts: {e}")
            return demoted

        for account in accounts:
            try:
                if self._should_downgrade(account, now):
                    save_quietly(
                        self._store,
                        update(account, tier=Tier.STORAGE, last_state_change_at=now),
                    )
                    demoted.append(account.id)
                    logger.info(f"Downgraded {account.id}: {account.tier.value} -> storage")
            except Exception as e:
                logger.error(f"Nightly downgrade failed for {account.id}: {e}")

        return demoted

    @staticmethod
    def _should_downgrade(account: Account, now: datetime) -> bool:
        if account.next_bill_date is None or now <= account.next_bill_date:
            return False
        if account.last_usage_at is not None and now - account.last_usage_at < INACTIVITY_WINDOW:
            return False
        return True

    async def send_metering_snapshot(self, period_start: datetime) -> dict[str, int]:
        """
        Report the active-member count of every organization to billing.

        A member is active when on the `team` tier or when they produced
        billable usage since `period_start`. Organizations with no active
        member are not reported. Returns org id -> reported count.
        """
        reported: dict[str, int] = {}
        try:
            orgs = self._store.query(Organization)
        except Exception as e:
            logger.error(f"Metering snapshot could not list organizations: {e}")
            return reported

        for org in orgs:
            try:
                active_count = self._count_active_members(org.id, period_start)
            except Exception as e:
                logger.error(f"Metering snapshot failed for org {org.id}: {e}")
                continue

            if active_count == 0:
                continue

            await fire_and_forget(
                self._billing.send_metered_usage(org.id, active_count, period_start),
                f"send_metered_usage({org.id}, {active_count})",
            )
            reported[org.id] = active_count

        return reported

    def _count_active_members(self, org_id: str, period_start: datetime) -> int:
        active = 0
        for membership in self._store.query(Membership, where=[eq("org_id", org_id)]):
            account = self._store.get(Account, membership.account_id)
            if account is None:
                continue
            if account.tier == Tier.TEAM or self._has_billable_usage(account.id, period_start):
                active += 1
        return active

    def _has_billable_usage(self, account_id: str, since: datetime) -> bool:
        events = self._store.query(
            UsageEvent, where=[eq("account_id", account_id), ge("created_at", since)]
        )
        return any(e.type.is_billable for e in events)

    def _load_account(self, account_id: str) -> Account | None:
        try:
            return self._store.get(Account, account_id)
        except Exception as e:
            logger.error(f"Failed to load account {account_id}: {e}")
            return None
