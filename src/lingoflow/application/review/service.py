"""
Review Scheduler: application layer orchestrator.

Builds the daily review queue and applies graded recalls: the card is
rescheduled, an immutable ReviewOutcome is written, and a `review` usage
event is recorded and forwarded to the subscription state machine.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from lingoflow.application.ids import generate_id
from lingoflow.application.recording import UsageRecorder, save_quietly
from lingoflow.domain.models import (
    Account,
    Card,
    ReviewOutcome,
    UsageEvent,
    UsageEventType,
    update,
    utc_now,
)
from lingoflow.domain.payloads import ReviewPayload, encode_payload
from lingoflow.domain.ports import Store
from lingoflow.domain.query import Order, eq, is_null, le

from .sm2 import compute_schedule

logger = logging.getLogger(__name__)


class ReviewScheduler:
    """
    SM-2 review scheduling over the cards of an account.

    Depends on the Store port and a UsageRecorder; never touches account
    fields directly.
    """

    def __init__(
        self,
        store: Store,
        recorder: UsageRecorder,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._recorder = recorder
        self._clock = clock

    def daily_queue(self, account: Account, on: datetime | None = None) -> list[Card]:
        """
        Cards to study on `on`: due cards first, topped up with new ones.

        New (never reviewed) cards are only added while the due count is
        below the account's daily goal.
        """
        on = on or self._clock()
        goal = account.daily_new_goal
        try:
            due = self._store.query(
                Card,
                where=[eq("owner_id", account.id), le("next_due_at", on)],
                order_by=[Order("next_due_at")],
            )
            if len(due) >= goal:
                return due

            fresh = self._store.query(
                Card,
                where=[eq("owner_id", account.id), is_null("next_due_at")],
                order_by=[Order("created_at")],
            )
        except Exception as e:
            logger.error(f"Failed to build daily queue for {account.id}: {e}")
            return []

        return due + fresh[: max(0, goal - len(due))]

    async def grade(
        self,
        card: Card,
        grade: int,
        account: Account,
        device: str,
        now: datetime | None = None,
    ) -> Card:
        """
        Apply a recall grade (0-5) to `card` and return the updated card.

        The card write happens before the usage event is emitted; the event
        is fully processed by the state machine before this returns.
        """
        now = now or self._clock()
        step = compute_schedule(card.strength, card.ease, card.next_due_at, grade, now)

        updated = update(
            card,
            strength=step.strength,
            ease=step.ease,
            next_due_at=step.next_due_at,
        )
        save_quietly(self._store, updated)

        outcome = ReviewOutcome(
            id=generate_id("review"),
            card_id=card.id,
            account_id=account.id,
            grade=grade,
            shown_at=now,
            ease=step.ease,
            interval_days=step.interval_days,
            next_due_at=step.next_due_at,
            device=device,
            due_at=card.next_due_at,
        )
        save_quietly(self._store, outcome)
        logger.debug(
            f"Graded {card.id} grade={grade} strength={step.strength} "
            f"ease={step.ease:.2f} interval={step.interval_days:.2f}d"
        )

        event = UsageEvent(
            id=generate_id("evt"),
            account_id=account.id,
            type=UsageEventType.REVIEW,
            created_at=now,
            payload=encode_payload(ReviewPayload(card_id=card.id, grade=grade)),
        )
        await self._recorder.record(event)
        return updated
