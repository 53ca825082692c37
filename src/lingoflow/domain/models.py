"""
Domain models for accounts, cards and usage events.

These are pure data structures with no I/O or external dependencies.
Entities are frozen: mutation goes through `update`, which returns a new
snapshot that the caller is responsible for persisting.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from .constants import DEFAULT_EASE, STARRED_BONUS

E = TypeVar("E")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def update(entity: E, **changes: Any) -> E:
    """Return a copy of `entity` with `changes` applied."""
    return dataclasses.replace(entity, **changes)  # type: ignore[type-var]


class Tier(str, Enum):
    STORAGE = "storage"
    ACTIVE = "active"
    TEAM = "team"


class UsageEventType(str, Enum):
    TRANSCRIBE = "transcribe"
    AI_GENERATE = "ai_generate"
    REVIEW = "review"

    @property
    def is_billable(self) -> bool:
        return self in (UsageEventType.TRANSCRIBE, UsageEventType.AI_GENERATE)


class SourceType(str, Enum):
    TRANSCRIPT = "transcript"
    KINDLE = "kindle"
    SUBTITLE = "subtitle"


class MembershipRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


@dataclass(frozen=True)
class Account:
    """
    A learner account and its subscription state.

    Attributes:
        tier: Current subscription tier. Only the state machine changes it.
        last_usage_at: Timestamp of the most recent counted usage.
        next_bill_date: Next billing date. Never moves backwards once set.
        auto_reactivate: Whether usage may promote a dormant account.
        daily_new_goal: Size target for the daily review queue.
    """

    id: str
    tier: Tier = Tier.STORAGE
    last_usage_at: datetime | None = None
    next_bill_date: datetime | None = None
    last_state_change_at: datetime | None = None
    auto_reactivate: bool = True
    daily_new_goal: int = 20
    email: str = ""
    native_language: str = "en"
    target_language: str | None = None


@dataclass(frozen=True)
class Card:
    """
    A flashcard with its SM-2 scheduling state.

    `next_due_at` is None until the card has been reviewed once.
    """

    id: str
    owner_id: str
    term: str
    gloss: str
    example: str
    cefr: str
    tags: tuple[str, ...] = ()
    pos: str = "noun"
    image_url: str = ""
    source_id: str | None = None
    source_type: SourceType | None = None
    created_at: datetime = field(default_factory=utc_now)

    # Scheduling
    strength: int = 0  # Consecutive successful recalls
    ease: float = DEFAULT_EASE
    next_due_at: datetime | None = None


@dataclass(frozen=True)
class ReviewOutcome:
    """Immutable record of one graded recall."""

    id: str
    card_id: str
    account_id: str
    grade: int
    shown_at: datetime
    ease: float
    interval_days: float
    next_due_at: datetime
    device: str
    due_at: datetime | None = None  # The card's due date before this review


@dataclass(frozen=True)
class UsageEvent:
    """
    Append-only record of a user action.

    `payload` is an opaque JSON string; see `lingoflow.domain.payloads` for
    the typed views.
    """

    id: str
    account_id: str
    type: UsageEventType
    created_at: datetime
    payload: str = "{}"
    org_id: str | None = None


@dataclass(frozen=True)
class ExtractionCandidate:
    """A term proposed for a flashcard during one extraction pass."""

    term: str
    frequency: int
    novelty: float
    is_starred: bool
    examples: tuple[str, ...] = ()

    @property
    def score(self) -> float:
        return self.frequency * self.novelty + (STARRED_BONUS if self.is_starred else 0.0)

    @property
    def is_phrase(self) -> bool:
        return " " in self.term


@dataclass(frozen=True)
class Organization:
    id: str
    name: str
    billing_email: str = ""
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Membership:
    org_id: str
    account_id: str
    role: MembershipRole = MembershipRole.MEMBER

    @property
    def id(self) -> str:
        return f"{self.org_id}:{self.account_id}"


@dataclass(frozen=True)
class Source:
    """Where a corpus came from. Drives card tags and event org attribution."""

    id: str
    account_id: str
    type: SourceType
    uri: str = ""
    language: str | None = None
    org_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class WeeklyUsage:
    account_id: str
    week_start: datetime
    org_id: str | None = None
    transcripts: int = 0
    cards_reviewed: int = 0
    new_cards: int = 0
    active_minutes: int = 0
    last_activity_at: datetime | None = None

    @property
    def id(self) -> str:
        return f"{self.org_id or 'personal'}:{self.account_id}:{self.week_start.date().isoformat()}"


ENTITY_KINDS: tuple[type, ...] = (
    Account,
    Card,
    ReviewOutcome,
    UsageEvent,
    Organization,
    Membership,
    Source,
    WeeklyUsage,
)
