# Domain Package
from .models import (
    Account,
    Card,
    ExtractionCandidate,
    Membership,
    MembershipRole,
    Organization,
    ReviewOutcome,
    Source,
    SourceType,
    Tier,
    UsageEvent,
    UsageEventType,
    WeeklyUsage,
    update,
    utc_now,
)

__all__ = [
    "Account",
    "Card",
    "ExtractionCandidate",
    "Membership",
    "MembershipRole",
    "Organization",
    "ReviewOutcome",
    "Source",
    "SourceType",
    "Tier",
    "UsageEvent",
    "UsageEventType",
    "WeeklyUsage",
    "update",
    "utc_now",
]
