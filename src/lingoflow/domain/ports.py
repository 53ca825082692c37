"""
Ports (interfaces) for persistence and external collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Any, TypeVar

from .models import Account
from .query import Condition, Order

E = TypeVar("E")


class Store(ABC):
    """
    Port for entity persistence.

    Implementations:
        - InMemoryStore: Dict-backed, used by tests and the default CLI profile.
        - SqliteStore: One JSON document per entity in a SQLite file.
    """

    @abstractmethod
    def get(self, kind: type[E], entity_id: str) -> E | None:
        """Fetch one entity of `kind` by id, or None if absent."""

    @abstractmethod
    def query(
        self,
        kind: type[E],
        where: Sequence[Condition] = (),
        order_by: Sequence[Order] = (),
    ) -> list[E]:
        """
        Fetch every entity of `kind` matching all `where` conditions.

        Without `order_by`, results come back in insertion order.
        """

    @abstractmethod
    def save(self, entity: Any) -> None:
        """
        Insert or replace an entity, keyed by its `id`.

        Raises TypeError for anything outside `models.ENTITY_KINDS`.
        """

    def close(self) -> None:
        """Release the underlying connection, if any."""


class TextAnalyzer(ABC):
    """Port for tokenization, lemmatization and tagging."""

    @abstractmethod
    def detect_language(self, text: str) -> str | None:
        pass

    @abstractmethod
    def tokenize(self, text: str, language: str | None = None) -> list[str]:
        pass

    @abstractmethod
    def lemmatize(self, tokens: list[str], language: str | None = None) -> list[str]:
        """Return one lemma per token, same length and order as `tokens`."""

    @abstractmethod
    def part_of_speech(self, token: str, language: str | None = None) -> str | None:
        pass


class Dictionary(ABC):
    @abstractmethod
    def lookup(self, term: str, language: str | None = None) -> str | None:
        """Return a gloss for `term`, or None on a miss."""


class LanguageModel(ABC):
    """
    Port for LLM-backed rewriting.

    Both calls may raise; callers resolve failures to fallback values.
    """

    @abstractmethod
    async def rewrite(self, prompt: str) -> str:
        """Produce a single sentence for `prompt`."""

    @abstractmethod
    async def verify(self, candidate_gloss: str, term: str) -> str:
        """Return a corrected gloss for `term`."""

    async def close(self) -> None:
        pass


class ImageGenerator(ABC):
    @abstractmethod
    async def generate(self, term: str) -> str:
        """Return an image URL illustrating `term`."""

    async def close(self) -> None:
        pass


class BillingClient(ABC):
    """
    Port for the external subscription and metering provider.

    Results are never used for control flow; see
    `lingoflow.application.subscription.dispatch`.
    """

    @abstractmethod
    async def ensure_active_subscription(self, account: Account) -> None:
        pass

    @abstractmethod
    async def send_metered_usage(
        self, org_id: str, quantity: int, period_start: datetime
    ) -> None:
        pass

    async def close(self) -> None:
        """Release network clients. The default adapter holds none."""
