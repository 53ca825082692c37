"""
Card Generation Service: turns a corpus into new flashcards.

Coordinates candidate extraction, enrichment and materialization. Each new
card produces one `ai_generate` usage event, forwarded to the subscription
state machine as it is created.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from lingoflow.application.ids import generate_id
from lingoflow.application.recording import UsageRecorder, save_quietly
from lingoflow.domain.constants import DEFAULT_CARD_LIMIT, DEFAULT_EASE
from lingoflow.domain.models import (
    Account,
    Card,
    Source,
    UsageEvent,
    UsageEventType,
    utc_now,
)
from lingoflow.domain.payloads import GenerationPayload, encode_payload
from lingoflow.domain.ports import Store, TextAnalyzer
from lingoflow.domain.query import eq

from .candidates import extract_candidates
from .enrichment import CardEnricher, EnrichedCandidate

logger = logging.getLogger(__name__)


class CardGenerationService:
    """
    Application service for generating cards from source text.

    Follows Dependency Inversion: collaborators arrive as ports, wired by
    `lingoflow.application.factory`.
    """

    def __init__(
        self,
        store: Store,
        analyzer: TextAnalyzer,
        enricher: CardEnricher,
        recorder: UsageRecorder,
        parallel_enrichment: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._analyzer = analyzer
        self._enricher = enricher
        self._recorder = recorder
        self._parallel = parallel_enrichment
        self._clock = clock

    async def generate_cards(
        self,
        account: Account,
        source: Source,
        corpus: list[str],
        starred: Iterable[str] | None = None,
        limit: int = DEFAULT_CARD_LIMIT,
    ) -> list[Card]:
        """
        Extract, rank, enrich and persist up to `limit` new cards.

        Args:
            account: Owner of the new cards.
            source: Where the corpus came from (tags, language, org).
            corpus: Plain sentences.
            starred: Sentences the learner marked as important.
            limit: Maximum number of cards to create.

        Returns:
            The new cards, in rank order.
        """
        corpus = [s for s in corpus if s and s.strip()]
        if not corpus or limit <= 0:
            return []

        language = self._resolve_language(account, source, corpus)
        known = self._known_terms(account.id)
        candidates = extract_candidates(
            corpus,
            self._analyzer,
            language=language,
            starred=starred or (),
            known_terms=known,
            limit=limit,
        )
        logger.info(
            f"Extracted {len(candidates)} candidates for {account.id} "
            f"from {len(corpus)} sentences (language={language})"
        )

        enriched = await self._enricher.enrich_all(
            candidates, source, language, parallel=self._parallel
        )

        cards: list[Card] = []
        for item in enriched:
            cards.append(await self._materialize(account, source, item))
        return cards

    async def _materialize(self, account: Account, source: Source, item: EnrichedCandidate) -> Card:
        now = self._clock()
        card = Card(
            id=generate_id("card"),
            owner_id=account.id,
            term=item.term,
            gloss=item.gloss,
            example=item.example,
            cefr=item.cefr,
            tags=item.tags,
            pos=item.pos,
            image_url=item.image_url,
            source_id=source.id,
            source_type=source.type,
            created_at=now,
            strength=0,
            ease=DEFAULT_EASE,
            next_due_at=None,
        )
        save_quietly(self._store, card)

        event = UsageEvent(
            id=generate_id("evt"),
            account_id=account.id,
            org_id=source.org_id,
            type=UsageEventType.AI_GENERATE,
            created_at=now,
            payload=encode_payload(GenerationPayload(term=item.term)),
        )
        await self._recorder.record(event)
        return card

    def _resolve_language(self, account: Account, source: Source, corpus: list[str]) -> str | None:
        if source.language:
            return source.language
        try:
            detected = self._analyzer.detect_language(" ".join(corpus))
        except Exception as e:
            logger.warning(f"Language detection failed: {e}")
            detected = None
        return detected or account.target_language

    def _known_terms(self, account_id: str) -> set[str]:
        try:
            cards = self._store.query(Card, where=[eq("owner_id", account_id)])
        except Exception as e:
            logger.error(f"Failed to load existing cards for {account_id}: {e}")
            return set()
        return {card.term.casefold() for card in cards}
