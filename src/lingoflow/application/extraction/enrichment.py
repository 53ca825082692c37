"""
Enrichment of ranked candidates with example, gloss, part of speech, image,
CEFR level and tags.

Every collaborator call resolves to a fallback value on failure, so
enrichment never raises for a missing or broken collaborator.
"""

import asyncio
import logging
from dataclasses import dataclass

from lingoflow.domain.constants import (
    CEFR_FREQUENT_THRESHOLD,
    CEFR_LONG_TERM_LENGTH,
    EXAMPLE_PROMPT,
    FALLBACK_POS,
    PHRASE_TAG,
    PLACEHOLDER_IMAGE_URL,
)
from lingoflow.domain.models import ExtractionCandidate, Source
from lingoflow.domain.ports import Dictionary, ImageGenerator, LanguageModel, TextAnalyzer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichedCandidate:
    candidate: ExtractionCandidate
    example: str
    gloss: str
    pos: str
    cefr: str
    image_url: str
    tags: tuple[str, ...]

    @property
    def term(self) -> str:
        return self.candidate.term


def estimate_cefr(term: str, frequency: int) -> str:
    """Rough CEFR level: frequent terms are easy, long terms are hard."""
    if frequency > CEFR_FREQUENT_THRESHOLD:
        return "A2"
    if len(term) > CEFR_LONG_TERM_LENGTH:
        return "C1"
    if " " in term:
        return "B1"
    return "B2"


def build_tags(source: Source, candidate: ExtractionCandidate) -> tuple[str, ...]:
    tags = [source.type.value]
    if source.language:
        tags.append(source.language)
    if candidate.is_phrase:
        tags.append(PHRASE_TAG)
    return tuple(tags)


class CardEnricher:
    """Resolves the card fields of a candidate through the collaborator ports."""

    def __init__(
        self,
        analyzer: TextAnalyzer,
        dictionary: Dictionary,
        llm: LanguageModel,
        images: ImageGenerator,
    ):
        self._analyzer = analyzer
        self._dictionary = dictionary
        self._llm = llm
        self._images = images

    async def enrich(
        self,
        candidate: ExtractionCandidate,
        source: Source,
        language: str | None,
    ) -> EnrichedCandidate:
        term = candidate.term
        example = await self._example_for(candidate)
        gloss = await self._gloss_for(term, language)
        pos = self._pos_for(term, language)
        image_url = await self._image_for(term)
        return EnrichedCandidate(
            candidate=candidate,
            example=example,
            gloss=gloss,
            pos=pos,
            cefr=estimate_cefr(term, candidate.frequency),
            image_url=image_url,
            tags=build_tags(source, candidate),
        )

    async def enrich_all(
        self,
        candidates: list[ExtractionCandidate],
        source: Source,
        language: str | None,
        parallel: bool = False,
    ) -> list[EnrichedCandidate]:
        """
        Enrich `candidates`, keeping their order.

        Sequential by default; with `parallel` the per-candidate work runs
        concurrently and results are gathered back in rank order.
        """
        if parallel:
            return list(
                await asyncio.gather(*(self.enrich(c, source, language) for c in candidates))
            )
        return [await self.enrich(c, source, language) for c in candidates]

    async def _example_for(self, candidate: ExtractionCandidate) -> str:
        if candidate.examples:
            return candidate.examples[0]
        try:
            return await self._llm.rewrite(EXAMPLE_PROMPT.format(term=candidate.term))
        except Exception as e:
            logger.warning(f"Example rewrite failed for '{candidate.term}': {e}")
            return candidate.term

    async def _gloss_for(self, term: str, language: str | None) -> str:
        try:
            gloss = self._dictionary.lookup(term, language)
        except Exception as e:
            logger.warning(f"Dictionary lookup failed for '{term}': {e}")
            gloss = None
        if gloss:
            return gloss

        try:
            return await self._llm.verify(term, term)
        except Exception as e:
            logger.warning(f"Gloss verification failed for '{term}': {e}")
            return term

    def _pos_for(self, term: str, language: str | None) -> str:
        try:
            return self._analyzer.part_of_speech(term, language) or FALLBACK_POS
        except Exception as e:
            logger.warning(f"POS tagging failed for '{term}': {e}")
            return FALLBACK_POS

    async def _image_for(self, term: str) -> str:
        try:
            return await self._images.generate(term)
        except Exception as e:
            logger.warning(f"Image generation failed for '{term}': {e}")
            return PLACEHOLDER_IMAGE_URL
