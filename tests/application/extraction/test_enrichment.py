import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from lingoflow.application.extraction import CardEnricher, build_tags, estimate_cefr
from lingoflow.domain.constants import PLACEHOLDER_IMAGE_URL
from lingoflow.domain.models import ExtractionCandidate, Source, SourceType


@pytest.fixture
def source():
    return Source(id="src_1", account_id="acct_1", type=SourceType.SUBTITLE, language="es")


def _cand(term, frequency=1, examples=()):
    return ExtractionCandidate(
        term=term, frequency=frequency, novelty=1.0, is_starred=False, examples=examples
    )


@pytest.mark.parametrize(
    "term,frequency,expected",
    [
        ("casa", 6, "A2"),
        ("extraordinariamente", 1, "C1"),
        ("por favor", 2, "B1"),
        ("gato", 5, "B2"),
    ],
)
def test_estimate_cefr(term, frequency, expected):
    assert estimate_cefr(term, frequency) == expected


def test_build_tags_marks_phrases(source):
    assert build_tags(source, _cand("muchas gracias")) == ("subtitle", "es", "phrase")
    assert build_tags(source, _cand("gato")) == ("subtitle", "es")


def test_build_tags_without_language():
    src = Source(id="s", account_id="a", type=SourceType.KINDLE)
    assert build_tags(src, _cand("gato")) == ("kindle",)


@pytest.mark.asyncio
async def test_enrich_prefers_corpus_and_dictionary(analyzer, dictionary, llm, images, source):
    enricher = CardEnricher(analyzer, dictionary, llm, images)

    item = await enricher.enrich(_cand("gracias", examples=("Muchas gracias.",)), source, "es")

    assert item.example == "Muchas gracias."
    assert item.gloss == "thank you"
    assert item.pos == "noun"
    assert item.image_url.startswith("https://picsum.photos/seed/lingo")


@pytest.mark.asyncio
async def test_enrich_falls_back_to_llm(analyzer, dictionary, images, source):
    llm = MagicMock()
    llm.rewrite = AsyncMock(return_value="El perro come.")
    llm.verify = AsyncMock(return_value="dog")
    enricher = CardEnricher(analyzer, dictionary, llm, images)

    item = await enricher.enrich(_cand("perro"), source, "es")

    assert item.example == "El perro come."
    assert item.gloss == "dog"
    llm.rewrite.assert_awaited_once_with("Use perro in a sentence.")
    llm.verify.assert_awaited_once_with("perro", "perro")


@pytest.mark.asyncio
async def test_enrich_uses_fallbacks_when_everything_fails(source):
    analyzer = MagicMock()
    analyzer.part_of_speech.side_effect = RuntimeError("tagger crashed")
    dictionary = MagicMock()
    dictionary.lookup.side_effect = KeyError("boom")
    llm = MagicMock()
    llm.rewrite = AsyncMock(side_effect=TimeoutError())
    llm.verify = AsyncMock(side_effect=TimeoutError())
    images = MagicMock()
    images.generate = AsyncMock(side_effect=ConnectionError())

    item = await CardEnricher(analyzer, dictionary, llm, images).enrich(_cand("perro"), source, "es")

    assert item.example == "perro"
    assert item.gloss == "perro"
    assert item.pos == "noun"
    assert item.image_url == PLACEHOLDER_IMAGE_URL


@pytest.mark.asyncio
async def test_parallel_enrichment_keeps_rank_order(analyzer, dictionary, source):
    delays = {"uno": 0.03, "dos": 0.0, "tres": 0.01}

    async def slow_generate(term):
        await asyncio.sleep(delays[term])
        return f"https://img.example/{term}"

    images = MagicMock()
    images.generate = AsyncMock(side_effect=slow_generate)
    llm = MagicMock()
    llm.rewrite = AsyncMock(side_effect=lambda prompt: prompt)
    llm.verify = AsyncMock(side_effect=lambda gloss, term: gloss)
    enricher = CardEnricher(analyzer, dictionary, llm, images)
    candidates = [_cand(t) for t in ("uno", "dos", "tres")]

    sequential = await enricher.enrich_all(candidates, source, "es")
    parallel = await enricher.enrich_all(candidates, source, "es", parallel=True)

    assert [i.term for i in parallel] == ["uno", "dos", "tres"]
    assert parallel == sequential
