"""
Candidate mining, scoring and ranking.

Builds ExtractionCandidates from a corpus in three steps:
1. Count lemmas and adjacent-token bigrams per sentence
2. Score each term by frequency, novelty and starred salience
3. Rank by score, breaking ties on the term itself

Tokenization and lemmatization come from the TextAnalyzer port; everything
else here is pure computation.
"""

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from lingoflow.domain.constants import (
    COLLOCATION_NOVELTY,
    DEFAULT_CARD_LIMIT,
    KNOWN_TERM_NOVELTY,
    MIN_COLLOCATION_FREQUENCY,
    MIN_LEMMA_LENGTH,
    WORD_NOVELTY,
)
from lingoflow.domain.models import ExtractionCandidate
from lingoflow.domain.ports import TextAnalyzer

# A word-like token carries at least one letter or hyphen
_WORDLIKE = re.compile(r"[^\W\d_]|-")


@dataclass
class TermCounts:
    """Raw counts from one mining pass."""

    lemmas: Counter = field(default_factory=Counter)
    bigrams: Counter = field(default_factory=Counter)


def is_wordlike(token: str) -> bool:
    return _WORDLIKE.search(token) is not None


def mine_terms(
    corpus: Iterable[str],
    analyzer: TextAnalyzer,
    language: str | None = None,
) -> TermCounts:
    """Count lemmas (length > 1) and surface-form bigrams across `corpus`."""
    counts = TermCounts()
    for sentence in corpus:
        tokens = [t for t in analyzer.tokenize(sentence.lower(), language) if is_wordlike(t)]
        for lemma in analyzer.lemmatize(tokens, language):
            if len(lemma) >= MIN_LEMMA_LENGTH:
                counts.lemmas[lemma] += 1
        for first, second in zip(tokens, tokens[1:]):
            counts.bigrams[f"{first} {second}"] += 1
    return counts


def score_candidates(
    counts: TermCounts,
    corpus: list[str],
    starred: Iterable[str] = (),
    known_terms: set[str] | frozenset[str] = frozenset(),
) -> list[ExtractionCandidate]:
    """
    Turn raw counts into candidates.

    Bigrams seen fewer than twice are dropped, unless they occur in a
    starred sentence.
    """
    starred_lower = [s.lower() for s in starred]
    lowered_corpus = [(s, s.lower()) for s in corpus]

    def in_starred(term: str) -> bool:
        return any(term in s for s in starred_lower)

    def examples(term: str) -> tuple[str, ...]:
        return tuple(original for original, lower in lowered_corpus if term in lower)

    candidates: list[ExtractionCandidate] = []
    for lemma, freq in counts.lemmas.items():
        candidates.append(
            ExtractionCandidate(
                term=lemma,
                frequency=freq,
                novelty=KNOWN_TERM_NOVELTY if lemma in known_terms else WORD_NOVELTY,
                is_starred=in_starred(lemma),
                examples=examples(lemma),
            )
        )

    for bigram, freq in counts.bigrams.items():
        starred_hit = in_starred(bigram)
        if freq < MIN_COLLOCATION_FREQUENCY and not starred_hit:
            continue
        candidates.append(
            ExtractionCandidate(
                term=bigram,
                frequency=freq,
                novelty=KNOWN_TERM_NOVELTY if bigram in known_terms else COLLOCATION_NOVELTY,
                is_starred=starred_hit,
                examples=examples(bigram),
            )
        )

    return candidates


def rank_candidates(
    candidates: Iterable[ExtractionCandidate],
    limit: int | None = DEFAULT_CARD_LIMIT,
) -> list[ExtractionCandidate]:
    """
    Sort by score descending, then term ascending, and keep the top `limit`.

    A term mined both as a lemma and as a bigram keeps its best-ranked entry.
    """
    ranked = sorted(candidates, key=lambda c: (-c.score, c.term))
    seen: set[str] = set()
    unique: list[ExtractionCandidate] = []
    for candidate in ranked:
        if candidate.term in seen:
            continue
        seen.add(candidate.term)
        unique.append(candidate)
    return unique if limit is None else unique[:limit]


def extract_candidates(
    corpus: list[str],
    analyzer: TextAnalyzer,
    language: str | None = None,
    starred: Iterable[str] = (),
    known_terms: set[str] | frozenset[str] = frozenset(),
    limit: int | None = DEFAULT_CARD_LIMIT,
) -> list[ExtractionCandidate]:
    """Mine, score and rank in one call."""
    counts = mine_terms(corpus, analyzer, language)
    return rank_candidates(score_candidates(counts, corpus, starred, known_terms), limit)
