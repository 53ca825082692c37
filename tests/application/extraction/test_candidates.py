import pytest

from lingoflow.application.extraction import (
    extract_candidates,
    mine_terms,
    rank_candidates,
    score_candidates,
)
from lingoflow.domain.models import ExtractionCandidate
from lingoflow.infrastructure.adapters import SimpleTextAnalyzer


@pytest.fixture
def analyzer():
    return SimpleTextAnalyzer()


def _cand(term, frequency=1, novelty=1.0, starred=False):
    return ExtractionCandidate(term=term, frequency=frequency, novelty=novelty, is_starred=starred)


def test_mine_terms_counts_lemmas_and_bigrams(analyzer):
    counts = mine_terms(["El gato y el perro", "el gato 42"], analyzer)

    assert counts.lemmas["el"] == 3
    assert counts.lemmas["gato"] == 2
    # Single-letter lemmas and digit-only tokens are skipped
    assert "y" not in counts.lemmas
    assert "42" not in counts.lemmas
    assert counts.bigrams["el gato"] == 2
    assert counts.bigrams["gato y"] == 1


def test_bigrams_do_not_cross_sentences(analyzer):
    counts = mine_terms(["hola amigo", "adiós amigo"], analyzer)
    assert "amigo adiós" not in counts.bigrams


def test_starred_term_outranks_equally_frequent_term():
    ranked = rank_candidates([_cand("zeta"), _cand("alfa", starred=False), _cand("beta", starred=True)])
    assert ranked[0].term == "beta"
    assert ranked[0].score == pytest.approx(6.0)


def test_known_term_ranks_below_unknown_term(analyzer):
    corpus = ["casa perro", "casa perro"]
    candidates = extract_candidates(corpus, analyzer, known_terms={"casa"})
    terms = [c.term for c in candidates]

    assert terms.index("perro") < terms.index("casa")
    casa = next(c for c in candidates if c.term == "casa")
    assert casa.novelty == pytest.approx(0.1)


def test_ties_break_lexicographically():
    ranked = rank_candidates([_cand("mesa"), _cand("árbol"), _cand("casa")])
    assert [c.term for c in ranked] == ["casa", "mesa", "árbol"]


def test_rank_dedupes_and_limits():
    ranked = rank_candidates(
        [_cand("uno", frequency=3), _cand("uno", frequency=1), _cand("dos"), _cand("tres")],
        limit=2,
    )
    assert [(c.term, c.frequency) for c in ranked] == [("uno", 3), ("dos", 1)]


def test_singleton_bigram_dropped_unless_starred(analyzer):
    corpus = ["muchas gracias", "buenas noches"]
    counts = mine_terms(corpus, analyzer)
    candidates = score_candidates(counts, corpus, starred=["Muchas gracias"])
    terms = {c.term for c in candidates}

    assert "muchas gracias" in terms
    assert "buenas noches" not in terms


def test_repeated_bigram_is_collocation(analyzer):
    corpus = ["por favor ayuda", "ven por favor"]
    candidates = extract_candidates(corpus, analyzer)
    por_favor = next(c for c in candidates if c.term == "por favor")

    assert por_favor.frequency == 2
    assert por_favor.novelty == pytest.approx(1.2)
    assert por_favor.is_phrase
    assert por_favor.examples == ("por favor ayuda", "ven por favor")


def test_end_to_end_ranking(analyzer):
    corpus = ["Muchas gracias por venir", "Quiero aprender más español"]
    candidates = extract_candidates(
        corpus, analyzer, starred=["Muchas gracias por venir"], known_terms=set(), limit=30
    )
    terms = [c.term for c in candidates]

    assert "muchas gracias" in terms
    # Starred collocations first, then starred words, then everything else
    assert terms == [
        "gracias por",
        "muchas gracias",
        "por venir",
        "gracias",
        "muchas",
        "por",
        "venir",
        "aprender",
        "español",
        "más",
        "quiero",
    ]
    assert "aprender más" not in terms


def test_empty_corpus_yields_nothing(analyzer):
    assert extract_candidates([], analyzer) == []
