# Application Extraction Package
from .candidates import extract_candidates, mine_terms, rank_candidates, score_candidates
from .enrichment import CardEnricher, EnrichedCandidate, build_tags, estimate_cefr
from .service import CardGenerationService

__all__ = [
    "CardEnricher",
    "CardGenerationService",
    "EnrichedCandidate",
    "build_tags",
    "estimate_cefr",
    "extract_candidates",
    "mine_terms",
    "rank_candidates",
    "score_candidates",
]
