"""Ranking, selection and scoring strategies."""
from .fusion import ReciprocalRankFusion, merge_query_variants
from .mmr import MMRSelector
from .quality import ContentQualityScorer
from .rerank import blend_rerank_scores
from .scoring import ContentTypeBoostStrategy, ProductBoostStrategy, ScoringStrategy

__all__ = [
    "ReciprocalRankFusion",
    "merge_query_variants",
    "MMRSelector",
    "ContentQualityScorer",
    "blend_rerank_scores",
    "ContentTypeBoostStrategy",
    "ProductBoostStrategy",
    "ScoringStrategy",
]
