"""
Recommendation modules - curation, the external recommender and the request pipeline.
"""

from cookit.recommendation.curator import (
    curate,
    select_candidate_pool,
    annotate_candidates,
    fallback_recommendations,
    resolve_selections,
    CurationResult,
    FALLBACK_RATIONALE,
)
from cookit.recommendation.recommender import (
    LLMRecommender,
    Recommender,
    parse_selections,
    build_system_prompt,
    build_user_prompt,
)
from cookit.recommendation.pipeline import RecommendationPipeline, RecommendationResult

__all__ = [
    "curate",
    "select_candidate_pool",
    "annotate_candidates",
    "fallback_recommendations",
    "resolve_selections",
    "CurationResult",
    "FALLBACK_RATIONALE",
    "LLMRecommender",
    "Recommender",
    "parse_selections",
    "build_system_prompt",
    "build_user_prompt",
    "RecommendationPipeline",
    "RecommendationResult",
]
