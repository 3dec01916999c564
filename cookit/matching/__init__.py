"""
Ingredient matching - similarity metrics, recipe scoring and corpus ranking.
"""

from cookit.matching.similarity import (
    edit_distance_similarity,
    token_overlap_similarity,
    hybrid_similarity,
)
from cookit.matching.scorer import score_recipe, matched_ingredients
from cookit.matching.ranker import rank_recipes, RecipeCorpus, SHORTLIST_SIZE

__all__ = [
    "edit_distance_similarity",
    "token_overlap_similarity",
    "hybrid_similarity",
    "score_recipe",
    "matched_ingredients",
    "rank_recipes",
    "RecipeCorpus",
    "SHORTLIST_SIZE",
]
