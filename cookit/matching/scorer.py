"""
Recipe match scoring.

A recipe scores well when each of its ingredients has a close counterpart in
what the user holds. The score is asymmetric: it averages, over the recipe's
ingredients, the best similarity each one finds among the user's ingredients.
"""

from typing import List, Sequence

from cookit.matching.similarity import DEFAULT_ALPHA, hybrid_similarity


def score_recipe(
    user_tokens: Sequence[str],
    recipe_tokens: Sequence[str],
    alpha: float = DEFAULT_ALPHA,
) -> float:
    """
    Average best-match similarity of recipe ingredients against user ingredients.

    Args:
        user_tokens: Normalized ingredients the user holds
        recipe_tokens: Normalized ingredients of the recipe
        alpha: Hybrid similarity blend weight

    Returns:
        Score in [0, 1]; 0.0 when either side is empty
    """
    if not recipe_tokens or not user_tokens:
        return 0.0

    total = 0.0
    for recipe_token in recipe_tokens:
        total += max(hybrid_similarity(recipe_token, user_token, alpha) for user_token in user_tokens)
    return total / len(recipe_tokens)


def matched_ingredients(user_tokens: Sequence[str], recipe_tokens: Sequence[str]) -> List[str]:
    """Recipe ingredients that contain one of the user's ingredients as a substring."""
    return [
        recipe_token for recipe_token in recipe_tokens
        if any(user_token in recipe_token for user_token in user_tokens)
    ]
