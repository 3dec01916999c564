"""
Recipe ranking: score the whole corpus against a user's ingredients and keep
the best matches as the shortlist handed to curation.
"""

import time
import logging
from typing import List, Protocol, Sequence

from cookit.data.models import IngredientProfile, Recipe, ScoredRecipe
from cookit.errors import EmptyCorpusError, EmptyProfileError
from cookit.matching.scorer import matched_ingredients, score_recipe
from cookit.matching.similarity import DEFAULT_ALPHA

logger = logging.getLogger(__name__)

SHORTLIST_SIZE = 50


class RecipeCorpus(Protocol):
    """Read-only view of the recipe corpus."""

    def get_all_recipes(self) -> Sequence[Recipe]:
        ...


def rank_recipes(
    profile: IngredientProfile,
    corpus: RecipeCorpus,
    alpha: float = DEFAULT_ALPHA,
    limit: int = SHORTLIST_SIZE,
) -> List[ScoredRecipe]:
    """
    Score every recipe against the user's held ingredients.

    Args:
        profile: User ingredient profile (only held ingredients are scored)
        corpus: Recipe source, scanned in full
        alpha: Hybrid similarity blend weight
        limit: Shortlist size

    Returns:
        Up to limit ScoredRecipe objects, best first; ties keep corpus order

    Raises:
        EmptyProfileError: The user holds no ingredients
        EmptyCorpusError: The corpus has no recipes
    """
    if profile is None or profile.is_empty:
        raise EmptyProfileError("User has no held ingredients")

    start = time.time()
    recipes = list(corpus.get_all_recipes() or [])
    if not recipes:
        raise EmptyCorpusError("Recipe corpus is empty")

    user_tokens = profile.held
    scored = []
    for recipe in recipes:
        recipe_tokens = recipe.ingredient_tokens
        scored.append(ScoredRecipe(
            recipe=recipe,
            match_score=score_recipe(user_tokens, recipe_tokens, alpha),
            matched_ingredients=tuple(matched_ingredients(user_tokens, recipe_tokens)),
        ))

    # sorted() is stable, so equal scores keep corpus order
    shortlist = sorted(scored, key=lambda s: s.match_score, reverse=True)[:limit]

    elapsed = time.time() - start
    logger.info(
        f"[RANK] Scored {len(recipes)} recipes against {len(user_tokens)} ingredients "
        f"in {elapsed:.3f}s, shortlist={len(shortlist)}"
    )
    if shortlist:
        logger.debug(f"[RANK] Top match: {shortlist[0].recipe.name} ({shortlist[0].match_score:.3f})")

    return shortlist
