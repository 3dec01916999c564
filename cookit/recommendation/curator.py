"""
Recommendation curation.

Narrows a ranked shortlist to the final recipes:
1. Drop recently recommended recipes, unless that leaves too few candidates
2. Annotate candidates with matched / disliked / allergic ingredient flags
3. Ask the external recommender for its picks
4. Resolve picks against the corpus, or fall back to the top matches
5. Append the final picks to the recommendation history
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from cookit.config import MIN_FRESH_POOL, RECOMMENDATION_COUNT
from cookit.data.models import (
    Candidate,
    CurationOutcome,
    IngredientProfile,
    Recipe,
    RecommendationHistory,
    RecommendedRecipe,
    RecommenderReply,
    ReplyStatus,
    ScoredRecipe,
)
from cookit.matching.scorer import matched_ingredients
from cookit.recommendation.recommender import Recommender

logger = logging.getLogger(__name__)

FALLBACK_RATIONALE = "Top recipe by ingredient match"


class RecipeLookup(Protocol):
    """Resolves recipe IDs returned by the recommender."""

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        ...


@dataclass(frozen=True)
class CurationResult:
    """Final list, the history to persist, and how the list was produced."""

    recommendations: List[RecommendedRecipe]
    history: RecommendationHistory
    outcome: CurationOutcome


def select_candidate_pool(
    shortlist: Sequence[ScoredRecipe],
    history: RecommendationHistory,
    min_pool: int = MIN_FRESH_POOL,
) -> List[ScoredRecipe]:
    """
    Remove previously recommended recipes from the shortlist.

    If fewer than min_pool recipes would remain, the full shortlist is kept.
    """
    recent_ids = set(history.recipe_ids)
    fresh = [s for s in shortlist if s.recipe_id not in recent_ids]
    if len(fresh) >= min_pool:
        logger.info(f"[CURATE] Excluded {len(shortlist) - len(fresh)} recent recipes, pool={len(fresh)}")
        return fresh

    logger.info(
        f"[CURATE] Only {len(fresh)} fresh recipes (< {min_pool}), keeping full shortlist of {len(shortlist)}"
    )
    return list(shortlist)


def _contains_any(recipe_tokens: Sequence[str], needles: Sequence[str]) -> bool:
    return any(needle in token for token in recipe_tokens for needle in needles)


def annotate_candidates(
    pool: Sequence[ScoredRecipe],
    profile: IngredientProfile,
    history: RecommendationHistory,
) -> List[Candidate]:
    """Attach the flags the recommender needs to each pool entry."""
    recent_ids = set(history.recipe_ids)
    candidates = []
    for scored in pool:
        recipe_tokens = scored.recipe.ingredient_tokens
        candidates.append(Candidate(
            recipe_id=scored.recipe_id,
            name=scored.recipe.name,
            category=scored.recipe.category,
            match_score=scored.match_score,
            matched_ingredients=tuple(matched_ingredients(profile.held, recipe_tokens)),
            contains_disliked=_contains_any(recipe_tokens, profile.disliked),
            contains_allergic=_contains_any(recipe_tokens, profile.allergic),
            previously_recommended=scored.recipe_id in recent_ids,
        ))
    return candidates


def fallback_recommendations(
    shortlist: Sequence[ScoredRecipe],
    taste_code: Optional[str],
    count: int = RECOMMENDATION_COUNT,
) -> List[RecommendedRecipe]:
    """Top entries of the unfiltered shortlist, with the generic rationale."""
    return [
        RecommendedRecipe(
            recipe=scored.recipe,
            match_score=scored.match_score,
            rationale=FALLBACK_RATIONALE,
            taste_code=taste_code,
        )
        for scored in shortlist[:count]
    ]


def resolve_selections(
    reply: RecommenderReply,
    shortlist: Sequence[ScoredRecipe],
    corpus: RecipeLookup,
    taste_code: Optional[str],
) -> List[RecommendedRecipe]:
    """
    Turn the recommender's picks into recipes.

    Unknown IDs and repeated picks are dropped. Match scores come from the
    shortlist when the recipe is on it, otherwise 0.0.
    """
    scores = {s.recipe_id: s.match_score for s in shortlist}
    resolved = []
    seen = set()
    for selection in reply.selections:
        if selection.recipe_id in seen:
            continue
        recipe = corpus.get_recipe(selection.recipe_id)
        if recipe is None:
            logger.warning(f"[CURATE] Recommender picked unknown recipe {selection.recipe_id}")
            continue
        seen.add(selection.recipe_id)
        resolved.append(RecommendedRecipe(
            recipe=recipe,
            match_score=scores.get(recipe.id, 0.0),
            rationale=selection.rationale,
            taste_code=taste_code,
        ))
    return resolved


def curate(
    profile: IngredientProfile,
    shortlist: Sequence[ScoredRecipe],
    taste_code: Optional[str],
    history: RecommendationHistory,
    recommender: Recommender,
    corpus: RecipeLookup,
    now: Optional[datetime] = None,
    count: int = RECOMMENDATION_COUNT,
) -> CurationResult:
    """
    Produce the final recommendations and the updated history.

    Args:
        profile: User ingredient profile
        shortlist: Ranked shortlist, best first
        taste_code: User's taste-profile code, if known
        history: Current recommendation history
        recommender: External recommender
        corpus: Lookup used to validate the recommender's picks
        now: Timestamp recorded in the history (defaults to datetime.now())
        count: Number of recipes to return

    Returns:
        CurationResult

    Raises:
        ExternalServiceError: The recommender failed for a reason other than rate limiting
    """
    now = now or datetime.now()

    pool = select_candidate_pool(shortlist, history)
    candidates = annotate_candidates(pool, profile, history)

    logger.info(f"[CURATE] Calling recommender with {len(candidates)} candidates")
    reply = recommender.recommend(candidates, profile, taste_code)

    if reply.status is ReplyStatus.RATE_LIMITED:
        outcome = CurationOutcome.RATE_LIMITED
        final = fallback_recommendations(shortlist, taste_code, count)
    else:
        resolved = resolve_selections(reply, shortlist, corpus, taste_code)
        if len(resolved) >= count:
            outcome = CurationOutcome.SELECTED
            final = resolved[:count]
        else:
            logger.info(f"[CURATE] Only {len(resolved)} valid selections, falling back to top {count}")
            outcome = CurationOutcome.INSUFFICIENT_SELECTIONS
            final = fallback_recommendations(shortlist, taste_code, count)

    if outcome.is_fallback:
        logger.info(f"[CURATE] Fallback used: {outcome.value}")

    updated = history.append([r.recipe.id for r in final], now)
    logger.info(f"[HISTORY] {len(history)} -> {len(updated)} entries after adding {len(final)}")

    return CurationResult(recommendations=final, history=updated, outcome=outcome)
