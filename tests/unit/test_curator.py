"""
Unit tests for recommendation curation.

Tests candidate-pool selection, annotation, selection resolution and the
fallback paths of curate().
"""

import pytest

from cookit.data.models import (
    CurationOutcome,
    IngredientProfile,
    Recipe,
    RecommendationHistory,
    RecommenderReply,
    ScoredRecipe,
    Selection,
)
from cookit.errors import ExternalServiceError
from cookit.recommendation.curator import (
    FALLBACK_RATIONALE,
    annotate_candidates,
    curate,
    resolve_selections,
    select_candidate_pool,
)


def scored(recipe_id, score, ingredients="egg, rice", category=None):
    recipe = Recipe(id=recipe_id, name=f"Recipe {recipe_id}", raw_ingredients=ingredients, category=category)
    return ScoredRecipe(recipe=recipe, match_score=score)


def make_shortlist(count):
    return [scored(f"R{i}", 1.0 - i * 0.01) for i in range(count)]


class DictLookup:
    """Recipe lookup over a fixed set of recipes."""

    def __init__(self, recipes):
        self.recipes = {r.id: r for r in recipes}

    def get_recipe(self, recipe_id):
        return self.recipes.get(recipe_id)


class FixedRecommender:
    """Recommender that returns a prepared reply and records its input."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.candidates = None

    def recommend(self, candidates, profile, taste_code):
        self.candidates = list(candidates)
        if self.error:
            raise self.error
        return self.reply


def picks(*ids):
    return RecommenderReply.ok([Selection(recipe_id=rid, rationale=f"because {rid}") for rid in ids])


@pytest.fixture
def profile():
    return IngredientProfile(held=["egg", "rice"], disliked=["onion"], allergic=["peanut"])


# ============================================================================
# Candidate pool
# ============================================================================

class TestSelectCandidatePool:
    """Test history exclusion with the minimum-pool guard."""

    def test_excludes_recent_when_enough_remain(self, fixed_now):
        shortlist = make_shortlist(10)
        history = RecommendationHistory().append(["R0", "R3"], fixed_now)

        pool = select_candidate_pool(shortlist, history)

        assert [s.recipe_id for s in pool] == ["R1", "R2", "R4", "R5", "R6", "R7", "R8", "R9"]

    def test_exactly_six_fresh_is_enough(self, fixed_now):
        shortlist = make_shortlist(8)
        history = RecommendationHistory().append(["R0", "R1"], fixed_now)

        pool = select_candidate_pool(shortlist, history)

        assert len(pool) == 6
        assert "R0" not in [s.recipe_id for s in pool]

    def test_restores_full_shortlist_when_too_few_remain(self, fixed_now):
        shortlist = make_shortlist(7)
        history = RecommendationHistory().append(["R0", "R1"], fixed_now)

        pool = select_candidate_pool(shortlist, history)

        assert [s.recipe_id for s in pool] == [s.recipe_id for s in shortlist]

    def test_all_five_previously_recommended(self, fixed_now):
        """Five candidates, all in history: exclusion would leave 0, so all 5 stay."""
        shortlist = make_shortlist(5)
        history = RecommendationHistory().append([s.recipe_id for s in shortlist], fixed_now)

        pool = select_candidate_pool(shortlist, history)

        assert len(pool) == 5

    def test_empty_history(self):
        shortlist = make_shortlist(3)

        assert select_candidate_pool(shortlist, RecommendationHistory()) == shortlist


# ============================================================================
# Annotation
# ============================================================================

class TestAnnotateCandidates:

    def test_flags(self, profile, fixed_now):
        pool = [
            scored("A", 0.9, "egg, rice, green onion", category="Rice"),
            scored("B", 0.5, "peanut butter, bread"),
            scored("C", 0.4, "egg, salt"),
        ]
        history = RecommendationHistory().append(["C"], fixed_now)

        a, b, c = annotate_candidates(pool, profile, history)

        assert a.matched_ingredients == ("egg", "rice")
        assert a.contains_disliked and not a.contains_allergic
        assert a.category == "Rice"
        assert b.contains_allergic and not b.contains_disliked
        assert b.matched_ingredients == ()
        assert c.previously_recommended
        assert not a.previously_recommended
        assert c.match_score == 0.4


# ============================================================================
# Selection resolution
# ============================================================================

class TestResolveSelections:

    def test_unknown_and_duplicate_ids_dropped(self):
        shortlist = make_shortlist(4)
        lookup = DictLookup([s.recipe for s in shortlist])

        resolved = resolve_selections(picks("R1", "ghost", "R1", "R2"), shortlist, lookup, None)

        assert [r.recipe.id for r in resolved] == ["R1", "R2"]

    def test_score_from_shortlist_or_zero(self):
        shortlist = make_shortlist(2)
        outside = Recipe(id="Z", name="Off list", raw_ingredients="tofu")
        lookup = DictLookup([s.recipe for s in shortlist] + [outside])

        resolved = resolve_selections(picks("R1", "Z"), shortlist, lookup, "EFSB")

        assert resolved[0].match_score == pytest.approx(0.99)
        assert resolved[1].match_score == 0.0
        assert all(r.taste_code == "EFSB" for r in resolved)


# ============================================================================
# curate()
# ============================================================================

class TestCurate:
    """Test the full curation step."""

    def _run(self, profile, shortlist, recommender, history=None, now=None):
        lookup = DictLookup([s.recipe for s in shortlist])
        return curate(
            profile=profile,
            shortlist=shortlist,
            taste_code="EFSB",
            history=history or RecommendationHistory(),
            recommender=recommender,
            corpus=lookup,
            now=now,
        )

    def test_selected(self, profile, fixed_now):
        shortlist = make_shortlist(10)
        recommender = FixedRecommender(picks("R4", "R2", "R7"))

        result = self._run(profile, shortlist, recommender, now=fixed_now)

        assert result.outcome is CurationOutcome.SELECTED
        assert [r.recipe.id for r in result.recommendations] == ["R4", "R2", "R7"]
        assert result.recommendations[0].rationale == "because R4"
        assert result.history.recipe_ids == ["R4", "R2", "R7"]
        assert result.history.recommended_at == fixed_now

    def test_extra_selections_truncated(self, profile, fixed_now):
        shortlist = make_shortlist(10)
        recommender = FixedRecommender(picks("R1", "R2", "R3", "R4", "R5"))

        result = self._run(profile, shortlist, recommender, now=fixed_now)

        assert [r.recipe.id for r in result.recommendations] == ["R1", "R2", "R3"]

    def test_insufficient_selections_fall_back(self, profile, fixed_now):
        shortlist = make_shortlist(10)
        recommender = FixedRecommender(picks("R5", "ghost", "R5"))

        result = self._run(profile, shortlist, recommender, now=fixed_now)

        assert result.outcome is CurationOutcome.INSUFFICIENT_SELECTIONS
        assert [r.recipe.id for r in result.recommendations] == ["R0", "R1", "R2"]
        assert all(r.rationale == FALLBACK_RATIONALE for r in result.recommendations)

    def test_rate_limited_falls_back(self, profile, fixed_now):
        shortlist = make_shortlist(10)

        result = self._run(profile, shortlist, FixedRecommender(RecommenderReply.rate_limited()), now=fixed_now)

        assert result.outcome is CurationOutcome.RATE_LIMITED
        assert result.outcome.is_fallback
        assert [r.recipe.id for r in result.recommendations] == ["R0", "R1", "R2"]

    def test_fallback_uses_unfiltered_shortlist(self, profile, fixed_now):
        """The fallback takes the top of the shortlist even if those were recommended before."""
        shortlist = make_shortlist(12)
        history = RecommendationHistory().append(["R0", "R1", "R2"], fixed_now)
        recommender = FixedRecommender(RecommenderReply.rate_limited())

        result = self._run(profile, shortlist, recommender, history=history, now=fixed_now)

        assert [r.recipe.id for r in result.recommendations] == ["R0", "R1", "R2"]

    def test_fallback_is_recorded_in_history(self, profile, fixed_now):
        shortlist = make_shortlist(10)
        history = RecommendationHistory().append(["R8", "R9"], fixed_now)

        result = self._run(profile, shortlist, FixedRecommender(picks()), history=history, now=fixed_now)

        assert result.history.recipe_ids == ["R8", "R9", "R0", "R1", "R2"]

    def test_short_shortlist_fallback(self, profile, fixed_now):
        shortlist = make_shortlist(2)

        result = self._run(profile, shortlist, FixedRecommender(picks()), now=fixed_now)

        assert len(result.recommendations) == 2

    def test_recommender_sees_filtered_pool(self, profile, fixed_now):
        shortlist = make_shortlist(10)
        history = RecommendationHistory().append(["R0"], fixed_now)
        recommender = FixedRecommender(picks("R1", "R2", "R3"))

        self._run(profile, shortlist, recommender, history=history, now=fixed_now)

        assert [c.recipe_id for c in recommender.candidates] == [f"R{i}" for i in range(1, 10)]

    def test_recommender_failure_propagates(self, profile, fixed_now):
        """Failures other than rate limiting are not swallowed."""
        recommender = FixedRecommender(error=ExternalServiceError("bad reply"))

        with pytest.raises(ExternalServiceError):
            self._run(profile, make_shortlist(10), recommender, now=fixed_now)

    def test_history_capped(self, profile, fixed_now):
        shortlist = make_shortlist(20)
        history = RecommendationHistory().append(["X1", "X2", "X3", "X4", "X5"], fixed_now)

        result = self._run(profile, shortlist, FixedRecommender(picks("R1", "R2", "R3")), history=history, now=fixed_now)

        assert result.history.recipe_ids == ["X3", "X4", "X5", "R1", "R2", "R3"]
