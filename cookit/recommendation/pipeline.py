"""
Recommendation pipeline: one request from stored profile to persisted history.

Fetch the profile and rank the corpus, curate the shortlist, then write the
history. A failure while fetching ends the request; recommender failures are
handled inside curation.
"""

import time
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from cookit.data.database import DatabaseInterface
from cookit.data.models import CurationOutcome, IngredientProfile, RecommendationHistory, RecommendedRecipe
from cookit.errors import HistoryConflictError
from cookit.matching.ranker import SHORTLIST_SIZE, rank_recipes
from cookit.matching.similarity import DEFAULT_ALPHA
from cookit.recommendation.curator import curate
from cookit.recommendation.recommender import Recommender

logger = logging.getLogger(__name__)

MAX_HISTORY_ATTEMPTS = 3


@dataclass(frozen=True)
class RecommendationResult:
    """What a recommendation request returns to the caller."""

    profile: IngredientProfile
    recommendations: List[RecommendedRecipe]
    outcome: CurationOutcome
    taste_code: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": True,
            "user_ingredients": self.profile.to_dict(),
            "recommended_recipes": [r.to_dict() for r in self.recommendations],
            "fallback": self.outcome.is_fallback,
        }


class RecommendationPipeline:
    """Runs ranking, curation and history persistence for one user at a time."""

    def __init__(
        self,
        db: DatabaseInterface,
        recommender: Recommender,
        alpha: float = DEFAULT_ALPHA,
        shortlist_size: int = SHORTLIST_SIZE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the pipeline.

        Args:
            db: Corpus reader and user profile store
            recommender: External recommender
            alpha: Hybrid similarity blend weight
            shortlist_size: Ranker truncation
            clock: Source of the timestamps written to history
        """
        self.db = db
        self.recommender = recommender
        self.alpha = alpha
        self.shortlist_size = shortlist_size
        self.clock = clock

    def recommend(self, user_id: str) -> RecommendationResult:
        """
        Recommend recipes for a user and record them in the history.

        Raises:
            EmptyProfileError: The user holds no ingredients
            EmptyCorpusError: The corpus has no recipes
            ExternalServiceError: The recommender failed (not rate limiting)
            HistoryConflictError: Concurrent requests kept winning the history write
        """
        start = time.time()
        profile = self.db.get_profile(user_id)
        taste = self.db.get_taste_profile(user_id)
        taste_code = taste.code if taste else None
        history = self.db.get_history(user_id)
        shortlist = rank_recipes(profile, self.db, alpha=self.alpha, limit=self.shortlist_size)
        logger.info(
            f"[PIPELINE] user={user_id} fetched profile and {len(shortlist)} candidates "
            f"in {time.time() - start:.3f}s"
        )

        curate_start = time.time()
        now = self.clock()
        result = curate(
            profile=profile,
            shortlist=shortlist,
            taste_code=taste_code,
            history=history,
            recommender=self.recommender,
            corpus=self.db,
            now=now,
        )
        logger.info(
            f"[PIPELINE] user={user_id} curated outcome={result.outcome.value} "
            f"in {time.time() - curate_start:.3f}s"
        )

        new_ids = [r.recipe.id for r in result.recommendations]
        self._persist_history(user_id, result.history, new_ids, now)

        logger.info(f"[PIPELINE] user={user_id} recipes={new_ids} in {time.time() - start:.3f}s")
        return RecommendationResult(
            profile=profile,
            recommendations=result.recommendations,
            outcome=result.outcome,
            taste_code=taste_code,
        )

    def _persist_history(
        self,
        user_id: str,
        updated: RecommendationHistory,
        new_ids: List[str],
        now: datetime,
    ):
        """
        Compare-and-swap the history, re-applying the append on top of any
        concurrent write.
        """
        for attempt in range(1, MAX_HISTORY_ATTEMPTS + 1):
            written = self.db.set_history(
                user_id,
                updated.recipe_ids,
                updated.timestamps,
                now,
                expected_version=updated.version,
            )
            if written:
                return
            logger.info(f"[HISTORY] Conflict for user {user_id}, retrying ({attempt}/{MAX_HISTORY_ATTEMPTS})")
            updated = self.db.get_history(user_id).append(new_ids, now)

        raise HistoryConflictError(f"History for user {user_id} changed {MAX_HISTORY_ATTEMPTS} times during update")
