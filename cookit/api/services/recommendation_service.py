"""
Async Recommendation Service for FastAPI.

Wraps the synchronous RecommendationPipeline and recipe search with
execution on a bounded thread pool, so SQLite and LLM calls never block the
event loop.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ...data.database import DatabaseInterface
from ...detection.ingredient_map import IngredientMap
from ...recommendation.pipeline import RecommendationPipeline, RecommendationResult
from ...search import SearchResult, smart_search

logger = logging.getLogger(__name__)

# Thread pool for running sync pipeline operations
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="recommend_")


class AsyncRecommendationService:
    """
    Async wrapper around RecommendationPipeline.

    Each call is one independent pipeline invocation; concurrent requests for
    the same user are reconciled by the pipeline's history compare-and-swap.
    """

    def __init__(
        self,
        pipeline: RecommendationPipeline,
        db: DatabaseInterface,
        ingredient_map: IngredientMap,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the recommendation service.

        Args:
            pipeline: Synchronous recommendation pipeline
            db: Recipe corpus for search
            ingredient_map: Known ingredient names for search
            executor: Thread pool (defaults to the module pool)
        """
        self.pipeline = pipeline
        self.db = db
        self.ingredient_map = ingredient_map
        self.executor = executor or _executor

    async def recommend(self, user_id: str) -> RecommendationResult:
        """Run the recommendation pipeline for a user."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(self.executor, self.pipeline.recommend, user_id)
        except Exception as e:
            logger.warning(f"Recommendation failed for user {user_id}: {e}")
            raise

    async def search(self, query: str) -> SearchResult:
        """Keyword search over the corpus."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            self.executor,
            lambda: smart_search(query, self.db, self.ingredient_map.known_names),
        )
