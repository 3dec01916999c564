"""
Async User Service for FastAPI.

Per-user operations outside the recommendation pipeline: ingredient lists,
image-based ingredient detection, the taste quiz and saved recipes.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from ...data.database import DatabaseInterface
from ...data.models import IngredientProfile, SavedRecipe
from ...detection.detector import IngredientDetector
from ...errors import NotFoundError
from ...taste_profile import classify, describe

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="user_")


class AsyncUserService:
    """Async wrapper around the user store and the ingredient detector."""

    def __init__(
        self,
        db: DatabaseInterface,
        detector: IngredientDetector,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.db = db
        self.detector = detector
        self.executor = executor or _executor

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    # ==================== Ingredients ====================

    async def get_ingredients(self, user_id: str) -> IngredientProfile:
        return await self._run(self.db.get_profile, user_id)

    async def update_ingredients(
        self,
        user_id: str,
        held: Optional[Sequence[str]] = None,
        disliked: Optional[Sequence[str]] = None,
        allergic: Optional[Sequence[str]] = None,
    ) -> IngredientProfile:
        return await self._run(lambda: self.db.update_ingredients(user_id, held, disliked, allergic))

    async def detect_ingredients(self, image: bytes, filename: str, content_type: str) -> List[str]:
        """Recognise ingredients in an uploaded image."""
        return await self._run(self.detector.detect, image, filename, content_type)

    # ==================== Taste Profile ====================

    async def save_quiz_responses(self, user_id: str, responses: Sequence[Sequence[float]]):
        """Validate and store quiz answers (four axes)."""
        # Classifying validates the shape and the answer types
        classify(responses)
        await self._run(self.db.save_quiz_responses, user_id, responses)

    def _calculate_taste(self, user_id: str) -> Dict[str, Any]:
        responses = self.db.get_quiz_responses(user_id)
        if responses is None:
            raise NotFoundError(f"User {user_id} not found", public_message="User not found.")

        profile = classify(responses)
        self.db.save_taste_profile(user_id, profile)

        description = self.db.get_taste_description(profile.code) or describe(profile.code)
        result = profile.to_dict()
        result["description"] = description
        return result

    async def calculate_taste(self, user_id: str) -> Dict[str, Any]:
        """
        Classify the user's stored quiz answers and persist the result.

        Returns:
            Dict with fmbt, scores and description
        """
        return await self._run(self._calculate_taste, user_id)

    # ==================== Saved Recipes ====================

    def _save_recipe(self, user_id: str, recipe_id: str) -> bool:
        recipe = self.db.get_recipe(recipe_id)
        if recipe is None:
            raise NotFoundError(f"Recipe {recipe_id} not found", public_message="Recipe not found.")
        return self.db.save_recipe_for_user(user_id, recipe)

    async def save_recipe(self, user_id: str, recipe_id: str) -> bool:
        """
        Save a corpus recipe for the user.

        Returns:
            True if newly saved, False if it was already saved
        """
        return await self._run(self._save_recipe, user_id, recipe_id)

    async def get_saved_recipes(self, user_id: str) -> List[SavedRecipe]:
        saved = await self._run(self.db.get_saved_recipes, user_id)
        if saved is None:
            raise NotFoundError(f"User {user_id} not found", public_message="User not found.")
        return saved

    async def delete_saved_recipe(self, user_id: str, index: int):
        deleted = await self._run(self.db.delete_saved_recipe, user_id, index)
        if deleted is None:
            raise NotFoundError(f"User {user_id} not found", public_message="User not found.")
        if not deleted:
            raise NotFoundError(
                f"No saved recipe at index {index} for user {user_id}",
                public_message="No saved recipe at that index.",
            )
