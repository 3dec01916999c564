"""
Recipe routes for the FastAPI application.

Provides endpoints for:
- Recommending recipes from the user's ingredients
- Saving, listing and deleting saved recipes
- Keyword search over the corpus
"""
import logging

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from ..dependencies import get_recommendation_service, get_user_id, get_user_service
from ..services.recommendation_service import AsyncRecommendationService
from ..services.user_service import AsyncUserService

logger = logging.getLogger(__name__)

router = APIRouter()


class SaveRecipeRequest(BaseModel):
    """Request body for saving a recipe."""
    recipe_id: str = Field(..., alias="recipeId", min_length=1)

    model_config = {"populate_by_name": True}


class SmartSearchRequest(BaseModel):
    """Request body for smart search."""
    search_query: str = Field("", alias="searchQuery")

    model_config = {"populate_by_name": True}


class MessageResponse(BaseModel):
    success: bool = True
    message: str


@router.post("/recommend-recipes")
async def recommend_recipes(
    user_id: str = Depends(get_user_id),
    service: AsyncRecommendationService = Depends(get_recommendation_service),
):
    """
    Recommend recipes for the user.

    Ranks the corpus against the stored ingredients, lets the recommender pick
    from the shortlist and records the picks in the user's history. When the
    recommender is rate limited or returns too few usable picks, the top
    matches are returned and "fallback" is true.
    """
    result = await service.recommend(user_id)
    return result.to_dict()


@router.post("/save-recipe", response_model=MessageResponse)
async def save_recipe(
    save_request: SaveRecipeRequest,
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """Save a corpus recipe to the user's list."""
    saved = await service.save_recipe(user_id, save_request.recipe_id)
    if not saved:
        return MessageResponse(message="Recipe already saved.")
    return MessageResponse(message="Recipe saved.")


@router.get("/saved-recipes")
async def saved_recipes(
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """List saved recipes, newest first."""
    saved = await service.get_saved_recipes(user_id)
    return {"success": True, "savedRecipes": [s.to_dict() for s in saved]}


@router.delete("/saved-recipe/{index}", response_model=MessageResponse)
async def delete_saved_recipe(
    index: int = Path(..., ge=0),
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """Delete the saved recipe at a position of the newest-first listing."""
    await service.delete_saved_recipe(user_id, index)
    return MessageResponse(message="Recipe deleted.")


@router.post("/smart-search")
async def search(
    search_request: SmartSearchRequest,
    service: AsyncRecommendationService = Depends(get_recommendation_service),
):
    """
    Search recipes by ingredient words and name.

    Words that are known ingredient names are matched against recipe
    ingredients; the rest of the query is matched against recipe names.
    """
    result = await service.search(search_request.search_query)
    return result.to_dict()
