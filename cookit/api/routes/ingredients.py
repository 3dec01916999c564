"""
Ingredient routes for the FastAPI application.

Provides endpoints for:
- Detecting ingredients in an uploaded photo
- Reading and replacing the user's ingredient lists
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from ...errors import ValidationError
from ..dependencies import get_user_id, get_user_service
from ..services.user_service import AsyncUserService

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_IMAGE_BYTES = 30 * 1024 * 1024


class IngredientsUpdate(BaseModel):
    """Request body for replacing ingredient lists. Omitted lists stay as they are."""
    ingredients: Optional[List[str]] = None
    disliked_ingredients: Optional[List[str]] = None
    allergic_ingredients: Optional[List[str]] = None


class IngredientsResponse(BaseModel):
    success: bool = True
    ingredients: List[str]
    disliked_ingredients: List[str]
    allergic_ingredients: List[str]


@router.post("/upload-ingredient")
async def upload_ingredient(
    image: Optional[UploadFile] = File(default=None),
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """
    Detect ingredients in an uploaded photo.

    The detected names are returned for the client to confirm; they are not
    added to the user's list until it sends them back via PUT /ingredients.
    """
    if image is None:
        raise ValidationError("No image in upload", public_message="An image is required.")

    data = await image.read(MAX_IMAGE_BYTES + 1)
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError(
            f"Upload of more than {MAX_IMAGE_BYTES} bytes",
            public_message="The image must be 30MB or smaller.",
        )

    logger.info(f"User {user_id} uploaded {image.filename} ({len(data)} bytes)")
    detected = await service.detect_ingredients(
        data,
        image.filename or "image.jpg",
        image.content_type or "application/octet-stream",
    )

    return {
        "success": True,
        "detectedIngredients": detected,
        "message": "Ingredients detected.",
    }


@router.get("/ingredients", response_model=IngredientsResponse)
async def get_ingredients(
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """Get the user's held, disliked and allergic ingredients."""
    profile = await service.get_ingredients(user_id)
    return IngredientsResponse(**profile.to_dict())


@router.put("/ingredients", response_model=IngredientsResponse)
async def update_ingredients(
    update: IngredientsUpdate,
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """Replace any of the user's ingredient lists."""
    profile = await service.update_ingredients(
        user_id,
        held=update.ingredients,
        disliked=update.disliked_ingredients,
        allergic=update.allergic_ingredients,
    )
    return IngredientsResponse(**profile.to_dict())
