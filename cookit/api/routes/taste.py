"""
Taste-profile (FMBT) routes for the FastAPI application.
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_user_id, get_user_service
from ..services.user_service import AsyncUserService

logger = logging.getLogger(__name__)

router = APIRouter()


class QuizResponses(BaseModel):
    """Quiz answers, one list per axis (E/C, F/S, S/G, B/M)."""
    responses: List[Optional[List[float]]]


class TasteProfileResponse(BaseModel):
    success: bool = True
    fmbt: str
    scores: Dict[str, int]
    description: str


@router.put("/fmbt-responses")
async def submit_responses(
    quiz: QuizResponses,
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """Store the user's quiz answers."""
    await service.save_quiz_responses(user_id, quiz.responses)
    return {"success": True, "message": "Responses saved."}


@router.get("/calculate-fmbt", response_model=TasteProfileResponse)
async def calculate_fmbt(
    user_id: str = Depends(get_user_id),
    service: AsyncUserService = Depends(get_user_service),
):
    """
    Classify the user's stored quiz answers.

    The resulting code and per-axis scores are saved to the user's profile and
    used to personalise later recommendations.
    """
    result = await service.calculate_taste(user_id)
    return TasteProfileResponse(**result)
