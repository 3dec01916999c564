"""
FastAPI dependencies: request user and the services built at startup.
"""
from typing import Optional

from fastapi import Header, Request

from ..errors import ValidationError
from .services.recommendation_service import AsyncRecommendationService
from .services.user_service import AsyncUserService

USER_HEADER = "X-User-Id"


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Identify the caller from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise ValidationError(f"Missing {USER_HEADER} header", public_message="User identification is required.")
    return x_user_id.strip()


def get_recommendation_service(request: Request) -> AsyncRecommendationService:
    """Dependency to get the recommendation service."""
    return request.app.state.recommendation_service


def get_user_service(request: Request) -> AsyncUserService:
    """Dependency to get the user service."""
    return request.app.state.user_service
