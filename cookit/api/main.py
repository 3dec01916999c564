"""
FastAPI application for Cookit.

- Startup builds the database, ingredient map, LLM provider, detector and
  services once and keeps them on app.state
- CookitError subclasses map to their HTTP status with a generic message
- Internal error detail is only exposed when COOKIT_ENV=development
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Settings, load_settings
from ..data.database import DatabaseInterface
from ..detection.detector import IngredientDetector
from ..detection.ingredient_map import IngredientMap
from ..errors import CookitError, ValidationError
from ..llm_provider import LLMProvider, get_llm_provider
from ..recommendation.pipeline import RecommendationPipeline
from ..recommendation.recommender import LLMRecommender
from .routes import ingredients, recipes, taste
from .services.recommendation_service import AsyncRecommendationService
from .services.user_service import AsyncUserService

logger = logging.getLogger(__name__)


def configure_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _load_ingredient_map(settings: Settings, db: DatabaseInterface) -> IngredientMap:
    if settings.ingredient_map_csv:
        return IngredientMap.from_csv(settings.ingredient_map_csv)
    return IngredientMap.from_database(db)


def init_services(app: FastAPI, settings: Settings, provider: Optional[LLMProvider] = None):
    """Build every service the routes depend on and attach them to app.state."""
    db = DatabaseInterface(settings.db_dir)
    ingredient_map = _load_ingredient_map(settings, db)
    if not len(ingredient_map):
        logger.warning("Ingredient map is empty; uploads will not recognise any ingredient")

    provider = provider or get_llm_provider(settings.anthropic_api_key, use_null=settings.use_null_llm)
    recommender = LLMRecommender(
        provider,
        model=settings.recommender_model,
        max_tokens=settings.recommender_max_tokens,
    )
    pipeline = RecommendationPipeline(
        db,
        recommender,
        alpha=settings.similarity_alpha,
        shortlist_size=settings.shortlist_size,
    )
    detector = IngredientDetector(settings.detector_url, ingredient_map, timeout=settings.detector_timeout)

    app.state.settings = settings
    app.state.db = db
    app.state.ingredient_map = ingredient_map
    app.state.recommendation_service = AsyncRecommendationService(pipeline, db, ingredient_map)
    app.state.user_service = AsyncUserService(db, detector)
    logger.info(
        f"Services initialized (db={settings.db_dir}, llm={'null' if provider.is_null else 'anthropic'}, "
        f"ingredient_map={len(ingredient_map)} entries)"
    )


def _error_body(request: Request, exc: Exception, public_message: str) -> dict:
    body = {"success": False, "error": public_message}
    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.is_development:
        body["detail"] = str(exc)
    return body


async def cookit_error_handler(request: Request, exc: CookitError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc, exc.public_message))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"{request.method} {request.url.path} invalid body: {exc.errors()}")
    return JSONResponse(status_code=400, content=_error_body(request, exc, ValidationError.public_message))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} unexpected error: {exc}")
    return JSONResponse(status_code=500, content=_error_body(request, exc, CookitError.public_message))


def create_app(settings: Optional[Settings] = None, provider: Optional[LLMProvider] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use (read from the environment at startup when None)
        provider: LLM provider override (tests use a scripted one)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or load_settings()
        configure_logging(resolved.debug)
        logger.info("Starting Cookit API...")
        init_services(app, resolved, provider)
        yield
        logger.info("Cookit API shutdown complete")

    app = FastAPI(
        title="Cookit API",
        description="Ingredient-based recipe recommendations",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CookitError, cookit_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint for load balancers and container orchestration."""
        try:
            count = len(request.app.state.ingredient_map)
            return {"status": "healthy", "ingredient_map": count}
        except AttributeError as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "unhealthy", "error": "not initialized"})

    app.include_router(recipes.router, prefix="/api", tags=["recipes"])
    app.include_router(ingredients.router, prefix="/api", tags=["ingredients"])
    app.include_router(taste.router, prefix="/api", tags=["taste"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = load_settings()
    uvicorn.run(
        "cookit.api.main:app",
        host="0.0.0.0",
        port=_settings.port,
        log_level="debug" if _settings.debug else "info",
    )
