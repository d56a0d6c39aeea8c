import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from reviewkit.application.config import resolve_config
from reviewkit.application.factory import get_services
from reviewkit.application.review_service import ReviewService
from reviewkit.consts import VERSION
from reviewkit.domain.errors import (
    AccessDeniedError,
    CardNotFoundError,
    ConcurrencyConflictError,
    DeckNotFoundError,
    InvalidQualityError,
    ReviewKitError,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("reviewkit.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log_level = resolve_config().log_level
    if log_level:
        logging.getLogger().setLevel(log_level)
    logger.info(f"reviewkit server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("reviewkit server shutting down...")


app = FastAPI(
    title="reviewkit",
    description="Spaced-repetition review API for flashcard decks.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()

_STATUS_BY_ERROR: dict[type[ReviewKitError], int] = {
    InvalidQualityError: 400,
    CardNotFoundError: 404,
    DeckNotFoundError: 404,
    AccessDeniedError: 403,
    ConcurrencyConflictError: 409,
}


@lru_cache(maxsize=1)
def get_review_service() -> ReviewService:
    """Process-wide service built from the resolved config."""
    _, reviews = get_services(resolve_config())
    return reviews


def _http_error(e: ReviewKitError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_ERROR.get(type(e), 500), detail=str(e))


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


class ReviewRequest(BaseModel):
    user_id: str
    card_id: str | None = None
    # Validated by the service so bad values get a 400, not a 422.
    quality: Any = None
    response_ms: int | None = None


class ReviewResponse(BaseModel):
    success: bool
    card: dict[str, Any]
    next_review_date: datetime
    interval: int
    ease_factor: float
    repetitions: int
    is_public_deck: bool = False
    message: str | None = None


@app.post("/decks/{deck_id}/review", response_model=ReviewResponse)
async def submit_review(
    deck_id: str,
    req: ReviewRequest,
    service: ReviewService = Depends(get_review_service),
):
    """
    Submit a card review and return the new schedule.
    """
    if not req.card_id or req.quality is None:
        raise HTTPException(status_code=400, detail="card_id and quality are required")

    try:
        outcome = await service.submit_review(
            deck_id, req.card_id, req.user_id, req.quality, response_ms=req.response_ms
        )
    except ReviewKitError as e:
        logger.warning(f"Review rejected: {e}")
        raise _http_error(e) from e

    result = outcome.result
    return ReviewResponse(
        success=True,
        card=asdict(outcome.card),
        next_review_date=result.next_review_date,
        interval=result.interval,
        ease_factor=result.ease_factor,
        repetitions=result.repetitions,
        is_public_deck=outcome.is_public_deck,
        message=(
            "Your progress is tracked separately for this public deck"
            if outcome.is_public_deck
            else None
        ),
    )


@app.get("/decks/{deck_id}/study")
async def get_study_session(
    deck_id: str,
    user_id: str,
    limit: int = 20,
    include_new: bool = True,
    service: ReviewService = Depends(get_review_service),
):
    """
    Cards for a study session: due cards first, topped up with new cards.
    """
    try:
        session = await service.build_study_session(
            deck_id, user_id, limit=limit, include_new=include_new
        )
    except ReviewKitError as e:
        raise _http_error(e) from e

    return {
        "cards": [asdict(c) for c in session.cards],
        "stats": session.stats.as_dict(),
        "total_cards": session.total_cards,
    }


@app.get("/decks/{deck_id}/stats")
async def get_deck_stats(
    deck_id: str,
    user_id: str,
    service: ReviewService = Depends(get_review_service),
):
    try:
        overview = await service.get_deck_overview(deck_id, user_id)
    except ReviewKitError as e:
        raise _http_error(e) from e

    payload = overview.stats.as_dict()
    payload["mastered"] = overview.mastered
    payload["estimated_time"] = overview.estimated_time
    return payload
