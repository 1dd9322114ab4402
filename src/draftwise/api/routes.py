"""JSON endpoints for email enhancement, key testing and slide generation."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from draftwise.config.settings import settings
from draftwise.core.cache import response_cache
from draftwise.core.errors import ApiKeyFormatError, RateLimitExceededError
from draftwise.core.logging import get_logger
from draftwise.core.rate_limit import RateLimiter, rate_limiter
from draftwise.core.schemas import (
    EmailRequest,
    GenerationResponse,
    KeyTestResponse,
    SlideRequest,
    SlideResponse,
)
from draftwise.core.security import client_identifier
from draftwise.services.email import generate_email, verify_api_key
from draftwise.services.slides import generate_presentation

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


def bearer_api_key(authorization: Optional[str] = Header(default=None)) -> str:
    """Extract the Gemini key from `Authorization: Bearer <key>`."""
    if not authorization:
        raise ApiKeyFormatError("API key is required")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise ApiKeyFormatError("API key is required")
    return token.strip()


def enforce_rate_limit(request: Request) -> None:
    limiter: RateLimiter = getattr(request.app.state, "rate_limiter", rate_limiter)
    endpoint = request.url.path
    client = client_identifier(
        request.headers, request.client.host if request.client else None
    )
    if not limiter.hit(endpoint, client):
        retry_after = limiter.retry_after(endpoint, client)
        logger.warning(f"rate limit exceeded endpoint={endpoint} retry_after={retry_after}")
        raise RateLimitExceededError(retry_after)


@router.post(
    "/gemini",
    response_model=GenerationResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def enhance_email(
    body: EmailRequest, api_key: str = Depends(bearer_api_key)
) -> GenerationResponse:
    return await generate_email(body, api_key)


@router.post(
    "/gemini/test",
    response_model=KeyTestResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def check_key(api_key: str = Depends(bearer_api_key)) -> KeyTestResponse:
    return await verify_api_key(api_key)


@router.post(
    "/slides/generate",
    response_model=SlideResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def generate_slides(body: SlideRequest) -> SlideResponse:
    return await generate_presentation(body)


@router.get("/health")
async def api_health() -> dict:
    return {
        "status": "healthy",
        "environment": settings.env,
        "cache_size": response_cache.get_stats()["size"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
