"""
Slide deck generation: outline as a JSON array, then speaker notes per slide.
Notes degrade gracefully (retries, fallback provider, canned text) so one slow
slide never fails the whole presentation.
"""

import asyncio
import json
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from draftwise.config.settings import settings
from draftwise.core.cache import MISS, ResponseCache, make_key, response_cache
from draftwise.core.coalescing import coalescer
from draftwise.core.errors import ApiKeyFormatError, AppError, InvalidInputError, ProviderError
from draftwise.core.logging import get_logger
from draftwise.core.metrics import metrics
from draftwise.core.prompts_loader import load_prompt
from draftwise.core.schemas import Presentation, Slide, SlideRequest, SlideResponse
from draftwise.core.security import (
    key_fingerprint,
    mask_key,
    sanitize_input,
    validate_api_key_format,
)
from draftwise.llm.generate import _generate_openrouter, generate_text

logger = get_logger(__name__)

SLIDES_ENDPOINT = "/api/slides/generate"
NOTES_BACKOFF_S = 1.0

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


def build_slides_prompt(topic: str, count: Optional[int] = None) -> str:
    return load_prompt()["slides"].format(topic=topic, count=count or settings.slides.count)


def parse_slides(text: str) -> List[Dict[str, Any]]:
    """Parse the model's slide outline.

    Accepts a bare JSON array or one embedded in surrounding prose.

    Raises:
        ProviderError: when no usable array of {title, content} is found
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        match = _JSON_ARRAY.search(text or "")
        if not match:
            raise ProviderError("Failed to parse slide content")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ProviderError("Failed to parse slide content") from e

    if not isinstance(data, list) or not data:
        raise ProviderError("Failed to parse slide content")

    slides = []
    for item in data:
        if (
            not isinstance(item, dict)
            or not isinstance(item.get("title"), str)
            or not isinstance(item.get("content"), list)
        ):
            raise ProviderError("Failed to parse slide content")
        slides.append(
            {
                "title": item["title"].strip(),
                "content": [str(point).strip() for point in item["content"]],
            }
        )
    return slides


async def _speaker_notes(
    slide: Dict[str, Any],
    topic: str,
    api_key: str,
    semaphore: asyncio.Semaphore,
) -> str:
    prompts = load_prompt()
    prompt = prompts["speaker_notes"].format(
        topic=topic, title=slide["title"], content="\n".join(slide["content"])
    )
    retries = settings.slides.notes_retries

    async with semaphore:
        for attempt in range(retries + 1):
            try:
                result = await generate_text(
                    prompt,
                    api_key,
                    timeout_s=settings.gemini.notes_timeout_s,
                    allow_fallback=False,
                )
                return result.text
            except AppError as e:
                logger.warning(
                    f"speaker notes attempt {attempt + 1} failed "
                    f"slide={slide['title']!r} code={e.code.value}"
                )
                if attempt < retries:
                    await asyncio.sleep(NOTES_BACKOFF_S * (attempt + 1))

        if settings.openrouter.enabled:
            try:
                text, _model = await asyncio.wait_for(
                    _generate_openrouter(prompt), settings.openrouter.timeout_s
                )
                metrics.record_fallback()
                return text
            except Exception as e:
                logger.warning(f"OpenRouter speaker notes failed slide={slide['title']!r}: {e}")

    return prompts["notes_fallback"].format(title=slide["title"], topic=topic)


async def _build_presentation(topic: str, theme: str, api_key: str) -> Presentation:
    result = await generate_text(build_slides_prompt(topic), api_key)
    outline = parse_slides(result.text)

    semaphore = asyncio.Semaphore(settings.slides.notes_concurrency)
    notes = await asyncio.gather(
        *(_speaker_notes(slide, topic, api_key, semaphore) for slide in outline)
    )

    slides = [
        Slide(
            id=f"slide-{n}",
            title=item["title"],
            content=item["content"],
            speaker_notes=note,
            slide_number=n,
        )
        for n, (item, note) in enumerate(zip(outline, notes), start=1)
    ]
    return Presentation(
        id=f"presentation-{int(time.time() * 1000)}",
        topic=topic,
        theme=theme,
        slides=slides,
        created_at=datetime.now(timezone.utc),
        used_fallback=result.used_fallback,
    )


async def generate_presentation(
    request: SlideRequest, cache: Optional[ResponseCache] = None
) -> SlideResponse:
    """Generate (or serve from cache) a full presentation for a topic."""
    cache = cache or response_cache
    check = validate_api_key_format(request.api_key)
    if not check.is_valid:
        raise ApiKeyFormatError(check.error or "Invalid API key format")
    api_key = request.api_key.strip()

    topic = sanitize_input(request.topic)
    theme = sanitize_input(request.theme)
    if not topic:
        raise InvalidInputError("Topic is required")

    params = {"topic": topic, "theme": theme, "key": key_fingerprint(api_key)}
    hit = cache.get(SLIDES_ENDPOINT, params)
    metrics.record_cache(hit is not MISS)
    if hit is not MISS:
        logger.info(f"presentation served from cache topic={topic!r}")
        return SlideResponse(data=hit, cached=True)

    try:
        with metrics.measure("slide_generation_ms"):
            presentation = await coalescer.run(
                make_key(SLIDES_ENDPOINT, params),
                lambda: _build_presentation(topic, theme, api_key),
            )
    except AppError as e:
        logger.warning(
            f"slide generation failed topic={topic!r} key={mask_key(api_key)} "
            f"code={e.code.value}"
        )
        raise

    cache.set(SLIDES_ENDPOINT, params, presentation)
    logger.info(
        f"presentation generated topic={topic!r} slides={len(presentation.slides)} "
        f"fallback={presentation.used_fallback}"
    )
    return SlideResponse(data=presentation)
