"""LLM generation with Gemini as primary provider and OpenRouter as fallback."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple

from google import genai
from google.genai import types
from openai import AsyncOpenAI

from draftwise.config.settings import settings
from draftwise.core.errors import (
    AppError,
    ErrorCode,
    ProviderError,
    classify_provider_error,
    is_credential_error,
)
from draftwise.core.logging import get_logger
from draftwise.core.metrics import metrics

logger = get_logger(__name__)

_FINISH_MESSAGES = {
    "SAFETY": "Content violates safety policies. Please modify your email and try again.",
    "RECITATION": "Response blocked due to recitation. Please rephrase your request.",
    "MAX_TOKENS": "Response too long. Please try with shorter content.",
}


@dataclass(frozen=True)
class GenerationResult:
    text: str
    provider: str
    model: str
    used_fallback: bool = False


def _enum_name(value: object) -> str:
    if value is None:
        return ""
    return str(getattr(value, "name", None) or value)


async def _generate_gemini(
    prompt: str,
    api_key: str,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> str:
    """Generate using Google Gemini with the caller's key."""
    client = genai.Client(api_key=api_key)
    response = await client.aio.models.generate_content(
        model=model or settings.gemini.model,
        contents=prompt,
        config=types.GenerateContentConfig(
            temperature=settings.gemini.temperature if temperature is None else temperature,
            max_output_tokens=max_tokens or settings.gemini.max_output_tokens,
        ),
    )
    if response is None:
        raise ProviderError("No response from Gemini API")

    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
        raise ProviderError(
            f"Prompt was blocked: {_enum_name(block_reason)}. Please modify your input."
        )

    candidates = response.candidates or []
    if not candidates:
        raise ProviderError(
            "Response was blocked. The AI could not generate content for this request."
        )

    finish = _enum_name(candidates[0].finish_reason)
    if finish and finish not in ("STOP", "FINISH_REASON_UNSPECIFIED"):
        logger.warning(f"Gemini stopped early finish_reason={finish}")
        raise ProviderError(
            _FINISH_MESSAGES.get(finish, f"Content generation stopped: {finish}")
        )

    text = response.text
    if not text or not text.strip():
        raise ProviderError("Empty response from Gemini API")
    return text.strip()


async def _generate_openrouter(
    prompt: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> Tuple[str, str]:
    """Generate through OpenRouter, trying each configured model in order.

    Returns:
        (text, model) from the first model that answers
    """
    cfg = settings.openrouter
    client = AsyncOpenAI(
        api_key=cfg.api_key,
        base_url=cfg.base_url,
        timeout=cfg.timeout_s,
        max_retries=0,
        default_headers={"HTTP-Referer": cfg.referer, "X-Title": cfg.title},
    )
    last_error: Optional[Exception] = None
    for model in cfg.models:
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.gemini.temperature if temperature is None else temperature,
                max_tokens=max_tokens or settings.gemini.max_output_tokens,
            )
        except Exception as e:
            logger.warning(f"OpenRouter model {model} failed: {e}")
            last_error = e
            continue
        if response.choices and response.choices[0].message.content:
            logger.info(f"OpenRouter model {model} succeeded")
            return response.choices[0].message.content.strip(), model
        logger.warning(f"OpenRouter model {model} returned no content")

    raise ProviderError(
        f"All OpenRouter models failed: {last_error}" if last_error else "All OpenRouter models failed",
        provider="openrouter",
        status=getattr(last_error, "status_code", None),
    )


async def generate_text(
    prompt: str,
    api_key: str,
    *,
    timeout_s: Optional[float] = None,
    allow_fallback: bool = True,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> GenerationResult:
    """Generate text, racing each provider against a timeout.

    Args:
        prompt: Full prompt text
        api_key: User's Gemini key
        timeout_s: Gemini timeout (settings default when None)
        allow_fallback: Try OpenRouter when Gemini fails
        temperature: Sampling temperature
        max_tokens: Max response length

    Returns:
        GenerationResult naming the provider that answered

    Raises:
        AppError: classified Gemini error when no fallback applies, or a
            SERVICE_UNAVAILABLE error when both providers fail
    """
    model = settings.gemini.model
    try:
        text = await asyncio.wait_for(
            _generate_gemini(prompt, api_key, model, temperature, max_tokens),
            timeout_s or settings.gemini.timeout_s,
        )
        return GenerationResult(text, "gemini", model)
    except Exception as exc:
        error = classify_provider_error(exc)
        if not allow_fallback or not settings.openrouter.enabled or is_credential_error(error):
            logger.warning(f"Gemini generation failed code={error.code.value}: {exc}")
            raise error from exc
        logger.warning(f"Gemini failed ({error.code.value}), falling back to OpenRouter: {exc}")

    try:
        text, fallback_model = await asyncio.wait_for(
            _generate_openrouter(prompt, temperature, max_tokens),
            settings.openrouter.timeout_s,
        )
    except Exception as fallback_exc:
        logger.error(f"Both Gemini and OpenRouter failed: {fallback_exc}")
        raise AppError(
            str(fallback_exc),
            "All AI services are currently unavailable. Please try again later.",
            ErrorCode.SERVICE_UNAVAILABLE,
            status_code=503,
            retryable=True,
        ) from fallback_exc

    metrics.record_fallback()
    return GenerationResult(text, "openrouter", fallback_model, used_fallback=True)


async def probe_gemini_key(api_key: str) -> None:
    """Send a minimal request; raises a classified AppError on failure."""
    try:
        await asyncio.wait_for(
            _generate_gemini("Hi", api_key), settings.gemini.probe_timeout_s
        )
    except Exception as exc:
        raise classify_provider_error(exc) from exc
