"""
Email rewriting: template-based enhancement and learn-from-example generation.
Why: keeps prompt building, validation and caching out of the route layer so
the HTTP API and the Gradio UI share one code path.
"""

import re
from typing import List, Optional

from draftwise.config.settings import settings
from draftwise.core.cache import MISS, ResponseCache, cached, make_key, response_cache
from draftwise.core.coalescing import coalescer
from draftwise.core.errors import (
    ApiKeyFormatError,
    AppError,
    ErrorCode,
    InvalidInputError,
)
from draftwise.core.logging import get_logger
from draftwise.core.metrics import metrics
from draftwise.core.prompts_loader import load_prompt
from draftwise.core.schemas import (
    EmailRequest,
    EmailTemplate,
    GenerationResponse,
    KeyTestResponse,
    TrainingData,
)
from draftwise.core.security import (
    key_fingerprint,
    mask_key,
    sanitize_email_content,
    validate_api_key_format,
)
from draftwise.llm.generate import generate_text, probe_gemini_key

logger = get_logger(__name__)

EMAIL_ENDPOINT = "/api/gemini"
KEY_TEST_ENDPOINT = "/api/gemini/test"

MIN_TRAINING_LENGTH = 10
MIN_TEST_INPUT_LENGTH = 5
MAX_TRAINING_LENGTH = 2000


def validate_training_data(training: TrainingData, test_input: str) -> None:
    """Reject training examples that cannot teach a transformation.

    Raises:
        InvalidInputError: with the first failing rule
    """
    source, target = training.input or "", training.output or ""
    if not source or not target:
        raise InvalidInputError("Training data must include both input and output")
    if not source.strip() or not target.strip():
        raise InvalidInputError("Training input and output cannot be empty")
    if len(source.strip()) < MIN_TRAINING_LENGTH:
        raise InvalidInputError(
            "Training input should be at least 10 characters long for meaningful pattern learning"
        )
    if len(target.strip()) < MIN_TRAINING_LENGTH:
        raise InvalidInputError(
            "Training output should be at least 10 characters long for meaningful pattern learning"
        )
    if len(source) > MAX_TRAINING_LENGTH:
        raise InvalidInputError("Training input is too long (maximum 2000 characters)")
    if len(target) > MAX_TRAINING_LENGTH:
        raise InvalidInputError("Training output is too long (maximum 2000 characters)")

    if not test_input or not test_input.strip():
        raise InvalidInputError("Test input is required for training-based generation")
    if len(test_input.strip()) < MIN_TEST_INPUT_LENGTH:
        raise InvalidInputError("Test input should be at least 5 characters long")
    if len(test_input) > MAX_TRAINING_LENGTH:
        raise InvalidInputError("Test input is too long (maximum 2000 characters)")

    if source.strip().lower() == target.strip().lower():
        raise InvalidInputError(
            "Training input and output are identical. Please provide an example "
            "that shows a clear transformation pattern."
        )

    source_words = [w for w in source.lower().split() if len(w) > 2]
    target_words = [w for w in target.lower().split() if len(w) > 2]
    longest = max(len(source_words), len(target_words))
    if longest:
        common = [w for w in source_words if w in target_words]
        if len(common) / longest > 0.9 and abs(len(source) - len(target)) < 10:
            raise InvalidInputError(
                "Training input and output are too similar. Please provide an "
                "example with a more distinct transformation pattern."
            )

    if len(target) > len(source) * 5:
        raise InvalidInputError(
            "Training output is significantly longer than input. Please ensure "
            "the transformation is reasonable and focused."
        )


def suggest_training_tips(training: TrainingData, test_input: str) -> List[str]:
    """Hints about what a (valid) training example teaches."""
    source, target = training.input.lower(), training.output.lower()
    tips: List[str] = []
    if "hey" in source and "hey" not in target:
        tips.append("Good: Your example shows how to make greetings more formal")
    if "please" not in source and "please" in target:
        tips.append("Good: Your example shows how to add politeness")
    if len(training.input) < len(training.output) * 0.7:
        tips.append("Your training shows how to expand and elaborate on content")
    elif len(training.input) > len(training.output) * 1.3:
        tips.append("Your training shows how to make content more concise")
    return tips


def build_prompt(
    prompt: str,
    template: Optional[EmailTemplate] = None,
    training: Optional[TrainingData] = None,
) -> str:
    prompts = load_prompt()
    if training is not None:
        return prompts["training"].format(
            training_input=training.input,
            training_output=training.output,
            prompt=prompt,
        )
    if template is not None:
        return prompts["template_user"].format(
            instruction=prompts["templates"][template.value], prompt=prompt
        )
    return prompt


_TRAINING_PREFIX = re.compile(
    r"^(Generated Output:|Generated Email:|Output Email:|Transformed Email:)\s*", re.I
)
_PATTERN_PREFIX = re.compile(
    r"^(Based on the training pattern:|Following the learned pattern:)\s*", re.I
)
_GENERAL_PREFIX = re.compile(r"^(Enhanced email:|Output:|Result:|Email:)\s*", re.I)
_CODE_FENCE = re.compile(r"```[\s\S]*?```")
_TRAILING_NOTES = re.compile(r"\n\n(Analysis:|Explanation:|Note:)[\s\S]*$", re.I)
_EXTRA_BLANKS = re.compile(r"\n{3,}")


def parse_response(text: str, training: bool = False) -> str:
    """Strip model chatter (prefixes, fences, trailing analysis) from a reply."""
    cleaned = text.strip()
    if training:
        cleaned = _TRAINING_PREFIX.sub("", cleaned)
        cleaned = _PATTERN_PREFIX.sub("", cleaned)
    cleaned = _GENERAL_PREFIX.sub("", cleaned)
    cleaned = _CODE_FENCE.sub(
        lambda m: re.sub(r"```\w*\n?", "", m.group(0)).replace("```", ""), cleaned
    )
    cleaned = _TRAILING_NOTES.sub("", cleaned)
    cleaned = _EXTRA_BLANKS.sub("\n\n", cleaned)
    return cleaned.strip()


def _require_key(api_key: Optional[str], reject_placeholders: bool) -> str:
    if not api_key:
        raise ApiKeyFormatError("API key is required")
    result = validate_api_key_format(api_key, reject_placeholders=reject_placeholders)
    if not result.is_valid:
        raise ApiKeyFormatError(result.error or "Invalid API key format")
    return api_key.strip()


async def generate_email(
    request: EmailRequest,
    api_key: Optional[str],
    cache: Optional[ResponseCache] = None,
) -> GenerationResponse:
    """Rewrite an email by template or by training example.

    Order: sanitize, check key, check training data, then cache, then LLM.
    """
    cache = cache or response_cache
    prompt = sanitize_email_content(request.prompt)
    training = None
    if request.training_data is not None:
        training = TrainingData(
            input=sanitize_email_content(request.training_data.input),
            output=sanitize_email_content(request.training_data.output),
        )
    api_key = _require_key(api_key, reject_placeholders=True)
    if training is not None:
        validate_training_data(training, prompt)

    params = {
        "prompt": prompt,
        "template": request.template.value if request.template else None,
        "training_input": training.input if training else None,
        "training_output": training.output if training else None,
        "key": key_fingerprint(api_key),
    }
    hit = cache.get(EMAIL_ENDPOINT, params)
    metrics.record_cache(hit is not MISS)
    if hit is not MISS:
        logger.info("email generation served from cache")
        return hit.model_copy(update={"cached": True})

    full_prompt = build_prompt(prompt, request.template, training)
    try:
        with metrics.measure("email_generation_ms"):
            result = await coalescer.run(
                make_key(EMAIL_ENDPOINT, params),
                lambda: generate_text(full_prompt, api_key),
            )
    except AppError as e:
        logger.warning(
            f"email generation failed template={params['template']} "
            f"training={training is not None} prompt_length={len(prompt)} "
            f"key={mask_key(api_key)} code={e.code.value}"
        )
        raise

    response = GenerationResponse(
        data=parse_response(result.text, training is not None),
        provider=result.provider,
        used_fallback=result.used_fallback,
    )
    cache.set(EMAIL_ENDPOINT, params, response)
    logger.info(
        f"email generation ok template={params['template']} "
        f"training={training is not None} prompt_length={len(prompt)} "
        f"provider={result.provider}"
    )
    return response


@cached(
    KEY_TEST_ENDPOINT,
    ttl=settings.cache.key_test_ttl_s,
    key_params=lambda api_key: {"key": key_fingerprint(api_key)},
)
async def _probe_key(api_key: str) -> KeyTestResponse:
    await probe_gemini_key(api_key)
    return KeyTestResponse()


async def verify_api_key(api_key: Optional[str]) -> KeyTestResponse:
    """Check a key with a minimal live request; successes are cached."""
    api_key = _require_key(api_key, reject_placeholders=False)
    try:
        return await _probe_key(api_key)
    except AppError as e:
        if e.code is ErrorCode.QUOTA_EXCEEDED:
            raise AppError(
                str(e),
                "Your API key is currently rate-limited. Please wait a moment and try again.",
                ErrorCode.RATE_LIMITED,
                status_code=429,
                retryable=True,
            ) from e
        raise
