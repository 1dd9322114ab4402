"""
API key format checks, input sanitization and client identification.
Why: every user string reaches an LLM prompt; keep markup and script out.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from draftwise.core.errors import InvalidInputError

API_KEY_MIN_LENGTH = 20
API_KEY_MAX_LENGTH = 50
API_KEY_PREFIX = "AI"
MAX_EMAIL_LENGTH = 10_000

_KEY_CHARSET = re.compile(r"^[A-Za-z0-9_-]+$")
_PLACEHOLDER_WORDS = ("test", "demo", "example")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


@dataclass(frozen=True)
class KeyValidation:
    is_valid: bool
    error: Optional[str] = None


def validate_api_key_format(
    api_key: Optional[str], reject_placeholders: bool = False
) -> KeyValidation:
    """Structural check of a Gemini API key.

    Args:
        api_key: Candidate key (surrounding whitespace is ignored)
        reject_placeholders: Also reject keys that look like samples
            ("test", "demo", "example"); used on the server side

    Returns:
        KeyValidation with the first failing reason, if any
    """
    if not api_key or not isinstance(api_key, str):
        return KeyValidation(False, "API key is required")

    trimmed = api_key.strip()
    if not API_KEY_MIN_LENGTH <= len(trimmed) <= API_KEY_MAX_LENGTH:
        return KeyValidation(False, "Invalid API key format")
    if not trimmed.startswith(API_KEY_PREFIX):
        return KeyValidation(False, "Invalid API key format")
    if not _KEY_CHARSET.match(trimmed):
        return KeyValidation(False, "API key contains invalid characters")
    if reject_placeholders and any(w in trimmed.lower() for w in _PLACEHOLDER_WORDS):
        return KeyValidation(False, "Invalid API key - appears to be a test key")
    return KeyValidation(True)


def mask_key(api_key: Optional[str]) -> str:
    """Loggable form of a key: first 5 and last 3 characters."""
    if not api_key:
        return "<none>"
    if len(api_key) <= 8:
        return "***"
    return f"{api_key[:5]}...{api_key[-3:]}"


_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.I)
_STYLE_BLOCK = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.I)
_TAG = re.compile(r"</?[A-Za-z][^>]*>")
_COMMENT = re.compile(r"<!--.*?-->", re.S)
_DANGEROUS_URL = re.compile(r"(?:javascript|data|vbscript):[^\"'\s]*", re.I)
_QUOTED_HANDLER = re.compile(r"\bon\w+\s*=\s*[\"'][^\"']*[\"']", re.I)
_BARE_HANDLER = re.compile(r"\bon\w+\s*=\s*[^\"'\s>]+", re.I)
_INLINE_SPACE = re.compile(r"[ \t\f\v]+")
_BLANK_RUN = re.compile(r"\n\s*\n\s*\n+")


def sanitize_input(text: Optional[str]) -> str:
    """Strip markup, script blocks, script URLs and inline handlers; keep text.

    Runs of spaces collapse to one; line breaks survive, with at most one
    blank line between paragraphs.
    """
    if not text or not isinstance(text, str):
        return ""
    cleaned = _SCRIPT_BLOCK.sub("", text)
    cleaned = _STYLE_BLOCK.sub("", cleaned)
    cleaned = _COMMENT.sub("", cleaned)
    cleaned = _TAG.sub("", cleaned)
    cleaned = _DANGEROUS_URL.sub("", cleaned)
    cleaned = _QUOTED_HANDLER.sub("", cleaned)
    cleaned = _BARE_HANDLER.sub("", cleaned)
    cleaned = _INLINE_SPACE.sub(" ", cleaned.replace("\r\n", "\n"))
    cleaned = "\n".join(line.strip() for line in cleaned.split("\n"))
    return _BLANK_RUN.sub("\n\n", cleaned).strip()


def sanitize_email_content(content: Optional[str]) -> str:
    """Validate and sanitize user email text; raises InvalidInputError."""
    if not content or not isinstance(content, str) or not content.strip():
        raise InvalidInputError("Email content cannot be empty")
    if len(content) > MAX_EMAIL_LENGTH:
        raise InvalidInputError("Email content too long (maximum 10,000 characters)")
    sanitized = sanitize_input(content)
    if not sanitized:
        raise InvalidInputError("Email content cannot be empty")
    return sanitized


def client_identifier(headers: Mapping[str, str], client_host: Optional[str] = None) -> str:
    """Rate-limit identity: best-effort client IP plus a user-agent prefix."""
    forwarded = headers.get("x-forwarded-for")
    ip = (
        (forwarded.split(",")[0].strip() if forwarded else None)
        or headers.get("x-real-ip")
        or headers.get("cf-connecting-ip")
        or client_host
        or "unknown"
    )
    user_agent = headers.get("user-agent") or "unknown"
    return f"{ip}:{user_agent[:50]}"


def key_fingerprint(api_key: str) -> str:
    """Stable, non-reversible id for a key; safe to put in cache keys."""
    return hashlib.sha256(api_key.strip().encode("utf-8")).hexdigest()[:16]
