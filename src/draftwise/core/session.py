"""
Session-scoped API key guard with an expiry window.
Why: a pasted key must not stay usable forever in a long-lived browser tab.

The guard keeps one key plus the time it was accepted, mirrors both into an
injected storage, and re-checks the window whenever the key is accessed.
Periodic checks are the caller's job (`check()` / `is_expired()`); the guard
owns no timers.
"""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Protocol

from draftwise.config.settings import settings
from draftwise.core.errors import ApiKeyFormatError
from draftwise.core.logging import get_logger
from draftwise.core.security import validate_api_key_format

logger = get_logger(__name__)

API_KEY_STORAGE_KEY = "gemini_api_key"
API_KEY_TIMESTAMP_KEY = "gemini_api_key_timestamp"


class SessionStorage(Protocol):
    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage; one instance per UI session."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def write(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class SessionState(Enum):
    EMPTY = "empty"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionCredential:
    value: str
    issued_at: float

    def is_valid_at(self, now: float, timeout: float) -> bool:
        return now - self.issued_at < timeout


class SessionKeyGuard:
    def __init__(
        self,
        storage: Optional[SessionStorage] = None,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if timeout_seconds is None:
            timeout_seconds = settings.security.session_timeout_s
        self.storage: SessionStorage = storage if storage is not None else InMemoryStorage()
        self.timeout = float(timeout_seconds)
        self._clock = clock
        self._credential: Optional[SessionCredential] = None
        self.session_expired = False
        self._load()

    # --- state -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """EXPIRED means a key is still held but its window has elapsed."""
        if self._credential is None:
            return SessionState.EMPTY
        return SessionState.EXPIRED if self.is_expired() else SessionState.ACTIVE

    @property
    def has_key(self) -> bool:
        return self._credential is not None

    @property
    def is_valid(self) -> bool:
        """True while a key is held and its window has not elapsed."""
        return self._credential is not None and not self.is_expired()

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self._credential is None:
            return False
        now = self._clock() if now is None else now
        return not self._credential.is_valid_at(now, self.timeout)

    # --- transitions -----------------------------------------------------

    def set_key(self, candidate: str) -> None:
        """Accept a new key; raises ApiKeyFormatError and keeps state on bad input.

        If the key cannot be persisted the guard holds no key at all.
        """
        result = validate_api_key_format(candidate)
        if not result.is_valid:
            raise ApiKeyFormatError(result.error or "Invalid API key format")

        credential = SessionCredential(candidate.strip(), self._clock())
        self.session_expired = False
        try:
            self.storage.write(API_KEY_STORAGE_KEY, credential.value)
            self.storage.write(API_KEY_TIMESTAMP_KEY, repr(credential.issued_at))
        except Exception as e:
            logger.warning(f"Failed to persist API key, keeping none: {e}")
            self._discard()
            return
        self._credential = credential

    def check(self, now: Optional[float] = None) -> SessionState:
        """Re-validate the window; an elapsed window discards the key."""
        if self._credential is None:
            return SessionState.EMPTY
        if not self.is_expired(now):
            return SessionState.ACTIVE
        logger.info("API key session expired")
        self._discard()
        self.session_expired = True
        return SessionState.EXPIRED

    def get_key(self) -> Optional[str]:
        if self.check() is SessionState.ACTIVE and self._credential is not None:
            return self._credential.value
        return None

    def clear(self) -> None:
        self._discard()
        self.session_expired = False

    # --- internals -------------------------------------------------------

    def _discard(self) -> None:
        self._credential = None
        self._remove_persisted()

    def _remove_persisted(self) -> None:
        for key in (API_KEY_STORAGE_KEY, API_KEY_TIMESTAMP_KEY):
            try:
                self.storage.remove(key)
            except Exception as e:
                logger.warning(f"Failed to clear stored API key data: {e}")

    def _load(self) -> None:
        try:
            stored_key = self.storage.read(API_KEY_STORAGE_KEY)
            stored_ts = self.storage.read(API_KEY_TIMESTAMP_KEY)
        except Exception as e:
            logger.warning(f"Failed to load API key from storage: {e}")
            self._remove_persisted()
            return

        if not stored_key and not stored_ts:
            return
        if not stored_key or not stored_ts:
            logger.warning("Stored API key data is incomplete, discarding")
            self._remove_persisted()
            return

        try:
            issued_at = float(stored_ts)
        except ValueError:
            issued_at = math.nan
        if not math.isfinite(issued_at) or issued_at > self._clock():
            logger.warning("Stored API key timestamp is unreadable, discarding")
            self._remove_persisted()
            return

        credential = SessionCredential(stored_key, issued_at)
        if not credential.is_valid_at(self._clock(), self.timeout):
            self._remove_persisted()
            self.session_expired = True
            return
        if not validate_api_key_format(stored_key).is_valid:
            self._remove_persisted()
            return
        self._credential = credential
