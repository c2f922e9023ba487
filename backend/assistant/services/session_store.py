"""
Session Store Service - Redis-backed dialogue session storage with in-memory fallback.

Sessions are stored as the plain dicts produced by ``DialogueSession.to_dict``.
"""
import json
from typing import Dict, Any, Optional
from datetime import datetime, timedelta
from abc import ABC, abstractmethod

from assistant.core.config import settings
from assistant.core.logging import logger


class SessionStore(ABC):
    """Abstract base class for session storage."""

    @abstractmethod
    def get(self, thread_id: str) -> Optional[Dict[str, Any]]:
        """Get a session by thread ID."""

    @abstractmethod
    def set(self, thread_id: str, data: Dict[str, Any], ttl_hours: Optional[int] = None) -> None:
        """Store a session, refreshing its TTL."""

    @abstractmethod
    def delete(self, thread_id: str) -> bool:
        """Delete a session."""

    @abstractmethod
    def exists(self, thread_id: str) -> bool:
        """Check if a session exists."""


class InMemorySessionStore(SessionStore):
    """In-memory session store for development and tests."""

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._expiry: Dict[str, datetime] = {}

    def _cleanup_expired(self):
        now = datetime.utcnow()
        expired = [k for k, v in self._expiry.items() if v < now]
        for key in expired:
            self._sessions.pop(key, None)
            self._expiry.pop(key, None)

    def get(self, thread_id: str) -> Optional[Dict[str, Any]]:
        self._cleanup_expired()
        return self._sessions.get(thread_id)

    def set(self, thread_id: str, data: Dict[str, Any], ttl_hours: Optional[int] = None) -> None:
        ttl_hours = ttl_hours or settings.SESSION_TTL_HOURS
        # Round-trip through JSON so stored data matches what Redis would hold
        self._sessions[thread_id] = json.loads(json.dumps(data, default=str))
        self._expiry[thread_id] = datetime.utcnow() + timedelta(hours=ttl_hours)

    def delete(self, thread_id: str) -> bool:
        if thread_id in self._sessions:
            del self._sessions[thread_id]
            self._expiry.pop(thread_id, None)
            return True
        return False

    def exists(self, thread_id: str) -> bool:
        self._cleanup_expired()
        return thread_id in self._sessions

    def count(self) -> int:
        """Number of live sessions."""
        self._cleanup_expired()
        return len(self._sessions)


class RedisSessionStore(SessionStore):
    """Redis-backed session store for staging and production."""

    def __init__(self, redis_url: str):
        import redis
        self._redis = redis.from_url(redis_url, decode_responses=True)
        self._prefix = "assistant:session:"

    def _key(self, thread_id: str) -> str:
        return f"{self._prefix}{thread_id}"

    def get(self, thread_id: str) -> Optional[Dict[str, Any]]:
        data = self._redis.get(self._key(thread_id))
        if data:
            return json.loads(data)
        return None

    def set(self, thread_id: str, data: Dict[str, Any], ttl_hours: Optional[int] = None) -> None:
        ttl_hours = ttl_hours or settings.SESSION_TTL_HOURS
        self._redis.setex(
            self._key(thread_id),
            timedelta(hours=ttl_hours),
            json.dumps(data, default=str),
        )

    def delete(self, thread_id: str) -> bool:
        return self._redis.delete(self._key(thread_id)) > 0

    def exists(self, thread_id: str) -> bool:
        return self._redis.exists(self._key(thread_id)) > 0

    def ping(self) -> bool:
        return bool(self._redis.ping())


_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get the session store instance (creates if needed)."""
    global _session_store

    if _session_store is not None:
        return _session_store

    if settings.REDIS_URL and settings.APP_ENV != "development":
        try:
            store = RedisSessionStore(settings.REDIS_URL)
            store.ping()
            _session_store = store
            logger.info("Using Redis session store")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis, using in-memory store: {e}")
            _session_store = InMemorySessionStore()
    else:
        logger.info("Using in-memory session store (development mode)")
        _session_store = InMemorySessionStore()

    return _session_store
