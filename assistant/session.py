"""
assistant/session.py

Conversation session state, flight-search slot memory and session storage.

Classes:
- Slots: the three pieces of a flight search (origin, destination, ISO date).
- DialogueState: where the conversation stands in collecting those slots.
- Session: message history plus slots and dialogue state, with helpers to append, slice and truncate history.
- SessionStore: get/upsert/delete/lock interface; InMemorySessionStore and RedisSessionStore backings.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from enum import Enum

from util.exceptions import SessionLockError

logger = logging.getLogger(__name__)


class DialogueState(str, Enum):
    AWAITING_FROM = "awaiting_from"
    AWAITING_TO = "awaiting_to"
    AWAITING_DATE = "awaiting_date"
    READY = "ready"
    COMPLETED = "completed"


@dataclass
class Slots:
    origin: str | None = None
    destination: str | None = None
    date: str | None = None  # ISO YYYY-MM-DD

    def missing(self) -> list[str]:
        """Names of unset slots in asking order."""
        return [name for name in ("origin", "destination", "date") if not getattr(self, name)]

    def is_complete(self) -> bool:
        return not self.missing()


@dataclass
class Session:
    history: list[dict[str, str]] = field(default_factory=list)  # list of {role, content}
    slots: Slots = field(default_factory=Slots)
    state: DialogueState = DialogueState.AWAITING_FROM
    greeted: bool = False
    updated_at: float = field(default_factory=time.time)

    def add(self, role, content):
        """Append a message to the conversation history."""
        self.history.append({"role": role, "content": content})

    def recent_history(self, limit):
        """Return the last N non-system messages from the history."""
        turns = [t for t in self.history if t["role"] != "system"]
        return turns[-limit:] if limit > 0 else []

    def truncate(self, limit):
        """Drop the oldest non-system turns so at most `limit` remain; system turns stay pinned."""
        system = [t for t in self.history if t["role"] == "system"]
        self.history = system + self.recent_history(limit)

    def touch(self):
        self.updated_at = time.time()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            history=list(data.get("history") or []),
            slots=Slots(**(data.get("slots") or {})),
            state=DialogueState(data.get("state") or DialogueState.AWAITING_FROM.value),
            greeted=bool(data.get("greeted")),
            updated_at=float(data.get("updated_at") or time.time()),
        )


class SessionStore(ABC):
    """Keyed session storage. `lock` serializes turns for one session id."""

    @abstractmethod
    def get(self, session_id: str) -> Session | None:
        ...

    @abstractmethod
    def upsert(self, session_id: str, session: Session) -> None:
        ...

    @abstractmethod
    def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    def lock(self, session_id: str):
        ...

    def get_or_create(self, session_id: str) -> Session:
        sess = self.get(session_id)
        if sess is None:
            sess = Session()
            self.upsert(session_id, sess)
        return sess


class InMemorySessionStore(SessionStore):
    """Process-local store. Sessions idle longer than `ttl_seconds` are dropped on access."""

    def __init__(self, ttl_seconds: float | None = None, clock=time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _expired(self, sess: Session) -> bool:
        if not self.ttl_seconds:
            return False
        return self._clock() - sess.updated_at > self.ttl_seconds

    def get(self, session_id):
        with self._guard:
            sess = self._sessions.get(session_id)
            if sess is not None and self._expired(sess):
                logger.info("Session %s expired after %ss idle", session_id, self.ttl_seconds)
                del self._sessions[session_id]
                return None
            return sess

    def upsert(self, session_id, session):
        session.updated_at = self._clock()
        with self._guard:
            self._sessions[session_id] = session

    def delete(self, session_id):
        with self._guard:
            self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)

    @contextmanager
    def lock(self, session_id):
        with self._guard:
            key_lock = self._locks.setdefault(session_id, threading.Lock())
        with key_lock:
            yield

    def __len__(self):
        return len(self._sessions)


class RedisSessionStore(SessionStore):
    """Redis-backed store; sessions are JSON blobs expiring after `ttl_seconds`."""

    def __init__(self, client, ttl_seconds: int | None = 86400, prefix: str = "session:"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int | None = 86400) -> "RedisSessionStore":
        import redis

        client = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=5)
        logger.info("Session store: redis at %s", url.split("@")[-1])
        return cls(client, ttl_seconds=ttl_seconds)

    def _key(self, session_id):
        return f"{self.prefix}{session_id}"

    def get(self, session_id):
        raw = self.client.get(self._key(session_id))
        if not raw:
            return None
        return Session.from_dict(json.loads(raw))

    def upsert(self, session_id, session):
        session.touch()
        self.client.set(self._key(session_id), json.dumps(session.to_dict()), ex=self.ttl_seconds or None)

    def delete(self, session_id):
        self.client.delete(self._key(session_id))

    @contextmanager
    def lock(self, session_id):
        from redis.exceptions import LockError

        held = self.client.lock(f"lock:{self._key(session_id)}", timeout=60, blocking_timeout=30)
        if not held.acquire():
            raise SessionLockError(f"Timed out waiting for the lock on session {session_id}")
        try:
            yield
        finally:
            try:
                held.release()
            except LockError as exc:
                logger.warning("Lock for session %s expired before release: %s", session_id, exc)


def build_store() -> SessionStore:
    """Pick the session backing from SESSION_BACKEND (memory | redis)."""
    backend = os.getenv("SESSION_BACKEND", "memory").strip().lower()
    try:
        ttl = float(os.getenv("SESSION_TTL_SECONDS", "86400"))
    except ValueError:
        ttl = 86400.0
    if backend == "redis":
        return RedisSessionStore.from_url(os.getenv("REDIS_URL", "redis://localhost:6379/0"), ttl_seconds=int(ttl))
    return InMemorySessionStore(ttl_seconds=ttl)
