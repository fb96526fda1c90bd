"""
Conversation session persistence with per-customer serialization.

A turn reads the session once, mutates a private copy and saves it once
when the turn succeeds. Turns for the same customer queue on that
customer's lock; different customers never wait on each other.

Usage:
    async with store.transaction("psid-1") as session:
        session.product_interest = "rollo"
    # saved here unless the block raised
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional, Protocol

from salesflow.schemas.session_schema import ConversationSession

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def transaction(self, customer_id: str): ...

    async def get(self, customer_id: str) -> Optional[ConversationSession]: ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, ConversationSession] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self.save_count = 0

    def _lock_for(self, customer_id: str) -> asyncio.Lock:
        lock = self._locks.get(customer_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[customer_id] = lock
        return lock

    async def get(self, customer_id: str) -> Optional[ConversationSession]:
        """Read-only copy of the stored session."""
        stored = self._sessions.get(customer_id)
        return stored.model_copy(deep=True) if stored else None

    async def save(self, session: ConversationSession) -> None:
        session.updated_at = datetime.now(timezone.utc)
        self._sessions[session.customer_id] = session.model_copy(deep=True)
        self.save_count += 1

    @asynccontextmanager
    async def transaction(self, customer_id: str) -> AsyncIterator[ConversationSession]:
        lock = self._lock_for(customer_id)
        async with lock:
            stored = self._sessions.get(customer_id)
            session = (
                stored.model_copy(deep=True)
                if stored is not None
                else ConversationSession(customer_id=customer_id)
            )
            try:
                yield session
            except BaseException:
                logger.warning("Turn for %s failed; session changes discarded", customer_id)
                raise
            await self.save(session)
