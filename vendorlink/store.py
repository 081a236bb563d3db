"""
ConversationStore - per-workspace session histories.

Shared by every turn of a workspace. Each method is one short critical
section under an asyncio.Lock; callers snapshot history before going to the
network instead of holding the lock across a request.
"""

import asyncio

from vendorlink.config import Message
from vendorlink.errors import SessionNotFoundError


class ConversationStore:
    """Maps session id -> ordered, append-only message history."""

    def __init__(self):
        self._conversations: dict[str, list[Message]] = {}
        self._lock = asyncio.Lock()

    async def ensure_session(self, session_id: str, must_exist: bool = False) -> bool:
        """
        Make sure a session exists.

        Args:
            session_id: Session to look up or create
            must_exist: Fail instead of creating when the session is unknown

        Returns:
            True if the session was created by this call

        Raises:
            SessionNotFoundError: If must_exist and the session is unknown
        """
        async with self._lock:
            if session_id in self._conversations:
                return False
            if must_exist:
                raise SessionNotFoundError(session_id)
            self._conversations[session_id] = []
            return True

    async def append(self, session_id: str, message: Message) -> None:
        async with self._lock:
            history = self._conversations.get(session_id)
            if history is None:
                raise SessionNotFoundError(session_id)
            history.append(message)

    async def snapshot(self, session_id: str) -> list[Message]:
        """Copy of the session history (empty if the session is unknown)."""
        async with self._lock:
            return list(self._conversations.get(session_id, []))

    async def session_ids(self) -> list[str]:
        async with self._lock:
            return list(self._conversations)
