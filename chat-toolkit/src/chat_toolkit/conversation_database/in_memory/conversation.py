"""
In-memory 'ConversationDatabase'.

Records live in a dict keyed by id and are guarded by a single lock, so every
operation is atomic per record. Stored objects are copied on the way in and
out; callers can never mutate the store through a returned model.
"""

import threading

from loguru import logger

from chat_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_toolkit.utils.time import get_current_timestamp


def _recency_key(conversation: Conversation) -> tuple[int, str]:
    return conversation.update_timestamp, conversation.id


class InMemoryConversationDatabase(ConversationDatabase):
    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._lock = threading.Lock()

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        with self._lock:
            if conversation.id in self._conversations:
                raise ValueError(f"Conversation with id {conversation.id} already exists")
            self._conversations[conversation.id] = conversation.model_copy()
        logger.debug(f"Created conversation {conversation.id} for owner {conversation.owner_id}")
        return conversation.model_copy()

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.model_copy() if conversation else None

    async def get_conversations_by_owner_id(self, owner_id: str, active_only: bool = False) -> list[Conversation]:
        with self._lock:
            conversations = [
                c.model_copy()
                for c in self._conversations.values()
                if c.owner_id == owner_id and (c.is_active or not active_only)
            ]
        return sorted(conversations, key=_recency_key, reverse=True)

    async def search_conversations_by_title(
        self, owner_id: str, substring: str, case_insensitive: bool = True
    ) -> list[Conversation]:
        needle = substring.casefold() if case_insensitive else substring
        matches = []
        for conversation in await self.get_conversations_by_owner_id(owner_id):
            title = conversation.title.casefold() if case_insensitive else conversation.title
            if needle in title:
                matches.append(conversation)
        return matches

    async def update_conversation(self, conversation: Conversation) -> Conversation | None:
        with self._lock:
            stored = self._conversations.get(conversation.id)
            if stored is None:
                return None
            # Owner and creation time are fixed at creation.
            updated = conversation.model_copy(
                update={
                    "owner_id": stored.owner_id,
                    "create_timestamp": stored.create_timestamp,
                    "update_timestamp": max(conversation.update_timestamp, stored.create_timestamp),
                }
            )
            self._conversations[conversation.id] = updated
            return updated.model_copy()

    async def touch_conversation(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            stored = self._conversations.get(conversation_id)
            if stored is None:
                return None
            touched = stored.model_copy(
                update={"update_timestamp": max(get_current_timestamp(), stored.update_timestamp)}
            )
            self._conversations[conversation_id] = touched
            return touched.model_copy()

    async def delete_conversation(self, conversation_id: str) -> bool:
        with self._lock:
            return self._conversations.pop(conversation_id, None) is not None
