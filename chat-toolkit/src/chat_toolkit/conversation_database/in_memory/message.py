"""
In-memory 'MessageDatabase'.

Messages are kept in one list per conversation, already in order, so reads
never sort. Ordering state ('sequence' and the last timestamp) is assigned
under a per-conversation lock; appends to different conversations do not
contend with each other.

Deleting a conversation's messages closes the conversation id: the id is
recorded as deleted under the same lock appends take, so an append racing
the delete either lands before it (and is removed with the rest) or raises
'NotFoundError'. Locks and ordering state of a closed id are dropped; only
the id itself is remembered.
"""

import threading
from collections import defaultdict

from loguru import logger

from chat_toolkit.conversation_database.data_models.message import Message, MessageDatabase
from chat_toolkit.exceptions import NotFoundError
from chat_toolkit.llms.base import Roles
from chat_toolkit.utils.database import generate_uid
from chat_toolkit.utils.time import get_current_timestamp


class InMemoryMessageDatabase(MessageDatabase):
    def __init__(self) -> None:
        self._messages: dict[str, list[Message]] = defaultdict(list)
        self._index: dict[str, str] = {}  # message id -> conversation id
        self._sequences: dict[str, int] = defaultdict(int)
        self._last_timestamps: dict[str, int] = {}
        self._deleted: set[str] = set()
        self._conversation_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _writable_lock(self, conversation_id: str) -> threading.Lock:
        with self._registry_lock:
            if conversation_id in self._deleted:
                raise NotFoundError(f"Conversation with id {conversation_id} was deleted")
            return self._conversation_locks.setdefault(conversation_id, threading.Lock())

    def _existing_lock(self, conversation_id: str) -> "threading.Lock | None":
        with self._registry_lock:
            return self._conversation_locks.get(conversation_id)

    async def create_message(
        self,
        conversation_id: str,
        role: Roles,
        content: str,
        model: str | None = None,
    ) -> Message:
        with self._writable_lock(conversation_id):
            # The delete may have won the lock while this call was waiting for it.
            if conversation_id in self._deleted:
                raise NotFoundError(f"Conversation with id {conversation_id} was deleted")
            timestamp = get_current_timestamp()
            last_timestamp = self._last_timestamps.get(conversation_id)
            if last_timestamp is not None and timestamp <= last_timestamp:
                timestamp = last_timestamp + 1
            self._last_timestamps[conversation_id] = timestamp
            self._sequences[conversation_id] += 1
            message = Message(
                id=generate_uid(),
                conversation_id=conversation_id,
                role=Roles(role),
                content=content,
                model=model,
                create_timestamp=timestamp,
                sequence=self._sequences[conversation_id],
            )
            self._messages[conversation_id].append(message)
            with self._registry_lock:
                self._index[message.id] = conversation_id
        logger.debug(f"Appended {message.role} message #{message.sequence} to conversation {conversation_id}")
        return message.model_copy()

    async def get_message_by_id(self, message_id: str) -> Message | None:
        with self._registry_lock:
            conversation_id = self._index.get(message_id)
        if conversation_id is None:
            return None
        lock = self._existing_lock(conversation_id)
        if lock is None:
            return None
        with lock:
            for message in self._messages.get(conversation_id, []):
                if message.id == message_id:
                    return message.model_copy()
        return None

    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        lock = self._existing_lock(conversation_id)
        if lock is None:
            return []
        with lock:
            return [message.model_copy() for message in self._messages.get(conversation_id, [])]

    async def get_messages_by_conversation_id_and_role(self, conversation_id: str, role: Roles) -> list[Message]:
        return [m for m in await self.get_messages_by_conversation_id(conversation_id) if m.role == role]

    async def get_recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        messages = await self.get_messages_by_conversation_id(conversation_id)
        return list(reversed(messages[-limit:]))

    async def count_messages(self, conversation_id: str) -> int:
        lock = self._existing_lock(conversation_id)
        if lock is None:
            return 0
        with lock:
            return len(self._messages.get(conversation_id, []))

    async def delete_message(self, message_id: str) -> bool:
        with self._registry_lock:
            conversation_id = self._index.pop(message_id, None)
        if conversation_id is None:
            return False
        lock = self._existing_lock(conversation_id)
        if lock is None:
            return False
        with lock:
            history = self._messages.get(conversation_id, [])
            self._messages[conversation_id] = [m for m in history if m.id != message_id]
        return True

    async def delete_messages_by_conversation_id(self, conversation_id: str) -> int:
        with self._registry_lock:
            self._deleted.add(conversation_id)
            lock = self._conversation_locks.get(conversation_id)
        if lock is None:
            return 0
        with lock:
            removed = self._messages.pop(conversation_id, [])
            self._sequences.pop(conversation_id, None)
            self._last_timestamps.pop(conversation_id, None)
            with self._registry_lock:
                for message in removed:
                    self._index.pop(message.id, None)
                self._conversation_locks.pop(conversation_id, None)
        return len(removed)
