"""
Message data model and storage interface.

Messages belong to exactly one conversation and are totally ordered within it.
The store, not the caller, assigns 'id', 'create_timestamp' and 'sequence' on
append: 'sequence' is a per-conversation counter and the authoritative sort
key, while 'create_timestamp' is kept strictly increasing per conversation so
that it orders identically. Both are assigned under a per-conversation lock,
which keeps ordering deterministic when two requests append concurrently.

'model' is only set on assistant messages and records which model produced
(or was asked to produce) the content.

The 'MessageDatabase' ABC is the pluggable storage backend. It does not check
that 'conversation_id' refers to an existing conversation; that check lives in
the controller.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chat_toolkit.llms.base import Roles


class Message(BaseModel):
    """A single turn within a conversation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    conversation_id: str
    role: Roles
    content: str
    model: str | None = None
    create_timestamp: int
    sequence: int


class MessageDatabase(ABC):
    """Abstract repository for 'Message' records."""

    @abstractmethod
    async def create_message(
        self,
        conversation_id: str,
        role: Roles,
        content: str,
        model: str | None = None,
    ) -> Message:
        """
        Append a message and assign its id, 'create_timestamp' and 'sequence'.

        Raises:
            NotFoundError: the conversation's messages were deleted with
                'delete_messages_by_conversation_id'.
        """
        pass

    @abstractmethod
    async def get_message_by_id(self, message_id: str) -> Message | None:
        pass

    @abstractmethod
    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        """Return the conversation's messages in ascending order."""
        pass

    @abstractmethod
    async def get_messages_by_conversation_id_and_role(self, conversation_id: str, role: Roles) -> list[Message]:
        pass

    @abstractmethod
    async def get_recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        """Return up to 'limit' messages, newest first."""
        pass

    @abstractmethod
    async def count_messages(self, conversation_id: str) -> int:
        pass

    @abstractmethod
    async def delete_message(self, message_id: str) -> bool:
        pass

    @abstractmethod
    async def delete_messages_by_conversation_id(self, conversation_id: str) -> int:
        """Delete every message of the conversation and return how many were removed.

        Afterwards the conversation id is closed: 'create_message' for it raises.
        """
        pass
