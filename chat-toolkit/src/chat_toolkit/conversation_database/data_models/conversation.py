"""
Conversation data model and storage interface.

The 'ConversationDatabase' ABC is the pluggable storage backend for conversation
records. Lookups that miss return 'None' (or 'False' for deletes) instead of
raising; storage failures surface as 'StorageError'. The concrete
'InMemoryConversationDatabase' is interchangeable with any other backend at
construction time, keeping the controller free of storage-specific code.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class Conversation(BaseModel):
    """
    A titled chat session owned by a single user.

    'owner_id' is opaque here: authentication happens before the controller is
    reached. 'update_timestamp' moves forward every time a message is appended
    ("touch") and never falls below 'create_timestamp'. 'is_active' is a soft
    archive flag used only for filtering listings.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    owner_id: str
    title: str
    model: str
    create_timestamp: int
    update_timestamp: int
    is_active: bool = True

    @model_validator(mode="after")
    def _check_timestamps(self) -> "Conversation":
        if self.update_timestamp < self.create_timestamp:
            raise ValueError("update_timestamp must not precede create_timestamp")
        return self


class ConversationDatabase(ABC):
    """Abstract repository for 'Conversation' records."""

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        pass

    @abstractmethod
    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        pass

    @abstractmethod
    async def get_conversations_by_owner_id(self, owner_id: str, active_only: bool = False) -> list[Conversation]:
        """Return the owner's conversations, most recently updated first (ties: id descending)."""
        pass

    @abstractmethod
    async def search_conversations_by_title(
        self, owner_id: str, substring: str, case_insensitive: bool = True
    ) -> list[Conversation]:
        pass

    @abstractmethod
    async def update_conversation(self, conversation: Conversation) -> Conversation | None:
        pass

    @abstractmethod
    async def touch_conversation(self, conversation_id: str) -> Conversation | None:
        """Move 'update_timestamp' to now. Last writer wins; never moves backwards."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        pass
