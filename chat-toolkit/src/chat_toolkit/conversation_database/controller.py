"""
Chat controller (Facade).

'ChatController' is the single entry point for application logic. It
coordinates the conversation store, the message store and the AI responder,
all passed in at construction time.

'send_message' runs one request-scoped pipeline with a fixed order:

    validate -> persist user message -> call AI responder
             -> persist assistant message -> touch conversation

The user message is written before the model is called, so the user's input
survives any AI failure. An AI failure (error, timeout, unsupported model)
does not roll anything back: under the default 'AIFailurePolicy.FALLBACK' it
becomes an assistant message carrying 'fallback_message', so a caller whose
user turn was stored always gets an answer. Touching the conversation is
best-effort and only logged when it fails.

'delete_conversation' removes messages before the conversation record. An
interruption between the two steps leaves an empty conversation behind, never
messages pointing at a deleted conversation. Deleting the messages also
closes the conversation in the message store, so a send still waiting for
the AI responder cannot write its answer afterwards and fails with
'NotFoundError' instead.
"""

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chat_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_toolkit.conversation_database.data_models.message import Message, MessageDatabase
from chat_toolkit.exceptions import (
    ChatToolkitError,
    NotFoundError,
    StorageError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from chat_toolkit.llms.base import LLM, Roles
from chat_toolkit.utils.database import generate_uid
from chat_toolkit.utils.time import format_minute, get_current_timestamp

DEFAULT_MODEL = "claude-3-5-sonnet"
DEFAULT_CONVERSATION_TITLE_PREFIX = "New Chat "
DEFAULT_FALLBACK_MESSAGE = "Sorry, I'm having trouble connecting to the AI service. Please try again."
DEFAULT_LLM_TIMEOUT = 30.0


class AIFailurePolicy(StrEnum):
    """What 'send_message' does when the AI responder fails."""

    FALLBACK = "fallback"
    RAISE = "raise"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class ConversationInput(ApiModel):
    owner_id: str
    title: str | None = None
    model: str | None = None


class ConversationUpdate(ApiModel):
    title: str | None = None
    model: str | None = None
    is_active: bool | None = None


class MessageInput(ApiModel):
    text: str
    model_id: str | None = None


class ClientConversation(Conversation):
    message_count: int


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except ChatToolkitError:
        raise
    except Exception as e:
        raise StorageError(f"Failed to {action}: {e}") from e


class ChatController:
    """
    Orchestrates conversation and message persistence around the AI responder.

    Attributes:
        default_model: Model id used when neither the request nor the
            conversation names one.
        fallback_message: Assistant content substituted on AI failure.
        failure_policy: 'FALLBACK' answers with 'fallback_message'; 'RAISE'
            propagates the 'UpstreamError' after the user message is stored.
        llm_timeout: Upper bound in seconds for one AI call. 'None' disables it.
    """

    def __init__(
        self,
        conversation_db: ConversationDatabase,
        message_db: MessageDatabase,
        llm: LLM,
        default_model: str = DEFAULT_MODEL,
        fallback_message: str = DEFAULT_FALLBACK_MESSAGE,
        failure_policy: AIFailurePolicy = AIFailurePolicy.FALLBACK,
        llm_timeout: float | None = DEFAULT_LLM_TIMEOUT,
    ):
        self.conversation_db = conversation_db
        self.message_db = message_db
        self.llm = llm
        self.default_model = default_model
        self.fallback_message = fallback_message
        self.failure_policy = failure_policy
        self.llm_timeout = llm_timeout

    async def create_conversation(self, conversation_input: ConversationInput) -> Conversation:
        create_time = get_current_timestamp()
        title = conversation_input.title
        if _is_blank(title):
            title = DEFAULT_CONVERSATION_TITLE_PREFIX + format_minute(create_time)
        model = self.default_model if _is_blank(conversation_input.model) else conversation_input.model

        with _storage_errors("create conversation"):
            conversation = await self.conversation_db.create_conversation(
                Conversation(
                    id=generate_uid(),
                    owner_id=conversation_input.owner_id,
                    title=title,
                    model=model,
                    create_timestamp=create_time,
                    update_timestamp=create_time,
                )
            )
        logger.info(f"Created conversation {conversation.id} for owner {conversation.owner_id}")
        return conversation

    async def get_conversation(self, conversation_id: str) -> ClientConversation | None:
        with _storage_errors("load conversation"):
            conversation = await self.conversation_db.get_conversation_by_id(conversation_id)
            if conversation is None:
                return None
            message_count = await self.message_db.count_messages(conversation_id)
        return ClientConversation(**conversation.model_dump(), message_count=message_count)

    async def list_conversations(self, owner_id: str, active_only: bool = True) -> list[Conversation]:
        return await self.conversation_db.get_conversations_by_owner_id(owner_id, active_only=active_only)

    async def search_conversations(self, owner_id: str, query: str) -> list[Conversation]:
        return await self.conversation_db.search_conversations_by_title(owner_id, query, case_insensitive=True)

    async def update_conversation(self, conversation_id: str, updates: ConversationUpdate) -> Conversation:
        if updates.title is not None and not updates.title.strip():
            raise ValidationError("Conversation title must not be empty")
        if updates.model is not None and not updates.model.strip():
            raise ValidationError("Conversation model must not be empty")

        conversation = await self._require_conversation(conversation_id)
        changes = updates.model_dump(exclude_none=True)
        changes["update_timestamp"] = max(get_current_timestamp(), conversation.update_timestamp)
        with _storage_errors("update conversation"):
            updated = await self.conversation_db.update_conversation(conversation.model_copy(update=changes))
        if updated is None:
            raise NotFoundError(f"Conversation with id {conversation_id} not found")
        return updated

    async def archive_conversation(self, conversation_id: str) -> Conversation:
        return await self.update_conversation(conversation_id, ConversationUpdate(is_active=False))

    async def delete_conversation(self, conversation_id: str) -> bool:
        with _storage_errors("load conversation"):
            conversation = await self.conversation_db.get_conversation_by_id(conversation_id)
        if conversation is None:
            return False

        # Messages first: a crash in between leaves an empty conversation, not orphaned messages.
        with _storage_errors("delete messages"):
            deleted_messages = await self.message_db.delete_messages_by_conversation_id(conversation_id)
        with _storage_errors("delete conversation"):
            deleted = await self.conversation_db.delete_conversation(conversation_id)
        logger.info(f"Deleted conversation {conversation_id} with {deleted_messages} messages")
        return deleted

    async def send_message(self, conversation_id: str, text: str, model_id: str | None = None) -> Message:
        """Store the user's text, ask the AI responder and store its answer.

        Returns the persisted assistant message. Under 'AIFailurePolicy.FALLBACK'
        this call never fails once the user message is stored, except when the
        assistant message itself cannot be written.

        Raises:
            ValidationError: 'text' is empty or whitespace. Nothing is written.
            NotFoundError: the conversation does not exist. Nothing is written.
                Also raised when the conversation is deleted while the answer
                is generated; no assistant message is written then.
            StorageError: the user or assistant message could not be written.
            UpstreamError: the AI call failed and the policy is 'RAISE'.
        """
        if _is_blank(text):
            raise ValidationError("Message text must not be empty")

        conversation = await self._require_conversation(conversation_id)
        model = self._resolve_model(model_id, conversation)

        with _storage_errors("store user message"):
            user_message = await self.message_db.create_message(conversation_id, Roles.USER, text)
        logger.info(f"Stored user message {user_message.id} in conversation {conversation_id}")

        try:
            content = await self._generate(text, model)
        except UpstreamError as e:
            if self.failure_policy == AIFailurePolicy.RAISE:
                logger.warning(f"AI responder failed for conversation {conversation_id} ({model}): {e}")
                await self._touch(conversation_id)
                raise
            logger.warning(
                f"AI responder failed for conversation {conversation_id} ({model}), answering with fallback: {e}"
            )
            content = self.fallback_message

        try:
            with _storage_errors("store assistant message"):
                assistant_message = await self.message_db.create_message(
                    conversation_id, Roles.ASSISTANT, content, model=model
                )
        except NotFoundError:
            logger.info(f"Conversation {conversation_id} was deleted while waiting for the AI responder")
            raise
        logger.info(f"Stored assistant message {assistant_message.id} in conversation {conversation_id}")

        await self._touch(conversation_id)
        return assistant_message

    async def append_message(self, conversation_id: str, role: Roles, content: str) -> Message:
        """Append a message without calling the AI responder, e.g. a system instruction."""
        if _is_blank(content):
            raise ValidationError("Message content must not be empty")
        await self._require_conversation(conversation_id)

        with _storage_errors("append message"):
            message = await self.message_db.create_message(conversation_id, Roles(role), content)
        await self._touch(conversation_id)
        return message

    async def get_messages(self, conversation_id: str, role: Roles | None = None) -> list[Message]:
        if role is None:
            return await self.message_db.get_messages_by_conversation_id(conversation_id)
        return await self.message_db.get_messages_by_conversation_id_and_role(conversation_id, Roles(role))

    async def get_recent_messages(self, conversation_id: str, limit: int = 10) -> list[Message]:
        return await self.message_db.get_recent_messages(conversation_id, limit)

    async def count_messages(self, conversation_id: str) -> int:
        return await self.message_db.count_messages(conversation_id)

    def list_models(self) -> list[str]:
        return sorted(self.llm.list_models())

    async def component_health(self) -> dict[str, bool]:
        """Probe storage and the AI responder. Never raises."""
        try:
            await self.conversation_db.get_conversation_by_id("__health__")
            storage_up = True
        except Exception as e:
            logger.warning(f"Conversation storage unavailable: {e}")
            storage_up = False
        try:
            llm_up = await self.llm.is_available()
        except Exception as e:
            logger.warning(f"AI responder health probe failed: {e}")
            llm_up = False
        return {"storage": storage_up, "llm": llm_up}

    async def _require_conversation(self, conversation_id: str) -> Conversation:
        if _is_blank(conversation_id):
            raise ValidationError("Conversation id must not be empty")
        with _storage_errors("load conversation"):
            conversation = await self.conversation_db.get_conversation_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation with id {conversation_id} not found")
        return conversation

    def _resolve_model(self, model_id: str | None, conversation: Conversation) -> str:
        if model_id is not None and model_id.strip():
            return model_id.strip()
        if not _is_blank(conversation.model):
            return conversation.model
        return self.default_model

    async def _generate(self, prompt: str, model: str) -> str:
        try:
            return await asyncio.wait_for(self.llm.generate(prompt, model), timeout=self.llm_timeout)
        except TimeoutError as e:
            raise UpstreamTimeoutError(f"Model '{model}' did not answer within {self.llm_timeout}s") from e
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Model '{model}' failed: {e}") from e

    async def _touch(self, conversation_id: str) -> None:
        try:
            touched = await self.conversation_db.touch_conversation(conversation_id)
        except Exception:
            logger.exception(f"Failed to touch conversation {conversation_id}")
            return
        if touched is None:
            logger.warning(f"Conversation {conversation_id} disappeared before it could be touched")
