"""
Shared fixtures for the chat toolkit tests.

Provides:
- 'FakeLLM': a scriptable AI responder (fixed answers, unknown-model failures, delays)
- storage backends that fail on demand
- 'FakeClock': deterministic millisecond timestamps for every module that reads the clock
"""

import asyncio

import pytest

from chat_toolkit.conversation_database.controller import ChatController
from chat_toolkit.conversation_database.in_memory.conversation import InMemoryConversationDatabase
from chat_toolkit.conversation_database.in_memory.message import InMemoryMessageDatabase
from chat_toolkit.exceptions import UnsupportedModelError, UpstreamError
from chat_toolkit.llms.base import LLM, Roles

KNOWN_MODELS = {"claude-3-5-sonnet", "claude-3-haiku"}


class FakeLLM(LLM):
    def __init__(
        self,
        answer: str = "Hello from the model",
        models: set[str] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
        available: bool = True,
    ):
        self.answer = answer
        self.models = set(models or KNOWN_MODELS)
        self.delay = delay
        self.error = error
        self.available = available
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt: str, model_id: str) -> str:
        self.calls.append((prompt, model_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if model_id not in self.models:
            raise UnsupportedModelError(model_id)
        return f"{self.answer}: {prompt}"

    async def is_available(self) -> bool:
        return self.available

    def list_models(self) -> set[str]:
        return set(self.models)


class FailingMessageDatabase(InMemoryMessageDatabase):
    """Raises on 'create_message' for the roles listed in 'fail_roles'."""

    def __init__(self, fail_roles: set[Roles]):
        super().__init__()
        self.fail_roles = fail_roles

    async def create_message(self, conversation_id, role, content, model=None):
        if role in self.fail_roles:
            raise ConnectionError("message store unreachable")
        return await super().create_message(conversation_id, role, content, model)


class FailingTouchConversationDatabase(InMemoryConversationDatabase):
    async def touch_conversation(self, conversation_id):
        raise ConnectionError("conversation store unreachable")


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> None:
        self.now += ms


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock()
    for module in (
        "chat_toolkit.conversation_database.controller",
        "chat_toolkit.conversation_database.in_memory.conversation",
        "chat_toolkit.conversation_database.in_memory.message",
    ):
        monkeypatch.setattr(f"{module}.get_current_timestamp", fake)
    return fake


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def conversation_db() -> InMemoryConversationDatabase:
    return InMemoryConversationDatabase()


@pytest.fixture
def message_db() -> InMemoryMessageDatabase:
    return InMemoryMessageDatabase()


@pytest.fixture
def controller(conversation_db, message_db, llm) -> ChatController:
    return ChatController(conversation_db=conversation_db, message_db=message_db, llm=llm, llm_timeout=2.0)
