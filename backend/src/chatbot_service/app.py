"""
Service composition.

'create_app' wires the in-memory stores, the AI responder and the controller
into a FastAPI application. Pass 'llm' to substitute the responder (tests, a
different backend); otherwise an 'OpenAILLM' is built from the settings.

Usage:
    uvicorn chatbot_service.app:create_app --factory --port 8080
    python -m chatbot_service
"""

import sys

from fastapi import FastAPI
from loguru import logger

from chat_toolkit.api.server import build_app
from chat_toolkit.conversation_database.controller import ChatController
from chat_toolkit.conversation_database.in_memory.conversation import InMemoryConversationDatabase
from chat_toolkit.conversation_database.in_memory.message import InMemoryMessageDatabase
from chat_toolkit.llms.base import LLM
from chat_toolkit.llms.openai import DEFAULT_MODEL_MAPPING, OpenAILLM
from chatbot_service.config import Settings, load_settings


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def build_llm(settings: Settings) -> LLM:
    if settings.default_model not in DEFAULT_MODEL_MAPPING:
        raise ValueError(
            f"CHATBOT_DEFAULT_MODEL '{settings.default_model}' is not one of {sorted(DEFAULT_MODEL_MAPPING)}"
        )
    api_key = settings.openai_api_key
    if not api_key:
        if not settings.openai_base_url:
            raise ValueError(
                "OPENAI_API_KEY not found. Either:\n"
                "  - Mount it as a secret file at /secrets/OPENAI_API_KEY, or\n"
                "  - Set the OPENAI_API_KEY environment variable, or\n"
                "  - Point OPENAI_BASE_URL at a local server that needs no key."
            )
        # Local OpenAI-compatible servers ignore the key but the client requires one.
        api_key = "unused"
    logger.info(f"AI responder: OpenAI-compatible ({settings.openai_base_url or 'api.openai.com'})")
    return OpenAILLM(
        default_model=settings.default_model,
        strict_models=settings.strict_models,
        api_key=api_key,
        base_url=settings.openai_base_url,
        timeout=settings.llm_timeout,
    )


def build_controller(settings: Settings, llm: LLM | None = None) -> ChatController:
    return ChatController(
        conversation_db=InMemoryConversationDatabase(),
        message_db=InMemoryMessageDatabase(),
        llm=llm or build_llm(settings),
        default_model=settings.default_model,
        fallback_message=settings.fallback_message,
        failure_policy=settings.ai_failure_policy,
        llm_timeout=settings.llm_timeout,
    )


def create_app(settings: Settings | None = None, llm: LLM | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    controller = build_controller(settings, llm)
    logger.info(
        f"Chatbot service ready: default model {settings.default_model}, "
        f"AI failure policy {settings.ai_failure_policy}, timeout {settings.llm_timeout}s"
    )
    return build_app(controller, cors_origins=settings.cors_origins)
