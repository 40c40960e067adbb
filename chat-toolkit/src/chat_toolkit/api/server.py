"""
REST surface for 'ChatController'.

'build_app' wraps an already-composed controller in a FastAPI application. The
routes are thin: they translate HTTP shapes to controller calls, and the
exception handlers registered here translate the toolkit's error taxonomy back
to status codes:

    ValidationError -> 400    NotFoundError -> 404
    UpstreamError   -> 502    StorageError  -> 500

Owner ids arrive already resolved (in the body or query string); token
validation belongs to whatever sits in front of this application.
"""

from datetime import datetime

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from chat_toolkit.conversation_database.controller import (
    ApiModel,
    ChatController,
    ClientConversation,
    ConversationInput,
    ConversationUpdate,
    MessageInput,
)
from chat_toolkit.conversation_database.data_models.conversation import Conversation
from chat_toolkit.conversation_database.data_models.message import Message
from chat_toolkit.exceptions import NotFoundError, StorageError, UpstreamError, ValidationError
from chat_toolkit.llms.base import Roles

SERVICE_NAME = "chatbot-service"


class SystemMessageInput(ApiModel):
    content: str


class DeleteResponse(ApiModel):
    success: bool
    message: str


class ModelsResponse(ApiModel):
    models: list[str]
    default_model: str


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def build_conversation_router(controller: ChatController) -> APIRouter:
    router = APIRouter(prefix="/conversations", tags=["conversations"])

    @router.post("", status_code=201, response_model=Conversation)
    async def create_conversation(conversation_input: ConversationInput) -> Conversation:
        return await controller.create_conversation(conversation_input)

    @router.get("", response_model=list[Conversation])
    async def list_conversations(
        owner_id: str = Query(alias="ownerId"),
        active_only: bool = Query(default=True, alias="activeOnly"),
    ) -> list[Conversation]:
        return await controller.list_conversations(owner_id, active_only=active_only)

    @router.get("/search", response_model=list[Conversation])
    async def search_conversations(
        owner_id: str = Query(alias="ownerId"),
        q: str = Query(default=""),
    ) -> list[Conversation]:
        return await controller.search_conversations(owner_id, q)

    @router.get("/{conversation_id}", response_model=ClientConversation)
    async def get_conversation(conversation_id: str) -> ClientConversation:
        conversation = await controller.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation with id {conversation_id} not found")
        return conversation

    @router.patch("/{conversation_id}", response_model=Conversation)
    async def update_conversation(conversation_id: str, updates: ConversationUpdate) -> Conversation:
        return await controller.update_conversation(conversation_id, updates)

    @router.delete("/{conversation_id}", response_model=DeleteResponse)
    async def delete_conversation(conversation_id: str) -> JSONResponse:
        if await controller.delete_conversation(conversation_id):
            body = DeleteResponse(success=True, message="Conversation deleted successfully")
            return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))
        body = DeleteResponse(success=False, message="Conversation not found")
        return JSONResponse(status_code=404, content=body.model_dump(by_alias=True))

    @router.post("/{conversation_id}/messages", response_model=Message)
    async def send_message(conversation_id: str, message_input: MessageInput) -> Message:
        return await controller.send_message(conversation_id, message_input.text, message_input.model_id)

    @router.get("/{conversation_id}/messages", response_model=list[Message])
    async def get_messages(conversation_id: str, role: Roles | None = None) -> list[Message]:
        return await controller.get_messages(conversation_id, role=role)

    @router.post("/{conversation_id}/system-messages", status_code=201, response_model=Message)
    async def append_system_message(conversation_id: str, message_input: SystemMessageInput) -> Message:
        return await controller.append_message(conversation_id, Roles.SYSTEM, message_input.content)

    return router


def build_health_router(controller: ChatController) -> APIRouter:
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("")
    async def health() -> JSONResponse:
        components = await controller.component_health()
        up = components["storage"]
        return JSONResponse(
            status_code=200 if up else 503,
            content={
                "status": "UP" if up else "DOWN",
                "service": SERVICE_NAME,
                "timestamp": datetime.now().isoformat(),
            },
        )

    @router.get("/ping", response_class=PlainTextResponse)
    async def ping() -> str:
        return "pong"

    @router.get("/detailed")
    async def detailed_health() -> dict:
        components = await controller.component_health()
        return {
            "status": "UP" if all(components.values()) else "DOWN",
            "components": {name: {"status": "UP" if up else "DOWN"} for name, up in components.items()},
            "timestamp": datetime.now().isoformat(),
        }

    return router


def build_app(controller: ChatController, cors_origins: list[str] | None = None) -> FastAPI:
    app = FastAPI(title="Chatbot service")

    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(ValidationError, _error_handler(400))
    app.add_exception_handler(NotFoundError, _error_handler(404))
    app.add_exception_handler(UpstreamError, _error_handler(502))
    app.add_exception_handler(StorageError, _error_handler(500))

    app.include_router(build_conversation_router(controller))
    app.include_router(build_health_router(controller))

    @app.get("/models", response_model=ModelsResponse, tags=["models"])
    async def list_models() -> ModelsResponse:
        return ModelsResponse(models=controller.list_models(), default_model=controller.default_model)

    app.state.controller = controller
    return app
