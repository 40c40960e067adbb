"""
Service configuration.

Settings are read once from the environment into a 'Settings' model. Secrets
are looked up in '/secrets/<NAME>' first (mounted secret files) and in the
environment second.

Environment variables:
    CHATBOT_DEFAULT_MODEL      model id used when a request names none (claude-3-5-sonnet)
    CHATBOT_LLM_TIMEOUT        seconds one AI call may take (30)
    CHATBOT_AI_FAILURE_POLICY  'fallback' answers with CHATBOT_FALLBACK_MESSAGE, 'raise' returns 502
    CHATBOT_FALLBACK_MESSAGE   assistant text used when the AI call fails
    CHATBOT_STRICT_MODELS      1 rejects unknown model ids instead of using the default model
    CHATBOT_CORS_ORIGINS       comma-separated allowed origins
    CHATBOT_LOG_LEVEL          loguru level (INFO)
    CHATBOT_HOST, CHATBOT_PORT bind address for 'python -m chatbot_service' (0.0.0.0:8080)
    OPENAI_API_KEY             API key of the OpenAI-compatible endpoint
    OPENAI_BASE_URL            endpoint URL; unset means api.openai.com
"""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

from chat_toolkit.conversation_database.controller import (
    DEFAULT_FALLBACK_MESSAGE,
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_MODEL,
    AIFailurePolicy,
)

SECRETS_DIR = Path("/secrets")
DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3001"]
_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    default_model: str = DEFAULT_MODEL
    llm_timeout: float = Field(default=DEFAULT_LLM_TIMEOUT, gt=0)
    ai_failure_policy: AIFailurePolicy = AIFailurePolicy.FALLBACK
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE
    strict_models: bool = False
    cors_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080
    openai_api_key: str | None = None
    openai_base_url: str | None = None


def get_secret(name: str, environ: Mapping[str, str] | None = None, secrets_dir: Path = SECRETS_DIR) -> str | None:
    """Load a secret from '<secrets_dir>/<name>' or, failing that, the environment."""
    environ = os.environ if environ is None else environ
    secret_file = secrets_dir / name
    if secret_file.exists():
        return secret_file.read_text().strip()
    return environ.get(name) or None


def load_settings(environ: Mapping[str, str] | None = None, secrets_dir: Path = SECRETS_DIR) -> Settings:
    environ = os.environ if environ is None else environ
    values: dict[str, object] = {}

    if model := environ.get("CHATBOT_DEFAULT_MODEL", "").strip():
        values["default_model"] = model
    if timeout := environ.get("CHATBOT_LLM_TIMEOUT", "").strip():
        values["llm_timeout"] = timeout
    if policy := environ.get("CHATBOT_AI_FAILURE_POLICY", "").strip():
        values["ai_failure_policy"] = policy.lower()
    if fallback := environ.get("CHATBOT_FALLBACK_MESSAGE", "").strip():
        values["fallback_message"] = fallback
    if strict := environ.get("CHATBOT_STRICT_MODELS", "").strip():
        values["strict_models"] = strict.lower() in _TRUTHY
    if "CHATBOT_CORS_ORIGINS" in environ:
        values["cors_origins"] = [o.strip() for o in environ["CHATBOT_CORS_ORIGINS"].split(",") if o.strip()]
    if level := environ.get("CHATBOT_LOG_LEVEL", "").strip():
        values["log_level"] = level.upper()
    if host := environ.get("CHATBOT_HOST", "").strip():
        values["host"] = host
    if port := environ.get("CHATBOT_PORT", "").strip():
        values["port"] = port

    values["openai_api_key"] = get_secret("OPENAI_API_KEY", environ, secrets_dir)
    values["openai_base_url"] = environ.get("OPENAI_BASE_URL") or None
    return Settings.model_validate(values)
