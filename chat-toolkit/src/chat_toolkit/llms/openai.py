"""
OpenAI-compatible responder.

'OpenAILLM' talks to any server that speaks the OpenAI chat completions API
(OpenAI itself, Ollama, vLLM, an internal gateway), selected with 'base_url'.
Public model ids are short aliases that are mapped to provider model names, so
clients never depend on the provider's naming. The default mapping keeps the
aliases the chat frontend already offers.
"""

from loguru import logger
from openai import APITimeoutError, AsyncOpenAI, OpenAIError

from chat_toolkit.exceptions import UnsupportedModelError, UpstreamError, UpstreamTimeoutError
from chat_toolkit.llms.base import LLM, Roles

DEFAULT_MODEL_MAPPING: dict[str, str] = {
    "claude-3-5-sonnet": "anthropic.claude-3-5-sonnet-20241022-v2:0",
    "claude-3-haiku": "anthropic.claude-3-haiku-20240307-v1:0",
    "cohere-command-r": "cohere.command-r-v1:0",
    "cohere-command-r-plus": "cohere.command-r-plus-v1:0",
}


class OpenAILLM(LLM):
    """
    Single-turn chat completion backend.

    Attributes:
        model_mapping: Public alias -> provider model name.
        default_model: Alias used for unknown ids when 'strict_models' is off.
        strict_models: Reject unknown aliases with 'UnsupportedModelError'
            instead of silently answering with the default model.
        max_tokens: Completion budget per answer.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        model_mapping: dict[str, str] | None = None,
        default_model: str = "claude-3-5-sonnet",
        strict_models: bool = False,
        max_tokens: int = 255,
        temperature: float = 0.7,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model_mapping = dict(model_mapping or DEFAULT_MODEL_MAPPING)
        if default_model not in self.model_mapping:
            raise ValueError(f"Default model '{default_model}' is missing from the model mapping")
        self.default_model = default_model
        self.strict_models = strict_models
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    def list_models(self) -> set[str]:
        return set(self.model_mapping)

    def _provider_model(self, model_id: str) -> str:
        if model_id in self.model_mapping:
            return self.model_mapping[model_id]
        if self.strict_models:
            raise UnsupportedModelError(model_id)
        logger.debug(f"Unknown model '{model_id}', answering with '{self.default_model}'")
        return self.model_mapping[self.default_model]

    async def generate(self, prompt: str, model_id: str) -> str:
        provider_model = self._provider_model(model_id)
        try:
            completion = await self.client.chat.completions.create(
                model=provider_model,
                messages=[{"role": Roles.USER.value, "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except APITimeoutError as e:
            raise UpstreamTimeoutError(f"Model '{model_id}' timed out") from e
        except OpenAIError as e:
            raise UpstreamError(f"Model '{model_id}' failed: {e}") from e

        if not completion.choices or completion.choices[0].message.content is None:
            raise UpstreamError(f"Model '{model_id}' returned an empty completion")
        return completion.choices[0].message.content

    async def is_available(self) -> bool:
        try:
            await self.client.models.list()
        except OpenAIError as e:
            logger.warning(f"AI responder unavailable: {e}")
            return False
        return True
