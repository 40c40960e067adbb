"""
AI responder abstractions.

Every concrete backend implements the 'LLM' ABC: one prompt in, one complete
text out. There is no streaming and no conversation state; the controller
hands over the user's text and the resolved model id and gets a string back
or an 'UpstreamError'.

'Roles' is shared with the message store because a message's role is exactly
the chat role it would carry when sent to a model.
"""

from abc import ABC, abstractmethod
from enum import StrEnum


class Roles(StrEnum):
    """Closed set of message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class LLM(ABC):
    """
    Abstract base class for language model backends.

    Implementations adapt a specific API client to a single blocking-style call.
    They must raise 'UpstreamError' (or a subclass) for any failure so that the
    controller can apply its failure policy uniformly. Timeouts are enforced by
    the caller; backends may additionally apply their own client timeout.
    """

    @abstractmethod
    async def generate(self, prompt: str, model_id: str) -> str:
        """Return a single complete response to 'prompt' from model 'model_id'."""
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        """Best-effort liveness probe. Used for health reporting only."""
        pass

    @abstractmethod
    def list_models(self) -> set[str]:
        """Model identifiers this backend accepts."""
        pass
