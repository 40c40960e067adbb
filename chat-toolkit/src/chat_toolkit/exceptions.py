"""
Error taxonomy shared by the stores, the controller and the API layer.

'ValidationError' and 'NotFoundError' reach the caller unchanged. 'StorageError'
is fatal to the pipeline step that raised it; nothing committed earlier is
rolled back. 'UpstreamError' covers every AI responder failure and is converted
into a fallback answer by the controller unless configured otherwise.
"""


class ChatToolkitError(Exception):
    """Base class for all toolkit errors."""


class ValidationError(ChatToolkitError):
    """Caller input failed a precondition. No state was mutated."""


class NotFoundError(ChatToolkitError):
    """A referenced conversation or message does not exist."""


class StorageError(ChatToolkitError):
    """The persistence layer failed an operation."""


class UpstreamError(ChatToolkitError):
    """The AI responder failed to produce an answer."""


class UpstreamTimeoutError(UpstreamError):
    pass


class UnsupportedModelError(UpstreamError):
    def __init__(self, model_id: str):
        super().__init__(f"Model '{model_id}' is not supported")
        self.model_id = model_id
