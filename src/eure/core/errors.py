"""
Exception types raised by the chat core.
"""


class EureError(Exception):
    """Base class for every error raised by this package."""


class PromptRejectedError(EureError, ValueError):
    """The prompt was refused before any history or stream was touched."""


class UnsupportedModelError(EureError, ValueError):
    def __init__(self, model: str, allowed: tuple[str, ...]):
        super().__init__(
            f"Provided model '{model}' is not supported. "
            f"Please use one of the following: {', '.join(allowed)}"
        )
        self.model = model
        self.allowed = allowed


class StreamFailedError(EureError):
    """A stream broke mid-answer; the partial answer was discarded."""

    def __init__(self, message: str, generation: int):
        super().__init__(message)
        self.generation = generation
