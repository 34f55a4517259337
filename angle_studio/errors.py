"""Error taxonomy for generation, editing and normalization."""


class StudioError(Exception):
    """Base class for all angle studio errors."""
    pass


class CredentialMissing(StudioError):
    """No API key available. Fatal to the requested call, not to the app."""

    def __init__(self, message: str = "API key not found. Please set your Gemini API key."):
        super().__init__(message)


class GenerationError(StudioError):
    """A single endpoint call did not yield a usable image."""
    pass


class EndpointFailure(GenerationError):
    """Network or server-side failure talking to the model endpoint."""
    pass


class NoImageInResponse(GenerationError):
    """The model answered without an image (usually a text refusal)."""

    def __init__(self, message: str = "No image generated in response", text: str | None = None):
        self.text = text
        super().__init__(message)


class SafetyBlocked(GenerationError):
    """The prompt or the output was blocked by a safety filter."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Blocked by safety filter: {reason}")


class AbnormalCompletion(GenerationError):
    """The model stopped with a finish reason other than STOP."""

    def __init__(self, finish_reason: str):
        self.finish_reason = finish_reason
        super().__init__(f"Generation finished abnormally: {finish_reason}")


class NormalizerFailure(StudioError):
    """An image could not be decoded or re-encoded during resampling."""
    pass
