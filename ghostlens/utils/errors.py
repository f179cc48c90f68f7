"""
Error types for GhostLens.

Every visual-ask failure ends its session: nothing is retried and the user
sees a single message. The `reason` string is what the session controller
records as the FAILED reason.
"""


class VisualAskError(Exception):
    """Base class for session-terminal visual-ask failures."""

    reason = "failed"
    user_message = "Visual ask failed"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.user_message}: {self.detail}"
        return self.user_message


class CaptureUnavailable(VisualAskError):
    """No capturable screen source (display missing, grab refused, odd depth)."""

    reason = "capture_unavailable"
    user_message = "Screen capture unavailable"


class DecodeError(VisualAskError):
    """The captured raster could not be parsed."""

    reason = "decode_error"
    user_message = "Could not decode screen capture"


class EmptyRegion(VisualAskError):
    """The selection collapsed to zero pixels after clamping."""

    reason = "empty_region"
    user_message = "Selected region is empty"


class CaptureTimeout(VisualAskError):
    reason = "timeout"
    user_message = "Screen capture timed out"


class ChatCompletionError(RuntimeError):
    """Raised by the chat-completion client on HTTP or transport failure."""
