class RuleBotError(Exception):
    """Base class for failures surfaced by the chat backend."""


class StoreError(RuleBotError):
    """The message store could not be reached or rejected a write."""


class GenerationError(RuleBotError):
    """The external text-generation service failed or returned an unusable body."""


class ChatError(RuleBotError):
    """A chat turn was aborted; ``cause`` is the underlying failure, ``session_id`` the resolved session."""

    def __init__(self, message: str, cause: BaseException = None, session_id: str = None):
        super().__init__(message)
        self.cause = cause
        self.session_id = session_id
