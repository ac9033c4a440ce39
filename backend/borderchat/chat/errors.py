"""Errors raised on the chat write path.

Each ChatError carries the HTTP status the routers answer with. The naming
service error never leaves the identity registry.
"""


class ChatError(Exception):
    """Base exception for user-facing chat errors."""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class MessageValidationError(ChatError):
    """Raised when the room name, message text or device id is unusable."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class DeviceBannedError(ChatError):
    """Raised when a banned device tries to post."""
    def __init__(self, message: str = "You have been banned from the chat"):
        super().__init__(message, status_code=403)


class NamingServiceError(Exception):
    """Raised when the random-word service is unreachable or answers garbage."""
