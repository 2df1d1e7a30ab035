class ChatError(Exception):
    """Base class for errors surfaced to the caller as client errors."""
    status_code = 400


class InvalidArgument(ChatError):
    status_code = 400


class NotFound(ChatError):
    status_code = 404
