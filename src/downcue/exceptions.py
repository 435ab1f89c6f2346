"""Exceptions raised by downcue."""


class DowncueError(Exception):
    """Base exception for all downcue errors."""


class InvalidRequestError(DowncueError, ValueError):
    """Raised when a request lacks its target file name or content source."""


class RequestRejectedError(DowncueError):
    """
    Raised by a listener's ``on_request_submitted`` hook to veto a request.

    The message is the human-readable reason and ends up in the engine log.
    """
