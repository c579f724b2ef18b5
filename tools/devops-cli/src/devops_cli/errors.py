"""Error types raised by devops-cli. Only ``cli.main`` turns them into exit codes."""

from typing import Optional


class DevOpsError(Exception):
    """Base exception for devops-cli errors."""

    exit_code = 1


class ConfigError(DevOpsError):
    """Required configuration is missing."""
    pass


class ValidationError(DevOpsError):
    """Bad command-line input, detected before any request is made."""
    pass


class TransportError(DevOpsError):
    """The request could not be completed or the response could not be read."""
    pass


class ApiError(TransportError):
    """The API answered with a non-2xx status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class Unauthorized(ApiError):
    pass


class Forbidden(ApiError):
    pass


class NotFound(ApiError):
    pass
