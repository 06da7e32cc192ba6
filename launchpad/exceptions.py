"""Application exception classes."""

from typing import Optional


class LaunchPadError(Exception):
    """Base application exception, rendered as ``{"detail", "code"}``."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# ========== Configuration / providers ==========
class ConfigurationError(LaunchPadError):
    """A required setting (usually an API key) is missing."""

    def __init__(self, message: str):
        super().__init__(code="CONFIGURATION_ERROR", message=message, status_code=500)


class ProviderError(LaunchPadError):
    """An AI provider call failed."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(
            code="PROVIDER_ERROR",
            message=f"{provider} error: {message}",
            status_code=502,
        )


# ========== Auth ==========
class AuthenticationError(LaunchPadError):
    def __init__(self, message: str = "You must be logged in to send messages"):
        super().__init__(code="AUTHENTICATION_ERROR", message=message, status_code=401)


class AuthorizationError(LaunchPadError):
    def __init__(self, message: str = "Not authorized"):
        super().__init__(code="AUTHORIZATION_ERROR", message=message, status_code=403)


# ========== Requests ==========
class NotFoundError(LaunchPadError):
    def __init__(self, resource: str):
        super().__init__(code="NOT_FOUND", message=f"{resource} not found", status_code=404)


class InvalidInputError(LaunchPadError):
    def __init__(self, message: str):
        super().__init__(code="INVALID_INPUT", message=message, status_code=400)


class SendInProgressError(LaunchPadError):
    def __init__(self):
        super().__init__(
            code="SEND_IN_PROGRESS",
            message="A message is already being sent",
            status_code=409,
        )


# ========== Persistence ==========
class PersistenceError(LaunchPadError):
    """
    A backend write was rejected. ``message`` is what the user sees;
    ``db_code`` is the Postgres SQLSTATE when one was available.
    """

    def __init__(self, message: str, db_code: Optional[str] = None, status_code: int = 400):
        self.db_code = db_code
        super().__init__(code="PERSISTENCE_ERROR", message=message, status_code=status_code)
