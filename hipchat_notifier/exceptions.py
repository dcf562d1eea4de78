# hipchat_notifier/exceptions.py
from typing import Optional


class HipChatNotifierError(Exception):
    """Base class for all custom errors in the hipchat-notifier package."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error
        if original_error:
            self.__cause__ = original_error

# --- Configuration Errors ---
class ConfigError(HipChatNotifierError):
    """Errors related to configuration loading or validation."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error=original_error)

class ConfigValidationError(ConfigError):
    """Raised specifically when configuration validation fails."""

    def __init__(self, message: str, config_path: Optional[str] = None, original_error: Optional[Exception] = None):
        self.config_path = config_path
        super().__init__(message, original_error=original_error)

class ConfigurationMissing(ConfigError):
    """A room was addressed but no API token is configured for it."""

    def __init__(self, room: str, setting: str):
        self.room = room
        self.setting = setting
        super().__init__(f"No HipChat API token specified for '{room}' (expected setting '{setting}')")

# --- Setup Errors ---
class SetupError(HipChatNotifierError):
    """Errors when required external tools (git) are missing."""
    pass

# --- Repository Errors ---
class RepositoryError(HipChatNotifierError):
    """Commit history could not be read."""
    pass

class RevisionNotFound(RepositoryError):
    """A revision identifier could not be resolved to a commit."""
    def __init__(self, revision: str, repository: Optional[str] = None, original_error: Optional[Exception] = None):
        self.revision = revision
        self.repository = repository
        where = f" in '{repository}'" if repository else ""
        super().__init__(f"Revision '{revision}' not found{where}", original_error=original_error)

class RepositoryAccessError(RepositoryError):
    """The git process for a repository could not be started or talked to."""
    def __init__(self, repository: str, message: str, original_error: Optional[Exception] = None):
        self.repository = repository
        super().__init__(f"[{repository}] {message}", original_error=original_error)

# --- Notification Errors ---
class NotificationError(HipChatNotifierError):
    """Errors during the notification sending process."""
    def __init__(self, service: str, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None, original_error: Optional[Exception] = None):
        self.service = service
        self.status_code = status_code
        self.response_body = response_body

        error_msg = f"Notification error for {service}"
        if status_code is not None:
            error_msg += f" (Status: {status_code})"
        error_msg += f": {message}"

        if response_body:
            snippet = response_body[:200] + ('...' if len(response_body) > 200 else '')
            error_msg += f" - Response: {snippet}"

        super().__init__(error_msg, original_error=original_error)

class TransportFailure(NotificationError):
    """Connect/read timeout or any other network level failure. Not retried."""
    pass

class RemoteRejected(NotificationError):
    """The endpoint answered with something other than 204 No Content."""
    def __init__(self, service: str, status_code: int, request_body: str, response_body: Optional[str]):
        self.request_body = request_body
        super().__init__(service, "message rejected", status_code=status_code, response_body=response_body)
