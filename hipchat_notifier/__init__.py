"""
hipchat-notifier: git server events as HipChat room notifications

Turns ref updates (branch and tag pushes) and ticket lifecycle changes into
formatted HipChat messages and delivers them through the HipChat v2 room
notification API, inline or from a small worker pool.

This package provides:
- Commit range resolution between two revisions of a git repository
- Push and ticket message formatting with commit tables and field tables
- Room and token resolution with default-room fallback
- Best-effort delivery (no retries) with request/response diagnostics
"""

from typing import List

# Package metadata
__version__ = "1.0.0"
__description__ = "Post git push and ticket events to HipChat rooms"

# --- Import Custom Exceptions ---
from .exceptions import (
    HipChatNotifierError,
    ConfigError,
    ConfigValidationError,
    ConfigurationMissing,
    SetupError,
    RepositoryError,
    RevisionNotFound,
    RepositoryAccessError,
    NotificationError,
    TransportFailure,
    RemoteRejected,
)

# --- Import Core Components ---
from .config import AppConfig, ConfigManager
from .models import (
    ChangeKind,
    Color,
    CommitSummary,
    MessageFormat,
    Notification,
    RefCommandType,
    RefUpdate,
    RepositoryModel,
    RoomBinding,
)
from .commits import GitRepository, resolve_commit_range
from .rooms import resolve_binding, resolve_destination, shall_post
from .formatters import format_new_ticket, format_ref_update, format_ticket_update
from .notifier import HipChatNotifier
from .hooks import HipChatReceiveHook, HipChatTicketHook
from .plugin import Plugin

__all__: List[str] = [
    # Package metadata
    "__version__",
    "__description__",

    # Exceptions
    "HipChatNotifierError",
    "ConfigError",
    "ConfigValidationError",
    "ConfigurationMissing",
    "SetupError",
    "RepositoryError",
    "RevisionNotFound",
    "RepositoryAccessError",
    "NotificationError",
    "TransportFailure",
    "RemoteRejected",

    # Models
    "AppConfig",
    "ConfigManager",
    "ChangeKind",
    "Color",
    "CommitSummary",
    "MessageFormat",
    "Notification",
    "RefCommandType",
    "RefUpdate",
    "RepositoryModel",
    "RoomBinding",

    # Core components
    "GitRepository",
    "resolve_commit_range",
    "resolve_binding",
    "resolve_destination",
    "shall_post",
    "format_new_ticket",
    "format_ref_update",
    "format_ticket_update",
    "HipChatNotifier",
    "HipChatReceiveHook",
    "HipChatTicketHook",
    "Plugin",
]
