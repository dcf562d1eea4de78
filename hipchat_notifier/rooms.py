# hipchat_notifier/rooms.py
"""
Room and API token resolution.

Nothing here is cached: every call reads the configuration model it is
given, so edits to the config between two sends are honoured.
"""

import logging
from typing import Optional

from .config import AppConfig
from .exceptions import ConfigurationMissing
from .models import RepositoryModel, RoomBinding

logger = logging.getLogger('hipchat-notifier.rooms')

ROOM_TOKEN_SETTING = "hipchat.room_tokens.{room}"


def shall_post(repository: RepositoryModel, config: AppConfig) -> bool:
    """Returns False only for personal repositories when posting them is disabled."""
    if repository.is_personal and not config.hipchat.post_personal_repos:
        return False
    return True


def project_room(repository: Optional[RepositoryModel], config: AppConfig) -> Optional[str]:
    """The room a repository's events go to, or None for the default room."""
    hipchat = config.hipchat
    if not hipchat.use_project_rooms or repository is None:
        return None
    if not repository.project_path:
        return None
    if hipchat.default_room:
        return f"{hipchat.default_room}-{repository.project_path}"
    return repository.project_path


def resolve_destination(explicit_room: Optional[str], project_path: Optional[str], config: AppConfig) -> RoomBinding:
    """Full resolution: project routing first, then token lookup with default fallback."""
    room = explicit_room
    if not room and project_path:
        room = project_room(RepositoryModel(name='', project_path=project_path), config)
    return resolve_binding(room, config)


def resolve_binding(room: Optional[str], config: AppConfig) -> RoomBinding:
    """
    Pick the (room, token) pair used for one send.

    An absent room uses the default room and token. A room without its own
    token falls back to the defaults as well; the caller is not told, the
    operator gets two warnings.
    """
    hipchat = config.hipchat
    if not room:
        return RoomBinding(room=hipchat.default_room, token=hipchat.default_token)

    token = hipchat.room_token(room)
    if token:
        return RoomBinding(room=room, token=token)

    missing = ConfigurationMissing(room, ROOM_TOKEN_SETTING.format(room=room))
    logger.warning(f"No HipChat API token specified for '{room}', defaulting to '{hipchat.default_room}'")
    logger.warning(f"Please set '{missing.setting}' = TOKEN in the configuration")
    return RoomBinding(room=hipchat.default_room, token=hipchat.default_token, fallback=True)
