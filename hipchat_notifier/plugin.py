# hipchat_notifier/plugin.py
"""Plugin lifecycle: the one place the notifier and its hooks are built and torn down."""

import logging
from typing import Optional

import requests

from .config import ConfigManager
from .hooks import HipChatReceiveHook, HipChatTicketHook, RepositoryDirectory, UserDirectory
from .markup import MarkupRenderer
from .notifier import HipChatNotifier

logger = logging.getLogger('hipchat-notifier.plugin')


class Plugin:
    plugin_id = 'hipchat-notifier'

    def __init__(self, config_manager: ConfigManager, users: UserDirectory,
                 repositories: RepositoryDirectory, renderer: Optional[MarkupRenderer] = None,
                 session: Optional[requests.Session] = None):
        self.config_manager = config_manager
        self.users = users
        self.repositories = repositories
        self.renderer = renderer
        self.session = session
        self.notifier: Optional[HipChatNotifier] = None
        self.receive_hook: Optional[HipChatReceiveHook] = None
        self.ticket_hook: Optional[HipChatTicketHook] = None

    def start(self) -> HipChatNotifier:
        if self.notifier is None:
            self.notifier = HipChatNotifier(self.config_manager, session=self.session)
            self.receive_hook = HipChatReceiveHook(self.notifier)
            self.ticket_hook = HipChatTicketHook(self.notifier, self.users, self.repositories, self.renderer)
        logger.debug(f"{self.plugin_id} STARTED.")
        return self.notifier

    def stop(self) -> None:
        if self.notifier is not None:
            self.notifier.shutdown(wait=True)
        self.notifier = None
        self.receive_hook = None
        self.ticket_hook = None
        logger.debug(f"{self.plugin_id} STOPPED.")

    def on_install(self) -> None:
        logger.debug(f"{self.plugin_id} INSTALLED.")

    def on_upgrade(self, old_version: str) -> None:
        logger.debug(f"{self.plugin_id} UPGRADED from {old_version}.")

    def on_uninstall(self) -> None:
        logger.debug(f"{self.plugin_id} UNINSTALLED.")
