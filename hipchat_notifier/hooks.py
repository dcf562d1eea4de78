# hipchat_notifier/hooks.py
"""
Entry points called by the git server: after a push and when a ticket is
created or updated. Hooks gate, format and hand notifications to the
notifier's pool; a failure to notify never propagates to the caller.
"""

import logging
from typing import Iterable, Optional, Protocol

from .commits import Repository
from .exceptions import HipChatNotifierError
from .formatters import format_new_ticket, format_ref_update, format_ticket_update
from .markup import MarkupRenderer
from .models import Change, RefUpdate, RepositoryModel, TicketModel
from .notifier import HipChatNotifier
from .rooms import shall_post

logger = logging.getLogger('hipchat-notifier.hooks')


class UserDirectory(Protocol):
    def display_name(self, username: str) -> str: ...


class RepositoryDirectory(Protocol):
    def get_repository_model(self, name: str) -> Optional[RepositoryModel]: ...

    def open_repository(self, name: str) -> Optional[Repository]: ...


class HipChatReceiveHook:
    """Posts a message to a room when a branch or tag is updated."""

    def __init__(self, notifier: HipChatNotifier):
        self.notifier = notifier

    def on_post_receive(self, repository: RepositoryModel, pusher: str,
                        commands: Iterable[RefUpdate], repo_handle: Optional[Repository] = None) -> int:
        """Queue one notification per reported command; returns how many were queued."""
        config = self.notifier.config
        if not shall_post(repository, config):
            logger.debug(f"Not posting ref changes of personal repository {repository.name}")
            return 0

        queued = 0
        for command in commands:
            try:
                notification = format_ref_update(command, pusher, repository, config, repo_handle)
            except HipChatNotifierError as e:
                logger.error(f"❌ Failed to notify HipChat of {command.ref_name} in {repository.name}: {e}", exc_info=True)
                continue
            except Exception as e:
                logger.error(f"💥 Unexpected error notifying HipChat of {command.ref_name} in {repository.name}: {e}", exc_info=True)
                continue
            if notification is None:
                continue
            self.notifier.send_async(notification)
            queued += 1
        return queued


class HipChatTicketHook:
    """Posts a message to a room when a ticket is created or updated."""

    def __init__(self, notifier: HipChatNotifier, users: UserDirectory,
                 repositories: RepositoryDirectory, renderer: Optional[MarkupRenderer] = None):
        self.notifier = notifier
        self.users = users
        self.repositories = repositories
        self.renderer = renderer

    def _renderer(self) -> MarkupRenderer:
        return self.renderer or MarkupRenderer.from_config(self.notifier.config)

    def shall_post(self, ticket: TicketModel) -> bool:
        config = self.notifier.config
        if not config.hipchat.post_tickets:
            return False
        repository = self.repositories.get_repository_model(ticket.repository)
        if repository is None:
            return True
        return shall_post(repository, config)

    def on_new_ticket(self, ticket: TicketModel) -> None:
        if not self.shall_post(ticket) or not ticket.changes:
            return
        try:
            reporter = self.users.display_name(ticket.changes[0].author)
            notification = format_new_ticket(
                ticket, reporter,
                self.repositories.get_repository_model(ticket.repository),
                self.notifier.config, self._renderer(),
            )
        except HipChatNotifierError as e:
            logger.error(f"❌ Failed to format new ticket {ticket.repository}#{ticket.number}: {e}", exc_info=True)
            return
        except Exception as e:
            logger.error(f"💥 Unexpected error formatting new ticket {ticket.repository}#{ticket.number}: {e}", exc_info=True)
            return
        if notification is not None:
            self.notifier.send_async(notification)

    def on_update_ticket(self, ticket: TicketModel, change: Change) -> None:
        if not self.shall_post(ticket):
            return
        repo_handle = None
        try:
            author = self.users.display_name(change.author)
            if change.has_patchset() and not change.has_review():
                repo_handle = self.repositories.open_repository(ticket.repository)
            notification = format_ticket_update(
                ticket, change, author,
                self.repositories.get_repository_model(ticket.repository),
                self.notifier.config, self._renderer(), repo_handle,
            )
        except HipChatNotifierError as e:
            logger.error(f"❌ Failed to format update of ticket {ticket.repository}#{ticket.number}: {e}", exc_info=True)
            return
        except Exception as e:
            logger.error(f"💥 Unexpected error formatting update of ticket {ticket.repository}#{ticket.number}: {e}", exc_info=True)
            return
        if notification is None:
            logger.debug(f"Ticket {ticket.repository}#{ticket.number} change by {change.author} is not reported")
            return
        self.notifier.send_async(notification)
