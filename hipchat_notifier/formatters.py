# hipchat_notifier/formatters.py
"""
Turns push and ticket events into room notifications.

Every formatter is a pure function of its inputs: it returns a Notification
or None when the event is not reported. Nothing is sent from here.
"""

import logging
from html import escape as _esc
from typing import Dict, List, Optional

from .commits import Repository, resolve_commit_range
from .config import AppConfig
from .exceptions import RepositoryError
from .fields import NEW_TICKET_EXCLUSIONS, UPDATE_TICKET_EXCLUSIONS, render_fields
from .links import gravatar_thumbnail_url, repository_url, ticket_url
from .markup import MarkupRenderer
from .models import (
    ChangeKind, Change, Color, CommitSummary, Notification, RefCommandType, RefType,
    RefUpdate, RepositoryModel, ReviewScore, TicketModel, TicketStatus, classify_change,
)
from .rooms import project_room

logger = logging.getLogger('hipchat-notifier.formatters')

MAX_COMMITS = 5  # commit rows shown in a push or patchset message

STATUS_COLORS: Dict[TicketStatus, Color] = {
    TicketStatus.ABANDONED: Color.RED,
    TicketStatus.DECLINED: Color.RED,
    TicketStatus.INVALID: Color.RED,
    TicketStatus.WONTFIX: Color.RED,
    TicketStatus.DUPLICATE: Color.RED,
    TicketStatus.ON_HOLD: Color.YELLOW,
    TicketStatus.CLOSED: Color.GREEN,
    TicketStatus.FIXED: Color.GREEN,
    TicketStatus.MERGED: Color.GREEN,
    TicketStatus.RESOLVED: Color.GREEN,
}

# HipChat emoticons
REVIEW_SYMBOLS: Dict[ReviewScore, str] = {
    ReviewScore.APPROVED: "(successful)",
    ReviewScore.LOOKS_GOOD: "(thumbsup)",
    ReviewScore.NEEDS_IMPROVEMENT: "(thumbsdown)",
    ReviewScore.VETOED: "(failed)",
}


def _esc_html(value: Optional[str]) -> str:
    return _esc(str(value or ""), quote=True)


def _link(url: str, text: str) -> str:
    return f'<a href="{_esc_html(url)}">{_esc_html(text)}</a>'


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


# --- Commit tables ---
def load_commits(repository: Optional[Repository], base: str, tip: str, config: AppConfig) -> List[CommitSummary]:
    """Commit range for display; an unreadable range is logged and yields no rows."""
    if repository is None:
        logger.debug(f"No repository handle to list {base[:8]}..{tip[:8]}")
        return []
    try:
        return resolve_commit_range(
            repository, base, tip,
            short_id_length=config.general.short_commit_id_length,
            short_log_length=config.general.short_log_length,
        )
    except RepositoryError as e:
        logger.error(f"❌ Failed to get commits for {repository.name}: {e}")
        return []


def commit_table(commits: List[CommitSummary], repo_name: str, base_url: str) -> str:
    if not commits:
        return ""
    rows = ["\n<table><tbody>\n"]
    for commit in commits[:MAX_COMMITS]:
        rows.append(
            f'<tr><td><img src="{gravatar_thumbnail_url(commit.author_email, 16)}"/></td>'
            f'<td><pre>{_link(repository_url(base_url, repo_name, None, commit.sha), commit.short_sha)}</pre></td>'
            f'<td>{_esc_html(commit.short_message)}</td></tr>\n'
        )
    rows.append("</tbody></table>")
    return "".join(rows)


def compare_link(commits: List[CommitSummary], compare_url: str) -> str:
    """Empty for a single commit; otherwise the overflow count or a comparison link."""
    if len(commits) <= 1:
        return ""
    if len(commits) > MAX_COMMITS:
        extra = len(commits) - MAX_COMMITS
        text = "1 more commit" if extra == 1 else f"{extra} more commits"
    else:
        text = f"view comparison of these {len(commits)} commits"
    return _link(compare_url, text)


# --- Push events ---
def ref_is_posted(command: RefUpdate, config: AppConfig) -> bool:
    ref_type = command.ref_type
    if ref_type is RefType.TAG:
        return config.hipchat.post_tags
    if ref_type is RefType.BRANCH:
        return config.hipchat.post_branches
    return False


def format_ref_update(command: RefUpdate, author: str, repository: RepositoryModel,
                      config: AppConfig, repo_handle: Optional[Repository] = None) -> Optional[Notification]:
    """Notification for one ref-update command, or None for unreported refs."""
    if not ref_is_posted(command, config):
        return None

    ref_type = command.ref_type
    base_url = config.general.canonical_url
    short_ref = _esc_html(command.short_name)
    who = f"<b>{_esc_html(author)}</b>"
    repo_link = _link(repository_url(base_url, repository.name), repository.display_name)

    if command.type is RefCommandType.CREATE:
        log_url = repository_url(base_url, repository.name, command.short_name)
        msg = f"{who} has created {ref_type.value} {_link(log_url, command.short_name)} in {repo_link}"

    elif command.type is RefCommandType.DELETE:
        msg = f"{who} has deleted {ref_type.value} <b>{short_ref}</b> from {repo_link}"

    elif ref_type is RefType.TAG:
        commit_url = repository_url(base_url, repository.name, None, command.new_id)
        msg = f"{who} has <b>MOVED</b> tag {_link(commit_url, command.short_name)} in {repo_link}"

    elif command.type is RefCommandType.UPDATE_NONFASTFORWARD:
        log_url = repository_url(base_url, repository.name, command.short_name)
        msg = f"{who} has <b>REWRITTEN</b> {_link(log_url, command.short_name)} in {repo_link}"

    else:
        log_url = repository_url(base_url, repository.name, command.short_name)
        commits = load_commits(repo_handle, command.old_id, command.new_id, config)
        action = "pushed 1 commit to" if len(commits) == 1 else f"pushed {len(commits)} commits to"
        compare_url = repository_url(base_url, repository.name, command.old_id, command.new_id)
        msg = (
            f"{who} has {action} {_link(log_url, command.short_name)} in {repo_link}"
            + commit_table(commits, repository.name, base_url)
            + compare_link(commits, compare_url)
        )

    return Notification.html(msg, color=Color.GRAY, room=project_room(repository, config))


# --- Ticket events ---
def format_new_ticket(ticket: TicketModel, reporter: str, repository: Optional[RepositoryModel],
                      config: AppConfig, renderer: MarkupRenderer) -> Optional[Notification]:
    if not ticket.changes:
        logger.debug(f"Ticket {ticket.repository}#{ticket.number} has no changes, nothing to post")
        return None
    url = ticket_url(config.general.canonical_url, ticket.repository, ticket.number)
    repo_name = repository.display_name if repository else ticket.repository
    msg = (
        f"<b>{_esc_html(reporter)}</b> has created <b>{_esc_html(repo_name)}</b> "
        f"{_link(url, f'ticket-{ticket.number}')}"
    )
    msg += render_fields(ticket, ticket.changes[0], NEW_TICKET_EXCLUSIONS, renderer,
                         post_comments=config.hipchat.post_ticket_comments)
    return Notification.html(msg, color=Color.PURPLE, room=project_room(repository, config))


def _patchset_message(ticket: TicketModel, change: Change, author: str, repo: str, url: str,
                      config: AppConfig, repo_handle: Optional[Repository]) -> str:
    patchset = change.patchset
    if patchset.rev == 1:
        if patchset.number == 1:
            lead_in = f"{author} has pushed a proposal for {repo} {url}"
        else:
            lead_in = f"{author} has rewritten the patchset for {repo} {url} ({patchset.type.value})"
        base = patchset.base
    else:
        lead_in = f"{author} has added {_plural(patchset.added, 'commit')} to {repo} {url}"
        previous = ticket.get_patchset(patchset.number, patchset.rev - 1)
        if previous is None:
            logger.debug(f"Patchset {patchset.number}-{patchset.rev - 1} unknown, comparing from base")
            base = patchset.base
        else:
            base = previous.tip

    base_url = config.general.canonical_url
    commits = load_commits(repo_handle, base, patchset.tip, config)
    compare_url = repository_url(base_url, ticket.repository, base, patchset.tip)
    return lead_in + commit_table(commits, ticket.repository, base_url) + compare_link(commits, compare_url)


def format_ticket_update(ticket: TicketModel, change: Change, author_name: str,
                         repository: Optional[RepositoryModel], config: AppConfig,
                         renderer: MarkupRenderer, repo_handle: Optional[Repository] = None) -> Optional[Notification]:
    """Notification for a ticket change, or None when the change is not one we report."""
    post_comments = config.hipchat.post_ticket_comments
    kind = classify_change(change, post_comments)
    if kind is None:
        return None

    author = f"<b>{_esc_html(author_name)}</b>"
    url = _link(ticket_url(config.general.canonical_url, ticket.repository, ticket.number), f"ticket-{ticket.number}")
    repo = f"<b>{_esc_html(repository.display_name if repository else ticket.repository)}</b>"

    if kind is ChangeKind.REVIEW:
        review = change.review
        msg = f"{author} has reviewed {repo} {url} patchset {review.patchset}-{review.rev}"
        symbol = REVIEW_SYMBOLS.get(review.score)
        if symbol:
            msg += f" {symbol}"
    elif kind is ChangeKind.PATCHSET:
        msg = _patchset_message(ticket, change, author, repo, url, config, repo_handle)
    elif kind is ChangeKind.MERGE:
        msg = f"{author} has merged {repo} {url} to <b>{_esc_html(ticket.merge_to)}</b>"
    elif kind is ChangeKind.STATUS:
        msg = f"{author} has changed the status of {repo} {url}"
    else:
        msg = f"{author} has commented on {repo} {url}"

    color = Color.GRAY
    if change.is_status_change():
        color = STATUS_COLORS.get(ticket.status, Color.GRAY)
    elif change.has_comment():
        color = Color.YELLOW

    msg += render_fields(ticket, change, UPDATE_TICKET_EXCLUSIONS, renderer, post_comments=post_comments)
    return Notification.html(msg, color=color, room=project_room(repository, config))
