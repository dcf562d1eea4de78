# hipchat_notifier/links.py
"""Links back into the web UI of the git server."""

import hashlib
from typing import Optional

SUMMARY_PATTERN = "{base}/summary?r={repo}"
LOG_PATTERN = "{base}/log?r={repo}&h={old}"
COMMIT_PATTERN = "{base}/commit?r={repo}&h={new}"
COMPARE_PATTERN = "{base}/compare?r={repo}&h={old}..{new}"
TICKET_PATTERN = "{base}/tickets/?r={repo}&h={number}"
GRAVATAR_PATTERN = "https://www.gravatar.com/avatar/{digest}?s={size}&d=identicon"


def repository_url(base_url: str, repo: str, old_id: Optional[str] = None, new_id: Optional[str] = None) -> str:
    """
    Returns a link appropriate for a push.

    Neither id gives the summary page, only `old_id` the log of that ref,
    only `new_id` that commit and both ids the comparison between them.
    """
    if old_id is None and new_id is None:
        return SUMMARY_PATTERN.format(base=base_url, repo=repo)
    if new_id is None:
        return LOG_PATTERN.format(base=base_url, repo=repo, old=old_id)
    if old_id is None:
        return COMMIT_PATTERN.format(base=base_url, repo=repo, new=new_id)
    return COMPARE_PATTERN.format(base=base_url, repo=repo, old=old_id, new=new_id)


def ticket_url(base_url: str, repo: str, number: int) -> str:
    return TICKET_PATTERN.format(base=base_url, repo=repo, number=number)


def gravatar_thumbnail_url(email: str, size: int = 16) -> str:
    digest = hashlib.md5((email or '').lower().encode('utf-8')).hexdigest()
    return GRAVATAR_PATTERN.format(digest=digest, size=size)
