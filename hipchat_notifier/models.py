# hipchat_notifier/models.py
"""
Domain records shared by the formatters, the resolvers and the notifier.

Event producers (the git receive pack and the ticket service) hand these
records in; formatters turn them into a Notification which the notifier
owns until it has been delivered or dropped.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ZERO_ID = '0' * 40

R_HEADS = 'refs/heads/'
R_TAGS = 'refs/tags/'
R_REMOTES = 'refs/remotes/'


# --- Notification (the unit of delivery) ---
class MessageFormat(str, Enum):
    PLAIN = 'text'
    MARKUP = 'html'


class Color(str, Enum):
    GRAY = 'gray'
    RED = 'red'
    GREEN = 'green'
    YELLOW = 'yellow'
    PURPLE = 'purple'
    RANDOM = 'random'


class Notification(BaseModel):
    """An immutable room message. `room=None` means the default room."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    color: Optional[Color] = None
    body: str = Field(min_length=1, serialization_alias='message')
    notify: bool = False
    format: MessageFormat = Field(default=MessageFormat.PLAIN, serialization_alias='message_format')
    room: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def text(cls, body: str, **kwargs) -> 'Notification':
        return cls(body=body, format=MessageFormat.PLAIN, **kwargs)

    @classmethod
    def html(cls, body: str, **kwargs) -> 'Notification':
        return cls(body=body, format=MessageFormat.MARKUP, **kwargs)

    def with_room(self, room: Optional[str]) -> 'Notification':
        return self.model_copy(update={'room': room})

    def to_json(self) -> str:
        """Wire body: {color?, message, notify, message_format}; the room is never serialized."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class RoomBinding:
    room: Optional[str]
    token: Optional[str]
    fallback: bool = False


@dataclass(frozen=True)
class CommitSummary:
    sha: str
    short_sha: str
    author_name: str
    author_email: str
    short_message: str


# --- Push events ---
class RefCommandType(str, Enum):
    CREATE = 'CREATE'
    UPDATE = 'UPDATE'
    UPDATE_NONFASTFORWARD = 'UPDATE_NONFASTFORWARD'
    DELETE = 'DELETE'


class RefType(str, Enum):
    BRANCH = 'branch'
    TAG = 'tag'


@dataclass(frozen=True)
class RefUpdate:
    """One accepted ref-update command from a push."""
    ref_name: str
    old_id: str
    new_id: str
    type: RefCommandType

    @property
    def ref_type(self) -> Optional[RefType]:
        if self.ref_name.startswith(R_TAGS):
            return RefType.TAG
        if self.ref_name.startswith(R_HEADS):
            return RefType.BRANCH
        return None

    @property
    def short_name(self) -> str:
        return shorten_ref_name(self.ref_name)


def shorten_ref_name(ref_name: str) -> str:
    for prefix in (R_HEADS, R_TAGS, R_REMOTES):
        if ref_name.startswith(prefix):
            return ref_name[len(prefix):]
    return ref_name


def strip_dot_git(name: str) -> str:
    return name[:-len('.git')] if name.endswith('.git') else name


@dataclass(frozen=True)
class RepositoryModel:
    name: str
    project_path: str = ''

    @property
    def is_personal(self) -> bool:
        # user repositories live under '~username/'
        return self.name.startswith('~')

    @property
    def display_name(self) -> str:
        return strip_dot_git(self.name)


# --- Tickets ---
class TicketField(str, Enum):
    """Ticket fields in display priority order."""
    TITLE = 'title'
    BODY = 'body'
    RESPONSIBLE = 'responsible'
    TYPE = 'type'
    STATUS = 'status'
    MILESTONE = 'milestone'
    MERGE_SHA = 'mergeSha'
    MERGE_TO = 'mergeTo'
    TOPIC = 'topic'
    LABELS = 'labels'
    WATCHERS = 'watchers'
    REVIEWERS = 'reviewers'
    VOTERS = 'voters'
    MENTIONS = 'mentions'
    PRIORITY = 'priority'
    SEVERITY = 'severity'

    @property
    def rank(self) -> int:
        return _FIELD_ORDER.index(self)


_FIELD_ORDER: List[TicketField] = list(TicketField)


class TicketStatus(str, Enum):
    NEW = 'New'
    OPEN = 'Open'
    CLOSED = 'Closed'
    RESOLVED = 'Resolved'
    FIXED = 'Fixed'
    MERGED = 'Merged'
    WONTFIX = 'Wontfix'
    DECLINED = 'Declined'
    DUPLICATE = 'Duplicate'
    INVALID = 'Invalid'
    ABANDONED = 'Abandoned'
    ON_HOLD = 'On_Hold'
    NO_CHANGE_REQUIRED = 'No_Change_Required'


class ReviewScore(str, Enum):
    APPROVED = 'approved'
    LOOKS_GOOD = 'looks_good'
    NOT_REVIEWED = 'not_reviewed'
    NEEDS_IMPROVEMENT = 'needs_improvement'
    VETOED = 'vetoed'


class PatchsetType(str, Enum):
    PROPOSAL = 'Proposal'
    FAST_FORWARD = 'FastForward'
    REBASE = 'Rebase'
    SQUASH = 'Squash'
    REBASE_SQUASH = 'Rebase_Squash'
    AMEND = 'Amend'


@dataclass(frozen=True)
class Patchset:
    number: int
    rev: int
    tip: str
    base: str
    added: int = 0
    type: PatchsetType = PatchsetType.PROPOSAL


@dataclass(frozen=True)
class Review:
    patchset: int
    rev: int
    score: ReviewScore


@dataclass(frozen=True)
class Comment:
    text: str
    deleted: bool = False


@dataclass
class Change:
    author: str
    comment: Optional[Comment] = None
    fields: Dict[TicketField, Optional[str]] = field(default_factory=dict)
    patchset: Optional[Patchset] = None
    review: Optional[Review] = None

    def has_comment(self) -> bool:
        return self.comment is not None and not self.comment.deleted and bool(self.comment.text)

    def has_review(self) -> bool:
        return self.review is not None

    def has_patchset(self) -> bool:
        return self.patchset is not None

    def has_field_changes(self) -> bool:
        return bool(self.fields)

    def is_status_change(self) -> bool:
        return TicketField.STATUS in self.fields

    def is_merge(self) -> bool:
        return self.is_status_change() and TicketField.MERGE_SHA in self.fields


@dataclass
class TicketModel:
    number: int
    repository: str
    title: str
    status: TicketStatus = TicketStatus.NEW
    responsible: Optional[str] = None
    milestone: Optional[str] = None
    merge_to: Optional[str] = None
    changes: List[Change] = field(default_factory=list)

    @property
    def patchsets(self) -> List[Patchset]:
        return [c.patchset for c in self.changes if c.patchset is not None]

    def get_patchset(self, number: int, rev: int) -> Optional[Patchset]:
        for patchset in self.patchsets:
            if patchset.number == number and patchset.rev == rev:
                return patchset
        return None


# --- Ticket change variants ---
class ChangeKind(str, Enum):
    """Reportable ticket changes, in matching priority order."""
    REVIEW = 'review'
    PATCHSET = 'patchset'
    MERGE = 'merge'
    STATUS = 'status'
    COMMENT = 'comment'


def classify_change(change: Change, post_comments: bool) -> Optional[ChangeKind]:
    """Return the single variant a change is reported as, or None if it is not reported."""
    if change.has_review():
        return ChangeKind.REVIEW
    if change.has_patchset():
        return ChangeKind.PATCHSET
    if change.is_merge():
        return ChangeKind.MERGE
    if change.is_status_change():
        return ChangeKind.STATUS
    if change.has_comment() and post_comments:
        return ChangeKind.COMMENT
    return None
