# hipchat_notifier/fields.py
from typing import AbstractSet, Dict, List, Optional, Tuple

from .markup import MarkupRenderer
from .models import Change, TicketField, TicketModel

# FieldTable: (field, rendered value) pairs in TicketField priority order
FieldTable = List[Tuple[TicketField, str]]

NEW_TICKET_EXCLUSIONS = frozenset({
    TicketField.WATCHERS, TicketField.VOTERS, TicketField.STATUS, TicketField.MENTIONS,
})

UPDATE_TICKET_EXCLUSIONS = frozenset({
    TicketField.WATCHERS, TicketField.VOTERS, TicketField.MENTIONS,
    TicketField.TITLE, TicketField.BODY, TicketField.MERGE_SHA,
})


def _render_value(field: TicketField, value: str, repository: str, renderer: MarkupRenderer) -> str:
    if field is TicketField.BODY:
        return renderer.render_markdown(value, repository) or ''
    if field is TicketField.TOPIC:
        return renderer.render_bugtraq(value, repository) or ''
    return renderer.render_plain(value)


def build_field_table(ticket: TicketModel, change: Change, excluded: AbstractSet[TicketField],
                      renderer: MarkupRenderer) -> FieldTable:
    filtered: Dict[TicketField, Optional[str]] = {}
    for field, value in change.fields.items():
        if field not in excluded:
            filtered[field] = value

    # context fields are shown even when unchanged
    if TicketField.TITLE not in filtered:
        filtered[TicketField.TITLE] = ticket.title
    if TicketField.RESPONSIBLE not in filtered and ticket.responsible:
        filtered[TicketField.RESPONSIBLE] = ticket.responsible
    if TicketField.MILESTONE not in filtered and ticket.milestone:
        filtered[TicketField.MILESTONE] = ticket.milestone

    table: FieldTable = []
    for field in sorted(filtered, key=lambda f: f.rank):
        value = filtered[field]
        if not value:
            continue
        rendered = _render_value(field, value, ticket.repository, renderer)
        if rendered:
            table.append((field, rendered))
    return table


def render_fields(ticket: TicketModel, change: Change, excluded: AbstractSet[TicketField],
                  renderer: MarkupRenderer, post_comments: bool = True) -> str:
    """Comment (when posted) followed by the field table; may be empty."""
    parts: List[str] = []
    if change.has_comment() and post_comments:
        parts.append("<br/>")
        parts.append(renderer.render_markdown(change.comment.text, ticket.repository) or '')

    table = build_field_table(ticket, change, excluded, renderer)
    if table:
        parts.append("\n<table><tbody>\n")
        for field, value in table:
            parts.append(f"<tr><td><b>{field.value}:</b></td><td>{value}</td></tr>\n")
        parts.append("</tbody></table>\n")
    return "".join(parts)
