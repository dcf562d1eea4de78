# hipchat_notifier/markup.py
"""
Text rendering collaborators: issue cross-reference linking and markdown.

HipChat html messages do not render paragraph blocks, so rendered markdown
has its <p> tags replaced by double line breaks.
"""

import html
import logging
import re
from typing import List, Optional, Pattern, Tuple

import markdown

from .config import AppConfig, BugtraqRule

logger = logging.getLogger('hipchat-notifier.markup')

MARKDOWN_EXTENSIONS = ['fenced_code', 'tables', 'sane_lists']


class MarkupRenderer:
    """Renders ticket text for html room messages."""

    def __init__(self, rules: Optional[List[BugtraqRule]] = None):
        self.rules: List[Tuple[Pattern[str], str]] = []
        for rule in rules or []:
            try:
                self.rules.append((re.compile(rule.pattern), rule.link))
            except re.error as e:
                logger.warning(f"⚠️ Ignoring invalid bugtraq pattern '{rule.pattern}': {e}")

    @classmethod
    def from_config(cls, config: AppConfig) -> 'MarkupRenderer':
        return cls(config.bugtraq)

    def _link_references(self, text: str) -> str:
        for pattern, link in self.rules:
            def _anchor(match: 're.Match[str]', link: str = link) -> str:
                issue = match.group(1) if match.groups() else match.group(0)
                return f'<a href="{link.replace("%s", issue)}">{match.group(0)}</a>'
            text = pattern.sub(_anchor, text)
        return text

    def render_bugtraq(self, value: Optional[str], repository: str = '') -> Optional[str]:
        """Escape plain text and turn issue references into links."""
        if not value:
            return value
        return self._link_references(html.escape(value, quote=False))

    def render_markdown(self, value: Optional[str], repository: str = '') -> Optional[str]:
        if not value:
            return value
        linked = self._link_references(value)
        rendered = markdown.markdown(linked, extensions=MARKDOWN_EXTENSIONS)
        return rendered.replace('<p>', '').replace('</p>', '<br/><br/>')

    def render_plain(self, value: Optional[str]) -> str:
        """Plain field value: escaped, newlines as explicit breaks."""
        if not value:
            return ''
        escaped = html.escape(value, quote=False)
        return escaped.replace('\r\n', '\n').replace('\n', '<br/>')
