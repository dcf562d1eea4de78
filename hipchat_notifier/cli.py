# hipchat_notifier/cli.py
import logging
import os
import sys
import click

import colorama
from colorama import Fore, Style

from . import __version__
from .config import ConfigManager, CONFIG_PATH_ENV, DEFAULT_CONFIG_FILENAME
from .exceptions import ConfigError, NotificationError
from .notifier import HipChatNotifier

colorama.init(autoreset=True)


# --- Custom Colored Log Formatter ---
class ColoredFormatter(logging.Formatter):
    LEVEL_MAP = {
        logging.DEBUG:    (Fore.CYAN,    "⚙️ DEBUG"),
        logging.INFO:     (Fore.GREEN,   "ℹ️ INFO"),
        logging.WARNING:  (Fore.YELLOW,  "⚠️ WARNING"),
        logging.ERROR:    (Fore.RED,     "❌ ERROR"),
        logging.CRITICAL: (Fore.MAGENTA + Style.BRIGHT, "🔥 CRITICAL"),
    }
    def format(self, record):
        color, level_prefix = self.LEVEL_MAP.get(record.levelno, (Fore.WHITE, record.levelname))
        asctime = self.formatTime(record, self.datefmt)
        log_entry = (
            f"{Style.DIM}{asctime}{Style.RESET_ALL} "
            f"{color}{Style.BRIGHT}{level_prefix}{Style.RESET_ALL} "
            f"{record.getMessage()}"
        )
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            log_entry += f"\n{Fore.RED}{Style.DIM}{record.exc_text}{Style.RESET_ALL}"
        return log_entry


def configure_logging(level: str = 'info') -> logging.Logger:
    """Attach the colored console handler to the package logger (once)."""
    base_logger = logging.getLogger('hipchat-notifier')
    if not any(isinstance(h.formatter, ColoredFormatter) for h in base_logger.handlers):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ColoredFormatter(fmt='%(message)s', datefmt='%Y-%m-%d %H:%M:%S'))
        base_logger.addHandler(console_handler)
    base_logger.setLevel(level.upper())

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    return base_logger


def _load_notifier(config_path: str, log_level: str) -> HipChatNotifier:
    try:
        manager = ConfigManager(config_path)
    except ConfigError as e_cfg:
        click.echo(click.style(f"❌ Config Error: {e_cfg}", fg='red', bold=True), err=True)
        sys.exit(1)
    configure_logging(log_level or manager.get_config_model().general.log_level)
    return HipChatNotifier(manager)


config_option = click.option(
    '-c', '--config', 'config_path',
    default=lambda: os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_FILENAME),
    type=click.Path(dir_okay=False, resolve_path=True), show_default=DEFAULT_CONFIG_FILENAME,
    help='Config file path',
)
log_level_option = click.option(
    '--log-level', type=click.Choice(['debug', 'info', 'warning', 'error', 'critical'], case_sensitive=False),
    help='Log level (overrides config general.log_level)',
)


# --- Click CLI Definition ---
@click.group()
@click.version_option(version=__version__, prog_name='hipchat-notifier')
def cli():
    """hipchat-notifier: post git server events to HipChat rooms."""


@cli.command()
@click.argument('room', required=False)
@config_option
@log_level_option
def test(room, config_path, log_level):
    """Post a test message to ROOM (default room if omitted)."""
    notifier = _load_notifier(config_path, log_level)
    try:
        delivered = notifier.send_test_message(room)
    except NotificationError as e_notify:
        click.echo(click.style(f"❌ Test Notification Failed: {e_notify}", fg='red', bold=True), err=True)
        sys.exit(1)
    finally:
        notifier.shutdown()

    if not delivered:
        click.echo(click.style("❌ HipChat rejected the test message, see the log for details.", fg='red', bold=True), err=True)
        sys.exit(1)
    click.echo(click.style("✅ Test message sent.", fg='green', bold=True))


@cli.command()
@click.argument('room', required=False)
@click.option('-m', '--message', required=True, metavar='MESSAGE', help="Message text ('-' reads stdin)")
@config_option
@log_level_option
def send(room, message, config_path, log_level):
    """Asynchronously post a message to ROOM (default room if omitted)."""
    if message == '-':
        message = click.get_text_stream('stdin').read()
    if not message.strip():
        click.echo(click.style("❌ Refusing to post an empty message.", fg='red', bold=True), err=True)
        sys.exit(2)
    notifier = _load_notifier(config_path, log_level)
    notifier.send_text_async(message, room=room)
    # drain the pool before the process exits
    notifier.shutdown(wait=True)


cli.add_command(send, name='post')


@cli.command()
@config_option
def status(config_path):
    """Show which rooms and switches the configuration enables."""
    try:
        cfg = ConfigManager(config_path).get_config_model()
    except ConfigError as e_cfg:
        click.echo(click.style(f"❌ Config Error: {e_cfg}", fg='red', bold=True), err=True)
        sys.exit(1)
    hipchat = cfg.hipchat
    click.echo(f"Status (from {config_path}):")
    click.echo(f"  Host: {hipchat.host}")
    click.echo(f"  Default room: {hipchat.default_room or '-'} (token {'set' if hipchat.default_token else 'missing'})")
    click.echo(f"  Rooms with tokens: {', '.join(sorted(hipchat.room_tokens)) or '-'}")
    click.echo(f"  Project rooms: {hipchat.use_project_rooms}")
    click.echo(f"  Branches: {hipchat.post_branches}  Tags: {hipchat.post_tags}")
    click.echo(f"  Tickets: {hipchat.post_tickets}  Comments: {hipchat.post_ticket_comments}")
    click.echo(f"  Personal repositories: {hipchat.post_personal_repos}")


if __name__ == "__main__":
    cli()
