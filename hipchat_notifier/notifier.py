# hipchat_notifier/notifier.py
"""
Delivery of room notifications to the HipChat v2 REST API.

The notifier owns a requests session and a small worker pool. `send` posts
inline and raises TransportFailure on network errors; `send_async` queues
the post and returns at once. Nothing is retried: a rejected or failed post
is logged and dropped.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional
from urllib.parse import quote

import requests

from . import __version__
from .config import AppConfig, ConfigManager
from .exceptions import NotificationError, RemoteRejected, TransportFailure
from .models import Notification
from .rooms import resolve_destination

logger = logging.getLogger('hipchat-notifier.notifier')

SERVICE_HIPCHAT = "HipChat"
NOTIFICATION_URL = "https://{host}/v2/room/{room}/notification?auth_token={token}"
TEST_MESSAGE = "Test message sent from hipchat-notifier"


class HipChatNotifier:
    """Configures the final payload and sends HipChat room notifications."""

    def __init__(self, config_manager: ConfigManager, session: Optional[requests.Session] = None) -> None:
        self.config_manager = config_manager
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': f'hipchat-notifier/{__version__}'})
        pool_size = self.config.hipchat.pool_size
        self.task_pool = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="hipchat")
        self._stopped = False
        logger.debug(f"HipChat notifier started with {pool_size} worker(s)")

    @property
    def config(self) -> AppConfig:
        # read per call: settings may change between sends
        return self.config_manager.get_config_model()

    # --- lifecycle ---
    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; queued sends still run to completion."""
        if self._stopped:
            return
        self._stopped = True
        self.task_pool.shutdown(wait=wait)
        self.session.close()
        logger.debug("HipChat notifier stopped")

    def __enter__(self) -> 'HipChatNotifier':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)

    # --- sending ---
    def send_async(self, notification: Notification) -> None:
        """Queue a notification; no handle is returned and failures are only logged."""
        if self._stopped:
            logger.warning("HipChat notifier is stopped, dropping notification")
            return
        try:
            self.task_pool.submit(self._deliver, notification)
        except RuntimeError as e:  # executor shut down concurrently
            logger.warning(f"HipChat notifier is stopped, dropping notification: {e}")

    def send_text_async(self, message: str, room: Optional[str] = None) -> None:
        self.send_async(Notification.text(message, room=room))

    def send_text(self, message: str, room: Optional[str] = None) -> bool:
        return self.send(Notification.text(message, room=room))

    def send_test_message(self, room: Optional[str] = None) -> bool:
        return self.send_text(TEST_MESSAGE, room=room)

    def _deliver(self, notification: Notification) -> bool:
        try:
            return self.send(notification)
        except NotificationError as e:
            logger.error(f"❌ Failed to send asynchronously to HipChat! {e}", exc_info=True)
        except Exception as e:
            # futures are never read
            logger.error(f"💥 Unexpected error sending asynchronously to HipChat: {e}", exc_info=True)
        return False

    def send(self, notification: Notification) -> bool:
        """
        Post one notification and classify the answer.

        Returns True on 204 No Content and False when the endpoint rejected
        the message (both bodies are logged). Raises TransportFailure when
        the request itself fails.
        """
        config = self.config
        # project routing already happened when the notification was formatted
        binding = resolve_destination(notification.room, None, config)
        url = NOTIFICATION_URL.format(
            host=config.hipchat.host,
            room=quote(binding.room or "", safe=""),
            token=quote(binding.token or "", safe=""),
        )
        body = notification.to_json()

        try:
            resp = self.session.post(
                url,
                data=body.encode('utf-8'),
                headers={'Content-Type': 'application/json; charset=utf-8'},
                timeout=(config.hipchat.connect_timeout, config.hipchat.read_timeout),
                stream=True,
            )
        except requests.exceptions.RequestException as e:
            raise TransportFailure(
                service=SERVICE_HIPCHAT,
                message=f"{type(e).__name__} posting to room '{binding.room}': {e}",
                original_error=e,
            )

        if resp.status_code == requests.codes.no_content:
            # expected result, nothing to read
            resp.close()
            logger.debug(f"✅ {SERVICE_HIPCHAT} notification delivered to '{binding.room}'")
            return True

        try:
            result = resp.content.decode('utf-8', errors='replace')
        except requests.exceptions.RequestException as e:
            raise TransportFailure(
                service=SERVICE_HIPCHAT,
                message=f"Failed reading response from room '{binding.room}': {e}",
                status_code=resp.status_code,
                original_error=e,
            )
        finally:
            resp.close()

        rejected = RemoteRejected(SERVICE_HIPCHAT, resp.status_code, body, result)
        logger.error(f"{SERVICE_HIPCHAT} plugin sent:")
        logger.error(rejected.request_body)
        logger.error(f"{SERVICE_HIPCHAT} returned ({rejected.status_code}):")
        logger.error(rejected.response_body)
        return False
