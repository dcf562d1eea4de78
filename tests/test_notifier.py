import json
import logging
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from hipchat_notifier import __version__
from hipchat_notifier.config import ConfigManager
from hipchat_notifier.exceptions import TransportFailure
from hipchat_notifier.models import Color, Notification
from hipchat_notifier.notifier import TEST_MESSAGE, HipChatNotifier
from hipchat_notifier.rooms import resolve_destination

from .conftest import build_config


@pytest.fixture
def notifier(config_manager, session):
    notifier = HipChatNotifier(config_manager, session=session)
    yield notifier
    notifier.shutdown()


def _posted(session, index=0):
    args, kwargs = session.post.call_args_list[index]
    return args[0], json.loads(kwargs["data"].decode("utf-8")), kwargs


class TestSend:
    def test_posts_to_room_endpoint(self, notifier, session):
        assert notifier.send(Notification.html("<b>hi</b>", color=Color.GREEN, room="ops")) is True

        url, payload, kwargs = _posted(session)
        assert url == "https://api.hipchat.com/v2/room/ops/notification?auth_token=ops-token"
        assert payload == {"color": "green", "message": "<b>hi</b>", "notify": False, "message_format": "html"}
        assert kwargs["headers"]["Content-Type"] == "application/json; charset=utf-8"
        assert kwargs["timeout"] == (5.0, 5.0)
        assert session.headers["User-Agent"] == f"hipchat-notifier/{__version__}"

    def test_default_room(self, notifier, session):
        notifier.send_text("plain")
        url, payload, _ = _posted(session)
        assert "/v2/room/dev/notification?auth_token=default-token" in url
        assert payload["message_format"] == "text"

    def test_room_name_quoted(self, session):
        config = build_config(room_tokens={"Dev Team/1": "t"})
        notifier = HipChatNotifier(ConfigManager.from_model(config), session=session)
        notifier.send_text("x", room="Dev Team/1")
        assert "/v2/room/Dev%20Team%2F1/notification" in _posted(session)[0]
        notifier.shutdown()

    def test_no_content_is_not_read(self, notifier, session):
        response = Mock(spec=["status_code", "close"], status_code=204)
        session.post.return_value = response
        assert notifier.send_test_message() is True
        response.close.assert_called_once()
        assert _posted(session)[1]["message"] == TEST_MESSAGE

    def test_rejected_logs_both_bodies(self, notifier, session, caplog):
        response = MagicMock(status_code=500, content=b'{"error": {"message": "bad room"}}')
        session.post.return_value = response

        with caplog.at_level(logging.ERROR, logger="hipchat-notifier"):
            assert notifier.send_text("hello") is False

        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "HipChat plugin sent:"
        assert json.loads(messages[1])["message"] == "hello"
        assert messages[2] == "HipChat returned (500):"
        assert "bad room" in messages[3]
        response.close.assert_called_once()

    def test_transport_failure_raises(self, notifier, session):
        session.post.side_effect = requests.exceptions.ConnectTimeout("timed out")
        with pytest.raises(TransportFailure) as exc_info:
            notifier.send_text("hello")
        assert isinstance(exc_info.value.original_error, requests.exceptions.ConnectTimeout)

    def test_token_fallback(self, notifier, session, caplog):
        notifier.send_text("hello", room="nowhere")
        assert "/v2/room/dev/notification?auth_token=default-token" in _posted(session)[0]
        assert "No HipChat API token specified for 'nowhere'" in caplog.text

    def test_config_read_per_send(self, config, notifier, session):
        notifier.send_text("one", room="qa")
        config.hipchat.room_tokens["qa"] = "qa-token"
        notifier.send_text("two", room="qa")
        assert _posted(session, 0)[0].endswith("/room/dev/notification?auth_token=default-token")
        assert _posted(session, 1)[0].endswith("/room/qa/notification?auth_token=qa-token")


class TestSendAsync:
    def test_queued_sends_complete_before_shutdown_returns(self, config_manager, session):
        notifier = HipChatNotifier(config_manager, session=session)
        for i in range(10):
            notifier.send_text_async(f"message {i}")
        notifier.shutdown(wait=True)
        assert session.post.call_count == 10
        session.close.assert_called_once()

    def test_failures_are_logged_not_raised(self, config_manager, session, caplog):
        session.post.side_effect = requests.exceptions.ReadTimeout("slow")
        notifier = HipChatNotifier(config_manager, session=session)
        with caplog.at_level(logging.ERROR, logger="hipchat-notifier"):
            notifier.send_text_async("hello")
            notifier.shutdown(wait=True)
        assert "Failed to send asynchronously to HipChat" in caplog.text

    def test_dropped_after_shutdown(self, config_manager, session, caplog):
        notifier = HipChatNotifier(config_manager, session=session)
        notifier.shutdown()
        notifier.shutdown()
        notifier.send_text_async("late")
        assert session.post.call_count == 0
        assert "dropping notification" in caplog.text

    def test_context_manager(self, config_manager, session):
        with HipChatNotifier(config_manager, session=session) as notifier:
            notifier.send_text_async("hello")
        assert session.post.call_count == 1

    def test_unexpected_errors_are_logged(self, config_manager, session, caplog):
        session.post.side_effect = ValueError("boom")
        notifier = HipChatNotifier(config_manager, session=session)
        with caplog.at_level(logging.ERROR, logger="hipchat-notifier"):
            notifier.send_text_async("hi")
            notifier.shutdown(wait=True)
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "Unexpected error sending asynchronously to HipChat: boom" in errors[0].getMessage()
        assert errors[0].exc_info is not None

    def test_deliver_reports_failure(self, notifier, session):
        session.post.side_effect = ValueError("boom")
        assert notifier._deliver(Notification.text("hi")) is False


def test_send_resolves_destination_per_send(notifier, session):
    with patch("hipchat_notifier.notifier.resolve_destination", wraps=resolve_destination) as resolver:
        notifier.send(Notification.text("hi", room="ops"))
    resolver.assert_called_once_with("ops", None, notifier.config)
    assert "/room/ops/notification?auth_token=ops-token" in _posted(session)[0]
