import json
import logging
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from hipchat_notifier import __version__
from hipchat_notifier.cli import cli


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    base_logger = logging.getLogger("hipchat-notifier")
    for handler in list(base_logger.handlers):
        base_logger.removeHandler(handler)
    base_logger.setLevel(logging.NOTSET)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "hipchat.yaml"
    path.write_text(yaml.safe_dump({
        "hipchat": {"default_room": "dev", "default_token": "dev-token", "room_tokens": {"ops": "ops-token"}},
    }), encoding="utf-8")
    return str(path)


@pytest.fixture
def http(session):
    with patch("hipchat_notifier.notifier.requests.Session", return_value=session):
        yield session


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_test_command(config_file, http):
    result = CliRunner().invoke(cli, ["test", "ops", "-c", config_file])
    assert result.exit_code == 0, result.output
    assert "Test message sent" in result.output
    url = http.post.call_args.args[0]
    assert url == "https://api.hipchat.com/v2/room/ops/notification?auth_token=ops-token"
    http.close.assert_called_once()


def test_test_command_rejected(config_file, http):
    http.post.return_value = MagicMock(status_code=401, content=b'{"error": "unauthorized"}')
    result = CliRunner().invoke(cli, ["test", "-c", config_file])
    assert result.exit_code == 1
    assert "rejected" in result.output


def test_send_reads_stdin(config_file, http):
    result = CliRunner().invoke(cli, ["send", "-m", "-", "-c", config_file], input="deploy done\n")
    assert result.exit_code == 0, result.output
    payload = json.loads(http.post.call_args.kwargs["data"])
    assert payload["message"] == "deploy done\n"
    assert payload["message_format"] == "text"
    assert "/room/dev/" in http.post.call_args.args[0]


def test_post_alias(config_file, http):
    result = CliRunner().invoke(cli, ["post", "ops", "-m", "hello", "-c", config_file])
    assert result.exit_code == 0, result.output
    assert http.post.call_count == 1


def test_send_rejects_empty_message(config_file, http):
    result = CliRunner().invoke(cli, ["send", "-m", "   ", "-c", config_file])
    assert result.exit_code == 2
    http.post.assert_not_called()


def test_invalid_config(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("hipchat: {pool_size: 0}\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["test", "-c", str(path)])
    assert result.exit_code == 1
    assert "Config Error" in result.output


def test_status(config_file):
    result = CliRunner().invoke(cli, ["status", "-c", config_file])
    assert result.exit_code == 0
    assert "Default room: dev (token set)" in result.output
    assert "Rooms with tokens: ops" in result.output
