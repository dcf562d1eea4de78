import pytest
import yaml

from hipchat_notifier.config import CONFIG_PATH_ENV, AppConfig, ConfigManager
from hipchat_notifier.exceptions import ConfigError, ConfigValidationError


def _write(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_loads_yaml(tmp_path):
    path = _write(tmp_path / "hipchat.yaml", {
        "general": {"canonical_url": "https://git.example.com/", "short_commit_id_length": 8},
        "hipchat": {"default_room": "dev", "default_token": "t", "use_project_rooms": True},
        "bugtraq": [{"pattern": r"BUG-(\d+)", "link": "https://bugs.example.com/%s"}],
    })
    config = ConfigManager(path).get_config_model()
    assert config.general.canonical_url == "https://git.example.com"
    assert config.general.short_commit_id_length == 8
    assert config.hipchat.use_project_rooms is True
    assert config.hipchat.post_branches is True
    assert config.bugtraq[0].link == "https://bugs.example.com/%s"


def test_defaults():
    config = AppConfig()
    assert config.hipchat.host == "api.hipchat.com"
    assert config.hipchat.pool_size == 4
    assert config.hipchat.post_personal_repos is False
    assert config.general.short_log_length == 78


def test_missing_file_uses_defaults(tmp_path, caplog):
    manager = ConfigManager(tmp_path / "absent.yaml")
    assert manager.get_config_model() == AppConfig()
    assert "Config file not found" in caplog.text


def test_env_var_selects_file(tmp_path, monkeypatch):
    path = _write(tmp_path / "from-env.yaml", {"hipchat": {"default_room": "env", "default_token": "t"}})
    monkeypatch.setenv(CONFIG_PATH_ENV, str(path))
    assert ConfigManager().get_config_model().hipchat.default_room == "env"


def test_bad_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("hipchat: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        ConfigManager(path)


def test_not_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="valid YAML dictionary"):
        ConfigManager(path)


@pytest.mark.parametrize("data", [
    {"hipchat": {"pool_size": 0}},
    {"unknown_section": {}},
    {"bugtraq": [{"pattern": "x", "link": "https://bugs.example.com/"}]},
])
def test_validation_errors(tmp_path, data):
    path = _write(tmp_path / "invalid.yaml", data)
    with pytest.raises(ConfigValidationError) as exc_info:
        ConfigManager(path)
    assert exc_info.value.config_path == str(path)


def test_default_room_without_token_warns(caplog):
    AppConfig(hipchat={"default_room": "dev"})
    assert "without a default_token" in caplog.text


def test_reload(tmp_path):
    path = _write(tmp_path / "hipchat.yaml", {"hipchat": {"post_tags": True}})
    manager = ConfigManager(path)
    _write(path, {"hipchat": {"post_tags": False}})
    assert manager.reload().hipchat.post_tags is False
    assert manager.get_config()["hipchat"]["post_tags"] is False


def test_room_token_lookup():
    config = AppConfig(hipchat={"room_tokens": {"ops": "x", "empty": ""}})
    assert config.hipchat.room_token("ops") == "x"
    assert config.hipchat.room_token("empty") is None
    assert config.hipchat.room_token("other") is None
