# hipchat_notifier/config.py
import os
import yaml
import logging
from typing import Dict, Any, Optional, List, Literal, Union
from pathlib import Path
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .exceptions import ConfigError, ConfigValidationError

logger = logging.getLogger('hipchat-notifier.config')

DEFAULT_CONFIG_FILENAME = 'hipchat_config.yaml'
CONFIG_PATH_ENV = 'HIPCHAT_NOTIFIER_CONFIG'

# --- Type Definitions ---
LogLevel = Literal['debug', 'info', 'warning', 'error', 'critical', 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# --- Base Models for Configuration ---
class GeneralConfig(BaseModel):
    log_level: LogLevel = Field(default='info', description='Logging level')
    canonical_url: str = Field(default='https://localhost:8443', description="Base URL used for generated links")
    short_commit_id_length: int = Field(default=6, gt=0, le=40)
    short_log_length: int = Field(default=78, gt=3, description="Commit subject truncation length")

    @field_validator('canonical_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')

class HipChatConfig(BaseModel):
    host: str = Field(default='api.hipchat.com', description="HipChat API host (change for a self-hosted server)")
    default_room: Optional[str] = Field(default=None)
    default_token: Optional[str] = Field(default=None)
    room_tokens: Dict[str, str] = Field(default_factory=dict, description="Per-room API tokens")
    use_project_rooms: bool = Field(default=False, description="Route repository events to '<defaultRoom>-<project>' rooms")
    post_personal_repos: bool = Field(default=False)
    post_tickets: bool = Field(default=True)
    post_ticket_comments: bool = Field(default=True)
    post_branches: bool = Field(default=True)
    post_tags: bool = Field(default=True)
    pool_size: int = Field(default=4, gt=0, le=64, description="Worker threads for asynchronous delivery")
    connect_timeout: float = Field(default=5.0, gt=0)
    read_timeout: float = Field(default=5.0, gt=0)

    @model_validator(mode='after')
    def check_default_credentials(self) -> 'HipChatConfig':
        if self.default_room and not self.default_token:
            logger.warning(f"⚠️ Default room '{self.default_room}' is configured without a default_token.")
        return self

    def room_token(self, room: str) -> Optional[str]:
        return self.room_tokens.get(room) or None

class BugtraqRule(BaseModel):
    pattern: str = Field(description="Regular expression matching an issue reference")
    link: str = Field(description="Link template; '%s' is replaced by the issue id")

    @field_validator('link')
    @classmethod
    def check_placeholder(cls, v: str) -> str:
        if '%s' not in v:
            raise ValueError(f"Bugtraq link '{v}' must contain a '%s' placeholder")
        return v

class AppConfig(BaseModel):
    model_config = ConfigDict(extra='forbid', validate_assignment=True)

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    hipchat: HipChatConfig = Field(default_factory=HipChatConfig)
    bugtraq: List[BugtraqRule] = Field(default_factory=list, description="Cross-reference rules for issue ids")


class ConfigManager:
    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_FILENAME))
        self.config: AppConfig
        self._load_and_validate_config()

    @classmethod
    def from_model(cls, config: AppConfig) -> 'ConfigManager':
        """Wrap an already validated model (embedding hosts, tests)."""
        manager = cls.__new__(cls)
        manager.config_path = Path('<memory>')
        manager.config = config
        return manager

    def _load_and_validate_config(self):
        """Loads configuration from YAML and validates."""
        logger.debug(f"Loading configuration from: {self.config_path.resolve()}")
        config_data: Dict[str, Any] = {}

        if self.config_path.exists() and self.config_path.is_file():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f)
            except yaml.YAMLError as e_yaml:
                raise ConfigError(f"Error parsing YAML from '{self.config_path}': {e_yaml}", original_error=e_yaml)
            except OSError as e_file:
                raise ConfigError(f"Error reading config file '{self.config_path}': {e_file}", original_error=e_file)

            if yaml_config and isinstance(yaml_config, dict):
                config_data = yaml_config
            elif yaml_config:
                raise ConfigError(f"Config file {self.config_path} does not contain a valid YAML dictionary structure.")
            else:
                logger.debug(f"Config file {self.config_path} is empty. Using defaults.")
        else:
            logger.warning(f"Config file not found at '{self.config_path.resolve()}'. Using defaults.")

        try:
            self.config = AppConfig(**config_data)
            logger.info(f"Configuration loaded and validated successfully from {self.config_path}.")
        except ValueError as e_val:  # pydantic ValidationError is a ValueError subclass
            logger.error(f"Configuration validation failed. Errors:\n{e_val}")
            raise ConfigValidationError(
                f"Configuration validation failed. Check messages above. Source: {self.config_path}.",
                config_path=str(self.config_path),
                original_error=e_val
            )

    def reload(self) -> AppConfig:
        """Re-read the config file; the previous model stays active if loading fails."""
        self._load_and_validate_config()
        return self.config

    def get_config(self) -> Dict[str, Any]:
        """
        Return the current configuration as a plain Python dict.
        """
        return self.get_config_model().model_dump()

    def get_config_model(self) -> AppConfig:
        """
        Return the raw Pydantic AppConfig model.
        """
        if not getattr(self, 'config', None):
            raise ConfigError("Configuration (self.config) is unexpectedly not set in ConfigManager.")
        return self.config
