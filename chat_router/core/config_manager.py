import copy
import yaml
import os
from dataclasses import dataclass, field
from typing import Dict, Any, Mapping

from .logging import logger
from .exceptions import ConfigError
from ..providers.base import ChatType
from ..utils.deep_merge import deep_merge

DEFAULT_CHAT_CONFIG: Dict[str, Any] = {
    "default_chat_mode": ChatType.CHATGPT.value,
    "everyday_limit": 1000,
    "max_tokens": 3500,
    "enable_context": False,
    "providers": {},
}


@dataclass(frozen=True)
class ChatConfig:
    """Validated chat service settings. Immutable once built."""
    default_chat_mode: ChatType = ChatType.CHATGPT
    everyday_limit: int = 1000
    max_tokens: int = 3500
    enable_context: bool = False
    providers: Mapping[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatConfig":
        """Apply defaults to a raw ``chat:`` block and validate it."""
        merged = deep_merge(copy.deepcopy(DEFAULT_CHAT_CONFIG), data or {})

        mode = merged.get("default_chat_mode") or DEFAULT_CHAT_CONFIG["default_chat_mode"]
        try:
            chat_mode = ChatType(mode)
        except ValueError:
            raise ConfigError(f"Unsupported default_chat_mode: '{mode}'")

        try:
            everyday_limit = int(merged["everyday_limit"])
            max_tokens = int(merged["max_tokens"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}", e)
        if everyday_limit <= 0:
            raise ConfigError(f"everyday_limit must be positive, got {everyday_limit}")
        if max_tokens <= 0:
            raise ConfigError(f"max_tokens must be positive, got {max_tokens}")

        providers = merged.get("providers") or {}
        if not isinstance(providers, dict):
            raise ConfigError("providers must be a mapping of chat type to settings")
        unknown = [name for name in providers if name not in {t.value for t in ChatType}]
        if unknown:
            raise ConfigError(f"Unsupported provider blocks: {', '.join(sorted(unknown))}")

        return cls(
            default_chat_mode=chat_mode,
            everyday_limit=everyday_limit,
            max_tokens=max_tokens,
            enable_context=_as_bool(merged.get("enable_context")),
            providers=providers,
        )

    @property
    def limit_message(self) -> str:
        return (f"You've reached the daily limit ({self.everyday_limit}/day). "
                f"Your quota will be restored tomorrow.")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class ConfigManager:
    """Loads ``chat.yaml`` from the config directory and applies env overrides."""

    ENV_OVERRIDES = {
        "CHAT_DEFAULT_MODE": "default_chat_mode",
        "CHAT_EVERYDAY_LIMIT": "everyday_limit",
        "CHAT_MAX_TOKENS": "max_tokens",
        "CHAT_ENABLE_CONTEXT": "enable_context",
    }

    def __init__(self, config_dir: str = "config"):
        self.config_dir = config_dir
        self.chat_path = os.path.join(config_dir, "chat.yaml")
        self.config = self._load_config()

        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        logger.info("Configuration manager initialized", config={
            "config_dir": config_dir,
            "log_level": self.log_level,
            "chat_config_exists": os.path.exists(self.chat_path)
        })

    def _load_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {}
        try:
            with open(self.chat_path, 'r', encoding='utf-8') as f:
                config = (yaml.safe_load(f) or {}).get('chat', {}) or {}
        except FileNotFoundError as e:
            logger.warning(f"Configuration file not found: {e}", config={
                "error_type": "file_not_found",
                "file_path": str(e.filename) if e.filename else 'unknown'
            })
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML file: {e}", config={
                "error_type": "yaml_parse_error",
                "error_message": str(e)
            })
            raise ConfigError(f"Could not parse {self.chat_path}", e)

        for env_name, key in self.ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is not None and value != "":
                config[key] = value
        return config

    def get_config(self) -> Dict[str, Any]:
        return self.config

    def get_chat_config(self) -> ChatConfig:
        """Build the validated, defaulted chat configuration."""
        chat_config = ChatConfig.from_dict(self.config)
        logger.info("Chat configuration loaded", config={
            "default_chat_mode": chat_config.default_chat_mode.value,
            "everyday_limit": chat_config.everyday_limit,
            "max_tokens": chat_config.max_tokens,
            "enable_context": chat_config.enable_context,
            "providers": sorted(chat_config.providers)
        })
        return chat_config
