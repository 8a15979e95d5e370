# vault_agent/config.py
# Description: Configuration management for the vault agent core.
#
# Imports
import copy
import sys
if sys.version_info < (3, 11):
    import tomli as tomllib
else:
    import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional
#
# Third-Party Imports
import toml
from loguru import logger
#
#######################################################################################################################
#
# Functions:

# --- Path to the configuration file ---
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "vault_agent" / "config.toml"

CONFIG_TOML_CONTENT = """
# Configuration for the vault agent core.
# Values here are merged over the built-in defaults.

[history]
# Persist conversations as markdown documents inside the vault
enabled = true
# State folder (relative to the vault root) that holds all agent data
folder = "gemini-scribe"
history_subfolder = "History"
agent_sessions_subfolder = "Agent-Sessions"
archive_subfolder = "History-Archive"

[tools]
# Abort the rest of a batch of tool calls when one of them fails
stop_on_tool_error = true
loop_detection_enabled = true
loop_detection_threshold = 3
loop_detection_time_window_seconds = 30
# Tool names that are never treated as loops (e.g. idempotent reads)
loop_detection_exempt_tools = []

[models]
chat = "gemini-2.5-pro"
summary = "gemini-2.5-flash"
completions = "gemini-2.5-flash-lite-preview-06-17"
rewrite = "gemini-2.5-flash"
image = "gemini-2.5-flash-image-preview"
temperature = 0.7
top_p = 1.0

[logging]
level = "INFO"
log_file = ""
"""

try:
    DEFAULT_CONFIG_FROM_TOML: Dict[str, Any] = tomllib.loads(CONFIG_TOML_CONTENT)
except tomllib.TOMLDecodeError as e:
    logger.critical(f"FATAL: Could not parse internal CONFIG_TOML_CONTENT: {e}")
    DEFAULT_CONFIG_FROM_TOML = {}


# --- Helper for deep merging dictionaries ---
def deep_merge_dicts(base: Dict, update: Dict) -> Dict:
    """Recursively merges update into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = deep_merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


_CONFIG_CACHE: Optional[Dict[str, Any]] = None


def load_cli_config_and_ensure_existence(force_reload: bool = False) -> Dict[str, Any]:
    """
    Loads settings from ~/.config/vault_agent/config.toml.
    If the file doesn't exist, it's created from CONFIG_TOML_CONTENT.
    The embedded defaults are always the base the user's file is merged over.
    """
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None and not force_reload:
        return _CONFIG_CACHE

    loaded_config = copy.deepcopy(DEFAULT_CONFIG_FROM_TOML)

    if not DEFAULT_CONFIG_PATH.exists():
        logger.info(f"Config file not found at {DEFAULT_CONFIG_PATH}. Creating it with default values.")
        try:
            DEFAULT_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
            with open(DEFAULT_CONFIG_PATH, "w", encoding="utf-8") as f:
                f.write(CONFIG_TOML_CONTENT)
            loaded_config["_first_run"] = True
        except OSError as e:
            logger.error(f"Could not create default config file {DEFAULT_CONFIG_PATH}: {e}. Using internal defaults.")
    else:
        logger.info(f"Loading config from: {DEFAULT_CONFIG_PATH}")
        try:
            with open(DEFAULT_CONFIG_PATH, "rb") as f:
                user_config_from_file = tomllib.load(f)
            loaded_config = deep_merge_dicts(loaded_config, user_config_from_file)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML config file {DEFAULT_CONFIG_PATH}: {e}. Using internal defaults.")
        except OSError as e:
            logger.error(f"Could not read config {DEFAULT_CONFIG_PATH}: {e}. Using internal defaults.")

    _CONFIG_CACHE = loaded_config
    logger.debug(f"Loaded configuration with top-level keys: {list(loaded_config.keys())}")
    return _CONFIG_CACHE


def save_setting_to_cli_config(section: str, key: str, value: Any) -> bool:
    """
    Saves a single setting to the user's TOML configuration file.

    Nested sections are addressed with dots ("tools.advanced"). The config
    cache is invalidated and reloaded afterwards.

    Returns:
        True if the setting was saved successfully, False otherwise.
    """
    global _CONFIG_CACHE
    logger.info(f"Saving setting: [{section}].{key} = {value!r}")

    try:
        DEFAULT_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create config directory {DEFAULT_CONFIG_PATH.parent}: {e}")
        return False

    config_data: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        try:
            with open(DEFAULT_CONFIG_PATH, "rb") as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Corrupted config file at {DEFAULT_CONFIG_PATH}. Cannot save. Error: {e}")
            return False
        except OSError as e:
            logger.error(f"Unexpected error reading {DEFAULT_CONFIG_PATH}: {e}")
            return False

    current_level = config_data
    try:
        for part in section.split('.'):
            current_level = current_level.setdefault(part, {})
        current_level[key] = value
    except (TypeError, AttributeError):
        logger.error(
            f"Configuration structure conflict. Could not set '{key}' in section '{section}' "
            f"because a part of the path is not a table."
        )
        return False

    try:
        with open(DEFAULT_CONFIG_PATH, "w", encoding="utf-8") as f:
            toml.dump(config_data, f)
        logger.success(f"Saved setting to {DEFAULT_CONFIG_PATH}")
        _CONFIG_CACHE = None
        load_cli_config_and_ensure_existence(force_reload=True)
        return True
    except (OSError, TypeError) as e:
        logger.error(f"Failed to write updated config to {DEFAULT_CONFIG_PATH}: {e}")
        return False


def get_cli_setting(section: str, key: str, default: Any = None) -> Any:
    """Helper to get a specific setting from the loaded configuration."""
    config = load_cli_config_and_ensure_existence()
    section_data = config.get(section)
    if isinstance(section_data, dict):
        return section_data.get(key, default)
    return default


def _get_typed_value(data_dict: Dict, key: str, default: Any, target_type: type = str) -> Any:
    """Helper to get value from dict and cast to type, with logging for type errors."""
    value = data_dict.get(key, default)
    if value is None:
        return default
    try:
        if target_type == bool:
            if isinstance(value, bool):
                return value
            return str(value).lower() in ['true', '1', 't', 'y', 'yes']
        if target_type == list:
            if isinstance(value, (list, tuple)):
                return list(value)
            raise TypeError(f"expected a list, got {type(value).__name__}")
        return target_type(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"Config key '{key}' has value '{value}' which could not be converted to {target_type.__name__}. "
                       f"Using default: '{default}'. Error: {e}")
        return default


@dataclass
class AgentSettings:
    """Typed view of the configuration consumed by sessions, history, migrations and tools."""
    chat_history: bool = True
    history_folder: str = "gemini-scribe"
    history_subfolder: str = "History"
    agent_sessions_subfolder: str = "Agent-Sessions"
    archive_subfolder: str = "History-Archive"
    stop_on_tool_error: bool = True
    loop_detection_enabled: bool = True
    loop_detection_threshold: int = 3
    loop_detection_time_window_seconds: float = 30
    loop_detection_exempt_tools: List[str] = field(default_factory=list)
    temperature: float = 0.7
    top_p: float = 1.0
    model_defaults: Dict[str, str] = field(default_factory=dict)
    plugin_version: str = "unknown"

    @property
    def history_folder_path(self) -> str:
        return f"{self.history_folder}/{self.history_subfolder}"

    @property
    def agent_sessions_folder_path(self) -> str:
        return f"{self.history_folder}/{self.agent_sessions_subfolder}"

    @property
    def archive_folder_path(self) -> str:
        return f"{self.history_folder}/{self.archive_subfolder}"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AgentSettings":
        """Build settings from a loaded (merged) configuration dictionary."""
        defaults = cls()
        history = config.get("history", {}) or {}
        tools = config.get("tools", {}) or {}
        models = config.get("models", {}) or {}

        model_defaults = {
            role: str(models[role])
            for role in ("chat", "summary", "completions", "rewrite", "image")
            if models.get(role)
        }

        return cls(
            chat_history=_get_typed_value(history, "enabled", defaults.chat_history, bool),
            history_folder=_get_typed_value(history, "folder", defaults.history_folder, str).strip("/"),
            history_subfolder=_get_typed_value(history, "history_subfolder", defaults.history_subfolder, str),
            agent_sessions_subfolder=_get_typed_value(
                history, "agent_sessions_subfolder", defaults.agent_sessions_subfolder, str),
            archive_subfolder=_get_typed_value(history, "archive_subfolder", defaults.archive_subfolder, str),
            stop_on_tool_error=_get_typed_value(tools, "stop_on_tool_error", defaults.stop_on_tool_error, bool),
            loop_detection_enabled=_get_typed_value(
                tools, "loop_detection_enabled", defaults.loop_detection_enabled, bool),
            loop_detection_threshold=_get_typed_value(
                tools, "loop_detection_threshold", defaults.loop_detection_threshold, int),
            loop_detection_time_window_seconds=_get_typed_value(
                tools, "loop_detection_time_window_seconds", defaults.loop_detection_time_window_seconds, float),
            loop_detection_exempt_tools=_get_typed_value(tools, "loop_detection_exempt_tools", [], list),
            temperature=_get_typed_value(models, "temperature", defaults.temperature, float),
            top_p=_get_typed_value(models, "top_p", defaults.top_p, float),
            model_defaults=model_defaults,
        )


def load_agent_settings(force_reload: bool = False) -> AgentSettings:
    """Load the configuration file and return the typed settings."""
    return AgentSettings.from_config(load_cli_config_and_ensure_existence(force_reload=force_reload))

#
# End of config.py
#######################################################################################################################
