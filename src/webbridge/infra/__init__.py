"""Infrastructure: configuration, settings and upstream generators."""

from .config import get_config, get_default_config, load_config, reset_config_cache, save_config
from .generator import OpenAICompatibleGenerator, TokenGenerator
from .settings import SettingsStore

__all__ = [
    "OpenAICompatibleGenerator",
    "SettingsStore",
    "TokenGenerator",
    "get_config",
    "get_default_config",
    "load_config",
    "reset_config_cache",
    "save_config",
]
