"""
配置管理
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.webbridge/config.yaml"


def _resolve_path(config_path: Optional[str]) -> Path:
    return Path(config_path or DEFAULT_CONFIG_PATH).expanduser()


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay *override* onto a copy of *base*."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    加载配置文件，缺失的键使用默认值补齐

    Args:
        config_path: 配置文件路径，如果为 None 则使用默认路径

    Returns:
        配置字典
    """
    path = _resolve_path(config_path)

    if not path.exists():
        logger.warning(f"配置文件不存在: {path}，使用默认配置")
        return get_default_config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"配置已加载: {path}")
        return _merge(get_default_config(), config)
    except Exception as e:
        logger.error(f"加载配置失败: {e}")
        return get_default_config()


def get_default_config() -> Dict[str, Any]:
    """
    获取默认配置

    Returns:
        默认配置字典
    """
    return {
        "bridge": {
            "streaming": {
                "buffer_ms": 5000,
                "debounce_ms": 100,
            },
            "web": {
                "host": "127.0.0.1",
                "port": 8765,
                "api_key": "",
            },
            "generator": {
                "api_base": "https://openrouter.ai/api/v1",
                "api_key_env": "OPENROUTER_API_KEY",
                "timeout_seconds": 60,
                "max_tokens": 0,
            },
            "models": {
                "assistant": "anthropic/claude-3.5-sonnet",
                "dictionary": "anthropic/claude-3.5-haiku",
                "context": "anthropic/claude-3.5-haiku",
            },
            "model_options": [
                {"id": "anthropic/claude-3.5-sonnet", "label": "Claude 3.5 Sonnet"},
                {"id": "anthropic/claude-3.5-haiku", "label": "Claude 3.5 Haiku"},
                {"id": "openai/gpt-4o-mini", "label": "GPT-4o mini"},
            ],
            "settings": {
                "includeCraftGuides": True,
                "temperature": 0.7,
                "maxTokens": 10000,
            },
        },
        "logging": {
            "level": "INFO",
        },
    }


def save_config(config: Dict[str, Any], config_path: Optional[str] = None):
    """
    保存配置文件

    Args:
        config: 配置字典
        config_path: 配置文件路径，如果为 None 则使用默认路径
    """
    path = _resolve_path(config_path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, allow_unicode=True)
        logger.info(f"配置已保存: {path}")
    except Exception as e:
        logger.error(f"保存配置失败: {e}")
        raise


# ---------------------------------------------------------------------------
# Module-level cached config
# ---------------------------------------------------------------------------

_cached_config: Optional[Dict[str, Any]] = None
_cached_config_path: Optional[str] = None


def get_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return a cached config dict, loading from disk on first call.

    If *config_path* differs from the previously cached path the config is
    reloaded automatically.
    """
    global _cached_config, _cached_config_path
    if _cached_config is None or config_path != _cached_config_path:
        _cached_config = load_config(config_path)
        _cached_config_path = config_path
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (mainly for tests)."""
    global _cached_config, _cached_config_path
    _cached_config = None
    _cached_config_path = None
