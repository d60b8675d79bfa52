"""Settings store backed by the YAML config file."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from .config import load_config, save_config

logger = logging.getLogger(__name__)


class SettingsStore:
    """Read/update the UI-visible parts of the config.

    ``config_path=None`` with ``persist=False`` keeps everything in memory,
    which is what tests and ad-hoc hosts use.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_path: Optional[str] = None,
        persist: bool = True,
    ):
        self._config_path = config_path
        self._persist = persist
        self._config = copy.deepcopy(config) if config is not None else load_config(config_path)

    @property
    def config(self) -> Dict[str, Any]:
        return self._config

    def _bridge(self) -> Dict[str, Any]:
        return self._config.setdefault("bridge", {})

    def get_settings(self) -> Dict[str, Any]:
        return dict(self._bridge().get("settings") or {})

    def update_setting(self, key: str, value: Any) -> Dict[str, Any]:
        settings = self._bridge().setdefault("settings", {})
        if key not in settings:
            raise KeyError(f"Unknown setting: {key}")
        settings[key] = value
        self._save()
        logger.info("Setting updated: %s", key)
        return dict(settings)

    def get_models(self) -> Dict[str, str]:
        return dict(self._bridge().get("models") or {})

    def get_model_options(self) -> List[Dict[str, Any]]:
        return list(self._bridge().get("model_options") or [])

    def set_model(self, scope: str, model_id: str) -> Dict[str, str]:
        models = self._bridge().setdefault("models", {})
        if scope not in models:
            raise KeyError(f"Unknown model scope: {scope}")
        if not model_id:
            raise ValueError("Model id must not be empty")
        models[scope] = model_id
        self._save()
        logger.info("Model for %s set to %s", scope, model_id)
        return dict(models)

    def _save(self) -> None:
        if self._persist:
            save_config(self._config, self._config_path)
