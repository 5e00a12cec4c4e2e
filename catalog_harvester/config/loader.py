"""Configuration loading helpers for the harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import GlobalConfig, HarvestInput

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
INPUT_FILENAME = "INPUT.json"
HOME_ENV = "CATALOG_HARVESTER_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text) if text.strip() else {}
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot parse configuration file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the project home."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            global_cfg = _validate(GlobalConfig, _read_file(path), path)
        else:
            global_cfg = GlobalConfig()
            self.save_global_config(global_cfg)
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._global_cache = config

    def storage_dir(self) -> Path:
        return self.load_global_config().storage.resolved_dir(self.locator.project_root)

    # ------------------------------------------------------------------
    # Run input
    # ------------------------------------------------------------------
    def default_input_path(self) -> Path:
        return self.storage_dir() / "key_value_stores" / "default" / INPUT_FILENAME

    def load_input(self, path: Path | None = None, **overrides: Any) -> HarvestInput:
        """Read the run input, apply non-``None`` overrides and validate it.

        Without a file the overrides alone are not enough: an explicit input is
        required so that a run never starts on silently assumed settings.
        """

        source = path or self.default_input_path()
        if source.exists():
            if source.suffix not in CONFIG_EXTENSIONS:
                raise ConfigError(f"Unsupported input format: {source}")
            payload = _read_file(source)
        elif path is not None:
            raise ConfigError(f"Input file not found: {path}")
        else:
            payload = None

        provided = {name: value for name, value in overrides.items() if value is not None}
        if payload is None and not provided:
            raise ConfigError("Input is missing!")
        merged = dict(payload or {})
        for name, value in provided.items():
            _drop_aliases(merged, name)
            merged[name] = value
        return _validate(HarvestInput, merged, source)


_ALIASES = {
    "key_value_store": "keyValueStore",
    "page_size": "pageSize",
    "max_concurrent_requests": "maxConcurrentRequests",
}


def _drop_aliases(payload: dict, field_name: str) -> None:
    alias = _ALIASES.get(field_name)
    if alias:
        payload.pop(alias, None)


def _validate(model: type, payload: dict, origin: Path):
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {origin}: {exc}") from exc


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_EXTENSIONS", "HOME_ENV"]
