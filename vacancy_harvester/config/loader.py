"""Configuration loading helpers for vacancy-harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from ..engine.errors import ConfigurationError
from .models import HarvestConfig

CONFIG_FILENAME = "harvester.yaml"
HOME_ENV = "VACANCY_HARVESTER_HOME"

# Environment variable -> (section, field, caster)
_ENV_OVERRIDES = {
    "MONGO_URI": ("store", "mongo_uri", str),
    "HARVESTER_CONCURRENCY": (None, "concurrency", int),
    "HARVESTER_MAX_RETRIES": ("retry", "max_retries", int),
    "HARVESTER_RETRY_DELAY": ("retry", "retry_delay", float),
}


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if self.project_root is not None:
            root = Path(self.project_root).resolve()
        elif env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = Path(__file__).resolve().parents[2]
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Load the YAML config, layer environment overrides and validate."""

    def __init__(
        self,
        locator: ConfigLocator | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.locator = locator or ConfigLocator()
        self.environ = os.environ if environ is None else environ
        self._cache: HarvestConfig | None = None

    def load(self) -> HarvestConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            payload = _read_file(path)
        else:
            payload = HarvestConfig().model_dump(mode="json")
            _write_file(path, payload)
        self._apply_env(payload)
        try:
            config = HarvestConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc
        token = self.environ.get("BEARER_TOKEN", "").strip()
        if token:
            config.api.bearer_token = token
        self._cache = config
        return config

    def save(self, config: HarvestConfig) -> Path:
        path = self.locator.config_path()
        payload = config.model_dump(mode="json")
        payload.get("store", {}).pop("mongo_uri", None)
        _write_file(path, payload)
        self._cache = None
        return path

    def load_for_run(self) -> HarvestConfig:
        """Return the config, failing fast when credentials are absent."""

        config = self.load()
        missing = []
        if not config.api.bearer_token:
            missing.append("BEARER_TOKEN")
        if not config.store.mongo_uri:
            missing.append("MONGO_URI")
        if missing:
            raise ConfigurationError(f"{' and '.join(missing)} must be provided")
        return config

    # ------------------------------------------------------------------
    def _apply_env(self, payload: dict) -> None:
        for env_name, (section, field, caster) in _ENV_OVERRIDES.items():
            raw = self.environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                value = caster(raw.strip())
            except ValueError as exc:
                raise ConfigurationError(f"{env_name} is not a valid {caster.__name__}: {raw!r}") from exc
            target = payload if section is None else payload.setdefault(section, {})
            target[field] = value


__all__ = ["CONFIG_FILENAME", "ConfigLocator", "ConfigRepository", "HOME_ENV"]
