from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from typing import Any

import yaml


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class PathsConfig:
    app_root: str
    data_dir: str
    state_db: str

    def data_folder(self) -> str:
        return os.path.normpath(os.path.join(self.app_root, self.data_dir))

    def relative_data_folder(self) -> str:
        return os.path.relpath(self.data_folder(), os.path.abspath(self.app_root))

    def resolve(self, stored: str) -> str:
        return os.path.join(self.app_root, stored)


@dataclass(frozen=True)
class ProposalsConfig:
    votes_needed_for_success: int


@dataclass(frozen=True)
class Config:
    paths: PathsConfig
    proposals: ProposalsConfig


DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "app_root": ".",
        "data_dir": "vendor/sensemaking-tools/data",
        "state_db": "storage/sensemaking.sqlite3",
    },
    "proposals": {
        "votes_needed_for_success": 53726,
    },
}

_ENV_OVERRIDES = {
    "SM_APP_ROOT": ("paths", "app_root"),
    "SM_DATA_DIR": ("paths", "data_dir"),
    "SM_STATE_DB": ("paths", "state_db"),
}


def load_config(path: str | None = None) -> Config:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if path:
        cfg = _merge(cfg, _read_yaml(path))
    _apply_env_overrides(cfg)
    errors = validate_config(cfg)
    if errors:
        raise ConfigError("Invalid config: " + "; ".join(errors))
    return build_config(cfg)


def _read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a mapping")
    return data


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(base[key], value)
        else:
            base[key] = value
    return base


def _apply_env_overrides(cfg: dict[str, Any]) -> None:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "").strip()
        if value and isinstance(cfg.get(section), dict):
            cfg[section][key] = value


def validate_config(cfg: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _validate_dict(cfg, DEFAULT_CONFIG, "config", errors)
    return errors


def _validate_dict(value: dict[str, Any], schema: dict[str, Any], path: str, errors: list[str]) -> None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be an object")
        return
    for key in schema.keys():
        if key not in value:
            errors.append(f"missing {path}.{key}")
    for key in value.keys():
        if key not in schema:
            errors.append(f"unknown {path}.{key}")
    for key, default in schema.items():
        if key not in value:
            continue
        _validate_value(value[key], default, f"{path}.{key}", errors)


def _validate_value(value: Any, default: Any, path: str, errors: list[str]) -> None:
    if isinstance(default, dict):
        _validate_dict(value, default, path, errors)
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
        return
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{path} must be an integer")
        elif value <= 0:
            errors.append(f"{path} must be positive")
        return
    if isinstance(default, str):
        if not isinstance(value, str):
            errors.append(f"{path} must be a string")
        elif not value.strip():
            errors.append(f"{path} must not be empty")
        return


def build_config(cfg: dict[str, Any]) -> Config:
    paths_cfg = cfg.get("paths") or {}
    proposals_cfg = cfg.get("proposals") or {}

    app_root = os.path.abspath(str(paths_cfg.get("app_root")))
    paths = PathsConfig(
        app_root=app_root,
        data_dir=str(paths_cfg.get("data_dir")),
        state_db=os.path.join(app_root, str(paths_cfg.get("state_db"))),
    )
    proposals = ProposalsConfig(
        votes_needed_for_success=int(proposals_cfg.get("votes_needed_for_success")),
    )
    return Config(paths=paths, proposals=proposals)
