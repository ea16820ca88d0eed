"""Configuration and manifest loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from core.errors import ConfigError
from core.settings import AppConfig, BuildManifest

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    runner: dict[str, Any] = {}
    if "WAVEBUILD_CONCURRENCY" in environ:
        raw = environ["WAVEBUILD_CONCURRENCY"]
        try:
            runner["concurrency_limit"] = int(raw)
        except ValueError as exc:
            raise ConfigError(f"WAVEBUILD_CONCURRENCY must be an integer, got {raw!r}") from exc
    if "WAVEBUILD_FAIL_FAST" in environ:
        raw = environ["WAVEBUILD_FAIL_FAST"].strip().lower()
        if raw not in _TRUE | _FALSE:
            raise ConfigError(f"WAVEBUILD_FAIL_FAST must be a boolean, got {raw!r}")
        runner["fail_fast"] = raw in _TRUE
    return {"runner": runner} if runner else {}


def load_effective_config(root: Path, environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Merge ``config/default.yaml``, ``config/local.yaml`` and environment overrides."""
    config_dir = root / "config"
    merged = merge_dicts(load_yaml(config_dir / "default.yaml"), load_yaml(config_dir / "local.yaml"))
    return merge_dicts(merged, _env_overrides(dict(os.environ if environ is None else environ)))


def load_app_config(root: Path, environ: dict[str, str] | None = None) -> AppConfig:
    raw = load_effective_config(root, environ)
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration under {root / 'config'}:\n{exc}") from exc


def load_manifest(root: Path) -> BuildManifest:
    """Load ``config/manifest.yaml`` into an immutable manifest."""
    path = root / "config" / "manifest.yaml"
    if not path.exists():
        raise ConfigError(f"Build manifest not found: {path}")
    try:
        return BuildManifest.model_validate(load_yaml(path))
    except ValidationError as exc:
        raise ConfigError(f"Invalid build manifest {path}:\n{exc}") from exc


def ensure_runtime_dirs(root: Path, config: AppConfig) -> dict[str, Path]:
    """Ensure dist, tmp and log directories exist and return resolved paths."""
    paths_cfg = config.paths
    src_dir = (root / paths_cfg.src_dir).resolve()
    dist_dir = (root / paths_cfg.dist_dir).resolve()
    tmp_dir = (root / paths_cfg.tmp_dir).resolve()
    log_dir = (root / paths_cfg.log_dir).resolve()
    transition_log = (root / paths_cfg.transition_log).resolve()

    dist_dir.mkdir(parents=True, exist_ok=True)
    tmp_dir.mkdir(parents=True, exist_ok=True)
    log_dir.mkdir(parents=True, exist_ok=True)
    transition_log.parent.mkdir(parents=True, exist_ok=True)

    return {
        "root": root.resolve(),
        "src_dir": src_dir,
        "dist_dir": dist_dir,
        "tmp_dir": tmp_dir,
        "log_dir": log_dir,
        "transition_log": transition_log,
    }
