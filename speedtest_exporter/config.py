"""Configuration loading helpers for the speedtest exporter."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

NO_SERVER_PREFERENCE = -1
DEFAULT_CONFIG_NAME = "config.yaml"


@dataclass
class PathsConfig:
    logs_dir: Path


@dataclass
class SpeedtestConfig:
    server_id: int = NO_SERVER_PREFERENCE
    server_fallback: bool = False
    timeout: float = 10.0
    secure: bool = False
    source_address: Optional[str] = None


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 9090
    telemetry_path: str = "/metrics"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file_name: str = "exporter.log"
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    speedtest: SpeedtestConfig = field(default_factory=SpeedtestConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _as_path(base: Path, maybe_path: Optional[str]) -> Path:
    if not maybe_path:
        raise ValueError("Path configuration entries cannot be empty")
    path = (base / maybe_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def _read_yaml(source_path: Path) -> Dict[str, Any]:
    with source_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {source_path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load application configuration from a YAML file.

    An explicit ``path`` must exist. Without one, ``config.yaml`` in the
    working directory is used when present and built-in defaults otherwise.
    """

    if path:
        source_path = Path(path)
        if not source_path.exists():
            raise FileNotFoundError(f"Missing configuration file at {source_path}")
        root_dir = source_path.resolve().parent
        data = _read_yaml(source_path)
    else:
        root_dir = Path.cwd()
        default_path = root_dir / DEFAULT_CONFIG_NAME
        data = _read_yaml(default_path) if default_path.exists() else {}

    paths_data = data.get("paths") or {}
    speedtest_data = dict(data.get("speedtest") or {})
    if "server_id" in speedtest_data:
        speedtest_data["server_id"] = int(speedtest_data["server_id"])

    return AppConfig(
        root_dir=root_dir,
        paths=PathsConfig(logs_dir=_as_path(root_dir, paths_data.get("logs_dir", "logs"))),
        speedtest=SpeedtestConfig(**speedtest_data),
        web=WebConfig(**(data.get("web") or {})),
        logging=LoggingConfig(**(data.get("logging") or {})),
    )


def apply_overrides(config: AppConfig, overrides: Optional[Dict[str, Any]]) -> AppConfig:
    """Return a copy of ``config`` with command-line overrides applied.

    ``overrides`` uses flat keys (``server_id``, ``port``...); ``None``
    values mean "not given" and leave the file value in place.
    """

    if not overrides:
        return config

    def pick(names):
        return {name: overrides[name] for name in names if overrides.get(name) is not None}

    speedtest = replace(config.speedtest, **pick(("server_id", "server_fallback")))
    web = replace(config.web, **pick(("host", "port", "telemetry_path")))
    logging_config = config.logging
    if overrides.get("log_level"):
        logging_config = replace(config.logging, level=overrides["log_level"])

    return replace(config, speedtest=speedtest, web=web, logging=logging_config)
