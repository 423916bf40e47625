"""Application bootstrap helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry

from .config import AppConfig, apply_overrides, load_config
from .exporter import SpeedtestCollector
from .logging_setup import configure_logging
from .measurements.cycle import CycleOrchestrator
from .measurements.provider import SpeedtestCliProvider
from .metrics import build_registry
from .web.app import create_web_app

__version__ = "0.3.0"


class ApplicationContext:
    """Holds shared singletons for the service."""

    def __init__(self, config: AppConfig):
        self.config = config
        configure_logging(config)
        self.metrics = build_registry()
        self.orchestrator = CycleOrchestrator(
            registry=self.metrics,
            provider_factory=lambda: SpeedtestCliProvider(config.speedtest),
            server_id=config.speedtest.server_id,
            server_fallback=config.speedtest.server_fallback,
        )
        self.collector = SpeedtestCollector(self.metrics, self.orchestrator)
        self.prometheus_registry = CollectorRegistry(auto_describe=True)
        self.prometheus_registry.register(self.collector)
        self.web_app = create_web_app(config=config, registry=self.prometheus_registry)


def bootstrap(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> ApplicationContext:
    """Load configuration and wire dependencies."""

    config_file = Path(config_path).resolve() if config_path else None
    config = load_config(str(config_file)) if config_file else load_config()
    return ApplicationContext(apply_overrides(config, overrides))
