"""Entry point for running the speedtest exporter."""

from __future__ import annotations

import argparse
import logging

from speedtest_exporter import bootstrap

LOGGER = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prometheus exporter for speedtest.net measurements")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--host", default=None, help="Override listen host")
    parser.add_argument("--port", type=int, default=None, help="Override listen port")
    parser.add_argument("--telemetry-path", default=None, help="Path under which to expose metrics")
    parser.add_argument(
        "--server-id",
        type=int,
        default=None,
        help="Speedtest.net server ID to test against, -1 picks the closest server",
    )
    parser.add_argument(
        "--server-fallback",
        action="store_true",
        default=None,
        help="Fall back to the closest server if the chosen one is unavailable",
    )
    parser.add_argument("--log-level", default=None, help="Override logging level")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    overrides = {
        "host": args.host,
        "port": args.port,
        "telemetry_path": args.telemetry_path,
        "server_id": args.server_id,
        "server_fallback": args.server_fallback,
        "log_level": args.log_level,
    }
    context = bootstrap(args.config, overrides)

    config = context.config
    LOGGER.info(
        "Listening on %s:%s%s (server_id=%s, server_fallback=%s)",
        config.web.host,
        config.web.port,
        config.web.telemetry_path,
        config.speedtest.server_id,
        config.speedtest.server_fallback,
    )
    context.web_app.run(host=config.web.host, port=config.web.port, debug=args.debug)


if __name__ == "__main__":
    main()
