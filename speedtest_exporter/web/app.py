"""Flask application factory and HTTP routes."""

from __future__ import annotations

import logging

from flask import Flask, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from ..config import AppConfig

LOGGER = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>Speedtest Exporter</title></head>
<body>
<h1>Speedtest Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def create_web_app(config: AppConfig, registry: CollectorRegistry) -> Flask:
    app = Flask(__name__)
    telemetry_path = config.web.telemetry_path

    @app.route("/")
    def index():
        return Response(LANDING_PAGE.format(path=telemetry_path), mimetype="text/html")

    def metrics():
        LOGGER.info("Scrape received, running speedtest")
        return Response(generate_latest(registry), content_type=CONTENT_TYPE_LATEST)

    app.add_url_rule(telemetry_path, endpoint="metrics", view_func=metrics, methods=["GET"])

    @app.get("/api/status")
    def api_status():
        return jsonify(
            {
                "server_id": config.speedtest.server_id,
                "server_fallback": config.speedtest.server_fallback,
                "telemetry_path": telemetry_path,
            }
        )

    return app
