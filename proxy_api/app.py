"""
==============================================================================
HMPI Monitor - Environmental Proxy API
==============================================================================
Flask app forwarding dashboard requests to the upstream providers:
- GET /environmental/waqi?city=<name>
- GET /environmental/safar?city=<name>
- GET /environmental/openaq?country=<code>&limit=<n>
- GET /health

Every environmental route answers {success, data, source, error?}; upstream
failures are returned with HTTP 500.
==============================================================================
"""

import logging
from typing import Optional

import requests
from flask import Flask, jsonify, request
from flask_cors import CORS

from common.config import Settings
from common.models import ApiResponse, utcnow
from common.observability import SOURCE_REQUESTS, configure_logging
from source_adapters.upstream import fetch_openaq_latest, fetch_safar_bulletin, fetch_waqi_feed

logger = logging.getLogger(__name__)

DEFAULT_CITY = "delhi"


def _respond(response: ApiResponse, provider: str):
    outcome = "success" if response.success else "failure"
    SOURCE_REQUESTS.labels(source=f"proxy:{provider}", outcome=outcome).inc()
    if not response.success:
        logger.warning(f"❌ {provider} proxy request failed: {response.error}")
        return jsonify(response.to_dict()), 500
    return jsonify(response.to_dict())


def create_app(settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> Flask:
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    CORS(app, resources={r"/environmental/*": {"origins": "*"}, r"/health": {"origins": "*"}})

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({
            "status": "healthy",
            "service": "hmpi-proxy",
            "waqi_configured": bool(settings.waqi_api_key),
            "timestamp": utcnow().isoformat(),
        })

    @app.route("/environmental/waqi", methods=["GET"])
    def waqi():
        city = request.args.get("city", DEFAULT_CITY)
        return _respond(
            fetch_waqi_feed(city, settings.waqi_api_key, session=session, timeout=settings.request_timeout),
            "WAQI",
        )

    @app.route("/environmental/safar", methods=["GET"])
    def safar():
        city = request.args.get("city", DEFAULT_CITY)
        return _respond(
            fetch_safar_bulletin(city, session=session, timeout=settings.request_timeout),
            "SAFAR",
        )

    @app.route("/environmental/openaq", methods=["GET"])
    def openaq():
        country = request.args.get("country", settings.openaq_country)
        try:
            limit = int(request.args.get("limit", settings.openaq_limit))
        except ValueError:
            return jsonify({"success": False, "source": "OpenAQ", "data": None,
                            "error": "limit must be an integer"}), 400
        return _respond(
            fetch_openaq_latest(country, limit, session=session, timeout=settings.request_timeout),
            "OpenAQ",
        )

    return app


def main():
    settings = Settings.from_env()
    configure_logging("hmpi-proxy", settings.log_level)
    app = create_app(settings, requests.Session())
    logger.info(f"🚀 Proxy API listening on port {settings.proxy_port}")
    app.run(host="0.0.0.0", port=settings.proxy_port)


if __name__ == "__main__":
    main()
