"""
Upstream requests for the environmental data providers.

Each function returns an ApiResponse carrying the raw provider JSON on success.
Failures (missing key, unreachable host, non-2xx status, invalid JSON) are
returned as failed responses, never raised.
"""
import logging
from typing import Any, Dict, Optional

import requests

from common.config import (
    OPENAQ_BASE_URL,
    SAFAR_BASE_URL,
    USER_AGENT,
    WAQI_BASE_URL,
)
from common.models import ApiResponse

logger = logging.getLogger(__name__)

WAQI_LABEL = "WAQI (World Air Quality Index)"
SAFAR_LABEL = "SAFAR (Ministry of Earth Sciences, India)"
OPENAQ_LABEL = "OpenAQ Global Network"

DEFAULT_TIMEOUT = 8.0


def get_json(
    url: str,
    provider: str,
    source: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ApiResponse:
    """GET a JSON document, folding every failure into a failed ApiResponse"""
    http = session or requests
    request_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    if headers:
        request_headers.update(headers)

    try:
        response = http.get(url, params=params, headers=request_headers, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"{provider} request failed: {e}")
        return ApiResponse.failure(provider, f"{provider} request failed: {e}")

    if not 200 <= response.status_code < 300:
        logger.warning(f"{provider} API error: {response.status_code}")
        return ApiResponse.failure(provider, f"{provider} API error: {response.status_code}")

    try:
        payload = response.json()
    except ValueError as e:
        logger.warning(f"{provider} returned invalid JSON: {e}")
        return ApiResponse.failure(provider, f"{provider} returned invalid JSON: {e}")

    return ApiResponse(success=True, source=source, data=payload)


def fetch_waqi_feed(
    city: str,
    api_key: Optional[str],
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ApiResponse:
    if not api_key:
        return ApiResponse.failure("WAQI", "WAQI API key not configured")
    return get_json(
        f"{WAQI_BASE_URL}/{city}/",
        provider="WAQI",
        source=WAQI_LABEL,
        params={"token": api_key},
        session=session,
        timeout=timeout,
    )


def fetch_safar_bulletin(
    city: str,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ApiResponse:
    return get_json(
        f"{SAFAR_BASE_URL}/safar_{city}_aqi_bulletin.json",
        provider="SAFAR",
        source=SAFAR_LABEL,
        headers={"Referer": "https://safar.tropmet.res.in/"},
        session=session,
        timeout=timeout,
    )


def fetch_openaq_latest(
    country: str = "IN",
    limit: int = 50,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ApiResponse:
    return get_json(
        OPENAQ_BASE_URL,
        provider="OpenAQ",
        source=OPENAQ_LABEL,
        params={"country": country, "parameter": "pm25,pm10", "limit": limit},
        session=session,
        timeout=timeout,
    )
