"""
Runtime configuration for the HMPI Monitor services.

Values come from environment variables, optionally loaded from a .env file.
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

FALLBACK_SOURCE_LABEL = "Simulated Data (Fallback)"
DISCONNECTED_SOURCE_LABEL = "Disconnected"
USER_AGENT = "HMPI-Monitor/1.0"

# Upstream endpoints
WAQI_BASE_URL = "https://api.waqi.info/feed"
SAFAR_BASE_URL = "https://safar.tropmet.res.in/assets/services/data"
OPENAQ_BASE_URL = "https://api.openaq.org/v2/latest"
CPCB_BASE_URL = "https://app.cpcbccr.com/ccr"
EPA_BASE_URL = "https://aqs.epa.gov/data/api"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Recognized configuration options"""

    waqi_api_key: Optional[str] = None
    refresh_interval_ms: int = 30000
    enable_simulation_fallback: bool = True
    backup_api_url: Optional[str] = None
    request_timeout: float = 8.0
    openaq_country: str = "IN"
    openaq_limit: int = 50
    epa_email: Optional[str] = None
    epa_key: Optional[str] = None
    max_history: int = 1000
    max_alerts: int = 50
    locations_file: Optional[str] = None
    metrics_port: int = 8001
    proxy_port: int = 5000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            waqi_api_key=os.environ.get("WAQI_API_KEY") or None,
            refresh_interval_ms=_env_int("DATA_REFRESH_INTERVAL", 30000),
            enable_simulation_fallback=_env_bool("ENABLE_SIMULATION_FALLBACK", True),
            backup_api_url=(os.environ.get("BACKUP_API_URL") or "").rstrip("/") or None,
            request_timeout=_env_float("REQUEST_TIMEOUT_SECONDS", 8.0),
            openaq_country=os.environ.get("OPENAQ_COUNTRY", "IN"),
            openaq_limit=_env_int("OPENAQ_LIMIT", 50),
            epa_email=os.environ.get("EPA_EMAIL") or None,
            epa_key=os.environ.get("EPA_KEY") or None,
            max_history=_env_int("MAX_HISTORY", 1000),
            max_alerts=_env_int("MAX_ALERTS", 50),
            locations_file=os.environ.get("LOCATIONS_FILE") or None,
            metrics_port=_env_int("METRICS_PORT", 8001),
            proxy_port=_env_int("PROXY_PORT", 5000),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
        settings.validate()
        return settings

    def validate(self):
        if self.refresh_interval_ms <= 0:
            raise ValueError("DATA_REFRESH_INTERVAL must be positive")
        if self.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        if self.max_history <= 0 or self.max_alerts <= 0:
            raise ValueError("MAX_HISTORY and MAX_ALERTS must be positive")

    @property
    def refresh_interval_seconds(self) -> float:
        return self.refresh_interval_ms / 1000.0
