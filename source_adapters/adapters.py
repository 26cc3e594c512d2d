"""
==============================================================================
HMPI Monitor - Source Adapters
==============================================================================
One small adapter per provider. Each adapter fetches its raw payload and
normalizes it into WaterQualityReading objects. collect() is the boundary used
by the aggregation gateway: it never raises, every network, HTTP or shape
error comes back as a failed ApiResponse.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import requests

from common.config import CPCB_BASE_URL, EPA_BASE_URL, Settings
from common.data_templates import SAFAR_CITIES, WAQI_CITIES
from common.models import (
    ApiResponse,
    EnvironmentalParameters,
    WaterQualityReading,
    utcnow,
)
from index_calculator.hmpi import (
    build_metal_readings,
    canonical_metal_name,
    compute_hmpi,
)
from source_adapters.conversions import (
    aqi_to_hmpi,
    epa_to_hmpi,
    estimate_metals_from_pollutants,
    particulate_to_hmpi,
    to_number,
)
from source_adapters.upstream import (
    OPENAQ_LABEL,
    SAFAR_LABEL,
    WAQI_LABEL,
    fetch_openaq_latest,
    fetch_safar_bulletin,
    fetch_waqi_feed,
    get_json,
)

logger = logging.getLogger(__name__)

CPCB_LABEL = "CPCB (Central Pollution Control Board)"
EPA_LABEL = "US EPA"
BACKUP_LABEL = "Custom Environmental API"

# AQS parameter code for ozone, California
EPA_PARAMETER = "44201"
EPA_STATE = "06"

SAFAR_DEFAULT_AQI = 50

# Errors raised while reading an unexpected payload shape
SHAPE_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError)


def parse_timestamp(value, default: datetime) -> datetime:
    """Epoch seconds or ISO-8601 text to an aware datetime; default when unparseable"""
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return default
    else:
        text = str(value).strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return default
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first(mapping: Dict[str, Any], *keys):
    """First present, non-empty value among keys"""
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


def reading_from_dict(data: Dict[str, Any], default_time: datetime) -> WaterQualityReading:
    """Build a reading from a payload already in canonical shape (backup API)"""
    concentrations = {}
    for metal in data.get("metals") or []:
        concentrations[metal["metal"]] = metal["value"]
    metals = build_metal_readings(concentrations)

    hmpi = to_number(data.get("hmpi"))
    if hmpi is None:
        hmpi = round(compute_hmpi(metals), 2)

    params = data.get("parameters") or {}
    return WaterQualityReading(
        location=data["location"],
        latitude=to_number(data.get("latitude")),
        longitude=to_number(data.get("longitude")),
        timestamp=parse_timestamp(data.get("timestamp"), default_time),
        hmpi=hmpi,
        metals=tuple(metals),
        parameters=EnvironmentalParameters(
            temperature=to_number(params.get("temperature")),
            ph=to_number(params.get("ph")),
            turbidity=to_number(params.get("turbidity")),
            dissolved_oxygen=to_number(_first(params, "dissolved_oxygen", "dissolvedOxygen")),
        ),
        synthetic=bool(data.get("synthetic", False)),
    )


class SourceAdapter:
    """
    Base adapter. Subclasses implement fetch() and normalize().

    Attributes:
        name: short provider name used in failures, logs and metrics
        label: human-readable provenance attached to successful results
    """

    name = "source"
    label = "Unknown source"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or Settings()
        self.session = session
        self.clock = clock

    @property
    def timeout(self) -> float:
        return self.settings.request_timeout

    def fetch(self) -> ApiResponse:
        raise NotImplementedError

    def normalize(self, raw) -> List[WaterQualityReading]:
        raise NotImplementedError

    def collect(self) -> ApiResponse:
        """Fetch and normalize, folding every failure into a failed ApiResponse"""
        try:
            response = self.fetch()
        except requests.RequestException as e:
            return ApiResponse.failure(self.name, f"{self.name} request failed: {e}")

        if not response.success:
            return ApiResponse.failure(self.name, response.error or f"Unknown {self.name} error")

        try:
            readings = self.normalize(response.data)
        except SHAPE_ERRORS as e:
            logger.warning(f"{self.name} payload could not be normalized: {e!r}")
            return ApiResponse.failure(self.name, f"{self.name} returned unexpected data: {e!r}")

        logger.debug(f"{self.name} normalized {len(readings)} readings")
        return ApiResponse(success=True, source=self.label, data=readings)

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class WaqiAdapter(SourceAdapter):
    """World Air Quality Index city feeds, fetched concurrently"""

    name = "WAQI"
    label = WAQI_LABEL

    def __init__(self, settings=None, session=None, clock=utcnow, cities=None):
        super().__init__(settings, session, clock)
        self.cities = list(cities or WAQI_CITIES)

    def _fetch_city(self, city: str) -> ApiResponse:
        return fetch_waqi_feed(city, self.settings.waqi_api_key, session=self.session, timeout=self.timeout)

    def fetch(self) -> ApiResponse:
        if not self.settings.waqi_api_key:
            return ApiResponse.failure(self.name, "WAQI API key not configured")

        with ThreadPoolExecutor(max_workers=len(self.cities)) as pool:
            results = list(pool.map(self._fetch_city, self.cities))

        payloads = [
            r.data for r in results
            if r.success and isinstance(r.data, dict) and r.data.get("status") == "ok"
        ]
        if not payloads:
            return ApiResponse.failure(self.name, "No valid WAQI data received")
        return ApiResponse(success=True, source=self.label, data=payloads)

    def normalize(self, raw) -> List[WaterQualityReading]:
        now = self.clock()
        readings = []
        for payload in raw:
            feed = payload["data"]
            city = feed.get("city") or {}
            geo = city.get("geo") or [None, None]
            iaqi = feed.get("iaqi") or {}

            def pollutant(key):
                return (iaqi.get(key) or {}).get("v")

            hmpi = aqi_to_hmpi(feed.get("aqi"))
            if hmpi is None:
                logger.debug(f"Skipping WAQI feed without a numeric AQI: {city.get('name')}")
                continue

            time_info = feed.get("time") or {}
            readings.append(WaterQualityReading(
                location=city.get("name") or "Unknown",
                latitude=to_number(geo[0]),
                longitude=to_number(geo[1]),
                timestamp=parse_timestamp(_first(time_info, "v", "iso", "s"), now),
                hmpi=hmpi,
                metals=tuple(estimate_metals_from_pollutants(
                    pollutant("pm25"), pollutant("pm10"), pollutant("so2")
                )),
                parameters=EnvironmentalParameters(temperature=to_number(pollutant("t"))),
            ))
        return readings


class SafarAdapter(SourceAdapter):
    """SAFAR city bulletins, fetched concurrently"""

    name = "SAFAR"
    label = SAFAR_LABEL

    def __init__(self, settings=None, session=None, clock=utcnow, cities=None):
        super().__init__(settings, session, clock)
        self.cities = dict(cities or SAFAR_CITIES)

    def _fetch_city(self, city: str):
        return city, fetch_safar_bulletin(city, session=self.session, timeout=self.timeout)

    def fetch(self) -> ApiResponse:
        with ThreadPoolExecutor(max_workers=len(self.cities)) as pool:
            results = list(pool.map(self._fetch_city, self.cities))

        bulletins = [
            {"city": city, "data": response.data}
            for city, response in results
            if response.success and isinstance(response.data, dict)
        ]
        if not bulletins:
            return ApiResponse.failure(self.name, "No SAFAR data available")
        return ApiResponse(success=True, source=self.label, data=bulletins)

    def normalize(self, raw) -> List[WaterQualityReading]:
        now = self.clock()
        readings = []
        for bulletin in raw:
            city = bulletin["city"]
            data = bulletin["data"]
            lat, lon = self.cities.get(city, (None, None))

            aqi = _first(data, "overall_aqi", "aqi")
            hmpi = aqi_to_hmpi(aqi if aqi is not None else SAFAR_DEFAULT_AQI)
            metals = estimate_metals_from_pollutants(
                _first(data, "pm25", "PM2.5"),
                _first(data, "pm10", "PM10"),
                _first(data, "so2", "SO2"),
            )
            readings.append(WaterQualityReading(
                location=f"{city.capitalize()}, India",
                latitude=lat,
                longitude=lon,
                timestamp=now,
                hmpi=hmpi,
                metals=tuple(metals),
            ))
        return readings


class OpenAQAdapter(SourceAdapter):
    """OpenAQ latest measurements, grouped by location"""

    name = "OpenAQ"
    label = OPENAQ_LABEL

    def fetch(self) -> ApiResponse:
        return fetch_openaq_latest(
            country=self.settings.openaq_country,
            limit=self.settings.openaq_limit,
            session=self.session,
            timeout=self.timeout,
        )

    @staticmethod
    def _measurements(entry: Dict[str, Any]) -> List[Dict[str, Any]]:
        # v2 /latest nests measurements; flat entries carry their own value
        if isinstance(entry.get("measurements"), list):
            return entry["measurements"]
        return [entry]

    def normalize(self, raw) -> List[WaterQualityReading]:
        now = self.clock()
        groups: Dict[str, List[Dict[str, Any]]] = {}
        for entry in raw.get("results") or []:
            key = entry.get("location") or entry.get("city")
            groups.setdefault(key, []).append(entry)

        readings = []
        for location, entries in groups.items():
            measurements = [m for entry in entries for m in self._measurements(entry)]
            hmpi = particulate_to_hmpi(m.get("value") for m in measurements)
            if hmpi is None:
                continue

            by_parameter: Dict[str, List[float]] = {}
            for m in measurements:
                value = to_number(m.get("value"))
                if value is not None:
                    by_parameter.setdefault(str(m.get("parameter", "")).lower(), []).append(value)

            def mean_of(parameter):
                values = by_parameter.get(parameter)
                return sum(values) / len(values) if values else None

            first = entries[0]
            coordinates = first.get("coordinates") or {}
            date = first.get("date") or measurements[0].get("lastUpdated") or {}
            stamp = date.get("utc") if isinstance(date, dict) else date
            readings.append(WaterQualityReading(
                location=location or "Unknown",
                latitude=to_number(coordinates.get("latitude")),
                longitude=to_number(coordinates.get("longitude")),
                timestamp=parse_timestamp(stamp, now),
                hmpi=hmpi,
                metals=tuple(estimate_metals_from_pollutants(mean_of("pm25"), mean_of("pm10"), mean_of("so2"))),
            ))
        return readings


class CpcbAdapter(SourceAdapter):
    """Central Pollution Control Board stations reporting metal concentrations directly"""

    name = "CPCB"
    label = CPCB_LABEL

    def fetch(self) -> ApiResponse:
        return get_json(
            f"{CPCB_BASE_URL}/real-time-data",
            provider=self.name,
            source=self.label,
            session=self.session,
            timeout=self.timeout,
        )

    def normalize(self, raw) -> List[WaterQualityReading]:
        now = self.clock()
        readings = []
        for station in raw.get("stations") or []:
            parameters = station.get("parameters") or {}
            concentrations = {k: v for k, v in parameters.items() if canonical_metal_name(k)}
            metals = build_metal_readings(concentrations)
            readings.append(WaterQualityReading(
                location=station.get("stationName") or station.get("name") or "Unknown",
                latitude=to_number(station.get("latitude")),
                longitude=to_number(station.get("longitude")),
                timestamp=parse_timestamp(station.get("lastUpdate"), now),
                hmpi=round(compute_hmpi(metals), 2),
                metals=tuple(metals),
                parameters=EnvironmentalParameters(
                    temperature=to_number(station.get("temperature")),
                    ph=to_number(station.get("ph")),
                    turbidity=to_number(station.get("turbidity")),
                    dissolved_oxygen=to_number(station.get("dissolvedOxygen")),
                ),
            ))
        return readings


class EpaAdapter(SourceAdapter):
    """US EPA AQS daily samples, used as a reference network"""

    name = "EPA"
    label = EPA_LABEL

    def fetch(self) -> ApiResponse:
        if not (self.settings.epa_email and self.settings.epa_key):
            return ApiResponse.failure(self.name, "EPA credentials not configured")

        today = self.clock().date()
        return get_json(
            f"{EPA_BASE_URL}/sampleData/byState",
            provider=self.name,
            source=self.label,
            params={
                "email": self.settings.epa_email,
                "key": self.settings.epa_key,
                "param": EPA_PARAMETER,
                "bdate": (today - timedelta(days=1)).strftime("%Y%m%d"),
                "edate": today.strftime("%Y%m%d"),
                "state": EPA_STATE,
            },
            session=self.session,
            timeout=self.timeout,
        )

    def normalize(self, raw) -> List[WaterQualityReading]:
        now = self.clock()
        readings = []
        for sample in raw.get("Data") or []:
            hmpi = epa_to_hmpi(sample.get("sample_measurement"))
            if hmpi is None:
                continue
            site = sample.get("local_site_name") or sample.get("county_name")
            stamp = None
            if sample.get("date_local"):
                stamp = f"{sample['date_local']}T{sample.get('time_local') or '00:00'}"
            readings.append(WaterQualityReading(
                location=f"{site}, {sample.get('state_name')}",
                latitude=to_number(sample.get("latitude")),
                longitude=to_number(sample.get("longitude")),
                timestamp=parse_timestamp(stamp, now),
                hmpi=hmpi,
            ))
        return readings


class BackupApiAdapter(SourceAdapter):
    """Custom monitoring service returning readings in canonical shape"""

    name = "Backup API"
    label = BACKUP_LABEL

    def fetch(self) -> ApiResponse:
        if not self.settings.backup_api_url:
            return ApiResponse.failure(self.name, "Backup API URL not configured")

        headers = {}
        if self.settings.waqi_api_key:
            headers["Authorization"] = f"Bearer {self.settings.waqi_api_key}"
        return get_json(
            f"{self.settings.backup_api_url}/water-quality/latest",
            provider=self.name,
            source=self.label,
            headers=headers,
            session=self.session,
            timeout=self.timeout,
        )

    def normalize(self, raw) -> List[WaterQualityReading]:
        now = self.clock()
        return [reading_from_dict(item, now) for item in raw.get("readings") or []]


def default_adapters(
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> List[SourceAdapter]:
    """Adapters in default priority order"""
    settings = settings or Settings()
    return [
        adapter_cls(settings=settings, session=session)
        for adapter_cls in (WaqiAdapter, SafarAdapter, OpenAQAdapter, CpcbAdapter, EpaAdapter, BackupApiAdapter)
    ]
