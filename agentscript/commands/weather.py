from __future__ import annotations
from typing import List, Optional

from ..cache import TTL_WEATHER, cached_get
from ..context import ExecutionContext
from ..schemas import ForecastResponse, GeocodeResponse, GeocodeResult, validate_payload
from .http import get_json

GEOCODE_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

WMO_CONDITIONS = {
    0: "Clear sky", 1: "Mainly clear", 2: "Partly cloudy", 3: "Overcast",
    45: "Fog", 48: "Depositing rime fog",
    51: "Light drizzle", 53: "Moderate drizzle", 55: "Dense drizzle",
    56: "Light freezing drizzle", 57: "Dense freezing drizzle",
    61: "Slight rain", 63: "Moderate rain", 65: "Heavy rain",
    66: "Light freezing rain", 67: "Heavy freezing rain",
    71: "Slight snow", 73: "Moderate snow", 75: "Heavy snow", 77: "Snow grains",
    80: "Slight rain showers", 81: "Moderate rain showers", 82: "Violent rain showers",
    85: "Slight snow showers", 86: "Heavy snow showers",
    95: "Thunderstorm", 96: "Thunderstorm with slight hail", 99: "Thunderstorm with heavy hail",
}

_DIRECTIONS = ["N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
               "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW"]


def wmo_code_to_condition(code: Optional[int]) -> str:
    if code is None:
        return "Unknown"
    return WMO_CONDITIONS.get(code, f"Unknown ({code})")


def degree_to_direction(deg: int) -> str:
    return _DIRECTIONS[((deg + 11) // 22) % 16]


def geocode(ctx: ExecutionContext, location: str) -> GeocodeResult:
    data = get_json(ctx, GEOCODE_URL, {"name": location, "count": 1, "language": "en", "format": "json"})
    found = validate_payload(GeocodeResponse, data, "geocoding")
    if not found.results:
        raise ValueError(f"could not find location {location!r}")
    return found.results[0]


def fetch_forecast(ctx: ExecutionContext, place: GeocodeResult) -> ForecastResponse:
    params = {
        "latitude": f"{place.latitude:.4f}",
        "longitude": f"{place.longitude:.4f}",
        "current": "temperature_2m,relative_humidity_2m,apparent_temperature,weather_code,wind_speed_10m,wind_direction_10m",
        "hourly": "precipitation_probability",
        "daily": "weather_code,temperature_2m_max,temperature_2m_min,precipitation_probability_max",
        "temperature_unit": "fahrenheit",
        "wind_speed_unit": "mph",
        "timezone": "auto",
        "forecast_days": 7,
        "forecast_hours": 24,
    }
    return validate_payload(ForecastResponse, get_json(ctx, FORECAST_URL, params), "forecast")


def format_weather(location: str, w: ForecastResponse) -> str:
    cur = w.current
    next_rain = next((p for p in w.hourly.precipitation_probability if p is not None), 0)
    lines: List[str] = [
        f"# Weather for {location}",
        "",
        "## Current Conditions",
        f"- **Temperature:** {cur.temperature_2m:.0f}°F (feels like {cur.apparent_temperature:.0f}°F)",
        f"- **Rain%:** {next_rain}% (next hours)",
        f"- **Condition:** {wmo_code_to_condition(cur.weather_code)}",
        f"- **Humidity:** {cur.relative_humidity_2m}%",
        f"- **Wind:** {cur.wind_speed_10m:.0f} mph {degree_to_direction(cur.wind_direction_10m)}",
    ]
    d = w.daily
    if d.time:
        lines += ["", "## 7-Day Forecast", "| Date | High | Low | Condition | Rain% |", "|------|------|-----|-----------|-------|"]
        for i, day in enumerate(d.time):
            hi = d.temperature_2m_max[i] if i < len(d.temperature_2m_max) else None
            lo = d.temperature_2m_min[i] if i < len(d.temperature_2m_min) else None
            code = d.weather_code[i] if i < len(d.weather_code) else None
            rain = d.precipitation_probability_max[i] if i < len(d.precipitation_probability_max) else None
            lines.append(
                f"| {day} | {_deg(hi)} | {_deg(lo)} | {wmo_code_to_condition(code)} | {rain if rain is not None else '-'}% |"
            )
    return "\n".join(lines) + "\n"


def _deg(v: Optional[float]) -> str:
    return "-" if v is None else f"{v:.0f}°F"


def weather(ctx: ExecutionContext, location: str, _arg2: str, input: str) -> str:
    """weather "city" - current conditions and 7-day forecast (Open-Meteo)."""
    location = (location or input).strip()
    if not location:
        raise ValueError("weather requires a location")

    def fetch() -> str:
        place = geocode(ctx, location)
        return format_weather(place.display_name, fetch_forecast(ctx, place))

    return cached_get(ctx.cache, "weather", location.lower(), TTL_WEATHER, fetch)
