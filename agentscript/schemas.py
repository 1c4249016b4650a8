"""Pydantic schemas for the remote APIs behind the built-in commands.

Responses are validated before formatting; a payload that does not match
raises SchemaValidationError, which the runtime reports as a command failure.
"""

from __future__ import annotations
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import SchemaValidationError

M = TypeVar("M", bound=BaseModel)


class GeocodeResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    latitude: float
    longitude: float
    country: Optional[str] = None
    admin1: Optional[str] = None

    @property
    def display_name(self) -> str:
        parts = [self.name] + [p for p in (self.admin1, self.country) if p]
        return ", ".join(parts)


class GeocodeResponse(BaseModel):
    results: List[GeocodeResult] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> List[Any]:
        """Open-Meteo omits `results` entirely when nothing matches."""
        return v or []


class CurrentWeather(BaseModel):
    model_config = ConfigDict(extra="ignore")

    temperature_2m: float
    apparent_temperature: float
    relative_humidity_2m: int = 0
    weather_code: int = 0
    wind_speed_10m: float = 0.0
    wind_direction_10m: int = 0


class HourlyWeather(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time: List[str] = Field(default_factory=list)
    precipitation_probability: List[Optional[int]] = Field(default_factory=list)


class DailyWeather(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time: List[str] = Field(default_factory=list)
    weather_code: List[Optional[int]] = Field(default_factory=list)
    temperature_2m_max: List[Optional[float]] = Field(default_factory=list)
    temperature_2m_min: List[Optional[float]] = Field(default_factory=list)
    precipitation_probability_max: List[Optional[int]] = Field(default_factory=list)


class ForecastResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current: CurrentWeather
    hourly: HourlyWeather = Field(default_factory=HourlyWeather)
    daily: DailyWeather = Field(default_factory=DailyWeather)


class CoinMarket(BaseModel):
    """One row of CoinGecko's /coins/markets endpoint."""
    model_config = ConfigDict(extra="ignore")

    id: str
    symbol: str
    name: str
    current_price: float
    price_change_percentage_24h: Optional[float] = None
    market_cap: Optional[float] = None
    market_cap_rank: Optional[int] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None

    @field_validator("symbol", mode="before")
    @classmethod
    def upper_symbol(cls, v: Any) -> str:
        return str(v).upper()


def validate_payload(model: Type[M], data: Any, source: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(f"{source} response failed schema validation: {e}") from e


def validate_list(model: Type[M], data: Any, source: str) -> List[M]:
    if not isinstance(data, list):
        raise SchemaValidationError(f"{source} response failed schema validation: expected a list, got {type(data).__name__}")
    return [validate_payload(model, item, source) for item in data]
