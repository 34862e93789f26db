"""Weather card: current conditions from Open-Meteo (no API key needed)."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Tuple

import httpx

from card_engines.cards.models import (
    ActionContext,
    ActionDefinition,
    ActionResult,
    CardDefinition,
    FileTemplate,
    GetDataContext,
    GetDataResult,
    InputDefinition,
)

logger = logging.getLogger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,apparent_temperature,weather_code,wind_speed_10m"

# Used when the upstream API is unreachable.
DEMO_WEATHER = {
    "temperature": 22,
    "feels_like": 20,
    "humidity": 65,
    "wind_speed": 12,
    "weather_code": 1,
}

WMO_CODES: Dict[int, Tuple[str, str]] = {
    0: ("☀️", "Clear sky"),
    1: ("🌤️", "Mainly clear"),
    2: ("⛅", "Partly cloudy"),
    3: ("☁️", "Overcast"),
    45: ("🌫️", "Foggy"),
    48: ("🌫️", "Depositing rime fog"),
    51: ("🌦️", "Light drizzle"),
    53: ("🌦️", "Moderate drizzle"),
    55: ("🌧️", "Dense drizzle"),
    61: ("🌧️", "Slight rain"),
    63: ("🌧️", "Moderate rain"),
    65: ("🌧️", "Heavy rain"),
    71: ("🌨️", "Slight snowfall"),
    73: ("🌨️", "Moderate snowfall"),
    75: ("❄️", "Heavy snowfall"),
    80: ("🌦️", "Rain showers"),
    81: ("🌧️", "Moderate rain showers"),
    82: ("⛈️", "Violent rain showers"),
    95: ("⛈️", "Thunderstorm"),
    96: ("⛈️", "Thunderstorm with hail"),
    99: ("⛈️", "Thunderstorm with heavy hail"),
}


def describe_weather_code(code: int) -> Tuple[str, str]:
    return WMO_CODES.get(code, ("🌡️", f"Weather code {code}"))


async def fetch_current_weather(latitude: float, longitude: float, units: str) -> Dict[str, Any]:
    params = {
        "latitude": str(latitude),
        "longitude": str(longitude),
        "current": CURRENT_FIELDS,
        "temperature_unit": units,
        "wind_speed_unit": "kmh",
    }
    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await client.get(OPEN_METEO_URL, params=params)
        resp.raise_for_status()
        current = resp.json()["current"]
    return {
        "temperature": current["temperature_2m"],
        "feels_like": current["apparent_temperature"],
        "humidity": current["relative_humidity_2m"],
        "wind_speed": current["wind_speed_10m"],
        "weather_code": current["weather_code"],
    }


async def get_weather_data(ctx: GetDataContext) -> GetDataResult:
    inputs = ctx.inputs
    units = "fahrenheit" if inputs.get("units") == "fahrenheit" else "celsius"

    try:
        weather = await fetch_current_weather(inputs["latitude"], inputs["longitude"], units)
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        logger.warning(f"Open-Meteo unavailable, using demo weather: {exc}")
        weather = dict(DEMO_WEATHER)

    icon, condition = describe_weather_code(int(weather["weather_code"]))
    unit_symbol = "°C" if units == "celsius" else "°F"
    location = inputs.get("locationName") or f"{inputs['latitude']}, {inputs['longitude']}"
    check_count = int(ctx.state.get("checkCount", 0)) + 1

    text = (
        f"## Weather in {location}\n"
        f"{icon} **{condition}**, {round(weather['temperature'])}{unit_symbol} "
        f"(feels like {round(weather['feels_like'])}{unit_symbol})\n"
        f"Humidity {weather['humidity']}%, wind {weather['wind_speed']} km/h"
    )

    return GetDataResult(
        view_model={
            **weather,
            "temperature": round(weather["temperature"]),
            "feels_like": round(weather["feels_like"]),
            "icon": icon,
            "condition": condition,
            "unit_symbol": unit_symbol,
            "location_name": location,
            "units": units,
        },
        state={
            "lastChecked": datetime.now(timezone.utc).isoformat(),
            "checkCount": check_count,
        },
        text_output=text,
    )


async def toggle_units(ctx: ActionContext) -> ActionResult:
    current = ctx.state.get("preferredUnits") or "celsius"
    nxt = "fahrenheit" if current == "celsius" else "celsius"
    return ActionResult(state={"preferredUnits": nxt}, message=f"Switched to {nxt}")


weather_card = CardDefinition(
    name="do-weather",
    description=(
        "Get current weather conditions for a location. "
        "Shows temperature, humidity, wind speed, and conditions."
    ),
    inputs={
        "latitude": InputDefinition(type="number", required=True, description="Latitude of the location (-90 to 90)"),
        "longitude": InputDefinition(type="number", required=True, description="Longitude of the location (-180 to 180)"),
        "units": InputDefinition(
            type="string",
            default="celsius",
            enum=("celsius", "fahrenheit"),
            description="Temperature units",
        ),
        "locationName": InputDefinition(type="string", description="Human-readable location name to display"),
    },
    get_data=get_weather_data,
    actions={
        "toggleUnits": ActionDefinition(
            label="Switch Units",
            description="Toggle between Celsius and Fahrenheit",
            handler=toggle_units,
        ),
    },
    template=FileTemplate("weather.html.j2"),
    card_dir=Path(__file__).parent / "templates",
)
