import asyncio

import httpx
import pytest

from card_engines.cards.registry import CardRegistry
from card_engines.cards.service import CardService
from card_engines.demo_cards import build_demo_registry, weather
from card_engines.demo_cards.poll import derive_poll_id
from card_engines.state_store.in_memory import InMemoryStateStore

POLL = {"question": "Tabs or spaces?", "options": "Tabs, Spaces"}


@pytest.fixture
def service() -> CardService:
    return CardService(registry=build_demo_registry(), store=InMemoryStateStore(), instance_id_length=6)


def _act(service, card, action, params):
    return asyncio.run(service.run_action(card, action, params))


def test_registry_contains_demo_cards():
    registry = build_demo_registry()
    assert isinstance(registry, CardRegistry)
    assert [card.name for card in registry.list_cards()] == ["do-weather", "do-poll", "do-checklist"]


# --- poll ---

def test_poll_id_is_derived_from_question_and_options(service):
    rendered = asyncio.run(service.render("do-poll", POLL))
    poll_id = derive_poll_id(POLL["question"], POLL["options"])
    assert rendered.instance_id == poll_id
    assert rendered.identity.card_key == f"card:do-poll:id:{poll_id}"
    assert f"**Poll ID:** `{poll_id}`" in rendered.result.text_summary


def test_poll_voting_flow(service):
    rendered = asyncio.run(service.render("do-poll", POLL))
    poll_id = rendered.instance_id

    assert _act(service, "do-poll", "vote", {"id": poll_id, "choice": "Spaces"}).state["votes"]["Spaces"] == 1
    invalid = _act(service, "do-poll", "vote", {"id": poll_id, "choice": "Both"})
    assert invalid.state_changed is False
    assert invalid.message.startswith('"Both" is not a valid option')

    _act(service, "do-poll", "close", {"id": poll_id})
    closed = _act(service, "do-poll", "vote", {"id": poll_id, "choice": "Tabs"})
    assert closed.message == "This poll is closed. No more votes can be cast."

    _act(service, "do-poll", "reopen", {"id": poll_id})
    _act(service, "do-poll", "vote", {"id": poll_id, "choice": "Tabs"})

    reopened = asyncio.run(service.render("do-poll", {"id": poll_id}))
    assert reopened.result.new_state["votes"] == {"Tabs": 1, "Spaces": 1}
    assert reopened.result.new_state["pollQuestion"] == "Tabs or spaces?"
    assert "2** votes from **2** voters" in reopened.result.text_summary

    reset = _act(service, "do-poll", "reset", {"id": poll_id})
    assert reset.state["votes"] == {"Tabs": 0, "Spaces": 0}
    assert reset.state["voterCount"] == 0


def test_poll_markup_escapes_options(service):
    rendered = asyncio.run(service.render("do-poll", {"question": "<b>?</b>", "options": "<i>a</i>, b"}))
    assert "<b>?</b>" not in rendered.result.markup
    assert "&lt;i&gt;a&lt;/i&gt;" in rendered.result.markup


def test_poll_needs_two_options(service):
    rendered = asyncio.run(service.render("do-poll", {"question": "Only one?", "options": "Yes"}))
    assert rendered.result.is_error is True
    assert rendered.result.text_summary == "Error: A poll needs at least 2 options (comma-separated)."


def test_opening_unstored_poll_id_starts_from_defaults(service):
    rendered = asyncio.run(service.render("do-poll", {"id": "abcdef"}))
    assert rendered.result.is_error is False
    assert rendered.result.new_state["pollId"] == "abcdef"
    assert rendered.result.new_state["pollQuestion"] == "What is your favorite option?"


# --- checklist ---

def test_checklist_instances_are_independent(service):
    first = asyncio.run(service.render("do-checklist", {"items": "milk, eggs"}))
    second = asyncio.run(service.render("do-checklist", {"items": "milk, eggs"}))
    assert first.instance_id != second.instance_id
    assert first.identity.card_key == f"card:do-checklist:id:{first.inputs['id']}"


def test_checklist_actions(service):
    rendered = asyncio.run(service.render("do-checklist", {"title": "Trip", "items": "passport, charger"}))
    list_id = rendered.inputs["id"]

    added = _act(service, "do-checklist", "add", {"id": list_id, "text": "snacks"})
    assert [item["text"] for item in added.state["items"]] == ["passport", "charger", "snacks"]

    toggled = _act(service, "do-checklist", "toggle", {"id": list_id, "index": 1})
    assert toggled.state["items"][1]["done"] is True

    out_of_range = _act(service, "do-checklist", "toggle", {"id": list_id, "index": 9})
    assert out_of_range.message == "No item at position 9."

    again = asyncio.run(service.render("do-checklist", {"id": list_id, "title": "Trip"}))
    assert "1/3 done" in again.result.text_summary
    assert "- [x] charger" in again.result.text_summary


# --- weather ---

def test_weather_falls_back_to_demo_data(service, monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    real_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw))

    rendered = asyncio.run(service.render("do-weather", {"latitude": 51.5, "longitude": -0.12, "locationName": "London"}))
    assert rendered.result.is_error is False
    assert rendered.result.text_summary.startswith("## Weather in London")
    assert rendered.result.raw_data["temperature"] == weather.DEMO_WEATHER["temperature"]
    assert rendered.result.new_state["checkCount"] == 1
    assert 'class="weather-card"' in rendered.result.markup


def test_weather_uses_open_meteo_response(service, monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "current": {
                    "temperature_2m": 71.6,
                    "apparent_temperature": 70.2,
                    "relative_humidity_2m": 40,
                    "wind_speed_10m": 5.5,
                    "weather_code": 0,
                }
            },
        )

    real_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw))

    rendered = asyncio.run(service.render("do-weather", {"latitude": 40.7, "longitude": -74, "units": "fahrenheit"}))
    assert seen["params"]["temperature_unit"] == "fahrenheit"
    assert rendered.result.raw_data["temperature"] == 72
    assert rendered.result.raw_data["condition"] == "Clear sky"
    assert "72°F" in rendered.result.markup
    assert rendered.result.text_summary.startswith("## Weather in 40.7, -74")


def test_weather_toggle_units(service):
    response = _act(service, "do-weather", "toggleUnits", {"latitude": 1, "longitude": 2})
    assert response.state == {"preferredUnits": "fahrenheit"}
    assert response.message == "Switched to fahrenheit"


def test_describe_unknown_weather_code():
    assert weather.describe_weather_code(123) == ("🌡️", "Weather code 123")
