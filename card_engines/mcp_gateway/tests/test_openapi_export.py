from card_engines import __version__
from card_engines.demo_cards import DEMO_CARDS
from card_engines.mcp_gateway.openapi import generate_openapi_spec


def test_document_shape():
    spec = generate_openapi_spec(DEMO_CARDS, "https://cards.example")
    assert spec["openapi"] == "3.1.0"
    assert spec["info"]["version"] == __version__
    assert spec["servers"] == [{"url": "https://cards.example"}]
    assert spec["paths"]["/api/cards"]["get"]["operationId"] == "list_cards"


def test_card_and_action_paths():
    paths = generate_openapi_spec(DEMO_CARDS, "")["paths"]
    weather = paths["/api/cards/do-weather"]["post"]
    assert weather["operationId"] == "do_weather"
    body = weather["requestBody"]
    assert body["required"] is True
    assert body["content"]["application/json"]["schema"]["required"] == ["latitude", "longitude"]

    vote = paths["/api/cards/do-poll/action/vote"]["post"]
    assert vote["operationId"] == "do_poll_vote"
    schema = vote["requestBody"]["content"]["application/json"]["schema"]
    assert "choice" in schema["properties"]
    assert "question" in schema["properties"]
    assert "/api/cards/do-checklist/action/toggle" in paths


def test_empty_base_url_uses_relative_server():
    assert generate_openapi_spec([], "")["servers"] == [{"url": "/"}]
