import asyncio
import json

import httpx

from card_engines.screenshot import (
    HttpImageRenderer,
    NullImageRenderer,
    create_image_renderer,
    render_image_safely,
)

PNG = b"\x89PNG\r\n\x1a\nfake"


def test_http_renderer_posts_markup():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=PNG, headers={"content-type": "image/png"})

    renderer = HttpImageRenderer("http://render.local/png", width=480, transport=httpx.MockTransport(handler))
    assert asyncio.run(renderer.render_png("<p>hi</p>")) == PNG
    assert seen["body"] == {"html": "<p>hi</p>", "width": 480}


def test_http_renderer_ignores_non_image_response():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True}))
    renderer = HttpImageRenderer("http://render.local/png", transport=transport)
    assert asyncio.run(renderer.render_png("<p></p>")) is None


def test_render_failures_degrade_to_no_image():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    renderer = HttpImageRenderer("http://render.local/png", transport=transport)
    assert asyncio.run(render_image_safely(renderer, "<p></p>")) is None


def test_factory_respects_configuration(monkeypatch):
    monkeypatch.delenv("CARD_IMAGE_RENDERER_URL", raising=False)
    assert isinstance(create_image_renderer(), NullImageRenderer)

    monkeypatch.setenv("CARD_IMAGE_RENDERER_URL", "http://render.local/png")
    monkeypatch.setenv("CARD_IMAGE_RENDERER_TIMEOUT", "2.5")
    renderer = create_image_renderer()
    assert isinstance(renderer, HttpImageRenderer)
    assert renderer._timeout == 2.5


def test_http_renderer_reuses_one_client_until_closed():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=PNG, headers={"content-type": "image/png"})

    renderer = HttpImageRenderer("http://render.local/png", transport=httpx.MockTransport(handler))

    async def scenario():
        await renderer.render_png("<p>1</p>")
        client = renderer._client
        await renderer.render_png("<p>2</p>")
        assert renderer._client is client
        await renderer.aclose()
        assert client.is_closed
        assert renderer._client is None

    asyncio.run(scenario())
    assert len(requests) == 2
