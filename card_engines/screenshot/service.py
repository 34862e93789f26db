"""Optional card image rendering.

Rendering markup to PNG needs a headless browser, which lives outside this
process: ``HttpImageRenderer`` posts the markup to a render service and returns
the PNG bytes. Image rendering is an enhancement; every failure degrades to
"no image" and is only logged.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from card_engines.config import runtime_config

logger = logging.getLogger(__name__)


class ImageRenderer(Protocol):
    async def render_png(self, markup: str) -> Optional[bytes]: ...

    async def aclose(self) -> None: ...


class NullImageRenderer:
    async def render_png(self, markup: str) -> Optional[bytes]:
        return None

    async def aclose(self) -> None:
        return None


class HttpImageRenderer:
    """Posts markup to a render service over one pooled client; call ``aclose`` on shutdown."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        width: int = 600,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._width = width
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def render_png(self, markup: str) -> Optional[bytes]:
        resp = await self._get_client().post(self._url, json={"html": markup, "width": self._width})
        resp.raise_for_status()
        if not resp.headers.get("content-type", "").startswith("image/"):
            logger.warning(f"Image renderer returned non-image content-type: {resp.headers.get('content-type')}")
            return None
        return resp.content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def create_image_renderer() -> ImageRenderer:
    url = runtime_config.get_image_renderer_url()
    if not url:
        return NullImageRenderer()
    return HttpImageRenderer(url=url, timeout=runtime_config.get_image_renderer_timeout())


async def render_image_safely(renderer: ImageRenderer, markup: str) -> Optional[bytes]:
    try:
        return await renderer.render_png(markup)
    except Exception as exc:
        logger.warning(f"Card image rendering unavailable: {exc}")
        return None
