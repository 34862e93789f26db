from card_engines.screenshot.service import (
    HttpImageRenderer,
    ImageRenderer,
    NullImageRenderer,
    create_image_renderer,
    render_image_safely,
)

__all__ = [
    "ImageRenderer",
    "NullImageRenderer",
    "HttpImageRenderer",
    "create_image_renderer",
    "render_image_safely",
]
