from typing import TextIO

from locator.i18n import MessageCatalog
from locator.render.base import Renderer
from locator.render.jsonl import JsonRenderer
from locator.render.text import TextRenderer


def build_renderer(
    kind: str,
    stream: TextIO | None = None,
    messages: MessageCatalog | None = None,
) -> Renderer:
    if kind == "json":
        return JsonRenderer(stream)
    if kind == "text":
        return TextRenderer(stream, messages)
    raise ValueError(f"Unknown renderer: {kind}")


__all__ = ["JsonRenderer", "Renderer", "TextRenderer", "build_renderer"]
