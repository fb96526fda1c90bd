"""
Response renderer contract.

The production renderer turns a tag plus structured facts into
tone-appropriate prose. The engine only hands it facts; TemplateRenderer
fills the fixed templates instead.
"""

import logging
from typing import Any, Protocol

from salesflow.prompts.response_templates import render_template

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    async def render(self, intent_tag: str, context: dict[str, Any]) -> str: ...


class TemplateRenderer:
    def __init__(self) -> None:
        self.rendered: list[str] = []
        self.fail = False

    async def render(self, intent_tag: str, context: dict[str, Any]) -> str:
        if self.fail:
            raise ConnectionError("renderer unavailable")
        self.rendered.append(intent_tag)
        return render_template(intent_tag, context)
