"""
Malla sombra confeccionada: pre-made panels sold by width x length.

Customers often measure their space ("3.5 por 4.8") rather than pick a
catalog size. A fractional request with no exact panel gets the nearest
rounded panels as a recommendation; a "sí" on the next turn quotes the
recommended one.
"""

import logging
import math
from typing import Optional

from salesflow.config import settings
from salesflow.conversation.catalog_index import CatalogSnapshot
from salesflow.conversation.entity_normalizer import parse_size_string
from salesflow.conversation.flow_rules import classify_yes_no
from salesflow.conversation.state_machine import FlowName, FlowStage
from salesflow.flows.base import FlowContext, ProductFlow
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.schemas.message_schema import FlowResponse
from salesflow.schemas.session_schema import ProductSpecs

logger = logging.getLogger(__name__)

ASK_OTHER_SIZE_TEXT = "Sin problema. ¿Qué otra medida te interesa?"


class MallaSombraFlow(ProductFlow):
    flow_name = FlowName.MALLA_SOMBRA
    slots = ("dimensions",)

    def lookup(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> Optional[CatalogEntry]:
        return snapshot.find_product(
            self.flow_name,
            width=specs.width,
            height=specs.height,
            percentage=specs.percentage,
            color=specs.color,
        )

    def alternatives(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> list[CatalogEntry]:
        if specs.width is None or specs.height is None:
            return []
        return snapshot.closest_sizes(self.flow_name, specs.width, specs.height)

    def rounded_sizes(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> list[CatalogEntry]:
        """Catalog panels at the rounded-up, nearest and rounded-down sizes."""
        w, h = specs.width, specs.height
        candidates = [
            (math.ceil(w), math.ceil(h)),
            (round(w), round(h)),
            (math.floor(w), math.floor(h)),
        ]
        found: list[CatalogEntry] = []
        for cw, ch in candidates:
            if cw <= 0 or ch <= 0:
                continue
            entry = snapshot.find_product(self.flow_name, width=cw, height=ch, percentage=specs.percentage)
            if entry is not None and entry not in found:
                found.append(entry)
        return found[: settings.flows.max_alternatives]

    async def before_quote(
        self, ctx: FlowContext, specs: ProductSpecs, stored: list[str]
    ) -> Optional[FlowResponse]:
        session = ctx.session
        if "dimensions" in stored or not session.recommended_size:
            return None
        if not session.flow_state.is_in(self.flow_name, FlowStage.AWAITING_CONFIRMATION):
            return None

        answer = classify_yes_no(ctx.text)
        if answer is True:
            size = parse_size_string(session.recommended_size)
            if size is not None and size.width is not None:
                specs.width, specs.height = size.width, size.height
                logger.info("Customer accepted recommended size %s", session.recommended_size)
            return None
        if answer is False:
            specs.width = specs.height = None
            session.recommended_size = None
            session.record_state(self.flow_name, FlowStage.AWAITING_DIMENSIONS)
            return FlowResponse(text=ASK_OTHER_SIZE_TEXT, handled_by=session.flow_state.tag)
        return None

    async def no_match(self, ctx: FlowContext, snapshot: CatalogSnapshot, specs: ProductSpecs) -> FlowResponse:
        fractional = not (float(specs.width).is_integer() and float(specs.height).is_integer())
        if fractional:
            suggestions = self.rounded_sizes(snapshot, specs)
            if suggestions:
                session = ctx.session
                parsed = snapshot.parsed_size(suggestions[0].id)
                session.recommended_size = parsed.key if parsed else suggestions[0].size
                session.intent_signals = session.intent_signals.model_copy(update={"size_recommended": True})
                text = await self._render(
                    "rounded_suggestion",
                    {"requested": f"{specs.width:g}x{specs.height:g}", "suggestions": suggestions},
                )
                session.record_state(self.flow_name, FlowStage.AWAITING_CONFIRMATION)
                return FlowResponse(
                    text=text,
                    handled_by=session.flow_state.tag,
                    metadata={"recommended_size": session.recommended_size},
                )
        return await super().no_match(ctx, snapshot, specs)
