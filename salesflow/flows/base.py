"""
Product flow base: one small state machine per product line.

Each product line needs a short tuple of facts (slots) before it can look
a product up. A turn merges whatever the message carries into the
session's ProductSpecs, asks for the next missing slot, and once the
tuple is complete quotes from the catalog snapshot:

    wholesale quantity   -> wholesale acknowledgment + handoff (no link)
    match with link      -> price + tracked link (+ wholesale upsell)
    match, price only    -> price + pending handoff awaiting postal code
    no match             -> closest alternatives + handoff

Subclasses declare ``flow_name`` and ``slots`` and override ``lookup``
and ``alternatives``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from salesflow.conversation.catalog_index import CatalogIndex, CatalogSnapshot, CatalogUnavailableError
from salesflow.conversation.entity_normalizer import (
    extract_percentage,
    extract_quantity,
    parse_dimensions,
    parse_linear_length,
    parse_roll_dimensions,
)
from salesflow.conversation.flow_rules import classify_yes_no
from salesflow.conversation.handoff import HandoffService
from salesflow.conversation.slot_manager import SLOT_LIBRARY, SlotManager
from salesflow.conversation.state_machine import FlowName, FlowStage, display_name
from salesflow.prompts.response_templates import build_opening, build_slot_question, render_template
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.schemas.message_schema import (
    CampaignContext,
    ChannelContext,
    ClassifierEntities,
    ClassifierResult,
    FlowResponse,
    Intent,
)
from salesflow.schemas.session_schema import ConversationSession, IntentBucket, ProductSpecs
from salesflow.tools.links import tracked_or_raw

logger = logging.getLogger(__name__)

# Answered the same way in every flow; a product flow lets these through
# unless the message also carried new product facts.
FLOW_AGNOSTIC_INTENTS = frozenset({
    Intent.GREETING,
    Intent.THANKS,
    Intent.GOODBYE,
    Intent.OPT_OUT,
    Intent.SHIPPING_QUERY,
    Intent.LOCATION_QUERY,
    Intent.PAYMENT_QUERY,
    Intent.DELIVERY_TIME_QUERY,
    Intent.INSTALLATION_QUERY,
    Intent.WARRANTY_QUERY,
    Intent.CUSTOM_SIZE_QUERY,
    Intent.HUMAN_REQUEST,
    Intent.COMPLAINT,
    Intent.OFF_TOPIC,
})

_SETTLED_STAGES = (FlowStage.QUOTED, FlowStage.HANDOFF, FlowStage.WHOLESALE, FlowStage.AWAITING_ZIP)

AFTER_QUOTE_TEXT = "¡Perfecto! Cualquier duda con tu compra aquí estoy. ¿Necesitas otra medida?"
CATALOG_DOWN_TEXT = "Déjame confirmar el precio con un especialista. "


@dataclass
class FlowContext:
    """Everything a handler sees for one turn."""
    text: str
    session: ConversationSession
    classification: ClassifierResult = field(default_factory=ClassifierResult)
    intent_bucket: Optional[IntentBucket] = None
    is_wholesale: bool = False
    transferred_from: Optional[FlowName] = None
    channel: Optional[ChannelContext] = None
    campaign: Optional[CampaignContext] = None

    @property
    def intent(self) -> Intent:
        return self.classification.intent

    @property
    def entities(self) -> ClassifierEntities:
        return self.classification.entities


class ProductFlow:
    """Shared slot-filling and quoting lifecycle for the product lines."""

    flow_name: FlowName = FlowName.DEFAULT
    slots: tuple[str, ...] = ()

    def __init__(self, catalog: CatalogIndex, links, handoff: HandoffService, renderer) -> None:
        self._catalog = catalog
        self._links = links
        self._handoff = handoff
        self._renderer = renderer

    # ------------------------------------------------------------------ #
    #  Hooks
    # ------------------------------------------------------------------ #

    def lookup(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> Optional[CatalogEntry]:
        raise NotImplementedError

    def alternatives(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> list[CatalogEntry]:
        return []

    async def before_quote(
        self, ctx: FlowContext, specs: ProductSpecs, stored: list[str]
    ) -> Optional[FlowResponse]:
        """Flow-specific sub-step run after slot merging; a response short-circuits."""
        return None

    # ------------------------------------------------------------------ #
    #  Slots
    # ------------------------------------------------------------------ #

    def _specs_for(self, session: ConversationSession) -> ProductSpecs:
        if session.product_specs.product_type != self.flow_name:
            session.product_specs = ProductSpecs(product_type=self.flow_name)
        return session.product_specs

    def _awaiting_slot(self, session: ConversationSession) -> Optional[str]:
        if session.flow_state.flow != self.flow_name:
            return None
        for name in self.slots:
            if SLOT_LIBRARY[name].stage == session.flow_state.stage:
                return name
        return None

    def _extract_slot(self, slot: str, ctx: FlowContext, awaited: bool) -> Optional[dict[str, Any]]:
        text, entities = ctx.text, ctx.entities
        if slot == "dimensions":
            if entities.width is not None and entities.height is not None:
                return {"width": entities.width, "height": entities.height}
            dims = parse_dimensions(text, allow_square=awaited)
            return {"width": dims.width, "height": dims.height} if dims else None
        if slot == "width":
            roll = parse_roll_dimensions(text)
            if roll is not None:
                values: dict[str, Any] = {"width": roll.width}
                if roll.length is not None:
                    values["length"] = roll.length
                return values
            if entities.width is not None and entities.height is None:
                return {"width": entities.width}
            return SLOT_LIBRARY["width"].parser(text) if awaited else None
        if slot == "length":
            length = entities.borde_length or entities.length
            if length is not None:
                return {"length": length}
            if awaited:
                return SLOT_LIBRARY["length"].parser(text)
            length = parse_linear_length(text, common_lengths=())
            return {"length": length} if length is not None else None
        if slot == "percentage":
            percentage = entities.percentage or extract_percentage(text)
            if percentage is not None:
                return {"percentage": percentage}
            return SLOT_LIBRARY["percentage"].parser(text) if awaited else None
        return None

    def extract(self, ctx: FlowContext, awaiting: Optional[str]) -> dict[str, dict[str, Any]]:
        """Candidate slot values in this message, keyed by slot name."""
        found: dict[str, dict[str, Any]] = {}
        for slot in self.slots:
            values = self._extract_slot(slot, ctx, awaited=(slot == awaiting))
            if values:
                found[slot] = values
        quantity = ctx.entities.quantity or extract_quantity(ctx.text)
        if quantity:
            found["quantity"] = {"quantity": quantity}
        return found

    @staticmethod
    def _store(
        manager: SlotManager, found: dict[str, dict[str, Any]], awaiting: Optional[str]
    ) -> tuple[list[str], Optional[str]]:
        stored: list[str] = []
        error: Optional[str] = None
        for name, values in found.items():
            ok, msg = manager.set_values(name, values)
            if ok:
                stored.append(name)
            elif name == awaiting:
                error = msg
        return stored, error

    # ------------------------------------------------------------------ #
    #  Turn handling
    # ------------------------------------------------------------------ #

    async def handle(self, ctx: FlowContext) -> Optional[FlowResponse]:
        session = ctx.session
        specs = self._specs_for(session)
        awaiting = self._awaiting_slot(session)
        manager = SlotManager(specs, self.slots + ("quantity",))
        stored, error = self._store(manager, self.extract(ctx, awaiting), awaiting)

        if not stored and ctx.intent in FLOW_AGNOSTIC_INTENTS:
            logger.debug("%s: no new facts for %s, deferring", self.flow_name.value, ctx.intent.value)
            return None

        special = await self.before_quote(ctx, specs, stored)
        if special is not None:
            return special

        if not stored and session.flow_state.is_in(self.flow_name, *_SETTLED_STAGES):
            if ctx.intent == Intent.PRICE_QUERY and manager.all_required_filled():
                return await self.quote(ctx, specs)
            if classify_yes_no(ctx.text) is True:
                return FlowResponse(text=AFTER_QUOTE_TEXT, handled_by=f"{self.flow_name.value}_after_quote")
            return None

        session.product_interest = self.flow_name.value
        next_slot = manager.get_next_empty_slot()
        if next_slot is not None:
            question = await self._render("slot_question", {"flow": self.flow_name, "slot": next_slot.name})
            session.record_state(self.flow_name, next_slot.stage)
            return FlowResponse(
                text=f"{error} {question}" if error else question,
                handled_by=session.flow_state.tag,
                metadata={"awaiting": next_slot.name, "specs": manager.to_dict()},
            )
        return await self.quote(ctx, specs)

    def opening(self, session: ConversationSession) -> FlowResponse:
        """First message after the conversation moves into this flow."""
        specs = self._specs_for(session)
        session.product_interest = self.flow_name.value
        next_slot = SlotManager(specs, self.slots).get_next_empty_slot()
        stage = next_slot.stage if next_slot else FlowStage.START
        session.record_state(self.flow_name, stage)
        return FlowResponse(
            text=build_opening(self.flow_name, next_slot.name if next_slot else None),
            handled_by=f"{self.flow_name.value}_opening",
        )

    # ------------------------------------------------------------------ #
    #  Quoting
    # ------------------------------------------------------------------ #

    def describe(self, specs: ProductSpecs) -> str:
        size = specs.model_copy(update={"quantity": None}).summary()
        name = display_name(self.flow_name)
        return f"{name} de {size}" if size else name

    async def _render(self, tag: str, context: dict[str, Any]) -> str:
        try:
            return await self._renderer.render(tag, context)
        except Exception as e:
            logger.warning("Renderer failed for '%s', using fixed template: %s", tag, e)
            return render_template(tag, context)

    def _escalate(self, ctx: FlowContext, reason: str, prefix: str, stage: FlowStage) -> FlowResponse:
        text = self._handoff.execute(ctx.session, reason, prefix=prefix)
        ctx.session.record_state(self.flow_name, stage)
        return FlowResponse(text=text, handled_by=ctx.session.flow_state.tag, handoff=True)

    async def quote(self, ctx: FlowContext, specs: ProductSpecs) -> FlowResponse:
        session = ctx.session
        try:
            snapshot = await self._catalog.get()
        except CatalogUnavailableError as e:
            logger.warning("Catalog unavailable while quoting %s: %s", self.flow_name.value, e)
            reason = f"Cotización {self.describe(specs)} (catálogo no disponible): {specs.summary()}"
            return self._escalate(ctx, reason, CATALOG_DOWN_TEXT, FlowStage.HANDOFF)

        entry = self.lookup(snapshot, specs)
        if entry is None:
            return await self.no_match(ctx, snapshot, specs)

        quantity = specs.quantity
        reaches_wholesale = bool(entry.wholesale_min_qty and quantity and quantity >= entry.wholesale_min_qty)
        if entry.is_wholesale_only or reaches_wholesale:
            return await self._wholesale(ctx, entry, specs)

        if entry.link:
            link = await tracked_or_raw(
                self._links,
                session.customer_id,
                entry.link,
                {"product_id": entry.id, "flow": self.flow_name.value},
            )
            text = await self._render("price_quote", {"entry": entry, "link": link, "quantity": quantity})
            if entry.wholesale_min_qty and entry.wholesale_price is not None:
                text += "\n\n" + await self._render("wholesale_upsell", {"entry": entry})
            session.record_state(self.flow_name, FlowStage.QUOTED)
            logger.info("Quoted %s with link", entry.id)
            return FlowResponse(
                text=text,
                handled_by=session.flow_state.tag,
                metadata={"product_id": entry.id, "price": entry.price, "link": link},
            )

        if entry.price is not None:
            price_text = await self._render("price_without_link", {"entry": entry})
            reason = f"Cotización sin enlace: {entry.name} ({specs.summary()})"
            reply = self._handoff.request_location(session, reason, summary=f"{price_text}\n\n")
            if session.pending_handoff is not None:
                session.record_state(self.flow_name, FlowStage.AWAITING_ZIP)
                return FlowResponse(
                    text=f"{price_text}\n\n{reply}",
                    handled_by=session.flow_state.tag,
                    metadata={"product_id": entry.id, "price": entry.price},
                )
            session.record_state(self.flow_name, FlowStage.HANDOFF)
            return FlowResponse(text=reply, handled_by=session.flow_state.tag, handoff=True)

        reason = f"Producto sin precio: {entry.name} ({specs.summary()})"
        return self._escalate(ctx, reason, "", FlowStage.HANDOFF)

    async def _wholesale(self, ctx: FlowContext, entry: CatalogEntry, specs: ProductSpecs) -> FlowResponse:
        ctx.session.is_wholesale_inquiry = True
        ack = await self._render("wholesale_ack", {"entry": entry, "quantity": specs.quantity})
        reason = f"Mayoreo: {entry.name} ({specs.summary()})"
        logger.info("Wholesale request for %s routed to sales", entry.id)
        return self._escalate(ctx, reason, ack, FlowStage.WHOLESALE)

    async def no_match(
        self, ctx: FlowContext, snapshot: CatalogSnapshot, specs: ProductSpecs
    ) -> FlowResponse:
        alternatives = self.alternatives(snapshot, specs)
        prefix = await self._render(
            "alternatives", {"requested": self.describe(specs), "alternatives": alternatives}
        )
        reason = f"Sin coincidencia en catálogo: {self.describe(specs)} | Specs: {specs.summary()}"
        logger.info("No catalog match for %s", self.describe(specs))
        response = self._escalate(ctx, reason, prefix, FlowStage.HANDOFF)
        response.metadata["alternatives"] = [e.id for e in alternatives]
        return response
