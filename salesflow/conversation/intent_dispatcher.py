"""
Intent dispatcher: flow-agnostic answers.

Social pleasantries, logistics FAQs and escalations are answered the same
way whatever product the conversation is about. The flow manager calls
the dispatcher when the product handler yields nothing. Intents without a
handler here may still start a data-described flow linked through its
``trigger_intent``.
"""

import logging
from typing import Awaitable, Callable, Optional

from salesflow.conversation.flow_executor import FlowExecutor
from salesflow.conversation.handoff import HandoffService
from salesflow.conversation.state_machine import FlowStage, display_name
from salesflow.flows.base import FlowContext
from salesflow.prompts import system_messages as msg
from salesflow.schemas.message_schema import ClassifierResult, FlowResponse, Intent

logger = logging.getLogger(__name__)

Handler = Callable[[FlowContext], Awaitable[Optional[FlowResponse]]]


class IntentDispatcher:
    """Registry of handlers keyed by classifier intent."""

    def __init__(self, executor: FlowExecutor, handoff: HandoffService) -> None:
        self._executor = executor
        self._handoff = handoff
        self._handlers: dict[Intent, Handler] = {
            Intent.GREETING: self._greeting,
            Intent.THANKS: self._fixed(msg.THANKS_TEXT, "thanks"),
            Intent.GOODBYE: self._close(msg.GOODBYE_TEXT, "goodbye"),
            Intent.OPT_OUT: self._close(msg.OPT_OUT_TEXT, "opt_out"),
            Intent.SHIPPING_QUERY: self._fixed(msg.SHIPPING_TEXT, "shipping"),
            Intent.LOCATION_QUERY: self._fixed(msg.LOCATION_TEXT, "location"),
            Intent.PAYMENT_QUERY: self._fixed(msg.PAYMENT_TEXT, "payment"),
            Intent.DELIVERY_TIME_QUERY: self._fixed(msg.DELIVERY_TIME_TEXT, "delivery_time"),
            Intent.INSTALLATION_QUERY: self._fixed(msg.INSTALLATION_TEXT, "installation"),
            Intent.WARRANTY_QUERY: self._fixed(msg.WARRANTY_TEXT, "warranty"),
            Intent.CUSTOM_SIZE_QUERY: self._escalation(msg.CUSTOM_SIZE_ACK, "Medida especial"),
            Intent.HUMAN_REQUEST: self._escalation(msg.HUMAN_REQUEST_ACK, "Cliente pidió hablar con un asesor"),
            Intent.COMPLAINT: self._escalation(msg.COMPLAINT_ACK, "Queja del cliente"),
            Intent.OFF_TOPIC: self._fixed(msg.OFF_TOPIC_TEXT, "off_topic"),
        }

    @property
    def intents(self) -> list[Intent]:
        return list(self._handlers)

    async def dispatch(self, classification: ClassifierResult, ctx: FlowContext) -> Optional[FlowResponse]:
        handler = self._handlers.get(classification.intent)
        try:
            if handler is not None:
                return await handler(ctx)
            return await self._executor.start_for_intent(
                classification.intent.value, ctx.session, trigger_message=ctx.text
            )
        except Exception:
            logger.exception("Intent handler failed for %s", classification.intent.value)
            return None

    # ------------------------------------------------------------------ #
    #  Handler factories
    # ------------------------------------------------------------------ #

    @staticmethod
    def _fixed(text: str, tag: str) -> Handler:
        async def handler(ctx: FlowContext) -> Optional[FlowResponse]:
            ctx.session.last_intent = tag
            return FlowResponse(text=text, handled_by=f"intent_{tag}")
        return handler

    @staticmethod
    def _close(text: str, tag: str) -> Handler:
        async def handler(ctx: FlowContext) -> Optional[FlowResponse]:
            ctx.session.close()
            ctx.session.last_intent = tag
            logger.info("Conversation closed (%s)", tag)
            return FlowResponse(text=text, handled_by=f"intent_{tag}")
        return handler

    def _escalation(self, ack: str, reason: str) -> Handler:
        async def handler(ctx: FlowContext) -> Optional[FlowResponse]:
            session = ctx.session
            full_reason = reason
            summary = session.product_specs.summary()
            if session.current_flow.is_product:
                full_reason = f"{reason} | {display_name(session.current_flow)}"
                if summary:
                    full_reason = f"{full_reason}: {summary}"
            text = self._handoff.execute(session, f"{full_reason} | Mensaje: {ctx.text}", prefix=ack)
            session.record_state(session.current_flow, FlowStage.HANDOFF)
            return FlowResponse(text=text, handled_by="intent_handoff", handoff=True)
        return handler

    async def _greeting(self, ctx: FlowContext) -> Optional[FlowResponse]:
        session = ctx.session
        if session.current_flow.is_product:
            text = f"¡Hola de nuevo! ¿Seguimos con {display_name(session.current_flow)}?"
        else:
            text = msg.GREETING_TEXT
        return FlowResponse(text=text, handled_by="intent_greeting")
