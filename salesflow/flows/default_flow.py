"""Default flow: no product identified yet, so greet and show the product menu."""

import logging
from typing import Optional

from salesflow.conversation.state_machine import FlowName, FlowStage
from salesflow.flows.base import FLOW_AGNOSTIC_INTENTS, FlowContext, ProductFlow
from salesflow.prompts.system_messages import ASK_PRODUCT_TEXT, GREETING_TEXT
from salesflow.schemas.message_schema import FlowResponse, Intent

logger = logging.getLogger(__name__)


class DefaultFlow(ProductFlow):
    flow_name = FlowName.DEFAULT

    async def handle(self, ctx: FlowContext) -> Optional[FlowResponse]:
        if ctx.intent in FLOW_AGNOSTIC_INTENTS and ctx.intent != Intent.GREETING:
            return None
        session = ctx.session
        first_contact = ctx.intent == Intent.GREETING or session.intent_signals.total_messages <= 1
        session.record_state(FlowName.DEFAULT, FlowStage.START)
        return FlowResponse(
            text=GREETING_TEXT if first_contact else ASK_PRODUCT_TEXT,
            handled_by="default_menu",
        )
