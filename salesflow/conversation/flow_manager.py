"""
Flow manager: the per-turn orchestrator.

For every inbound message it decides which handler answers, in a fixed
order where each step may short-circuit the rest:

    0. spam guardrail (silent drop), then purchase intent scoring
    1. pending menudeo/mayoreo choice
    2. pending product-switch confirmation
    2b. pending handoff awaiting a postal code
    3. explicit product-switch detection / unsold-category deflection
    4. lead-capture campaigns and running executor scripts
    6. flow resolution and transfer
    7. use-case fit check
    8. product handler, then the intent dispatcher

The three sub-dialog locks share the session's single ``pending`` slot,
so at most one is ever active. The manager mutates the session object it
is given; the caller owns loading and saving it.

Usage:
    manager = FlowManager(catalog, executor, handoff, dispatcher, links, renderer)
    response = await manager.handle_message(text, customer_id, session, classification)
"""

import logging
from typing import Optional

from salesflow.config import settings
from salesflow.conversation import intent_scorer
from salesflow.conversation.catalog_index import CatalogIndex, CatalogUnavailableError
from salesflow.conversation.entity_normalizer import Dimensions, parse_dimensions
from salesflow.conversation.flow_executor import FlowExecutor
from salesflow.conversation.flow_rules import (
    ResolutionInput,
    classify_retail_wholesale,
    classify_yes_no,
    detect_product_switch,
    resolve_flow,
)
from salesflow.conversation.guardrails import GuardrailPipeline, ScopeGuardrail
from salesflow.conversation.handoff import HandoffService
from salesflow.conversation.intent_dispatcher import IntentDispatcher
from salesflow.conversation.state_machine import (
    ConversationState,
    FlowName,
    FlowStage,
    InvalidTransferError,
    check_flow_transfer,
    display_name,
    require_transfer,
)
from salesflow.conversation.use_case import UseCaseMatcher
from salesflow.flows.base import FlowContext, ProductFlow
from salesflow.flows.registry import create_flow
from salesflow.prompts.response_templates import (
    build_stay_in_flow,
    build_switch_confirmation,
    build_use_case_suggestion,
    build_wholesale_choice_question,
)
from salesflow.prompts.system_messages import WHOLESALE_ACK
from salesflow.schemas.message_schema import (
    CampaignContext,
    ChannelContext,
    ClassifierResult,
    FlowResponse,
)
from salesflow.schemas.session_schema import (
    ConversationSession,
    IntentBucket,
    PendingProductSwitch,
    PendingWholesaleChoice,
)

logger = logging.getLogger(__name__)

LEAD_CAMPAIGN_GOALS = ("lead_capture", "cotizacion")
RESELLER_AUDIENCES = ("reseller", "distribuidor", "mayorista", "b2b")


def is_lead_campaign(campaign: Optional[CampaignContext]) -> bool:
    """Distributor-quote campaigns go straight to the lead capture script."""
    if campaign is None or (campaign.goal or "").lower() not in LEAD_CAMPAIGN_GOALS:
        return False
    return bool(campaign.catalog_url) or (campaign.audience_type or "").lower() in RESELLER_AUDIENCES


class FlowManager:
    """Routes each turn to a sub-dialog, a product flow or the intent dispatcher."""

    def __init__(
        self,
        catalog: CatalogIndex,
        executor: FlowExecutor,
        handoff: HandoffService,
        dispatcher: IntentDispatcher,
        links,
        renderer,
        guardrails: Optional[GuardrailPipeline] = None,
    ) -> None:
        self._catalog = catalog
        self._executor = executor
        self._handoff = handoff
        self._dispatcher = dispatcher
        self._guardrails = guardrails or GuardrailPipeline()
        self._flow_deps = {"catalog": catalog, "links": links, "handoff": handoff, "renderer": renderer}
        self._handlers: dict[FlowName, ProductFlow] = {}

    def _handler(self, flow: FlowName) -> ProductFlow:
        """Cached handler instance for ``flow``.

        Raises:
            KeyError: If no handler is registered for the flow.
        """
        if flow not in self._handlers:
            self._handlers[flow] = create_flow(flow.value, **self._flow_deps)
        return self._handlers[flow]

    # ------------------------------------------------------------------ #
    #  Entry point
    # ------------------------------------------------------------------ #

    async def handle_message(
        self,
        text: str,
        customer_id: str,
        session: ConversationSession,
        classification: Optional[ClassifierResult] = None,
        channel: Optional[ChannelContext] = None,
        campaign: Optional[CampaignContext] = None,
    ) -> Optional[FlowResponse]:
        """Handle one inbound message. None means no handler took it."""
        text = text or ""
        classification = classification or ClassifierResult.unclear()
        if session.customer_id != customer_id:
            logger.warning("Session %s handled for customer %s", session.customer_id, customer_id)

        if self._guardrails.is_spam(text):
            return FlowResponse.drop("guardrail_spam")

        bucket = self._score(text, session)
        response = await self._route(text, session, classification, channel, campaign, bucket)
        if response is not None and response.purchase_intent is None:
            response.purchase_intent = bucket.value
        return response

    def _score(self, text: str, session: ConversationSession) -> IntentBucket:
        signals, bucket = intent_scorer.score(text, session.intent_signals)
        session.intent_signals = signals
        session.purchase_intent = bucket
        session.is_wholesale_inquiry = intent_scorer.is_wholesale_inquiry(text, session.is_wholesale_inquiry)
        return bucket

    async def _route(
        self,
        text: str,
        session: ConversationSession,
        classification: ClassifierResult,
        channel: Optional[ChannelContext],
        campaign: Optional[CampaignContext],
        bucket: IntentBucket,
    ) -> Optional[FlowResponse]:
        lock = session.pending_confirmation
        if isinstance(lock, PendingWholesaleChoice):
            response = self._resolve_wholesale_choice(text, session, lock)
            if response is not None:
                return response
        elif isinstance(lock, PendingProductSwitch):
            response = await self._resolve_switch_confirmation(text, session, lock)
            if response is not None:
                return response

        if session.pending_handoff is not None:
            reply = self._handoff.resolve_pending(
                session, text, location_entity=classification.entities.location
            )
            session.record_state(session.current_flow, FlowStage.HANDOFF)
            return FlowResponse(text=reply or "", handled_by="pending_handoff", handoff=True)

        response = self._detect_switch_or_deflect(text, session, classification)
        if response is not None:
            return response

        response = await self._lead_capture(text, session, campaign)
        if response is not None:
            return response

        await self._resolve_flow(text, session, classification, channel)

        response = await self._check_use_case(text, session)
        if response is not None:
            return response

        ctx = FlowContext(
            text=text,
            session=session,
            classification=classification,
            intent_bucket=bucket,
            is_wholesale=session.is_wholesale_inquiry,
            transferred_from=session.flow_transferred_from,
            channel=channel,
            campaign=campaign,
        )
        return await self._dispatch(ctx)

    # ------------------------------------------------------------------ #
    #  Sub-dialogs
    # ------------------------------------------------------------------ #

    def _resolve_wholesale_choice(
        self, text: str, session: ConversationSession, lock: PendingWholesaleChoice
    ) -> Optional[FlowResponse]:
        choice = classify_retail_wholesale(text)
        session.clear_pending()
        if choice == "retail":
            logger.info("Retail chosen for %s", lock.target_flow.value)
            return self._switch_and_open(session, lock.target_flow)
        if choice == "wholesale":
            logger.info("Wholesale chosen for %s", lock.target_flow.value)
            return self._wholesale_handoff(session, lock.target_flow, switch=False)
        logger.debug("Menudeo/mayoreo reply not recognized; resuming normal routing")
        return None

    async def _resolve_switch_confirmation(
        self, text: str, session: ConversationSession, lock: PendingProductSwitch
    ) -> Optional[FlowResponse]:
        answer = classify_yes_no(text)
        session.clear_pending()
        if answer is None:
            logger.debug("Switch confirmation reply ambiguous; resuming normal routing")
            return None
        if not answer:
            logger.info("Switch to %s declined", lock.target_flow.value)
            return FlowResponse(
                text=build_stay_in_flow(session.current_flow), handled_by="product_switch_declined"
            )
        return await self._confirm_switch(session, lock.target_flow)

    async def _confirm_switch(self, session: ConversationSession, target: FlowName) -> Optional[FlowResponse]:
        try:
            snapshot = await self._catalog.get()
        except CatalogUnavailableError as e:
            logger.warning("Catalog unavailable confirming switch to %s, switching directly: %s", target.value, e)
            return self._switch_and_open(session, target)

        has_retail, has_wholesale_only = snapshot.family_variants(target)
        if has_retail and has_wholesale_only:
            session.set_pending(PendingWholesaleChoice(target_flow=target))
            return FlowResponse(
                text=build_wholesale_choice_question(target), handled_by="wholesale_choice_question"
            )
        if has_wholesale_only:
            return self._wholesale_handoff(session, target, switch=True)
        return self._switch_and_open(session, target)

    def _switch_and_open(self, session: ConversationSession, target: FlowName) -> Optional[FlowResponse]:
        try:
            require_transfer(session.current_flow, target)
        except InvalidTransferError as e:
            logger.warning("%s", e)
        session.switch_flow(target)
        try:
            handler = self._handler(target)
        except KeyError as e:
            logger.error("Cannot open flow after switch: %s", e)
            session.clear_pending()
            return None
        return handler.opening(session)

    def _wholesale_handoff(self, session: ConversationSession, target: FlowName, switch: bool) -> FlowResponse:
        if switch:
            try:
                require_transfer(session.current_flow, target)
            except InvalidTransferError as e:
                logger.warning("%s", e)
            session.switch_flow(target)
        session.is_wholesale_inquiry = True
        text = self._handoff.execute(session, f"Mayoreo: {display_name(target)}", prefix=WHOLESALE_ACK)
        session.record_state(session.current_flow, FlowStage.WHOLESALE)
        return FlowResponse(text=text, handled_by="wholesale_handoff", handoff=True)

    def _detect_switch_or_deflect(
        self, text: str, session: ConversationSession, classification: ClassifierResult
    ) -> Optional[FlowResponse]:
        # Mid-script, every message is an answer to the current step.
        if self._executor.is_in_flow(session):
            return None

        current = session.current_flow
        if current.is_product:
            target = detect_product_switch(text, current, classification.product)
            if target is not None:
                session.set_pending(PendingProductSwitch(target_flow=target, from_flow=current))
                logger.info("Possible product switch %s -> %s; asking", current.value, target.value)
                return FlowResponse(
                    text=build_switch_confirmation(current, target),
                    handled_by="product_switch_confirmation",
                )

        scope = self._guardrails.scope.check(text)
        if not scope.passed:
            return FlowResponse(
                text=ScopeGuardrail.deflection_text(scope.message or ""),
                handled_by="guardrail_scope",
            )
        return None

    async def _lead_capture(
        self, text: str, session: ConversationSession, campaign: Optional[CampaignContext]
    ) -> Optional[FlowResponse]:
        response: Optional[FlowResponse] = None
        if self._executor.is_in_flow(session):
            response = await self._executor.advance(text, session)
        elif is_lead_campaign(campaign) and not session.handoff_requested:
            key = campaign.lead_flow_key or settings.flows.lead_capture_flow_key
            logger.info("Lead campaign '%s': starting flow '%s'", campaign.name, key)
            response = await self._executor.start(key, session, trigger_message=text)
        if response is not None:
            stage = FlowStage.IN_RUN if session.flow_run is not None else FlowStage.COMPLETE
            session.flow_state = ConversationState(flow=FlowName.LEAD_CAPTURE, stage=stage)
        return response

    # ------------------------------------------------------------------ #
    #  Resolution and dispatch
    # ------------------------------------------------------------------ #

    async def _resolve_flow(
        self,
        text: str,
        session: ConversationSession,
        classification: ClassifierResult,
        channel: Optional[ChannelContext],
    ) -> None:
        current = session.current_flow
        entities = classification.entities
        if entities.width is not None and entities.height is not None:
            dims: Optional[Dimensions] = Dimensions(width=entities.width, height=entities.height)
        else:
            dims = parse_dimensions(text, allow_square=False)

        size_owner: Optional[FlowName] = None
        if current == FlowName.DEFAULT and dims is not None and not dims.is_roll:
            try:
                size_owner = await self._catalog.resolve_flow(dims.width, dims.height)
            except CatalogUnavailableError as e:
                logger.warning("Catalog unavailable for size %s: %s", dims.key, e)

        detected, rule = resolve_flow(ResolutionInput(
            text=text,
            current_flow=current,
            classifier_product=classification.product,
            product_interest=session.product_interest,
            channel=channel,
            dimensions=dims,
            size_owner=size_owner,
        ))
        logger.debug("Resolved flow %s by rule '%s'", detected.value, rule)
        target = check_flow_transfer(current, detected)
        if target is not None:
            session.switch_flow(target)

    async def _check_use_case(self, text: str, session: ConversationSession) -> Optional[FlowResponse]:
        current = session.current_flow
        if not current.is_product:
            return None
        try:
            snapshot = await self._catalog.get()
        except CatalogUnavailableError as e:
            logger.warning("Catalog unavailable, skipping use-case check: %s", e)
            return None

        analysis = UseCaseMatcher(snapshot).analyze(text, current)
        if not analysis.should_suggest_change or analysis.suggested_flow == current:
            return None
        session.set_pending(PendingProductSwitch(
            target_flow=analysis.suggested_flow, from_flow=current, reason="use_case"
        ))
        return FlowResponse(
            text=build_use_case_suggestion(analysis.best_use_case.name, current, analysis.suggestions),
            handled_by="use_case_suggestion",
            metadata={"suggestions": [e.id for e in analysis.suggestions]},
        )

    async def _dispatch(self, ctx: FlowContext) -> Optional[FlowResponse]:
        session = ctx.session
        flow = session.current_flow
        handler: Optional[ProductFlow] = None
        try:
            handler = self._handler(flow)
        except KeyError as e:
            logger.error("No handler for flow '%s': %s", flow.value, e)
            session.clear_pending()
            try:
                handler = self._handler(FlowName.DEFAULT)
            except KeyError:
                handler = None

        response: Optional[FlowResponse] = None
        if handler is not None:
            try:
                response = await handler.handle(ctx)
            except Exception:
                logger.exception("Flow handler '%s' failed", flow.value)
                response = None

        if response is None:
            response = await self._dispatcher.dispatch(ctx.classification, ctx)
        return response
