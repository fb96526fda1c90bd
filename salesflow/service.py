"""
Per-turn conversation service.

Wraps the flow manager with everything a channel webhook needs: the
correlation id for logging, the classifier call, the per-customer
session transaction and the polite fallback. A classifier failure
degrades to an ``unclear`` classification; a failed turn discards its
session changes and still answers the customer.

Usage:
    service = build_service()
    response = await service.process("psid-1", "necesito 4x5")
"""

import logging
from dataclasses import dataclass
from typing import Optional

from salesflow.conversation.catalog_index import CatalogIndex
from salesflow.conversation.flow_executor import FlowExecutor
from salesflow.conversation.flow_manager import FlowManager
from salesflow.conversation.handoff import HandoffService
from salesflow.conversation.intent_dispatcher import IntentDispatcher
from salesflow.logging_context import get_conversation_logger, set_conversation_id
from salesflow.prompts.system_messages import FALLBACK_TEXT
from salesflow.schemas.message_schema import (
    CampaignContext,
    ChannelContext,
    ClassifierResult,
    FlowResponse,
)
from salesflow.tools.catalog_store import InMemoryCatalogStore
from salesflow.tools.classifier import RuleBasedClassifier
from salesflow.tools.flow_store import InMemoryFlowStore
from salesflow.tools.links import InMemoryLinkTracker
from salesflow.tools.notifications import InMemoryNotificationSink
from salesflow.tools.renderer import TemplateRenderer
from salesflow.tools.session_store import InMemorySessionStore

logger = get_conversation_logger(__name__)


class ConversationService:
    def __init__(self, manager: FlowManager, classifier, sessions) -> None:
        self._manager = manager
        self._classifier = classifier
        self._sessions = sessions

    async def _classify(self, text: str, customer_id: str, channel: Optional[ChannelContext]) -> ClassifierResult:
        context = {"customer_id": customer_id, "channel": channel.channel if channel else None}
        try:
            return await self._classifier.classify(text, context)
        except Exception:
            logger.exception("Classifier failed; treating message as unclear")
            return ClassifierResult.unclear()

    async def process(
        self,
        customer_id: str,
        text: str,
        channel: Optional[ChannelContext] = None,
        campaign: Optional[CampaignContext] = None,
    ) -> FlowResponse:
        """Run one inbound message end to end and return what to send back."""
        set_conversation_id(customer_id)
        classification = await self._classify(text, customer_id, channel)
        try:
            async with self._sessions.transaction(customer_id) as session:
                response = await self._manager.handle_message(
                    text, customer_id, session, classification, channel=channel, campaign=campaign
                )
        except Exception:
            logger.exception("Turn failed")
            return FlowResponse(text=FALLBACK_TEXT, handled_by="fallback_error")

        if response is None:
            logger.info("No handler took the message; sending fallback")
            return FlowResponse(text=FALLBACK_TEXT, handled_by="fallback")
        logger.info("Handled by %s", response.handled_by)
        return response


@dataclass
class ServiceComponents:
    """The wired service plus its in-memory collaborators, for demos and tests."""
    service: ConversationService
    manager: FlowManager
    classifier: RuleBasedClassifier
    sessions: InMemorySessionStore
    catalog_store: InMemoryCatalogStore
    catalog: CatalogIndex
    flow_store: InMemoryFlowStore
    notifier: InMemoryNotificationSink
    links: InMemoryLinkTracker
    renderer: TemplateRenderer
    handoff: HandoffService
    executor: FlowExecutor


def build_components(**overrides) -> ServiceComponents:
    """Wire a complete service over in-memory collaborators.

    Any collaborator can be replaced by keyword (``catalog_store=...``,
    ``handoff_clock=...``).
    """
    catalog_store = overrides.get("catalog_store") or InMemoryCatalogStore()
    flow_store = overrides.get("flow_store") or InMemoryFlowStore()
    notifier = overrides.get("notifier") or InMemoryNotificationSink()
    links = overrides.get("links") or InMemoryLinkTracker()
    renderer = overrides.get("renderer") or TemplateRenderer()
    classifier = overrides.get("classifier") or RuleBasedClassifier()
    sessions = overrides.get("sessions") or InMemorySessionStore()

    catalog = CatalogIndex(catalog_store)
    handoff_kwargs = {"clock": overrides["handoff_clock"]} if "handoff_clock" in overrides else {}
    handoff = HandoffService(notifier, **handoff_kwargs)
    executor = FlowExecutor(flow_store, handoff)
    dispatcher = IntentDispatcher(executor, handoff)
    manager = FlowManager(catalog, executor, handoff, dispatcher, links, renderer)
    service = ConversationService(manager, classifier, sessions)
    return ServiceComponents(
        service=service,
        manager=manager,
        classifier=classifier,
        sessions=sessions,
        catalog_store=catalog_store,
        catalog=catalog,
        flow_store=flow_store,
        notifier=notifier,
        links=links,
        renderer=renderer,
        handoff=handoff,
        executor=executor,
    )


def build_service(**overrides) -> ConversationService:
    return build_components(**overrides).service
