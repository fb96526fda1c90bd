"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from salesflow.conversation.catalog_index import CatalogSnapshot
from salesflow.conversation.guardrails import GuardrailPipeline
from salesflow.conversation.state_machine import FlowName, FlowStage
from salesflow.flows.base import FlowContext
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.schemas.message_schema import (
    ClassifierEntities,
    ClassifierResult,
    Intent,
    Product,
)
from salesflow.schemas.session_schema import ConversationSession
from salesflow.service import build_components
from salesflow.tools.catalog_store import SEED_ENTRIES, SEED_USE_CASES

# Monday 10:00 in Mexico City
BUSINESS_NOW = datetime(2025, 3, 17, 16, 0, tzinfo=timezone.utc)


class MutableClock:
    """Datetime clock that tests move forward explicitly."""

    def __init__(self, start: datetime = BUSINESS_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class TickClock:
    """Monotonic-style float clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def components():
    return build_components(handoff_clock=lambda: BUSINESS_NOW)


@pytest.fixture
def manager(components):
    return components.manager


@pytest.fixture
def handoff(components):
    return components.handoff


@pytest.fixture
def notifier(components):
    return components.notifier


@pytest.fixture
def executor(components):
    return components.executor


@pytest.fixture
def snapshot():
    return CatalogSnapshot(SEED_ENTRIES, SEED_USE_CASES)


@pytest.fixture
def session():
    return make_session()


@pytest.fixture
def guardrail_pipeline():
    return GuardrailPipeline()


def make_session(
    customer_id: str = "psid-test",
    flow: Optional[FlowName] = None,
    stage: Optional[FlowStage] = None,
    **fields,
) -> ConversationSession:
    """Helper to create a session, optionally already inside a flow."""
    session = ConversationSession(customer_id=customer_id, **fields)
    if flow is not None:
        session.switch_flow(flow)
    if stage is not None:
        session.record_state(flow or session.current_flow, stage)
    return session


def make_classification(
    intent: Intent = Intent.UNCLEAR,
    product: Product = Product.UNKNOWN,
    confidence: float = 0.9,
    **entities,
) -> ClassifierResult:
    """Helper to create a ClassifierResult with pre-parsed entities."""
    return ClassifierResult(
        intent=intent,
        product=product,
        entities=ClassifierEntities(**entities),
        confidence=confidence,
    )


def make_entry(
    entry_id: str,
    name: Optional[str] = None,
    size: Optional[str] = None,
    parent_id: Optional[str] = None,
    sellable: bool = True,
    **fields,
) -> CatalogEntry:
    """Helper to create a CatalogEntry with sensible defaults."""
    return CatalogEntry(
        id=entry_id,
        name=name or entry_id,
        size=size,
        parent_id=parent_id,
        sellable=sellable,
        **fields,
    )


def make_context(
    text: str,
    session: ConversationSession,
    intent: Intent = Intent.UNCLEAR,
    **entities,
) -> FlowContext:
    """Helper to create the FlowContext a product handler receives."""
    return FlowContext(
        text=text,
        session=session,
        classification=make_classification(intent, **entities),
    )
