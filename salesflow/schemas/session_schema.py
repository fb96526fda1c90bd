"""Per-customer conversation session and its nested records."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from salesflow.conversation.state_machine import ConversationState, FlowName, FlowStage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntentBucket(str, Enum):
    """Externally visible purchase readiness level."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    NEEDS_HUMAN = "needs_human"
    CLOSED = "closed"


class IntentSignals(BaseModel):
    """
    Signal ledger kept by the purchase intent scorer.

    Booleans only ever flip from False to True and counters only grow for
    the life of a conversation.
    """
    has_specific_dimensions: bool = False
    has_specific_location: bool = False
    asked_about_payment: bool = False
    asked_about_delivery: bool = False
    confirmed_size: bool = False
    mentioned_urgency: bool = False
    size_recommended: bool = False

    material_questions: int = 0
    tech_spec_questions: int = 0
    catalog_requests: int = 0
    messages_without_progress: int = 0
    erratic_typing_count: int = 0
    total_messages: int = 0


class ProductSpecs(BaseModel):
    """Partially filled product request for the active flow."""
    product_type: Optional[FlowName] = None
    width: Optional[float] = None
    height: Optional[float] = None
    length: Optional[float] = None
    percentage: Optional[int] = None
    quantity: Optional[int] = None
    color: Optional[str] = None

    def summary(self) -> str:
        """Compact human-readable description used in handoff reasons."""
        parts: list[str] = []
        if self.width is not None and self.height is not None:
            parts.append(f"{self.width:g}x{self.height:g} m")
        elif self.width is not None and self.length is not None:
            parts.append(f"{self.width:g}x{self.length:g} m")
        elif self.width is not None:
            parts.append(f"ancho {self.width:g} m")
        elif self.length is not None:
            parts.append(f"{self.length:g} m")
        if self.percentage is not None:
            parts.append(f"{self.percentage}%")
        if self.color:
            parts.append(self.color)
        if self.quantity is not None:
            parts.append(f"{self.quantity} pzas")
        return ", ".join(parts)


class PendingProductSwitch(BaseModel):
    """Awaiting a yes/no before moving the conversation to another product."""
    kind: Literal["product_switch"] = "product_switch"
    target_flow: FlowName
    from_flow: Optional[FlowName] = None
    reason: Literal["explicit", "use_case"] = "explicit"


class PendingWholesaleChoice(BaseModel):
    """Awaiting menudeo vs mayoreo before switching to the target family."""
    kind: Literal["wholesale_choice"] = "wholesale_choice"
    target_flow: FlowName


class PendingHandoff(BaseModel):
    """Awaiting one more fact (postal code) before escalating to a human."""
    kind: Literal["handoff"] = "handoff"
    reason: str
    awaiting: Literal["zip_code"] = "zip_code"
    summary: str = ""


PendingLock = Annotated[
    Union[PendingProductSwitch, PendingWholesaleChoice, PendingHandoff],
    Field(discriminator="kind"),
]


class FlowRun(BaseModel):
    """One in-progress execution of a data-described flow."""
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    flow_key: str
    current_step: str
    collected_data: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=_utcnow)
    last_activity_at: Optional[datetime] = None
    trigger_message: Optional[str] = None


class CustomerLocation(BaseModel):
    zip_code: Optional[str] = None
    city: Optional[str] = None


class ConversationSession(BaseModel):
    """
    Durable per-customer conversational state.

    The three sub-dialog locks (switch confirmation, wholesale choice,
    pending handoff) share the single ``pending`` field, so at most one of
    them can be active at any time.
    """
    customer_id: str
    active_flow: Optional[FlowName] = None
    flow_state: ConversationState = Field(default_factory=ConversationState)
    last_intent: Optional[str] = None
    product_interest: Optional[str] = None
    product_specs: ProductSpecs = Field(default_factory=ProductSpecs)
    pending: Optional[PendingLock] = None

    intent_signals: IntentSignals = Field(default_factory=IntentSignals)
    purchase_intent: Optional[IntentBucket] = None
    is_wholesale_inquiry: bool = False

    handoff_requested: bool = False
    handoff_reason: Optional[str] = None
    handoff_at: Optional[datetime] = None
    status: SessionStatus = SessionStatus.ACTIVE

    flow_run: Optional[FlowRun] = None
    flow_collected_data: dict[str, Any] = Field(default_factory=dict)
    flow_transferred_from: Optional[FlowName] = None
    location: CustomerLocation = Field(default_factory=CustomerLocation)
    recommended_size: Optional[str] = None
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def current_flow(self) -> FlowName:
        return self.active_flow or FlowName.DEFAULT

    @property
    def pending_confirmation(self) -> Optional[Union[PendingProductSwitch, PendingWholesaleChoice]]:
        if isinstance(self.pending, (PendingProductSwitch, PendingWholesaleChoice)):
            return self.pending
        return None

    @property
    def pending_handoff(self) -> Optional[PendingHandoff]:
        if isinstance(self.pending, PendingHandoff):
            return self.pending
        return None

    def set_pending(self, lock: Union[PendingProductSwitch, PendingWholesaleChoice, PendingHandoff]) -> None:
        """Occupy the sub-dialog slot, replacing whatever held it."""
        self.pending = lock

    def clear_pending(self) -> None:
        self.pending = None

    def record_state(self, flow: FlowName, stage: FlowStage) -> None:
        """Move to ``(flow, stage)`` and write the matching audit tag."""
        self.flow_state = ConversationState(flow=flow, stage=stage)
        self.last_intent = self.flow_state.tag

    def switch_flow(self, flow: FlowName) -> None:
        """Pin the conversation to ``flow`` starting from a clean product request."""
        previous = self.current_flow
        self.active_flow = flow
        self.flow_transferred_from = previous
        if flow.is_product:
            self.product_interest = flow.value
            if self.product_specs.product_type != flow:
                self.product_specs = ProductSpecs(product_type=flow)
        self.record_state(flow, FlowStage.START)

    def request_handoff(self, reason: str) -> None:
        self.handoff_requested = True
        self.handoff_reason = reason
        self.handoff_at = _utcnow()
        self.status = SessionStatus.NEEDS_HUMAN

    def close(self) -> None:
        self.clear_pending()
        self.flow_run = None
        self.status = SessionStatus.CLOSED
