"""
Explicit conversation state for the product flows.

Each conversation is pinned to one flow and sits at one stage inside it.
The pair is a small immutable value so routing decisions compare enum
members instead of parsing audit strings such as ``"rollo_awaiting_width"``.

Flow transfers are governed by an explicit rule table: a default
conversation may move into any product flow and a product flow may move
to a different product flow, but resolution never drops a product
conversation back to ``default``.

Usage:
    state = ConversationState(flow=FlowName.ROLLO, stage=FlowStage.AWAITING_WIDTH)
    assert state.tag == "rollo_awaiting_width"
    assert check_flow_transfer(FlowName.DEFAULT, FlowName.ROLLO) == FlowName.ROLLO
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class FlowName(str, Enum):
    """Every handler the orchestrator can route a conversation to."""
    DEFAULT = "default"
    MALLA_SOMBRA = "malla_sombra"
    ROLLO = "rollo"
    BORDE_SEPARADOR = "borde_separador"
    GROUNDCOVER = "groundcover"
    MONOFILAMENTO = "monofilamento"
    LEAD_CAPTURE = "lead_capture"

    @property
    def is_product(self) -> bool:
        return self in PRODUCT_FLOWS


PRODUCT_FLOWS: tuple[FlowName, ...] = (
    FlowName.MALLA_SOMBRA,
    FlowName.ROLLO,
    FlowName.BORDE_SEPARADOR,
    FlowName.GROUNDCOVER,
    FlowName.MONOFILAMENTO,
)

PRODUCT_DISPLAY_NAMES: dict[FlowName, str] = {
    FlowName.MALLA_SOMBRA: "malla sombra confeccionada",
    FlowName.ROLLO: "rollo de malla sombra",
    FlowName.BORDE_SEPARADOR: "borde separador",
    FlowName.GROUNDCOVER: "ground cover antimaleza",
    FlowName.MONOFILAMENTO: "malla monofilamento",
}


def display_name(flow: Optional[FlowName]) -> str:
    if flow is None:
        return "producto"
    return PRODUCT_DISPLAY_NAMES.get(flow, flow.value.replace("_", " "))


class FlowStage(str, Enum):
    """Where a conversation stands inside its flow."""
    START = "start"
    AWAITING_DIMENSIONS = "awaiting_dimensions"
    AWAITING_WIDTH = "awaiting_width"
    AWAITING_LENGTH = "awaiting_length"
    AWAITING_PERCENTAGE = "awaiting_percentage"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_ZIP = "awaiting_zip"
    QUOTED = "quoted"
    WHOLESALE = "wholesale"
    HANDOFF = "handoff"
    IN_RUN = "in_run"
    COMPLETE = "complete"


class ConversationState(BaseModel):
    """Immutable (flow, stage) pair stored on the session."""

    model_config = ConfigDict(frozen=True)

    flow: FlowName = FlowName.DEFAULT
    stage: FlowStage = FlowStage.START

    @property
    def tag(self) -> str:
        """Audit tag written to ``last_intent``. Never parsed back."""
        return f"{self.flow.value}_{self.stage.value}"

    def is_in(self, flow: FlowName, *stages: FlowStage) -> bool:
        if self.flow != flow:
            return False
        return not stages or self.stage in stages


@dataclass(frozen=True)
class TransferRule:
    """One row of the flow transfer table."""
    description: str
    matches: Callable[[FlowName, FlowName], bool]
    allowed: bool


class InvalidTransferError(Exception):
    """Raised when a flow transfer is requested that the rule table forbids."""


TRANSFER_RULES: list[TransferRule] = [
    TransferRule("same flow", lambda current, target: current == target, False),
    TransferRule(
        "resolution never returns a product conversation to default",
        lambda current, target: target == FlowName.DEFAULT,
        False,
    ),
    TransferRule(
        "default conversation picks up a product",
        lambda current, target: current == FlowName.DEFAULT and target.is_product,
        True,
    ),
    TransferRule(
        "customer changed product",
        lambda current, target: current.is_product and target.is_product,
        True,
    ),
]


def _first_rule(current: FlowName, target: FlowName) -> Optional[TransferRule]:
    for rule in TRANSFER_RULES:
        if rule.matches(current, target):
            return rule
    return None


def check_flow_transfer(current: FlowName, detected: FlowName) -> Optional[FlowName]:
    """Return the flow to transfer to, or None when the conversation stays put."""
    rule = _first_rule(current, detected)
    if rule is None or not rule.allowed:
        return None
    logger.info("Flow transfer: %s -> %s (%s)", current.value, detected.value, rule.description)
    return detected


def require_transfer(current: FlowName, target: FlowName) -> FlowName:
    """Like check_flow_transfer but for confirmed switches, which must be legal.

    Raises:
        InvalidTransferError: If the table does not allow the transfer.
    """
    rule = _first_rule(current, target)
    if rule is None or not rule.allowed:
        reason = rule.description if rule else "no matching rule"
        raise InvalidTransferError(
            f"Transfer '{current.value}' -> '{target.value}' not allowed: {reason}"
        )
    return target
