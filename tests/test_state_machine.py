"""Tests for the tagged conversation state, flow transfers and the session record."""

import pytest
from pydantic import ValidationError

from salesflow.conversation.state_machine import (
    ConversationState,
    FlowName,
    FlowStage,
    InvalidTransferError,
    check_flow_transfer,
    display_name,
    require_transfer,
)
from salesflow.schemas.session_schema import (
    ConversationSession,
    PendingHandoff,
    PendingProductSwitch,
    PendingWholesaleChoice,
    ProductSpecs,
    SessionStatus,
)
from tests.conftest import make_session


class TestConversationState:
    def test_default_state(self):
        state = ConversationState()
        assert state.flow == FlowName.DEFAULT
        assert state.stage == FlowStage.START
        assert state.tag == "default_start"

    def test_tag(self):
        state = ConversationState(flow=FlowName.ROLLO, stage=FlowStage.AWAITING_WIDTH)
        assert state.tag == "rollo_awaiting_width"

    def test_is_in(self):
        state = ConversationState(flow=FlowName.ROLLO, stage=FlowStage.QUOTED)
        assert state.is_in(FlowName.ROLLO)
        assert state.is_in(FlowName.ROLLO, FlowStage.QUOTED, FlowStage.HANDOFF)
        assert not state.is_in(FlowName.ROLLO, FlowStage.AWAITING_WIDTH)
        assert not state.is_in(FlowName.MALLA_SOMBRA)

    def test_frozen(self):
        state = ConversationState()
        with pytest.raises(ValidationError):
            state.stage = FlowStage.QUOTED

    def test_product_flags(self):
        assert FlowName.ROLLO.is_product
        assert not FlowName.DEFAULT.is_product
        assert not FlowName.LEAD_CAPTURE.is_product
        assert display_name(FlowName.BORDE_SEPARADOR) == "borde separador"


class TestFlowTransfers:
    def test_default_to_product(self):
        assert check_flow_transfer(FlowName.DEFAULT, FlowName.ROLLO) == FlowName.ROLLO

    def test_product_to_other_product(self):
        assert check_flow_transfer(FlowName.ROLLO, FlowName.BORDE_SEPARADOR) == FlowName.BORDE_SEPARADOR

    def test_same_flow_stays(self):
        assert check_flow_transfer(FlowName.ROLLO, FlowName.ROLLO) is None

    def test_never_back_to_default(self):
        assert check_flow_transfer(FlowName.ROLLO, FlowName.DEFAULT) is None

    def test_lead_capture_is_not_a_resolution_target(self):
        assert check_flow_transfer(FlowName.DEFAULT, FlowName.LEAD_CAPTURE) is None

    def test_require_transfer_raises(self):
        with pytest.raises(InvalidTransferError, match="not allowed"):
            require_transfer(FlowName.ROLLO, FlowName.DEFAULT)

    def test_require_transfer_allows(self):
        assert require_transfer(FlowName.ROLLO, FlowName.GROUNDCOVER) == FlowName.GROUNDCOVER


class TestSessionRecord:
    def test_new_session_is_default(self):
        session = ConversationSession(customer_id="c1")
        assert session.current_flow == FlowName.DEFAULT
        assert session.pending is None
        assert session.status == SessionStatus.ACTIVE

    def test_record_state_writes_audit_tag(self):
        session = make_session(flow=FlowName.ROLLO)
        session.record_state(FlowName.ROLLO, FlowStage.AWAITING_PERCENTAGE)
        assert session.last_intent == "rollo_awaiting_percentage"

    def test_switch_flow_starts_fresh_specs_for_new_product(self):
        session = make_session(flow=FlowName.MALLA_SOMBRA)
        session.product_specs.width = 4
        session.switch_flow(FlowName.ROLLO)
        assert session.product_specs == ProductSpecs(product_type=FlowName.ROLLO)
        assert session.flow_transferred_from == FlowName.MALLA_SOMBRA
        assert session.product_interest == "rollo"
        assert session.flow_state.tag == "rollo_start"

    def test_switch_to_same_product_keeps_specs(self):
        session = make_session(flow=FlowName.ROLLO)
        session.product_specs.width = 4.2
        session.switch_flow(FlowName.ROLLO)
        assert session.product_specs.width == 4.2

    def test_single_pending_slot(self):
        session = make_session(flow=FlowName.ROLLO)
        session.set_pending(PendingProductSwitch(target_flow=FlowName.BORDE_SEPARADOR))
        assert session.pending_confirmation is not None
        session.set_pending(PendingHandoff(reason="Cotización"))
        assert session.pending_handoff is not None
        assert session.pending_confirmation is None

    def test_round_trip_keeps_pending_variant(self):
        session = make_session(flow=FlowName.ROLLO)
        session.set_pending(PendingWholesaleChoice(target_flow=FlowName.BORDE_SEPARADOR))
        restored = ConversationSession.model_validate_json(session.model_dump_json())
        assert isinstance(restored.pending, PendingWholesaleChoice)
        assert restored.flow_state == session.flow_state

    def test_request_handoff_and_close(self):
        session = make_session()
        session.request_handoff("Cliente pidió asesor")
        assert session.handoff_requested
        assert session.status == SessionStatus.NEEDS_HUMAN
        session.close()
        assert session.status == SessionStatus.CLOSED

    def test_specs_summary(self):
        specs = ProductSpecs(width=4, height=5, percentage=90, quantity=3)
        assert specs.summary() == "4x5 m, 90%, 3 pzas"
        assert ProductSpecs(width=4.2).summary() == "ancho 4.2 m"
        assert ProductSpecs().summary() == ""
