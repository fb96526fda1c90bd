"""End-to-end routing tests for the per-turn flow manager."""

import pytest

from salesflow.config import settings
from salesflow.conversation import flow_manager as flow_manager_module
from salesflow.conversation.flow_manager import is_lead_campaign
from salesflow.conversation.handoff import ASK_LOCATION_TEXT
from salesflow.conversation.state_machine import ConversationState, FlowName, FlowStage
from salesflow.flows.malla_flow import MallaSombraFlow
from salesflow.flows.registry import create_flow
from salesflow.prompts.system_messages import GREETING_TEXT, THANKS_TEXT
from salesflow.schemas.message_schema import CampaignContext, ChannelContext, Intent, Product
from salesflow.schemas.session_schema import (
    PendingProductSwitch,
    PendingWholesaleChoice,
)
from tests.conftest import make_classification, make_session

LEAD_CAMPAIGN = CampaignContext(name="Distribuidores", goal="lead_capture", audience_type="reseller")


async def send(manager, session, text, intent=Intent.UNCLEAR, product=Product.UNKNOWN, **kwargs):
    classification = make_classification(intent, product)
    return await manager.handle_message(text, session.customer_id, session, classification, **kwargs)


class TestResolutionAndQuoting:
    @pytest.mark.asyncio
    async def test_dimensions_select_confeccionada_and_quote(self, manager, session):
        response = await send(manager, session, "necesito 4x5", intent=Intent.SIZE_SPECIFICATION)

        assert response.handled_by == "malla_sombra_quoted"
        assert response.metadata["product_id"] == "ms90_4x5"
        assert response.purchase_intent is not None
        assert session.active_flow == FlowName.MALLA_SOMBRA
        assert session.product_interest == "malla_sombra"
        assert session.last_intent == "malla_sombra_quoted"

    @pytest.mark.asyncio
    async def test_roll_keyword_with_width_and_percentage(self, manager, session):
        response = await send(manager, session, "rollo de 4.20 al 90%")
        assert session.active_flow == FlowName.ROLLO
        assert response.metadata["product_id"] == "rollo_90_420"

    @pytest.mark.asyncio
    async def test_ad_reference_opens_flow(self, manager, session):
        response = await send(manager, session, "hola", channel=ChannelContext(ad_flow_ref="borde"))
        assert session.active_flow == FlowName.BORDE_SEPARADOR
        assert response.handled_by == "borde_separador_awaiting_length"

    @pytest.mark.asyncio
    async def test_greeting_without_product(self, manager, session):
        response = await send(manager, session, "hola", intent=Intent.GREETING)
        assert response.text == GREETING_TEXT
        assert session.current_flow == FlowName.DEFAULT

    @pytest.mark.asyncio
    async def test_score_is_recorded_every_turn(self, manager, session):
        await send(manager, session, "hola", intent=Intent.GREETING)
        await send(manager, session, "necesito 4x5 para mañana")
        assert session.intent_signals.total_messages == 2
        assert session.intent_signals.has_specific_dimensions
        assert session.purchase_intent is not None


class TestProductSwitch:
    @pytest.mark.asyncio
    async def test_switch_asks_first(self, manager):
        session = make_session(flow=FlowName.ROLLO)
        response = await send(manager, session, "y el borde separador?")

        assert response.handled_by == "product_switch_confirmation"
        assert "borde separador" in response.text
        assert "rollo de malla sombra" in response.text
        assert session.active_flow == FlowName.ROLLO
        assert isinstance(session.pending, PendingProductSwitch)

    @pytest.mark.asyncio
    async def test_confirmed_switch_to_mixed_family_asks_menudeo_or_mayoreo(self, manager):
        session = make_session(flow=FlowName.ROLLO)
        await send(manager, session, "y el borde separador?")
        response = await send(manager, session, "sí")

        assert response.handled_by == "wholesale_choice_question"
        assert session.active_flow == FlowName.ROLLO
        assert isinstance(session.pending, PendingWholesaleChoice)

    @pytest.mark.asyncio
    async def test_menudeo_opens_target_flow_and_quotes(self, manager):
        session = make_session(flow=FlowName.ROLLO)
        await send(manager, session, "y el borde separador?")
        await send(manager, session, "sí")

        response = await send(manager, session, "menudeo")
        assert response.handled_by == "borde_separador_opening"
        assert session.active_flow == FlowName.BORDE_SEPARADOR
        assert session.flow_transferred_from == FlowName.ROLLO
        assert session.pending is None

        response = await send(manager, session, "18 metros")
        assert response.handled_by == "borde_separador_quoted"
        assert response.metadata["product_id"] == "borde_18"

    @pytest.mark.asyncio
    async def test_mayoreo_escalates_without_switching(self, manager, notifier, handoff):
        session = make_session(flow=FlowName.ROLLO)
        await send(manager, session, "y el borde separador?")
        await send(manager, session, "sí")

        response = await send(manager, session, "mayoreo")
        assert response.handled_by == "wholesale_handoff"
        assert response.handoff
        assert session.active_flow == FlowName.ROLLO
        assert session.is_wholesale_inquiry
        assert session.flow_state == ConversationState(flow=FlowName.ROLLO, stage=FlowStage.WHOLESALE)
        await handoff.drain()
        assert notifier.reasons_for(session.customer_id) == ["Mayoreo: borde separador"]

    @pytest.mark.asyncio
    async def test_declined_switch_stays(self, manager):
        session = make_session(flow=FlowName.ROLLO)
        await send(manager, session, "y el borde separador?")
        response = await send(manager, session, "no")

        assert response.handled_by == "product_switch_declined"
        assert session.active_flow == FlowName.ROLLO
        assert session.pending is None

    @pytest.mark.asyncio
    async def test_ambiguous_reply_releases_lock_and_routes_normally(self, manager):
        session = make_session(flow=FlowName.ROLLO)
        await send(manager, session, "y el borde separador?")
        response = await send(manager, session, "a ver")

        assert session.pending is None
        assert response.handled_by == "rollo_awaiting_width"

    @pytest.mark.asyncio
    async def test_confirmed_switch_to_wholesale_only_family(self, manager):
        session = make_session(flow=FlowName.ROLLO)
        await send(manager, session, "tienen monofilamento?")
        response = await send(manager, session, "sí")

        assert response.handled_by == "wholesale_handoff"
        assert session.active_flow == FlowName.MONOFILAMENTO
        assert session.handoff_requested


class TestDeflectionAndSpam:
    @pytest.mark.asyncio
    async def test_unsold_category_in_product_flow(self, manager):
        session = make_session(flow=FlowName.ROLLO, stage=FlowStage.AWAITING_PERCENTAGE)
        state_before = session.flow_state
        response = await send(manager, session, "tienen lona?")

        assert response.handled_by == "guardrail_scope"
        assert settings.business.storefront_url in response.text
        assert session.flow_state == state_before
        assert session.active_flow == FlowName.ROLLO
        assert session.pending is None

    @pytest.mark.asyncio
    async def test_spam_is_dropped_before_scoring(self, manager, session):
        response = await send(manager, session, "Gana dinero desde casa!!")
        assert response.silent
        assert response.handled_by == "guardrail_spam"
        assert session.intent_signals.total_messages == 0


class TestPendingHandoff:
    @pytest.mark.asyncio
    async def test_zip_code_completes_parked_handoff(self, manager, notifier, handoff):
        session = make_session(flow=FlowName.MALLA_SOMBRA)
        response = await send(manager, session, "3x3")
        assert response.handled_by == "malla_sombra_awaiting_zip"
        assert response.text.endswith(ASK_LOCATION_TEXT)

        response = await send(manager, session, "64000")
        assert response.handled_by == "pending_handoff"
        assert response.handoff
        assert response.text.startswith("Perfecto, CP 64000. ")
        assert session.location.zip_code == "64000"
        assert session.pending is None
        assert session.flow_state.stage == FlowStage.HANDOFF

        await handoff.drain()
        [reason] = notifier.reasons_for(session.customer_id)
        headline, summary = reason.split("\n")
        assert headline.endswith("Ubicación: CP 64000")
        assert summary.startswith("Intención de compra: ")
        assert "Proporcionó medidas específicas" in summary
        assert "Mencionó ubicación específica" in summary


class TestUseCase:
    @pytest.mark.asyncio
    async def test_use_case_suggestion_then_wholesale_handoff(self, manager):
        session = make_session(flow=FlowName.MALLA_SOMBRA)
        response = await send(manager, session, "es para mi invernadero")

        assert response.handled_by == "use_case_suggestion"
        assert response.metadata["suggestions"][0] == "mono_4_35"
        assert session.pending.reason == "use_case"
        assert session.pending.target_flow == FlowName.MONOFILAMENTO

        response = await send(manager, session, "sí")
        assert response.handled_by == "wholesale_handoff"
        assert session.active_flow == FlowName.MONOFILAMENTO

    @pytest.mark.asyncio
    async def test_fitting_use_case_goes_to_handler(self, manager):
        session = make_session(flow=FlowName.MALLA_SOMBRA)
        response = await send(manager, session, "es para la cochera, 4x5")
        assert response.handled_by == "malla_sombra_quoted"


class TestLeadCapture:
    def test_lead_campaign_detection(self):
        assert is_lead_campaign(LEAD_CAMPAIGN)
        assert is_lead_campaign(CampaignContext(name="x", goal="cotizacion", catalog_url="https://c.example"))
        assert not is_lead_campaign(CampaignContext(name="x", goal="lead_capture"))
        assert not is_lead_campaign(CampaignContext(name="x", goal="ventas", audience_type="reseller"))
        assert not is_lead_campaign(None)

    @pytest.mark.asyncio
    async def test_campaign_starts_and_runs_script(self, manager):
        session = make_session(flow=FlowName.ROLLO)
        response = await send(manager, session, "hola", campaign=LEAD_CAMPAIGN)
        key = settings.flows.lead_capture_flow_key

        assert response.handled_by == f"flow_{key}"
        assert session.flow_state == ConversationState(flow=FlowName.LEAD_CAPTURE, stage=FlowStage.IN_RUN)

        # Product words mid-script are answers, not switches
        response = await send(manager, session, "Ana del borde")
        assert response.handled_by == f"flow_{key}"
        assert response.metadata["step_id"] == "ask_location"
        assert session.pending is None

    @pytest.mark.asyncio
    async def test_unsold_category_mid_script_is_an_answer(self, manager):
        session = make_session()
        for text in ("hola", "Ana López", "Monterrey"):
            await send(manager, session, text, campaign=LEAD_CAMPAIGN)

        response = await send(manager, session, "malla sombra para revender con mis lonas", campaign=LEAD_CAMPAIGN)
        assert response.handled_by == f"flow_{settings.flows.lead_capture_flow_key}"
        assert response.metadata["step_id"] == "ask_quantity"
        assert session.flow_run.collected_data["products"] == "malla sombra para revender con mis lonas"

    @pytest.mark.asyncio
    async def test_completed_script_is_not_restarted(self, manager):
        session = make_session()
        for text in ("hola", "Ana López", "Monterrey", "borde 18 m", "40", "1", "81 1234 5678"):
            response = await send(manager, session, text, campaign=LEAD_CAMPAIGN)
        assert response.handoff
        assert session.flow_state.stage == FlowStage.COMPLETE
        assert session.handoff_requested

        response = await send(manager, session, "gracias", intent=Intent.THANKS, campaign=LEAD_CAMPAIGN)
        assert response.text == THANKS_TEXT


class TestHandlerFailures:
    @pytest.mark.asyncio
    async def test_unregistered_flow_falls_back_to_default(self, manager, monkeypatch):
        def create_without_rollo(name, **kwargs):
            if name == FlowName.ROLLO.value:
                raise KeyError(f"Flow '{name}' not registered")
            return create_flow(name, **kwargs)

        monkeypatch.setattr(flow_manager_module, "create_flow", create_without_rollo)
        session = make_session(flow=FlowName.ROLLO)

        response = await send(manager, session, "hola", intent=Intent.GREETING)
        assert response.handled_by == "default_menu"

    @pytest.mark.asyncio
    async def test_handler_exception_uses_intent_dispatcher(self, manager, monkeypatch):
        async def boom(self, ctx):
            raise RuntimeError("handler bug")

        monkeypatch.setattr(MallaSombraFlow, "handle", boom)
        session = make_session(flow=FlowName.MALLA_SOMBRA)
        response = await send(manager, session, "gracias", intent=Intent.THANKS)
        assert response.handled_by == "intent_thanks"

    @pytest.mark.asyncio
    async def test_catalog_outage_still_answers(self, components, manager, session):
        components.catalog_store.fail = True
        response = await send(manager, session, "necesito 4x5")
        assert session.active_flow == FlowName.MALLA_SOMBRA
        assert response.handoff


class TestSingleSlotLock:
    @pytest.mark.asyncio
    async def test_at_most_one_lock_across_turns(self, manager):
        session = make_session(flow=FlowName.MALLA_SOMBRA)
        texts = ["3x3", "y el rollo?", "no", "es para mi invernadero", "no", "7x9"]
        for text in texts:
            await send(manager, session, text)
            locks = [session.pending_confirmation, session.pending_handoff]
            assert sum(lock is not None for lock in locks) <= 1
