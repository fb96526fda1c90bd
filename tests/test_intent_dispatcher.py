"""Tests for the flow-agnostic intent dispatcher."""

import pytest

from salesflow.conversation.intent_dispatcher import IntentDispatcher
from salesflow.conversation.state_machine import FlowName, FlowStage
from salesflow.prompts import system_messages as msg
from salesflow.schemas.flow_schema import FlowDefinition, FlowStep
from salesflow.schemas.message_schema import Intent
from salesflow.schemas.session_schema import SessionStatus
from tests.conftest import make_classification, make_context, make_session


@pytest.fixture
def dispatcher(executor, handoff):
    return IntentDispatcher(executor, handoff)


async def dispatch(dispatcher, text, session, intent):
    return await dispatcher.dispatch(make_classification(intent), make_context(text, session, intent=intent))


class TestFixedAnswers:
    @pytest.mark.asyncio
    async def test_thanks(self, dispatcher, session):
        response = await dispatch(dispatcher, "gracias", session, Intent.THANKS)
        assert response.text == msg.THANKS_TEXT
        assert response.handled_by == "intent_thanks"
        assert session.last_intent == "thanks"

    @pytest.mark.asyncio
    async def test_logistics_questions(self, dispatcher, session):
        shipping = await dispatch(dispatcher, "hacen envíos?", session, Intent.SHIPPING_QUERY)
        payment = await dispatch(dispatcher, "aceptan tarjeta?", session, Intent.PAYMENT_QUERY)
        assert shipping.text == msg.SHIPPING_TEXT
        assert payment.text == msg.PAYMENT_TEXT

    @pytest.mark.asyncio
    async def test_goodbye_closes(self, dispatcher):
        session = make_session(flow=FlowName.ROLLO)
        response = await dispatch(dispatcher, "adiós", session, Intent.GOODBYE)
        assert response.text == msg.GOODBYE_TEXT
        assert session.status == SessionStatus.CLOSED

    @pytest.mark.asyncio
    async def test_greeting_inside_product_flow(self, dispatcher):
        session = make_session(flow=FlowName.ROLLO)
        response = await dispatch(dispatcher, "hola", session, Intent.GREETING)
        assert response.text == "¡Hola de nuevo! ¿Seguimos con rollo de malla sombra?"

    @pytest.mark.asyncio
    async def test_greeting_without_product(self, dispatcher, session):
        response = await dispatch(dispatcher, "hola", session, Intent.GREETING)
        assert response.text == msg.GREETING_TEXT

    def test_registered_intents(self, dispatcher):
        assert Intent.HUMAN_REQUEST in dispatcher.intents
        assert Intent.PRICE_QUERY not in dispatcher.intents


class TestEscalations:
    @pytest.mark.asyncio
    async def test_human_request_carries_specs(self, dispatcher, handoff, notifier):
        session = make_session(flow=FlowName.ROLLO)
        session.product_specs.width = 4.2
        response = await dispatch(dispatcher, "quiero un asesor", session, Intent.HUMAN_REQUEST)

        assert response.handoff
        assert response.handled_by == "intent_handoff"
        assert response.text.startswith(msg.HUMAN_REQUEST_ACK)
        assert session.handoff_reason == (
            "Cliente pidió hablar con un asesor | rollo de malla sombra: ancho 4.2 m"
            " | Mensaje: quiero un asesor"
        )
        assert session.flow_state.stage == FlowStage.HANDOFF
        await handoff.drain()
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_complaint_without_product(self, dispatcher, session):
        response = await dispatch(dispatcher, "no ha llegado mi pedido", session, Intent.COMPLAINT)
        assert response.handoff
        assert session.handoff_reason == "Queja del cliente | Mensaje: no ha llegado mi pedido"


class TestDataDescribedFallback:
    @pytest.mark.asyncio
    async def test_intent_without_handler_starts_linked_flow(self, components, dispatcher, session):
        components.flow_store.add(FlowDefinition(
            key="cotizador",
            name="Cotizador",
            trigger_intent="price_query",
            steps=[FlowStep(step_id="medida", order=1, message="¿Qué medida buscas?", collect_as="size")],
        ))
        response = await dispatch(dispatcher, "precio?", session, Intent.PRICE_QUERY)
        assert response.text == "¿Qué medida buscas?"
        assert response.handled_by == "flow_cotizador"
        assert session.flow_run.flow_key == "cotizador"

    @pytest.mark.asyncio
    async def test_intent_without_handler_or_flow(self, dispatcher, session):
        assert await dispatch(dispatcher, "mmm", session, Intent.UNCLEAR) is None

    @pytest.mark.asyncio
    async def test_handler_failure_yields_nothing(self, components, dispatcher, session, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("store down")

        monkeypatch.setattr(components.executor, "start_for_intent", broken)
        assert await dispatch(dispatcher, "precio?", session, Intent.PRICE_QUERY) is None
