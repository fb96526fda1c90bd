"""Tests for human handoff: business hours, notifications and parked handoffs."""

from datetime import datetime, timezone

import pytest

from salesflow.conversation.handoff import (
    ASK_LOCATION_TEXT,
    HandoffService,
    detect_city,
    format_hour,
    with_intent_summary,
)
from salesflow.schemas.session_schema import IntentBucket, PendingHandoff, SessionStatus
from salesflow.tools.notifications import InMemoryNotificationSink
from tests.conftest import BUSINESS_NOW, make_session


def utc(year, month, day, hour):
    return datetime(year, month, day, hour, 0, tzinfo=timezone.utc)


class TestBusinessHours:
    def setup_method(self):
        self.service = HandoffService(InMemoryNotificationSink(), clock=lambda: BUSINESS_NOW)

    def test_weekday_daytime_is_open(self):
        assert self.service.is_business_hours()
        assert self.service.timing_message() == "Un especialista te contactará en breve."

    @pytest.mark.parametrize(
        "now,expected",
        [
            (utc(2025, 3, 18, 13), "hoy a las 9am"),            # Tue 07:00
            (utc(2025, 3, 20, 1), "mañana a las 9am"),          # Wed 19:00
            (utc(2025, 3, 22, 1), "el lunes a las 9am"),        # Fri 19:00
            (utc(2025, 3, 22, 18), "el lunes a las 9am"),       # Sat 12:00
            (utc(2025, 3, 23, 18), "mañana lunes a las 9am"),   # Sun 12:00
        ],
    )
    def test_next_business_time(self, now, expected):
        assert not self.service.is_business_hours(now)
        assert self.service.next_business_time(now) == expected

    def test_after_hours_message(self):
        saturday = utc(2025, 3, 22, 18)
        assert self.service.timing_message(saturday) == (
            "Nuestro horario de atención es de lunes a viernes de 9am a 6pm. "
            "Un especialista te contactará el lunes a las 9am."
        )

    def test_format_hour(self):
        assert format_hour(0) == "12am"
        assert format_hour(9) == "9am"
        assert format_hour(12) == "12pm"
        assert format_hour(18) == "6pm"


class TestExecute:
    @pytest.mark.asyncio
    async def test_marks_session_and_notifies(self, handoff, notifier, session):
        text = handoff.execute(session, "Cliente pidió asesor", prefix="¡Claro! ")
        assert text == "¡Claro! Un especialista te contactará en breve."
        assert session.handoff_requested
        assert session.status == SessionStatus.NEEDS_HUMAN

        await handoff.drain()
        assert notifier.reasons_for(session.customer_id) == ["Cliente pidió asesor"]

    @pytest.mark.asyncio
    async def test_notification_carries_intent_reasons(self, handoff, notifier, session):
        session.intent_signals.has_specific_dimensions = True
        session.intent_signals.asked_about_payment = True
        session.purchase_intent = IntentBucket.HIGH
        handoff.execute(session, "Cotización")
        await handoff.drain()

        assert notifier.reasons_for(session.customer_id) == [
            "Cotización\nIntención de compra: high "
            "(Proporcionó medidas específicas; Preguntó por formas de pago)"
        ]

    def test_summary_without_signals(self, session):
        assert with_intent_summary(session, "Queja") == "Queja"

    @pytest.mark.asyncio
    async def test_without_timing(self, handoff, session):
        assert handoff.execute(session, "x", prefix="Listo.", with_timing=False) == "Listo."

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_break_turn(self, handoff, notifier, session):
        notifier.fail = True
        text = handoff.execute(session, "Mayoreo")
        await handoff.drain()
        assert text
        assert session.handoff_requested
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_clears_parked_handoff(self, handoff, session):
        session.set_pending(PendingHandoff(reason="Cotización"))
        handoff.execute(session, "Cotización")
        assert session.pending is None


class TestParkedHandoff:
    @pytest.mark.asyncio
    async def test_request_location_parks_handoff(self, handoff, session):
        reply = handoff.request_location(session, "Cotización sin enlace", summary="Precio $380.\n\n")
        assert reply == ASK_LOCATION_TEXT
        assert session.pending_handoff.summary == "Precio $380.\n\n"
        assert not session.handoff_requested

    @pytest.mark.asyncio
    async def test_known_location_hands_off_immediately(self, handoff, session):
        session.location.city = "puebla"
        reply = handoff.request_location(session, "Cotización sin enlace", summary="Precio $380.\n\n")
        assert reply.startswith("Precio $380.\n\n")
        assert session.handoff_requested
        assert session.pending is None

    @pytest.mark.asyncio
    async def test_resolve_with_city(self, handoff, session):
        handoff.request_location(session, "Cotización")
        reply = handoff.resolve_pending(session, "vivo en Monterrey")
        assert reply.startswith("Perfecto, monterrey. ")
        assert session.location.city == "monterrey"
        assert session.handoff_reason == "Cotización | Ubicación: monterrey"

    @pytest.mark.asyncio
    async def test_resolve_with_classifier_location(self, handoff, session):
        handoff.request_location(session, "Cotización")
        handoff.resolve_pending(session, "por allá", location_entity="Saltillo")
        assert session.location.city == "Saltillo"

    @pytest.mark.asyncio
    async def test_resolve_without_location_still_hands_off(self, handoff, session):
        handoff.request_location(session, "Cotización")
        reply = handoff.resolve_pending(session, "no sé")
        assert session.handoff_reason == "Cotización | Ubicación: no proporcionada"
        assert session.handoff_requested
        assert reply == "Un especialista te contactará en breve."

    def test_resolve_without_pending(self, handoff, session):
        assert handoff.resolve_pending(session, "64000") is None


class TestDetectCity:
    def test_known_city(self):
        assert detect_city("Soy de Guadalajara") == "guadalajara"
        assert detect_city("en la CDMX") == "cdmx"

    def test_unknown(self):
        assert detect_city("vivo en un rancho") is None
        assert detect_city(None) is None
