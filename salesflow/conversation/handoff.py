"""
Human handoff execution.

Every escalation goes through HandoffService: it marks the session as
needing a human, fires the notification without waiting on it, and
builds the customer-facing acknowledgment with a timing line that
depends on business hours (Mon-Fri, configurable hours, store timezone).

Escalations that benefit from location (quotes without a purchase link)
first ask for a postal code and park a PendingHandoff in the session's
single sub-dialog slot; the next turn completes the handoff with
whatever location the customer gave.

Notifications carry the purchase-intent reasons so the sales team can
prioritize the lead.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from salesflow.config import settings
from salesflow.conversation import intent_scorer
from salesflow.conversation.entity_normalizer import extract_zip_code
from salesflow.schemas.session_schema import ConversationSession, PendingHandoff

logger = logging.getLogger(__name__)

ASK_LOCATION_TEXT = "Para calcular el envío, ¿me compartes tu código postal o ciudad?"

_CITY = re.compile(
    r"\b(cdmx|ciudad\s+de\s+m[eé]xico|monterrey|guadalajara|quer[eé]taro|tijuana|puebla|"
    r"le[oó]n|m[eé]rida|canc[uú]n|toluca|aguascalientes|morelia|hermosillo|chihuahua|"
    r"san\s+luis\s+potos[ií]|saltillo|veracruz|oaxaca|culiac[aá]n)\b"
)

_DAY_NAMES = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def with_intent_summary(session: ConversationSession, text: str) -> str:
    """Append the purchase-intent bucket and its reasons, when there are any."""
    reasons = intent_scorer.explain(session.intent_signals)
    if not reasons:
        return text
    bucket = session.purchase_intent.value if session.purchase_intent else "sin calcular"
    return f"{text}\nIntención de compra: {bucket} ({'; '.join(reasons)})"


def format_hour(hour: int) -> str:
    """
    >>> format_hour(9)
    '9am'
    >>> format_hour(18)
    '6pm'
    """
    if hour == 0:
        return "12am"
    if hour < 12:
        return f"{hour}am"
    if hour == 12:
        return "12pm"
    return f"{hour - 12}pm"


def detect_city(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    m = _CITY.search(text.lower())
    return m.group(1) if m else None


class HandoffService:
    """Escalates conversations to the human sales team."""

    def __init__(self, notifier, clock: Callable[[], datetime] = _utcnow) -> None:
        self._notifier = notifier
        self._clock = clock
        self._tz = ZoneInfo(settings.business.timezone)
        self._pending_notifications: set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    #  Business hours
    # ------------------------------------------------------------------ #

    def _local_now(self, now: Optional[datetime] = None) -> datetime:
        return (now or self._clock()).astimezone(self._tz)

    def is_business_hours(self, now: Optional[datetime] = None) -> bool:
        local = self._local_now(now)
        hours = settings.business
        return local.weekday() < 5 and hours.open_hour <= local.hour < hours.close_hour

    def next_business_time(self, now: Optional[datetime] = None) -> str:
        """Human phrase for when the team is next available ("mañana a las 9am")."""
        local = self._local_now(now)
        open_at = f"a las {format_hour(settings.business.open_hour)}"
        weekday = local.weekday()
        if weekday < 5 and local.hour < settings.business.open_hour:
            return f"hoy {open_at}"
        if weekday == 4 or weekday == 5:
            return f"el lunes {open_at}"
        if weekday == 6:
            return f"mañana lunes {open_at}"
        return f"mañana {open_at}"

    def timing_message(self, now: Optional[datetime] = None) -> str:
        if self.is_business_hours(now):
            return "Un especialista te contactará en breve."
        return (
            "Nuestro horario de atención es de lunes a viernes de "
            f"{format_hour(settings.business.open_hour)} a "
            f"{format_hour(settings.business.close_hour)}. "
            f"Un especialista te contactará {self.next_business_time(now)}."
        )

    # ------------------------------------------------------------------ #
    #  Notifications
    # ------------------------------------------------------------------ #

    async def _notify(self, conversation_id: str, reason: str) -> None:
        try:
            await self._notifier.notify(conversation_id, reason)
        except Exception:
            logger.exception("Handoff notification failed for %s", conversation_id)

    def _fire_notification(self, conversation_id: str, reason: str) -> None:
        task = asyncio.create_task(self._notify(conversation_id, reason))
        self._pending_notifications.add(task)
        task.add_done_callback(self._pending_notifications.discard)

    async def drain(self) -> None:
        """Wait for in-flight notifications (used on shutdown and in tests)."""
        if self._pending_notifications:
            await asyncio.gather(*list(self._pending_notifications))

    # ------------------------------------------------------------------ #
    #  Handoff
    # ------------------------------------------------------------------ #

    def execute(
        self,
        session: ConversationSession,
        reason: str,
        prefix: str = "",
        with_timing: bool = True,
        notification: Optional[str] = None,
    ) -> str:
        """Mark the session for a human and return the acknowledgment text.

        Re-sending the alert for the same reason on a retried turn is
        acceptable; the session flag itself is idempotent.
        """
        session.request_handoff(reason)
        if session.pending_handoff is not None:
            session.clear_pending()
        logger.info("Handoff requested: %s", reason)
        self._fire_notification(session.customer_id, with_intent_summary(session, notification or reason))
        if not with_timing:
            return prefix
        return f"{prefix}{self.timing_message()}"

    def request_location(self, session: ConversationSession, reason: str, summary: str = "") -> str:
        """Park a handoff until the customer shares a postal code or city.

        If the location is already known the handoff runs immediately.
        """
        if session.location.zip_code or session.location.city:
            return self.execute(session, reason, prefix=summary)
        session.set_pending(PendingHandoff(reason=reason, summary=summary))
        logger.info("Handoff pending location: %s", reason)
        return ASK_LOCATION_TEXT

    def resolve_pending(
        self, session: ConversationSession, text: str, location_entity: Optional[str] = None
    ) -> Optional[str]:
        """Complete a parked handoff with whatever location the reply carries.

        A reply without a usable location still completes the handoff so
        the customer is never stuck in a loop.
        """
        pending = session.pending_handoff
        if pending is None:
            return None

        zip_code = extract_zip_code(text)
        city = location_entity or detect_city(text)
        if zip_code:
            session.location.zip_code = zip_code
        if city:
            session.location.city = city

        if zip_code or city:
            place = f"CP {zip_code}" if zip_code else city
            reason = f"{pending.reason} | Ubicación: {place}"
            ack = f"Perfecto, {place}. "
        else:
            reason = f"{pending.reason} | Ubicación: no proporcionada"
            ack = ""
        session.clear_pending()
        return self.execute(session, reason, prefix=f"{ack}{pending.summary}")
