"""
Purchase intent scorer.

Runs on every inbound message next to the regular routing. Positive
signals (concrete sizes, payment questions, urgency) push a conversation
toward ``high``; repeated material/spec questions, "send me everything"
requests and erratic typing push it toward ``low``.

The score is recomputed from scratch each turn from the full ledger:
base 50, plus or minus fixed weights, bucketed at the configured
thresholds. Only the bucket leaves this module.

Usage:
    ledger, bucket = score("necesito 4x5 para mañana", IntentSignals())
    assert bucket == IntentBucket.HIGH
"""

import logging
import re

from salesflow.config import settings
from salesflow.schemas.session_schema import IntentBucket, IntentSignals

logger = logging.getLogger(__name__)

BASE_SCORE = 50

_DIMENSIONS = re.compile(r"\d+\s*[x×]\s*\d+", re.IGNORECASE)
_LOCATION = re.compile(
    r"\b(cdmx|monterrey|guadalajara|quer[eé]taro|tijuana|puebla|cp\s*\d{5}|\d{5})\b"
)
_PAYMENT = re.compile(
    r"\b(c[oó]mo\s+(le\s+)?pago|forma\s+de\s+pago|aceptan\s+tarjeta|puedo\s+pagar|"
    r"transferencia|efectivo|meses\s+sin\s+intereses)\b"
)
_DELIVERY = re.compile(
    r"\b(env[ií]an?\s+a|llega\s+a|entregan\s+en|cu[aá]nto\s+tarda\s+(en\s+llegar\s+)?a)\b"
)
_CONFIRMATION = re.compile(r"\b(s[ií]|claro|ok|esa|ese|perfecto|va|dale)\b")
_URGENCY = re.compile(
    r"\b(urgente|lo\s+antes\s+posible|para\s+(hoy|ma[ñn]ana|esta\s+semana)|"
    r"lo\s+necesito|cu[aá]nto\s+tardan?|r[aá]pido)\b"
)

_MATERIAL = re.compile(
    r"\b(material|de\s+qu[eé]\s+est[aá]|fabrican?|manufactura|hecho\s+de|hecha\s+de|"
    r"polietileno|raschel|tejido|hilado)\b"
)
_TECH_SPEC = re.compile(
    r"\b(especificaciones|ficha\s+t[eé]cnica|certificaci[oó]n|norma|resistencia\s+(uv|al\s+sol)|"
    r"densidad|gramaje|porcentaje\s+exacto)\b"
)
_CATALOG = re.compile(
    r"\b(cat[aá]logo|lista\s+de\s+precios|todos\s+(los|sus)\s+precios|"
    r"todas\s+(las|sus)\s+medidas|env[ií][ea]me\s+(todo|sus\s+precios))\b"
)

_SHORT_OK = re.compile(r"^(ok|s[ií]|no|va)$", re.IGNORECASE)
_GIBBERISH = re.compile(r"[qwrtpsdfghjklzxcvbnm]{4,}|(.)\1{3,}", re.IGNORECASE)
_RANDOM_PUNCTUATION = re.compile(r"[!?]{3,}|\.{4,}|[^\w\s]{3,}")

_WHOLESALE = re.compile(
    r"\b(mayoreo|distribuidor|grandes\s+cantidades|por\s+mayor|compra\s+grande|"
    r"100\s*(piezas|rollos|unidades)|volumen|reventa|negocio|tienda|ferreter[ií]a)\b"
)


def _positive_signals(text: str, previous: IntentSignals) -> dict[str, bool]:
    lower = text.lower()
    found: dict[str, bool] = {}
    if _DIMENSIONS.search(text):
        found["has_specific_dimensions"] = True
    if _LOCATION.search(lower):
        found["has_specific_location"] = True
    if _PAYMENT.search(lower):
        found["asked_about_payment"] = True
    if _DELIVERY.search(lower):
        found["asked_about_delivery"] = True
    if previous.size_recommended and _CONFIRMATION.search(lower):
        found["confirmed_size"] = True
    if _URGENCY.search(lower):
        found["mentioned_urgency"] = True
    return found


def _negative_signals(text: str, previous: IntentSignals) -> dict[str, int]:
    lower = text.lower()
    found: dict[str, int] = {}
    if _MATERIAL.search(lower):
        found["material_questions"] = previous.material_questions + 1
    if _TECH_SPEC.search(lower):
        found["tech_spec_questions"] = previous.tech_spec_questions + 1
    if _CATALOG.search(lower):
        found["catalog_requests"] = previous.catalog_requests + 1
    return found


def is_erratic(text: str) -> bool:
    """Very short fragments, consonant runs or punctuation bursts."""
    stripped = text.strip()
    incomplete = len(text) < 5 and not _SHORT_OK.match(stripped)
    return bool(incomplete or _GIBBERISH.search(text) or _RANDOM_PUNCTUATION.search(text))


def calculate_points(signals: IntentSignals) -> int:
    """Raw 0-100 score for a ledger. Internal; callers use the bucket."""
    points = BASE_SCORE

    if signals.has_specific_dimensions:
        points += 30
    if signals.has_specific_location:
        points += 10
    if signals.asked_about_payment:
        points += 20
    if signals.asked_about_delivery:
        points += 10
    if signals.confirmed_size:
        points += 25
    if signals.mentioned_urgency:
        points += 15

    # First material or spec question is free; the second costs 15, a third 30.
    for count in (signals.material_questions, signals.tech_spec_questions):
        if count >= 3:
            points -= 30
        elif count == 2:
            points -= 15

    if signals.catalog_requests >= 2:
        points -= 25
    elif signals.catalog_requests == 1:
        points -= 10

    if signals.messages_without_progress >= 5 and not signals.has_specific_dimensions:
        points -= 20

    if signals.erratic_typing_count >= 3:
        points -= 20
    elif signals.erratic_typing_count >= 2:
        points -= 10

    return points


def calculate_bucket(signals: IntentSignals) -> IntentBucket:
    points = calculate_points(signals)
    if points >= settings.scoring.high_threshold:
        return IntentBucket.HIGH
    if points <= settings.scoring.low_threshold:
        return IntentBucket.LOW
    return IntentBucket.MEDIUM


def score(text: str, previous: IntentSignals) -> tuple[IntentSignals, IntentBucket]:
    """Merge this message's signals into a copy of ``previous`` and bucket it.

    Booleans are only ever set (never cleared) and counters only grow, so
    the returned ledger dominates ``previous`` field by field.
    """
    text = text or ""
    updates: dict[str, object] = {}
    updates.update(_positive_signals(text, previous))
    updates.update(_negative_signals(text, previous))
    updates["total_messages"] = previous.total_messages + 1
    if is_erratic(text):
        updates["erratic_typing_count"] = previous.erratic_typing_count + 1

    ledger = previous.model_copy(update=updates)
    if not ledger.has_specific_dimensions:
        ledger = ledger.model_copy(
            update={"messages_without_progress": previous.messages_without_progress + 1}
        )

    bucket = calculate_bucket(ledger)
    logger.debug(
        "Purchase intent %s (dims=%s material=%d tech=%d msgs=%d)",
        bucket.value, ledger.has_specific_dimensions, ledger.material_questions,
        ledger.tech_spec_questions, ledger.total_messages,
    )
    return ledger, bucket


def is_wholesale_inquiry(text: str, previously_flagged: bool = False) -> bool:
    """Wholesale wording in this message, or already flagged earlier."""
    return previously_flagged or bool(_WHOLESALE.search((text or "").lower()))


def explain(signals: IntentSignals) -> list[str]:
    """Reasons behind a ledger's bucket, phrased for the human sales team."""
    reasons: list[str] = []
    if signals.has_specific_dimensions:
        reasons.append("Proporcionó medidas específicas")
    if signals.has_specific_location:
        reasons.append("Mencionó ubicación específica")
    if signals.asked_about_payment:
        reasons.append("Preguntó por formas de pago")
    if signals.asked_about_delivery:
        reasons.append("Preguntó por envío a su zona")
    if signals.confirmed_size:
        reasons.append("Confirmó la medida recomendada")
    if signals.mentioned_urgency:
        reasons.append("Mencionó urgencia")
    if signals.material_questions >= 2:
        reasons.append(f"Preguntas sobre materiales: {signals.material_questions}x")
    if signals.tech_spec_questions >= 2:
        reasons.append(f"Preguntas técnicas: {signals.tech_spec_questions}x")
    if signals.catalog_requests >= 1:
        reasons.append("Pidió catálogo o lista de precios")
    if signals.messages_without_progress >= 5:
        reasons.append(f"{signals.messages_without_progress} mensajes sin dar medidas")
    if signals.erratic_typing_count >= 2:
        reasons.append("Escritura errática detectada")
    return reasons
