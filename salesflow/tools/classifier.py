"""
Message classifier contract and a keyword-based reference classifier.

The production classifier is a hosted language model; the orchestration
engine only depends on ``classify(text, context)``. RuleBasedClassifier
covers the common phrasings well enough for the console demo and tests.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from salesflow.conversation.entity_normalizer import (
    extract_percentage,
    extract_quantity,
    extract_zip_code,
    parse_dimensions,
)
from salesflow.conversation.flow_rules import (
    CLASSIFIER_PRODUCT_FLOWS,
    classify_yes_no,
    match_product_keyword,
)
from salesflow.conversation.handoff import detect_city
from salesflow.schemas.message_schema import (
    ClassifierEntities,
    ClassifierResult,
    Intent,
    Product,
)

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    async def classify(self, text: str, context: Optional[dict[str, Any]] = None) -> ClassifierResult: ...


@dataclass(frozen=True)
class IntentRule:
    intent: Intent
    pattern: re.Pattern


# Ordered: escalations and logistics questions outrank greetings, so
# "hola, hacen envíos?" is a shipping question.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(Intent.OPT_OUT, re.compile(
        r"\b(no\s+me\s+interesa|dejen\s+de\s+escribir|ya\s+no\s+me\s+(manden|escriban)|"
        r"no\s+me\s+escriban|darme\s+de\s+baja)\b")),
    IntentRule(Intent.HUMAN_REQUEST, re.compile(
        r"\b(asesor|humano|persona\s+real|agente|hablar\s+con\s+alguien|vendedor|llamar?me)\b")),
    IntentRule(Intent.COMPLAINT, re.compile(
        r"\b(queja|p[eé]simo|no\s+ha\s+llegado|no\s+lleg[oó]|defectuos[oa]|estafa|reclamo|"
        r"lleg[oó]\s+(roto|rota|mal))\b")),
    IntentRule(Intent.GOODBYE, re.compile(r"^\s*(adi[oó]s|bye|hasta\s+luego|nos\s+vemos)\b")),
    IntentRule(Intent.CUSTOM_SIZE_QUERY, re.compile(
        r"\b(medida\s+especial|a\s+la\s+medida|personalizad[ao]|sobre\s+medida)\b")),
    IntentRule(Intent.SHIPPING_QUERY, re.compile(
        r"\b(env[ií]os?|env[ií]an|mandan|paqueter[ií]a|costo\s+de\s+env[ií]o)\b")),
    IntentRule(Intent.LOCATION_QUERY, re.compile(
        r"\b(d[oó]nde\s+(est[aá]n|se\s+ubican|quedan)|ubicaci[oó]n|direcci[oó]n|tienda\s+f[ií]sica)\b")),
    IntentRule(Intent.PAYMENT_QUERY, re.compile(
        r"\b(pago|pagar|tarjeta|transferencia|efectivo|meses\s+sin\s+intereses)\b")),
    IntentRule(Intent.DELIVERY_TIME_QUERY, re.compile(
        r"\b(cu[aá]nto\s+tarda|cu[aá]ndo\s+llega|tiempo\s+de\s+entrega|en\s+cu[aá]ntos\s+d[ií]as)\b")),
    IntentRule(Intent.INSTALLATION_QUERY, re.compile(r"\b(instala[rn]?|instalaci[oó]n|colocan)\b")),
    IntentRule(Intent.WARRANTY_QUERY, re.compile(r"\b(garant[ií]a|cu[aá]nto\s+dura)\b")),
    IntentRule(Intent.PRICE_QUERY, re.compile(
        r"\b(precio|cu[aá]nto\s+(cuesta|sale|vale|es)|costo|cotizaci[oó]n)\b")),
    IntentRule(Intent.AVAILABILITY_QUERY, re.compile(r"\b(tienen|manejan|hay|venden)\b")),
    IntentRule(Intent.GREETING, re.compile(
        r"^\s*(hola|buen[oa]s?(\s+(d[ií]as|tardes|noches))?|qu[eé]\s+tal)\b")),
    IntentRule(Intent.THANKS, re.compile(r"\b(gracias|muy\s+amable)\b")),
)

_FLOW_PRODUCTS: dict[Any, Product] = {flow: product for product, flow in CLASSIFIER_PRODUCT_FLOWS.items()}


def extract_entities(text: str) -> ClassifierEntities:
    dims = parse_dimensions(text, allow_square=False)
    return ClassifierEntities(
        dimensions=f"{dims.width:g}x{dims.height:g}" if dims else None,
        width=dims.width if dims else None,
        height=dims.height if dims else None,
        percentage=extract_percentage(text),
        quantity=extract_quantity(text),
        zip_code=extract_zip_code(text),
        location=detect_city(text),
    )


class RuleBasedClassifier:
    """Regex intent table plus the shared entity parsers."""

    def __init__(self) -> None:
        self.fail = False
        self.calls = 0

    async def classify(self, text: str, context: Optional[dict[str, Any]] = None) -> ClassifierResult:
        if self.fail:
            raise ConnectionError("classifier unavailable")
        self.calls += 1
        text = text or ""
        lower = text.lower()
        entities = extract_entities(text)
        flow = match_product_keyword(text)
        product = _FLOW_PRODUCTS.get(flow, Product.UNKNOWN)

        intent = self._intent(lower, entities, product)
        confidence = 0.3 if intent == Intent.UNCLEAR else 0.85
        logger.debug("Classified %r as %s/%s", text[:40], intent.value, product.value)
        return ClassifierResult(intent=intent, product=product, entities=entities, confidence=confidence)

    @staticmethod
    def _intent(lower: str, entities: ClassifierEntities, product: Product) -> Intent:
        for rule in INTENT_RULES:
            if rule.pattern.search(lower):
                # A size in a plain "tienen 4x5?" is a size request.
                if rule.intent == Intent.AVAILABILITY_QUERY and entities.dimensions:
                    return Intent.SIZE_SPECIFICATION
                return rule.intent
        if entities.dimensions:
            return Intent.SIZE_SPECIFICATION
        if entities.percentage is not None:
            return Intent.PERCENTAGE_SPECIFICATION
        if entities.quantity is not None:
            return Intent.QUANTITY_SPECIFICATION
        answer = classify_yes_no(lower)
        if answer is True:
            return Intent.CONFIRMATION
        if answer is False:
            return Intent.REJECTION
        if product != Product.UNKNOWN:
            return Intent.PRODUCT_INQUIRY
        return Intent.UNCLEAR
