"""
Routing rule tables.

Which flow owns a message is decided by ordered lists of (predicate,
result) rows evaluated once, first match wins. The order of each table is
the precedence; nothing depends on the order regexes happen to be tried
elsewhere.

Also holds the keyword sets used by the sub-dialogs: yes/no replies and
retail (menudeo) vs wholesale (mayoreo) replies.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from salesflow.conversation.entity_normalizer import Dimensions
from salesflow.conversation.state_machine import FlowName
from salesflow.schemas.message_schema import ChannelContext, Product

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------- #
#  Product keywords
# ---------------------------------------------------------------------- #

@dataclass(frozen=True)
class KeywordRule:
    flow: FlowName
    pattern: re.Pattern
    unless: Optional[re.Pattern] = None

    def matches(self, text: str) -> bool:
        if not self.pattern.search(text):
            return False
        return self.unless is None or not self.unless.search(text)


# "malla sombra" alone means the pre-made panels; with "rollo" it is a roll.
KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        FlowName.MALLA_SOMBRA,
        re.compile(r"\b(malla\s*sombra|confeccionadas?)\b"),
        unless=re.compile(r"\brollos?\b"),
    ),
    KeywordRule(FlowName.ROLLO, re.compile(r"\brollos?\b|\b100\s*m(etros?)?\b")),
    KeywordRule(FlowName.BORDE_SEPARADOR, re.compile(r"\bborde\b|\bcinta\s*pl[aá]stica\b")),
    KeywordRule(
        FlowName.GROUNDCOVER,
        re.compile(r"\b(ground\s*cover|antimaleza|malla\s*(para\s*)?maleza)\b"),
    ),
    KeywordRule(FlowName.MONOFILAMENTO, re.compile(r"\bmonofilamento\b")),
)


def match_product_keyword(text: Optional[str]) -> Optional[FlowName]:
    """First product family named in ``text``, per KEYWORD_RULES order."""
    if not text:
        return None
    lower = text.lower()
    for rule in KEYWORD_RULES:
        if rule.matches(lower):
            return rule.flow
    return None


# ---------------------------------------------------------------------- #
#  Fixed mapping tables
# ---------------------------------------------------------------------- #

AD_FLOW_REF_ALIASES: dict[str, FlowName] = {
    "malla_sombra": FlowName.MALLA_SOMBRA,
    "malla_confeccionada": FlowName.MALLA_SOMBRA,
    "confeccionada": FlowName.MALLA_SOMBRA,
    "rollo": FlowName.ROLLO,
    "rollos": FlowName.ROLLO,
    "malla_rollo": FlowName.ROLLO,
    "borde": FlowName.BORDE_SEPARADOR,
    "borde_separador": FlowName.BORDE_SEPARADOR,
    "groundcover": FlowName.GROUNDCOVER,
    "ground_cover": FlowName.GROUNDCOVER,
    "antimaleza": FlowName.GROUNDCOVER,
    "monofilamento": FlowName.MONOFILAMENTO,
}

AD_PRODUCT_FLOWS: dict[str, FlowName] = {
    "malla_sombra_confeccionada": FlowName.MALLA_SOMBRA,
    "malla_sombra_raschel": FlowName.MALLA_SOMBRA,
    "malla_sombra_rollo": FlowName.ROLLO,
    "borde_separador": FlowName.BORDE_SEPARADOR,
    "groundcover_antimaleza": FlowName.GROUNDCOVER,
    "malla_monofilamento": FlowName.MONOFILAMENTO,
}

CLASSIFIER_PRODUCT_FLOWS: dict[Product, FlowName] = {
    Product.MALLA_SOMBRA: FlowName.MALLA_SOMBRA,
    Product.ROLLO: FlowName.ROLLO,
    Product.BORDE_SEPARADOR: FlowName.BORDE_SEPARADOR,
    Product.GROUNDCOVER: FlowName.GROUNDCOVER,
    Product.MONOFILAMENTO: FlowName.MONOFILAMENTO,
}

_INTEREST_FLOWS: dict[str, FlowName] = {
    "rollo": FlowName.ROLLO,
    "borde_separador": FlowName.BORDE_SEPARADOR,
    "ground_cover": FlowName.GROUNDCOVER,
    "groundcover": FlowName.GROUNDCOVER,
    "monofilamento": FlowName.MONOFILAMENTO,
}


def flow_for_interest(product_interest: Optional[str]) -> Optional[FlowName]:
    """Map a stored product interest to its flow.

    Every ``malla_sombra*`` variant and ``confeccionada`` map to malla sombra.
    """
    if not product_interest:
        return None
    interest = product_interest.lower().strip()
    if interest.startswith("malla_sombra") or interest == "confeccionada":
        return FlowName.MALLA_SOMBRA
    return _INTEREST_FLOWS.get(interest)


def flow_for_ad(channel: Optional[ChannelContext]) -> Optional[FlowName]:
    if channel is None:
        return None
    if channel.ad_flow_ref:
        flow = AD_FLOW_REF_ALIASES.get(channel.ad_flow_ref.lower().strip())
        if flow:
            return flow
    return None


def flow_for_ad_product(channel: Optional[ChannelContext]) -> Optional[FlowName]:
    if channel is None or not channel.ad_product:
        return None
    return AD_PRODUCT_FLOWS.get(channel.ad_product.lower().strip())


# ---------------------------------------------------------------------- #
#  Flow resolution chain
# ---------------------------------------------------------------------- #

@dataclass(frozen=True)
class ResolutionInput:
    """Everything the resolution chain looks at, gathered before evaluation.

    ``size_owner`` is the catalog's owner for ``dimensions`` (None when no
    flow sells that size or the catalog was unavailable).
    """
    text: str
    current_flow: FlowName
    classifier_product: Product = Product.UNKNOWN
    product_interest: Optional[str] = None
    channel: Optional[ChannelContext] = None
    dimensions: Optional[Dimensions] = None
    size_owner: Optional[FlowName] = None


@dataclass(frozen=True)
class ResolutionRule:
    name: str
    resolve: Callable[[ResolutionInput], Optional[FlowName]]


def _pinned(data: ResolutionInput) -> Optional[FlowName]:
    return data.current_flow if data.current_flow != FlowName.DEFAULT else None


def _from_classifier(data: ResolutionInput) -> Optional[FlowName]:
    return CLASSIFIER_PRODUCT_FLOWS.get(data.classifier_product)


def _from_dimensions(data: ResolutionInput) -> Optional[FlowName]:
    if data.dimensions is None or data.dimensions.is_roll:
        return None
    return data.size_owner or FlowName.MALLA_SOMBRA


RESOLUTION_RULES: tuple[ResolutionRule, ...] = (
    ResolutionRule("pinned_flow", _pinned),
    ResolutionRule("ad_flow_ref", lambda d: flow_for_ad(d.channel)),
    ResolutionRule("ad_product", lambda d: flow_for_ad_product(d.channel)),
    ResolutionRule("classifier_product", _from_classifier),
    ResolutionRule("product_interest", lambda d: flow_for_interest(d.product_interest)),
    ResolutionRule("keyword", lambda d: match_product_keyword(d.text)),
    ResolutionRule("dimensions", _from_dimensions),
)


def resolve_flow(data: ResolutionInput) -> tuple[FlowName, str]:
    """Evaluate the chain; returns (flow, name of the rule that decided)."""
    for rule in RESOLUTION_RULES:
        flow = rule.resolve(data)
        if flow is not None:
            return flow, rule.name
    return FlowName.DEFAULT, "default"


def detect_product_switch(
    text: str, current_flow: FlowName, classifier_product: Product = Product.UNKNOWN
) -> Optional[FlowName]:
    """Product the customer is asking about when it differs from the active one."""
    if not current_flow.is_product:
        return None
    keyword_flow = match_product_keyword(text)
    if keyword_flow is not None and keyword_flow != current_flow:
        return keyword_flow
    classified = CLASSIFIER_PRODUCT_FLOWS.get(classifier_product)
    if classified is not None and classified != current_flow:
        return classified
    return None


# ---------------------------------------------------------------------- #
#  Sub-dialog replies
# ---------------------------------------------------------------------- #

_AFFIRMATIVE = re.compile(
    r"\b(s[ií]|claro|dale|va|ok|okay|sale|correcto|afirmativo|perfecto|de\s+acuerdo|"
    r"(?<!as[ií]\s)est[aá]\s+bien|por\s+favor|me\s+interesa|[eé]se|[eé]sa)\b"
)
_NEGATIVE = re.compile(r"\b(no|nel|nop|negativo|mejor\s+no|as[ií]\s+est[aá]\s+bien)\b")
_UNSURE = re.compile(r"\bno\s+s[eé]\b")

_RETAIL = re.compile(
    r"\b(menudeo|al\s+menudeo|por\s+pieza|una\s+pieza|pocas|uso\s+personal|personal|"
    r"para\s+mi\s+casa|para\s+casa|1)\b"
)
_WHOLESALE_CHOICE = re.compile(
    r"\b(mayoreo|al\s+mayoreo|por\s+mayor|distribuidor|distribuir|reventa|revender|"
    r"negocio|volumen|2)\b"
)


def classify_yes_no(text: Optional[str]) -> Optional[bool]:
    """True for yes, False for no, None when the reply is neither or both."""
    lower = _UNSURE.sub(" ", (text or "").lower())
    yes = bool(_AFFIRMATIVE.search(lower))
    no = bool(_NEGATIVE.search(lower))
    if yes == no:
        return None
    return yes


def classify_retail_wholesale(text: Optional[str]) -> Optional[str]:
    """``"retail"``, ``"wholesale"`` or None for a menudeo/mayoreo reply."""
    lower = (text or "").lower()
    retail = bool(_RETAIL.search(lower))
    wholesale = bool(_WHOLESALE_CHOICE.search(lower))
    if retail and not wholesale:
        return "retail"
    if wholesale and not retail:
        return "wholesale"
    return None
