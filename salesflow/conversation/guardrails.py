"""
Pre-routing guardrails for inbound messages.

Two independent checks, each looking at a different concern:
1. SpamGuardrail: promotional or link-only messages that get no reply
2. ScopeGuardrail: product categories the store does not sell

Both are composed into a GuardrailPipeline that the flow manager runs
before any flow logic. Neither check touches the session.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from salesflow.config import settings

logger = logging.getLogger(__name__)


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None
    severity: str = "warning"  # "warning" | "deflect" | "drop"


class SpamGuardrail:
    """Flags unsolicited promotions and bare links so they are silently dropped."""

    SPAM_PATTERNS = [
        r"gana\s+dinero", r"ingresos\s+extra", r"trabaja\s+desde\s+casa",
        r"bitcoin", r"cripto", r"inversi[oó]n\s+garantizada", r"pr[eé]stamos?\s+r[aá]pidos?",
        r"haz\s+clic\s+aqu[ií]", r"promociona\s+tu\s+p[aá]gina", r"seguidores\s+reales",
    ]

    _SPAM = re.compile("|".join(SPAM_PATTERNS), re.IGNORECASE)
    _LINK_ONLY = re.compile(r"^\s*(https?://\S+\s*)+$", re.IGNORECASE)

    def check(self, text: str) -> GuardrailResult:
        if self._SPAM.search(text) or self._LINK_ONLY.match(text):
            logger.info("Spam message dropped")
            return GuardrailResult(
                passed=False,
                violation_type="spam",
                message="Unsolicited promotional content.",
                severity="drop",
            )
        return GuardrailResult(passed=True)


class ScopeGuardrail:
    """Recognizes requests for products the business does not carry."""

    UNSOLD_CATEGORIES = [
        "lona", "lonas", "toldo", "toldos", "pasto sintético", "pasto sintetico",
        "malla ciclónica", "malla ciclonica", "tela mosquitera", "mosquitero",
        "malla electrosoldada", "plástico para invernadero", "plastico para invernadero",
        "alambre de púas", "alambre de puas",
    ]

    def check(self, text: str) -> GuardrailResult:
        lower = text.lower()
        for category in self.UNSOLD_CATEGORIES:
            if re.search(rf"\b{re.escape(category)}\b", lower):
                logger.info("Unsold category requested: '%s'", category)
                return GuardrailResult(
                    passed=False,
                    violation_type="unsold_category",
                    message=category,
                    severity="deflect",
                )
        return GuardrailResult(passed=True)

    @staticmethod
    def deflection_text(category: str) -> str:
        return (
            f"Por el momento no manejamos {category}. "
            "Nos especializamos en malla sombra, borde separador, ground cover y malla monofilamento.\n\n"
            f"Puedes ver todo lo que vendemos en nuestra tienda: {settings.business.storefront_url}"
        )


class GuardrailPipeline:
    """Composes the inbound checks."""

    def __init__(self) -> None:
        self.spam = SpamGuardrail()
        self.scope = ScopeGuardrail()

    def is_spam(self, text: str) -> bool:
        return not self.spam.check(text).passed
