"""
Use-case fit check.

Customers often say what the mesh is for ("es para mi invernadero",
"para la cochera"). When the usage they name is served by catalog
products from a different family than the one they are asking about,
the orchestrator suggests the better fit instead of quoting the wrong
product.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from salesflow.config import settings
from salesflow.conversation.catalog_index import CatalogSnapshot
from salesflow.conversation.state_machine import FlowName
from salesflow.schemas.catalog_schema import CatalogEntry, UseCase

logger = logging.getLogger(__name__)

_USE_PATTERNS = (
    re.compile(r"para\s+(?:mi|mis|un|una|el|la|los|las)?\s*(\w+)"),
    re.compile(r"lo\s+(?:necesito|quiero|ocupo)\s+para\s+(?:mi|un|una|el|la)?\s*(\w+)"),
    re.compile(r"(?:es|ser[aá]?)\s+para\s+(?:mi|un|una|el|la)?\s*(\w+)"),
    re.compile(r"(?:voy\s+a|quiero)\s+(?:cubrir|tapar|proteger)\s+(?:mi|un|una|el|la)?\s*(\w+)"),
)

STANDALONE_KEYWORDS = (
    "invernadero", "vivero", "cultivo", "agricultura",
    "estacionamiento", "cochera", "garage", "carro", "coche", "auto",
    "patio", "terraza", "jardin", "jardín", "alberca", "piscina",
    "gallinas", "gallinero", "corral", "ganado",
    "cancha", "canchas", "deportivo",
    "negocio", "local", "bodega",
    "construccion", "construcción", "obra",
)


@dataclass
class UseCaseAnalysis:
    detected: bool = False
    keywords: list[str] = field(default_factory=list)
    fits: bool = True
    best_use_case: Optional[UseCase] = None
    suggestions: list[CatalogEntry] = field(default_factory=list)
    suggested_flow: Optional[FlowName] = None

    @property
    def should_suggest_change(self) -> bool:
        return not self.fits and bool(self.suggestions) and self.suggested_flow is not None


def extract_use_keywords(text: Optional[str]) -> list[str]:
    """Usage words in the message, in first-seen order without duplicates."""
    if not text:
        return []
    lower = text.lower()
    keywords: list[str] = []
    for pattern in _USE_PATTERNS:
        for m in pattern.finditer(lower):
            word = m.group(1)
            if len(word) > 2 and word not in keywords:
                keywords.append(word)
    for word in STANDALONE_KEYWORDS:
        if re.search(rf"\b{word}\b", lower) and word not in keywords:
            keywords.append(word)
    return keywords


class UseCaseMatcher:
    """Checks whether the product of interest suits the usage the customer named."""

    def __init__(self, snapshot: CatalogSnapshot) -> None:
        self.snapshot = snapshot

    def matching_use_cases(self, keywords: list[str]) -> list[UseCase]:
        wanted = set(keywords)
        return [
            uc for uc in self.snapshot.use_cases
            if wanted.intersection(k.lower() for k in uc.keywords)
        ]

    def _flows_of(self, use_case: UseCase) -> set[FlowName]:
        flows = set()
        for product_id in use_case.product_ids:
            flow = self.snapshot.classify(product_id)
            if flow is not None:
                flows.add(flow)
        return flows

    def analyze(self, text: str, current_flow: FlowName) -> UseCaseAnalysis:
        keywords = extract_use_keywords(text)
        if not keywords:
            return UseCaseAnalysis()

        use_cases = self.matching_use_cases(keywords)
        if not use_cases:
            logger.debug("No use cases for keywords %s", keywords)
            return UseCaseAnalysis(detected=True, keywords=keywords)

        for use_case in use_cases:
            if current_flow in self._flows_of(use_case):
                return UseCaseAnalysis(
                    detected=True, keywords=keywords, fits=True, best_use_case=use_case
                )

        best = use_cases[0]
        suggestions = []
        for product_id in best.product_ids:
            entry = self.snapshot.entry(product_id)
            if entry is not None and entry.active:
                suggestions.append(entry)
        suggestions = suggestions[: settings.flows.max_alternatives]
        suggested_flow = next(
            (self.snapshot.classify(e.id) for e in suggestions if self.snapshot.classify(e.id)),
            None,
        )
        logger.info(
            "Use case '%s' does not fit %s; suggesting %s",
            best.name, current_flow.value, [e.name for e in suggestions],
        )
        return UseCaseAnalysis(
            detected=True,
            keywords=keywords,
            fits=False,
            best_use_case=best,
            suggestions=suggestions,
            suggested_flow=suggested_flow,
        )
