"""
Flow definition store contract and an in-memory reference store.

The store owns the definitions' counters. ``record_completion`` is keyed
by run id so a retried completion is counted once.
"""

import logging
from typing import Optional, Protocol

from salesflow.config import settings
from salesflow.schemas.flow_schema import (
    CompletionAction,
    FlowDefinition,
    FlowStep,
    InputType,
    OnComplete,
    SkipCondition,
    StepOption,
    StepValidation,
)

logger = logging.getLogger(__name__)

COUNTERS = ("start_count", "complete_count", "abandon_count")


class FlowStore(Protocol):
    async def get_definition(self, key: str) -> Optional[FlowDefinition]: ...

    async def find_by_trigger_intent(self, intent: str) -> Optional[FlowDefinition]: ...

    async def increment_counter(self, key: str, counter: str) -> None: ...

    async def record_completion(self, key: str, run_id: str) -> bool: ...


def lead_capture_definition(key: Optional[str] = None) -> FlowDefinition:
    """Distributor quote script: name, location, products, quantity, contact."""
    return FlowDefinition(
        key=key or settings.flows.lead_capture_flow_key,
        name="Captura de prospecto mayorista",
        description="Collects the data a sales rep needs to quote a wholesale order.",
        steps=[
            FlowStep(
                step_id="ask_name",
                order=1,
                message=(
                    "¡Hola! Tenemos precios especiales para distribuidores.\n\n"
                    "Para prepararte una cotización, ¿me puedes dar tu nombre?"
                ),
                collect_as="name",
                validation=StepValidation(min_length=2, error_message="¿Me puedes dar tu nombre completo?"),
                next_step="ask_location",
            ),
            FlowStep(
                step_id="ask_location",
                order=2,
                message="Gracias. ¿De qué código postal o ciudad nos escribes?",
                collect_as="location",
                validation=StepValidation(min_length=3, error_message="¿Me puedes dar tu código postal o ciudad?"),
                next_step="ask_products",
            ),
            FlowStep(
                step_id="ask_products",
                order=3,
                message='¿Qué productos y medidas te interesan?\n(Ej: "5 mallas de 4x5m y 3 de 3x4m")',
                collect_as="products",
                validation=StepValidation(min_length=3),
                next_step="ask_quantity",
                skip_if=SkipCondition(variable="requested_size", operator="exists"),
            ),
            FlowStep(
                step_id="ask_quantity",
                order=4,
                message="¿Cuántas piezas en total necesitas?",
                collect_as="quantity",
                input_type=InputType.NUMBER,
                validation=StepValidation(error_message="¿Cuántas piezas necesitas aproximadamente?"),
                next_step="ask_contact_method",
            ),
            FlowStep(
                step_id="ask_contact_method",
                order=5,
                message="Por último, ¿cómo prefieres recibir la cotización?\n1. WhatsApp\n2. Correo",
                collect_as="contact_method",
                input_type=InputType.OPTIONS,
                options=[
                    StepOption(label="WhatsApp", value="whatsapp", next_step="ask_phone"),
                    StepOption(label="Correo", value="email", next_step="ask_email"),
                ],
            ),
            FlowStep(
                step_id="ask_phone",
                order=6,
                message="¿Cuál es tu número de WhatsApp (con lada)?",
                collect_as="phone",
                input_type=InputType.PHONE,
            ),
            FlowStep(
                step_id="ask_email",
                order=7,
                message="¿Cuál es tu correo electrónico?",
                collect_as="email",
                input_type=InputType.EMAIL,
            ),
        ],
        on_complete=OnComplete(
            action=CompletionAction.HANDOFF,
            message=(
                "¡Perfecto! Ya tengo todos los datos. "
                "Un especialista te contactará pronto con la cotización. ¡Gracias!"
            ),
            handoff_reason="Lead capture completo",
        ),
    )


class InMemoryFlowStore:
    """Definitions kept in a dict; completions remembered by (key, run_id)."""

    def __init__(self, definitions: Optional[list[FlowDefinition]] = None) -> None:
        source = definitions if definitions is not None else [lead_capture_definition()]
        self._definitions: dict[str, FlowDefinition] = {d.key: d for d in source}
        self._completed_runs: set[tuple[str, str]] = set()

    async def get_definition(self, key: str) -> Optional[FlowDefinition]:
        return self._definitions.get(key)

    async def find_by_trigger_intent(self, intent: str) -> Optional[FlowDefinition]:
        for definition in self._definitions.values():
            if definition.active and definition.trigger_intent == intent:
                return definition
        return None

    async def increment_counter(self, key: str, counter: str) -> None:
        if counter not in COUNTERS:
            raise ValueError(f"Unknown flow counter: {counter}")
        definition = self._definitions.get(key)
        if definition is None:
            return
        setattr(definition, counter, getattr(definition, counter) + 1)

    async def record_completion(self, key: str, run_id: str) -> bool:
        marker = (key, run_id)
        if marker in self._completed_runs:
            return False
        self._completed_runs.add(marker)
        await self.increment_counter(key, "complete_count")
        return True

    def add(self, definition: FlowDefinition) -> None:
        self._definitions[definition.key] = definition
