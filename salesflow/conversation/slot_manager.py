"""
Product spec slot filling for the product flows.

Each product flow needs a small tuple of facts before it can look a
product up (malla sombra: both dimensions; rollo: width and shade
percentage; borde: length). A SlotManager wraps the session's
ProductSpecs, parses raw answers for one slot, validates them and writes
the normalized values back.

Usage:
    manager = SlotManager(session.product_specs, ["width", "percentage"])
    ok, msg = manager.set_slot("width", "de 4.20")
    next_slot = manager.get_next_empty_slot()   # -> percentage
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from salesflow.conversation.entity_normalizer import (
    extract_percentage,
    extract_quantity,
    parse_dimensions,
    parse_linear_length,
    parse_roll_dimensions,
    parse_single_dimension,
)
from salesflow.conversation.state_machine import FlowStage
from salesflow.schemas.session_schema import ProductSpecs

logger = logging.getLogger(__name__)

VALID_PERCENTAGES = (35, 50, 70, 80, 90)
MAX_ROLL_WIDTH = 10.0


def _parse_dimensions(text: str) -> Optional[dict[str, Any]]:
    dims = parse_dimensions(text)
    if dims is None:
        return None
    return {"width": dims.width, "height": dims.height}


def _parse_width(text: str) -> Optional[dict[str, Any]]:
    roll = parse_roll_dimensions(text)
    if roll is not None:
        values: dict[str, Any] = {"width": roll.width}
        if roll.length is not None:
            values["length"] = roll.length
        return values
    width = parse_single_dimension(text)
    return {"width": width} if width is not None else None


def _parse_length(text: str) -> Optional[dict[str, Any]]:
    length = parse_linear_length(text)
    return {"length": length} if length is not None else None


def _parse_percentage(text: str) -> Optional[dict[str, Any]]:
    percentage = extract_percentage(text)
    if percentage is None:
        bare = text.strip().rstrip("%").strip()
        if bare.isdigit():
            percentage = int(bare)
    return {"percentage": percentage} if percentage is not None else None


def _parse_quantity(text: str) -> Optional[dict[str, Any]]:
    quantity = extract_quantity(text, allow_bare=True)
    return {"quantity": quantity} if quantity is not None else None


def _valid_percentage(values: dict[str, Any]) -> bool:
    return values.get("percentage") in VALID_PERCENTAGES


def _valid_roll_width(values: dict[str, Any]) -> bool:
    return 0 < values.get("width", 0) <= MAX_ROLL_WIDTH


def _valid_positive(values: dict[str, Any]) -> bool:
    return all(v is not None and v > 0 for v in values.values())


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for one product fact to collect."""

    name: str
    fields: tuple[str, ...]
    display_name: str
    stage: FlowStage
    parser: Callable[[str], Optional[dict[str, Any]]]
    validator: Optional[Callable[[dict[str, Any]], bool]] = None
    required: bool = True


SLOT_LIBRARY: dict[str, SlotDefinition] = {
    "dimensions": SlotDefinition(
        name="dimensions",
        fields=("width", "height"),
        display_name="medidas",
        stage=FlowStage.AWAITING_DIMENSIONS,
        parser=_parse_dimensions,
        validator=_valid_positive,
    ),
    "width": SlotDefinition(
        name="width",
        fields=("width",),
        display_name="ancho",
        stage=FlowStage.AWAITING_WIDTH,
        parser=_parse_width,
        validator=_valid_roll_width,
    ),
    "length": SlotDefinition(
        name="length",
        fields=("length",),
        display_name="largo",
        stage=FlowStage.AWAITING_LENGTH,
        parser=_parse_length,
        validator=_valid_positive,
    ),
    "percentage": SlotDefinition(
        name="percentage",
        fields=("percentage",),
        display_name="porcentaje de sombra",
        stage=FlowStage.AWAITING_PERCENTAGE,
        parser=_parse_percentage,
        validator=_valid_percentage,
    ),
    "quantity": SlotDefinition(
        name="quantity",
        fields=("quantity",),
        display_name="cantidad",
        stage=FlowStage.AWAITING_CONFIRMATION,
        parser=_parse_quantity,
        validator=_valid_positive,
        required=False,
    ),
}


class SlotManager:
    """Collects the required slots of one product flow into ProductSpecs."""

    def __init__(self, specs: ProductSpecs, slot_names: Sequence[str]) -> None:
        self.specs = specs
        self.definitions: list[SlotDefinition] = [self._get_definition(n) for n in slot_names]

    @staticmethod
    def _get_definition(name: str) -> SlotDefinition:
        try:
            return SLOT_LIBRARY[name]
        except KeyError:
            raise ValueError(f"Unknown slot: {name}") from None

    def is_filled(self, name: str) -> bool:
        defn = self._get_definition(name)
        return all(getattr(self.specs, f) is not None for f in defn.fields)

    def set_values(self, name: str, values: dict[str, Any]) -> tuple[bool, str]:
        """Validate already-parsed values for a slot and store them."""
        defn = self._get_definition(name)
        if defn.validator and not defn.validator(values):
            logger.debug("Slot '%s' rejected: %s", name, values)
            return False, f"El dato de {defn.display_name} no parece correcto."
        for field_name, value in values.items():
            setattr(self.specs, field_name, value)
        logger.debug("Slot '%s' set to %s", name, values)
        return True, f"{defn.display_name}: {values}"

    def set_slot(self, name: str, raw_value: str) -> tuple[bool, str]:
        """Parse a customer answer for ``name`` and store it if valid.

        Returns:
            (success, message)
        """
        defn = self._get_definition(name)
        values = defn.parser(raw_value or "")
        if values is None:
            return False, f"No identifiqué {defn.display_name} en '{raw_value}'."
        return self.set_values(name, values)

    def get_next_empty_slot(self) -> Optional[SlotDefinition]:
        for defn in self.definitions:
            if defn.required and not self.is_filled(defn.name):
                return defn
        return None

    def get_missing_slots(self) -> list[SlotDefinition]:
        return [d for d in self.definitions if d.required and not self.is_filled(d.name)]

    def all_required_filled(self) -> bool:
        return self.get_next_empty_slot() is None

    def to_dict(self) -> dict[str, Any]:
        return self.specs.model_dump(exclude_none=True)
