"""Response construction from structured facts (prices, links, sizes, alternatives)."""

from typing import Any, Callable, Optional

from salesflow.conversation.state_machine import FlowName, display_name
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.utils import format_price

SLOT_QUESTIONS: dict[str, str] = {
    "dimensions": "¿Qué medida necesitas? Dime ancho por largo en metros (ej. 4x5).",
    "width": "¿Qué ancho necesitas?",
    "length": "¿Qué largo necesitas?",
    "percentage": "¿Qué porcentaje de sombra buscas? Manejamos 35%, 50%, 70%, 80% y 90%.",
    "quantity": "¿Cuántas piezas necesitas?",
}

# Flow-specific wording where the generic question is not enough.
FLOW_SLOT_QUESTIONS: dict[tuple[FlowName, str], str] = {
    (FlowName.ROLLO, "width"): "¿Qué ancho de rollo necesitas? Tenemos 2.10 m y 4.20 m (largo de 100 m).",
    (FlowName.GROUNDCOVER, "width"): "¿Qué ancho necesitas? Tenemos 1.05 m y 2.10 m en rollos de 100 m.",
    (FlowName.MONOFILAMENTO, "width"): "¿Qué ancho de malla monofilamento necesitas?",
    (FlowName.BORDE_SEPARADOR, "length"): "¿Qué largo necesitas? Tenemos rollos de 6, 9, 18 y 54 metros.",
}


def build_slot_question(flow: FlowName, slot: str) -> str:
    return FLOW_SLOT_QUESTIONS.get((flow, slot), SLOT_QUESTIONS.get(slot, "¿Me das más detalles?"))


def build_opening(flow: FlowName, slot: Optional[str]) -> str:
    """Greeting for a flow the customer just moved into."""
    intro = f"¡Claro! Te ayudo con {display_name(flow)}."
    if slot is None:
        return intro
    return f"{intro} {build_slot_question(flow, slot)}"


def build_switch_confirmation(current: FlowName, target: FlowName) -> str:
    return (
        f"Veo que ahora preguntas por {display_name(target)}. "
        f"¿Quieres que dejemos {display_name(current)} y veamos {display_name(target)}? (sí/no)"
    )


def build_wholesale_choice_question(target: FlowName) -> str:
    return (
        f"El {display_name(target)} lo manejamos al menudeo y al mayoreo. "
        "¿Lo buscas por pieza (menudeo) o en volumen para negocio (mayoreo)?"
    )


def build_stay_in_flow(current: FlowName) -> str:
    if current == FlowName.DEFAULT:
        return "Perfecto. ¿En qué producto te puedo ayudar?"
    return f"Perfecto, seguimos con {display_name(current)}. ¿En qué más te ayudo?"


def _size_line(entry: CatalogEntry) -> str:
    price = format_price(entry.price) if entry.price is not None else "precio de mayoreo"
    return f"• {entry.name} - {price}"


def build_price_quote(entry: CatalogEntry, link: str, quantity: Optional[int] = None) -> str:
    lines = [f"{entry.name}: {format_price(entry.price)}"]
    if quantity and quantity > 1 and entry.price is not None:
        lines.append(f"{quantity} piezas: {format_price(entry.price * quantity)}")
    lines.append(f"Cómprala aquí: {link}")
    return "\n".join(lines)


def build_wholesale_upsell(entry: CatalogEntry) -> str:
    return (
        f"Si llevas {entry.wholesale_min_qty} piezas o más, el precio de mayoreo es "
        f"{format_price(entry.wholesale_price)} c/u."
    )


def build_price_without_link(entry: CatalogEntry) -> str:
    return f"{entry.name} tiene un precio de {format_price(entry.price)}."


def build_wholesale_ack(entry: CatalogEntry, quantity: Optional[int]) -> str:
    if quantity:
        return f"¡Excelente! Para {quantity} piezas de {entry.name} te damos precio de mayoreo. "
    return f"{entry.name} se vende solo por mayoreo. "


def build_alternatives(requested: str, alternatives: list[CatalogEntry]) -> str:
    if not alternatives:
        return f"No tenemos {requested} en catálogo. "
    lines = [f"No tenemos {requested} exactamente. Las opciones más cercanas son:"]
    lines.extend(_size_line(e) for e in alternatives)
    return "\n".join(lines) + "\n\n"


def build_rounded_suggestion(requested: str, suggestions: list[CatalogEntry]) -> str:
    lines = [f"La medida {requested} no la tenemos confeccionada. Te recomiendo:"]
    lines.extend(_size_line(e) for e in suggestions)
    lines.append(f"¿Te sirve la de {suggestions[0].size} m? (sí/no)")
    return "\n".join(lines)


def build_use_case_suggestion(use_case: str, current: FlowName, suggestions: list[CatalogEntry]) -> str:
    lines = [
        f"Para {use_case.lower()} te recomiendo otra opción en lugar de {display_name(current)}:"
    ]
    lines.extend(_size_line(e) for e in suggestions)
    lines.append("¿Quieres que veamos estas opciones? (sí/no)")
    return "\n".join(lines)


# ---------------------------------------------------------------------- #
#  Tag-addressed templates used by the renderer
# ---------------------------------------------------------------------- #

RESPONSE_TEMPLATES: dict[str, Callable[[dict[str, Any]], str]] = {
    "price_quote": lambda c: build_price_quote(c["entry"], c["link"], c.get("quantity")),
    "price_without_link": lambda c: build_price_without_link(c["entry"]),
    "wholesale_upsell": lambda c: build_wholesale_upsell(c["entry"]),
    "wholesale_ack": lambda c: build_wholesale_ack(c["entry"], c.get("quantity")),
    "alternatives": lambda c: build_alternatives(c["requested"], c["alternatives"]),
    "rounded_suggestion": lambda c: build_rounded_suggestion(c["requested"], c["suggestions"]),
    "slot_question": lambda c: build_slot_question(c["flow"], c["slot"]),
}


def render_template(tag: str, context: dict[str, Any]) -> str:
    """Render a fixed template.

    Raises:
        KeyError: If no template is registered for ``tag``.
    """
    if tag not in RESPONSE_TEMPLATES:
        raise KeyError(f"No response template for '{tag}'. Available: {list(RESPONSE_TEMPLATES)}")
    return RESPONSE_TEMPLATES[tag](context)
