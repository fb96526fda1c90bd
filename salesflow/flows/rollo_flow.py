"""Bulk shade mesh rolls: width plus shade percentage, length 100 m unless stated."""

from typing import Optional

from salesflow.config import settings
from salesflow.conversation.catalog_index import CatalogSnapshot
from salesflow.conversation.state_machine import FlowName
from salesflow.flows.base import ProductFlow
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.schemas.session_schema import ProductSpecs


def nearest_by_width(
    snapshot: CatalogSnapshot, flow: FlowName, specs: ProductSpecs
) -> list[CatalogEntry]:
    """Entries of ``flow`` ordered by width distance, then percentage distance."""
    scored = []
    for entry in snapshot.entries_for_flow(flow):
        size = snapshot.parsed_size(entry.id)
        if size is None or size.width is None or size.height is None:
            continue
        narrow = min(size.width, size.height)
        width_gap = abs(narrow - specs.width) if specs.width is not None else 0.0
        pct_gap = (
            abs((entry.percentage or 0) - specs.percentage) if specs.percentage is not None else 0
        )
        scored.append((width_gap, pct_gap, entry.price or 0, entry))
    scored.sort(key=lambda item: item[:3])
    return [entry for *_, entry in scored[: settings.flows.max_alternatives]]


class RolloFlow(ProductFlow):
    flow_name = FlowName.ROLLO
    slots = ("width", "percentage")

    def lookup(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> Optional[CatalogEntry]:
        return snapshot.find_product(
            self.flow_name,
            width=specs.width,
            length=specs.length or settings.flows.default_roll_length,
            percentage=specs.percentage,
        )

    def alternatives(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> list[CatalogEntry]:
        return nearest_by_width(snapshot, self.flow_name, specs)
