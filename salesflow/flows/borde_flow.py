"""Borde separador: garden edging sold by roll length (6, 9, 18, 54 m)."""

from typing import Optional

from salesflow.config import settings
from salesflow.conversation.catalog_index import CatalogSnapshot
from salesflow.conversation.state_machine import FlowName
from salesflow.flows.base import ProductFlow
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.schemas.session_schema import ProductSpecs


class BordeSeparadorFlow(ProductFlow):
    flow_name = FlowName.BORDE_SEPARADOR
    slots = ("length",)

    def lookup(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> Optional[CatalogEntry]:
        return snapshot.find_product(self.flow_name, length=specs.length)

    def alternatives(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> list[CatalogEntry]:
        scored = []
        for entry in snapshot.entries_for_flow(self.flow_name):
            size = snapshot.parsed_size(entry.id)
            if not entry.is_retail or size is None or size.length is None:
                continue
            scored.append((abs(size.length - (specs.length or 0)), entry))
        scored.sort(key=lambda item: item[0])
        return [entry for _, entry in scored[: settings.flows.max_alternatives]]
