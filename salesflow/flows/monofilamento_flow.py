"""Agricultural monofilament mesh: width and shade percentage, usually wholesale."""

from typing import Optional

from salesflow.conversation.catalog_index import CatalogSnapshot
from salesflow.conversation.state_machine import FlowName
from salesflow.flows.base import ProductFlow
from salesflow.flows.rollo_flow import nearest_by_width
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.schemas.session_schema import ProductSpecs


class MonofilamentoFlow(ProductFlow):
    flow_name = FlowName.MONOFILAMENTO
    slots = ("width", "percentage")

    def lookup(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> Optional[CatalogEntry]:
        return snapshot.find_product(
            self.flow_name,
            width=specs.width,
            length=specs.length,
            percentage=specs.percentage,
        )

    def alternatives(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> list[CatalogEntry]:
        return nearest_by_width(snapshot, self.flow_name, specs)
