"""Ground cover antimaleza: sold in 100 m rolls, chosen by width."""

from typing import Optional

from salesflow.config import settings
from salesflow.conversation.catalog_index import CatalogSnapshot
from salesflow.conversation.state_machine import FlowName
from salesflow.flows.base import ProductFlow
from salesflow.flows.rollo_flow import nearest_by_width
from salesflow.schemas.catalog_schema import CatalogEntry
from salesflow.schemas.session_schema import ProductSpecs


class GroundcoverFlow(ProductFlow):
    flow_name = FlowName.GROUNDCOVER
    slots = ("width",)

    def lookup(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> Optional[CatalogEntry]:
        return snapshot.find_product(
            self.flow_name,
            width=specs.width,
            length=specs.length or settings.flows.default_roll_length,
        )

    def alternatives(self, snapshot: CatalogSnapshot, specs: ProductSpecs) -> list[CatalogEntry]:
        return nearest_by_width(snapshot, self.flow_name, specs)
