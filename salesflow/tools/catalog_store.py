"""
Catalog store contract and an in-memory reference store.

In production this reads the product family collection (a tree of
families and sellable leaves) and the use-case collection. The catalog
index only needs the read contract below.
"""

import logging
from typing import Optional, Protocol

from salesflow.schemas.catalog_schema import CatalogEntry, UseCase

logger = logging.getLogger(__name__)


class CatalogStore(Protocol):
    async def find_entries(
        self, sellable: Optional[bool] = None, active: Optional[bool] = None
    ) -> list[CatalogEntry]: ...

    async def get_entry(self, entry_id: str) -> Optional[CatalogEntry]: ...

    async def list_use_cases(self) -> list[UseCase]: ...


def _leaf(entry_id: str, parent: str, name: str, size: str, **fields) -> CatalogEntry:
    return CatalogEntry(id=entry_id, parent_id=parent, name=name, size=size, sellable=True, **fields)


SEED_ENTRIES: list[CatalogEntry] = [
    # Pre-made shade mesh panels
    CatalogEntry(
        id="malla_sombra_confeccionada",
        name="Malla Sombra Confeccionada",
        aliases=["malla sombra", "confeccionada", "malla raschel"],
    ),
    CatalogEntry(
        id="ms_90",
        parent_id="malla_sombra_confeccionada",
        name="Malla Sombra Raschel 90%",
        aliases=["raschel 90", "malla 90"],
        percentage=90,
    ),
    _leaf("ms90_3x3", "ms_90", "Malla Sombra 90% 3x3 m", "3x3", price=380, percentage=90),
    _leaf("ms90_3x4", "ms_90", "Malla Sombra 90% 3x4 m", "3x4", price=450, percentage=90,
          link="https://articulo.mercadolibre.com.mx/MLM-ms90-3x4"),
    _leaf("ms90_4x5", "ms_90", "Malla Sombra 90% 4x5 m", "4x5", price=650, percentage=90,
          link="https://articulo.mercadolibre.com.mx/MLM-ms90-4x5",
          wholesale_min_qty=10, wholesale_price=520),
    _leaf("ms90_4x6", "ms_90", "Malla Sombra 90% 4x6 m", "4x6", price=780, percentage=90,
          link="https://articulo.mercadolibre.com.mx/MLM-ms90-4x6"),
    _leaf("ms90_6x8", "ms_90", "Malla Sombra 90% 6x8 m", "6x8", price=1450, percentage=90,
          link="https://articulo.mercadolibre.com.mx/MLM-ms90-6x8"),
    _leaf("ms90_tri4", "ms_90", "Malla Sombra 90% Triángulo 4 m", "Triangulo 4m", price=420,
          percentage=90, link="https://articulo.mercadolibre.com.mx/MLM-ms90-tri4"),

    # Bulk rolls
    CatalogEntry(
        id="malla_sombra_rollo",
        name="Rollo de Malla Sombra",
        aliases=["rollo", "rollo raschel", "malla en rollo"],
    ),
    _leaf("rollo_90_420", "malla_sombra_rollo", "Rollo Raschel 90% 4.20x100 m", "4.20x100",
          price=5800, percentage=90, wholesale_min_qty=5, wholesale_price=5200,
          link="https://articulo.mercadolibre.com.mx/MLM-rollo-90-420"),
    _leaf("rollo_90_210", "malla_sombra_rollo", "Rollo Raschel 90% 2.10x100 m", "2.10x100",
          price=3100, percentage=90, link="https://articulo.mercadolibre.com.mx/MLM-rollo-90-210"),
    _leaf("rollo_80_420", "malla_sombra_rollo", "Rollo Raschel 80% 4.20x100 m", "4.20x100",
          price=5400, percentage=80, link="https://articulo.mercadolibre.com.mx/MLM-rollo-80-420"),
    _leaf("rollo_50_420", "malla_sombra_rollo", "Rollo Raschel 50% 4.20x100 m", "4.20x100",
          price=4200, percentage=50),

    # Garden edging
    CatalogEntry(
        id="borde_separador",
        name="Borde Separador",
        aliases=["borde", "cinta plástica", "borde para jardín"],
    ),
    _leaf("borde_6", "borde_separador", "Borde Separador 6 m", "6 m", price=180,
          link="https://articulo.mercadolibre.com.mx/MLM-borde-6"),
    _leaf("borde_9", "borde_separador", "Borde Separador 9 m", "9 m", price=250,
          link="https://articulo.mercadolibre.com.mx/MLM-borde-9"),
    _leaf("borde_18", "borde_separador", "Borde Separador 18 m", "18 m", price=450,
          wholesale_min_qty=20, wholesale_price=380,
          link="https://articulo.mercadolibre.com.mx/MLM-borde-18"),
    _leaf("borde_54", "borde_separador", "Borde Separador 54 m", "54 m", price=1250,
          link="https://articulo.mercadolibre.com.mx/MLM-borde-54"),
    _leaf("borde_caja_18", "borde_separador", "Borde Separador 18 m (caja 20 piezas)", "18 m",
          wholesale_price=7600, wholesale_min_qty=1),

    # Weed barrier
    CatalogEntry(
        id="groundcover_antimaleza",
        name="Ground Cover Antimaleza",
        aliases=["ground cover", "antimaleza", "malla para maleza"],
    ),
    _leaf("gc_105", "groundcover_antimaleza", "Ground Cover 1.05x100 m", "1.05x100", price=1600,
          link="https://articulo.mercadolibre.com.mx/MLM-gc-105"),
    _leaf("gc_210", "groundcover_antimaleza", "Ground Cover 2.10x100 m", "2.10x100", price=2900,
          link="https://articulo.mercadolibre.com.mx/MLM-gc-210"),

    # Agricultural monofilament, sold only by wholesale
    CatalogEntry(
        id="malla_monofilamento",
        name="Malla Monofilamento",
        aliases=["monofilamento", "malla agrícola"],
    ),
    _leaf("mono_4_35", "malla_monofilamento", "Malla Monofilamento 35% 4x100 m", "4x100",
          percentage=35, wholesale_price=6500, wholesale_min_qty=1),

    # Retired product, kept for history
    _leaf("ms90_2x2", "ms_90", "Malla Sombra 90% 2x2 m", "2x2", price=250, active=False),
]

SEED_USE_CASES: list[UseCase] = [
    UseCase(
        id="uc_invernadero",
        name="Invernadero",
        keywords=["invernadero", "vivero", "cultivo", "agricultura"],
        product_ids=["mono_4_35", "rollo_50_420", "rollo_80_420"],
        priority=10,
    ),
    UseCase(
        id="uc_cochera",
        name="Cochera y estacionamiento",
        keywords=["cochera", "estacionamiento", "garage", "carro", "coche", "auto"],
        product_ids=["ms90_4x5", "ms90_4x6", "ms90_6x8"],
        priority=5,
    ),
    UseCase(
        id="uc_patio",
        name="Patio y terraza",
        keywords=["patio", "terraza", "alberca", "piscina"],
        product_ids=["ms90_3x4", "ms90_4x5", "ms90_tri4"],
        priority=5,
    ),
    UseCase(
        id="uc_maleza",
        name="Control de maleza",
        keywords=["maleza", "hierba", "hierbas"],
        product_ids=["gc_105", "gc_210"],
        priority=8,
    ),
]


class InMemoryCatalogStore:
    """Catalog store backed by lists; ``fail`` simulates an unreachable store."""

    def __init__(
        self,
        entries: Optional[list[CatalogEntry]] = None,
        use_cases: Optional[list[UseCase]] = None,
    ) -> None:
        source = SEED_ENTRIES if entries is None else entries
        self._entries: dict[str, CatalogEntry] = {e.id: e.model_copy() for e in source}
        self._use_cases = list(SEED_USE_CASES if use_cases is None else use_cases)
        self.fail = False
        self.query_count = 0

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("catalog store unavailable")

    async def find_entries(
        self, sellable: Optional[bool] = None, active: Optional[bool] = None
    ) -> list[CatalogEntry]:
        self._check()
        self.query_count += 1
        return [
            e for e in self._entries.values()
            if (sellable is None or e.sellable == sellable)
            and (active is None or e.active == active)
        ]

    async def get_entry(self, entry_id: str) -> Optional[CatalogEntry]:
        self._check()
        return self._entries.get(entry_id)

    async def list_use_cases(self) -> list[UseCase]:
        self._check()
        return list(self._use_cases)

    def upsert(self, entry: CatalogEntry) -> None:
        """Catalog edit; callers invalidate the index afterwards."""
        self._entries[entry.id] = entry
        logger.debug("Catalog entry upserted: %s", entry.id)
