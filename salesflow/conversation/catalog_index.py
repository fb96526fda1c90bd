"""
Catalog index: size and family lookups over an immutable catalog snapshot.

The catalog is a tree of entries (families, sub-families, sellable
leaves). A snapshot is built from the catalog store once per TTL window
and then only read. Every lookup goes through the snapshot, so a rebuild
replaces everything at once and concurrent readers never see a half-built
index.

Which flow owns an entry is decided by walking its ancestor chain and
matching family keywords against names and aliases; sizes that belong to
several flows are broken by a fixed specificity order.

Usage:
    index = CatalogIndex(store)
    snapshot = await index.get()
    flow = snapshot.resolve_flow(5, 4)   # same answer as (4, 5)
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from salesflow.config import settings
from salesflow.conversation.entity_normalizer import ParsedSize, parse_size_string
from salesflow.conversation.state_machine import FlowName
from salesflow.schemas.catalog_schema import CatalogEntry, UseCase
from salesflow.utils import dimension_key

logger = logging.getLogger(__name__)

# When several flows sell the same size, the first claimant here wins.
SIZE_PRIORITY: tuple[FlowName, ...] = (
    FlowName.MALLA_SOMBRA,
    FlowName.GROUNDCOVER,
    FlowName.MONOFILAMENTO,
    FlowName.ROLLO,
    FlowName.BORDE_SEPARADOR,
)


class CatalogUnavailableError(Exception):
    """The catalog store failed and no previous snapshot exists to fall back on."""


@dataclass(frozen=True)
class FamilyRule:
    flow: FlowName
    pattern: re.Pattern


# Ordered most specific first: "malla antimaleza" must not land in malla sombra.
FAMILY_RULES: tuple[FamilyRule, ...] = (
    FamilyRule(FlowName.GROUNDCOVER, re.compile(r"ground\s*cover|antimaleza|anti\s*maleza|maleza")),
    FamilyRule(FlowName.MONOFILAMENTO, re.compile(r"monofilamento")),
    FamilyRule(FlowName.BORDE_SEPARADOR, re.compile(r"borde|cinta\s+pl[aá]stica|separador")),
    FamilyRule(FlowName.ROLLO, re.compile(r"\brollos?\b")),
    FamilyRule(FlowName.MALLA_SOMBRA, re.compile(r"malla\s*sombra|confeccionada|raschel")),
)

_ROLL_SIZE = re.compile(r"\d+(?:\.\d+)?\s*[x×*]\s*(?:50|100)\b")


class CatalogSnapshot:
    """Immutable view of the catalog at build time."""

    def __init__(self, entries: list[CatalogEntry], use_cases: Optional[list[UseCase]] = None) -> None:
        self._entries: dict[str, CatalogEntry] = {e.id: e for e in entries}
        self._use_cases: tuple[UseCase, ...] = tuple(
            sorted((u for u in use_cases or [] if u.available), key=lambda u: -u.priority)
        )
        self._sizes: dict[str, Optional[ParsedSize]] = {
            e.id: parse_size_string(e.size) for e in entries
        }
        self._flows: dict[str, Optional[FlowName]] = {e.id: self._classify(e) for e in entries}
        self._size_index: dict[str, frozenset[FlowName]] = self._build_size_index()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[CatalogEntry]:
        return list(self._entries.values())

    @property
    def use_cases(self) -> tuple[UseCase, ...]:
        return self._use_cases

    def entry(self, entry_id: str) -> Optional[CatalogEntry]:
        return self._entries.get(entry_id)

    def parsed_size(self, entry_id: str) -> Optional[ParsedSize]:
        return self._sizes.get(entry_id)

    # ------------------------------------------------------------------ #
    #  Tree
    # ------------------------------------------------------------------ #

    def ancestors(self, entry_id: str) -> list[CatalogEntry]:
        """Parent chain from the direct parent up to the root.

        A broken or cyclic chain stops at the first repeated or missing id.
        """
        chain: list[CatalogEntry] = []
        seen = {entry_id}
        current = self._entries.get(entry_id)
        while current is not None and current.parent_id:
            if current.parent_id in seen:
                logger.warning("Cycle in catalog tree at '%s'", current.parent_id)
                break
            seen.add(current.parent_id)
            parent = self._entries.get(current.parent_id)
            if parent is None:
                break
            chain.append(parent)
            current = parent
        return chain

    def effective_aliases(self, entry_id: str) -> frozenset[str]:
        """Own aliases plus every ancestor's, lowercased."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return frozenset()
        aliases = {a.lower().strip() for a in entry.aliases}
        for ancestor in self.ancestors(entry_id):
            aliases.update(a.lower().strip() for a in ancestor.aliases)
        return frozenset(aliases)

    def find_by_alias(self, term: str, sellable_only: bool = True) -> list[CatalogEntry]:
        """Entries whose effective alias set contains ``term`` (or their own name does)."""
        needle = term.lower().strip()
        matches = []
        for entry in self._entries.values():
            if sellable_only and not (entry.sellable and entry.active):
                continue
            if needle in self.effective_aliases(entry.id) or needle == entry.name.lower():
                matches.append(entry)
        return matches

    # ------------------------------------------------------------------ #
    #  Flow ownership
    # ------------------------------------------------------------------ #

    def _classify(self, entry: CatalogEntry) -> Optional[FlowName]:
        chain = [entry] + self.ancestors(entry.id)
        terms = []
        for node in chain:
            terms.append(node.name.lower())
            terms.extend(a.lower() for a in node.aliases)
        haystack = " | ".join(terms)
        for rule in FAMILY_RULES:
            if rule.pattern.search(haystack):
                return rule.flow
        if entry.size and _ROLL_SIZE.search(entry.size.lower()):
            return FlowName.ROLLO
        return None

    def classify(self, entry_id: str) -> Optional[FlowName]:
        """Flow that sells this entry, or None when nothing matches."""
        return self._flows.get(entry_id)

    def _build_size_index(self) -> dict[str, frozenset[FlowName]]:
        claims: dict[str, set[FlowName]] = {}
        for entry in self._entries.values():
            if not (entry.sellable and entry.active):
                continue
            flow = self._flows.get(entry.id)
            size = self._sizes.get(entry.id)
            if flow is None or size is None or size.key is None:
                continue
            claims.setdefault(size.key, set()).add(flow)
        return {key: frozenset(flows) for key, flows in claims.items()}

    def flows_for_size(self, width: float, height: float) -> frozenset[FlowName]:
        return self._size_index.get(dimension_key(width, height), frozenset())

    def resolve_flow(self, width: float, height: float) -> Optional[FlowName]:
        """Owning flow for a size, orientation-insensitive. None if unclaimed."""
        claimants = self.flows_for_size(width, height)
        if not claimants:
            return None
        if len(claimants) == 1:
            return next(iter(claimants))
        for flow in SIZE_PRIORITY:
            if flow in claimants:
                return flow
        return None

    def entries_for_flow(self, flow: FlowName, include_inactive: bool = False) -> list[CatalogEntry]:
        """Sellable entries owned by ``flow``."""
        return [
            e for e in self._entries.values()
            if e.sellable and (include_inactive or e.active) and self._flows.get(e.id) == flow
        ]

    # ------------------------------------------------------------------ #
    #  Product lookup
    # ------------------------------------------------------------------ #

    def find_product(
        self,
        flow: FlowName,
        width: Optional[float] = None,
        height: Optional[float] = None,
        length: Optional[float] = None,
        percentage: Optional[int] = None,
        color: Optional[str] = None,
    ) -> Optional[CatalogEntry]:
        """Exact match by size (and optional percentage/color) within a flow.

        Two-dimensional requests compare orientation-insensitive keys. A
        width-only request (roll widths) matches the entry's narrow side.
        A length-only request (edging) matches linear sizes. Entries with a
        retail price win over wholesale-only ones.
        """
        candidates: list[CatalogEntry] = []
        for entry in self.entries_for_flow(flow):
            size = self._sizes.get(entry.id)
            if size is None:
                continue
            if not self._size_matches(size, width, height, length):
                continue
            if percentage is not None and entry.percentage is not None and entry.percentage != percentage:
                continue
            if color and entry.color and entry.color.lower() != color.lower():
                continue
            candidates.append(entry)
        if not candidates:
            return None
        candidates.sort(key=lambda e: (not e.is_retail, e.price or 0))
        return candidates[0]

    @staticmethod
    def _size_matches(
        size: ParsedSize,
        width: Optional[float],
        height: Optional[float],
        length: Optional[float],
    ) -> bool:
        if width is not None and height is not None:
            return size.key == dimension_key(width, height)
        if width is not None:
            if size.width is None or size.height is None:
                return False
            narrow, long_side = sorted((size.width, size.height))
            if length is not None and long_side != length:
                return False
            return narrow == width
        if length is not None:
            if size.length is not None:
                return size.length == length
            return False
        return False

    def closest_sizes(
        self,
        flow: FlowName,
        width: float,
        height: float,
        limit: Optional[int] = None,
    ) -> list[CatalogEntry]:
        """Sellable entries of ``flow`` nearest in area to the requested size.

        Entries at least as large as the request come first.
        """
        limit = limit or settings.flows.max_alternatives
        target = width * height
        scored = []
        for entry in self.entries_for_flow(flow):
            size = self._sizes.get(entry.id)
            if size is None or size.width is None or size.height is None:
                continue
            area = size.width * size.height
            covers = min(size.width, size.height) >= min(width, height) and \
                max(size.width, size.height) >= max(width, height)
            scored.append((not covers, abs(area - target), entry))
        scored.sort(key=lambda item: (item[0], item[1]))
        return [entry for _, _, entry in scored[:limit]]

    def family_variants(self, flow: FlowName) -> tuple[bool, bool]:
        """(has_retail, has_wholesale_only) across the flow's sellable entries."""
        entries = self.entries_for_flow(flow)
        has_retail = any(e.is_retail for e in entries)
        has_wholesale_only = any(e.is_wholesale_only for e in entries)
        return has_retail, has_wholesale_only


class CatalogIndex:
    """
    TTL-cached owner of the current catalog snapshot.

    ``get()`` returns the cached snapshot while it is fresh. When stale,
    one caller rebuilds under a lock while others wait for the same
    result. A failed rebuild keeps serving the previous snapshot; with no
    previous snapshot it raises CatalogUnavailableError.
    """

    def __init__(
        self,
        store,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.catalog.cache_ttl_seconds
        self._clock = clock
        self._snapshot: Optional[CatalogSnapshot] = None
        self._built_at: float = 0.0
        self._lock = asyncio.Lock()
        self.rebuild_count = 0

    def _is_fresh(self) -> bool:
        return self._snapshot is not None and (self._clock() - self._built_at) < self._ttl

    async def get(self) -> CatalogSnapshot:
        if self._is_fresh():
            return self._snapshot  # type: ignore[return-value]

        async with self._lock:
            if self._is_fresh():
                return self._snapshot  # type: ignore[return-value]
            try:
                entries = await self._store.find_entries()
                use_cases = await self._store.list_use_cases()
                snapshot = CatalogSnapshot(entries, use_cases)
            except Exception as e:
                if self._snapshot is not None:
                    logger.warning("Catalog rebuild failed, serving stale snapshot: %s", e)
                    return self._snapshot
                raise CatalogUnavailableError(f"Catalog store unavailable: {e}") from e

            self._snapshot = snapshot
            self._built_at = self._clock()
            self.rebuild_count += 1
            logger.info("Catalog index rebuilt: %d entries", len(snapshot))
            return snapshot

    def invalidate(self) -> None:
        """Force the next ``get()`` to rebuild."""
        self._built_at = float("-inf")
        logger.debug("Catalog index invalidated")

    async def resolve_flow(self, width: float, height: float) -> Optional[FlowName]:
        snapshot = await self.get()
        return snapshot.resolve_flow(width, height)
