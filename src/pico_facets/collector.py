"""Declaration collection for a single slot.

The collector walks every declaration site visible to a slot and returns the
union of what it finds as a :class:`FacetSet`. Nearer sites get lower ranks;
nothing is deduplicated or overridden here.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .generics import origin_of
from .recipes import Facet, FacetParameter, Uses
from .registry import DescriptionInfo, FacetRegistry

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class CollectedDeclaration:
    """A declaration together with the site it was collected from.

    Attributes:
        declaration: The recipe or ``Uses`` declaration.
        rank: Position of the declaring site; lower is nearer to the slot.
        site: Human-readable name of the declaring site.
    """

    declaration: Any
    rank: int
    site: str

    @property
    def is_uses(self) -> bool:
        return isinstance(self.declaration, Uses)


class FacetSet:
    """Ordered, immutable collection of declarations visible to one slot."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[CollectedDeclaration] = ()) -> None:
        self._entries: Tuple[CollectedDeclaration, ...] = tuple(entries)

    def __iter__(self) -> Iterator[CollectedDeclaration]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FacetSet({[e.declaration for e in self._entries]!r})"

    @property
    def declarations(self) -> Tuple[Any, ...]:
        return tuple(e.declaration for e in self._entries)

    def shapes(self) -> Tuple[CollectedDeclaration, ...]:
        return tuple(e for e in self._entries if isinstance(e.declaration, Facet))

    def parameters(self) -> Tuple[CollectedDeclaration, ...]:
        return tuple(e for e in self._entries if isinstance(e.declaration, FacetParameter))

    def uses(self) -> Tuple[CollectedDeclaration, ...]:
        return tuple(e for e in self._entries if e.is_uses)

    def without_uses(self) -> "FacetSet":
        return FacetSet(e for e in self._entries if not e.is_uses)

    def extend(self, other: "FacetSet") -> "FacetSet":
        """Append *other*, ranking all of its sites after this set's sites."""
        if not len(other):
            return self
        offset = (max(e.rank for e in self._entries) + 1) if self._entries else 0
        moved = [CollectedDeclaration(e.declaration, e.rank + offset, e.site) for e in other]
        return FacetSet(self._entries + tuple(moved))


class DeclarationCollector:
    """Collects the declarations visible to a slot, memoized per slot."""

    def __init__(self, registry: FacetRegistry) -> None:
        self._registry = registry
        self._memo: Dict[Tuple[type, str], FacetSet] = {}
        self._lock = threading.Lock()

    def collect(self, description: Any, slot_name: str) -> FacetSet:
        key = (origin_of(description), slot_name)
        cached = self._memo.get(key)
        if cached is not None:
            return cached
        result = self._collect(key[0], slot_name)
        with self._lock:
            self._memo.setdefault(key, result)
        _logger.debug("Collected %d declarations for %s.%s", len(result), key[0].__qualname__, slot_name)
        return result

    def _collect(self, description: type, slot_name: str) -> FacetSet:
        registry = self._registry
        info = registry.describe(description)
        slot = registry.slot(description, slot_name)

        sites: List[Tuple[str, Tuple[Any, ...]]] = []
        self._gather(info, info.slots.get(slot_name), sites)
        for base in info.bases:
            base_slot = registry.base_slot(description, base, slot_name)
            if base_slot is not None and base_slot.annotation != slot.annotation:
                base_slot = None
            self._gather(registry.describe(base), base_slot, sites)

        entries = []
        for rank, (site, decls) in enumerate(sites):
            entries.extend(CollectedDeclaration(d, rank, site) for d in decls)
        return FacetSet(entries)

    def _gather(self, info: DescriptionInfo, slot: Optional[Any], sites: List[Tuple[str, Tuple[Any, ...]]]) -> None:
        if slot is not None:
            sites.append((f"{info.name}.{slot.name}", slot.declarations))
            self._gather_sources(slot.sources, sites)
        sites.append((info.name, info.declarations))
        self._gather_sources(info.sources, sites)

    def _gather_sources(self, nodes: Iterable[type], sites: List[Tuple[str, Tuple[Any, ...]]]) -> None:
        for node in nodes:
            for member in self._registry.source_chain(node):
                sites.append((f"source {member.__qualname__}", self._registry.node_declarations(member)))
