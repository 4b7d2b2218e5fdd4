"""Explicit registry of context descriptions and source nodes.

The registry turns the metadata attached to description classes into frozen
tables keyed by (description, slot name). It is created by the application
and passed to the :class:`~pico_facets.factory.ContextFactory`; nothing is
registered process-wide.
"""

import inspect
import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, TypeVar

from .analysis import SlotSpec, analyze_slots
from .constants import IMPL_MARKER
from .exceptions import FacetDefinitionError
from .generics import find_ancestor, origin_of, substitute, type_parameters, bindings_of
from .recipes import Facet, Source, Uses, declarations_of

_logger = logging.getLogger(__name__)


class Context:
    """Marker base for context descriptions.

    Subclasses declare slots as class annotations::

        @facets(JsonSerialization())
        class AppContext(Context):
            serializer: Serializer
            storage: Annotated[Storage, RootPath("/var/data")]
            cache: Optional[Cache]

    Instances are produced by :class:`~pico_facets.factory.ContextFactory`,
    never by calling the description directly.
    """

    __slots__ = ()


@dataclass(frozen=True)
class DescriptionInfo:
    """Frozen tables for one registered description.

    Attributes:
        description: The description class.
        type_parameters: Its generic type parameters, in declaration order.
        slots: Slots declared by the class itself.
        declarations: Description-level recipes and ``Uses`` declarations.
        sources: Description-level source node references.
        bases: Ancestor descriptions in MRO order.
    """

    description: type
    type_parameters: Tuple[TypeVar, ...]
    slots: Mapping[str, SlotSpec]
    declarations: Tuple[Any, ...] = ()
    sources: Tuple[type, ...] = ()
    bases: Tuple[type, ...] = field(default=())

    @property
    def name(self) -> str:
        return self.description.__qualname__


def _split_declarations(owner: Any, decls: Iterable[Any]) -> Tuple[Tuple[Any, ...], Tuple[type, ...]]:
    recipes = []
    sources = []
    for d in decls:
        if isinstance(d, Source):
            sources.append(d.node)
        elif isinstance(d, (Facet, Uses)):
            recipes.append(d)
        else:
            raise FacetDefinitionError(f"Unsupported declaration {d!r} on {owner!r}")
    return tuple(recipes), tuple(sources)


def _qualname_parent(node: type) -> Optional[type]:
    parts = node.__qualname__.split(".")
    if len(parts) < 2 or "<locals>" in parts:
        return None
    cur: Any = sys.modules.get(node.__module__)
    for part in parts[:-1]:
        cur = getattr(cur, part, None)
        if cur is None:
            return None
    return cur if inspect.isclass(cur) else None


class FacetRegistry:
    """Registry of descriptions, their slots and the source node hierarchy.

    Descriptions are normally registered up front with :meth:`register`;
    descriptions first met during resolution (nested contexts) are registered
    on demand.
    """

    def __init__(self) -> None:
        self._descriptions: Dict[type, DescriptionInfo] = {}
        self._parents: Dict[type, Optional[type]] = {}
        self._lock = threading.RLock()

    def register(self, *descriptions: Any) -> "FacetRegistry":
        for d in descriptions:
            self.describe(d)
        return self

    def is_description(self, tp: Any) -> bool:
        origin = origin_of(tp)
        if not inspect.isclass(origin) or origin is Context:
            return False
        if origin.__dict__.get(IMPL_MARKER) is not None:
            return False
        try:
            return issubclass(origin, Context)
        except TypeError:
            return False

    def describe(self, description: Any) -> DescriptionInfo:
        origin = origin_of(description)
        info = self._descriptions.get(origin)
        if info is not None:
            return info
        with self._lock:
            info = self._descriptions.get(origin)
            if info is None:
                info = self._build_info(origin)
                self._descriptions[origin] = info
                _logger.debug("Registered description %s with slots %s", info.name, sorted(info.slots))
            return info

    def _build_info(self, origin: Any) -> DescriptionInfo:
        if not self.is_description(origin):
            raise FacetDefinitionError(f"{origin!r} is not a Context description")
        recipes, sources = _split_declarations(origin.__qualname__, declarations_of(origin))
        for node in sources:
            self.node_declarations(node)
        slots = analyze_slots(origin)
        for slot in slots.values():
            for node in slot.sources:
                self.node_declarations(node)
        bases = tuple(b for b in origin.__mro__[1:] if self.is_description(b))
        return DescriptionInfo(
            description=origin,
            type_parameters=type_parameters(origin),
            slots=dict(slots),
            declarations=recipes,
            sources=sources,
            bases=bases,
        )

    def slot(self, description: Any, name: str) -> SlotSpec:
        """Return the nearest declaration of slot *name*, searching ancestors."""
        info = self.describe(description)
        spec = info.slots.get(name)
        if spec is not None:
            return spec
        for base in info.bases:
            base_spec = self.describe(base).slots.get(name)
            if base_spec is not None:
                return self._rebase(info.description, base, base_spec)
        raise AttributeError(f"{info.name} has no slot '{name}'")

    def slot_names(self, description: Any) -> Tuple[str, ...]:
        info = self.describe(description)
        names = list(info.slots)
        for base in info.bases:
            for n in self.describe(base).slots:
                if n not in names:
                    names.append(n)
        return tuple(names)

    def base_slot(self, description: Any, base: type, name: str) -> Optional[SlotSpec]:
        """Return *base*'s own slot *name* expressed in *description*'s type variables."""
        spec = self.describe(base).slots.get(name)
        if spec is None:
            return None
        return self._rebase(origin_of(description), base, spec)

    def _rebase(self, description: type, base: type, spec: SlotSpec) -> SlotSpec:
        anc = find_ancestor(description, base)
        bindings = bindings_of(anc) if anc is not None else {}
        if not bindings:
            return spec
        return SlotSpec(
            name=spec.name,
            annotation=substitute(spec.annotation, bindings),
            is_optional=spec.is_optional,
            declarations=spec.declarations,
            sources=spec.sources,
        )

    # --- source nodes ---

    def register_source(self, root: type) -> "FacetRegistry":
        """Record the containment hierarchy below *root* explicitly.

        Needed for source nodes whose nesting cannot be recovered from their
        qualified name, such as classes defined inside functions.
        """
        if not inspect.isclass(root):
            raise FacetDefinitionError(f"Source root must be a class, got {root!r}")
        with self._lock:
            self._parents.setdefault(root, _qualname_parent(root))
            prefix = root.__qualname__ + "."
            for member in vars(root).values():
                if inspect.isclass(member) and member.__qualname__.startswith(prefix):
                    self._parents[member] = root
                    self.register_source(member)
        return self

    def parent_of(self, node: type) -> Optional[type]:
        if node not in self._parents:
            with self._lock:
                self._parents.setdefault(node, _qualname_parent(node))
        return self._parents[node]

    def source_chain(self, node: type) -> Tuple[type, ...]:
        """Return *node* followed by its containment ancestors, innermost first."""
        chain = []
        cur: Optional[type] = node
        while cur is not None and cur not in chain:
            chain.append(cur)
            cur = self.parent_of(cur)
        return tuple(chain)

    def node_declarations(self, node: type) -> Tuple[Any, ...]:
        recipes, sources = _split_declarations(node.__qualname__, declarations_of(node))
        if sources:
            raise FacetDefinitionError(f"Source node {node.__qualname__} cannot reference other sources")
        return recipes
