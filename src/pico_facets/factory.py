"""Context factory: live, lazily-resolving instances of context descriptions.

For each description the factory generates one subclass carrying a
:class:`SlotProperty` per slot. Reading a slot collects its declarations,
resolves it (or creates a nested context) and caches the value on the
instance; nothing touches the configuration provider or the dependency
resolver before the first read.
"""

import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol, get_args

from .collector import DeclarationCollector, FacetSet
from .config_builder import ConfigurationProvider
from .constants import IMPL_MARKER, LOGGER, STATE_ATTR
from .dependencies import DependencyResolver
from .exceptions import FacetDefinitionError
from .generics import origin_of, substitute, type_name
from .registry import Context, FacetRegistry
from .resolution import ResolutionEngine

_MISSING = object()


class ResolutionObserver(Protocol):
    """Protocol for observing slot resolutions.

    ``origin`` is the ``"Description.slot"`` label of the slot.
    """

    def on_resolve(self, origin: str, took_ms: float): ...
    def on_cache_hit(self, origin: str): ...


class _ContextState:
    __slots__ = ("factory", "description", "type_arguments", "inherited", "values", "lock")

    def __init__(
        self,
        factory: "ContextFactory",
        description: type,
        type_arguments: Mapping[Any, Any],
        inherited: FacetSet,
    ) -> None:
        self.factory = factory
        self.description = description
        self.type_arguments = dict(type_arguments)
        self.inherited = inherited
        self.values: Dict[str, Any] = {}
        self.lock = threading.RLock()

    def label(self, name: str) -> str:
        return f"{self.description.__qualname__}.{name}"

    def get(self, name: str) -> Any:
        value = self.values.get(name, _MISSING)
        if value is not _MISSING:
            self.factory._note_cache_hit(self.label(name))
            return value
        with self.lock:
            value = self.values.get(name, _MISSING)
            if value is _MISSING:
                value = self.factory._resolve_slot(self, name)
                self.values[name] = value
            return value


class SlotProperty:
    """Read-only descriptor resolving one slot on first access."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: Any = None) -> Any:
        if instance is None:
            return self
        return getattr(instance, STATE_ATTR).get(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        raise AttributeError(f"Slot '{self.name}' is read-only")

    def __delete__(self, instance: Any) -> None:
        raise AttributeError(f"Slot '{self.name}' is read-only")


def _context_repr(self) -> str:
    state = getattr(self, STATE_ATTR)
    resolved = ", ".join(sorted(state.values))
    return f"<{type_name(state.description)} context resolved=[{resolved}]>"


class ContextFactory:
    """Creates context instances for registered descriptions.

    Args:
        configuration_provider: Supplies values for ``config_key`` recipes.
        dependency_resolver: Supplies instances for ``Uses`` declarations.
        registry: Registry of descriptions; a private one is created when
            omitted.
        observers: Receive ``on_resolve`` / ``on_cache_hit`` callbacks.

    Example:
        >>> factory = ContextFactory(configuration(EnvSource(prefix="APP_")))
        >>> ctx = factory.create(AppContext)
        >>> ctx.storage.root_path
        '/var/data'

    Context instances are independent of each other; concurrent first reads
    of the same slot on one instance resolve once.
    """

    def __init__(
        self,
        configuration_provider: Optional[ConfigurationProvider] = None,
        dependency_resolver: Optional[DependencyResolver] = None,
        *,
        registry: Optional[FacetRegistry] = None,
        observers: Optional[List[ResolutionObserver]] = None,
    ) -> None:
        self._registry = registry if registry is not None else FacetRegistry()
        self._collector = DeclarationCollector(self._registry)
        self._engine = ResolutionEngine(configuration_provider, dependency_resolver)
        self._observers = list(observers or [])
        self._implementations: Dict[type, type] = {}
        self._lock = threading.Lock()
        self._resolve_count = 0
        self._cache_hit_count = 0

    @property
    def registry(self) -> FacetRegistry:
        return self._registry

    def create(self, description: Any) -> Any:
        """Create an instance of *description*; no slot is resolved yet.

        Generic descriptions may be passed closed (``StoreContext[UUID, str]``).
        """
        return self._create(description, FacetSet())

    def _create(self, description: Any, inherited: FacetSet) -> Any:
        origin = origin_of(description)
        info = self._registry.describe(origin)
        args = get_args(description)
        if args and len(args) != len(info.type_parameters):
            raise FacetDefinitionError(
                f"{info.name} takes {len(info.type_parameters)} type arguments, got {len(args)}"
            )
        state = _ContextState(self, origin, dict(zip(info.type_parameters, args)), inherited)
        instance = object.__new__(self._implementation_for(origin))
        object.__setattr__(instance, STATE_ATTR, state)
        LOGGER.debug("Created context %s", type_name(description))
        return instance

    def _implementation_for(self, origin: type) -> type:
        impl = self._implementations.get(origin)
        if impl is not None:
            return impl
        with self._lock:
            impl = self._implementations.get(origin)
            if impl is None:
                namespace: Dict[str, Any] = {name: SlotProperty(name) for name in self._registry.slot_names(origin)}
                namespace[IMPL_MARKER] = origin
                namespace["__slots__"] = (STATE_ATTR,)
                namespace["__repr__"] = _context_repr
                namespace["__module__"] = origin.__module__
                namespace["__qualname__"] = origin.__qualname__
                impl = type(origin)(origin.__name__, (origin,), namespace)
                self._implementations[origin] = impl
            return impl

    def _resolve_slot(self, state: _ContextState, name: str) -> Any:
        t0 = time.perf_counter()
        label = state.label(name)
        spec = self._registry.slot(state.description, name)
        requested = substitute(spec.annotation, state.type_arguments)
        facet_set = self._collector.collect(state.description, name).extend(state.inherited)

        if self._registry.is_description(requested) and self._engine.select_target(requested, facet_set, label) is None:
            LOGGER.debug("Slot %s creates nested context %s", label, type_name(requested))
            value = self._create(requested, facet_set.without_uses())
        else:
            value = self._engine.resolve(
                requested,
                facet_set,
                is_optional=spec.is_optional,
                type_arguments=state.type_arguments,
                origin=label,
            )

        took_ms = (time.perf_counter() - t0) * 1000
        with self._lock:
            self._resolve_count += 1
        for o in self._observers:
            o.on_resolve(label, took_ms)
        LOGGER.debug("Resolved slot %s in %.2fms", label, took_ms)
        return value

    def _note_cache_hit(self, label: str) -> None:
        with self._lock:
            self._cache_hit_count += 1
        for o in self._observers:
            o.on_cache_hit(label)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            resolves = self._resolve_count
            hits = self._cache_hit_count
            registered = len(self._implementations)
        total = resolves + hits
        return {
            "total_resolves": resolves,
            "cache_hits": hits,
            "cache_hit_rate": (hits / total) if total > 0 else 0.0,
            "registered_descriptions": registered,
        }


__all__ = ["Context", "ContextFactory", "ResolutionObserver", "SlotProperty"]
