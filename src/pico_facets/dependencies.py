"""External dependency resolver capability and adapters.

``Uses`` declarations are satisfied through a :class:`DependencyResolver`.
Two adapters are provided: :class:`MappingDependencyResolver` for explicit
type-to-instance tables and :class:`ContainerDependencyResolver` for any DI
container exposing ``get(key)``.
"""

import inspect
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from .exceptions import DependencyNotFoundError
from .generics import is_assignable, origin_of, type_name

_logger = logging.getLogger(__name__)

Provider = Callable[[], Any]


@runtime_checkable
class DependencyResolver(Protocol):
    """Capability supplying instances for ``Uses`` declarations."""

    def resolve(self, dependency_type: Any) -> Any: ...


class MappingDependencyResolver:
    """Resolver backed by a mapping of types to instances or providers.

    Values are bound as instances and returned as given, even when they are
    callable. A class value is a provider for itself. Any other zero-argument
    factory must be registered with :meth:`bind_provider`. Providers run once,
    on first request, and the result is memoized. Requests for an
    unregistered type fall back to the single registered key assignable to
    it.

    Example:
        >>> resolver = MappingDependencyResolver({Clock: SystemClock}).bind_provider(
        ...     Cache, lambda: Cache(size=64)
        ... )
        >>> isinstance(resolver.resolve(Clock), SystemClock)
        True
    """

    def __init__(self, bindings: Optional[Mapping[Any, Any]] = None) -> None:
        self._instances: Dict[Any, Any] = {}
        self._providers: Dict[Any, Provider] = {}
        self._lock = threading.RLock()
        for key, value in (bindings or {}).items():
            self.bind(key, value)

    def bind(self, key: Any, value: Any) -> "MappingDependencyResolver":
        if inspect.isclass(value):
            return self.bind_provider(key, value)
        with self._lock:
            self._providers.pop(key, None)
            self._instances[key] = value
        return self

    def bind_provider(self, key: Any, provider: Provider) -> "MappingDependencyResolver":
        if not callable(provider):
            raise TypeError(f"Provider for {type_name(key)} must be callable, got {provider!r}")
        with self._lock:
            self._instances.pop(key, None)
            self._providers[key] = provider
        return self

    def _keys(self) -> List[Any]:
        return list(self._instances) + [k for k in self._providers if k not in self._instances]

    def _find_key(self, dependency_type: Any) -> Any:
        keys = self._keys()
        if dependency_type in keys:
            return dependency_type
        origin = origin_of(dependency_type)
        if origin in keys:
            return origin
        cands: List[Any] = [k for k in keys if is_assignable(k, dependency_type)]
        if len(cands) == 1:
            return cands[0]
        if cands:
            _logger.debug("Several bindings satisfy %s: %s", type_name(dependency_type), cands)
        raise DependencyNotFoundError(dependency_type)

    def resolve(self, dependency_type: Any) -> Any:
        with self._lock:
            key = self._find_key(dependency_type)
            if key in self._instances:
                return self._instances[key]
            value = self._providers[key]()
            self._instances[key] = value
            return value


class ContainerDependencyResolver:
    """Adapter over a DI container exposing ``get(key)``.

    Args:
        container: The container to delegate to.
        getter: Name of the lookup method, ``"get"`` by default.
    """

    def __init__(self, container: Any, getter: str = "get") -> None:
        self._get: Callable[[Any], Any] = getattr(container, getter)

    def resolve(self, dependency_type: Any) -> Any:
        try:
            return self._get(dependency_type)
        except LookupError as e:
            raise DependencyNotFoundError(dependency_type) from e
