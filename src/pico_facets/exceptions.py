"""Exception hierarchy for pico-facets.

All package exceptions inherit from :class:`FacetError`, so any resolution
failure can be caught with a single ``except FacetError`` clause.
"""

from typing import Any, Iterable, Optional, Sequence


def _name(obj: Any) -> str:
    return getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None) or str(obj)


class FacetError(Exception):
    """Base exception for all pico-facets errors."""

    pass


class FacetDefinitionError(FacetError):
    """Raised when a description, slot or declaration is malformed."""

    def __init__(self, msg: str):
        super().__init__(msg)


class ResultResolutionError(FacetError):
    """Raised when no shape recipe applies to a required slot or parameter.

    Attributes:
        key: The requested type.
        origin: Description of where the request came from.
    """

    def __init__(self, key: Any, origin: Optional[str] = None):
        super().__init__(f"No facet resolves type '{_name(key)}' (required by: '{origin or '?'}')")
        self.key = key
        self.origin = origin


class ParameterResolutionError(FacetError):
    """Raised when a required constructor parameter cannot be bound.

    Attributes:
        parameter: The constructor parameter name.
        key: The concrete type being constructed.
        origin: Description of where the request came from.
    """

    def __init__(self, parameter: str, key: Any, origin: Optional[str] = None):
        super().__init__(
            f"Cannot resolve parameter '{parameter}' of '{_name(key)}' (required by: '{origin or '?'}')"
        )
        self.parameter = parameter
        self.key = key
        self.origin = origin


class DependencyUnusedError(FacetError):
    """Raised when a ``Uses`` declaration was never consumed by a slot.

    Attributes:
        origin: The slot being resolved.
        unused: The declarations that were not consumed.
    """

    def __init__(self, origin: str, unused: Sequence[Any]):
        listed = ", ".join(repr(u) for u in unused)
        super().__init__(f"Declared dependencies never used while resolving '{origin}': {listed}")
        self.origin = origin
        self.unused = tuple(unused)


class AmbiguousResolutionError(FacetError):
    """Raised when one declaration site offers several assignable targets.

    Attributes:
        key: The requested type.
        candidates: The competing concrete types.
    """

    def __init__(self, key: Any, candidates: Iterable[Any], origin: Optional[str] = None):
        self.candidates = tuple(candidates)
        names = ", ".join(_name(c) for c in self.candidates)
        super().__init__(f"Ambiguous facets for type '{_name(key)}' in '{origin or '?'}': {names}")
        self.key = key
        self.origin = origin


class CircularResolutionError(FacetError):
    """Raised when a concrete type is needed while it is being constructed.

    Attributes:
        chain: The construction chain leading to the cycle.
        key: The type that closed the cycle.
    """

    def __init__(self, chain: Sequence[Any], key: Any):
        path = " -> ".join(_name(k) for k in tuple(chain) + (key,))
        super().__init__(f"Circular facet resolution: {path}")
        self.chain = tuple(chain)
        self.key = key


class FacetCreationError(FacetError):
    """Raised when a concrete type's constructor fails.

    Attributes:
        key: The concrete type whose construction failed.
        cause: The original exception.
    """

    def __init__(self, key: Any, cause: Exception):
        super().__init__(f"Failed to create '{_name(key)}'; cause: {cause.__class__.__name__}: {cause}")
        self.key = key
        self.cause = cause


class ConfigurationError(FacetError):
    """Raised for configuration problems (missing provider, missing keys, bad sources)."""

    def __init__(self, msg: str):
        super().__init__(msg)


class DependencyNotFoundError(FacetError):
    """Raised by a dependency resolver that cannot supply a type.

    Attributes:
        key: The requested dependency type.
    """

    def __init__(self, key: Any):
        super().__init__(f"No external dependency registered for '{_name(key)}'")
        self.key = key
