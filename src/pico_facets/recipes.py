"""Recipe model: the declarations that drive facet resolution.

Declarations are immutable value objects attached to slots through
``typing.Annotated`` metadata, and to descriptions or source nodes through the
:func:`facets` class decorator::

    class RootPath(FacetParameter):
        target_type = LocalFileStorage
        parameter_name = "root_path"

    class StorageContext(Context):
        storage: Annotated[Storage, RootPath("/var/data")]
"""

import inspect
from typing import Any, Tuple

from .constants import FACETS_META
from .exceptions import FacetDefinitionError

_UNSET = object()


def _type_name(t: Any) -> str:
    return getattr(t, "__name__", str(t))


class _Declaration:
    __slots__ = ()

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} declarations are immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} declarations are immutable")

    def _identity(self) -> Tuple[Any, ...]:
        raise NotImplementedError

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, _Declaration):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())


class Facet(_Declaration):
    """Shape recipe: names the concrete type to construct for a slot.

    Subclasses usually fix ``target_type`` as a class attribute; it may also be
    passed directly (``Facet(JsonSerializer)``). Generic targets are given
    open (``Facet(DataStore)``) and closed over the requested type later.
    """

    target_type: Any = None

    def __init__(self, target_type: Any = None) -> None:
        if target_type is not None:
            object.__setattr__(self, "target_type", target_type)
        if not inspect.isclass(self.target_type):
            raise FacetDefinitionError(
                f"{type(self).__name__} requires a class target_type, got {self.target_type!r}"
            )

    def _identity(self) -> Tuple[Any, ...]:
        return (type(self), self.target_type)

    def __repr__(self) -> str:
        if type(self) is Facet:
            return f"Facet({_type_name(self.target_type)})"
        return f"{type(self).__name__}()"


class FacetParameter(Facet):
    """Parameter recipe: binds one constructor parameter of ``target_type``.

    Exactly one of ``value`` (a literal) or ``config_key`` (looked up from the
    configuration provider at resolution time) must be given. A parameter
    recipe is also a shape candidate for its target type.

    Args:
        value: Literal value passed to the parameter.
        config_key: Configuration key whose value is passed instead.
        target_type: Overrides the class-level ``target_type``.
        parameter_name: Overrides the class-level ``parameter_name``.
    """

    parameter_name: str = ""

    def __init__(
        self,
        value: Any = _UNSET,
        config_key: Any = None,
        *,
        target_type: Any = None,
        parameter_name: Any = None,
    ) -> None:
        super().__init__(target_type)
        if parameter_name is not None:
            object.__setattr__(self, "parameter_name", parameter_name)
        if not isinstance(self.parameter_name, str) or not self.parameter_name:
            raise FacetDefinitionError(f"{type(self).__name__} requires a parameter_name")
        if (value is _UNSET) == (config_key is None):
            raise FacetDefinitionError(
                f"{type(self).__name__} requires exactly one of value or config_key"
            )
        if config_key is not None and (not isinstance(config_key, str) or not config_key.strip()):
            raise FacetDefinitionError(f"{type(self).__name__} config_key must be a non-empty string")
        object.__setattr__(self, "_value", value)
        object.__setattr__(self, "config_key", config_key)

    @property
    def value(self) -> Any:
        return None if self._value is _UNSET else self._value

    @property
    def from_config(self) -> bool:
        return self.config_key is not None

    def _identity(self) -> Tuple[Any, ...]:
        return (type(self), self.target_type, self.parameter_name, repr(self._value), self.config_key)

    def __repr__(self) -> str:
        shown = f"config_key={self.config_key!r}" if self.from_config else repr(self._value)
        if type(self) is FacetParameter:
            return f"FacetParameter({_type_name(self.target_type)}.{self.parameter_name}={shown})"
        return f"{type(self).__name__}({shown})"


class Uses(_Declaration):
    """Declares a type supplied by the external dependency resolver.

    ``type_arguments`` name type parameters of the enclosing description; they
    close a generic ``dependency_type`` over the description's arguments::

        get: Annotated[Endpoint[TKey], Uses(StoreRequestMapper, "TKey", "TValue")]

    Every ``Uses`` in scope for a slot must be consumed by some constructor
    parameter while that slot resolves.
    """

    __slots__ = ("dependency_type", "type_arguments")

    def __init__(self, dependency_type: Any, *type_arguments: str) -> None:
        if not inspect.isclass(dependency_type):
            raise FacetDefinitionError(f"Uses requires a class, got {dependency_type!r}")
        for name in type_arguments:
            if not isinstance(name, str) or not name:
                raise FacetDefinitionError(f"Uses type arguments must be names, got {name!r}")
        object.__setattr__(self, "dependency_type", dependency_type)
        object.__setattr__(self, "type_arguments", tuple(type_arguments))

    def _identity(self) -> Tuple[Any, ...]:
        return (Uses, self.dependency_type, self.type_arguments)

    def __repr__(self) -> str:
        args = "".join(f", {a!r}" for a in self.type_arguments)
        return f"Uses({_type_name(self.dependency_type)}{args})"


class Source(_Declaration):
    """Reference to a source node whose recipes (and whose containing nodes'
    recipes) apply to the annotated slot or description."""

    __slots__ = ("node",)

    def __init__(self, node: Any) -> None:
        if not inspect.isclass(node):
            raise FacetDefinitionError(f"Source requires a class, got {node!r}")
        object.__setattr__(self, "node", node)

    def _identity(self) -> Tuple[Any, ...]:
        return (Source, self.node)

    def __repr__(self) -> str:
        return f"Source({getattr(self.node, '__qualname__', self.node)})"


DECLARATION_TYPES = (Facet, Uses, Source)


def is_declaration(obj: Any) -> bool:
    return isinstance(obj, DECLARATION_TYPES)


def facets(*declarations: Any):
    """Attach declarations to a description or a source node.

    Stacked decorators keep top-to-bottom order.
    """
    for d in declarations:
        if not is_declaration(d):
            raise FacetDefinitionError(f"@facets accepts Facet, Uses or Source declarations, got {d!r}")

    def dec(cls):
        if not inspect.isclass(cls):
            raise FacetDefinitionError("@facets can only decorate classes")
        current = cls.__dict__.get(FACETS_META, ())
        setattr(cls, FACETS_META, tuple(declarations) + tuple(current))
        return cls

    return dec


def declarations_of(cls: Any) -> Tuple[Any, ...]:
    """Return the declarations attached directly to *cls* (never inherited)."""
    return tuple(getattr(cls, "__dict__", {}).get(FACETS_META, ()))


__all__ = [
    "Facet",
    "FacetParameter",
    "Uses",
    "Source",
    "facets",
    "declarations_of",
    "is_declaration",
]
