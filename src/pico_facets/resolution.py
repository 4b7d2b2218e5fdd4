"""Facet resolution engine.

Given the :class:`~pico_facets.collector.FacetSet` visible to a slot, the
engine selects the recipe that decides the concrete type, binds that type's
constructor parameters (parameter recipes, ``Uses`` declarations, nested
recipes, defaults) and constructs it. Constructed objects are never cached
below the slot level; configuration values and resolver results are fetched
at most once per slot access.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .analysis import ParameterRequest, analyze_constructor
from .collector import FacetSet
from .config_builder import ConfigurationProvider, coerce
from .dependencies import DependencyResolver
from .exceptions import (
    AmbiguousResolutionError,
    CircularResolutionError,
    ConfigurationError,
    DependencyUnusedError,
    FacetCreationError,
    FacetDefinitionError,
    FacetError,
    ParameterResolutionError,
    ResultResolutionError,
)
from .generics import bindings_of, close_over, is_abstract, origin_of, type_name, type_parameters
from .recipes import FacetParameter, Uses

_logger = logging.getLogger(__name__)

_NOT_FOUND = object()


class _ResolutionState:
    __slots__ = ("facets", "type_arguments", "origin", "consumed", "chain", "config_values", "dependencies")

    def __init__(self, facets: FacetSet, type_arguments: Mapping[Any, Any], origin: str) -> None:
        self.facets = facets
        self.type_arguments = dict(type_arguments)
        self.origin = origin
        self.consumed: Set[int] = set()
        self.chain: List[Any] = []
        self.config_values: Dict[str, Any] = {}
        self.dependencies: Dict[Any, Any] = {}

    def argument_named(self, name: str) -> Any:
        for tv, value in self.type_arguments.items():
            if getattr(tv, "__name__", None) == name:
                return value
        raise FacetDefinitionError(f"Type argument '{name}' is not bound while resolving '{self.origin}'")

    def consume(self, declaration: Uses) -> None:
        for entry in self.facets.uses():
            if entry.declaration == declaration:
                self.consumed.add(id(entry))


class ResolutionEngine:
    """Resolves requested types against a facet set.

    Args:
        configuration_provider: Consulted for parameter recipes that name a
            ``config_key``.
        dependency_resolver: Consulted for parameters matched by ``Uses``.
    """

    def __init__(
        self,
        configuration_provider: Optional[ConfigurationProvider] = None,
        dependency_resolver: Optional[DependencyResolver] = None,
    ) -> None:
        self._configuration_provider = configuration_provider
        self._dependency_resolver = dependency_resolver

    def resolve(
        self,
        requested: Any,
        facets: FacetSet,
        *,
        is_optional: bool = False,
        type_arguments: Optional[Mapping[Any, Any]] = None,
        origin: str = "?",
    ) -> Any:
        """Resolve *requested* for one slot.

        Returns ``None`` for an optional request with no applicable recipe.

        Raises:
            ResultResolutionError: No recipe applies to a required request.
            ParameterResolutionError: A required constructor input is unbound.
            DependencyUnusedError: A ``Uses`` in scope was never consumed.
            AmbiguousResolutionError: One site offers several targets.
        """
        state = _ResolutionState(facets, type_arguments or {}, origin)
        value = self._resolve(requested, state, is_optional)
        unused = [e.declaration for e in facets.uses() if id(e) not in state.consumed]
        if unused:
            raise DependencyUnusedError(origin, unused)
        return value

    def select_target(self, requested: Any, facets: FacetSet, origin: str = "?") -> Optional[Any]:
        """Return the closed concrete type the nearest applicable recipe names."""
        best_rank: Optional[int] = None
        found: List[Any] = []
        for entry in facets.shapes():
            if best_rank is not None and entry.rank > best_rank:
                break
            closed = close_over(entry.declaration.target_type, requested)
            if closed is None:
                continue
            best_rank = entry.rank
            if closed not in found:
                found.append(closed)
        if len(found) > 1:
            raise AmbiguousResolutionError(requested, found, origin)
        return found[0] if found else None

    def _resolve(self, requested: Any, state: _ResolutionState, is_optional: bool) -> Any:
        target = self.select_target(requested, state.facets, state.origin)
        if target is None:
            if is_optional:
                return None
            raise ResultResolutionError(requested, state.origin)
        return self._construct(target, state)

    def _construct(self, target: Any, state: _ResolutionState) -> Any:
        origin = origin_of(target)
        if origin in state.chain:
            raise CircularResolutionError(state.chain, origin)
        state.chain.append(origin)
        try:
            kwargs: Dict[str, Any] = {}
            for param in analyze_constructor(origin, bindings_of(target)):
                value = self._resolve_parameter(param, target, state)
                if value is not _NOT_FOUND:
                    kwargs[param.parameter_name] = value
            try:
                instance = target(**kwargs)
            except FacetError:
                raise
            except Exception as e:
                raise FacetCreationError(target, e) from e
            _logger.debug("Constructed %s for %s", type_name(target), state.origin)
            return instance
        finally:
            state.chain.pop()

    def _resolve_parameter(self, param: ParameterRequest, target: Any, state: _ResolutionState) -> Any:
        recipe = self._parameter_recipe(param.parameter_name, target, state)
        if recipe is not None:
            return self._recipe_value(recipe, param, target, state)

        if param.annotation is not Any:
            match = self._match_uses(param.annotation, state)
            if match is not None:
                declaration, closed = match
                state.consume(declaration)
                return self._obtain(closed, state)

            value = self._resolve(param.annotation, state, is_optional=True)
            if value is not None:
                return value

        if param.is_optional:
            return _NOT_FOUND if param.has_default else None
        raise ParameterResolutionError(param.parameter_name, target, state.origin)

    def _parameter_recipe(self, name: str, target: Any, state: _ResolutionState) -> Optional[FacetParameter]:
        origin = origin_of(target)
        for entry in state.facets.parameters():
            recipe = entry.declaration
            if recipe.parameter_name == name and origin_of(recipe.target_type) is origin:
                return recipe
        return None

    def _recipe_value(self, recipe: FacetParameter, param: ParameterRequest, target: Any, state: _ResolutionState) -> Any:
        if not recipe.from_config:
            return recipe.value
        where = f"{type_name(target)}.{param.parameter_name}"
        if self._configuration_provider is None:
            raise ConfigurationError(
                f"Configuration key '{recipe.config_key}' is needed by '{where}' but no configuration provider is set"
            )
        raw = state.config_values.get(recipe.config_key, _NOT_FOUND)
        if raw is _NOT_FOUND:
            raw = self._configuration_provider.get_value(recipe.config_key)
            state.config_values[recipe.config_key] = raw
            _logger.debug("Configuration key '%s' supplied '%s'", recipe.config_key, where)
        try:
            return coerce(raw, param.annotation)
        except ValueError as e:
            raise ConfigurationError(
                f"Configuration key '{recipe.config_key}' for '{where}' is not a valid {type_name(param.annotation)}: {e}"
            ) from e

    def _match_uses(self, requested: Any, state: _ResolutionState) -> Optional[Tuple[Uses, Any]]:
        for entry in state.facets.uses():
            closed = self._close_uses(entry.declaration, requested, state)
            if closed is not None:
                return entry.declaration, closed
        return None

    def _close_uses(self, declaration: Uses, requested: Any, state: _ResolutionState) -> Optional[Any]:
        bindings: Dict[Any, Any] = {}
        if declaration.type_arguments:
            params = type_parameters(declaration.dependency_type)
            if len(params) != len(declaration.type_arguments):
                raise FacetDefinitionError(
                    f"{declaration!r} names {len(declaration.type_arguments)} type arguments "
                    f"but {type_name(declaration.dependency_type)} takes {len(params)}"
                )
            bindings = {p: state.argument_named(n) for p, n in zip(params, declaration.type_arguments)}
        return close_over(declaration.dependency_type, requested, bindings)

    def _obtain(self, dependency_type: Any, state: _ResolutionState) -> Any:
        if self._dependency_resolver is not None:
            if dependency_type in state.dependencies:
                return state.dependencies[dependency_type]
            _logger.debug("Fetching %s from dependency resolver for %s", type_name(dependency_type), state.origin)
            value = self._dependency_resolver.resolve(dependency_type)
            state.dependencies[dependency_type] = value
            return value
        if is_abstract(dependency_type):
            raise ConfigurationError(
                f"'{state.origin}' uses {type_name(dependency_type)} but no dependency resolver is set"
            )
        return self._construct(dependency_type, state)
