from typing import Any, Iterable, List, Optional, TypeVar

from .config_builder import ConfigurationProvider
from .dependencies import DependencyResolver
from .factory import ContextFactory, ResolutionObserver
from .registry import FacetRegistry

C = TypeVar("C")


def init(
    descriptions: Iterable[Any] = (),
    *,
    configuration_provider: Optional[ConfigurationProvider] = None,
    dependency_resolver: Optional[DependencyResolver] = None,
    registry: Optional[FacetRegistry] = None,
    observers: Optional[List[ResolutionObserver]] = None,
) -> ContextFactory:
    """Register *descriptions* up front and return a factory bound to them.

    Registration validates every description and source node it references,
    so malformed declarations fail here instead of on first slot access.
    """
    reg = registry if registry is not None else FacetRegistry()
    reg.register(*descriptions)
    return ContextFactory(
        configuration_provider,
        dependency_resolver,
        registry=reg,
        observers=observers,
    )


def create_context(
    description: type[C],
    configuration_provider: Optional[ConfigurationProvider] = None,
    dependency_resolver: Optional[DependencyResolver] = None,
    *,
    registry: Optional[FacetRegistry] = None,
) -> C:
    """Create one context instance with a throwaway factory."""
    return ContextFactory(configuration_provider, dependency_resolver, registry=registry).create(description)
