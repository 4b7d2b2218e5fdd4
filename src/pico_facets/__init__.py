# pico_facets/__init__.py
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pico-facets")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .api import create_context, init
from .collector import DeclarationCollector, FacetSet
from .config_builder import (
    ConfigurationProvider,
    EnvSource,
    FileSource,
    FlatDictSource,
    SourceConfigurationProvider,
    configuration,
)
from .config_sources import DictSource, JsonTreeSource, TreeSource, YamlTreeSource
from .dependencies import ContainerDependencyResolver, DependencyResolver, MappingDependencyResolver
from .exceptions import (
    AmbiguousResolutionError,
    CircularResolutionError,
    ConfigurationError,
    DependencyNotFoundError,
    DependencyUnusedError,
    FacetCreationError,
    FacetDefinitionError,
    FacetError,
    ParameterResolutionError,
    ResultResolutionError,
)
from .factory import ContextFactory, ResolutionObserver
from .recipes import Facet, FacetParameter, Source, Uses, facets
from .registry import Context, FacetRegistry
from .resolution import ResolutionEngine

__all__ = [
    "__version__",
    "Context",
    "ContextFactory",
    "FacetRegistry",
    "DeclarationCollector",
    "FacetSet",
    "ResolutionEngine",
    "ResolutionObserver",
    "Facet",
    "FacetParameter",
    "Uses",
    "Source",
    "facets",
    "init",
    "create_context",
    "ConfigurationProvider",
    "SourceConfigurationProvider",
    "configuration",
    "EnvSource",
    "FileSource",
    "FlatDictSource",
    "DictSource",
    "JsonTreeSource",
    "YamlTreeSource",
    "TreeSource",
    "DependencyResolver",
    "MappingDependencyResolver",
    "ContainerDependencyResolver",
    "FacetError",
    "FacetDefinitionError",
    "ResultResolutionError",
    "ParameterResolutionError",
    "DependencyUnusedError",
    "AmbiguousResolutionError",
    "CircularResolutionError",
    "FacetCreationError",
    "ConfigurationError",
    "DependencyNotFoundError",
]
