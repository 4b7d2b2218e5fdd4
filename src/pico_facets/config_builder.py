"""Configuration provider and flat source abstractions.

Facet parameters name configuration keys such as ``"storage.root_path"``.
This module resolves them through :class:`SourceConfigurationProvider`,
built by :func:`configuration` from flat sources (:class:`EnvSource`,
:class:`FileSource`, :class:`FlatDictSource`) and tree sources, and
converts the looked-up strings with :func:`coerce`.
"""

import json
import os
import re
import threading
import types
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union, get_args, get_origin, runtime_checkable

from .config_sources import DictSource, JsonTreeSource, TreeSource, YamlTreeSource, lookup_path, merge_trees
from .constants import LOGGER
from .exceptions import ConfigurationError


@runtime_checkable
class ConfigurationProvider(Protocol):
    """Capability consulted when a parameter recipe names a ``config_key``."""

    def get_value(self, key: str) -> str: ...


class ConfigSource(Protocol):
    """Protocol for flat (key-value) configuration sources."""

    def get(self, key: str) -> Optional[str]: ...


_separators = re.compile(r"[.\-\s]+")


def env_name(key: str) -> str:
    """Map a configuration key to an environment variable name.

    ``"storage.root-path"`` becomes ``"STORAGE_ROOT_PATH"``.
    """
    return _separators.sub("_", key.strip()).upper()


def _scalar(v: Any) -> Optional[str]:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (str, int, float)):
        return str(v)
    return None


class EnvSource:
    """Configuration source backed by OS environment variables.

    A key is looked up verbatim first and then under its :func:`env_name`,
    both with *prefix* prepended: with ``prefix="APP_"`` the key
    ``"storage.root_path"`` reads ``APP_storage.root_path`` or
    ``APP_STORAGE_ROOT_PATH``.
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def get(self, key: str) -> Optional[str]:
        if not key:
            return None
        v = os.environ.get(self.prefix + key)
        if v is None:
            v = os.environ.get(self.prefix + env_name(key))
        return v


class FileSource:
    """Configuration source backed by a JSON document read once.

    Keys are dotted paths into the document (``"storage.root_path"``). A file
    that cannot be read or parsed is logged and behaves as an empty source;
    use :class:`~pico_facets.config_sources.JsonTreeSource` when a broken
    file must fail loudly.
    """

    def __init__(self, path: str, prefix: str = "") -> None:
        self.path = path
        self.prefix = prefix
        self._data: Dict[str, Any] = self._load(path)

    @staticmethod
    def _load(path: str) -> Dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            LOGGER.warning("Ignoring unreadable config file %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Ignoring config file %s: top level is not an object", path)
            return {}
        return data

    def get(self, key: str) -> Optional[str]:
        node: Any = self._data
        for part in (self.prefix + key).split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return _scalar(node)


class FlatDictSource:
    """Configuration source backed by an in-memory key-value mapping.

    Args:
        data: The mapping; only scalar values are visible.
        prefix: Prepended to every key lookup.
        case_sensitive: If ``False``, keys compare case-insensitively.
    """

    def __init__(self, data: Mapping[str, Any], prefix: str = "", case_sensitive: bool = True):
        self._fold: Callable[[str], str] = (lambda s: s) if case_sensitive else str.upper
        self._data = {self._fold(str(k)): v for k, v in data.items()}
        self._prefix = prefix

    def get(self, key: str) -> Optional[str]:
        if not key:
            return None
        return _scalar(self._data.get(self._fold(self._prefix + key)))


FlatSource = Union[EnvSource, FileSource, FlatDictSource]


class SourceConfigurationProvider:
    """Configuration provider reading overrides, flat sources, then tree sources.

    Flat sources are consulted in the order given; tree sources are merged
    (later wins) once, on first lookup, and read with dotted keys.
    """

    def __init__(
        self,
        flat_sources: Tuple[FlatSource, ...] = (),
        tree_sources: Tuple[TreeSource, ...] = (),
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.flat_sources = tuple(flat_sources)
        self.tree_sources = tuple(tree_sources)
        self.overrides: Dict[str, Any] = dict(overrides or {})
        self._tree: Optional[Mapping[str, Any]] = None
        self._lock = threading.Lock()

    def _merged_tree(self) -> Mapping[str, Any]:
        if self._tree is None:
            with self._lock:
                if self._tree is None:
                    self._tree = merge_trees(self.tree_sources)
        return self._tree

    def find(self, key: str) -> Optional[str]:
        if key in self.overrides:
            return str(self.overrides[key])
        for src in self.flat_sources:
            v = src.get(key)
            if v is not None:
                return v
        if self.tree_sources:
            return lookup_path(self._merged_tree(), key)
        return None

    def get_value(self, key: str) -> str:
        v = self.find(key)
        if v is None:
            raise ConfigurationError(f"Missing configuration key: {key}")
        return v


def configuration(*sources: Any, overrides: Optional[Dict[str, Any]] = None) -> SourceConfigurationProvider:
    """Build a :class:`SourceConfigurationProvider` from one or more sources.

    Sources are classified automatically as flat or tree based on their type.

    Raises:
        ConfigurationError: If an unknown source type is provided.

    Example:
        >>> provider = configuration(
        ...     EnvSource(prefix="APP_"),
        ...     DictSource({"storage": {"root_path": "/var/data"}}),
        ...     overrides={"DEBUG": "true"},
        ... )
        >>> provider.get_value("storage.root_path")
        '/var/data'
    """

    flat: List[FlatSource] = []
    tree: List[TreeSource] = []

    for src in sources:
        if isinstance(src, (EnvSource, FileSource, FlatDictSource)):
            flat.append(src)
        elif isinstance(src, TreeSource):
            tree.append(src)
        else:
            raise ConfigurationError(f"Unknown configuration source type: {type(src)}")

    return SourceConfigurationProvider(flat_sources=tuple(flat), tree_sources=tuple(tree), overrides=overrides)


def _truthy(s: str) -> bool:
    return s.strip().lower() in {"1", "true", "yes", "on", "y", "t"}


def coerce(val: Any, t: Any) -> Any:
    """Convert a configuration string to the primitive annotation *t*."""
    if not isinstance(val, str):
        return val
    if t is int:
        return int(val.strip())
    if t is float:
        return float(val.strip())
    if t is bool:
        return _truthy(val)
    org = get_origin(t)
    if org is Union or org is types.UnionType:
        args = [a for a in get_args(t) if a is not type(None)]
        if len(args) == 1:
            return coerce(val, args[0])
    return val


__all__ = [
    "ConfigurationProvider",
    "ConfigSource",
    "EnvSource",
    "FileSource",
    "FlatDictSource",
    "SourceConfigurationProvider",
    "configuration",
    "coerce",
    "env_name",
    "DictSource",
    "JsonTreeSource",
    "YamlTreeSource",
    "TreeSource",
]
