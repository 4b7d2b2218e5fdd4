"""Tree-based configuration sources.

A tree source yields a nested mapping; the provider merges all of them and
reads scalars with dotted keys (``"storage.root_path"``). Every source may
be mounted below a dotted ``root`` so that, for example, a file holding only
storage settings can serve the ``storage.*`` keys.
"""

import json
import os
import re
from typing import Any, Iterable, Mapping, Optional

from .exceptions import ConfigurationError


def _mount(tree: Mapping[str, Any], root: Optional[str]) -> Mapping[str, Any]:
    if not root:
        return tree
    for part in reversed(root.split(".")):
        tree = {part: tree}
    return tree


class TreeSource:
    """Base class for tree-structured configuration sources.

    Subclasses implement :meth:`load`; :meth:`get_tree` validates its result
    and applies the mount point.
    """

    root: Optional[str] = None

    def load(self) -> Any:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__

    def get_tree(self) -> Mapping[str, Any]:
        tree = self.load()
        if tree is None:
            tree = {}
        if not isinstance(tree, Mapping):
            raise ConfigurationError(f"{self.describe()} must hold a mapping at the top level, got {type(tree).__name__}")
        return _mount(tree, self.root)


class DictSource(TreeSource):
    """Tree source backed by an in-memory mapping.

    Example:
        >>> DictSource({"root_path": "/var/data"}, root="storage").get_tree()
        {'storage': {'root_path': '/var/data'}}
    """

    def __init__(self, data: Mapping[str, Any], root: Optional[str] = None):
        self._data = data
        self.root = root

    def load(self) -> Any:
        return self._data


class _FileTreeSource(TreeSource):
    format_name = ""

    def __init__(self, path: str, root: Optional[str] = None):
        self.path = path
        self.root = root

    def describe(self) -> str:
        return f"{self.format_name} config {self.path}"

    def parse(self, f) -> Any:
        raise NotImplementedError

    def load(self) -> Any:
        try:
            with open(self.path, encoding="utf-8") as f:
                return self.parse(f)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load {self.format_name} config: {e}") from e


class JsonTreeSource(_FileTreeSource):
    """Tree source reading a JSON file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """

    format_name = "JSON"

    def parse(self, f) -> Any:
        return json.load(f)


class YamlTreeSource(_FileTreeSource):
    """Tree source reading a YAML file; an empty document is an empty tree.

    Requires ``PyYAML`` (``pip install pico-facets[yaml]``).

    Raises:
        ConfigurationError: If PyYAML is missing or the file cannot be read
            or parsed.
    """

    format_name = "YAML"

    def parse(self, f) -> Any:
        try:
            import yaml
        except ImportError as e:
            raise ConfigurationError("PyYAML not installed") from e
        return yaml.safe_load(f)


def deep_merge(a: Any, b: Any) -> Any:
    if isinstance(a, dict) and isinstance(b, dict):
        out = dict(a)
        for k, v in b.items():
            out[k] = deep_merge(out[k], v) if k in out else v
        return out
    return b


def merge_trees(sources: Iterable[TreeSource]) -> Mapping[str, Any]:
    acc: Any = {}
    for s in sources:
        acc = deep_merge(acc, dict(s.get_tree()))
    return acc


_env_pat = re.compile(r"\$\{ENV:([A-Za-z_][A-Za-z0-9_]*)\}")


def interpolate(s: str) -> str:
    def repl_env(m):
        v = os.environ.get(m.group(1))
        if v is None:
            raise ConfigurationError(f"Missing ENV var {m.group(1)}")
        return v

    return _env_pat.sub(repl_env, s)


def lookup_path(tree: Mapping[str, Any], key: str) -> Optional[str]:
    """Read a scalar at a dotted *key*; a literal top-level key wins."""
    if key in tree:
        node: Any = tree[key]
    else:
        node = tree
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return None
    if isinstance(node, bool):
        return "true" if node else "false"
    if isinstance(node, (str, int, float)):
        return interpolate(node) if isinstance(node, str) else str(node)
    return None
