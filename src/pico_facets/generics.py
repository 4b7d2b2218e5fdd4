"""Type-argument handling for generic descriptions and facet targets.

Open generic targets (``DataStore`` declared as ``class DataStore(Generic[T],
IDataStore[T])``) are closed by unifying their parameterized ancestors with a
requested type (``IDataStore[str]``), or from explicit bindings supplied by a
``Uses`` declaration.
"""

import inspect
from typing import Any, Dict, Generic, Iterator, Mapping, Optional, Protocol, Tuple, TypeVar, get_args, get_origin

Bindings = Dict[Any, Any]

_GENERIC_MARKERS = (Generic, Protocol)


def origin_of(tp: Any) -> Any:
    """Return the runtime class behind *tp* (``IDataStore[str]`` -> ``IDataStore``)."""
    origin = get_origin(tp)
    return tp if origin is None else origin


def type_parameters(cls: Any) -> Tuple[TypeVar, ...]:
    if not inspect.isclass(cls):
        return ()
    return tuple(p for p in getattr(cls, "__parameters__", ()) if isinstance(p, TypeVar))


def bindings_of(tp: Any) -> Bindings:
    """Map the type parameters of *tp*'s origin to the arguments it carries."""
    origin = get_origin(tp)
    if origin is None:
        return {}
    params = type_parameters(origin)
    args = get_args(tp)
    if len(params) != len(args):
        return {}
    return dict(zip(params, args))


def free_type_variables(tp: Any) -> Tuple[TypeVar, ...]:
    if isinstance(tp, TypeVar):
        return (tp,)
    if inspect.isclass(tp):
        return ()
    return tuple(p for p in getattr(tp, "__parameters__", ()) if isinstance(p, TypeVar))


def substitute(tp: Any, bindings: Mapping[Any, Any]) -> Any:
    """Replace type variables in *tp* with their bound values."""
    if not bindings:
        return tp
    if isinstance(tp, TypeVar):
        return bindings.get(tp, tp)
    params = free_type_variables(tp)
    if not params:
        return tp
    return tp[tuple(bindings.get(p, p) for p in params)]


def close(cls: Any, bindings: Mapping[Any, Any]) -> Any:
    """Subscript a generic class with the bound values of its parameters.

    Unbound parameters stay open; a class with nothing bound is returned as is.
    """
    params = type_parameters(cls)
    if not params or not any(p in bindings for p in params):
        return cls
    return cls[tuple(bindings.get(p, p) for p in params)]


def _own_bases(cls: type) -> Tuple[Any, ...]:
    return tuple(cls.__dict__.get("__orig_bases__", cls.__bases__))


def generic_ancestors(tp: Any) -> Iterator[Any]:
    """Yield *tp* and every ancestor, parameterized as *tp* sees it."""
    seen = set()
    pending = [tp]
    while pending:
        cur = pending.pop(0)
        origin = origin_of(cur)
        if not inspect.isclass(origin) or origin in seen or origin in _GENERIC_MARKERS or origin is object:
            continue
        seen.add(origin)
        yield cur
        bindings = bindings_of(cur)
        for base in _own_bases(origin):
            if origin_of(base) in _GENERIC_MARKERS:
                continue
            pending.append(substitute(base, bindings))


def find_ancestor(tp: Any, target: type) -> Optional[Any]:
    for anc in generic_ancestors(tp):
        if origin_of(anc) is target:
            return anc
    return None


def unify(pattern: Any, concrete: Any, bindings: Bindings) -> bool:
    """Match *pattern* against *concrete*, binding type variables in place."""
    if isinstance(pattern, TypeVar):
        if pattern in bindings:
            return bindings[pattern] == concrete
        bindings[pattern] = concrete
        return True
    if pattern == concrete:
        return True
    if isinstance(concrete, TypeVar):
        return True
    p_origin, c_origin = get_origin(pattern), get_origin(concrete)
    if p_origin is None or p_origin is not c_origin:
        return False
    p_args, c_args = get_args(pattern), get_args(concrete)
    if len(p_args) != len(c_args):
        return False
    return all(unify(p, c, bindings) for p, c in zip(p_args, c_args))


def _is_subclass(candidate: Any, requested: Any) -> bool:
    # issubclass() rejects protocols that are not runtime checkable; nominal
    # subclasses of a protocol still count.
    if getattr(requested, "_is_protocol", False) and requested in getattr(candidate, "__mro__", ()):
        return True
    try:
        return issubclass(candidate, requested)
    except TypeError:
        return False


def is_assignable(candidate: Any, requested: Any) -> bool:
    """Whether an instance of *candidate* satisfies a slot typed *requested*."""
    if requested is Any or requested is object:
        return True
    c_origin, r_origin = origin_of(candidate), origin_of(requested)
    if not inspect.isclass(c_origin) or not inspect.isclass(r_origin):
        return False
    if not _is_subclass(c_origin, r_origin):
        return False
    if not get_args(requested):
        return True
    anc = find_ancestor(candidate, r_origin)
    if anc is None or not get_args(anc):
        return True
    return unify(anc, requested, {})


def close_over(target: Any, requested: Any, bindings: Optional[Mapping[Any, Any]] = None) -> Optional[Any]:
    """Close *target* so that it is assignable to *requested*.

    Explicit *bindings* take priority over those inferred from the requested
    type's arguments. Returns ``None`` when *target* can never satisfy
    *requested*.
    """
    if requested is Any or requested is object:
        return close(target, bindings or {})
    r_origin = origin_of(requested)
    if not inspect.isclass(r_origin) or not _is_subclass(origin_of(target), r_origin):
        return None
    if not type_parameters(target):
        return target if is_assignable(target, requested) else None
    resolved: Bindings = dict(bindings or {})
    anc = find_ancestor(target, r_origin)
    if anc is not None and get_origin(anc) is None and type_parameters(anc):
        anc = anc[type_parameters(anc)]
    if anc is not None and get_args(requested):
        inferred: Bindings = {}
        if not unify(anc, requested, inferred):
            return None
        for k, v in inferred.items():
            resolved.setdefault(k, v)
    closed = close(target, resolved)
    return closed if is_assignable(closed, requested) else None


def is_abstract(tp: Any) -> bool:
    origin = origin_of(tp)
    return inspect.isabstract(origin) or bool(getattr(origin, "_is_protocol", False))


def type_name(tp: Any) -> str:
    origin = get_origin(tp)
    if origin is None:
        return getattr(tp, "__name__", str(tp))
    args = ", ".join(type_name(a) for a in get_args(tp))
    return f"{getattr(origin, '__name__', str(origin))}[{args}]"
