import functools
import inspect
import types
import typing
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union, get_args, get_origin

from .exceptions import FacetDefinitionError
from .generics import substitute
from .recipes import Facet, Source, Uses, is_declaration


@dataclass(frozen=True)
class SlotSpec:
    name: str
    annotation: Any
    is_optional: bool = False
    declarations: Tuple[Any, ...] = ()
    sources: Tuple[type, ...] = ()


@dataclass(frozen=True)
class ParameterRequest:
    parameter_name: str
    annotation: Any
    is_optional: bool = False
    has_default: bool = False


def _extract_annotated(ann: Any) -> Tuple[Any, Tuple[Any, ...]]:
    if get_origin(ann) is Annotated:
        args = get_args(ann)
        return (args[0] if args else Any), tuple(args[1:])
    return ann, ()


def _check_optional(ann: Any) -> Tuple[Any, bool]:
    origin = get_origin(ann)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(ann) if a is not type(None)]
        if len(args) == 1:
            return args[0], True
    return ann, False


def split_annotation(ann: Any) -> Tuple[Any, bool, Tuple[Any, ...]]:
    """Strip ``Optional`` and ``Annotated`` wrappers in either nesting order."""
    base, is_optional = _check_optional(ann)
    base, metas = _extract_annotated(base)
    inner, inner_optional = _check_optional(base)
    return inner, is_optional or inner_optional, metas


def analyze_slot(name: str, ann: Any, owner: Any = None) -> SlotSpec:
    base, is_optional, metas = split_annotation(ann)
    declarations: List[Any] = []
    sources: List[type] = []
    for m in metas:
        if isinstance(m, Source):
            sources.append(m.node)
        elif isinstance(m, (Facet, Uses)):
            declarations.append(m)
        elif is_declaration(m):
            raise FacetDefinitionError(f"Unsupported declaration {m!r} on slot '{name}'")
    if base is Any or base is inspect.Parameter.empty:
        owner_name = getattr(owner, "__qualname__", owner)
        raise FacetDefinitionError(f"Slot '{owner_name}.{name}' needs a concrete type annotation")
    return SlotSpec(
        name=name,
        annotation=base,
        is_optional=is_optional,
        declarations=tuple(declarations),
        sources=tuple(sources),
    )


def _type_hints(obj: Any, owner: str) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except Exception as e:
        raise FacetDefinitionError(f"Cannot evaluate annotations of '{owner}': {e}") from e


def analyze_slots(cls: type) -> Dict[str, SlotSpec]:
    """Analyze the slots a description declares itself (inherited ones excluded)."""
    own = inspect.get_annotations(cls)
    hints = _type_hints(cls, cls.__qualname__)
    out: Dict[str, SlotSpec] = {}
    for name, raw in own.items():
        if name.startswith("_"):
            continue
        ann = hints.get(name, raw)
        if isinstance(ann, str):
            raise FacetDefinitionError(f"Cannot evaluate annotation {ann!r} of slot '{cls.__qualname__}.{name}'")
        if ann is ClassVar or get_origin(ann) is ClassVar:
            continue
        out[name] = analyze_slot(name, ann, cls)
    return out


@functools.lru_cache(maxsize=None)
def _constructor_plan(cls: type) -> Tuple[ParameterRequest, ...]:
    init = cls.__init__
    if init is object.__init__:
        return ()
    try:
        sig = inspect.signature(init)
    except (ValueError, TypeError):
        return ()
    hints = _type_hints(init, f"{cls.__qualname__}.__init__")

    plan: List[ParameterRequest] = []
    for index, (name, param) in enumerate(sig.parameters.items()):
        if index == 0 and name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        ann = hints.get(name, param.annotation)
        if ann is inspect.Parameter.empty:
            ann = Any
        base, is_optional, _ = split_annotation(ann)
        has_default = param.default is not inspect.Parameter.empty
        plan.append(
            ParameterRequest(
                parameter_name=name,
                annotation=base,
                is_optional=is_optional or has_default,
                has_default=has_default,
            )
        )
    return tuple(plan)


def analyze_constructor(cls: type, bindings: Optional[Mapping[Any, Any]] = None) -> Tuple[ParameterRequest, ...]:
    """Return the constructor inputs of *cls* with type variables substituted."""
    plan = _constructor_plan(cls)
    if not bindings:
        return plan
    return tuple(
        ParameterRequest(
            parameter_name=p.parameter_name,
            annotation=substitute(p.annotation, bindings),
            is_optional=p.is_optional,
            has_default=p.has_default,
        )
        for p in plan
    )
