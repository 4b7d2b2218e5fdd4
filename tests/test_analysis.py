from typing import Annotated, ClassVar, Generic, List, Optional, TypeVar

import pytest

from pico_facets import Context, Facet, FacetDefinitionError, Source, Uses, create_context
from pico_facets.analysis import analyze_constructor, analyze_slots, split_annotation

T = TypeVar("T")


class Storage: ...
class Disk(Storage): ...
class Node: ...


class Store(Generic[T]):
    def __init__(self, storage: Storage, items: List[T], label: str = "store", *args, **kwargs):
        self.storage = storage


class Bare:
    pass


class Untyped:
    def __init__(self, thing):
        self.thing = thing


def test_split_annotation_handles_either_nesting():
    a = split_annotation(Optional[Annotated[Storage, Facet(Disk)]])
    b = split_annotation(Annotated[Optional[Storage], Facet(Disk)])

    assert a == (Storage, True, (Facet(Disk),))
    assert b == (Storage, True, (Facet(Disk),))
    assert split_annotation(Storage) == (Storage, False, ())


def test_analyze_slots_separates_sources():
    class Described(Context):
        storage: Annotated[Storage, Facet(Disk), Uses(Node), Source(Node)]
        cached: Storage | None
        hidden: ClassVar[int] = 1

    slots = analyze_slots(Described)

    assert list(slots) == ["storage", "cached"]
    assert slots["storage"].declarations == (Facet(Disk), Uses(Node))
    assert slots["storage"].sources == (Node,)
    assert slots["cached"].is_optional


def test_analyze_slots_ignores_plain_metadata():
    class Bad(Context):
        storage: Annotated[Storage, "just a note", Facet(Disk)]

    assert analyze_slots(Bad)["storage"].declarations == (Facet(Disk),)


def test_analyze_constructor_plan():
    plan = analyze_constructor(Store)

    assert [p.parameter_name for p in plan] == ["storage", "items", "label"]
    label = plan[2]
    assert label.is_optional and label.has_default
    assert not plan[0].is_optional


def test_analyze_constructor_substitutes_bindings():
    plan = analyze_constructor(Store, {T: int})
    assert plan[1].annotation == List[int]


def test_analyze_constructor_edge_cases():
    assert analyze_constructor(Bare) == ()
    (thing,) = analyze_constructor(Untyped)
    assert thing.parameter_name == "thing"
    assert not thing.is_optional


def test_unresolvable_string_annotation_is_rejected():
    class Forward(Context):
        storage: "NoSuchType"  # noqa: F821

    with pytest.raises(FacetDefinitionError):
        analyze_slots(Forward)


class BrokenInit:
    def __init__(self, storage: "MissingStorage"):  # noqa: F821
        self.storage = storage


def test_unresolvable_constructor_annotation_is_rejected():
    with pytest.raises(FacetDefinitionError, match="BrokenInit.__init__"):
        analyze_constructor(BrokenInit)


def test_unresolvable_constructor_annotation_fails_slot_access():
    class BrokenContext(Context):
        broken: Annotated[BrokenInit, Facet(BrokenInit)]

    with pytest.raises(FacetDefinitionError, match="MissingStorage"):
        create_context(BrokenContext).broken
