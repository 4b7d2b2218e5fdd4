# tests/test_collector.py
from typing import Annotated

import pytest

from pico_facets import Context, DeclarationCollector, Facet, FacetRegistry, FacetSet, Source, Uses, facets
from pico_facets.collector import CollectedDeclaration


class Api: ...
class ImplA(Api): ...
class ImplB(Api): ...
class ImplC(Api): ...
class ImplD(Api): ...
class ImplE(Api): ...
class Extra: ...


@facets(Facet(ImplE))
class Outer:
    @facets(Facet(ImplD))
    class Inner:
        @facets(Facet(ImplC))
        class Leaf: ...


@facets(Facet(ImplB))
class DescriptionSource: ...


@facets(Facet(ImplA), Source(DescriptionSource))
class Layered(Context):
    item: Annotated[Api, Facet(ImplA), Uses(Extra), Source(Outer.Inner.Leaf)]


@facets(Facet(ImplB))
class BaseLayer(Context):
    item: Annotated[Api, Facet(ImplC)]
    other: Annotated[Extra, Facet(Extra)]


@facets(Facet(ImplD))
class ChildLayer(BaseLayer):
    item: Annotated[Api, Facet(ImplA)]


class RetypedChild(BaseLayer):
    other: Annotated[Api, Facet(ImplE)]


@pytest.fixture
def collector():
    return DeclarationCollector(FacetRegistry())


def _targets(facet_set):
    return [getattr(d, "target_type", d) for d in facet_set.declarations]


def test_collect_orders_slot_sources_description_and_description_sources(collector):
    result = collector.collect(Layered, "item")

    assert _targets(result) == [ImplA, Uses(Extra), ImplC, ImplD, ImplE, ImplA, ImplB]
    sites = [e.site for e in result]
    assert sites[0] == "Layered.item"
    assert sites[2] == "source Outer.Inner.Leaf"
    assert sites[4] == "source Outer"
    assert sites[-1] == "source DescriptionSource"


def test_collect_ranks_increase_with_distance(collector):
    ranks = [e.rank for e in collector.collect(Layered, "item")]
    assert ranks == sorted(ranks)
    assert ranks[0] == ranks[1]


def test_collect_includes_ancestor_description_declarations(collector):
    result = collector.collect(ChildLayer, "item")
    assert _targets(result) == [ImplA, ImplD, ImplC, ImplB]


def test_collect_skips_ancestor_slot_with_different_type(collector):
    result = collector.collect(RetypedChild, "other")
    assert _targets(result) == [ImplE, ImplB]


def test_collect_inherited_slot_uses_ancestor_slot_declarations(collector):
    result = collector.collect(ChildLayer, "other")
    assert _targets(result) == [ImplD, Extra, ImplB]


def test_collect_is_memoized(collector):
    assert collector.collect(Layered, "item") is collector.collect(Layered, "item")


def test_collect_unknown_slot_raises(collector):
    with pytest.raises(AttributeError):
        collector.collect(Layered, "missing")


def test_facet_set_views_and_extend():
    a = CollectedDeclaration(Facet(ImplA), 0, "a")
    u = CollectedDeclaration(Uses(Extra), 0, "a")
    b = CollectedDeclaration(Facet(ImplB), 3, "b")
    own = FacetSet([a, u])
    merged = own.extend(FacetSet([b]))

    assert len(merged) == 3
    assert merged.uses() == (u,)
    assert [e.rank for e in merged] == [0, 0, 4]
    assert len(merged.without_uses()) == 2
    assert own.extend(FacetSet()) is own
