"""Descriptions and facet targets declared with postponed annotations.

With ``from __future__ import annotations`` every hint is a string at
runtime; slots and constructor parameters must still resolve.
"""

from __future__ import annotations

from typing import Annotated, Optional

from pico_facets import Context, Facet, FacetParameter, create_context
from pico_facets.analysis import analyze_constructor, analyze_slots


class Repo:
    pass


class MemoryRepo(Repo):
    def __init__(self, capacity: int, name: Optional[str] = None):
        self.capacity = capacity
        self.name = name


class Capacity(FacetParameter):
    target_type = MemoryRepo
    parameter_name = "capacity"


class RepoContext(Context):
    repo: Annotated[Repo, Facet(MemoryRepo), Capacity(16)]
    spare: Optional[Repo]


def test_slots_resolve_string_annotations():
    slots = analyze_slots(RepoContext)

    assert slots["repo"].annotation is Repo
    assert slots["repo"].declarations == (Facet(MemoryRepo), Capacity(16))
    assert slots["spare"].is_optional


def test_constructor_resolves_string_annotations():
    capacity, name = analyze_constructor(MemoryRepo)

    assert capacity.annotation is int
    assert name.annotation is str
    assert name.is_optional and name.has_default


def test_context_resolves_with_postponed_annotations():
    context = create_context(RepoContext)

    assert isinstance(context.repo, MemoryRepo)
    assert context.repo.capacity == 16
    assert context.repo.name is None
    assert context.spare is None
