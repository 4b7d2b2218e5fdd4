from typing import Generic, TypeVar
from unittest.mock import Mock

import pytest

from pico_facets import ContainerDependencyResolver, DependencyNotFoundError, DependencyResolver, MappingDependencyResolver

T = TypeVar("T")


class Clock: ...
class SystemClock(Clock): ...
class Cache(Generic[T]): ...
class StrCache(Cache[str]): ...


def test_mapping_resolver_returns_instances():
    clock = SystemClock()
    resolver = MappingDependencyResolver({Clock: clock})

    assert isinstance(resolver, DependencyResolver)
    assert resolver.resolve(Clock) is clock


def test_mapping_resolver_calls_providers_once():
    provider = Mock(side_effect=SystemClock)
    resolver = MappingDependencyResolver().bind_provider(Clock, provider)

    first = resolver.resolve(Clock)
    assert resolver.resolve(Clock) is first
    provider.assert_called_once_with()


def test_mapping_resolver_falls_back_to_unique_assignable_key():
    resolver = MappingDependencyResolver({SystemClock: SystemClock, StrCache: StrCache})

    assert isinstance(resolver.resolve(Clock), SystemClock)
    assert isinstance(resolver.resolve(Cache[str]), StrCache)
    with pytest.raises(DependencyNotFoundError):
        resolver.resolve(Cache[int])


def test_mapping_resolver_rejects_ambiguous_fallback():
    class OtherClock(Clock): ...

    resolver = MappingDependencyResolver({SystemClock: SystemClock, OtherClock: OtherClock})
    with pytest.raises(DependencyNotFoundError):
        resolver.resolve(Clock)


def test_mapping_resolver_matches_generic_origin():
    cache = Cache()
    resolver = MappingDependencyResolver().bind(Cache, cache)

    assert resolver.resolve(Cache[int]) is cache


def test_bind_replaces_memoized_instance():
    resolver = MappingDependencyResolver({Clock: SystemClock})
    first = resolver.resolve(Clock)
    replacement = SystemClock()
    resolver.bind(Clock, replacement)

    assert resolver.resolve(Clock) is replacement
    assert resolver.resolve(Clock) is not first


def test_container_resolver_delegates():
    container = Mock()
    container.get.return_value = "value"

    assert ContainerDependencyResolver(container).resolve(Clock) == "value"
    container.get.assert_called_once_with(Clock)


def test_container_resolver_custom_getter_and_missing_key():
    container = Mock()
    container.lookup.side_effect = KeyError(Clock)

    with pytest.raises(DependencyNotFoundError) as exc:
        ContainerDependencyResolver(container, getter="lookup").resolve(Clock)
    assert exc.value.key is Clock
    assert isinstance(exc.value.__cause__, KeyError)


class Handler:
    def __call__(self):
        return "called"


def _notify():
    return "notified"


def test_mapping_resolver_returns_callable_instances_as_bound():
    handler = Handler()
    resolver = MappingDependencyResolver({Handler: handler, "notify": _notify})

    assert resolver.resolve(Handler) is handler
    assert resolver.resolve("notify") is _notify


def test_classes_are_providers_for_themselves():
    resolver = MappingDependencyResolver({Clock: SystemClock})

    assert isinstance(resolver.resolve(Clock), SystemClock)


def test_bind_provider_requires_callable():
    with pytest.raises(TypeError):
        MappingDependencyResolver().bind_provider(Clock, SystemClock())


def test_failing_provider_is_retried():
    provider = Mock(side_effect=[RuntimeError("not ready"), SystemClock()])
    resolver = MappingDependencyResolver().bind_provider(Clock, provider)

    with pytest.raises(RuntimeError):
        resolver.resolve(Clock)
    assert isinstance(resolver.resolve(Clock), SystemClock)
    assert provider.call_count == 2
