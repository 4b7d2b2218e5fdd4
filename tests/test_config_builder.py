import json
from typing import Any, Mapping, Optional

import pytest

from pico_facets.config_builder import (
    ConfigurationProvider,
    DictSource,
    EnvSource,
    FileSource,
    FlatDictSource,
    SourceConfigurationProvider,
    TreeSource,
    coerce,
    configuration,
    env_name,
)
from pico_facets.exceptions import ConfigurationError


class MockTreeSource(TreeSource):
    def get_tree(self) -> Mapping[str, Any]:
        return {}

def test_flat_dict_source_basic():
    data = {
        "APP_HOST": "localhost",
        "APP_PORT": 8080,
        "APP_DEBUG": True,
        "APP_SCORE": 99.9,
        "IGNORED_LIST": [1, 2]
    }
    source = FlatDictSource(data, prefix="APP_", case_sensitive=True)

    assert source.get("HOST") == "localhost"
    assert source.get("PORT") == "8080"
    assert source.get("DEBUG") == "true"
    assert source.get("SCORE") == "99.9"

    assert source.get("MISSING") is None

    source_no_prefix = FlatDictSource(data, prefix="")
    assert source_no_prefix.get("IGNORED_LIST") is None

def test_flat_dict_source_case_insensitive():
    source = FlatDictSource({"app_root": "/srv", "APP_LEVEL": 9}, prefix="APP_", case_sensitive=False)

    assert source.get("root") == "/srv"
    assert source.get("ROOT") == "/srv"
    assert source.get("level") == "9"

def test_flat_dict_source_empty_key():
    source = FlatDictSource({"KEY": "val"})

    assert source.get("") is None
    assert source.get("KEY") == "val"

def test_file_source_missing_file_is_empty():
    source = FileSource("does/not/exist/config.json")

    assert source.get("anything") is None
    assert source._data == {}

def test_file_source_invalid_json(tmp_path):
    f = tmp_path / "bad.json"
    f.write_text("{ not json }", encoding="utf-8")

    assert FileSource(str(f))._data == {}

def test_file_source_traversal_and_types(tmp_path):
    data = {
        "storage": {
            "level": 6,
            "compress": {"enabled": True}
        },
        "list_val": [1, 2, 3]
    }
    f = tmp_path / "config.json"
    f.write_text(json.dumps(data), encoding="utf-8")

    source = FileSource(str(f))

    assert source.get("storage.level") == "6"
    assert source.get("storage.compress.enabled") == "true"
    assert source.get("storage") is None
    assert source.get("list_val") is None
    assert source.get("storage.missing") is None
    assert FileSource(str(f), prefix="storage.").get("level") == "6"

def test_env_source_prefix(monkeypatch):
    monkeypatch.setenv("APP_ROOT_PATH", "/var/data")
    monkeypatch.delenv("ROOT_PATH", raising=False)

    assert EnvSource(prefix="APP_").get("ROOT_PATH") == "/var/data"
    assert EnvSource().get("ROOT_PATH") is None

def test_env_source_maps_dotted_keys(monkeypatch):
    monkeypatch.setenv("APP_STORAGE_ROOT_PATH", "/srv/files")
    monkeypatch.setenv("APP_storage.level", "4")
    source = EnvSource(prefix="APP_")

    assert env_name("storage.root-path") == "STORAGE_ROOT_PATH"
    assert source.get("storage.root_path") == "/srv/files"
    assert source.get("storage.level") == "4"
    assert source.get("") is None

def test_file_source_top_level_must_be_object(tmp_path):
    f = tmp_path / "list.json"
    f.write_text("[1, 2]", encoding="utf-8")

    assert FileSource(str(f)).get("0") is None

def test_configuration_builder_categorization():
    env_src = EnvSource()
    flat_src = FlatDictSource({})
    tree_src = MockTreeSource()

    config = configuration(env_src, flat_src, tree_src)

    assert isinstance(config, SourceConfigurationProvider)
    assert isinstance(config, ConfigurationProvider)
    assert config.flat_sources == (env_src, flat_src)
    assert config.tree_sources == (tree_src,)

def test_configuration_builder_unknown_type():
    class UnknownSource:
        pass

    with pytest.raises(ConfigurationError) as exc:
        configuration(UnknownSource())

    assert "Unknown configuration source type" in str(exc.value)

def test_lookup_order_overrides_flat_then_tree():
    config = configuration(
        FlatDictSource({"root": "/flat"}),
        DictSource({"root": "/tree", "storage": {"level": 3}}),
        overrides={"level": 1},
    )

    assert config.get_value("level") == "1"
    assert config.get_value("root") == "/flat"
    assert config.get_value("storage.level") == "3"

def test_missing_key_raises_configuration_error():
    config = configuration(FlatDictSource({}))

    assert config.find("absent") is None
    with pytest.raises(ConfigurationError, match="absent"):
        config.get_value("absent")

@pytest.mark.parametrize(
    "raw, annotation, expected",
    [
        ("42", int, 42),
        (" 2.5 ", float, 2.5),
        ("yes", bool, True),
        ("off", bool, False),
        ("7", Optional[int], 7),
        ("text", str, "text"),
        (5, str, 5),
    ],
)
def test_coerce(raw, annotation, expected):
    assert coerce(raw, annotation) == expected

def test_coerce_rejects_bad_numbers():
    with pytest.raises(ValueError):
        coerce("many", int)
