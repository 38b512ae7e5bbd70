import json

import pytest
import yaml

from config import DEFAULT_CONFIG, ConfigManager
from core.dispatcher import Dispatcher, DispatcherSettings
from core.errors import ConfigurationError
from storage.file_store import LocalizationDirectory, YAMLFileStore


def test_load_creates_default_config(tmp_path):
    path = tmp_path / "config.yaml"
    mgr = ConfigManager(str(path))
    config = mgr.load()

    assert path.exists()
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == DEFAULT_CONFIG


def test_load_merges_sections_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("dispatcher:\n  separator: '|'\nadmins: [42]\n", encoding="utf-8")
    config = ConfigManager(str(path)).load()

    assert config["dispatcher"] == {"separator": "|"}
    assert config["admins"] == [42]
    assert config["localization"] == DEFAULT_CONFIG["localization"]
    assert DispatcherSettings.from_config(config).separator == "|"


def test_malformed_config_resets_to_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert ConfigManager(str(path)).load() == DEFAULT_CONFIG


def test_section_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("sniffers:\nlocalization:\n  default_key: ru\n", encoding="utf-8")
    mgr = ConfigManager(str(path))
    mgr.load()

    assert mgr.section("sniffers") == DEFAULT_CONFIG["sniffers"]
    assert mgr.section("localization") == {"default_key": "ru"}
    assert mgr.section("unknown") == {}


def test_yaml_store_unreadable_file_returns_empty(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("a: [unclosed\n", encoding="utf-8")
    assert YAMLFileStore(str(path)).read() == {}
    assert YAMLFileStore(str(tmp_path / "missing.yaml")).read() == {}


def test_localization_directory_reads_yaml_and_json(tmp_path):
    (tmp_path / "en.yaml").write_text("hello: Hi\n", encoding="utf-8")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "de.json").write_text(json.dumps({"hello": "Hallo"}), encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    models = dict(LocalizationDirectory(str(tmp_path)))
    assert models == {"en": {"hello": "Hi"}, "de": {"hello": "Hallo"}}


def test_localization_directory_factory(tmp_path):
    (tmp_path / "en.yml").write_text("hello: Hi\n", encoding="utf-8")
    models = dict(LocalizationDirectory(str(tmp_path), factory=lambda d: d["hello"].upper()))
    assert models == {"en": "HI"}


def test_localization_directory_rejects_bad_files(tmp_path):
    (tmp_path / "en.yaml").write_text("- not\n- a mapping\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        list(LocalizationDirectory(str(tmp_path)))

    with pytest.raises(ConfigurationError):
        list(LocalizationDirectory(str(tmp_path / "missing")))


def test_duplicate_codes_across_files_are_rejected(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    (tmp_path / "a" / "en.yaml").write_text("x: 1\n", encoding="utf-8")
    (tmp_path / "b" / "en.json").write_text('{"x": 2}', encoding="utf-8")

    dispatcher = Dispatcher()
    with pytest.raises(ConfigurationError):
        dispatcher.load_localizations(LocalizationDirectory(str(tmp_path)))
