"""Tests for the settings persistence layer and configuration source."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path

import pytest

from shownotes.annotations.models import AnnotationConfig
from shownotes.services.settings import ConfigurationSource, Settings, SettingsStore
from shownotes.ui.controller import AnnotationController

from tests.helpers import FakeHoverService, RecordingDecorationSurface, RecordingProgress, make_document


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(
        comment_prefix="#",
        max_length=60,
        comment_color="#888888",
        font_style="normal",
        supported_languages=["java"],
        debounce_seconds=1.5,
        language_server_command=["jdtls", "-data", "/tmp/ws"],
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_load_reads_editor_style_section(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "showNotes": {
                    "commentPrefix": "--",
                    "maxLength": 40,
                    "commentColor": "#123456",
                    "fontStyle": "normal",
                },
                "unknown_key": True,
            }
        ),
        encoding="utf-8",
    )

    settings = SettingsStore(path).load()

    assert settings.comment_prefix == "--"
    assert settings.max_length == 40
    assert settings.comment_color == "#123456"
    assert settings.font_style == "normal"


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_non_object_payload_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_load_applies_cli_overrides(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load(overrides={"commentPrefix": "#", "max_length": 30, "bogus": 1})

    assert settings.comment_prefix == "#"
    assert settings.max_length == 30


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SHOWNOTES_COMMENT_PREFIX", ";;")
    monkeypatch.setenv("SHOWNOTES_MAX_LENGTH", "50")
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load(overrides={"comment_prefix": "#", "max_length": 30})

    assert settings.comment_prefix == ";;"
    assert settings.max_length == 50


def test_bool_env_override_enables_debug_logging(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SHOWNOTES_DEBUG_LOGGING", "yes")

    assert SettingsStore(tmp_path / "settings.json").load().debug_logging is True


def test_float_env_override_sets_debounce(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SHOWNOTES_DEBOUNCE_SECONDS", "0.25")
    monkeypatch.setenv("SHOWNOTES_HOVER_TIMEOUT", "not-a-number")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.debounce_seconds == pytest.approx(0.25)
    assert settings.hover_timeout == Settings().hover_timeout


def test_invalid_int_env_override_is_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SHOWNOTES_MAX_LENGTH", "eighty")

    assert SettingsStore(tmp_path / "settings.json").load().max_length == 80


@pytest.mark.parametrize("value", [0, -5, "abc", None])
def test_annotation_config_defaults_invalid_max_length(value) -> None:
    config = Settings(max_length=value).annotation_config()

    assert config.max_length == 80


def test_annotation_config_blank_style_values_use_defaults() -> None:
    config = Settings(comment_color="  ", font_style="").annotation_config()

    assert config == AnnotationConfig()


def test_empty_prefix_is_kept() -> None:
    config = Settings(comment_prefix="").annotation_config()

    assert config.format_note("Summary text") == "  Summary text"


def test_language_allow_list_normalises_tags() -> None:
    settings = Settings(supported_languages=[" Java ", "TypeScript", ""])

    assert settings.language_allow_list() == frozenset({"java", "typescript"})
    assert Settings(supported_languages=[]).language_allow_list() == frozenset(
        {"java", "javascript", "typescript"}
    )


def test_configuration_source_reads_store_on_every_call(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    source = ConfigurationSource(store)

    assert source().comment_prefix == "//"

    store.save(Settings(comment_prefix="#"))

    assert source().comment_prefix == "#"


def test_configuration_source_without_store_uses_given_settings() -> None:
    source = ConfigurationSource(settings=Settings(max_length=20))

    assert source.resolve().max_length == 20
    assert ConfigurationSource().resolve() == AnnotationConfig()


def _write_section(path: Path, section: dict) -> None:
    path.write_text(json.dumps({"showNotes": section}), encoding="utf-8")


def test_string_numbers_in_file_are_coerced(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    _write_section(path, {"debounceSeconds": "0.5", "maxLength": "60", "batch_size": 4.0})

    settings = SettingsStore(path).load()

    assert settings.debounce_seconds == pytest.approx(0.5)
    assert isinstance(settings.debounce_seconds, float)
    assert settings.max_length == 60
    assert settings.batch_size == 4


def test_uncoercible_values_keep_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    _write_section(
        path,
        {"debounceSeconds": "soon", "batch_size": True, "debug_logging": "maybe", "commentPrefix": 7},
    )

    with caplog.at_level("WARNING", logger="shownotes.services.settings"):
        settings = SettingsStore(path).load()

    defaults = Settings()
    assert settings.debounce_seconds == defaults.debounce_seconds
    assert settings.batch_size == defaults.batch_size
    assert settings.debug_logging is False
    assert settings.comment_prefix == defaults.comment_prefix
    assert "debounce_seconds" in caplog.text


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("java", ["java"]),
        ("java, typescript", ["java", "typescript"]),
        (["Java"], ["Java"]),
    ],
)
def test_supported_languages_accepts_string_or_list(tmp_path: Path, raw, expected) -> None:
    path = tmp_path / "settings.json"
    _write_section(path, {"supportedLanguages": raw})

    settings = SettingsStore(path).load()

    assert settings.supported_languages == expected
    assert "java" in settings.language_allow_list()


def test_language_server_command_string_is_split_like_a_shell(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    _write_section(path, {"languageServerCommand": "jdtls -data '/tmp/my ws'"})

    settings = SettingsStore(path).load()

    assert settings.language_server_command == ["jdtls", "-data", "/tmp/my ws"]


def test_runtime_overrides_are_coerced(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load(overrides={"debounceSeconds": "1.25"})

    assert settings.debounce_seconds == pytest.approx(1.25)


def test_loaded_string_debounce_drives_controller(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    _write_section(path, {"debounceSeconds": "0.01", "supportedLanguages": "java"})
    settings = SettingsStore(path).load()
    document = make_document(["calc();"])
    hover = FakeHoverService([document], {"calc": "Calculates a value."})
    controller = AnnotationController(
        hover_service=hover,
        renderer_factory=RecordingDecorationSurface,
        progress_factory=RecordingProgress,
        settings=replace(settings, probe_max_wait=0),
    )

    async def _run() -> None:
        controller.document_changed(document)
        assert controller.store.is_scheduled(document.document_id)
        await asyncio.sleep(0.05)
        await controller.wait_idle()

    asyncio.run(_run())

    assert hover.called_names() == ["calc"]
