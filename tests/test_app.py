"""Tests covering the command line bootstrap helpers."""

from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path
from typing import Any

import pytest

from shownotes import app
from shownotes.editor.document_model import DocumentSnapshot
from shownotes.services.hover import HoverFragment
from shownotes.services.lsp_client import LanguageServerError
from shownotes.services.settings import Settings, SettingsStore


class _StubLanguageClient:
    """Language client double answering hovers from a name -> docs table."""

    def __init__(self, docs: dict[str, str], *, fail_on_open: bool = False) -> None:
        self.docs = docs
        self.fail_on_open = fail_on_open
        self.documents: dict[str, DocumentSnapshot] = {}
        self.events: list[tuple[str, str]] = []
        self.closed = False

    async def open_document(self, document: DocumentSnapshot) -> None:
        if self.fail_on_open:
            raise LanguageServerError("server went away")
        self.documents[document.document_id] = document
        self.events.append(("open", document.document_id))

    async def close_document(self, document_id: str) -> None:
        self.events.append(("close", document_id))

    async def hover(self, document_id: str, line: int, character: int) -> list[HoverFragment]:
        text = self.documents[document_id].line_at(line)[character:]
        name = text.split("(", 1)[0]
        docs = self.docs.get(name)
        return [HoverFragment(docs)] if docs else []

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)


def _write_source(tmp_path: Path, name: str, body: str) -> Path:
    target = tmp_path / name
    target.write_text(body, encoding="utf-8")
    return target


def test_annotate_documents_prints_annotated_listing(tmp_path: Path) -> None:
    source = _write_source(tmp_path, "Demo.java", "int x = calc(1,2);\n// comment\ny.doWork();")
    document = DocumentSnapshot.from_path(source)
    client = _StubLanguageClient({"calc": "Calculates a value.\n@param a first"})
    stream = io.StringIO()

    status = asyncio.run(
        app.annotate_documents(
            [document],
            ["unused"],
            Settings(probe_max_wait=0),
            stream=stream,
            client=client,  # type: ignore[arg-type]
        )
    )

    assert status == 0
    assert stream.getvalue().splitlines() == [
        "int x = calc(1,2); // Calculates a value.",
        "// comment",
        "y.doWork();",
    ]
    assert client.events == [("open", document.document_id), ("close", document.document_id)]
    assert client.closed


def test_annotate_documents_skips_unsupported_languages(tmp_path: Path) -> None:
    source = _write_source(tmp_path, "notes.txt", "calc();")
    client = _StubLanguageClient({"calc": "Calculates a value."})
    stream = io.StringIO()

    status = asyncio.run(
        app.annotate_documents(
            [DocumentSnapshot.from_path(source)],
            ["unused"],
            Settings(probe_max_wait=0),
            stream=stream,
            client=client,  # type: ignore[arg-type]
        )
    )

    assert status == 0
    assert stream.getvalue() == ""
    assert client.events == []


def test_annotate_documents_reports_server_failure(tmp_path: Path) -> None:
    source = _write_source(tmp_path, "Demo.java", "calc();")
    client = _StubLanguageClient({}, fail_on_open=True)

    status = asyncio.run(
        app.annotate_documents(
            [DocumentSnapshot.from_path(source)],
            ["unused"],
            Settings(probe_max_wait=0),
            stream=io.StringIO(),
            client=client,  # type: ignore[arg-type]
        )
    )

    assert status == 1
    assert client.closed


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "comment_prefix=#",
            "max_length=40",
            "debounce_seconds=0.25",
            "debug_logging=yes",
            "supported_languages=java, typescript",
            'language_server_command=["jdtls", "-data", "/tmp/ws"]',
        ]
    )

    assert overrides == {
        "comment_prefix": "#",
        "max_length": 40,
        "debounce_seconds": 0.25,
        "debug_logging": True,
        "supported_languages": ["java", "typescript"],
        "language_server_command": ["jdtls", "-data", "/tmp/ws"],
    }


@pytest.mark.parametrize("entry", ["max_length", "=3", "unknown=1", "debug_logging=maybe", "max_length=ten"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_dump_settings_reports_overrides(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    settings = Settings(comment_prefix="#")
    stream = io.StringIO()

    app._dump_settings(settings, store, overrides={"comment_prefix": "#"}, stream=stream)
    payload: dict[str, Any] = json.loads(stream.getvalue())

    assert payload["settings"]["comment_prefix"] == "#"
    assert payload["meta"]["path"] == str(tmp_path / "settings.json")
    assert payload["meta"]["cli_overrides"] == ["comment_prefix"]
    assert "SHOWNOTES_LOG_DIR" in payload["meta"]["environment_variables"]


def test_main_dump_settings(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings_path = tmp_path / "settings.json"
    SettingsStore(settings_path).save(Settings(max_length=42))

    status = app.main(["--settings-path", str(settings_path), "--set", "comment_prefix=--", "--dump-settings"])

    assert status == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["max_length"] == 42
    assert payload["settings"]["comment_prefix"] == "--"


def test_main_rejects_invalid_override(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    status = app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "nonsense"])

    assert status == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_main_requires_language_server(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = _write_source(tmp_path, "Demo.java", "calc();")

    status = app.main(["--settings-path", str(tmp_path / "s.json"), str(source)])

    assert status == 2
    assert "No language server configured" in capsys.readouterr().err


def test_main_requires_input_files(tmp_path: Path) -> None:
    assert app.main(["--settings-path", str(tmp_path / "s.json"), "--server", "fake-ls"]) == 2


def test_main_reports_unreadable_input(tmp_path: Path) -> None:
    missing = tmp_path / "Missing.java"

    assert app.main(["--settings-path", str(tmp_path / "s.json"), "--server", "fake-ls", str(missing)]) == 1


def test_main_passes_protocol_tracing_to_logging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[bool, dict[str, Any]]] = []
    monkeypatch.setattr(app, "configure_logging", lambda debug=False, **kwargs: calls.append((debug, kwargs)))

    status = app.main(["--settings-path", str(tmp_path / "s.json"), "--debug", "--trace-lsp", "--dump-settings"])

    assert status == 0
    assert calls == [(True, {"trace_protocol": True})]
