"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from shownotes.annotations.models import AnnotationConfig

from tests.helpers import RecordingDecorationSurface, RecordingProgress


@pytest.fixture
def config() -> AnnotationConfig:
    return AnnotationConfig()


@pytest.fixture
def renderer() -> RecordingDecorationSurface:
    return RecordingDecorationSurface()


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in (
        "SHOWNOTES_COMMENT_PREFIX",
        "SHOWNOTES_COMMENT_COLOR",
        "SHOWNOTES_FONT_STYLE",
        "SHOWNOTES_MAX_LENGTH",
        "SHOWNOTES_DEBOUNCE_SECONDS",
        "SHOWNOTES_HOVER_TIMEOUT",
        "SHOWNOTES_DEBUG_LOGGING",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SHOWNOTES_LOG_DIR", str(tmp_path / "logs"))
