"""Settings dataclasses, persistence helpers, and the configuration source."""

from __future__ import annotations

import json
import logging
import os
import shlex
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, get_origin, get_type_hints

from ..annotations.models import (
    DEFAULT_COMMENT_COLOR,
    DEFAULT_COMMENT_PREFIX,
    DEFAULT_FONT_STYLE,
    DEFAULT_MAX_LENGTH,
    AnnotationConfig,
)

__all__ = [
    "ConfigurationSource",
    "DEFAULT_SUPPORTED_LANGUAGES",
    "Settings",
    "SettingsStore",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".shownotes"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_SECTION_KEY = "showNotes"
DEFAULT_SUPPORTED_LANGUAGES: tuple[str, ...] = ("java", "javascript", "typescript")
_CAMEL_CASE_ALIASES: Mapping[str, str] = {
    "commentPrefix": "comment_prefix",
    "maxLength": "max_length",
    "commentColor": "comment_color",
    "fontStyle": "font_style",
    "supportedLanguages": "supported_languages",
    "debounceSeconds": "debounce_seconds",
    "languageServerCommand": "language_server_command",
}
_ENV_OVERRIDES: Mapping[str, str] = {
    "SHOWNOTES_COMMENT_PREFIX": "comment_prefix",
    "SHOWNOTES_COMMENT_COLOR": "comment_color",
    "SHOWNOTES_FONT_STYLE": "font_style",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "SHOWNOTES_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "SHOWNOTES_DEBOUNCE_SECONDS": "debounce_seconds",
    "SHOWNOTES_HOVER_TIMEOUT": "hover_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "SHOWNOTES_MAX_LENGTH": "max_length",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_COMMAND_FIELDS = frozenset({"language_server_command"})


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    comment_prefix: str = DEFAULT_COMMENT_PREFIX
    max_length: int = DEFAULT_MAX_LENGTH
    comment_color: str = DEFAULT_COMMENT_COLOR
    font_style: str = DEFAULT_FONT_STYLE
    supported_languages: list[str] = field(default_factory=lambda: list(DEFAULT_SUPPORTED_LANGUAGES))
    debounce_seconds: float = 0.5
    batch_size: int = 10
    publish_every: int = 5
    progress_every: int = 5
    probe_max_lines: int = 20
    probe_base_delay: float = 0.2
    probe_max_delay: float = 2.0
    probe_max_wait: float = 60.0
    status_hide_seconds: float = 3.0
    hover_timeout: float = 10.0
    language_server_command: list[str] = field(default_factory=list)
    debug_logging: bool = False

    def annotation_config(self) -> AnnotationConfig:
        """Return the per-run configuration record, defaulting invalid values."""

        prefix = self.comment_prefix if isinstance(self.comment_prefix, str) else DEFAULT_COMMENT_PREFIX
        try:
            max_length = int(self.max_length)
        except (TypeError, ValueError):
            LOGGER.warning("Invalid maxLength %r; using %d", self.max_length, DEFAULT_MAX_LENGTH)
            max_length = DEFAULT_MAX_LENGTH
        if max_length <= 0:
            LOGGER.warning("maxLength must be positive (got %d); using %d", max_length, DEFAULT_MAX_LENGTH)
            max_length = DEFAULT_MAX_LENGTH
        color = str(self.comment_color or "").strip() or DEFAULT_COMMENT_COLOR
        font_style = str(self.font_style or "").strip() or DEFAULT_FONT_STYLE
        return AnnotationConfig(
            comment_prefix=prefix,
            max_length=max_length,
            comment_color=color,
            font_style=font_style,
        )

    def language_allow_list(self) -> frozenset[str]:
        languages = self.supported_languages or DEFAULT_SUPPORTED_LANGUAGES
        return frozenset(str(tag).strip().lower() for tag in languages if str(tag).strip())


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _coerce_fields(_filter_fields(_normalize_payload(payload)))
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
        LOGGER.debug("Settings loaded from %s (%d keys)", self._path, len(payload))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        data = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        body = json.dumps(data, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain a JSON object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            name = _CAMEL_CASE_ALIASES.get(key, key)
            if name not in allowed or value is None:
                continue
            filtered[name] = value
        filtered = _coerce_fields(filtered)
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


class ConfigurationSource:
    """Resolves an :class:`AnnotationConfig` from the settings store on demand."""

    def __init__(
        self,
        store: SettingsStore | None = None,
        *,
        overrides: Mapping[str, Any] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._overrides = dict(overrides or {})
        self._settings = settings

    def settings(self) -> Settings:
        if self._store is None:
            return self._settings or Settings()
        try:
            return self._store.load(overrides=self._overrides or None)
        except Exception as exc:  # pragma: no cover - defensive path
            LOGGER.warning("Failed to load settings from %s: %s", self._store.path, exc)
            return self._settings or Settings()

    def resolve(self) -> AnnotationConfig:
        return self.settings().annotation_config()

    def __call__(self) -> AnnotationConfig:
        return self.resolve()


def _normalize_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    section = payload.get(_SECTION_KEY)
    merged: Dict[str, Any] = {key: value for key, value in payload.items() if key != _SECTION_KEY}
    if isinstance(section, Mapping):
        merged.update(section)
    normalized: Dict[str, Any] = {}
    for key, value in merged.items():
        normalized[_CAMEL_CASE_ALIASES.get(key, key)] = value
    return normalized


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _coerce_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce raw values to the declared :class:`Settings` field types.

    Values that cannot be coerced are dropped with a warning so the field
    keeps its default (or previously loaded) value.
    """

    hints = get_type_hints(Settings)
    coerced: Dict[str, Any] = {}
    for name, value in payload.items():
        target = hints.get(name)
        try:
            coerced[name] = _coerce_field(name, target, value)
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring setting %s=%r: expected %s", name, value, _type_label(target))
    return coerced


def _coerce_field(name: str, target: Any, value: Any) -> Any:
    if get_origin(target) is list:
        if isinstance(value, str):
            if name in _COMMAND_FIELDS:
                return shlex.split(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        raise TypeError(name)
    if target is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
        raise ValueError(name)
    if isinstance(value, bool):
        # JSON booleans are ints in Python; never accept them for numbers or text
        raise TypeError(name)
    if target is int:
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            return int(value.strip(), 10)
        raise TypeError(name)
    if target is float:
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
        raise TypeError(name)
    if target is str:
        if isinstance(value, str):
            return value
        raise TypeError(name)
    return value


def _type_label(target: Any) -> str:
    return getattr(target, "__name__", None) or str(target)
