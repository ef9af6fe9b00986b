"""Command line bootstrap for the shownotes annotator."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import shlex
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .editor.document_model import DocumentSnapshot
from .services.lsp_client import LanguageServerClient, LanguageServerError, LanguageServerHoverService
from .services.settings import ConfigurationSource, Settings, SettingsStore
from .ui.controller import AnnotationController
from .ui.decorations import InMemoryDecorationSurface, format_annotated_lines
from .ui.status_bar import status_bar_factory
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, trace_protocol: bool = False, force: bool = False) -> None:
    """Configure stderr and file logging for the annotator."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, trace_protocol=trace_protocol, force=force)
    _LOGGER.debug("Logging to %s (level=%s)", log_path, logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except Exception as exc:  # pragma: no cover - defensive path
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `shownotes` console script."""

    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("SHOWNOTES_DEBUG", default=False)
    trace_protocol = args.trace_lsp or _env_flag("SHOWNOTES_TRACE_LSP", default=False)
    configure_logging(debug, trace_protocol=trace_protocol)

    settings_path = args.settings_path or os.environ.get("SHOWNOTES_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)
    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True, trace_protocol=trace_protocol, force=True)

    command = shlex.split(args.server) if args.server else list(settings.language_server_command)
    if not command:
        print("No language server configured; pass --server or set language_server_command.", file=sys.stderr)
        return 2
    if not args.paths:
        print("No files given.", file=sys.stderr)
        return 2

    try:
        documents = [DocumentSnapshot.from_path(path, language=args.language) for path in args.paths]
    except OSError as exc:
        print(f"Unable to read input: {exc}", file=sys.stderr)
        return 1

    config_source = ConfigurationSource(settings_store, overrides=cli_overrides)
    try:
        return asyncio.run(annotate_documents(documents, command, settings, config_source=config_source))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
        return 130


async def annotate_documents(
    documents: Sequence[DocumentSnapshot],
    command: Sequence[str],
    settings: Settings,
    *,
    config_source: ConfigurationSource | None = None,
    stream: TextIO | None = None,
    client: LanguageServerClient | None = None,
) -> int:
    """Annotate *documents* through a language server and print the results."""

    destination = stream or sys.stdout
    root = _common_root(documents)
    lsp = client or LanguageServerClient(
        command,
        root_uri=root.as_uri() if root is not None else None,
        request_timeout=settings.hover_timeout,
    )
    renderer = InMemoryDecorationSurface()
    controller = AnnotationController(
        hover_service=LanguageServerHoverService(lsp),
        renderer_factory=lambda: renderer,
        progress_factory=status_bar_factory(None, hide_after=settings.status_hide_seconds),
        settings=settings,
        config_source=config_source,
    )
    try:
        if client is None:
            await lsp.start()
        for document in documents:
            if not controller.is_supported(document.language):
                _LOGGER.warning("Skipping %s: unsupported language %r", document.document_id, document.language)
                continue
            await lsp.open_document(document)
            controller.document_opened(document)
            result = await controller.active_view_changed(document)
            found = result.found if result is not None else 0
            _LOGGER.info("%s: %d note(s)", document.path or document.document_id, found)
            for line in format_annotated_lines(document, renderer.annotations_for(document.document_id)):
                destination.write(line + "\n")
            await lsp.close_document(document.document_id)
            controller.document_closed(document.document_id)
    except LanguageServerError as exc:
        _LOGGER.error("Language server failure: %s", exc)
        return 1
    finally:
        await controller.shutdown()
        await lsp.aclose()
    return 0


def _common_root(documents: Sequence[DocumentSnapshot]) -> Path | None:
    paths = [document.path for document in documents if document.path is not None]
    if not paths:
        return None
    return Path(os.path.commonpath([str(path.parent) for path in paths]))


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="shownotes",
        description="Print source files with inline notes summarising the documentation of called methods.",
    )
    parser.add_argument("paths", nargs="*", metavar="FILE", help="Source files to annotate.")
    parser.add_argument(
        "--server",
        metavar="CMD",
        help="Language server command line (overrides language_server_command).",
    )
    parser.add_argument(
        "--language",
        metavar="TAG",
        help="Language tag to use instead of inferring it from the file suffix.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.shownotes/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--trace-lsp",
        action="store_true",
        help="Log every language-server message (needs --debug to reach the console).",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is list:
        if normalized.startswith("["):
            try:
                return json.loads(normalized)
            except json.JSONDecodeError as exc:
                raise ValueError("List overrides must be valid JSON arrays") from exc
        return [item.strip() for item in normalized.split(",") if item.strip()]
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("SHOWNOTES_"))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
