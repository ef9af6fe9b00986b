"""Service layer helpers (hover sources, settings, telemetry)."""

from .hover import HoverFragment, HoverService, has_content, hover_fragments
from .settings import ConfigurationSource, Settings, SettingsStore

__all__ = [
    "ConfigurationSource",
    "HoverFragment",
    "HoverService",
    "Settings",
    "SettingsStore",
    "has_content",
    "hover_fragments",
]
