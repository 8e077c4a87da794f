"""Configuration package."""

from app.config.scheduling import (
    SchedulingSettings,
    get_scheduling_settings,
    scheduling_settings,
)
from app.config.settings import (
    Settings,
    get_settings,
    load_yaml_config,
    settings,
    yaml_config,
)

__all__ = [
    # Scheduling settings
    "scheduling_settings",
    "SchedulingSettings",
    "get_scheduling_settings",
    # Application settings
    "Settings",
    "get_settings",
    "load_yaml_config",
    "settings",
    "yaml_config",
]
