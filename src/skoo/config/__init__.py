"""Configuration package for the Skoo backend."""

from skoo.config.app_config import (
    AppConfig,
    CopilotConfig,
    ProviderConfig,
    TrialConfig,
    clear_config_cache,
    get_provider_config,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "CopilotConfig",
    "ProviderConfig",
    "TrialConfig",
    "clear_config_cache",
    "get_provider_config",
    "load_app_config",
]
