"""Application configuration.

Settings come from data/config/app_config_v1.yaml (relative to the working
directory). Without that file the built-in providers and the dataclass
defaults below are used.

    from skoo.config.app_config import load_app_config

    config = load_app_config()
    config.copilot.max_rounds  # 5
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

CONFIG_FILE = Path("data/config/app_config_v1.yaml")
DEFAULT_DB_PATH = "db/skoo.db"

DEFAULT_PROVIDERS: dict[str, dict[str, Any]] = {
    "gateway": {
        "base_url": "https://ai.gateway.lovable.dev/v1",
        "default_model": "google/gemini-3-flash-preview",
        "api_key_env": "SKOO_GATEWAY_API_KEY",
    },
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4o-mini",
        "api_key_env": "OPENAI_API_KEY",
    },
    "lmstudio": {
        "base_url": "http://localhost:1234/v1",
        "default_model": "llama-3.2-3b-instruct",
        "api_key_env": None,
    },
}


@dataclass
class ProviderConfig:
    """An OpenAI-compatible endpoint."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """API key read from ``api_key_env`` (None for keyless local servers)."""
        return os.environ.get(self.api_key_env) if self.api_key_env else None


@dataclass
class CopilotConfig:
    default_provider: str = "gateway"
    model: str | None = None  # None = provider default_model
    max_rounds: int = 5
    max_tokens: int = 4096


@dataclass
class TrialConfig:
    duration_days: int = 7
    # Stripe product id -> tier
    stripe_products: dict[str, str] = field(default_factory=dict)


@dataclass
class AppConfig:
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    copilot: CopilotConfig = field(default_factory=CopilotConfig)
    trial: TrialConfig = field(default_factory=TrialConfig)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def db_path(self) -> Path:
        return Path(self.paths.get("db_path", DEFAULT_DB_PATH))


_cached_config: AppConfig | None = None


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Build an AppConfig from the YAML mapping.

    Raises:
        ValueError: If ``copilot.max_rounds`` is below 1
    """
    providers = {
        name: ProviderConfig(
            base_url=entry.get("base_url"),
            default_model=entry.get("default_model", "default"),
            api_key_env=entry.get("api_key_env"),
        )
        for name, entry in (data.get("providers") or {}).items()
    }

    copilot_data = data.get("copilot") or {}
    defaults = CopilotConfig()
    copilot = CopilotConfig(
        default_provider=copilot_data.get("default_provider", defaults.default_provider),
        model=copilot_data.get("model"),
        max_rounds=int(copilot_data.get("max_rounds", defaults.max_rounds)),
        max_tokens=int(copilot_data.get("max_tokens", defaults.max_tokens)),
    )
    if copilot.max_rounds < 1:
        raise ValueError(f"copilot.max_rounds must be >= 1, got {copilot.max_rounds}")

    trial_data = data.get("trial") or {}
    trial = TrialConfig(
        duration_days=int(trial_data.get("duration_days", TrialConfig.duration_days)),
        stripe_products=dict(trial_data.get("stripe_products") or {}),
    )

    return AppConfig(
        providers=providers,
        copilot=copilot,
        trial=trial,
        paths=dict(data.get("paths") or {}),
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Return the (cached) application config."""
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    if CONFIG_FILE.exists():
        logger.debug("app_config.loaded", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("app_config.defaults", missing=str(CONFIG_FILE))
        data = {"providers": DEFAULT_PROVIDERS}

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Config of a named provider, or None if it is not configured."""
    return load_app_config().providers.get(provider)


def clear_config_cache() -> None:
    global _cached_config
    _cached_config = None
