"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_COINGECKO_API_URL,
    DEFAULT_EXPORT_DIR,
    DEFAULT_PRICE_CACHE_PATH,
    DEFAULT_SONIC_RPC_URL,
    DEFAULT_SUBGRAPH_URL,
    MAX_SUBGRAPH_PAGE_SIZE,
    SONIC_CONTRACTS,
)

load_dotenv()

LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RewardsSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with PENDLE_REWARDS_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- endpoints ---
    rpc_url: str = DEFAULT_SONIC_RPC_URL
    subgraph_url: str = DEFAULT_SUBGRAPH_URL
    price_api_url: str = DEFAULT_COINGECKO_API_URL
    request_timeout: float = Field(default=30.0, gt=0)

    # --- contracts ---
    gauge_controller_address: str = SONIC_CONTRACTS["gauge_controller"]
    pendle_router_address: str = SONIC_CONTRACTS["pendle_router"]

    # --- subgraph paging ---
    page_size: int = Field(default=MAX_SUBGRAPH_PAGE_SIZE, ge=1, le=MAX_SUBGRAPH_PAGE_SIZE)

    # --- price cache ---
    price_cache_path: Path = Path(DEFAULT_PRICE_CACHE_PATH)
    price_cache_timeout_minutes: float = Field(
        default=2.0,
        gt=0,
        description="Age after which a cached price is refetched.",
    )

    # --- output ---
    export_dir: Path = Path(DEFAULT_EXPORT_DIR)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PENDLE_REWARDS_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(sorted(LOG_LEVELS))}, got {v!r}"
            )
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("PENDLE_REWARDS_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("pendle-rewards.toml")
                    user_config = (
                        Path.home() / ".config" / "pendle-rewards" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [pendle_rewards]
                body = data.get("pendle_rewards", data)
                if not isinstance(body, dict):
                    return {}
                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-serialisable dict."""
        return self.model_dump(mode="json")
