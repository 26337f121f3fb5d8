"""Tests for settings configuration loading."""

from __future__ import annotations

import os
from pathlib import Path
from textwrap import dedent

import pytest
from pydantic import ValidationError

from pendle_rewards.constants import DEFAULT_SONIC_RPC_URL, SONIC_CONTRACTS
from pendle_rewards.settings import RewardsSettings


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the developer's env vars and config files out of the tests."""
    for var in list(os.environ):
        if var.startswith("PENDLE_REWARDS_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


def test_defaults_target_sonic():
    settings = RewardsSettings()

    assert settings.rpc_url == DEFAULT_SONIC_RPC_URL
    assert settings.gauge_controller_address == SONIC_CONTRACTS["gauge_controller"]
    assert settings.page_size == 1000
    assert settings.price_cache_timeout_minutes == 2.0
    assert settings.log_level == "INFO"


def test_config_file_table_is_read(tmp_path, monkeypatch):
    config_path = tmp_path / "rewards.toml"
    config_path.write_text(
        dedent(
            """
            [pendle_rewards]
            rpc_url = "https://rpc.example"
            page_size = 250
            export_dir = "out"
            """
        ).strip()
    )
    monkeypatch.setenv("PENDLE_REWARDS_CONFIG", str(config_path))

    settings = RewardsSettings()

    assert settings.rpc_url == "https://rpc.example"
    assert settings.page_size == 250
    assert settings.export_dir == Path("out")


def test_local_config_file_is_discovered(tmp_path):
    (tmp_path / "pendle-rewards.toml").write_text('subgraph_url = "https://graph.example"\n')

    assert RewardsSettings().subgraph_url == "https://graph.example"


def test_precedence_cli_over_env_over_file(tmp_path, monkeypatch):
    config_path = tmp_path / "rewards.toml"
    config_path.write_text('rpc_url = "https://file.example"\nlog_level = "debug"\n')
    monkeypatch.setenv("PENDLE_REWARDS_CONFIG", str(config_path))
    monkeypatch.setenv("PENDLE_REWARDS_RPC_URL", "https://env.example")

    assert RewardsSettings().rpc_url == "https://env.example"
    assert RewardsSettings().log_level == "DEBUG"
    assert RewardsSettings(rpc_url="https://cli.example").rpc_url == "https://cli.example"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"page_size": 0},
        {"page_size": 1001},
        {"price_cache_timeout_minutes": 0},
        {"log_level": "LOUD"},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        RewardsSettings(**kwargs)


def test_safe_dict_is_json_serialisable():
    dumped = RewardsSettings(export_dir=Path("reports")).as_safe_dict()

    assert dumped["export_dir"] == "reports"
    assert dumped["price_cache_path"].endswith("crypto-price-cache.json")
