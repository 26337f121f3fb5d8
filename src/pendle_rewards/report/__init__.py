from __future__ import annotations

from .generator import (
    build_current_rate_report,
    build_market_rewards_report,
    build_position_apr_report,
    build_pt_rewards_report,
    build_reward_updates_report,
    build_user_rewards_report,
    market_info_files,
)
from .tsv import TsvReport, report_filename, write_json, write_tsv

__all__ = [
    "TsvReport",
    "build_current_rate_report",
    "build_market_rewards_report",
    "build_position_apr_report",
    "build_pt_rewards_report",
    "build_reward_updates_report",
    "build_user_rewards_report",
    "market_info_files",
    "report_filename",
    "write_json",
    "write_tsv",
]
