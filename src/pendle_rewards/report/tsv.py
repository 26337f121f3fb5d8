from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class TsvReport:
    """A tabular report with a ``#``-commented header block."""

    name: str
    address: str
    header: list[str]
    columns: Sequence[str]
    rows: list[list[str]] = field(default_factory=list)
    time_range: str | None = None

    def render(self) -> str:
        lines = [*self.header, "\t".join(self.columns)]
        lines.extend("\t".join(str(cell) for cell in row) for row in self.rows)
        return "\n".join(lines)


def export_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp used as filename prefix, e.g. ``2025-03-01T12-30-00``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")


def report_filename(
    name: str, address: str, time_range: str | None = None, now: datetime | None = None
) -> str:
    parts = [export_timestamp(now), name, address[:8]]
    if time_range:
        parts.append(time_range)
    return "_".join(parts) + ".tsv"


def ensure_export_dir(export_dir: str | Path) -> Path:
    path = Path(export_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_tsv(report: TsvReport, export_dir: str | Path, now: datetime | None = None) -> Path:
    """Write ``report`` into ``export_dir`` and return the file path."""
    path = ensure_export_dir(export_dir) / report_filename(
        report.name, report.address, report.time_range, now
    )
    path.write_text(report.render(), encoding="utf-8")
    logger.info("Data exported to %s", path)
    return path


def write_json(payload: Any, export_dir: str | Path, filename: str) -> Path:
    path = ensure_export_dir(export_dir) / filename
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    logger.info("Data exported to %s", path)
    return path
