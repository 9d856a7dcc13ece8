"""
JSON persistence for the last backtest result and the holdings settings.

The engine never touches storage; callers save what it returns.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import config
from src.engine.models import BacktestResult

logger = logging.getLogger(__name__)


@dataclass
class PortfolioSettings:
    """The investor's current holdings and strategy preferences."""

    shares: int = 10
    cost_basis: float = 180.0
    cash: float = 500_000.0
    target_ratio: float = config.TARGET_RATIO
    ma_period: int = config.MA_PERIOD


def _write_json(payload: dict, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False))
    return path


def save_result(result: BacktestResult, path: str | Path = config.RESULT_PATH) -> Path:
    path = _write_json(result.to_dict(), Path(path))
    logger.info("Saved backtest result → %s", path)
    return path


def load_result(path: str | Path = config.RESULT_PATH) -> BacktestResult | None:
    """Last saved result, or None if nothing has been saved yet."""
    path = Path(path)
    if not path.exists():
        return None
    return BacktestResult.from_dict(json.loads(path.read_text()))


def save_settings(
    settings: PortfolioSettings,
    path: str | Path = config.SETTINGS_PATH,
) -> Path:
    return _write_json(asdict(settings), Path(path))


def load_settings(path: str | Path = config.SETTINGS_PATH) -> PortfolioSettings:
    """Saved settings merged over the defaults; unknown keys are ignored."""
    path = Path(path)
    if not path.exists():
        return PortfolioSettings()
    data = json.loads(path.read_text())
    known = {f.name for f in fields(PortfolioSettings)}
    return PortfolioSettings(**{k: v for k, v in data.items() if k in known})
