"""Load optional hub configuration from `.project_hub/config.yaml`."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from .constants import (
    CONFIG_FILE,
    DEFAULT_CASCADE_DELETE_DEPENDENCIES,
    DEFAULT_DUE_SOON_DAYS,
    DEFAULT_ORDER_INCREMENT,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error


@dataclass(frozen=True)
class BoardConfig:
    """Task board tuning knobs."""

    order_increment: float = DEFAULT_ORDER_INCREMENT
    cascade_delete_dependencies: bool = DEFAULT_CASCADE_DELETE_DEPENDENCIES
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS


def load_hub_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional hub config file.

    Args:
        project_dir: Directory holding the `.project_hub/` state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _as_positive_float(raw: Any, default: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _as_non_negative_int(raw: Any, default: int) -> int:
    if isinstance(raw, bool):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


def get_board_config(config: dict[str, Any]) -> BoardConfig:
    """Extract the `board` block, applying environment overrides.

    Invalid values fall back to the defaults.
    """
    raw = _get_nested(config, "board")
    block = raw if isinstance(raw, dict) else {}

    increment = _as_positive_float(block.get("order_increment"), DEFAULT_ORDER_INCREMENT)
    env_increment = os.getenv("PROJECT_HUB_ORDER_INCREMENT")
    if env_increment:
        increment = _as_positive_float(env_increment, increment)

    cascade = block.get("cascade_delete_dependencies")
    if not isinstance(cascade, bool):
        cascade = DEFAULT_CASCADE_DELETE_DEPENDENCIES

    return BoardConfig(
        order_increment=increment,
        cascade_delete_dependencies=cascade,
        due_soon_days=_as_non_negative_int(block.get("due_soon_days"), DEFAULT_DUE_SOON_DAYS),
    )


def resolve_board_config(project_dir: Path) -> BoardConfig:
    """Load the config file and return the board settings, logging parse errors."""
    config, err = load_hub_config(project_dir)
    if err:
        logger.warning("Ignoring unreadable hub config ({}); using defaults", err)
    return get_board_config(config)
