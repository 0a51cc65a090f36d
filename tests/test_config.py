from __future__ import annotations

from pathlib import Path

import pytest

from project_hub.config import BoardConfig, get_board_config, load_hub_config, resolve_board_config


def _write_config(project_dir: Path, text: str) -> None:
    state = project_dir / ".project_hub"
    state.mkdir(parents=True, exist_ok=True)
    (state / "config.yaml").write_text(text, encoding="utf-8")


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    config, err = load_hub_config(tmp_path)
    assert config == {}
    assert err is None
    assert resolve_board_config(tmp_path) == BoardConfig()


def test_board_block_is_read(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        "board:\n  order_increment: 1\n  cascade_delete_dependencies: false\n  due_soon_days: 5\n",
    )
    cfg = resolve_board_config(tmp_path)
    assert cfg.order_increment == 1.0
    assert cfg.cascade_delete_dependencies is False
    assert cfg.due_soon_days == 5


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    cfg = get_board_config({"board": {"order_increment": -3, "cascade_delete_dependencies": "yes", "due_soon_days": "x"}})
    assert cfg == BoardConfig()


def test_unreadable_config_falls_back(tmp_path: Path) -> None:
    _write_config(tmp_path, "board: [unclosed\n")
    config, err = load_hub_config(tmp_path)
    assert config == {}
    assert err is not None and "YAMLError" in err
    assert resolve_board_config(tmp_path) == BoardConfig()


def test_env_overrides_increment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROJECT_HUB_ORDER_INCREMENT", "100")
    assert get_board_config({"board": {"order_increment": 5}}).order_increment == 100.0


def test_bad_env_value_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROJECT_HUB_ORDER_INCREMENT", "lots")
    assert get_board_config({"board": {"order_increment": 5}}).order_increment == 5.0
