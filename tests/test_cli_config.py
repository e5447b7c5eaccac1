"""
CLI 连接配置（cli_config）单元测试。URL/用户均从 tests.config 读取；配置目录由 conftest 指向临时目录。
"""

from __future__ import annotations

from pathlib import Path

from webhdfsapi.cli_config import clear_config, load_config, save_config

from tests.config import WEBHDFS_BASE_URL, WEBHDFS_USER


def _config_file(tmp_path: Path) -> Path:
    config_file = tmp_path / "webhdfsapi" / "config.json"
    config_file.parent.mkdir(parents=True, exist_ok=True)
    return config_file


def test_load_config_missing_returns_none() -> None:
    """无配置文件时 load_config 返回 None。"""
    assert load_config() is None


def test_load_config_invalid_json_returns_none(tmp_path: Path) -> None:
    """无效 JSON 时 load_config 返回 None。"""
    _config_file(tmp_path).write_text("not json", encoding="utf-8")
    assert load_config() is None


def test_load_config_missing_base_url_returns_none(tmp_path: Path) -> None:
    """缺少 base_url 时 load_config 返回 None。"""
    _config_file(tmp_path).write_text('{"user": "u"}', encoding="utf-8")
    assert load_config() is None


def test_save_config_creates_dir_and_file() -> None:
    """save_config 写入 config.json，可读回 base_url 与 user。"""
    save_config(WEBHDFS_BASE_URL, WEBHDFS_USER)
    cfg = load_config()
    assert cfg is not None
    assert cfg["base_url"] == WEBHDFS_BASE_URL
    assert cfg["user"] == WEBHDFS_USER


def test_save_config_normalizes_trailing_slash() -> None:
    """base_url 统一保存为恰好一个结尾斜杠。"""
    save_config("http://test.me/plz", "u")
    assert load_config()["base_url"] == WEBHDFS_BASE_URL
    save_config("http://test.me/plz//", "u")
    assert load_config()["base_url"] == WEBHDFS_BASE_URL


def test_save_config_optional_user() -> None:
    save_config(WEBHDFS_BASE_URL)
    cfg = load_config()
    assert cfg is not None
    assert "user" not in cfg


def test_clear_config_removes_file() -> None:
    save_config(WEBHDFS_BASE_URL, "u")
    assert load_config() is not None
    assert clear_config() is True
    assert load_config() is None


def test_clear_config_when_missing_returns_false() -> None:
    assert clear_config() is False
