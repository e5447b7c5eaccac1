"""
pytest 配置与共享 fixture。

异步测试用 anyio 的 pytest 插件（@pytest.mark.anyio），后端固定为 asyncio。
假 NameNode 见 tests.fakes；集成测试地址见 tests.config。
"""

from __future__ import annotations

import pytest

from tests.fakes import FakeNameNode


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def namenode() -> FakeNameNode:
    """每个测试一个新的假 NameNode。"""
    return FakeNameNode()


@pytest.fixture(autouse=True)
def _patch_config_path(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """将 CLI 配置路径指向临时目录，避免污染用户 ~/.config/webhdfsapi。"""
    config_dir = tmp_path / "webhdfsapi"
    config_dir.mkdir(parents=True, exist_ok=True)

    def _config_dir():
        return config_dir

    monkeypatch.setattr("webhdfsapi.cli_config._config_dir", _config_dir)
