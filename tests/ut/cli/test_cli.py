"""CLI 测试（CliRunner，不访问网络）"""

from __future__ import annotations

import json
import logging

import pytest
from click.testing import CliRunner

from dslkit.cli import main
from dslkit.utils.logger import reset_logging


@pytest.fixture()
def cli(tmp_path, monkeypatch):
    """返回 invoke(*args)；配置文件把 yao_path 指向 tmp_path"""
    cfg = tmp_path / "cfg.yml"
    cfg.write_text(f"yao_path: {tmp_path / 'yao'}\n", encoding="utf-8")
    monkeypatch.setenv("DSLKIT_LOG_LEVEL", "ERROR")
    runner = CliRunner()
    level = logging.getLogger().level

    def invoke(*args: str):
        return runner.invoke(main, ["--config", str(cfg), *args])

    yield invoke
    reset_logging()
    logging.getLogger().setLevel(level)


@pytest.fixture()
def app_root(tmp_path):
    root = tmp_path / "app"
    (root / "models").mkdir(parents=True)
    (root / "models" / "base.mod.yao").write_text(
        json.dumps({"table": "users", "columns": [{"name": "id"}]}), encoding="utf-8",
    )
    (root / "models" / "user.mod.yao").write_text(
        '{\n  "FROM": "models/base",\n  // 追加字段\n  "columns": [{"name": "name"}],\n}\n',
        encoding="utf-8",
    )
    return root


class TestCompileCommand:

    def test_compile(self, cli, app_root) -> None:
        result = cli("compile", "models/user.mod.yao", "--root", str(app_root))
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {
            "table": "users",
            "columns": [{"name": "id"}, {"name": "name"}],
        }

    def test_trace(self, cli, app_root) -> None:
        result = cli("trace", "models/user.mod.yao", "-r", str(app_root))
        assert result.exit_code == 0, result.output
        assert "base.mod.yao" in result.output

    def test_head(self, cli, app_root) -> None:
        result = cli("head", "models/user.mod.yao", "-r", str(app_root))
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["type"] == "model"
        assert data["from"] == "models/base"

    def test_shape_error_mapped(self, cli, app_root) -> None:
        (app_root / "models" / "bad.yao").write_text("{}", encoding="utf-8")
        result = cli("compile", "models/bad.yao", "-r", str(app_root))
        assert result.exit_code == 1
        assert "[SHAPE_ERROR]" in result.output

    def test_missing_file(self, cli, app_root) -> None:
        result = cli("compile", "models/none.mod.yao", "-r", str(app_root))
        assert result.exit_code == 1
        assert "[FS_ERROR]" in result.output


class TestWorkshopCommands:

    def test_list_empty(self, cli, tmp_path) -> None:
        result = cli("list", "-r", str(tmp_path))
        assert result.exit_code == 0
        assert "没有依赖" in result.output

    def test_remove_unknown(self, cli, tmp_path) -> None:
        result = cli("remove", "github.com/yaoapp/demo@v1.0.0", "-r", str(tmp_path))
        assert result.exit_code == 0
        assert "未找到依赖" in result.output

    def test_lock_error(self, cli, tmp_path) -> None:
        (tmp_path / "workshop.yao.lock").write_text("", encoding="utf-8")
        result = cli("refresh", "-r", str(tmp_path))
        assert result.exit_code == 1
        assert "[LOCK_ERROR]" in result.output

    def test_version(self, cli) -> None:
        result = cli("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output
