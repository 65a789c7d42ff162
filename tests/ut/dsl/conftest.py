"""DSL 测试公共 fixture"""

from __future__ import annotations

import json
import os

import pytest

from dslkit.dsl import reset_template_cache


@pytest.fixture(autouse=True)
def _clean_templates():
    reset_template_cache()
    yield
    reset_template_cache()


@pytest.fixture()
def app(tmp_path, yao_cfg):
    """应用目录；返回 write(相对路径, 内容) 辅助函数，内容为 dict 时写成 JSON"""
    root = tmp_path / "app"
    root.mkdir()

    def write(rel: str, content) -> str:
        path = os.path.join(str(root), rel)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content if isinstance(content, str) else json.dumps(content))
        return path

    write.root = str(root)  # type: ignore[attr-defined]
    return write
