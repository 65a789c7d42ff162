"""单元测试公共 fixture

- yao_cfg: 把全局配置指向 tmp_path 下的 yao 目录
- fake_github: 用内存中的仓库表替换远程仓库，按需生成 zip 归档
"""

from __future__ import annotations

import json
import os
import tempfile
import zipfile
from typing import Any

import pytest

import dslkit.core.config as cfgmod
from dslkit.core.config import Config
from dslkit.core.exceptions import NetworkError
from dslkit.repo.client import unzip


@pytest.fixture()
def yao_cfg(tmp_path, monkeypatch) -> Config:
    cfg = Config(yao_path=str(tmp_path / "yao"))
    monkeypatch.setattr(cfgmod, "_current", cfg)
    return cfg


class FakeRepo:
    """远程仓库替身：tags 取自仓库表，download 生成 zip 临时文件"""

    def __init__(self, hub: FakeGitHub, addr: str) -> None:
        uri = addr.lower().split("/")
        self.hub = hub
        self.domain, self.owner, self.repo = uri[0], uri[1], uri[2]
        self.addr = "/".join(uri[:3])

    def latest(self) -> str:
        versions = self.hub.repos.get(self.addr)
        if not versions:
            raise NetworkError(f"{self.addr} 没有任何标签或提交", status=404)
        return list(versions)[-1]

    def download(self, rel: str, process=None, cancel=None) -> str:
        files = self.hub.repos.get(self.addr, {}).get(rel)
        if files is None:
            raise NetworkError(f"{self.addr}@{rel} 不存在", status=404)
        self.hub.downloads.append(f"{self.addr}@{rel}")

        fd, tmpfile = tempfile.mkstemp(suffix=".zip")
        os.close(fd)
        top = f"{self.owner}-{self.repo}-{rel}"
        with zipfile.ZipFile(tmpfile, "w") as zf:
            zf.writestr(f"{top}/", "")
            for path, content in files.items():
                zf.writestr(f"{top}/{path}", content)
        if process is not None:
            process(os.path.getsize(tmpfile))
        return tmpfile

    def unzip(self, src, dest) -> None:
        unzip(src, dest)


class FakeGitHub:
    """仓库表: addr → {rel → {相对路径 → 文件内容}}"""

    def __init__(self) -> None:
        self.repos: dict[str, dict[str, dict[str, str]]] = {}
        self.downloads: list[str] = []

    def add(
        self,
        addr: str,
        rel: str,
        files: dict[str, Any] | None = None,
        require: list[Any] | None = None,
    ) -> None:
        """登记一个版本；require 会写成仓库根目录下的 workshop.yao"""
        content: dict[str, str] = {"app.yao": "{}"}
        for path, value in (files or {}).items():
            content[path] = value if isinstance(value, str) else json.dumps(value)
        if require:
            content["workshop.yao"] = json.dumps({"require": require})
        self.repos.setdefault(addr, {})[rel] = content

    def new_repo(self, addr: str, option: dict | None = None) -> FakeRepo:
        return FakeRepo(self, addr)


@pytest.fixture()
def fake_github(monkeypatch, yao_cfg) -> FakeGitHub:
    hub = FakeGitHub()
    monkeypatch.setattr("dslkit.workshop.package.new_repo", hub.new_repo)
    monkeypatch.setattr("dslkit.workshop.workshop.new_repo", hub.new_repo)
    return hub
