"""远程包数据模型

Package 记录一个外部依赖的身份、本地位置和下载状态。

URL 格式:
    github.com/yaoapp/demo-crm@v0.9.1
    github.com/yaoapp/demo-crm@e86eab4c8490
    github.com/yaoapp/demo-wms/cloud@0.0.0-20220223010332-e86eab4c8490

本地路径:
    <workshop_root>/<domain>/<owner>/<repo>@<rel>/<subpath>
缓存文件:
    <cache_root>/<domain>/<owner>/<repo>/@<rel>.zip
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import semver

from dslkit.core.exceptions import FSError, ResolveError
from dslkit.repo import new_repo

if TYPE_CHECKING:
    from dslkit.workshop.credentials import HostConfig

logger = logging.getLogger(__name__)

MAX_REL_LENGTH = 32

# 下载进度回调: (字节数, 包, 状态 prepare|downloading|cached)
ProcessFunc = Callable[[int, "Package", str], None]


def _workshop_root() -> str:
    from dslkit.core.config import get_config
    return get_config().workshop_root


@dataclass
class Package:
    """单个远程包"""

    url: str = ""           # github.com/yaoapp/demo-wms/cloud@e86eab4c8490
    name: str = ""          # github.com/demo-wms/yaoapp/cloud
    alias: str = ""         # 调用方指定的短名，默认同 name
    addr: str = ""          # github.com/yaoapp/demo-wms
    domain: str = ""
    owner: str = ""
    repo: str = ""
    path: str = "/"         # 仓库内子路径
    version: semver.Version | None = None
    rel: str = ""           # 标签 / 分支 / 提交
    local_path: str = ""
    downloaded: bool = False
    replaced: bool = False
    unique: str = ""        # github.com/yaoapp/demo-wms@e86eab4c8490
    indirect: bool = False
    parents: list[str] = field(default_factory=list)

    # ------------------------------------------------------------------
    # 解析
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, url: str, alias: str = "", root: str | None = None) -> Package:
        """由 repo@version 形式的 URL 创建包"""
        pkg = cls()
        pkg.set(url, alias, root)
        return pkg

    def set(self, url: str, alias: str = "", root: str | None = None) -> None:
        """解析 repo@version 并设置全部字段"""
        uri = url.split("@")
        if len(uri) != 2 or not uri[1]:
            raise ResolveError(
                f"包地址应为 \"repo@version\" 格式，实际: {url}",
            )

        self.set_version(uri[1])
        self.set_addr(uri[0])
        self.set_local_path(root)
        self.alias = alias or self.name

    def set_addr(self, url: str) -> None:
        """解析 domain/owner/repo[/subpath]，生成 name、addr、url、unique"""
        uri = [seg for seg in url.lower().strip("/").split("/") if seg]
        if len(uri) < 3:
            raise ResolveError(
                f"包地址应为 git 仓库 \"domain/owner/repo/path\"，实际: {url}",
            )

        self.domain, self.owner, self.repo = uri[0], uri[1], uri[2]
        self.path = "/"
        name = f"{self.domain}/{self.repo}/{self.owner}"
        if len(uri) > 3:
            self.path = "/" + "/".join(uri[3:])
            name = f"{name}/{'/'.join(uri[3:])}"
        self.name = name
        self.addr = f"{self.domain}/{self.owner}/{self.repo}"

        subpath = "" if self.path == "/" else self.path
        self.url = f"{self.addr}{subpath}@{self.rel}"
        self.unique = f"{self.addr}@{self.rel}"

    def set_version(self, ver: str) -> None:
        """解析语义化版本；不是版本号时按标签/分支/提交处理

        规则:
          - v1.2.3 / 1.2.3 → 版本 1.2.3，rel 保留原始字符串
          - 0.0.0-20220223010332-e86eab4c8490 → rel 取最后一段 e86eab4c8490
          - main / e86eab4c8490（≤32 字符）→ 版本 0.0.0-<rel>
        """
        try:
            version = semver.Version.parse(ver.lower().lstrip("v"))
        except ValueError as e:
            if len(ver) > MAX_REL_LENGTH:
                raise ResolveError(
                    f"包版本应为语义化版本 2.0.0 格式，实际: {ver}，错误: {e}",
                ) from e
            self.version = semver.Version(0, 0, 0, prerelease=ver)
            self.rel = ver
            return

        self.version = version
        self.rel = ver
        if version.prerelease:
            first = version.prerelease.split(".")[0]
            if not first.isdigit():
                self.rel = first.split("-")[-1]

    def set_local_path(self, root: str | None = None) -> None:
        """计算本地检出路径"""
        root = root or _workshop_root()
        parts = [p for p in self.path.split("/") if p]
        self.local_path = os.path.join(
            root, self.domain, self.owner, f"{self.repo}@{self.rel}", *parts,
        )

    # ------------------------------------------------------------------
    # 序列化
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, value: Any, root: str | None = None) -> Package:
        """解析 workshop.yao 中 require 的单个条目

        支持:
            "github.com/yaoapp/demo-crm@v0.9.1"
            {"crm": "github.com/yaoapp/demo-crm@v0.9.1"}
            {"repo": "github.com/yaoapp/demo-crm@v0.9.1", "alias": "crm", "indirect": true}
            {"crm": "github.com/yaoapp/demo-crm@v0.9.1", "indirect": true}
        """
        if isinstance(value, str):
            return cls.parse(value, "", root)

        if not isinstance(value, dict):
            raise ResolveError(
                f"包应为 {{\"key\":\"value\"}} 或 \"value\" 格式，实际: {value!r}",
            )

        indirect = value.get("indirect") is True
        if isinstance(value.get("repo"), str):
            alias = value.get("alias")
            pkg = cls.parse(value["repo"], alias if isinstance(alias, str) else "", root)
            pkg.indirect = indirect
            return pkg

        for alias, url in value.items():
            if alias in ("indirect", "alias"):
                continue
            if not isinstance(url, str):
                raise ResolveError(
                    f"包应为 {{\"key\":\"value\"}} 或 \"value\" 格式，实际: {value!r}",
                )
            pkg = cls.parse(url, alias, root)
            pkg.indirect = indirect
            return pkg

        raise ResolveError(f"包定义缺少地址: {value!r}")

    def to_json(self) -> str | dict[str, Any]:
        """转换为 workshop.yao 中 require 的条目"""
        if self.indirect:
            key = "repo" if self.alias == self.name else self.alias
            return {key: self.url, "indirect": True}
        if self.alias == self.name:
            return self.url
        return {self.alias: self.url}

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "addr": self.addr,
            "name": self.name,
            "alias": self.alias,
            "domain": self.domain,
            "owner": self.owner,
            "repo": self.repo,
            "path": self.path,
            "version": str(self.version) if self.version else "",
            "rel": self.rel,
            "localpath": self.local_path,
            "downloaded": self.downloaded,
            "replaced": self.replaced,
            "unique": self.unique,
            "indirect": self.indirect,
            "parents": list(self.parents),
        }

    # ------------------------------------------------------------------
    # 本地状态
    # ------------------------------------------------------------------

    def is_downloaded(self) -> bool:
        """检查本地路径是否存在，同步刷新 downloaded 标记"""
        self.downloaded = os.path.exists(self.local_path)
        return self.downloaded

    def cache_path(self, cache_root: str) -> str:
        return os.path.join(
            cache_root, self.domain, self.owner, self.repo, f"@{self.rel}.zip",
        )

    def repo_path(self, root: str) -> str:
        """整个仓库（不含子路径）的本地检出目录"""
        return os.path.join(root, self.domain, self.owner, f"{self.repo}@{self.rel}")

    # ------------------------------------------------------------------
    # 下载
    # ------------------------------------------------------------------

    def download(
        self,
        root: str,
        option: dict[str, Any] | None = None,
        process: ProcessFunc | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        """下载并解压包，返回缓存文件或检出目录路径

        策略: 缓存优先
          1. option["cache"] 下存在该版本 zip → 本地未检出时直接解压
          2. 否则远程下载 zip → 解压到检出目录 → 移入缓存目录
        """
        if process is not None:
            process(100, self, "prepare")

        option = option or {}
        cache_root = option.get("cache")
        dest = self.repo_path(root)

        # ---- 1. 缓存命中 ----
        if isinstance(cache_root, str):
            cache = self.cache_path(cache_root)
            if os.path.exists(cache):
                if process is not None:
                    process(100, self, "cached")
                if not self.is_downloaded():
                    logger.info("缓存命中，解压: %s -> %s", cache, dest)
                    self._clean(dest)
                    new_repo(self.addr, option).unzip(cache, dest)
                    self.downloaded = True
                return cache

        # ---- 2. 远程下载 ----
        repo = new_repo(self.addr, option)

        def _progress(total: int) -> None:
            logger.debug("下载中 %s: %d 字节", self.unique, total)
            if process is not None:
                process(total, self, "downloading")

        tmpfile = repo.download(self.rel, _progress, cancel)
        self._clean(dest)
        repo.unzip(tmpfile, dest)
        self.downloaded = True
        logger.info("已下载: %s -> %s", self.unique, dest)

        # ---- 3. 移入缓存 ----
        if isinstance(cache_root, str):
            cache = self.cache_path(cache_root)
            try:
                os.makedirs(os.path.dirname(cache), exist_ok=True)
                shutil.move(tmpfile, cache)
            except OSError as e:
                raise FSError(f"写入缓存失败: {cache} - {e}") from e
        else:
            os.unlink(tmpfile)

        return dest

    @staticmethod
    def _clean(dest: str) -> None:
        if not os.path.exists(dest):
            return
        try:
            shutil.rmtree(dest)
        except OSError as e:
            raise FSError(f"无法清理目录: {dest} - {e}") from e

    # ------------------------------------------------------------------
    # 依赖
    # ------------------------------------------------------------------

    def dependencies(self, cfg: HostConfig | None = None) -> list[Package]:
        """读取包内 workshop.yao 的 require 列表，没有则返回空列表"""
        if not Path(self.local_path, "workshop.yao").exists():
            return []

        from dslkit.workshop.workshop import Workshop
        return Workshop.open(self.local_path, cfg=cfg).require
