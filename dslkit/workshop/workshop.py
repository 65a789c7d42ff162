"""Workshop - 依赖解析与 workshop.yao 锁文件管理

workshop.yao 格式:
    {
      "require": [
        "github.com/yaoapp/demo-crm@v0.9.1",
        { "wms": "github.com/yaoapp/demo-wms/cloud@e86eab4c8490" },
        { "repo": "github.com/yaoapp/demo-erp@0.1.0", "indirect": true }
      ],
      "replace": {
        "github.com/yaoapp/demo-wms/cloud": "../demo-wms/cloud"
      }
    }

用法:
    ws = Workshop.open("/data/app")
    ws.get("github.com/yaoapp/demo-wms/cloud", alias="wms")
    ws.remove("github.com/yaoapp/demo-wms/cloud@e86eab4c8490")

并发约定:
  - 修改操作（get / remove / refresh）由 workshop.yao.lock 保护，
    锁已存在时立即失败，不等待、不检测过期
  - 同一进程内 Workshop 实例不是线程安全的，写操作需串行调用
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from dslkit.core.config import MAX_LAYERS, get_config
from dslkit.core.exceptions import ConfigError, FSError, LockError, ResolveError, ShapeError
from dslkit.repo import new_repo
from dslkit.utils.jsonc import load_jsonc
from dslkit.utils.yaml_io import atomic_write
from dslkit.workshop.credentials import HostConfig, load_host_config
from dslkit.workshop.package import Package, ProcessFunc

logger = logging.getLogger(__name__)

WORKSHOP_FILE = "workshop.yao"
APP_FILE = "app.yao"


class Workshop:
    """应用的远程依赖清单"""

    def __init__(
        self,
        root: str,
        cfg: HostConfig | None = None,
        require: list[Package] | None = None,
        replace: dict[str, str] | None = None,
    ) -> None:
        self.root = os.path.abspath(root)
        self.file = os.path.join(self.root, WORKSHOP_FILE)
        self.cfg: HostConfig = cfg if cfg is not None else {}
        self.require: list[Package] = require or []
        self.replace: dict[str, str] = replace or {}
        self.mapping: dict[str, Package] = {}

    # ------------------------------------------------------------------
    # 加载
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, root: str, cfg: HostConfig | None = None) -> Workshop:
        """打开应用目录下的 workshop.yao，不存在时返回空清单"""
        if cfg is None:
            cfg = load_host_config()

        ws = cls(root, cfg=cfg)
        if not os.path.exists(ws.file):
            return ws

        try:
            data = load_jsonc(ws.file)
        except ShapeError as e:
            raise ConfigError(f"{ws.file}: {e}") from e
        require = data.get("require") or []
        if not isinstance(require, list):
            raise ConfigError(f"{ws.file}: require 应为数组，实际: {require!r}")
        replace = data.get("replace") or {}
        if not isinstance(replace, dict) or not all(
            isinstance(v, str) for v in replace.values()
        ):
            raise ConfigError(f"{ws.file}: replace 应为字符串映射，实际: {replace!r}")

        try:
            ws.require = [Package.from_json(item) for item in require]
        except ResolveError as e:
            raise ConfigError(f"{ws.file}: {e}") from e
        ws.replace = dict(replace)
        ws.set_mapping()
        logger.debug("已打开 %s (%d 个依赖)", ws.file, len(ws.require))
        return ws

    def set_mapping(self) -> None:
        """按 require 重建查找表，并应用 replace 覆盖"""
        self.mapping = {}
        for pkg in self.require:
            if pkg.alias in self.mapping:
                raise ConfigError(
                    f"\"{self.mapping[pkg.alias].url}\" 与 \"{pkg.url}\" "
                    f"使用了相同的名称 \"{pkg.alias}\"，请修改",
                )
            self._apply_replace(pkg)
            self._register(pkg)

    def _apply_replace(self, pkg: Package) -> None:
        """replace 中存在 addr+subpath 时，包指向本地应用目录"""
        key = pkg.addr if pkg.path == "/" else f"{pkg.addr}{pkg.path}"
        path = self.replace.get(key)
        if path is None:
            return

        local_path = path
        if not os.path.isabs(path):
            local_path = os.path.abspath(os.path.join(os.path.dirname(self.file), path))

        if not os.path.isdir(local_path):
            raise ConfigError(f"replace 路径不存在: {key} -> {local_path}")
        if not os.path.exists(os.path.join(local_path, APP_FILE)):
            raise ConfigError(f"{local_path} 不是应用目录（缺少 {APP_FILE}）")

        pkg.replaced = True
        pkg.local_path = local_path
        pkg.downloaded = True

    def _register(self, pkg: Package) -> None:
        for key in (pkg.alias, pkg.unique, pkg.addr, pkg.name):
            self.mapping[key] = pkg

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def has(self, name: str) -> bool:
        """按 alias / unique / addr / name 任一键查找"""
        return name in self.mapping

    def package(self, url: str, alias: str = "") -> Package:
        """创建包；URL 未指定版本时向远程查询最新版本"""
        if "@" not in url:
            uri = url.split("/")
            if len(uri) < 3:
                raise ResolveError(
                    f"包地址应为 git 仓库 \"domain/owner/repo/path\"，实际: {url}",
                )
            rel = new_repo(url, self.option(uri[0].lower())).latest()
            logger.info("最新版本: %s@%s", url, rel)
            url = f"{url}@{rel}"
        return Package.parse(url, alias)

    def option(self, domain: str) -> dict[str, Any]:
        """某个域名的主机配置副本"""
        return dict(self.cfg.get(domain, {}))

    # ------------------------------------------------------------------
    # 修改（加锁）
    # ------------------------------------------------------------------

    def get(
        self,
        url: str,
        alias: str = "",
        process: ProcessFunc | None = None,
    ) -> Package:
        """添加远程包（含传递依赖）并保存

        url 示例:
            github.com/yaoapp/demo-crm
            github.com/yaoapp/demo-crm@v0.9.1
            github.com/yaoapp/demo-wms/cloud@e86eab4c8490
        """
        with self.lock():
            pkg = self.package(url, alias)

            if self.has(pkg.unique):
                exists = self.mapping[pkg.unique]
                exists.indirect = False
                exists.parents = []
                if alias and alias != exists.alias:
                    self._check_alias(alias, exists)
                    self.mapping.pop(exists.alias, None)
                    exists.alias = alias
                    self._register(exists)
                self.save()
                return exists

            if alias:
                self._check_alias(alias, pkg)
            self.add(pkg, process, "")
            self.save()
            logger.info("已添加: %s (共 %d 个依赖)", pkg.url, len(self.require))
            return pkg

    def remove(self, url: str) -> bool:
        """移除直接依赖，并重新计算传递依赖；不存在时返回 False"""
        with self.lock():
            if "@" not in url and url in self.mapping:
                pkg = self.mapping[url]
            else:
                pkg = self.package(url)

            if not self.has(pkg.unique):
                return False

            self.delete(pkg)
            self.save()
            logger.info("已移除: %s (剩余 %d 个依赖)", pkg.url, len(self.require))
            return True

    def _check_alias(self, alias: str, pkg: Package) -> None:
        other = self.mapping.get(alias)
        if other is not None and other.unique != pkg.unique:
            raise ConfigError(
                f"\"{other.url}\" 与 \"{pkg.url}\" 使用了相同的名称 \"{alias}\"，请修改",
            )

    # ------------------------------------------------------------------
    # 依赖解析（不加锁，由调用方保证串行）
    # ------------------------------------------------------------------

    def add(
        self,
        pkg: Package,
        process: ProcessFunc | None = None,
        parent: str = "",
        depth: int = 0,
    ) -> None:
        """下载包并递归添加其依赖，依赖标记为 indirect"""
        if depth >= MAX_LAYERS:
            raise ResolveError(f"Too many layers, the max layer count is {MAX_LAYERS}")

        self._apply_replace(pkg)
        if not pkg.replaced:
            self.download(pkg, process)

        pkg.indirect = bool(parent)
        if parent and parent not in pkg.parents:
            pkg.parents.append(parent)

        self.require.append(pkg)
        self._register(pkg)

        for dep in pkg.dependencies(self.cfg):
            if self.has(dep.unique):
                exists = self.mapping[dep.unique]
                if exists.indirect and pkg.unique not in exists.parents:
                    exists.parents.append(pkg.unique)
                continue
            self.add(dep, process, pkg.unique, depth + 1)

    def delete(self, pkg: Package) -> None:
        """从 require 删除包并刷新传递依赖"""
        self.require = [p for p in self.require if p.unique != pkg.unique]
        for key in [k for k, v in self.mapping.items() if v.unique == pkg.unique]:
            del self.mapping[key]
        self.refresh()

    def refresh(self, process: ProcessFunc | None = None) -> None:
        """以直接依赖为准重建 require，传递依赖通过递归重新发现"""
        packages = self.require
        self.require = []
        self.mapping = {}
        for pkg in packages:
            if pkg.indirect:
                continue
            pkg.parents = []
            self.add(pkg, process, "")

    def download(
        self,
        pkg: Package,
        process: ProcessFunc | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        """下载并解压包，使用 <workshop_root>/cache 作为 zip 缓存"""
        cfg = get_config()
        option = self.option(pkg.domain)
        option["cache"] = cfg.cache_dir
        return pkg.download(cfg.workshop_root, option, process, cancel)

    # ------------------------------------------------------------------
    # 持久化
    # ------------------------------------------------------------------

    def dumps(self) -> str:
        """生成 workshop.yao 内容：直接依赖在前，间接依赖在后"""
        direct = [p for p in self.require if not p.indirect]
        indirect = [p for p in self.require if p.indirect]
        data = {
            "require": [p.to_json() for p in direct + indirect],
            "replace": self.replace,
        }
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    def save(self) -> None:
        """原子写入 workshop.yao"""
        try:
            atomic_write(Path(self.file), self.dumps())
        except OSError as e:
            raise FSError(f"写入失败: {self.file} - {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "require": [p.to_dict() for p in self.require],
            "replace": dict(self.replace),
            "mapping": sorted(self.mapping),
        }

    # ------------------------------------------------------------------
    # 文件锁
    # ------------------------------------------------------------------

    @property
    def lock_file(self) -> str:
        return f"{self.file}.lock"

    @contextmanager
    def lock(self) -> Iterator[None]:
        """独占创建 workshop.yao.lock，已存在时立即失败"""
        os.makedirs(self.root, exist_ok=True)
        try:
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_RDONLY, 0o644)
        except FileExistsError as e:
            raise LockError(
                f"{self.file} 已被锁定，可能有其他进程正在运行\n"
                f" 请执行: rm {self.lock_file}",
            ) from e
        except OSError as e:
            raise FSError(f"无法创建锁文件: {self.lock_file} - {e}") from e
        os.close(fd)

        try:
            yield
        finally:
            try:
                os.remove(self.lock_file)
            except FileNotFoundError:
                logger.warning("锁文件已被提前删除: %s", self.lock_file)
