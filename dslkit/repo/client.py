"""远程仓库客户端

职责：
- 按域名选择来源适配器（github.com → GitHubSource，其余 → SelfHostedSource）
- 统一 content / dir / tags / commits / latest / download / unzip 调用入口
- zip 归档解压（防目录穿越，失败时清理残留目录）
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
import zipfile
from pathlib import Path
from typing import Any

from dslkit.core.exceptions import FSError, NetworkError, ResolveError
from dslkit.core.protocols import ProgressFunc, RepoAPI
from dslkit.repo.sources import GitHubSource, SelfHostedSource

logger = logging.getLogger(__name__)


def new_repo(addr: str, option: dict[str, Any] | None = None) -> Repo:
    """根据地址创建仓库客户端

    示例:
        >>> repo = new_repo("github.com/yaoapp/gou", {"token": "..."})
    """
    option = option or {}
    uri = addr.lower().split("/")
    if len(uri) < 3:
        raise ResolveError(f"仓库地址格式错误，应为 domain/owner/repo: {addr}")

    domain, owner, name = uri[0], uri[1], uri[2]
    api: RepoAPI
    if domain == "github.com":
        token = option.get("token")
        api = GitHubSource(owner, name, token if isinstance(token, str) else "")
    else:
        api = SelfHostedSource(domain)
    return Repo(domain, owner, name, api)


class Repo:
    """远程仓库门面，具体调用委托给来源适配器"""

    def __init__(self, domain: str, owner: str, repo: str, api: RepoAPI) -> None:
        self.domain = domain
        self.owner = owner
        self.repo = repo
        self.api = api

    def content(self, file: str) -> bytes:
        return self.api.content(file)

    def dir(self, path: str) -> list[str]:
        return self.api.dir(path)

    def tags(self, page: int = 1, per_page: int = 20) -> list[str]:
        return self.api.tags(page, per_page)

    def commits(self, page: int = 1, per_page: int = 20) -> list[str]:
        return self.api.commits(page, per_page)

    def latest(self) -> str:
        """最新版本：优先最新标签，没有标签时取最新提交"""
        tags = self.api.tags(1, 1)
        if len(tags) == 1:
            return tags[0]

        commits = self.api.commits(1, 1)
        if not commits:
            raise NetworkError(
                f"{self.domain}/{self.owner}/{self.repo} 没有任何标签或提交",
            )
        return commits[0]

    def download(
        self,
        rel: str,
        process: ProgressFunc | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        """下载仓库归档（zip），返回临时文件路径，由调用方负责清理"""
        return self.api.download(rel, process, cancel)

    def unzip(self, zipfile_path: str | Path, dest: str | Path) -> None:
        """解压归档到 dest（dest 必须不存在）"""
        unzip(zipfile_path, dest)


def unzip(src: str | Path, dest: str | Path) -> None:
    """解压 zip 归档，把归档内唯一的顶层目录移动为 dest

    实现:
        1. 解压到临时目录，逐项校验路径不越界
        2. 将第一个条目所在的顶层目录重命名为 dest
        3. 任一步骤失败都删除 dest 残留后抛出 FSError
    """
    dest = Path(dest)
    if dest.exists():
        raise FSError(f"{dest} 已存在")

    tmpdir = Path(tempfile.mkdtemp(prefix="dslkit-unzip-"))
    base = str(tmpdir.resolve()) + os.sep
    try:
        with zipfile.ZipFile(src) as zf:
            infos = zf.infolist()
            if not infos:
                raise FSError(f"归档为空: {src}")
            for info in infos:
                target = (tmpdir / info.filename).resolve()
                if not str(target).startswith(base):
                    raise FSError(f"非法的归档路径: {info.filename}")
            zf.extractall(tmpdir)

        top = infos[0].filename.strip("/").split("/")[0]
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(tmpdir / top), str(dest))
        logger.debug("已解压: %s -> %s", src, dest)
    except (zipfile.BadZipFile, OSError) as e:
        shutil.rmtree(dest, ignore_errors=True)
        raise FSError(f"解压失败: {src} - {e}") from e
    except FSError:
        shutil.rmtree(dest, ignore_errors=True)
        raise
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)
