"""远程仓库来源适配器 - 支持 GitHub / 自托管（占位）

职责：
- GitHub REST API: contents / tags / commits / zipball
- 自托管 Git 主机：所有操作明确报错
"""

from __future__ import annotations

import base64
import json
import logging
import os
import tempfile
import threading
import urllib.error
import urllib.request
from typing import Any

from dslkit.core.exceptions import FSError, NetworkError
from dslkit.core.protocols import ProgressFunc
from dslkit.utils.net import error_message, new_request

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
CHUNK_SIZE = 32 * 1024


def _timeout() -> int:
    from dslkit.core.config import get_config
    return get_config().http_timeout


class GitHubSource:
    """GitHub 仓库来源（只读 REST API）"""

    def __init__(self, owner: str, repo: str, token: str = "") -> None:
        self.owner = owner
        self.repo = repo
        self.token = token

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def content(self, file: str) -> bytes:
        """读取文件内容（base64 解码）"""
        data = self._get_json(self._url(f"contents{self._path(file)}"), "contents")
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise NetworkError(f"GitHub API contents 返回格式错误: {data}")
        try:
            return base64.b64decode(content)
        except ValueError as e:
            raise NetworkError(f"GitHub API contents 解码失败: {e}") from e

    def dir(self, path: str) -> list[str]:
        """列出目录子项的仓库相对路径"""
        data = self._get_json(self._url(f"contents{self._path(path)}"), "dir")
        return [
            self._path(row["path"]) for row in self._rows(data)
            if isinstance(row.get("path"), str)
        ]

    def tags(self, page: int, per_page: int) -> list[str]:
        data = self._get_json(
            self._url(f"tags?per_page={per_page}&page={page}"), "tags",
        )
        return [
            row["name"] for row in self._rows(data)
            if isinstance(row.get("name"), str)
        ]

    def commits(self, page: int, per_page: int) -> list[str]:
        """提交 SHA 只保留前 12 位"""
        data = self._get_json(
            self._url(f"commits?per_page={per_page}&page={page}"), "commits",
        )
        return [
            row["sha"][:12] for row in self._rows(data)
            if isinstance(row.get("sha"), str) and len(row["sha"]) > 12
        ]

    # ------------------------------------------------------------------
    # 下载
    # ------------------------------------------------------------------

    def download(
        self,
        rel: str,
        process: ProgressFunc | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        """下载 zipball 归档到临时文件，返回临时文件路径

        每读取一个分块回调一次 process(累计字节数)；
        cancel 被置位时中止下载并删除临时文件。
        """
        url = self._url(f"zipball/{rel}")
        req = new_request(url, self._headers(), context=f"download {self.owner}/{self.repo}")

        fd, tmpfile = tempfile.mkstemp(prefix="dslkit-", suffix=".zip")
        total = 0
        logger.info("下载: %s", url)
        try:
            with os.fdopen(fd, "wb") as tmp, \
                    urllib.request.urlopen(req, timeout=_timeout()) as resp:  # nosec B310
                if resp.status != 200:
                    raise NetworkError(
                        f"GitHub 下载失败: {resp.status} {url}", status=resp.status,
                    )
                for chunk in iter(lambda: resp.read(CHUNK_SIZE), b""):
                    if cancel is not None and cancel.is_set():
                        raise NetworkError(f"下载已取消: {url}")
                    tmp.write(chunk)
                    total += len(chunk)
                    if process is not None:
                        process(total)
        except urllib.error.HTTPError as e:
            os.unlink(tmpfile)
            raise NetworkError(
                f"GitHub 下载失败: {e.code} {error_message(e)}", status=e.code,
            ) from e
        except urllib.error.URLError as e:
            os.unlink(tmpfile)
            raise NetworkError(f"GitHub 下载失败: {url} - {e.reason}") from e
        except NetworkError:
            os.unlink(tmpfile)
            raise
        except OSError as e:
            os.unlink(tmpfile)
            raise FSError(f"写入临时文件失败: {tmpfile} - {e}") from e

        logger.debug("下载完成: %s (%d 字节)", tmpfile, total)
        return tmpfile

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    def _url(self, endpoint: str) -> str:
        return f"{GITHUB_API}/repos/{self.owner}/{self.repo}/{endpoint}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def _get_json(self, url: str, label: str) -> Any:
        """GET 请求并解析 JSON，非 200 原样上报 GitHub 的 message"""
        req = new_request(url, self._headers(), context=f"github {label}")
        try:
            with urllib.request.urlopen(req, timeout=_timeout()) as resp:  # nosec B310
                status = resp.status
                body = resp.read()
        except urllib.error.HTTPError as e:
            raise NetworkError(
                f"GitHub API {label} 错误: {e.code} {error_message(e)}",
                status=e.code,
            ) from e
        except urllib.error.URLError as e:
            raise NetworkError(f"GitHub API {label} 请求失败: {e.reason}") from e

        if status != 200:
            raise NetworkError(
                f"GitHub API {label} 错误: {status} {body[:300]!r}", status=status,
            )
        try:
            return json.loads(body)
        except ValueError as e:
            raise NetworkError(f"GitHub API {label} 返回非 JSON: {body[:300]!r}") from e

    @staticmethod
    def _rows(data: Any) -> list[dict[str, Any]]:
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    @staticmethod
    def _path(path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return path


class SelfHostedSource:
    """自托管 Git 主机（尚未支持）"""

    def __init__(self, domain: str) -> None:
        self.domain = domain

    def _unsupported(self) -> NetworkError:
        return NetworkError(f"{self.domain}: self-host not supported")

    def content(self, file: str) -> bytes:
        raise self._unsupported()

    def dir(self, path: str) -> list[str]:
        raise self._unsupported()

    def tags(self, page: int, per_page: int) -> list[str]:
        raise self._unsupported()

    def commits(self, page: int, per_page: int) -> list[str]:
        raise self._unsupported()

    def download(
        self,
        rel: str,
        process: ProgressFunc | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        raise self._unsupported()
