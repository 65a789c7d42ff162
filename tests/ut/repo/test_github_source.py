"""GitHub 来源适配器测试（urlopen 打桩，不访问网络）"""

from __future__ import annotations

import base64
import io
import json
import os
import threading
import urllib.error
from typing import Any

import pytest

from dslkit.core.exceptions import NetworkError, ResolveError
from dslkit.repo import GitHubSource, SelfHostedSource, new_repo


class FakeResponse:

    def __init__(self, body: bytes, status: int = 200) -> None:
        self.status = status
        self._buf = io.BytesIO(body)

    def read(self, size: int = -1) -> bytes:
        return self._buf.read(size)

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *args: Any) -> None:
        self._buf.close()


class FakeUrlopen:
    """按 URL 后缀返回预置响应，并记录请求"""

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requests: list[Any] = []

    def __call__(self, req, timeout=None):
        self.requests.append(req)
        for suffix, resp in self.routes.items():
            if req.full_url.endswith(suffix):
                if isinstance(resp, Exception):
                    raise resp
                return resp
        raise AssertionError(f"unexpected url {req.full_url}")


def _json(data: Any, status: int = 200) -> FakeResponse:
    return FakeResponse(json.dumps(data).encode("utf-8"), status)


def _http_error(code: int, message: str) -> urllib.error.HTTPError:
    body = io.BytesIO(json.dumps({"message": message}).encode("utf-8"))
    return urllib.error.HTTPError("https://api.github.com/x", code, message, {}, body)


@pytest.fixture()
def stub(monkeypatch, yao_cfg):
    def _install(routes: dict[str, Any]) -> FakeUrlopen:
        fake = FakeUrlopen(routes)
        monkeypatch.setattr("urllib.request.urlopen", fake)
        return fake
    return _install


class TestGitHubSource:

    def test_content(self, stub) -> None:
        encoded = base64.b64encode(b'{"name": "demo"}').decode("ascii")
        fake = stub({"/contents/app.yao": _json({"content": encoded})})

        src = GitHubSource("yaoapp", "demo", token="t0k")
        assert src.content("app.yao") == b'{"name": "demo"}'

        req = fake.requests[0]
        assert req.full_url == "https://api.github.com/repos/yaoapp/demo/contents/app.yao"
        assert req.get_header("Authorization") == "token t0k"
        assert req.get_header("Accept") == "application/vnd.github.v3+json"

    def test_no_token_header(self, stub) -> None:
        fake = stub({"tags?per_page=1&page=1": _json([])})
        GitHubSource("yaoapp", "demo").tags(1, 1)
        assert fake.requests[0].get_header("Authorization") is None

    def test_dir(self, stub) -> None:
        stub({"/contents/models": _json([
            {"path": "models/user.mod.yao"},
            {"path": "models/pet.mod.yao"},
        ])})
        assert GitHubSource("yaoapp", "demo").dir("/models") == [
            "/models/user.mod.yao", "/models/pet.mod.yao",
        ]

    def test_tags(self, stub) -> None:
        stub({"tags?per_page=20&page=2": _json([{"name": "v1.0.1"}, {"name": "v1.0.0"}])})
        assert GitHubSource("yaoapp", "demo").tags(2, 20) == ["v1.0.1", "v1.0.0"]

    def test_commits_truncated(self, stub) -> None:
        sha = "e86eab4c8490a1b2c3d4e5f60718293a4b5c6d7e"
        stub({"commits?per_page=1&page=1": _json([{"sha": sha}])})
        assert GitHubSource("yaoapp", "demo").commits(1, 1) == ["e86eab4c8490"]

    def test_http_error_message(self, stub) -> None:
        stub({"/contents/missing": _http_error(404, "Not Found")})
        with pytest.raises(NetworkError, match="Not Found") as exc:
            GitHubSource("yaoapp", "demo").content("missing")
        assert exc.value.status == 404

    def test_url_error(self, stub) -> None:
        stub({"tags?per_page=1&page=1": urllib.error.URLError("dns failure")})
        with pytest.raises(NetworkError, match="dns failure"):
            GitHubSource("yaoapp", "demo").tags(1, 1)

    def test_download_progress(self, stub, monkeypatch) -> None:
        monkeypatch.setattr("dslkit.repo.sources.CHUNK_SIZE", 4)
        stub({"zipball/v1.0.0": FakeResponse(b"0123456789")})

        totals: list[int] = []
        tmpfile = GitHubSource("yaoapp", "demo").download("v1.0.0", totals.append)
        try:
            with open(tmpfile, "rb") as f:
                assert f.read() == b"0123456789"
            assert totals == [4, 8, 10]
        finally:
            os.unlink(tmpfile)

    def test_download_cancel(self, stub) -> None:
        stub({"zipball/v1.0.0": FakeResponse(b"0123456789")})
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(NetworkError, match="取消"):
            GitHubSource("yaoapp", "demo").download("v1.0.0", cancel=cancel)

    def test_download_http_error(self, stub) -> None:
        stub({"zipball/nope": _http_error(404, "No ref found")})
        with pytest.raises(NetworkError, match="No ref found"):
            GitHubSource("yaoapp", "demo").download("nope")


class TestRepoClient:

    def test_new_repo_github(self) -> None:
        repo = new_repo("GitHub.com/YaoApp/Demo/sub", {"token": "x"})
        assert (repo.domain, repo.owner, repo.repo) == ("github.com", "yaoapp", "demo")
        assert isinstance(repo.api, GitHubSource)
        assert repo.api.token == "x"

    def test_new_repo_two_segments(self) -> None:
        with pytest.raises(ResolveError):
            new_repo("github.com/yaoapp")

    def test_self_hosted_unsupported(self) -> None:
        repo = new_repo("git.example.com/team/app")
        assert isinstance(repo.api, SelfHostedSource)
        with pytest.raises(NetworkError, match="self-host not supported"):
            repo.latest()
        with pytest.raises(NetworkError, match="self-host not supported"):
            repo.download("v1.0.0")

    def test_latest_prefers_tag(self, stub) -> None:
        stub({"tags?per_page=1&page=1": _json([{"name": "v2.0.0"}])})
        assert new_repo("github.com/yaoapp/demo").latest() == "v2.0.0"

    def test_latest_falls_back_to_commit(self, stub) -> None:
        stub({
            "tags?per_page=1&page=1": _json([]),
            "commits?per_page=1&page=1": _json([{"sha": "a" * 40}]),
        })
        assert new_repo("github.com/yaoapp/demo").latest() == "a" * 12

    def test_latest_empty_repo(self, stub) -> None:
        stub({
            "tags?per_page=1&page=1": _json([]),
            "commits?per_page=1&page=1": _json([]),
        })
        with pytest.raises(NetworkError, match="没有任何标签或提交"):
            new_repo("github.com/yaoapp/demo").latest()
