"""远程仓库 HTTP 辅助

GitHub 请求统一经 new_request 构造：只允许 http/https，
错误响应体中的 message 字段由 error_message 提取。
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from urllib.parse import urlparse

from dslkit.core.exceptions import NetworkError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """拒绝 file:// 等非 http(s) 地址

    Raises:
        NetworkError: 协议不是 http/https
    """
    scheme = urlparse(url).scheme
    if scheme in _ALLOWED_SCHEMES:
        return
    where = f" ({context})" if context else ""
    raise NetworkError(f"不允许的 URL 协议 '{scheme}'{where}，仓库地址只能是 http/https: {url}")


def new_request(url: str, headers: dict[str, str], *, context: str = "") -> urllib.request.Request:
    """校验协议后构造 GET 请求"""
    validate_url_scheme(url, context=context)
    return urllib.request.Request(url, headers=headers)


def error_message(err: urllib.error.HTTPError) -> str:
    """错误响应体为 {"message": ...} 时取 message，否则返回原文"""
    try:
        body = err.read().decode("utf-8", errors="replace")
    except OSError:
        return str(err.reason)
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return body
