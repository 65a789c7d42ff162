"""远程主机凭据配置

读取 <config_root>/workshop.yao，格式:
    {
      "github.com": { "token": "~/.github/token" }
    }

token 以 ~ 或 / 开头时视为文件路径：文件权限必须为 0400 或 0600，
读取内容去除首尾空白后替换原值。
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Any

from dslkit.core.exceptions import ConfigError, ShapeError
from dslkit.utils.jsonc import load_jsonc

logger = logging.getLogger(__name__)

CONFIG_FILE = "workshop.yao"
_ALLOWED_MODES = (0o400, 0o600)

HostConfig = dict[str, dict[str, Any]]


def load_host_config(config_root: str | Path | None = None) -> HostConfig:
    """加载各域名的主机配置，文件不存在时返回空配置"""
    if config_root is None:
        from dslkit.core.config import get_config
        config_root = get_config().config_root

    file = Path(config_root) / CONFIG_FILE
    if not file.exists():
        return {}

    try:
        data = load_jsonc(file)
    except ShapeError as e:
        raise ConfigError(f"{file}: {e}") from e
    cfg: HostConfig = {}
    for domain, option in data.items():
        if not isinstance(option, dict):
            raise ConfigError(f"{file}: {domain} 的配置应为对象，实际: {option!r}")
        option = dict(option)
        token = option.get("token")
        if isinstance(token, str) and token.startswith(("~", "/")):
            option["token"] = read_token_file(token)
        cfg[domain] = option

    logger.debug("已加载主机配置: %s (%d 个域名)", file, len(cfg))
    return cfg


def read_token_file(path: str) -> str:
    """读取 token 文件，权限不是 0400/0600 时拒绝"""
    p = Path(path).expanduser()
    try:
        mode = stat.S_IMODE(p.stat().st_mode)
    except OSError as e:
        raise ConfigError(f"无法读取 token 文件: {p} - {e}") from e

    if mode not in _ALLOWED_MODES:
        raise ConfigError(
            f"token 文件 {p} 的权限应为 0400 或 0600，实际为 {oct(mode)}",
        )
    try:
        return p.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigError(f"无法读取 token 文件: {p} - {e}") from e
