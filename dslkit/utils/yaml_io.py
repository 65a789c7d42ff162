"""配置文件读取 + 原子写入工具

load_yaml 用于 dslkit 自身的运行配置（configs/*.yml），
atomic_write 用于 workshop.yao 等需要整体替换的文件。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from dslkit.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# 配置文件大小上限 (1MB)
MAX_YAML_SIZE = 1024 * 1024


def atomic_write(path: str | Path, content: str) -> None:
    """写入同目录临时文件后 rename 覆盖目标，失败时删除临时文件

    异常:
        OSError: 目录创建、写入或 rename 失败
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, target)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            logger.warning("临时文件清理失败: %s", tmp)
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 配置；文件不存在或为空时返回空字典

    异常:
        ConfigError: 文件过大、格式错误、顶层不是映射或无法读取
    """
    p = Path(path)
    if not p.exists():
        logger.debug("配置文件不存在，使用默认值: %s", p)
        return {}

    size = p.stat().st_size
    if size > MAX_YAML_SIZE:
        raise ConfigError(f"配置文件过大: {p} ({size} 字节)")

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"解析 YAML 失败: {p} - {e}") from e
    except OSError as e:
        raise ConfigError(f"读取配置失败: {p} - {e}") from e

    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ConfigError(f"{p} 顶层应为映射，实际类型: {type(result).__name__}")
    return result
