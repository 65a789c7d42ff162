"""JSONC（带注释的 JSON）读取工具

DSL 文件与 workshop.yao 均允许 // 行注释、/* */ 块注释和尾随逗号。
strip_jsonc 把注释替换为等长空白（保留换行），并去掉尾随逗号，
使 json 解析器报出的行列号与原文件一致。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dslkit.core.exceptions import FSError, ShapeError

logger = logging.getLogger(__name__)

_KEEP = ("\n", "\t", "\r")


def strip_jsonc(src: str) -> str:
    """去除注释和尾随逗号，返回合法 JSON 文本（长度不变）"""
    out: list[str] = []
    i = 0
    n = len(src)
    while i < n:
        ch = src[i]

        # 行注释
        if ch == "/" and i + 1 < n and src[i + 1] == "/":
            out.append("  ")
            i += 2
            while i < n and src[i] != "\n":
                out.append(src[i] if src[i] in _KEEP else " ")
                i += 1
            continue

        # 块注释
        if ch == "/" and i + 1 < n and src[i + 1] == "*":
            out.append("  ")
            i += 2
            while i < n:
                if src[i] == "*" and i + 1 < n and src[i + 1] == "/":
                    out.append("  ")
                    i += 2
                    break
                out.append(src[i] if src[i] in _KEEP else " ")
                i += 1
            continue

        out.append(ch)

        # 字符串原样保留（处理转义引号）
        if ch == '"':
            i += 1
            while i < n:
                out.append(src[i])
                if src[i] == "\\" and i + 1 < n:
                    out.append(src[i + 1])
                    i += 2
                    continue
                if src[i] == '"':
                    break
                i += 1

        # 尾随逗号
        elif ch in "}]":
            for j in range(len(out) - 2, -1, -1):
                if out[j].isspace():
                    continue
                if out[j] == ",":
                    out[j] = " "
                break

        i += 1
    return "".join(out)


def loads_jsonc(text: str, source: str = "<string>") -> Any:
    """解析 JSONC 文本"""
    try:
        return json.loads(strip_jsonc(text))
    except json.JSONDecodeError as e:
        raise ShapeError(f"{source} 不是合法的 JSON: {e}") from e


def load_jsonc(path: str | Path) -> dict[str, Any]:
    """读取 JSONC 文件，顶层必须是对象

    异常:
        FSError: 文件不存在或无法读取
        ShapeError: 不是 UTF-8 编码、不是合法 JSON 或顶层不是对象
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise FSError(f"{p} 不存在") from e
    except UnicodeDecodeError as e:
        raise ShapeError(f"{p} 不是 UTF-8 编码: {e}") from e
    except OSError as e:
        raise FSError(f"读取文件失败: {p}, 错误: {e}") from e

    data = loads_jsonc(text, source=str(p))
    if not isinstance(data, dict):
        raise ShapeError(
            f"{p} 顶层应为对象，实际类型: {type(data).__name__}"
        )
    return data
