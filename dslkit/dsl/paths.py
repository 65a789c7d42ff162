"""DSL 内容树的路径操作

路径语法:
    table.name           嵌套对象
    columns[2]           数组元素
    columns[0].label     数组元素内的字段

所有操作原地修改传入的树，结构不匹配时抛出 ShapeError。
"""

from __future__ import annotations

import copy
import re
from typing import Any

from dslkit.core.exceptions import ShapeError

ARRAY_KEY = re.compile(r"^([A-Za-z0-9_-]+)\[([0-9]+)\]$")

# 深度合并时保留，不被子文件覆盖
KEEP_FIELDS = frozenset({"FROM", "RUN"})


def split_key(key: str) -> tuple[str, int | None]:
    """columns[2] → ("columns", 2)；普通键 → (key, None)"""
    m = ARRAY_KEY.match(key)
    if m is None:
        return key, None
    return m.group(1), int(m.group(2))


def flatten(content: Any, prefix: str = "") -> dict[str, Any]:
    """展开为点路径字典，每一层节点都有对应的键

    {"table": {"name": "x"}, "cols": [{"a": 1}]} →
        table, table.name, cols, cols[0], cols[0].a
    """
    result: dict[str, Any] = {}
    if isinstance(content, dict):
        for key, value in content.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            result[path] = value
            result.update(flatten(value, path))
    elif isinstance(content, list):
        for i, value in enumerate(content):
            path = f"{prefix}[{i}]"
            result[path] = value
            result.update(flatten(value, path))
    return result


def get_path(content: dict[str, Any], path: str) -> Any:
    """按路径读取，不存在时返回 None"""
    node: Any = content
    for part in path.split("."):
        key, idx = split_key(part)
        if not isinstance(node, dict):
            return None
        node = node.get(key)
        if idx is not None:
            if not isinstance(node, list) or idx >= len(node):
                return None
            node = node[idx]
    return node


def set_path(content: dict[str, Any], path: str, value: Any) -> None:
    """按路径写入，缺失的中间对象自动创建；数组下标越界报错"""
    parts = path.split(".")
    node = content
    for i, part in enumerate(parts):
        key, idx = split_key(part)
        last = i == len(parts) - 1

        if idx is None:
            if last:
                node[key] = value
                return
            child = node.get(key)
            if child is None:
                child = {}
                node[key] = child
            elif not isinstance(child, dict):
                raise ShapeError(f"{path}: {key} 应为对象，实际: {child!r}")
            node = child
            continue

        arr = node.get(key)
        if not isinstance(arr, list):
            raise ShapeError(f"{path}: {key} 不是数组，实际: {arr!r}")
        if idx >= len(arr):
            raise ShapeError(f"{path}: {key}[{idx}] 不存在")
        if last:
            arr[idx] = value
            return
        item = arr[idx]
        if not isinstance(item, dict):
            raise ShapeError(f"{path}: {key}[{idx}] 应为对象，实际: {item!r}")
        node = item


def delete_path(content: dict[str, Any], path: str) -> None:
    """按路径删除；对象键不存在时忽略，数组下标越界报错"""
    parts = path.split(".")
    node = content
    for i, part in enumerate(parts):
        key, idx = split_key(part)
        last = i == len(parts) - 1

        if idx is None:
            if last:
                node.pop(key, None)
                return
            child = node.get(key)
            if child is None:
                return
            if not isinstance(child, dict):
                raise ShapeError(f"{path}: {key} 应为对象，实际: {child!r}")
            node = child
            continue

        arr = node.get(key)
        if not isinstance(arr, list):
            raise ShapeError(f"{path}: {key} 不是数组，实际: {arr!r}")
        if idx >= len(arr):
            raise ShapeError(f"{path}: {key}[{idx}] 不存在")
        if last:
            del arr[idx]
            return
        item = arr[idx]
        if not isinstance(item, dict):
            raise ShapeError(f"{path}: {key}[{idx}] 应为对象，实际: {item!r}")
        node = item


def deep_merge(content: dict[str, Any], new: dict[str, Any]) -> None:
    """把 new 递归合并进 content

    规则: 对象+对象递归，数组+数组拼接（new 在后），其余以 new 覆盖。
    顶层和各层的 FROM / RUN 均跳过。
    """
    for key, value in new.items():
        if key in KEEP_FIELDS:
            continue

        current = content.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            deep_merge(current, value)
        elif isinstance(value, list) and isinstance(current, list):
            current.extend(copy.deepcopy(value))
        else:
            content[key] = copy.deepcopy(value)
