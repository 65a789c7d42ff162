"""DSL 文件头解析

文件头由顶层保留键组成:
    FROM     继承来源，"@github.com/org/repo/path/name" 为远程，否则为本地
    LANG     DSL 语言版本（semver，默认 1.0.0）
    VERSION  当前文件版本（semver，默认 1.0.0）
    RUN      继承时执行的结构化编辑: DELETE / MERGE / REPLACE / APPEND

文件名必须为 name.<ext>.yao|json|jsonc，<ext> 决定 DSL 种类。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import semver

from dslkit.core.exceptions import ShapeError
from dslkit.dsl.types import EXTENSION_TYPES, DSLKind

FILE_EXTENSIONS = ("yao", "json", "jsonc")
DEFAULT_VERSION = "1.0.0"
NEW_PREFIX = "$new."


@dataclass
class Command:
    """RUN 命令，各列表按声明顺序执行"""

    DELETE: list[str] = field(default_factory=list)
    MERGE: list[dict[str, Any]] = field(default_factory=list)
    REPLACE: list[dict[str, Any]] = field(default_factory=list)
    APPEND: list[dict[str, Any]] = field(default_factory=list)   # 值为数组或 "$new.<path>"

    def is_empty(self) -> bool:
        return not (self.DELETE or self.MERGE or self.REPLACE or self.APPEND)


@dataclass
class Head:
    """DSL 文件头"""

    file: str = ""
    name: str = ""
    type: DSLKind | None = None
    lang: semver.Version = field(default_factory=lambda: semver.Version.parse(DEFAULT_VERSION))
    version: semver.Version = field(default_factory=lambda: semver.Version.parse(DEFAULT_VERSION))
    from_: str = ""
    run: Command = field(default_factory=Command)

    @classmethod
    def parse(cls, file: str, content: dict[str, Any]) -> Head:
        """由文件路径和原始内容生成文件头"""
        head = cls()
        head.set_file(file)
        head.set_from(content.get("FROM"))
        head.set_lang(content.get("LANG"))
        head.set_version(content.get("VERSION"))
        head.set_command(content.get("RUN"))
        return head

    def set_file(self, file: str) -> None:
        """解析文件名，设置 file（绝对路径）、name、type"""
        base = os.path.basename(file)
        uri = base.split(".")
        if len(uri) != 3:
            raise ShapeError(f"文件名应为 \"name.type.yao\"，实际: {base}")

        if uri[2] not in FILE_EXTENSIONS:
            raise ShapeError(f"文件扩展名应为 yao、jsonc 或 json，实际: {uri[2]}")

        kind = EXTENSION_TYPES.get(uri[1])
        if kind is None:
            raise ShapeError(f"不支持的 DSL 类型 \"{uri[1]}\": {base}")

        self.file = os.path.abspath(file)
        self.name = uri[0].lower()
        self.type = kind

    def set_from(self, value: Any) -> bool:
        """非字符串的 FROM 视为未设置"""
        if isinstance(value, str):
            self.from_ = value.lower()
            return True
        return False

    def set_lang(self, value: Any) -> None:
        self.lang = new_version(value, "LANG")

    def set_version(self, value: Any) -> None:
        self.version = new_version(value, "VERSION")

    def is_remote(self) -> bool:
        return self.from_.startswith("@")

    # ------------------------------------------------------------------
    # RUN
    # ------------------------------------------------------------------

    def set_command(self, cmd: Any) -> None:
        if cmd is None:
            return
        if not isinstance(cmd, dict):
            raise ShapeError(f"RUN 应为对象，实际: {cmd!r}")

        self.run = Command()
        self._set_append(cmd.get("APPEND"))
        self._set_delete(cmd.get("DELETE"))
        self._set_replace(cmd.get("REPLACE"))
        self._set_merge(cmd.get("MERGE"))

    def _set_append(self, value: Any) -> None:
        if value is None:
            return
        if not isinstance(value, list):
            raise ShapeError(f"APPEND 应为 {{路径: 数组}} 对象的数组，实际: {value!r}")

        cmds: list[dict[str, Any]] = []
        for i, item in enumerate(value):
            if not isinstance(item, dict) or not all(
                isinstance(v, list) or is_new_ref(v) for v in item.values()
            ):
                raise ShapeError(
                    f"APPEND 应为 {{路径: 数组}} 对象的数组，实际 APPEND.{i}: {item!r}",
                )
            cmds.append(dict(item))
        self.run.APPEND = cmds

    def _set_delete(self, value: Any) -> None:
        if value is None:
            return
        if not isinstance(value, list):
            raise ShapeError(f"DELETE 应为字符串数组，实际: {value!r}")

        for i, item in enumerate(value):
            if not isinstance(item, str):
                raise ShapeError(f"DELETE 应为字符串数组，实际 DELETE.{i}: {item!r}")
        self.run.DELETE = list(value)

    def _set_replace(self, value: Any) -> None:
        self.run.REPLACE = _map_list("REPLACE", value)

    def _set_merge(self, value: Any) -> None:
        self.run.MERGE = _map_list("MERGE", value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "name": self.name,
            "type": self.type.value if self.type else "",
            "lang": str(self.lang),
            "version": str(self.version),
            "from": self.from_,
            "run": {
                "DELETE": self.run.DELETE,
                "MERGE": self.run.MERGE,
                "REPLACE": self.run.REPLACE,
                "APPEND": self.run.APPEND,
            },
        }


def is_new_ref(value: Any) -> bool:
    """是否为引用子文件内容的 $new.<path> 字符串"""
    return isinstance(value, str) and value.startswith(NEW_PREFIX)


def new_version(value: Any, key: str = "VERSION") -> semver.Version:
    """None 或空串为 1.0.0，允许前缀 v"""
    if value is None or value == "":
        return semver.Version.parse(DEFAULT_VERSION)
    if not isinstance(value, str):
        raise ShapeError(f"{key} 应为字符串，实际: {value!r}")

    try:
        return semver.Version.parse(value.lower().lstrip("v"))
    except ValueError as e:
        raise ShapeError(f"{key} 不是有效的语义化版本: {value}") from e


def _map_list(key: str, value: Any) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ShapeError(f"{key} 应为对象数组，实际: {value!r}")

    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ShapeError(f"{key} 应为对象数组，实际 {key}.{i}: {item!r}")
    return [dict(item) for item in value]
