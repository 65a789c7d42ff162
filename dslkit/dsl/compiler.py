"""DSL 编译器

编译流程:
    1. FROM   解析继承来源（远程包 / 本地文件），递归编译父文件作为种子
    2. RUN    依次执行 REPLACE → MERGE → APPEND → 深度合并 → DELETE
    3. COPY   展开模板引用 <root>/templates/[dir/]<stem>.tpl.yao
    4. $env   替换环境变量引用

用法:
    ws = Workshop.open("/data/app")
    dsl = DSL(ws).open("/data/app/models/user.mod.yao")
    compiled = dsl.compile()
    dsl.trace   # 本次编译访问过的全部文件

并发约定:
  - 单次 compile 同步执行
  - 模板编译结果进程内缓存（按绝对路径，只写一次）
  - 模板引用表进程内只追加
"""

from __future__ import annotations

import copy
import logging
import os
import threading
from typing import Any

from dslkit.core.config import get_config
from dslkit.core.exceptions import (
    DSLKitError,
    ResolveError,
    ShapeError,
    TemplateError,
)
from dslkit.core.protocols import DSLType
from dslkit.dsl.head import NEW_PREFIX, Head
from dslkit.dsl.paths import delete_path, deep_merge, flatten, get_path, set_path
from dslkit.dsl.types import TYPE_EXTENSIONS, DSLKind, get_type
from dslkit.utils.jsonc import load_jsonc
from dslkit.workshop import Package, Workshop

logger = logging.getLogger(__name__)

ENV_PREFIX = "$env."
TEMPLATE_DIR = "templates"

# 模板文件 → (编译结果, 编译轨迹)
_templates: dict[str, tuple[dict[str, Any], list[str]]] = {}
_templates_lock = threading.RLock()

# 模板文件 → 引用它的文件
_template_refs: dict[str, list[str]] = {}
_refs_lock = threading.Lock()


def template_refs() -> dict[str, list[str]]:
    """模板引用表快照"""
    with _refs_lock:
        return {k: list(v) for k, v in _template_refs.items()}


def reset_template_cache() -> None:
    """清空模板缓存与引用表"""
    with _templates_lock:
        _templates.clear()
    with _refs_lock:
        _template_refs.clear()


def _too_many_layers(limit: int) -> ResolveError:
    return ResolveError(f"Too many layers, the max layer count is {limit}")


class DSL:
    """单个 DSL 文件的编译器"""

    def __init__(self, workshop: Workshop, stack: list[str] | None = None) -> None:
        self.workshop = workshop
        self.head: Head | None = None
        self.content: dict[str, Any] = {}
        self.compiled: dict[str, Any] | None = None
        self.trace: list[str] = []
        self.type: DSLType | None = None
        self._stack = list(stack or [])   # 祖先文件，用于限制继承深度

    # ------------------------------------------------------------------
    # 加载
    # ------------------------------------------------------------------

    def open(self, file: str) -> DSL:
        """读取 JSONC 文件并解析文件头"""
        content = load_jsonc(file)
        self.head = Head.parse(file, content)
        self.content = content
        self.compiled = None
        self.type = get_type(self.head.type) if self.head.type else None
        logger.debug("已打开 %s (%s)", self.head.file, self.head.type)
        return self

    @property
    def file(self) -> str:
        return self.head.file if self.head else ""

    @property
    def kind(self) -> DSLKind | None:
        return self.head.type if self.head else None

    # ------------------------------------------------------------------
    # 编译
    # ------------------------------------------------------------------

    def compile(self) -> dict[str, Any]:
        """编译并返回结果树；失败时 compiled 保持 None，trace 保留"""
        head = self._require_head()
        self.compiled = None
        self.trace = []

        limit = get_config().max_layers
        if len(self._stack) >= limit:
            raise _too_many_layers(limit)

        parent = self._compile_from(head)
        if parent is None:
            compiled = copy.deepcopy(self.content)
        else:
            compiled = self._merge(head, parent)

        compiled = self._compile_copy(compiled)
        self._compile_env(compiled)
        compiled.pop("RUN", None)

        if self.type is not None:
            self.type.dsl_compile(self.workshop.root, head.file, compiled)

        self.compiled = compiled
        logger.debug("编译完成 %s (trace %d)", head.file, len(self.trace))
        return compiled

    def check(self) -> None:
        """交给类型实现校验编译结果"""
        if self.compiled is None:
            raise ShapeError(f"{self.file} 尚未编译")
        if self.type is not None:
            self.type.dsl_check(self.compiled)

    def refresh(self) -> dict[str, Any]:
        """重新读取文件并编译，通知类型实现刷新"""
        head = self._require_head()
        self.open(head.file)
        compiled = self.compile()
        if self.type is not None:
            self.type.dsl_refresh(self.workshop.root, head.file, compiled)
        return compiled

    def remove(self) -> None:
        head = self._require_head()
        if self.type is not None:
            self.type.dsl_remove(self.workshop.root, head.file)
        self.compiled = None

    def _require_head(self) -> Head:
        if self.head is None:
            raise ShapeError("DSL 文件尚未打开")
        return self.head

    def _child(self) -> DSL:
        return DSL(self.workshop, stack=self._stack + [self.file])

    # ------------------------------------------------------------------
    # FROM
    # ------------------------------------------------------------------

    def _compile_from(self, head: Head) -> dict[str, Any] | None:
        """编译父文件，返回其结果树的副本；没有 FROM 时返回 None"""
        if not head.from_:
            return None

        if head.is_remote():
            workshop, file = self._remote_file(head)
        else:
            workshop, file = self.workshop, self._local_file(head)

        parent = DSL(workshop, stack=self._stack + [head.file]).open(file)
        self.trace.append(parent.file)
        try:
            compiled = parent.compile()
        finally:
            self.trace.extend(parent.trace)

        self._check_trace()
        return copy.deepcopy(compiled)

    def _check_trace(self) -> None:
        limit = get_config().max_layers
        if len(self.trace) > limit:
            raise _too_many_layers(limit)

    def _remote_file(self, head: Head) -> tuple[Workshop, str]:
        """@domain/owner/repo/path/name → 包目录下的 path/name.<ext>.yao"""
        parts = head.from_[1:].split("/")
        if len(parts) < 4:
            raise ResolveError(f"{head.file}: FROM 格式错误，应为 @domain/owner/repo/path，实际: {head.from_}")
        name = "/".join(parts[:3])

        if not self.workshop.has(name):
            logger.info("自动获取依赖: %s", name)
            self.workshop.get(name, process=_log_process)
            if not self.workshop.has(name):
                raise ResolveError(f"依赖 {name} 未能加载")

        pkg = self.workshop.mapping[name]
        if not pkg.is_downloaded():
            self.workshop.download(pkg, _log_process)

        remote = Workshop.open(pkg.local_path, cfg=self.workshop.cfg)
        file = os.path.join(pkg.local_path, *parts[3:]) + f".{self._extension(head)}.yao"
        return remote, file

    def _local_file(self, head: Head) -> str:
        """本地 FROM 相对于应用根目录"""
        parts = [p for p in head.from_.split("/") if p]
        if not parts:
            raise ResolveError(f"{head.file}: FROM 格式错误: {head.from_}")
        return os.path.join(self.workshop.root, *parts) + f".{self._extension(head)}.yao"

    @staticmethod
    def _extension(head: Head) -> str:
        if head.type is None:
            raise ShapeError(f"{head.file}: 未知的 DSL 类型")
        return TYPE_EXTENSIONS[head.type]

    # ------------------------------------------------------------------
    # RUN
    # ------------------------------------------------------------------

    def _merge(self, head: Head, content: dict[str, Any]) -> dict[str, Any]:
        """在父文件结果上执行子文件的 RUN 流水线"""
        run = head.run
        if run.is_empty():
            deep_merge(content, self.content)
            return content

        new = flatten(self.content)
        try:
            for replace in run.REPLACE:
                for key, value in replace.items():
                    set_path(content, key, copy.deepcopy(_resolve(new, value)))

            for merge in run.MERGE:
                for key, value in merge.items():
                    self._merge_value(content, key, _resolve(new, value))

            for append in run.APPEND:
                for key, value in append.items():
                    self._append_value(content, key, _resolve(new, value))

            deep_merge(content, self.content)

            for key in run.DELETE:
                delete_path(content, key)
        except ShapeError as e:
            raise ShapeError(f"{head.file}: {e}") from e
        return content

    @staticmethod
    def _merge_value(content: dict[str, Any], key: str, value: Any) -> None:
        if not isinstance(value, dict):
            raise ShapeError(f"MERGE {key} 的值应为对象，实际: {value!r}")
        current = get_path(content, key)
        if not isinstance(current, dict):
            raise ShapeError(f"MERGE {key} 的目标应为对象，实际: {current!r}")
        set_path(content, key, {**current, **copy.deepcopy(value)})

    @staticmethod
    def _append_value(content: dict[str, Any], key: str, value: Any) -> None:
        if not isinstance(value, list):
            raise ShapeError(f"APPEND {key} 的值应为数组，实际: {value!r}")
        current = get_path(content, key)
        if current is None:
            current = []
        elif not isinstance(current, list):
            raise ShapeError(f"APPEND {key} 的目标应为数组，实际: {current!r}")
        set_path(content, key, current + copy.deepcopy(value))

    # ------------------------------------------------------------------
    # COPY
    # ------------------------------------------------------------------

    def _compile_copy(self, content: dict[str, Any]) -> dict[str, Any]:
        """展开 COPY，同级键覆盖模板值"""
        result: dict[str, Any] = {}
        for key, value in content.items():
            if key == "COPY":
                continue
            result[key] = self._copy_value(value)

        if "COPY" not in content:
            return result

        name = content["COPY"]
        if not isinstance(name, str):
            raise TemplateError(f"{self.file}: COPY 应为字符串，实际: {name!r}")

        base = self._template_value(name)
        base.update(result)
        return base

    def _copy_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._compile_copy(value)
        if isinstance(value, list):
            return [self._compile_copy(v) if isinstance(v, dict) else v for v in value]
        return value

    def _template_value(self, name: str) -> dict[str, Any]:
        """dir1/dir2/stem.var.path → 模板编译结果中 var.path 对应的对象副本"""
        dirs = name.split("/")
        names = dirs[-1].split(".")
        stem, var = names[0], ".".join(names[1:])
        file = os.path.join(
            self.workshop.root, TEMPLATE_DIR, *dirs[:-1], f"{stem}.tpl.yao",
        )

        compiled, trace = self._template(file, name)
        # 同一模板多次引用只记录一次
        if file not in self.trace:
            self.trace.append(file)
            self.trace.extend([f for f in trace if f not in self.trace])
            self._check_trace()
        with _refs_lock:
            _template_refs.setdefault(file, []).append(self.file)

        value = get_path(compiled, var) if var else compiled
        if not isinstance(value, dict):
            raise TemplateError(f"{self.file}: COPY {name} 的值应为对象，实际: {value!r}")
        return copy.deepcopy(value)

    def _template(self, file: str, name: str) -> tuple[dict[str, Any], list[str]]:
        cached = _templates.get(file)
        if cached is not None:
            return cached

        with _templates_lock:
            cached = _templates.get(file)
            if cached is not None:
                return cached

            if not os.path.exists(file):
                raise TemplateError(f"{self.file}: 模板 {name} 不存在 ({file})")
            tpl = self._child()
            try:
                compiled = tpl.open(file).compile()
            except TemplateError:
                raise
            except DSLKitError as e:
                raise TemplateError(f"{self.file}: 模板 {name} 编译失败 - {e}") from e

            cached = (compiled, list(tpl.trace))
            _templates[file] = cached
            logger.debug("模板已缓存: %s", file)
            return cached

    # ------------------------------------------------------------------
    # $env
    # ------------------------------------------------------------------

    def _compile_env(self, content: dict[str, Any]) -> None:
        for key, value in content.items():
            if isinstance(value, str):
                if value.startswith(ENV_PREFIX):
                    content[key] = os.getenv(value[len(ENV_PREFIX):], "")
            elif isinstance(value, dict):
                self._compile_env(value)
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, dict):
                        self._compile_env(item)


def _resolve(new: dict[str, Any], value: Any) -> Any:
    """$new.<path> 取子文件展开内容中的值，其余原样返回"""
    if isinstance(value, str) and value.startswith(NEW_PREFIX):
        return new.get(value[len(NEW_PREFIX):])
    return value


def _log_process(total: int, pkg: Package, status: str) -> None:
    logger.debug("%s %s: %d", status, pkg.unique, total)
