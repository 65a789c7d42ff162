"""领域协议定义

集中定义框架各层之间的接口契约（Protocol），
实现依赖倒置 — 编译器依赖抽象而非具体实现。

使用 typing.Protocol 而非 ABC，使得外部子系统（模型、流程、连接器等）
无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

# 下载进度回调: (已传输字节数) -> None
ProgressFunc = Callable[[int], None]


# =========================================================================
# 远程仓库协议
# =========================================================================

class RepoAPI(Protocol):
    """远程 Git 主机只读访问协议

    GitHub 是唯一的完整实现，其他主机可按此协议扩展。
    """

    def content(self, file: str) -> bytes:
        """读取仓库内文件内容"""
        ...

    def dir(self, path: str) -> list[str]:
        """列出目录下子项的仓库相对路径"""
        ...

    def tags(self, page: int, per_page: int) -> list[str]:
        """分页列出标签名"""
        ...

    def commits(self, page: int, per_page: int) -> list[str]:
        """分页列出提交 SHA（前 12 位）"""
        ...

    def download(
        self, rel: str, process: ProgressFunc | None = None, cancel: Any = None,
    ) -> str:
        """下载仓库 zip 归档到临时文件，返回临时文件路径"""
        ...


# =========================================================================
# DSL 类型协议
# =========================================================================

class DSLType(Protocol):
    """DSL 类型实现协议

    由外部子系统（models、flows 等）提供，按文件名推导出的 kind 绑定。
    编译器只负责产出编译后的结构，具体解释交给实现方。
    """

    def dsl_check(self, source: dict[str, Any]) -> None:
        """校验编译结果，失败时抛出异常"""
        ...

    def dsl_compile(self, root: str, file: str, source: dict[str, Any]) -> None:
        """接收编译结果并完成加载"""
        ...

    def dsl_refresh(self, root: str, file: str, source: dict[str, Any]) -> None:
        """文件变更后重新加载"""
        ...

    def dsl_remove(self, root: str, file: str) -> None:
        """文件删除后卸载"""
        ...


# =========================================================================
# 连接器协议（仅契约，核心不直接调用）
# =========================================================================

class Connector(Protocol):
    """后端服务连接器协议（数据库、缓存、LLM、向量化等）"""

    def register(self, file: str, id: str, dsl: bytes) -> None:
        ...

    def id(self) -> str:
        ...

    def is_(self, kind: int) -> bool:
        ...

    def close(self) -> None:
        ...

    def setting(self) -> dict[str, Any]:
        ...
