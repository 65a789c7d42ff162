"""统一异常体系

所有业务异常继承 DSLKitError，替代散落的 ValueError / OSError。
CLI 层可据此输出友好提示（[code] message）。
"""

from __future__ import annotations


class DSLKitError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(DSLKitError):
    """workshop.yao / 凭据配置缺失或内容无效"""

    code = "CONFIG_ERROR"


class ResolveError(DSLKitError):
    """包地址、版本解析失败或依赖层级过深"""

    code = "RESOLVE_ERROR"


class NetworkError(DSLKitError):
    """远程仓库 API 调用失败"""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class FSError(DSLKitError):
    """本地目录创建、解压、删除失败"""

    code = "FS_ERROR"


class LockError(DSLKitError):
    """workshop.yao 已被其他进程锁定"""

    code = "LOCK_ERROR"


class ShapeError(DSLKitError):
    """DSL 结构不符合预期（命令类型、路径、文件名等）"""

    code = "SHAPE_ERROR"


class TemplateError(DSLKitError):
    """COPY 模板引用无效"""

    code = "TEMPLATE_ERROR"
