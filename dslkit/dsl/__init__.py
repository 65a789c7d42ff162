"""DSL 模块

拆分说明：
- types.py: 扩展名 / 种类 / 目录对照表与类型实现注册表
- head.py: 文件头解析（FROM / LANG / VERSION / RUN）
- paths.py: 内容树路径读写、删除与深度合并
- compiler.py: 继承、RUN 流水线、COPY 模板与环境变量编译
"""

from dslkit.dsl.compiler import DSL, reset_template_cache, template_refs
from dslkit.dsl.head import Command, Head
from dslkit.dsl.types import DSLKind, get_type, register_type, unregister_type

__all__ = [
    "DSL",
    "Command",
    "Head",
    "DSLKind",
    "register_type",
    "unregister_type",
    "get_type",
    "template_refs",
    "reset_template_cache",
]
