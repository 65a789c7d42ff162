"""dslkit - DSL 包管理与编译工具"""

__version__ = "0.1.0"
