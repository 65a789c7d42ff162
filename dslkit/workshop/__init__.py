"""Workshop 模块

拆分说明：
- package.py: 单个远程包的解析、下载与缓存
- workshop.py: workshop.yao 依赖清单与传递依赖解析
- credentials.py: 各远程主机的凭据配置
"""

from dslkit.workshop.credentials import load_host_config, read_token_file
from dslkit.workshop.package import Package
from dslkit.workshop.workshop import Workshop

__all__ = [
    "Package",
    "Workshop",
    "load_host_config",
    "read_token_file",
]
