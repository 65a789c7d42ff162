"""远程仓库模块

拆分说明：
- sources.py: 来源适配器 GitHub / 自托管
- client.py: 仓库门面、工厂函数与解压
"""

from dslkit.repo.client import Repo, new_repo, unzip
from dslkit.repo.sources import GitHubSource, SelfHostedSource

__all__ = [
    "Repo",
    "new_repo",
    "unzip",
    "GitHubSource",
    "SelfHostedSource",
]
