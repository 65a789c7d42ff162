"""集中配置管理

替代各模块散落的路径常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。

目录约定（均可覆盖）:
  yao_path       $YAO_PATH，未设置时为 ~/yao
  workshop_root  <yao_path>/workshop          远程包检出目录
  cache_dir      <workshop_root>/cache        zip 缓存目录
  config_root    <yao_path>/config            主机凭据 workshop.yao 所在目录
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dslkit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

ROOT_ENV_NAME = "YAO_PATH"
MAX_LAYERS = 32


def local_root() -> str:
    """本地根目录，默认 ~/yao"""
    root = os.getenv(ROOT_ENV_NAME, "")
    if not root:
        root = str(Path.home() / "yao")
    return root


@dataclass
class Config:
    """框架全局配置"""

    # 目录
    yao_path: str = ""
    workshop_root: str = ""
    cache_dir: str = ""
    config_root: str = ""

    # 网络
    http_timeout: int = 60

    # 编译
    max_layers: int = MAX_LAYERS

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.yao_path:
            self.yao_path = local_root()
        if not self.workshop_root:
            self.workshop_root = str(Path(self.yao_path) / "workshop")
        if not self.cache_dir:
            self.cache_dir = str(Path(self.workshop_root) / "cache")
        if not self.config_root:
            self.config_root = str(Path(self.yao_path) / "config")

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则按环境变量生成默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
