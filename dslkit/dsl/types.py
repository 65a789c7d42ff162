"""DSL 类型表与类型实现注册表

文件名 name.<ext>.yao 中的 <ext> 通过 EXTENSION_TYPES 映射为 DSLKind。
TYPE_EXTENSIONS 为规范扩展名（远程 FROM 目标文件按此命名），
TYPE_DIRS 为应用目录约定。

外部子系统通过 register_type() 为某个 kind 绑定 DSLType 实现，
编译器在 check / compile / refresh / remove 时委托给它。
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from dslkit.core.protocols import DSLType

logger = logging.getLogger(__name__)


class DSLKind(str, Enum):
    """DSL 种类"""

    MODEL = "model"
    FLOW = "flow"
    HTTP = "http"
    MQTT = "mqtt"
    MYSQL = "mysql"
    PGSQL = "pgsql"
    TIDB = "tidb"
    ORACLE = "oracle"
    CLICKHOUSE = "clickhouse"
    ELASTIC = "elastic"
    REDIS = "redis"
    MONGODB = "mongodb"
    KAFKA = "kafka"
    WEBSOCKET = "websocket"
    SOCKET = "socket"
    STORE = "store"
    QUEUE = "queue"
    SCHEDULE = "schedule"
    MODULE = "module"
    COMPONENT = "component"
    TEMPLATE = "template"
    OPENAI = "openai"


EXTENSION_TYPES: dict[str, DSLKind] = {
    "model": DSLKind.MODEL,
    "mod": DSLKind.MODEL,
    "flow": DSLKind.FLOW,
    "flw": DSLKind.FLOW,
    "http": DSLKind.HTTP,
    "mqtt": DSLKind.MQTT,
    "mysql": DSLKind.MYSQL,
    "my": DSLKind.MYSQL,
    "pgsql": DSLKind.PGSQL,
    "pg": DSLKind.PGSQL,
    "tidb": DSLKind.TIDB,
    "oracle": DSLKind.ORACLE,
    "click": DSLKind.CLICKHOUSE,
    "clickhouse": DSLKind.CLICKHOUSE,
    "redis": DSLKind.REDIS,
    "mongo": DSLKind.MONGODB,
    "es": DSLKind.ELASTIC,
    "kafka": DSLKind.KAFKA,
    "ws": DSLKind.WEBSOCKET,
    "webs": DSLKind.WEBSOCKET,
    "sock": DSLKind.SOCKET,
    "socket": DSLKind.SOCKET,
    "store": DSLKind.STORE,
    "queue": DSLKind.QUEUE,
    "que": DSLKind.QUEUE,
    "module": DSLKind.MODULE,
    "m": DSLKind.MODULE,
    "com": DSLKind.COMPONENT,
    "c": DSLKind.COMPONENT,
    "sch": DSLKind.SCHEDULE,
    "schedule": DSLKind.SCHEDULE,
    "tpl": DSLKind.TEMPLATE,
    "tmpl": DSLKind.TEMPLATE,
    "openai": DSLKind.OPENAI,
}

# kind → 规范扩展名
TYPE_EXTENSIONS: dict[DSLKind, str] = {
    DSLKind.HTTP: "http",
    DSLKind.MQTT: "mqtt",
    DSLKind.MODEL: "mod",
    DSLKind.FLOW: "flow",
    DSLKind.MYSQL: "mysql",
    DSLKind.PGSQL: "pgsql",
    DSLKind.ORACLE: "oracle",
    DSLKind.TIDB: "tidb",
    DSLKind.CLICKHOUSE: "click",
    DSLKind.REDIS: "redis",
    DSLKind.MONGODB: "mongo",
    DSLKind.ELASTIC: "es",
    DSLKind.KAFKA: "kafka",
    DSLKind.SOCKET: "sock",
    DSLKind.WEBSOCKET: "webs",
    DSLKind.STORE: "store",
    DSLKind.QUEUE: "que",
    DSLKind.SCHEDULE: "sch",
    DSLKind.MODULE: "module",
    DSLKind.COMPONENT: "com",
    DSLKind.TEMPLATE: "tpl",
    DSLKind.OPENAI: "openai",
}

# kind → 应用目录
TYPE_DIRS: dict[DSLKind, str] = {
    DSLKind.HTTP: "/apis",
    DSLKind.MQTT: "/apis",
    DSLKind.MODEL: "/models",
    DSLKind.FLOW: "/flows",
    DSLKind.MYSQL: "/connectors",
    DSLKind.PGSQL: "/connectors",
    DSLKind.ORACLE: "/connectors",
    DSLKind.TIDB: "/connectors",
    DSLKind.CLICKHOUSE: "/connectors",
    DSLKind.ELASTIC: "/connectors",
    DSLKind.REDIS: "/connectors",
    DSLKind.MONGODB: "/connectors",
    DSLKind.KAFKA: "/connectors",
    DSLKind.OPENAI: "/connectors",
    DSLKind.SOCKET: "/services",
    DSLKind.WEBSOCKET: "/services",
    DSLKind.STORE: "/services",
    DSLKind.QUEUE: "/services",
    DSLKind.SCHEDULE: "/schedules",
    DSLKind.MODULE: "/components",
    DSLKind.COMPONENT: "/components",
    DSLKind.TEMPLATE: "/templates",
}


def dir_types() -> dict[str, list[DSLKind]]:
    """应用目录 → 该目录下允许的 kind 列表"""
    result: dict[str, list[DSLKind]] = {}
    for kind, path in TYPE_DIRS.items():
        result.setdefault(path, []).append(kind)
    return result


# =========================================================================
# 类型实现注册表
# =========================================================================

TypeFactory = Callable[[], DSLType]

_types: dict[DSLKind, TypeFactory] = {}
_types_lock = threading.Lock()


def register_type(kind: DSLKind, factory: TypeFactory) -> None:
    """为 kind 绑定实现工厂，重复注册时覆盖"""
    with _types_lock:
        if kind in _types:
            logger.warning("DSL 类型实现被覆盖: %s", kind.value)
        _types[kind] = factory


def unregister_type(kind: DSLKind) -> bool:
    with _types_lock:
        return _types.pop(kind, None) is not None


def get_type(kind: DSLKind) -> DSLType | None:
    """创建 kind 对应的实现实例，未注册时返回 None"""
    factory = _types.get(kind)
    if factory is None:
        return None
    return factory()
