"""dslkit 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
from typing import Any, Callable, TypeVar

import click

from dslkit import __version__
from dslkit.core.config import init_config
from dslkit.core.exceptions import DSLKitError
from dslkit.utils.logger import setup_logging_from_env

F = TypeVar("F", bound=Callable[..., Any])


def handle_errors(func: F) -> F:
    """DSLKitError → ClickException，输出 [code] message"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except DSLKitError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e

    return wrapper  # type: ignore[return-value]


root_option = click.option(
    "--root", "-r", default=".", show_default=True,
    type=click.Path(file_okay=False), help="应用根目录",
)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", default="configs/default.yml", help="配置文件路径")
def main(config: str) -> None:
    """dslkit - DSL 包管理与编译工具"""
    setup_logging_from_env()
    init_config(config)


# 注册各领域子命令
from dslkit.cli.cmd_workshop import register as _reg_workshop  # noqa: E402
from dslkit.cli.cmd_dsl import register as _reg_dsl  # noqa: E402

_reg_workshop(main)
_reg_dsl(main)
