"""CLI — 远程依赖管理命令"""

from __future__ import annotations

import click

from dslkit.cli import handle_errors, root_option
from dslkit.workshop import Package, Workshop


def register(group: click.Group) -> None:
    group.add_command(get)
    group.add_command(remove)
    group.add_command(refresh)
    group.add_command(list_packages)


def _echo_process(total: int, pkg: Package, status: str) -> None:
    if status == "downloading":
        return
    click.echo(f"  {status:8s} {pkg.unique}", err=True)


@click.command()
@click.argument("url")
@click.option("--alias", "-a", default="", help="依赖别名（默认为包名）")
@root_option
@handle_errors
def get(url: str, alias: str, root: str) -> None:
    """添加远程依赖，URL 不带 @version 时取最新版本"""
    ws = Workshop.open(root)
    pkg = ws.get(url, alias=alias, process=_echo_process)
    click.echo(f"已添加: {pkg.url} -> {pkg.local_path}")


@click.command()
@click.argument("url")
@root_option
@handle_errors
def remove(url: str, root: str) -> None:
    """移除直接依赖（可用别名、包名或完整 URL）"""
    ws = Workshop.open(root)
    if ws.remove(url):
        click.echo(f"已移除: {url}")
    else:
        click.echo(f"未找到依赖: {url}")


@click.command()
@root_option
@handle_errors
def refresh(root: str) -> None:
    """按直接依赖重新解析全部传递依赖"""
    ws = Workshop.open(root)
    with ws.lock():
        ws.refresh(_echo_process)
        ws.save()
    click.echo(f"已刷新: {len(ws.require)} 个依赖")


@click.command(name="list")
@root_option
@handle_errors
def list_packages(root: str) -> None:
    """列出 workshop.yao 中的依赖"""
    ws = Workshop.open(root)
    if not ws.require:
        click.echo("没有依赖。")
        return
    for pkg in ws.require:
        flags = []
        if pkg.indirect:
            flags.append("indirect")
        if pkg.replaced:
            flags.append("replaced")
        if not pkg.is_downloaded():
            flags.append("missing")
        extra = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"  {pkg.alias:32s} {pkg.url}{extra}")
