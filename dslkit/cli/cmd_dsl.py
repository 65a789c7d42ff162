"""CLI — DSL 编译命令"""

from __future__ import annotations

import json
import os

import click

from dslkit.cli import handle_errors, root_option
from dslkit.dsl import DSL
from dslkit.dsl.head import Head
from dslkit.utils.jsonc import load_jsonc
from dslkit.workshop import Workshop


def register(group: click.Group) -> None:
    group.add_command(compile_dsl)
    group.add_command(head)
    group.add_command(trace)


def _open(root: str, file: str) -> DSL:
    ws = Workshop.open(root)
    if not os.path.isabs(file):
        file = os.path.join(ws.root, file)
    return DSL(ws).open(file)


@click.command(name="compile")
@click.argument("file")
@root_option
@handle_errors
def compile_dsl(file: str, root: str) -> None:
    """编译 DSL 文件，输出 JSON"""
    dsl = _open(root, file)
    compiled = dsl.compile()
    click.echo(json.dumps(compiled, indent=2, ensure_ascii=False))


@click.command()
@click.argument("file")
@root_option
@handle_errors
def head(file: str, root: str) -> None:
    """解析并输出 DSL 文件头"""
    if not os.path.isabs(file):
        file = os.path.join(root, file)
    parsed = Head.parse(file, load_jsonc(file))
    click.echo(json.dumps(parsed.to_dict(), indent=2, ensure_ascii=False))


@click.command()
@click.argument("file")
@root_option
@handle_errors
def trace(file: str, root: str) -> None:
    """编译 DSL 文件并列出访问过的文件"""
    dsl = _open(root, file)
    dsl.compile()
    click.echo(dsl.file)
    for path in dsl.trace:
        click.echo(f"  {path}")
