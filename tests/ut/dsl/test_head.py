"""DSL 文件头解析测试"""

from __future__ import annotations

import os

import pytest
import semver

from dslkit.core.exceptions import ShapeError
from dslkit.dsl.head import Head
from dslkit.dsl.types import DSLKind


class TestHeadFile:

    @pytest.mark.parametrize("name, kind", [
        ("user.mod.yao", DSLKind.MODEL),
        ("user.model.json", DSLKind.MODEL),
        ("import.flow.jsonc", DSLKind.FLOW),
        ("pg.pgsql.yao", DSLKind.PGSQL),
        ("gpt.openai.yao", DSLKind.OPENAI),
        ("user.tpl.yao", DSLKind.TEMPLATE),
    ])
    def test_kind_from_extension(self, name, kind) -> None:
        head = Head.parse(f"/app/models/{name}", {})
        assert head.type == kind
        assert head.file == f"/app/models/{name}"

    def test_name_lowercased(self) -> None:
        head = Head.parse("/app/models/User.mod.yao", {})
        assert head.name == "user"

    def test_relative_path_made_absolute(self) -> None:
        head = Head.parse("models/user.mod.yao", {})
        assert os.path.isabs(head.file)

    def test_wrong_extension(self) -> None:
        with pytest.raises(ShapeError, match="yao、jsonc 或 json"):
            Head.parse("/app/user.mod.yaml", {})

    def test_wrong_shape(self) -> None:
        with pytest.raises(ShapeError, match="name.type.yao"):
            Head.parse("/app/user.yao", {})
        with pytest.raises(ShapeError, match="name.type.yao"):
            Head.parse("/app/user.v2.mod.yao", {})

    def test_unknown_kind(self) -> None:
        with pytest.raises(ShapeError, match="unknown"):
            Head.parse("/app/user.unknown.yao", {})


class TestHeadFields:

    def test_defaults(self) -> None:
        head = Head.parse("/app/user.mod.yao", {})
        assert head.from_ == ""
        assert head.lang == semver.Version(1, 0, 0)
        assert head.version == semver.Version(1, 0, 0)
        assert head.run.is_empty()

    def test_from_lowercased(self) -> None:
        head = Head.parse("/app/user.mod.yao", {"FROM": "@GitHub.com/YaoApp/ERP/models/User"})
        assert head.from_ == "@github.com/yaoapp/erp/models/user"
        assert head.is_remote()

    def test_non_string_from_ignored(self) -> None:
        head = Head.parse("/app/user.mod.yao", {"FROM": 1})
        assert head.from_ == ""

    def test_versions(self) -> None:
        head = Head.parse("/app/user.mod.yao", {"LANG": "v1.2.0", "VERSION": "2.0.1-beta"})
        assert head.lang == semver.Version(1, 2, 0)
        assert head.version == semver.Version.parse("2.0.1-beta")

    def test_invalid_version(self) -> None:
        with pytest.raises(ShapeError, match="VERSION"):
            Head.parse("/app/user.mod.yao", {"VERSION": "latest"})
        with pytest.raises(ShapeError, match="LANG"):
            Head.parse("/app/user.mod.yao", {"LANG": 1})


class TestHeadCommand:

    def test_full_command(self) -> None:
        head = Head.parse("/app/user.mod.yao", {"RUN": {
            "DELETE": ["columns[2]", "option"],
            "MERGE": [{"option": {"timestamps": True}}],
            "REPLACE": [{"table": "$new.table"}],
            "APPEND": [{"columns": [{"name": "x"}]}, {"indexes": "$new.extra"}],
        }})
        assert head.run.DELETE == ["columns[2]", "option"]
        assert head.run.MERGE == [{"option": {"timestamps": True}}]
        assert head.run.REPLACE == [{"table": "$new.table"}]
        assert head.run.APPEND[1] == {"indexes": "$new.extra"}

    def test_run_not_map(self) -> None:
        with pytest.raises(ShapeError, match="RUN"):
            Head.parse("/app/user.mod.yao", {"RUN": ["DELETE"]})

    def test_append_item_index(self) -> None:
        with pytest.raises(ShapeError, match=r"APPEND\.1"):
            Head.parse("/app/user.mod.yao", {"RUN": {
                "APPEND": [{"a": []}, {"b": "scalar"}],
            }})

    def test_delete_item_index(self) -> None:
        with pytest.raises(ShapeError, match=r"DELETE\.0"):
            Head.parse("/app/user.mod.yao", {"RUN": {"DELETE": [1]}})

    def test_replace_item_index(self) -> None:
        with pytest.raises(ShapeError, match=r"REPLACE\.0"):
            Head.parse("/app/user.mod.yao", {"RUN": {"REPLACE": ["table"]}})

    def test_merge_not_list(self) -> None:
        with pytest.raises(ShapeError, match="MERGE"):
            Head.parse("/app/user.mod.yao", {"RUN": {"MERGE": {"a": {}}}})

    def test_to_dict(self) -> None:
        head = Head.parse("/app/user.mod.yao", {"FROM": "models/base", "VERSION": "v1.1.0"})
        data = head.to_dict()
        assert data["type"] == "model"
        assert data["version"] == "1.1.0"
        assert data["from"] == "models/base"
