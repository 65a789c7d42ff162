"""归档解压测试"""

from __future__ import annotations

import zipfile

import pytest

from dslkit.core.exceptions import FSError
from dslkit.repo import unzip


def _zip(path, entries: dict[str, str]) -> str:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return str(path)


class TestUnzip:

    def test_moves_top_directory(self, tmp_path) -> None:
        src = _zip(tmp_path / "a.zip", {
            "yaoapp-demo-e86eab4/": "",
            "yaoapp-demo-e86eab4/app.yao": "{}",
            "yaoapp-demo-e86eab4/models/user.mod.yao": '{"name": "user"}',
        })
        dest = tmp_path / "out" / "demo@v1.0.0"
        unzip(src, dest)

        assert (dest / "app.yao").read_text(encoding="utf-8") == "{}"
        assert (dest / "models" / "user.mod.yao").exists()

    def test_dest_exists(self, tmp_path) -> None:
        src = _zip(tmp_path / "a.zip", {"top/app.yao": "{}"})
        (tmp_path / "dest").mkdir()
        with pytest.raises(FSError, match="已存在"):
            unzip(src, tmp_path / "dest")

    def test_bad_zip(self, tmp_path) -> None:
        src = tmp_path / "bad.zip"
        src.write_bytes(b"not a zip")
        dest = tmp_path / "dest"
        with pytest.raises(FSError, match="解压失败"):
            unzip(src, dest)
        assert not dest.exists()

    def test_zip_slip_rejected(self, tmp_path) -> None:
        src = _zip(tmp_path / "evil.zip", {
            "top/app.yao": "{}",
            "../../escape.txt": "x",
        })
        dest = tmp_path / "dest"
        with pytest.raises(FSError, match="非法的归档路径"):
            unzip(src, dest)
        assert not dest.exists()
        assert not (tmp_path / "escape.txt").exists()

    def test_empty_archive(self, tmp_path) -> None:
        src = _zip(tmp_path / "empty.zip", {})
        with pytest.raises(FSError, match="归档为空"):
            unzip(src, tmp_path / "dest")
