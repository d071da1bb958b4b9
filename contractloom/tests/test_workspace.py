"""Tests for project loading and the in-memory workspace."""

import threading
from unittest.mock import patch

import pytest

from contractloom.core.constants import ROLE_BRIDGE, ROLE_MARKUP, ROLE_PRIVILEGED, ROLE_UI_SCRIPT
from contractloom.core.extractor import SourceFile
from contractloom.core.workspace import ProjectWorkspace, load_project


def _write(root, rel, text="// file\n"):
    target = root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    return target


@pytest.fixture
def project(tmp_path):
    _write(tmp_path, "main.js", "ipcMain.handle('ping', () => 1);\n")
    _write(tmp_path, "preload.js")
    _write(tmp_path, "src/renderer.js")
    _write(tmp_path, "index.html", "<body></body>\n")
    _write(tmp_path, "styles.css", "body {}\n")
    _write(tmp_path, "node_modules/electron/main.js")
    _write(tmp_path, ".cache/preload.js")
    _write(tmp_path, "dist/renderer.js")
    return tmp_path


class TestLoadProject:
    def test_contract_files_only(self, project):
        ws = load_project(project)
        assert ws.paths == ["index.html", "main.js", "preload.js", "src/renderer.js"]
        assert ws.errors == []

    def test_roles_detected(self, project):
        ws = load_project(project)
        assert ws.role_of("main.js") == ROLE_PRIVILEGED
        assert ws.role_of("preload.js") == ROLE_BRIDGE
        assert ws.role_of("src/renderer.js") == ROLE_UI_SCRIPT
        assert ws.role_of("index.html") == ROLE_MARKUP
        assert ws.role_of("styles.css") is None

    def test_from_directory_is_rooted(self, project):
        ws = ProjectWorkspace.from_directory(project)
        assert ws.root == project
        assert "ipcMain.handle('ping'" in ws.read("main.js")

    def test_unreadable_files_recorded(self, project):
        with patch("pathlib.Path.open", side_effect=OSError("permission denied")):
            ws = load_project(project)

        assert len(ws) == 0
        assert sorted(e.file_path for e in ws.errors) == [
            "index.html", "main.js", "preload.js", "src/renderer.js",
        ]
        assert "permission denied" in ws.errors[0].message

    def test_non_utf8_file_recorded(self, project):
        (project / "preload.js").write_bytes(b"// caf\xe9\n")
        ws = load_project(project)
        assert "preload.js" not in ws
        assert [e.file_path for e in ws.errors] == ["preload.js"]

    def test_line_endings_kept(self, project):
        (project / "main.js").write_bytes(b"a();\r\nb();\r\n")
        ws = load_project(project)
        assert ws.read("main.js") == "a();\r\nb();\r\n"
        ws.write("main.js", ws.read("main.js").replace("b()", "c()"))
        assert (project / "main.js").read_bytes() == b"a();\r\nc();\r\n"

    def test_empty_directory(self, tmp_path):
        assert len(load_project(tmp_path)) == 0


class TestProjectWorkspace:
    def test_from_files_accepts_every_form(self):
        ws = ProjectWorkspace.from_files(
            [
                ("main.js", "a", None),
                {"path": "preload.js", "content": "b"},
                SourceFile("app.js", "c", ROLE_UI_SCRIPT),
                ("notes.txt", "d", None),
            ]
        )
        assert ws.paths == ["app.js", "main.js", "preload.js"]
        assert ws.read("preload.js") == "b"
        assert "notes.txt" not in ws

    def test_unknown_paths(self):
        ws = ProjectWorkspace.from_files([("main.js", "a", None)])
        assert ws.get("other.js") is None
        with pytest.raises(KeyError):
            ws.read("other.js")
        with pytest.raises(KeyError):
            ws.write("other.js", "x")

    def test_in_memory_write(self):
        ws = ProjectWorkspace.from_files([("main.js", "a", None)])
        ws.write("main.js", "b")
        assert ws.read("main.js") == "b"
        assert ws.snapshot() == {"main.js": "b"}

    def test_write_persists_when_rooted(self, project):
        ws = load_project(project)
        ws.write("src/renderer.js", "init();\n")
        assert (project / "src" / "renderer.js").read_text(encoding="utf-8") == "init();\n"

    def test_snapshot_is_a_copy(self):
        ws = ProjectWorkspace.from_files([("main.js", "a", None)])
        snap = ws.snapshot()
        ws.write("main.js", "b")
        assert snap == {"main.js": "a"}


class TestLocking:
    def test_lock_per_path(self):
        ws = ProjectWorkspace()
        assert ws.lock_for("main.js") is ws.lock_for("main.js")
        assert ws.lock_for("main.js") is not ws.lock_for("preload.js")

    def test_locked_holds_and_releases(self):
        ws = ProjectWorkspace()
        with ws.locked(["preload.js", "main.js", "main.js"]):
            assert ws.lock_for("main.js").locked()
            assert ws.lock_for("preload.js").locked()
        assert not ws.lock_for("main.js").locked()
        assert not ws.lock_for("preload.js").locked()

    def test_released_on_error(self):
        ws = ProjectWorkspace()
        with pytest.raises(RuntimeError):
            with ws.locked(["main.js"]):
                raise RuntimeError("boom")
        assert not ws.lock_for("main.js").locked()

    def test_writers_to_one_file_are_serialized(self):
        ws = ProjectWorkspace.from_files([("main.js", "", None)])

        def _append(char):
            for _ in range(50):
                with ws.locked(["main.js"]):
                    ws.write("main.js", ws.read("main.js") + char)

        threads = [threading.Thread(target=_append, args=(c,)) for c in "ab"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        text = ws.read("main.js")
        assert len(text) == 100
        assert text.count("a") == 50
