"""Tests for the command-line entry point."""

import json

import pytest

from contractloom.__main__ import build_parser, main


MAIN_JS = """const { ipcMain } = require('electron');
ipcMain.handle('save-note', async (event, { filename, content }) => ({ success: true }));
"""

PRELOAD_OBJECT = """const { contextBridge, ipcRenderer } = require('electron');
contextBridge.exposeInMainWorld('api', {
  saveNote: (filename, content) => ipcRenderer.invoke('save-note', { filename, content }),
});
"""

PRELOAD_POSITIONAL = PRELOAD_OBJECT.replace("{ filename, content })", "filename, content)")
PRELOAD_EXTRA_ARG = PRELOAD_OBJECT.replace("{ filename, content })", "filename, content, tags)")

SPEC = {"api": [{"endpoint": "save-note", "parameterSchema": {"filename": "string", "content": "string"}}]}


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Point the config loader at an empty directory so defaults apply."""
    monkeypatch.setenv("CONTRACTLOOM_CONFIG_DIR", str(tmp_path_factory.mktemp("config")))
    monkeypatch.setattr("contractloom.core.config.config_loader._config_cache", None)


def _project(tmp_path, preload):
    app = tmp_path / "app"
    app.mkdir()
    (app / "main.js").write_text(MAIN_JS, encoding="utf-8")
    (app / "preload.js").write_text(preload, encoding="utf-8")
    spec = tmp_path / "contracts.json"
    spec.write_text(json.dumps(SPEC), encoding="utf-8")
    return app, spec


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["app"])
        assert args.project_dir == "app"
        assert args.spec is None
        assert not args.no_ai and not args.dry_run and not args.json
        assert args.log_level == "WARNING"


class TestMain:
    def test_valid_project_exits_zero(self, tmp_path, capsys):
        app, spec = _project(tmp_path, PRELOAD_OBJECT)

        assert main([str(app), "--spec", str(spec), "--json", "--log-level", "ERROR"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["state"] == "valid"
        assert data["isValid"] is True

    def test_auto_fix_writes_to_disk(self, tmp_path, capsys):
        app, spec = _project(tmp_path, PRELOAD_POSITIONAL)

        assert main([str(app), "--spec", str(spec), "--no-ai"]) == 0

        assert "{ filename, content }" in (app / "preload.js").read_text(encoding="utf-8")
        assert "Contract Verification Pipeline" in capsys.readouterr().out

    def test_dry_run_reports_without_writing(self, tmp_path, capsys):
        app, spec = _project(tmp_path, PRELOAD_POSITIONAL)

        assert main([str(app), "--spec", str(spec), "--dry-run", "--json", "--log-level", "ERROR"]) == 1

        assert (app / "preload.js").read_text(encoding="utf-8") == PRELOAD_POSITIONAL
        data = json.loads(capsys.readouterr().out)
        assert data["state"] == "invalid"
        assert data["patchReport"] is None

    def test_remaining_issues_exit_one(self, tmp_path, capsys):
        app, spec = _project(tmp_path, PRELOAD_EXTRA_ARG)

        assert main([str(app), "--spec", str(spec), "--no-ai", "--json", "--log-level", "ERROR"]) == 1
        assert json.loads(capsys.readouterr().out)["finalReport"]["summary"]["totalIssues"] >= 1

    def test_missing_project_dir(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing")]) == 2
        assert "is not a directory" in capsys.readouterr().err

    def test_missing_spec_file(self, tmp_path, capsys):
        app, _ = _project(tmp_path, PRELOAD_OBJECT)
        assert main([str(app), "--spec", str(tmp_path / "nope.json")]) == 2
        assert "not found" in capsys.readouterr().err
