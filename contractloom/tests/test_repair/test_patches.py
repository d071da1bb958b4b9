"""Tests for parsing and applying model patch documents."""

import json

import pytest

from contractloom.core.errors import RepairAgentError
from contractloom.core.repair import PatchSet, apply_patch_set, parse_patch_output, parse_patch_result
from contractloom.core.repair.patches import resolve_patch_path, summarize_patch_set
from contractloom.core.workspace import ProjectWorkspace


DOCUMENT = {
    "fixes": [
        {
            "file": "preload.js",
            "replacements": [
                {"search": "invoke('save_note'", "replace": "invoke('save-note'", "reason": "channel name"}
            ],
        }
    ]
}


def _workspace():
    return ProjectWorkspace.from_files(
        [
            ("main.js", "ipcMain.handle('save-note', () => 1);\n", None),
            ("src/preload.js", "ipcRenderer.invoke('save_note');\nipcRenderer.invoke('save_note');\n", None),
            ("index.html", "<body></body>\n", None),
        ]
    )


class TestParsePatchOutput:
    def test_plain_json(self):
        patch_set = parse_patch_output(json.dumps(DOCUMENT))
        assert patch_set.fixes[0].file == "preload.js"
        assert patch_set.fixes[0].replacements[0].reason == "channel name"

    def test_fenced_json_with_prose(self):
        raw = "Here is the fix:\n```json\n" + json.dumps(DOCUMENT) + "\n```\nLet me know."
        assert parse_patch_output(raw).fixes[0].replacements[0].search == "invoke('save_note'"

    def test_json_embedded_in_prose(self):
        raw = "Sure! " + json.dumps(DOCUMENT) + " Done."
        assert len(parse_patch_output(raw).fixes) == 1

    def test_empty_fix_list(self):
        assert parse_patch_output('{"fixes": []}').fixes == []

    @pytest.mark.parametrize("raw", ["", "no json here", "```\nnot json\n```"])
    def test_unparsable_output(self, raw):
        with pytest.raises(RepairAgentError) as exc_info:
            parse_patch_output(raw)
        assert exc_info.value.kind == "parse"
        assert not exc_info.value.is_transport_failure

    @pytest.mark.parametrize(
        "document",
        [
            {"fixes": [{"replacements": []}]},
            {"fixes": [{"file": "a.js", "replacements": [{"search": "", "replace": "x"}]}]},
            {"fixes": "all of them"},
        ],
    )
    def test_schema_violations(self, document):
        with pytest.raises(RepairAgentError) as exc_info:
            parse_patch_output(json.dumps(document))
        assert exc_info.value.kind == "schema"

    def test_non_raising_form(self):
        assert parse_patch_result(json.dumps(DOCUMENT)).ok
        failed = parse_patch_result("nope")
        assert not failed.ok
        assert failed.error.kind == "parse"

    def test_summary(self):
        assert summarize_patch_set(PatchSet.model_validate(DOCUMENT)) == (1, 1)


class TestResolvePatchPath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("main.js", "main.js"),
            ("./main.js", "main.js"),
            ("preload.js", "src/preload.js"),
            ("src\\preload.js", "src/preload.js"),
            ("/etc/passwd", None),
            ("C:/app/main.js", None),
            ("../main.js", None),
            ("src/../../main.js", None),
            ("renderer.js", None),
        ],
    )
    def test_resolution(self, raw, expected):
        assert resolve_patch_path(_workspace(), raw) == expected

    def test_ambiguous_basename(self):
        ws = ProjectWorkspace.from_files(
            [("a/preload.js", "x", None), ("b/preload.js", "y", None)]
        )
        assert resolve_patch_path(ws, "preload.js") is None


class TestApplyPatchSet:
    def test_first_occurrence_only(self):
        ws = _workspace()
        result = apply_patch_set(ws, PatchSet.model_validate(DOCUMENT))

        assert ws.read("src/preload.js") == (
            "ipcRenderer.invoke('save-note');\nipcRenderer.invoke('save_note');\n"
        )
        assert result.files["src/preload.js"].applied == 1
        assert result.files_modified == ["src/preload.js"]

    def test_not_found_is_counted_and_skipped(self):
        ws = _workspace()
        document = {
            "fixes": [
                {
                    "file": "main.js",
                    "replacements": [
                        {"search": "absent text", "replace": "x"},
                        {"search": "() => 1", "replace": "async () => 1"},
                    ],
                }
            ]
        }
        result = apply_patch_set(ws, PatchSet.model_validate(document))

        assert result.files["main.js"].to_dict() == {"applied": 1, "notFound": 1}
        assert "async () => 1" in ws.read("main.js")

    def test_unsafe_paths_rejected_without_writes(self):
        ws = _workspace()
        before = ws.snapshot()
        document = {"fixes": [{"file": "../outside.js", "replacements": [{"search": "a", "replace": "b"}]}]}

        result = apply_patch_set(ws, PatchSet.model_validate(document))

        assert result.rejected_files == ["../outside.js"]
        assert result.files_modified == []
        assert ws.snapshot() == before

    def test_writes_to_disk_when_rooted(self, tmp_path):
        (tmp_path / "main.js").write_text("ipcMain.handle('a', () => 1);\n", encoding="utf-8")
        ws = ProjectWorkspace.from_directory(tmp_path)
        document = {"fixes": [{"file": "main.js", "replacements": [{"search": "'a'", "replace": "'b'"}]}]}

        apply_patch_set(ws, PatchSet.model_validate(document))

        assert (tmp_path / "main.js").read_text(encoding="utf-8") == "ipcMain.handle('b', () => 1);\n"
