"""Tests for the contract document loader, naming policies and actual-set builder."""

import json

import pytest

from contractloom.core.constants import (
    CHANNEL_EVENT,
    CHANNEL_INVOKE,
    ROLE_BRIDGE,
    ROLE_PRIVILEGED,
    ROLE_UI_SCRIPT,
)
from contractloom.core.contracts import (
    FileRef,
    NamingStyle,
    build_actual_contracts,
    canonical_form,
    choose_canonical_style,
    classify_style,
    load_expected_contracts,
    logical_key,
    normalize_path,
)
from contractloom.core.contracts.naming import (
    camel_method_name,
    convert,
    fixed_style_policy,
    spec_preferring_policy,
)
from contractloom.core.extractor import SourceFile, extract_contracts
from contractloom.core.extractor.models import SHAPE_DESTRUCTURED, SHAPE_POSITIONAL, SHAPE_SINGLE


CONTRACTS = {
    "api": [
        {
            "endpoint": "save-note",
            "producers": ["main"],
            "consumers": ["preload.js"],
            "parameterSchema": {"filename": "string", "content": "string"},
            "purpose": "Persist a note",
        },
        {"channel": "get-tasks", "producers": ["main"], "consumers": ["bridge"]},
    ],
    "events": [{"name": "task-updated", "producers": ["main"], "consumers": ["preload"]}],
    "dom": [
        {"id": "select-mode", "tag": "select"},
        {"className": "task-list"},
        {"selector": "#save-btn", "accessedBy": ["renderer"]},
    ],
    "storage": ["lastNote", {"key": "theme", "area": "sessionStorage"}],
}


# =========================================================================
# Loader
# =========================================================================


class TestLoadExpectedContracts:
    def test_contracts_object(self):
        expected = load_expected_contracts(CONTRACTS)
        assert expected.present
        assert expected.spec_names() == ["save-note", "get-tasks", "task-updated"]
        save = expected.endpoints[0]
        assert save.channel_kind == CHANNEL_INVOKE
        assert save.parameter_shape.kind == SHAPE_DESTRUCTURED
        assert set(save.parameter_shape.fields) == {"filename", "content"}
        assert save.producers[0].role == ROLE_PRIVILEGED
        assert save.consumers[0].role == ROLE_BRIDGE
        assert save.purpose == "Persist a note"
        assert expected.endpoints[2].channel_kind == CHANNEL_EVENT

    def test_dom_and_storage_sections(self):
        expected = load_expected_contracts(CONTRACTS)
        assert [d.selector for d in expected.dom] == ["#select-mode", ".task-list", "#save-btn"]
        assert expected.dom[0].tag == "select"
        assert expected.dom[1].selector_type == "class"
        assert expected.dom[2].consumers[0].role == ROLE_UI_SCRIPT
        assert [(s.key, s.area) for s in expected.storage] == [
            ("lastNote", "localStorage"),
            ("theme", "sessionStorage"),
        ]

    def test_architecture_document(self):
        document = {"output": {"coder_instructions": {"contracts": CONTRACTS}}}
        assert len(load_expected_contracts(document).endpoints) == 3

    def test_nested_contracts_key(self):
        assert len(load_expected_contracts({"contracts": CONTRACTS}).endpoints) == 3

    def test_json_string_and_path(self, tmp_path):
        text = json.dumps({"contracts": CONTRACTS})
        assert len(load_expected_contracts(text).endpoints) == 3
        spec = tmp_path / "contracts.json"
        spec.write_text(text, encoding="utf-8")
        assert len(load_expected_contracts(spec).endpoints) == 3
        assert len(load_expected_contracts(str(spec)).endpoints) == 3

    def test_keyed_section_form(self):
        expected = load_expected_contracts({"api": {"ping": {"producers": ["main"]}}})
        assert expected.spec_names() == ["ping"]

    def test_parameter_schema_forms(self):
        expected = load_expected_contracts(
            {
                "api": [
                    {"name": "a", "parameters": ["id"]},
                    {"name": "b", "params": ["x", "y"]},
                    {"name": "c", "payload": "string"},
                    {"name": "d", "parameterSchema": {"kind": "positional", "names": ["p", "q"]}},
                    {"name": "e"},
                ]
            }
        )
        shapes = {e.name: e.parameter_shape for e in expected.endpoints}
        assert shapes["a"].kind == SHAPE_SINGLE
        assert shapes["b"].kind == SHAPE_POSITIONAL and shapes["b"].arity == 2
        assert shapes["c"].kind == SHAPE_SINGLE
        assert shapes["d"].arity == 2
        assert shapes["e"] is None

    def test_malformed_entries_become_warnings(self):
        expected = load_expected_contracts(
            {"api": [{"producers": ["main"]}, {"name": "ok"}, {"name": "ok"}], "dom": [{"tag": "div"}]}
        )
        assert expected.spec_names() == ["ok"]
        assert len(expected.warnings) == 3

    def test_none_is_absent(self):
        expected = load_expected_contracts(None)
        assert not expected.present
        assert expected.is_empty

    @pytest.mark.parametrize("source", ["{not json", "[1, 2]", {"unrelated": 1}])
    def test_malformed_document_yields_empty_set(self, source):
        expected = load_expected_contracts(source)
        assert expected.is_empty
        assert expected.warnings

    def test_missing_file(self, tmp_path):
        expected = load_expected_contracts(tmp_path / "missing.json")
        assert expected.is_empty
        assert "not found" in expected.warnings[0]


class TestFileRef:
    def test_role_aliases(self):
        assert FileRef.parse("main").role == ROLE_PRIVILEGED
        assert FileRef.parse("Renderer").role == ROLE_UI_SCRIPT

    def test_path_reference(self):
        ref = FileRef.parse("./src/preload.js")
        assert ref.path == "src/preload.js"
        assert ref.role == ROLE_BRIDGE
        assert ref.matches_path("src/preload.js")
        assert ref.matches_path("app/src/preload.js")
        assert not ref.matches_path("main.js")

    def test_stem_reference(self):
        assert FileRef.parse("app/renderer").matches_path("renderer.js")

    def test_normalize_path_strips_session_prefix(self):
        assert normalize_path("0f8fad5b-d9cb-469f-a165-70867728950e/main.js") == "main.js"
        assert normalize_path(".\\src\\main.js") == "src/main.js"


# =========================================================================
# Naming
# =========================================================================


class TestNaming:
    @pytest.mark.parametrize(
        "name, style",
        [
            ("add-task", NamingStyle.KEBAB),
            ("addTask", NamingStyle.CAMEL),
            ("add_task", NamingStyle.SNAKE),
            ("AddTask", NamingStyle.PASCAL),
            ("task:add", NamingStyle.NAMESPACED),
            ("tasks", NamingStyle.LOWER),
            ("Add-Task!", NamingStyle.OTHER),
        ],
    )
    def test_classify_style(self, name, style):
        assert classify_style(name) == style

    def test_logical_key_ignores_style_and_order(self):
        forms = ["add-task", "addTask", "add_task", "AddTask", "task:add"]
        assert len({logical_key(f) for f in forms}) == 1
        assert logical_key("add-task") != logical_key("add-tasks")

    def test_convert(self):
        assert convert("saveNote", NamingStyle.KEBAB) == "save-note"
        assert convert("save-note", NamingStyle.SNAKE) == "save_note"
        assert convert("task:add", NamingStyle.CAMEL) == "taskAdd"
        assert camel_method_name("get-all-tasks") == "getAllTasks"

    def test_majority_style(self):
        assert choose_canonical_style({"add-task": 3, "addTask": 1}) == NamingStyle.KEBAB
        assert choose_canonical_style({"add-task": 1, "addTask": 2}) == NamingStyle.CAMEL

    def test_tie_prefers_kebab(self):
        assert choose_canonical_style({"add-task": 1, "addTask": 1}) == NamingStyle.KEBAB

    def test_single_words_do_not_vote(self):
        assert choose_canonical_style({"tasks": 5, "get_tasks": 1}) == NamingStyle.SNAKE
        assert choose_canonical_style({"tasks": 2}) == NamingStyle.KEBAB

    def test_canonical_form_prefers_observed_form(self):
        assert canonical_form({"task:add": 2, "add-task": 3}) == "add-task"

    def test_canonical_form_converts_when_no_form_fits(self):
        policy = fixed_style_policy(NamingStyle.SNAKE)
        assert canonical_form({"add-task": 1, "addTask": 1}, policy) == "add_task"

    def test_spec_preferring_policy(self):
        policy = spec_preferring_policy(["save_note", "get_tasks"])
        assert canonical_form({"add-task": 4}, policy) == "add_task"
        fallback = spec_preferring_policy(["ping"])
        assert canonical_form({"addTask": 2, "add-task": 1}, fallback) == "addTask"

    def test_canonical_form_needs_evidence(self):
        with pytest.raises(ValueError):
            canonical_form({})


# =========================================================================
# Actual contracts
# =========================================================================

MAIN_JS = """const { ipcMain } = require('electron');
ipcMain.handle('save-note', async (event, { filename, content }) => ({ success: true }));
"""

PRELOAD_JS = """const { contextBridge, ipcRenderer } = require('electron');
contextBridge.exposeInMainWorld('api', {
  saveNote: (filename, content) => ipcRenderer.invoke('save-note', filename, content),
});
"""

RENDERER_JS = """window.api.saveNote(name, text);
window.api.deleteAll();
"""


class TestBuildActualContracts:
    def _build(self):
        return build_actual_contracts(
            extract_contracts(
                [
                    SourceFile("main.js", MAIN_JS, ROLE_PRIVILEGED),
                    SourceFile("preload.js", PRELOAD_JS, ROLE_BRIDGE),
                    SourceFile("renderer.js", RENDERER_JS, ROLE_UI_SCRIPT),
                ]
            )
        )

    def test_channels_keyed_by_kind_and_name(self):
        actual = self._build()
        endpoint = actual.endpoints[(CHANNEL_INVOKE, "save-note")]
        assert [str(p) for p in endpoint.producers] == ["main.js"]
        assert sorted(str(c) for c in endpoint.consumers) == ["preload.js", "renderer.js"]
        assert endpoint.parameter_shape.kind == SHAPE_DESTRUCTURED

    def test_ui_calls_resolved_through_bridge(self):
        actual = self._build()
        endpoint = actual.endpoints[(CHANNEL_INVOKE, "save-note")]
        assert any(m.file_path == "renderer.js" for m in endpoint.consumer_mentions)
        assert [m.file_path for m in endpoint.producer_mentions] == ["main.js"]
        assert [c.endpoint for c in actual.unresolved_calls] == ["deleteAll"]

    def test_roles_and_grouping(self):
        actual = self._build()
        assert actual.files_with_role(ROLE_BRIDGE) == ["preload.js"]
        groups = actual.endpoints_by_key(CHANNEL_INVOKE)
        assert list(groups) == [("note", "save")]
