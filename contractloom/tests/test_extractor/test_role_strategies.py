"""Tests for the role strategies of the contract extractor."""

import pytest

from contractloom.core.constants import (
    CHANNEL_EVENT,
    CHANNEL_INVOKE,
    MENTION_API_CALL,
    MENTION_BRIDGE_METHOD,
    MENTION_CHANNEL,
    MENTION_CLASS,
    MENTION_DYNAMIC_ELEMENT,
    MENTION_ELEMENT,
    MENTION_SELECT_OPTION,
    MENTION_SELECTOR,
    MENTION_STORAGE,
    ROLE_BRIDGE,
    ROLE_MARKUP,
    ROLE_PRIVILEGED,
    ROLE_UI_SCRIPT,
    SIDE_CONSUMER,
    SIDE_PRODUCER,
)
from contractloom.core.extractor import (
    SourceFile,
    detect_role,
    extract_contracts,
    extract_file,
    get_strategy,
    should_skip_directory,
)
from contractloom.core.extractor.models import SHAPE_DESTRUCTURED, SHAPE_POSITIONAL, SHAPE_SINGLE


# =========================================================================
# Sample sources
# =========================================================================

MAIN_JS = """const { app, BrowserWindow, ipcMain } = require('electron');

let mainWindow;

ipcMain.handle('save-note', async (event, { filename, content }) => {
  return { success: true };
});

ipcMain.handle('get-tasks', async () => {
  return tasks;
});

// ipcMain.handle('commented-out', async () => {});

function deleteTask(event, id) {
  return true;
}
ipcMain.handle('delete-task', deleteTask);

function notify() {
  mainWindow.webContents.send('task-updated', task, index);
}
"""

PRELOAD_JS = """const { contextBridge, ipcRenderer } = require('electron');

contextBridge.exposeInMainWorld('api', {
  saveNote: (filename, content) => ipcRenderer.invoke('save-note', filename, content),
  getTasks: () => ipcRenderer.invoke('get-tasks'),
  onTaskUpdated: (callback) => ipcRenderer.on('task-updated', (event, ...args) => callback(...args)),
});
"""

PRELOAD_INDIRECT_JS = """const { contextBridge, ipcRenderer } = require('electron');

const api = {
  addTask(task) {
    return ipcRenderer.invoke('add-task', task);
  },
};

contextBridge.exposeInMainWorld('api', api);
"""

RENDERER_JS = """const modeSelect = document.getElementById('select-mode');
const list = document.querySelector('.task-list li');

async function save() {
  await window.api.saveNote(name, text);
  localStorage.setItem('lastNote', name);
  const item = document.createElement('li');
  item.id = 'task-item';
  item.classList.add('done', 'fresh');
  if (mode === 'Weekly') {
    console.log('weekly');
  }
}
"""

INDEX_HTML = """<!DOCTYPE html>
<html>
<body>
  <!-- <div id="ghost"></div> -->
  <select id="Select-Mode">
    <option value="daily">Daily</option>
    <option>weekly</option>
  </select>
  <ul class="task-list big"></ul>
</body>
</html>
"""


def _extract(path: str, text: str, role: str = None):
    return extract_file(SourceFile(path=path, text=text, role=role or detect_role(path)))


def _by_endpoint(result, kind=None):
    return {m.endpoint: m for m in result.mentions if kind is None or m.kind == kind}


# =========================================================================
# Role detection
# =========================================================================


class TestDetectRole:
    @pytest.mark.parametrize(
        "path, role",
        [
            ("main.js", ROLE_PRIVILEGED),
            ("src/background.ts", ROLE_PRIVILEGED),
            ("preload.js", ROLE_BRIDGE),
            ("src/preload-window.cjs", ROLE_BRIDGE),
            ("renderer.js", ROLE_UI_SCRIPT),
            ("src/app.jsx", ROLE_UI_SCRIPT),
            ("index.html", ROLE_MARKUP),
            ("views/page.HTM", ROLE_MARKUP),
        ],
    )
    def test_roles(self, path, role):
        assert detect_role(path) == role

    def test_non_contract_files(self):
        assert detect_role("styles.css") is None
        assert detect_role("package.json") is None

    def test_skip_directories(self):
        assert should_skip_directory("node_modules")
        assert should_skip_directory(".git")
        assert not should_skip_directory("src")

    def test_unknown_role_strategy(self):
        with pytest.raises(ValueError):
            get_strategy("stylesheet")

    def test_unknown_role_degrades_to_error_result(self):
        result = extract_file(SourceFile(path="x.css", text="a{}", role="stylesheet"))
        assert result.mentions == []
        assert result.errors and result.errors[0].severity == "error"


# =========================================================================
# Privileged process
# =========================================================================


class TestPrivilegedStrategy:
    def test_registrations_are_producers(self):
        mentions = _by_endpoint(_extract("main.js", MAIN_JS), MENTION_CHANNEL)
        assert {"save-note", "get-tasks", "delete-task", "task-updated"} <= set(mentions)
        save = mentions["save-note"]
        assert save.side == SIDE_PRODUCER
        assert save.channel_kind == CHANNEL_INVOKE
        assert save.attributes["method"] == "handle"
        assert save.attributes["async"] is True
        assert save.quote == "'"

    def test_commented_registration_is_ignored(self):
        mentions = _by_endpoint(_extract("main.js", MAIN_JS))
        assert "commented-out" not in mentions

    def test_destructured_handler_shape(self):
        save = _by_endpoint(_extract("main.js", MAIN_JS))["save-note"]
        assert save.shape.kind == SHAPE_DESTRUCTURED
        assert set(save.shape.fields) == {"filename", "content"}

    def test_zero_argument_handler(self):
        tasks = _by_endpoint(_extract("main.js", MAIN_JS))["get-tasks"]
        assert tasks.shape.kind == SHAPE_POSITIONAL
        assert tasks.shape.arity == 0

    def test_named_handler_resolved_in_file(self):
        delete = _by_endpoint(_extract("main.js", MAIN_JS))["delete-task"]
        assert delete.attributes["handler"] == "deleteTask"
        assert delete.shape.kind == SHAPE_SINGLE
        assert delete.shape.names == ("id",)

    def test_webcontents_send_is_event_producer(self):
        event = _by_endpoint(_extract("main.js", MAIN_JS))["task-updated"]
        assert event.channel_kind == CHANNEL_EVENT
        assert event.side == SIDE_PRODUCER
        assert event.shape.kind == SHAPE_POSITIONAL
        assert event.shape.arity == 2

    def test_evidence_line_and_exact_text(self):
        save = _by_endpoint(_extract("main.js", MAIN_JS))["save-note"]
        ev = save.evidence[0]
        assert ev.line == 5
        assert ev.text.startswith("ipcMain.handle('save-note'")
        assert MAIN_JS[ev.start:ev.end] == ev.text
        assert ev.args_text == "(event, { filename, content })"
        assert ev.site.endswith("(event, { filename, content })")

    def test_duplicate_registrations_are_merged(self):
        text = "ipcMain.handle('ping', () => 1);\nipcMain.handle('ping', () => 2);\n"
        result = _extract("main.js", text)
        pings = [m for m in result.mentions if m.endpoint == "ping"]
        assert len(pings) == 1
        assert [ev.line for ev in pings[0].evidence] == [1, 2]


# =========================================================================
# Bridge
# =========================================================================


class TestBridgeStrategy:
    def test_invoke_consumers_with_argument_shape(self):
        mentions = _by_endpoint(_extract("preload.js", PRELOAD_JS), MENTION_CHANNEL)
        save = mentions["save-note"]
        assert save.side == SIDE_CONSUMER
        assert save.channel_kind == CHANNEL_INVOKE
        assert save.shape.kind == SHAPE_POSITIONAL
        assert save.shape.arity == 2
        assert save.evidence[0].args_text == "'save-note', filename, content"

    def test_listener_is_event_consumer(self):
        event = _by_endpoint(_extract("preload.js", PRELOAD_JS), MENTION_CHANNEL)["task-updated"]
        assert event.channel_kind == CHANNEL_EVENT
        assert event.shape.variadic

    def test_exposed_methods_map_to_channels(self):
        methods = _by_endpoint(_extract("preload.js", PRELOAD_JS), MENTION_BRIDGE_METHOD)
        assert set(methods) == {"saveNote", "getTasks", "onTaskUpdated"}
        assert methods["saveNote"].attributes["channel"] == "save-note"
        assert methods["saveNote"].attributes["api"] == "api"
        assert methods["onTaskUpdated"].attributes["channel_kind"] == CHANNEL_EVENT

    def test_exposed_object_through_variable(self):
        methods = _by_endpoint(_extract("preload.js", PRELOAD_INDIRECT_JS), MENTION_BRIDGE_METHOD)
        assert methods["addTask"].attributes["channel"] == "add-task"
        assert methods["addTask"].shape.kind == SHAPE_SINGLE


# =========================================================================
# UI script
# =========================================================================


class TestUIScriptStrategy:
    def test_api_calls(self):
        calls = _by_endpoint(_extract("renderer.js", RENDERER_JS), MENTION_API_CALL)
        assert calls["saveNote"].attributes["api"] == "api"
        assert calls["saveNote"].shape.arity == 2

    def test_browser_globals_are_not_api_calls(self):
        calls = _by_endpoint(_extract("renderer.js", RENDERER_JS), MENTION_API_CALL)
        assert "setItem" not in calls

    def test_selectors(self):
        selectors = _by_endpoint(_extract("renderer.js", RENDERER_JS), MENTION_SELECTOR)
        assert selectors["select-mode"].attributes["selector_type"] == "id"
        assert selectors["select-mode"].evidence[0].args_text == "'select-mode'"
        assert selectors["task-list"].attributes["selector_type"] == "class"

    def test_dynamic_elements(self):
        dynamic = _by_endpoint(_extract("renderer.js", RENDERER_JS), MENTION_DYNAMIC_ELEMENT)
        assert dynamic["task-item"].attributes["selector_type"] == "id"
        assert {"done", "fresh"} <= set(dynamic)

    def test_comparison_is_not_an_id_assignment(self):
        text = "if (el.id === 'x') { go(); }\n"
        result = _extract("renderer.js", text)
        assert not [m for m in result.mentions if m.kind == MENTION_DYNAMIC_ELEMENT]

    def test_storage_keys(self):
        storage = _by_endpoint(_extract("renderer.js", RENDERER_JS), MENTION_STORAGE)
        assert storage["lastNote"].attributes["area"] == "localStorage"

    def test_literals_collected(self):
        result = _extract("renderer.js", RENDERER_JS)
        assert "Weekly" in result.literals


# =========================================================================
# Markup
# =========================================================================


class TestMarkupStrategy:
    def test_elements_and_classes(self):
        result = _extract("index.html", INDEX_HTML)
        elements = _by_endpoint(result, MENTION_ELEMENT)
        classes = _by_endpoint(result, MENTION_CLASS)
        assert "Select-Mode" in elements
        assert elements["Select-Mode"].evidence[0].args_text == 'id="Select-Mode"'
        assert {"task-list", "big"} <= set(classes)

    def test_commented_markup_is_ignored(self):
        assert "ghost" not in _by_endpoint(_extract("index.html", INDEX_HTML))

    def test_select_options(self):
        options = _by_endpoint(_extract("index.html", INDEX_HTML), MENTION_SELECT_OPTION)
        assert options["daily"].attributes["select_id"] == "Select-Mode"
        assert options["daily"].evidence[0].args_text == 'value="daily"'
        assert options["weekly"].attributes["has_value"] is False


class TestExtractContracts:
    def test_results_sorted_by_path(self):
        output = extract_contracts(
            [
                SourceFile("renderer.js", RENDERER_JS, ROLE_UI_SCRIPT),
                SourceFile("main.js", MAIN_JS, ROLE_PRIVILEGED),
            ]
        )
        assert [r.file_path for r in output.results] == ["main.js", "renderer.js"]
        assert output.roles() == {"main.js": ROLE_PRIVILEGED, "renderer.js": ROLE_UI_SCRIPT}

    def test_unbalanced_source_does_not_raise(self):
        result = _extract("main.js", "ipcMain.handle('broken', async (event => {\n")
        assert isinstance(result.mentions, list)
