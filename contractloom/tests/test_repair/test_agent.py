"""Tests for the AI repair agent.

The model is always a MagicMock; no provider is contacted.
"""

import json
import time
from unittest.mock import MagicMock

import pytest

from contractloom.core.config import PipelineSettings
from contractloom.core.repair import RepairAgent
from contractloom.core.repair.llm import create_repair_llm
from contractloom.core.validation.models import Issue, IssueEvidence, IssueKind, ValidationReport
from contractloom.core.workspace import ProjectWorkspace


# ── Fixtures ─────────────────────────────────────────────────────────────────

MAIN_JS = "ipcMain.handle('save-note', async (event, data) => data);\n"
PRELOAD_JS = "saveNote: (data) => ipcRenderer.invoke('save_note', data),\n"

PATCH = {
    "fixes": [
        {
            "file": "preload.js",
            "replacements": [
                {"search": "invoke('save_note'", "replace": "invoke('save-note'", "reason": "match handler"}
            ],
        }
    ]
}


def _workspace():
    return ProjectWorkspace.from_files([("main.js", MAIN_JS, None), ("preload.js", PRELOAD_JS, None)])


def _report():
    issue = Issue(
        kind=IssueKind.NAME_MISMATCH,
        endpoint="save-note",
        description="Bridge invokes 'save_note' but the handler is 'save-note'",
        severity="high",
        file="preload.js",
        evidence=[IssueEvidence("preload.js", 1, PRELOAD_JS.strip())],
    )
    return ValidationReport(issues=[issue])


def _counter():
    counter = MagicMock()
    counter.count.side_effect = lambda text: len(text) // 4
    return counter


def _make_llm(text="", raw=None):
    llm = MagicMock()
    llm.complete.return_value = MagicMock(text=text, raw=raw if raw is not None else {})
    return llm


def _make_agent(ws, llm=None, **settings):
    return RepairAgent(ws, settings=PipelineSettings(**settings), llm=llm, counter=_counter())


# ── Tests: successful repair ─────────────────────────────────────────────────


class TestRepairSuccess:
    def test_patch_set_applied(self):
        ws = _workspace()
        llm = _make_llm(json.dumps(PATCH))

        result = _make_agent(ws, llm).repair(_report())

        assert result.attempted and result.success
        assert not result.needs_manual_repair
        assert result.applied_count == 1
        assert result.files_modified == ["preload.js"]
        assert "invoke('save-note'" in ws.read("preload.js")
        assert result.prompt_tokens > 0
        llm.complete.assert_called_once()
        assert "save_note" in llm.complete.call_args[0][0]

    def test_fenced_reply_with_prose(self):
        ws = _workspace()
        llm = _make_llm("Here you go:\n```json\n" + json.dumps(PATCH) + "\n```")
        assert _make_agent(ws, llm).repair(_report()).success

    def test_missing_search_text_counted(self):
        ws = _workspace()
        patch = {"fixes": [{"file": "main.js", "replacements": [{"search": "not in file", "replace": "x"}]}]}
        result = _make_agent(ws, _make_llm(json.dumps(patch))).repair(_report())

        assert result.success
        assert result.not_found_count == 1
        assert result.files_modified == []
        assert result.to_dict()["files"] == {"main.js": {"applied": 0, "notFound": 1}}

    def test_llm_created_lazily_from_factory(self):
        ws = _workspace()
        factory = MagicMock(return_value=_make_llm(json.dumps(PATCH)))
        agent = RepairAgent(ws, settings=PipelineSettings(), llm_factory=factory, counter=_counter())

        assert agent.repair(_report()).success
        factory.assert_called_once_with(agent.settings)


# ── Tests: failures needing manual repair ────────────────────────────────────


class TestManualRepairFailures:
    def test_unparsable_reply_leaves_files_unchanged(self):
        ws = _workspace()
        before = ws.snapshot()

        result = _make_agent(ws, _make_llm("I could not find any problem.")).repair(_report())

        assert not result.success
        assert result.needs_manual_repair
        assert result.error_kind == "parse"
        assert ws.snapshot() == before

    def test_schema_violation(self):
        ws = _workspace()
        result = _make_agent(ws, _make_llm('{"fixes": [{"replacements": []}]}')).repair(_report())
        assert result.error_kind == "schema"
        assert result.needs_manual_repair

    def test_content_filter_finish_reason(self):
        ws = _workspace()
        llm = _make_llm(json.dumps(PATCH), raw={"choices": [{"finish_reason": "content_filter"}]})

        result = _make_agent(ws, llm).repair(_report())

        assert result.error_kind == "content_policy"
        assert result.needs_manual_repair
        assert "invoke('save_note'" in ws.read("preload.js")

    def test_content_policy_exception(self):
        llm = MagicMock()
        llm.complete.side_effect = RuntimeError("Request rejected by the content policy")

        result = _make_agent(_workspace(), llm).repair(_report())

        assert result.error_kind == "content_policy"
        assert result.needs_manual_repair
        assert not result.success

    def test_prompt_too_large_skips_model(self):
        llm = _make_llm(json.dumps(PATCH))
        result = _make_agent(_workspace(), llm, max_prompt_tokens=10).repair(_report())

        assert result.error_kind == "prompt_too_large"
        assert result.needs_manual_repair
        llm.complete.assert_not_called()

    def test_cancel_during_call_applies_nothing(self):
        ws = _workspace()
        before = ws.snapshot()
        llm = MagicMock()
        agent = _make_agent(ws, llm)

        def _complete(prompt):
            agent.cancel()
            return MagicMock(text=json.dumps(PATCH), raw={})

        llm.complete.side_effect = _complete
        result = agent.repair(_report())

        assert result.error_kind == "cancelled"
        assert result.needs_manual_repair
        assert ws.snapshot() == before


# ── Tests: transport failures ────────────────────────────────────────────────


class TestTransportFailures:
    def test_connection_error(self):
        llm = MagicMock()
        llm.complete.side_effect = ConnectionError("connection reset by peer")

        result = _make_agent(_workspace(), llm).repair(_report())

        assert result.attempted
        assert not result.success
        assert not result.needs_manual_repair
        assert result.error_kind == "transport"

    def test_factory_failure_is_transport(self):
        factory = MagicMock(side_effect=RuntimeError("OPENAI_API_KEY not set"))
        agent = RepairAgent(_workspace(), settings=PipelineSettings(), llm_factory=factory, counter=_counter())

        result = agent.repair(_report())

        assert result.error_kind == "transport"
        assert not result.needs_manual_repair

    def test_timeout_abandons_call(self):
        ws = _workspace()
        before = ws.snapshot()
        llm = MagicMock()

        def _slow(prompt):
            time.sleep(1.0)
            return MagicMock(text=json.dumps(PATCH), raw={})

        llm.complete.side_effect = _slow
        agent = _make_agent(ws, llm, repair_timeout_seconds=0.2)

        started = time.monotonic()
        result = agent.repair(_report())

        assert time.monotonic() - started < 1.0
        assert result.error_kind == "timeout"
        assert not result.success
        assert not result.needs_manual_repair
        time.sleep(1.0)
        assert ws.snapshot() == before

    def test_agent_usable_after_timeout(self):
        ws = _workspace()
        llm = MagicMock()
        replies = [0.6, 0.0]

        def _complete(prompt):
            time.sleep(replies.pop(0))
            return MagicMock(text=json.dumps(PATCH), raw={})

        llm.complete.side_effect = _complete
        agent = _make_agent(ws, llm, repair_timeout_seconds=0.2)

        assert agent.repair(_report()).error_kind == "timeout"
        time.sleep(0.6)
        result = agent.repair(_report())

        assert result.success
        assert result.error_kind is None
        assert "invoke('save-note'" in ws.read("preload.js")


class TestCreateRepairLlm:
    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_repair_llm(PipelineSettings(repair_provider="carrier-pigeon"))
