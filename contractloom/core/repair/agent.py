"""AI-assisted repair: one model call, one validated patch set.

The agent sends the outstanding issues and a size-bounded view of the
project to the repair model and applies the search/replace patch set it
returns. The model's reply is parsed and schema-validated before any file
is touched, so a malformed reply leaves the workspace unchanged.

Failure kinds:
    transport, timeout          -> success False (hard failure)
    content_policy, parse,
    schema, prompt_too_large,
    cancelled                   -> needs_manual_repair
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable, Optional

from ..config import PipelineSettings
from ..contracts.models import ExpectedContractSet
from ..errors import RepairAgentError
from ..gateway import finish_reason
from ..utils.token_counter import TokenCounter
from ..validation.models import ValidationReport
from ..workspace import ProjectWorkspace
from .llm import create_repair_llm
from .models import RepairReport
from .patches import apply_patch_set, parse_patch_result, summarize_patch_set
from .prompts import build_repair_prompt

logger = logging.getLogger(__name__)

CONTENT_POLICY_MARKERS = (
    "content_policy",
    "content policy",
    "content_filter",
    "content management policy",
    "safety",
    "blocked",
)

_POLL_SECONDS = 0.25


def _is_content_policy(text: str) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in CONTENT_POLICY_MARKERS)


class RepairAgent:
    """Last-resort repair through a language model.

    Args:
        workspace: Files to repair in place
        settings: Timeout, token ceiling, provider selection
        llm: Pre-built LLM (anything with ``complete(prompt)``); created
            lazily from ``settings`` when omitted
    """

    def __init__(
        self,
        workspace: ProjectWorkspace,
        settings: Optional[PipelineSettings] = None,
        llm: Any = None,
        llm_factory: Callable[[PipelineSettings], Any] = create_repair_llm,
        counter: Optional[TokenCounter] = None,
    ):
        self.workspace = workspace
        self.settings = settings or PipelineSettings()
        self._llm = llm
        self._llm_factory = llm_factory
        self._counter = counter
        self.cancel_event = threading.Event()

    def cancel(self) -> None:
        """Abandon the pending model call; no file is modified afterwards."""
        self.cancel_event.set()

    def repair(self, report: ValidationReport, expected: Optional[ExpectedContractSet] = None) -> RepairReport:
        """Run one repair attempt. Never raises."""
        self.cancel_event.clear()
        result = RepairReport(attempted=True)
        try:
            prompt = build_repair_prompt(report, self.workspace, self.settings, expected, self._counter)
            result.prompt_tokens = prompt.tokens
            result.dropped_files = list(prompt.dropped_files)

            raw = self._call_model(prompt.text)
            parsed = parse_patch_result(raw)
            if not parsed.ok:
                raise parsed.error
            if self.cancel_event.is_set():
                raise RepairAgentError("cancelled", "repair was cancelled before applying the patch set")

            n_files, n_replacements = summarize_patch_set(parsed.patch_set)
            logger.info(f"Applying model patch set: {n_replacements} replacement(s) across {n_files} file(s)")
            applied = apply_patch_set(self.workspace, parsed.patch_set)
        except RepairAgentError as e:
            logger.warning(f"AI repair failed ({e.kind}): {e.message}")
            result.error_kind = e.kind
            result.message = e.message
            result.needs_manual_repair = not e.is_transport_failure
            return result

        result.files = applied.files
        result.files_modified = applied.files_modified
        result.success = True
        result.message = (
            f"{result.applied_count} replacement(s) applied, {result.not_found_count} not found"
            + (f", {len(applied.rejected_files)} file(s) rejected" if applied.rejected_files else "")
        )
        logger.info(f"AI repair: {result.message}")
        return result

    # -------------------------------------------------------------------------
    # Model call
    # -------------------------------------------------------------------------

    def _get_llm(self) -> Any:
        if self._llm is None:
            try:
                self._llm = self._llm_factory(self.settings)
            except Exception as e:
                raise RepairAgentError("transport", f"cannot create repair model: {e}")
        return self._llm

    def _complete(self, prompt: str) -> str:
        response = self._get_llm().complete(prompt)
        if finish_reason(getattr(response, "raw", None)) == "content_filter":
            raise RepairAgentError("content_policy", "model output was blocked by the provider's content filter")
        return response.text or ""

    def _call_model(self, prompt: str) -> str:
        """Run the completion in a worker thread under the configured timeout."""
        timeout = self.settings.repair_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="contractloom-repair")
        future = executor.submit(self._complete, prompt)
        deadline = time.monotonic() + timeout
        try:
            while True:
                if self.cancel_event.is_set():
                    future.cancel()
                    raise RepairAgentError("cancelled", "repair was cancelled while waiting for the model")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    future.cancel()
                    raise RepairAgentError("timeout", f"model did not answer within {timeout:.0f}s")
                try:
                    return future.result(timeout=min(_POLL_SECONDS, remaining))
                except FutureTimeout:
                    continue
                except RepairAgentError:
                    raise
                except Exception as e:
                    if _is_content_policy(str(e)):
                        raise RepairAgentError("content_policy", f"provider refused the request: {e}")
                    raise RepairAgentError("transport", f"{type(e).__name__}: {e}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
