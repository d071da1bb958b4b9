"""LLM Gateway: logging, retry and usage metrics around the repair model.

Wraps any LlamaIndex LLM as a CustomLLM subclass, so the repair agent talks
to one object regardless of provider.

Features:
- Call logging (prompt/response size, latency, model)
- Token tracking (provider usage when reported, tiktoken otherwise)
- Retry with exponential backoff on rate limits and connection errors
- Cost estimation by model
- Thread-safe in-memory metrics
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Generator, Optional

import backoff
from llama_index.core.base.llms.types import CompletionResponse, LLMMetadata
from llama_index.core.llms import CustomLLM
from openai import APIConnectionError, APITimeoutError, RateLimitError

from .utils.token_counter import TokenCounter

logger = logging.getLogger(__name__)

# ── Cost table (USD per 1M tokens) ────────────────────────────────────
_COST_PER_1M_TOKENS = {
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "claude-sonnet-4-5-20250929": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
    "gemini-2.0-flash": {"input": 0.10, "output": 0.40},
    # Local (Ollama) and unknown models
    "_default": {"input": 0.0, "output": 0.0},
}

RETRYABLE_EXCEPTIONS = (TimeoutError, ConnectionError, RateLimitError, APIConnectionError, APITimeoutError)
MAX_TRIES = 3


def finish_reason(raw: Any) -> Optional[str]:
    """First choice's finish reason from an OpenAI-style raw response."""
    choices = raw.get("choices") if isinstance(raw, dict) else getattr(raw, "choices", None)
    if not choices:
        return None
    first = choices[0]
    return first.get("finish_reason") if isinstance(first, dict) else getattr(first, "finish_reason", None)


@dataclass
class LLMMetrics:
    """Thread-safe in-memory LLM usage metrics."""

    total_calls: int = 0
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    total_latency_ms: float = 0.0
    errors: int = 0
    retries: int = 0
    content_filtered: int = 0
    estimated_cost_usd: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "total_tokens_in": self.total_tokens_in,
            "total_tokens_out": self.total_tokens_out,
            "total_latency_ms": round(self.total_latency_ms, 1),
            "avg_latency_ms": round(self.total_latency_ms / max(self.total_calls, 1), 1),
            "errors": self.errors,
            "retries": self.retries,
            "content_filtered": self.content_filtered,
            "estimated_cost_usd": round(self.estimated_cost_usd, 4),
        }


class LLMGateway(CustomLLM):
    """LLM proxy with observability and retry.

    Usage:
        from contractloom.core.gateway import LLMGateway
        llm = LLMGateway(OpenAI(model="gpt-4o-mini"))
        text = llm.complete(prompt).text
    """

    # Pydantic fields (CustomLLM is a Pydantic BaseModel)
    _llm: Any = None
    _metrics: LLMMetrics = None
    _lock: threading.Lock = None
    _counter: Optional[TokenCounter] = None

    def __init__(self, llm: Any, **kwargs):
        super().__init__(**kwargs)
        # Store as private attrs (bypass Pydantic field validation)
        object.__setattr__(self, "_llm", llm)
        object.__setattr__(self, "_metrics", LLMMetrics())
        object.__setattr__(self, "_lock", threading.Lock())
        object.__setattr__(self, "_counter", None)
        logger.info(
            f"LLMGateway initialized, wrapping {type(llm).__name__}"
            f" (model={getattr(llm, 'model', 'unknown')})"
        )

    @property
    def metadata(self) -> LLMMetadata:
        """Delegate metadata to the wrapped LLM."""
        return self._llm.metadata

    @property
    def model(self) -> str:
        return getattr(self._llm, "model", "unknown")

    # ── Core methods ──────────────────────────────────────────────────

    def complete(self, prompt: str, formatted: bool = False, **kwargs: Any) -> CompletionResponse:
        """Completion call with logging, retry and metrics."""
        t0 = time.time()
        try:
            response = self._retry_call(self._llm.complete, prompt, formatted=formatted, **kwargs)
        except Exception:
            self._record_error()
            raise
        self._record_success(prompt, response.text or "", getattr(response, "raw", None), (time.time() - t0) * 1000)
        return response

    def stream_complete(
        self, prompt: str, formatted: bool = False, **kwargs: Any
    ) -> Generator[CompletionResponse, None, None]:
        """Streaming passthrough. Metrics recorded after the stream completes."""
        t0 = time.time()
        collected = []
        try:
            for token in self._llm.stream_complete(prompt, formatted=formatted, **kwargs):
                if token.delta:
                    collected.append(token.delta)
                yield token
        except Exception:
            self._record_error()
            raise
        self._record_success(prompt, "".join(collected), None, (time.time() - t0) * 1000)

    # ── Retry ─────────────────────────────────────────────────────────

    def _retry_call(self, fn, *args, **kwargs):
        """Execute fn with exponential backoff on retryable errors."""

        @backoff.on_exception(
            backoff.expo,
            RETRYABLE_EXCEPTIONS,
            max_tries=MAX_TRIES,
            max_time=60,
            on_backoff=self._on_retry,
        )
        def _do_call():
            return fn(*args, **kwargs)

        return _do_call()

    def _on_retry(self, details: dict):
        with self._lock:
            self._metrics.retries += 1
        logger.warning(
            f"LLMGateway retry {details['tries']}/{MAX_TRIES} "
            f"after {details['wait']:.1f}s: {type(details.get('exception')).__name__}"
        )

    # ── Metrics recording ─────────────────────────────────────────────

    def _count(self, text: str) -> int:
        if self._counter is None:
            object.__setattr__(self, "_counter", TokenCounter())
        return self._counter.count(text)

    def _record_success(self, prompt: str, reply: str, raw: Any, latency_ms: float):
        usage = None
        if isinstance(raw, dict):
            usage = raw.get("usage")
        elif raw is not None and hasattr(raw, "usage"):
            usage = raw.usage
        tokens_in = getattr(usage, "prompt_tokens", None) if usage else None
        tokens_out = getattr(usage, "completion_tokens", None) if usage else None
        tokens_in = tokens_in or self._count(prompt)
        tokens_out = tokens_out or (self._count(reply) if reply else 0)

        filtered = finish_reason(raw) == "content_filter"
        cost = self._estimate_cost(tokens_in, tokens_out)
        with self._lock:
            m = self._metrics
            m.total_calls += 1
            m.total_tokens_in += tokens_in
            m.total_tokens_out += tokens_out
            m.total_latency_ms += latency_ms
            m.estimated_cost_usd += cost
            if filtered:
                m.content_filtered += 1

        logger.debug(
            f"LLM call: tokens_in={tokens_in} tokens_out={tokens_out} "
            f"latency={latency_ms:.0f}ms model={self.model}"
        )

    def _record_error(self):
        with self._lock:
            self._metrics.errors += 1
        logger.error(f"LLM call failed: model={self.model}")

    def _estimate_cost(self, tokens_in: int, tokens_out: int) -> float:
        costs = _COST_PER_1M_TOKENS.get(self.model, _COST_PER_1M_TOKENS["_default"])
        return (tokens_in * costs["input"] + tokens_out * costs["output"]) / 1_000_000

    # ── Public metrics API ────────────────────────────────────────────

    def get_metrics(self) -> dict:
        """Return a thread-safe snapshot of current metrics."""
        with self._lock:
            result = self._metrics.to_dict()
            result["model"] = self.model
            return result

    @classmethod
    def class_name(cls) -> str:
        return "LLMGateway"
