"""
LLM call tracking for the taste pipeline.

Every completion request made through a MonitoredLLMClient is recorded as an
LLMCallMetric: which pipeline operation issued it (seed_extraction,
ecosystem_analysis, day_planning), how long it took, token usage, estimated
cost and whether it failed. The health endpoint reports the summary.
"""

import time
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# USD per 1K tokens
MODEL_PRICES = {
    "gpt-4o": (0.0025, 0.010),
    "gpt-4o-mini": (0.00015, 0.0006)
}
FALLBACK_PRICE_MODEL = "gpt-4o-mini"


@dataclass
class LLMCallMetric:
    timestamp: str
    model: str
    operation: str
    latency_ms: float
    input_tokens: int
    output_tokens: int
    cost_usd: float
    success: bool
    error: Optional[str] = None

    @property
    def tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    input_price, output_price = MODEL_PRICES.get(model, MODEL_PRICES[FALLBACK_PRICE_MODEL])
    return (input_tokens * input_price + output_tokens * output_price) / 1000


def _aggregate(metrics: List[LLMCallMetric]) -> Dict[str, Any]:
    calls = len(metrics)
    failures = sum(1 for m in metrics if not m.success)
    return {
        "calls": calls,
        "errors": failures,
        "tokens": sum(m.tokens for m in metrics),
        "avg_latency_ms": round(sum(m.latency_ms for m in metrics) / calls, 2) if calls else 0.0
    }


class LLMMonitor:
    """Process-wide, append-only record of completion calls. Safe to share across threads."""

    def __init__(self):
        self.started_at = time.time()
        self._metrics: List[LLMCallMetric] = []
        self._lock = threading.Lock()

    def record(
        self,
        model: str,
        operation: str,
        latency_ms: float,
        input_tokens: int = 0,
        output_tokens: int = 0,
        error: Optional[str] = None
    ) -> LLMCallMetric:
        metric = LLMCallMetric(
            timestamp=datetime.now(timezone.utc).isoformat(),
            model=model,
            operation=operation,
            latency_ms=latency_ms,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=estimate_cost(model, input_tokens, output_tokens),
            success=error is None,
            error=error
        )
        with self._lock:
            self._metrics.append(metric)

        if metric.success:
            logger.info(
                f"[{operation}] {model} answered in {latency_ms:.0f}ms "
                f"({input_tokens} in / {output_tokens} out, ~${metric.cost_usd:.4f})"
            )
        else:
            logger.warning(f"[{operation}] {model} failed after {latency_ms:.0f}ms: {error}")
        return metric

    def snapshot(self) -> List[LLMCallMetric]:
        with self._lock:
            return list(self._metrics)

    def get_summary(self) -> Dict[str, Any]:
        metrics = self.snapshot()
        overall = _aggregate(metrics)

        operations: Dict[str, List[LLMCallMetric]] = {}
        for metric in metrics:
            operations.setdefault(metric.operation, []).append(metric)

        return {
            "total_calls": overall["calls"],
            "total_errors": overall["errors"],
            "success_rate": (overall["calls"] - overall["errors"]) / overall["calls"] if metrics else 1.0,
            "total_tokens": overall["tokens"],
            "total_cost_usd": round(sum(m.cost_usd for m in metrics), 6),
            "avg_latency_ms": overall["avg_latency_ms"],
            "uptime_seconds": round(time.time() - self.started_at, 2),
            "by_operation": {
                name: {
                    "count": stats["calls"],
                    "errors": stats["errors"],
                    "avg_latency_ms": stats["avg_latency_ms"],
                    "total_tokens": stats["tokens"]
                }
                for name, stats in ((op, _aggregate(items)) for op, items in operations.items())
            }
        }


class _TrackedCompletions:
    """Stands in for client.chat.completions; accepts an extra `operation` label."""

    def __init__(self, completions, monitor: LLMMonitor, default_operation: str):
        self._completions = completions
        self._monitor = monitor
        self._default_operation = default_operation

    def create(self, *args, operation: Optional[str] = None, **kwargs):
        label = operation or self._default_operation
        model = kwargs.get("model", "unknown")
        started = time.perf_counter()

        try:
            response = self._completions.create(*args, **kwargs)
        except Exception as e:
            self._monitor.record(model, label, (time.perf_counter() - started) * 1000, error=str(e))
            raise

        usage = getattr(response, "usage", None)
        self._monitor.record(
            model,
            label,
            (time.perf_counter() - started) * 1000,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0
        )
        return response


class MonitoredLLMClient:
    """
    OpenAI client wrapper with the same chat.completions.create(...) path.

    Usage:
        client = MonitoredLLMClient(OpenAI(api_key=...), monitor)
        client.chat.completions.create(model=..., messages=..., operation="day_planning")
    """

    def __init__(self, client, monitor: LLMMonitor, default_operation: str = "general"):
        self.client = client
        self.chat = SimpleNamespace(
            completions=_TrackedCompletions(client.chat.completions, monitor, default_operation)
        )


_monitor: Optional[LLMMonitor] = None
_monitor_lock = threading.Lock()


def get_global_monitor() -> LLMMonitor:
    global _monitor
    with _monitor_lock:
        if _monitor is None:
            _monitor = LLMMonitor()
        return _monitor
