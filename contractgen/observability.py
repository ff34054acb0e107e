"""Tracing and metrics for the contract generation pipeline.

Spans follow the OpenTelemetry shape (trace id, span id, parent, status)
and are exported as JSON lines. Metrics cover per-stage latency and
outcome counts plus approval and review-source distributions.
"""

import json
import time
import uuid
from collections import Counter, deque
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Sequence

from loguru import logger


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


class TraceSpan:
    """A single timed operation within a trace."""

    def __init__(self, name: str, trace_id: str, parent_span_id: Optional[str] = None):
        self.name = name
        self.span_id = _new_id()
        self.trace_id = trace_id
        self.parent_span_id = parent_span_id
        self.start_time = time.time()
        self.end_time: Optional[float] = None
        self.attributes: Dict[str, Any] = {}
        self.status = "UNSET"
        self.error_message: Optional[str] = None

    def set_attribute(self, key: str, value: Any):
        self.attributes[key] = value

    def set_status(self, status: str, error_message: Optional[str] = None):
        self.status = status
        self.error_message = error_message

    def end(self):
        if self.end_time is None:
            self.end_time = time.time()

    def duration_ms(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "span_id": self.span_id,
            "trace_id": self.trace_id,
            "parent_span_id": self.parent_span_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_ms": round(self.duration_ms(), 3),
            "attributes": self.attributes,
            "status": self.status,
            "error_message": self.error_message
        }


class Tracer:
    """Creates spans that share one trace id.

    A tracer is created per generation run, so spans from concurrent
    runs never mix.
    """

    def __init__(self, trace_id: Optional[str] = None):
        self.trace_id = trace_id or _new_id()
        self.spans: List[TraceSpan] = []
        self.root_span_id: Optional[str] = None

    def start_span(self, name: str, parent_span_id: Optional[str] = None) -> TraceSpan:
        span = TraceSpan(name, self.trace_id, parent_span_id or self.root_span_id)
        if self.root_span_id is None:
            self.root_span_id = span.span_id
        self.spans.append(span)
        return span

    @contextmanager
    def span(self, name: str, **attributes):
        """Context manager for a span; marks ERROR when the block raises."""
        span = self.start_span(name)
        for key, value in attributes.items():
            span.set_attribute(key, value)
        try:
            yield span
            if span.status == "UNSET":
                span.set_status("OK")
        except BaseException as e:
            span.set_status("ERROR", str(e) or type(e).__name__)
            raise
        finally:
            span.end()


MAX_METRIC_SAMPLES = 10_000


class MetricsCollector:
    """In-process counters and latency samples.

    Latency and risk-score samples keep only the most recent ``max_samples``
    values, so a long-running API process stays bounded.
    """

    def __init__(self, max_samples: int = MAX_METRIC_SAMPLES):
        self.max_samples = max_samples
        self.stage_latency: Dict[str, Deque[float]] = {}
        self.stage_outcomes: Dict[str, Counter] = {}
        self.approval_outcomes: Counter = Counter()
        self.review_sources: Counter = Counter()
        self.risk_scores: Deque[int] = deque(maxlen=max_samples)

    def record_stage_latency(self, stage_name: str, latency_seconds: float):
        self.stage_latency.setdefault(stage_name, deque(maxlen=self.max_samples)).append(latency_seconds)

    def record_stage_success(self, stage_name: str):
        self.stage_outcomes.setdefault(stage_name, Counter())["success"] += 1

    def record_stage_error(self, stage_name: str):
        self.stage_outcomes.setdefault(stage_name, Counter())["error"] += 1

    def record_approval_outcome(self, status: str):
        self.approval_outcomes[status] += 1

    def record_review_source(self, source: str):
        self.review_sources[source] += 1

    def record_risk_score(self, score: int):
        self.risk_scores.append(score)

    def get_summary(self) -> Dict[str, Any]:
        """Summarize all collected metrics."""
        stages = {}
        for stage_name in sorted(set(self.stage_latency) | set(self.stage_outcomes)):
            latencies = self.stage_latency.get(stage_name, [])
            outcomes = self.stage_outcomes.get(stage_name, Counter())
            total = outcomes["success"] + outcomes["error"]
            stages[stage_name] = {
                "total_executions": total,
                "success_count": outcomes["success"],
                "error_count": outcomes["error"],
                "success_rate": outcomes["success"] / total * 100 if total else 0,
                "latency": {
                    "mean": sum(latencies) / len(latencies) if latencies else 0,
                    "p50": percentile(latencies, 50),
                    "p95": percentile(latencies, 95),
                }
            }

        return {
            "stages": stages,
            "approval_outcomes": dict(self.approval_outcomes),
            "review_sources": dict(self.review_sources),
            "risk_score": {
                "count": len(self.risk_scores),
                "mean": sum(self.risk_scores) / len(self.risk_scores) if self.risk_scores else 0,
                "p95": percentile(self.risk_scores, 95),
            },
        }


def percentile(values: Sequence[float], pct: int) -> float:
    """Nearest-rank percentile; 0.0 for an empty sample."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = min(int(len(ordered) * pct / 100), len(ordered) - 1)
    return ordered[index]


class TraceExporter:
    """Appends finished traces to a JSON lines file."""

    def __init__(self, output_dir: str = "logs/traces"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.trace_file = self.output_dir / f"traces_{datetime.now():%Y%m%d}.jsonl"

    def export_trace(self, tracer: Tracer, lead_id: Optional[str] = None):
        with open(self.trace_file, "a", encoding="utf-8") as f:
            for span in tracer.spans:
                f.write(json.dumps({
                    "timestamp": datetime.now().isoformat(),
                    "lead_id": lead_id,
                    "trace_id": tracer.trace_id,
                    "span": span.to_dict()
                }, default=str) + "\n")

        logger.debug(f"Exported {len(tracer.spans)} spans", trace_id=tracer.trace_id)

    def export_metrics(self, metrics: MetricsCollector) -> Path:
        metrics_file = self.output_dir / f"metrics_{datetime.now():%Y%m%d_%H%M%S}.json"
        summary = metrics.get_summary()
        summary["timestamp"] = datetime.now().isoformat()
        with open(metrics_file, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2)
        logger.info("Exported metrics summary", metrics_file=str(metrics_file))
        return metrics_file


class ObservabilityManager:
    """Owns the metrics collector and the trace exporter."""

    def __init__(
        self,
        enable_tracing: bool = True,
        enable_metrics: bool = True,
        trace_dir: str = "logs/traces"
    ):
        self.enable_tracing = enable_tracing
        self.enable_metrics = enable_metrics
        self.metrics: Optional[MetricsCollector] = MetricsCollector() if enable_metrics else None
        self.exporter: Optional[TraceExporter] = TraceExporter(trace_dir) if enable_tracing else None

        logger.info(
            "Observability manager initialized",
            tracing=enable_tracing,
            metrics=enable_metrics
        )

    def new_tracer(self) -> Optional[Tracer]:
        return Tracer() if self.enable_tracing else None

    def export_trace(self, tracer: Optional[Tracer], lead_id: Optional[str] = None):
        if tracer is None or self.exporter is None:
            return
        try:
            self.exporter.export_trace(tracer, lead_id)
        except OSError as e:
            logger.warning("Trace export failed", error=str(e))

    def export_metrics(self) -> Optional[Path]:
        if self.metrics is None or self.exporter is None:
            return None
        return self.exporter.export_metrics(self.metrics)

