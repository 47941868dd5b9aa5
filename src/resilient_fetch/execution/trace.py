"""
Step tracing for sequences of guarded calls.

Loading a record often takes several dependent reads (metadata, then
children, then per-child details). When one of them is slow or fails, the
question is *which* step and *how long* each took. :class:`InvocationTrace`
runs each step (optionally under a deadline), times it, and keeps an ordered
record of successes and failures.

Usage:
    trace = InvocationTrace("load_test")
    test = await trace.step("fetch_test", fetch_json(test_url), timeout_ms=10000)
    questions = await trace.step(
        "fetch_questions",
        fetch_json(questions_url),
        timeout_ms=10000,
        summarize=len,
    )
    trace.stop()
    logger.info("trace.done", **trace.to_dict())

Design:
- Steps log at INFO on success and WARNING on failure, with duration_ms
- A failing step is recorded and its exception re-raised
- Timer overhead is one time.perf_counter call per boundary
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from resilient_fetch.core.logging import get_logger
from resilient_fetch.execution.timeout import with_timeout

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class TraceStep:
    """Outcome of one traced step."""

    step: str
    success: bool
    duration_ms: float
    data: Any = None
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "step": self.step,
            "success": self.success,
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
            result["error_type"] = self.error_type
        return result


@dataclass
class InvocationTrace:
    """Ordered, timed record of the steps of one logical operation."""

    name: str = "trace"
    steps: list[TraceStep] = field(default_factory=list)
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None

    async def step(
        self,
        name: str,
        operation: Awaitable[T],
        *,
        timeout_ms: float | None = None,
        message: str | None = None,
        summarize: Callable[[T], Any] | None = None,
    ) -> T:
        """Await ``operation`` as a named step and record the outcome.

        Args:
            name: Step name used in the record and in log events
            operation: In-flight awaitable
            timeout_ms: Optional deadline for this step
            message: Timeout message (default ``"<name> timed out"``)
            summarize: Maps the result to the small value stored as ``data``

        Raises:
            Whatever the step raised, after recording it.
        """
        start = time.perf_counter()
        try:
            if timeout_ms is not None:
                result = await with_timeout(
                    operation, timeout_ms, message or f"{name} timed out"
                )
            else:
                result = await operation
        except Exception as e:
            self.record(
                name,
                success=False,
                duration_ms=(time.perf_counter() - start) * 1000,
                error=e,
            )
            raise
        self.record(
            name,
            success=True,
            duration_ms=(time.perf_counter() - start) * 1000,
            data=summarize(result) if summarize else None,
        )
        return result

    def record(
        self,
        name: str,
        *,
        success: bool,
        duration_ms: float,
        data: Any = None,
        error: BaseException | str | None = None,
    ) -> TraceStep:
        """Append a step measured elsewhere."""
        step = TraceStep(
            step=name,
            success=success,
            duration_ms=duration_ms,
            data=data,
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if isinstance(error, BaseException) else None,
        )
        self.steps.append(step)
        if success:
            logger.info("trace.step", trace=self.name, **step.to_dict())
        else:
            logger.warning("trace.step_failed", trace=self.name, **step.to_dict())
        return step

    def stop(self) -> InvocationTrace:
        """Record end time."""
        self.ended_at = time.perf_counter()
        return self

    @property
    def total_duration_ms(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.perf_counter()
        return (end - self.started_at) * 1000

    @property
    def failed_steps(self) -> list[TraceStep]:
        return [s for s in self.steps if not s.success]

    @property
    def succeeded(self) -> bool:
        """True when at least one step ran and none failed."""
        return bool(self.steps) and not self.failed_steps

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace": self.name,
            "success": self.succeeded,
            "total_duration_ms": round(self.total_duration_ms, 2),
            "steps": [s.to_dict() for s in self.steps],
        }


__all__ = ["TraceStep", "InvocationTrace"]
