"""
Saga runner.

Executes an ordered list of steps over a shared context dict. When a step
raises, the compensations of every completed step run in reverse order,
best-effort, and the original error is re-raised.

    saga = Saga("production_deployment", [
        SagaStep("insert_deployment", insert, compensation=soft_delete),
        SagaStep("create_frontend_hostname", create_fe, compensation=delete_fe),
    ])
    saga.run(context)

A step whose name is already listed in ``context["completed"]`` is skipped,
so running the same context again after a failure resumes instead of
repeating side effects.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from app.core.errors import AppError, ExternalError
from app.middleware.metrics import SAGA_COMPENSATIONS, SAGA_RUNS

logger = logging.getLogger("console.saga")

SagaContext = Dict[str, Any]
StepFn = Callable[[SagaContext], None]


@dataclass
class SagaStep:
    name: str
    action: StepFn
    compensation: Optional[StepFn] = None


@dataclass
class Saga:
    name: str
    steps: List[SagaStep]
    cursor: int = field(default=0, init=False)

    def run(self, context: SagaContext) -> SagaContext:
        completed: List[str] = context.setdefault("completed", [])
        done: List[SagaStep] = [s for s in self.steps if s.name in completed]

        for index, step in enumerate(self.steps):
            self.cursor = index
            if step.name in completed:
                continue

            logger.debug("[%s] running step %s", self.name, step.name)
            try:
                step.action(context)
            except Exception as exc:
                logger.warning("[%s] step %s failed: %s", self.name, step.name, exc)
                self._compensate(done, context)
                SAGA_RUNS.labels(saga=self.name, outcome="compensated").inc()
                error = self._annotate(exc, step.name)
                if error is exc:
                    raise
                raise error from exc

            completed.append(step.name)
            done.append(step)

        self.cursor = len(self.steps)
        SAGA_RUNS.labels(saga=self.name, outcome="completed").inc()
        return context

    def _compensate(self, done: List[SagaStep], context: SagaContext) -> None:
        completed: List[str] = context["completed"]
        for step in reversed(done):
            if step.compensation is None:
                # nothing external to undo; it must run again on resume
                if step.name in completed:
                    completed.remove(step.name)
                continue
            try:
                step.compensation(context)
                SAGA_COMPENSATIONS.labels(step=step.name, outcome="ok").inc()
                logger.info("[%s] compensated %s", self.name, step.name)
            except Exception:
                # Never replaces the original error; remaining compensations still run
                SAGA_COMPENSATIONS.labels(step=step.name, outcome="failed").inc()
                logger.exception("[%s] compensation for %s failed", self.name, step.name)
                continue
            if step.name in completed:
                completed.remove(step.name)

    @staticmethod
    def _annotate(exc: Exception, step_name: str) -> AppError:
        if isinstance(exc, ExternalError):
            if exc.step is None:
                exc.step = step_name
            return exc
        if isinstance(exc, AppError):
            return exc
        return ExternalError(f"{step_name} failed: {exc}", step=step_name)
