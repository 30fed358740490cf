# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .context import HostContext
from .errors import (
    ActionFailed,
    InsufficientPrivileges,
    PostconditionFailed,
    PreconditionCheckFailed,
    StepError,
)
from .steps import HostState, Step, StepOutcome, StepRecord
from ..executor.interface import Executor

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    now_ts,
    RunStarted,
    RunSummary,
    StepStarted,
    StepSkipped,
    StepApplied,
    StepFailed,
    PreconditionDiagnostic,
)

log = logging.getLogger("kubestrap")


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class RunResult:
    status: RunStatus
    records: List[StepRecord] = field(default_factory=list)
    error: Optional[StepError] = None

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def failed_step(self) -> Optional[str]:
        return self.error.step if self.error else None

    @property
    def failed_index(self) -> Optional[int]:
        return self.error.index if self.error else None

    def outcomes(self) -> Dict[str, StepOutcome]:
        return {r.name: r.outcome for r in self.records}

    def count(self, outcome: StepOutcome) -> int:
        return sum(1 for r in self.records if r.outcome == outcome)

    def summary(self) -> str:
        applied = self.count(StepOutcome.APPLIED)
        skipped = self.count(StepOutcome.ALREADY_SATISFIED)
        text = f"{self.status.value}: applied={applied} already-satisfied={skipped}"
        check_failed = self.count(StepOutcome.CHECK_FAILED)
        if check_failed:
            text += f" check-failed={check_failed}"
        if self.error:
            text += f" failed-at-step={self.error.index} ({self.error.step})"
        return text


class Run:
    """
    One execution of an ordered step list against a single host.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        context: HostContext,
        executor: Executor,
        *,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
    ):
        self.steps = tuple(steps)
        self.context = context
        self.executor = executor
        self.bus = bus or EventBus()
        self.run_ctx = new_ctx(host=context.hostname, run_id=run_id)
        self.index = 0
        self.records: List[StepRecord] = []
        self.result: Optional[RunResult] = None

    @property
    def run_id(self) -> str:
        return self.run_ctx["run_id"]

    def _emit(self, event_cls, **data) -> None:
        self.bus.emit(event_cls(**{**self.run_ctx, "ts": now_ts()}, **data))

    def _check_privileges(self) -> None:
        needs = [s.name for s in self.steps if s.requires_privilege]
        if needs and not self.context.privileged:
            raise InsufficientPrivileges(
                f"{len(needs)} step(s) need root on {self.context.hostname} "
                f"(first: '{needs[0]}'); re-run as root"
            )

    def _precondition(self, i: int, step: Step) -> HostState:
        try:
            return step.check(self.executor, self.context)
        except Exception as exc:
            raise PreconditionCheckFailed(step.name, i, str(exc), exc) from exc

    def _apply(self, i: int, step: Step) -> None:
        try:
            step.action(self.executor, self.context)
        except Exception as exc:
            raise ActionFailed(step.name, i, str(exc), exc) from exc

        try:
            state = step.postcondition()(self.executor, self.context)
        except Exception as exc:
            raise PostconditionFailed(step.name, i, f"postcondition errored: {exc}", exc) from exc
        if state != HostState.SATISFIED:
            raise PostconditionFailed(step.name, i, "action completed but host state is still pending")

    def _finish(self, status: RunStatus, error: Optional[StepError] = None) -> RunResult:
        self.result = RunResult(status=status, records=list(self.records), error=error)
        self._emit(
            RunSummary,
            status=status.value,
            applied=self.result.count(StepOutcome.APPLIED),
            skipped=self.result.count(StepOutcome.ALREADY_SATISFIED),
            check_failed=self.result.count(StepOutcome.CHECK_FAILED),
            failed_step=self.result.failed_step,
            error=str(error) if error else None,
        )
        log.info("run %s finished: %s", self.run_id, self.result.summary())
        return self.result

    def execute(self) -> RunResult:
        self._check_privileges()
        self._emit(RunStarted, steps=[s.name for s in self.steps])

        for i, step in enumerate(self.steps):
            self.index = i
            self._emit(StepStarted, index=i, name=step.name)

            try:
                state = self._precondition(i, step)
            except PreconditionCheckFailed as diag:
                # not fatal: the step is skipped and the run goes on
                log.warning("%s; skipping", diag)
                self.records.append(StepRecord(i, step.name, StepOutcome.CHECK_FAILED, diag.detail))
                self._emit(PreconditionDiagnostic, index=i, name=step.name, error=diag.detail)
                continue

            if state == HostState.SATISFIED:
                log.info("[%s] already satisfied", step.name)
                self.records.append(StepRecord(i, step.name, StepOutcome.ALREADY_SATISFIED))
                self._emit(StepSkipped, index=i, name=step.name)
                continue

            log.info("[%s] applying", step.name)
            t0 = time.time()
            try:
                self._apply(i, step)
            except StepError as err:
                duration_ms = int((time.time() - t0) * 1000)
                log.error("%s", err)
                self.records.append(StepRecord(i, step.name, StepOutcome.FAILED, str(err.detail), duration_ms))
                self._emit(StepFailed, index=i, name=step.name, kind=type(err).__name__, error=err.detail)
                return self._finish(RunStatus.FAILED, err)

            duration_ms = int((time.time() - t0) * 1000)
            self.records.append(StepRecord(i, step.name, StepOutcome.APPLIED, duration_ms=duration_ms))
            self._emit(StepApplied, index=i, name=step.name, duration_ms=duration_ms)

        return self._finish(RunStatus.SUCCESS)


def run(
    steps: Sequence[Step],
    context: HostContext,
    executor: Executor,
    *,
    bus: Optional[EventBus] = None,
    run_id: Optional[str] = None,
) -> RunResult:
    """
    Execute steps in declared order, fail-fast. Nothing is retried or rolled back.
    Raises InsufficientPrivileges before the first step when the context is not
    privileged enough.
    """
    return Run(steps, context, executor, bus=bus, run_id=run_id).execute()


def describe(steps: Sequence[Step]) -> List[tuple[int, str, str]]:
    return [(i, s.name, s.description) for i, s in enumerate(steps)]


def probe(
    steps: Sequence[Step],
    context: HostContext,
    executor: Executor,
) -> List[tuple[str, Optional[HostState], Optional[str]]]:
    """
    Evaluate every precondition without applying anything.

    Later checks may report PENDING only because earlier steps have not run yet.
    """
    observed = []
    for step in steps:
        try:
            observed.append((step.name, step.check(executor, context), None))
        except Exception as exc:
            observed.append((step.name, None, str(exc)))
    return observed
