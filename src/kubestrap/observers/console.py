# src/kubestrap/observers/console.py
from __future__ import annotations

import typer

from .events import (
    BaseEvent,
    RunStarted,
    RunSummary,
    StepStarted,
    StepSkipped,
    StepApplied,
    StepFailed,
    PreconditionDiagnostic,
)


class ConsoleObserver:
    """Human readable progress lines, one per step transition."""

    def __init__(self, total: int = 0):
        self.total = total

    def _pos(self, index: int) -> str:
        return f"[{index + 1}/{self.total}]" if self.total else f"[{index + 1}]"

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, RunStarted):
            self.total = len(event.steps)
            typer.echo(f"==> bootstrapping {event.host} ({self.total} steps, run {event.run_id})")
        elif isinstance(event, StepStarted):
            typer.echo(f"{self._pos(event.index)} {event.name} ...")
        elif isinstance(event, StepSkipped):
            typer.echo(f"{self._pos(event.index)} {event.name}: already satisfied")
        elif isinstance(event, PreconditionDiagnostic):
            typer.echo(f"{self._pos(event.index)} {event.name}: check errored ({event.error}), skipped")
        elif isinstance(event, StepApplied):
            typer.echo(f"{self._pos(event.index)} {event.name}: applied in {event.duration_ms}ms")
        elif isinstance(event, StepFailed):
            typer.echo(f"{self._pos(event.index)} {event.name}: FAILED ({event.kind}) {event.error}", err=True)
        elif isinstance(event, RunSummary):
            typer.echo(
                f"==> {event.status}: applied={event.applied} skipped={event.skipped}"
                + (f" check_failed={event.check_failed}" if event.check_failed else "")
                + (f" failed_step={event.failed_step}" if event.failed_step else "")
            )
