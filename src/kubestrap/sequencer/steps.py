# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/sequencer/steps.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from ..executor.interface import Executor
    from .context import HostContext


class HostState(str, Enum):
    """Observed state returned by a precondition or postcondition."""
    SATISFIED = "satisfied"
    PENDING = "pending"

    @classmethod
    def of(cls, done: bool) -> "HostState":
        return cls.SATISFIED if done else cls.PENDING


class StepOutcome(str, Enum):
    ALREADY_SATISFIED = "already-satisfied"
    APPLIED = "applied"
    FAILED = "failed"
    # the precondition itself errored; the action was not run
    CHECK_FAILED = "check-failed"


Check = Callable[["Executor", "HostContext"], HostState]
Action = Callable[["Executor", "HostContext"], None]


@dataclass(frozen=True)
class Step:
    """
    One idempotent unit of provisioning work.

    `check` answers "is this already done?". `verify` is the postcondition and
    defaults to `check` when not given.
    """
    name: str
    check: Check
    action: Action
    verify: Optional[Check] = None
    description: str = ""
    requires_privilege: bool = True

    def postcondition(self) -> Check:
        return self.verify or self.check


@dataclass(frozen=True)
class StepRecord:
    index: int
    name: str
    outcome: StepOutcome
    detail: Optional[str] = None
    duration_ms: int = 0
