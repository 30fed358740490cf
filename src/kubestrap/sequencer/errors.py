# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/sequencer/errors.py
from __future__ import annotations

from typing import Optional


class SequencerError(RuntimeError):
    """Base class for bootstrap sequencer failures."""


class StepError(SequencerError):
    """A failure attributed to one step of a run."""

    def __init__(self, step: str, index: int, detail: str, cause: Optional[BaseException] = None):
        self.step = step
        self.index = index
        self.detail = detail
        self.cause = cause
        super().__init__(f"step {index} '{step}': {detail}")


class PreconditionCheckFailed(StepError):
    """The precondition itself errored. Not fatal: the step is skipped."""


class ActionFailed(StepError):
    """The step action raised (non-zero exit, I/O error, fetch error)."""


class PostconditionFailed(StepError):
    """The action ran but the host did not reach the expected state."""


class InsufficientPrivileges(SequencerError):
    """Raised once at run start when privileged steps meet an unprivileged context."""
