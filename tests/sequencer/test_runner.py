from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List

import pytest

from kubestrap.executor.interface import CommandResult
from kubestrap.sequencer.context import HostContext
from kubestrap.sequencer.errors import ActionFailed, InsufficientPrivileges, PostconditionFailed
from kubestrap.sequencer.runner import RunStatus, describe, probe, run
from kubestrap.sequencer.steps import HostState, Step, StepOutcome
from kubestrap.observers.dispatcher import EventBus
from kubestrap.observers.events import (
    PreconditionDiagnostic,
    RunStarted,
    RunSummary,
    StepApplied,
    StepFailed,
    StepSkipped,
)

# --------- Test doubles ----------

@dataclass
class RecordingExecutor:
    """Records commands; state flips when the matching command runs."""
    state: Dict[str, bool] = field(default_factory=dict)
    exit_codes: Dict[str, int] = field(default_factory=dict)
    calls: List[str] = field(default_factory=list)

    def run(self, argv, *, input=None, env=None, check=True):
        cmd = " ".join(argv)
        self.calls.append(cmd)
        rc = self.exit_codes.get(cmd, 0)
        if rc == 0:
            self.state[cmd] = True
        result = CommandResult(tuple(argv), rc, "", "boom" if rc else "")
        if check:
            result.raise_for_status()
        return result

    def read_text(self, path): return None
    def exists(self, path): return False
    def write_text(self, path, content, *, mode=0o644, owner=None): pass
    def make_dirs(self, path, *, owner=None): pass


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def cmd_step(name, cmd):
    return Step(
        name=name,
        check=lambda ex, ctx: HostState.of(ex.state.get(cmd, False)),
        action=lambda ex, ctx: ex.run(cmd.split()),
    )


def ctx(privileged=True):
    return HostContext(home=PurePosixPath("/home/alice"), user="alice", uid=1000, gid=1000,
                       privileged=privileged, hostname="node-1")


STEPS = [
    cmd_step("disable swap", "swapoff -a"),
    cmd_step("install container runtime", "apt-get install -y containerd"),
    cmd_step("initialize cluster", "kubeadm init --pod-network-cidr=10.244.0.0/16"),
]

# --------- Tests ----------

def test_skips_satisfied_step_and_applies_the_rest():
    ex = RecordingExecutor(state={"swapoff -a": True})
    result = run(STEPS, ctx(), ex)

    assert result.status == RunStatus.SUCCESS
    assert [r.outcome for r in result.records] == [
        StepOutcome.ALREADY_SATISFIED,
        StepOutcome.APPLIED,
        StepOutcome.APPLIED,
    ]
    assert "swapoff -a" not in ex.calls


def test_executor_calls_follow_declared_order():
    ex = RecordingExecutor()
    run(STEPS, ctx(), ex)
    assert ex.calls == [
        "swapoff -a",
        "apt-get install -y containerd",
        "kubeadm init --pod-network-cidr=10.244.0.0/16",
    ]


def test_second_run_is_all_already_satisfied():
    ex = RecordingExecutor()
    first = run(STEPS, ctx(), ex)
    assert first.ok

    calls_after_first = list(ex.calls)
    second = run(STEPS, ctx(), ex)
    assert second.ok
    assert all(r.outcome == StepOutcome.ALREADY_SATISFIED for r in second.records)
    assert ex.calls == calls_after_first


def test_failed_action_halts_run_and_names_the_step():
    ex = RecordingExecutor(exit_codes={"apt-get install -y containerd": 100})
    result = run(STEPS, ctx(), ex)

    assert result.status == RunStatus.FAILED
    assert result.failed_step == "install container runtime"
    assert result.failed_index == 1
    assert isinstance(result.error, ActionFailed)
    assert "exited 100" in result.error.detail
    assert not any(c.startswith("kubeadm") for c in ex.calls)
    assert [r.name for r in result.records] == ["disable swap", "install container runtime"]
    assert result.records[-1].outcome == StepOutcome.FAILED


def test_rerun_after_failure_resumes_where_it_stopped():
    ex = RecordingExecutor(exit_codes={"apt-get install -y containerd": 100})
    assert not run(STEPS, ctx(), ex).ok

    ex.exit_codes.clear()
    result = run(STEPS, ctx(), ex)
    assert result.ok
    assert result.outcomes() == {
        "disable swap": StepOutcome.ALREADY_SATISFIED,
        "install container runtime": StepOutcome.APPLIED,
        "initialize cluster": StepOutcome.APPLIED,
    }


def test_postcondition_not_reached_is_fatal():
    never = Step(
        name="stubborn",
        check=lambda ex, c: HostState.PENDING,
        action=lambda ex, c: None,
    )
    later = []
    after = Step(name="after", check=lambda ex, c: HostState.PENDING, action=lambda ex, c: later.append(1))

    result = run([never, after], ctx(), RecordingExecutor())
    assert isinstance(result.error, PostconditionFailed)
    assert result.failed_step == "stubborn"
    assert later == []


def test_explicit_postcondition_is_used_instead_of_check():
    done = []
    step = Step(
        name="with-verify",
        check=lambda ex, c: HostState.PENDING,
        action=lambda ex, c: done.append(1),
        verify=lambda ex, c: HostState.of(bool(done)),
    )
    assert run([step], ctx(), RecordingExecutor()).ok


def test_erroring_precondition_skips_the_step_and_the_run_goes_on():
    applied = []

    def broken_check(ex, c):
        raise OSError("permission denied reading /proc/swaps")

    step = Step(
        name="flaky-check",
        check=broken_check,
        action=lambda ex, c: applied.append(1),
        verify=lambda ex, c: HostState.SATISFIED,
    )
    cap = Capture()
    ex = RecordingExecutor()
    result = run([step, STEPS[1]], ctx(), ex, bus=EventBus([cap]))

    assert result.ok
    assert applied == []
    assert result.outcomes() == {
        "flaky-check": StepOutcome.CHECK_FAILED,
        "install container runtime": StepOutcome.APPLIED,
    }
    assert "permission denied" in result.records[0].detail
    assert ex.calls == ["apt-get install -y containerd"]

    diag = next(e for e in cap.events if isinstance(e, PreconditionDiagnostic))
    assert diag.index == 0 and "permission denied" in diag.error
    assert not any(isinstance(e, StepApplied) and e.name == "flaky-check" for e in cap.events)

    summary = next(e for e in cap.events if isinstance(e, RunSummary))
    assert summary.check_failed == 1
    assert result.summary() == "success: applied=1 already-satisfied=0 check-failed=1"


def test_unprivileged_context_is_rejected_before_any_step():
    ex = RecordingExecutor()
    with pytest.raises(InsufficientPrivileges):
        run(STEPS, ctx(privileged=False), ex)
    assert ex.calls == []


def test_unprivileged_context_is_fine_when_no_step_needs_root():
    step = Step(
        name="user-only",
        check=lambda ex, c: HostState.SATISFIED,
        action=lambda ex, c: None,
        requires_privilege=False,
    )
    assert run([step], ctx(privileged=False), RecordingExecutor()).ok


def test_events_describe_the_run():
    cap = Capture()
    ex = RecordingExecutor(state={"swapoff -a": True},
                           exit_codes={"kubeadm init --pod-network-cidr=10.244.0.0/16": 1})
    run(STEPS, ctx(), ex, bus=EventBus([cap]), run_id="run-1")

    kinds = [e.__class__.__name__ for e in cap.events]
    assert kinds[0] == "RunStarted"
    assert kinds[-1] == "RunSummary"
    assert all(e.run_id == "run-1" for e in cap.events)

    started = next(e for e in cap.events if isinstance(e, RunStarted))
    assert started.steps == [s.name for s in STEPS]
    assert [e.name for e in cap.events if isinstance(e, StepSkipped)] == ["disable swap"]
    assert [e.name for e in cap.events if isinstance(e, StepApplied)] == ["install container runtime"]

    failed = next(e for e in cap.events if isinstance(e, StepFailed))
    assert failed.index == 2 and failed.kind == "ActionFailed"

    summary = next(e for e in cap.events if isinstance(e, RunSummary))
    assert summary.status == "failed"
    assert summary.failed_step == "initialize cluster"
    assert summary.applied == 1 and summary.skipped == 1


def test_broken_observer_does_not_break_the_run():
    class Broken:
        def notify(self, ev): raise RuntimeError("observer down")

    assert run(STEPS, ctx(), RecordingExecutor(), bus=EventBus([Broken()])).ok


def test_summary_text():
    ex = RecordingExecutor(exit_codes={"apt-get install -y containerd": 100})
    result = run(STEPS, ctx(), ex)
    assert result.summary() == "failed: applied=1 already-satisfied=0 failed-at-step=1 (install container runtime)"


def test_describe_and_probe_do_not_apply_anything():
    ex = RecordingExecutor(state={"swapoff -a": True})
    assert [name for _, name, _ in describe(STEPS)] == [s.name for s in STEPS]

    observed = probe(STEPS, ctx(), ex)
    assert [(n, s) for n, s, _ in observed] == [
        ("disable swap", HostState.SATISFIED),
        ("install container runtime", HostState.PENDING),
        ("initialize cluster", HostState.PENDING),
    ]
    assert ex.calls == []
