# src/kubestrap/cli/app.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import paramiko
import typer

from kubestrap.bootstrap.plan import build_steps
from kubestrap.config.loader import ConfigError, load_config
from kubestrap.executor.discovery import discover_host_context
from kubestrap.executor.interface import Executor
from kubestrap.executor.local import LocalExecutor
from kubestrap.executor.ssh import SshExecutor, connect
from kubestrap.logging.log import init_logging
from kubestrap.observers.console import ConsoleObserver
from kubestrap.observers.dispatcher import EventBus
from kubestrap.observers.jsonfile import JsonFileObserver
from kubestrap.observers.logger import LoggerObserver
from kubestrap.sequencer.errors import InsufficientPrivileges
from kubestrap.sequencer.runner import describe, probe, run
from kubestrap.sequencer.steps import HostState


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Bootstrap a single-node Kubernetes cluster with kubeadm")

EXIT_STEP_FAILED = 1
EXIT_NOT_PRIVILEGED = 2

ConfigOpt = typer.Option(None, "--config", "-c", help="YAML config file (defaults apply when omitted)")
HostOpt = typer.Option(None, "--host", help="Bootstrap a remote host over SSH instead of this machine")
SshUserOpt = typer.Option(None, "--ssh-user", help="SSH login user (needs passwordless sudo)")
SshKeyOpt = typer.Option(None, "--ssh-key", help="SSH private key")
UserOpt = typer.Option(None, "--user", help="User that receives ~/.kube/config (default: SUDO_USER)")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Log every command to the console")


def _fail(message: str, code: int = EXIT_STEP_FAILED):
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=code)


def _load(config: Optional[Path]):
    try:
        return load_config(config)
    except ConfigError as e:
        _fail(str(e))


def _host_context(ex: Executor, user: Optional[str]):
    try:
        return discover_host_context(ex, user=user)
    except RuntimeError as e:
        _fail(f"cannot inspect host: {e}")


@contextmanager
def open_executor(
    host: Optional[str],
    ssh_user: Optional[str],
    ssh_key: Optional[Path],
) -> Iterator[Executor]:
    if not host:
        yield LocalExecutor()
        return

    try:
        client = connect(host, username=ssh_user, key_filename=ssh_key)
    except (paramiko.SSHException, OSError) as e:
        _fail(f"cannot connect to {host}: {e}")

    ex = SshExecutor(client, hostname=host)
    try:
        yield ex
    finally:
        ex.close()


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def up(
    config: Optional[Path] = ConfigOpt,
    host: Optional[str] = HostOpt,
    ssh_user: Optional[str] = SshUserOpt,
    ssh_key: Optional[Path] = SshKeyOpt,
    user: Optional[str] = UserOpt,
    verbose: bool = VerboseOpt,
):
    """
    Run every bootstrap step in order. Safe to re-run: completed steps are skipped.
    """
    cfg = _load(config)
    logger, run_id, log_path = init_logging(verbose=verbose, target=host or "localhost")

    with open_executor(host, ssh_user, ssh_key) as ex:
        ctx = _host_context(ex, user or cfg.user)
        steps = build_steps(cfg)

        bus = EventBus(
            observers=[
                ConsoleObserver(total=len(steps)),
                LoggerObserver(logger),
                JsonFileObserver(log_path.with_suffix(".jsonl")),
            ]
        )

        try:
            result = run(steps, ctx, ex, bus=bus, run_id=run_id)
        except InsufficientPrivileges as e:
            _fail(str(e), code=EXIT_NOT_PRIVILEGED)

    if not result.ok:
        typer.echo(
            f"error: step {result.failed_index} '{result.failed_step}' failed: {result.error.detail}",
            err=True,
        )
        typer.echo(f"fix the cause and re-run; completed steps will be skipped. log: {log_path}", err=True)
        raise typer.Exit(code=EXIT_STEP_FAILED)

    typer.echo(f"cluster ready; kubeconfig at {ctx.artifact('kubeconfig', str(ctx.path('.kube', 'config')))}")


@app.command()
def plan(config: Optional[Path] = ConfigOpt):
    """
    List the bootstrap steps in execution order.
    """
    cfg = _load(config)
    for i, name, description in describe(build_steps(cfg)):
        typer.echo(f"{i:>2}  {name:<28} {description}")


@app.command()
def check(
    config: Optional[Path] = ConfigOpt,
    host: Optional[str] = HostOpt,
    ssh_user: Optional[str] = SshUserOpt,
    ssh_key: Optional[Path] = SshKeyOpt,
    user: Optional[str] = UserOpt,
):
    """
    Evaluate every step's precondition without changing the host.
    """
    cfg = _load(config)
    with open_executor(host, ssh_user, ssh_key) as ex:
        ctx = _host_context(ex, user or cfg.user)
        observed = probe(build_steps(cfg), ctx, ex)

    for name, state, error in observed:
        if error is not None:
            typer.echo(f"{name:<28} unknown ({error})")
        else:
            mark = "done" if state == HostState.SATISFIED else "pending"
            typer.echo(f"{name:<28} {mark}")


if __name__ == "__main__":
    app()
