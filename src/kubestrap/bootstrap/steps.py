# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/bootstrap/steps.py
"""
Reusable step shapes. Paths and contents may be plain values or callables of
the HostContext, so per-user locations resolve at run time.
"""
from __future__ import annotations

from typing import Callable, Optional, Union

from ..config.models import ManifestSource, ResourceRef
from ..executor.interface import Executor
from ..kube.kubectl import Kubectl
from ..manifests.fetch import ManifestFetcher
from ..manifests.patch import inject_host_network, is_host_network_patched
from ..sequencer.context import HostContext
from ..sequencer.steps import HostState, Step

Deferred = Union[str, Callable[[HostContext], str]]


def resolve(value: Deferred, ctx: HostContext) -> str:
    return value(ctx) if callable(value) else value


def write_file_step(
    name: str,
    path: Deferred,
    content: Deferred,
    *,
    mode: int = 0o644,
    user_owned: bool = False,
    description: str = "",
) -> Step:
    def check(ex: Executor, ctx: HostContext) -> HostState:
        return HostState.of(ex.read_text(resolve(path, ctx)) == resolve(content, ctx))

    def action(ex: Executor, ctx: HostContext) -> None:
        ex.write_text(
            resolve(path, ctx),
            resolve(content, ctx),
            mode=mode,
            owner=ctx.owner if user_owned else None,
        )

    return Step(name, check, action, description=description or f"write {path if isinstance(path, str) else name}")


def fetch_manifest_step(
    source: ManifestSource,
    dest: Callable[[HostContext], str],
    fetcher: ManifestFetcher,
) -> Step:
    """Download a remote manifest into the user's manifest directory, patching it if asked."""

    def check(ex: Executor, ctx: HostContext) -> HostState:
        text = ex.read_text(dest(ctx))
        if text is None:
            return HostState.PENDING
        if source.host_network:
            return HostState.of(is_host_network_patched(text))
        return HostState.SATISFIED

    def action(ex: Executor, ctx: HostContext) -> None:
        text = fetcher.fetch_text(str(source.url))
        if source.host_network:
            text = inject_host_network(text)
        ex.write_text(dest(ctx), text, owner=ctx.owner)

    note = " (hostNetwork patch)" if source.host_network else ""
    return Step(
        f"fetch-{source.name}",
        check,
        action,
        description=f"download {source.url}{note}",
    )


def apply_manifest_step(
    name: str,
    path: Callable[[HostContext], str],
    ready: ResourceRef,
    kubeconfig: Callable[[HostContext], str],
    description: str = "",
) -> Step:
    """kubectl apply a file; done once `ready` exists in the cluster."""

    def check(ex: Executor, ctx: HostContext) -> HostState:
        kubectl = Kubectl(ex, kubeconfig=kubeconfig(ctx))
        return HostState.of(kubectl.resource_exists(ready.kind, ready.name, ready.namespace))

    def action(ex: Executor, ctx: HostContext) -> None:
        Kubectl(ex, kubeconfig=kubeconfig(ctx)).apply_manifest(path(ctx))

    where = f" -n {ready.namespace}" if ready.namespace else ""
    return Step(
        name,
        check,
        action,
        description=description or f"kubectl apply, done when {ready.kind}/{ready.name}{where} exists",
    )


def command_step(
    name: str,
    done: Callable[[Executor, HostContext], bool],
    do: Callable[[Executor, HostContext], None],
    *,
    description: str = "",
    verify: Optional[Callable[[Executor, HostContext], bool]] = None,
) -> Step:
    """Adapt boolean host probes to a Step."""

    def check(ex: Executor, ctx: HostContext) -> HostState:
        return HostState.of(done(ex, ctx))

    post = None
    if verify is not None:
        def post(ex: Executor, ctx: HostContext) -> HostState:
            return HostState.of(verify(ex, ctx))

    return Step(name, check, do, verify=post, description=description)
