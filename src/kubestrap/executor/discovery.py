# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Optional

from .interface import Executor
from ..sequencer.context import HostContext

log = logging.getLogger("kubestrap")


def _passwd_entry(executor: Executor, user: str) -> list[str]:
    out = executor.run(["getent", "passwd", user]).stdout.strip()
    fields = out.split(":")
    if len(fields) < 7:
        raise RuntimeError(f"unexpected passwd entry for {user!r}: {out!r}")
    return fields


def discover_host_context(executor: Executor, user: Optional[str] = None) -> HostContext:
    """
    Build the HostContext for a run.

    The invoking user is `user` if given, otherwise the user that called sudo
    (SUDO_USER), otherwise whoever the executor runs as.
    """
    euid = int(executor.run(["id", "-u"]).stdout.strip())

    if not user:
        sudo_user = executor.run(["printenv", "SUDO_USER"], check=False).stdout.strip()
        user = sudo_user or executor.run(["id", "-un"]).stdout.strip()

    fields = _passwd_entry(executor, user)
    hostname = executor.run(["hostname"]).stdout.strip() or "localhost"

    ctx = HostContext(
        home=PurePosixPath(fields[5]),
        user=user,
        uid=int(fields[2]),
        gid=int(fields[3]),
        privileged=euid == 0,
        hostname=hostname,
    )
    log.debug("host context: %s", ctx)
    return ctx
