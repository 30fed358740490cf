# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/executor/ssh.py

from __future__ import annotations

import logging
import os
import shlex
import time
import uuid
from pathlib import Path, PurePosixPath
from typing import List, Mapping, Optional, Sequence, Tuple

import paramiko

from .interface import CommandResult, Owner, PathLike

log = logging.getLogger("kubestrap")

_CHUNK = 32768


def connect(
    host: str,
    *,
    username: Optional[str] = None,
    key_filename: Optional[Path] = None,
    password: Optional[str] = None,
    port: int = 22,
) -> paramiko.SSHClient:
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    client.connect(
        hostname=host,
        port=port,
        username=username,
        key_filename=str(key_filename) if key_filename else None,
        password=password,
    )
    return client


def _drain(chan: paramiko.Channel, poll: float = 0.05) -> Tuple[str, str]:
    """
    Read stdout and stderr side by side until the command exits. Reading one
    stream to EOF first stalls once the other fills the channel window.
    """
    out: List[bytes] = []
    err: List[bytes] = []
    while True:
        busy = False
        if chan.recv_ready():
            out.append(chan.recv(_CHUNK))
            busy = True
        if chan.recv_stderr_ready():
            err.append(chan.recv_stderr(_CHUNK))
            busy = True
        if not busy:
            if chan.exit_status_ready() and not chan.recv_ready() and not chan.recv_stderr_ready():
                break
            time.sleep(poll)
    return b"".join(out).decode("utf-8", "replace"), b"".join(err).decode("utf-8", "replace")


class SshExecutor:
    """
    Executor for a remote target. With sudo=True every command (and every
    privileged file write) goes through `sudo -n`, so the login user needs
    passwordless sudo.
    """

    def __init__(self, client: paramiko.SSHClient, *, hostname: str, sudo: bool = True, timeout: int = 1800):
        self.client = client
        self.hostname = hostname
        self.sudo = sudo
        self.timeout = timeout

    def _wrap(self, argv: Sequence[str], env: Optional[Mapping[str, str]]) -> str:
        cmd = shlex.join(str(a) for a in argv)
        if env:
            exports = " ".join(f"{k}={shlex.quote(str(v))}" for k, v in env.items())
            cmd = f"env {exports} {cmd}"
        if self.sudo:
            cmd = f"sudo -n -H bash -c {shlex.quote(cmd)}"
        return cmd

    def run(
        self,
        argv: Sequence[str],
        *,
        input: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        check: bool = True,
    ) -> CommandResult:
        cmd = self._wrap(argv, env)
        log.debug("[%s] $ %s", self.hostname, cmd)

        stdin, stdout, _ = self.client.exec_command(cmd, timeout=self.timeout)
        chan = stdout.channel
        chan.set_combine_stderr(False)
        if input is not None:
            stdin.write(input)
            chan.shutdown_write()
        out, err = _drain(chan)
        rc = chan.recv_exit_status()
        log.debug("[%s][exit %d]", self.hostname, rc)

        result = CommandResult(tuple(str(a) for a in argv), rc, out, err)
        if check:
            result.raise_for_status()
        return result

    def read_text(self, path: PathLike) -> Optional[str]:
        if not self.exists(path):
            return None
        return self.run(["cat", str(path)]).stdout

    def exists(self, path: PathLike) -> bool:
        return self.run(["test", "-e", str(path)], check=False).ok

    def make_dirs(self, path: PathLike, *, owner: Optional[Owner] = None) -> None:
        created = []
        cur = PurePosixPath(path)
        while not self.exists(cur):
            created.append(cur)
            cur = cur.parent
        self.run(["mkdir", "-p", str(path)])
        if owner is not None and created:
            self.run(["chown", f"{owner[0]}:{owner[1]}", *map(str, created)])

    def write_text(
        self,
        path: PathLike,
        content: str,
        *,
        mode: int = 0o644,
        owner: Optional[Owner] = None,
    ) -> None:
        path = PurePosixPath(path)
        if not self.exists(path.parent):
            self.make_dirs(path.parent, owner=owner)

        # upload as the login user, then move into place
        tmp = f"/tmp/.kubestrap.{os.getpid()}.{uuid.uuid4().hex[:8]}"
        sftp = self.client.open_sftp()
        try:
            with sftp.open(tmp, "w") as f:
                # readable by the login user only, before anything is written
                f.chmod(0o600)
                f.write(content)
        finally:
            sftp.close()

        self.run(["mv", tmp, str(path)])
        self.run(["chmod", format(mode, "o"), str(path)])
        if owner is not None:
            self.run(["chown", f"{owner[0]}:{owner[1]}", str(path)])
        elif self.sudo:
            self.run(["chown", "root:root", str(path)])

    def close(self) -> None:
        self.client.close()
