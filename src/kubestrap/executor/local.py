# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .interface import CommandResult, Owner, PathLike

log = logging.getLogger("kubestrap")


class LocalExecutor:
    """
    Runs commands and file operations on the machine kubestrap runs on.
    """

    def __init__(self, *, label: str = "local", timeout: int = 1800):
        self.label = label
        self.timeout = timeout
        self.hostname = os.uname().nodename

    def run(
        self,
        argv: Sequence[str],
        *,
        input: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        check: bool = True,
    ) -> CommandResult:
        argv = [str(a) for a in argv]
        log.debug("[%s] $ %s", self.label, " ".join(argv))

        merged = None
        if env:
            merged = {**os.environ, **env}

        start = time.time()
        try:
            cp = subprocess.run(
                argv,
                input=input,
                capture_output=True,
                text=True,
                env=merged,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise RuntimeError(f"[{self.label}] `{' '.join(argv)}` timed out after {self.timeout}s") from exc

        duration = time.time() - start
        if cp.stdout:
            log.debug("[%s][stdout]\n%s", self.label, cp.stdout.rstrip())
        if cp.stderr:
            log.debug("[%s][stderr]\n%s", self.label, cp.stderr.rstrip())
        log.debug("[%s][exit %d] (%.2fs)", self.label, cp.returncode, duration)

        result = CommandResult(tuple(argv), cp.returncode, cp.stdout or "", cp.stderr or "")
        if check:
            result.raise_for_status()
        return result

    def read_text(self, path: PathLike) -> Optional[str]:
        try:
            return Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def make_dirs(self, path: PathLike, *, owner: Optional[Owner] = None) -> None:
        p = Path(path)
        created = []
        cur = p
        while not cur.exists():
            created.append(cur)
            cur = cur.parent
        p.mkdir(parents=True, exist_ok=True)
        if owner is not None:
            for d in created:
                os.chown(d, *owner)

    def write_text(
        self,
        path: PathLike,
        content: str,
        *,
        mode: int = 0o644,
        owner: Optional[Owner] = None,
    ) -> None:
        p = Path(path)
        if not p.parent.exists():
            self.make_dirs(p.parent, owner=owner)
        log.debug("[%s] write %s (%d bytes, mode %o)", self.label, p, len(content), mode)

        # mode and owner are in place before the first byte lands
        fd = os.open(p, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            os.fchmod(fd, mode)
            if owner is not None:
                os.fchown(fd, *owner)
            f.write(content)
