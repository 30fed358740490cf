# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/executor/interface.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Mapping, Optional, Protocol, Sequence, Tuple, Union

PathLike = Union[str, PurePosixPath]
Owner = Tuple[int, int]


class CommandError(RuntimeError):
    """A command exited non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        msg = (stderr or stdout).strip().splitlines()
        tail = msg[-1] if msg else "no output"
        super().__init__(f"`{' '.join(self.argv)}` exited {returncode}: {tail}")


@dataclass(frozen=True)
class CommandResult:
    argv: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def raise_for_status(self) -> "CommandResult":
        if self.returncode != 0:
            raise CommandError(self.argv, self.returncode, self.stdout, self.stderr)
        return self


class Executor(Protocol):
    """
    Capability through which steps touch the host.
    """

    def run(
        self,
        argv: Sequence[str],
        *,
        input: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        check: bool = True,
    ) -> CommandResult: ...

    def read_text(self, path: PathLike) -> Optional[str]: ...

    def exists(self, path: PathLike) -> bool: ...

    def write_text(
        self,
        path: PathLike,
        content: str,
        *,
        mode: int = 0o644,
        owner: Optional[Owner] = None,
    ) -> None: ...

    def make_dirs(self, path: PathLike, *, owner: Optional[Owner] = None) -> None: ...
