# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Optional


@dataclass
class HostContext:
    """
    Ambient facts about the target host, owned by a single run.
    """
    home: PurePosixPath           # invoking user's home directory
    user: str
    uid: int
    gid: int
    privileged: bool              # effective uid 0 on the target
    hostname: str = "localhost"
    # discovered artifact paths, e.g. "admin_conf" -> /etc/kubernetes/admin.conf
    artifacts: Dict[str, str] = field(default_factory=dict)

    @property
    def owner(self) -> tuple[int, int]:
        return self.uid, self.gid

    def path(self, *parts: str) -> PurePosixPath:
        """Resolve a path relative to the invoking user's home."""
        return self.home.joinpath(*parts)

    def remember(self, name: str, path: str | PurePosixPath) -> None:
        self.artifacts[name] = str(path)

    def artifact(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.artifacts.get(name, default)
