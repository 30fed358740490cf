# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/host/apt.py
from __future__ import annotations

import logging
from typing import Iterable, List

from ..executor.interface import Executor

log = logging.getLogger("kubestrap")

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptPackageManager:
    def __init__(self, executor: Executor):
        self.executor = executor

    def is_installed(self, name: str) -> bool:
        r = self.executor.run(["dpkg-query", "-W", "-f=${Status}", name], check=False)
        return r.ok and "install ok installed" in r.stdout

    def missing(self, names: Iterable[str]) -> List[str]:
        return [n for n in names if not self.is_installed(n)]

    def installed(self, names: Iterable[str]) -> bool:
        return not self.missing(names)

    def install(self, names: Iterable[str]) -> None:
        todo = self.missing(names)
        if not todo:
            return
        log.info("[apt] installing %s", " ".join(todo))
        self.executor.run(["apt-get", "update"], env=APT_ENV)
        self.executor.run(["apt-get", "install", "-y", *todo], env=APT_ENV)

    def held(self, names: Iterable[str]) -> bool:
        out = self.executor.run(["apt-mark", "showhold"]).stdout.split()
        return all(n in out for n in names)

    def hold(self, names: Iterable[str]) -> None:
        self.executor.run(["apt-mark", "hold", *names])
