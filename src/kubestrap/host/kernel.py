# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/host/kernel.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..executor.interface import Executor


def module_loaded(executor: Executor, name: str) -> bool:
    # /sys/module also lists modules built into the kernel, /proc/modules does not
    return executor.exists(f"/sys/module/{name}")


def missing_modules(executor: Executor, names: Iterable[str]) -> List[str]:
    return [n for n in names if not module_loaded(executor, n)]


def load_modules(executor: Executor, names: Iterable[str]) -> None:
    for name in missing_modules(executor, names):
        executor.run(["modprobe", name])


def read_sysctl(executor: Executor, key: str) -> Optional[str]:
    text = executor.read_text("/proc/sys/" + key.replace(".", "/"))
    return text.strip() if text is not None else None


def sysctl_drift(executor: Executor, settings: Dict[str, str]) -> Dict[str, Optional[str]]:
    """Keys whose live value differs from the wanted one, mapped to the live value."""
    drift = {}
    for key, wanted in settings.items():
        live = read_sysctl(executor, key)
        if live != str(wanted):
            drift[key] = live
    return drift


def apply_sysctl(executor: Executor) -> None:
    executor.run(["sysctl", "--system"])
