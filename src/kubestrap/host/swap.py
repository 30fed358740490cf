# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import List

from ..executor.interface import Executor

PROC_SWAPS = "/proc/swaps"
FSTAB = "/etc/fstab"


def active_swaps(executor: Executor) -> List[str]:
    text = executor.read_text(PROC_SWAPS) or ""
    # first line is the column header
    return [line.split()[0] for line in text.splitlines()[1:] if line.strip()]


def disable_swap(executor: Executor) -> None:
    executor.run(["swapoff", "-a"])


def _is_swap_entry(line: str) -> bool:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return False
    fields = stripped.split()
    return len(fields) >= 3 and fields[2] == "swap"


def fstab_swap_entries(fstab: str) -> List[str]:
    return [line for line in fstab.splitlines() if _is_swap_entry(line)]


def comment_swap_entries(fstab: str) -> str:
    """Comment out uncommented swap mounts so swap stays off after a reboot."""
    out = []
    for line in fstab.splitlines(keepends=True):
        out.append(f"#{line}" if _is_swap_entry(line) else line)
    return "".join(out)
