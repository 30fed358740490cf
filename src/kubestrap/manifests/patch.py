# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/manifests/patch.py
from __future__ import annotations

import re
from typing import List

HOST_NETWORK = "hostNetwork: true"

# "dnsPolicy: ClusterFirst" at the end of a line, optionally as a list item
_DNS_POLICY = re.compile(r"^(?P<indent>[ \t]*)(?P<dash>- )?dnsPolicy: ClusterFirst[ \t]*$")


class ManifestPatchError(ValueError):
    pass


def _lines(text: str) -> List[str]:
    return text.splitlines(keepends=True)


def _field_indent(match: re.Match) -> str:
    indent = match.group("indent")
    return indent + "  " if match.group("dash") else indent


def _followed_by_host_network(lines: List[str], i: int) -> bool:
    return i + 1 < len(lines) and lines[i + 1].strip() == HOST_NETWORK


def is_host_network_patched(text: str) -> bool:
    lines = _lines(text)
    hits = [i for i, line in enumerate(lines) if _DNS_POLICY.match(line.rstrip("\r\n"))]
    return bool(hits) and all(_followed_by_host_network(lines, i) for i in hits)


def inject_host_network(text: str) -> str:
    """
    Put `hostNetwork: true` on the line after every `dnsPolicy: ClusterFirst`,
    so the pods bind the node's ports 80/443 directly.

    Lines that already carry the field are left alone. Raises
    ManifestPatchError when the manifest has no such line.
    """
    lines = _lines(text)
    out: List[str] = []
    found = False

    for i, line in enumerate(lines):
        out.append(line)
        m = _DNS_POLICY.match(line.rstrip("\r\n"))
        if not m:
            continue
        found = True
        if _followed_by_host_network(lines, i):
            continue
        if not line.endswith("\n"):
            out[-1] = line + "\n"
        out.append(f"{_field_indent(m)}{HOST_NETWORK}\n")

    if not found:
        raise ManifestPatchError("manifest has no line ending in 'dnsPolicy: ClusterFirst'")
    return "".join(out)
