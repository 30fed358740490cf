# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath

from ..executor.interface import Executor

log = logging.getLogger("kubestrap")

_CGROUP_OFF = re.compile(r"^([ \t]*)SystemdCgroup = false[ \t]*$", re.MULTILINE)


def enable_systemd_cgroup(config: str) -> str:
    """kubeadm configures the kubelet for the systemd cgroup driver; runc has to match."""
    return _CGROUP_OFF.sub(r"\1SystemdCgroup = true", config)


class Containerd:
    def __init__(
        self,
        executor: Executor,
        *,
        config_path: str = "/etc/containerd/config.toml",
        systemd_cgroup: bool = True,
    ):
        self.executor = executor
        self.config_path = PurePosixPath(config_path)
        self.systemd_cgroup = systemd_cgroup

    def configured(self) -> bool:
        text = self.executor.read_text(self.config_path)
        if text is None:
            return False
        if self.systemd_cgroup and _CGROUP_OFF.search(text):
            return False
        return True

    def default_config(self) -> str:
        text = self.executor.run(["containerd", "config", "default"]).stdout
        if self.systemd_cgroup:
            text = enable_systemd_cgroup(text)
        return text

    def write_default_config(self) -> str:
        self.executor.make_dirs(self.config_path.parent)
        self.executor.write_text(self.config_path, self.default_config())
        log.info("[containerd] wrote %s, restarting", self.config_path)
        self.executor.run(["systemctl", "restart", "containerd"])
        return str(self.config_path)
