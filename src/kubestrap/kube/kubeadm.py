# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from typing import Sequence

from ..executor.interface import Executor

log = logging.getLogger("kubestrap")


class KubeadmError(RuntimeError):
    pass


class Kubeadm:
    def __init__(self, executor: Executor, *, admin_conf: str = "/etc/kubernetes/admin.conf"):
        self.executor = executor
        self.admin_conf = admin_conf

    def initialized(self) -> bool:
        return self.executor.exists(self.admin_conf)

    def init_cluster(self, pod_network_cidr: str, extra_args: Sequence[str] = ()) -> str:
        """
        Run `kubeadm init` and return the path of the generated admin kubeconfig.
        """
        log.info("[kubeadm] init --pod-network-cidr=%s", pod_network_cidr)
        self.executor.run(["kubeadm", "init", f"--pod-network-cidr={pod_network_cidr}", *extra_args])
        if not self.initialized():
            raise KubeadmError(f"kubeadm init finished but {self.admin_conf} was not created")
        return self.admin_conf
