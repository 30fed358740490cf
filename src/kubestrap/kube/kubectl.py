# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/kube/kubectl.py

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Sequence

from ..executor.interface import CommandResult, Executor

log = logging.getLogger("kubestrap")


class KubectlError(RuntimeError):
    pass


class Kubectl:
    """
    kubectl client running through an Executor against one kubeconfig.
    """

    def __init__(self, executor: Executor, *, kubeconfig: str = "/etc/kubernetes/admin.conf"):
        self.executor = executor
        self.kubeconfig = kubeconfig

    def _run(self, args: Sequence[str]) -> CommandResult:
        return self.executor.run(["kubectl", "--kubeconfig", self.kubeconfig, *args], check=False)

    def apply_manifest(self, path: str) -> None:
        r = self._run(["apply", "-f", path])
        if not r.ok:
            raise KubectlError(f"kubectl apply -f {path} failed: {(r.stderr or r.stdout).strip()}")
        log.debug("[kubectl] applied %s\n%s", path, r.stdout.rstrip())

    def resource_exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        args = ["get", kind, name]
        if namespace:
            args += ["-n", namespace]
        return self._run(args).ok

    def get_json(self, args: Sequence[str]) -> dict:
        r = self._run([*args, "-o", "json"])
        if not r.ok:
            raise KubectlError(f"kubectl {' '.join(args)} failed: {(r.stderr or r.stdout).strip()}")
        try:
            return json.loads(r.stdout or "{}")
        except json.JSONDecodeError as e:
            raise KubectlError(f"Failed to parse kubectl output as JSON: {e}") from e

    def node_taints(self) -> Dict[str, List[str]]:
        """Node name -> taint keys."""
        data = self.get_json(["get", "nodes"])
        taints = {}
        for node in data.get("items", []):
            name = node.get("metadata", {}).get("name", "?")
            taints[name] = [t.get("key") for t in node.get("spec", {}).get("taints", []) or []]
        return taints

    def tainted_with(self, keys: Sequence[str]) -> List[str]:
        """Which of `keys` are still set on at least one node."""
        present = {k for node_keys in self.node_taints().values() for k in node_keys}
        return [k for k in keys if k in present]

    def remove_taint(self, key: str, selector: Optional[str] = None) -> None:
        target = ["-l", selector] if selector else ["--all"]
        r = self._run(["taint", "nodes", *target, f"{key}-"])
        if not r.ok:
            raise KubectlError(f"kubectl taint {key}- failed: {(r.stderr or r.stdout).strip()}")

    def deployment_available(self, name: str, namespace: str) -> bool:
        r = self._run(["get", "deployment", name, "-n", namespace, "-o", "json"])
        if not r.ok:
            return False
        status = json.loads(r.stdout or "{}").get("status", {})
        return status.get("availableReplicas", 0) >= 1

    def wait_for_rollout(self, name: str, namespace: str, timeout: int = 300) -> None:
        """
        Wait until a Deployment has all desired replicas available.
        """
        log.debug("[kubectl] Waiting for deployment/%s in %s", name, namespace)
        r = self._run(["rollout", "status", f"deployment/{name}", "-n", namespace, f"--timeout={timeout}s"])
        if not r.ok:
            raise KubectlError(f"deployment/{name} in {namespace} not ready: {(r.stderr or r.stdout).strip()}")
