import json
from pathlib import PurePosixPath

import pytest
import yaml

from kubestrap.executor.interface import CommandResult


FLANNEL_YAML = """\
apiVersion: v1
kind: Namespace
metadata:
  name: kube-flannel
---
apiVersion: apps/v1
kind: DaemonSet
metadata:
  name: kube-flannel-ds
  namespace: kube-flannel
spec:
  template:
    spec:
      hostNetwork: true
      containers:
      - name: kube-flannel
        image: docker.io/flannel/flannel:v0.25.1
"""

INGRESS_NGINX_YAML = """\
apiVersion: v1
kind: Namespace
metadata:
  name: ingress-nginx
---
apiVersion: apps/v1
kind: Deployment
metadata:
  name: ingress-nginx-controller
  namespace: ingress-nginx
spec:
  template:
    spec:
      containers:
      - name: controller
        image: registry.k8s.io/ingress-nginx/controller:v1.10.1
      dnsPolicy: ClusterFirst
      nodeSelector:
        kubernetes.io/os: linux
"""

APT_KEY = "-----BEGIN PGP PUBLIC KEY BLOCK-----\nfake\n-----END PGP PUBLIC KEY BLOCK-----\n"


class FakeHost:
    """
    In-memory stand-in for an Ubuntu host. Understands exactly the commands
    the bootstrap plan issues and keeps enough state for checks to observe.
    """

    def __init__(self, euid=0):
        self.euid = euid
        self.files = {
            "/etc/fstab": "UUID=abcd / ext4 defaults 0 1\n/swap.img none swap sw 0 0\n",
        }
        self.dirs = {"/", "/etc", "/home", "/home/alice"}
        self.modes = {}
        self.owners = {}
        self.calls = []
        self.swap_on = True
        self.modules = set()
        self.sysctl = {}
        self.packages = set()
        self.held = set()
        self.resources = set()
        self.taints = {}
        self.fail = {}          # command prefix (tuple) -> returncode

    # ---------- helpers ----------

    def ran(self, *prefix):
        return [c for c in self.calls if c[0] == "run" and tuple(c[1][: len(prefix)]) == prefix]

    def run_calls(self):
        return [c[1] for c in self.calls if c[0] == "run"]

    def _result(self, argv, rc=0, out="", err=""):
        return CommandResult(tuple(argv), rc, out, err)

    def _apply(self, path):
        for doc in yaml.safe_load_all(self.files[path]):
            if not doc:
                continue
            meta = doc.get("metadata", {})
            self.resources.add((doc["kind"].lower(), meta["name"], meta.get("namespace", "default")))

    def _kubectl(self, argv, args):
        if "/etc/kubernetes/admin.conf" not in self.files:
            return self._result(argv, 1, err="The connection to the server localhost:8080 was refused")
        ns = args[args.index("-n") + 1] if "-n" in args else "default"
        if args[:2] == ["apply", "-f"]:
            if args[2] not in self.files:
                return self._result(argv, 1, err=f"the path {args[2]} does not exist")
            self._apply(args[2])
            return self._result(argv, 0, out="configured\n")
        if args[:2] == ["get", "nodes"]:
            items = [
                {"metadata": {"name": n}, "spec": {"taints": [{"key": k, "effect": "NoSchedule"} for k in keys]}}
                for n, keys in self.taints.items()
            ]
            return self._result(argv, 0, out=json.dumps({"items": items}))
        if args[0] == "get":
            found = (args[1], args[2], ns) in self.resources
            if not found:
                return self._result(argv, 1, err=f'Error from server (NotFound): {args[1]} "{args[2]}" not found')
            if "json" in args:
                return self._result(argv, 0, out=json.dumps({"status": {"availableReplicas": 1}}))
            return self._result(argv, 0, out=f"{args[2]}\n")
        if args[:2] == ["taint", "nodes"]:
            key = args[-1].rstrip("-")
            for keys in self.taints.values():
                if key in keys:
                    keys.remove(key)
            return self._result(argv, 0, out="node/node-1 untainted\n")
        if args[0] == "rollout":
            return self._result(argv, 0, out="successfully rolled out\n")
        return self._result(argv, 1, err=f"unexpected kubectl args {args}")

    def _dispatch(self, argv):
        if argv == ["id", "-u"]:
            return self._result(argv, 0, out=f"{self.euid}\n")
        if argv == ["id", "-un"]:
            return self._result(argv, 0, out="root\n" if self.euid == 0 else "alice\n")
        if argv == ["printenv", "SUDO_USER"]:
            return self._result(argv, 0, out="alice\n")
        if argv[:2] == ["getent", "passwd"]:
            return self._result(argv, 0, out=f"{argv[2]}:x:1000:1000:Alice:/home/{argv[2]}:/bin/bash\n")
        if argv == ["hostname"]:
            return self._result(argv, 0, out="node-1\n")
        if argv == ["swapoff", "-a"]:
            self.swap_on = False
            return self._result(argv)
        if argv[0] == "modprobe":
            self.modules.add(argv[1])
            return self._result(argv)
        if argv == ["sysctl", "--system"]:
            for path, text in self.files.items():
                if path.startswith("/etc/sysctl.d/") and path.endswith(".conf"):
                    for line in text.splitlines():
                        if "=" in line and not line.startswith("#"):
                            k, v = (s.strip() for s in line.split("=", 1))
                            self.sysctl[k] = v
            return self._result(argv)
        if argv[0] == "dpkg-query":
            if argv[-1] in self.packages:
                return self._result(argv, 0, out="install ok installed")
            return self._result(argv, 1, err=f"dpkg-query: no packages found matching {argv[-1]}")
        if argv[:2] == ["apt-get", "update"]:
            return self._result(argv)
        if argv[:3] == ["apt-get", "install", "-y"]:
            self.packages.update(argv[3:])
            return self._result(argv)
        if argv[:2] == ["apt-mark", "showhold"]:
            return self._result(argv, 0, out="".join(f"{p}\n" for p in sorted(self.held)))
        if argv[:2] == ["apt-mark", "hold"]:
            self.held.update(argv[2:])
            return self._result(argv)
        if argv[:3] == ["containerd", "config", "default"]:
            return self._result(argv, 0, out="version = 2\n          SystemdCgroup = false\n")
        if argv[:2] == ["systemctl", "restart"]:
            return self._result(argv)
        if argv[:2] == ["kubeadm", "init"]:
            self.files["/etc/kubernetes/admin.conf"] = "apiVersion: v1\nkind: Config\n"
            self.taints["node-1"] = ["node-role.kubernetes.io/control-plane"]
            return self._result(argv, 0, out="Your Kubernetes control-plane has initialized successfully!\n")
        if argv[0] == "kubectl":
            return self._kubectl(argv, list(argv[3:]))
        return self._result(argv, 127, err=f"{argv[0]}: command not found")

    # ---------- Executor ----------

    def run(self, argv, *, input=None, env=None, check=True):
        argv = [str(a) for a in argv]
        self.calls.append(("run", argv))
        for prefix, rc in self.fail.items():
            if tuple(argv[: len(prefix)]) == prefix:
                result = self._result(argv, rc, err="simulated failure")
                break
        else:
            result = self._dispatch(argv)
        if check:
            result.raise_for_status()
        return result

    def read_text(self, path):
        path = str(path)
        if path == "/proc/swaps":
            header = "Filename\tType\tSize\tUsed\tPriority\n"
            return header + ("/swap.img\tfile\t2097148\t0\t-2\n" if self.swap_on else "")
        if path.startswith("/proc/sys/"):
            value = self.sysctl.get(path[len("/proc/sys/"):].replace("/", "."))
            return None if value is None else f"{value}\n"
        return self.files.get(path)

    def exists(self, path):
        path = str(path)
        if path.startswith("/sys/module/"):
            return path.rsplit("/", 1)[1] in self.modules
        return path in self.files or path in self.dirs

    def make_dirs(self, path, *, owner=None):
        self.calls.append(("mkdir", str(path)))
        p = PurePosixPath(path)
        for d in [p, *p.parents]:
            if str(d) not in self.dirs:
                self.dirs.add(str(d))
                if owner is not None:
                    self.owners[str(d)] = owner

    def write_text(self, path, content, *, mode=0o644, owner=None):
        path = str(path)
        self.calls.append(("write", path))
        self.make_dirs(PurePosixPath(path).parent, owner=owner)
        self.files[path] = content
        self.modes[path] = mode
        if owner is not None:
            self.owners[path] = owner


class FakeFetcher:
    def __init__(self, documents=None):
        self.documents = documents or {}
        self.fetched = []

    def fetch(self, url):
        self.fetched.append(url)
        for suffix, body in self.documents.items():
            if url.endswith(suffix):
                return body.encode("utf-8")
        raise AssertionError(f"unexpected fetch {url}")

    def fetch_text(self, url):
        return self.fetch(url).decode("utf-8")


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher(
        {
            "kube-flannel.yml": FLANNEL_YAML,
            "baremetal/deploy.yaml": INGRESS_NGINX_YAML,
            "Release.key": APT_KEY,
        }
    )


@pytest.fixture
def make_host():
    return FakeHost
