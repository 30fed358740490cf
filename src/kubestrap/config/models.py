# src/kubestrap/config/models.py

from typing import Dict, List, Optional
from pydantic import BaseModel, HttpUrl, Field


class ResourceRef(BaseModel):
    """A cluster object whose presence means a manifest has been applied."""
    kind: str
    name: str
    namespace: Optional[str] = None


class ManifestSource(BaseModel):
    name: str                        # used in step names, e.g. "pod-network"
    url: HttpUrl
    filename: str                    # written under the manifest directory
    ready: ResourceRef
    host_network: bool = False       # inject hostNetwork: true after dnsPolicy: ClusterFirst


class KubernetesRepo(BaseModel):
    version: str = "v1.30"
    keyring: str = "/etc/apt/keyrings/kubernetes-apt-keyring.asc"
    list_path: str = "/etc/apt/sources.list.d/kubernetes.list"

    @property
    def repo_url(self) -> str:
        return f"https://pkgs.k8s.io/core:/stable:/{self.version}/deb/"

    @property
    def key_url(self) -> str:
        return f"{self.repo_url}Release.key"


class Packages(BaseModel):
    runtime: List[str] = Field(default_factory=lambda: ["containerd"])
    prerequisites: List[str] = Field(
        default_factory=lambda: ["apt-transport-https", "ca-certificates", "curl", "gpg"]
    )
    kubernetes: List[str] = Field(default_factory=lambda: ["kubelet", "kubeadm", "kubectl"])


class ContainerdSpec(BaseModel):
    config_path: str = "/etc/containerd/config.toml"
    systemd_cgroup: bool = True
    modules: List[str] = Field(default_factory=lambda: ["overlay", "br_netfilter"])


class HelloWorkload(BaseModel):
    name: str = "hello-kubernetes"
    namespace: str = "default"
    image: str = "paulbouwer/hello-kubernetes:1.8"
    replicas: int = 2
    service_port: int = 80
    container_port: int = 8080
    filename: str = "hello-k8s.yaml"


class IngressSpec(BaseModel):
    name: str = "minimal-ingress"
    namespace: str = "default"
    host: str = "k8s.local"
    path: str = "/"
    class_name: str = "nginx"
    annotations: Dict[str, str] = Field(
        default_factory=lambda: {
            "nginx.ingress.kubernetes.io/add-base-url": "true",
            "nginx.ingress.kubernetes.io/rewrite-target": "/",
        }
    )
    filename: str = "ingress.yaml"


def _flannel() -> ManifestSource:
    return ManifestSource(
        name="pod-network",
        url="https://github.com/flannel-io/flannel/releases/latest/download/kube-flannel.yml",
        filename="kube-flannel.yml",
        ready=ResourceRef(kind="daemonset", name="kube-flannel-ds", namespace="kube-flannel"),
    )


def _ingress_nginx() -> ManifestSource:
    return ManifestSource(
        name="ingress-controller",
        url="https://raw.githubusercontent.com/kubernetes/ingress-nginx/controller-v1.10.1/deploy/static/provider/baremetal/deploy.yaml",
        filename="nginx-ingress.yaml",
        ready=ResourceRef(kind="deployment", name="ingress-nginx-controller", namespace="ingress-nginx"),
        host_network=True,
    )


class BootstrapConfig(BaseModel):
    # flannel's default network
    pod_network_cidr: str = "10.244.0.0/16"
    kubeadm_extra_args: List[str] = Field(default_factory=list)
    user: Optional[str] = None               # owner of ~/.kube/config; defaults to SUDO_USER
    manifest_dir: str = ".kubestrap/manifests"  # relative to the user's home
    admin_conf: str = "/etc/kubernetes/admin.conf"

    bridge_sysctl: Dict[str, str] = Field(
        default_factory=lambda: {"net.bridge.bridge-nf-call-iptables": "1"}
    )
    cri_sysctl: Dict[str, str] = Field(
        default_factory=lambda: {
            "net.bridge.bridge-nf-call-iptables": "1",
            "net.ipv4.ip_forward": "1",
            "net.bridge.bridge-nf-call-ip6tables": "1",
        }
    )
    k8s_sysctl: Dict[str, str] = Field(
        default_factory=lambda: {
            "net.bridge.bridge-nf-call-ip6tables": "1",
            "net.bridge.bridge-nf-call-iptables": "1",
        }
    )
    k8s_modules: List[str] = Field(default_factory=lambda: ["br_netfilter"])

    kubernetes_repo: KubernetesRepo = Field(default_factory=KubernetesRepo)
    packages: Packages = Field(default_factory=Packages)
    containerd: ContainerdSpec = Field(default_factory=ContainerdSpec)
    control_plane_taints: List[str] = Field(
        default_factory=lambda: [
            "node-role.kubernetes.io/control-plane",
            "node-role.kubernetes.io/master",
        ]
    )

    pod_network: ManifestSource = Field(default_factory=_flannel)
    ingress_controller: ManifestSource = Field(default_factory=_ingress_nginx)
    workload: HelloWorkload = Field(default_factory=HelloWorkload)
    ingress: IngressSpec = Field(default_factory=IngressSpec)
