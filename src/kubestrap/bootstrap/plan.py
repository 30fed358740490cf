# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubestrap/bootstrap/plan.py
"""
The single-node bootstrap sequence:

- kernel and swap preparation for kubeadm
- containerd install and configuration
- kubeadm / kubelet / kubectl from the pkgs.k8s.io apt repository
- kubeadm init and the user's kubeconfig
- flannel, control-plane untaint, ingress-nginx on the host network
- the hello-kubernetes workload and an ingress in front of it
"""
from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import List, Optional

from .steps import apply_manifest_step, command_step, fetch_manifest_step, write_file_step
from ..config.models import BootstrapConfig, ResourceRef
from ..executor.interface import Executor
from ..host import kernel, swap
from ..host.apt import AptPackageManager
from ..host.containerd import Containerd
from ..kube.kubeadm import Kubeadm
from ..kube.kubectl import Kubectl
from ..manifests.fetch import ManifestFetcher
from ..manifests.render import TemplateRenderer
from ..sequencer.context import HostContext
from ..sequencer.steps import Step

log = logging.getLogger("kubestrap")


def build_steps(
    cfg: BootstrapConfig,
    *,
    fetcher: Optional[ManifestFetcher] = None,
    renderer: Optional[TemplateRenderer] = None,
) -> List[Step]:
    fetcher = fetcher or ManifestFetcher()
    renderer = renderer or TemplateRenderer()
    repo = cfg.kubernetes_repo

    def sysctl_file(settings) -> str:
        return renderer.render("sysctl.conf.j2", settings=settings)

    def modules_file(modules) -> str:
        return renderer.render("modules-load.conf.j2", modules=modules)

    def manifest_path(filename: str):
        return lambda ctx: str(ctx.path(cfg.manifest_dir, filename))

    def admin_conf(ctx: HostContext) -> str:
        return ctx.artifact("admin_conf", cfg.admin_conf)

    def user_kubeconfig(ctx: HostContext) -> str:
        return str(ctx.path(".kube", "config"))

    # ---------- swap ----------

    def fstab_clean(ex: Executor, ctx: HostContext) -> bool:
        text = ex.read_text(swap.FSTAB)
        return text is None or not swap.fstab_swap_entries(text)

    def comment_fstab(ex: Executor, ctx: HostContext) -> None:
        ex.write_text(swap.FSTAB, swap.comment_swap_entries(ex.read_text(swap.FSTAB) or ""))

    # ---------- apt ----------

    def install_step(name: str, packages: List[str], description: str) -> Step:
        return command_step(
            name,
            lambda ex, ctx: AptPackageManager(ex).installed(packages),
            lambda ex, ctx: AptPackageManager(ex).install(packages),
            description=description,
        )

    def write_apt_key(ex: Executor, ctx: HostContext) -> None:
        ex.make_dirs(str(PurePosixPath(repo.keyring).parent))
        ex.write_text(repo.keyring, fetcher.fetch_text(repo.key_url))

    # ---------- kubeadm / kubeconfig ----------

    def cluster_initialized(ex: Executor, ctx: HostContext) -> bool:
        if Kubeadm(ex, admin_conf=cfg.admin_conf).initialized():
            ctx.remember("admin_conf", cfg.admin_conf)
            return True
        return False

    def kubeadm_init(ex: Executor, ctx: HostContext) -> None:
        path = Kubeadm(ex, admin_conf=cfg.admin_conf).init_cluster(
            cfg.pod_network_cidr, cfg.kubeadm_extra_args
        )
        ctx.remember("admin_conf", path)

    def kubeconfig_current(ex: Executor, ctx: HostContext) -> bool:
        admin = ex.read_text(admin_conf(ctx))
        return admin is not None and ex.read_text(user_kubeconfig(ctx)) == admin

    def copy_kubeconfig(ex: Executor, ctx: HostContext) -> None:
        admin = ex.read_text(admin_conf(ctx))
        if admin is None:
            raise FileNotFoundError(f"{admin_conf(ctx)} does not exist; has kubeadm init run?")
        dest = user_kubeconfig(ctx)
        ex.make_dirs(str(PurePosixPath(dest).parent), owner=ctx.owner)
        ex.write_text(dest, admin, mode=0o600, owner=ctx.owner)
        ctx.remember("kubeconfig", dest)

    # ---------- cluster ----------

    def untainted(ex: Executor, ctx: HostContext) -> bool:
        return not Kubectl(ex, kubeconfig=admin_conf(ctx)).tainted_with(cfg.control_plane_taints)

    def untaint(ex: Executor, ctx: HostContext) -> None:
        kubectl = Kubectl(ex, kubeconfig=admin_conf(ctx))
        for key in kubectl.tainted_with(cfg.control_plane_taints):
            kubectl.remove_taint(key)

    ingress_ready = cfg.ingress_controller.ready

    def controller_available(ex: Executor, ctx: HostContext) -> bool:
        kubectl = Kubectl(ex, kubeconfig=admin_conf(ctx))
        return kubectl.deployment_available(ingress_ready.name, ingress_ready.namespace or "default")

    def wait_controller(ex: Executor, ctx: HostContext) -> None:
        Kubectl(ex, kubeconfig=admin_conf(ctx)).wait_for_rollout(
            ingress_ready.name, ingress_ready.namespace or "default"
        )

    wl = cfg.workload
    ing = cfg.ingress

    steps = [
        write_file_step(
            "bridge-nf-sysctl",
            "/etc/sysctl.d/20-bridge-nf.conf",
            sysctl_file(cfg.bridge_sysctl),
        ),
        command_step(
            "disable-swap",
            lambda ex, ctx: not swap.active_swaps(ex),
            lambda ex, ctx: swap.disable_swap(ex),
            description="swapoff -a",
        ),
        command_step(
            "fstab-swap",
            fstab_clean,
            comment_fstab,
            description=f"comment out swap entries in {swap.FSTAB}",
        ),
        write_file_step(
            "containerd-modules-file",
            "/etc/modules-load.d/containerd.conf",
            modules_file(cfg.containerd.modules),
        ),
        command_step(
            "containerd-modules",
            lambda ex, ctx: not kernel.missing_modules(ex, cfg.containerd.modules),
            lambda ex, ctx: kernel.load_modules(ex, cfg.containerd.modules),
            description=f"modprobe {' '.join(cfg.containerd.modules)}",
        ),
        write_file_step(
            "cri-sysctl",
            "/etc/sysctl.d/99-kubernetes-cri.conf",
            sysctl_file(cfg.cri_sysctl),
        ),
        command_step(
            "apply-sysctl",
            lambda ex, ctx: not kernel.sysctl_drift(ex, {**cfg.bridge_sysctl, **cfg.cri_sysctl}),
            lambda ex, ctx: kernel.apply_sysctl(ex),
            description="sysctl --system",
        ),
        install_step("install-containerd", cfg.packages.runtime, "apt-get install " + " ".join(cfg.packages.runtime)),
        command_step(
            "configure-containerd",
            lambda ex, ctx: Containerd(
                ex, config_path=cfg.containerd.config_path, systemd_cgroup=cfg.containerd.systemd_cgroup
            ).configured(),
            lambda ex, ctx: Containerd(
                ex, config_path=cfg.containerd.config_path, systemd_cgroup=cfg.containerd.systemd_cgroup
            ).write_default_config(),
            description=f"containerd config default > {cfg.containerd.config_path}, restart containerd",
        ),
        write_file_step(
            "k8s-modules-file",
            "/etc/modules-load.d/k8s.conf",
            modules_file(cfg.k8s_modules),
        ),
        command_step(
            "k8s-modules",
            lambda ex, ctx: not kernel.missing_modules(ex, cfg.k8s_modules),
            lambda ex, ctx: kernel.load_modules(ex, cfg.k8s_modules),
            description=f"modprobe {' '.join(cfg.k8s_modules)}",
        ),
        write_file_step(
            "k8s-sysctl",
            "/etc/sysctl.d/k8s.conf",
            sysctl_file(cfg.k8s_sysctl),
        ),
        command_step(
            "apply-k8s-sysctl",
            lambda ex, ctx: not kernel.sysctl_drift(ex, cfg.k8s_sysctl),
            lambda ex, ctx: kernel.apply_sysctl(ex),
            description="sysctl --system",
        ),
        install_step(
            "apt-prerequisites",
            cfg.packages.prerequisites,
            "apt-get install " + " ".join(cfg.packages.prerequisites),
        ),
        command_step(
            "kubernetes-apt-key",
            lambda ex, ctx: ex.exists(repo.keyring),
            write_apt_key,
            description=f"download {repo.key_url} to {repo.keyring}",
        ),
        write_file_step(
            "kubernetes-apt-source",
            repo.list_path,
            renderer.render("kubernetes.list.j2", keyring=repo.keyring, repo_url=repo.repo_url),
        ),
        install_step(
            "install-kubernetes",
            cfg.packages.kubernetes,
            "apt-get install " + " ".join(cfg.packages.kubernetes),
        ),
        command_step(
            "hold-kubernetes",
            lambda ex, ctx: AptPackageManager(ex).held(cfg.packages.kubernetes),
            lambda ex, ctx: AptPackageManager(ex).hold(cfg.packages.kubernetes),
            description="apt-mark hold " + " ".join(cfg.packages.kubernetes),
        ),
        command_step(
            "kubeadm-init",
            cluster_initialized,
            kubeadm_init,
            description=f"kubeadm init --pod-network-cidr={cfg.pod_network_cidr}",
        ),
        command_step(
            "user-kubeconfig",
            kubeconfig_current,
            copy_kubeconfig,
            description=f"copy {cfg.admin_conf} to ~/.kube/config",
        ),
        fetch_manifest_step(cfg.pod_network, manifest_path(cfg.pod_network.filename), fetcher),
        apply_manifest_step(
            f"apply-{cfg.pod_network.name}",
            manifest_path(cfg.pod_network.filename),
            cfg.pod_network.ready,
            admin_conf,
        ),
        command_step(
            "untaint-control-plane",
            untainted,
            untaint,
            description="let pods schedule on the control-plane node",
        ),
        fetch_manifest_step(cfg.ingress_controller, manifest_path(cfg.ingress_controller.filename), fetcher),
        apply_manifest_step(
            f"apply-{cfg.ingress_controller.name}",
            manifest_path(cfg.ingress_controller.filename),
            cfg.ingress_controller.ready,
            admin_conf,
        ),
        write_file_step(
            "render-hello-workload",
            manifest_path(wl.filename),
            renderer.render(
                "hello-kubernetes.yaml.j2",
                name=wl.name,
                namespace=wl.namespace,
                image=wl.image,
                replicas=wl.replicas,
                service_port=wl.service_port,
                container_port=wl.container_port,
            ),
            user_owned=True,
            description=f"render ~/{cfg.manifest_dir}/{wl.filename}",
        ),
        apply_manifest_step(
            "apply-hello-workload",
            manifest_path(wl.filename),
            ResourceRef(kind="deployment", name=wl.name, namespace=wl.namespace),
            admin_conf,
        ),
        command_step(
            f"wait-{cfg.ingress_controller.name}",
            controller_available,
            wait_controller,
            description=f"rollout status deployment/{ingress_ready.name}",
        ),
        write_file_step(
            "render-ingress",
            manifest_path(ing.filename),
            renderer.render(
                "ingress.yaml.j2",
                name=ing.name,
                namespace=ing.namespace,
                annotations=ing.annotations,
                class_name=ing.class_name,
                host=ing.host,
                path=ing.path,
                service_name=wl.name,
                service_port=wl.service_port,
            ),
            user_owned=True,
            description=f"render ~/{cfg.manifest_dir}/{ing.filename}",
        ),
        apply_manifest_step(
            "apply-ingress",
            manifest_path(ing.filename),
            ResourceRef(kind="ingress", name=ing.name, namespace=ing.namespace),
            admin_conf,
        ),
    ]

    log.debug("built %d steps", len(steps))
    return steps
