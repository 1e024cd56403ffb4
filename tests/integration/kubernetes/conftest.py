"""Live-cluster fixtures: a K3S server in Docker via testcontainers.

Every module gets its own namespace; each test gets an owner object in that
namespace so garbage collection never reaps the children it applies.
"""

from __future__ import annotations

import contextlib
import os
import subprocess
import time
import uuid
from collections.abc import Callable, Generator
from typing import TYPE_CHECKING

import pytest
import yaml
from kubernetes.client import V1ConfigMap, V1ObjectMeta, V1OwnerReference
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

from cluster_reconciler.integrations.kubernetes.cache import ObjectCache
from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
from cluster_reconciler.integrations.kubernetes.config import ClusterConfig, OperatorConfig
from cluster_reconciler.integrations.kubernetes.events import KubernetesEventRecorder
from cluster_reconciler.integrations.kubernetes.kinds import KindSpec
from cluster_reconciler.services.kubernetes.informer import CacheWatcher
from cluster_reconciler.services.kubernetes.resourceapply import ApplyControl
from cluster_reconciler.services.kubernetes.resources import ResourceClient

if TYPE_CHECKING:
    from pathlib import Path


def _docker_available() -> bool:
    try:
        result = subprocess.run(["docker", "info"], capture_output=True, timeout=10)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


pytestmark = [
    pytest.mark.kubernetes,
    pytest.mark.integration,
    pytest.mark.skipif(not _docker_available(), reason="Docker not available"),
]

K3S_IMAGE = os.environ.get("K3S_TEST_IMAGE", "rancher/k3s:v1.31.4-k3s1")


class K3SContainer(DockerContainer):  # type: ignore[misc]
    """Single-node K3S with the API server on a random host port."""

    API_PORT = 6443

    def __init__(self, image: str = K3S_IMAGE) -> None:
        super().__init__(image)
        self.with_command("server --disable=traefik --disable=metrics-server --write-kubeconfig-mode=644")
        self.with_exposed_ports(self.API_PORT)
        self.with_kwargs(privileged=True, tmpfs={"/run": "", "/var/run": ""})

    def get_kubeconfig(self) -> str:
        """Return the server kubeconfig rewritten to the mapped host port."""
        exit_code, output = self.exec("cat /etc/rancher/k3s/k3s.yaml")
        if exit_code != 0:
            raise RuntimeError(f"Failed to read kubeconfig: {output}")
        config = yaml.safe_load(output.decode("utf-8"))
        server = f"https://{self.get_container_host_ip()}:{self.get_exposed_port(self.API_PORT)}"
        for cluster in config.get("clusters", []):
            cluster.get("cluster", {})["server"] = server
        return yaml.dump(config)


@pytest.fixture(scope="session")
def k3s_container() -> Generator[K3SContainer]:
    with K3SContainer() as container:
        wait_for_logs(container, "Node controller sync successful", timeout=120)
        time.sleep(2)
        yield container


@pytest.fixture(scope="session")
def k3s_kubeconfig_path(k3s_container: K3SContainer, tmp_path_factory: pytest.TempPathFactory) -> Path:
    path = tmp_path_factory.mktemp("k3s") / "kubeconfig.yaml"
    path.write_text(k3s_container.get_kubeconfig())
    return path


@pytest.fixture(scope="session")
def k8s_client(k3s_kubeconfig_path: Path) -> Generator[KubernetesClient]:
    config = OperatorConfig(cluster=ClusterConfig(kubeconfig=str(k3s_kubeconfig_path)))
    with KubernetesClient(config) as client:
        yield client


@pytest.fixture(scope="module")
def test_namespace(k8s_client: KubernetesClient) -> Generator[str]:
    """A fresh namespace per module; deleted with its content on teardown."""
    name = f"inttest-{uuid.uuid4().hex[:8]}"
    k8s_client.core_v1.create_namespace(body={"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}})
    for _ in range(30):
        if k8s_client.core_v1.read_namespace(name=name).status.phase == "Active":
            break
        time.sleep(0.5)

    yield name

    with contextlib.suppress(Exception):
        k8s_client.core_v1.delete_namespace(name=name)


@pytest.fixture
def owner_ref(k8s_client: KubernetesClient, test_namespace: str) -> V1OwnerReference:
    """Controller reference to a live ConfigMap standing in for the parent."""
    owner = k8s_client.core_v1.create_namespaced_config_map(
        namespace=test_namespace,
        body=V1ConfigMap(metadata=V1ObjectMeta(name=f"owner-{uuid.uuid4().hex[:8]}")),
    )
    return V1OwnerReference(
        api_version="v1",
        kind="ConfigMap",
        name=owner.metadata.name,
        uid=owner.metadata.uid,
        controller=True,
        block_owner_deletion=True,
    )


@pytest.fixture
def recorder(k8s_client: KubernetesClient) -> KubernetesEventRecorder:
    return KubernetesEventRecorder(k8s_client, component="cluster-reconciler-inttest")


@pytest.fixture
def live_control(
    k8s_client: KubernetesClient, test_namespace: str
) -> Callable[[KindSpec], tuple[ApplyControl, CacheWatcher]]:
    """Build an apply control whose lister is a relisted live cache.

    Tests call ``watcher.relist()`` to bring the cache up to date, standing
    in for a running watch.
    """

    def _make(kind_spec: KindSpec) -> tuple[ApplyControl, CacheWatcher]:
        resources = ResourceClient(k8s_client, kind_spec)
        watcher = CacheWatcher(k8s_client, resources, ObjectCache(), namespace=test_namespace)
        watcher.relist()
        return ApplyControl(kind_spec, resources, watcher.cache), watcher

    return _make
