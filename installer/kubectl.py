import json
import logging
import subprocess
from typing import Optional

from installer.errors import CommandError
from installer.runner import CommandRunner

logger = logging.getLogger(__name__)

HEALTHY_POD_STATUSES = ("Running", "Completed")


class Kubectl:
    """Thin wrapper over the kubectl CLI for the current kubeconfig context."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _run(self, *args: str, check: bool = False, input_text: Optional[str] = None):
        return self.runner.run(["kubectl", *args], check=check, input_text=input_text)

    def _jsonpath(self, *args: str, path: str) -> str:
        result = self._run(*args, "-o", f"jsonpath={path}")
        return result.stdout.strip() if result.ok else ""

    def is_connected(self) -> bool:
        return self._run("cluster-info").ok

    def current_context(self) -> str:
        result = self._run("config", "current-context")
        return result.stdout.strip() if result.ok else ""

    def context_cluster(self, context: str) -> str:
        return self._jsonpath(
            "config", "view", path=f'{{.contexts[?(@.name=="{context}")].context.cluster}}'
        )

    def cluster_server(self, cluster: str) -> str:
        return self._jsonpath(
            "config", "view", path=f'{{.clusters[?(@.name=="{cluster}")].cluster.server}}'
        )

    def control_plane_url(self) -> str:
        result = self._run("cluster-info")
        if not result.ok:
            return ""
        for line in result.stdout.splitlines():
            if "control plane" in line:
                return line.split()[-1]
        return ""

    def cluster_identity(self) -> str:
        """Control-plane URL, context, cluster name and server joined for provider detection."""
        context = self.current_context()
        cluster = self.context_cluster(context) if context else ""
        server = self.cluster_server(cluster) if cluster else ""
        return " ".join(part for part in (self.control_plane_url(), context, cluster, server) if part)

    def use_context(self, context: str) -> None:
        self._run("config", "use-context", context, check=True)

    def _node_lines(self) -> list[str]:
        result = self._run("get", "nodes", "--no-headers")
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    def node_count(self) -> int:
        return len(self._node_lines())

    def ready_node_count(self) -> int:
        return sum(
            1
            for line in self._node_lines()
            if len(line.split()) > 1 and line.split()[1] == "Ready"
        )

    def pod_statuses(self, namespace: str) -> dict[str, str]:
        """Pod name to the STATUS column of ``kubectl get pods``."""
        result = self._run("get", "pods", "-n", namespace, "--no-headers")
        if not result.ok:
            return {}
        statuses = {}
        for line in result.stdout.splitlines():
            fields = line.split()
            if len(fields) >= 3:
                statuses[fields[0]] = fields[2]
        return statuses

    def unhealthy_pods(self, namespace: str) -> dict[str, str]:
        return {
            name: status
            for name, status in self.pod_statuses(namespace).items()
            if status not in HEALTHY_POD_STATUSES
        }

    def pods_json(self, namespace: str) -> dict:
        result = self._run("get", "pods", "-n", namespace, "-o", "json", check=True)
        return json.loads(result.stdout or "{}")

    def namespace_exists(self, namespace: str) -> bool:
        return self._run("get", "namespace", namespace).ok

    def create_namespace(self, namespace: str) -> None:
        if not self.namespace_exists(namespace):
            self._run("create", "namespace", namespace, check=True)

    def delete_namespace(self, namespace: str) -> None:
        self._run("delete", "namespace", namespace, "--ignore-not-found", check=True)

    def apply(self, manifest: str, namespace: Optional[str] = None) -> None:
        args = ["apply", "-f", "-"]
        if namespace:
            args += ["-n", namespace]
        self._run(*args, check=True, input_text=manifest)

    def delete(self, kind: str, name: str, namespace: Optional[str] = None) -> None:
        args = ["delete", kind, name, "--ignore-not-found"]
        if namespace:
            args += ["-n", namespace]
        self._run(*args, check=True)

    def exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        args = ["get", kind, name]
        if namespace:
            args += ["-n", namespace]
        return self._run(*args).ok

    def rollout_restart(self, deployment: str, namespace: str) -> bool:
        return self._run("rollout", "restart", f"deployment/{deployment}", "-n", namespace).ok

    def delete_pods(self, selector: str, namespace: str) -> bool:
        return self._run("delete", "pods", "-l", selector, "-n", namespace).ok

    def service_external_address(self, service: str, namespace: str) -> str:
        """External IP of a LoadBalancer service, falling back to its hostname."""
        address = self._jsonpath(
            "get", "svc", service, "-n", namespace,
            path="{.status.loadBalancer.ingress[0].ip}",
        )
        if address:
            return address
        return self._jsonpath(
            "get", "svc", service, "-n", namespace,
            path="{.status.loadBalancer.ingress[0].hostname}",
        )

    def ingress_hostname(self, name: str, namespace: str) -> str:
        return self._jsonpath(
            "get", "ingress", name, "-n", namespace,
            path="{.status.loadBalancer.ingress[0].hostname}",
        )

    def ingress_host(self, name: str, namespace: str) -> str:
        return self._jsonpath(
            "get", "ingress", name, "-n", namespace, path="{.spec.rules[0].host}"
        )

    def cluster_issuer_ready(self, name: str) -> bool:
        status = self._jsonpath(
            "get", "clusterissuer", name,
            path='{.status.conditions[?(@.type=="Ready")].status}',
        )
        return status == "True"

    def clusterrole_release_namespace(self, name: str) -> Optional[str]:
        """Release namespace annotation of a cluster role, or None when it does not exist."""
        if not self.exists("clusterrole", name):
            return None
        return self._jsonpath(
            "get", "clusterrole", name,
            path="{.metadata.annotations.meta\\.helm\\.sh/release-namespace}",
        )

    def delete_cluster_role(self, name: str) -> None:
        self.delete("clusterrole", name)
        self.delete("clusterrolebinding", name)

    def deployment_exists(self, namespace: str, selector: str) -> bool:
        result = self._run("get", "deployments", "-n", namespace, "-l", selector, "--no-headers")
        return result.ok and bool(result.stdout.strip())

    def port_forward(
        self, namespace: str, service: str, local_port: int, remote_port: int
    ) -> subprocess.Popen:
        return self.runner.start(
            [
                "kubectl", "port-forward", "-n", namespace,
                f"service/{service}", f"{local_port}:{remote_port}",
            ]
        )

    def require_connection(self) -> None:
        if not self.is_connected():
            raise CommandError(
                ["kubectl", "cluster-info"], 1, "kubectl is not connected to a cluster"
            )
