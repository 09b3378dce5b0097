"""Unit tests for kubectl output parsing."""

import pytest

from installer.errors import CommandError
from installer.kubectl import Kubectl

NODES = """\
ip-10-0-1-1.ec2.internal   Ready      <none>   5m   v1.31.0
ip-10-0-1-2.ec2.internal   NotReady   <none>   5m   v1.31.0
ip-10-0-1-3.ec2.internal   Ready      <none>   5m   v1.31.0
"""

PODS = """\
opengovernance-dex-7c9d        1/1   Running            0   3m
opengovernance-migrator-x1     0/1   Completed          0   3m
opensearch-master-0            0/1   CrashLoopBackOff   4   3m
keda-operator-5d9              0/1   Pending            0   3m
"""


@pytest.fixture
def kubectl(runner):
    return Kubectl(runner)


class TestNodes:
    def test_counts(self, runner, kubectl):
        runner.on("kubectl", "get", "nodes", stdout=NODES)
        assert kubectl.node_count() == 3
        assert kubectl.ready_node_count() == 2

    def test_no_cluster(self, runner, kubectl):
        runner.fail("kubectl", "get", "nodes")
        assert kubectl.ready_node_count() == 0


class TestPods:
    def test_statuses(self, runner, kubectl):
        runner.on("kubectl", "get", "pods", stdout=PODS)
        assert kubectl.pod_statuses("opengovernance")["opensearch-master-0"] == "CrashLoopBackOff"
        assert kubectl.unhealthy_pods("opengovernance") == {
            "opensearch-master-0": "CrashLoopBackOff",
            "keda-operator-5d9": "Pending",
        }

    def test_pods_json(self, runner, kubectl):
        runner.on("kubectl", "get", "pods", stdout='{"items": []}')
        assert kubectl.pods_json("opengovernance") == {"items": []}


class TestClusterIdentity:
    def test_joins_control_plane_context_cluster_and_server(self, runner, kubectl):
        runner.on(
            "kubectl", "cluster-info",
            stdout="Kubernetes control plane is running at https://ABC.gr7.us-east-1.eks.amazonaws.com\n",
        )
        runner.on("kubectl", "config", "current-context", stdout="arn:aws:eks:us-east-1:1:cluster/og\n")
        runner.on(
            "kubectl", "config", "view",
            stdout=["arn:aws:eks:us-east-1:1:cluster/og", "https://ABC.gr7.us-east-1.eks.amazonaws.com"],
        )
        identity = kubectl.cluster_identity()
        assert identity.startswith("https://ABC.gr7.us-east-1.eks.amazonaws.com arn:aws:eks")
        assert identity.count("eks.amazonaws.com") == 2

    def test_disconnected(self, runner, kubectl):
        runner.fail("kubectl")
        assert kubectl.cluster_identity() == ""
        assert not kubectl.is_connected()
        with pytest.raises(CommandError):
            kubectl.require_connection()


class TestResources:
    def test_apply_sends_manifest_on_stdin(self, runner, kubectl):
        kubectl.apply("kind: Namespace\n", namespace="og")
        assert runner.calls[-1] == ["kubectl", "apply", "-f", "-", "-n", "og"]
        assert runner.inputs[-1] == "kind: Namespace\n"

    def test_create_namespace_only_when_missing(self, runner, kubectl):
        kubectl.create_namespace("og")
        assert not runner.called("kubectl", "create", "namespace")

        runner.fail("kubectl", "get", "namespace")
        kubectl.create_namespace("og")
        assert runner.called("kubectl", "create", "namespace", "og")

    def test_delete_ignores_missing(self, runner, kubectl):
        kubectl.delete("ingress", "opengovernance-ingress", "og")
        assert runner.calls[-1] == [
            "kubectl", "delete", "ingress", "opengovernance-ingress", "--ignore-not-found", "-n", "og",
        ]

    def test_service_address_falls_back_to_hostname(self, runner, kubectl):
        runner.on("kubectl", "get", "svc", stdout=["", "abc.elb.amazonaws.com"])
        assert kubectl.service_external_address("ingress-nginx-controller", "og") == "abc.elb.amazonaws.com"

    def test_ingress_host_reads_first_rule(self, runner, kubectl):
        runner.on("kubectl", "get", "ingress", stdout="og.example.com\n")
        assert kubectl.ingress_host("opengovernance-ingress", "og") == "og.example.com"
        assert runner.calls[-1][-2:] == ["-o", "jsonpath={.spec.rules[0].host}"]

    def test_cluster_issuer_ready(self, runner, kubectl):
        runner.on("kubectl", "get", "clusterissuer", stdout="True")
        assert kubectl.cluster_issuer_ready("letsencrypt")

    def test_clusterrole_owner(self, runner, kubectl):
        runner.fail("kubectl", "get", "clusterrole")
        assert kubectl.clusterrole_release_namespace("ingress-nginx") is None

    def test_port_forward_starts_background_process(self, runner, kubectl):
        process = kubectl.port_forward("og", "nginx-proxy", 8080, 80)
        assert process is runner.process
        assert runner.started == [
            ["kubectl", "port-forward", "-n", "og", "service/nginx-proxy", "8080:80"]
        ]
