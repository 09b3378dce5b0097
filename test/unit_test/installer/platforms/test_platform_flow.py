"""End-to-end platform flows against a fake command runner."""

import logging

import httpx
import pytest
import yaml

from installer.errors import InstallerError, ValidationError
from installer.models import InstallType, Provider
from installer.platforms import ExistingClusterPlatform, KindPlatform
from installer.platforms.base import STEP_APPLICATION
from installer.prompts import SilentPrompter
from installer.state import InstallState

HEALTHY = "og-dex-1   1/1   Running   0   1m\nog-migrator-1   0/1   Completed   0   1m\n"
THREE_READY = "n1   Ready   <none>   1m   v1.31\nn2   Ready   <none>   1m   v1.31\nn3   Ready   <none>   1m   v1.31\n"


@pytest.fixture
def http_client():
    return httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))


@pytest.fixture
def healthy_cluster(runner):
    runner.on("kubectl", "get", "pods", stdout=HEALTHY)
    runner.on("kubectl", "get", "nodes", stdout=THREE_READY)
    runner.fail("kubectl", "get", "clusterrole")
    return runner


class TestKindPlatform:
    def test_fresh_install_creates_cluster_and_port_forwards(self, healthy_cluster, make_ctx, http_client, sleeps):
        runner = healthy_cluster
        runner.on("kind", "get", "clusters", stdout="")
        ctx = make_ctx("")

        KindPlatform(ctx, exists=lambda name: True, http_client=http_client).run()

        assert runner.called("kind", "create", "cluster", "--name", "opengovernance")
        assert runner.called("kubectl", "config", "use-context", "kind-opengovernance")
        assert runner.calls_with("helm", "upgrade")[0][3] == "opengovernance"
        assert runner.started == [
            ["kubectl", "port-forward", "-n", "opengovernance", "service/nginx-proxy", "8080:80"]
        ]
        assert ctx.options.install_type == InstallType.BASIC
        assert not ctx.state_store.exists()

    def test_reuses_selected_cluster(self, healthy_cluster, make_ctx, http_client):
        runner = healthy_cluster
        runner.on("kind", "get", "clusters", stdout="dev\nog\n")
        ctx = make_ctx("", "2")

        KindPlatform(ctx, exists=lambda name: True, http_client=http_client).run()

        assert not runner.called("kind", "create")
        assert runner.called("kubectl", "config", "use-context", "kind-og")

    def test_resume_skips_finished_steps(self, healthy_cluster, make_ctx, http_client):
        runner = healthy_cluster
        ctx = make_ctx()
        ctx.state = InstallState(provider="Kind", cluster_name="og", install_type=4)
        ctx.state.advance(STEP_APPLICATION)

        KindPlatform(ctx, exists=lambda name: True, http_client=http_client).run()

        assert runner.called("kubectl", "config", "use-context", "kind-og")
        assert not runner.called("kind")
        assert not runner.called("helm", "upgrade")
        assert len(runner.started) == 1

    def test_rejects_ingress_types(self, make_ctx, http_client):
        ctx = make_ctx(install_type=InstallType.PUBLIC_IP)
        with pytest.raises(ValidationError, match="not supported"):
            KindPlatform(ctx, exists=lambda name: True, http_client=http_client).run()


class TestExistingClusterPlatform:
    def test_https_install(self, healthy_cluster, make_ctx, http_client, monkeypatch):
        runner = healthy_cluster
        runner.on("kubectl", "get", "svc", stdout="203.0.113.7")
        runner.on("kubectl", "get", "clusterissuer", stdout="True")
        checked = []
        monkeypatch.setattr(
            "installer.platforms.base.wait_for_dns",
            lambda domain, prompter, sleep: checked.append(domain) or ["203.0.113.7"],
        )
        ctx = make_ctx(domain="og.example.com", email="ops@example.com")

        ExistingClusterPlatform(ctx, provider=Provider.AZURE, exists=lambda name: True, http_client=http_client).run()

        releases = [call[3] for call in runner.calls_with("helm", "upgrade")]
        assert releases == ["ingress-nginx", "opengovernance", "cert-manager"]
        applied = [yaml.safe_load(text) for text in runner.inputs if text]
        assert [doc["kind"] for doc in applied] == ["Ingress", "ClusterIssuer"]
        assert applied[0]["spec"]["tls"][0]["hosts"] == ["og.example.com"]
        assert checked == ["og.example.com"]
        assert runner.called("kubectl", "rollout", "restart", "deployment/nginx-proxy")
        assert ctx.options.install_type == InstallType.HTTPS
        assert runner.started == []

    def test_public_ip_install_serves_on_ingress_address(self, healthy_cluster, make_ctx, http_client):
        runner = healthy_cluster
        runner.on("kubectl", "get", "svc", stdout="203.0.113.7")
        ctx = make_ctx(install_type=InstallType.PUBLIC_IP)

        ExistingClusterPlatform(ctx, provider=Provider.UNKNOWN, exists=lambda name: True, http_client=http_client).run()

        assert ctx.state.access_address == "203.0.113.7"
        assert not runner.called("kubectl", "get", "clusterissuer")

    def test_prompts_for_domain_when_type_needs_one(self, healthy_cluster, make_ctx, http_client, monkeypatch):
        runner = healthy_cluster
        runner.on("kubectl", "get", "svc", stdout="203.0.113.7")
        monkeypatch.setattr("installer.platforms.base.wait_for_dns", lambda domain, prompter, sleep: [])
        ctx = make_ctx("og.example.com", install_type=InstallType.HOSTNAME_ONLY)

        ExistingClusterPlatform(ctx, exists=lambda name: True, http_client=http_client).run()

        assert ctx.options.domain == "og.example.com"
        assert ctx.state.user_inputs == {"Enter your domain": "og.example.com"}

    def test_minikube_is_limited_to_port_forward(self, make_ctx):
        platform = ExistingClusterPlatform(make_ctx(), provider=Provider.MINIKUBE)
        assert platform.allowed_install_types == (InstallType.BASIC,)

    def test_minikube_with_domain_defaults_to_port_forward(self, make_ctx):
        ctx = make_ctx("", domain="og.example.com")
        platform = ExistingClusterPlatform(ctx, provider=Provider.MINIKUBE)

        platform.collect_options()

        assert ctx.options.install_type == InstallType.BASIC
        assert platform.preferred_install_type() == InstallType.BASIC

    def test_silent_minikube_with_domain_installs_basic(self, make_ctx):
        ctx = make_ctx(prompter=SilentPrompter(), silent=True, domain="og.example.com")

        ExistingClusterPlatform(ctx, provider=Provider.MINIKUBE).collect_options()

        assert ctx.options.install_type == InstallType.BASIC


class TestConfigure:
    def test_reports_current_host_before_switching_type(self, healthy_cluster, make_ctx, http_client, caplog):
        caplog.set_level(logging.INFO, logger="installer")
        runner = healthy_cluster
        runner.on("helm", "list", stdout='[{"name": "opengovernance", "status": "deployed"}]')
        runner.on("kubectl", "get", "ingress", stdout="old.example.com")
        ctx = make_ctx(install_type=InstallType.BASIC)

        ExistingClusterPlatform(ctx, exists=lambda name: True, http_client=http_client).configure()

        assert "Current ingress host: old.example.com" in caplog.text
        assert runner.called("kubectl", "delete", "ingress", "opengovernance-ingress")
        assert len(runner.started) == 1

    def test_refuses_when_release_is_missing(self, healthy_cluster, make_ctx, http_client):
        healthy_cluster.on("helm", "list", stdout="[]")
        ctx = make_ctx(install_type=InstallType.BASIC)

        with pytest.raises(InstallerError, match="Run the install first"):
            ExistingClusterPlatform(ctx, exists=lambda name: True, http_client=http_client).configure()
