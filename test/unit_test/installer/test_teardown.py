import pytest

from installer.errors import UserExit
from installer.models import Provider
from installer.state import InstallState
from installer.teardown import destroy_cluster, uninstall


def test_silent_uninstall_with_controllers_and_kind_cluster(make_ctx, runner):
    ctx = make_ctx(silent=True, cluster_name="og-local")
    ctx.state_store.save(InstallState(current_step=2))

    uninstall(ctx, remove_controllers=True, destroy_provider=Provider.KIND)

    assert runner.called("helm", "uninstall", "opengovernance", "-n", "opengovernance")
    assert runner.called("helm", "uninstall", "ingress-nginx", "-n", "opengovernance")
    assert runner.called("helm", "uninstall", "cert-manager", "-n", "cert-manager")
    assert runner.called("kubectl", "delete", "namespace", "opengovernance")
    assert runner.called("kind", "delete", "cluster", "--name", "og-local")
    assert not ctx.state_store.exists()


def test_keeps_controllers_by_default(make_ctx, runner):
    uninstall(make_ctx("y"))
    assert not runner.called("helm", "uninstall", "cert-manager")
    assert not runner.called("kind")


def test_declining_cancels(make_ctx, runner):
    with pytest.raises(UserExit, match="Uninstall cancelled."):
        uninstall(make_ctx("n"))
    assert runner.calls == []


def test_cloud_clusters_go_through_pulumi(make_ctx, monkeypatch):
    destroyed = []

    class FakeStack:
        def __init__(self, name, work_dir=None):
            self.name = name

        def destroy(self):
            destroyed.append(self.name)

    monkeypatch.setattr("installer.teardown.InfraStack", FakeStack)
    destroy_cluster(make_ctx(), Provider.GCP, "og")
    assert destroyed == ["gcp-og"]


def test_unmanaged_provider_is_left_alone(make_ctx, runner):
    destroy_cluster(make_ctx(), Provider.AZURE, "og")
    assert runner.calls == []


def test_destroys_the_cluster_recorded_by_the_install(make_ctx, runner):
    ctx = make_ctx(silent=True)
    ctx.state_store.save(InstallState(cluster_name="og-prompted", namespace="opengovernance"))

    uninstall(ctx, destroy_provider=Provider.KIND)

    assert runner.called("kind", "delete", "cluster", "--name", "og-prompted")


def test_state_for_another_namespace_is_ignored(make_ctx, runner):
    ctx = make_ctx(silent=True, cluster_name="og-local")
    ctx.state_store.save(InstallState(cluster_name="other", namespace="staging"))

    uninstall(ctx, destroy_provider=Provider.KIND)

    assert runner.called("kind", "delete", "cluster", "--name", "og-local")
