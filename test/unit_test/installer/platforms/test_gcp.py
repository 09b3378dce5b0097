import pytest

from installer.errors import ProviderError
from installer.platforms.gcp import GcpPlatform


@pytest.fixture
def gcloud(runner):
    runner.on("gcloud", "auth", "list", stdout="ops@example.com\n")
    runner.on("gcloud", "config", "get-value", "project", stdout="og-project\n")
    runner.on("gcloud", "config", "get-value", "compute/region", stdout="(unset)\n")
    return runner


def test_requires_an_active_account(make_ctx):
    with pytest.raises(ProviderError, match="gcloud auth login"):
        GcpPlatform(make_ctx()).check_credentials()


def test_unset_region_is_asked_for(make_ctx, gcloud):
    platform = GcpPlatform(make_ctx(""))
    platform.check_credentials()
    assert platform.project == "og-project"
    assert platform.region == "us-central1"


def test_provisions_stack_and_falls_back_to_get_credentials(make_ctx, gcloud, monkeypatch):
    configs = []

    class FakeStack:
        def __init__(self, name, work_dir=None):
            configs.append(name)

        def up(self, config):
            configs.append(config)
            return {}

    monkeypatch.setattr("installer.platforms.gcp.InfraStack", FakeStack)
    platform = GcpPlatform(make_ctx("og", region="europe-west1"))
    platform.check_credentials()
    platform.prepare_cluster()

    assert configs[0] == "gcp-og"
    assert configs[1]["gcp:project"] == "og-project"
    assert configs[1]["gcp:region"] == "europe-west1"
    assert gcloud.called(
        "gcloud", "container", "clusters", "get-credentials", "og",
        "--region", "europe-west1", "--project", "og-project",
    )


def test_resume_falls_back_to_get_credentials_without_stack_output(make_ctx, runner, monkeypatch):
    class FakeStack:
        def __init__(self, name, work_dir=None):
            assert name == "gcp-og"

        def outputs(self):
            return {}

    monkeypatch.setattr("installer.platforms.gcp.InfraStack", FakeStack)
    ctx = make_ctx()
    ctx.state.cluster_name = "og"
    ctx.state.cluster_created = True
    platform = GcpPlatform(ctx)
    platform.project = "og-project"
    platform.region = "us-central1"

    platform.resume_cluster()

    assert runner.called(
        "gcloud", "container", "clusters", "get-credentials", "og",
        "--region", "us-central1", "--project", "og-project",
    )
    assert runner.called("kubectl", "cluster-info")
