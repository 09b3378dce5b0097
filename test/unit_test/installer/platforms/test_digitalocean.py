import pytest

from installer.errors import ProviderError
from installer.models import InstallType
from installer.platforms.digitalocean import NODE_POOL, DigitalOceanPlatform


@pytest.fixture
def make_platform(make_ctx):
    def factory(*answers, **options):
        return DigitalOceanPlatform(make_ctx(*answers, **options))

    return factory


def test_unauthenticated_doctl(make_platform, runner):
    runner.fail("doctl", "account", "get")
    with pytest.raises(ProviderError, match="doctl auth init"):
        make_platform().check_credentials()


def test_public_ip_without_domain_https_with_one(make_platform):
    assert make_platform().preferred_install_type() == InstallType.PUBLIC_IP
    assert make_platform(domain="og.example.com").preferred_install_type() == InstallType.HTTPS


def test_reuses_existing_cluster(make_platform, runner):
    platform = make_platform("1")
    assert platform.select_cluster_name() == ("opengovernance", True)


def test_picks_a_new_name_when_taken(make_platform, runner):
    runner.fail("doctl", "kubernetes", "cluster", "get")
    runner.on("doctl", "kubernetes", "cluster", "get", "opengovernance")
    platform = make_platform("2", "Bad_Name", "og-two")

    assert platform.select_cluster_name() == ("og-two", False)
    assert "Invalid cluster name: Bad_Name" in platform.ctx.prompter.printed[-1]


def test_creates_cluster_in_default_region(make_platform, runner):
    runner.fail("doctl", "kubernetes", "cluster", "get")
    platform = make_platform("")
    platform.prepare_cluster()

    assert runner.calls_with("doctl", "kubernetes", "cluster", "create") == [
        [
            "doctl", "kubernetes", "cluster", "create", "opengovernance",
            "--region", "nyc3",
            "--node-pool", NODE_POOL,
            "--wait",
        ]
    ]
    assert runner.called("doctl", "kubernetes", "cluster", "kubeconfig", "save", "opengovernance")
    assert platform.ctx.state.cluster_created
    assert platform.ctx.state.region == "nyc3"


def test_changing_region_validates_against_doctl(make_platform, runner):
    runner.on("doctl", "kubernetes", "options", "regions", stdout="nyc1\nsfo3\nams3\n")
    platform = make_platform("n", "mars1", "sfo3")

    assert platform.choose_region() == "sfo3"
    assert "Unknown region: mars1" in platform.ctx.prompter.printed


def test_region_flag_skips_the_question(make_platform, runner):
    assert make_platform(region="ams3").choose_region() == "ams3"
    assert not runner.called("doctl", "kubernetes", "options")
