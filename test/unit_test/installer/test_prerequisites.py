"""Unit tests for tool and cloud CLI checks."""

import json

import pytest

from installer.errors import MissingToolError
from installer.models import Provider
from installer.prerequisites import PROVIDER_CHECKS, check_provider_cli, check_tools, detect_provider_clis

AWS_CHECK = next(c for c in PROVIDER_CHECKS if c.provider == Provider.AWS)
GCP_CHECK = next(c for c in PROVIDER_CHECKS if c.provider == Provider.GCP)


def test_check_tools_lists_every_missing_tool():
    with pytest.raises(MissingToolError) as excinfo:
        check_tools(["kubectl", "helm", "kind"], exists=lambda name: name == "kubectl")
    assert excinfo.value.tools == ["helm", "kind"]
    assert excinfo.value.message == "Missing required tools: helm, kind"


def test_check_tools_passes():
    check_tools(["kubectl", "helm"], exists=lambda name: True)


class TestProviderCli:
    def test_not_installed(self, runner):
        info = check_provider_cli(AWS_CHECK, runner, exists=lambda name: False)
        assert not info.available
        assert info.error == "CLI not installed"
        assert runner.calls == []

    def test_configured(self, runner):
        runner.on(
            "aws", "sts", "get-caller-identity",
            stdout=json.dumps({"Account": "123456789012", "Arn": "arn:aws:iam::123456789012:user/ops"}),
        )
        info = check_provider_cli(AWS_CHECK, runner, exists=lambda name: True)
        assert info.available
        assert info.details == {"Account": "123456789012", "IAM principal": "arn:aws:iam::123456789012:user/ops"}

    def test_not_configured(self, runner):
        runner.fail("aws", "sts", stderr="Unable to locate credentials")
        info = check_provider_cli(AWS_CHECK, runner, exists=lambda name: True)
        assert not info.available
        assert info.error == "CLI not configured"

    def test_gcp_without_active_account(self, runner):
        runner.on("gcloud", "auth", "list", stdout="")
        assert check_provider_cli(GCP_CHECK, runner, exists=lambda name: True).error == "CLI not configured"

    def test_gcp_details(self, runner):
        runner.on("gcloud", "auth", "list", stdout="ops@example.com\n")
        runner.on("gcloud", "config", "get-value", stdout=["my-project\n", ""])
        info = check_provider_cli(GCP_CHECK, runner, exists=lambda name: True)
        assert info.details == {"Account": "ops@example.com", "Project": "my-project", "Region": "(not set)"}


def test_detect_provider_clis_covers_every_provider(runner):
    infos = detect_provider_clis(runner, exists=lambda name: name == "doctl")
    assert [i.provider for i in infos] == [Provider.AWS, Provider.AZURE, Provider.GCP, Provider.DIGITALOCEAN]
    assert [i.available for i in infos] == [False, False, False, True]
