from types import SimpleNamespace

import pytest
from pulumi import automation as auto

from installer.errors import ProviderError
from installer.platforms.stack import InfraStack, stack_name


class FakeStack:
    def __init__(self, fail=False):
        self.config = {}
        self.fail = fail
        self.destroyed = False

    def set_config(self, key, value):
        self.config[key] = value.value

    def up(self, on_output=None):
        if self.fail:
            raise auto.CommandError(SimpleNamespace(stdout="", stderr="boom", code=1))
        on_output("Updating (aws-og)")
        return SimpleNamespace(outputs={"cluster_name": auto.OutputValue("og", False)})

    def destroy(self, on_output=None):
        self.destroyed = True

    def outputs(self):
        return {"configure_kubectl": auto.OutputValue("aws eks update-kubeconfig --name og", False)}


@pytest.fixture
def fake_stack(monkeypatch, tmp_path):
    (tmp_path / "Pulumi.yaml").write_text("name: opengovernance-infra\n")
    stack = FakeStack()
    opened = []

    def create_or_select_stack(stack_name, work_dir):
        opened.append((stack_name, work_dir))
        return stack

    monkeypatch.setattr(auto, "create_or_select_stack", create_or_select_stack)
    stack.opened = opened
    return stack


def test_stack_name():
    assert stack_name("aws", "og") == "aws-og"
    assert stack_name("gcp", "og", override="prod") == "prod"


def test_up_sets_config_and_returns_plain_outputs(fake_stack, tmp_path):
    lines = []
    stack = InfraStack("aws-og", work_dir=tmp_path, on_output=lines.append)

    outputs = stack.up({"cloud": "aws", "clusterName": "og"})

    assert outputs == {"cluster_name": "og"}
    assert fake_stack.config == {"cloud": "aws", "clusterName": "og"}
    assert fake_stack.opened == [("aws-og", str(tmp_path))]
    assert lines == ["Updating (aws-og)"]


def test_failed_up_is_a_provider_error(fake_stack, tmp_path):
    fake_stack.fail = True
    with pytest.raises(ProviderError, match="pulumi up failed for stack aws-og"):
        InfraStack("aws-og", work_dir=tmp_path).up({"cloud": "aws"})


def test_destroy(fake_stack, tmp_path):
    InfraStack("gcp-og", work_dir=tmp_path).destroy()
    assert fake_stack.destroyed


def test_outputs(fake_stack, tmp_path):
    outputs = InfraStack("aws-og", work_dir=tmp_path).outputs()
    assert outputs == {"configure_kubectl": "aws eks update-kubeconfig --name og"}


def test_stack_selection_failure_is_a_provider_error(fake_stack, monkeypatch, tmp_path):
    def create_or_select_stack(stack_name, work_dir):
        raise auto.CommandError(SimpleNamespace(stdout="", stderr="not logged in", code=255))

    monkeypatch.setattr(auto, "create_or_select_stack", create_or_select_stack)

    with pytest.raises(ProviderError, match="pulumi up failed for stack aws-og"):
        InfraStack("aws-og", work_dir=tmp_path).up({"cloud": "aws"})
    with pytest.raises(ProviderError, match="pulumi destroy failed"):
        InfraStack("aws-og", work_dir=tmp_path).destroy()


def test_missing_project_file_names_the_setting(fake_stack, tmp_path):
    work_dir = tmp_path / "site-packages"
    work_dir.mkdir()

    with pytest.raises(ProviderError, match="PULUMI_PROJECT_DIR"):
        InfraStack("aws-og", work_dir=work_dir).up({"cloud": "aws"})
    assert fake_stack.opened == []
