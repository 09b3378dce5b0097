import logging
import shlex
from typing import Optional

from installer.console import print_info, print_primary, print_success
from installer.errors import ProviderError
from installer.models import InstallType, Provider, validate_cluster_name
from installer.platforms.base import Platform
from installer.platforms.stack import InfraStack, stack_name

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-central1"


class GcpPlatform(Platform):
    name = "Google Cloud GKE"
    provider = Provider.GCP
    required_tools = ("kubectl", "helm", "gcloud", "pulumi")
    default_install_type = InstallType.BASIC
    domain_install_type = InstallType.HTTPS

    def __init__(self, ctx, **kwargs):
        super().__init__(ctx, **kwargs)
        self.project: Optional[str] = None
        self.region: Optional[str] = None

    def _gcloud_value(self, key: str) -> str:
        result = self.ctx.runner.run(["gcloud", "config", "get-value", key])
        value = result.stdout.strip() if result.ok else ""
        return "" if value == "(unset)" else value

    def check_credentials(self) -> None:
        ctx = self.ctx
        account = ctx.runner.run(
            ["gcloud", "auth", "list", "--filter=status:ACTIVE", "--format=value(account)"]
        ).stdout.strip()
        if not account:
            raise ProviderError("No active gcloud account. Run 'gcloud auth login' first.")

        self.project = self._gcloud_value("project") or ctx.prompter.ask(
            "Enter the GCP project ID", required=True
        )
        self.region = (
            ctx.options.region
            or ctx.state.region
            or self._gcloud_value("compute/region")
            or ctx.prompter.ask("Enter the GCP region", default=DEFAULT_REGION)
        )
        print_success(f"gcloud account {account.splitlines()[0]}")
        print_info(f"GCP project: {self.project}, region: {self.region}")
        ctx.state.region = self.region

    def prepare_cluster(self) -> None:
        ctx = self.ctx
        cluster_name = ctx.prompter.ask(
            "Enter the GKE cluster name",
            default=ctx.options.cluster_name,
            validator=validate_cluster_name,
        )
        ctx.state.cluster_name = cluster_name
        print_primary(f"Provisioning GKE cluster '{cluster_name}' in {self.region}...")
        outputs = self.infra_stack(cluster_name).up(
            {
                "cloud": "gcp",
                "clusterName": cluster_name,
                "region": self.region,
                "gcp:project": self.project,
                "gcp:region": self.region,
            }
        )
        ctx.state.cluster_created = True
        ctx.save_state()
        self.configure_kubectl(outputs, cluster_name)

    def infra_stack(self, cluster_name: str) -> InfraStack:
        settings = self.ctx.settings
        return InfraStack(
            stack_name("gcp", cluster_name, settings.pulumi_stack),
            work_dir=settings.pulumi_project_dir,
        )

    def configure_kubectl(self, outputs: dict, cluster_name: str) -> None:
        command = outputs.get("configure_kubectl") or (
            f"gcloud container clusters get-credentials {cluster_name} "
            f"--region {self.region} --project {self.project}"
        )
        self.ctx.runner.run(shlex.split(command), check=True)
        print_success(f"kubectl configured for GKE cluster {cluster_name}")

    def resume_cluster(self) -> None:
        state = self.ctx.state
        if state.cluster_created and state.cluster_name:
            self.configure_kubectl(self.infra_stack(state.cluster_name).outputs(), state.cluster_name)
        super().resume_cluster()
