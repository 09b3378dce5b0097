import logging

from installer.console import print_info, print_primary, print_success, print_warning
from installer.errors import ProviderError, ValidationError
from installer.models import InstallType, Provider, validate_cluster_name
from installer.platforms.base import Platform
from installer.polling import timed

logger = logging.getLogger(__name__)

DEFAULT_REGION = "nyc3"
NODE_POOL = "name=main-pool;size=g-4vcpu-16gb-intel;count=3"

USE_EXISTING = 0
NEW_NAME = 1


class DigitalOceanPlatform(Platform):
    name = "DigitalOcean Kubernetes"
    provider = Provider.DIGITALOCEAN
    required_tools = ("kubectl", "helm", "doctl")
    default_install_type = InstallType.PUBLIC_IP
    domain_install_type = InstallType.HTTPS
    helm_timeout = "10m"
    pod_attempts = 12

    def _doctl(self, *args: str, check: bool = False):
        return self.ctx.runner.run(["doctl", *args], check=check)

    def check_credentials(self) -> None:
        if not self._doctl("account", "get").ok:
            raise ProviderError("doctl is not authenticated. Run 'doctl auth init' first.")
        print_success("doctl is authenticated")

    def cluster_exists(self, name: str) -> bool:
        return self._doctl("kubernetes", "cluster", "get", name).ok

    def regions(self) -> list[str]:
        result = self._doctl(
            "kubernetes", "options", "regions", "--format", "Slug", "--no-header", check=True
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def choose_region(self) -> str:
        ctx = self.ctx
        region = ctx.options.region or ctx.state.region or DEFAULT_REGION
        if ctx.options.region or ctx.options.silent:
            return region
        if ctx.prompter.confirm(f"Create the cluster in region '{region}'?", default=True):
            return region

        available = self.regions()
        print_info(f"Available regions: {', '.join(available)}")

        def known_region(value: str) -> str:
            if value not in available:
                raise ValidationError(f"Unknown region: {value}")
            return value

        return ctx.prompter.ask("Enter the region", default=region, validator=known_region)

    def select_cluster_name(self) -> tuple[str, bool]:
        """Cluster name to use and whether it already exists."""
        ctx = self.ctx
        name = ctx.options.cluster_name
        while self.cluster_exists(name):
            choice = ctx.prompter.choose(
                f"A DigitalOcean cluster named '{name}' already exists.",
                [
                    ("Use the existing cluster", f"Install OpenGovernance onto '{name}'"),
                    ("Create a cluster with a different name", "Pick a new cluster name"),
                ],
                default=USE_EXISTING,
            )
            if choice == USE_EXISTING:
                return name, True
            name = ctx.prompter.ask(
                "Enter a new cluster name", required=True, validator=validate_cluster_name
            )
        return name, False

    def save_kubeconfig(self, name: str) -> None:
        self._doctl("kubernetes", "cluster", "kubeconfig", "save", name, check=True)
        print_success(f"kubectl configured for DigitalOcean cluster {name}")

    def prepare_cluster(self) -> None:
        ctx = self.ctx
        name, existing = self.select_cluster_name()
        ctx.state.cluster_name = name

        if not existing:
            region = self.choose_region()
            ctx.state.region = region
            print_primary(f"Creating DigitalOcean cluster '{name}' in {region} (10-15 minutes)...")
            with timed("DigitalOcean cluster creation", report=print_info):
                self._doctl(
                    "kubernetes", "cluster", "create", name,
                    "--region", region,
                    "--node-pool", NODE_POOL,
                    "--wait",
                    check=True,
                )
            ctx.state.cluster_created = True
            ctx.save_state()
            print_success(f"Cluster '{name}' created")
        else:
            print_warning(f"Reusing existing cluster '{name}'")

        self.save_kubeconfig(name)

    def resume_cluster(self) -> None:
        if self.ctx.state.cluster_name:
            self.save_kubeconfig(self.ctx.state.cluster_name)
        super().resume_cluster()
