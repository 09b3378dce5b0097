from installer.console import print_success, print_warning
from installer.models import InstallType, Provider
from installer.platforms.base import Platform


class ExistingClusterPlatform(Platform):
    """Deploys onto whatever cluster the current kubectl context points at."""

    default_install_type = InstallType.BASIC
    domain_install_type = InstallType.HTTPS

    def __init__(self, ctx, provider: Provider = Provider.UNKNOWN, **kwargs):
        super().__init__(ctx, **kwargs)
        self.provider = provider
        self.name = f"existing {provider.value} cluster"
        if provider.is_local:
            self.allowed_install_types = (InstallType.BASIC,)
            self.domain_install_type = None

    def check_credentials(self) -> None:
        if self.provider == Provider.MINIKUBE:
            print_warning(
                "Minikube needs at least 4 CPUs and 16 GB of memory for OpenGovernance "
                "(minikube start --cpus 4 --memory 16384)."
            )

    def prepare_cluster(self) -> None:
        self.ctx.kubectl.require_connection()
        context = self.ctx.kubectl.current_context()
        self.ctx.state.cluster_name = context
        print_success(f"Using kubectl context {context}")
