"""The install flow shared by every platform.

``Platform.run`` walks the same four steps everywhere:

1. prepare the cluster (provision or select one, point kubectl at it);
2. install the OpenGovernance chart and wait for its pods;
3. configure access (ingress, certificates, DNS, or a port-forward);
4. print how to reach the application.

Each finished step is written to the install state so that a rerun after a
failure picks up where the previous run stopped. Subclasses override the
class attributes and the ``prepare_cluster`` / ``configure_access`` hooks.
"""

import logging
from typing import Callable, Optional

import httpx

from installer.application import (
    RELEASE_NAME,
    check_chart_repository,
    check_existing_installation,
    display_completion,
    install_application,
    restart_application,
    start_port_forward,
    upgrade_application_address,
    wait_for_application,
    wait_for_existing_health,
)
from installer.console import print_header, print_info, print_primary, print_success
from installer.context import InstallContext
from installer.dns import wait_for_dns
from installer.errors import InstallerError
from installer.ingress import (
    deploy_ingress,
    remove_ingress,
    setup_cert_manager,
    setup_ingress_controller,
)
from installer.models import (
    InstallType,
    Provider,
    ReleaseStatus,
    resolve_install_type,
    validate_domain,
    validate_email,
)
from installer.manifests import INGRESS_NAME
from installer.platforms.detect import ensure_ready_nodes
from installer.polling import timed
from installer.prerequisites import check_tools
from installer.runner import command_exists

logger = logging.getLogger(__name__)

STEP_CLUSTER = 1
STEP_APPLICATION = 2
STEP_ACCESS = 3

INSTALL_TYPE_HELP = {
    InstallType.HTTPS: "Needs a domain you control and an email for Let's Encrypt certificates.",
    InstallType.HOSTNAME_ONLY: "Needs a domain; traffic is served over plain HTTP.",
    InstallType.PUBLIC_IP: "No domain needed; served over HTTP on the load balancer address.",
    InstallType.BASIC: "Nothing is exposed; reach the UI with kubectl port-forward.",
}


class Platform:
    name = "Kubernetes"
    provider = Provider.UNKNOWN
    required_tools: tuple[str, ...] = ("kubectl", "helm")
    allowed_install_types: tuple[InstallType, ...] = tuple(InstallType)
    default_install_type = InstallType.BASIC
    domain_install_type: Optional[InstallType] = None
    https_requires_email = True
    uses_ingress_nginx = True
    helm_timeout = "15m"
    pod_attempts = 24
    required_nodes = 3

    def __init__(
        self,
        ctx: InstallContext,
        exists: Callable[[str], bool] = command_exists,
        http_client: Optional[httpx.Client] = None,
    ):
        self.ctx = ctx
        self.exists = exists
        self.http_client = http_client
        self.reconfigure = False

    def preferred_install_type(self) -> InstallType:
        candidate = self.default_install_type
        if self.domain_install_type is not None and self.ctx.options.domain:
            candidate = self.domain_install_type
        if candidate not in self.allowed_install_types:
            return self.allowed_install_types[0]
        return candidate

    @property
    def install_type(self) -> InstallType:
        return self.ctx.options.install_type or self.preferred_install_type()

    def check_prerequisites(self) -> None:
        check_tools(list(self.required_tools), exists=self.exists)
        check_chart_repository(client=self.http_client)
        self.check_credentials()

    def check_credentials(self) -> None:
        pass

    def collect_options(self) -> None:
        """Settle the install type, then ask for whatever that type still needs."""
        ctx = self.ctx
        options = ctx.options
        requested = options.install_type
        if requested is None and ctx.state.install_type is not None:
            requested = ctx.state.install_type

        install_type = resolve_install_type(
            options.domain,
            options.email,
            requested,
            options.silent,
            self.allowed_install_types,
            self.preferred_install_type(),
            email_required=self.https_requires_email,
        )
        if install_type is None:
            choices = [(t.description, INSTALL_TYPE_HELP[t]) for t in self.allowed_install_types]
            index = ctx.prompter.choose(
                "Select the installation type:",
                choices,
                default=self.allowed_install_types.index(self.preferred_install_type()),
            )
            install_type = self.allowed_install_types[index]

        domain = options.domain
        email = options.email
        if install_type.requires_domain and not domain:
            domain = ctx.prompter.ask("Enter your domain", required=True, validator=validate_domain)
        if install_type.requires_email and self.https_requires_email and not email:
            email = ctx.prompter.ask(
                "Enter your email for Let's Encrypt", required=True, validator=validate_email
            )

        ctx.options = options.model_copy(
            update={"install_type": install_type, "domain": domain, "email": email}
        )
        ctx.state.install_type = int(install_type)
        ctx.state.provider = self.provider.value
        ctx.state.namespace = ctx.namespace
        print_info(f"Installation type: {int(install_type)} ({install_type.description})")

    def prepare_cluster(self) -> None:
        raise NotImplementedError

    def resume_cluster(self) -> None:
        """Called instead of ``prepare_cluster`` when a previous run already prepared it."""
        self.ctx.kubectl.require_connection()

    def install(self) -> None:
        ctx = self.ctx
        self.reconfigure = check_existing_installation(ctx)
        if self.reconfigure:
            wait_for_existing_health(ctx)
            return

        install_type = self.install_type
        if install_type.uses_ingress and self.uses_ingress_nginx:
            ctx.state.access_address = setup_ingress_controller(ctx)
            ctx.save_state()

        if install_type.requires_domain:
            address = ctx.options.domain
        elif install_type == InstallType.PUBLIC_IP:
            address = ctx.state.access_address
        else:
            address = None

        install_application(
            ctx, address=address, protocol=install_type.protocol, timeout=self.helm_timeout
        )
        wait_for_application(ctx, attempts=self.pod_attempts)

    def configure_access(self) -> None:
        ctx = self.ctx
        install_type = self.install_type
        if install_type == InstallType.BASIC:
            if self.reconfigure:
                remove_ingress(ctx)
            start_port_forward(ctx)
            return

        if self.reconfigure:
            if self.uses_ingress_nginx and not ctx.state.access_address:
                ctx.state.access_address = setup_ingress_controller(ctx)
            address = ctx.options.domain if install_type.requires_domain else ctx.state.access_address
            upgrade_application_address(ctx, address, install_type.protocol)

        deploy_ingress(ctx)
        if install_type == InstallType.HTTPS:
            setup_cert_manager(ctx, ctx.options.email)
        if install_type.requires_domain:
            wait_for_dns(ctx.options.domain, ctx.prompter, sleep=ctx.sleep)
        restart_application(ctx)

    def run(self) -> None:
        ctx = self.ctx
        state = ctx.state
        print_header(f"OpenGovernance installation on {self.name}")
        self.check_prerequisites()
        self.collect_options()
        ctx.save_state()

        if state.completed(STEP_CLUSTER):
            print_info("Cluster already prepared by a previous run")
            self.resume_cluster()
        else:
            print_primary("Step 1: preparing the Kubernetes cluster")
            with timed("Cluster setup", report=print_info):
                self.prepare_cluster()
            state.kubectl_configured = True
            ctx.save_state(STEP_CLUSTER)
        ensure_ready_nodes(ctx, self.provider, required=self.required_nodes)

        if state.completed(STEP_APPLICATION):
            print_info("OpenGovernance already installed by a previous run")
        else:
            print_primary("Step 2: installing OpenGovernance")
            with timed("Application installation", report=print_info):
                self.install()
            ctx.save_state(STEP_APPLICATION)

        if state.completed(STEP_ACCESS):
            print_info("Access already configured by a previous run")
        else:
            print_primary("Step 3: configuring access")
            self.configure_access()
            state.application_configured = True
            ctx.save_state(STEP_ACCESS)

        display_completion(ctx, address=state.access_address)
        ctx.state_store.clear()
        print_success(f"Done. Logs are in {ctx.settings.log_file}")

    def configure(self) -> None:
        """Change how an already deployed release is exposed."""
        ctx = self.ctx
        print_header("Configuring OpenGovernance access")
        self.check_prerequisites()
        self.collect_options()
        ctx.kubectl.require_connection()

        status = ctx.helm.release_status(RELEASE_NAME, ctx.namespace)
        if status != ReleaseStatus.DEPLOYED:
            raise InstallerError(
                f"OpenGovernance is not deployed in namespace '{ctx.namespace}' "
                f"(release status: {status.value}). Run the install first."
            )

        current_host = ctx.kubectl.ingress_host(INGRESS_NAME, ctx.namespace)
        print_info(f"Current ingress host: {current_host or 'none'}")

        self.reconfigure = True
        self.configure_access()
        display_completion(ctx, address=ctx.state.access_address)
