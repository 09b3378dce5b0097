"""Install, verify and expose the OpenGovernance Helm release."""

import ipaddress
import logging
from typing import Optional

import httpx

from installer.console import (
    print_access_instructions,
    print_default_credentials,
    print_detail,
    print_header,
    print_info,
    print_primary,
    print_success,
    print_warning,
)
from installer.context import InstallContext
from installer.errors import InstallerError, UserExit
from installer.manifests import application_values
from installer.models import InstallType, ReleaseStatus
from installer.polling import wait_for

logger = logging.getLogger(__name__)

RELEASE_NAME = "opengovernance"
CHART_REPO_NAME = "opengovernance"
CHART_REPO_URL = "https://opengovern.github.io/charts"
CHART_NAME = f"{CHART_REPO_NAME}/opengovernance"

DEFAULT_USERNAME = "admin@opengovernance.io"
DEFAULT_PASSWORD = "password"

PROXY_SERVICE = "nginx-proxy"
DEX_DEPLOYMENT = "opengovernance-dex"
LOCAL_PORT = 8080
PROXY_PORT = 80
PORT_FORWARD_GRACE_SECONDS = 5


def check_chart_repository(url: str = CHART_REPO_URL, client: Optional[httpx.Client] = None) -> None:
    """Make sure the chart repository index is reachable before touching the cluster."""
    index_url = f"{url.rstrip('/')}/index.yaml"
    print_info(f"Checking Helm repository {index_url}")
    try:
        if client is None:
            with httpx.Client(timeout=15.0, follow_redirects=True) as http:
                response = http.head(index_url)
        else:
            response = client.head(index_url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise InstallerError(f"Helm repository {url} is not reachable: {e}") from e


def check_existing_installation(ctx: InstallContext) -> bool:
    """True when a healthy release exists and the user wants to reconfigure it.

    A failed or stuck release is removed, after confirmation, so a fresh install can follow.
    """
    status = ctx.helm.release_status(RELEASE_NAME, ctx.namespace)
    logger.info("Release %s in %s: %s", RELEASE_NAME, ctx.namespace, status.value)

    if status == ReleaseStatus.MISSING:
        return False
    if status == ReleaseStatus.DEPLOYED:
        print_warning(f"OpenGovernance is already installed in namespace '{ctx.namespace}'.")
        if ctx.prompter.confirm("Do you want to reconfigure the existing installation?", default=False):
            return True
        raise UserExit("Existing installation left unchanged.")
    print_warning(
        f"OpenGovernance release in namespace '{ctx.namespace}' is in state '{status.value}'."
    )
    if not ctx.prompter.confirm("Remove it and install again?", default=True):
        raise InstallerError(
            f"Release left in state '{status.value}'. "
            f"Remove it with: helm uninstall {RELEASE_NAME} -n {ctx.namespace}"
        )
    remove_release(ctx)
    return False


def remove_release(ctx: InstallContext) -> None:
    """Uninstall the release and delete its namespace."""
    namespace = ctx.namespace
    if ctx.helm.uninstall(RELEASE_NAME, namespace):
        print_success(f"Helm release {RELEASE_NAME} uninstalled")
    else:
        print_info(f"Helm release {RELEASE_NAME} was not installed in {namespace}")
    ctx.kubectl.delete_namespace(namespace)
    print_success(f"Namespace {namespace} deleted")


def wait_for_existing_health(ctx: InstallContext) -> None:
    print_info("Checking the health of the existing installation...")
    wait_for_application(ctx, attempts=6, interval=30)


def install_application(
    ctx: InstallContext,
    address: Optional[str] = None,
    protocol: str = "http",
    timeout: str = "15m",
) -> None:
    """Install or upgrade the release; ``address`` is the domain or ingress IP it is served on."""
    print_header("Installing OpenGovernance")
    ctx.helm.ensure_repo(CHART_REPO_NAME, CHART_REPO_URL)

    values = application_values(address, protocol) if address else None
    print_primary(
        f"Installing OpenGovernance into namespace '{ctx.namespace}' "
        f"(this can take up to {timeout.rstrip('m')} minutes)..."
    )
    ctx.helm.upgrade_install(
        RELEASE_NAME,
        CHART_NAME,
        ctx.namespace,
        values=values,
        timeout=timeout,
    )
    ctx.state.application_installed = True
    print_success("OpenGovernance Helm release installed")


def upgrade_application_address(ctx: InstallContext, address: str, protocol: str) -> None:
    """Point an existing release at a new domain or IP without touching other values."""
    print_info(f"Updating OpenGovernance to serve {protocol}://{address}")
    ctx.helm.upgrade_install(
        RELEASE_NAME,
        CHART_NAME,
        ctx.namespace,
        values=application_values(address, protocol),
        reuse_values=True,
        create_namespace=False,
    )


def pods_ready(ctx: InstallContext) -> bool:
    statuses = ctx.kubectl.pod_statuses(ctx.namespace)
    return bool(statuses) and not ctx.kubectl.unhealthy_pods(ctx.namespace)


def wait_for_application(ctx: InstallContext, attempts: int = 24, interval: float = 30) -> None:
    """Wait until every pod in the namespace is Running or Completed."""
    print_primary("Waiting for all OpenGovernance pods to become ready...")

    def report(attempt: int, total: int) -> None:
        unhealthy = ctx.kubectl.unhealthy_pods(ctx.namespace)
        for name, status in sorted(unhealthy.items()):
            logger.info("  %s: %s", name, status)
        print_info(f"{len(unhealthy)} pod(s) not ready yet ({attempt}/{total})")

    wait_for(
        lambda: pods_ready(ctx),
        attempts=attempts,
        interval=interval,
        description=f"pods in namespace {ctx.namespace}",
        on_retry=report,
        sleep=ctx.sleep,
    )
    print_success("All pods are Running or Completed")


def restart_application(ctx: InstallContext) -> None:
    """Restart the proxy and dex so they pick up a new domain."""
    print_info("Restarting nginx-proxy and dex...")
    for deployment, selector in (
        (PROXY_SERVICE, "app=nginx-proxy"),
        (DEX_DEPLOYMENT, "app.kubernetes.io/name=dex"),
    ):
        if not ctx.kubectl.rollout_restart(deployment, ctx.namespace):
            logger.info("Rollout restart of %s failed, deleting pods %s", deployment, selector)
            ctx.kubectl.delete_pods(selector, ctx.namespace)
    print_success("Application pods restarted")


def start_port_forward(ctx: InstallContext) -> bool:
    print_info(f"Starting port-forward to service/{PROXY_SERVICE}...")
    process = ctx.kubectl.port_forward(ctx.namespace, PROXY_SERVICE, LOCAL_PORT, PROXY_PORT)
    ctx.sleep(PORT_FORWARD_GRACE_SECONDS)

    if process.poll() is None:
        print_success(f"OpenGovernance is available at http://localhost:{LOCAL_PORT}")
        print_detail(f"Port-forward running with PID {process.pid}")
        print_default_credentials(DEFAULT_USERNAME, DEFAULT_PASSWORD)
        return True

    print_warning("Port-forwarding failed to start.")
    print_access_instructions(ctx.namespace, DEFAULT_USERNAME, DEFAULT_PASSWORD, LOCAL_PORT)
    return False


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def display_completion(ctx: InstallContext, address: Optional[str] = None) -> None:
    """Final summary: URL, credentials and the DNS record the user still has to create."""
    options = ctx.options
    install_type = options.install_type
    print_header("Installation complete")

    if install_type is None or install_type == InstallType.BASIC or not (options.domain or address):
        print_access_instructions(ctx.namespace, DEFAULT_USERNAME, DEFAULT_PASSWORD, LOCAL_PORT)
        return

    host = options.domain if install_type.requires_domain else address
    print_primary(f"OpenGovernance is available at {install_type.protocol}://{host}")
    print_default_credentials(DEFAULT_USERNAME, DEFAULT_PASSWORD)

    if install_type == InstallType.PUBLIC_IP or not address or not options.domain:
        return

    print_primary("Create the following DNS record with your DNS provider:")
    if _is_ip(address):
        print_detail(f"Type: A    Name: {options.domain}    Value: {address}")
    else:
        print_detail(f"Type: CNAME    Name: {options.domain}    Value: {address}")
