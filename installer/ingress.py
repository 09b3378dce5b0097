"""ingress-nginx, cert-manager and the OpenGovernance Ingress."""

import logging

from installer.console import print_info, print_primary, print_success, print_warning
from installer.context import InstallContext
from installer.errors import InstallerError
from installer.manifests import (
    CLUSTER_ISSUER_NAME,
    INGRESS_NAME,
    letsencrypt_cluster_issuer,
    nginx_ingress,
    to_yaml,
)
from installer.models import InstallType
from installer.polling import wait_for

logger = logging.getLogger(__name__)

INGRESS_NGINX_REPO = ("ingress-nginx", "https://kubernetes.github.io/ingress-nginx")
INGRESS_NGINX_RELEASE = "ingress-nginx"
INGRESS_NGINX_CHART = "ingress-nginx/ingress-nginx"
INGRESS_CONTROLLER_SERVICE = "ingress-nginx-controller"

CERT_MANAGER_REPO = ("jetstack", "https://charts.jetstack.io")
CERT_MANAGER_RELEASE = "cert-manager"
CERT_MANAGER_CHART = "jetstack/cert-manager"
CERT_MANAGER_NAMESPACE = "cert-manager"
CERT_MANAGER_VERSION = "v1.11.0"


def _remove_conflicting_cluster_roles(ctx: InstallContext) -> None:
    """ingress-nginx cluster roles are global; a copy owned by another namespace blocks the install."""
    owner = ctx.kubectl.clusterrole_release_namespace(INGRESS_NGINX_RELEASE)
    if owner is not None and owner != ctx.namespace:
        print_warning(
            f"Removing ingress-nginx ClusterRole owned by namespace '{owner or 'unknown'}'"
        )
        ctx.kubectl.delete_cluster_role(INGRESS_NGINX_RELEASE)


def wait_for_ingress_address(
    ctx: InstallContext, timeout: int = 360, interval: int = 30
) -> str:
    print_primary("Waiting for the ingress controller's external address...")
    return wait_for(
        lambda: ctx.kubectl.service_external_address(INGRESS_CONTROLLER_SERVICE, ctx.namespace),
        attempts=max(1, timeout // interval),
        interval=interval,
        description="ingress-nginx external address",
        sleep=ctx.sleep,
    )


def setup_ingress_controller(ctx: InstallContext) -> str:
    """Install ingress-nginx into the namespace and return its external IP or hostname."""
    ctx.kubectl.create_namespace(ctx.namespace)
    _remove_conflicting_cluster_roles(ctx)

    if ctx.helm.is_installed(INGRESS_NGINX_RELEASE, ctx.namespace):
        print_info("ingress-nginx is already installed")
    else:
        print_primary("Installing ingress-nginx...")
        ctx.helm.ensure_repo(*INGRESS_NGINX_REPO)
        ctx.helm.upgrade_install(
            INGRESS_NGINX_RELEASE,
            INGRESS_NGINX_CHART,
            ctx.namespace,
            timeout="10m",
            wait=True,
        )
        print_success("ingress-nginx installed")

    address = wait_for_ingress_address(ctx)
    print_success(f"Ingress controller external address: {address}")
    return address


def deploy_ingress(ctx: InstallContext) -> None:
    install_type = ctx.options.install_type
    if install_type is None or not install_type.uses_ingress:
        return

    domain = ctx.options.domain if install_type.requires_domain else None
    manifest = nginx_ingress(ctx.namespace, domain=domain, tls=install_type == InstallType.HTTPS)
    print_info(f"Applying Ingress {INGRESS_NAME}")
    ctx.kubectl.apply(to_yaml(manifest), namespace=ctx.namespace)
    print_success("Ingress deployed")


def cert_manager_present(ctx: InstallContext) -> bool:
    if ctx.helm.release_exists_anywhere(CERT_MANAGER_RELEASE):
        return True
    return ctx.kubectl.deployment_exists(
        CERT_MANAGER_NAMESPACE, "app.kubernetes.io/instance=cert-manager"
    )


def setup_cert_manager(ctx: InstallContext, email: str) -> None:
    if cert_manager_present(ctx):
        print_info("cert-manager is already installed")
    else:
        print_primary("Installing cert-manager...")
        ctx.helm.ensure_repo(*CERT_MANAGER_REPO)
        ctx.helm.upgrade_install(
            CERT_MANAGER_RELEASE,
            CERT_MANAGER_CHART,
            CERT_MANAGER_NAMESPACE,
            version=CERT_MANAGER_VERSION,
            set_values={"installCRDs": "true"},
            timeout="10m",
        )
        print_success("cert-manager installed")

    print_info(f"Applying ClusterIssuer {CLUSTER_ISSUER_NAME}")
    ctx.kubectl.apply(to_yaml(letsencrypt_cluster_issuer(email)))

    try:
        wait_for(
            lambda: ctx.kubectl.cluster_issuer_ready(CLUSTER_ISSUER_NAME),
            attempts=10,
            interval=30,
            description=f"ClusterIssuer {CLUSTER_ISSUER_NAME}",
            sleep=ctx.sleep,
        )
    except InstallerError as e:
        raise InstallerError(f"ClusterIssuer {CLUSTER_ISSUER_NAME} never became ready") from e
    print_success(f"ClusterIssuer {CLUSTER_ISSUER_NAME} is ready")


def remove_ingress(ctx: InstallContext) -> None:
    ctx.kubectl.delete("ingress", INGRESS_NAME, ctx.namespace)
