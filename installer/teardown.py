"""Remove OpenGovernance, and optionally the cluster it runs on."""

import logging
from typing import Optional

from installer.application import remove_release
from installer.console import print_header, print_primary, print_success, print_warning
from installer.context import InstallContext
from installer.errors import UserExit
from installer.ingress import (
    CERT_MANAGER_NAMESPACE,
    CERT_MANAGER_RELEASE,
    INGRESS_NGINX_RELEASE,
    remove_ingress,
)
from installer.manifests import CLUSTER_ISSUER_NAME
from installer.models import Provider
from installer.platforms.stack import InfraStack, stack_name

logger = logging.getLogger(__name__)


def remove_application(ctx: InstallContext, remove_controllers: bool = False) -> None:
    remove_ingress(ctx)
    if remove_controllers:
        ctx.helm.uninstall(INGRESS_NGINX_RELEASE, ctx.namespace)
        ctx.kubectl.delete("clusterissuer", CLUSTER_ISSUER_NAME)
        ctx.helm.uninstall(CERT_MANAGER_RELEASE, CERT_MANAGER_NAMESPACE)
        ctx.kubectl.delete_namespace(CERT_MANAGER_NAMESPACE)
        print_success("ingress-nginx and cert-manager removed")
    remove_release(ctx)


def destroy_cluster(ctx: InstallContext, provider: Provider, cluster_name: str) -> None:
    """Delete a cluster this tool created; other providers are left alone."""
    print_primary(f"Destroying {provider.value} cluster '{cluster_name}'...")
    if provider in (Provider.AWS, Provider.GCP):
        cloud = provider.value.lower()
        settings = ctx.settings
        InfraStack(
            stack_name(cloud, cluster_name, settings.pulumi_stack),
            work_dir=settings.pulumi_project_dir,
        ).destroy()
    elif provider == Provider.DIGITALOCEAN:
        ctx.runner.run(
            ["doctl", "kubernetes", "cluster", "delete", cluster_name, "--force"], check=True
        )
    elif provider == Provider.KIND:
        ctx.runner.run(["kind", "delete", "cluster", "--name", cluster_name], check=True)
    else:
        print_warning(f"Clusters on {provider.value} are not managed by this installer")
        return
    print_success(f"Cluster '{cluster_name}' destroyed")


def installed_cluster_name(ctx: InstallContext) -> str:
    """Cluster recorded by the install into this namespace, else the configured name."""
    saved = ctx.state_store.load()
    if saved is not None and saved.cluster_name and saved.namespace == ctx.namespace:
        return saved.cluster_name
    return ctx.options.cluster_name


def uninstall(
    ctx: InstallContext,
    remove_controllers: bool = False,
    destroy_provider: Optional[Provider] = None,
) -> None:
    print_header("Uninstalling OpenGovernance")
    if not ctx.options.silent and not ctx.prompter.confirm(
        f"Remove OpenGovernance from namespace '{ctx.namespace}'?", default=False
    ):
        raise UserExit("Uninstall cancelled.")

    ctx.kubectl.require_connection()
    remove_application(ctx, remove_controllers=remove_controllers)

    if destroy_provider is not None:
        destroy_cluster(ctx, destroy_provider, installed_cluster_name(ctx))

    ctx.state_store.clear()
