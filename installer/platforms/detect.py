import logging

from installer.console import print_info, print_success
from installer.context import InstallContext
from installer.models import Provider
from installer.polling import wait_for

logger = logging.getLogger(__name__)

# first match wins
PROVIDER_PATTERNS: list[tuple[Provider, tuple[str, ...]]] = [
    (Provider.AZURE, (".azmk8s.io", "azure")),
    (Provider.AWS, (".eks.amazonaws.com", "amazonaws.com")),
    (Provider.GCP, (".gke.io", "gke")),
    (Provider.DIGITALOCEAN, (".k8s.ondigitalocean.com", "digitalocean", "do-")),
    (Provider.MINIKUBE, ("minikube",)),
    (Provider.KIND, ("kind",)),
]


def detect_provider(cluster_identity: str) -> Provider:
    for provider, markers in PROVIDER_PATTERNS:
        if any(marker in cluster_identity for marker in markers):
            return provider
    return Provider.UNKNOWN


def detect_current_provider(ctx: InstallContext) -> Provider:
    identity = ctx.kubectl.cluster_identity()
    provider = detect_provider(identity)
    logger.info("Cluster identity %r detected as %s", identity, provider.value)
    return provider


def ensure_ready_nodes(
    ctx: InstallContext,
    provider: Provider,
    required: int = 3,
    attempts: int = 10,
    interval: float = 30,
) -> int:
    """Wait for ``required`` Ready nodes; local clusters are accepted as they are."""
    if provider.is_local:
        print_info(f"Skipping node readiness check for {provider.value}")
        return ctx.kubectl.ready_node_count()

    print_info(f"Waiting for at least {required} ready nodes...")

    def enough_nodes() -> int:
        ready = ctx.kubectl.ready_node_count()
        return ready if ready >= required else 0

    count = wait_for(
        enough_nodes,
        attempts=attempts,
        interval=interval,
        description=f"{required} ready nodes",
        on_retry=lambda attempt, total: print_info(
            f"{ctx.kubectl.ready_node_count()}/{required} nodes ready ({attempt}/{total})"
        ),
        sleep=ctx.sleep,
    )
    print_success(f"{count} nodes are ready")
    return count
