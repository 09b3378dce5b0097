import pulumi
import pulumi_aws as aws
import pulumi_gcp as gcp
import pulumi_kubernetes as k8s

from infra.config import ClusterConfig


def create_aws_provider(config: ClusterConfig) -> aws.Provider:
    """Create the AWS provider with the cluster's default tags."""

    default_tags = {
        "ManagedBy": "Pulumi",
        "Stack": pulumi.get_stack(),
    }

    all_tags = {**default_tags, **config.tags}

    return aws.Provider(
        f"{config.cluster_name}-aws",
        region=config.region,
        default_tags=aws.ProviderDefaultTagsArgs(
            tags=all_tags,
        ),
    )


def create_gcp_provider(config: ClusterConfig) -> gcp.Provider:
    """Create the GCP provider pinned to the configured project and region."""
    labels = {
        key.lower(): value.lower().replace(" ", "-")
        for key, value in {"managed-by": "pulumi", **config.tags}.items()
    }

    return gcp.Provider(
        f"{config.cluster_name}-gcp",
        project=config.gke_config.project,
        region=config.region,
        default_labels=labels,
    )


def create_kubernetes_provider(
    name: str,
    kubeconfig: pulumi.Input[str],
    depends_on: list[pulumi.Resource] | None = None,
) -> k8s.Provider:
    """Create a Kubernetes provider that talks to the freshly created cluster."""
    return k8s.Provider(
        f"{name}-k8s",
        kubeconfig=kubeconfig,
        opts=pulumi.ResourceOptions(depends_on=depends_on or []),
    )
