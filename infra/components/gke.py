"""GKE cluster infrastructure component."""

import pulumi
import pulumi_gcp as gcp

from infra.models import GkeConfigResolved


def build_gke_kubeconfig(cluster_name: str, endpoint: str, ca_data: str) -> str:
    """Render a kubeconfig that authenticates through the gke-gcloud-auth-plugin."""
    return "\n".join(
        [
            "apiVersion: v1",
            "kind: Config",
            "clusters:",
            f"- name: {cluster_name}",
            "  cluster:",
            f"    server: https://{endpoint}",
            f"    certificate-authority-data: {ca_data}",
            "contexts:",
            f"- name: {cluster_name}",
            "  context:",
            f"    cluster: {cluster_name}",
            f"    user: {cluster_name}",
            f"current-context: {cluster_name}",
            "users:",
            f"- name: {cluster_name}",
            "  user:",
            "    exec:",
            "      apiVersion: client.authentication.k8s.io/v1beta1",
            "      command: gke-gcloud-auth-plugin",
            "      provideClusterInfo: true",
            "",
        ]
    )


class GkeCluster(pulumi.ComponentResource):
    """Regional GKE cluster with its own VPC network and a managed node pool."""

    def __init__(
        self,
        name: str,
        region: str,
        gke_config: GkeConfigResolved,
        provider: gcp.Provider,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("opengovernance:infrastructure:GkeCluster", name, None, opts)

        child_opts = pulumi.ResourceOptions(parent=self, provider=provider)

        self.network = gcp.compute.Network(
            f"{name}-network",
            name=f"{name}-network",
            auto_create_subnetworks=False,
            opts=child_opts,
        )

        self.subnetwork = gcp.compute.Subnetwork(
            f"{name}-subnet",
            name=f"{name}-subnet",
            region=region,
            network=self.network.id,
            ip_cidr_range=gke_config.subnet_cidr,
            private_ip_google_access=True,
            secondary_ip_ranges=[
                gcp.compute.SubnetworkSecondaryIpRangeArgs(
                    range_name="pods",
                    ip_cidr_range=gke_config.pods_cidr,
                ),
                gcp.compute.SubnetworkSecondaryIpRangeArgs(
                    range_name="services",
                    ip_cidr_range=gke_config.services_cidr,
                ),
            ],
            opts=child_opts,
        )

        self.cluster = gcp.container.Cluster(
            name,
            name=name,
            location=region,
            network=self.network.id,
            subnetwork=self.subnetwork.id,
            remove_default_node_pool=True,
            initial_node_count=1,
            deletion_protection=gke_config.deletion_protection,
            release_channel=gcp.container.ClusterReleaseChannelArgs(
                channel=gke_config.release_channel.value,
            ),
            ip_allocation_policy=gcp.container.ClusterIpAllocationPolicyArgs(
                cluster_secondary_range_name="pods",
                services_secondary_range_name="services",
            ),
            workload_identity_config=gcp.container.ClusterWorkloadIdentityConfigArgs(
                workload_pool=f"{gke_config.project}.svc.id.goog",
            ),
            addons_config=gcp.container.ClusterAddonsConfigArgs(
                gce_persistent_disk_csi_driver_config=gcp.container.ClusterAddonsConfigGcePersistentDiskCsiDriverConfigArgs(
                    enabled=True,
                ),
            ),
            opts=child_opts,
        )

        self.node_pool = gcp.container.NodePool(
            f"{name}-nodes",
            name=f"{name}-nodes",
            cluster=self.cluster.id,
            location=region,
            node_count=gke_config.node_count,
            node_config=gcp.container.NodePoolNodeConfigArgs(
                machine_type=gke_config.machine_type,
                disk_size_gb=gke_config.disk_size_gb,
                disk_type="pd-balanced",
                oauth_scopes=["https://www.googleapis.com/auth/cloud-platform"],
                workload_metadata_config=gcp.container.NodePoolNodeConfigWorkloadMetadataConfigArgs(
                    mode="GKE_METADATA",
                ),
                labels={"app": "opengovernance"},
            ),
            management=gcp.container.NodePoolManagementArgs(
                auto_repair=True,
                auto_upgrade=True,
            ),
            opts=pulumi.ResourceOptions(
                parent=self,
                provider=provider,
                depends_on=[self.cluster],
            ),
        )

        self.cluster_name = self.cluster.name
        self.cluster_endpoint = self.cluster.endpoint
        self.kubeconfig = pulumi.Output.all(
            self.cluster.name,
            self.cluster.endpoint,
            self.cluster.master_auth.cluster_ca_certificate,
        ).apply(lambda args: build_gke_kubeconfig(args[0], args[1], args[2]))

        self.register_outputs(
            {
                "cluster_name": self.cluster_name,
                "cluster_endpoint": self.cluster_endpoint,
            }
        )
