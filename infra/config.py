import ipaddress
import json
from dataclasses import dataclass, field
from typing import Optional

import pulumi

from infra.models import (
    AddonResolved,
    AmiType,
    CapacityType,
    Cloud,
    EksAddonsResolved,
    EksConfigResolved,
    GkeConfigResolved,
    NatGatewayStrategy,
    NodeGroupResolved,
    RdsConfigResolved,
    ReleaseChannel,
    SubnetResolved,
    VpcConfigResolved,
)

DEFAULT_CLUSTER_NAME = "opengovernance"
DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_GCP_REGION = "us-central1"


@dataclass
class ClusterConfig:
    """Cluster configuration loaded from Pulumi config for use in infrastructure code."""

    cloud: Cloud
    cluster_name: str
    region: str
    availability_zones: list[str]

    vpc_config: Optional[VpcConfigResolved] = None
    eks_config: Optional[EksConfigResolved] = None
    rds_config: Optional[RdsConfigResolved] = None
    gke_config: Optional[GkeConfigResolved] = None

    tags: dict[str, str] = field(default_factory=dict)


def _parse_list(value: Optional[str], default: Optional[list[str]] = None) -> list[str]:
    """Parse a comma-separated string into a list."""
    if value is None:
        return default or []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse a string boolean value."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def _parse_json(value: Optional[str], default: dict | list | None = None) -> dict | list | None:
    """Parse a JSON string."""
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def compute_subnets(
    cidr_block: str,
    availability_zones: list[str],
    name: str,
) -> tuple[list[SubnetResolved], list[SubnetResolved]]:
    """Carve one private /20 and one public /24 per availability zone out of the VPC CIDR.

    Private subnets take the first /20 blocks in order. Public subnets are cut
    from the last /20 of the VPC so the two ranges never overlap.
    """
    vpc = ipaddress.ip_network(cidr_block, strict=False)
    blocks = list(vpc.subnets(new_prefix=20))
    if len(blocks) < len(availability_zones) + 1:
        raise ValueError(
            f"VPC CIDR {cidr_block} is too small for {len(availability_zones)} availability zones"
        )

    public_blocks = list(blocks[-1].subnets(new_prefix=24))

    private = [
        SubnetResolved(
            cidr_block=str(blocks[i]),
            availability_zone=az,
            name=f"{name}-private-{az}",
        )
        for i, az in enumerate(availability_zones)
    ]
    public = [
        SubnetResolved(
            cidr_block=str(public_blocks[i]),
            availability_zone=az,
            name=f"{name}-public-{az}",
        )
        for i, az in enumerate(availability_zones)
    ]
    return private, public


def _load_vpc_config(
    config: pulumi.Config,
    cluster_name: str,
    availability_zones: list[str],
) -> VpcConfigResolved:
    """Load VPC configuration from Pulumi config."""
    vpc_cidr = config.get("vpcCidr") or "10.0.0.0/16"
    private_subnets, public_subnets = compute_subnets(vpc_cidr, availability_zones, cluster_name)

    return VpcConfigResolved(
        cidr_block=vpc_cidr,
        nat_gateway_strategy=NatGatewayStrategy(config.get("natGatewayStrategy") or "single"),
        public_subnets=public_subnets,
        private_subnets=private_subnets,
        tags=dict(_parse_json(config.get("vpcTags"), {}) or {}),
    )


def _load_node_groups(config: pulumi.Config) -> list[NodeGroupResolved]:
    """Load node group configuration."""
    groups_json = config.get("nodeGroups")
    if groups_json:
        groups_data = _parse_json(groups_json, [])
        if isinstance(groups_data, list) and groups_data:
            return [NodeGroupResolved(**ng) for ng in groups_data]

    return [
        NodeGroupResolved(
            name=config.get("nodeGroupName") or "opengovernance",
            instance_types=_parse_list(config.get("nodeInstanceTypes"), ["m6in.xlarge"]),
            capacity_type=CapacityType(config.get("nodeCapacityType") or "ON_DEMAND"),
            ami_type=AmiType(config.get("nodeAmiType") or "AL2023_x86_64_STANDARD"),
            disk_size=int(config.get("nodeDiskSize") or "100"),
            desired_size=int(config.get("nodeDesiredSize") or "3"),
            min_size=int(config.get("nodeMinSize") or "3"),
            max_size=int(config.get("nodeMaxSize") or "4"),
            labels=dict(_parse_json(config.get("nodeLabels"), {}) or {}),
        )
    ]


def _load_eks_addons(config: pulumi.Config) -> EksAddonsResolved:
    """Load addon toggles; every addon is on unless disabled."""
    return EksAddonsResolved(
        vpc_cni=AddonResolved(enabled=_parse_bool(config.get("addonVpcCni"), True)),
        coredns=AddonResolved(enabled=_parse_bool(config.get("addonCoredns"), True)),
        kube_proxy=AddonResolved(enabled=_parse_bool(config.get("addonKubeProxy"), True)),
        ebs_csi_driver=AddonResolved(enabled=_parse_bool(config.get("addonEbsCsi"), True)),
    )


def _load_eks_config(config: pulumi.Config) -> EksConfigResolved:
    """Load EKS configuration from Pulumi config."""
    return EksConfigResolved(
        version=config.get("eksVersion") or "1.31",
        service_ipv4_cidr=config.get("serviceIpv4Cidr") or "172.20.0.0/16",
        endpoint_public_access=_parse_bool(config.get("endpointPublicAccess"), True),
        endpoint_private_access=_parse_bool(config.get("endpointPrivateAccess"), True),
        public_access_cidrs=_parse_list(config.get("publicAccessCidrs"), ["0.0.0.0/0"]),
        encryption_enabled=_parse_bool(config.get("encryptionEnabled"), True),
        encryption_kms_key_arn=config.get("encryptionKmsKeyArn"),
        logging_types=_parse_list(config.get("loggingTypes"), []),
        addons=_load_eks_addons(config),
        node_groups=_load_node_groups(config),
        default_storage_class=_parse_bool(config.get("defaultStorageClass"), True),
        load_balancer_controller=_parse_bool(config.get("loadBalancerController"), True),
        tags=dict(_parse_json(config.get("eksTags"), {}) or {}),
    )


def _load_rds_config(config: pulumi.Config) -> RdsConfigResolved:
    """Load the optional PostgreSQL database configuration."""
    if not _parse_bool(config.get("rdsEnabled"), False):
        return RdsConfigResolved(enabled=False)

    return RdsConfigResolved(
        enabled=True,
        engine_version=config.get("rdsEngineVersion") or "15",
        instance_class=config.get("rdsInstanceClass") or "db.t4g.medium",
        allocated_storage=int(config.get("rdsAllocatedStorage") or "20"),
        database_name=config.get("rdsDatabaseName") or "opengovernance",
        username=config.get("rdsUsername") or "opengovernance",
        multi_az=_parse_bool(config.get("rdsMultiAz"), False),
        deletion_protection=_parse_bool(config.get("rdsDeletionProtection"), False),
    )


def _load_gke_config(config: pulumi.Config) -> GkeConfigResolved:
    """Load GKE configuration; the project comes from stack or provider config."""
    project = config.get("gcpProject") or pulumi.Config("gcp").get("project")
    if not project:
        raise ValueError("GCP project is required: set gcpProject or gcp:project")

    return GkeConfigResolved(
        project=project,
        release_channel=ReleaseChannel(config.get("gkeReleaseChannel") or "REGULAR"),
        subnet_cidr=config.get("gkeSubnetCidr") or "10.10.0.0/20",
        pods_cidr=config.get("gkePodsCidr") or "10.20.0.0/14",
        services_cidr=config.get("gkeServicesCidr") or "10.24.0.0/20",
        machine_type=config.get("gkeMachineType") or "e2-standard-4",
        node_count=int(config.get("gkeNodesPerZone") or "1"),
        disk_size_gb=int(config.get("gkeDiskSizeGb") or "100"),
        deletion_protection=_parse_bool(config.get("deletionProtection"), False),
    )


def load_cluster_config() -> ClusterConfig:
    """Load cluster configuration from Pulumi config."""
    config = pulumi.Config()

    cloud = Cloud(config.get("cloud") or "aws")
    cluster_name = config.get("clusterName") or DEFAULT_CLUSTER_NAME

    if cloud == Cloud.AWS:
        region = (
            config.get("region") or pulumi.Config("aws").get("region") or DEFAULT_AWS_REGION
        )
    else:
        region = (
            config.get("region") or pulumi.Config("gcp").get("region") or DEFAULT_GCP_REGION
        )

    az_config = config.get("availabilityZones")
    if az_config:
        availability_zones = _parse_list(az_config)
    else:
        availability_zones = [f"{region}a", f"{region}b", f"{region}c"]

    tags: dict[str, str] = {
        "Project": "opengovernance",
        "Cluster": cluster_name,
        "ManagedBy": "pulumi",
        "Stack": pulumi.get_stack(),
    }
    custom_tags = _parse_json(config.get("tags"), {})
    if custom_tags and isinstance(custom_tags, dict):
        tags.update(custom_tags)

    cluster_config = ClusterConfig(
        cloud=cloud,
        cluster_name=cluster_name,
        region=region,
        availability_zones=availability_zones,
        tags=tags,
    )

    if cloud == Cloud.AWS:
        cluster_config.vpc_config = _load_vpc_config(config, cluster_name, availability_zones)
        cluster_config.eks_config = _load_eks_config(config)
        cluster_config.rds_config = _load_rds_config(config)
    else:
        cluster_config.gke_config = _load_gke_config(config)

    return cluster_config
