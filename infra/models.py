import ipaddress
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Cloud(str, Enum):
    """Cloud the infrastructure program provisions into."""

    AWS = "aws"
    GCP = "gcp"


class NatGatewayStrategy(str, Enum):
    """NAT Gateway deployment strategy."""

    NONE = "none"
    SINGLE = "single"
    ONE_PER_AZ = "one_per_az"


class CapacityType(str, Enum):
    """EC2 capacity type for node groups."""

    ON_DEMAND = "ON_DEMAND"
    SPOT = "SPOT"


class AmiType(str, Enum):
    """AMI type for EKS nodes."""

    AL2_X86_64 = "AL2_x86_64"
    AL2_ARM_64 = "AL2_ARM_64"
    AL2023_X86_64_STANDARD = "AL2023_x86_64_STANDARD"
    AL2023_ARM_64_STANDARD = "AL2023_ARM_64_STANDARD"
    BOTTLEROCKET_X86_64 = "BOTTLEROCKET_x86_64"


class ReleaseChannel(str, Enum):
    """GKE release channel."""

    RAPID = "RAPID"
    REGULAR = "REGULAR"
    STABLE = "STABLE"


class SubnetResolved(BaseModel):
    """Resolved subnet configuration."""

    cidr_block: str
    availability_zone: str
    name: str
    tags: dict[str, str] = Field(default_factory=dict)


class VpcConfigResolved(BaseModel):
    """Fully resolved VPC configuration."""

    cidr_block: str = Field(default="10.0.0.0/16", description="Primary VPC CIDR block")
    nat_gateway_strategy: NatGatewayStrategy = NatGatewayStrategy.SINGLE

    public_subnets: list[SubnetResolved]
    private_subnets: list[SubnetResolved]

    enable_dns_hostnames: bool = True
    enable_dns_support: bool = True

    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("cidr_block")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        try:
            network = ipaddress.ip_network(v, strict=False)
        except ValueError as e:
            raise ValueError(f"Invalid VPC CIDR: {e}") from e
        if network.prefixlen > 18:
            raise ValueError("VPC CIDR must be /18 or larger to fit the cluster subnets")
        return v


class AddonResolved(BaseModel):
    """Managed EKS addon settings."""

    enabled: bool = True
    version: Optional[str] = None
    resolve_conflicts_on_create: str = "OVERWRITE"
    resolve_conflicts_on_update: str = "PRESERVE"


class EksAddonsResolved(BaseModel):
    """EKS addons installed alongside the cluster."""

    vpc_cni: AddonResolved = Field(default_factory=AddonResolved)
    coredns: AddonResolved = Field(default_factory=AddonResolved)
    kube_proxy: AddonResolved = Field(default_factory=AddonResolved)
    ebs_csi_driver: AddonResolved = Field(default_factory=AddonResolved)


class NodeGroupResolved(BaseModel):
    """Fully resolved node group configuration."""

    name: str = "opengovernance"
    instance_types: list[str] = Field(default_factory=lambda: ["m6in.xlarge"])
    capacity_type: CapacityType = CapacityType.ON_DEMAND
    ami_type: AmiType = AmiType.AL2023_X86_64_STANDARD
    disk_size: int = Field(default=100, ge=20, le=1000)
    desired_size: int = Field(default=3, ge=0, le=100)
    min_size: int = Field(default=3, ge=0, le=100)
    max_size: int = Field(default=4, ge=1, le=100)
    labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("max_size")
    @classmethod
    def validate_scaling(cls, v: int, info) -> int:
        min_size = info.data.get("min_size")
        if min_size is not None and v < min_size:
            raise ValueError("max_size must be greater than or equal to min_size")
        return v


class EksConfigResolved(BaseModel):
    """Fully resolved EKS configuration."""

    version: str = "1.31"
    service_ipv4_cidr: str = "172.20.0.0/16"

    endpoint_public_access: bool = True
    endpoint_private_access: bool = True
    public_access_cidrs: list[str] = Field(default_factory=lambda: ["0.0.0.0/0"])

    encryption_enabled: bool = True
    encryption_kms_key_arn: Optional[str] = Field(
        default=None,
        description="KMS key ARN (None = a rotating key is created)",
    )

    logging_types: list[str] = Field(default_factory=list)

    addons: EksAddonsResolved = Field(default_factory=EksAddonsResolved)
    node_groups: list[NodeGroupResolved] = Field(default_factory=lambda: [NodeGroupResolved()])

    default_storage_class: bool = True
    load_balancer_controller: bool = True

    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("service_ipv4_cidr")
    @classmethod
    def validate_service_cidr(cls, v: str) -> str:
        try:
            network = ipaddress.ip_network(v, strict=False)
            if network.prefixlen < 12 or network.prefixlen > 24:
                raise ValueError("Service CIDR prefix must be between /12 and /24")
        except ValueError as e:
            raise ValueError(f"Invalid service CIDR: {e}") from e
        return v


class RdsConfigResolved(BaseModel):
    """Optional external PostgreSQL database for the application."""

    enabled: bool = False
    engine_version: str = "15"
    instance_class: str = "db.t4g.medium"
    allocated_storage: int = Field(default=20, ge=20, le=65536)
    database_name: str = "opengovernance"
    username: str = "opengovernance"
    multi_az: bool = False
    deletion_protection: bool = False


class GkeConfigResolved(BaseModel):
    """Fully resolved GKE configuration."""

    project: str
    release_channel: ReleaseChannel = ReleaseChannel.REGULAR
    subnet_cidr: str = "10.10.0.0/20"
    pods_cidr: str = "10.20.0.0/14"
    services_cidr: str = "10.24.0.0/20"
    machine_type: str = "e2-standard-4"
    node_count: int = Field(default=1, ge=1, le=100, description="Nodes per zone")
    disk_size_gb: int = Field(default=100, ge=20, le=1000)
    deletion_protection: bool = False
