import pulumi
import pulumi_aws as aws

from infra.models import NatGatewayStrategy, SubnetResolved, VpcConfigResolved

# Subnet tags the AWS Load Balancer Controller uses to place load balancers.
ELB_ROLE_TAGS = {
    "public": {"kubernetes.io/role/elb": "1"},
    "private": {"kubernetes.io/role/internal-elb": "1"},
}


class Networking(pulumi.ComponentResource):
    """VPC with public and private subnets tagged for EKS load balancer discovery."""

    def __init__(
        self,
        name: str,
        vpc_config: VpcConfigResolved,
        provider: aws.Provider,
        tags: dict[str, str] | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("opengovernance:infrastructure:Networking", name, None, opts)

        self._name = name
        self._tags = tags or {}
        self._provider = provider
        self._opts = pulumi.ResourceOptions(parent=self, provider=provider)

        self.vpc = aws.ec2.Vpc(
            f"{name}-vpc",
            cidr_block=vpc_config.cidr_block,
            enable_dns_hostnames=vpc_config.enable_dns_hostnames,
            enable_dns_support=vpc_config.enable_dns_support,
            tags={"Name": f"{name}-vpc", **self._tags, **vpc_config.tags},
            opts=self._opts,
        )
        self.vpc_id = self.vpc.id

        self.igw = aws.ec2.InternetGateway(
            f"{name}-igw",
            vpc_id=self.vpc_id,
            tags={"Name": f"{name}-igw", **self._tags},
            opts=self._opts,
        )

        self.public_subnets = self._subnets("public", vpc_config.public_subnets)
        self.public_route_table = self._route_table("public-rt")
        self._default_route("public-igw-route", self.public_route_table, gateway=self.igw)
        self._associate("public", self.public_subnets, [self.public_route_table])

        self.nat_gateways = self._nat_gateways(vpc_config.nat_gateway_strategy)

        self.private_subnets = self._subnets("private", vpc_config.private_subnets)
        # one private route table per NAT gateway, or a single shared one
        one_per_az = vpc_config.nat_gateway_strategy == NatGatewayStrategy.ONE_PER_AZ
        table_count = len(self.nat_gateways) if one_per_az else 1
        suffixes = [f"-{i}" for i in range(table_count)] if table_count > 1 else [""]
        self.private_route_tables = [self._route_table(f"private-rt{s}") for s in suffixes]
        for suffix, table, nat in zip(suffixes, self.private_route_tables, self.nat_gateways):
            self._default_route(f"private-nat-route{suffix}", table, nat_gateway=nat)
        self._associate("private", self.private_subnets, self.private_route_tables)

        self.public_subnet_ids = pulumi.Output.all(*[s.id for s in self.public_subnets])
        self.private_subnet_ids = pulumi.Output.all(*[s.id for s in self.private_subnets])

        self.register_outputs(
            {
                "vpc_id": self.vpc_id,
                "public_subnet_ids": self.public_subnet_ids,
                "private_subnet_ids": self.private_subnet_ids,
            }
        )

    def _subnets(self, kind: str, configs: list[SubnetResolved]) -> list[aws.ec2.Subnet]:
        return [
            aws.ec2.Subnet(
                f"{self._name}-{kind}-subnet-{i}",
                vpc_id=self.vpc_id,
                cidr_block=subnet.cidr_block,
                availability_zone=subnet.availability_zone,
                map_public_ip_on_launch=kind == "public",
                tags={
                    "Name": subnet.name,
                    "SubnetType": kind,
                    f"kubernetes.io/cluster/{self._name}": "shared",
                    **ELB_ROLE_TAGS[kind],
                    **self._tags,
                    **subnet.tags,
                },
                opts=self._opts,
            )
            for i, subnet in enumerate(configs)
        ]

    def _route_table(self, suffix: str) -> aws.ec2.RouteTable:
        return aws.ec2.RouteTable(
            f"{self._name}-{suffix}",
            vpc_id=self.vpc_id,
            tags={"Name": f"{self._name}-{suffix}", **self._tags},
            opts=self._opts,
        )

    def _default_route(self, suffix: str, table: aws.ec2.RouteTable, gateway=None, nat_gateway=None):
        target = gateway or nat_gateway
        return aws.ec2.Route(
            f"{self._name}-{suffix}",
            route_table_id=table.id,
            destination_cidr_block="0.0.0.0/0",
            gateway_id=gateway.id if gateway else None,
            nat_gateway_id=nat_gateway.id if nat_gateway else None,
            opts=pulumi.ResourceOptions(
                parent=self, provider=self._provider, depends_on=[table, target]
            ),
        )

    def _associate(
        self, kind: str, subnets: list[aws.ec2.Subnet], tables: list[aws.ec2.RouteTable]
    ) -> None:
        """Spread the subnets over the route tables round-robin."""
        for i, subnet in enumerate(subnets):
            table = tables[i % len(tables)]
            aws.ec2.RouteTableAssociation(
                f"{self._name}-{kind}-rta-{i}",
                subnet_id=subnet.id,
                route_table_id=table.id,
                opts=pulumi.ResourceOptions(
                    parent=self, provider=self._provider, depends_on=[subnet, table]
                ),
            )

    def _nat_gateways(self, strategy: NatGatewayStrategy) -> list[aws.ec2.NatGateway]:
        if strategy == NatGatewayStrategy.SINGLE:
            return [self._nat_gateway("", self.public_subnets[0])]
        if strategy == NatGatewayStrategy.ONE_PER_AZ:
            return [self._nat_gateway(f"-{i}", s) for i, s in enumerate(self.public_subnets)]
        return []

    def _nat_gateway(self, suffix: str, subnet: aws.ec2.Subnet) -> aws.ec2.NatGateway:
        eip = aws.ec2.Eip(
            f"{self._name}-nat-eip{suffix}",
            domain="vpc",
            tags={"Name": f"{self._name}-nat-eip{suffix}", **self._tags},
            opts=self._opts,
        )
        return aws.ec2.NatGateway(
            f"{self._name}-nat{suffix}",
            subnet_id=subnet.id,
            allocation_id=eip.id,
            tags={"Name": f"{self._name}-nat{suffix}", **self._tags},
            opts=pulumi.ResourceOptions(
                parent=self, provider=self._provider, depends_on=[self.igw, eip, subnet]
            ),
        )
