from typing import Sequence

import pulumi
import pulumi_aws as aws

from infra.models import RdsConfigResolved


class PostgresDatabase(pulumi.ComponentResource):
    """Encrypted RDS PostgreSQL instance reachable from inside the VPC only."""

    def __init__(
        self,
        name: str,
        vpc_id: pulumi.Output[str],
        vpc_cidr: str,
        private_subnet_ids: pulumi.Output[Sequence[str]],
        rds_config: RdsConfigResolved,
        password: pulumi.Input[str],
        provider: aws.Provider,
        tags: dict[str, str] | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("opengovernance:infrastructure:PostgresDatabase", name, None, opts)

        tags = tags or {}
        child_opts = pulumi.ResourceOptions(parent=self, provider=provider)

        self.subnet_group = aws.rds.SubnetGroup(
            f"{name}-db-subnets",
            subnet_ids=private_subnet_ids,
            tags={"Name": f"{name}-db-subnets", **tags},
            opts=child_opts,
        )

        self.security_group = aws.ec2.SecurityGroup(
            f"{name}-db-sg",
            vpc_id=vpc_id,
            description="PostgreSQL access from the cluster VPC",
            ingress=[
                aws.ec2.SecurityGroupIngressArgs(
                    protocol="tcp",
                    from_port=5432,
                    to_port=5432,
                    cidr_blocks=[vpc_cidr],
                    description="PostgreSQL from VPC",
                ),
            ],
            egress=[
                aws.ec2.SecurityGroupEgressArgs(
                    protocol="-1",
                    from_port=0,
                    to_port=0,
                    cidr_blocks=["0.0.0.0/0"],
                ),
            ],
            tags={"Name": f"{name}-db-sg", **tags},
            opts=child_opts,
        )

        self.instance = aws.rds.Instance(
            f"{name}-postgres",
            identifier=f"{name}-postgres",
            engine="postgres",
            engine_version=rds_config.engine_version,
            instance_class=rds_config.instance_class,
            allocated_storage=rds_config.allocated_storage,
            storage_type="gp3",
            storage_encrypted=True,
            db_name=rds_config.database_name,
            username=rds_config.username,
            password=password,
            db_subnet_group_name=self.subnet_group.name,
            vpc_security_group_ids=[self.security_group.id],
            multi_az=rds_config.multi_az,
            publicly_accessible=False,
            deletion_protection=rds_config.deletion_protection,
            skip_final_snapshot=not rds_config.deletion_protection,
            final_snapshot_identifier=(
                f"{name}-postgres-final" if rds_config.deletion_protection else None
            ),
            backup_retention_period=7,
            tags={"Name": f"{name}-postgres", **tags},
            opts=child_opts,
        )

        self.endpoint = self.instance.endpoint
        self.address = self.instance.address

        self.register_outputs(
            {
                "endpoint": self.endpoint,
                "address": self.address,
            }
        )
