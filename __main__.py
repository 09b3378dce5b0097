import pulumi

from infra.components.database import PostgresDatabase
from infra.components.eks import EksCluster
from infra.components.gke import GkeCluster
from infra.components.iam import EksIamRoles
from infra.components.load_balancer import LoadBalancerController
from infra.components.networking import Networking
from infra.components.storage import DefaultStorageClass
from infra.config import load_cluster_config
from infra.models import Cloud
from infra.providers import (
    create_aws_provider,
    create_gcp_provider,
    create_kubernetes_provider,
)

pulumi_config = pulumi.Config()
config = load_cluster_config()

pulumi.export("cloud", config.cloud.value)
pulumi.export("region", config.region)


if config.cloud == Cloud.AWS:
    aws_provider = create_aws_provider(config)

    networking = Networking(
        name=config.cluster_name,
        vpc_config=config.vpc_config,
        provider=aws_provider,
        tags=config.tags,
    )

    iam = EksIamRoles(
        name=config.cluster_name,
        provider=aws_provider,
        opts=pulumi.ResourceOptions(depends_on=[networking]),
    )

    eks = EksCluster(
        name=config.cluster_name,
        region=config.region,
        vpc_id=networking.vpc_id,
        vpc_cidr=config.vpc_config.cidr_block,
        private_subnet_ids=networking.private_subnet_ids,
        public_subnet_ids=networking.public_subnet_ids,
        cluster_role_arn=iam.cluster_role_arn,
        node_role_arn=iam.node_role_arn,
        eks_config=config.eks_config,
        provider=aws_provider,
        tags=config.tags,
        opts=pulumi.ResourceOptions(depends_on=[iam]),
    )

    k8s_provider = create_kubernetes_provider(
        config.cluster_name, eks.kubeconfig, depends_on=eks.node_groups
    )

    if config.eks_config.default_storage_class and eks.ebs_csi_addon is not None:
        DefaultStorageClass(
            name=config.cluster_name,
            provider=k8s_provider,
            depends_on=[eks.ebs_csi_addon],
        )

    if config.eks_config.load_balancer_controller:
        LoadBalancerController(
            name=config.cluster_name,
            eks=eks,
            vpc_id=networking.vpc_id,
            region=config.region,
            aws_provider=aws_provider,
            k8s_provider=k8s_provider,
            tags=config.tags,
        )

    if config.rds_config.enabled:
        database = PostgresDatabase(
            name=config.cluster_name,
            vpc_id=networking.vpc_id,
            vpc_cidr=config.vpc_config.cidr_block,
            private_subnet_ids=networking.private_subnet_ids,
            rds_config=config.rds_config,
            password=pulumi_config.require_secret("rdsPassword"),
            provider=aws_provider,
            tags=config.tags,
        )
        pulumi.export("database_endpoint", database.endpoint)

    pulumi.export("vpc_id", networking.vpc_id)
    pulumi.export("private_subnet_ids", networking.private_subnet_ids)
    pulumi.export("public_subnet_ids", networking.public_subnet_ids)
    pulumi.export("cluster_name", eks.cluster_name)
    pulumi.export("cluster_endpoint", eks.cluster_endpoint)
    pulumi.export("oidc_provider_arn", eks.oidc_provider_arn)
    pulumi.export("kubeconfig", pulumi.Output.secret(eks.kubeconfig))
    pulumi.export(
        "configure_kubectl",
        eks.cluster_name.apply(
            lambda name: f"aws eks update-kubeconfig --region {config.region} --name {name}"
        ),
    )

else:
    gcp_provider = create_gcp_provider(config)

    gke = GkeCluster(
        name=config.cluster_name,
        region=config.region,
        gke_config=config.gke_config,
        provider=gcp_provider,
    )

    pulumi.export("project", config.gke_config.project)
    pulumi.export("cluster_name", gke.cluster_name)
    pulumi.export("cluster_endpoint", gke.cluster_endpoint)
    pulumi.export("kubeconfig", pulumi.Output.secret(gke.kubeconfig))
    pulumi.export(
        "configure_kubectl",
        gke.cluster_name.apply(
            lambda name: (
                f"gcloud container clusters get-credentials {name} "
                f"--region {config.region} --project {config.gke_config.project}"
            )
        ),
    )
