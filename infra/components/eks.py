"""EKS cluster infrastructure component."""

import json
from typing import Sequence

import pulumi
import pulumi_aws as aws
import pulumi_tls as tls

from infra.models import AddonResolved, EksConfigResolved, NodeGroupResolved

STS_AUDIENCE = "sts.amazonaws.com"


def cluster_subnets(private: Sequence[str], public: Sequence[str], private_only: bool) -> list[str]:
    """Subnets for the control plane ENIs; public ones only when the endpoint is public."""
    return list(private) if private_only else [*private, *public]


def service_account_trust_policy(
    provider_arn: str, issuer_url: str, namespace: str, service_account: str
) -> dict:
    issuer = issuer_url.removeprefix("https://")
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Federated": provider_arn},
                "Action": "sts:AssumeRoleWithWebIdentity",
                "Condition": {
                    "StringEquals": {
                        f"{issuer}:aud": STS_AUDIENCE,
                        f"{issuer}:sub": f"system:serviceaccount:{namespace}:{service_account}",
                    }
                },
            }
        ],
    }


def build_kubeconfig(cluster_name: str, endpoint: str, ca_data: str, region: str) -> str:
    """Render a kubeconfig that authenticates through `aws eks get-token`."""
    return json.dumps(
        {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [
                {
                    "name": cluster_name,
                    "cluster": {"server": endpoint, "certificate-authority-data": ca_data},
                }
            ],
            "contexts": [
                {"name": cluster_name, "context": {"cluster": cluster_name, "user": cluster_name}}
            ],
            "current-context": cluster_name,
            "users": [
                {
                    "name": cluster_name,
                    "user": {
                        "exec": {
                            "apiVersion": "client.authentication.k8s.io/v1beta1",
                            "command": "aws",
                            "args": [
                                "eks",
                                "get-token",
                                "--cluster-name",
                                cluster_name,
                                "--region",
                                region,
                            ],
                        }
                    },
                }
            ],
        }
    )


class EksCluster(pulumi.ComponentResource):
    """EKS cluster with secrets encryption, IRSA, managed addons and a managed node group."""

    def __init__(
        self,
        name: str,
        region: str,
        vpc_id: pulumi.Output[str],
        vpc_cidr: str,
        private_subnet_ids: pulumi.Output[Sequence[str]],
        public_subnet_ids: pulumi.Output[Sequence[str]],
        cluster_role_arn: pulumi.Output[str],
        node_role_arn: pulumi.Output[str],
        eks_config: EksConfigResolved,
        provider: aws.Provider,
        tags: dict[str, str] | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("opengovernance:infrastructure:EksCluster", name, None, opts)

        child_opts = pulumi.ResourceOptions(parent=self, provider=provider)
        self._tags = tags or {}
        self._name = name
        self._provider = provider
        self._vpc_cidr = vpc_cidr

        self.cluster_sg = self._create_cluster_security_group(vpc_id, child_opts)

        private_only = eks_config.endpoint_private_access and not eks_config.endpoint_public_access
        subnet_ids = pulumi.Output.all(private_subnet_ids, public_subnet_ids).apply(
            lambda args: cluster_subnets(args[0], args[1], private_only)
        )

        vpc_config_args: dict = {
            "subnet_ids": subnet_ids,
            "security_group_ids": [self.cluster_sg.id],
            "endpoint_private_access": eks_config.endpoint_private_access,
            "endpoint_public_access": eks_config.endpoint_public_access,
        }
        if eks_config.endpoint_public_access and eks_config.public_access_cidrs:
            vpc_config_args["public_access_cidrs"] = eks_config.public_access_cidrs

        cluster_args: dict = {
            "name": name,
            "role_arn": cluster_role_arn,
            "version": eks_config.version,
            "vpc_config": aws.eks.ClusterVpcConfigArgs(**vpc_config_args),
            "access_config": aws.eks.ClusterAccessConfigArgs(
                authentication_mode="API_AND_CONFIG_MAP",
                bootstrap_cluster_creator_admin_permissions=True,
            ),
            "kubernetes_network_config": aws.eks.ClusterKubernetesNetworkConfigArgs(
                service_ipv4_cidr=eks_config.service_ipv4_cidr,
            ),
            "tags": {"Name": f"{name}-eks-cluster", **self._tags, **eks_config.tags},
        }

        if eks_config.logging_types:
            cluster_args["enabled_cluster_log_types"] = eks_config.logging_types

        if eks_config.encryption_enabled:
            kms_key_arn = eks_config.encryption_kms_key_arn
            if not kms_key_arn:
                self.kms_key = aws.kms.Key(
                    f"{name}-eks-secrets-key",
                    description=f"KMS key for EKS secrets encryption - {name}",
                    enable_key_rotation=True,
                    tags={"Name": f"{name}-eks-secrets-key", **self._tags},
                    opts=child_opts,
                )
                aws.kms.Alias(
                    f"{name}-eks-secrets-key-alias",
                    name=f"alias/eks/{name}",
                    target_key_id=self.kms_key.key_id,
                    opts=child_opts,
                )
                kms_key_arn = self.kms_key.arn
            cluster_args["encryption_config"] = aws.eks.ClusterEncryptionConfigArgs(
                provider=aws.eks.ClusterEncryptionConfigProviderArgs(key_arn=kms_key_arn),
                resources=["secrets"],
            )

        self.cluster = aws.eks.Cluster(
            f"{name}-eks-cluster",
            **cluster_args,
            opts=child_opts,
        )

        self.oidc_provider = self._create_oidc_provider()

        addons = eks_config.addons
        self._pre_node_addons: list[aws.eks.Addon] = []
        if addons.vpc_cni.enabled:
            vpc_cni_role = self.create_irsa_role(
                addon_name="vpc-cni",
                service_account_name="aws-node",
                namespace="kube-system",
                managed_policy_arns=["arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy"],
            )
            self._pre_node_addons.append(
                self._create_addon("vpc-cni", "vpc-cni", addons.vpc_cni, vpc_cni_role)
            )
        if addons.kube_proxy.enabled:
            self._pre_node_addons.append(
                self._create_addon("kube-proxy", "kube-proxy", addons.kube_proxy)
            )

        self.node_groups = [
            self._create_node_group(node_role_arn, private_subnet_ids, ng_config)
            for ng_config in eks_config.node_groups
        ]

        # coredns and the EBS driver schedule pods, so they need nodes first
        if addons.coredns.enabled:
            self._create_addon("coredns", "coredns", addons.coredns, after_nodes=True)
        self.ebs_csi_addon = None
        if addons.ebs_csi_driver.enabled:
            ebs_csi_role = self.create_irsa_role(
                addon_name="ebs-csi",
                service_account_name="ebs-csi-controller-sa",
                namespace="kube-system",
                managed_policy_arns=[
                    "arn:aws:iam::aws:policy/service-role/AmazonEBSCSIDriverPolicy",
                ],
            )
            self.ebs_csi_addon = self._create_addon(
                "ebs-csi",
                "aws-ebs-csi-driver",
                addons.ebs_csi_driver,
                ebs_csi_role,
                after_nodes=True,
            )

        self.cluster_name = self.cluster.name
        self.cluster_endpoint = self.cluster.endpoint
        self.cluster_ca_data = self.cluster.certificate_authority.data
        self.cluster_arn = self.cluster.arn
        self.oidc_provider_arn = self.oidc_provider.arn
        self.kubeconfig = pulumi.Output.all(
            self.cluster.name, self.cluster.endpoint, self.cluster_ca_data
        ).apply(lambda args: build_kubeconfig(args[0], args[1], args[2], region))

        self.register_outputs(
            {
                "cluster_name": self.cluster_name,
                "cluster_endpoint": self.cluster_endpoint,
                "cluster_arn": self.cluster_arn,
                "oidc_provider_arn": self.oidc_provider_arn,
            }
        )

    def _create_cluster_security_group(
        self,
        vpc_id: pulumi.Output[str],
        opts: pulumi.ResourceOptions,
    ) -> aws.ec2.SecurityGroup:
        # Nodes in the VPC reach the API server on 443; the control plane talks to itself freely.
        return aws.ec2.SecurityGroup(
            f"{self._name}-eks-cluster-sg",
            vpc_id=vpc_id,
            description=f"OpenGovernance EKS control plane ({self._name})",
            ingress=[
                aws.ec2.SecurityGroupIngressArgs(
                    protocol="-1", from_port=0, to_port=0, self=True, description="control plane"
                ),
                aws.ec2.SecurityGroupIngressArgs(
                    protocol="tcp",
                    from_port=443,
                    to_port=443,
                    cidr_blocks=[self._vpc_cidr],
                    description="Kubernetes API from the VPC",
                ),
            ],
            egress=[
                aws.ec2.SecurityGroupEgressArgs(
                    protocol="-1", from_port=0, to_port=0, cidr_blocks=["0.0.0.0/0"]
                ),
            ],
            tags={"Name": f"{self._name}-eks-cluster-sg", **self._tags},
            opts=opts,
        )

    def _create_oidc_provider(self) -> aws.iam.OpenIdConnectProvider:
        issuer = self.cluster.identities[0].oidcs[0].issuer
        thumbprint = issuer.apply(
            lambda url: tls.get_certificate(url=url).certificates[0].sha1_fingerprint
        )
        return aws.iam.OpenIdConnectProvider(
            f"{self._name}-oidc-provider",
            url=issuer,
            client_id_lists=[STS_AUDIENCE],
            thumbprint_lists=[thumbprint],
            tags={"Name": f"{self._name}-oidc-provider", **self._tags},
            opts=pulumi.ResourceOptions(parent=self, provider=self._provider, depends_on=[self.cluster]),
        )

    def create_irsa_role(
        self,
        addon_name: str,
        service_account_name: str,
        namespace: str,
        managed_policy_arns: list[str],
    ) -> aws.iam.Role:
        """IAM role assumed by ``namespace/service_account_name`` through the cluster's OIDC provider."""
        role_name = f"{self._name}-{addon_name}-role"
        trust_policy = pulumi.Output.all(
            self.oidc_provider.arn, self.cluster.identities[0].oidcs[0].issuer
        ).apply(
            lambda args: json.dumps(
                service_account_trust_policy(args[0], args[1], namespace, service_account_name)
            )
        )
        role = aws.iam.Role(
            role_name,
            name=role_name,
            assume_role_policy=trust_policy,
            tags={"Name": role_name, **self._tags},
            opts=pulumi.ResourceOptions(
                parent=self, provider=self._provider, depends_on=[self.oidc_provider]
            ),
        )
        for index, policy_arn in enumerate(managed_policy_arns):
            aws.iam.RolePolicyAttachment(
                f"{self._name}-{addon_name}-policy-{index}",
                role=role.name,
                policy_arn=policy_arn,
                opts=pulumi.ResourceOptions(parent=self, provider=self._provider),
            )
        return role

    def _create_addon(
        self,
        resource_suffix: str,
        addon_name: str,
        addon_config: AddonResolved,
        irsa_role: aws.iam.Role | None = None,
        after_nodes: bool = False,
    ) -> aws.eks.Addon:
        depends: list[pulumi.Resource] = [self.cluster]
        if irsa_role is not None:
            depends.extend([self.oidc_provider, irsa_role])
        if after_nodes:
            depends.extend(self.node_groups)

        return aws.eks.Addon(
            f"{self._name}-{resource_suffix}",
            cluster_name=self.cluster.name,
            addon_name=addon_name,
            addon_version=addon_config.version,
            service_account_role_arn=irsa_role.arn if irsa_role is not None else None,
            resolve_conflicts_on_create=addon_config.resolve_conflicts_on_create,
            resolve_conflicts_on_update=addon_config.resolve_conflicts_on_update,
            tags={"Name": f"{self._name}-{resource_suffix}", **self._tags},
            opts=pulumi.ResourceOptions(
                parent=self,
                provider=self._provider,
                depends_on=depends,
            ),
        )

    def _create_node_group(
        self,
        node_role_arn: pulumi.Output[str],
        private_subnet_ids: pulumi.Output[Sequence[str]],
        node_group_config: NodeGroupResolved,
    ) -> aws.eks.NodeGroup:
        """Managed nodes for the OpenGovernance workloads, always in private subnets."""
        prefix = f"{self._name}-{node_group_config.name}"
        opts = pulumi.ResourceOptions(parent=self, provider=self._provider)

        # IMDSv2 only; hop limit 2 lets pods on the node reach the metadata service.
        launch_template = aws.ec2.LaunchTemplate(
            f"{prefix}-launch-template",
            name_prefix=f"{prefix}-",
            metadata_options=aws.ec2.LaunchTemplateMetadataOptionsArgs(
                http_endpoint="enabled", http_tokens="required", http_put_response_hop_limit=2
            ),
            block_device_mappings=[
                aws.ec2.LaunchTemplateBlockDeviceMappingArgs(
                    device_name="/dev/xvda",
                    ebs=aws.ec2.LaunchTemplateBlockDeviceMappingEbsArgs(
                        volume_size=node_group_config.disk_size, volume_type="gp3", encrypted=True
                    ),
                ),
            ],
            tag_specifications=[
                aws.ec2.LaunchTemplateTagSpecificationArgs(
                    resource_type="instance", tags={"Name": f"{prefix}-node", **self._tags}
                ),
            ],
            tags=self._tags,
            opts=opts,
        )

        return aws.eks.NodeGroup(
            f"{prefix}-node-group",
            cluster_name=self.cluster.name,
            node_group_name=node_group_config.name,
            node_role_arn=node_role_arn,
            subnet_ids=private_subnet_ids,
            launch_template=aws.eks.NodeGroupLaunchTemplateArgs(
                id=launch_template.id, version=launch_template.latest_version
            ),
            instance_types=node_group_config.instance_types,
            capacity_type=node_group_config.capacity_type.value,
            ami_type=node_group_config.ami_type.value,
            scaling_config=aws.eks.NodeGroupScalingConfigArgs(
                desired_size=node_group_config.desired_size,
                min_size=node_group_config.min_size,
                max_size=node_group_config.max_size,
            ),
            labels=node_group_config.labels or None,
            tags={"Name": prefix, **self._tags},
            opts=pulumi.ResourceOptions.merge(
                opts, pulumi.ResourceOptions(depends_on=[self.cluster, *self._pre_node_addons])
            ),
        )
