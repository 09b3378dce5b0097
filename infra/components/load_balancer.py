import json

import httpx
import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s

from infra.components.eks import EksCluster

CONTROLLER_VERSION = "v2.13.2"
CHART_VERSION = "1.13.2"
POLICY_URL = (
    "https://raw.githubusercontent.com/kubernetes-sigs/aws-load-balancer-controller/"
    f"{CONTROLLER_VERSION}/docs/install/iam_policy.json"
)
SERVICE_ACCOUNT = "aws-load-balancer-controller"
NAMESPACE = "kube-system"


def fetch_controller_policy(url: str = POLICY_URL) -> str:
    """Upstream IAM policy document for the controller release we install."""
    response = httpx.get(url, timeout=30.0, follow_redirects=True)
    response.raise_for_status()
    json.loads(response.text)
    return response.text


class LoadBalancerController(pulumi.ComponentResource):
    """AWS Load Balancer Controller with IRSA, so ALB Ingresses get provisioned."""

    def __init__(
        self,
        name: str,
        eks: EksCluster,
        vpc_id: pulumi.Output[str],
        region: str,
        aws_provider: aws.Provider,
        k8s_provider: k8s.Provider,
        tags: dict[str, str] | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("opengovernance:infrastructure:LoadBalancerController", name, None, opts)

        tags = tags or {}

        self.policy = aws.iam.Policy(
            f"{name}-lbc-policy",
            name=f"{name}-AWSLoadBalancerControllerIAMPolicy",
            description="IAM policy for AWS Load Balancer Controller",
            policy=fetch_controller_policy(),
            tags=tags,
            opts=pulumi.ResourceOptions(parent=self, provider=aws_provider),
        )

        self.role = eks.create_irsa_role(
            addon_name="lbc",
            service_account_name=SERVICE_ACCOUNT,
            namespace=NAMESPACE,
            managed_policy_arns=[self.policy.arn],
        )

        self.release = k8s.helm.v3.Release(
            f"{name}-lbc",
            name=SERVICE_ACCOUNT,
            chart="aws-load-balancer-controller",
            version=CHART_VERSION,
            namespace=NAMESPACE,
            repository_opts=k8s.helm.v3.RepositoryOptsArgs(
                repo="https://aws.github.io/eks-charts",
            ),
            values={
                "clusterName": eks.cluster_name,
                "region": region,
                "vpcId": vpc_id,
                "serviceAccount": {
                    "create": True,
                    "name": SERVICE_ACCOUNT,
                    "annotations": {"eks.amazonaws.com/role-arn": self.role.arn},
                },
            },
            opts=pulumi.ResourceOptions(
                parent=self,
                provider=k8s_provider,
                depends_on=[self.role, *eks.node_groups],
            ),
        )

        self.register_outputs({"role_arn": self.role.arn})
