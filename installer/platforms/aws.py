import logging
import shlex
from typing import Callable, Optional

import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from installer.application import (
    RELEASE_NAME,
    restart_application,
    start_port_forward,
    upgrade_application_address,
)
from installer.console import print_detail, print_info, print_primary, print_success, print_warning
from installer.errors import ProviderError, ReadinessTimeout
from installer.ingress import remove_ingress
from installer.manifests import INGRESS_NAME, alb_ingress, to_yaml
from installer.models import InstallType, Provider, validate_cluster_name
from installer.platforms.base import Platform
from installer.platforms.stack import InfraStack, stack_name
from installer.polling import wait_for

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
ALB_ATTEMPTS = 20
ALB_INTERVAL = 15


def certificate_matches(certificate_domain: str, domain: str) -> bool:
    """Exact match, or a wildcard covering exactly one extra label."""
    if certificate_domain == domain:
        return True
    if certificate_domain.startswith("*."):
        _, _, parent = domain.partition(".")
        return parent == certificate_domain[2:]
    return False


class AwsPlatform(Platform):
    name = "AWS EKS"
    provider = Provider.AWS
    required_tools = ("kubectl", "aws", "helm", "pulumi")
    allowed_install_types = (InstallType.HTTPS, InstallType.HOSTNAME_ONLY, InstallType.BASIC)
    default_install_type = InstallType.BASIC
    https_requires_email = False
    uses_ingress_nginx = False

    def __init__(
        self,
        ctx,
        session_factory: Callable[[], boto3.session.Session] = boto3.session.Session,
        **kwargs,
    ):
        super().__init__(ctx, **kwargs)
        self.session_factory = session_factory
        self.session: Optional[boto3.session.Session] = None
        self.region: Optional[str] = None
        self.certificate_arn: Optional[str] = None

    def _client(self, service: str):
        return self.session.client(service, region_name=self.region)

    def check_credentials(self) -> None:
        ctx = self.ctx
        self.session = self.session_factory()
        region = ctx.options.region or ctx.state.region or self.session.region_name
        if not region:
            region = ctx.prompter.ask("Enter the AWS region", default=DEFAULT_REGION)
        self.region = region

        try:
            identity = self._client("sts").get_caller_identity()
            regions = self._client("ec2").describe_regions()["Regions"]
        except NoCredentialsError as e:
            raise ProviderError(
                f"Failed to locate AWS credentials: {e}. Run 'aws configure' or set AWS_PROFILE."
            ) from e
        except ClientError as e:
            raise ProviderError(f"AWS credentials are not usable: {e}") from e

        available = {r["RegionName"] for r in regions}
        if region not in available:
            raise ProviderError(f"Invalid AWS region: {region}")

        print_success(f"AWS account {identity['Account']} ({identity['Arn']})")
        print_info(f"AWS region: {region}")
        ctx.state.region = region

    def collect_options(self) -> None:
        super().collect_options()
        if self.install_type == InstallType.HTTPS:
            self._select_certificate()

    def find_certificate(self, domain: str) -> Optional[str]:
        acm = self._client("acm")
        try:
            pages = acm.get_paginator("list_certificates").paginate(CertificateStatuses=["ISSUED"])
            for page in pages:
                for summary in page.get("CertificateSummaryList", []):
                    names = [summary.get("DomainName", "")]
                    names += summary.get("SubjectAlternativeNameSummaries", [])
                    if any(certificate_matches(name, domain) for name in names):
                        return summary["CertificateArn"]
        except ClientError as e:
            raise ProviderError(f"Cannot list ACM certificates in {self.region}: {e}") from e
        return None

    def request_certificate(self, domain: str) -> str:
        """Request a DNS-validated certificate and print the record that validates it."""
        acm = self._client("acm")
        try:
            arn = acm.request_certificate(DomainName=domain, ValidationMethod="DNS")["CertificateArn"]
        except ClientError as e:
            raise ProviderError(f"Cannot request an ACM certificate for {domain}: {e}") from e

        def validation_record() -> Optional[dict]:
            certificate = acm.describe_certificate(CertificateArn=arn)["Certificate"]
            for option in certificate.get("DomainValidationOptions", []):
                if "ResourceRecord" in option:
                    return option["ResourceRecord"]
            return None

        try:
            record = wait_for(
                validation_record,
                attempts=6,
                interval=10,
                description=f"ACM validation record for {domain}",
                sleep=self.ctx.sleep,
            )
        except ReadinessTimeout:
            print_warning(f"Certificate {arn} requested; find its validation record in the ACM console.")
            return arn

        print_primary("Create this DNS record to validate the certificate:")
        print_detail(f"Type: {record['Type']}    Name: {record['Name']}    Value: {record['Value']}")
        return arn

    def _select_certificate(self) -> None:
        ctx = self.ctx
        domain = ctx.options.domain
        self.certificate_arn = self.find_certificate(domain)
        if self.certificate_arn:
            print_success(f"Using ACM certificate {self.certificate_arn}")
            return

        print_warning(f"No issued ACM certificate found for {domain} in {self.region}.")
        if ctx.prompter.confirm(f"Request an ACM certificate for {domain}?", default=False):
            arn = self.request_certificate(domain)
            print_info(f"Once {arn} is issued, rerun with 'configure -t 1' to enable HTTPS.")
        print_warning("Continuing without HTTPS.")
        ctx.options = ctx.options.model_copy(update={"install_type": InstallType.HOSTNAME_ONLY})
        ctx.state.install_type = int(InstallType.HOSTNAME_ONLY)

    def _existing_eks_context(self) -> Optional[str]:
        kubectl = self.ctx.kubectl
        if not kubectl.is_connected():
            return None
        context = kubectl.current_context()
        server = kubectl.cluster_server(kubectl.context_cluster(context))
        if "amazonaws.com" not in server:
            return None
        if kubectl.ready_node_count() < self.required_nodes:
            return None
        if self.ctx.helm.is_installed(RELEASE_NAME, self.ctx.namespace):
            return None
        return context

    def prepare_cluster(self) -> None:
        ctx = self.ctx
        context = self._existing_eks_context()
        if context and ctx.prompter.confirm(f"Use the existing EKS cluster '{context}'?", default=True):
            print_success(f"Using EKS context {context}")
            return

        cluster_name = ctx.prompter.ask(
            "Enter the EKS cluster name",
            default=ctx.options.cluster_name,
            validator=validate_cluster_name,
        )
        ctx.state.cluster_name = cluster_name
        print_primary(f"Provisioning EKS cluster '{cluster_name}' in {self.region} (about 20 minutes)...")
        outputs = self.infra_stack(cluster_name).up(
            {"cloud": "aws", "clusterName": cluster_name, "aws:region": self.region}
        )
        ctx.state.cluster_created = True
        ctx.save_state()
        self.configure_kubectl(outputs, cluster_name)

    def infra_stack(self, cluster_name: str) -> InfraStack:
        settings = self.ctx.settings
        return InfraStack(
            stack_name("aws", cluster_name, settings.pulumi_stack),
            work_dir=settings.pulumi_project_dir,
        )

    def configure_kubectl(self, outputs: dict, cluster_name: str) -> None:
        command = outputs.get("configure_kubectl")
        if not command:
            raise ProviderError("Stack output 'configure_kubectl' is missing")
        self.ctx.runner.run(shlex.split(command), check=True)
        print_success(f"kubectl configured for EKS cluster {cluster_name}")

    def resume_cluster(self) -> None:
        """Point kubectl back at a cluster an interrupted run created."""
        state = self.ctx.state
        if state.cluster_created and state.cluster_name:
            self.configure_kubectl(self.infra_stack(state.cluster_name).outputs(), state.cluster_name)
        super().resume_cluster()

    def wait_for_load_balancer(self) -> str:
        ctx = self.ctx
        print_primary("Waiting for the Application Load Balancer hostname...")
        return wait_for(
            lambda: ctx.kubectl.ingress_hostname(INGRESS_NAME, ctx.namespace),
            attempts=ALB_ATTEMPTS,
            interval=ALB_INTERVAL,
            description="ALB hostname",
            sleep=ctx.sleep,
        )

    def configure_access(self) -> None:
        ctx = self.ctx
        install_type = self.install_type
        if install_type == InstallType.BASIC:
            if self.reconfigure:
                remove_ingress(ctx)
            start_port_forward(ctx)
            return

        domain = ctx.options.domain
        if self.reconfigure:
            upgrade_application_address(ctx, domain, install_type.protocol)

        certificate_arn = self.certificate_arn if install_type == InstallType.HTTPS else None
        print_info(f"Applying ALB Ingress {INGRESS_NAME}")
        ctx.kubectl.apply(
            to_yaml(alb_ingress(ctx.namespace, domain=domain, certificate_arn=certificate_arn)),
            namespace=ctx.namespace,
        )

        hostname = self.wait_for_load_balancer()
        ctx.state.access_address = hostname
        print_success(f"Load balancer ready: {hostname}")
        restart_application(ctx)
