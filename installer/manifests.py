"""Kubernetes manifests and chart values rendered by the installer."""

import json
from typing import Any, Optional

import yaml

INGRESS_NAME = "opengovernance-ingress"
TLS_SECRET_NAME = "opengovernance-tls"
BACKEND_SERVICE = "nginx-proxy"
BACKEND_PORT = 80

CLUSTER_ISSUER_NAME = "letsencrypt"
ACME_SERVER = "https://acme-v02.api.letsencrypt.org/directory"
ACME_PRIVATE_KEY_SECRET = "letsencrypt-private-key"


def application_values(domain: str, protocol: str) -> dict[str, Any]:
    return {
        "global": {"domain": domain},
        "dex": {"config": {"issuer": f"{protocol}://{domain}/dex"}},
    }


def _backend_path() -> dict[str, Any]:
    return {
        "path": "/",
        "pathType": "Prefix",
        "backend": {
            "service": {"name": BACKEND_SERVICE, "port": {"number": BACKEND_PORT}},
        },
    }


def _rule(domain: Optional[str]) -> dict[str, Any]:
    rule: dict[str, Any] = {"http": {"paths": [_backend_path()]}}
    if domain:
        rule = {"host": domain, **rule}
    return rule


def nginx_ingress(namespace: str, domain: Optional[str] = None, tls: bool = False) -> dict[str, Any]:
    """Ingress served by ingress-nginx; ``tls`` adds a cert-manager issued certificate."""
    if tls and not domain:
        raise ValueError("a TLS ingress needs a domain")

    metadata: dict[str, Any] = {"name": INGRESS_NAME, "namespace": namespace}
    spec: dict[str, Any] = {"ingressClassName": "nginx", "rules": [_rule(domain)]}

    if tls:
        metadata["annotations"] = {
            "cert-manager.io/cluster-issuer": CLUSTER_ISSUER_NAME,
            "nginx.ingress.kubernetes.io/ssl-redirect": "true",
        }
        spec["tls"] = [{"hosts": [domain], "secretName": TLS_SECRET_NAME}]

    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": metadata,
        "spec": spec,
    }


def alb_listen_ports(https: bool) -> str:
    ports: list[dict[str, int]] = [{"HTTP": 80}]
    if https:
        ports.append({"HTTPS": 443})
    return json.dumps(ports)


def alb_ingress(
    namespace: str,
    domain: Optional[str] = None,
    certificate_arn: Optional[str] = None,
) -> dict[str, Any]:
    """Ingress for the AWS Load Balancer Controller; HTTPS only when an ACM certificate is given."""
    # the API server rejects the legacy ingress.class annotation next to ingressClassName
    annotations = {
        "alb.ingress.kubernetes.io/scheme": "internet-facing",
        "alb.ingress.kubernetes.io/target-type": "ip",
        "alb.ingress.kubernetes.io/backend-protocol": "HTTP",
        "alb.ingress.kubernetes.io/listen-ports": alb_listen_ports(bool(certificate_arn)),
    }
    if certificate_arn:
        annotations["alb.ingress.kubernetes.io/certificate-arn"] = certificate_arn

    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {"name": INGRESS_NAME, "namespace": namespace, "annotations": annotations},
        "spec": {"ingressClassName": "alb", "rules": [_rule(domain)]},
    }


def letsencrypt_cluster_issuer(email: str) -> dict[str, Any]:
    return {
        "apiVersion": "cert-manager.io/v1",
        "kind": "ClusterIssuer",
        "metadata": {"name": CLUSTER_ISSUER_NAME},
        "spec": {
            "acme": {
                "server": ACME_SERVER,
                "email": email,
                "privateKeySecretRef": {"name": ACME_PRIVATE_KEY_SECRET},
                "solvers": [{"http01": {"ingress": {"class": "nginx"}}}],
            }
        },
    }


def to_yaml(*docs: dict[str, Any]) -> str:
    return yaml.safe_dump_all(docs, default_flow_style=False, sort_keys=False)
