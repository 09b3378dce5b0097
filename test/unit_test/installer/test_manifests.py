"""Unit tests for rendered manifests and chart values."""

import json

import pytest
import yaml

from installer.manifests import (
    alb_ingress,
    application_values,
    letsencrypt_cluster_issuer,
    nginx_ingress,
    to_yaml,
)


def test_application_values():
    assert application_values("og.example.com", "https") == {
        "global": {"domain": "og.example.com"},
        "dex": {"config": {"issuer": "https://og.example.com/dex"}},
    }


class TestNginxIngress:
    def test_without_domain_matches_any_host(self):
        ingress = nginx_ingress("og")
        rule = ingress["spec"]["rules"][0]
        assert "host" not in rule
        assert ingress["spec"]["ingressClassName"] == "nginx"
        assert rule["http"]["paths"][0]["backend"]["service"] == {"name": "nginx-proxy", "port": {"number": 80}}
        assert "tls" not in ingress["spec"]

    def test_tls(self):
        ingress = nginx_ingress("og", domain="og.example.com", tls=True)
        assert ingress["metadata"]["annotations"]["cert-manager.io/cluster-issuer"] == "letsencrypt"
        assert ingress["spec"]["tls"] == [{"hosts": ["og.example.com"], "secretName": "opengovernance-tls"}]
        assert ingress["spec"]["rules"][0]["host"] == "og.example.com"

    def test_tls_needs_domain(self):
        with pytest.raises(ValueError):
            nginx_ingress("og", tls=True)


class TestAlbIngress:
    def test_http_only(self):
        ingress = alb_ingress("og", domain="og.example.com")
        annotations = ingress["metadata"]["annotations"]
        assert ingress["spec"]["ingressClassName"] == "alb"
        assert json.loads(annotations["alb.ingress.kubernetes.io/listen-ports"]) == [{"HTTP": 80}]
        assert "alb.ingress.kubernetes.io/certificate-arn" not in annotations
        assert "kubernetes.io/ingress.class" not in annotations

    def test_https_with_certificate(self):
        arn = "arn:aws:acm:us-east-1:123:certificate/abc"
        annotations = alb_ingress("og", domain="og.example.com", certificate_arn=arn)["metadata"]["annotations"]
        assert annotations["alb.ingress.kubernetes.io/certificate-arn"] == arn
        assert json.loads(annotations["alb.ingress.kubernetes.io/listen-ports"]) == [{"HTTP": 80}, {"HTTPS": 443}]


def test_cluster_issuer_and_yaml():
    issuer = letsencrypt_cluster_issuer("ops@example.com")
    docs = list(yaml.safe_load_all(to_yaml(issuer, nginx_ingress("og"))))
    assert docs[0]["spec"]["acme"]["email"] == "ops@example.com"
    assert docs[0]["spec"]["acme"]["server"] == "https://acme-v02.api.letsencrypt.org/directory"
    assert docs[1]["kind"] == "Ingress"
