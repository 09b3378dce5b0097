import re
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from installer.errors import ValidationError

DOMAIN_PATTERN = re.compile(r"^(([a-zA-Z0-9](-*[a-zA-Z0-9])*)\.)+[a-zA-Z]{2,}$")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
CLUSTER_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")


class InstallType(IntEnum):
    """How OpenGovernance is exposed once the chart is running."""

    HTTPS = 1
    HOSTNAME_ONLY = 2
    PUBLIC_IP = 3
    BASIC = 4

    @property
    def description(self) -> str:
        return {
            InstallType.HTTPS: "Install with HTTPS and a hostname",
            InstallType.HOSTNAME_ONLY: "Install with a hostname but without HTTPS",
            InstallType.PUBLIC_IP: "Minimal install, reachable on the ingress public IP",
            InstallType.BASIC: "Basic install, no ingress (access through port-forward)",
        }[self]

    @property
    def requires_domain(self) -> bool:
        return self in (InstallType.HTTPS, InstallType.HOSTNAME_ONLY)

    @property
    def requires_email(self) -> bool:
        return self == InstallType.HTTPS

    @property
    def uses_ingress(self) -> bool:
        return self != InstallType.BASIC

    @property
    def protocol(self) -> str:
        return "https" if self == InstallType.HTTPS else "http"


class Provider(str, Enum):
    AWS = "AWS"
    AZURE = "Azure"
    GCP = "GCP"
    DIGITALOCEAN = "DigitalOcean"
    MINIKUBE = "Minikube"
    KIND = "Kind"
    UNKNOWN = "Unknown"

    @property
    def is_local(self) -> bool:
        return self in (Provider.KIND, Provider.MINIKUBE)


class ReleaseStatus(str, Enum):
    DEPLOYED = "deployed"
    FAILED = "failed"
    PENDING_INSTALL = "pending-install"
    PENDING_UPGRADE = "pending-upgrade"
    UNINSTALLED = "uninstalled"
    UNKNOWN = "unknown"
    MISSING = "missing"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReleaseStatus":
        if not value:
            return cls.MISSING
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


def validate_domain(domain: str) -> str:
    if not DOMAIN_PATTERN.match(domain):
        raise ValidationError(f"Invalid domain format: {domain}")
    return domain


def validate_email(email: str) -> str:
    if not EMAIL_PATTERN.match(email):
        raise ValidationError(f"Invalid email format: {email}")
    return email


def validate_cluster_name(name: str) -> str:
    if not CLUSTER_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid cluster name: {name}. Use lowercase letters, numbers and hyphens only"
        )
    return name


class InstallOptions(BaseModel):
    """Everything a platform flow needs, merged from flags, environment and prompts."""

    namespace: str = "opengovernance"
    domain: Optional[str] = None
    email: Optional[str] = None
    install_type: Optional[InstallType] = None
    region: Optional[str] = None
    cluster_name: str = "opengovernance"
    silent: bool = False
    debug: bool = False

    @field_validator("domain")
    @classmethod
    def check_domain(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not DOMAIN_PATTERN.match(v):
            raise ValueError(f"Invalid domain format: {v}")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Invalid email format: {v}")
        return v

    @property
    def protocol(self) -> str:
        if self.install_type is None:
            return "http"
        return self.install_type.protocol


class ProviderInfo(BaseModel):
    provider: Provider
    available: bool = False
    details: dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None


def resolve_install_type(
    domain: Optional[str],
    email: Optional[str],
    requested: Optional[int],
    silent: bool,
    allowed: tuple[InstallType, ...],
    default: InstallType,
    email_required: bool = True,
) -> Optional[InstallType]:
    """Decide the install type without prompting; None means the caller must ask."""
    if requested is not None:
        try:
            install_type = InstallType(int(requested))
        except ValueError as e:
            raise ValidationError(f"Invalid installation type: {requested}") from e
        if install_type not in allowed:
            choices = ", ".join(str(int(t)) for t in allowed)
            raise ValidationError(
                f"Installation type {int(install_type)} is not supported here (choose {choices})"
            )
        return install_type

    if domain and InstallType.HTTPS in allowed and (email or not silent or not email_required):
        return InstallType.HTTPS

    if silent:
        if domain and InstallType.HOSTNAME_ONLY in allowed:
            return InstallType.HOSTNAME_ONLY
        return default

    return None
