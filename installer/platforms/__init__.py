from installer.models import Provider
from installer.platforms.aws import AwsPlatform
from installer.platforms.base import Platform
from installer.platforms.digitalocean import DigitalOceanPlatform
from installer.platforms.existing import ExistingClusterPlatform
from installer.platforms.gcp import GcpPlatform
from installer.platforms.kind import KindPlatform

# Platforms that can create a cluster themselves.
PLATFORMS: dict[Provider, type[Platform]] = {
    Provider.AWS: AwsPlatform,
    Provider.GCP: GcpPlatform,
    Provider.DIGITALOCEAN: DigitalOceanPlatform,
    Provider.KIND: KindPlatform,
}

__all__ = [
    "PLATFORMS",
    "Platform",
    "AwsPlatform",
    "GcpPlatform",
    "DigitalOceanPlatform",
    "KindPlatform",
    "ExistingClusterPlatform",
]
