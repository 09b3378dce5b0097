from infra.components.database import PostgresDatabase
from infra.components.eks import EksCluster
from infra.components.gke import GkeCluster
from infra.components.iam import EksIamRoles
from infra.components.load_balancer import LoadBalancerController
from infra.components.networking import Networking
from infra.components.storage import DefaultStorageClass

__all__ = [
    "Networking",
    "EksIamRoles",
    "EksCluster",
    "DefaultStorageClass",
    "LoadBalancerController",
    "PostgresDatabase",
    "GkeCluster",
]
