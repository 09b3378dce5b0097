import logging
import os
from typing import Optional

from installer.console import print_info, print_primary, print_success, print_warning
from installer.models import InstallType, Provider, validate_cluster_name
from installer.platforms.base import Platform
from installer.polling import timed

logger = logging.getLogger(__name__)

MIN_MEMORY_GB = 16


def total_memory_gb() -> Optional[float]:
    try:
        return os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES") / 1024**3
    except (AttributeError, ValueError, OSError):
        return None


class KindPlatform(Platform):
    name = "Kind"
    provider = Provider.KIND
    required_tools = ("kind", "kubectl", "helm")
    allowed_install_types = (InstallType.BASIC,)
    default_install_type = InstallType.BASIC

    def check_credentials(self) -> None:
        memory = total_memory_gb()
        if memory is not None and memory < MIN_MEMORY_GB:
            print_warning(
                f"Kind needs at least {MIN_MEMORY_GB} GB of RAM for OpenGovernance; "
                f"this machine has {memory:.1f} GB."
            )

    def clusters(self) -> list[str]:
        result = self.ctx.runner.run(["kind", "get", "clusters"])
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def create_cluster(self, name: str) -> None:
        print_primary(f"Creating Kind cluster '{name}'...")
        with timed("Kind cluster creation", report=print_info):
            self.ctx.runner.run(["kind", "create", "cluster", "--name", name], check=True)
        self.ctx.state.cluster_created = True
        print_success(f"Kind cluster '{name}' created")

    def select_cluster(self) -> str:
        ctx = self.ctx
        existing = self.clusters()
        if not existing:
            name = ctx.namespace
            self.create_cluster(name)
            return name

        options = [(name, "Existing Kind cluster") for name in existing]
        options.append(("Create a new cluster", "Create another Kind cluster"))
        index = ctx.prompter.choose("Select the Kind cluster to use:", options, default=0)
        if index < len(existing):
            return existing[index]

        name = ctx.prompter.ask(
            "Enter the new cluster name", required=True, validator=validate_cluster_name
        )
        self.create_cluster(name)
        return name

    def prepare_cluster(self) -> None:
        name = self.select_cluster()
        self.ctx.state.cluster_name = name
        self.ctx.kubectl.use_context(f"kind-{name}")
        print_success(f"Using kubectl context kind-{name}")

    def resume_cluster(self) -> None:
        if self.ctx.state.cluster_name:
            self.ctx.kubectl.use_context(f"kind-{self.ctx.state.cluster_name}")
        super().resume_cluster()
