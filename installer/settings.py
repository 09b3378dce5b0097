from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    email: str = ""
    domain: str = ""
    kube_region: str = ""
    kube_cluster_name: str = "opengovernance"
    kube_namespace: str = "opengovernance"
    debug_mode: bool = False

    opengovernance_home: Path = Field(default_factory=lambda: Path.home() / ".opengovernance")
    pulumi_stack: str = ""
    pulumi_project_dir: Optional[Path] = None

    @property
    def log_file(self) -> Path:
        return self.opengovernance_home / "install.log"

    @property
    def helm_log_file(self) -> Path:
        return self.opengovernance_home / "helm_debug.log"

    @property
    def state_file(self) -> Path:
        return self.opengovernance_home / "install.state.json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
