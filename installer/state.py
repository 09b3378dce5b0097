import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    """Millisecond timestamp, 13 digits."""
    return str(int(time.time() * 1000))


class InstallState(BaseModel):
    """Progress of one install run, persisted so an interrupted run can resume."""

    run_id: str = Field(default_factory=new_run_id)
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    current_step: int = 0
    provider: Optional[str] = None
    namespace: str = "opengovernance"
    cluster_name: Optional[str] = None
    region: Optional[str] = None
    install_type: Optional[int] = None
    access_address: Optional[str] = None

    cluster_created: bool = False
    kubectl_configured: bool = False
    application_installed: bool = False
    application_configured: bool = False

    user_inputs: dict[str, str] = Field(default_factory=dict)

    def completed(self, step: int) -> bool:
        return step <= self.current_step

    def advance(self, step: int) -> None:
        self.current_step = max(self.current_step, step)


class StateStore:
    """JSON file holding the InstallState of the run in progress."""

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[InstallState]:
        if not self.path.exists():
            return None
        try:
            return InstallState.model_validate_json(self.path.read_text())
        except ValueError:
            logger.warning("Ignoring unreadable state file %s", self.path)
            return None

    def save(self, state: InstallState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(state.model_dump_json(indent=2))

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
