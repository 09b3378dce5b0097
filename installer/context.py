import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from installer.helm import Helm
from installer.kubectl import Kubectl
from installer.models import InstallOptions
from installer.prompts import Prompter
from installer.runner import CommandRunner
from installer.settings import Settings
from installer.state import InstallState, StateStore


@dataclass
class InstallContext:
    """Collaborators shared by every step of one installer run."""

    settings: Settings
    options: InstallOptions
    runner: CommandRunner
    prompter: Prompter
    state_store: StateStore
    state: InstallState = field(default_factory=InstallState)
    sleep: Callable[[float], None] = time.sleep
    kubectl: Optional[Kubectl] = None
    helm: Optional[Helm] = None

    def __post_init__(self):
        if self.kubectl is None:
            self.kubectl = Kubectl(self.runner)
        if self.helm is None:
            self.helm = Helm(self.runner)

    @property
    def namespace(self) -> str:
        return self.options.namespace

    def save_state(self, step: Optional[int] = None) -> None:
        if step is not None:
            self.state.advance(step)
        self.state.user_inputs.update(self.prompter.history)
        self.state_store.save(self.state)
