"""Pulumi Automation API access to this repository's infrastructure program."""

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from pulumi import automation as auto

from installer.errors import ProviderError

logger = logging.getLogger(__name__)

# Repository root of a source checkout; installed packages must set PULUMI_PROJECT_DIR.
PROJECT_DIR = Path(__file__).resolve().parents[2]
PROJECT_FILE = "Pulumi.yaml"


class InfraStack:
    """One stack of the Pulumi project at the repository root."""

    def __init__(
        self,
        stack_name: str,
        work_dir: Optional[Path] = None,
        on_output: Callable[[str], None] = logger.info,
    ):
        self.stack_name = stack_name
        self.work_dir = Path(work_dir) if work_dir else PROJECT_DIR
        self.on_output = on_output

    def _stack(self) -> auto.Stack:
        if not (self.work_dir / PROJECT_FILE).is_file():
            raise ProviderError(
                f"No {PROJECT_FILE} in {self.work_dir}. Set PULUMI_PROJECT_DIR to a checkout "
                "of the opengovernance-deploy repository."
            )
        return auto.create_or_select_stack(stack_name=self.stack_name, work_dir=str(self.work_dir))

    def up(self, config: dict[str, str]) -> dict[str, Any]:
        logger.info("pulumi up on stack %s with %s", self.stack_name, config)
        try:
            stack = self._stack()
            for key, value in config.items():
                stack.set_config(key, auto.ConfigValue(value=value))
            result = stack.up(on_output=self.on_output)
        except auto.CommandError as e:
            raise ProviderError(f"pulumi up failed for stack {self.stack_name}: {e}") from e
        return {key: output.value for key, output in result.outputs.items()}

    def outputs(self) -> dict[str, Any]:
        try:
            outputs = self._stack().outputs()
        except auto.CommandError as e:
            raise ProviderError(f"Cannot read outputs of stack {self.stack_name}: {e}") from e
        return {key: output.value for key, output in outputs.items()}

    def destroy(self) -> None:
        logger.info("pulumi destroy on stack %s", self.stack_name)
        try:
            self._stack().destroy(on_output=self.on_output)
        except auto.CommandError as e:
            raise ProviderError(f"pulumi destroy failed for stack {self.stack_name}: {e}") from e


def stack_name(cloud: str, cluster_name: str, override: str = "") -> str:
    """``<cloud>-<cluster>`` unless PULUMI_STACK names a stack explicitly."""
    return override or f"{cloud}-{cluster_name}"
