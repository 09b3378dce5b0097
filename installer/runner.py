import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from installer.errors import CommandError

logger = logging.getLogger("installer.commands")

COMMAND_NOT_FOUND = 127
COMMAND_TIMED_OUT = 124


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


class CommandRunner:
    """Runs CLI tools synchronously and records their output in the install log."""

    def __init__(self, log_file: Optional[Path] = None):
        self.log_file = log_file

    def run(
        self,
        args: list[str],
        check: bool = False,
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
        log_output: bool = True,
        logger_name: Optional[str] = None,
    ) -> CommandResult:
        log = logging.getLogger(logger_name) if logger_name else logger
        log.info("Running: %s", " ".join(args))

        try:
            completed = subprocess.run(
                args,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
            result = CommandResult(
                args=list(args),
                returncode=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
            )
        except FileNotFoundError:
            result = CommandResult(
                args=list(args),
                returncode=COMMAND_NOT_FOUND,
                stderr=f"{args[0]}: command not found",
            )
        except subprocess.TimeoutExpired:
            result = CommandResult(
                args=list(args),
                returncode=COMMAND_TIMED_OUT,
                stderr=f"{args[0]} timed out after {timeout}s",
            )

        if log_output:
            if result.stdout.strip():
                log.info(result.stdout.rstrip())
            if result.stderr.strip():
                log.info(result.stderr.rstrip())
        if not result.ok:
            log.warning("Exit code %s from: %s", result.returncode, " ".join(args))

        if check and not result.ok:
            raise CommandError(result.args, result.returncode, result.stderr)
        return result

    def start(self, args: list[str]) -> subprocess.Popen:
        """Start a long-running process in the background, output appended to the log file."""
        logger.info("Starting in background: %s", " ".join(args))
        if self.log_file is not None:
            with open(self.log_file, "a") as log_handle:
                return subprocess.Popen(args, stdout=log_handle, stderr=subprocess.STDOUT)
        return subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
