class InstallerError(Exception):
    """Base error for a checked installer failure; the CLI exits with status 1."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingToolError(InstallerError):
    def __init__(self, tools: list[str]):
        self.tools = list(tools)
        super().__init__(f"Missing required tools: {', '.join(self.tools)}")


class CommandError(InstallerError):
    """A CLI invocation returned a non-zero exit code."""

    def __init__(self, command: list[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"Command failed ({returncode}): {' '.join(self.command)}"
        if self.stderr:
            message = f"{message}\n{self.stderr}"
        super().__init__(message)


class ReadinessTimeout(InstallerError):
    def __init__(self, what: str, attempts: int, interval: float):
        self.what = what
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"Timed out waiting for {what} after {attempts} attempts ({interval:g}s apart)"
        )


class ValidationError(InstallerError):
    pass


class ProviderError(InstallerError):
    pass


class UserExit(Exception):
    """The user chose to stop; this is not a failure."""

    def __init__(self, message: str = "Exiting."):
        super().__init__(message)
        self.message = message
