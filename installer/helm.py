import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml

from installer.models import ReleaseStatus
from installer.runner import CommandRunner

HELM_LOGGER = "installer.helm"

logger = logging.getLogger(HELM_LOGGER)


class Helm:
    """Helm CLI wrapper; every call runs with --debug and is logged to helm_debug.log."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _run(self, *args: str, check: bool = False, debug: bool = True):
        command = ["helm", *args]
        if debug:
            command.append("--debug")
        return self.runner.run(command, check=check, logger_name=HELM_LOGGER)

    def repo_names(self) -> list[str]:
        result = self._run("repo", "list", "-o", "json", debug=False)
        if not result.ok or not result.stdout.strip():
            return []
        return [repo["name"] for repo in json.loads(result.stdout)]

    def ensure_repo(self, name: str, url: str) -> None:
        if name not in self.repo_names():
            logger.info("Adding Helm repo %s (%s)", name, url)
            self._run("repo", "add", name, url, check=True)
        self._run("repo", "update", name, check=True)

    def list_releases(self, namespace: Optional[str] = None) -> list[dict[str, Any]]:
        args = ["list", "-o", "json"]
        args += ["-n", namespace] if namespace else ["-A"]
        result = self._run(*args, debug=False)
        if not result.ok or not result.stdout.strip():
            return []
        return json.loads(result.stdout)

    def release_status(self, release: str, namespace: str) -> ReleaseStatus:
        result = self._run(
            "list", "-n", namespace, "--all", "--filter", f"^{release}$", "-o", "json",
            debug=False,
        )
        if not result.ok or not result.stdout.strip():
            return ReleaseStatus.MISSING
        releases = json.loads(result.stdout)
        if not releases:
            return ReleaseStatus.MISSING
        return ReleaseStatus.parse(releases[0].get("status"))

    def is_installed(self, release: str, namespace: str) -> bool:
        return self.release_status(release, namespace) != ReleaseStatus.MISSING

    def release_exists_anywhere(self, release: str) -> bool:
        return any(r.get("name") == release for r in self.list_releases())

    def upgrade_install(
        self,
        release: str,
        chart: str,
        namespace: str,
        values: Optional[dict[str, Any]] = None,
        version: Optional[str] = None,
        set_values: Optional[dict[str, str]] = None,
        timeout: str = "15m",
        wait: bool = True,
        create_namespace: bool = True,
        reuse_values: bool = False,
    ) -> None:
        args = ["upgrade", "--install", release, chart, "-n", namespace, f"--timeout={timeout}"]
        if create_namespace:
            args.append("--create-namespace")
        if wait:
            args.append("--wait")
        if version:
            args += ["--version", version]
        if reuse_values:
            args.append("--reuse-values")
        for key, value in (set_values or {}).items():
            args += ["--set", f"{key}={value}"]

        if not values:
            self._run(*args, check=True)
            return

        with tempfile.TemporaryDirectory() as tmp:
            values_file = Path(tmp) / "values.yaml"
            values_file.write_text(yaml.safe_dump(values, default_flow_style=False))
            logger.info("Values for %s:\n%s", release, values_file.read_text())
            self._run(*args, "-f", str(values_file), check=True)

    def uninstall(self, release: str, namespace: str) -> bool:
        return self._run("uninstall", release, "-n", namespace).ok
