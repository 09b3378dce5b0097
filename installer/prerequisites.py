import json
import logging
from dataclasses import dataclass
from typing import Callable

from installer.console import print_info, print_success
from installer.errors import CommandError, MissingToolError
from installer.models import Provider, ProviderInfo
from installer.runner import CommandResult, CommandRunner, command_exists

logger = logging.getLogger(__name__)


def check_tools(names: list[str], exists: Callable[[str], bool] = command_exists) -> None:
    print_info(f"Checking required tools: {', '.join(names)}")
    missing = [name for name in names if not exists(name)]
    if missing:
        raise MissingToolError(missing)
    print_success("All required tools are installed")


def _json(result: CommandResult) -> dict:
    try:
        return json.loads(result.stdout or "{}")
    except json.JSONDecodeError:
        return {}


def _aws_details(runner: CommandRunner) -> dict[str, str]:
    identity = _json(runner.run(["aws", "sts", "get-caller-identity", "--output", "json"], check=True))
    return {"Account": identity.get("Account", ""), "IAM principal": identity.get("Arn", "")}


def _azure_details(runner: CommandRunner) -> dict[str, str]:
    account = _json(runner.run(["az", "account", "show", "--output", "json"], check=True))
    return {
        "Subscription": account.get("name", ""),
        "Subscription ID": account.get("id", ""),
        "User": account.get("user", {}).get("name", ""),
    }


def _gcp_details(runner: CommandRunner) -> dict[str, str]:
    accounts = runner.run(
        ["gcloud", "auth", "list", "--filter=status:ACTIVE", "--format=value(account)"],
        check=True,
    ).stdout.strip()
    if not accounts:
        raise ValueError("no active gcloud account")
    project = runner.run(["gcloud", "config", "get-value", "project"]).stdout.strip()
    region = runner.run(["gcloud", "config", "get-value", "compute/region"]).stdout.strip()
    return {
        "Account": accounts.splitlines()[0],
        "Project": project or "(not set)",
        "Region": region or "(not set)",
    }


def _digitalocean_details(runner: CommandRunner) -> dict[str, str]:
    account = _json(runner.run(["doctl", "account", "get", "--output", "json"], check=True))
    return {"Email": account.get("email", ""), "UUID": account.get("uuid", "")}


@dataclass(frozen=True)
class ProviderCheck:
    provider: Provider
    cli: str
    details: Callable[[CommandRunner], dict[str, str]]


PROVIDER_CHECKS = [
    ProviderCheck(Provider.AWS, "aws", _aws_details),
    ProviderCheck(Provider.AZURE, "az", _azure_details),
    ProviderCheck(Provider.GCP, "gcloud", _gcp_details),
    ProviderCheck(Provider.DIGITALOCEAN, "doctl", _digitalocean_details),
]


def check_provider_cli(
    check: ProviderCheck,
    runner: CommandRunner,
    exists: Callable[[str], bool] = command_exists,
) -> ProviderInfo:
    if not exists(check.cli):
        return ProviderInfo(provider=check.provider, error="CLI not installed")
    try:
        details = check.details(runner)
    except (CommandError, ValueError, AttributeError) as e:
        logger.info("%s CLI is not configured: %s", check.cli, e)
        return ProviderInfo(provider=check.provider, error="CLI not configured")
    return ProviderInfo(provider=check.provider, available=True, details=details)


def detect_provider_clis(
    runner: CommandRunner,
    exists: Callable[[str], bool] = command_exists,
) -> list[ProviderInfo]:
    return [check_provider_cli(check, runner, exists) for check in PROVIDER_CHECKS]
