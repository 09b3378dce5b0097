import logging
import socket
import time
from typing import Callable

from installer.console import print_info, print_success, print_warning
from installer.errors import InstallerError, ReadinessTimeout
from installer.polling import wait_for
from installer.prompts import Prompter

logger = logging.getLogger(__name__)


def resolve(domain: str) -> list[str]:
    try:
        infos = socket.getaddrinfo(domain, None)
    except socket.gaierror:
        return []
    return sorted({info[4][0] for info in infos})


def wait_for_dns(
    domain: str,
    prompter: Prompter,
    attempts: int = 12,
    interval: float = 30,
    resolver: Callable[[str], list[str]] = resolve,
    sleep: Callable[[float], None] = time.sleep,
) -> list[str]:
    """Wait until the domain resolves; on timeout the user may skip the check."""
    print_info(f"Checking DNS resolution for {domain}...")
    try:
        addresses = wait_for(
            lambda: resolver(domain),
            attempts=attempts,
            interval=interval,
            description=f"DNS resolution of {domain}",
            on_retry=lambda attempt, total: print_info(
                f"{domain} does not resolve yet ({attempt}/{total})"
            ),
            sleep=sleep,
        )
    except ReadinessTimeout:
        print_warning(f"{domain} did not resolve after {attempts} attempts.")
        if prompter.confirm("Skip the DNS check and proceed?", default=False):
            return []
        raise InstallerError(f"DNS for {domain} is not configured") from None

    print_success(f"{domain} resolves to {', '.join(addresses)}")
    return addresses
