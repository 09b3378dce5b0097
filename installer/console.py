import logging
import sys

from colorama import Fore, Style, init

from installer.settings import Settings

init(autoreset=True)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

logger = logging.getLogger("installer")

_debug = False


def configure_logging(settings: Settings, debug: bool = False) -> None:
    """Send installer logs to install.log and helm output to helm_debug.log."""
    global _debug
    _debug = debug

    settings.opengovernance_home.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(settings.log_file)
    file_handler.setFormatter(formatter)

    helm_handler = logging.FileHandler(settings.helm_log_file)
    helm_handler.setFormatter(formatter)

    logger.handlers.clear()
    logger.addHandler(file_handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False

    helm_logger = logging.getLogger("installer.helm")
    helm_logger.handlers.clear()
    helm_logger.addHandler(helm_handler)
    helm_logger.propagate = False

    logger.info("Logging to %s", settings.log_file)


def print_header(message):
    print(f"\n{Fore.CYAN}{Style.BRIGHT}{'=' * 60}")
    print(f"{Fore.CYAN}{Style.BRIGHT}{message.center(60)}")
    print(f"{Fore.CYAN}{Style.BRIGHT}{'=' * 60}{Style.RESET_ALL}\n")
    logger.info("=== %s ===", message)


def print_success(message):
    print(f"{Fore.GREEN}✓ {message}{Style.RESET_ALL}")
    logger.info(message)


def print_error(message):
    print(f"{Fore.RED}✗ Error: {message}{Style.RESET_ALL}", file=sys.stderr)
    logger.error(message)


def print_warning(message):
    print(f"{Fore.YELLOW}⚠ {message}{Style.RESET_ALL}")
    logger.warning(message)


def print_primary(message):
    print(message)
    logger.info(message)


def print_info(message):
    """Log-only progress detail, echoed to the terminal in debug mode."""
    if _debug:
        print(f"{Fore.BLUE}[DEBUG] {message}{Style.RESET_ALL}")
    logger.info(message)


def print_detail(message):
    print(f"    {message}")
    logger.info("    %s", message)


def print_access_instructions(
    namespace: str, username: str, password: str, local_port: int = 8080
) -> None:
    print_primary("To access OpenGovernance, forward the proxy service to your machine:")
    print_detail(
        f"kubectl port-forward -n {namespace} service/nginx-proxy {local_port}:80"
    )
    print_primary(f"Then open http://localhost:{local_port} in your browser.")
    print_default_credentials(username, password)


def print_default_credentials(username: str, password: str) -> None:
    print_primary("Sign in with the default credentials:")
    print_detail(f"Username: {username}")
    print_detail(f"Password: {password}")
