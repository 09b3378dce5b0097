"""Command-line entry point: ``opengovernance-install [command] [options]``."""

import argparse
import logging
import sys
import time
from typing import Optional

import pydantic
from dotenv import load_dotenv

from installer.application import RELEASE_NAME
from installer.console import (
    configure_logging,
    print_detail,
    print_error,
    print_header,
    print_primary,
    print_success,
    print_warning,
)
from installer.context import InstallContext
from installer.errors import InstallerError, UserExit, ValidationError
from installer.models import InstallOptions, Provider, validate_cluster_name
from installer.platforms import PLATFORMS, AwsPlatform, ExistingClusterPlatform, Platform
from installer.platforms.detect import detect_current_provider
from installer.prerequisites import check_tools, detect_provider_clis
from installer.prompts import Prompter, SilentPrompter
from installer.runner import CommandRunner, command_exists
from installer.settings import Settings, get_settings
from installer.state import InstallState, StateStore
from installer.teardown import uninstall
from installer.timings import render_report

logger = logging.getLogger(__name__)

COMMANDS = ("install", "aws", "gcp", "digitalocean", "kind", "configure", "status", "uninstall")

PROVIDER_COMMANDS = {
    "aws": Provider.AWS,
    "gcp": Provider.GCP,
    "digitalocean": Provider.DIGITALOCEAN,
    "kind": Provider.KIND,
}

STATUS_INTERVAL = 15


def _common_arguments() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-d", "--domain", help="Domain OpenGovernance is served on")
    common.add_argument("-e", "--email", help="Email for Let's Encrypt certificates")
    common.add_argument(
        "-t",
        "--type",
        type=int,
        choices=[1, 2, 3, 4],
        help="Installation type: 1 HTTPS, 2 hostname without HTTPS, 3 public IP, 4 basic",
    )
    common.add_argument("-r", "--region", help="Cloud region for a new cluster")
    common.add_argument("--cluster-name", help="Name of the cluster to create or use")
    common.add_argument("--kube-namespace", help="Namespace to install into")
    common.add_argument(
        "--silent-install",
        action="store_true",
        help="Never prompt; use flags, environment and defaults",
    )
    common.add_argument("--debug", action="store_true", help="Echo debug output to the terminal")
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_arguments()
    parser = argparse.ArgumentParser(
        prog="opengovernance-install",
        description="Provision a Kubernetes cluster and install OpenGovernance.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "install", parents=[common], help="Detect the environment and install (default)"
    )
    subparsers.add_parser("aws", parents=[common], help="Install on a new or existing EKS cluster")
    subparsers.add_parser("gcp", parents=[common], help="Install on a new GKE cluster")
    subparsers.add_parser(
        "digitalocean", parents=[common], help="Install on a DigitalOcean Kubernetes cluster"
    )
    subparsers.add_parser("kind", parents=[common], help="Install on a local Kind cluster")
    subparsers.add_parser(
        "configure", parents=[common], help="Change how an existing installation is exposed"
    )

    status = subparsers.add_parser("status", parents=[common], help="Show pod readiness timings")
    status.add_argument("--watch", action="store_true", help="Refresh until interrupted")
    status.add_argument(
        "--interval", type=int, default=STATUS_INTERVAL, help="Seconds between refreshes"
    )

    remove = subparsers.add_parser("uninstall", parents=[common], help="Remove OpenGovernance")
    remove.add_argument(
        "--remove-controllers",
        action="store_true",
        help="Also remove ingress-nginx and cert-manager",
    )
    remove.add_argument(
        "--destroy-cluster",
        choices=sorted(PROVIDER_COMMANDS),
        help="Also delete the cluster created by this installer",
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse arguments; without a command the auto-detecting ``install`` runs."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ("-h", "--help")):
        argv = ["install", *argv]
    return build_parser().parse_args(argv)


def build_options(args: argparse.Namespace, settings: Settings) -> InstallOptions:
    """Flags win over environment variables, which win over defaults."""
    cluster_name = args.cluster_name or settings.kube_cluster_name
    validate_cluster_name(cluster_name)
    try:
        return InstallOptions(
            namespace=args.kube_namespace or settings.kube_namespace,
            domain=args.domain or settings.domain or None,
            email=args.email or settings.email or None,
            install_type=args.type,
            region=args.region or settings.kube_region or None,
            cluster_name=cluster_name,
            silent=args.silent_install,
            debug=args.debug or settings.debug_mode,
        )
    except pydantic.ValidationError as e:
        message = "; ".join(error["msg"].removeprefix("Value error, ") for error in e.errors())
        raise ValidationError(message) from e


def build_context(options: InstallOptions, settings: Settings) -> InstallContext:
    prompter = SilentPrompter() if options.silent else Prompter()
    return InstallContext(
        settings=settings,
        options=options,
        runner=CommandRunner(log_file=settings.log_file),
        prompter=prompter,
        state_store=StateStore(settings.state_file),
        state=InstallState(namespace=options.namespace, region=options.region),
    )


def resume_state(ctx: InstallContext, provider: Optional[Provider] = None) -> bool:
    """Offer to continue an interrupted run for the same namespace (and provider)."""
    previous = ctx.state_store.load()
    if previous is None or previous.namespace != ctx.namespace or previous.current_step < 1:
        return False
    if provider is not None and previous.provider != provider.value:
        return False

    started = previous.start_time.strftime("%Y-%m-%d %H:%M")
    print_warning(
        f"An unfinished {previous.provider or ''} install started {started} "
        f"stopped after step {previous.current_step}."
    )
    if not ctx.prompter.confirm("Resume it?", default=True):
        ctx.state_store.clear()
        return False

    ctx.state = previous
    return True


def platform_for_current_cluster(ctx: InstallContext, provider: Provider) -> Platform:
    if provider == Provider.AWS:
        return AwsPlatform(ctx)
    return ExistingClusterPlatform(ctx, provider=provider)


def choose_new_platform(ctx: InstallContext) -> Platform:
    """List the cloud CLIs that are ready to use and let the user pick one."""
    infos = detect_provider_clis(ctx.runner)
    candidates: list[Provider] = []
    print_primary("Cloud provider CLIs:")
    for info in infos:
        if info.available:
            details = ", ".join(f"{k}: {v}" for k, v in info.details.items() if v)
            print_detail(f"{info.provider.value}: ready ({details})")
            if info.provider in PLATFORMS:
                candidates.append(info.provider)
            else:
                print_detail(f"{info.provider.value}: deploy to an existing cluster instead")
        else:
            print_detail(f"{info.provider.value}: {info.error}")
    if command_exists("kind"):
        print_detail("Kind: ready (local cluster)")
        candidates.append(Provider.KIND)

    if not candidates:
        raise InstallerError(
            "No usable cloud provider CLI found. Configure aws, gcloud or doctl, or install kind."
        )

    index = ctx.prompter.choose(
        "Where do you want to create the cluster?",
        [(p.value, f"Create a new {p.value} cluster") for p in candidates],
        default=0,
    )
    return PLATFORMS[candidates[index]](ctx)


def cmd_install(ctx: InstallContext) -> None:
    if resume_state(ctx) and ctx.state.provider:
        provider = Provider(ctx.state.provider)
        if ctx.state.cluster_created and provider in PLATFORMS:
            PLATFORMS[provider](ctx).run()
        else:
            platform_for_current_cluster(ctx, provider).run()
        return

    check_tools(["helm", "kubectl"])
    if ctx.kubectl.is_connected():
        provider = detect_current_provider(ctx)
        print_header("Current Kubernetes cluster")
        print_detail(f"Context: {ctx.kubectl.current_context()}")
        print_detail(f"Provider: {provider.value}")
        print_detail(f"Nodes: {ctx.kubectl.node_count()}")
        choice = ctx.prompter.choose(
            "How do you want to install OpenGovernance?",
            [
                ("Deploy to the current cluster", "Install into the cluster kubectl points at"),
                ("Create a new cluster", "Provision a new cluster with a cloud provider or Kind"),
            ],
            default=0,
        )
        if choice == 0:
            platform_for_current_cluster(ctx, provider).run()
            return
    else:
        print_warning("kubectl is not connected to a cluster.")

    choose_new_platform(ctx).run()


def cmd_provider(ctx: InstallContext, provider: Provider) -> None:
    resume_state(ctx, provider)
    PLATFORMS[provider](ctx).run()


def cmd_configure(ctx: InstallContext) -> None:
    ctx.kubectl.require_connection()
    provider = detect_current_provider(ctx)
    platform_for_current_cluster(ctx, provider).configure()


def print_status(ctx: InstallContext) -> None:
    status = ctx.helm.release_status(RELEASE_NAME, ctx.namespace)
    print_header(f"OpenGovernance in namespace {ctx.namespace}")
    print_primary(f"Release status: {status.value}")

    unhealthy = ctx.kubectl.unhealthy_pods(ctx.namespace)
    if unhealthy:
        print_warning(f"{len(unhealthy)} pod(s) not ready:")
        for name, pod_status in sorted(unhealthy.items()):
            print_detail(f"{name}: {pod_status}")
    else:
        print_success("All pods are Running or Completed")

    rows = render_report(ctx.kubectl.pods_json(ctx.namespace))
    if rows:
        width = max(len(label) for label, _ in rows)
        print_primary("Time to ready:")
        for label, duration in rows:
            print_detail(f"{label.ljust(width)}  {duration}")


def cmd_status(ctx: InstallContext, watch: bool = False, interval: float = STATUS_INTERVAL) -> None:
    ctx.kubectl.require_connection()
    print_status(ctx)
    if not watch:
        return
    try:
        while True:
            ctx.sleep(interval)
            print_status(ctx)
    except KeyboardInterrupt:
        print_primary("Stopped watching.")


def dispatch(args: argparse.Namespace, ctx: InstallContext) -> None:
    if args.command == "install":
        cmd_install(ctx)
    elif args.command in PROVIDER_COMMANDS:
        cmd_provider(ctx, PROVIDER_COMMANDS[args.command])
    elif args.command == "configure":
        cmd_configure(ctx)
    elif args.command == "status":
        cmd_status(ctx, watch=args.watch, interval=args.interval)
    elif args.command == "uninstall":
        destroy = PROVIDER_COMMANDS.get(args.destroy_cluster) if args.destroy_cluster else None
        uninstall(ctx, remove_controllers=args.remove_controllers, destroy_provider=destroy)


def run(argv: Optional[list[str]] = None) -> int:
    """Run one command and return the process exit code."""
    args = parse_args(argv)
    load_dotenv()
    settings = get_settings()
    configure_logging(settings, debug=args.debug or settings.debug_mode)
    logger.info("Command: %s", args.command)

    started = time.monotonic()
    try:
        options = build_options(args, settings)
        ctx = build_context(options, settings)
        dispatch(args, ctx)
    except UserExit as e:
        print_primary(e.message)
        return 0
    except InstallerError as e:
        print_error(e.message)
        return 1
    except KeyboardInterrupt:
        print_error("Script terminated unexpectedly.")
        return 1
    except Exception as e:
        logger.exception("Unexpected error")
        print_error(f"Unexpected error: {e}. See {settings.log_file} for details.")
        return 1

    logger.info("Finished in %.0f seconds", time.monotonic() - started)
    return 0


def main() -> None:
    sys.exit(run())
