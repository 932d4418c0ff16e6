"""
Netfetch CLI entry point.

This module provides the command-line interface for Netfetch.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from typing import Any

from netfetch import __version__
from netfetch.collectors import KubernetesClusterClient
from netfetch.config import ScanConfiguration, load_config_from_env
from netfetch.coverage import select_namespaces
from netfetch.errors import NetfetchError
from netfetch.models import Dialect, PodRef, ScanResult
from netfetch.observability import configure_logging
from netfetch.scanner import ScanMode, ScanOrchestrator, TargetPolicyLookup

POD_HEADERS = ["Namespace", "Pod", "IP Address"]


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="netfetch",
        description="Netfetch - Kubernetes network policy coverage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"netfetch {__version__}",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Scan network policy coverage")
    scan_parser.add_argument(
        "namespace",
        nargs="?",
        help="Namespace to scan (default: every non-system namespace)",
    )
    scan_parser.add_argument(
        "--dryrun",
        action="store_true",
        help="Report findings without offering to apply policies",
    )
    scan_parser.add_argument(
        "--native",
        action="store_true",
        help="Scan Kubernetes NetworkPolicies (default when no dialect is given)",
    )
    scan_parser.add_argument(
        "--cilium",
        action="store_true",
        help="Scan Cilium network policies",
    )
    scan_parser.add_argument(
        "--target",
        metavar="NAME",
        help="Show the pods targeted by the named policy instead of scanning",
    )
    scan_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON and never prompt",
    )
    _add_cluster_arguments(scan_parser)

    # namespaces command
    namespaces_parser = subparsers.add_parser(
        "namespaces", help="List the namespaces a scan would cover"
    )
    namespaces_parser.add_argument(
        "--json",
        action="store_true",
        help="Print namespaces as JSON",
    )
    _add_cluster_arguments(namespaces_parser)

    return parser


def _add_cluster_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--kubeconfig",
        metavar="PATH",
        help="Path to kubeconfig file",
    )
    parser.add_argument(
        "--context",
        metavar="NAME",
        help="Kubernetes context to use",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Configuration file (JSON or YAML)",
    )


def prompt_yes_no(message: str) -> bool:
    """Ask a yes/no question on the terminal. Anything but yes is a no."""
    response = input(f"{message} [y/N]: ")
    return response.strip().lower() in ("y", "yes")


def format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format rows as a plain text table."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))

    lines = [
        " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)),
        "-+-".join("-" * w for w in widths),
    ]
    for row in rows:
        lines.append(" | ".join(value.ljust(widths[i]) for i, value in enumerate(row)))
    return "\n".join(lines)


def format_pod_table(pods: list[PodRef]) -> str:
    """Format pods as a Namespace/Pod/IP table."""
    return format_table(POD_HEADERS, [pod.as_row() for pod in pods])


def _load_config(args: argparse.Namespace) -> ScanConfiguration:
    """Build configuration from file/environment, then command-line overrides."""
    if args.config:
        config = ScanConfiguration.from_file(args.config)
    else:
        config = load_config_from_env()

    if args.kubeconfig:
        config.kubeconfig = args.kubeconfig
    if args.context:
        config.context = args.context
    return config


def _configure_logging(args: argparse.Namespace, config: ScanConfiguration) -> None:
    if args.verbose:
        level = "DEBUG" if args.verbose > 1 else "INFO"
    else:
        level = config.logging.level
    configure_logging(level=level, format=config.logging.format)


def _connect(config: ScanConfiguration) -> KubernetesClusterClient:
    return KubernetesClusterClient.connect(
        kubeconfig=config.kubeconfig,
        context=config.context,
        in_cluster=config.in_cluster,
        request_timeout=config.request_timeout,
    )


def _selected_dialects(args: argparse.Namespace) -> list[Dialect]:
    dialects = []
    if args.native or not args.cilium:
        dialects.append(Dialect.NATIVE)
    if args.cilium:
        dialects.append(Dialect.CILIUM)
    return dialects


def _print_unprotected(namespace: str, pods: list[PodRef]) -> None:
    print(f"\nUnprotected pods found in namespace {namespace}:")
    print(format_pod_table(pods))


def _print_summary(result: ScanResult) -> None:
    """Print the outcome of one dialect scan."""
    dialect = result.dialect.display_name

    if result.all_pods_protected:
        print("\nAll pods are protected by cluster wide policies.")
    elif not result.unprotected_pods:
        print(f"\nNo pods found without {dialect} network policies in the scanned namespaces.")

    if result.cancelled:
        print("Scan cancelled, results are partial.")
    if result.skipped_namespaces:
        print(
            f"Skipped namespaces after errors: {', '.join(result.skipped_namespaces)}",
            file=sys.stderr,
        )
    for error in result.remediation_errors:
        print(f"Error: {error}", file=sys.stderr)

    print(f"\nNetfetch {dialect} score: {result.score}/100")

    if result.policy_changes_made:
        print("Changes were made. Run netfetch scan again to see the updated score.")
    elif result.denied_namespaces:
        print(
            "Default deny policies were not applied to: "
            + ", ".join(result.denied_namespaces)
        )


def _cmd_target(args: argparse.Namespace, cluster: KubernetesClusterClient, config: ScanConfiguration) -> int:
    lookup = TargetPolicyLookup(cluster, config.system_namespaces)
    found: list[dict[str, Any]] = []
    for dialect in _selected_dialects(args):
        policy, pods = lookup.describe(dialect, args.target)
        found.append({"policy": policy.to_dict(), "pods": [pod.to_dict() for pod in pods]})
        if args.json:
            continue

        where = "cluster wide" if policy.is_cluster_wide else f"namespace {policy.namespace}"
        print(f"\n{dialect.display_name} policy {policy.name} ({where}) targets {len(pods)} pod(s):")
        if pods:
            print(format_pod_table(pods))

    if args.json:
        print(json.dumps({"targets": found}, indent=2))
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    """
    Execute a coverage scan.

    Returns:
        Exit code (0 success, 1 error)
    """
    try:
        config = _load_config(args)
        _configure_logging(args, config)
        cluster = _connect(config)

        if args.target:
            return _cmd_target(args, cluster, config)

        if args.json:
            mode = ScanMode.REPORT
        elif args.dryrun:
            mode = ScanMode.DRY_RUN
        else:
            mode = ScanMode.INTERACTIVE

        orchestrator = ScanOrchestrator.from_config(
            cluster,
            config,
            prompt_yes_no=prompt_yes_no if mode == ScanMode.INTERACTIVE else None,
            on_unprotected=None if args.json else _print_unprotected,
        )

        cancel_event = threading.Event()
        previous_handler = signal.signal(signal.SIGTERM, lambda signum, frame: cancel_event.set())
        try:
            results = []
            for dialect in _selected_dialects(args):
                result = orchestrator.scan(dialect, args.namespace, mode, cancel_event)
                results.append(result)
                if not args.json:
                    _print_summary(result)
                if result.cancelled:
                    break
        finally:
            signal.signal(signal.SIGTERM, previous_handler)

    except NetfetchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"results": [r.to_dict() for r in results]}, indent=2))
    return 0


def cmd_namespaces(args: argparse.Namespace) -> int:
    """
    List the namespaces a scan would cover.

    Returns:
        Exit code (0 success, 1 error)
    """
    try:
        config = _load_config(args)
        _configure_logging(args, config)
        cluster = _connect(config)
        namespaces = select_namespaces(cluster, None, config.system_namespaces)
    except NetfetchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"namespaces": namespaces}, indent=2))
    else:
        for namespace in namespaces:
            print(namespace)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    command_handlers = {
        "scan": cmd_scan,
        "namespaces": cmd_namespaces,
    }

    handler = command_handlers.get(args.command)
    if handler:
        return handler(args)

    print(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
