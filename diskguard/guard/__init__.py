"""Pre-checkout disk space guard."""

import argparse
import os
import sys
from typing import List, Optional

from .build import Build, BuildLog
from .cleanup import CleanupCommand, PosixShellCleanup, WindowsBatchCleanup, select_cleanup
from .guard import BuildAborted, DecisionKind, DiskGuard, GuardDecision
from .sources import CachedMonitorSource, FreeSpaceResult, GuardError, RemoteExpressionSource


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check free disk space before checking out a build",
    )
    parser.add_argument(
        "-w",
        "--workspace",
        default=os.environ.get("WORKSPACE") or os.getcwd(),
        help="build workspace (default: $WORKSPACE or the current directory)",
    )
    parser.add_argument(
        "-n",
        "--node",
        default=os.environ.get("NODE_NAME", ""),
        help="name of the node the build runs on (default: $NODE_NAME)",
    )
    parser.add_argument(
        "--host",
        help="reach the node over ssh instead of running locally",
    )
    parser.add_argument("--user", help="ssh user")
    parser.add_argument("--port", type=int, default=22, help="ssh port")
    parser.add_argument(
        "--windows",
        action="store_true",
        help="the remote node runs Windows",
    )
    parser.add_argument("-c", "--config", help="path to YAML config file")
    parser.add_argument(
        "--fail-on-error",
        action="store_true",
        help="accepted for build step compatibility; currently has no effect",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the guard; returns 0 to proceed and 1 to abort."""
    from .config import load_config
    from diskguard.channels import LocalChannel, SshChannel
    from diskguard.shared.cache import InMemoryMonitorCache, MQTTMonitorCache
    from diskguard.shared.logging import setup_logging
    from diskguard.shared.models import ExecutionTarget
    from diskguard.shared.mqtt import MQTTPublisher

    args = parse_args(argv)
    settings = load_config(args.config)
    setup_logging(settings.log_level)

    workspace = args.workspace
    if args.host:
        channel = SshChannel(args.host, user=args.user, port=args.port, is_unix=not args.windows)
    else:
        channel = LocalChannel()
        workspace = os.path.abspath(workspace)

    publisher = None
    if settings.mqtt_enabled:
        cache = MQTTMonitorCache(settings.mqtt, topic=settings.monitor_topic)
        cache.start()
        publisher = MQTTPublisher(settings.mqtt)
        if not publisher.connect():
            publisher.disconnect()
            publisher = None
    else:
        cache = InMemoryMonitorCache()

    guard = DiskGuard(
        [
            RemoteExpressionSource(),
            CachedMonitorSource(cache, retry_delay=settings.monitor_retry_delay),
        ],
        publisher=publisher,
        decision_topic=settings.decision_topic,
    )
    build = Build(
        workspace=workspace,
        built_on=args.node,
        fail_on_error=args.fail_on_error,
    )

    try:
        guard.pre_checkout(build, ExecutionTarget.for_build(build, channel), settings.guard)
    except BuildAborted as e:
        build.log.println(f"ERROR: {e}", style="bold red")
        return 1
    finally:
        if isinstance(cache, MQTTMonitorCache):
            cache.stop()
        if publisher:
            publisher.disconnect()

    return 0


__all__ = [
    "Build",
    "BuildLog",
    "BuildAborted",
    "CachedMonitorSource",
    "CleanupCommand",
    "DecisionKind",
    "DiskGuard",
    "FreeSpaceResult",
    "GuardDecision",
    "GuardError",
    "PosixShellCleanup",
    "RemoteExpressionSource",
    "WindowsBatchCleanup",
    "main",
    "select_cleanup",
]

if __name__ == "__main__":
    sys.exit(main())
