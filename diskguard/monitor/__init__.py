"""Disk Space Monitor Service - Collects free space readings for build nodes."""

import argparse
from typing import List, Optional

from .monitor import DiskSpaceMonitorService, NodeSpaceStatus, render_status_table


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for disk space monitor service."""
    from rich.console import Console

    from .config import load_config
    from diskguard.shared.logging import setup_logging
    from diskguard.shared.mqtt import MQTTPublisher

    parser = argparse.ArgumentParser(description="Collect free disk space for build nodes")
    parser.add_argument("-c", "--config", help="path to YAML config file")
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single collection cycle and print the results",
    )
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.log_level)

    if args.once:
        service = DiskSpaceMonitorService(config)
        statuses = service.collect()
        Console().print(render_status_table(statuses))
        return 0 if all(status.ok for status in statuses) else 1

    service = DiskSpaceMonitorService(config, publisher=MQTTPublisher(config.mqtt))
    service.run()
    return 0


__all__ = ["DiskSpaceMonitorService", "NodeSpaceStatus", "render_status_table", "main"]
