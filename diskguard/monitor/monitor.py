"""Disk Space Monitor Service - collects free space for every build node.

The guard falls back to these readings when it cannot ask a node directly.
Readings are published retained so a guard that subscribes later still
receives the last value for each node.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from rich.table import Table

from diskguard.guard.sources import query_free_space_bytes
from diskguard.shared.cache import InMemoryMonitorCache
from diskguard.shared.disk_check import bytes_to_gb
from diskguard.shared.mqtt import MQTTPublisher, create_payload

from .config import MonitorConfig, NodeConfig, channel_for_node

logger = logging.getLogger(__name__)


@dataclass
class NodeSpaceStatus:
    """Result of measuring one node."""
    node: str
    path: str
    free_bytes: Optional[int] = None
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.free_bytes is not None


class DiskSpaceMonitorService:
    """Service that periodically measures free space on every node."""

    def __init__(
        self,
        config: MonitorConfig,
        cache: Optional[InMemoryMonitorCache] = None,
        publisher: Optional[MQTTPublisher] = None,
        channel_factory=None,
    ):
        self.config = config
        self.cache = cache if cache is not None else InMemoryMonitorCache()
        self.publisher = publisher
        self.channel_factory = channel_factory or channel_for_node
        self.running = False

    def _measure_node(self, node: NodeConfig) -> NodeSpaceStatus:
        try:
            channel = self.channel_factory(node)
            free_bytes = query_free_space_bytes(channel, node.path)
        except Exception as e:
            logger.warning(f"Could not measure {node.name}: {e}")
            return NodeSpaceStatus(node=node.name, path=node.path, error=str(e))

        return NodeSpaceStatus(node=node.name, path=node.path, free_bytes=free_bytes)

    def _publish(self, status: NodeSpaceStatus) -> None:
        if not self.publisher:
            return

        topic = f"{self.config.topic.rstrip('/')}/{status.node}/free_space"
        payload = create_payload(
            value=status.free_bytes,
            unit="B",
            sensor_id="diskguard-monitor",
            timestamp=status.timestamp,
        )
        try:
            self.publisher.publish(topic, payload, retain=True)
        except Exception as e:
            logger.error(f"Failed to publish {topic}: {e}")

    def collect(self) -> List[NodeSpaceStatus]:
        """Measure every configured node once."""
        statuses = []
        for node in self.config.nodes:
            status = self._measure_node(node)
            statuses.append(status)

            if not status.ok:
                continue

            self.cache.update(node.name, status.free_bytes)
            self._publish(status)
            logger.debug(
                f"{node.name}: {bytes_to_gb(status.free_bytes):.1f} Gb free at {node.path}"
            )
        return statuses

    async def run_loop(self) -> None:
        """Main monitoring loop."""
        logger.info(
            f"Starting disk space monitor ({len(self.config.nodes)} nodes, "
            f"interval={self.config.check_interval}s)"
        )

        while self.running:
            try:
                statuses = await asyncio.to_thread(self.collect)
                failed = [s.node for s in statuses if not s.ok]
                if failed:
                    logger.warning(f"No free space reading for: {', '.join(failed)}")
            except Exception as e:
                logger.error(f"Error in monitoring loop: {e}")

            await asyncio.sleep(self.config.check_interval)

    def run(self) -> None:
        """Start the monitoring service."""
        self.running = True
        if self.publisher:
            self.publisher.connect()

        try:
            asyncio.run(self.run_loop())
        except KeyboardInterrupt:
            logger.info("Shutting down disk space monitor...")
        finally:
            self.running = False
            if self.publisher:
                self.publisher.disconnect()


def render_status_table(statuses: List[NodeSpaceStatus]) -> Table:
    """Render one collection cycle as a rich table."""
    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("Node", style="white")
    table.add_column("Path", style="white")
    table.add_column("Free", justify="right")

    for status in statuses:
        if status.ok:
            free = f"{bytes_to_gb(status.free_bytes):.1f} Gb"
            table.add_row(status.node, status.path, free, style="green")
        else:
            table.add_row(status.node, status.path, f"unavailable ({status.error})", style="red")

    return table
