"""Pre-checkout disk space guard.

DiskGuard runs once per build before the workspace is checked out. It
measures free space on the build's node, then lets the build proceed,
recycles sibling workspaces, or aborts the build.

Errors that prevent measuring never block a build: the guard only aborts
on a confirmed low disk condition or a confirmed cleanup failure.
"""

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

from diskguard.channels.base import ChannelError, RemoteChannel
from diskguard.shared.models import ExecutionTarget, FreeSpaceReading, GuardConfig

from .build import Build, BuildLog
from .cleanup import CleanupCommand, select_cleanup
from .sources import FreeSpaceResult, FreeSpaceSource, GuardError

logger = logging.getLogger(__name__)

LOW_SPACE_MESSAGE = "Disk space is too low, please look into it before starting a build"
CLEANUP_FAILED_MESSAGE = (
    "Something went wrong while deleting files, please check the error message above"
)


class DecisionKind(Enum):
    """What the guard decided for a build."""
    PROCEED = "proceed"
    ABORT = "abort"
    CLEANUP_THEN_PROCEED = "cleanup_then_proceed"
    CLEANUP_THEN_ABORT = "cleanup_then_abort"


class GuardState(Enum):
    IDLE = "idle"
    MEASURING = "measuring"
    DECIDED = "decided"


@dataclass(frozen=True)
class GuardDecision:
    """Verdict for one build."""
    kind: DecisionKind
    node_name: str
    reason: Optional[str] = None
    reading: Optional[FreeSpaceReading] = None
    rounded_gb: Optional[int] = None
    error: Optional[GuardError] = None
    timestamp: float = 0.0

    @property
    def proceeds(self) -> bool:
        return self.kind in (DecisionKind.PROCEED, DecisionKind.CLEANUP_THEN_PROCEED)

    @property
    def cleaned_up(self) -> bool:
        return self.kind in (DecisionKind.CLEANUP_THEN_PROCEED, DecisionKind.CLEANUP_THEN_ABORT)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/MQTT."""
        return {
            "decision": self.kind.value,
            "node": self.node_name,
            "reason": self.reason,
            "free_gb": self.rounded_gb,
            "source": self.reading.source.value if self.reading else None,
            "error": self.error.value if self.error else None,
            "ts": self.timestamp,
        }


class BuildAborted(Exception):
    """Raised by pre_checkout when the build must not continue."""

    def __init__(self, decision: GuardDecision):
        super().__init__(decision.reason)
        self.decision = decision


class DiskGuard:
    """Decides whether a build may start on its node.

    Args:
        sources: Free space sources tried in order; first success wins.
        cleanup_selector: Picks the cleanup command for a channel.
        publisher: Optional MQTTPublisher for decisions.
        decision_topic: Topic prefix decisions are published under.
    """

    def __init__(
        self,
        sources: Sequence[FreeSpaceSource],
        cleanup_selector: Callable[[RemoteChannel], CleanupCommand] = select_cleanup,
        publisher=None,
        decision_topic: str = "diskguard/builds",
    ):
        self.sources = list(sources)
        self.cleanup_selector = cleanup_selector
        self.publisher = publisher
        self.decision_topic = decision_topic.rstrip("/")

    def pre_checkout(
        self, build: Build, target: ExecutionTarget, config: GuardConfig
    ) -> GuardDecision:
        """Evaluate and raise BuildAborted unless the build may proceed."""
        decision = self.evaluate(build, target, config)
        if not decision.proceeds:
            raise BuildAborted(decision)
        return decision

    def evaluate(
        self, build: Build, target: ExecutionTarget, config: GuardConfig
    ) -> GuardDecision:
        log = build.log
        state = GuardState.IDLE

        log.println("Checking disk space")
        log.println(f"Disk space threshold is set to: {config.threshold_gb} Gb")

        self._ensure_workspace(target)

        state = self._transition(state, GuardState.MEASURING, target)
        result = self.measure(target, log)
        state = self._transition(state, GuardState.DECIDED, target)

        if not result.ok:
            decision = self._decide_unmeasured(build, target, result)
        else:
            decision = self._decide(build, target, config, result.reading)

        self._publish(decision)
        return decision

    def measure(
        self, target: ExecutionTarget, log: Optional[BuildLog] = None
    ) -> FreeSpaceResult:
        """Try each source in order and return the first reading.

        Exceptions escaping a source become UNEXPECTED_INTERNAL_ERROR.
        """
        result = FreeSpaceResult.failure(
            GuardError.UNEXPECTED_INTERNAL_ERROR, "No free space sources configured"
        )
        for source in self.sources:
            try:
                result = source.measure(target)
            except Exception as e:
                logger.exception(f"Unexpected error from {source.name} for {target.node_name}")
                return FreeSpaceResult.failure(GuardError.UNEXPECTED_INTERNAL_ERROR, str(e))

            if result.ok:
                return result
            logger.info(f"{source.name} unavailable for {target.node_name}: {result.detail}")
            if log:
                log.println(
                    f"Free disk space could not be determined from {source.name}: {result.detail}"
                )
        return result

    def _decide_unmeasured(
        self, build: Build, target: ExecutionTarget, result: FreeSpaceResult
    ) -> GuardDecision:
        # Every measuring failure lets the build proceed
        log = build.log
        if result.error is GuardError.REMOTE_QUERY_UNAVAILABLE:
            log.println("Free disk space could not be determined, skipping disk check")
        elif result.error is GuardError.MONITOR_DATA_UNAVAILABLE:
            log.println("Could not get node information")
        else:
            log.println(
                f"Unknown exception, exiting disk check for node {target.node_name}: "
                f"{result.detail}"
            )

        return GuardDecision(
            kind=DecisionKind.PROCEED,
            node_name=target.node_name,
            error=result.error,
            timestamp=time.time(),
        )

    def _decide(
        self,
        build: Build,
        target: ExecutionTarget,
        config: GuardConfig,
        reading: FreeSpaceReading,
    ) -> GuardDecision:
        log = build.log
        rounded_gb = reading.rounded_gb
        node_name = target.node_name

        log.println(f"Total disk space available is: {rounded_gb} Gb")
        log.println(f"Node name: {node_name}")

        def decision(kind: DecisionKind, reason: Optional[str] = None) -> GuardDecision:
            return GuardDecision(
                kind=kind,
                node_name=node_name,
                reason=reason,
                reading=reading,
                rounded_gb=rounded_gb,
                timestamp=time.time(),
            )

        if rounded_gb >= config.threshold_gb:
            log.println("Running prebuild steps")
            return decision(DecisionKind.PROCEED)

        if not config.recycler_enabled:
            logger.warning(
                f"{node_name} has {rounded_gb} Gb free, below {config.threshold_gb} Gb"
            )
            return decision(DecisionKind.ABORT, LOW_SPACE_MESSAGE)

        log.println("Disk recycler is enabled, wiping the workspace directory now")
        if target.channel is None:
            log.println(f"No channel to node {node_name}, cannot run cleanup")
            succeeded = False
        else:
            cleanup = self.cleanup_selector(target.channel)
            succeeded = cleanup.run(target.channel, target.workspace_path, log).succeeded

        if not succeeded:
            return decision(DecisionKind.CLEANUP_THEN_ABORT, CLEANUP_FAILED_MESSAGE)

        log.println("Running prebuild steps")
        return decision(DecisionKind.CLEANUP_THEN_PROCEED)

    @staticmethod
    def _ensure_workspace(target: ExecutionTarget) -> None:
        if target.channel is None:
            return
        try:
            target.channel.mkdirs(target.workspace_path)
        except ChannelError as e:
            logger.warning(f"Could not create workspace {target.workspace_path}: {e}")

    @staticmethod
    def _transition(current: GuardState, new: GuardState, target: ExecutionTarget) -> GuardState:
        logger.debug(f"Guard for {target.node_name}: {current.value} -> {new.value}")
        return new

    def _publish(self, decision: GuardDecision) -> None:
        if not self.publisher:
            return
        try:
            self.publisher.publish(
                f"{self.decision_topic}/{decision.node_name}",
                json.dumps(decision.to_dict()),
            )
        except Exception as e:
            logger.error(f"Failed to publish decision: {e}")
