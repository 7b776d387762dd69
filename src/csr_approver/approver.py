import dataclasses
import logging
import os
import time
from collections.abc import Callable
from datetime import datetime, timezone

from .cluster import TRANSIENT_ERRORS, ClusterClient
from .matching import select_matches
from .models import CSRTarget

LOGGER = logging.getLogger(__name__)

POLL_INTERVAL = 20


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def boot_time(proc: str = "/proc") -> datetime:
    """Approximate the host boot time from the change time of `/proc`."""
    return datetime.fromtimestamp(int(os.stat(proc).st_ctime), tz=timezone.utc)


class ApprovalLoop:
    """
    Poll for pending CSRs matching `target` and approve them.

    The loop ends once at least one approval in a cycle succeeds. Until then it
    keeps polling every `interval` seconds, with no limit on the number of
    cycles. CSRs created before `not_before` are never approved; when no
    `not_before` is given, the time the loop starts is used.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        target: CSRTarget,
        interval: float = POLL_INTERVAL,
        not_before: datetime | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] | None = None,
    ):
        self.cluster = cluster
        self.target = target
        self.interval = interval
        self.not_before = not_before
        self.clock = clock
        self.sleep = sleep or time.sleep

    def approve_matches(self, target: CSRTarget) -> list[str]:
        """Run a single poll cycle, returning the names of the CSRs approved."""
        try:
            pending = self.cluster.list_csrs()
        except TRANSIENT_ERRORS as e:
            LOGGER.warning(f"Unable to list CSRs: {e}")
            return []

        approved = []
        for csr in select_matches(pending, target):
            LOGGER.info(f"Approving CSR: {csr.name}")
            if self.cluster.approve_csr(csr.name):
                approved.append(csr.name)

        return approved

    def run(self) -> list[str]:
        # creationTimestamp has whole second resolution
        not_before = (self.not_before or self.clock()).replace(microsecond=0)
        target = dataclasses.replace(self.target, not_before=not_before)
        LOGGER.info(f"Waiting for {target.signer_name} CSRs created after {not_before.isoformat()}")

        while True:
            approved = self.approve_matches(target)
            if approved:
                return approved

            self.sleep(self.interval)


def approve_csrs(cluster: ClusterClient, target: CSRTarget, **kwargs) -> list[str]:
    return ApprovalLoop(cluster, target, **kwargs).run()
