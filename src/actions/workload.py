"""Workload readiness gate action."""

import logging
import time
from dataclasses import dataclass

from common import DONE, REQUEUE, ActionResult
from readiness import is_ready
from store import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class WorkloadReadyAction:
    """Check a Deployment's rollout once; requeue instead of blocking."""
    name: str
    workload: str
    namespace: str
    requeue_after: float = 1.0

    def run(self, store: ObjectStore, context: dict) -> ActionResult:
        """Report DONE when ready, REQUEUE otherwise."""
        start = time.time()

        if not is_ready(store, self.workload, self.namespace):
            logger.info(f"[{self.name}] Waiting for {self.namespace}/{self.workload} to be running")
            return ActionResult(
                status=REQUEUE,
                message=f"{self.namespace}/{self.workload} not ready",
                duration=time.time() - start,
                requeue_after=self.requeue_after,
            )

        return ActionResult(
            status=DONE,
            message=f"{self.namespace}/{self.workload} ready",
            duration=time.time() - start,
        )
