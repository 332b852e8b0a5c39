"""Idempotent resource installation actions."""

import logging
import time
from dataclasses import dataclass, field

from common import DONE, ERROR, REQUEUE, ActionResult
from store import AlreadyExists, NotFound, ObjectStore, StoreError, describe

logger = logging.getLogger(__name__)

CREATED = 'created'
ALREADY_PRESENT = 'already-present'


def ensure(store: ObjectStore, obj: dict) -> str:
    """Create an object, treating "already exists" as success.

    Returns:
        CREATED or ALREADY_PRESENT

    Raises:
        StoreError: Any failure other than an identity conflict. Not
            retried here; the next reconciliation cycle retries.
    """
    try:
        store.create(obj)
    except AlreadyExists:
        logger.debug(f"{describe(obj)} already present")
        return ALREADY_PRESENT
    logger.info(f"Created {describe(obj)}")
    return CREATED


@dataclass
class EnsureResourcesAction:
    """Ensure a fixed, ordered list of objects exists.

    Creation stops at the first failure. When gated is set, the objects
    depend on something an upstream install is still materialising (e.g. a
    CRD shipped by an operator). A create answered with NotFound (unknown
    kind) is then reported as "requeue after requeue_after"; any other
    failure is still an error.
    """
    name: str
    objects: list[dict] = field(default_factory=list)
    gated: bool = False
    requeue_after: float = 1.0

    def run(self, store: ObjectStore, context: dict) -> ActionResult:
        """Create each object in order."""
        start = time.time()
        created = 0

        for obj in self.objects:
            try:
                outcome = ensure(store, obj)
            except StoreError as e:
                if self.gated and isinstance(e, NotFound):
                    logger.info(f"[{self.name}] {describe(obj)} not creatable yet: {e}")
                    return ActionResult(
                        status=REQUEUE,
                        message=f"Waiting to create {describe(obj)}: {e}",
                        duration=time.time() - start,
                        requeue_after=self.requeue_after,
                    )
                return ActionResult(
                    status=ERROR,
                    message=f"Failed to create {describe(obj)}: {e}",
                    duration=time.time() - start,
                )
            if outcome == CREATED:
                created += 1

        present = len(self.objects) - created
        return ActionResult(
            status=DONE,
            message=f"{created} created, {present} already present",
            duration=time.time() - start,
        )
