"""Install plan approval.

OLM generates InstallPlans asynchronously after it sees a Subscription.
With manual approval, nothing is installed until the plan's
spec.approved flag is flipped. The reconciler never creates plans; it
waits for one that references the target version and approves it.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from common import DONE, ERROR, REQUEUE, ActionResult
from store import Conflict, ObjectStore, StoreError

logger = logging.getLogger(__name__)

APPROVED = 'approved'
PENDING = 'pending'


def find_install_plan(store: ObjectStore, target_version: str, namespace: str) -> Optional[dict]:
    """Return the InstallPlan in namespace that references target_version.

    An already-approved match wins over unapproved ones; otherwise the
    first match by name.
    """
    matches = [
        plan for plan in store.list('InstallPlan', namespace)
        if target_version in ((plan.get('spec') or {}).get('clusterServiceVersionNames') or [])
    ]
    if not matches:
        return None
    matches.sort(key=lambda p: (not (p.get('spec') or {}).get('approved', False), p['metadata']['name']))
    return matches[0]


def approve(store: ObjectStore, target_version: str, operator_name: str, namespace: str) -> str:
    """Approve the install plan for target_version.

    Returns:
        APPROVED if the plan is (now) approved, PENDING if no plan
        references the version yet

    Raises:
        StoreError: If listing or updating plans fails
    """
    plan = find_install_plan(store, target_version, namespace)
    if plan is None:
        logger.debug(f"No InstallPlan for {operator_name} {target_version} in {namespace} yet")
        return PENDING

    plan_name = plan['metadata']['name']
    if plan['spec'].get('approved'):
        logger.debug(f"InstallPlan {namespace}/{plan_name} already approved")
        return APPROVED

    plan['spec']['approved'] = True
    store.update(plan)
    logger.info(f"Approved InstallPlan {namespace}/{plan_name} for {operator_name} {target_version}")
    return APPROVED


@dataclass
class ApproveInstallPlanAction:
    """Approve the install plan of a subscription, or requeue until it exists."""
    name: str
    operator_name: str
    target_version: str
    namespace: str
    requeue_after: float = 5.0

    def run(self, store: ObjectStore, context: dict) -> ActionResult:
        """Look up and approve the plan."""
        start = time.time()

        try:
            outcome = approve(store, self.target_version, self.operator_name, self.namespace)
        except Conflict as e:
            # Someone else wrote the plan between our read and write
            return ActionResult(
                status=REQUEUE,
                message=f"InstallPlan for {self.operator_name} changed concurrently: {e}",
                duration=time.time() - start,
                requeue_after=self.requeue_after,
            )
        except StoreError as e:
            return ActionResult(
                status=ERROR,
                message=f"Failed to approve InstallPlan for {self.operator_name}: {e}",
                duration=time.time() - start,
            )

        if outcome == PENDING:
            logger.info(f"[{self.name}] Waiting for Subscription to create InstallPlan for {self.operator_name}")
            return ActionResult(
                status=REQUEUE,
                message=f"InstallPlan for {self.operator_name} {self.target_version} not generated yet",
                duration=time.time() - start,
                requeue_after=self.requeue_after,
            )

        return ActionResult(
            status=DONE,
            message=f"InstallPlan for {self.operator_name} {self.target_version} approved",
            duration=time.time() - start,
        )
