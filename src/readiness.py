"""Workload readiness checks.

Answers "has this Deployment finished rolling out?" and finds the pods
behind a workload. A missing or unreadable workload is reported as not
ready rather than as an error so callers can simply retry later.
"""

import logging
from typing import Optional

from store import NotFound, ObjectStore, StoreError

logger = logging.getLogger(__name__)

# Label that ties pods to their workload (app=<name>)
DEFAULT_POD_LABEL = 'app'


def rollout_complete(deployment: dict) -> tuple[bool, str]:
    """Evaluate a Deployment's rollout status.

    Mirrors `kubectl rollout status`: the controller must have observed the
    latest generation, and updated/available replica counts must reach the
    desired count.

    Args:
        deployment: Deployment object dict

    Returns:
        (ready, reason) tuple
    """
    metadata = deployment.get('metadata') or {}
    spec = deployment.get('spec') or {}
    status = deployment.get('status') or {}

    generation = metadata.get('generation')
    observed = status.get('observedGeneration')
    if generation is not None and (observed is None or observed < generation):
        return False, f"waiting for generation {generation} to be observed (observed {observed})"

    desired = spec.get('replicas', 1)
    updated = status.get('updatedReplicas', 0) or 0
    replicas = status.get('replicas', 0) or 0
    available = status.get('availableReplicas', 0) or 0

    if updated < desired:
        return False, f"{updated} of {desired} updated replicas available"
    if replicas > updated:
        return False, f"{replicas - updated} old replicas pending termination"
    if available < updated:
        return False, f"{available} of {updated} updated replicas available"
    return True, f"{available} of {desired} replicas available"


def is_ready(store: ObjectStore, name: str, namespace: str) -> bool:
    """True if Deployment namespace/name has completed its rollout."""
    try:
        deployment = store.get('Deployment', namespace, name)
    except NotFound:
        logger.debug(f"Deployment {namespace}/{name} not found yet")
        return False
    except StoreError as e:
        logger.warning(f"Cannot read Deployment {namespace}/{name}: {e}")
        return False

    ready, reason = rollout_complete(deployment)
    logger.debug(f"Deployment {namespace}/{name}: {reason}")
    return ready


def find_pod(store: ObjectStore, workload: str, namespace: str, label: str = DEFAULT_POD_LABEL) -> Optional[str]:
    """Return the name of one pod labelled {label}={workload}, or None.

    Running pods are preferred; among equals the first by name wins so the
    choice is deterministic.
    """
    pods = store.list('Pod', namespace, labels={label: workload})
    if not pods:
        return None
    running = [p for p in pods if (p.get('status') or {}).get('phase') == 'Running']
    chosen = sorted(running or pods, key=lambda p: p['metadata']['name'])[0]
    return chosen['metadata']['name']
