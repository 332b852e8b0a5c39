"""Install status tracking.

The Workshop status holds one install state per feature. Only Installed is
ever written, and only when it differs from what is stored, so repeated
cycles over a fully installed workshop issue no status writes at all.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from store import ObjectStore, StoreError
from workshop import InstallState, Workshop

logger = logging.getLogger(__name__)


def mark_installed(store: ObjectStore, workshop: Workshop, feature: str) -> bool:
    """Record feature as Installed on the Workshop status.

    Compare-and-write: nothing is sent when the field already reads
    Installed. On success the workshop picks up the stored object (and its
    new resourceVersion).

    Returns:
        True if a write was issued, False if already recorded

    Raises:
        StoreError: If the status write fails. The in-memory field is
            restored so the workshop still reflects what is stored.
    """
    status = workshop.status
    previous = status.get(feature)
    if previous == InstallState.INSTALLED:
        logger.debug(f"{feature} already recorded as {InstallState.INSTALLED}")
        return False

    status[feature] = InstallState.INSTALLED
    try:
        stored = store.update_status(workshop.obj)
    except StoreError:
        if previous is None:
            status.pop(feature, None)
        else:
            status[feature] = previous
        raise

    workshop.obj = stored
    logger.info(f"Workshop {workshop.name}: {feature} {InstallState.INSTALLED}")
    return True


@dataclass
class FeatureProgress:
    """Where one feature got to in the last reconciliation cycle.

    Attributes:
        feature: Feature key (pipeline, serviceMesh)
        state: Disabled, a pending phase state, or Complete
        stages: Stage name -> stage state, in execution order
        message: Outcome message of the blocking stage, if any
    """
    feature: str
    state: str = ''
    stages: dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            'feature': self.feature,
            'state': self.state,
            'stages': [{'name': name, 'state': state} for name, state in self.stages.items()],
        }
        if self.message:
            d['message'] = self.message
        return d
