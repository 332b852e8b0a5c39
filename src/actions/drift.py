"""Configuration drift correction.

Some operators regenerate their ConfigMaps on upgrade, reverting settings
the workshop depends on. These actions rewrite the affected value in
place, persist only when the text actually changed, and then bounce the
consuming pod so it picks the new configuration up.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from common import DONE, ERROR, ActionResult
from readiness import DEFAULT_POD_LABEL, find_pod
from store import ObjectStore, StoreError

logger = logging.getLogger(__name__)

UNCHANGED = 'unchanged'
CORRECTED = 'corrected'


class RewriteRule(Protocol):
    """A text transform applied to one configuration blob."""

    def apply(self, text: str) -> str:
        ...


@dataclass
class ReplaceLine:
    """Replace the first line containing marker with replacement."""
    marker: str
    replacement: str

    def apply(self, text: str) -> str:
        lines = text.split('\n')
        for i, line in enumerate(lines):
            if self.marker in line:
                lines[i] = self.replacement
                break
        return '\n'.join(lines)


@dataclass
class ReplaceText:
    """Replace every occurrence of old with new."""
    old: str
    new: str

    def apply(self, text: str) -> str:
        return text.replace(self.old, self.new)


@dataclass
class PodRestart:
    """Which pod to delete after a correction: label {label}={workload}."""
    workload: str
    namespace: str
    label: str = DEFAULT_POD_LABEL


def restart_pod(store: ObjectStore, restart: PodRestart) -> bool:
    """Delete one pod of the workload so its controller recreates it.

    Best effort: failures are logged and reported as False.
    """
    try:
        pod_name = find_pod(store, restart.workload, restart.namespace, restart.label)
        if pod_name is None:
            logger.warning(f"No pod with {restart.label}={restart.workload} in {restart.namespace} to restart")
            return False
        store.delete('Pod', restart.namespace, pod_name)
    except StoreError as e:
        logger.warning(f"Failed to restart {restart.workload} pod in {restart.namespace}: {e}")
        return False

    logger.info(f"Restarted {restart.workload} pod {restart.namespace}/{pod_name}")
    return True


def correct(
    store: ObjectStore,
    namespace: str,
    config_map: str,
    key: str,
    rule: RewriteRule,
    restart: Optional[PodRestart] = None,
) -> str:
    """Apply rule to ConfigMap namespace/config_map data[key].

    Writes back only if the rewritten text differs from what is stored,
    then restarts one consumer pod. A failed restart does not undo the
    write.

    Returns:
        UNCHANGED or CORRECTED

    Raises:
        StoreError: If the ConfigMap cannot be read or written
    """
    cm = store.get('ConfigMap', namespace, config_map)
    data = cm.get('data') or {}
    current = data.get(key, '')
    updated = rule.apply(current)

    if updated == current:
        logger.debug(f"ConfigMap {namespace}/{config_map} [{key}] already as required")
        return UNCHANGED

    data[key] = updated
    cm['data'] = data
    store.update(cm)
    logger.info(f"Updated ConfigMap {namespace}/{config_map} [{key}]")

    if restart is not None:
        restart_pod(store, restart)
    return CORRECTED


@dataclass
class CorrectConfigDriftAction:
    """Heal one configuration value; never blocks stage completion."""
    name: str
    namespace: str
    config_map: str
    key: str
    rule: RewriteRule
    restart: Optional[PodRestart] = None

    def run(self, store: ObjectStore, context: dict) -> ActionResult:
        """Apply the correction and report what happened."""
        start = time.time()

        try:
            outcome = correct(store, self.namespace, self.config_map, self.key, self.rule, self.restart)
        except StoreError as e:
            return ActionResult(
                status=ERROR,
                message=f"Drift correction of {self.namespace}/{self.config_map} failed: {e}",
                duration=time.time() - start,
                continue_on_failure=True,
            )

        return ActionResult(
            status=DONE,
            message=f"ConfigMap {self.namespace}/{self.config_map} {outcome}",
            duration=time.time() - start,
            context_updates={f'{self.name}_drift': outcome},
        )
