"""Stage definitions and sequencing.

A stage installs one operator (or one feature's resources) as an ordered
list of named phases. Each phase is an action returning an ActionResult;
StageRunner executes them in order and stops at the first phase that is
not done, so a stage only completes when every phase completed in the
same cycle.
"""

import logging
import time
from typing import Any, Optional, Protocol, runtime_checkable

from actions import ApproveInstallPlanAction, EnsureResourcesAction
from common import DONE, ERROR, REQUEUE, ActionResult
from config import OperatorConfig
import resources
from store import ObjectStore
from workshop import OperatorHubRef, Workshop

logger = logging.getLogger(__name__)

# Stage progress states. A stage blocked in a phase reports the state
# matching the phase name prefix.
DISABLED = 'Disabled'
COMPLETE = 'Complete'
PHASE_STATES = {
    'subscribe': 'SubscribePending',
    'approve': 'PlanPending',
    'resources': 'ResourcesPending',
    'ready': 'ReadinessPending',
    'drift': 'DriftCorrecting',
}


def phase_state(phase_name: str) -> str:
    return PHASE_STATES.get(phase_name.split('-', 1)[0], phase_name)


@runtime_checkable
class Stage(Protocol):
    """Protocol for stage definitions.

    Class attributes:
        name: Stage identifier (e.g., 'jaeger-operator')
        description: Human-readable description
        feature: Feature key the stage belongs to (Workshop status field)
    """
    name: str
    description: str
    feature: str

    def get_phases(self, workshop: Workshop, config: OperatorConfig) -> list[tuple[str, Any, str]]:
        """Return list of (phase_name, action, description) tuples."""
        ...


def operator_phases(
    operator: str,
    namespace: str,
    hub: OperatorHubRef,
    config: OperatorConfig,
    namespaces: tuple[str, ...] = (),
) -> list[tuple[str, Any, str]]:
    """Subscribe + approve phases shared by every operator stage.

    Args:
        operator: Package/subscription name in the catalog
        namespace: Namespace the subscription lives in
        hub: Channel and target version
        config: Operator config (requeue delays)
        namespaces: Namespaces to create before subscribing
    """
    objects = [resources.namespace(ns) for ns in namespaces]
    objects.append(resources.subscription(
        operator, namespace, operator, hub.channel, hub.cluster_service_version,
    ))
    return [
        ('subscribe', EnsureResourcesAction(
            name=f'subscribe-{operator}',
            objects=objects,
        ), f'Subscribe to {operator} {hub.cluster_service_version}'),

        ('approve', ApproveInstallPlanAction(
            name=f'approve-{operator}',
            operator_name=operator,
            target_version=hub.cluster_service_version,
            namespace=namespace,
            requeue_after=config.pending_requeue_after,
        ), f'Approve {operator} install plan'),
    ]


class StageRunner:
    """Runs one stage's phases against the object store."""

    def __init__(
        self,
        stage: Stage,
        workshop: Workshop,
        config: OperatorConfig,
        store: ObjectStore,
        context: Optional[dict] = None,
    ):
        self.stage = stage
        self.workshop = workshop
        self.config = config
        self.store = store
        self.context: dict[str, Any] = context if context is not None else {}
        self.state = phase_state('subscribe')

    def preview(self) -> list[str]:
        """Describe the phases without executing them."""
        lines = [f"{self.stage.name}: {self.stage.description}"]
        for phase_name, action, description in self.stage.get_phases(self.workshop, self.config):
            lines.append(f"  [{phase_name}] {description} ({type(action).__name__})")
        return lines

    def run(self) -> ActionResult:
        """Run phases in order.

        Returns:
            DONE when every phase completed, otherwise the first REQUEUE or
            ERROR result (best-effort phases excepted)
        """
        start = time.time()
        phases = self.stage.get_phases(self.workshop, self.config)

        for phase_name, action, description in phases:
            self.state = phase_state(phase_name)
            logger.debug(f"[{self.stage.name}] Running phase: {phase_name} - {description}")

            try:
                result = action.run(self.store, self.context)
            except Exception as e:
                logger.exception(f"[{self.stage.name}] Phase {phase_name} raised exception")
                return ActionResult(
                    status=ERROR,
                    message=f"{self.stage.name}/{phase_name}: {e}",
                    duration=time.time() - start,
                )

            if result.status == DONE:
                logger.debug(f"[{self.stage.name}] Phase {phase_name}: {result.message}")
                self.context.update(result.context_updates or {})
                continue

            if result.status == REQUEUE:
                logger.info(f"[{self.stage.name}] {self.state}: {result.message}")
                return ActionResult(
                    status=REQUEUE,
                    message=f"{self.stage.name}/{phase_name}: {result.message}",
                    duration=time.time() - start,
                    requeue_after=result.requeue_after,
                )

            if result.continue_on_failure:
                logger.warning(f"[{self.stage.name}] Phase {phase_name} failed (continuing): {result.message}")
                continue

            logger.error(f"[{self.stage.name}] Phase {phase_name} failed: {result.message}")
            return ActionResult(
                status=ERROR,
                message=f"{self.stage.name}/{phase_name}: {result.message}",
                duration=time.time() - start,
            )

        self.state = COMPLETE
        return ActionResult(
            status=DONE,
            message=f"{self.stage.name} complete",
            duration=time.time() - start,
        )


# Registry of stages, in installation order
_stages: dict[str, type[Stage]] = {}


def register_stage(cls: type[Stage]) -> type[Stage]:
    """Decorator to register a stage class."""
    _stages[cls.name] = cls
    return cls


def get_stage(name: str) -> Stage:
    """Get a stage instance by name."""
    if name not in _stages:
        available = list(_stages.keys())
        raise ValueError(f"Unknown stage: {name}. Available: {available}")
    return _stages[name]()


def list_stages() -> list[str]:
    """Stage names in installation order."""
    return list(_stages.keys())


def stages_for(feature: str) -> list[Stage]:
    """Instances of a feature's stages, in installation order."""
    return [cls() for cls in _stages.values() if cls.feature == feature]


# Import stages to trigger registration (order matters)
from stages import pipeline  # noqa: E402, F401
from stages import servicemesh  # noqa: E402, F401
