"""Workshop reconciler.

One call to reconcile() is one cycle: features run in a fixed order, each
feature's stages run in sequence, and the first stage that is not done
decides the cycle's outcome. Everything a cycle does is idempotent, so the
scheduler can re-invoke it at any time (including after a crash midway).

Outcome mapping:
    stage REQUEUE            -> RequeueAfter(delay reported by the phase)
    stage ERROR              -> Error
    status write failure     -> Error
    all enabled features done -> Done
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from common import ERROR, REQUEUE, ReconcileResult
from config import OperatorConfig
from reconciler.state import FeatureProgress, mark_installed
from stages import COMPLETE, DISABLED, StageRunner, stages_for
from store import NotFound, ObjectStore, StoreError
from workshop import PIPELINE, SERVICE_MESH, InstallState, Workshop, WorkshopError, fetch_workshop

logger = logging.getLogger(__name__)

# Installation order of features
FEATURES = (PIPELINE, SERVICE_MESH)


@dataclass
class WorkshopReconciler:
    """Drives a Workshop's add-ons toward their declared state.

    Attributes:
        store: Object store (cluster API or in-memory)
        config: Operator configuration (namespaces, requeue delays)
        progress: Per-feature progress of the last cycle
    """
    store: ObjectStore
    config: OperatorConfig
    progress: dict[str, FeatureProgress] = field(default_factory=dict, init=False)

    def reconcile_once(self, namespace: Optional[str] = None, name: Optional[str] = None) -> ReconcileResult:
        """Fetch the Workshop from the store and reconcile it.

        A Workshop that no longer exists needs nothing further.
        """
        namespace = namespace or self.config.workshop_namespace
        name = name or self.config.workshop_name
        try:
            workshop = fetch_workshop(self.store, namespace, name)
        except NotFound:
            logger.info(f"Workshop {namespace}/{name} not found, nothing to do")
            return ReconcileResult.done(f"Workshop {namespace}/{name} not found")
        except StoreError as e:
            logger.error(f"Cannot read Workshop {namespace}/{name}: {e}")
            return ReconcileResult.failed(f"Cannot read Workshop {namespace}/{name}: {e}")
        except WorkshopError as e:
            logger.error(f"Invalid Workshop {namespace}/{name}: {e}")
            return ReconcileResult.failed(f"Invalid Workshop {namespace}/{name}: {e}")
        return self.reconcile(workshop)

    def reconcile(self, workshop: Workshop) -> ReconcileResult:
        """Run one reconciliation cycle for workshop."""
        start = time.time()
        self.progress = {}

        try:
            workshop.spec.validate()
        except WorkshopError as e:
            logger.error(f"Invalid Workshop {workshop.name}: {e}")
            return ReconcileResult.failed(f"Invalid Workshop {workshop.name}: {e}")

        logger.info(f"Reconciling Workshop {workshop.namespace}/{workshop.name}")
        for feature in FEATURES:
            result = self._reconcile_feature(workshop, feature)
            if result is not None:
                return result

        duration = time.time() - start
        logger.info(f"Workshop {workshop.name} reconciled in {duration:.1f}s")
        return ReconcileResult.done(f"Workshop {workshop.name} reconciled")

    def _reconcile_feature(self, workshop: Workshop, feature: str) -> Optional[ReconcileResult]:
        """Run a feature's stages; None means the feature is settled."""
        progress = FeatureProgress(feature=feature)
        self.progress[feature] = progress

        if not workshop.spec.feature_enabled(feature):
            progress.state = DISABLED
            logger.debug(f"{feature} disabled, skipping")
            return None

        context: dict = {}
        for stage in stages_for(feature):
            runner = StageRunner(stage, workshop, self.config, self.store, context)
            result = runner.run()
            progress.stages[stage.name] = runner.state

            if result.status == REQUEUE:
                progress.state = runner.state
                progress.message = result.message
                return ReconcileResult.requeue(result.requeue_after or self.config.requeue_after, result.message)

            if result.status == ERROR:
                progress.state = runner.state
                progress.message = result.message
                return ReconcileResult.failed(result.message)

        progress.state = COMPLETE
        try:
            mark_installed(self.store, workshop, feature)
        except StoreError as e:
            logger.error(f"Failed to record {feature} as {InstallState.INSTALLED}: {e}")
            progress.message = str(e)
            return ReconcileResult.failed(f"Failed to record {feature} as {InstallState.INSTALLED}: {e}")
        return None

    def preview(self, workshop: Workshop) -> list[str]:
        """Describe what a cycle would run, without touching the store."""
        lines = []
        for feature in FEATURES:
            if not workshop.spec.feature_enabled(feature):
                lines.append(f"{feature}: {DISABLED}")
                continue
            lines.append(f"{feature}: {workshop.state(feature)}")
            for stage in stages_for(feature):
                runner = StageRunner(stage, workshop, self.config, self.store)
                lines.extend(f"  {line}" for line in runner.preview())
        return lines
