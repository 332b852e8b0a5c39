"""Pipeline engine stage.

Subscribes to the OpenShift Pipelines operator and approves its install
plan. The operator brings up the pipeline engine itself.
"""

from typing import Any

from config import OperatorConfig
from stages import operator_phases, register_stage
from workshop import PIPELINE, Workshop

PIPELINES_OPERATOR = 'openshift-pipelines-operator-rh'


@register_stage
class PipelineStage:
    """Install the pipelines operator."""

    name = 'pipeline-operator'
    description = 'Subscribe to and approve the OpenShift Pipelines operator'
    feature = PIPELINE

    def get_phases(self, workshop: Workshop, config: OperatorConfig) -> list[tuple[str, Any, str]]:
        """Return phases for the pipelines operator."""
        return operator_phases(
            PIPELINES_OPERATOR,
            config.operators_namespace,
            workshop.spec.pipeline.operator_hub,
            config,
        )
