"""Reusable reconciliation actions."""

from actions.install import EnsureResourcesAction, ensure
from actions.install_plan import ApproveInstallPlanAction, approve
from actions.workload import WorkloadReadyAction
from actions.drift import (
    CorrectConfigDriftAction,
    PodRestart,
    ReplaceLine,
    ReplaceText,
    correct,
)

__all__ = [
    'EnsureResourcesAction',
    'ensure',
    'ApproveInstallPlanAction',
    'approve',
    'WorkloadReadyAction',
    'CorrectConfigDriftAction',
    'PodRestart',
    'ReplaceLine',
    'ReplaceText',
    'correct',
]
