"""Workshop reconciliation: feature sequencing and status tracking."""

from reconciler.executor import FEATURES, WorkshopReconciler
from reconciler.state import FeatureProgress, mark_installed

__all__ = [
    'FEATURES',
    'WorkshopReconciler',
    'FeatureProgress',
    'mark_installed',
]
