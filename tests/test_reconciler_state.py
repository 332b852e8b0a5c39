"""Tests for reconciler.state module."""

import pytest

from reconciler.state import FeatureProgress, mark_installed
from store import StoreError
from workshop import PIPELINE, SERVICE_MESH, Workshop, fetch_workshop


@pytest.fixture
def stored_workshop(store, workshop_obj):
    store.create(workshop_obj)
    return fetch_workshop(store, 'workshop-infra', 'workshop')


class TestMarkInstalled:
    """Tests for compare-and-write of feature status."""

    def test_writes_once(self, store, stored_workshop):
        assert mark_installed(store, stored_workshop, PIPELINE) is True
        assert store.get('Workshop', 'workshop-infra', 'workshop')['status'] == {'pipeline': 'Installed'}

    def test_already_installed_skips_write(self, store, stored_workshop):
        mark_installed(store, stored_workshop, PIPELINE)
        store.calls.clear()
        assert mark_installed(store, stored_workshop, PIPELINE) is False
        assert store.calls == []

    def test_consecutive_features_use_fresh_version(self, store, stored_workshop):
        mark_installed(store, stored_workshop, PIPELINE)
        mark_installed(store, stored_workshop, SERVICE_MESH)
        assert store.get('Workshop', 'workshop-infra', 'workshop')['status'] == {
            'pipeline': 'Installed',
            'serviceMesh': 'Installed',
        }

    def test_failure_raises_and_restores(self, store, stored_workshop):
        store.fail('update_status', 'Workshop', StoreError('forbidden', status=403))
        with pytest.raises(StoreError):
            mark_installed(store, stored_workshop, PIPELINE)
        assert PIPELINE not in stored_workshop.status

    def test_state_derivation(self, store, stored_workshop):
        assert stored_workshop.state(PIPELINE) == 'Installing'
        mark_installed(store, stored_workshop, PIPELINE)
        assert stored_workshop.state(PIPELINE) == 'Installed'

    def test_unstored_workshop_fails(self, store, workshop_obj):
        with pytest.raises(StoreError):
            mark_installed(store, Workshop(workshop_obj), PIPELINE)


class TestFeatureProgress:
    """Tests for FeatureProgress dataclass."""

    def test_defaults(self):
        progress = FeatureProgress(feature='pipeline')
        assert progress.state == ''
        assert progress.stages == {}
        assert progress.message is None

    def test_to_dict(self):
        progress = FeatureProgress(
            feature='serviceMesh',
            state='PlanPending',
            stages={'elasticsearch-operator': 'Complete', 'jaeger-operator': 'PlanPending'},
            message='waiting',
        )
        assert progress.to_dict() == {
            'feature': 'serviceMesh',
            'state': 'PlanPending',
            'stages': [
                {'name': 'elasticsearch-operator', 'state': 'Complete'},
                {'name': 'jaeger-operator', 'state': 'PlanPending'},
            ],
            'message': 'waiting',
        }
