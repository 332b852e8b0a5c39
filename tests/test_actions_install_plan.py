"""Tests for actions/install_plan.py - install plan approval."""

from common import DONE, ERROR, REQUEUE
from actions.install_plan import (
    APPROVED,
    PENDING,
    ApproveInstallPlanAction,
    approve,
    find_install_plan,
)
from store import Conflict, StoreError

NS = 'openshift-operators'
CSV = 'kiali-operator.v1.12.13'


class TestFindInstallPlan:
    """Test plan lookup by target version."""

    def test_none_when_no_plans(self, store):
        assert find_install_plan(store, CSV, NS) is None

    def test_ignores_other_versions(self, cluster, store):
        cluster.install_plan(NS, 'kiali-operator.v1.12.7')
        assert find_install_plan(store, CSV, NS) is None

    def test_ignores_other_namespaces(self, cluster, store):
        cluster.install_plan('openshift-operators-redhat', CSV)
        assert find_install_plan(store, CSV, NS) is None

    def test_prefers_approved_plan(self, cluster, store):
        cluster.install_plan(NS, CSV)
        approved = cluster.install_plan(NS, CSV, approved=True)
        assert find_install_plan(store, CSV, NS)['metadata']['name'] == approved


class TestApprove:
    """Test the approval flip."""

    def test_pending_when_no_plan(self, store):
        assert approve(store, CSV, 'kiali-ossm', NS) == PENDING
        assert store.calls == []

    def test_flips_approved(self, cluster, store):
        name = cluster.install_plan(NS, CSV)
        assert approve(store, CSV, 'kiali-ossm', NS) == APPROVED
        assert store.get('InstallPlan', NS, name)['spec']['approved'] is True

    def test_already_approved_not_rewritten(self, cluster, store):
        cluster.install_plan(NS, CSV, approved=True)
        store.calls.clear()
        assert approve(store, CSV, 'kiali-ossm', NS) == APPROVED
        assert store.count('update') == 0


class TestApproveInstallPlanAction:
    """Test the action's result mapping."""

    def _action(self):
        return ApproveInstallPlanAction(
            name='approve-kiali-ossm',
            operator_name='kiali-ossm',
            target_version=CSV,
            namespace=NS,
            requeue_after=5.0,
        )

    def test_missing_plan_is_pending_not_error(self, store):
        result = self._action().run(store, {})
        assert result.status == REQUEUE
        assert result.requeue_after == 5.0

    def test_missing_plan_logged(self, store, caplog):
        with caplog.at_level('INFO', logger='actions.install_plan'):
            self._action().run(store, {})
        assert 'Waiting for Subscription to create InstallPlan for kiali-ossm' in caplog.text

    def test_approved(self, cluster, store):
        cluster.install_plan(NS, CSV)
        result = self._action().run(store, {})
        assert result.status == DONE

    def test_conflict_requeues(self, cluster, store):
        cluster.install_plan(NS, CSV)
        store.fail('update', 'InstallPlan', Conflict('modified', status=409))
        result = self._action().run(store, {})
        assert result.status == REQUEUE

    def test_list_failure_is_error(self, store):
        store.fail('list', 'InstallPlan', StoreError('forbidden', status=403))
        result = self._action().run(store, {})
        assert result.status == ERROR
        assert 'forbidden' in result.message
