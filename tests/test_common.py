#!/usr/bin/env python3
"""Tests for common.py - result types.

Tests verify:
1. ActionResult status helpers
2. ReconcileResult is exactly one of Done, RequeueAfter, Error
3. ReconcileResult serialisation
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from common import DONE, ERROR, REQUEUE, ActionResult, ReconcileResult


class TestActionResult:
    """Test ActionResult helpers."""

    def test_defaults_to_done(self):
        result = ActionResult()
        assert result.status == DONE
        assert result.success is True
        assert result.pending is False
        assert result.context_updates == {}

    def test_requeue_is_pending_not_success(self):
        result = ActionResult(status=REQUEUE, requeue_after=5.0)
        assert result.pending is True
        assert result.success is False

    def test_error_is_neither(self):
        result = ActionResult(status=ERROR, message='boom')
        assert result.success is False
        assert result.pending is False


class TestReconcileResult:
    """Test the three-valued reconcile outcome."""

    def test_done(self):
        result = ReconcileResult.done('all good')
        assert result.is_done
        assert not result.is_requeue
        assert not result.is_error
        assert result.kind == 'Done'

    def test_requeue(self):
        result = ReconcileResult.requeue(5.0, 'waiting')
        assert result.is_requeue
        assert not result.is_done
        assert result.requeue_after == 5.0
        assert result.kind == 'RequeueAfter'

    def test_error(self):
        result = ReconcileResult.failed('store unavailable')
        assert result.is_error
        assert not result.is_done
        assert not result.is_requeue
        assert result.error == 'store unavailable'
        assert result.kind == 'Error'

    def test_to_dict_requeue(self):
        d = ReconcileResult.requeue(1.0, 'kiali not ready').to_dict()
        assert d == {'result': 'RequeueAfter', 'requeue_after': 1.0, 'message': 'kiali not ready'}

    def test_to_dict_done_omits_empty_fields(self):
        assert ReconcileResult.done().to_dict() == {'result': 'Done'}
