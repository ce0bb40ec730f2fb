"""Tests for the reconcile cancellation context."""

import threading

import pytest

from nodebalancer_reconciler.context import ReconcileContext
from nodebalancer_reconciler.exceptions import ReconcileCancelled


class TestReconcileContext:
    def test_fresh_context_is_live(self):
        ctx = ReconcileContext()
        ctx.check()
        assert not ctx.done
        assert ctx.remaining() is None
        assert ctx.timeout_for(30) == 30

    def test_cancel(self):
        ctx = ReconcileContext()
        ctx.cancel()
        assert ctx.cancelled
        with pytest.raises(ReconcileCancelled, match="cancelled"):
            ctx.check()

    def test_cancel_from_another_thread(self):
        ctx = ReconcileContext()
        worker = threading.Thread(target=ctx.cancel)
        worker.start()
        worker.join()
        assert ctx.done

    def test_deadline(self):
        ctx = ReconcileContext(timeout=0)
        assert ctx.expired
        assert ctx.remaining() == 0.0
        with pytest.raises(ReconcileCancelled, match="deadline"):
            ctx.check()

    def test_timeout_capped_by_deadline(self):
        ctx = ReconcileContext(timeout=5)
        assert 0 < ctx.timeout_for(30) <= 5
        assert ctx.timeout_for(1) == 1
