"""Tests for nosqldb_operator.controller.status."""

from nosqldb_operator.controller.status import CRStatusHandler
from nosqldb_operator.core.errors import ClusterError, ExecutionError
from nosqldb_operator.core.models import ReconcileRequest
from nosqldb_operator.testing import FAKE_KIND, FakeReconciler, custom_resource


def _loaded(cluster):
    cluster.create(custom_resource(spec={"replicas": 1}))
    reconciler = FakeReconciler()
    reconciler.load(cluster, ReconcileRequest(name="mongo", namespace="db"))
    return reconciler


class TestCRStatusHandler:
    def test_set_condition_stages_on_reconciler(self, cluster):
        reconciler = _loaded(cluster)
        CRStatusHandler(reconciler, cluster).set_condition(True, "In Progress", None, "ReconcileCycleInProgress")
        condition = reconciler.current_status()
        assert condition.type == "In Progress"
        assert condition.message == ""
        assert condition.last_transition_time.tzinfo is not None

    def test_tabs_replaced_in_message(self, cluster):
        reconciler = _loaded(cluster)
        CRStatusHandler(reconciler, cluster).set_condition(False, "Failed", ExecutionError("a\tb"), "x")
        assert reconciler.current_status().message == "a b"

    def test_commit_writes_status(self, cluster):
        reconciler = _loaded(cluster)
        handler = CRStatusHandler(reconciler, cluster)
        handler.set_condition(True, "Successful", None, "ReconcileCycleSucceeded").set_dr_status("done")
        assert handler.commit().is_ok()
        stored = cluster.get(FAKE_KIND.kind, "mongo", "db")["status"]
        assert stored["conditions"][0]["type"] == "Successful"
        assert stored["disasterRecoveryStatus"] == {"status": "done"}
        assert reconciler.instance()["metadata"]["resourceVersion"] == cluster.get(FAKE_KIND.kind, "mongo", "db")[
            "metadata"
        ]["resourceVersion"]

    def test_commit_failure_returned(self, cluster):
        reconciler = _loaded(cluster)
        cluster.errors[("update_status", FAKE_KIND.kind)] = ClusterError("forbidden")
        result = CRStatusHandler(reconciler, cluster).set_dr_status("running").commit()
        assert isinstance(result.error, ClusterError)
