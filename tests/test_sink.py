# tests/test_sink.py

from unittest.mock import MagicMock

from app.worker.sink import API_LOG, ERP_LOG_ENTRY, BestEffortSink, CelerySink, NullSink


class FailingSink(BestEffortSink):
    def _emit(self, kind, payload):
        raise RuntimeError("unreachable")


def test_celery_sink_sends_task_by_kind():
    celery_app = MagicMock()
    sink = CelerySink(celery_app)

    sink.emit(API_LOG, {"endpoint": "/profile"})
    sink.emit(ERP_LOG_ENTRY, {"entry_no": 1})

    celery_app.send_task.assert_any_call("app.api_logs.tasks.record_api_log", args=[{"endpoint": "/profile"}])
    celery_app.send_task.assert_any_call("app.erp.tasks.update_erp_log_entry", args=[{"entry_no": 1}])


def test_emit_swallows_dispatch_failures():
    celery_app = MagicMock()
    celery_app.send_task.side_effect = ConnectionError("broker down")

    CelerySink(celery_app).emit(API_LOG, {})
    FailingSink().emit(API_LOG, {})


def test_unknown_kind_is_dropped():
    celery_app = MagicMock()
    CelerySink(celery_app).emit("unknown", {})
    celery_app.send_task.assert_not_called()


def test_null_sink():
    NullSink().emit(API_LOG, {"endpoint": "/profile"})
