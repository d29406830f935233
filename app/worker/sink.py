### app/worker/sink.py

"""
Best-effort side effects.

Logging to the relational store and mirroring to the ERP must never fail the
operation that produced them. Callers hand work to a sink and move on; any
failure to dispatch is logged and dropped.
"""

from typing import Any, Dict, Optional

from app.utils.logger import get_logger

logger = get_logger(__name__)

API_LOG = "api_log"
ERP_LOG_ENTRY = "erp_log_entry"

# Sink kinds and the Celery tasks that handle them
TASK_NAMES = {
    API_LOG: "app.api_logs.tasks.record_api_log",
    ERP_LOG_ENTRY: "app.erp.tasks.update_erp_log_entry",
}


class BestEffortSink:
    """Fire-and-forget dispatcher. Subclasses implement _emit."""

    def emit(self, kind: str, payload: Dict[str, Any]) -> None:
        try:
            self._emit(kind, payload)
        except Exception as e:
            logger.warning("Best-effort dispatch failed", kind=kind, error=str(e))

    def _emit(self, kind: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class CelerySink(BestEffortSink):
    """Sends each emitted payload to its Celery task"""

    def __init__(self, celery_app=None):
        if celery_app is None:
            from app.worker.app import app as celery_app
        self.celery_app = celery_app

    def _emit(self, kind: str, payload: Dict[str, Any]) -> None:
        task_name = TASK_NAMES[kind]
        result = self.celery_app.send_task(task_name, args=[payload])
        logger.debug("Task dispatched", kind=kind, task=task_name, task_id=result.id)


class NullSink(BestEffortSink):
    def _emit(self, kind: str, payload: Dict[str, Any]) -> None:
        logger.debug("Dropping best-effort payload", kind=kind)


_sink: Optional[BestEffortSink] = None


def get_sink() -> BestEffortSink:
    """Dependency returning the process-wide sink"""
    global _sink
    if _sink is None:
        _sink = CelerySink()
    return _sink
