# app/erp/tasks.py

"""
Celery tasks mirroring document status to the ERP
"""

from celery import shared_task

from app.erp.client import ERPClient
from app.erp.schemas import ERPLogEntry
from app.utils.logger import get_logger

logger = get_logger(__name__)


@shared_task(bind=True, name="app.erp.tasks.update_erp_log_entry")
def update_erp_log_entry(self, payload: dict):
    """
    PATCH the invoice log entry in the ERP.
    Failures are logged; a missed mirror update is not retried.
    """
    task_id = self.request.id
    try:
        entry = ERPLogEntry.model_validate(payload)
        ERPClient().update_log_entry(entry)
        logger.info("ERP log entry updated", task_id=task_id, entry_no=entry.entry_no)
        return {"status": "success", "task_id": task_id}
    except Exception as e:
        logger.error("Failed to update ERP log entry", task_id=task_id, error=str(e), exc_info=True)
        return {"status": "failed", "task_id": task_id, "error": str(e)}
