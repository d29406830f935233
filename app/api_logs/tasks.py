# app/api_logs/tasks.py

"""
Celery tasks persisting the provider API log
"""

import json
from datetime import datetime, timezone

from celery import shared_task

from app.api_logs.repository import APILogRepository
from app.api_logs.schemas import APILogCreate
from app.core.db import SessionLocal
from app.erp.client import ERPClient
from app.erp.schemas import ERPAPILog
from app.utils.logger import get_logger

logger = get_logger(__name__)


def build_erp_api_log(log_data: APILogCreate) -> ERPAPILog:
    status_description = "SUCCESS" if 200 <= log_data.status_code < 300 else "ERROR"
    body = json.dumps({
        "method": log_data.method,
        "status_code": log_data.status_code,
        "duration_ms": log_data.duration_ms,
        "requester": log_data.email or "",
    }, separators=(",", ":"))
    return ERPAPILog(
        status_description=status_description,
        date_time=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        invoice_no=log_data.invoice_no or log_data.endpoint,
        body=body,
    )


def save_api_log(log_data: APILogCreate) -> int:
    db = SessionLocal()
    try:
        log = APILogRepository(db).save(log_data)
        db.commit()
        return log.id
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@shared_task(bind=True, name="app.api_logs.tasks.record_api_log")
def record_api_log(self, payload: dict):
    """
    Store one provider call in api_logs and mirror a summary to the ERP.
    The two steps fail independently.
    """
    task_id = self.request.id
    log_data = APILogCreate.model_validate(payload)
    result = {"task_id": task_id, "saved": False, "mirrored": False}

    try:
        result["log_id"] = save_api_log(log_data)
        result["saved"] = True
    except Exception as e:
        logger.warning("Failed to save API log", task_id=task_id, endpoint=log_data.endpoint, error=str(e))

    try:
        ERPClient().send_api_log(build_erp_api_log(log_data))
        result["mirrored"] = True
    except Exception as e:
        logger.warning("Failed to send API log to ERP", task_id=task_id, endpoint=log_data.endpoint, error=str(e))

    return result
