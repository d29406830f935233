# app/api_logs/repository.py

"""
Data Access Layer for the API log table
"""

from typing import List

from sqlalchemy import desc, or_, select
from sqlalchemy.orm import Session

from app.api_logs.models import APILog
from app.api_logs.schemas import APILogCreate
from app.utils.logger import get_logger

logger = get_logger(__name__)


class APILogRepository:
    """
    Append-only access to api_logs.
    Rows are only ever inserted and read.
    """

    def __init__(self, db: Session):
        self.db = db

    def save(self, log_data: APILogCreate) -> APILog:
        log = APILog(**log_data.model_dump())
        self.db.add(log)
        self.db.flush()
        logger.debug("API log saved", log_id=log.id, endpoint=log.endpoint)
        return log

    def find_all(self, limit: int = 50) -> List[APILog]:
        stmt = select(APILog).order_by(desc(APILog.created_at), desc(APILog.id)).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def find_by_invoice(self, invoice_number: str) -> List[APILog]:
        """Logs whose invoice, endpoint or request body mention the invoice number"""
        pattern = f"%{invoice_number}%"
        stmt = (
            select(APILog)
            .where(
                or_(
                    APILog.invoice_no.like(pattern),
                    APILog.endpoint.like(pattern),
                    APILog.request_body.like(pattern),
                )
            )
            .order_by(desc(APILog.created_at), desc(APILog.id))
        )
        logs = list(self.db.execute(stmt).scalars().all())
        logger.info("API logs searched", invoice_number=invoice_number, count=len(logs))
        return logs
