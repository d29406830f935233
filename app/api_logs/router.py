# app/api_logs/router.py

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api_logs.repository import APILogRepository
from app.api_logs.schemas import APILogResponse
from app.core.db import get_db
from app.schemas.response import success_response
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["API Logs"], prefix="/api/v1/logs")


def get_api_log_repository(db: Session = Depends(get_db)) -> APILogRepository:
    """Get API log repository"""
    return APILogRepository(db)


@router.get("")
def list_logs(
    limit: int = Query(50, ge=1, le=1000),
    repo: APILogRepository = Depends(get_api_log_repository),
):
    """Most recent provider calls"""
    logs = repo.find_all(limit)
    return success_response(
        [APILogResponse.model_validate(log).model_dump(mode="json") for log in logs],
        "Logs retrieved successfully",
    )


@router.get("/search")
def search_logs(
    invoice: str = Query("", description="Invoice number to search for"),
    repo: APILogRepository = Depends(get_api_log_repository),
):
    if not invoice:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "BAD_REQUEST", "message": "Invoice number is required"},
        )

    logs = repo.find_by_invoice(invoice)
    return success_response(
        [APILogResponse.model_validate(log).model_dump(mode="json") for log in logs],
        "Logs retrieved successfully",
    )
