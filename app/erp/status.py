# app/erp/status.py

"""Provider status values translated to the labels the ERP expects."""

UNSIGNED_DATE = "0001-01-01T00:00:00Z"

_SIGNING_STATUS = {
    "pending": "Pending",
    "waiting": "Pending",
    "in_progress": "In Progress",
    "on_progress": "In Progress",
    "completed": "Completed",
    "signed": "Completed",
    "declined": "Declined",
    "voided": "Voided",
    "expired": "Expired",
}

_STAMPING_STATUS = {
    "none": "None",
    "pending": "Pending",
    "in_progress": "In Progress",
    "success": "Completed",
    "completed": "Completed",
    "failed": "Failed",
}


def map_signing_status(status: str) -> str:
    if not status:
        return ""
    return _SIGNING_STATUS.get(status.lower(), status)


def map_stamping_status(status: str) -> str:
    if not status:
        return ""
    return _STAMPING_STATUS.get(status.lower(), status)
