# app/esign/utils.py

from pathlib import PurePath
from typing import Any, Dict, List, Optional, Tuple

from app.esign.exceptions import ESignValidationException
from app.esign.schemas import (
    RECURRING_REMINDERS,
    DocumentDeadline,
    GlobalSignRequest,
    SignerRequest,
    StampPosition,
)

# A4 canvas in points
CANVAS_WIDTH = 595.0
CANVAS_HEIGHT = 841.0

STAMP_WIDTH = 80.0
STAMP_HEIGHT = 80.0

DEFAULT_COUNTRY_CODE = "62"
SIGNATURE_TYPES = ["image", "qr_code", "draw"]
AUTO_FIELDS = ["date_signed", "name", "email", "company"]


def signature_element_size(signer_count: int) -> Tuple[float, float]:
    """Signature boxes shrink as more signers share the page"""
    if signer_count <= 1:
        return 180.0, 140.0
    if signer_count == 2:
        return 150.0, 120.0
    if signer_count == 3:
        return 130.0, 100.0
    return 110.0, 85.0


def extract_invoice_number(filename: str) -> str:
    """Invoice number is the file name without its extension"""
    if not filename:
        return ""
    return PurePath(filename).stem


# === Validation ===

def validate_deadline(deadline: Optional[DocumentDeadline]) -> None:
    if deadline is None:
        return

    if deadline.signing_deadline and not 3 <= deadline.signing_deadline <= 31:
        raise ESignValidationException(
            "signing_deadline must be between 3 and 31", field="document_deadline.signing_deadline"
        )
    if deadline.days_reminder_after_received and not 1 <= deadline.days_reminder_after_received <= 31:
        raise ESignValidationException(
            "days_reminder_after_received must be between 1 and 31",
            field="document_deadline.days_reminder_after_received",
        )
    if deadline.recurring_reminder not in RECURRING_REMINDERS:
        raise ESignValidationException(
            "recurring_reminder must be one of: none, daily, three_days, weekly, monthly",
            field="document_deadline.recurring_reminder",
        )


def validate_signers(signers: List[SignerRequest]) -> None:
    if not signers:
        raise ESignValidationException("at least one signer is required", field="signers")

    for index, signer in enumerate(signers):
        if not signer.name:
            raise ESignValidationException(f"signer[{index}]: name is required", field="signers")
        if not signer.email:
            raise ESignValidationException(f"signer[{index}]: email is required", field="signers")
        if signer.sign_page <= 0:
            raise ESignValidationException(
                f"signer[{index}]: sign_page must be greater than 0", field="signers"
            )
        if signer.signature_positions is None:
            raise ESignValidationException(
                f"signer[{index}]: signature_positions is required", field="signers"
            )


def validate_sign_request(request: GlobalSignRequest) -> None:
    validate_signers(request.signers)
    validate_deadline(request.document_deadline)


# === Provider payloads ===

def build_signature_annotation(signer: SignerRequest, signer_count: int) -> Dict[str, Any]:
    position = signer.signature_positions
    width, height = signature_element_size(signer_count)
    return {
        "type_of": "signature",
        "signature_type": list(SIGNATURE_TYPES),
        "page": position.page or signer.sign_page,
        "position_x": position.x,
        "position_y": position.y,
        "element_width": width,
        "element_height": height,
        "canvas_width": CANVAS_WIDTH,
        "canvas_height": CANVAS_HEIGHT,
        "auto_fields": list(AUTO_FIELDS),
    }


def build_signer(signer: SignerRequest, signer_count: int) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": signer.name,
        "email": signer.email,
        "annotations": [],
    }
    if signer.signature_positions is not None:
        payload["annotations"].append(build_signature_annotation(signer, signer_count))
    if signer.phone:
        payload["phone_number"] = {"country_code": DEFAULT_COUNTRY_CODE, "number": signer.phone}
    if signer.requires_otp:
        payload["requires_otp"] = True
    if signer.order:
        payload["order"] = signer.order
    return payload


def build_global_sign_payload(
    request: GlobalSignRequest, filename: str, document_b64: str, callback_url: str
) -> Dict[str, Any]:
    """
    Body for request_global_sign. Stamp positions are not sent here; they are
    kept in the mapping and used once signing completes.
    """
    signer_count = len(request.signers)
    payload: Dict[str, Any] = {
        "doc": document_b64,
        "filename": filename,
        "signers": [build_signer(signer, signer_count) for signer in request.signers],
        "callback_url": callback_url,
        "entry_no": request.entry_no,
    }
    if request.document_deadline is not None:
        deadline = request.document_deadline.to_provider()
        if deadline:
            payload["document_deadline"] = deadline
    return payload


def build_stamp_annotation(position: StampPosition) -> Dict[str, Any]:
    return {
        "type_of": "meterai",
        "page": position.page or 1,
        "position_x": position.x,
        "position_y": position.y,
        "element_width": STAMP_WIDTH,
        "element_height": STAMP_HEIGHT,
        "canvas_width": CANVAS_WIDTH,
        "canvas_height": CANVAS_HEIGHT,
    }


def build_stamp_payload(
    filename: str,
    document_b64: str,
    position: StampPosition,
    callback_url: str,
    deadline: Optional[DocumentDeadline] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "doc": document_b64,
        "filename": filename,
        "annotations": [build_stamp_annotation(position)],
        "callback_url": callback_url,
    }
    if deadline is not None:
        deadline_payload = deadline.to_provider()
        if deadline_payload:
            payload["document_deadline"] = deadline_payload
    return payload
