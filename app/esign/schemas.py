# app/esign/schemas.py

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# === Enums ===

class SigningStatus(str, PyEnum):
    """Provider signing status."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class StampingStatus(str, PyEnum):
    """Provider stamping status."""
    NONE = "none"
    PENDING = "pending"
    SUCCESS = "success"


RECURRING_REMINDERS = {"", "none", "daily", "three_days", "weekly", "monthly"}


# === Client request schemas ===

class SignaturePosition(BaseModel):
    """Position of a signature on a page, in canvas points."""
    x: float = 0
    y: float = 0
    width: Optional[float] = None
    height: Optional[float] = None
    page: int = 0


class StampPosition(SignaturePosition):
    """Position of the e-meterai stamp, kept until the stamping phase."""


class DocumentDeadline(BaseModel):
    """Optional deadline settings passed through to the provider."""
    signing_deadline: int = 0
    recurring_reminder: str = ""
    days_reminder_after_received: int = 0

    def to_provider(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.signing_deadline:
            payload["signing_deadline"] = self.signing_deadline
        if self.recurring_reminder:
            payload["recurring_reminder"] = self.recurring_reminder
        if self.days_reminder_after_received:
            payload["days_reminder_after_received"] = self.days_reminder_after_received
        return payload


class SignerRequest(BaseModel):
    """A signer as sent by the client."""
    name: str = ""
    email: str = ""
    phone: str = ""
    order: int = 0
    sign_page: int = 0
    signature_positions: Optional[SignaturePosition] = None
    requires_otp: bool = False


class GlobalSignRequest(BaseModel):
    """Request to upload a queued document for signing and/or stamping."""
    entry_no: int = 0
    email: str = ""
    invoice_number: str = ""
    signing: bool = False
    stamping: bool = False
    signers: List[SignerRequest] = Field(default_factory=list)
    stamp_positions: Optional[StampPosition] = None
    document_deadline: Optional[DocumentDeadline] = None


# === Provider response schemas ===

class ProviderDocumentAttributes(BaseModel):
    model_config = ConfigDict(extra="allow")

    doc_id: str = ""
    doc_url: str = ""
    filename: str = ""
    status: str = ""
    stamping_status: str = ""


class ProviderDocumentData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    type: str = ""
    attributes: ProviderDocumentAttributes = Field(default_factory=ProviderDocumentAttributes)


class ProviderDocumentResponse(BaseModel):
    """Envelope returned by request_global_sign and stamp."""
    model_config = ConfigDict(extra="allow")

    data: ProviderDocumentData
    message: str = ""


class GlobalSignResult(BaseModel):
    success: bool
    need_auth: bool = False
    redirect_url: Optional[str] = None
    data: Optional[ProviderDocumentData] = None
    message: str = ""


# === Webhook schemas ===

class WebhookSigner(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    email: str = ""
    order: int = 0
    status: str = ""
    signed_at: Optional[str] = None


class WebhookAttributes(BaseModel):
    model_config = ConfigDict(extra="allow")

    filename: str = ""
    category: str = ""
    doc_url: str = ""
    signing_status: str = ""
    stamping_status: str = ""
    signers: List[WebhookSigner] = Field(default_factory=list)


class WebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    type: str = ""
    attributes: WebhookAttributes = Field(default_factory=WebhookAttributes)


class WebhookPayload(BaseModel):
    """Callback body the provider posts whenever a document changes status."""
    model_config = ConfigDict(extra="allow")

    data: WebhookData = Field(default_factory=WebhookData)


# === Cached records ===

class DocumentMapping(BaseModel):
    """
    Correlation record cached per provider document ID (and per entry number)
    so asynchronous callbacks can be tied back to the queued file.
    """
    document_id: str = ""
    email: str = ""
    invoice_number: str = ""
    filename: str = ""
    stamp_positions: Optional[StampPosition] = None
    document_deadline: Optional[DocumentDeadline] = None
    entry_no: int = 0
    signing: bool = False
    stamping: bool = False

    @property
    def needs_stamp(self) -> bool:
        return self.stamping and self.stamp_positions is not None


class DocumentInfo(BaseModel):
    """Latest status snapshot for a document, overwritten on each callback."""
    document_id: str
    email: str = ""
    invoice_number: str = ""
    filename: str = ""
    signing_status: str = ""
    stamping_status: str = ""
    doc_url: str = ""
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
