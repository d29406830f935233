# app/esign/services.py

"""
Business logic for the document lifecycle.

SignRequestService uploads a queued document for signing (or, for documents
already signed, requests the stamp). WebhookService applies provider
callbacks to the local folders and the correlation cache.
"""

import base64
from pathlib import PurePath
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.core.redis import KeyValueCache, get_redis_db
from app.documents.folders import DocumentFolderManager, get_folder_manager
from app.erp.client import ERPClient, get_erp_client
from app.erp.schemas import ERPLogEntry, NAVSetup
from app.erp.status import UNSIGNED_DATE, map_signing_status, map_stamping_status
from app.esign.cache import CorrelationRepository
from app.esign.client import SigningClient
from app.esign.exceptions import (
    ESignBaseException,
    ESignValidationException,
    MappingNotFoundException,
)
from app.esign.lifecycle import LifecycleState, derive_state
from app.esign.schemas import (
    DocumentInfo,
    DocumentMapping,
    GlobalSignRequest,
    GlobalSignResult,
    WebhookPayload,
)
from app.esign.utils import (
    build_global_sign_payload,
    build_stamp_payload,
    extract_invoice_number,
    validate_sign_request,
)
from app.oauth.repository import OAuthRepository
from app.oauth.services import OAuthService, TokenService, build_auth_url
from app.utils.logger import get_logger
from app.worker.sink import ERP_LOG_ENTRY, BestEffortSink, get_sink

logger = get_logger(__name__)


class FolderRoots:
    """Folder overrides resolved from the ERP setup; None means configured path"""

    def __init__(self, setup: Optional[NAVSetup] = None):
        self.ready = (setup.file_location_in or None) if setup else None
        self.progress = (setup.file_location_process or None) if setup else None
        self.finish = (setup.file_location_out or None) if setup else None


class LifecycleService:
    """Collaborators and helpers shared by the sign-request and webhook flows"""

    def __init__(
        self,
        client: SigningClient,
        folders: DocumentFolderManager,
        repo: CorrelationRepository,
        erp: ERPClient,
    ):
        self.client = client
        self.folders = folders
        self.repo = repo
        self.erp = erp

    def get_nav_setup(self, entry_no: int) -> Optional[NAVSetup]:
        """Cached ERP setup for an entry number; failures fall back to configured paths"""
        try:
            return self.repo.get_or_fetch_nav_setup(entry_no, self.erp.get_setup)
        except Exception as e:
            logger.warning("Failed to get ERP setup, using config values", entry_no=entry_no, error=str(e))
            return None

    def request_stamping(self, email: str, content: bytes, mapping: DocumentMapping) -> str:
        """
        Send a signed document for e-meterai stamping and cache the mapping
        under the stamp document ID.

        Returns:
            The provider ID of the stamp-phase document
        """
        if mapping.stamp_positions is None:
            raise ESignValidationException("stamp_positions are required for stamping", field="stamp_positions")

        payload = build_stamp_payload(
            filename=mapping.filename,
            document_b64=base64.b64encode(content).decode("ascii"),
            position=mapping.stamp_positions,
            callback_url=settings.webhook_callback_url,
            deadline=mapping.document_deadline,
        )
        logger.info(
            "Sending stamp request",
            document_id=mapping.document_id,
            filename=mapping.filename,
            invoice_number=mapping.invoice_number,
        )
        response = self.client.request_stamp(email, payload)
        stamp_document_id = response.data.id

        stamp_mapping = mapping.model_copy(update={"document_id": stamp_document_id})
        # The entry number keeps pointing at the signing-phase document
        self.repo.save_mapping(stamp_mapping, index_entry_no=False)

        logger.info(
            "Stamp request successful",
            document_id=mapping.document_id,
            stamp_document_id=stamp_document_id,
        )
        return stamp_document_id


class SignRequestService(LifecycleService):
    """Starts the lifecycle for a document waiting in the ready folder"""

    def __init__(
        self,
        client: SigningClient,
        folders: DocumentFolderManager,
        repo: CorrelationRepository,
        erp: ERPClient,
        oauth: Optional[OAuthService] = None,
    ):
        super().__init__(client, folders, repo, erp)
        self.oauth = oauth

    def request_sign(self, request: GlobalSignRequest) -> GlobalSignResult:
        logger.info(
            "Global sign request received",
            entry_no=request.entry_no,
            invoice_number=request.invoice_number,
            signing=request.signing,
            stamping=request.stamping,
            signers=len(request.signers),
        )
        setup = self.get_nav_setup(request.entry_no)
        roots = FolderRoots(setup)

        if self.client.is_oauth2:
            if not request.email:
                raise ESignValidationException("email is required for OAuth2 authentication", field="email")
            if self.oauth is not None and not self.oauth.has_code(request.email):
                logger.info("No OAuth code stored, authorization required", email=request.email)
                return GlobalSignResult(
                    success=False,
                    need_auth=True,
                    redirect_url=build_auth_url(request.email),
                    message="Authorization required. Please authorize via the redirect URL.",
                )

        if not request.signing and request.stamping:
            return self.stamping_process(request)

        validate_sign_request(request)

        filename, content = self.folders.load_from_ready(request.invoice_number, roots.ready)
        payload = build_global_sign_payload(
            request,
            filename=filename,
            document_b64=base64.b64encode(content).decode("ascii"),
            callback_url=settings.webhook_callback_url,
        )
        response = self.client.request_global_sign(request.email, payload)
        document_id = response.data.id

        try:
            self.folders.move_to_progress(filename, roots.ready, roots.progress)
        except ESignBaseException as e:
            logger.warning("Failed to move document to progress", filename=filename, error=e.message)

        mapping = DocumentMapping(
            document_id=document_id,
            email=request.email,
            invoice_number=request.invoice_number,
            filename=filename,
            stamp_positions=request.stamp_positions,
            document_deadline=request.document_deadline,
            entry_no=request.entry_no,
            signing=request.signing,
            stamping=request.stamping,
        )
        self.repo.save_mapping(mapping)

        logger.info(
            "Document sent for signing",
            document_id=document_id,
            invoice_number=request.invoice_number,
            filename=filename,
        )
        return GlobalSignResult(
            success=True,
            data=response.data,
            message="Document sent for signing successfully",
        )

    def stamping_process(self, request: GlobalSignRequest) -> GlobalSignResult:
        """Stamp a document that was signed earlier under the same entry number"""
        mapping = self.repo.get_mapping_by_entry_no(request.entry_no)
        if mapping is None:
            raise MappingNotFoundException(
                entry_no=request.entry_no,
                message=f"document mapping not found for entry no {request.entry_no}, please sign first",
            )

        stamp_mapping = mapping.model_copy(update={
            "stamping": True,
            "stamp_positions": request.stamp_positions or mapping.stamp_positions,
            "document_deadline": request.document_deadline or mapping.document_deadline,
        })
        email = request.email or mapping.email
        content = self.client.download_document(email, mapping.document_id)
        stamp_document_id = self.request_stamping(email, content, stamp_mapping)

        return GlobalSignResult(
            success=True,
            data={"id": stamp_document_id, "type": "document", "attributes": {"filename": mapping.filename}},
            message="Stamping requested successfully",
        )

    def get_profile(self, email: str) -> Dict[str, Any]:
        return self.client.get_profile(email)

    def get_documents(self, email: str, page: int = 1, per_page: int = 10) -> Dict[str, Any]:
        return self.client.get_documents(email, page, per_page)


class WebhookService(LifecycleService):
    """Applies provider status callbacks to the local document queue"""

    def __init__(
        self,
        client: SigningClient,
        folders: DocumentFolderManager,
        repo: CorrelationRepository,
        erp: ERPClient,
        sink: BestEffortSink,
    ):
        super().__init__(client, folders, repo, erp)
        self.sink = sink

    def process(self, payload: WebhookPayload) -> Dict[str, Any]:
        data = payload.data
        attributes = data.attributes
        document_id = data.id
        if not document_id:
            raise ESignValidationException("Document ID is required", field="data.id")

        logger.info(
            "Processing webhook callback",
            document_id=document_id,
            signing_status=attributes.signing_status,
            stamping_status=attributes.stamping_status,
            filename=attributes.filename,
        )

        mapping = self.repo.get_mapping(document_id)
        if mapping is None:
            logger.error("Document mapping not found", document_id=document_id)
            raise MappingNotFoundException(document_id=document_id)

        invoice_number = mapping.invoice_number or extract_invoice_number(attributes.filename)
        self.repo.save_document_info(DocumentInfo(
            document_id=document_id,
            email=mapping.email,
            invoice_number=invoice_number,
            filename=attributes.filename,
            signing_status=attributes.signing_status,
            stamping_status=attributes.stamping_status,
            doc_url=attributes.doc_url,
        ))

        setup = self.get_nav_setup(mapping.entry_no)
        self.sink.emit(
            ERP_LOG_ENTRY,
            self.build_erp_log_entry(payload, mapping, invoice_number, setup).model_dump(),
        )

        roots = FolderRoots(setup)
        state = derive_state(attributes.signing_status, attributes.stamping_status, mapping)
        stamp_document_id = None

        if state is LifecycleState.AWAITING_SIGNATURE:
            logger.info("Document still awaiting signatures", document_id=document_id)

        elif state is LifecycleState.STAMPED:
            self._finish(document_id, mapping, payload, roots)

        else:
            logger.info("Signing completed, downloading signed document", document_id=document_id)
            signed_content = self.client.download(mapping.email, attributes.doc_url)
            self._replace_in_progress(document_id, invoice_number, signed_content, roots)

            if state is LifecycleState.STAMP_REQUESTED:
                try:
                    stamp_document_id = self.request_stamping(mapping.email, signed_content, mapping)
                except Exception as e:
                    # Stamping can be requested again through the stamping-only flow
                    logger.error("Failed to request stamping", document_id=document_id, error=str(e))

        summary = {
            "document_id": document_id,
            "signing_status": attributes.signing_status,
            "stamping_status": attributes.stamping_status,
            "state": state.value,
            "processed": True,
        }
        if stamp_document_id:
            summary["stamp_document_id"] = stamp_document_id
        return summary

    def _replace_in_progress(
        self, document_id: str, invoice_number: str, content: bytes, roots: FolderRoots
    ) -> None:
        try:
            path = self.folders.find(invoice_number, "progress", roots.progress)
            self.folders.replace_in_progress(path.name, content, roots.progress)
        except ESignBaseException as e:
            logger.error(
                "Failed to replace document in progress",
                document_id=document_id,
                invoice_number=invoice_number,
                error=e.message,
            )

    def _finish(
        self,
        document_id: str,
        mapping: DocumentMapping,
        payload: WebhookPayload,
        roots: FolderRoots,
    ) -> None:
        # Callback bodies are unauthenticated; never let them pick a directory
        filename = PurePath(mapping.filename or payload.data.attributes.filename).name
        if not filename:
            raise ESignValidationException("filename is required", field="data.attributes.filename")
        logger.info("Stamping completed, downloading final document", document_id=document_id)
        final_content = self.client.download(mapping.email, payload.data.attributes.doc_url)
        self.folders.save_to_finish_and_delete_from_progress(
            filename, final_content, roots.finish, roots.progress
        )
        logger.info(
            "Stamped document saved to finish folder",
            document_id=document_id,
            filename=filename,
            size_bytes=len(final_content),
        )

    def build_erp_log_entry(
        self,
        payload: WebhookPayload,
        mapping: DocumentMapping,
        invoice_number: str,
        setup: Optional[NAVSetup] = None,
    ) -> ERPLogEntry:
        attributes = payload.data.attributes
        location_in, location_process, location_out = self._log_locations(setup)

        entry = ERPLogEntry(
            entry_no=mapping.entry_no,
            document_id=payload.data.id,
            invoice_number=invoice_number,
            filename=attributes.filename,
            file_path_in=location_in,
            file_path_process=location_process,
            file_path_out=location_out,
            signing_status=map_signing_status(attributes.signing_status),
            stamping_status=map_stamping_status(attributes.stamping_status),
        )

        if entry.stamping_status != "Completed":
            for index, signer in enumerate(attributes.signers[:3], start=1):
                setattr(entry, f"signer{index}_signing_status", map_signing_status(signer.status))
                setattr(entry, f"signer{index}_signing_date", signer.signed_at or UNSIGNED_DATE)
        return entry

    def _log_locations(self, setup: Optional[NAVSetup]) -> Tuple[str, str, str]:
        if setup is not None:
            return setup.file_location_in, setup.file_location_process, setup.file_location_out
        base = settings.document_base_path.rstrip("/")
        return (
            f"{base}/{settings.document_ready_folder}",
            f"{base}/{settings.document_progress_folder}",
            f"{base}/{settings.document_finish_folder}",
        )


# === Dependencies ===

def get_signing_client(
    db: Session = Depends(get_db),
    cache: KeyValueCache = Depends(get_redis_db),
    sink: BestEffortSink = Depends(get_sink),
) -> SigningClient:
    token_service = TokenService(OAuthRepository(db), CorrelationRepository(cache))
    return SigningClient(sink=sink, token_service=token_service)


def get_sign_request_service(
    db: Session = Depends(get_db),
    cache: KeyValueCache = Depends(get_redis_db),
    client: SigningClient = Depends(get_signing_client),
    folders: DocumentFolderManager = Depends(get_folder_manager),
    erp: ERPClient = Depends(get_erp_client),
) -> SignRequestService:
    return SignRequestService(
        client=client,
        folders=folders,
        repo=CorrelationRepository(cache),
        erp=erp,
        oauth=OAuthService(OAuthRepository(db)),
    )


def get_webhook_service(
    cache: KeyValueCache = Depends(get_redis_db),
    client: SigningClient = Depends(get_signing_client),
    folders: DocumentFolderManager = Depends(get_folder_manager),
    erp: ERPClient = Depends(get_erp_client),
    sink: BestEffortSink = Depends(get_sink),
) -> WebhookService:
    return WebhookService(
        client=client,
        folders=folders,
        repo=CorrelationRepository(cache),
        erp=erp,
        sink=sink,
    )
