# app/esign/client.py

"""
HTTP client for the signing provider REST API.

Requests are authenticated either with an HMAC signature or with a per-user
OAuth2 bearer token. Every call is recorded in the API log through the
best-effort sink.
"""

import json
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import requests
from pydantic import ValidationError

from app.api_logs.schemas import APILogCreate
from app.api_logs.utils import (
    extract_log_refs,
    serialize_body,
    truncate_base64_values,
    truncate_body,
)
from app.core.config import AUTH_TYPE_HMAC, AUTH_TYPE_OAUTH2, settings
from app.esign.exceptions import (
    ESignValidationException,
    UnauthorizedException,
    UpstreamException,
)
from app.esign.hmac_auth import HMACSigner, http_date
from app.esign.schemas import ProviderDocumentResponse
from app.utils.logger import get_logger
from app.worker.sink import API_LOG, BestEffortSink

logger = get_logger(__name__)

PROVIDER = "Signing provider"


class SigningClient:
    """Thin wrapper over the provider endpoints used by the bridge"""

    def __init__(
        self,
        sink: BestEffortSink,
        token_service=None,
        auth_type: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
        hmac_signer: Optional[HMACSigner] = None,
    ):
        self.sink = sink
        self.token_service = token_service
        self.auth_type = (auth_type or settings.mekari_auth_type or AUTH_TYPE_OAUTH2).lower()
        self.base_url = (base_url or settings.mekari_base_url).rstrip("/")
        self.timeout = timeout or settings.mekari_timeout
        self.session = session or requests.Session()

        if self.is_hmac:
            self.hmac_signer = hmac_signer or HMACSigner(
                settings.mekari_hmac_client_id, settings.mekari_hmac_client_secret
            )
        else:
            self.hmac_signer = None

    @property
    def is_hmac(self) -> bool:
        return self.auth_type == AUTH_TYPE_HMAC

    @property
    def is_oauth2(self) -> bool:
        return not self.is_hmac

    def _url(self, path: str) -> str:
        """Absolute URLs are only followed when they point at the provider base URL"""
        parts = urlsplit(path)
        if parts.scheme or parts.netloc:
            base = urlsplit(self.base_url)
            if (parts.scheme.lower(), parts.netloc.lower()) != (base.scheme.lower(), base.netloc.lower()):
                logger.warning("Refusing URL outside the provider", url=path, base_url=self.base_url)
                raise ESignValidationException(
                    "document URL must point at the signing provider", field="doc_url"
                )
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _auth_headers(self, method: str, url: str, email: str) -> Dict[str, str]:
        if self.is_hmac:
            return self.hmac_signer.headers(method, url)

        if self.token_service is None:
            raise UnauthorizedException(email)
        access_token = self.token_service.get_access_token(email)
        return {"Authorization": f"Bearer {access_token}", "Date": http_date()}

    def _record(
        self,
        method: str,
        url: str,
        email: str,
        body: Any,
        response_text: str,
        status_code: int,
        duration_ms: int,
    ) -> None:
        invoice_no, entry_no = extract_log_refs(body)
        request_text = truncate_body(truncate_base64_values(serialize_body(body)))
        log_data = APILogCreate(
            endpoint=url,
            method=method,
            invoice_no=invoice_no,
            entry_no=entry_no,
            request_body=request_text,
            response_body=truncate_body(response_text),
            status_code=status_code,
            duration_ms=duration_ms,
            email=email or None,
        )
        self.sink.emit(API_LOG, log_data.model_dump())

    def _request(
        self,
        method: str,
        path: str,
        email: str = "",
        body: Optional[Dict[str, Any]] = None,
        binary: bool = False,
        retried: bool = False,
    ) -> requests.Response:
        url = self._url(path)
        headers = {"Accept": "application/json"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        headers.update(self._auth_headers(method, url, email))

        logger.info(
            "Provider request",
            method=method,
            url=url,
            auth_type=self.auth_type,
            body=truncate_body(truncate_base64_values(serialize_body(body)), 500) if body else None,
        )

        started = time.monotonic()
        try:
            response = self.session.request(
                method, url, json=body, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("Provider request failed", method=method, url=url, error=str(e))
            raise UpstreamException(PROVIDER, None, str(e)) from e
        duration_ms = int((time.monotonic() - started) * 1000)

        response_text = (
            f"<{len(response.content)} bytes>" if binary and response.ok else response.text
        )
        logger.info(
            "Provider response",
            status_code=response.status_code,
            duration_ms=duration_ms,
            body=truncate_body(response_text, 500),
        )
        self._record(method, url, email, body, response_text, response.status_code, duration_ms)

        if response.status_code == 401 and self.is_oauth2 and not retried:
            logger.info("Received 401 Unauthorized, attempting to refresh token", email=email)
            try:
                self.token_service.refresh(email)
            except Exception as e:
                logger.error("Failed to refresh token", email=email, error=str(e))
                raise UnauthorizedException(email) from e
            logger.info("Token refreshed, retrying request", email=email)
            return self._request(method, path, email, body, binary, retried=True)

        if not response.ok:
            raise UpstreamException(PROVIDER, response.status_code, response.text)
        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise UpstreamException(PROVIDER, response.status_code, response.text) from e

    def _document(self, response: requests.Response) -> ProviderDocumentResponse:
        try:
            return ProviderDocumentResponse.model_validate(self._json(response))
        except ValidationError as e:
            raise UpstreamException(PROVIDER, response.status_code, response.text) from e

    # === Operations ===

    def get_profile(self, email: str) -> Dict[str, Any]:
        response = self._request("GET", "/profile", email)
        return self._json(response).get("data") or {}

    def get_documents(self, email: str, page: int = 1, per_page: int = 10) -> Dict[str, Any]:
        response = self._request("GET", f"/documents?page={page}&limit={per_page}", email)
        return self._json(response)

    def request_global_sign(self, email: str, payload: Dict[str, Any]) -> ProviderDocumentResponse:
        response = self._request("POST", "/documents/request_global_sign", email, body=payload)
        return self._document(response)

    def request_stamp(self, email: str, payload: Dict[str, Any]) -> ProviderDocumentResponse:
        response = self._request("POST", "/documents/stamp", email, body=payload)
        return self._document(response)

    def download(self, email: str, doc_url: str) -> bytes:
        """Download a document; relative URLs are resolved against the API base"""
        if not doc_url:
            raise UpstreamException(PROVIDER, None, "document URL is empty")
        response = self._request("GET", doc_url, email, binary=True)
        logger.info(
            "Document downloaded",
            doc_url=doc_url,
            size=len(response.content),
        )
        return response.content

    def download_document(self, email: str, document_id: str) -> bytes:
        return self.download(email, f"/documents/{document_id}/download")
