# app/erp/client.py

"""
Client for the ERP (Dynamics NAV / Business Central) OData API.

The ERP supplies the folder locations used by the document queue and keeps a
mirror of document status and provider API traffic. When the integration is
disabled every call is a no-op.
"""

from typing import Optional
from urllib.parse import quote

import requests

from app.core.config import settings
from app.erp.schemas import ERPAPILog, ERPLogEntry, NAVSetup
from app.esign.exceptions import UpstreamException
from app.utils.logger import get_logger

logger = get_logger(__name__)


class ERPClient:
    """OData client authenticated with Basic auth"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        company: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[int] = None,
        enabled: Optional[bool] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.nav_base_url).rstrip("/")
        self.company = company if company is not None else settings.nav_company
        self.timeout = timeout or settings.nav_timeout or 30
        self.enabled = settings.nav_enabled if enabled is None else enabled

        self.session = session or requests.Session()
        self.session.auth = (
            username if username is not None else settings.nav_username,
            password if password is not None else settings.nav_password,
        )
        self.session.headers.update(
            {"Content-Type": "application/json", "Accept": "application/json"}
        )

    def _url(self, entity_set: str) -> str:
        return f"{self.base_url}/ODataV4/Company('{quote(self.company)}')/{entity_set}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("ERP request failed", method=method, url=url, error=str(e))
            raise UpstreamException("ERP", None, str(e)) from e

        logger.info("ERP response", method=method, url=url, status_code=response.status_code)
        if not response.ok:
            raise UpstreamException("ERP", response.status_code, response.text)
        return response

    def get_setup(self) -> Optional[NAVSetup]:
        """
        Fetch the folder setup. Returns None when the integration is disabled
        or the ERP has no setup record.
        """
        if not self.enabled:
            logger.debug("ERP integration disabled, skipping setup fetch")
            return None

        response = self._request("GET", self._url("Api_MekariSetup"))
        body = response.json() if response.content else {}
        # OData collections arrive wrapped in "value"
        records = body.get("value", [body]) if isinstance(body, dict) else body
        if not records:
            logger.warning("ERP returned no setup record")
            return None

        setup = NAVSetup.model_validate(records[0])
        logger.info(
            "ERP setup fetched",
            file_location_in=setup.file_location_in,
            file_location_process=setup.file_location_process,
            file_location_out=setup.file_location_out,
        )
        return setup

    def update_log_entry(self, entry: ERPLogEntry) -> None:
        if not self.enabled:
            logger.debug("ERP integration disabled, skipping log entry", entry_no=entry.entry_no)
            return

        url = self._url(f"Api_MekariInvoiceLogEntries({entry.entry_no})")
        logger.info(
            "Sending log entry to ERP",
            document_id=entry.document_id,
            invoice_number=entry.invoice_number,
            signing_status=entry.signing_status,
            stamping_status=entry.stamping_status,
        )
        self._request("PATCH", url, json=entry.to_odata(), headers={"If-Match": "*"})

    def send_api_log(self, api_log: ERPAPILog) -> None:
        if not self.enabled:
            return
        self._request(
            "POST",
            self._url("Api_MekariAPILogs"),
            json=api_log.model_dump(by_alias=True),
        )


def get_erp_client() -> ERPClient:
    """Dependency returning an ERP client built from settings"""
    return ERPClient()
