# app/esign/cache.py

"""
Typed access to everything the service keeps in the key-value cache:
document correlation mappings, status snapshots, the ERP folder setup and
OAuth2 tokens.
"""

from typing import Callable, Optional

from pydantic import ValidationError

from app.core.config import settings
from app.core.redis import KeyValueCache
from app.erp.schemas import NAVSetup
from app.esign.schemas import DocumentInfo, DocumentMapping
from app.utils.logger import get_logger

logger = get_logger(__name__)

DOCUMENT_KEY_PREFIX = "esign:document:"
DOCUMENT_INFO_KEY_PREFIX = "esign:document:info:"
ENTRY_NO_KEY_PREFIX = "esign:entry_no:"
NAV_SETUP_KEY_PREFIX = "esign:nav_setup:"
ACCESS_TOKEN_KEY_PREFIX = "esign:access_token:"
REFRESH_TOKEN_KEY_PREFIX = "esign:refresh_token:"


def access_token_ttl(expires_in: int) -> int:
    """Access tokens expire a minute early so they are never used stale"""
    ttl = expires_in - 60
    return expires_in if ttl < 0 else ttl


def refresh_token_ttl(age_days: Optional[int] = None) -> int:
    days = settings.refresh_token_age_days if age_days is None else age_days
    return days * 24 * 60 * 60


class CorrelationRepository:
    """Repository over a KeyValueCache"""

    def __init__(self, cache: KeyValueCache):
        self.cache = cache

    # === Document mappings ===

    @staticmethod
    def _parse_mapping(raw: str) -> DocumentMapping:
        try:
            return DocumentMapping.model_validate_json(raw)
        except ValidationError:
            # Older entries stored only the requester email
            logger.debug("Mapping is not JSON, reading it as an email", raw=raw)
            return DocumentMapping(email=raw)

    def get_mapping(self, document_id: str) -> Optional[DocumentMapping]:
        raw = self.cache.get(DOCUMENT_KEY_PREFIX + document_id)
        if not raw:
            return None
        return self._parse_mapping(raw)

    def get_mapping_by_entry_no(self, entry_no: int) -> Optional[DocumentMapping]:
        raw = self.cache.get(f"{ENTRY_NO_KEY_PREFIX}{entry_no}")
        if not raw:
            return None
        return self._parse_mapping(raw)

    def save_mapping(self, mapping: DocumentMapping, index_entry_no: bool = True) -> None:
        """
        Store a mapping under its document ID and, unless disabled, under its
        entry number as well. Neither key expires.
        """
        value = mapping.model_dump_json()
        self.cache.set(DOCUMENT_KEY_PREFIX + mapping.document_id, value)
        if index_entry_no and mapping.entry_no:
            self.cache.set(f"{ENTRY_NO_KEY_PREFIX}{mapping.entry_no}", value)
        logger.info(
            "Document mapping cached",
            document_id=mapping.document_id,
            entry_no=mapping.entry_no,
            invoice_number=mapping.invoice_number,
        )

    def delete_mapping(self, document_id: str) -> None:
        self.cache.delete(DOCUMENT_KEY_PREFIX + document_id)

    # === Document status snapshots ===

    def save_document_info(self, info: DocumentInfo) -> None:
        self.cache.set(DOCUMENT_INFO_KEY_PREFIX + info.document_id, info.model_dump_json())

    def get_document_info(self, document_id: str) -> Optional[DocumentInfo]:
        raw = self.cache.get(DOCUMENT_INFO_KEY_PREFIX + document_id)
        if not raw:
            return None
        return DocumentInfo.model_validate_json(raw)

    # === ERP setup ===

    def get_nav_setup(self, entry_no: int) -> Optional[NAVSetup]:
        raw = self.cache.get(f"{NAV_SETUP_KEY_PREFIX}{entry_no}")
        if not raw:
            return None
        try:
            return NAVSetup.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cached ERP setup", entry_no=entry_no)
            return None

    def get_or_fetch_nav_setup(
        self, entry_no: int, fetch: Callable[[], Optional[NAVSetup]]
    ) -> Optional[NAVSetup]:
        """
        Return the cached setup for an entry number, fetching and caching it
        on a miss. Once cached it is never refreshed.
        """
        setup = self.get_nav_setup(entry_no)
        if setup is not None:
            logger.debug("Using cached ERP setup", entry_no=entry_no)
            return setup

        setup = fetch()
        if setup is None:
            return None

        self.cache.set(f"{NAV_SETUP_KEY_PREFIX}{entry_no}", setup.model_dump_json())
        logger.info(
            "ERP setup cached",
            entry_no=entry_no,
            file_location_in=setup.file_location_in,
            file_location_process=setup.file_location_process,
            file_location_out=setup.file_location_out,
        )
        return setup

    # === OAuth2 tokens ===

    def save_tokens(
        self, email: str, access_token: str, refresh_token: str, expires_in: int
    ) -> None:
        self.cache.set(ACCESS_TOKEN_KEY_PREFIX + email, access_token, access_token_ttl(expires_in))
        if refresh_token:
            self.cache.set(REFRESH_TOKEN_KEY_PREFIX + email, refresh_token, refresh_token_ttl())
        logger.debug("Tokens cached", email=email, access_token_ttl=access_token_ttl(expires_in))

    def get_access_token(self, email: str) -> Optional[str]:
        return self.cache.get(ACCESS_TOKEN_KEY_PREFIX + email) or None

    def get_refresh_token(self, email: str) -> Optional[str]:
        return self.cache.get(REFRESH_TOKEN_KEY_PREFIX + email) or None

    def delete_tokens(self, email: str) -> None:
        self.cache.delete(ACCESS_TOKEN_KEY_PREFIX + email, REFRESH_TOKEN_KEY_PREFIX + email)
