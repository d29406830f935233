# app/esign/hmac_auth.py

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Optional, Tuple
from urllib.parse import urlsplit

from app.utils.logger import get_logger

logger = get_logger(__name__)


def http_date(moment: Optional[datetime] = None) -> str:
    """RFC 1123 date as used in the HTTP Date header"""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return format_datetime(moment, usegmt=True)


class HMACSigner:
    """
    Signs provider requests with HMAC-SHA256.

    The signed payload is ``date: <RFC1123 date>\\n<METHOD> <path?query> HTTP/1.1``
    and the signature travels in the Authorization header together with the
    client id.
    """

    def __init__(self, client_id: str, client_secret: str):
        self.client_id = client_id
        self.client_secret = client_secret

    @staticmethod
    def request_line(method: str, url: str) -> str:
        parts = urlsplit(url)
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        return f"{method.upper()} {path} HTTP/1.1"

    def signature(self, method: str, url: str, date_header: str) -> str:
        payload = f"date: {date_header}\n{self.request_line(method, url)}"
        digest = hmac.new(
            self.client_secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def sign(
        self, method: str, url: str, moment: Optional[datetime] = None
    ) -> Tuple[str, str]:
        """
        Returns:
            (authorization header value, date header value)
        """
        date_header = http_date(moment)
        signature = self.signature(method, url, date_header)
        authorization = (
            f'hmac username="{self.client_id}", algorithm="hmac-sha256", '
            f'headers="date request-line", signature="{signature}"'
        )
        logger.debug(
            "HMAC signature generated",
            method=method,
            request_line=self.request_line(method, url),
            date=date_header,
        )
        return authorization, date_header

    def headers(self, method: str, url: str) -> dict:
        authorization, date_header = self.sign(method, url)
        return {"Authorization": authorization, "Date": date_header}
