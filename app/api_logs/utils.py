# app/api_logs/utils.py

import json
import re
from typing import Any, Optional, Tuple

from app.esign.utils import extract_invoice_number

BASE64_TRUNCATE_LENGTH = 100
BODY_TRUNCATE_LENGTH = 10000

_BASE64_VALUE = re.compile(r'"([A-Za-z0-9+/=]{100,})"')


def truncate_base64_values(text: str, max_length: int = BASE64_TRUNCATE_LENGTH) -> str:
    """Shorten long base64-looking JSON string values"""

    def _shorten(match: re.Match) -> str:
        content = match.group(1)
        if len(content) > max_length:
            return f'"{content[:max_length]}... [base64 truncated, total {len(content)} chars]"'
        return match.group(0)

    return _BASE64_VALUE.sub(_shorten, text)


def truncate_body(text: Optional[str], max_length: int = BODY_TRUNCATE_LENGTH) -> str:
    if not text:
        return ""
    if len(text) > max_length:
        return text[:max_length] + "... [truncated]"
    return text


def extract_log_refs(body: Any) -> Tuple[Optional[str], Optional[int]]:
    """
    Pull the invoice number and entry number out of a request body so a log
    row can be found again by invoice.
    """
    if not isinstance(body, dict):
        return None, None
    entry_no = body.get("entry_no") or None
    invoice_no = extract_invoice_number(body.get("filename") or "") or None
    return invoice_no, entry_no


def serialize_body(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    return json.dumps(body, default=str)
