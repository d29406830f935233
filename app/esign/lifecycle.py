# app/esign/lifecycle.py

"""
Document lifecycle states.

The provider reports two independent status fields; the state a delivery moves
the document into is derived from them plus the cached mapping, so the
webhook handler can dispatch on a single exhaustive value.
"""

from enum import Enum as PyEnum
from typing import Optional

from app.esign.schemas import DocumentMapping, SigningStatus, StampingStatus


class LifecycleState(str, PyEnum):
    """State a document enters as a result of one webhook delivery."""
    AWAITING_SIGNATURE = "awaiting_signature"
    SIGNED = "signed"
    STAMP_REQUESTED = "stamp_requested"
    STAMPED = "stamped"


def derive_state(
    signing_status: str,
    stamping_status: str,
    mapping: Optional[DocumentMapping] = None,
) -> LifecycleState:
    """
    Derive the lifecycle state for a delivery.

    * stamping success wins over everything else
    * a completed signature with stamping still "none" requests the stamp when
      the mapping carries stamp positions and asked for stamping
    * any other completed signature only refreshes the progress copy
    """
    if stamping_status == StampingStatus.SUCCESS.value:
        return LifecycleState.STAMPED

    if signing_status == SigningStatus.COMPLETED.value:
        if (
            stamping_status == StampingStatus.NONE.value
            and mapping is not None
            and mapping.needs_stamp
        ):
            return LifecycleState.STAMP_REQUESTED
        return LifecycleState.SIGNED

    return LifecycleState.AWAITING_SIGNATURE
