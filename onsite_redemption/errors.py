"""Error taxonomy of the redemption pipeline.

Every error a scan can run into is a ``RedemptionError`` subclass carrying a
stable ``ErrorCode``. The API renders them as ``{"error": {"code", "message"}}``
and the station client turns such bodies back into the same classes, so both
sides of the wire branch on types rather than on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INELIGIBLE = "INELIGIBLE"
    UNRESOLVED_CODE = "UNRESOLVED_CODE"
    DUPLICATE = "DUPLICATE"
    NO_ELIGIBLE_ABSTRACT = "NO_ELIGIBLE_ABSTRACT"
    INVALID_ABSTRACT_SELECTION = "INVALID_ABSTRACT_SELECTION"
    GENERATION_FAILED = "GENERATION_FAILED"
    NETWORK = "NETWORK"
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"
    INTERNAL = "INTERNAL"


class RedemptionError(Exception):
    code = ErrorCode.INTERNAL
    status_code = 500
    recoverable = True

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class IneligibleError(RedemptionError):
    code = ErrorCode.INELIGIBLE
    status_code = 403


class UnresolvedCodeError(RedemptionError):
    code = ErrorCode.UNRESOLVED_CODE
    status_code = 404


class DuplicateRedemptionError(RedemptionError):
    """An option was already redeemed; resolved by the operator, not an alarm."""

    code = ErrorCode.DUPLICATE
    status_code = 409

    def __init__(self, message: str, existing_record: Optional[Dict[str, Any]] = None, **details: Any) -> None:
        super().__init__(message, **details)
        self.existing_record = existing_record


class NoEligibleAbstractError(RedemptionError):
    code = ErrorCode.NO_ELIGIBLE_ABSTRACT
    status_code = 422


class AbstractSelectionError(RedemptionError):
    code = ErrorCode.INVALID_ABSTRACT_SELECTION
    status_code = 400


class GenerationError(RedemptionError):
    code = ErrorCode.GENERATION_FAILED
    status_code = 500


class TransientNetworkError(RedemptionError):
    code = ErrorCode.NETWORK
    status_code = 503


class NotFoundError(RedemptionError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class InvalidRequestError(RedemptionError):
    code = ErrorCode.INVALID_REQUEST
    status_code = 400


class StationBusyError(RedemptionError):
    """Raised when a station is asked to take a scan while another is in flight."""

    code = ErrorCode.INVALID_REQUEST
    status_code = 409


class InvalidTransitionError(RedemptionError):
    code = ErrorCode.INTERNAL
    recoverable = False


_BY_CODE = {
    ErrorCode.INELIGIBLE: IneligibleError,
    ErrorCode.UNRESOLVED_CODE: UnresolvedCodeError,
    ErrorCode.DUPLICATE: DuplicateRedemptionError,
    ErrorCode.NO_ELIGIBLE_ABSTRACT: NoEligibleAbstractError,
    ErrorCode.INVALID_ABSTRACT_SELECTION: AbstractSelectionError,
    ErrorCode.GENERATION_FAILED: GenerationError,
    ErrorCode.NETWORK: TransientNetworkError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.INVALID_REQUEST: InvalidRequestError,
}


def error_from_payload(payload: Dict[str, Any], status_code: int) -> RedemptionError:
    """Rebuild a typed error from an API error body."""
    raw_code = payload.get("code", "")
    message = payload.get("message") or f"Request failed with status {status_code}"
    details = payload.get("details") or {}
    try:
        code = ErrorCode(raw_code)
    except ValueError:
        code = ErrorCode.INTERNAL
    error_cls = _BY_CODE.get(code, RedemptionError)
    return error_cls(message, **details)
