from enum import Enum


class ErrorCode(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_AMOUNT_PRECISION = "INVALID_AMOUNT_PRECISION"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    NO_APPROVED_AUTH = "NO_APPROVED_AUTH"
    AMOUNT_EXCEEDS_AVAILABLE = "AMOUNT_EXCEEDS_AVAILABLE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INCORRECT_DETAILS = "INCORRECT_DETAILS"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


class AuditCode(str, Enum):
    DUPLICATE_ORDER_ID = "DUPLICATE_ORDER_ID"
    ORPHAN_RECORD = "ORPHAN_RECORD"
    PRECISION_VIOLATION = "PRECISION_VIOLATION"
    OVER_SETTLEMENT = "OVER_SETTLEMENT"
    SETTLEMENT_MISMATCH = "SETTLEMENT_MISMATCH"


HTTP_STATUS = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.INVALID_AMOUNT: 422,
    ErrorCode.INVALID_AMOUNT_PRECISION: 422,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.NO_APPROVED_AUTH: 409,
    ErrorCode.AMOUNT_EXCEEDS_AVAILABLE: 422,
    ErrorCode.INSUFFICIENT_FUNDS: 402,
    ErrorCode.INCORRECT_DETAILS: 422,
    ErrorCode.PROVIDER_ERROR: 502,
    ErrorCode.SERVER_ERROR: 500,
}


class LedgerError(Exception):
    """Business-rule or validation failure carrying a stable error code."""

    def __init__(self, code: ErrorCode, message: str = "", available=None):
        super().__init__(message or code.value)
        self.code = code
        self.available = available


def http_status_for(code: ErrorCode) -> int:
    return HTTP_STATUS.get(code, 500)
