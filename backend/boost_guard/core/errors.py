"""
Typed error taxonomy for status evaluation and claim signing
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Error categories, used to pick the surfaced status code"""
    NOT_FOUND = "not_found"  # Unknown boost; surfaced as a null result
    CONFIGURATION = "configuration"  # Boost misconfiguration; never retried
    OPERATIONAL = "operational"  # Signing key missing; retry after backoff
    CONCURRENCY = "concurrency"  # Concurrent ledger write
    UPSTREAM = "upstream"  # Collaborator over HTTP failed


class BoostGuardError(Exception):
    """Base class for errors surfaced to the query layer"""

    code = "internal_error"
    category = ErrorCategory.CONFIGURATION
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "details": self.details,
        }


class NotFound(BoostGuardError):
    code = "not_found"
    category = ErrorCategory.NOT_FOUND


class UnknownStrategy(BoostGuardError):
    code = "unknown_strategy"
    category = ErrorCategory.CONFIGURATION


class InvalidStrategyParams(BoostGuardError):
    code = "invalid_strategy_params"
    category = ErrorCategory.CONFIGURATION


class StrategyError(BoostGuardError):
    """Strategy raised while loading facts or evaluating; the claim fails closed"""
    code = "strategy_error"
    category = ErrorCategory.CONFIGURATION


class InvalidRecipient(BoostGuardError):
    code = "invalid_recipient"
    category = ErrorCategory.CONFIGURATION


class SigningUnavailable(BoostGuardError):
    code = "signing_unavailable"
    category = ErrorCategory.OPERATIONAL
    retryable = True


class LedgerConflict(BoostGuardError):
    code = "ledger_conflict"
    category = ErrorCategory.CONCURRENCY
    retryable = True


class UpstreamError(BoostGuardError):
    code = "upstream_error"
    category = ErrorCategory.UPSTREAM
    retryable = True


HTTP_STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFIGURATION: 422,
    ErrorCategory.OPERATIONAL: 503,
    ErrorCategory.CONCURRENCY: 503,
    ErrorCategory.UPSTREAM: 502,
}


def http_status_for(error: BoostGuardError) -> int:
    """HTTP status code for a surfaced error"""
    return HTTP_STATUS_BY_CATEGORY.get(error.category, 500)
