"""Map raw error messages onto typed, retry-aware error categories.

Classification order:

1. a structured error code in the payload (``code`` / ``errorCode``),
2. the phrase table below, first matching category wins,
3. the transport status class (no response or timeout means ``network``),
4. the caller's default category (``transaction`` unless told otherwise).

Only ``validation`` and ``insufficient`` are non-retryable: resubmitting the
same input cannot succeed.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from migration_tracker.models import ErrorDisplay, ErrorType

__all__ = [
    "ERROR_CODES",
    "ERROR_PHRASES",
    "NON_RETRYABLE",
    "classify_error",
    "is_retryable",
]

NON_RETRYABLE = frozenset({ErrorType.VALIDATION, ErrorType.INSUFFICIENT})

# Structured codes the backend may attach to an error body.
ERROR_CODES: Dict[str, ErrorType] = {
    "INSUFFICIENT_BALANCE": ErrorType.INSUFFICIENT,
    "INSUFFICIENT_TOKEN_BALANCE": ErrorType.INSUFFICIENT,
    "VALIDATION_ERROR": ErrorType.VALIDATION,
    "INVALID_REQUEST": ErrorType.VALIDATION,
    "INVALID_ADDRESS": ErrorType.VALIDATION,
    "VESTING_FAILED": ErrorType.VESTING,
    "VESTING_ERROR": ErrorType.VESTING,
    "BURN_FAILED": ErrorType.TRANSACTION,
    "TRANSACTION_FAILED": ErrorType.TRANSACTION,
    "NETWORK_ERROR": ErrorType.NETWORK,
    "TIMEOUT": ErrorType.NETWORK,
}

# Checked in order; phrases are matched lowercase against the message.
# Bare "insufficient funds" stays a transaction error.
ERROR_PHRASES: Tuple[Tuple[ErrorType, Tuple[str, ...]], ...] = (
    (
        ErrorType.INSUFFICIENT,
        (
            "insufficient token balance",
            "insufficient balance",
            "balance too low",
            "exceeds balance",
        ),
    ),
    (
        ErrorType.VALIDATION,
        (
            "invalid",
            "validation",
            "malformed",
            "is required",
            "must be",
        ),
    ),
    (
        ErrorType.VESTING,
        (
            "vesting",
            "failed to store burn record",
            "burn-to-vest",
            "burn may have succeeded",
        ),
    ),
    (
        ErrorType.NETWORK,
        (
            "network",
            "timeout",
            "timed out",
            "connection",
            "econnrefused",
            "econnreset",
            "unreachable",
            "failed to fetch",
        ),
    ),
)


def is_retryable(error_type: ErrorType) -> bool:
    """Return True unless resubmitting unchanged input cannot succeed."""
    return error_type not in NON_RETRYABLE


def _code_from_payload(payload: Optional[Mapping[str, Any]]) -> Optional[ErrorType]:
    if not payload:
        return None
    for key in ("code", "errorCode", "error_code"):
        code = payload.get(key)
        if isinstance(code, str):
            category = ERROR_CODES.get(code.strip().upper())
            if category is not None:
                return category
    return None


def _category_from_phrases(message: str) -> Optional[ErrorType]:
    text = message.lower()
    for category, phrases in ERROR_PHRASES:
        if any(phrase in text for phrase in phrases):
            return category
    return None


def classify_error(
    message: Optional[str],
    *,
    payload: Optional[Mapping[str, Any]] = None,
    status_class: Optional[str] = None,
    default: ErrorType = ErrorType.TRANSACTION,
    details: Optional[str] = None,
) -> ErrorDisplay:
    """Classify *message* into an :class:`ErrorDisplay`.

    Args:
        message: Human-readable error text from the transport or the payload.
        payload: Structured error body, if the transport attached one.
        status_class: Transport status class (``none``/``timeout``/``4xx``/``5xx``).
        default: Category used when nothing else matches.
        details: Original server text, if the transport rewrote the message.
            Matched against the phrase table when the message is not.

    Returns:
        The classified error.  Never raises.
    """
    text = (message or "").strip() or "Unknown error occurred"

    category = _code_from_payload(payload) or _category_from_phrases(text)
    if category is None and details:
        category = _category_from_phrases(details)
    if category is None and status_class in ("none", "timeout"):
        category = ErrorType.NETWORK
    if category is None:
        category = default

    return ErrorDisplay(
        type=category,
        message=text,
        details=details,
        retryable=is_retryable(category),
    )
