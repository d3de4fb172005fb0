import pytest

from migration_tracker.classifier import classify_error, is_retryable
from migration_tracker.models import ErrorType


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Insufficient token balance", ErrorType.INSUFFICIENT),
        ("Amount exceeds balance of sender", ErrorType.INSUFFICIENT),
        ("Invalid Solana address format", ErrorType.VALIDATION),
        ("accountId is required", ErrorType.VALIDATION),
        ("Vesting schedule could not be created", ErrorType.VESTING),
        ("Failed to store burn record", ErrorType.VESTING),
        ("Network error during get_status: connection reset", ErrorType.NETWORK),
        ("connect ECONNREFUSED 127.0.0.1:443", ErrorType.NETWORK),
        ("execution reverted", ErrorType.TRANSACTION),
        # generic wording without the token-balance phrase
        ("insufficient funds", ErrorType.TRANSACTION),
    ],
)
def test_phrase_classification(message, expected):
    assert classify_error(message).type is expected


def test_error_code_wins_over_phrases():
    error = classify_error("network hiccup", payload={"errorCode": "insufficient_balance"})

    assert error.type is ErrorType.INSUFFICIENT
    assert error.retryable is False


def test_unknown_code_falls_through_to_phrases():
    error = classify_error("Invalid amount", payload={"code": "E_SOMETHING"})

    assert error.type is ErrorType.VALIDATION


def test_details_are_matched_when_message_is_not():
    error = classify_error(
        "The burn operation encountered an issue.",
        details="Failed to complete burn-to-vest operation",
    )

    assert error.type is ErrorType.VESTING
    assert error.details == "Failed to complete burn-to-vest operation"


@pytest.mark.parametrize("status_class", ["none", "timeout"])
def test_missing_response_is_network(status_class):
    assert classify_error("Request aborted", status_class=status_class).type is ErrorType.NETWORK


def test_http_error_without_phrase_uses_default():
    assert classify_error("Bad gateway", status_class="5xx").type is ErrorType.TRANSACTION
    assert (
        classify_error("Bad gateway", status_class="5xx", default=ErrorType.VESTING).type
        is ErrorType.VESTING
    )


@pytest.mark.parametrize("message", [None, "", "   "])
def test_empty_message_gets_placeholder(message):
    error = classify_error(message)

    assert error.message == "Unknown error occurred"
    assert error.type is ErrorType.TRANSACTION


@pytest.mark.parametrize(
    "error_type, retryable",
    [
        (ErrorType.NETWORK, True),
        (ErrorType.TRANSACTION, True),
        (ErrorType.VESTING, True),
        (ErrorType.VALIDATION, False),
        (ErrorType.INSUFFICIENT, False),
    ],
)
def test_retryability_follows_category(error_type, retryable):
    assert is_retryable(error_type) is retryable
