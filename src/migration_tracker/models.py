"""Pydantic models for the migration tracker.

This module defines the immutable session snapshot exposed to presentation
code, the form/request models sent on submission, and the lenient payload
models used to read what the backend returns while polling.  Wire names are
camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_SOLANA_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class MigrationStatus(str, Enum):
    """Local status of a tracked migration."""

    IDLE = "idle"
    PENDING_BURN = "pending_burn"
    BURN_CONFIRMED = "burn_confirmed"
    VESTING_STARTED = "vesting_started"
    COMPLETED = "completed"
    ERROR = "error"


class RawStatus(str, Enum):
    """Status codes reported by the backend status endpoint."""

    PENDING_BURN = "pending_burn"
    BURN_CONFIRMED = "burn_confirmed"
    BURN_FAILED = "burn_failed"
    VESTING_STARTED = "vesting_started"
    VESTING_FAILED = "vesting_failed"
    COMPLETED = "completed"


class MigrationStep(str, Enum):
    """Coarse UI phase derived from the status."""

    FORM = "form"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ErrorType(str, Enum):
    """User-facing error categories."""

    NETWORK = "network"
    VALIDATION = "validation"
    INSUFFICIENT = "insufficient"
    TRANSACTION = "transaction"
    VESTING = "vesting"


class _WireModel(BaseModel):
    """Base for models exchanged with the backend (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Input side
# ---------------------------------------------------------------------------


class MigrationFormData(_WireModel):
    """Validated snapshot of what the user entered in the migration form."""

    account_id: str = Field(description="Account identifier on the backend.")
    token_address: str = Field(description="ERC20 token address on the source chain.")
    amount: str = Field(description="Amount to burn, as a decimal string.")
    solana_wallet_address: str = Field(description="Destination wallet on Solana.")
    vesting_duration_days: int = Field(
        default=90, description="Vesting duration in days."
    )

    @field_validator("account_id", "token_address", "amount", "solana_wallet_address", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("account_id")
    @classmethod
    def _require_account(cls, v: str) -> str:
        if not v:
            raise ValueError("Account ID is required")
        return v

    @field_validator("token_address")
    @classmethod
    def _check_token_address(cls, v: str) -> str:
        if not v:
            raise ValueError("Token address is required")
        if not _EVM_ADDRESS_RE.match(v):
            raise ValueError("Invalid Ethereum address format")
        return v

    @field_validator("amount")
    @classmethod
    def _check_amount(cls, v: str) -> str:
        if not v:
            raise ValueError("Amount is required")
        try:
            value = Decimal(v)
        except InvalidOperation:
            raise ValueError("Amount must be a positive number") from None
        if not value.is_finite() or value <= 0:
            raise ValueError("Amount must be a positive number")
        return v

    @field_validator("solana_wallet_address")
    @classmethod
    def _check_solana_address(cls, v: str) -> str:
        if not v:
            raise ValueError("Solana wallet address is required")
        if not _SOLANA_ADDRESS_RE.match(v):
            raise ValueError("Invalid Solana address format")
        return v

    @field_validator("vesting_duration_days")
    @classmethod
    def _check_duration(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Duration must be at least 1 day")
        if v > 365:
            raise ValueError("Duration cannot exceed 365 days")
        return v


class MigrationRequest(_WireModel):
    """Body of the create request.  ``amount`` is already normalised."""

    account_id: str
    token_address: str
    amount: str
    solana_wallet_address: str
    vesting_duration_days: int
    bridge_id: str
    chain_id: int
    start_immediately: bool = True

    def to_wire(self) -> Dict[str, Any]:
        """Return the JSON body with camelCase keys."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Session snapshot
# ---------------------------------------------------------------------------


class TransactionData(_WireModel):
    """Burn transaction on the source chain."""

    hash: Optional[str] = None
    block_number: Optional[int] = None
    status: str = "pending"
    explorer_url: Optional[str] = None


class VestingData(_WireModel):
    """Vesting contract on the destination chain."""

    contract_address: Optional[str] = None
    amount: Optional[str] = None
    duration: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    explorer_url: Optional[str] = None


class ProgressData(_WireModel):
    """Secondary vesting progress metrics."""

    progress: float = 0.0
    vested_amount: Optional[str] = None
    remaining_amount: Optional[str] = None
    days_remaining: Optional[int] = None


class ErrorDisplay(BaseModel):
    """Classified error carried by the session."""

    model_config = ConfigDict(frozen=True)

    type: ErrorType
    message: str
    details: Optional[str] = None
    retryable: bool


class MigrationSession(BaseModel):
    """Immutable snapshot of the single tracked migration.

    Mutations go through :class:`~migration_tracker.store.SessionStore`, which
    swaps in a new snapshot via ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    migration_id: Optional[str] = None
    form_data: Optional[MigrationFormData] = None
    status: MigrationStatus = MigrationStatus.IDLE
    step: MigrationStep = MigrationStep.FORM
    transaction: Optional[TransactionData] = None
    vesting: Optional[VestingData] = None
    progress: Optional[ProgressData] = None
    error: Optional[ErrorDisplay] = None
    polling_active: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in (MigrationStatus.COMPLETED, MigrationStatus.ERROR)


# ---------------------------------------------------------------------------
# Raw payloads (ephemeral)
# ---------------------------------------------------------------------------


class StatusPayload(_WireModel):
    """Response of the status endpoint.

    ``status`` stays optional here so a missing field can be reported as a
    protocol violation rather than a parse error.
    """

    id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("id", "bridgeId", "migrationId")
    )
    status: Optional[RawStatus] = None
    transaction: Optional[TransactionData] = Field(
        default=None,
        validation_alias=AliasChoices("transaction", "burnTransaction", "burn_transaction"),
    )
    vesting: Optional[VestingData] = None
    error: Optional[str] = None
    code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("code", "errorCode", "error_code")
    )


class ProgressPayload(_WireModel):
    """Response of the progress endpoint."""

    status: Optional[RawStatus] = None
    progress: Optional[float] = None
    vested_amount: Optional[str] = None
    remaining_amount: Optional[str] = None
    days_remaining: Optional[int] = None

    @field_validator("vested_amount", "remaining_amount", mode="before")
    @classmethod
    def _amount_to_str(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        return v


class SubmitResponse(_WireModel):
    """Response of the create endpoint."""

    success: bool = True
    bridge_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("bridgeId", "id", "bridge_id")
    )
    status: Optional[str] = None
    burn_transaction: Optional[TransactionData] = Field(
        default=None,
        validation_alias=AliasChoices("burnTransaction", "transaction", "burn_transaction"),
    )
    vesting: Optional[VestingData] = None
    error: Optional[str] = None
