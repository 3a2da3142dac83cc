# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Data models for the code mailer.

Incoming payloads are validated with Pydantic; internal records (queued
items, send results, outcomes) are plain dataclasses.

Example:
    Validating a raw payload::

        request = DeliveryRequest.model_validate(
            {"email": "user@example.com", "username": "Ann", "code": "123456"}
        )
        assert request.missing_fields() == []
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

REQUIRED_FIELDS = ("recipient", "display_name", "code")


class DeliveryRequest(BaseModel):
    """Request to deliver a confirmation code.

    On the wire the recipient travels as ``email`` and the display name as
    ``username``; ``recipient`` and ``displayName`` are accepted too. Numeric
    codes are coerced to strings and surrounding whitespace is stripped, so a
    blank value counts as missing.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    recipient: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("email", "recipient")
    )
    display_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("username", "displayName", "display_name")
    )
    code: Optional[str] = None

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent or empty."""
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


@dataclass
class QueuedItem:
    """Undelivered request waiting for background redelivery.

    Attributes:
        recipient: Destination address.
        display_name: Name rendered in the message.
        code: Confirmation code.
        attempt_count: Failed background cycles survived so far.
        last_error: Description of the most recent failure, if any.
    """

    recipient: str
    display_name: str
    code: str
    attempt_count: int = 0
    last_error: Optional[str] = None

    def summary(self) -> dict[str, Any]:
        """Public view of the item; the code is left out."""
        return {
            "recipient": self.recipient,
            "display_name": self.display_name,
            "attempt_count": self.attempt_count,
            "last_error": self.last_error,
        }


@dataclass
class SendResult:
    """Outcome of a single transport attempt."""

    ok: bool
    info: Any = None
    error: Optional[BaseException] = None


@dataclass
class RetryResult:
    """Outcome of a bounded sequence of attempts.

    ``ok`` is ``False`` only once every attempt has been spent; ``error`` then
    holds the last failure.
    """

    ok: bool
    attempts: int
    info: Any = None
    error: Optional[BaseException] = None


class OutcomeStatus(str, Enum):
    DELIVERED = "delivered"
    QUEUED = "queued"
    REJECTED = "rejected"


class RejectReason(str, Enum):
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"


@dataclass
class DeliveryOutcome:
    """Result of handling one delivery request."""

    status: OutcomeStatus
    reason: Optional[RejectReason] = None
    simulated: bool = False
    missing: list[str] = field(default_factory=list)

    @classmethod
    def delivered(cls, simulated: bool = False) -> "DeliveryOutcome":
        return cls(OutcomeStatus.DELIVERED, simulated=simulated)

    @classmethod
    def queued(cls) -> "DeliveryOutcome":
        return cls(OutcomeStatus.QUEUED)

    @classmethod
    def rejected(cls, reason: RejectReason, missing: Optional[list[str]] = None) -> "DeliveryOutcome":
        return cls(OutcomeStatus.REJECTED, reason=reason, missing=list(missing or []))

    @property
    def is_delivered(self) -> bool:
        return self.status is OutcomeStatus.DELIVERED

    @property
    def is_queued(self) -> bool:
        return self.status is OutcomeStatus.QUEUED

    @property
    def is_rejected(self) -> bool:
        return self.status is OutcomeStatus.REJECTED
