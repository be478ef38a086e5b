from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4


class EventType(str, Enum):
    PAYMENT_SUBMITTED = "PaymentSubmitted"
    PAYMENT_APPROVED = "PaymentApproved"
    PAYMENT_REJECTED = "PaymentRejected"
    ENROLLMENT_COMPLETED = "EnrollmentCompleted"


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """A fact the core emits for downstream consumers (notifications, caches).

    ``payload`` holds only JSON-serializable values (ids as strings).
    """

    type: EventType
    payload: dict
    id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: int = field(
        default_factory=lambda: int(datetime.datetime.now(datetime.UTC).timestamp())
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "occurred_at": self.occurred_at,
            "payload": self.payload,
        }
