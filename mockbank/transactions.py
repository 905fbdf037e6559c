"""
Transaction Record Module

Immutable transaction records, their persisted (camelCase JSON) form, and
identifier generation for record ids and display reference numbers.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Any, Optional
from enum import Enum
import re
import secrets
import string
import time

from .currency import to_amount, amount_to_json
from .errors import StorageReadError


REFERENCE_PREFIX = "TXN"
REFERENCE_PATTERN = re.compile(r"^TXN\d{8}[A-Z0-9]{4}$")
TRANSACTION_DATE_FORMAT = "%Y-%m-%dT%H:%M"

# Persisted keys whose values must be strings when present
TEXT_FIELDS = (
    "id", "accountName", "bankName", "accountNumber", "phoneNumber",
    "narration", "transactionDate", "referenceNumber", "createdAt",
)

_BASE36 = string.digits + string.ascii_lowercase
_REFERENCE_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


class TransactionType(Enum):
    """Types of simulated transactions"""
    TRANSFER = "Transfer"  # Debit: money leaves the ledger
    CREDIT = "Credit"      # Top-up: money enters the ledger


class TransactionStatus(Enum):
    """Simulated transactions never fail once validated"""
    SUCCESSFUL = "Successful"


@dataclass(frozen=True)
class Transaction:
    """
    A completed simulated transaction. Never mutated once created.
    """
    id: str
    account_name: str
    bank_name: str
    account_number: str
    phone_number: str
    amount: Decimal
    narration: str
    transaction_date: str  # user-supplied local timestamp, YYYY-MM-DDTHH:MM
    reference_number: str
    type: TransactionType
    created_at: datetime
    status: TransactionStatus = TransactionStatus.SUCCESSFUL

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_amount(self.amount))
        if self.amount <= Decimal('0'):
            raise ValueError("Transaction amount must be positive")

    @property
    def is_debit(self) -> bool:
        return self.type == TransactionType.TRANSFER

    @property
    def balance_delta(self) -> Decimal:
        """Signed effect of this record on the balance"""
        return -self.amount if self.is_debit else self.amount

    def transaction_datetime(self) -> Optional[datetime]:
        """Parse transaction_date; None if it is not a recognizable timestamp"""
        return parse_transaction_date(self.transaction_date)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON shape"""
        return {
            "id": self.id,
            "accountName": self.account_name,
            "bankName": self.bank_name,
            "accountNumber": self.account_number,
            "phoneNumber": self.phone_number,
            "amount": amount_to_json(self.amount),
            "narration": self.narration,
            "transactionDate": self.transaction_date,
            "referenceNumber": self.reference_number,
            "status": self.status.value,
            "type": self.type.value,
            "createdAt": self.created_at.isoformat().replace("+00:00", "Z"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """
        Create instance from the persisted JSON shape

        Raises:
            StorageReadError: If the record is missing fields or malformed
        """
        if not isinstance(data, dict):
            raise StorageReadError(f"Transaction record must be an object, got {type(data).__name__}")
        for key in TEXT_FIELDS:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise StorageReadError(f"Field {key} must be a string, got {type(value).__name__}")
        if not data.get("id"):
            raise StorageReadError("Transaction record has no id")
        try:
            created_raw = data.get("createdAt")
            created_at = (
                datetime.fromisoformat(created_raw.replace("Z", "+00:00"))
                if created_raw else datetime.now(timezone.utc)
            )
            return cls(
                id=data["id"],
                account_name=data.get("accountName") or "",
                bank_name=data.get("bankName") or "",
                account_number=data.get("accountNumber") or "",
                phone_number=data.get("phoneNumber") or "",
                amount=to_amount(data["amount"]),
                narration=data.get("narration") or "",
                transaction_date=data.get("transactionDate") or "",
                reference_number=data.get("referenceNumber") or "",
                type=TransactionType(data["type"]),
                created_at=created_at,
                status=TransactionStatus(data.get("status", TransactionStatus.SUCCESSFUL.value)),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StorageReadError(f"Malformed transaction record: {e}") from e


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Millisecond timestamp in base 36 followed by 9 random base-36 characters"""
    millis = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return _to_base36(millis) + suffix


def generate_reference_number() -> str:
    """TXN + last 8 digits of the millisecond clock + 4 uppercase alphanumerics"""
    millis = str(time.time_ns() // 1_000_000)[-8:].rjust(8, "0")
    suffix = "".join(secrets.choice(_REFERENCE_SUFFIX_ALPHABET) for _ in range(4))
    return f"{REFERENCE_PREFIX}{millis}{suffix}"


def parse_transaction_date(value: str) -> Optional[datetime]:
    """
    Parse a user-supplied transaction date.

    Accepts the form value (YYYY-MM-DDTHH:MM), full ISO timestamps and plain
    dates. Timezone-aware values are converted to naive local wall time.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def current_transaction_date(now: Optional[datetime] = None) -> str:
    """Local wall-clock time in the form's datetime-local format"""
    return (now or datetime.now()).strftime(TRANSACTION_DATE_FORMAT)
