"""
Payment and account-holder records.
Handles boundary validation of raw payment data and the account-holder directory.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


class InvalidRecordError(ValueError):
    """Raised when a raw payment or account-holder record fails validation."""
    pass


class PaymentChannel(Enum):
    """How the payment reached the account."""
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    CASH = "cash"


# Spellings accepted from upstream collaborators
CHANNEL_ALIASES = {
    "card": PaymentChannel.CARD,
    "creditcard": PaymentChannel.CARD,
    "credit_card": PaymentChannel.CARD,
    "bank_transfer": PaymentChannel.BANK_TRANSFER,
    "banktransfer": PaymentChannel.BANK_TRANSFER,
    "bank-transfer": PaymentChannel.BANK_TRANSFER,
    "check": PaymentChannel.CHECK,
    "cheque": PaymentChannel.CHECK,
    "cash": PaymentChannel.CASH,
}


@dataclass(frozen=True)
class PaymentRecord:
    """An inbound payment awaiting assignment. Never mutated after ingestion."""
    payment_id: str
    reference: str
    amount: Decimal
    payment_date: date
    channel: PaymentChannel
    description: str = ""
    raw_data: Optional[Any] = None

    def __post_init__(self):
        if not isinstance(self.payment_id, str) or not self.payment_id.strip():
            raise InvalidRecordError("Payment missing 'id' field")
        if not isinstance(self.amount, Decimal) or not self.amount.is_finite():
            raise InvalidRecordError(
                f"Payment {self.payment_id} has invalid amount: {self.amount!r}"
            )
        if self.amount <= 0:
            raise InvalidRecordError(
                f"Payment {self.payment_id} has non-positive amount: {self.amount}"
            )
        if not isinstance(self.channel, PaymentChannel):
            raise InvalidRecordError(
                f"Payment {self.payment_id} has unknown channel: {self.channel}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentRecord":
        """
        Build a payment from a raw dictionary.

        Accepts ``id``/``payment_id``, ``date``/``payment_date`` and
        ``channel``/``method`` keys.

        Raises:
            InvalidRecordError: If a required field is missing or invalid
        """
        if not isinstance(data, dict):
            raise InvalidRecordError(
                f"Payment must be an object, got {type(data).__name__}"
            )

        payment_id = _first_present(data, "payment_id", "id")
        if payment_id is None or str(payment_id).strip() == "":
            raise InvalidRecordError("Payment missing 'id' field")
        payment_id = str(payment_id)

        reference = data.get("reference")
        if reference is None:
            raise InvalidRecordError(f"Payment {payment_id} missing 'reference' field")

        amount = _parse_amount(data.get("amount"), f"Payment {payment_id}")
        if amount <= 0:
            raise InvalidRecordError(
                f"Payment {payment_id} has non-positive amount: {amount}"
            )

        payment_date = _parse_date(
            _first_present(data, "payment_date", "date"), payment_id
        )
        channel = parse_channel(_first_present(data, "channel", "method"), payment_id)

        return cls(
            payment_id=payment_id,
            reference=str(reference),
            amount=amount,
            payment_date=payment_date,
            channel=channel,
            description=str(data.get("description") or ""),
            raw_data=data.get("raw_data", data.get("rawData")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.payment_id,
            "reference": self.reference,
            "description": self.description,
            "amount": str(self.amount),
            "date": self.payment_date.isoformat(),
            "channel": self.channel.value,
            "raw_data": self.raw_data,
        }


@dataclass(frozen=True)
class AccountHolder:
    """Directory entry a payment can be matched to (a tenant)."""
    account_holder_id: str
    name: str
    unit: str
    expected_amount: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountHolder":
        """
        Build an account holder from a raw dictionary.

        ``expected_amount`` may also be supplied as ``expectedAmount`` or
        ``rent_amount``/``rentAmount``.
        """
        if not isinstance(data, dict):
            raise InvalidRecordError(
                f"Account holder must be an object, got {type(data).__name__}"
            )

        holder_id = _first_present(data, "account_holder_id", "id")
        if holder_id is None or str(holder_id).strip() == "":
            raise InvalidRecordError("Account holder missing 'id' field")
        holder_id = str(holder_id)

        if data.get("name") is None:
            raise InvalidRecordError(f"Account holder {holder_id} missing 'name' field")

        expected = _first_present(
            data, "expected_amount", "expectedAmount", "rent_amount", "rentAmount"
        )
        expected_amount = _parse_amount(expected, f"Account holder {holder_id}")
        if expected_amount < 0:
            raise InvalidRecordError(
                f"Account holder {holder_id} has negative expected amount: {expected_amount}"
            )

        return cls(
            account_holder_id=holder_id,
            name=str(data["name"]),
            unit=str(data.get("unit") or ""),
            expected_amount=expected_amount,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.account_holder_id,
            "name": self.name,
            "unit": self.unit,
            "expected_amount": str(self.expected_amount),
        }


def parse_channel(value: Any, payment_id: str = "") -> PaymentChannel:
    """Map a channel value (enum or alias string) onto PaymentChannel."""
    if isinstance(value, PaymentChannel):
        return value
    if value is None:
        raise InvalidRecordError(f"Payment {payment_id} missing 'channel' field")

    channel = CHANNEL_ALIASES.get(str(value).strip().lower())
    if channel is None:
        raise InvalidRecordError(f"Payment {payment_id} has unknown channel: {value}")
    return channel


def build_directory(holders: Iterable[Any]) -> Tuple[AccountHolder, ...]:
    """
    Freeze an account-holder directory into an ordered tuple.

    Directory order is preserved; it decides ties between equally scored holders.
    """
    directory = []
    seen = set()
    for holder in holders or ():
        if not isinstance(holder, AccountHolder):
            holder = AccountHolder.from_dict(holder)
        if holder.account_holder_id in seen:
            raise InvalidRecordError(
                f"Duplicate account holder id: {holder.account_holder_id}"
            )
        seen.add(holder.account_holder_id)
        directory.append(holder)
    return tuple(directory)


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _parse_amount(value: Any, label: str) -> Decimal:
    if value is None:
        raise InvalidRecordError(f"{label} missing amount field")
    if isinstance(value, bool):
        raise InvalidRecordError(f"{label} has invalid amount: {value}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidRecordError(f"{label} has invalid amount: {value}")
    if not amount.is_finite():
        raise InvalidRecordError(f"{label} has invalid amount: {value}")
    return amount


def _parse_date(value: Any, payment_id: str) -> date:
    if value is None:
        raise InvalidRecordError(f"Payment {payment_id} missing 'date' field")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    # timestamps such as "2023-06-01T10:30:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise InvalidRecordError(f"Payment {payment_id} has invalid date: {value}")
