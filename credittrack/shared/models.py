import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Dict, Optional, Any

# --- Enumerations ---

ROLE_CONSUMER = "consumer"
ROLE_LENDER = "lender"
ROLE_ADMIN = "admin"
ROLES = (ROLE_CONSUMER, ROLE_LENDER, ROLE_ADMIN)

LOAN_TYPES = ("Personal", "Home", "Auto", "Education", "Credit Card", "Business", "Other")

STATUS_OUTSTANDING = "Outstanding"
STATUS_PAID = "Paid"
STATUS_LATE = "Late"
STATUS_DEFAULTED = "Defaulted"
PAYMENT_STATUSES = (STATUS_OUTSTANDING, STATUS_PAID, STATUS_LATE, STATUS_DEFAULTED)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _json_default(value: Any):
    # DynamoDB hands numbers back as Decimal
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json_safe(data: Any) -> str:
    return json.dumps(data, default=_json_default)


# --- Identity ---

@dataclass(frozen=True)
class Principal:
    """Authenticated actor handed over by the authorizer."""
    id: str
    role: str


@dataclass
class User:
    user_id: str
    name: str
    email: str
    role: str = ROLE_CONSUMER
    id_number: Optional[str] = None
    is_approved: Optional[bool] = None
    created_at: str = field(default_factory=utc_now_iso)

    def __post_init__(self):
        # Only lenders need approval
        if self.is_approved is None:
            self.is_approved = self.role != ROLE_LENDER

    def to_dict(self) -> Dict[str, Any]:
        item = asdict(self)
        return {k: v for k, v in item.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> 'User':
        return cls(
            user_id=data['user_id'],
            name=data['name'],
            email=data['email'],
            role=data.get('role', ROLE_CONSUMER),
            id_number=data.get('id_number'),
            is_approved=data.get('is_approved'),
            created_at=data.get('created_at') or utc_now_iso()
        )

    def to_json(self) -> str:
        return to_json_safe(self.to_dict())

    def summary(self, *fields: str) -> Dict[str, Any]:
        """Public view of the user limited to the requested fields."""
        item = self.to_dict()
        return {"user_id": self.user_id, **{k: item[k] for k in fields if k in item}}


# --- Credit Records ---

@dataclass
class PaymentEntry:
    status: Optional[str]
    amount: Optional[Decimal] = Decimal("0")
    date: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "status": self.status, "amount": _to_decimal(self.amount)}

    @classmethod
    def from_dict(cls, data: dict) -> 'PaymentEntry':
        return cls(
            status=data.get('status'),
            amount=_to_decimal(data.get('amount')),
            date=data.get('date') or utc_now_iso()
        )


@dataclass
class CreditRecord:
    record_id: str
    consumer_id: str
    lender_id: str
    loan_type: str
    amount: Optional[Decimal]
    due_date: str
    payment_status: Optional[str] = STATUS_OUTSTANDING
    payment_history: List[PaymentEntry] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    # Attached to listings only, never stored
    consumer: Optional[Dict[str, Any]] = field(default=None, compare=False)
    lender: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "consumer_id": self.consumer_id,
            "lender_id": self.lender_id,
            "loan_type": self.loan_type,
            "amount": _to_decimal(self.amount),
            "due_date": self.due_date,
            "payment_status": self.payment_status,
            "payment_history": [entry.to_dict() for entry in self.payment_history],
            "created_at": self.created_at
        }

    def to_response(self) -> Dict[str, Any]:
        item = self.to_dict()
        if self.consumer is not None:
            item["consumer"] = self.consumer
        if self.lender is not None:
            item["lender"] = self.lender
        return item

    @classmethod
    def from_dict(cls, data: dict) -> 'CreditRecord':
        return cls(
            record_id=data['record_id'],
            consumer_id=data['consumer_id'],
            lender_id=data['lender_id'],
            loan_type=data.get('loan_type'),
            amount=_to_decimal(data.get('amount')),
            due_date=data.get('due_date'),
            payment_status=data.get('payment_status'),
            payment_history=[PaymentEntry.from_dict(entry) for entry in data.get('payment_history') or []],
            created_at=data.get('created_at') or utc_now_iso()
        )

    def to_json(self) -> str:
        return to_json_safe(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> 'CreditRecord':
        return cls.from_dict(json.loads(json_str, parse_float=Decimal))
