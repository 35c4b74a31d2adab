"""
Input Validation Utilities
Validates and normalizes the inputs accepted by the credit and user services.
"""

from datetime import date, datetime
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any, Optional

from boto3.dynamodb.types import DYNAMODB_CONTEXT

from credittrack.shared.exceptions import ValidationException
from credittrack.shared.models import LOAN_TYPES, PAYMENT_STATUSES, ROLES, ROLE_ADMIN


class CreditValidator:
    """Validation utilities for credit record operations"""

    @staticmethod
    def validate_id(value: Any, label: str) -> str:
        if not value or not isinstance(value, str):
            raise ValidationException(f"{label} is required")
        return value

    @staticmethod
    def validate_loan_type(loan_type: Any) -> str:
        if loan_type not in LOAN_TYPES:
            raise ValidationException(f"Invalid loan type: {loan_type!r}. Expected one of {', '.join(LOAN_TYPES)}")
        return loan_type

    @staticmethod
    def validate_payment_status(status: Any) -> str:
        if status not in PAYMENT_STATUSES:
            raise ValidationException(f"Invalid payment status: {status!r}. Expected one of {', '.join(PAYMENT_STATUSES)}")
        return status

    @staticmethod
    def validate_role(role: Any) -> str:
        if role not in ROLES:
            raise ValidationException(f"Invalid role: {role!r}")
        return role

    @staticmethod
    def parse_amount(amount: Any, allow_zero: bool = False) -> Decimal:
        """Parse a monetary amount into a finite Decimal."""
        # bool is an int subclass; True is not an amount
        if amount is None or isinstance(amount, bool):
            raise ValidationException("Amount must be numeric")
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise ValidationException(f"Amount must be numeric, got {amount!r}")

        if not value.is_finite():
            raise ValidationException("Amount must be a finite number")
        if value < 0 or (value == 0 and not allow_zero):
            raise ValidationException("Amount must be positive")

        # DynamoDB numbers hold at most 38 significant digits within a bounded exponent
        try:
            DYNAMODB_CONTEXT.create_decimal(value)
        except DecimalException:
            raise ValidationException("Amount exceeds supported precision")
        return value

    @staticmethod
    def parse_due_date(due_date: Any) -> str:
        """Accepts a date, datetime or ISO 8601 string; returns the ISO form."""
        if isinstance(due_date, datetime):
            return due_date.isoformat()
        if isinstance(due_date, date):
            return due_date.isoformat()
        if not due_date or not isinstance(due_date, str):
            raise ValidationException("Due date is required")
        try:
            parsed = datetime.fromisoformat(due_date.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationException(f"Invalid due date: {due_date!r}")
        # Keep plain dates as dates
        if len(due_date) == 10:
            return parsed.date().isoformat()
        return parsed.isoformat()

    @staticmethod
    def parse_payment_amount(amount: Any) -> Decimal:
        """Payment amounts are optional and default to 0."""
        if amount is None or amount == "":
            return Decimal("0")
        return CreditValidator.parse_amount(amount, allow_zero=True)

    @staticmethod
    def optional_email(email: Optional[str]) -> Optional[str]:
        if email is None:
            return None
        if not isinstance(email, str):
            raise ValidationException("Email must be a string")
        return email.strip() or None

    @staticmethod
    def validate_user(user) -> None:
        """Checks a user before it is stored."""
        CreditValidator.validate_id(user.user_id, "User ID")
        CreditValidator.validate_role(user.role)
        if not CreditValidator.optional_email(user.email):
            raise ValidationException("Email is required")
        if user.role != ROLE_ADMIN and not user.id_number:
            raise ValidationException("ID number is required for consumers and lenders")
