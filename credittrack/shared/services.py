"""
Credit record and user administration services.

Each operation authenticates against the access policy first, then talks to
the injected repositories. Failures surface as CreditTrack exceptions so the
API layer can map them to status codes.
"""

import logging
import uuid
from typing import List, Optional, Dict, Any, Tuple

from credittrack.functions.access_policy import policy
from credittrack.functions.access_policy.policy import AccessTarget
from credittrack.functions.credit_scorer.scorer import calculate_credit_score
from credittrack.shared.exceptions import (
    NotAuthenticatedException, ForbiddenException, NotFoundException, ValidationException
)
from credittrack.shared.models import (
    Principal, User, CreditRecord, PaymentEntry, ROLE_CONSUMER, ROLE_LENDER, STATUS_OUTSTANDING
)
from credittrack.shared.repositories import UserRepository, CreditRecordRepository
from credittrack.shared.validators import CreditValidator

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def enforce(decision: str, message: str = "Not authorized for this action"):
    """Turns a policy decision into the matching exception."""
    if decision == policy.NOT_AUTHENTICATED:
        raise NotAuthenticatedException()
    if decision != policy.ALLOW:
        raise ForbiddenException(message)


class CreditRecordService:
    def __init__(self, record_repo: CreditRecordRepository, user_repo: UserRepository):
        self.record_repo = record_repo
        self.user_repo = user_repo

    def create_record(self, principal: Optional[Principal], consumer_id: str, loan_type: str,
                      amount: Any, due_date: Any) -> CreditRecord:
        """Records a new obligation for an existing consumer."""
        enforce(policy.decide(principal, policy.CREATE_RECORD))

        consumer_id = CreditValidator.validate_id(consumer_id, "Consumer ID")
        loan_type = CreditValidator.validate_loan_type(loan_type)
        amount = CreditValidator.parse_amount(amount)
        due_date = CreditValidator.parse_due_date(due_date)

        consumer = self.user_repo.get_user(consumer_id)
        if consumer is None or consumer.role != ROLE_CONSUMER:
            raise NotFoundException("Consumer not found")

        record = CreditRecord(
            record_id=str(uuid.uuid4()),
            consumer_id=consumer_id,
            lender_id=principal.id,
            loan_type=loan_type,
            amount=amount,
            due_date=due_date,
            payment_status=STATUS_OUTSTANDING,
            payment_history=[PaymentEntry(status=STATUS_OUTSTANDING, amount=0)]
        )
        self.record_repo.save_record(record)
        return record

    def list_records_for_consumer(self, principal: Optional[Principal], consumer_id: str) -> List[CreditRecord]:
        enforce(
            policy.decide(principal, policy.READ_CONSUMER_RECORDS, AccessTarget(consumer_id=consumer_id)),
            "Not authorized to view these records"
        )
        records = self.record_repo.get_records_by_consumer(consumer_id)
        return self._attach_users(records, "lender_id", "lender", ("name",))

    def list_records_for_lender(self, principal: Optional[Principal]) -> List[CreditRecord]:
        enforce(policy.decide(principal, policy.READ_LENDER_RECORDS))
        records = self.record_repo.get_records_by_lender(principal.id)
        return self._attach_users(records, "consumer_id", "consumer", ("name", "email", "id_number"))

    def update_status(self, principal: Optional[Principal], record_id: str, new_status: str,
                      amount: Any = None) -> CreditRecord:
        """
        Appends a payment history entry and sets the current status.
        Only the lender who created the record may update it.
        """
        enforce(policy.authorize_role(principal, policy.UPDATE_RECORD_STATUS))

        new_status = CreditValidator.validate_payment_status(new_status)
        payment_amount = CreditValidator.parse_payment_amount(amount)

        record = self.record_repo.get_record(record_id)
        if record is None:
            raise NotFoundException("Credit record not found")

        enforce(
            policy.decide(principal, policy.UPDATE_RECORD_STATUS, AccessTarget(record_lender_id=record.lender_id)),
            "Not authorized to update this record"
        )

        updated = self.record_repo.append_payment(record_id, PaymentEntry(status=new_status, amount=payment_amount))
        if updated is None:
            raise NotFoundException("Credit record not found")
        return updated

    def compute_score(self, principal: Optional[Principal], consumer_id: str) -> Dict[str, Any]:
        enforce(
            policy.decide(principal, policy.READ_CONSUMER_SCORE, AccessTarget(consumer_id=consumer_id)),
            "Not authorized to view this score"
        )
        records = self.record_repo.get_records_by_consumer(consumer_id)
        logger.info(f"Computing score for consumer {consumer_id} from {len(records)} records")
        return calculate_credit_score(records)

    def _attach_users(self, records: List[CreditRecord], id_field: str, target: str,
                      fields: Tuple[str, ...]) -> List[CreditRecord]:
        """Fills in the counterparty summary on each record. Deleted users are left out."""
        user_ids = sorted({getattr(record, id_field) for record in records})
        users = {user.user_id: user for user in self.user_repo.batch_get_users(user_ids)}
        for record in records:
            user = users.get(getattr(record, id_field))
            if user is not None:
                setattr(record, target, user.summary(*fields))
        return records


class UserAdminService:
    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo

    def list_users(self, principal: Optional[Principal]) -> List[User]:
        enforce(policy.decide(principal, policy.LIST_USERS))
        return self.user_repo.list_users()

    def get_stats(self, principal: Optional[Principal]) -> Dict[str, int]:
        enforce(policy.decide(principal, policy.USER_STATS))
        return {
            "total_users": self.user_repo.count_users(),
            "total_consumers": self.user_repo.count_users(role=ROLE_CONSUMER),
            "total_lenders": self.user_repo.count_users(role=ROLE_LENDER),
            "pending_approvals": self.user_repo.count_users(role=ROLE_LENDER, is_approved=False)
        }

    def list_pending_lenders(self, principal: Optional[Principal]) -> List[User]:
        enforce(policy.decide(principal, policy.LIST_PENDING_LENDERS))
        return self.user_repo.list_users_by_role(ROLE_LENDER, is_approved=False)

    def approve_lender(self, principal: Optional[Principal], user_id: str) -> User:
        enforce(policy.decide(principal, policy.APPROVE_LENDER))

        user = self.user_repo.get_user(user_id)
        if user is None:
            raise NotFoundException("User not found")
        if user.role != ROLE_LENDER:
            raise ValidationException("Only lender accounts can be approved")

        if not self.user_repo.approve_lender(user_id):
            raise NotFoundException("User not found")
        user.is_approved = True
        return user

    def delete_user(self, principal: Optional[Principal], user_id: str) -> None:
        enforce(policy.decide(principal, policy.DELETE_USER))
        if not self.user_repo.delete_user(user_id):
            raise NotFoundException("User not found")

    def search_user(self, principal: Optional[Principal], email: Optional[str], role: Optional[str] = None) -> User:
        enforce(policy.decide(principal, policy.SEARCH_USER))

        email = CreditValidator.optional_email(email)
        if not email:
            raise ValidationException("Email is required")
        if role:
            CreditValidator.validate_role(role)

        user = self.user_repo.get_user_by_email(email, role)
        if user is None:
            raise NotFoundException("User not found")
        return user
