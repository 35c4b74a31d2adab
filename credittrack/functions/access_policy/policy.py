# credittrack/functions/access_policy/policy.py
"""
Access policy for credit data and user administration.

Every operation is described by one entry in POLICY_TABLE:
- roles:    roles that are allowed, subject to `requires`
- grants:   predicates that allow the request whatever the role
- requires: ownership predicates that must also hold for a role match

Decisions are plain strings so callers and tests can compare them directly.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from credittrack.shared.models import Principal, ROLE_ADMIN, ROLE_LENDER

logger = logging.getLogger(__name__)

ALLOW = "ALLOW"
DENY = "DENY"
NOT_AUTHENTICATED = "NOT_AUTHENTICATED"

# Operations
CREATE_RECORD = "CREATE_RECORD"
READ_CONSUMER_RECORDS = "READ_CONSUMER_RECORDS"
READ_LENDER_RECORDS = "READ_LENDER_RECORDS"
UPDATE_RECORD_STATUS = "UPDATE_RECORD_STATUS"
READ_CONSUMER_SCORE = "READ_CONSUMER_SCORE"
LIST_USERS = "LIST_USERS"
USER_STATS = "USER_STATS"
LIST_PENDING_LENDERS = "LIST_PENDING_LENDERS"
APPROVE_LENDER = "APPROVE_LENDER"
DELETE_USER = "DELETE_USER"
SEARCH_USER = "SEARCH_USER"


@dataclass(frozen=True)
class AccessTarget:
    """The resource a request is aimed at."""
    consumer_id: Optional[str] = None
    record_lender_id: Optional[str] = None


def is_subject_consumer(principal: Principal, target: Optional[AccessTarget]) -> bool:
    return target is not None and target.consumer_id is not None and principal.id == target.consumer_id


def owns_record(principal: Principal, target: Optional[AccessTarget]) -> bool:
    return target is not None and target.record_lender_id is not None and principal.id == target.record_lender_id


_ADMIN_ONLY = {"roles": frozenset({ROLE_ADMIN}), "grants": (), "requires": ()}
# Any lender may read any consumer's records and score
_CONSUMER_READ = {
    "roles": frozenset({ROLE_ADMIN, ROLE_LENDER}),
    "grants": (is_subject_consumer,),
    "requires": ()
}

POLICY_TABLE = {
    CREATE_RECORD: {"roles": frozenset({ROLE_LENDER}), "grants": (), "requires": ()},
    READ_CONSUMER_RECORDS: _CONSUMER_READ,
    READ_LENDER_RECORDS: {"roles": frozenset({ROLE_LENDER}), "grants": (), "requires": ()},
    UPDATE_RECORD_STATUS: {"roles": frozenset({ROLE_LENDER}), "grants": (), "requires": (owns_record,)},
    READ_CONSUMER_SCORE: _CONSUMER_READ,
    LIST_USERS: _ADMIN_ONLY,
    USER_STATS: _ADMIN_ONLY,
    LIST_PENDING_LENDERS: _ADMIN_ONLY,
    APPROVE_LENDER: _ADMIN_ONLY,
    DELETE_USER: _ADMIN_ONLY,
    SEARCH_USER: {"roles": frozenset({ROLE_ADMIN, ROLE_LENDER}), "grants": (), "requires": ()},
}


def _rule_for(operation: str) -> dict:
    if operation not in POLICY_TABLE:
        raise ValueError(f"Unknown operation: {operation}")
    return POLICY_TABLE[operation]


def authorize_role(principal: Optional[Principal], operation: str) -> str:
    """
    Role gate only: ownership predicates are not evaluated. Lets a caller
    reject on role before it loads the target resource.
    """
    rule = _rule_for(operation)
    if principal is None:
        return NOT_AUTHENTICATED
    if principal.role in rule["roles"]:
        return ALLOW
    return DENY


def decide(principal: Optional[Principal], operation: str, target: Optional[AccessTarget] = None) -> str:
    """Full decision for `operation` on `target`."""
    rule = _rule_for(operation)
    if principal is None:
        return NOT_AUTHENTICATED

    if any(grant(principal, target) for grant in rule["grants"]):
        return ALLOW

    if principal.role in rule["roles"] and all(check(principal, target) for check in rule["requires"]):
        return ALLOW

    logger.warning(f"Access denied | User: {principal.id} | Role: {principal.role} | Operation: {operation}")
    return DENY
