# credittrack/functions/credit_scorer/scorer.py

import logging
import math
from decimal import Decimal
from typing import List, Dict, Tuple, Any

from credittrack.shared.models import CreditRecord, STATUS_LATE, STATUS_DEFAULTED, STATUS_OUTSTANDING

logger = logging.getLogger(__name__)

BASE_SCORE = 700
MIN_SCORE = 300
MAX_SCORE = 850

LATE_PAYMENT_PENALTY = 10
DEFAULT_PENALTY = 50
DEBT_PENALTY_UNIT = 1000  # 1 point per 1000 of outstanding debt

NO_HISTORY_MESSAGE = "No credit history available"

# Upper bounds are exclusive; first match wins
RATING_THRESHOLDS = [
    (580, "Poor"),
    (670, "Fair"),
    (740, "Good"),
    (800, "Very Good"),
]
TOP_RATING = "Excellent"


def count_history_events(records: List[CreditRecord]) -> Tuple[int, int]:
    """
    Tallies Late and Defaulted entries across every payment history.
    Past entries count even when the record has since been paid off.
    """
    late_payments = 0
    defaults = 0
    for record in records:
        for payment in record.payment_history or []:
            if payment.status == STATUS_LATE:
                late_payments += 1
            elif payment.status == STATUS_DEFAULTED:
                defaults += 1
    return late_payments, defaults


def calculate_outstanding_debt(records: List[CreditRecord]) -> Decimal:
    """Sums the amounts of records whose current status is Outstanding."""
    debt = Decimal("0")
    for record in records:
        if record.payment_status == STATUS_OUTSTANDING:
            debt += Decimal(str(record.amount or 0))
    return debt


def determine_rating(score: int) -> str:
    for upper_bound, rating in RATING_THRESHOLDS:
        if score < upper_bound:
            return rating
    return TOP_RATING


def _as_number(value: Decimal):
    return int(value) if value == value.to_integral_value() else float(value)


def calculate_credit_score(records: List[CreditRecord]) -> Dict[str, Any]:
    """
    Derives a consumer's score from the full set of their credit records.

    Starts at 700, deducts 10 per Late history entry, 50 per Defaulted entry
    and 1 per whole 1000 of current outstanding debt, then clamps to 300-850.
    """
    if not records:
        return {"score": BASE_SCORE, "message": NO_HISTORY_MESSAGE}

    late_payments, defaults = count_history_events(records)
    outstanding_debt = calculate_outstanding_debt(records)

    raw_score = BASE_SCORE
    raw_score -= late_payments * LATE_PAYMENT_PENALTY
    raw_score -= defaults * DEFAULT_PENALTY
    raw_score -= math.floor(outstanding_debt / DEBT_PENALTY_UNIT)

    score = max(MIN_SCORE, min(raw_score, MAX_SCORE))
    rating = determine_rating(score)

    logger.info(f"Calculated credit score: {score} ({rating}). Raw score before clamping: {raw_score}")

    return {
        "score": score,
        "rating": rating,
        "factors": {
            "late_payments": late_payments,
            "defaults": defaults,
            "outstanding_debt": _as_number(outstanding_debt),
            "total_records": len(records)
        }
    }
