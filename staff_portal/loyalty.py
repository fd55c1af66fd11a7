# ---------------------------- loyalty.py ----------------------------
"""Loyalty ledger.

Accounts hold a running balance; every change to it goes through an
append-only LoyaltyTransaction written in the same database transaction as
the balance update. Callers own the commit.
"""
from sqlalchemy import or_

from .extensions import db
from .models import LoyaltyAccount, LoyaltyTransaction, TransactionType

# (minimum lifetime points, tier), highest first
TIERS = (
    (10000, "platinum"),
    (5000, "gold"),
    (1000, "silver"),
    (0, "bronze"),
)

ADJUSTMENT_TYPES = (
    TransactionType.EARN.value,
    TransactionType.REDEEM.value,
    TransactionType.ADJUST.value,
)


class LoyaltyError(Exception):
    pass


class InsufficientPointsError(LoyaltyError):
    def __init__(self, balance):
        super().__init__(f"Insufficient points. Current balance: {balance}")
        self.balance = balance


def tier_for(total_earned):
    for threshold, name in TIERS:
        if total_earned >= threshold:
            return name
    return TIERS[-1][1]


def find_account(user_id=None, email=None, phone=None):
    filters = []
    if user_id:
        filters.append(LoyaltyAccount.user_id == str(user_id))
    if email:
        filters.append(LoyaltyAccount.email == email)
    if phone:
        filters.append(LoyaltyAccount.phone == phone)
    if not filters:
        return None
    return LoyaltyAccount.query.filter(or_(*filters)).order_by(LoyaltyAccount.id).first()


def lookup_account(identifier, lookup_type="userId"):
    if lookup_type == "email":
        return LoyaltyAccount.query.filter_by(email=identifier).first()
    if lookup_type == "phone":
        return LoyaltyAccount.query.filter_by(phone=identifier).first()
    return LoyaltyAccount.query.filter_by(user_id=str(identifier)).first()


def _apply(account, transaction_type, points):
    account.points = (account.points or 0) + points
    if points > 0:
        account.total_earned = (account.total_earned or 0) + points
    elif transaction_type in (TransactionType.REDEEM.value, TransactionType.EXPIRE.value):
        account.total_redeemed = (account.total_redeemed or 0) + abs(points)
    account.tier = tier_for(account.total_earned)


def award_points(points, reason, user_id=None, email=None, phone=None,
                 reference_type=None, reference_id=None, staff_user_id=None, metadata=None):
    """Find or create the account for any of the identifiers and credit it.

    Returns (transaction, account). Nothing is committed.
    """
    if points <= 0:
        raise LoyaltyError("Points must be a positive integer")
    if not (user_id or email or phone):
        raise LoyaltyError("User identifier required (userId, email, or phone)")

    account = find_account(user_id=user_id, email=email, phone=phone)
    if account is None:
        account = LoyaltyAccount(
            user_id=str(user_id) if user_id else None,
            email=email or None,
            phone=phone or None,
            points=0,
            total_earned=0,
            total_redeemed=0,
        )
        db.session.add(account)
        db.session.flush()

    transaction = LoyaltyTransaction(
        loyalty_account_id=account.id,
        transaction_type=TransactionType.EARN.value,
        points=points,
        reason=reason,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        staff_user_id=staff_user_id,
        meta=metadata or {},
    )
    db.session.add(transaction)
    _apply(account, TransactionType.EARN.value, points)
    db.session.flush()
    return transaction, account


def adjust_points(account, adjustment_type, points, reason, staff):
    """Manual staff adjustment. Redemptions are stored as negative points."""
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise LoyaltyError("Invalid adjustment type. Must be earn, redeem, or adjust")

    final_points = -abs(points) if adjustment_type == TransactionType.REDEEM.value else points
    if account.points + final_points < 0:
        raise InsufficientPointsError(account.points)

    transaction = LoyaltyTransaction(
        loyalty_account_id=account.id,
        transaction_type=adjustment_type,
        points=final_points,
        reason=f"Manual adjustment: {reason}",
        reference_type="manual_adjustment",
        staff_user_id=staff.id,
        meta={
            "staff_user": staff.full_name,
            "adjustment_reason": reason,
            "manual_adjustment": True,
        },
    )
    db.session.add(transaction)
    _apply(account, adjustment_type, final_points)
    db.session.flush()
    return transaction
