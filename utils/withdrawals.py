"""
Seller balance and withdrawal requests.

Available balance = gross sales (paid orders) - withdrawn_cents, where withdrawn_cents
reserves every pending or approved withdrawal. The reservation is taken with one conditional
UPDATE so concurrent requests cannot overdraw.
"""
from typing import List

from sqlalchemy.orm import Session

from core.config import logger
from models.base import to_cents, from_cents
from models.order import Order, ORDER_PAID
from models.seller import SellerAccount
from models.withdrawal import Withdrawal, WITHDRAWAL_PENDING, WITHDRAWAL_REJECTED, WITHDRAWAL_STATUSES
from utils.sellers import SellerError


class WithdrawalError(SellerError):
    pass


def seller_item_total_cents(order: Order, seller_id: str) -> int:
    total = 0
    for item in order.items or []:
        if not isinstance(item, dict) or item.get("sellerId") != seller_id:
            continue
        try:
            qty = max(0, int(item.get("quantity") or 0))
        except (TypeError, ValueError):
            qty = 0
        total += to_cents(item.get("price") or 0) * qty
    return total


def seller_orders(db: Session, seller_id: str) -> List[Order]:
    """Orders containing at least one item attributed to the seller, newest first."""
    rows = db.query(Order).order_by(Order.created_at.desc()).all()
    return [o for o in rows if seller_id in (o.seller_ids or [])]


def gross_sales_cents(db: Session, seller_id: str) -> int:
    return sum(
        seller_item_total_cents(o, seller_id)
        for o in seller_orders(db, seller_id)
        if o.status == ORDER_PAID
    )


def seller_balance(db: Session, seller: SellerAccount) -> dict:
    gross = gross_sales_cents(db, seller.uid)
    withdrawn = int(seller.withdrawn_cents or 0)
    return {
        "grossSales": from_cents(gross),
        "withdrawn": from_cents(withdrawn),
        "available": from_cents(max(0, gross - withdrawn)),
    }


def request_withdrawal(db: Session, seller_id: str, amount) -> Withdrawal:
    try:
        cents = to_cents(amount)
    except Exception:
        raise WithdrawalError("invalid_amount", "Amount must be a number")
    if cents <= 0:
        raise WithdrawalError("invalid_amount", "Amount must be greater than zero")

    gross = gross_sales_cents(db, seller_id)
    updated = (
        db.query(SellerAccount)
        .filter(
            SellerAccount.uid == seller_id,
            SellerAccount.withdrawn_cents + cents <= gross,
        )
        .update({SellerAccount.withdrawn_cents: SellerAccount.withdrawn_cents + cents}, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise WithdrawalError("insufficient_balance", "Requested amount exceeds available balance")

    row = Withdrawal(seller_id=seller_id, amount_cents=cents, status=WITHDRAWAL_PENDING)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(f"[withdrawals] {seller_id} requested {from_cents(cents)}")
    return row


def set_withdrawal_status(db: Session, withdrawal_id: str, status: str, reviewed_by: str = "") -> Withdrawal:
    status = (status or "").strip().lower()
    if status not in WITHDRAWAL_STATUSES:
        raise WithdrawalError("invalid_status", f"Status must be one of {', '.join(WITHDRAWAL_STATUSES)}")
    row = db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id).first()
    if row is None:
        raise WithdrawalError("not_found", "Withdrawal not found", status_code=404)
    if row.status == status:
        return row
    if row.status != WITHDRAWAL_PENDING:
        raise WithdrawalError("withdrawal_finalized", f"Withdrawal is already {row.status}", status_code=409)

    if status == WITHDRAWAL_REJECTED:
        db.query(SellerAccount).filter(SellerAccount.uid == row.seller_id).update(
            {SellerAccount.withdrawn_cents: SellerAccount.withdrawn_cents - row.amount_cents},
            synchronize_session=False,
        )
    row.status = status
    row.reviewed_by = reviewed_by or None
    db.commit()
    db.refresh(row)
    logger.info(f"[withdrawals] {row.id} -> {status} by {reviewed_by or 'unknown'}")
    return row
