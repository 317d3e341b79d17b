"""
In-app notifications and transactional emails. Everything here is best-effort:
failures are logged and never propagate to the operation that triggered them.
"""
from html import escape
from typing import Optional

from sqlalchemy.orm import Session

from core.config import logger, FRONTEND_ORIGIN
from models.notification import Notification
from models.order import Order
from models.seller import SellerAccount
from utils.emailing import render_email, send_email_smtp


def create_notification(db: Session, user_id: str, title: str, body: str = "") -> Notification:
    row = Notification(user_id=user_id, title=title, body=body or "")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def notify_order_placed(db: Session, order: Order, customer_email: Optional[str]) -> None:
    try:
        create_notification(
            db,
            order.user_id,
            "Order received",
            f"Your order {order.id[:8].upper()} was created and is awaiting payment.",
        )
    except Exception as ex:
        db.rollback()
        logger.warning(f"[checkout] in-app notification failed for order {order.id}: {ex}")

    if not customer_email:
        return
    try:
        html = render_email(
            "order_confirmation.html",
            title="Your order has been received",
            intro=f"Thank you for your order. Reference: <strong>{order.id[:8].upper()}</strong>",
            order=order.to_dict(),
            button_label="View my orders",
            button_url=f"{FRONTEND_ORIGIN}/orders",
            footer_note="You will be notified once your payment is confirmed.",
        )
        if not send_email_smtp(customer_email, "Your order has been received", html):
            logger.warning(f"[checkout] confirmation email not sent for order {order.id}")
    except Exception as ex:
        logger.warning(f"[checkout] confirmation email failed for order {order.id}: {ex}")


def notify_seller_approved(seller: SellerAccount) -> None:
    if not seller.email:
        return
    try:
        html = render_email(
            "email_basic.html",
            title="Your seller account is approved",
            intro=f"Hello {escape(seller.name or '')}, your store is now active. Sign in with the username <strong>{escape(seller.username)}</strong>.",
            button_label="Sign in",
            button_url=f"{FRONTEND_ORIGIN}/seller/login",
            footer_note="",
        )
        if not send_email_smtp(seller.email, "Your seller account is approved", html):
            logger.warning(f"[seller.approve] approval email not sent to {seller.email}")
    except Exception as ex:
        logger.warning(f"[seller.approve] approval email failed for {seller.uid}: {ex}")
