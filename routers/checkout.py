import os
from typing import List, Optional, Tuple

from fastapi import APIRouter, Request, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from standardwebhooks import Webhook

from core.auth import AuthProvider, get_auth_provider, get_principal
from core.config import logger, FRONTEND_ORIGIN, FREE_DELIVERY_THRESHOLD, STORE_CURRENCY, DODO_WEBHOOK_SECRET
from core.database import get_db
from models.base import utcnow, new_id
from models.order import Order, ORDER_PENDING, ORDER_PAID, ORDER_CANCELLED
from models.product import Product
from utils import dodo
from utils.coupons import find_coupon, customer_usage_count, record_coupon_usage, normalize_code
from utils.notifications import notify_order_placed
from utils.pricing import CartLine, PricedCart, price_cart

router = APIRouter(prefix="/api", tags=["checkout"])

MAX_LINE_QUANTITY = int(os.getenv("MAX_LINE_QUANTITY", "99"))

_PAID_EVENTS = ("payment.succeeded", "checkout.completed", "checkout.session.completed")
_FAILED_EVENTS = ("payment.failed", "payment.cancelled", "checkout.expired", "checkout.session.expired")


def _cart_lines(db: Session, items) -> Tuple[Optional[List[CartLine]], Optional[JSONResponse]]:
    """Validate and price items against the catalogue so clients cannot set their own prices."""
    if not isinstance(items, list) or not items:
        return None, JSONResponse({"error": "empty_cart", "message": "No items in cart"}, status_code=400)
    lines: List[CartLine] = []
    for raw in items:
        if not isinstance(raw, dict):
            return None, JSONResponse({"error": "invalid_items", "message": "Malformed cart item"}, status_code=400)
        pid = str(raw.get("id") or "").strip()
        try:
            qty = int(raw.get("quantity") or 0)
        except (TypeError, ValueError):
            qty = 0
        if not pid or qty < 1 or qty > MAX_LINE_QUANTITY:
            return None, JSONResponse({"error": "invalid_items", "message": f"Invalid quantity for item {pid or '?'}"}, status_code=400)
        product = db.query(Product).filter(Product.id == pid).first()
        if product is None:
            return None, JSONResponse({"error": "invalid_items", "message": f"Unknown product {pid}"}, status_code=400)
        if not product.in_stock:
            return None, JSONResponse({"error": "invalid_items", "message": f"{product.name} is out of stock"}, status_code=400)
        lines.append(CartLine(
            product_id=product.id,
            unit_price_cents=int(product.price_cents or 0),
            quantity=qty,
            name=product.name,
            name_ar=product.name_ar or "",
            image=product.image or "",
            category=product.category or "",
            seller_id=product.seller_id,
            seller_name=product.seller_name,
            store_name=product.store_name,
        ))
    return lines, None


def _price(db: Session, lines: List[CartLine], coupon_code: Optional[str], user_id: Optional[str]) -> PricedCart:
    coupon = find_coupon(db, coupon_code)
    usage = customer_usage_count(db, coupon.id, user_id) if coupon else 0
    priced = price_cart(lines, coupon, customer_usage_count=usage, free_delivery_threshold=FREE_DELIVERY_THRESHOLD)
    if coupon_code and coupon is None:
        priced.coupon_rejection = "not_found"
    return priced


@router.post("/checkout/validate-coupon")
async def validate_coupon(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Cart-page preview: prices the cart against a coupon with no side effects."""
    lines, err = _cart_lines(db, payload.get("items"))
    if err is not None:
        return err
    principal = await get_principal(request, provider)
    code = normalize_code(payload.get("couponCode"))
    if not code:
        return JSONResponse({"error": "invalid_coupon", "message": "Coupon code is required"}, status_code=400)
    priced = _price(db, lines, code, principal.uid if principal else None)
    return {"valid": priced.coupon_rejection is None, **priced.to_dict()}


@router.post("/checkout")
async def create_checkout(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """
    Body: { "items": [{id, quantity, ...}], "couponCode": str?, "userId": str? }
    Returns: { "url": hosted checkout url, "orderId": str }
    """
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    body_uid = str(payload.get("userId") or "").strip()
    if body_uid and body_uid != principal.uid:
        return JSONResponse({"error": "forbidden"}, status_code=403)

    lines, err = _cart_lines(db, payload.get("items"))
    if err is not None:
        return err

    priced = _price(db, lines, payload.get("couponCode"), principal.uid)
    if priced.subtotal_cents <= 0:
        return JSONResponse({"error": "invalid_amount", "message": "Order total must be greater than zero"}, status_code=400)

    # Id is needed in the session metadata before the row is written
    order = Order(
        id=new_id(),
        user_id=principal.uid,
        seller_ids=priced.seller_ids,
        items=[line.to_order_item() for line in priced.lines],
        currency=STORE_CURRENCY,
        subtotal_cents=priced.subtotal_cents,
        discount_cents=priced.discount_cents,
        total_cents=priced.total_cents,
        coupon_code=priced.coupon_code,
        status=ORDER_PENDING,
        free_delivery_eligible=priced.free_delivery_eligible,
        free_delivery_threshold=priced.free_delivery_threshold,
        seller_statuses={},
    )

    free_flag = "1" if priced.free_delivery_eligible else "0"
    success_url = f"{FRONTEND_ORIGIN}/success?order_id={order.id}&free_delivery={free_flag}"

    if priced.total_cents <= 0:
        # Fully discounted: nothing to collect, so no payment session
        order.status = ORDER_PAID
        order.paid_at = utcnow()
        db.add(order)
        db.commit()
        db.refresh(order)
        logger.info(f"[checkout] order {order.id} fully discounted by {priced.coupon_code}, marked paid")
        _after_order_placed(db, order, priced, principal)
        return {"url": success_url, "orderId": order.id}

    checkout_payload = dodo.build_checkout_payload(
        amount_cents=priced.total_cents,
        customer_email=principal.email or None,
        success_url=success_url,
        cancel_url=f"{FRONTEND_ORIGIN}/cart",
        metadata={
            "order_id": order.id,
            "user_id": principal.uid,
            "free_delivery": "yes" if priced.free_delivery_eligible else "no",
            "free_delivery_threshold": str(priced.free_delivery_threshold),
            "coupon_code": priced.coupon_code or "",
            "discount_cents": str(priced.discount_cents),
        },
    )
    data, error = await dodo.create_checkout_session(checkout_payload)
    url = dodo.pick_checkout_url(data or {})
    if not url:
        logger.error(f"[checkout] session creation failed for {principal.uid}: {error}")
        return JSONResponse({"error": "session_creation_failed", "message": "Failed to create checkout session"}, status_code=502)

    order.payment_session_id = dodo.pick_session_id(data or {})
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info(f"[checkout] order {order.id} pending, total={priced.total_cents}c session={order.payment_session_id}")

    _after_order_placed(db, order, priced, principal)
    return {"url": url, "orderId": order.id}


def _after_order_placed(db: Session, order: Order, priced: PricedCart, principal) -> None:
    if priced.coupon_id and priced.discount_cents > 0:
        try:
            record_coupon_usage(db, priced.coupon_id, principal.uid)
        except Exception as ex:
            db.rollback()
            logger.exception(f"[checkout] coupon usage update failed for order {order.id}: {ex}")

    notify_order_placed(db, order, principal.email)


def _verified_payload(raw_body: bytes, request: Request) -> Optional[dict]:
    """Standard Webhooks verification when a whsec_ secret is configured; raises on a bad signature."""
    secret = (DODO_WEBHOOK_SECRET or "").strip()
    if not secret.startswith("whsec_"):
        return None
    headers = {
        "webhook-id": request.headers.get("webhook-id") or "",
        "webhook-timestamp": request.headers.get("webhook-timestamp") or "",
        "webhook-signature": request.headers.get("webhook-signature") or "",
    }
    return Webhook(secret).verify(data=raw_body, headers=headers)


@router.post("/payments/webhook")
async def payments_webhook(request: Request, db: Session = Depends(get_db)):
    raw_body = await request.body()
    try:
        payload = _verified_payload(raw_body, request)
    except Exception as ex:
        logger.warning(f"[payments.webhook] signature verification failed: {ex}")
        return JSONResponse({"error": "invalid signature"}, status_code=401)

    if payload is None:
        if DODO_WEBHOOK_SECRET:
            # Non-whsec secret: shared-secret header
            if (request.headers.get("X-Webhook-Secret") or "") != DODO_WEBHOOK_SECRET:
                return JSONResponse({"error": "unauthorized"}, status_code=401)
        try:
            payload = await request.json()
        except Exception as ex:
            logger.warning(f"[payments.webhook] invalid JSON: {ex}")
            return JSONResponse({"error": "invalid JSON"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"error": "invalid payload"}, status_code=400)

    evt_type = str(payload.get("type") or payload.get("event") or "").strip().lower()
    obj = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    metadata = obj.get("metadata") if isinstance(obj.get("metadata"), dict) else {}
    order_id = str(metadata.get("order_id") or "").strip()
    session_id = str(obj.get("checkout_session_id") or obj.get("session_id") or obj.get("payment_id") or "").strip()

    order = None
    if order_id:
        order = db.query(Order).filter(Order.id == order_id).first()
    if order is None and session_id:
        order = db.query(Order).filter(Order.payment_session_id == session_id).first()
    if order is None:
        logger.info(f"[payments.webhook] {evt_type}: no matching order (order_id={order_id!r} session={session_id!r})")
        return {"ok": True, "matched": False}

    if evt_type in _PAID_EVENTS:
        if order.status != ORDER_PAID:
            order.status = ORDER_PAID
            order.paid_at = utcnow()
            db.commit()
            logger.info(f"[payments.webhook] order {order.id} paid")
    elif evt_type in _FAILED_EVENTS:
        # A paid order is only cancelled by an admin
        if order.status == ORDER_PENDING:
            order.status = ORDER_CANCELLED
            db.commit()
            logger.info(f"[payments.webhook] order {order.id} cancelled ({evt_type})")
    else:
        logger.info(f"[payments.webhook] ignoring event {evt_type or '?'} for order {order.id}")
    return {"ok": True, "matched": True, "status": order.status}
