import asyncio
from typing import Optional

from fastapi import APIRouter, Request, Body, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import AuthProvider, get_auth_provider, get_principal
from core.config import logger, SELLER_APPROVED_COOKIE, SELLER_DOCUMENT_MAX_BYTES, SELLER_REGISTRATION_TIMEOUT_SEC
from core.database import get_db
from models.base import new_id, from_cents
from models.order import Order, SELLER_ORDER_STATUSES
from models.product import Product
from models.seller import SELLER_REJECTED
from models.withdrawal import Withdrawal
from utils.auth_errors import pick_lang
from utils.catalog import apply_product_fields, ProductValidationError
from utils.rate_limit import login_throttle, seller_register_throttle, check_rate_limit, client_ip
from utils.sellers import (
    SellerDocument,
    SellerError,
    SellerRegistration,
    SELLER_NOT_APPROVED,
    SELLER_PROFILE_MISSING,
    SELLER_REJECTED_CODE,
    get_seller,
    login_seller,
    register_seller,
    seller_view,
)
from utils.storage import upload_bytes, write_json_key
from utils.withdrawals import request_withdrawal, seller_balance, seller_item_total_cents, seller_orders, WithdrawalError

router = APIRouter(prefix="/api", tags=["sellers"])


def _rate_limited() -> JSONResponse:
    return JSONResponse({"error": "rate_limited", "message": "Too many attempts. Please try again later."}, status_code=429)


async def _require_seller(request: Request, db: Session, provider: AuthProvider, approved: bool = True):
    """Returns (seller, None) or (None, error response)."""
    principal = await get_principal(request, provider)
    if not principal:
        return None, JSONResponse({"error": "unauthorized"}, status_code=401)
    seller = get_seller(db, principal.uid)
    if seller is None:
        return None, JSONResponse({"error": SELLER_PROFILE_MISSING, "message": "Seller profile missing"}, status_code=401)
    if approved and not seller.approved:
        if seller.approval_status == SELLER_REJECTED:
            return None, JSONResponse({"error": SELLER_REJECTED_CODE, "message": "Seller account was rejected"}, status_code=403)
        return None, JSONResponse({"error": SELLER_NOT_APPROVED, "message": "Your seller account is pending approval"}, status_code=403)
    return seller, None


# ---- Registration / login ----

@router.post("/seller/register")
async def seller_register(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    phone: str = Form(""),
    storeName: str = Form(""),
    storeCategory: str = Form(""),
    document: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """
    Multipart form: name, email, password, phone, storeName, storeCategory, document (file).
    The seller stays pending until an admin approves; no session is left open.
    """
    if not check_rate_limit(seller_register_throttle, f"seller_register:{client_ip(request)}"):
        return _rate_limited()

    doc = None
    if document is not None:
        # One byte past the limit is enough to reject the upload
        content = await document.read(SELLER_DOCUMENT_MAX_BYTES + 1)
        doc = SellerDocument(
            content=content,
            filename=document.filename or "document",
            content_type=document.content_type or "application/octet-stream",
        )
    form = SellerRegistration(
        name=name,
        email=email,
        password=password,
        phone=phone,
        store_name=storeName,
        store_category=storeCategory,
    )
    try:
        seller, created = await asyncio.wait_for(
            register_seller(db, provider, form, doc, upload=upload_bytes, backup=write_json_key),
            timeout=SELLER_REGISTRATION_TIMEOUT_SEC,
        )
    except SellerError as ex:
        return JSONResponse(ex.to_dict(), status_code=ex.status_code)
    except asyncio.TimeoutError:
        logger.warning(f"[seller.register] timed out after {SELLER_REGISTRATION_TIMEOUT_SEC}s for {email}")
        return JSONResponse(
            {"error": "registration_timeout", "message": "Request timed out, please try again"},
            status_code=504,
        )
    return JSONResponse({"ok": True, "created": created, "seller": seller_view(seller)}, status_code=201 if created else 200)


@router.post("/seller-login")
async def seller_login(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """
    Body: { "email" | "username" | "identifier": str, "password": str }
    """
    if not check_rate_limit(login_throttle, f"seller_login:{client_ip(request)}"):
        return _rate_limited()
    identifier = str(payload.get("identifier") or payload.get("email") or payload.get("username") or "")
    password = str(payload.get("password") or "")
    try:
        seller, principal = await login_seller(db, provider, identifier, password, lang=pick_lang(request.headers.get("Accept-Language")))
    except SellerError as ex:
        resp = JSONResponse(ex.to_dict(), status_code=ex.status_code)
        resp.delete_cookie(SELLER_APPROVED_COOKIE, path="/")
        return resp

    resp = JSONResponse({
        "success": True,
        "approved": seller.approved,
        "seller": seller_view(seller),
        "idToken": principal.id_token,
        "refreshToken": principal.refresh_token,
    })
    resp.set_cookie(SELLER_APPROVED_COOKIE, "true", httponly=True, path="/", samesite="lax")
    return resp


@router.post("/seller/logout")
async def seller_logout(request: Request, provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if principal:
        await provider.sign_out(principal.uid)
    resp = JSONResponse({"ok": True})
    resp.delete_cookie(SELLER_APPROVED_COOKIE, path="/")
    return resp


@router.get("/seller/me")
async def seller_me(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    seller, err = await _require_seller(request, db, provider, approved=False)
    if err is not None:
        return err
    return seller_view(seller)


# ---- Dashboard ----

@router.get("/seller/products")
async def seller_products(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    rows = db.query(Product).filter(Product.seller_id == seller.uid).order_by(Product.created_at.desc()).all()
    return [p.to_dict() for p in rows]


@router.post("/seller/products")
async def seller_product_create(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    product = Product(id=new_id(), seller_id=seller.uid, seller_name=seller.name, store_name=seller.store_name)
    try:
        apply_product_fields(product, payload, creating=True)
    except ProductValidationError as ex:
        return JSONResponse({"error": "invalid_product", "message": str(ex)}, status_code=400)
    db.add(product)
    db.commit()
    db.refresh(product)
    return JSONResponse({"id": product.id, "product": product.to_dict()}, status_code=201)


@router.patch("/seller/products/{product_id}")
async def seller_product_update(
    product_id: str,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    product = db.query(Product).filter(Product.id == product_id, Product.seller_id == seller.uid).first()
    if product is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    try:
        apply_product_fields(product, payload)
    except ProductValidationError as ex:
        return JSONResponse({"error": "invalid_product", "message": str(ex)}, status_code=400)
    db.commit()
    db.refresh(product)
    return product.to_dict()


def _order_view(order: Order, seller_id: str) -> dict:
    data = order.to_dict()
    data["items"] = [i for i in data["items"] if isinstance(i, dict) and i.get("sellerId") == seller_id]
    data["sellerTotal"] = from_cents(seller_item_total_cents(order, seller_id))
    data["sellerStatus"] = (order.seller_statuses or {}).get(seller_id, "preparing")
    return data


@router.get("/seller/orders")
async def seller_orders_list(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    return [_order_view(o, seller.uid) for o in seller_orders(db, seller.uid)]


@router.patch("/seller/orders/{order_id}/status")
async def seller_order_status(
    order_id: str,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    status = str(payload.get("status") or "").strip().lower()
    if status not in SELLER_ORDER_STATUSES:
        return JSONResponse({"error": "invalid_status", "message": f"Status must be one of {', '.join(SELLER_ORDER_STATUSES)}"}, status_code=400)
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None or seller.uid not in (order.seller_ids or []):
        return JSONResponse({"error": "not_found"}, status_code=404)
    statuses = dict(order.seller_statuses or {})
    statuses[seller.uid] = status
    # Reassign so the JSON column is flagged dirty
    order.seller_statuses = statuses
    db.commit()
    db.refresh(order)
    return _order_view(order, seller.uid)


@router.get("/seller/balance")
async def seller_balance_view(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    return seller_balance(db, seller)


@router.get("/seller/withdrawals")
async def seller_withdrawals(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    rows = db.query(Withdrawal).filter(Withdrawal.seller_id == seller.uid).order_by(Withdrawal.created_at.desc()).all()
    return [w.to_dict() for w in rows]


@router.post("/seller/withdrawals")
async def seller_withdrawal_request(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    seller, err = await _require_seller(request, db, provider)
    if err is not None:
        return err
    try:
        row = request_withdrawal(db, seller.uid, payload.get("amount"))
    except WithdrawalError as ex:
        return JSONResponse(ex.to_dict(), status_code=ex.status_code)
    return JSONResponse(row.to_dict(), status_code=201)
