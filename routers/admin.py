from typing import Optional

from fastapi import APIRouter, Body, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import AuthProvider, AuthProviderError, get_auth_provider, get_principal
from core.config import logger, ADMIN_EMAILS
from core.database import get_db
from core.permissions import ADMIN_PERMISSIONS, require_admin_permission, resolve_admin_access
from models.base import utcnow
from models.order import Order, ORDER_STATUSES, ORDER_PAID
from models.seller import SellerAccount, SELLER_STATUSES
from models.user import UserProfile
from models.withdrawal import Withdrawal
from utils.admin_roles import AdminRoleStore
from utils.auth_errors import auth_error_message, pick_lang
from utils.notifications import notify_seller_approved
from utils.rate_limit import admin_login_throttle, check_rate_limit, client_ip
from utils.sellers import SellerError, approve_seller, reject_seller, seller_view
from utils.withdrawals import WithdrawalError, set_withdrawal_status

router = APIRouter(prefix="/api/admin", tags=["admin"])


# --- Session ---

@router.post("/login")
async def admin_login(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """
    Body: { "email": str, "password": str }
    Allowed when the principal is on the owner allow-list, carries the custom claim admin=true,
    or holds a non-empty role grant. Anyone else is signed out again.
    """
    if not check_rate_limit(admin_login_throttle, f"admin_login:{client_ip(request)}"):
        return JSONResponse({"error": "rate_limited", "message": "Too many attempts. Please try again later."}, status_code=429)

    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")
    if not email or not password:
        return JSONResponse({"error": "invalid_credentials", "message": "Email and password are required"}, status_code=400)
    try:
        principal = await provider.authenticate(email, password)
    except AuthProviderError as ex:
        lang = pick_lang(request.headers.get("Accept-Language"))
        return JSONResponse({"error": ex.code, "message": auth_error_message(ex.code, ex.message, lang)}, status_code=401)

    access = resolve_admin_access(principal.email, ADMIN_EMAILS, AdminRoleStore(db))
    allowed = access.can_access
    if not allowed:
        try:
            claims = await provider.get_custom_claims(principal.uid)
        except Exception as ex:
            logger.warning(f"[admin.login] claims lookup failed for {principal.uid}: {ex}")
            claims = {}
        allowed = claims.get("admin") is True
    if not allowed:
        await provider.sign_out(principal.uid)
        logger.info(f"[admin.login] {principal.email} refused")
        return JSONResponse({"error": "forbidden", "message": "This account has no admin access"}, status_code=403)

    logger.info(f"[admin.login] {principal.email} signed in")
    return {
        "idToken": principal.id_token,
        "refreshToken": principal.refresh_token,
        "access": access.to_dict(),
    }


@router.get("/me")
async def admin_me(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    return resolve_admin_access(principal.email, ADMIN_EMAILS, AdminRoleStore(db)).to_dict()


# --- Roles ---

@router.get("/roles")
async def roles_list(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    _, err = await require_admin_permission(request, db, provider, "roles")
    if err is not None:
        return err
    return {
        "permissions": list(ADMIN_PERMISSIONS),
        "roles": [r.to_dict() for r in AdminRoleStore(db).list_all()],
    }


@router.post("/roles")
async def roles_set(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Body: { "email" | "id": str, "roles": [str] } replaces the whole role set."""
    principal, err = await require_admin_permission(request, db, provider, "roles")
    if err is not None:
        return err
    email = str(payload.get("email") or payload.get("id") or "").strip().lower()
    roles = payload.get("roles")
    if not email or "@" not in email:
        return JSONResponse({"error": "invalid_email", "message": "A valid email is required"}, status_code=400)
    if not isinstance(roles, list):
        return JSONResponse({"error": "invalid_roles", "message": "roles must be a list"}, status_code=400)
    row = AdminRoleStore(db).set(email, roles, updated_by=principal.email)
    logger.info(f"[admin.roles] {principal.email} set {email} -> {row.roles}")
    return {"success": True, "role": row.to_dict()}


@router.delete("/roles")
async def roles_delete(
    request: Request,
    email: Optional[str] = None,
    payload: Optional[dict] = Body(None),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    principal, err = await require_admin_permission(request, db, provider, "roles")
    if err is not None:
        return err
    target = (email or str((payload or {}).get("email") or (payload or {}).get("id") or "")).strip().lower()
    if not target:
        return JSONResponse({"error": "invalid_email", "message": "email is required"}, status_code=400)
    deleted = AdminRoleStore(db).delete(target)
    logger.info(f"[admin.roles] {principal.email} removed {target} (existed={deleted})")
    return {"success": True, "deleted": deleted}


# --- Sellers ---

@router.get("/sellers")
async def sellers_list(
    request: Request,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    _, err = await require_admin_permission(request, db, provider, "sellers")
    if err is not None:
        return err
    q = db.query(SellerAccount)
    if status:
        st = status.strip().lower()
        if st not in SELLER_STATUSES:
            return JSONResponse({"error": "invalid_status"}, status_code=400)
        q = q.filter(SellerAccount.approval_status == st)
    return [seller_view(s) for s in q.order_by(SellerAccount.created_at.desc()).all()]


@router.post("/sellers/{uid}/approve")
async def seller_approve(uid: str, request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal, err = await require_admin_permission(request, db, provider, "sellers")
    if err is not None:
        return err
    try:
        seller, changed = approve_seller(db, uid)
    except SellerError as ex:
        return JSONResponse(ex.to_dict(), status_code=ex.status_code)
    if changed:
        logger.info(f"[seller.approve] {uid} approved by {principal.email}")
        notify_seller_approved(seller)
    return {"success": True, "changed": changed, "seller": seller_view(seller)}


@router.post("/sellers/{uid}/reject")
async def seller_reject(uid: str, request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal, err = await require_admin_permission(request, db, provider, "sellers")
    if err is not None:
        return err
    try:
        seller, changed = reject_seller(db, uid)
    except SellerError as ex:
        return JSONResponse(ex.to_dict(), status_code=ex.status_code)
    if changed:
        logger.info(f"[seller.reject] {uid} rejected by {principal.email}")
        # The seller may still hold a session from before the decision
        await provider.sign_out(uid)
    return {"success": True, "changed": changed, "seller": seller_view(seller)}


# --- Customers ---

@router.get("/customers")
async def customers_list(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    _, err = await require_admin_permission(request, db, provider, "customers")
    if err is not None:
        return err
    rows = db.query(UserProfile).order_by(UserProfile.created_at.desc()).all()
    return [u.to_dict() for u in rows]


# --- Orders ---

@router.get("/orders")
async def orders_list(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    _, err = await require_admin_permission(request, db, provider, "orders")
    if err is not None:
        return err
    rows = db.query(Order).order_by(Order.created_at.desc()).all()
    return [o.to_dict() for o in rows]


@router.patch("/orders")
async def orders_update(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Body: { "id": str, "status": pending|paid|cancelled }. Amounts and items are frozen."""
    principal, err = await require_admin_permission(request, db, provider, "orders")
    if err is not None:
        return err
    order_id = str(payload.get("id") or "").strip()
    status = str(payload.get("status") or "").strip().lower()
    if status not in ORDER_STATUSES:
        return JSONResponse({"error": "invalid_status", "message": f"Status must be one of {', '.join(ORDER_STATUSES)}"}, status_code=400)
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    ignored = sorted(k for k in payload.keys() if k not in ("id", "status"))
    if ignored:
        logger.info(f"[admin.orders] ignoring frozen fields {ignored} on {order_id}")
    if order.status != status:
        order.status = status
        if status == ORDER_PAID and not order.paid_at:
            order.paid_at = utcnow()
        db.commit()
        db.refresh(order)
        logger.info(f"[admin.orders] {order_id} -> {status} by {principal.email}")
    return {"success": True, "order": order.to_dict()}


# --- Withdrawals ---

@router.get("/withdrawals")
async def withdrawals_list(
    request: Request,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    _, err = await require_admin_permission(request, db, provider, "withdrawals")
    if err is not None:
        return err
    q = db.query(Withdrawal)
    if status:
        q = q.filter(Withdrawal.status == status.strip().lower())
    return [w.to_dict() for w in q.order_by(Withdrawal.created_at.desc()).all()]


@router.patch("/withdrawals")
async def withdrawals_update(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Body: { "id": str, "status": approved|rejected }"""
    principal, err = await require_admin_permission(request, db, provider, "withdrawals")
    if err is not None:
        return err
    try:
        row = set_withdrawal_status(db, str(payload.get("id") or ""), str(payload.get("status") or ""), reviewed_by=principal.email)
    except WithdrawalError as ex:
        return JSONResponse(ex.to_dict(), status_code=ex.status_code)
    return {"success": True, "withdrawal": row.to_dict()}
