from fastapi import APIRouter, Body, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import AuthProvider, get_auth_provider
from core.config import logger
from core.database import get_db
from core.permissions import require_admin_permission
from models.base import new_id
from models.coupon import Coupon, CouponUsage
from models.product import Product
from utils.catalog import apply_product_fields, ProductValidationError
from utils.coupons import apply_coupon_fields, CouponValidationError, normalize_code

router = APIRouter(prefix="/api/admin", tags=["admin-catalog"])


# --- Products ---

@router.get("/products")
async def products_list(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    _, err = await require_admin_permission(request, db, provider, "products")
    if err is not None:
        return err
    return [p.to_dict() for p in db.query(Product).order_by(Product.created_at.desc()).all()]


@router.post("/products")
async def products_create(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    principal, err = await require_admin_permission(request, db, provider, "products")
    if err is not None:
        return err
    product = Product(id=new_id())
    try:
        apply_product_fields(product, payload, creating=True)
    except ProductValidationError as ex:
        return JSONResponse({"error": "invalid_product", "message": str(ex)}, status_code=400)
    for key, attr in (("sellerId", "seller_id"), ("sellerName", "seller_name"), ("storeName", "store_name")):
        if payload.get(key):
            setattr(product, attr, str(payload[key]).strip())
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"[admin.products] {principal.email} created {product.id}")
    return {"id": product.id, "product": product.to_dict()}


@router.patch("/products/{product_id}")
async def products_update(
    product_id: str,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    _, err = await require_admin_permission(request, db, provider, "products")
    if err is not None:
        return err
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    try:
        apply_product_fields(product, payload)
    except ProductValidationError as ex:
        return JSONResponse({"error": "invalid_product", "message": str(ex)}, status_code=400)
    db.commit()
    db.refresh(product)
    return {"success": True, "product": product.to_dict()}


@router.delete("/products/{product_id}")
async def products_delete(product_id: str, request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal, err = await require_admin_permission(request, db, provider, "products")
    if err is not None:
        return err
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    db.delete(product)
    db.commit()
    logger.info(f"[admin.products] {principal.email} deleted {product_id}")
    return {"success": True}


@router.patch("/inventory/{product_id}")
async def inventory_update(
    product_id: str,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Body: { "inStock": bool }"""
    _, err = await require_admin_permission(request, db, provider, "inventory")
    if err is not None:
        return err
    if "inStock" not in payload:
        return JSONResponse({"error": "invalid_payload", "message": "inStock is required"}, status_code=400)
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    product.in_stock = bool(payload.get("inStock"))
    db.commit()
    db.refresh(product)
    return {"success": True, "product": product.to_dict()}


# --- Coupons ---

@router.get("/coupons")
async def coupons_list(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    _, err = await require_admin_permission(request, db, provider, "coupons")
    if err is not None:
        return err
    return [c.to_dict() for c in db.query(Coupon).order_by(Coupon.created_at.desc()).all()]


def _code_taken(db: Session, code: str, exclude_id: str = "") -> bool:
    q = db.query(Coupon).filter(Coupon.code == normalize_code(code))
    if exclude_id:
        q = q.filter(Coupon.id != exclude_id)
    return q.first() is not None


@router.post("/coupons")
async def coupons_create(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    principal, err = await require_admin_permission(request, db, provider, "coupons")
    if err is not None:
        return err
    coupon = Coupon(id=new_id())
    try:
        apply_coupon_fields(coupon, payload, creating=True)
    except CouponValidationError as ex:
        return JSONResponse({"error": "invalid_coupon", "message": str(ex)}, status_code=400)
    if _code_taken(db, coupon.code):
        return JSONResponse({"error": "duplicate_code", "message": f"Coupon {coupon.code} already exists"}, status_code=409)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    logger.info(f"[admin.coupons] {principal.email} created {coupon.code}")
    return {"id": coupon.id, "coupon": coupon.to_dict()}


@router.patch("/coupons/{coupon_id}")
async def coupons_update(
    coupon_id: str,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    _, err = await require_admin_permission(request, db, provider, "coupons")
    if err is not None:
        return err
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
    if coupon is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    if "code" in payload and _code_taken(db, payload.get("code"), exclude_id=coupon.id):
        return JSONResponse({"error": "duplicate_code", "message": "Coupon code already exists"}, status_code=409)
    try:
        apply_coupon_fields(coupon, payload)
    except CouponValidationError as ex:
        db.rollback()
        return JSONResponse({"error": "invalid_coupon", "message": str(ex)}, status_code=400)
    db.commit()
    db.refresh(coupon)
    return {"success": True, "coupon": coupon.to_dict()}


@router.delete("/coupons/{coupon_id}")
async def coupons_delete(coupon_id: str, request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal, err = await require_admin_permission(request, db, provider, "coupons")
    if err is not None:
        return err
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
    if coupon is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    db.query(CouponUsage).filter(CouponUsage.coupon_id == coupon_id).delete(synchronize_session=False)
    db.delete(coupon)
    db.commit()
    logger.info(f"[admin.coupons] {principal.email} deleted {coupon_id}")
    return {"success": True}


@router.get("/coupons-usage")
async def coupons_usage(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    """Per-coupon totals with the per-customer counters underneath."""
    _, err = await require_admin_permission(request, db, provider, "coupons")
    if err is not None:
        return err
    usage_by_coupon: dict = {}
    for row in db.query(CouponUsage).order_by(CouponUsage.updated_at.desc()).all():
        usage_by_coupon.setdefault(row.coupon_id, []).append(row.to_dict())
    out = []
    for c in db.query(Coupon).order_by(Coupon.code.asc()).all():
        out.append({
            "id": c.id,
            "code": c.code,
            "usageCount": c.usage_count or 0,
            "usageLimit": c.usage_limit,
            "usageLimitPerCustomer": c.usage_limit_per_customer,
            "lastUsedAt": c.to_dict()["lastUsedAt"],
            "customers": usage_by_coupon.get(c.id, []),
        })
    return out
