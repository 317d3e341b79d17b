"""
Storefront content settings: home banners, marketing tool, shipping and landing pages.
"""
from typing import Optional

from fastapi import APIRouter, Body, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import AuthProvider, get_auth_provider
from core.config import logger
from core.database import get_db
from core.permissions import require_admin_permission
from utils.settings_docs import PAGE_KEYS, SettingsValidationError, read_settings, write_settings

router = APIRouter(prefix="/api/admin", tags=["admin-content"])

# route name -> (settings path, permission)
_SINGLETONS = {
    "banners": ("settings/homeAds", "banners"),
    "marketing": ("settings/marketingTool", "marketing"),
    "shipping": ("settings/shipping", "shipping"),
}


def _invalid(ex: SettingsValidationError) -> JSONResponse:
    return JSONResponse({"error": "invalid_settings", "message": f"Invalid data for {ex.path}", "details": ex.errors}, status_code=400)


async def _read_singleton(name: str, request: Request, db: Session, provider: AuthProvider):
    path, permission = _SINGLETONS[name]
    _, err = await require_admin_permission(request, db, provider, permission)
    if err is not None:
        return err
    return read_settings(db, path)


async def _write_singleton(name: str, request: Request, payload: Optional[dict], db: Session, provider: AuthProvider):
    path, permission = _SINGLETONS[name]
    principal, err = await require_admin_permission(request, db, provider, permission)
    if err is not None:
        return err
    if not isinstance(payload, dict):
        return JSONResponse({"error": "invalid_payload"}, status_code=400)
    try:
        doc = write_settings(db, path, payload, updated_by=principal.email)
    except SettingsValidationError as ex:
        return _invalid(ex)
    logger.info(f"[admin.settings] {principal.email} updated {path}")
    return {"success": True, "data": doc}


@router.get("/banners")
async def banners_get(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    return await _read_singleton("banners", request, db, provider)


@router.post("/banners")
async def banners_set(request: Request, payload: dict = Body(...), db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    return await _write_singleton("banners", request, payload, db, provider)


@router.get("/marketing")
async def marketing_get(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    return await _read_singleton("marketing", request, db, provider)


@router.post("/marketing")
async def marketing_set(request: Request, payload: dict = Body(...), db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    return await _write_singleton("marketing", request, payload, db, provider)


@router.get("/shipping")
async def shipping_get(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    return await _read_singleton("shipping", request, db, provider)


@router.post("/shipping")
async def shipping_set(request: Request, payload: dict = Body(...), db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    return await _write_singleton("shipping", request, payload, db, provider)


@router.get("/pages")
async def pages_get(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    _, err = await require_admin_permission(request, db, provider, "pages")
    if err is not None:
        return err
    return {key: read_settings(db, f"pages/{key}") for key in PAGE_KEYS}


@router.post("/pages")
async def pages_set(request: Request, payload: dict = Body(...), db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    """Body: { <pageKey>: {title, titleAr, ...}, ... }. Keys not present are left untouched."""
    principal, err = await require_admin_permission(request, db, provider, "pages")
    if err is not None:
        return err
    unknown = [k for k in payload.keys() if k not in PAGE_KEYS]
    if unknown:
        return JSONResponse({"error": "invalid_page", "message": f"Unknown page keys: {', '.join(unknown)}"}, status_code=400)
    out = {}
    for key in PAGE_KEYS:
        if key not in payload:
            continue
        if not isinstance(payload[key], dict):
            db.rollback()
            return JSONResponse({"error": "invalid_payload", "message": f"{key} must be an object"}, status_code=400)
        try:
            out[key] = write_settings(db, f"pages/{key}", payload[key], updated_by=principal.email, commit=False)
        except SettingsValidationError as ex:
            db.rollback()
            return _invalid(ex)
    db.commit()
    logger.info(f"[admin.settings] {principal.email} updated pages {sorted(out)}")
    return {"success": True, "data": out}
