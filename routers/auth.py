from typing import Optional

from fastapi import APIRouter, Request, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.auth import AuthProvider, AuthProviderError, Principal, get_auth_provider, get_principal
from core.config import logger
from core.database import get_db
from models.user import UserProfile
from utils.auth_errors import auth_error_message, pick_lang
from utils.rate_limit import login_throttle, password_reset_throttle, check_rate_limit, client_ip
from utils.validation import validate_email, validate_password

router = APIRouter(prefix="/api", tags=["auth"])

_PROFILE_FIELDS = {"name": "display_name", "phone": "phone", "address": "address", "city": "city"}


def ensure_profile(db: Session, principal: Principal) -> UserProfile:
    """Mirror the auth principal into a profile row the first time it is seen."""
    profile = db.query(UserProfile).filter(UserProfile.uid == principal.uid).first()
    if profile:
        return profile
    profile = UserProfile(uid=principal.uid, email=(principal.email or "").lower(), display_name=principal.display_name)
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first sight
        db.rollback()
        profile = db.query(UserProfile).filter(UserProfile.uid == principal.uid).first()
        if profile is None:
            raise
        return profile
    db.refresh(profile)
    logger.info(f"[auth] mirrored profile for {principal.uid}")
    return profile


def _provider_error(request: Request, ex: AuthProviderError, status_code: int = 400) -> JSONResponse:
    lang = pick_lang(request.headers.get("Accept-Language"))
    return JSONResponse({"error": ex.code, "message": auth_error_message(ex.code, ex.message, lang)}, status_code=status_code)


@router.post("/auth/register")
async def auth_register(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """
    Body: { "email": str, "password": str, "name": str?, "phone": str?, "address": str?, "city": str? }
    """
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")
    ok, msg = validate_email(email)
    if not ok:
        return JSONResponse({"error": "invalid_email", "message": msg}, status_code=400)
    ok, msg = validate_password(password)
    if not ok:
        return JSONResponse({"error": "weak_password", "message": msg}, status_code=400)

    name = str(payload.get("name") or "").strip() or None
    try:
        principal = await provider.create_credential(email, password, display_name=name)
    except AuthProviderError as ex:
        return _provider_error(request, ex)

    profile = ensure_profile(db, principal)
    for key in ("phone", "address", "city"):
        if payload.get(key):
            setattr(profile, key, str(payload.get(key)).strip())
    if name and not profile.display_name:
        profile.display_name = name
    db.commit()
    db.refresh(profile)
    return {"ok": True, "profile": profile.to_dict()}


@router.post("/auth/login")
async def auth_login(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    if not check_rate_limit(login_throttle, f"login:{client_ip(request)}"):
        return JSONResponse({"error": "rate_limited", "message": "Too many attempts. Please try again later."}, status_code=429)

    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")
    if not email or not password:
        return JSONResponse({"error": "invalid_credentials", "message": "Email and password are required"}, status_code=400)
    try:
        principal = await provider.authenticate(email, password)
    except AuthProviderError as ex:
        return _provider_error(request, ex, status_code=401)

    profile = ensure_profile(db, principal)
    return {"idToken": principal.id_token, "refreshToken": principal.refresh_token, "profile": profile.to_dict()}


@router.post("/auth/password-reset")
async def auth_password_reset(
    request: Request,
    payload: dict = Body(...),
    provider: AuthProvider = Depends(get_auth_provider),
):
    email = str(payload.get("email") or "").strip().lower()
    ok, msg = validate_email(email)
    if not ok:
        return JSONResponse({"error": "invalid_email", "message": msg}, status_code=400)
    if not check_rate_limit(password_reset_throttle, f"reset:{email}"):
        return JSONResponse({"error": "rate_limited", "message": "Too many attempts. Please try again later."}, status_code=429)
    try:
        await provider.send_password_reset(email)
    except AuthProviderError as ex:
        if ex.code == "auth/user-not-found":
            # Same answer for unknown accounts so the endpoint cannot be used to probe emails
            return {"ok": True}
        return _provider_error(request, ex)
    return {"ok": True}


@router.post("/auth/logout")
async def auth_logout(request: Request, provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if principal:
        await provider.sign_out(principal.uid)
    return {"ok": True}


@router.get("/me/profile")
async def me_profile(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    return ensure_profile(db, principal).to_dict()


@router.patch("/me/profile")
async def me_profile_update(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    profile = ensure_profile(db, principal)
    for key, attr in _PROFILE_FIELDS.items():
        if key in payload:
            value: Optional[str] = str(payload.get(key) or "").strip() or None
            setattr(profile, attr, value)
    db.commit()
    db.refresh(profile)
    return profile.to_dict()
