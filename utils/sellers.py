"""
Seller lifecycle: unregistered -> pending -> approved | rejected.

Only an approved seller can log in. Approval and rejection are administrative and terminal;
approving twice is a no-op, and neither terminal state can move to the other.
"""
import asyncio
import os
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.auth import AuthProvider, AuthProviderError, Principal
from core.config import logger, SELLER_EMAIL_DOMAIN, SELLER_DOCUMENT_MAX_BYTES, SELLER_DOCUMENT_MAX_MB
from models.base import utcnow
from models.seller import SellerAccount, SELLER_PENDING, SELLER_APPROVED, SELLER_REJECTED
from utils.auth_errors import auth_error_message
from utils.storage import DOCUMENT_URL_TTL_SEC, get_presigned_url
from utils.validation import derive_username, is_valid_username, normalize_seller_identifier, validate_email, validate_password

SELLER_PROFILE_MISSING = "SELLER_PROFILE_MISSING"
SELLER_NOT_APPROVED = "SELLER_NOT_APPROVED"
SELLER_REJECTED_CODE = "SELLER_REJECTED"


class SellerError(Exception):
    def __init__(self, code: str, message: str = "", status_code: int = 400):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


@dataclass
class SellerRegistration:
    name: str
    email: str
    password: str
    phone: str = ""
    store_name: str = ""
    store_category: str = ""


@dataclass
class SellerDocument:
    content: bytes
    filename: str = "document"
    content_type: str = "application/octet-stream"


def seller_auth_email(username: str) -> str:
    return f"{username}@{SELLER_EMAIL_DOMAIN}"


def seller_view(seller: SellerAccount) -> dict:
    """to_dict with a freshly signed document link; the stored URL only covers local storage."""
    data = seller.to_dict()
    if seller.document_key:
        url = get_presigned_url(seller.document_key, expires_in=DOCUMENT_URL_TTL_SEC)
        if url:
            data["documentUrl"] = url
    return data


def get_seller(db: Session, uid: str) -> Optional[SellerAccount]:
    if not uid:
        return None
    return db.query(SellerAccount).filter(SellerAccount.uid == uid).first()


def validate_registration(form: SellerRegistration, document: Optional[SellerDocument]) -> str:
    """Runs before any external call. Returns the derived username or raises SellerError."""
    ok, msg = validate_email(form.email)
    if not ok:
        raise SellerError("invalid_email", msg)
    ok, msg = validate_password(form.password)
    if not ok:
        raise SellerError("weak_password", msg)
    if not (form.name or "").strip():
        raise SellerError("name_required", "Name is required")
    username = derive_username(form.email)
    if not is_valid_username(username):
        raise SellerError("invalid_username", "Username must contain only letters/numbers and may include . _ -")
    if document is None or not document.content:
        raise SellerError("document_required", "Please upload the document")
    if len(document.content) > SELLER_DOCUMENT_MAX_BYTES:
        raise SellerError("document_too_large", f"File is too large. Max {SELLER_DOCUMENT_MAX_MB}MB")
    return username


async def _create_or_resume_credential(provider: AuthProvider, auth_email: str, form: SellerRegistration) -> Principal:
    try:
        return await provider.create_credential(auth_email, form.password, display_name=form.name.strip())
    except AuthProviderError as ex:
        if ex.code != "auth/email-already-in-use":
            raise SellerError(ex.code, auth_error_message(ex.code, ex.message))
        original = ex
    # A retried registration: the credential exists, so prove ownership with the same password
    try:
        return await provider.authenticate(auth_email, form.password)
    except AuthProviderError:
        raise SellerError(original.code, auth_error_message(original.code, original.message))


def _document_key(uid: str, document: SellerDocument) -> str:
    ext = os.path.splitext(document.filename or "")[1].lower()[:10]
    return f"sellers/{uid}/documents/{uuid.uuid4().hex}{ext}"


async def register_seller(
    db: Session,
    provider: AuthProvider,
    form: SellerRegistration,
    document: Optional[SellerDocument],
    upload: Callable[[str, bytes, str], str],
    backup: Optional[Callable[[str, dict], None]] = None,
) -> Tuple[SellerAccount, bool]:
    """Create a pending seller. Returns (seller, created); created is False when a retry found the existing record.

    Safe to retry after a timeout: an existing credential is re-authenticated and the profile
    write resumes where the earlier attempt stopped.
    """
    username = validate_registration(form, document)
    auth_email = seller_auth_email(username)

    principal = await _create_or_resume_credential(provider, auth_email, form)

    existing = get_seller(db, principal.uid)
    if existing:
        logger.info(f"[seller.register] {username} already registered; returning existing profile")
        await provider.sign_out(principal.uid)
        return existing, False

    key = _document_key(principal.uid, document)
    try:
        document_url = await asyncio.to_thread(upload, key, document.content, document.content_type)
    except Exception as ex:
        logger.exception(f"[seller.register] document upload failed for {username}: {ex}")
        raise SellerError("upload_failed", "Document upload failed, please try again", status_code=502)

    seller = SellerAccount(
        uid=principal.uid,
        name=form.name.strip(),
        email=form.email.strip().lower(),
        auth_email=auth_email,
        username=username,
        phone=(form.phone or "").strip() or None,
        store_name=(form.store_name or form.name).strip(),
        store_category=(form.store_category or "General").strip(),
        # Presigned links expire, so only a local path is worth keeping
        document_url=document_url if (document_url or "").startswith("/static/") else None,
        document_key=key,
        approval_status=SELLER_PENDING,
        withdrawn_cents=0,
    )
    db.add(seller)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SellerError("auth/email-already-in-use", auth_error_message("auth/email-already-in-use"))
    db.refresh(seller)
    logger.info(f"[seller.register] {username} registered, pending approval")

    if backup is not None:
        try:
            await asyncio.to_thread(backup, f"sellers/{seller.uid}/profile.json", seller.to_dict())
        except Exception as ex:
            logger.warning(f"[seller.register] profile backup failed for {seller.uid}: {ex}")

    # Registration never leaves an active session; the seller logs in after approval
    await provider.sign_out(principal.uid)
    return seller, True


async def login_seller(db: Session, provider: AuthProvider, identifier: str, password: str, lang: str = "en") -> Tuple[SellerAccount, Principal]:
    username = normalize_seller_identifier(identifier)
    if not is_valid_username(username):
        raise SellerError("invalid_username", "Invalid username")
    if not password:
        raise SellerError("auth/invalid-credential", auth_error_message("auth/invalid-credential", lang=lang), status_code=401)

    try:
        principal = await provider.authenticate(seller_auth_email(username), password)
    except AuthProviderError as ex:
        raise SellerError(ex.code, auth_error_message(ex.code, ex.message, lang), status_code=401)

    seller = get_seller(db, principal.uid)
    if seller is None:
        await provider.sign_out(principal.uid)
        raise SellerError(SELLER_PROFILE_MISSING, "Seller profile missing", status_code=401)
    if not seller.approved:
        await provider.sign_out(principal.uid)
        raise SellerError(SELLER_NOT_APPROVED, "Your seller account is pending approval", status_code=401)
    return seller, principal


def approve_seller(db: Session, uid: str) -> Tuple[SellerAccount, bool]:
    """Returns (seller, changed). Approving an approved seller changes nothing."""
    seller = get_seller(db, uid)
    if seller is None:
        raise SellerError("not_found", "Seller not found", status_code=404)
    if seller.approval_status == SELLER_APPROVED:
        return seller, False
    if seller.approval_status == SELLER_REJECTED:
        raise SellerError(SELLER_REJECTED_CODE, "Seller was rejected", status_code=409)
    seller.approval_status = SELLER_APPROVED
    seller.approved_at = utcnow()
    db.commit()
    db.refresh(seller)
    logger.info(f"[seller.approve] {seller.username} approved")
    return seller, True


def reject_seller(db: Session, uid: str) -> Tuple[SellerAccount, bool]:
    seller = get_seller(db, uid)
    if seller is None:
        raise SellerError("not_found", "Seller not found", status_code=404)
    if seller.approval_status == SELLER_REJECTED:
        return seller, False
    if seller.approval_status == SELLER_APPROVED:
        raise SellerError("seller_already_approved", "Seller is already approved", status_code=409)
    seller.approval_status = SELLER_REJECTED
    seller.rejected_at = utcnow()
    db.commit()
    db.refresh(seller)
    logger.info(f"[seller.reject] {seller.username} rejected")
    return seller, True
