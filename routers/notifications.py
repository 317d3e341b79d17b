from fastapi import APIRouter, Request, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import AuthProvider, get_auth_provider, get_principal
from core.config import logger, ADMIN_EMAILS
from core.database import get_db
from core.permissions import resolve_admin_access
from models.notification import Notification
from utils.admin_roles import AdminRoleStore
from utils import emailing

router = APIRouter(prefix="/api", tags=["notifications"])


@router.get("/notifications")
async def notifications_list(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == principal.uid)
        .order_by(Notification.created_at.desc())
        .all()
    )
    return {
        "notifications": [n.to_dict() for n in rows],
        "unread": sum(1 for n in rows if not n.is_read),
    }


@router.post("/notifications/{notification_id}/read")
async def notification_read(notification_id: str, request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    row = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == principal.uid)
        .first()
    )
    if row is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    if not row.is_read:
        row.is_read = True
        db.commit()
    return {"success": True}


@router.post("/notify")
async def notify(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """
    Body: { "to": str, "subject": str, "html": str }
    Signed-in customers may only mail themselves; admins may mail anyone.
    """
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    to = str(payload.get("to") or "").strip()
    subject = str(payload.get("subject") or "").strip()
    html = str(payload.get("html") or "")
    if not to or not subject or not html:
        return JSONResponse({"error": "Missing email parameters"}, status_code=400)
    if to.lower() != (principal.email or "").lower():
        access = resolve_admin_access(principal.email, ADMIN_EMAILS, AdminRoleStore(db))
        if not access.can_access:
            return JSONResponse({"error": "forbidden"}, status_code=403)

    message_id = emailing.send_email_smtp(to, subject, html)
    if not message_id:
        logger.warning(f"[notify] send to {to} failed")
        return JSONResponse({"error": "Failed to send email"}, status_code=500)
    return {"id": message_id}
