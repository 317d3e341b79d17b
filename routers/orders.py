from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import AuthProvider, get_auth_provider, get_principal
from core.database import get_db
from models.order import Order

router = APIRouter(prefix="/api", tags=["orders"])


@router.get("/orders")
async def my_orders(request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    rows = db.query(Order).filter(Order.user_id == principal.uid).order_by(Order.created_at.desc()).all()
    return [o.to_dict() for o in rows]


@router.get("/orders/{order_id}")
async def my_order(order_id: str, request: Request, db: Session = Depends(get_db), provider: AuthProvider = Depends(get_auth_provider)):
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == principal.uid).first()
    if order is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    return order.to_dict()
