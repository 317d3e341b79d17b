from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.auth import AuthProvider, get_auth_provider, get_principal
from core.config import logger
from core.database import get_db
from models.product import Product
from models.review import Review
from models.user import UserProfile
from utils.catalog import list_products

router = APIRouter(prefix="/api", tags=["products"])

MAX_REVIEW_LENGTH = 2000


@router.get("/products")
async def products_list(
    category: Optional[str] = None,
    q: Optional[str] = None,
    sellerId: Optional[str] = None,
    inStock: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    rows = list_products(db, category=category, q=q, seller_id=sellerId, in_stock=inStock)
    return [p.to_dict() for p in rows]


@router.get("/products/{product_id}")
async def product_get(product_id: str, db: Session = Depends(get_db)):
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    return product.to_dict()


# --- Reviews ---

@router.get("/products/{product_id}/reviews")
async def reviews_list(product_id: str, db: Session = Depends(get_db)):
    rows = (
        db.query(Review)
        .filter(Review.product_id == product_id)
        .order_by(Review.created_at.desc())
        .all()
    )
    return [r.to_dict() for r in rows]


@router.post("/products/{product_id}/reviews")
async def reviews_create(
    product_id: str,
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    """Body: { "rating": 1..5, "comment": str, "userName": str? }"""
    principal = await get_principal(request, provider)
    if not principal:
        return JSONResponse({"error": "unauthorized"}, status_code=401)
    if db.query(Product).filter(Product.id == product_id).first() is None:
        return JSONResponse({"error": "not_found"}, status_code=404)

    rating = payload.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        return JSONResponse({"error": "invalid_rating", "message": "Rating must be a whole number from 1 to 5"}, status_code=400)
    comment = str(payload.get("comment") or "").strip()
    if len(comment) > MAX_REVIEW_LENGTH:
        return JSONResponse({"error": "invalid_comment", "message": f"Comment is limited to {MAX_REVIEW_LENGTH} characters"}, status_code=400)

    user_name = str(payload.get("userName") or "").strip()
    if not user_name:
        profile = db.query(UserProfile).filter(UserProfile.uid == principal.uid).first()
        user_name = (profile.display_name if profile else None) or principal.display_name or (principal.email or "").split("@")[0]

    review = Review(product_id=product_id, user_id=principal.uid, user_name=user_name[:255], rating=rating, comment=comment)
    db.add(review)
    db.commit()
    db.refresh(review)
    logger.info(f"[reviews] {principal.uid} rated {product_id} {rating}/5")
    return JSONResponse({"id": review.id, "review": review.to_dict()}, status_code=201)
