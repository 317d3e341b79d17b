"""
Product field mapping shared by the admin catalogue and the seller dashboard.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models.base import to_cents
from models.product import Product

_TEXT_FIELDS = {
    "name": "name",
    "nameAr": "name_ar",
    "description": "description",
    "descriptionAr": "description_ar",
    "category": "category",
    "categoryAr": "category_ar",
    "image": "image",
}


class ProductValidationError(ValueError):
    pass


def apply_product_fields(product: Product, data: Dict[str, Any], creating: bool = False) -> Product:
    for key, attr in _TEXT_FIELDS.items():
        if key in data:
            setattr(product, attr, str(data.get(key) or "").strip() or None)
    if creating or "name" in data:
        if not (product.name or "").strip():
            raise ProductValidationError("Name is required")
    if "price" in data or creating:
        try:
            cents = to_cents(data.get("price"))
        except Exception:
            raise ProductValidationError("Price must be a number")
        if cents < 0:
            raise ProductValidationError("Price must be >= 0")
        product.price_cents = cents
    if "inStock" in data:
        product.in_stock = bool(data.get("inStock"))
    elif creating:
        product.in_stock = True
    if "extra" in data and isinstance(data.get("extra"), dict):
        product.extra = dict(data["extra"])
    elif creating:
        product.extra = {}
    return product


def list_products(
    db: Session,
    category: Optional[str] = None,
    q: Optional[str] = None,
    seller_id: Optional[str] = None,
    in_stock: Optional[bool] = None,
) -> List[Product]:
    query = db.query(Product)
    if category:
        query = query.filter(Product.category.ilike(category.strip()))
    if seller_id:
        query = query.filter(Product.seller_id == seller_id)
    if in_stock is not None:
        query = query.filter(Product.in_stock == in_stock)
    if q and q.strip():
        like = f"%{q.strip()}%"
        query = query.filter((Product.name.ilike(like)) | (Product.name_ar.ilike(like)))
    return query.order_by(Product.created_at.desc()).all()
