"""Public read access to storefront content documents."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.database import get_db
from utils.settings_docs import PAGE_KEYS, read_settings

router = APIRouter(prefix="/api", tags=["content"])

_PUBLIC_SETTINGS = {
    "homeAds": "settings/homeAds",
    "marketingTool": "settings/marketingTool",
    "shipping": "settings/shipping",
}


@router.get("/settings/{name}")
async def settings_get(name: str, db: Session = Depends(get_db)):
    path = _PUBLIC_SETTINGS.get(name)
    if not path:
        return JSONResponse({"error": "not_found"}, status_code=404)
    return read_settings(db, path)


@router.get("/pages/{key}")
async def page_get(key: str, db: Session = Depends(get_db)):
    if key not in PAGE_KEYS:
        return JSONResponse({"error": "not_found"}, status_code=404)
    return read_settings(db, f"pages/{key}")
