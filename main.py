from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import os

import httpx

from core.config import logger, FRONTEND_ORIGIN, SELLER_APPROVED_COOKIE, STATIC_DIR  # type: ignore

# Routers
from routers import (
    auth, sellers, checkout, products, orders, notifications,
    admin, admin_catalog, admin_content, content,
)  # type: ignore

app = FastAPI(title="Storefront")

# ---- CORS setup ----
_default_origins = ",".join([
    FRONTEND_ORIGIN,
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
])
_origins_env = os.getenv("ALLOWED_ORIGINS") or os.getenv("CORS_ORIGINS") or _default_origins
ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Seller pages reachable without the approval cookie
SELLER_OPEN_PAGES = ("/seller/login", "/seller/register", "/seller/agreement")


def seller_gate_redirect(path: str, cookie_value) -> bool:
    """True when a seller page request must bounce to the login page.

    Routing only: the dashboard API checks approval on every call.
    """
    if path != "/seller" and not path.startswith("/seller/"):
        return False
    if any(path == p or path.startswith(p + "/") for p in SELLER_OPEN_PAGES):
        return False
    return cookie_value != "true"


# --- Seller gate ---
@app.middleware("http")
async def seller_gate(request: Request, call_next):
    path = request.url.path or ""
    if seller_gate_redirect(path, request.cookies.get(SELLER_APPROVED_COOKIE)):
        logger.debug(f"[seller.gate] redirecting {path} to login")
        return RedirectResponse(url="/seller/login", status_code=307)
    return await call_next(request)


# --- Security headers ---
@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("X-XSS-Protection", "1; mode=block")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("X-Frame-Options", "DENY")
    return response


# ---- Static mount (local storage fallback) ----
os.makedirs(STATIC_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


# ---- Include routers ----
app.include_router(auth.router)
app.include_router(sellers.router)
app.include_router(checkout.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(notifications.router)
app.include_router(content.router)
# Admin console
app.include_router(admin.router)
app.include_router(admin_catalog.router)
app.include_router(admin_content.router)


@app.on_event("startup")
async def _init_schema():
    try:
        from core.database import init_db
        init_db()
    except Exception as _ex:
        logger.warning(f"init_db failed: {_ex}")
        raise


@app.get("/")
async def root():
    return {"ok": True}


@app.get("/seller/{path:path}")
async def proxy_seller_pages(path: str):
    """Seller pages are rendered by the frontend; the gate above has already run."""
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            r = await client.get(f"{FRONTEND_ORIGIN}/seller/{path}", follow_redirects=True)
            ct = r.headers.get("content-type") or "text/html"
            return Response(content=r.content, media_type=ct, status_code=r.status_code)
    except httpx.HTTPError as _ex:
        logger.warning(f"[seller.pages] frontend unavailable: {_ex}")
        return Response(
            content="<html><body><h1>Seller page unavailable</h1></body></html>",
            media_type="text/html",
            status_code=502,
        )
