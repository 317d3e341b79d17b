import os
import tempfile

# Settings are read at import time, so the environment is prepared before the app is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STATIC_DIR"] = tempfile.mkdtemp(prefix="storefront-static-")
os.environ["ADMIN_EMAILS"] = "owner@example.com"
os.environ["FRONTEND_ORIGIN"] = "http://frontend.test"
os.environ["DODO_WEBHOOK_SECRET"] = ""
os.environ["SMTP_HOST"] = ""
for _name in (
    "RATE_LIMIT_LOGIN_PER_15MIN",
    "RATE_LIMIT_ADMIN_LOGIN_PER_15MIN",
    "RATE_LIMIT_SELLER_REGISTER_PER_HOUR",
    "RATE_LIMIT_PASSWORD_RESET_PER_HOUR",
):
    os.environ[_name] = "100000"

import itertools
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from core.auth import AuthProvider, AuthProviderError, Principal, get_auth_provider
from core.database import Base, SessionLocal, engine
from main import app
from models.product import Product
from models.seller import SellerAccount, SELLER_PENDING, SELLER_APPROVED
from utils import dodo, emailing, notifications


class FakeAuthProvider(AuthProvider):
    """In-memory stand-in for the hosted auth provider. Tokens are 'token-<uid>'."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.users: Dict[str, dict] = {}
        self.claims: Dict[str, dict] = {}
        self.signed_out = []
        self.reset_requests = []
        self.created = []

    def add_user(self, email: str, password: str = "secret123", display_name: Optional[str] = None, claims: Optional[dict] = None) -> Principal:
        uid = f"uid-{next(self._ids)}"
        self.users[email.lower()] = {"uid": uid, "password": password, "display_name": display_name}
        if claims:
            self.claims[uid] = dict(claims)
        return self._principal(email.lower())

    def _principal(self, email: str) -> Principal:
        user = self.users[email]
        return Principal(
            uid=user["uid"],
            email=email,
            display_name=user["display_name"],
            id_token=f"token-{user['uid']}",
            refresh_token=f"refresh-{user['uid']}",
        )

    def headers_for(self, email: str) -> dict:
        return {"Authorization": f"Bearer token-{self.users[email.lower()]['uid']}"}

    async def create_credential(self, email, password, display_name=None):
        email = email.lower()
        if email in self.users:
            raise AuthProviderError("auth/email-already-in-use", "EMAIL_EXISTS")
        self.created.append(email)
        return self.add_user(email, password, display_name)

    async def authenticate(self, email, password):
        user = self.users.get(email.lower())
        if user is None:
            raise AuthProviderError("auth/user-not-found", "EMAIL_NOT_FOUND")
        if user["password"] != password:
            raise AuthProviderError("auth/wrong-password", "INVALID_PASSWORD")
        return self._principal(email.lower())

    async def send_password_reset(self, email):
        if email.lower() not in self.users:
            raise AuthProviderError("auth/user-not-found", "EMAIL_NOT_FOUND")
        self.reset_requests.append(email.lower())

    async def sign_out(self, uid):
        self.signed_out.append(uid)

    async def get_custom_claims(self, uid):
        return dict(self.claims.get(uid) or {})

    def verify_request(self, request):
        header = request.headers.get("authorization") or ""
        if not header.lower().startswith("bearer token-"):
            return None
        uid = header.split("token-", 1)[1].strip()
        for email, user in self.users.items():
            if user["uid"] == uid:
                return self._principal(email)
        return None


@pytest.fixture
def provider():
    return FakeAuthProvider()


@pytest.fixture
def client(provider):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_auth_provider] = lambda: provider
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db(client):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(to_addr, subject, html, text=None, from_addr=None, reply_to=None):
        sent.append({"to": to_addr, "subject": subject, "html": html})
        return f"<msg-{len(sent)}@test>"

    monkeypatch.setattr(notifications, "send_email_smtp", fake_send)
    monkeypatch.setattr(emailing, "send_email_smtp", fake_send)
    return sent


@pytest.fixture
def dodo_sessions(monkeypatch):
    """Records checkout payloads and answers with a hosted checkout link."""
    calls = []

    async def fake_create(payload):
        calls.append(payload)
        sid = f"cs_{len(calls)}"
        return {"session_id": sid, "checkout_url": f"https://pay.test/{sid}"}, None

    monkeypatch.setattr(dodo, "create_checkout_session", fake_create)
    return calls


def make_product(db, name="Classic Abaya", price_cents=10000, category="abayas", seller: Optional[SellerAccount] = None, in_stock=True) -> Product:
    product = Product(
        name=name,
        price_cents=price_cents,
        category=category,
        in_stock=in_stock,
        seller_id=seller.uid if seller else None,
        seller_name=seller.name if seller else None,
        store_name=seller.store_name if seller else None,
        extra={},
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_seller(db, provider: FakeAuthProvider, username="janedoe", approved=True, password="secret123") -> SellerAccount:
    principal = provider.add_user(f"{username}@seller.local", password, display_name="Jane")
    seller = SellerAccount(
        uid=principal.uid,
        name="Jane",
        email=f"{username}@example.com",
        auth_email=f"{username}@seller.local",
        username=username,
        store_name="Jane's Abayas",
        store_category="abayas",
        approval_status=SELLER_APPROVED if approved else SELLER_PENDING,
        withdrawn_cents=0,
    )
    db.add(seller)
    db.commit()
    db.refresh(seller)
    return seller


@pytest.fixture
def product_factory(db):
    return lambda **kw: make_product(db, **kw)


@pytest.fixture
def seller_factory(db, provider):
    return lambda **kw: make_seller(db, provider, **kw)
