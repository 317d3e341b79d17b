import os
import time

from core.config import SELLER_DOCUMENT_MAX_BYTES, STATIC_DIR
from models.seller import SellerAccount, SELLER_APPROVED, SELLER_PENDING, SELLER_REJECTED
from utils.sellers import approve_seller

OWNER = "owner@example.com"

FORM = {
    "name": "Jane Doe",
    "email": "Jane.Doe+test@x.com",
    "password": "secret123",
    "phone": "+971500000000",
    "storeName": "Jane's Abayas",
    "storeCategory": "abayas",
}


def document(content=b"%PDF-1.4 trade licence"):
    return {"document": ("licence.pdf", content, "application/pdf")}


def register(client, form=None, files=None):
    return client.post("/api/seller/register", data=form or FORM, files=document() if files is None else files)


def owner_headers(provider):
    if OWNER not in provider.users:
        provider.add_user(OWNER, "ownerpass")
    return provider.headers_for(OWNER)


def test_registration_creates_pending_seller(client, db, provider):
    resp = register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["created"] is True
    seller = body["seller"]
    assert seller["username"] == "janedoetest"
    assert seller["approvalStatus"] == SELLER_PENDING
    assert seller["approved"] is False
    assert seller["documentUrl"].startswith("/static/sellers/")

    row = db.query(SellerAccount).filter(SellerAccount.username == "janedoetest").one()
    assert row.auth_email == "janedoetest@seller.local"
    assert row.email == "jane.doe+test@x.com"
    # No session survives registration
    assert row.uid in provider.signed_out
    assert os.path.isfile(os.path.join(STATIC_DIR, "sellers", row.uid, "profile.json"))


def test_invalid_username_rejected_before_any_write(client, db, provider):
    resp = register(client, form=dict(FORM, email="+++@x.com"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_username"
    assert provider.created == []
    assert db.query(SellerAccount).count() == 0


def test_document_is_required(client, provider):
    resp = register(client, files={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "document_required"
    assert provider.created == []


def test_registration_retry_returns_existing_record(client, db, provider):
    first = register(client)
    assert first.status_code == 201
    retry = register(client)
    assert retry.status_code == 200
    assert retry.json()["created"] is False
    assert retry.json()["seller"]["uid"] == first.json()["seller"]["uid"]
    assert db.query(SellerAccount).count() == 1


def test_registration_resumes_when_profile_write_never_happened(client, db, provider):
    # Credential exists from an attempt that timed out before the profile was written
    provider.add_user("janedoetest@seller.local", "secret123")
    resp = register(client)
    assert resp.status_code == 201
    assert db.query(SellerAccount).count() == 1


def test_retry_with_wrong_password_surfaces_provider_error(client, provider):
    provider.add_user("janedoetest@seller.local", "another-password")
    resp = register(client)
    assert resp.status_code == 400
    assert resp.json()["error"] == "auth/email-already-in-use"


def test_pending_seller_cannot_log_in_until_approved(client, db, provider):
    uid = register(client).json()["seller"]["uid"]

    resp = client.post("/api/seller-login", json={"identifier": "Jane.Doe+test@x.com", "password": "secret123"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "SELLER_NOT_APPROVED"
    assert uid in provider.signed_out

    resp = client.post(f"/api/admin/sellers/{uid}/approve", headers=owner_headers(provider))
    assert resp.status_code == 200

    resp = client.post("/api/seller-login", json={"identifier": "janedoetest", "password": "secret123"})
    assert resp.status_code == 200
    assert resp.cookies.get("seller_approved") == "true"
    db.expire_all()
    stored = db.query(SellerAccount).filter(SellerAccount.uid == uid).one()
    assert resp.json()["seller"] == stored.to_dict()
    assert resp.json()["approved"] is True


def test_login_without_profile(client, provider):
    provider.add_user("ghost@seller.local", "secret123")
    resp = client.post("/api/seller-login", json={"username": "ghost", "password": "secret123"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "SELLER_PROFILE_MISSING"


def test_login_with_wrong_password(client, seller_factory):
    seller_factory(username="janedoe")
    resp = client.post("/api/seller-login", json={"username": "janedoe", "password": "nope123"}, headers={"Accept-Language": "ar"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "auth/wrong-password"
    assert resp.json()["message"] == "كلمة المرور غير صحيحة."


def test_approval_is_idempotent(client, db, seller_factory):
    seller = seller_factory(approved=False)
    once, changed = approve_seller(db, seller.uid)
    assert changed is True
    first_approved_at = once.approved_at
    twice, changed = approve_seller(db, seller.uid)
    assert changed is False
    assert twice.approval_status == SELLER_APPROVED
    assert twice.approved_at == first_approved_at


def test_approval_sends_email_once(client, provider, seller_factory, sent_emails):
    seller = seller_factory(approved=False)
    headers = owner_headers(provider)
    assert client.post(f"/api/admin/sellers/{seller.uid}/approve", headers=headers).json()["changed"] is True
    assert client.post(f"/api/admin/sellers/{seller.uid}/approve", headers=headers).json()["changed"] is False
    assert [m["to"] for m in sent_emails] == [seller.email]


def test_rejection_is_terminal(client, provider, seller_factory):
    seller = seller_factory(approved=False)
    headers = owner_headers(provider)
    resp = client.post(f"/api/admin/sellers/{seller.uid}/reject", headers=headers)
    assert resp.json()["seller"]["approvalStatus"] == SELLER_REJECTED
    assert seller.uid in provider.signed_out

    resp = client.post(f"/api/admin/sellers/{seller.uid}/approve", headers=headers)
    assert resp.status_code == 409

    approved = seller_factory(username="other")
    resp = client.post(f"/api/admin/sellers/{approved.uid}/reject", headers=headers)
    assert resp.status_code == 409


def test_unknown_seller_approval(client, provider):
    resp = client.post("/api/admin/sellers/missing/approve", headers=owner_headers(provider))
    assert resp.status_code == 404


def test_admin_lists_sellers_by_status(client, provider, seller_factory):
    seller_factory(username="pendingone", approved=False)
    seller_factory(username="approvedone")
    resp = client.get("/api/admin/sellers", params={"status": "pending"}, headers=owner_headers(provider))
    assert [s["username"] for s in resp.json()] == ["pendingone"]
    assert client.get("/api/admin/sellers", params={"status": "nope"}, headers=owner_headers(provider)).status_code == 400


def test_oversized_document_rejected_before_any_write(client, db, provider):
    oversized = b"0" * (SELLER_DOCUMENT_MAX_BYTES + 1)
    resp = register(client, files=document(oversized))
    assert resp.status_code == 400
    assert resp.json()["error"] == "document_too_large"
    assert provider.created == []
    assert db.query(SellerAccount).count() == 0


def test_registration_deadline_then_retry_resumes(client, db, provider, monkeypatch):
    def slow_upload(key, data, content_type):
        time.sleep(1.0)
        return f"/static/{key}"

    monkeypatch.setattr("routers.sellers.SELLER_REGISTRATION_TIMEOUT_SEC", 0.2)
    monkeypatch.setattr("routers.sellers.upload_bytes", slow_upload)
    resp = register(client)
    assert resp.status_code == 504
    assert resp.json()["error"] == "registration_timeout"
    assert provider.created == ["janedoetest@seller.local"]
    assert db.query(SellerAccount).count() == 0

    monkeypatch.setattr("routers.sellers.upload_bytes", lambda key, data, content_type: f"/static/{key}")
    resp = register(client)
    assert resp.status_code == 201
    assert resp.json()["created"] is True
    assert provider.created == ["janedoetest@seller.local"]


def test_document_link_is_signed_on_every_read(client, db, provider, monkeypatch):
    monkeypatch.setattr("routers.sellers.upload_bytes", lambda key, data, content_type: f"https://r2.test/{key}?sig=upload")
    assert register(client).status_code == 201
    row = db.query(SellerAccount).filter(SellerAccount.username == "janedoetest").one()
    # Only the key is kept for remote storage
    assert row.document_url is None
    assert row.document_key.startswith(f"sellers/{row.uid}/documents/")

    monkeypatch.setattr("utils.sellers.get_presigned_url", lambda key, expires_in=3600: f"https://r2.test/{key}?sig=fresh")
    listed = client.get("/api/admin/sellers", headers=owner_headers(provider)).json()
    assert listed[0]["documentUrl"] == f"https://r2.test/{row.document_key}?sig=fresh"


def test_pending_seller_cannot_add_products(client, provider, seller_factory):
    seller_factory(approved=False)
    resp = client.post(
        "/api/seller/products",
        json={"name": "Abaya", "price": 120},
        headers=provider.headers_for("janedoe@seller.local"),
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "SELLER_NOT_APPROVED"


def test_approved_seller_manages_own_products(client, provider, seller_factory, product_factory):
    seller = seller_factory()
    other = seller_factory(username="other")
    foreign = product_factory(name="Not mine", seller=other)
    headers = provider.headers_for("janedoe@seller.local")

    resp = client.post("/api/seller/products", json={"name": "Evening Abaya", "price": 149.99, "category": "abayas"}, headers=headers)
    assert resp.status_code == 201
    product = resp.json()["product"]
    assert product["price"] == 149.99
    assert product["sellerId"] == seller.uid
    assert product["storeName"] == seller.store_name

    resp = client.patch(f"/api/seller/products/{product['id']}", json={"inStock": False}, headers=headers)
    assert resp.json()["inStock"] is False
    assert client.patch(f"/api/seller/products/{foreign.id}", json={"name": "x"}, headers=headers).status_code == 404
    assert [p["id"] for p in client.get("/api/seller/products", headers=headers).json()] == [product["id"]]


def test_seller_logout_clears_cookie(client, provider, seller_factory):
    seller = seller_factory()
    resp = client.post("/api/seller/logout", headers=provider.headers_for("janedoe@seller.local"))
    assert resp.status_code == 200
    assert seller.uid in provider.signed_out
    assert "Max-Age=0" in resp.headers.get("set-cookie", "")
