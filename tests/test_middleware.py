import pytest

from main import seller_gate_redirect


@pytest.mark.parametrize(
    "path,cookie,redirect",
    [
        ("/seller/dashboard", None, True),
        ("/seller/dashboard", "false", True),
        ("/seller", None, True),
        ("/seller/dashboard", "true", False),
        ("/seller/login", None, False),
        ("/seller/register", None, False),
        ("/seller/agreement", None, False),
        ("/sellers", None, False),
        ("/api/seller/me", None, False),
        ("/", None, False),
    ],
)
def test_seller_gate_paths(path, cookie, redirect):
    assert seller_gate_redirect(path, cookie) is redirect


def test_gate_redirects_to_login(client):
    resp = client.get("/seller/dashboard", follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"] == "/seller/login"


def test_gate_leaves_api_alone(client):
    resp = client.get("/api/seller/me", follow_redirects=False)
    assert resp.status_code == 401


def test_security_headers(client):
    resp = client.get("/")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
