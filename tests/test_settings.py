from models.settings_document import SettingsDocument
from utils.settings_docs import PAGE_KEYS, read_settings, write_settings

OWNER = "owner@example.com"

SHIPPING = {"enabled": False, "flatRate": 40.5, "freeThreshold": 500, "estimatedDays": "2-4", "note": "Ramadan hours"}


def owner(provider):
    provider.add_user(OWNER, "ownerpass")
    return provider.headers_for(OWNER)


def test_shipping_defaults(db):
    doc = read_settings(db, "settings/shipping")
    assert doc == {"schemaVersion": 1, "enabled": True, "flatRate": 25, "freeThreshold": 299, "estimatedDays": "1-3", "note": ""}


def test_shipping_round_trip(client, provider):
    headers = owner(provider)
    resp = client.post("/api/admin/shipping", json=SHIPPING, headers=headers)
    assert resp.status_code == 200
    stored = client.get("/api/admin/shipping", headers=headers).json()
    assert {k: stored[k] for k in SHIPPING} == SHIPPING
    assert client.get("/api/settings/shipping").json() == stored


def test_partial_write_keeps_earlier_fields(db):
    write_settings(db, "settings/shipping", SHIPPING)
    write_settings(db, "settings/shipping", {"note": "Updated"})
    doc = read_settings(db, "settings/shipping")
    assert doc["note"] == "Updated"
    assert doc["flatRate"] == 40.5
    assert doc["enabled"] is False


def test_invalid_write_is_rejected(client, provider):
    headers = owner(provider)
    resp = client.post("/api/admin/shipping", json={"flatRate": -1}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_settings"
    assert client.get("/api/settings/shipping").json()["flatRate"] == 25


def test_corrupt_stored_document_serves_defaults(db):
    db.add(SettingsDocument(path="settings/shipping", data={"flatRate": "not a number"}))
    db.commit()
    assert read_settings(db, "settings/shipping")["flatRate"] == 25


def test_home_ads_and_marketing(client, provider):
    headers = owner(provider)
    client.post(
        "/api/admin/banners",
        json={"adImages": ["/a.jpg"], "adItems": [{"title": "Eid", "titleAr": "عيد", "extra": "dropped"}]},
        headers=headers,
    )
    ads = client.get("/api/settings/homeAds").json()
    assert ads["adImages"] == ["/a.jpg"]
    assert ads["adItems"] == [{"title": "Eid", "titleAr": "عيد", "subtitle": "", "subtitleAr": ""}]
    assert ads["bookingLink"] == ""

    client.post("/api/admin/marketing", json={"headline": "New in", "phrases": [{"text": "Free delivery"}]}, headers=headers)
    marketing = client.get("/api/settings/marketingTool").json()
    assert marketing["phrases"] == [{"text": "Free delivery", "textAr": ""}]
    assert client.get("/api/settings/unknown").status_code == 404


def test_pages_write_is_all_or_nothing(client, provider):
    headers = owner(provider)
    resp = client.post("/api/admin/pages", json={"abayas": {"title": "Abayas"}, "dresses": {"title": "Dresses"}}, headers=headers)
    assert resp.status_code == 200

    pages = client.get("/api/admin/pages", headers=headers).json()
    assert set(pages) == set(PAGE_KEYS)
    assert pages["abayas"]["title"] == "Abayas"

    resp = client.post("/api/admin/pages", json={"abayas": {"title": "Changed"}, "explore": "oops"}, headers=headers)
    assert resp.status_code == 400
    assert client.get("/api/pages/abayas").json()["title"] == "Abayas"
    assert client.post("/api/admin/pages", json={"bogus": {}}, headers=headers).status_code == 400
    assert client.get("/api/pages/bogus").status_code == 404


def test_settings_need_the_matching_permission(client, provider, db):
    from utils.admin_roles import AdminRoleStore

    provider.add_user("staff@example.com")
    AdminRoleStore(db).set("staff@example.com", ["banners"])
    headers = provider.headers_for("staff@example.com")
    assert client.get("/api/admin/banners", headers=headers).status_code == 200
    assert client.post("/api/admin/shipping", json={"note": "x"}, headers=headers).status_code == 403
    assert client.get("/api/admin/shipping").status_code == 401
