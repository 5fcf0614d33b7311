from pathlib import Path

from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from app import create_app
from helpers import auth, png_bytes, signup, upload_item
from stores import DynamoWardrobeStore


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "OK"
    assert body["storeBackend"] == "memory"


def test_unknown_route(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    assert r.json() == {"error": "Route not found"}


# -------- auth --------
def test_signup_login_and_profile(client):
    token = signup(client, email="Ada@Example.com")
    r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "secret123"})
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["email"] == "ada@example.com"
    assert "passwordHash" not in user

    r = client.put("/api/auth/profile", json={"preferredStyle": "Business", "bodyType": "Pear"}, headers=auth(token))
    assert r.status_code == 200
    assert r.json()["preferredStyle"] == "Business"

    r = client.get("/api/auth/profile", headers=auth(token))
    assert r.json()["bodyType"] == "Pear"


def test_signup_validation_and_conflict(client):
    r = client.post("/api/auth/signup", json={"name": "A", "email": "a@example.com", "password": "secret123"})
    assert r.status_code == 400
    assert "name" in r.json()["error"]

    r = client.post("/api/auth/signup", json={"name": "Ada", "email": "not-an-email", "password": "secret123"})
    assert r.status_code == 400

    signup(client)
    r = client.post("/api/auth/signup", json={"name": "Ada", "email": "ada@example.com", "password": "secret123"})
    assert r.status_code == 409
    assert r.json() == {"error": "User already exists with this email"}


def test_bad_login_and_missing_token(client):
    signup(client)
    r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong-one"})
    assert r.status_code == 401

    r = client.get("/api/wardrobe")
    assert r.status_code == 401
    assert r.json() == {"error": "Access token required"}

    r = client.get("/api/wardrobe", headers=auth("garbage"))
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid token"}


def test_invalid_profile_value(client):
    token = signup(client)
    r = client.put("/api/auth/profile", json={"skinTone": "Green"}, headers=auth(token))
    assert r.status_code == 400


# -------- wardrobe --------
def test_wardrobe_upload_list_delete(client, services):
    token = signup(client)
    item = upload_item(client, token, "White shirt", "Tops", "White")
    assert item["category"] == "Tops"
    assert "/wardrobe/" in item["imageUrl"]

    r = client.get("/api/wardrobe", headers=auth(token))
    assert [i["id"] for i in r.json()] == [item["id"]]

    r = client.delete(f"/api/wardrobe/{item['id']}", headers=auth(token))
    assert r.status_code == 200
    assert client.get("/api/wardrobe", headers=auth(token)).json() == []


def test_wardrobe_upload_rejects_bad_input(client):
    token = signup(client)
    r = client.post(
        "/api/wardrobe",
        data={"name": "Shirt", "category": "Hats", "color": "Red"},
        files={"image": ("item.png", png_bytes(), "image/png")},
        headers=auth(token),
    )
    assert r.status_code == 400

    r = client.post(
        "/api/wardrobe",
        data={"name": "Shirt", "category": "Tops", "color": "Red"},
        files={"image": ("item.txt", b"plain text", "text/plain")},
        headers=auth(token),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_FILE_TYPE"

    r = client.post(
        "/api/wardrobe",
        data={"name": "Shirt", "category": "Tops", "color": "Red"},
        headers=auth(token),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "NO_FILE_UPLOADED"


def test_cannot_delete_someone_elses_item(client):
    owner = signup(client, email="owner@example.com")
    other = signup(client, email="other@example.com")
    item = upload_item(client, owner, "Jeans", "Bottoms", "Blue")

    r = client.delete(f"/api/wardrobe/{item['id']}", headers=auth(other))
    assert r.status_code == 403
    assert len(client.get("/api/wardrobe", headers=auth(owner)).json()) == 1

    r = client.delete("/api/wardrobe/missing", headers=auth(owner))
    assert r.status_code == 404


# -------- recommendations --------
def test_empty_wardrobe_does_not_use_quota(client, services):
    token = signup(client)
    for _ in range(5):
        r = client.get("/api/recommendations", headers=auth(token))
        assert r.status_code == 200
        body = r.json()
        assert body["recommendations"] == []
        assert body["message"] == "Add items to your wardrobe to get outfit recommendations"
        assert body["wardrobeAnalysis"]["gaps"] == ["Empty wardrobe"]
    assert body["subscriptionInfo"]["recommendationsUsed"] == 0


def test_empty_wardrobe_answers_even_when_quota_is_spent(client):
    token = signup(client)
    item = upload_item(client, token, "Black shirt", "Tops", "Black")
    for _ in range(3):
        assert client.get("/api/recommendations", headers=auth(token)).status_code == 200
    assert client.get("/api/recommendations", headers=auth(token)).status_code == 403

    client.delete(f"/api/wardrobe/{item['id']}", headers=auth(token))
    r = client.get("/api/recommendations", headers=auth(token))
    assert r.status_code == 200
    body = r.json()
    assert body["recommendations"] == []
    assert body["message"] == "Add items to your wardrobe to get outfit recommendations"
    assert body["subscriptionInfo"]["recommendationsUsed"] == 3


def test_free_quota_then_subscription(client, services):
    token = signup(client)
    upload_item(client, token, "Black shirt", "Tops", "Black")
    upload_item(client, token, "Black trousers", "Bottoms", "Black")

    for used in range(1, 4):
        r = client.get("/api/recommendations", params={"occasion": "Work"}, headers=auth(token))
        assert r.status_code == 200
        body = r.json()
        assert len(body["recommendations"]) == 1
        assert body["subscriptionInfo"]["recommendationsUsed"] == used

    assert body["accessInfo"]["allowed"] is False

    r = client.get("/api/recommendations", headers=auth(token))
    assert r.status_code == 403
    assert r.json()["subscriptionRequired"] is True
    assert r.json()["reason"] == "limit_exceeded"
    status = client.get("/api/subscription/status", headers=auth(token)).json()
    assert status["subscription"]["recommendationsUsed"] == 3

    r = client.post("/api/subscription/subscribe", json={"plan": "1_month"}, headers=auth(token))
    assert r.status_code == 200
    assert r.json()["subscription"]["status"] == "active"

    for _ in range(2):
        r = client.get("/api/recommendations", headers=auth(token))
        assert r.status_code == 200
        assert r.json()["subscriptionInfo"]["recommendationsUsed"] == 3

    client.post("/api/subscription/cancel", headers=auth(token))
    r = client.get("/api/recommendations", headers=auth(token))
    assert r.status_code == 403


def test_recommendation_response_shape(client):
    token = signup(client)
    top = upload_item(client, token, "Cotton shirt", "Tops", "White")
    bottom = upload_item(client, token, "Formal trousers", "Bottoms", "Black")

    body = client.get("/api/recommendations", params={"occasion": "Work"}, headers=auth(token)).json()
    rec = body["recommendations"][0]
    assert rec["items"] == [top["id"], bottom["id"]]
    assert 0.3 <= rec["confidence"] <= 0.95
    assert {"styleNotes", "missingItems", "occasion", "description"} <= set(rec)
    missing = rec["missingItems"][0]
    assert {"suggestedColor", "priceRange", "availableProducts"} <= set(missing)
    assert "strengths" in body["wardrobeAnalysis"]
    assert "degraded" not in body


def test_engine_error_degrades_to_fallback(client, services, monkeypatch):
    from errors import EngineError
    from outfit_engine import EngineResult

    token = signup(client)
    upload_item(client, token, "Cotton shirt", "Tops", "White")
    monkeypatch.setattr(services.engine, "recommend", lambda *a, **kw: EngineResult(error=EngineError("boom")))

    r = client.get("/api/recommendations", headers=auth(token))
    assert r.status_code == 200
    body = r.json()
    assert body["degraded"] is True
    assert body["recommendations"][0]["id"] == "fallback_outfit_1"


def test_recommendations_for_items(client):
    token = signup(client)
    other = signup(client, email="other@example.com")
    top = upload_item(client, token, "Cotton shirt", "Tops", "White")
    upload_item(client, token, "Formal trousers", "Bottoms", "Black")
    foreign = upload_item(client, other, "Red dress", "Dresses", "Red")

    r = client.post("/api/recommendations/for-items", json={"itemIds": [top["id"]]}, headers=auth(token))
    assert r.status_code == 200
    assert all(rec["items"] == [top["id"]] for rec in r.json()["recommendations"])

    r = client.post("/api/recommendations/for-items", json={"itemIds": [foreign["id"]]}, headers=auth(token))
    assert r.status_code == 404

    r = client.post("/api/recommendations/for-items", json={"itemIds": "nope"}, headers=auth(token))
    assert r.status_code == 400

    r = client.post("/api/recommendations/for-items", json={}, headers=auth(token))
    assert r.status_code == 400
    assert r.json() == {"error": "Item IDs array is required"}


# -------- marketplace --------
def test_marketplace_listing(client, aggregator):
    token = signup(client)
    client.put("/api/auth/profile", json={"preferredStyle": "Classic"}, headers=auth(token))

    r = client.get(
        "/api/marketplace",
        params={"category": "Footwear", "minPrice": 10, "maxPrice": 200},
        headers=auth(token),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["totalCount"] == len(body["items"]) <= 20
    assert body["filters"]["priceRange"] == {"min": 10.0, "max": 200.0}
    scores = [item["relevanceScore"] for item in body["items"]]
    assert scores == sorted(scores, reverse=True)
    terms, category, _, _ = aggregator.calls[-1]
    assert terms == ["footwear", "classic", "timeless"]
    assert category == "Footwear"


def test_marketplace_search(client):
    token = signup(client)
    r = client.get("/api/marketplace/search", headers=auth(token))
    assert r.status_code == 400
    assert r.json() == {"error": "Search query is required"}

    r = client.get("/api/marketplace/search", params={"q": "denim jacket", "sources": "free"}, headers=auth(token))
    body = r.json()
    assert body["query"] == "denim jacket"
    assert body["sources"] == ["free"]
    assert body["totalCount"] == len(body["products"])


def test_shopping_list_follows_gaps(client):
    token = signup(client)
    for i in range(3):
        upload_item(client, token, f"Shirt {i}", "Tops", "White")

    r = client.get("/api/marketplace/shopping-list", params={"occasions": "Party"}, headers=auth(token))
    entries = r.json()["shoppingList"]
    categories = [e["category"] for e in entries]
    assert "Tops" not in categories
    assert categories == ["Bottoms", "Outerwear", "Footwear", "Accessories"]
    by_category = {e["category"]: e for e in entries}
    assert by_category["Bottoms"]["occasions"] == ["Party"]
    assert by_category["Outerwear"]["occasions"] == ["Work", "Formal"]
    assert all(len(e["availableProducts"]) <= 5 for e in entries)


def test_trending_uses_season_and_category(client):
    token = signup(client)
    body = client.get("/api/marketplace/trending", params={"category": "Outerwear"}, headers=auth(token)).json()
    assert body["category"] == "Outerwear"
    assert body["terms"] == ["fall", "autumn", "warm", "cozy", "outerwear"]
    assert len(body["trending"]) <= 15


def test_subscription_plans_are_public(client):
    r = client.get("/api/subscription/plans")
    assert [p["id"] for p in r.json()["plans"]] == ["1_month", "3_months", "6_months", "1_year"]


def test_production_hides_internal_errors(services):
    from dataclasses import replace

    services.settings = replace(services.settings, environment="production")
    app = create_app(services=services)

    @app.get("/boom")
    def boom():
        raise RuntimeError("secret detail")

    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/boom")
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}


def test_failed_wardrobe_write_removes_uploaded_image(client, services):
    class ThrottledTable:
        def put_item(self, **kwargs):
            raise ClientError({"Error": {"Code": "ProvisionedThroughputExceededException",
                                         "Message": "slow down"}}, "PutItem")

    token = signup(client)
    services.wardrobe = DynamoWardrobeStore(ThrottledTable())
    r = client.post(
        "/api/wardrobe",
        data={"name": "Shirt", "category": "Tops", "color": "Red"},
        files={"image": ("item.png", png_bytes(), "image/png")},
        headers=auth(token),
    )
    assert r.status_code == 500
    assert "Failed to save wardrobe item" in r.json()["error"]
    assert [p for p in Path(services.settings.storage_dir).rglob("*") if p.is_file()] == []
