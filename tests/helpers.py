import io
from datetime import date

from fastapi.testclient import TestClient
from PIL import Image

from marketplace import fallback_products, sort_products
from schemas import WardrobeItem

TODAY = date(2026, 10, 19)


class FakeAggregator:
    """Serves the curated catalog without touching the network."""

    def __init__(self):
        self.calls = []

    def search_products(self, terms, category=None, price_range=None, sources=("ebay", "free")):
        self.calls.append((list(terms), category, price_range, tuple(sources)))
        return sort_products(fallback_products(terms, category), price_range)


class FailingAggregator:
    def search_products(self, *args, **kwargs):
        raise RuntimeError("catalog down")


def make_item(item_id: str, category: str, color: str, name: str = None, user_id: str = "user-1") -> WardrobeItem:
    return WardrobeItem(
        id=item_id,
        user_id=user_id,
        name=name or f"{color} {category.lower()}",
        category=category,
        color=color,
        created_at=f"2026-01-01T00:00:{item_id[-2:].zfill(2)}",
    )


def png_bytes(size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def signup(client: TestClient, email: str = "ada@example.com", password: str = "secret123") -> str:
    r = client.post("/api/auth/signup", json={"name": "Ada", "email": email, "password": password})
    assert r.status_code == 201, r.text
    return r.json()["token"]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def upload_item(client: TestClient, token: str, name: str, category: str, color: str) -> dict:
    r = client.post(
        "/api/wardrobe",
        data={"name": name, "category": category, "color": color},
        files={"image": ("item.png", png_bytes(), "image/png")},
        headers=auth(token),
    )
    assert r.status_code == 201, r.text
    return r.json()
