from typing import List

import pytest
from fastapi.testclient import TestClient

from app import AppServices, create_app
from helpers import TODAY, FakeAggregator, make_item
from outfit_engine import OutfitEngine
from recommendations import RecommendationService
from s3_helpers import ImageStorage
from schemas import WardrobeItem
from settings import Settings
from stores import InMemoryUserStore, InMemoryWardrobeStore
from users import UserService


@pytest.fixture
def settings(tmp_path):
    return Settings(
        environment="test",
        jwt_secret="test-secret",
        store_backend="memory",
        storage_dir=str(tmp_path / "storage"),
    )


@pytest.fixture
def aggregator():
    return FakeAggregator()


@pytest.fixture
def engine(aggregator):
    return OutfitEngine(aggregator=aggregator, today=lambda: TODAY)


@pytest.fixture
def services(settings, aggregator, engine):
    users = UserService(InMemoryUserStore(), free_limit=settings.free_recommendations_limit)
    wardrobe = InMemoryWardrobeStore()
    return AppServices(
        settings=settings,
        users=users,
        wardrobe=wardrobe,
        images=ImageStorage(False, None, settings.aws_region, settings.storage_dir),
        engine=engine,
        aggregator=aggregator,
        recommendations=RecommendationService(users, wardrobe, engine, aggregator, today=lambda: TODAY),
    )


@pytest.fixture
def client(services):
    return TestClient(create_app(services=services))


@pytest.fixture
def wardrobe_items() -> List[WardrobeItem]:
    return [
        make_item("item-01", "Tops", "White", "Cotton shirt"),
        make_item("item-02", "Tops", "Red", "Silk blouse"),
        make_item("item-03", "Tops", "Black", "Casual t-shirt"),
        make_item("item-04", "Bottoms", "Black", "Formal trousers"),
        make_item("item-05", "Bottoms", "Blue", "Casual jeans"),
        make_item("item-06", "Footwear", "Brown", "Leather boots"),
        make_item("item-07", "Accessories", "Gold", "Bold necklace"),
    ]
