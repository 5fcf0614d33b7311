import json
from types import SimpleNamespace

import pytest

from errors import StylistError
from helpers import TODAY, FakeAggregator, make_item
from llm_stylist import LLMStylist, _extract_json, build_outfit_prompt
from outfit_engine import OutfitEngine
from recommendations import RecommendationService
from schemas import StyleProfile
from stores import InMemoryUserStore, InMemoryWardrobeStore
from users import UserService


class FakeResponses:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(output_text=self.text)


def stylist_returning(text=None, error=None):
    return LLMStylist("key", client=SimpleNamespace(responses=FakeResponses(text, error)))


ITEMS = [
    make_item("item-01", "Tops", "White", "Cotton shirt"),
    make_item("item-02", "Bottoms", "Black", "Formal trousers"),
]


def test_extract_json_ignores_surrounding_prose():
    assert _extract_json('Sure! {"a": [1, 2]} Hope this helps.') == {"a": [1, 2]}
    with pytest.raises(StylistError):
        _extract_json("no json here")


def test_prompt_lists_wardrobe_ids():
    prompt = build_outfit_prompt(ITEMS, StyleProfile(preferred_style="Classic"), "Work")
    assert "- item-01: Cotton shirt (Tops, White)" in prompt
    assert "Occasion: Work" in prompt


def test_outfits_keep_only_known_items_and_clamp_confidence():
    payload = {
        "recommendations": [
            {"items": ["item-01", "ghost"], "confidence": 100, "missingItems": [{"category": "Hats"}]},
            {"items": ["ghost"]},
        ],
        "wardrobeAnalysis": {"strengths": ["Clean basics"]},
    }
    result = stylist_returning(json.dumps(payload)).suggest_outfits(ITEMS, StyleProfile(), "Work")
    [rec] = result.recommendations
    assert rec.id == "stylist_outfit_0"
    assert rec.items == ["item-01"]
    assert rec.confidence == 0.95
    assert rec.occasion == "Work"
    assert rec.missing_items[0].category == "Accessories"
    assert result.wardrobe_analysis.strengths == ["Clean basics"]


@pytest.mark.parametrize("text,error", [
    (None, RuntimeError("rate limited")),
    ("", None),
    ('{"recommendations": []}', None),
])
def test_unusable_answers_raise(text, error):
    with pytest.raises(StylistError):
        stylist_returning(text, error).suggest_outfits(ITEMS, StyleProfile())


def test_products_get_stand_in_links():
    text = json.dumps([{"name": "Navy blazer", "category": "Outerwear", "price": "79.5"}, {"price": "n/a"}])
    products = stylist_returning(text).suggest_products(StyleProfile(), {"category": "Tops"})
    assert [p.id for p in products] == ["stylist_0", "stylist_1"]
    assert products[0].price == 79.5
    assert "Navy%20blazer" in products[0].url
    assert products[1].category == "Tops"
    assert 15 <= products[1].price <= 94


def _service(stylist):
    users = UserService(InMemoryUserStore())
    wardrobe = InMemoryWardrobeStore()
    engine = OutfitEngine(aggregator=FakeAggregator(), today=lambda: TODAY)
    return RecommendationService(users, wardrobe, engine, engine.aggregator, stylist, today=lambda: TODAY)


def test_service_prefers_stylist_and_fills_products():
    payload = {"recommendations": [{"items": ["item-01", "item-02"], "missingItems": [{"category": "Footwear"}]}]}
    service = _service(stylist_returning(json.dumps(payload)))
    result, degraded = service.generate(ITEMS, StyleProfile(), None)
    assert not degraded
    assert result.recommendations[0].id == "stylist_outfit_0"
    assert service.engine.aggregator.calls[0][:2] == (["footwear", "black"], "Footwear")
    assert result.wardrobe_analysis.gaps


def test_service_falls_back_to_engine_when_stylist_fails():
    service = _service(stylist_returning(error=RuntimeError("down")))
    result, degraded = service.generate(ITEMS, StyleProfile(), "Work")
    assert not degraded
    assert result.recommendations[0].id == "combo_outfit_0_0"
