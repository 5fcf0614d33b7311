# llm_stylist.py
"""Optional OpenAI-backed stylist.

Used before the rule-based engine when an API key is configured. Every
failure (network, quota, unparsable or empty output) is raised as a
``StylistError`` so the caller can fall back to the deterministic path.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from errors import StylistError
from marketplace import curated_image, shopping_url, stable_price
from outfit_engine import MAX_CONFIDENCE, MIN_CONFIDENCE
from schemas import (
    CATEGORIES,
    MarketplaceProduct,
    MissingItemSuggestion,
    OutfitCandidate,
    PriceRange,
    Recommendations,
    StyleProfile,
    WardrobeAnalysis,
    WardrobeItem,
)

logger = logging.getLogger(__name__)

STYLIST_INSTRUCTIONS = (
    "You are an expert fashion stylist and personal shopper. You know color theory, "
    "body type styling, occasion-appropriate dressing and current trends. "
    "Answer with JSON only."
)


def _extract_json(text: str) -> Any:
    """Parse the first JSON object or array found in model output."""
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise StylistError("No JSON in model output")
    try:
        return json.loads(text[min(starts):])
    except json.JSONDecodeError:
        # trailing prose after the JSON
        end = max(text.rfind("}"), text.rfind("]"))
        try:
            return json.loads(text[min(starts):end + 1])
        except json.JSONDecodeError as e:
            raise StylistError(f"Invalid JSON in model output: {e}")


def build_outfit_prompt(items: Sequence[WardrobeItem], profile: StyleProfile, occasion: Optional[str]) -> str:
    lines = [STYLIST_INSTRUCTIONS, "", "WARDROBE ITEMS (id: name, category, color):"]
    for item in items:
        lines.append(f"- {item.id}: {item.name} ({item.category}, {item.color})")
    lines += [
        "",
        "USER PROFILE:",
        f"- Skin tone: {profile.skin_tone or 'Not specified'}",
        f"- Body type: {profile.body_type or 'Not specified'}",
        f"- Style preference: {profile.preferred_style or 'Not specified'}",
    ]
    if occasion:
        lines.append(f"- Occasion: {occasion}")
    lines += [
        "",
        "Create 3-5 outfits using ONLY the wardrobe items above, 2-4 items each, referenced by id.",
        'Return {"recommendations": [{"items": [ids], "confidence": 0-100, "occasion": str,',
        '"description": str, "styleNotes": str, "missingItems": [{"category": str, "color": str,',
        '"description": str, "priority": "low|medium|high"}]}],',
        '"wardrobeAnalysis": {"strengths": [str], "gaps": [str], "suggestions": [str]}}',
    ]
    return "\n".join(lines)


def build_product_prompt(profile: StyleProfile, filters: Dict[str, Any]) -> str:
    lines = [
        STYLIST_INSTRUCTIONS,
        "Recommend 5-8 fashion products for a shopper with these preferences:",
        f"- Skin tone: {profile.skin_tone or 'Medium'}",
        f"- Body type: {profile.body_type or 'Rectangle'}",
        f"- Style preference: {profile.preferred_style or 'Casual'}",
    ]
    for key, label in (("category", "Category"), ("color", "Color preference"), ("occasion", "Occasion")):
        if filters.get(key):
            lines.append(f"- {label}: {filters[key]}")
    lines.append(
        'Return a JSON array of {"name", "category", "color", "price", "description", "brand"} objects '
        "with realistic prices. Category must be one of " + ", ".join(CATEGORIES) + "."
    )
    return "\n".join(lines)


class LLMStylist:
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client=None, max_output_tokens: int = 2000):
        self.api_key = api_key
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._client = client

    def get_client(self):
        if self._client is None:
            import openai
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def generate_text(self, prompt: str) -> str:
        """Call OpenAI text responses and return the text output."""
        try:
            response = self.get_client().responses.create(
                model=self.model,
                input=prompt,
                max_output_tokens=self.max_output_tokens,
            )
        except Exception as e:
            raise StylistError(f"OpenAI text error: {e}")
        text = getattr(response, "output_text", "") or ""
        if not text and getattr(response, "output", None):
            for content in response.output[0].content:
                text += getattr(content, "text", "") or ""
        text = text.strip()
        if not text:
            raise StylistError("Empty response from OpenAI")
        return text

    # -------- Outfits --------
    def suggest_outfits(self, items: Sequence[WardrobeItem], profile: StyleProfile,
                        occasion: Optional[str] = None) -> Recommendations:
        data = _extract_json(self.generate_text(build_outfit_prompt(items, profile, occasion)))
        if not isinstance(data, dict):
            raise StylistError("Outfit response is not an object")
        known = {item.id for item in items}

        outfits: List[OutfitCandidate] = []
        for index, rec in enumerate(data.get("recommendations") or []):
            if not isinstance(rec, dict):
                continue
            item_ids = [i for i in rec.get("items") or [] if i in known]
            if not item_ids:
                continue
            try:
                confidence = float(rec.get("confidence") or 75) / 100
            except (TypeError, ValueError):
                confidence = 0.75
            outfits.append(OutfitCandidate(
                id=f"stylist_outfit_{index}",
                items=item_ids,
                confidence=max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence)),
                occasion=rec.get("occasion") or occasion or "Casual",
                description=rec.get("description") or "Curated outfit combination",
                style_notes=rec.get("styleNotes") or "Thoughtfully selected pieces that complement each other",
                missing_items=[self._missing_item(m) for m in rec.get("missingItems") or [] if isinstance(m, dict)],
            ))
        if not outfits:
            raise StylistError("No usable outfits in model output")
        logger.info("Stylist proposed %d outfits", len(outfits))

        result = Recommendations(recommendations=outfits[:6])
        analysis = data.get("wardrobeAnalysis")
        if isinstance(analysis, dict):
            result.wardrobe_analysis = WardrobeAnalysis(
                strengths=[str(s) for s in analysis.get("strengths") or []],
                gaps=[str(s) for s in analysis.get("gaps") or []],
                suggestions=[str(s) for s in analysis.get("suggestions") or []],
            )
        return result

    @staticmethod
    def _missing_item(raw: Dict[str, Any]) -> MissingItemSuggestion:
        category = raw.get("category") if raw.get("category") in CATEGORIES else "Accessories"
        color = raw.get("color") or "Black"
        priority = raw.get("priority") if raw.get("priority") in ("low", "medium", "high") else "medium"
        return MissingItemSuggestion(
            category=category,
            suggested_color=color,
            description=raw.get("description") or "Recommended item to complete the look",
            priority=priority,
            price_range=PriceRange(min=20, max=100),
            search_terms=[category.lower(), color.lower()],
        )

    # -------- Products --------
    def suggest_products(self, profile: StyleProfile, filters: Dict[str, Any]) -> List[MarketplaceProduct]:
        data = _extract_json(self.generate_text(build_product_prompt(profile, filters)))
        if isinstance(data, dict):
            data = data.get("products")
        if not isinstance(data, list) or not data:
            raise StylistError("Product response is not a list")

        products = []
        for index, raw in enumerate(data):
            if not isinstance(raw, dict):
                continue
            category = raw.get("category") if raw.get("category") in CATEGORIES else filters.get("category") or "Tops"
            color = raw.get("color") or filters.get("color") or "Black"
            name = raw.get("name") or f"{color} {category}"
            try:
                price = float(raw.get("price"))
            except (TypeError, ValueError):
                price = stable_price(name)
            products.append(MarketplaceProduct(
                id=f"stylist_{index}",
                name=name,
                category=category,
                color=color,
                price=price,
                image_url=curated_image(category),
                url=shopping_url(name),
                source="Online Store",
                brand=raw.get("brand") or "Recommended",
                description=raw.get("description")
                or f"Stylish {category.lower()} perfect for {filters.get('occasion') or 'any occasion'}",
                rating=4.5,
                relevance_score=10,
            ))
        return products
