# outfit_engine.py
"""Rule-based outfit generator and scorer.

Turns a wardrobe, a style profile and an optional occasion into a ranked list
of outfit candidates. Candidate generation is deterministic: dresses first,
then every top/bottom pair, then statement pieces on a neutral base until
there are enough candidates. Each candidate is scored with weighted keyword,
color and completeness heuristics, and the survivors are annotated with
missing-item suggestions backed by live marketplace lookups.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from errors import EngineError
from schemas import (
    MarketplaceProduct,
    MissingItemSuggestion,
    OutfitCandidate,
    PriceRange,
    Recommendations,
    StyleProfile,
    WardrobeAnalysis,
    WardrobeItem,
)
from style_rules import (
    BODY_TYPE_KEYWORDS,
    CATEGORY_SEARCH_TERMS,
    COMPLEMENTARY_PAIRS,
    COORDINATION_NEUTRALS,
    DEFAULT_ANALYSIS_RULES,
    GOES_WELL_WITH,
    ITEM_OCCASION_RULES,
    LAYERING_KEYWORDS,
    LAYERING_OCCASIONS,
    OCCASION_KEYWORDS,
    PAIRING_COLORS,
    PAIRING_NEUTRALS,
    SEASON_KEYWORDS,
    STATEMENT_KEYWORDS,
    STYLE_DESCRIPTIONS,
    STYLE_KEYWORDS,
    AnalysisRules,
    season_for_month,
)

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.95

WEIGHTS = {
    "occasion": 0.3,
    "style": 0.2,
    "color": 0.15,
    "completeness": 0.15,
    "body_type": 0.1,
    "season": 0.1,
}

SHOPPING_SOURCES = ("ebay", "free")


def _clamp(value: float, low: float = MIN_CONFIDENCE, high: float = MAX_CONFIDENCE) -> float:
    return max(low, min(high, value))


def _by_category(items: Iterable[WardrobeItem], category: str) -> List[WardrobeItem]:
    return [item for item in items if item.category == category]


def keyword_overlap(items: Sequence[WardrobeItem], keywords: Sequence[str], use_category: bool = True) -> float:
    """Average over items of the fraction of keywords found in the item text."""
    if not items or not keywords:
        return 0.0
    total = 0.0
    for item in items:
        text = item.text if use_category else item.name.lower()
        total += sum(1 for keyword in keywords if keyword in text) / len(keywords)
    return total / len(items)


# -------- Color rules --------
def color_coordination_score(items: Sequence[WardrobeItem]) -> float:
    colors = [item.color.lower() for item in items]
    if any(color in COORDINATION_NEUTRALS for color in colors):
        return 0.8
    if all(color == colors[0] for color in colors):
        return 0.9
    for first, second in COMPLEMENTARY_PAIRS:
        if first in colors and second in colors:
            return 0.7
    return 0.4


def colors_match(first: str, second: str) -> bool:
    a, b = first.lower(), second.lower()
    if a in PAIRING_NEUTRALS or b in PAIRING_NEUTRALS:
        return True
    if a == b:
        return True
    return b in PAIRING_COLORS.get(a, []) or a in PAIRING_COLORS.get(b, [])


def is_neutral(item: WardrobeItem) -> bool:
    return item.color.lower() in COORDINATION_NEUTRALS


def suggest_complementary_color(items: Sequence[WardrobeItem]) -> str:
    colors = {item.color.lower() for item in items}
    if colors & {"black", "white", "gray", "brown"}:
        return "Black"
    if "blue" in colors:
        return "Brown"
    return "Black"


def completeness_score(items: Sequence[WardrobeItem]) -> float:
    categories = {item.category for item in items}
    score = 0.0
    if "Dresses" in categories or {"Tops", "Bottoms"} <= categories:
        score += 0.5
    if "Footwear" in categories:
        score += 0.2
    if "Outerwear" in categories:
        score += 0.2
    if "Accessories" in categories:
        score += 0.1
    return min(score, 1.0)


# -------- Occasions --------
def item_occasions(item: WardrobeItem) -> List[str]:
    occasions: List[str] = []
    for keywords, tags in ITEM_OCCASION_RULES:
        if any(keyword in item.text for keyword in keywords):
            occasions.extend(tags)
    return occasions or ["Casual"]


def best_occasion_for_items(items: Sequence[WardrobeItem]) -> str:
    counts = Counter(occ for item in items for occ in item_occasions(item))
    if not counts:
        return "Casual"
    return counts.most_common(1)[0][0]


def matches_occasion(items: Sequence[WardrobeItem], occasion: Optional[str]) -> bool:
    if not occasion:
        return False
    return any(occasion in item_occasions(item) for item in items)


def is_statement_piece(item: WardrobeItem) -> bool:
    if item.category == "Accessories":
        return True
    name = item.name.lower()
    return item.category == "Outerwear" and any(keyword in name for keyword in STATEMENT_KEYWORDS)


def needs_layer(items: Sequence[WardrobeItem], occasion: Optional[str]) -> bool:
    if occasion in LAYERING_OCCASIONS:
        return True
    return any(keyword in item.name.lower() for item in items for keyword in LAYERING_KEYWORDS)


def search_terms_for(category: str, occasion: Optional[str], profile: StyleProfile) -> List[str]:
    terms = [category.lower()]
    if occasion:
        terms.append(occasion.lower())
    if profile.preferred_style:
        terms.append(profile.preferred_style.lower())
    terms.extend(CATEGORY_SEARCH_TERMS.get(category, []))
    return [term for term in terms if term]


@dataclass
class EngineResult:
    """Either recommendations or the error that prevented computing them."""

    value: Optional[Recommendations] = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Draft:
    id: str
    items: List[WardrobeItem]

    @property
    def key(self) -> frozenset:
        return frozenset(item.id for item in self.items)


class OutfitEngine:
    """Generates and ranks outfit candidates for one wardrobe."""

    def __init__(
        self,
        aggregator=None,
        rules: AnalysisRules = DEFAULT_ANALYSIS_RULES,
        today: Callable[[], date] = date.today,
        max_recommendations: int = 6,
        target_candidates: int = 8,
        products_per_suggestion: int = 3,
        max_workers: int = 6,
    ):
        self.aggregator = aggregator
        self.rules = rules
        self.today = today
        self.max_recommendations = max_recommendations
        self.target_candidates = target_candidates
        self.products_per_suggestion = products_per_suggestion
        self.max_workers = max_workers

    # -------- Public entry points --------
    def recommend(self, items: Sequence[WardrobeItem], profile: StyleProfile,
                  occasion: Optional[str] = None) -> EngineResult:
        """Run the whole pipeline, reporting failures instead of raising them."""
        try:
            return EngineResult(value=self.build_recommendations(items, profile, occasion))
        except Exception as e:
            logger.exception("Outfit engine failed for %d items", len(items))
            return EngineResult(error=EngineError(f"Outfit engine failed: {e}"))

    def build_recommendations(self, items: Sequence[WardrobeItem], profile: StyleProfile,
                              occasion: Optional[str] = None) -> Recommendations:
        analysis = self.analyze_wardrobe(items, profile)
        ranked = self.generate_candidates(items, profile, occasion)[: self.max_recommendations]
        by_id = {item.id: item for item in items}
        self.attach_missing_items(ranked, by_id, profile)
        logger.info("Generated %d outfit recommendations (occasion=%s)", len(ranked), occasion)
        return Recommendations(recommendations=ranked, wardrobe_analysis=analysis)

    # -------- Analysis --------
    def analyze_wardrobe(self, items: Sequence[WardrobeItem], profile: StyleProfile) -> WardrobeAnalysis:
        categories = Counter(item.category for item in items)
        colors = Counter(item.color.strip().lower() for item in items)
        analysis = WardrobeAnalysis(category_counts=dict(categories), color_counts=dict(colors))

        for threshold in self.rules.thresholds:
            if categories.get(threshold.category, 0) >= threshold.minimum:
                analysis.strengths.append(threshold.strength)
            else:
                analysis.gaps.append(threshold.gap)
                analysis.suggestions.append(threshold.suggestion)

        if len(colors) >= self.rules.distinct_colors:
            analysis.strengths.append(self.rules.color_strength)
        else:
            analysis.gaps.append(self.rules.color_gap)
            analysis.suggestions.append(self.rules.color_suggestion)

        for hint in self.rules.style_suggestions.get(profile.preferred_style or "", []):
            if categories.get(hint.category, 0) < hint.minimum and hint.suggestion not in analysis.suggestions:
                analysis.suggestions.append(hint.suggestion)
        return analysis

    # -------- Scoring --------
    def calculate_confidence(self, items: Sequence[WardrobeItem], profile: StyleProfile,
                             occasion: Optional[str]) -> float:
        confidence = 0.5
        if occasion:
            confidence += keyword_overlap(items, OCCASION_KEYWORDS.get(occasion, [])) * WEIGHTS["occasion"]
        if profile.preferred_style:
            confidence += keyword_overlap(items, STYLE_KEYWORDS.get(profile.preferred_style, [])) * WEIGHTS["style"]
        if len(items) > 1:
            confidence += color_coordination_score(items) * WEIGHTS["color"]
        confidence += completeness_score(items) * WEIGHTS["completeness"]
        if profile.body_type:
            body_keywords = BODY_TYPE_KEYWORDS.get(profile.body_type, [])
            confidence += keyword_overlap(items, body_keywords, use_category=False) * WEIGHTS["body_type"]
        season = season_for_month(self.today().month)
        confidence += keyword_overlap(items, SEASON_KEYWORDS[season]) * WEIGHTS["season"]
        return round(_clamp(confidence), 4)

    def match_score(self, item: WardrobeItem, base: WardrobeItem, occasion: Optional[str]) -> float:
        score = 0.0
        if colors_match(item.color, base.color):
            score += 0.5
        if occasion and occasion in item_occasions(item):
            score += 0.3
        if base.category in GOES_WELL_WITH.get(item.category, []):
            score += 0.2
        return score

    def find_best_match(self, candidates: Sequence[WardrobeItem], base: WardrobeItem,
                        occasion: Optional[str]) -> Optional[WardrobeItem]:
        """Highest match score wins; on a tie the earlier wardrobe item is kept."""
        best, best_score = None, -1.0
        for candidate in candidates:
            score = self.match_score(candidate, base, occasion)
            if score > best_score:
                best, best_score = candidate, score
        return best

    # -------- Generation --------
    def generate_candidates(self, items: Sequence[WardrobeItem], profile: StyleProfile,
                            occasion: Optional[str] = None) -> List[OutfitCandidate]:
        """Every candidate outfit, ranked: occasion matches first, then confidence."""
        drafts = self._drafts(items, profile, occasion)
        scored: List[Tuple[bool, OutfitCandidate]] = []
        for draft in drafts:
            candidate = OutfitCandidate(
                id=draft.id,
                items=[item.id for item in draft.items],
                confidence=self.calculate_confidence(draft.items, profile, occasion),
                occasion=occasion or best_occasion_for_items(draft.items),
                description=self.describe(draft.items, occasion, profile),
                style_notes=self.style_notes(draft.items, profile),
            )
            scored.append((matches_occasion(draft.items, occasion), candidate))
        scored.sort(key=lambda pair: (not pair[0], -pair[1].confidence))
        return [candidate for _, candidate in scored]

    def _drafts(self, items: Sequence[WardrobeItem], profile: StyleProfile,
                occasion: Optional[str]) -> List[_Draft]:
        tops = _by_category(items, "Tops")
        bottoms = _by_category(items, "Bottoms")
        dresses = _by_category(items, "Dresses")
        outerwear = _by_category(items, "Outerwear")
        footwear = _by_category(items, "Footwear")
        accessories = _by_category(items, "Accessories")
        wants_accessory = profile.preferred_style != "Minimalist"

        def finish(base: List[WardrobeItem], anchor: WardrobeItem) -> List[WardrobeItem]:
            outfit = list(base)
            if outerwear and needs_layer(base, occasion):
                outfit.append(self.find_best_match(outerwear, anchor, occasion))
            if footwear:
                outfit.append(self.find_best_match(footwear, anchor, occasion))
            if accessories and wants_accessory:
                outfit.append(self.find_best_match(accessories, anchor, occasion))
            return outfit

        drafts: List[_Draft] = []
        for index, dress in enumerate(dresses, start=1):
            drafts.append(_Draft(f"dress_outfit_{index}", finish([dress], dress)))

        for top_index, top in enumerate(tops):
            for bottom_index, bottom in enumerate(bottoms):
                drafts.append(_Draft(f"combo_outfit_{top_index}_{bottom_index}", finish([top, bottom], top)))

        if len(drafts) < self.target_candidates:
            drafts.extend(self._statement_drafts(items, occasion, drafts))
        return drafts

    def _statement_drafts(self, items: Sequence[WardrobeItem], occasion: Optional[str],
                          existing: List[_Draft]) -> List[_Draft]:
        pieces = [item for item in items if is_statement_piece(item)]
        if not pieces:
            return []
        neutral_tops = [i for i in _by_category(items, "Tops") if is_neutral(i)]
        neutral_bottoms = [i for i in _by_category(items, "Bottoms") if is_neutral(i)]
        bases: List[List[WardrobeItem]] = [[t, b] for t in neutral_tops for b in neutral_bottoms]
        bases.extend([d] for d in _by_category(items, "Dresses") if is_neutral(d))
        footwear = _by_category(items, "Footwear")

        seen = {draft.key for draft in existing}
        drafts: List[_Draft] = []
        for piece in pieces:
            for base in bases:
                if len(existing) + len(drafts) >= self.target_candidates:
                    return drafts
                outfit = base + [piece]
                if footwear:
                    outfit.append(self.find_best_match(footwear, base[0], occasion))
                draft = _Draft(f"statement_outfit_{len(drafts) + 1}", outfit)
                if draft.key in seen:
                    continue
                seen.add(draft.key)
                drafts.append(draft)
        return drafts

    # -------- Text --------
    def describe(self, items: Sequence[WardrobeItem], occasion: Optional[str], profile: StyleProfile) -> str:
        dress = next((i for i in items if i.category == "Dresses"), None)
        if dress:
            style_text = STYLE_DESCRIPTIONS.get(profile.preferred_style or "", "Stylish and versatile for various occasions.")
            return f"Elegant {dress.color.lower()} dress perfect for {occasion or 'any occasion'}. {style_text}"
        top = next((i for i in items if i.category == "Tops"), None)
        bottom = next((i for i in items if i.category == "Bottoms"), None)
        if top and bottom:
            text = (f"Stylish combination of {top.color.lower()} {top.name.lower()} with "
                    f"{bottom.color.lower()} {bottom.name.lower()}. Perfect for {occasion or 'everyday wear'}.")
            piece = next((i for i in items if is_statement_piece(i) and i.category != "Accessories"), None)
            if piece:
                text += f" Your {piece.name.lower()} takes center stage."
            return text
        return f"A well-coordinated outfit featuring {items[0].color.lower()} tones, ideal for {occasion or 'various occasions'}."

    def style_notes(self, items: Sequence[WardrobeItem], profile: StyleProfile) -> str:
        notes = []
        if profile.skin_tone:
            notes.append(f"The color palette complements your {profile.skin_tone} skin tone beautifully.")
        if profile.body_type:
            notes.append(f"This combination flatters your {profile.body_type} body type.")
        if profile.preferred_style:
            notes.append(f"Perfectly aligned with your {profile.preferred_style} style preference.")
        if len(items) > 1 and colors_match(items[0].color, items[1].color):
            notes.append("The color coordination creates a harmonious and polished look.")
        return " ".join(notes) or "A well-balanced outfit that showcases your personal style."

    # -------- Missing items --------
    def missing_items_for(self, candidate: OutfitCandidate, outfit_items: Sequence[WardrobeItem],
                          profile: StyleProfile) -> List[MissingItemSuggestion]:
        categories = {item.category for item in outfit_items}
        occasion = candidate.occasion
        suggestions: List[MissingItemSuggestion] = []
        if "Footwear" not in categories:
            suggestions.append(MissingItemSuggestion(
                category="Footwear",
                suggested_color=suggest_complementary_color(outfit_items),
                description=f"{occasion} shoes to complete the outfit",
                priority="high",
                price_range=PriceRange(min=30, max=120),
                search_terms=search_terms_for("Footwear", occasion, profile),
            ))
        if "Accessories" not in categories and profile.preferred_style != "Minimalist":
            suggestions.append(MissingItemSuggestion(
                category="Accessories",
                suggested_color="Multi",
                description=f"Accessories to enhance your {occasion.lower()} look",
                priority="medium",
                price_range=PriceRange(min=15, max=60),
                search_terms=search_terms_for("Accessories", occasion, profile),
            ))
        if occasion in LAYERING_OCCASIONS and "Outerwear" not in categories:
            suggestions.append(MissingItemSuggestion(
                category="Outerwear",
                suggested_color="Black",
                description=f"A tailored layer to finish your {occasion.lower()} outfit",
                priority="high",
                price_range=PriceRange(min=50, max=200),
                search_terms=search_terms_for("Outerwear", occasion, profile),
            ))
        return suggestions

    def attach_missing_items(self, candidates: Sequence[OutfitCandidate], by_id: Dict[str, WardrobeItem],
                             profile: StyleProfile) -> None:
        """Fill in missing-item suggestions, fetching their products in parallel."""
        pending: List[MissingItemSuggestion] = []
        for candidate in candidates:
            outfit_items = [by_id[item_id] for item_id in candidate.items if item_id in by_id]
            candidate.missing_items = self.missing_items_for(candidate, outfit_items, profile)
            pending.extend(candidate.missing_items)
        self.fill_products(pending)

    def fill_products(self, pending: Sequence[MissingItemSuggestion]) -> None:
        if not pending or self.aggregator is None:
            return
        # identical lookups are shared within one request
        lookups: Dict[Tuple, MissingItemSuggestion] = {}
        for suggestion in pending:
            lookups.setdefault(self._lookup_key(suggestion), suggestion)
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = dict(zip(lookups, pool.map(self._fetch_products, lookups.values())))
        for suggestion in pending:
            products = results[self._lookup_key(suggestion)]
            suggestion.available_products = [p.model_copy() for p in products]

    @staticmethod
    def _lookup_key(suggestion: MissingItemSuggestion) -> Tuple:
        price = suggestion.price_range
        return (tuple(suggestion.search_terms), suggestion.category, price.min, price.max)

    def _fetch_products(self, suggestion: MissingItemSuggestion) -> List[MarketplaceProduct]:
        try:
            products = self.aggregator.search_products(
                suggestion.search_terms,
                suggestion.category,
                suggestion.price_range,
                SHOPPING_SOURCES,
            )
        except Exception as e:
            logger.warning("Marketplace lookup for %s failed: %s", suggestion.category, e)
            return []
        return products[: self.products_per_suggestion]


def fallback_recommendations(items: Sequence[WardrobeItem], occasion: Optional[str] = None) -> Recommendations:
    """Generic two-item outfit served when the engine reports an error."""
    return Recommendations(
        recommendations=[
            OutfitCandidate(
                id="fallback_outfit_1",
                items=[item.id for item in items[:2]],
                confidence=0.75,
                occasion=occasion or "Casual",
                description="A versatile outfit that works well with your style preferences.",
                style_notes="This combination creates a balanced look that complements your features.",
            )
        ],
        wardrobe_analysis=WardrobeAnalysis(
            strengths=["Good foundation pieces"],
            gaps=["Could use more accessories"],
            suggestions=["Consider adding versatile pieces that can be mixed and matched"],
        ),
    )


def empty_wardrobe_analysis() -> WardrobeAnalysis:
    return WardrobeAnalysis(
        strengths=[],
        gaps=["Empty wardrobe"],
        suggestions=["Start by adding basic items like tops and bottoms"],
    )
