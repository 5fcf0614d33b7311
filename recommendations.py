# recommendations.py
"""Request-level orchestration of outfit and shopping recommendations.

``RecommendationService`` owns the quota rules around the engine: the access
check, the empty-wardrobe short circuit, the optional stylist call and the
degraded answer when the engine reports an error.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from errors import NotFound, SubscriptionRequired, ValidationFailed
from llm_stylist import LLMStylist
from marketplace import MarketplaceAggregator
from outfit_engine import OutfitEngine, empty_wardrobe_analysis, fallback_recommendations
from schemas import MarketplaceProduct, PriceRange, Recommendations, StyleProfile, UserProfile, WardrobeItem
from stores import WardrobeStore
from style_rules import SHOPPING_RULES, STYLE_SEARCH_TERMS, TRENDING_SEASON_TERMS, season_for_month
from users import UserService, can_access_recommendations, subscription_info

logger = logging.getLogger(__name__)

EMPTY_WARDROBE_MESSAGE = "Add items to your wardrobe to get outfit recommendations"
MARKETPLACE_LIMIT = 20
TRENDING_LIMIT = 15
SHOPPING_LIST_LIMIT = 5
SHOPPING_PRODUCTS = 5
MARKETPLACE_SOURCES = ("ebay", "free")


def marketplace_search_terms(profile: StyleProfile, filters: Dict[str, Any]) -> List[str]:
    terms = [filters[k].lower() for k in ("category", "color", "occasion") if filters.get(k)]
    terms.extend(STYLE_SEARCH_TERMS.get(profile.preferred_style or "", []))
    return terms or ["fashion", "clothing"]


def trending_terms(profile: StyleProfile, category: Optional[str], month: int) -> List[str]:
    terms = list(TRENDING_SEASON_TERMS[season_for_month(month)])
    terms.extend(STYLE_SEARCH_TERMS.get(profile.preferred_style or "", []))
    if category:
        terms.append(category.lower())
    return terms or ["fashion", "trending"]


def rank_products_for_user(products: Sequence[MarketplaceProduct], profile: StyleProfile) -> List[MarketplaceProduct]:
    """Score products for a shopper; higher relevance first, stable on ties."""
    style = (profile.preferred_style or "").lower()
    ranked = []
    for product in products:
        score = 0.0
        if 20 <= product.price <= 100:
            score += 2
        elif product.price < 20:
            score += 1
        score += product.rating or 0
        if product.source == "eBay":
            score += 1
        if style and style in product.name.lower():
            score += 2
        ranked.append(product.model_copy(update={"relevance_score": round(score, 2)}))
    return sorted(ranked, key=lambda p: -p.relevance_score)


class RecommendationService:
    def __init__(
        self,
        users: UserService,
        wardrobe: WardrobeStore,
        engine: OutfitEngine,
        aggregator: MarketplaceAggregator,
        stylist: Optional[LLMStylist] = None,
        today: Callable[[], date] = date.today,
    ):
        self.users = users
        self.wardrobe = wardrobe
        self.engine = engine
        self.aggregator = aggregator
        self.stylist = stylist
        self.today = today

    # -------- Outfits --------
    def recommend_for_user(self, user: UserProfile, occasion: Optional[str] = None) -> Dict[str, Any]:
        items = self.wardrobe.list_for_user(user.id)
        # an empty wardrobe gets the same answer whatever the subscription state
        if not items:
            return {
                "recommendations": [],
                "message": EMPTY_WARDROBE_MESSAGE,
                "wardrobeAnalysis": empty_wardrobe_analysis().to_dict(),
                "subscriptionInfo": subscription_info(user, self.users.clock()),
            }
        self.check_access(user)
        return self._recommend(user, items, occasion)

    def recommend_for_items(self, user: UserProfile, item_ids: Optional[Sequence[str]],
                            occasion: Optional[str] = None) -> Dict[str, Any]:
        if item_ids is None:
            raise ValidationFailed("Item IDs array is required")
        self.check_access(user)
        wanted = set(item_ids)
        items = [item for item in self.wardrobe.list_for_user(user.id) if item.id in wanted]
        if not items:
            raise NotFound("No matching items found in wardrobe")
        return self._recommend(user, items, occasion)

    def check_access(self, user: UserProfile) -> Dict[str, Any]:
        access = can_access_recommendations(user, self.users.clock())
        if not access["allowed"]:
            raise SubscriptionRequired(access["message"], reason=access["reason"])
        return access

    def _recommend(self, user: UserProfile, items: List[WardrobeItem], occasion: Optional[str]) -> Dict[str, Any]:
        # reserve the quota first so concurrent requests cannot overrun it
        user = self.users.record_recommendation(user)
        result, degraded = self.generate(items, StyleProfile.from_user(user), occasion)
        body = result.to_dict()
        if degraded:
            body["degraded"] = True
        now = self.users.clock()
        body["subscriptionInfo"] = subscription_info(user, now)
        body["accessInfo"] = can_access_recommendations(user, now)
        return body

    def generate(self, items: Sequence[WardrobeItem], profile: StyleProfile,
                 occasion: Optional[str] = None) -> Tuple[Recommendations, bool]:
        """Stylist first when configured, then the engine; flags a degraded answer."""
        if self.stylist is not None:
            try:
                result = self.stylist.suggest_outfits(items, profile, occasion)
            except Exception as e:
                logger.warning("Stylist unavailable, using outfit engine: %s", e)
            else:
                self.engine.fill_products([m for rec in result.recommendations for m in rec.missing_items])
                analysis = result.wardrobe_analysis
                if not (analysis.strengths or analysis.gaps or analysis.suggestions):
                    result.wardrobe_analysis = self.engine.analyze_wardrobe(items, profile)
                return result, False

        outcome = self.engine.recommend(items, profile, occasion)
        if not outcome.ok:
            logger.warning("Serving fallback recommendation: %s", outcome.error)
            return fallback_recommendations(items, occasion), True
        return outcome.value, False

    # -------- Marketplace --------
    def marketplace_items(self, user: UserProfile, filters: Dict[str, Any]) -> List[MarketplaceProduct]:
        profile = StyleProfile.from_user(user)
        if self.stylist is not None:
            try:
                products = self.stylist.suggest_products(profile, filters)
            except Exception as e:
                logger.warning("Stylist product suggestions failed: %s", e)
            else:
                return products[:MARKETPLACE_LIMIT]

        products = self.aggregator.search_products(
            marketplace_search_terms(profile, filters),
            filters.get("category"),
            filters.get("price_range"),
            MARKETPLACE_SOURCES,
        )
        return rank_products_for_user(products, profile)[:MARKETPLACE_LIMIT]

    def search(self, query: str, category: Optional[str] = None, price_range: Optional[PriceRange] = None,
               sources: Sequence[str] = ("ebay", "rapidapi", "free")) -> List[MarketplaceProduct]:
        terms = query.split()
        if not terms:
            raise ValidationFailed("Search query is required")
        return self.aggregator.search_products(terms, category, price_range, sources)

    def shopping_list(self, user: UserProfile, occasions: Sequence[str] = ()) -> List[Dict[str, Any]]:
        """Items to buy for the categories the wardrobe is short of."""
        items = self.wardrobe.list_for_user(user.id)
        counts: Dict[str, int] = {}
        for item in items:
            counts[item.category] = counts.get(item.category, 0) + 1
        minimums = {t.category: t.minimum for t in self.engine.rules.thresholds}
        style = user.preferred_style

        entries = []
        for rule in SHOPPING_RULES:
            if len(entries) >= SHOPPING_LIST_LIMIT:
                break
            if counts.get(rule.category, 0) >= minimums.get(rule.category, 1):
                continue
            terms = list(rule.search_terms)
            if rule.styled and style:
                terms.append(style.lower())
            price_range = PriceRange(min=rule.price_min, max=rule.price_max)
            products = self.aggregator.search_products(terms, rule.category, price_range, MARKETPLACE_SOURCES)
            entries.append({
                "item": rule.item.format(style=style or "Versatile"),
                "category": rule.category,
                "priority": rule.priority,
                "reason": rule.reason,
                "searchTerms": terms,
                "priceRange": price_range.model_dump(),
                "occasions": list(occasions) if occasions and not rule.fixed_occasions else list(rule.occasions),
                "availableProducts": [p.to_dict() for p in products[:SHOPPING_PRODUCTS]],
            })
        logger.info("Shopping list for user %s has %d entries", user.id, len(entries))
        return entries

    def trending(self, user: UserProfile, category: Optional[str] = None) -> Tuple[List[MarketplaceProduct], List[str]]:
        terms = trending_terms(StyleProfile.from_user(user), category, self.today().month)
        products = self.aggregator.search_products(terms, category, None, MARKETPLACE_SOURCES)
        return products[:TRENDING_LIMIT], terms
