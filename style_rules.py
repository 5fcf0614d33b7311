# style_rules.py
"""Keyword and pairing tables used by the outfit engine and marketplace.

Everything the scoring looks up lives here as plain data so the tables can be
extended without touching the scoring code.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

# -------- Occasions / styles / body types / seasons --------
OCCASION_KEYWORDS: Dict[str, List[str]] = {
    "Casual": ["casual", "t-shirt", "jeans", "sneakers", "comfortable"],
    "Work": ["shirt", "blouse", "trousers", "blazer", "professional", "formal"],
    "Formal": ["dress", "suit", "formal", "elegant", "blazer", "heels"],
    "Date Night": ["dress", "elegant", "stylish", "attractive"],
    "Party": ["dress", "stylish", "fun", "colorful", "trendy"],
    "Weekend": ["casual", "comfortable", "relaxed", "jeans"],
    "Travel": ["comfortable", "versatile", "practical", "layers"],
}

STYLE_KEYWORDS: Dict[str, List[str]] = {
    "Casual": ["casual", "t-shirt", "jeans", "sneakers", "comfortable"],
    "Business": ["shirt", "blazer", "trousers", "formal", "professional"],
    "Formal": ["dress", "suit", "formal", "elegant", "classic"],
    "Bohemian": ["flowy", "boho", "loose", "artistic", "free"],
    "Minimalist": ["simple", "clean", "basic", "minimal", "sleek"],
    "Trendy": ["fashion", "trendy", "modern", "stylish", "contemporary"],
    "Classic": ["classic", "timeless", "traditional", "elegant"],
}

BODY_TYPE_KEYWORDS: Dict[str, List[str]] = {
    "Pear": ["a-line", "flowy", "loose top", "fitted bottom"],
    "Apple": ["empire waist", "v-neck", "loose", "flowy"],
    "Hourglass": ["fitted", "belted", "wrap", "tailored"],
    "Rectangle": ["layered", "textured", "ruffles", "patterns"],
    "Inverted Triangle": ["wide leg", "a-line", "loose bottom", "fitted top"],
}

SEASON_KEYWORDS: Dict[str, List[str]] = {
    "spring": ["light", "cotton", "pastel", "jacket"],
    "summer": ["light", "cotton", "shorts", "sandals", "bright"],
    "fall": ["warm", "layers", "jacket", "boots", "sweater"],
    "winter": ["warm", "coat", "boots", "sweater", "layers"],
}

# occasion -> keywords that place an item in it; checked in this order
ITEM_OCCASION_RULES: List[Tuple[List[str], List[str]]] = [
    (["casual", "t-shirt", "jeans"], ["Casual", "Weekend"]),
    (["formal", "dress", "suit"], ["Formal", "Date Night"]),
    (["work", "business", "blazer"], ["Work"]),
    (["party", "stylish"], ["Party"]),
]

STYLE_DESCRIPTIONS: Dict[str, str] = {
    "Casual": "Comfortable and relaxed for everyday activities.",
    "Business": "Professional and polished for the workplace.",
    "Formal": "Sophisticated and elegant for special occasions.",
    "Bohemian": "Free-spirited and artistic with flowing elements.",
    "Minimalist": "Clean and simple with understated elegance.",
    "Trendy": "Fashion-forward and contemporary.",
    "Classic": "Timeless and traditional with enduring appeal.",
}

STYLE_SEARCH_TERMS: Dict[str, List[str]] = {
    "Casual": ["casual", "comfortable"],
    "Business": ["professional", "business"],
    "Formal": ["formal", "elegant"],
    "Bohemian": ["boho", "bohemian"],
    "Minimalist": ["minimalist", "simple"],
    "Trendy": ["trendy", "fashion"],
    "Classic": ["classic", "timeless"],
}

TRENDING_SEASON_TERMS: Dict[str, List[str]] = {
    "spring": ["spring", "light", "pastel", "fresh"],
    "summer": ["summer", "lightweight", "breathable", "bright"],
    "fall": ["fall", "autumn", "warm", "cozy"],
    "winter": ["winter", "warm", "layering", "thermal"],
}

CATEGORY_SEARCH_TERMS: Dict[str, List[str]] = {
    "Footwear": ["shoes", "boots", "sneakers"],
    "Accessories": ["jewelry", "watch", "belt", "bag"],
    "Outerwear": ["jacket", "blazer", "coat"],
    "Tops": ["shirt", "blouse", "top"],
    "Bottoms": ["pants", "jeans", "trousers"],
}

# -------- Colors --------
# neutrals for whole-outfit coordination; navy counts here but not for pairing
COORDINATION_NEUTRALS = {"black", "white", "gray", "grey", "brown", "beige", "navy"}
PAIRING_NEUTRALS = {"black", "white", "gray", "grey", "brown", "beige"}

COMPLEMENTARY_PAIRS: List[Tuple[str, str]] = [
    ("blue", "orange"), ("red", "green"), ("yellow", "purple"),
    ("blue", "white"), ("red", "white"), ("black", "white"),
]

PAIRING_COLORS: Dict[str, List[str]] = {
    "blue": ["white", "gray", "black", "brown"],
    "red": ["white", "black", "gray"],
    "green": ["white", "black", "brown"],
    "yellow": ["black", "white", "blue"],
}

# -------- Categories --------
GOES_WELL_WITH: Dict[str, List[str]] = {
    "Tops": ["Bottoms", "Outerwear", "Accessories", "Footwear"],
    "Bottoms": ["Tops", "Outerwear", "Accessories", "Footwear"],
    "Dresses": ["Outerwear", "Accessories", "Footwear"],
    "Outerwear": ["Tops", "Bottoms", "Dresses", "Footwear"],
    "Footwear": ["Tops", "Bottoms", "Dresses", "Outerwear"],
    "Accessories": ["Tops", "Bottoms", "Dresses", "Outerwear"],
}

LAYERING_OCCASIONS = {"Work", "Formal"}
LAYERING_KEYWORDS = ["sleeveless", "tank"]
STATEMENT_KEYWORDS = ["statement", "bold", "unique"]


@dataclass(frozen=True)
class CategoryThreshold:
    category: str
    minimum: int
    strength: str
    gap: str
    suggestion: str


@dataclass(frozen=True)
class StyleSuggestion:
    category: str
    minimum: int
    suggestion: str


@dataclass(frozen=True)
class AnalysisRules:
    """Thresholds for the wardrobe strengths/gaps report."""

    thresholds: List[CategoryThreshold] = field(default_factory=lambda: [
        CategoryThreshold("Tops", 3, "Good variety of tops",
                          "Need more versatile tops", "Add 2-3 more tops in different styles"),
        CategoryThreshold("Bottoms", 2, "Sufficient bottom wear",
                          "Limited bottom wear options", "Add jeans, trousers, or skirts"),
        CategoryThreshold("Footwear", 2, "Good footwear collection",
                          "Need more footwear variety", "Add shoes for different occasions"),
        CategoryThreshold("Dresses", 1, "Elegant dress options",
                          "No dresses for elevated looks", "Add a versatile dress for special occasions"),
        CategoryThreshold("Outerwear", 1, "Good layering options",
                          "Missing outerwear for layering", "Add a blazer or jacket for versatility"),
        CategoryThreshold("Accessories", 2, "Nice accessory selection",
                          "Limited accessories", "Add accessories to enhance outfits"),
    ])
    distinct_colors: int = 4
    color_strength: str = "Great color variety"
    color_gap: str = "Limited color palette"
    color_suggestion: str = "Introduce a few new colors that pair with your neutrals"
    style_suggestions: Dict[str, List[StyleSuggestion]] = field(default_factory=lambda: {
        "Business": [
            StyleSuggestion("Outerwear", 1, "Add a tailored blazer to polish your business looks"),
            StyleSuggestion("Footwear", 1, "Add classic leather shoes or loafers for the office"),
        ],
        "Formal": [
            StyleSuggestion("Dresses", 1, "Add an elegant dress or suit for formal events"),
            StyleSuggestion("Accessories", 1, "Add a classic watch or jewelry to finish formal outfits"),
        ],
        "Casual": [
            StyleSuggestion("Footwear", 1, "Add comfortable sneakers for everyday wear"),
        ],
        "Bohemian": [
            StyleSuggestion("Dresses", 1, "Add a flowy maxi dress for an easy boho look"),
            StyleSuggestion("Accessories", 2, "Layer artisan jewelry or a fringe bag"),
        ],
        "Minimalist": [
            StyleSuggestion("Tops", 3, "Build a capsule of clean basic tops in neutral colors"),
        ],
        "Trendy": [
            StyleSuggestion("Accessories", 2, "Add a statement accessory from this season's trends"),
        ],
        "Classic": [
            StyleSuggestion("Outerwear", 1, "Add a timeless trench coat or blazer"),
        ],
    })


DEFAULT_ANALYSIS_RULES = AnalysisRules()


def season_for_month(month: int) -> str:
    """Calendar month (1-12) -> season name."""
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "fall"
    return "winter"


@dataclass(frozen=True)
class ShoppingRule:
    """One shopping-list entry, offered when the wardrobe is short of ``category``."""

    category: str
    item: str
    priority: str
    reason: str
    search_terms: List[str]
    price_min: float
    price_max: float
    occasions: List[str]
    # the entry name and search terms take the user's style when this is set
    styled: bool = False
    # requested occasions replace the defaults unless this is set
    fixed_occasions: bool = False


SHOPPING_RULES: List[ShoppingRule] = [
    ShoppingRule("Tops", "{style} Top", "high", "Essential for creating multiple outfit combinations",
                 ["shirt", "top", "blouse"], 20, 80, ["Casual", "Work"], styled=True),
    ShoppingRule("Bottoms", "{style} Bottoms", "high", "Essential for creating complete outfits",
                 ["pants", "jeans", "trousers"], 25, 100, ["Casual", "Work"], styled=True),
    ShoppingRule("Outerwear", "Professional Blazer", "medium", "Adds professionalism and versatility to outfits",
                 ["blazer", "jacket", "professional", "work"], 40, 150, ["Work", "Formal"],
                 fixed_occasions=True),
    ShoppingRule("Footwear", "Versatile Shoes", "high", "Complete your outfits with appropriate footwear",
                 ["shoes", "footwear"], 30, 120, ["Casual", "Work"], styled=True),
    ShoppingRule("Accessories", "Statement Accessories", "medium", "Enhance your outfits with finishing touches",
                 ["accessories", "jewelry", "watch", "belt"], 15, 60, ["Casual", "Work", "Date Night"]),
]
