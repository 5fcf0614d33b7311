# schemas.py
"""Pydantic models for stored entities, computed recommendations and requests."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

CATEGORIES = ("Tops", "Bottoms", "Dresses", "Outerwear", "Footwear", "Accessories")
SKIN_TONES = ("Very Fair", "Fair", "Light", "Medium", "Tan", "Deep", "Very Deep")
BODY_TYPES = ("Pear", "Apple", "Hourglass", "Rectangle", "Inverted Triangle")
STYLES = ("Casual", "Business", "Formal", "Bohemian", "Minimalist", "Trendy", "Classic")
PLAN_IDS = ("1_month", "3_months", "6_months", "1_year")

Category = Literal["Tops", "Bottoms", "Dresses", "Outerwear", "Footwear", "Accessories"]
SkinTone = Literal["Very Fair", "Fair", "Light", "Medium", "Tan", "Deep", "Very Deep"]
BodyType = Literal["Pear", "Apple", "Hourglass", "Rectangle", "Inverted Triangle"]
Style = Literal["Casual", "Business", "Formal", "Bohemian", "Minimalist", "Trendy", "Classic"]
PlanId = Literal["1_month", "3_months", "6_months", "1_year"]
Priority = Literal["low", "medium", "high"]


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire and in the tables."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# -------- Durable entities --------
class WardrobeItem(CamelModel):
    id: str
    user_id: str
    name: str
    category: Category
    color: str
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def text(self) -> str:
        """Lowercased name and category, used by keyword matching."""
        return f"{self.name} {self.category}".lower()


class UserProfile(CamelModel):
    id: str
    email: str
    name: str
    password_hash: Optional[str] = None
    skin_tone: Optional[str] = None
    body_type: Optional[str] = None
    preferred_style: Optional[str] = None
    subscription_status: Literal["free", "active", "cancelled"] = "free"
    subscription_plan: Optional[str] = None
    subscription_start_date: Optional[str] = None
    subscription_end_date: Optional[str] = None
    recommendations_used: int = 0
    free_recommendations_limit: int = 3
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def public_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"password_hash"})


class StyleProfile(CamelModel):
    """The part of a user profile the outfit engine looks at."""

    preferred_style: Optional[str] = None
    body_type: Optional[str] = None
    skin_tone: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[UserProfile]) -> "StyleProfile":
        if user is None:
            return cls()
        return cls(
            preferred_style=user.preferred_style,
            body_type=user.body_type,
            skin_tone=user.skin_tone,
        )


# -------- Computed per request --------
class PriceRange(BaseModel):
    min: float
    max: float

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max


class MarketplaceProduct(CamelModel):
    id: str
    name: str
    category: Optional[str] = None
    color: Optional[str] = None
    price: float = 0.0
    image_url: Optional[str] = None
    url: Optional[str] = None
    source: str = "Online Store"
    brand: Optional[str] = None
    rating: Optional[float] = None
    description: Optional[str] = None
    relevance_score: Optional[float] = None


class MissingItemSuggestion(CamelModel):
    category: str
    suggested_color: str
    description: str
    priority: Priority
    price_range: PriceRange
    search_terms: List[str] = Field(default_factory=list)
    available_products: List[MarketplaceProduct] = Field(default_factory=list)


class OutfitCandidate(CamelModel):
    id: str
    items: List[str]
    confidence: float
    occasion: str
    description: str
    style_notes: str
    missing_items: List[MissingItemSuggestion] = Field(default_factory=list)


class WardrobeAnalysis(CamelModel):
    strengths: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    category_counts: Dict[str, int] = Field(default_factory=dict)
    color_counts: Dict[str, int] = Field(default_factory=dict)


class Recommendations(CamelModel):
    recommendations: List[OutfitCandidate] = Field(default_factory=list)
    wardrobe_analysis: WardrobeAnalysis = Field(default_factory=WardrobeAnalysis)


# -------- Requests --------
class SignupIn(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _normalize_email(value)


class LoginIn(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _normalize_email(value)


class ProfileUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    skin_tone: Optional[SkinTone] = None
    body_type: Optional[BodyType] = None
    preferred_style: Optional[Style] = None


class WardrobeItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: Category
    color: str = Field(min_length=1)


class ForItemsIn(CamelModel):
    item_ids: Optional[List[str]] = None
    occasion: Optional[str] = None


class SubscribeIn(BaseModel):
    plan: PlanId


def _normalize_email(value: Any) -> Any:
    # stored lowercase; EmailStr checks the syntax afterwards
    return value.strip().lower() if isinstance(value, str) else value
