# app.py (StyleAI backend v1.0.0)
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import create_token, require_user
from errors import Forbidden, NotFound, StyleError, ValidationFailed
from llm_stylist import LLMStylist
from logging_config import configure_logging
from marketplace import MarketplaceAggregator
from outfit_engine import OutfitEngine
from recommendations import RecommendationService
from s3_helpers import ImageStorage
from schemas import (
    ForItemsIn,
    LoginIn,
    PriceRange,
    ProfileUpdateIn,
    SignupIn,
    SubscribeIn,
    UserProfile,
    WardrobeItem,
    WardrobeItemIn,
)
from settings import Settings, get_settings
from stores import WardrobeStore, build_stores, now_iso
from uploads import MAX_IMAGE_BYTES, validate_image
from users import SUBSCRIPTION_PLANS, UserService, can_access_recommendations, subscription_info

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# -------- Services --------
@dataclass
class AppServices:
    """Everything the routes need, built once per process."""

    settings: Settings
    users: UserService
    wardrobe: WardrobeStore
    images: ImageStorage
    engine: OutfitEngine
    aggregator: MarketplaceAggregator
    recommendations: RecommendationService


def build_services(settings: Settings) -> AppServices:
    user_store, wardrobe_store = build_stores(settings)
    users = UserService(user_store, free_limit=settings.free_recommendations_limit)
    aggregator = MarketplaceAggregator(ebay_app_id=settings.ebay_app_id)
    engine = OutfitEngine(aggregator=aggregator)
    stylist = None
    if settings.openai_api_key:
        stylist = LLMStylist(settings.openai_api_key, model=settings.openai_model)
    else:
        logger.warning("OPENAI_API_KEY not set, using the rule-based outfit engine only")
    return AppServices(
        settings=settings,
        users=users,
        wardrobe=wardrobe_store,
        images=ImageStorage(settings.use_s3, settings.s3_bucket, settings.aws_region, settings.storage_dir),
        engine=engine,
        aggregator=aggregator,
        recommendations=RecommendationService(users, wardrobe_store, engine, aggregator, stylist),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


# -------- Error handlers --------
def _first_error_message(errors) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid value").replace("Value error, ", "")
    return f"{field}: {message}" if field else message


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StyleError)
    async def style_error_handler(request: Request, exc: StyleError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            if settings.is_production:
                return JSONResponse(status_code=exc.status_code, content={"error": "Internal server error"})
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _first_error_message(exc.errors())})

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": _first_error_message(exc.errors())})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Route not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error" if settings.is_production else str(exc)
        return JSONResponse(status_code=500, content={"error": message})


# -------- Routes --------
router = APIRouter(prefix="/api")


@router.post("/auth/signup", status_code=201)
def signup(payload: SignupIn, services: AppServices = Depends(get_services)):
    user = services.users.signup(payload)
    token = create_token(user.id, services.settings.jwt_secret, services.settings.jwt_expires_in)
    logger.info("New user %s signed up", user.id)
    return {"user": user.public_dict(), "token": token}


@router.post("/auth/login")
def login(payload: LoginIn, services: AppServices = Depends(get_services)):
    user = services.users.login(payload.email, payload.password)
    token = create_token(user.id, services.settings.jwt_secret, services.settings.jwt_expires_in)
    return {"user": user.public_dict(), "token": token}


@router.get("/auth/profile")
def get_profile(user: UserProfile = Depends(require_user)):
    return user.public_dict()


@router.put("/auth/profile")
def update_profile(payload: ProfileUpdateIn, user: UserProfile = Depends(require_user),
                   services: AppServices = Depends(get_services)):
    updated = services.users.update_profile(user.id, payload.model_dump(exclude_none=True))
    return updated.public_dict()


# ---------- wardrobe ----------
@router.get("/wardrobe")
def list_wardrobe(user: UserProfile = Depends(require_user), services: AppServices = Depends(get_services)):
    return [item.to_dict() for item in services.wardrobe.list_for_user(user.id)]


@router.post("/wardrobe", status_code=201)
async def add_wardrobe_item(
    name: str = Form(...),
    category: str = Form(...),
    color: str = Form(...),
    image: Optional[UploadFile] = File(None),
    user: UserProfile = Depends(require_user),
    services: AppServices = Depends(get_services),
):
    """Upload a clothing photo and save it to the user's wardrobe."""
    fields = WardrobeItemIn(name=name, category=category, color=color)
    data = await image.read(MAX_IMAGE_BYTES + 1) if image is not None else None
    filename = image.filename if image is not None else None
    content_type = image.content_type if image is not None else None
    checked = validate_image(data, filename, content_type)

    image_url = services.images.save(checked.data, user.id, fields.category, checked.extension, checked.content_type)
    now = now_iso()
    item = WardrobeItem(
        id=str(uuid.uuid4()),
        user_id=user.id,
        name=fields.name,
        category=fields.category,
        color=fields.color,
        image_url=image_url,
        created_at=now,
        updated_at=now,
    )
    try:
        services.wardrobe.add(item)
    except Exception:
        # the record never landed, drop the stored image
        services.images.delete(image_url)
        raise
    return item.to_dict()


@router.delete("/wardrobe/{item_id}")
def delete_wardrobe_item(item_id: str, user: UserProfile = Depends(require_user),
                         services: AppServices = Depends(get_services)):
    item = services.wardrobe.get(item_id)
    if item is None:
        raise NotFound("Item not found")
    if item.user_id != user.id:
        raise Forbidden("Not authorized to delete this item")
    services.wardrobe.delete(item_id, user.id)
    services.images.delete(item.image_url)
    return {"message": "Item deleted successfully"}


# ---------- recommendations ----------
@router.get("/recommendations")
def get_recommendations(occasion: Optional[str] = None, user: UserProfile = Depends(require_user),
                        services: AppServices = Depends(get_services)):
    logger.info("Generating recommendations for user %s (occasion=%s)", user.id, occasion)
    return services.recommendations.recommend_for_user(user, occasion or None)


@router.post("/recommendations/for-items")
def recommendations_for_items(payload: ForItemsIn, user: UserProfile = Depends(require_user),
                              services: AppServices = Depends(get_services)):
    return services.recommendations.recommend_for_items(user, payload.item_ids, payload.occasion or None)


# ---------- marketplace ----------
def _price_range(min_price: Optional[float], max_price: Optional[float]) -> Optional[PriceRange]:
    if min_price is None or max_price is None:
        return None
    return PriceRange(min=min_price, max=max_price)


@router.get("/marketplace")
def marketplace(
    category: Optional[str] = None,
    color: Optional[str] = None,
    occasion: Optional[str] = None,
    minPrice: Optional[float] = None,
    maxPrice: Optional[float] = None,
    user: UserProfile = Depends(require_user),
    services: AppServices = Depends(get_services),
):
    price_range = _price_range(minPrice, maxPrice)
    filters = {"category": category, "color": color, "occasion": occasion, "price_range": price_range}
    items = services.recommendations.marketplace_items(user, filters)
    return {
        "items": [p.to_dict() for p in items],
        "totalCount": len(items),
        "filters": {
            "category": category,
            "color": color,
            "occasion": occasion,
            "priceRange": price_range.model_dump() if price_range else None,
        },
        "sources": ["eBay", "Online Stores"],
    }


@router.get("/marketplace/search")
def marketplace_search(
    q: Optional[str] = None,
    category: Optional[str] = None,
    minPrice: Optional[float] = None,
    maxPrice: Optional[float] = None,
    sources: Optional[str] = None,
    user: UserProfile = Depends(require_user),
    services: AppServices = Depends(get_services),
):
    if not q or not q.strip():
        raise ValidationFailed("Search query is required")
    source_list = [s.strip() for s in sources.split(",") if s.strip()] if sources else ["ebay", "rapidapi", "free"]
    products = services.recommendations.search(q, category, _price_range(minPrice, maxPrice), source_list)
    return {
        "products": [p.to_dict() for p in products],
        "query": q,
        "totalCount": len(products),
        "sources": source_list,
    }


@router.get("/marketplace/shopping-list")
def shopping_list(occasions: Optional[str] = None, user: UserProfile = Depends(require_user),
                  services: AppServices = Depends(get_services)):
    targets = [o.strip() for o in occasions.split(",") if o.strip()] if occasions else []
    return {"shoppingList": services.recommendations.shopping_list(user, targets)}


@router.get("/marketplace/trending")
def trending(category: Optional[str] = None, user: UserProfile = Depends(require_user),
             services: AppServices = Depends(get_services)):
    products, terms = services.recommendations.trending(user, category)
    return {
        "trending": [p.to_dict() for p in products],
        "category": category or "all",
        "terms": terms,
    }


# ---------- subscription ----------
@router.get("/subscription/plans")
def subscription_plans():
    return {"plans": SUBSCRIPTION_PLANS}


@router.get("/subscription/status")
def subscription_status(user: UserProfile = Depends(require_user), services: AppServices = Depends(get_services)):
    now = services.users.clock()
    return {"subscription": subscription_info(user, now), "access": can_access_recommendations(user, now)}


@router.post("/subscription/subscribe")
def subscribe(payload: SubscribeIn, user: UserProfile = Depends(require_user),
              services: AppServices = Depends(get_services)):
    updated = services.users.subscribe(user.id, payload.plan)
    return {
        "success": True,
        "message": "Subscription activated successfully!",
        "subscription": subscription_info(updated, services.users.clock()),
    }


@router.post("/subscription/cancel")
def cancel_subscription(user: UserProfile = Depends(require_user), services: AppServices = Depends(get_services)):
    services.users.cancel(user.id)
    return {"success": True, "message": "Subscription cancelled successfully"}


# -------- FastAPI --------
def create_app(settings: Optional[Settings] = None, services: Optional[AppServices] = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(settings)
        yield

    app = FastAPI(title="StyleAI API", version=VERSION, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app, settings)

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
            "storeBackend": settings.store_backend,
        }

    app.include_router(router)
    return app


configure_logging()
app = create_app()
