# marketplace.py
"""Product search across external catalogs.

Two source groups are queried in parallel: the eBay Finding API ("ebay") and
the free public catalogs FakeStore and DummyJSON ("free"). Every source falls
back to a small curated catalog keyed by category, so a search never fails;
it returns best-effort products instead.
"""

import hashlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote

import requests

from schemas import MarketplaceProduct, PriceRange

logger = logging.getLogger(__name__)

EBAY_ENDPOINT = "https://svcs.sandbox.ebay.com/services/search/FindingService/v1"
FAKESTORE_URL = "https://fakestoreapi.com/products"
DUMMYJSON_URL = "https://dummyjson.com/products/search"
USER_AGENT = "StyleAI/1.0 (Fashion Recommendation App)"

EBAY_CATEGORY_IDS = {
    "Tops": "15724",
    "Bottoms": "11554",
    "Dresses": "63861",
    "Outerwear": "57988",
    "Footwear": "93427",
    "Accessories": "4250",
}

FAKESTORE_CATEGORIES = {
    "men's clothing": "Tops",
    "women's clothing": "Tops",
    "jewelery": "Accessories",
    "jewelry": "Accessories",
}

# ebay category name fragment -> our category, first hit wins
EBAY_CATEGORY_HINTS = [
    (("shirt", "top", "blouse"), "Tops"),
    (("pants", "jeans", "trouser"), "Bottoms"),
    (("dress",), "Dresses"),
    (("jacket", "coat", "blazer"), "Outerwear"),
    (("shoes", "boot", "sneaker"), "Footwear"),
    (("jewelry", "watch", "accessory"), "Accessories"),
]

CATEGORY_MATCH_WORDS = {
    "Tops": ["shirt", "blouse", "top", "tee", "t-shirt"],
    "Bottoms": ["pants", "jeans", "trousers", "shorts"],
    "Dresses": ["dress", "gown"],
    "Footwear": ["shoes", "boots", "sneakers", "heels"],
    "Accessories": ["jewelry", "watch", "belt", "bag"],
    "Outerwear": ["jacket", "coat", "blazer", "cardigan"],
}

KNOWN_BRANDS = ["Nike", "Adidas", "Zara", "H&M", "Uniqlo", "Gap", "Levi's", "Calvin Klein"]

STORE_SEARCH_URLS = [
    "https://www.ebay.com/sch/i.html?_nkw={}",
    "https://www.etsy.com/search?q={}",
    "https://www.walmart.com/search?q={}",
    "https://www.target.com/s?searchTerm={}",
]

PLACEHOLDER_IMAGE_MARKERS = ("placeholder", "s-l64", "thumbs")
PLACEHOLDER_URL_MARKERS = ("dummyjson", "localhost", "fakestoreapi")


def _pexels(photo_id: int) -> str:
    return f"https://images.pexels.com/photos/{photo_id}/pexels-photo-{photo_id}.jpeg?auto=compress&cs=tinysrgb&w=600"


# category -> (name, brand, source, image)
CURATED_CATALOG: Dict[str, List[tuple]] = {
    "Tops": [
        ("Classic Button-Down Shirt", "ClassicWear", "Fashion Store", _pexels(996329)),
        ("Casual Cotton T-Shirt", "ComfortFit", "eBay", _pexels(8532616)),
        ("Elegant Blouse", "ElegantStyle", "Online Store", _pexels(7679720)),
    ],
    "Bottoms": [
        ("Classic Denim Jeans", "DenimCo", "eBay", _pexels(1598507)),
        ("Formal Trousers", "FormalWear", "Fashion Store", _pexels(7679471)),
        ("Casual Chinos", "CasualFit", "Online Store", _pexels(1598508)),
    ],
    "Dresses": [
        ("Elegant Evening Dress", "EveningWear", "Fashion Store", _pexels(985635)),
        ("Casual Summer Dress", "SummerStyle", "eBay", _pexels(7679720)),
        ("Business Dress", "BusinessChic", "Online Store", _pexels(7679471)),
    ],
    "Outerwear": [
        ("Classic Blazer", "ClassicTailoring", "Fashion Store", _pexels(1040945)),
        ("Casual Jacket", "CasualWear", "eBay", _pexels(7679720)),
        ("Winter Coat", "WinterWear", "Online Store", _pexels(8532616)),
    ],
    "Footwear": [
        ("Classic Leather Shoes", "LeatherCraft", "eBay", _pexels(2529148)),
        ("Casual Sneakers", "SportStyle", "Fashion Store", _pexels(2529147)),
        ("Elegant Heels", "ElegantSteps", "Online Store", _pexels(7679720)),
    ],
    "Accessories": [
        ("Classic Watch", "TimeStyle", "Fashion Store", _pexels(1927259)),
        ("Leather Belt", "LeatherGoods", "eBay", _pexels(7679471)),
        ("Fashion Jewelry", "JewelryPlus", "Online Store", _pexels(8532616)),
    ],
}


# -------- Deterministic stand-ins for missing data --------
def _stable_int(seed: str) -> int:
    return int(hashlib.sha256(seed.encode("utf-8")).hexdigest()[:12], 16)


def stable_price(seed: str) -> float:
    """Price between 15 and 94 derived from the seed."""
    return float(15 + _stable_int("price:" + seed) % 80)


def stable_rating(seed: str) -> float:
    """Rating between 3.0 and 5.0 derived from the seed."""
    return round(3.0 + (_stable_int("rating:" + seed) % 21) / 10, 1)


def shopping_url(name: Optional[str]) -> str:
    name = name or "fashion item"
    template = STORE_SEARCH_URLS[_stable_int("store:" + name) % len(STORE_SEARCH_URLS)]
    return template.format(quote(name, safe=""))


def curated_image(category: Optional[str]) -> str:
    entries = CURATED_CATALOG.get(category or "", CURATED_CATALOG["Tops"])
    return entries[0][3]


# -------- Category helpers --------
def extract_brand(title: Optional[str]) -> Optional[str]:
    if not title:
        return None
    lowered = title.lower()
    return next((brand for brand in KNOWN_BRANDS if brand.lower() in lowered), None)


def category_matches(source_category: str, category: Optional[str]) -> bool:
    return any(word in source_category for word in CATEGORY_MATCH_WORDS.get(category or "", []))


def map_ebay_category(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    lowered = name.lower()
    for hints, category in EBAY_CATEGORY_HINTS:
        if any(hint in lowered for hint in hints):
            return category
    return None


def _first(value: Any) -> Any:
    """eBay JSON wraps every scalar in a one-element list."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


# -------- Parsers --------
def parse_ebay_response(payload: Dict[str, Any], category: Optional[str]) -> List[MarketplaceProduct]:
    response = _first(payload.get("findItemsByKeywordsResponse")) or {}
    result = _first(response.get("searchResult")) or {}
    products = []
    for item in result.get("item", []):
        item_id = _first(item.get("itemId"))
        title = _first(item.get("title")) or "Fashion Item"
        ebay_category = _first((_first(item.get("primaryCategory")) or {}).get("categoryName"))
        image = (_first(item.get("pictureURLSuperSize"))
                 or _first(item.get("pictureURLLarge"))
                 or _first(item.get("galleryURL")))
        price = _first((_first(item.get("sellingStatus")) or {}).get("currentPrice")) or {}
        products.append(MarketplaceProduct(
            id=f"ebay_{item_id}",
            name=title,
            price=float(price.get("__value__", 0) or 0),
            image_url=image,
            url=_first(item.get("viewItemURL")) or f"https://www.ebay.com/itm/{item_id}",
            source="eBay",
            brand=extract_brand(title) or "Various",
            category=map_ebay_category(ebay_category) or category,
        ))
    return products


def parse_fakestore_response(items: Iterable[Dict[str, Any]], terms: Sequence[str],
                             category: Optional[str], limit: int = 8) -> List[MarketplaceProduct]:
    keywords = " ".join(terms).lower().split()
    products = []
    for item in items:
        title = item.get("title") or ""
        source_category = (item.get("category") or "").lower()
        relevant = any(
            keyword in title.lower() or keyword in source_category for keyword in keywords
        ) or category_matches(source_category, category)
        if not relevant:
            continue
        products.append(MarketplaceProduct(
            id=f"fakestore_{item.get('id')}",
            name=title,
            price=float(item.get("price") or 0),
            image_url=item.get("image"),
            url=shopping_url(title),
            source="Fashion Store",
            brand=extract_brand(title) or "StyleBrand",
            category=FAKESTORE_CATEGORIES.get(source_category, "Tops"),
            rating=(item.get("rating") or {}).get("rate"),
        ))
        if len(products) >= limit:
            break
    return products


def parse_dummyjson_response(payload: Dict[str, Any], category: Optional[str]) -> List[MarketplaceProduct]:
    products = []
    for item in payload.get("products", []):
        title = item.get("title") or "Fashion Item"
        images = item.get("images") or []
        products.append(MarketplaceProduct(
            id=f"dummy_{item.get('id')}",
            name=title,
            price=float(item.get("price") or 0),
            image_url=item.get("thumbnail") or (images[0] if images else curated_image(category)),
            url=shopping_url(title),
            source="Online Store",
            brand=item.get("brand") or "TrendyBrand",
            category=category,
            rating=item.get("rating"),
        ))
    return products


def fallback_products(terms: Sequence[str], category: Optional[str]) -> List[MarketplaceProduct]:
    """Curated products for a category, used whenever a source has nothing."""
    key = category if category in CURATED_CATALOG else "Tops"
    keywords = " ".join(terms)
    products = []
    for index, (name, brand, source, image) in enumerate(CURATED_CATALOG[key]):
        full_name = f"{name} - {keywords}" if keywords else name
        products.append(MarketplaceProduct(
            id=f"curated_{key}_{index}",
            name=full_name,
            price=stable_price(full_name),
            image_url=image,
            url=shopping_url(f"{name} {keywords}".strip()),
            source=source,
            brand=brand,
            category=category or key,
            rating=stable_rating(full_name),
        ))
    return products


# -------- Post-processing --------
def remove_duplicates(products: Iterable[MarketplaceProduct]) -> List[MarketplaceProduct]:
    seen = set()
    unique = []
    for product in products:
        key = f"{product.name.lower()[:20]}_{int(product.price // 1)}"
        if key in seen:
            continue
        seen.add(key)
        unique.append(product)
    return unique


def validate_and_enhance(products: Iterable[MarketplaceProduct]) -> List[MarketplaceProduct]:
    """Replace placeholder images/links and fill in missing price or rating."""
    repaired = []
    for product in products:
        fixed = product.model_copy()
        image = fixed.image_url or ""
        if not image or any(marker in image for marker in PLACEHOLDER_IMAGE_MARKERS):
            fixed.image_url = curated_image(fixed.category)
        url = fixed.url or ""
        if not url or any(marker in url for marker in PLACEHOLDER_URL_MARKERS):
            fixed.url = shopping_url(fixed.name)
        if not fixed.price or fixed.price <= 0:
            fixed.price = stable_price(fixed.name)
        if not fixed.rating:
            fixed.rating = stable_rating(fixed.name)
        repaired.append(fixed)
    return repaired


def sort_products(products: Iterable[MarketplaceProduct],
                  price_range: Optional[PriceRange] = None) -> List[MarketplaceProduct]:
    """Best rating first (in 0.3 steps), then cheapest."""
    kept = [p for p in products if price_range is None or price_range.contains(p.price)]
    return sorted(kept, key=lambda p: (-round((p.rating or 0) / 0.3), p.price))


class MarketplaceAggregator:
    """Searches the configured catalogs and merges their results.

    Without an injected session every worker thread gets its own
    ``requests.Session``; sessions are not shared across threads.
    """

    def __init__(self, ebay_app_id: Optional[str] = None, session: Optional[requests.Session] = None,
                 ebay_timeout: float = 15, free_timeout: float = 8, max_workers: int = 2,
                 ebay_endpoint: str = EBAY_ENDPOINT):
        self.ebay_app_id = ebay_app_id
        self._session = session
        if session is not None:
            session.headers.setdefault("User-Agent", USER_AGENT)
        self._local = threading.local()
        self.ebay_timeout = ebay_timeout
        self.free_timeout = free_timeout
        self.max_workers = max_workers
        self.ebay_endpoint = ebay_endpoint

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = USER_AGENT
            self._local.session = session
        return session

    def search_products(self, terms: Sequence[str], category: Optional[str] = None,
                        price_range: Optional[PriceRange] = None,
                        sources: Sequence[str] = ("ebay", "free")) -> List[MarketplaceProduct]:
        """Search all requested sources; never raises."""
        terms = [t for t in terms if t]
        calls = []
        if "ebay" in sources:
            calls.append(lambda: self.search_ebay(terms, category, price_range))
        if "free" in sources or "rapidapi" in sources:
            calls.append(lambda: self.search_free(terms, category))
        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [pool.submit(call) for call in calls]
                merged = []
                for future in futures:
                    try:
                        merged.extend(future.result())
                    except Exception as e:
                        logger.warning("Marketplace source failed: %s", e)
            products = sort_products(validate_and_enhance(remove_duplicates(merged)), price_range)
        except Exception:
            logger.exception("Aggregating marketplace results failed")
            return fallback_products(terms, category)
        logger.debug("Marketplace search %s/%s -> %d products", terms, category, len(products))
        return products

    def search_ebay(self, terms: Sequence[str], category: Optional[str],
                    price_range: Optional[PriceRange] = None) -> List[MarketplaceProduct]:
        if not self.ebay_app_id:
            logger.debug("eBay credentials not configured, using curated catalog")
            return fallback_products(terms, category)

        params = {
            "OPERATION-NAME": "findItemsByKeywords",
            "SERVICE-VERSION": "1.0.0",
            "SECURITY-APPNAME": self.ebay_app_id,
            "RESPONSE-DATA-FORMAT": "JSON",
            "REST-PAYLOAD": "",
            "keywords": " ".join(terms),
            "paginationInput.entriesPerPage": 25,
            "itemFilter(2).name": "Condition",
            "itemFilter(2).value": "New",
            "itemFilter(3).name": "ListingType",
            "itemFilter(3).value": "FixedPrice",
            "outputSelector(0)": "PictureURLLarge",
            "outputSelector(1)": "PictureURLSuperSize",
            "outputSelector(2)": "GalleryURL",
        }
        if category in EBAY_CATEGORY_IDS:
            params["categoryId"] = EBAY_CATEGORY_IDS[category]
        if price_range is not None:
            params.update({
                "itemFilter(0).name": "MinPrice",
                "itemFilter(0).value": price_range.min,
                "itemFilter(1).name": "MaxPrice",
                "itemFilter(1).value": price_range.max,
            })
        try:
            r = self.session.get(self.ebay_endpoint, params=params, timeout=self.ebay_timeout)
            r.raise_for_status()
            products = parse_ebay_response(r.json(), category)
        except Exception as e:
            # transport errors and malformed payloads alike
            logger.warning("eBay search failed: %s", e)
            return fallback_products(terms, category)
        return products or fallback_products(terms, category)

    def search_free(self, terms: Sequence[str], category: Optional[str], limit: int = 20) -> List[MarketplaceProduct]:
        products: List[MarketplaceProduct] = []
        for name, fetch in (("FakeStore", self._fetch_fakestore), ("DummyJSON", self._fetch_dummyjson)):
            try:
                products.extend(fetch(terms, category))
            except Exception as e:
                logger.info("%s unavailable: %s", name, e)

        if len(products) < 5:
            products.extend(fallback_products(terms, category))
        return products[:limit]

    def _fetch_fakestore(self, terms: Sequence[str], category: Optional[str]) -> List[MarketplaceProduct]:
        r = self.session.get(FAKESTORE_URL, timeout=self.free_timeout)
        r.raise_for_status()
        return parse_fakestore_response(r.json(), terms, category)

    def _fetch_dummyjson(self, terms: Sequence[str], category: Optional[str]) -> List[MarketplaceProduct]:
        r = self.session.get(DUMMYJSON_URL, params={"q": " ".join(terms), "limit": 20}, timeout=self.free_timeout)
        r.raise_for_status()
        return parse_dummyjson_response(r.json(), category)
