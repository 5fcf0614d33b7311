# users.py
"""Accounts, passwords and subscription state."""

import calendar
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import bcrypt

from errors import AuthError, Conflict, NotFound, ValidationFailed
from schemas import SignupIn, UserProfile
from stores import LIMIT_MESSAGE, UserStore, now_iso

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12

PLAN_MONTHS = {"1_month": 1, "3_months": 3, "6_months": 6, "1_year": 12}

_BASE_FEATURES = ["Unlimited outfit recommendations", "Smart shopping suggestions", "Priority support"]

SUBSCRIPTION_PLANS = [
    {
        "id": "1_month", "name": "1 Month", "duration": "1 month", "price": 9.99,
        "features": _BASE_FEATURES, "popular": False,
    },
    {
        "id": "3_months", "name": "3 Months", "duration": "3 months", "price": 24.99,
        "originalPrice": 29.97, "savings": "17%",
        "features": _BASE_FEATURES + ["Advanced style analytics"], "popular": True,
    },
    {
        "id": "6_months", "name": "6 Months", "duration": "6 months", "price": 44.99,
        "originalPrice": 59.94, "savings": "25%",
        "features": _BASE_FEATURES + ["Advanced style analytics", "Personal stylist consultation"],
        "popular": False,
    },
    {
        "id": "1_year", "name": "1 Year", "duration": "1 year", "price": 79.99,
        "originalPrice": 119.88, "savings": "33%",
        "features": _BASE_FEATURES + [
            "Advanced style analytics", "Personal stylist consultation", "Exclusive fashion insights",
        ],
        "popular": False,
    },
]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed hash in the table
        return False


def add_months(start: datetime, months: int) -> datetime:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


# -------- Subscription rules --------
def is_subscription_expired(user: UserProfile, now: Optional[datetime] = None) -> bool:
    if user.subscription_status != "active" or not user.subscription_end_date:
        return True
    now = now or datetime.now(timezone.utc)
    return now > datetime.fromisoformat(user.subscription_end_date)


def has_active_subscription(user: UserProfile, now: Optional[datetime] = None) -> bool:
    return user.subscription_status == "active" and not is_subscription_expired(user, now)


def can_access_recommendations(user: UserProfile, now: Optional[datetime] = None) -> Dict[str, Any]:
    if has_active_subscription(user, now):
        return {"allowed": True, "reason": "active_subscription"}
    if user.recommendations_used < user.free_recommendations_limit:
        return {
            "allowed": True,
            "reason": "free_trial",
            "remaining": user.free_recommendations_limit - user.recommendations_used,
        }
    return {"allowed": False, "reason": "limit_exceeded", "message": LIMIT_MESSAGE}


def subscription_info(user: UserProfile, now: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "status": user.subscription_status,
        "plan": user.subscription_plan,
        "startDate": user.subscription_start_date,
        "endDate": user.subscription_end_date,
        "isExpired": is_subscription_expired(user, now),
        "recommendationsUsed": user.recommendations_used,
        "freeRecommendationsLimit": user.free_recommendations_limit,
    }


class UserService:
    """Account and subscription operations on top of a UserStore."""

    def __init__(self, store: UserStore, free_limit: int = 3,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.store = store
        self.free_limit = free_limit
        self.clock = clock

    def signup(self, payload: SignupIn) -> UserProfile:
        if self.store.get_by_email(payload.email):
            raise Conflict("User already exists with this email")
        now = now_iso()
        user = UserProfile(
            id=str(uuid.uuid4()),
            email=payload.email,
            name=payload.name,
            password_hash=hash_password(payload.password),
            free_recommendations_limit=self.free_limit,
            created_at=now,
            updated_at=now,
        )
        return self.store.create(user)

    def login(self, email: str, password: str) -> UserProfile:
        user = self.store.get_by_email(email)
        if user is None or not check_password(password, user.password_hash):
            raise AuthError("Invalid email or password")
        return user

    def get(self, user_id: str) -> UserProfile:
        user = self.store.get(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> UserProfile:
        if not fields:
            return self.get(user_id)
        return self.store.update(user_id, fields)

    def record_recommendation(self, user: UserProfile) -> UserProfile:
        """Count one recommendation against the free quota; subscribers are not counted."""
        if has_active_subscription(user, self.clock()):
            return user
        return self.store.increment_usage(user.id)

    def subscribe(self, user_id: str, plan: str) -> UserProfile:
        months = PLAN_MONTHS.get(plan)
        if months is None:
            raise ValidationFailed("Invalid subscription plan")
        start = self.clock()
        end = add_months(start, months)
        logger.info("Activating plan %s for user %s (simulated payment)", plan, user_id)
        return self.store.update(user_id, {
            "subscription_status": "active",
            "subscription_plan": plan,
            "subscription_start_date": start.isoformat(),
            "subscription_end_date": end.isoformat(),
        })

    def cancel(self, user_id: str) -> UserProfile:
        self.get(user_id)
        return self.store.update(user_id, {
            "subscription_status": "cancelled",
            "subscription_plan": None,
            "subscription_end_date": self.clock().isoformat(),
        })
