from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from auth import create_token, decode_token, parse_expires
from errors import AuthError, Conflict, SubscriptionRequired, ValidationFailed
from schemas import LoginIn, SignupIn, UserProfile
from stores import InMemoryUserStore
from users import (
    UserService,
    add_months,
    can_access_recommendations,
    check_password,
    has_active_subscription,
    hash_password,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def user_service():
    return UserService(InMemoryUserStore(), free_limit=3, clock=lambda: NOW)


def test_password_hash_round_trip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert check_password("secret123", hashed)
    assert not check_password("wrong", hashed)
    assert not check_password("secret123", "not-a-bcrypt-hash")


def test_token_carries_user_id():
    token = create_token("user-1", "s3cret", "1h")
    assert decode_token(token, "s3cret") == "user-1"


def test_expired_and_forged_tokens_are_rejected():
    old = create_token("user-1", "s3cret", "1m", now=datetime.now(timezone.utc) - timedelta(hours=1))
    with pytest.raises(AuthError, match="Token expired"):
        decode_token(old, "s3cret")
    with pytest.raises(AuthError, match="Invalid token"):
        decode_token(create_token("user-1", "other"), "s3cret")


@pytest.mark.parametrize("value,expected", [
    ("7d", timedelta(days=7)),
    ("12h", timedelta(hours=12)),
    ("30m", timedelta(minutes=30)),
    ("3600", timedelta(seconds=3600)),
])
def test_parse_expires(value, expected):
    assert parse_expires(value) == expected


def test_parse_expires_rejects_garbage():
    with pytest.raises(ValueError):
        parse_expires("soon")


def test_signup_rejects_duplicate_email(user_service):
    user_service.signup(SignupIn(name="Ada", email="Ada@Example.com", password="secret123"))
    with pytest.raises(Conflict):
        user_service.signup(SignupIn(name="Ada", email="ada@example.com", password="secret123"))


def test_login_checks_password(user_service):
    user_service.signup(SignupIn(name="Ada", email="ada@example.com", password="secret123"))
    assert user_service.login("ada@example.com", "secret123").name == "Ada"
    with pytest.raises(AuthError, match="Invalid email or password"):
        user_service.login("ada@example.com", "nope")
    with pytest.raises(AuthError):
        user_service.login("bob@example.com", "secret123")


def test_free_quota_stops_at_limit(user_service):
    user = user_service.signup(SignupIn(name="Ada", email="ada@example.com", password="secret123"))
    for _ in range(3):
        user = user_service.record_recommendation(user)
    assert user.recommendations_used == 3
    assert can_access_recommendations(user, NOW)["allowed"] is False

    with pytest.raises(SubscriptionRequired):
        user_service.record_recommendation(user)
    assert user_service.get(user.id).recommendations_used == 3


def test_subscribers_are_not_counted(user_service):
    user = user_service.signup(SignupIn(name="Ada", email="ada@example.com", password="secret123"))
    user = user_service.subscribe(user.id, "3_months")
    assert has_active_subscription(user, NOW)
    assert user.subscription_end_date.startswith("2027-01-19")

    for _ in range(5):
        user = user_service.record_recommendation(user)
    assert user.recommendations_used == 0
    assert can_access_recommendations(user, NOW) == {"allowed": True, "reason": "active_subscription"}


def test_expired_subscription_counts_as_free_tier():
    user = UserProfile(
        id="user-1", email="ada@example.com", name="Ada",
        subscription_status="active", subscription_plan="1_month",
        subscription_end_date=(NOW - timedelta(days=1)).isoformat(),
        recommendations_used=3,
    )
    assert not has_active_subscription(user, NOW)
    assert can_access_recommendations(user, NOW)["reason"] == "limit_exceeded"


def test_cancel_clears_plan(user_service):
    user = user_service.signup(SignupIn(name="Ada", email="ada@example.com", password="secret123"))
    user_service.subscribe(user.id, "1_year")
    cancelled = user_service.cancel(user.id)
    assert cancelled.subscription_status == "cancelled"
    assert cancelled.subscription_plan is None


def test_unknown_plan_is_rejected(user_service):
    user = user_service.signup(SignupIn(name="Ada", email="ada@example.com", password="secret123"))
    with pytest.raises(ValidationFailed):
        user_service.subscribe(user.id, "forever")


def test_add_months_clamps_day():
    start = datetime(2026, 1, 31, tzinfo=timezone.utc)
    assert add_months(start, 1).date().isoformat() == "2026-02-28"
    assert add_months(start, 12).date().isoformat() == "2027-01-31"


def test_profile_update_keeps_identity_fields(user_service):
    user = user_service.signup(SignupIn(name="Ada", email="ada@example.com", password="secret123"))
    updated = user_service.update_profile(user.id, {"preferred_style": "Classic", "email": "x@example.com"})
    assert updated.preferred_style == "Classic"
    assert updated.email == "ada@example.com"


@pytest.mark.parametrize("email", ["a@b@c.com", "a b@example.com", "x@a..b", "no-at-sign", "@example.com"])
def test_signup_rejects_malformed_emails(email):
    with pytest.raises(ValidationError):
        SignupIn(name="Ada", email=email, password="secret123")


def test_emails_are_normalized():
    assert SignupIn(name="Ada", email="  Ada@Example.COM ", password="secret123").email == "ada@example.com"
    assert LoginIn(email="ADA@example.com", password="x").email == "ada@example.com"
