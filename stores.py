# stores.py
"""Key-value persistence for users and wardrobe items.

Two tables, both keyed by ``id``: users with an ``EmailIndex`` and wardrobe
items with a ``UserIdIndex``. The DynamoDB classes are what production runs;
the in-memory classes back the tests and ``STORE_BACKEND=memory``.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from pydantic.alias_generators import to_camel

from errors import Conflict, Forbidden, NotFound, StyleError, SubscriptionRequired
from schemas import UserProfile, WardrobeItem
from settings import Settings

logger = logging.getLogger(__name__)

IMMUTABLE_USER_FIELDS = {"id", "email", "created_at"}
LIMIT_MESSAGE = "You have used all your free recommendations. Please subscribe to continue."


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


def _wardrobe_order(item: WardrobeItem) -> Tuple[str, str]:
    return (item.created_at or "", item.id)


# -------- Interfaces --------
class UserStore:
    def create(self, user: UserProfile) -> UserProfile:
        raise NotImplementedError

    def get(self, user_id: str) -> Optional[UserProfile]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[UserProfile]:
        raise NotImplementedError

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserProfile:
        raise NotImplementedError

    def increment_usage(self, user_id: str) -> UserProfile:
        """Add one recommendation to the user's usage, refusing past the free limit."""
        raise NotImplementedError


class WardrobeStore:
    def add(self, item: WardrobeItem) -> WardrobeItem:
        raise NotImplementedError

    def get(self, item_id: str) -> Optional[WardrobeItem]:
        raise NotImplementedError

    def list_for_user(self, user_id: str) -> List[WardrobeItem]:
        raise NotImplementedError

    def delete(self, item_id: str, user_id: str) -> None:
        raise NotImplementedError


# -------- DynamoDB --------
class DynamoUserStore(UserStore):
    def __init__(self, table):
        self.table = table

    def create(self, user: UserProfile) -> UserProfile:
        try:
            self.table.put_item(Item=user.to_dict(), ConditionExpression="attribute_not_exists(id)")
        except ClientError as e:
            if _is_conditional_failure(e):
                raise Conflict("User already exists")
            raise StyleError(f"Failed to create user: {e}")
        logger.info("Created user %s", user.id)
        return user

    def get(self, user_id: str) -> Optional[UserProfile]:
        response = self.table.get_item(Key={"id": user_id})
        item = response.get("Item")
        return UserProfile.model_validate(item) if item else None

    def get_by_email(self, email: str) -> Optional[UserProfile]:
        response = self.table.query(
            IndexName="EmailIndex",
            KeyConditionExpression=Key("email").eq(email),
        )
        items = response.get("Items") or []
        return UserProfile.model_validate(items[0]) if items else None

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserProfile:
        values = {k: v for k, v in fields.items() if k not in IMMUTABLE_USER_FIELDS}
        values["updated_at"] = now_iso()
        names, attr_values, parts = {}, {}, []
        for key, value in values.items():
            camel = to_camel(key)
            names[f"#{camel}"] = camel
            attr_values[f":{camel}"] = value
            parts.append(f"#{camel} = :{camel}")
        try:
            response = self.table.update_item(
                Key={"id": user_id},
                UpdateExpression="SET " + ", ".join(parts),
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=attr_values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise NotFound("User not found")
            raise StyleError(f"Failed to update user: {e}")
        return UserProfile.model_validate(response["Attributes"])

    def increment_usage(self, user_id: str) -> UserProfile:
        try:
            response = self.table.update_item(
                Key={"id": user_id},
                UpdateExpression="SET recommendationsUsed = if_not_exists(recommendationsUsed, :zero) + :one, "
                                 "updatedAt = :now",
                ConditionExpression="attribute_exists(id) AND (attribute_not_exists(recommendationsUsed) "
                                    "OR recommendationsUsed < freeRecommendationsLimit)",
                ExpressionAttributeValues={":zero": 0, ":one": 1, ":now": now_iso()},
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise SubscriptionRequired(LIMIT_MESSAGE)
            raise StyleError(f"Failed to record usage: {e}")
        return UserProfile.model_validate(response["Attributes"])


class DynamoWardrobeStore(WardrobeStore):
    def __init__(self, table):
        self.table = table

    def add(self, item: WardrobeItem) -> WardrobeItem:
        try:
            self.table.put_item(Item=item.to_dict(), ConditionExpression="attribute_not_exists(id)")
        except ClientError as e:
            if _is_conditional_failure(e):
                raise Conflict("Wardrobe item already exists")
            raise StyleError(f"Failed to save wardrobe item: {e}")
        return item

    def get(self, item_id: str) -> Optional[WardrobeItem]:
        item = self.table.get_item(Key={"id": item_id}).get("Item")
        return WardrobeItem.model_validate(item) if item else None

    def list_for_user(self, user_id: str) -> List[WardrobeItem]:
        kwargs = {"IndexName": "UserIdIndex", "KeyConditionExpression": Key("userId").eq(user_id)}
        items: List[WardrobeItem] = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(WardrobeItem.model_validate(raw) for raw in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return sorted(items, key=_wardrobe_order)

    def delete(self, item_id: str, user_id: str) -> None:
        try:
            self.table.delete_item(
                Key={"id": item_id},
                ConditionExpression=Attr("userId").eq(user_id),
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                raise Forbidden("Not authorized to delete this item")
            raise


# -------- In-memory --------
class InMemoryUserStore(UserStore):
    def __init__(self):
        self._users: Dict[str, UserProfile] = {}
        self._lock = threading.Lock()

    def create(self, user: UserProfile) -> UserProfile:
        with self._lock:
            if user.id in self._users:
                raise Conflict("User already exists")
            self._users[user.id] = user.model_copy(deep=True)
        return user

    def get(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    def get_by_email(self, email: str) -> Optional[UserProfile]:
        with self._lock:
            users = list(self._users.values())
        for user in users:
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserProfile:
        values = {k: v for k, v in fields.items() if k not in IMMUTABLE_USER_FIELDS}
        values["updated_at"] = now_iso()
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                raise NotFound("User not found")
            updated = current.model_copy(update=values)
            self._users[user_id] = updated
        return updated.model_copy(deep=True)

    def increment_usage(self, user_id: str) -> UserProfile:
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                raise NotFound("User not found")
            if current.recommendations_used >= current.free_recommendations_limit:
                raise SubscriptionRequired(LIMIT_MESSAGE)
            updated = current.model_copy(update={
                "recommendations_used": current.recommendations_used + 1,
                "updated_at": now_iso(),
            })
            self._users[user_id] = updated
        return updated.model_copy(deep=True)


class InMemoryWardrobeStore(WardrobeStore):
    def __init__(self):
        self._items: Dict[str, WardrobeItem] = {}
        self._lock = threading.Lock()

    def add(self, item: WardrobeItem) -> WardrobeItem:
        with self._lock:
            if item.id in self._items:
                raise Conflict("Wardrobe item already exists")
            self._items[item.id] = item.model_copy(deep=True)
        return item

    def get(self, item_id: str) -> Optional[WardrobeItem]:
        with self._lock:
            item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    def list_for_user(self, user_id: str) -> List[WardrobeItem]:
        with self._lock:
            owned = [i for i in self._items.values() if i.user_id == user_id]
        items = [i.model_copy(deep=True) for i in owned]
        return sorted(items, key=_wardrobe_order)

    def delete(self, item_id: str, user_id: str) -> None:
        with self._lock:
            item = self._items.get(item_id)
            if item is None or item.user_id != user_id:
                raise Forbidden("Not authorized to delete this item")
            del self._items[item_id]


def build_stores(settings: Settings) -> Tuple[UserStore, WardrobeStore]:
    """Create the user and wardrobe stores for the configured backend."""
    if settings.store_backend == "memory":
        logger.info("Using in-memory stores")
        return InMemoryUserStore(), InMemoryWardrobeStore()
    dynamodb = boto3.resource("dynamodb", region_name=settings.aws_region)
    logger.info("Using DynamoDB tables %s, %s", settings.users_table, settings.wardrobe_table)
    return (
        DynamoUserStore(dynamodb.Table(settings.users_table)),
        DynamoWardrobeStore(dynamodb.Table(settings.wardrobe_table)),
    )
